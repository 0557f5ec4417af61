# flora/model/product.py
from sqlalchemy.sql import func

from ..extensions import db

class Product(db.Model):
    __tablename__ = "product"
    id = db.Column(db.Integer, primary_key=True)
    slug = db.Column(db.String(255), index=True)
    name = db.Column(db.String(255), nullable=False, index=True)
    description = db.Column(db.Text)

    price_cents = db.Column(db.Integer, nullable=False, default=0)
    image_url = db.Column(db.String(1024))

    # facets
    category = db.Column(db.String(64), index=True)     # e.g. "bouquet", "plant"
    occasion = db.Column(db.String(64), index=True)     # e.g. "birthday", "sympathy"
    colour = db.Column(db.String(32), index=True)

    in_stock = db.Column(db.Boolean, default=True)
    stock_count = db.Column(db.Integer, default=0)
    status = db.Column(db.Boolean, default=True)         # False hides from the catalog

    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    def as_ref(self):
        # shape stored inside cart line items
        return {
            "id": self.id,
            "name": self.name,
            "price_cents": self.price_cents,
            "image_url": self.image_url,
            "in_stock": bool(self.in_stock),
            "category": self.category,
        }

    def as_api(self):
        return {
            "id": self.id,
            "slug": self.slug,
            "name": self.name,
            "description": self.description,
            "price_cents": self.price_cents,
            "image_url": self.image_url,
            "category": self.category,
            "occasion": self.occasion,
            "colour": self.colour,
            "in_stock": bool(self.in_stock),
            "stock_count": self.stock_count,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
