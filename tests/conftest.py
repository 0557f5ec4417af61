"""Shared fixtures: an app on in-memory SQLite, a seeded catalog and a signed-in shopper."""

import pytest
from flask_jwt_extended import create_access_token
from werkzeug.security import generate_password_hash

from flora import create_app
from flora.extensions import db
from flora.model import Product, User
from flora.services.cart_service import ProductRef


@pytest.fixture
def app():
    app = create_app(
        TESTING=True,
        SQLALCHEMY_DATABASE_URI="sqlite://",
        JWT_SECRET_KEY="test-secret-key-that-is-long-enough-for-hs256",
        LOG_LEVEL="DEBUG",
    )
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def products(app):
    rows = [
        Product(slug="pink-peony-posy", name="Pink Peony Posy", price_cents=3250,
                category="bouquet", occasion="birthday", colour="pink", in_stock=True, stock_count=10),
        Product(slug="native-wildflowers", name="Native Wildflowers", price_cents=6800,
                category="bouquet", occasion="anniversary", colour="mixed", in_stock=True, stock_count=5),
        Product(slug="white-lily-tribute", name="White Lily Tribute", price_cents=4599,
                category="arrangement", occasion="sympathy", colour="white", in_stock=True, stock_count=3),
        Product(slug="sold-out-tulips", name="Sold Out Tulips", price_cents=2999,
                category="bouquet", occasion="birthday", colour="red", in_stock=False, stock_count=0),
    ]
    db.session.add_all(rows)
    db.session.commit()
    return {p.slug: p for p in rows}


@pytest.fixture
def user(app):
    u = User(email="sam@example.com", name="Sam", password_hash=generate_password_hash("secret123"))
    db.session.add(u)
    db.session.commit()
    return u


@pytest.fixture
def auth_headers(user):
    return {"Authorization": f"Bearer {create_access_token(identity=str(user.id))}"}


def make_ref(pid=1, price=3250, name="Pink Peony Posy"):
    return ProductRef(id=pid, name=name, price_cents=price, image_url=None, in_stock=True, category="bouquet")


@pytest.fixture
def ref():
    return make_ref
