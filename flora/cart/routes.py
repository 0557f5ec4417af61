from __future__ import annotations

import uuid

from flask import request

from . import bp
from ..extensions import db
from ..model import Product
from ..services import pricing
from ..services.cart_repository import DbCartRepository, parse_date
from ..services.cart_service import CartService, ProductRef
from ..utils.api import ok, err
from ..utils.decorators import current_user_optional
from ..utils.errors import NotFound, ValidationError


# ---- helpers ---------------------------------------------------------------

def _valid_uuid(value: str | None) -> str | None:
    if not value:
        return None
    try:
        return str(uuid.UUID(value))
    except ValueError:
        return None


def resolve_repository(user=None) -> DbCartRepository:
    """Cart addressed by the ``X-Cart-Id`` header; a fresh one if absent or malformed."""
    cart_uuid = _valid_uuid(request.headers.get("X-Cart-Id"))
    return DbCartRepository.for_uuid(cart_uuid, user.id if user else None)


def _resolve() -> tuple[DbCartRepository, CartService]:
    repo = resolve_repository(current_user_optional())
    return repo, CartService(repo)


def _respond(repo: DbCartRepository, service: CartService, msg: str, status: int = 200):
    resp = ok(msg, service.cart.as_api(), status)
    resp.headers["X-Cart-Id"] = repo.cart_uuid    # <- return UUID to client
    return resp


def _parse_delivery_date(raw):
    try:
        return parse_date(raw)
    except (TypeError, ValueError):
        raise ValidationError("invalid cart item", {"delivery_date": "must be an ISO date"}) from None


# ---- routes ----------------------------------------------------------------

@bp.get("")
def get_cart():
    repo, service = _resolve()
    return _respond(repo, service, "cart fetched")


@bp.post("/items")
def add_item():
    """
    Body: { "product_id": int, "quantity": int, "purchase_mode": "one-time"|"recurring"|"spontaneous",
            "frequency": "weekly"|"fortnightly"|"monthly", "delivery_date": ISO date }
    Header: X-Cart-Id: <uuid>
    """
    repo, service = _resolve()
    data = request.get_json(silent=True) or {}

    product_id = data.get("product_id")
    if not product_id:
        return err("product_id is required", 422)
    try:
        qty = int(data.get("quantity", 1))
    except (TypeError, ValueError):
        return err("quantity must be an integer", 422)

    product: Product | None = db.session.get(Product, product_id)
    if not product or product.status is False:
        raise NotFound("product not found or inactive")
    if not product.in_stock:
        return err(f"{product.name} is out of stock", 409)

    service.add_item(
        ProductRef.from_dict(product.as_ref()),
        quantity=qty,
        mode=data.get("purchase_mode") or pricing.ONE_TIME,
        frequency=data.get("frequency") or None,
        delivery_date=_parse_delivery_date(data.get("delivery_date")),
    )
    return _respond(repo, service, "item added", 201)


@bp.patch("/items/<item_id>")
def update_item(item_id):
    repo, service = _resolve()
    if service.cart.find(item_id) is None:
        raise NotFound("cart item not found")
    data = request.get_json(silent=True) or {}
    try:
        qty = int(data.get("quantity"))
    except (TypeError, ValueError):
        return err("quantity must be an integer", 422)
    service.update_quantity(item_id, qty)
    return _respond(repo, service, "item updated" if qty > 0 else "item removed")


@bp.delete("/items/<item_id>")
def remove_item(item_id):
    repo, service = _resolve()
    service.remove_item(item_id)
    return _respond(repo, service, "item removed")


@bp.delete("/items")
def clear_cart():
    repo, service = _resolve()
    service.clear()
    return _respond(repo, service, "cart cleared")


@bp.put("/gift-message")
def set_gift_message():
    repo, service = _resolve()
    data = request.get_json(silent=True) or {}
    to = (data.get("to") or "").strip()
    sender = (data.get("from") or "").strip()
    message = (data.get("message") or "").strip()
    service.set_gift_message(to, sender, message)
    return _respond(repo, service, "gift message saved")
