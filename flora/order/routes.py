from flask import request, g

from . import bp
from ..services import order_service
from ..services.order_service import OrderDraft
from ..utils.api import ok, err
from ..utils.decorators import current_user_optional, login_required


# POST /orders
@bp.post("")
def create_order():
    """
    Body: { items: [...], shipping_address: {...}, delivery_type, guest_email, ... }
    Header: Idempotency-Key: <client generated key>   (a retry returns the first order)
    """
    user = current_user_optional()
    draft = OrderDraft.from_payload(request.get_json(silent=True) or {})
    key = (request.headers.get("Idempotency-Key") or "").strip() or None
    order = order_service.create_order(draft, idempotency_key=key, user_id=user.id if user else None)
    return ok("Order created", order.as_api(), 201)


# GET /orders
@bp.get("")
@login_required
def list_orders():
    orders = order_service.orders_for_user(g.current_user.id)
    return ok("Orders fetched", {"items": [o.as_api() for o in orders]})


# GET /orders/<id>
@bp.get("/<order_id>")
def get_order(order_id):
    order = order_service.get_order(order_id)
    user = current_user_optional()
    # orders are readable by their owner, or by anyone holding the id of a guest order
    if order.user_id and (not user or user.id != order.user_id):
        return err("order not found", 404)
    return ok("Order fetched", order.as_api())
