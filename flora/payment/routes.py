from flask import request

from . import bp
from ..services import payment_service
from ..utils.api import ok, err
from ..utils.errors import PaymentFailed


# POST /payments/intent
@bp.post("/intent")
def create_intent():
    """Body: { "order_id": str, "amount": major units, e.g. 190.97 }"""
    data = request.get_json(silent=True) or {}
    order_id = data.get("order_id")
    if not order_id:
        return err("order_id is required", 422)
    if data.get("amount") is None:
        return err("amount is required", 422)
    intent = payment_service.create_intent(str(order_id), data["amount"])
    return ok("Payment intent created", {**intent.as_api(), "client_secret": intent.client_secret}, 201)


# POST /payments/<intent_id>/result
@bp.post("/<intent_id>/result")
def payment_result(intent_id):
    """Body: { "succeeded": bool, "error": str }"""
    data = request.get_json(silent=True) or {}
    succeeded = bool(data.get("succeeded"))
    intent = payment_service.record_result(intent_id, succeeded, data.get("error"))
    if not succeeded:
        raise PaymentFailed(intent.failure_message, data=intent.as_api())
    return ok("Payment recorded", intent.as_api())
