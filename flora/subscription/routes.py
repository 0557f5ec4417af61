from flask import request, g

from . import bp
from ..services import subscription_service
from ..utils.api import ok, err
from ..utils.decorators import login_required


# GET /subscriptions
@bp.get("")
@login_required
def list_subscriptions():
    subs = subscription_service.subscriptions_for_user(g.current_user.id)
    return ok("Subscriptions fetched", {"items": [s.as_api() for s in subs]})


# PATCH /subscriptions/<id>
@bp.patch("/<sub_id>")
@login_required
def update_subscription(sub_id):
    """Body: { "action": "pause" | "resume" | "cancel" }"""
    data = request.get_json(silent=True) or {}
    action = (data.get("action") or "").strip().lower()
    if not action:
        return err("action is required", 422)
    sub = subscription_service.get_for_user(sub_id, g.current_user.id)
    sub = subscription_service.change_status(sub, action)
    return ok("Subscription updated", sub.as_api())
