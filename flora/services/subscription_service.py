# flora/services/subscription_service.py
from __future__ import annotations

import logging

from ..extensions import db
from ..model import Subscription
from ..utils.errors import NotFound, ValidationError

logger = logging.getLogger(__name__)

# action -> (allowed current statuses, new status)
_TRANSITIONS = {
    "pause": ({"active"}, "paused"),
    "resume": ({"paused"}, "active"),
    "cancel": ({"active", "paused"}, "cancelled"),
}


def subscriptions_for_user(user_id: int) -> list[Subscription]:
    return (Subscription.query.filter_by(user_id=user_id)
                        .order_by(Subscription.created_at.desc())
                        .all())


def get_for_user(subscription_id: str, user_id: int) -> Subscription:
    sub = Subscription.query.filter_by(id=subscription_id, user_id=user_id).first()
    if not sub:
        raise NotFound("subscription not found")
    return sub


def change_status(sub: Subscription, action: str) -> Subscription:
    if action not in _TRANSITIONS:
        raise ValidationError("Validation failed", {"action": f"action must be one of {', '.join(_TRANSITIONS)}"})
    allowed, new_status = _TRANSITIONS[action]
    if sub.status not in allowed:
        raise ValidationError("Validation failed", {"action": f"cannot {action} a {sub.status} subscription"})
    sub.status = new_status
    db.session.commit()
    logger.info("subscription %s -> %s", sub.id, new_status)
    return sub
