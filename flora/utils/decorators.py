# ------- flora/utils/decorators.py -------
from functools import wraps

from flask import g
from flask_jwt_extended import get_jwt_identity, verify_jwt_in_request

from ..extensions import db
from ..model.user import User
from .api import err


def _current_user(optional: bool = False) -> User | None:
    verify_jwt_in_request(optional=optional)
    uid = get_jwt_identity()
    try:
        uid = int(uid)
    except (TypeError, ValueError):
        uid = None
    return db.session.get(User, uid) if uid else None


def current_user_optional() -> User | None:
    """The signed-in shopper, or None for a guest request without a token."""
    return _current_user(optional=True)


def login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        u = _current_user()
        if not u:
            return err("Unauthorized", 401)
        g.current_user = u
        return fn(*args, **kwargs)
    return wrapper
