from flask import Blueprint

bp = Blueprint("subscription", __name__, url_prefix="/subscriptions")

from . import routes  # noqa: E402,F401
