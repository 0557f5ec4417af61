from flask import Blueprint

bp = Blueprint("delivery", __name__, url_prefix="/delivery")

from . import routes  # noqa: E402,F401
