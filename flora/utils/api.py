# flora/utils/api.py
from datetime import datetime, timezone

from flask import jsonify


def utcnow() -> datetime:
    """Naive UTC now, for DateTime columns stored without a timezone."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _api_time() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def api_ok(message, data=None):
    return {
        "status": True,
        "message": message,
        "data": data if data is not None else {},
        "api_time": _api_time(),
    }


def api_error(message, data=None):
    return {
        "status": False,
        "message": message,
        "data": data if data is not None else {},
        "api_time": _api_time(),
    }


# ---- standard API response format ------------------------------------------
def ok(msg, data=None, status=200):
    r = jsonify(api_ok(msg, data)); r.status_code = status; return r

def err(msg, status=400, data=None):
    r = jsonify(api_error(msg, data)); r.status_code = status; return r
