from flask import current_app

from . import bp
from ..services import delivery_service
from ..utils.api import ok


# GET /delivery/info
@bp.get("/info")
def delivery_info():
    return ok("Delivery info", delivery_service.delivery_info(current_app.config))


# GET /delivery/validate/<postcode>
@bp.get("/validate/<postcode>")
def validate_postcode(postcode):
    result = delivery_service.validate_postcode(postcode, current_app.config)
    return ok(result.message, result.as_api())
