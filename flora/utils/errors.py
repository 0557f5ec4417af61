# flora/utils/errors.py
"""Error taxonomy shared by the services and the HTTP layer.

Services raise these; ``register_error_handlers`` turns them into the
standard error envelope so route functions stay free of try/except noise.
"""

from __future__ import annotations

import logging

from .api import err

logger = logging.getLogger(__name__)


class FloraError(Exception):
    status = 400
    code = "FLORA_ERROR"

    def __init__(self, message: str, *, code: str | None = None, data: dict | None = None,
                 status: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        if status:
            self.status = status
        self.data = data or {}

    def payload(self) -> dict:
        return {"code": self.code, **self.data}


class ConfigurationError(FloraError):
    """Static configuration is inconsistent. Not recoverable at runtime."""

    status = 500
    code = "CONFIGURATION_ERROR"


class ValidationError(FloraError):
    status = 422
    code = "VALIDATION_ERROR"

    def __init__(self, message: str = "Validation failed", errors: dict[str, str] | None = None) -> None:
        super().__init__(message)
        self.errors = dict(errors or {})

    def payload(self) -> dict:
        return {"code": self.code, "errors": self.errors}


class NotFound(FloraError):
    status = 404
    code = "NOT_FOUND"


class ServiceUnavailable(FloraError):
    """A collaborator (postcode lookup, delivery info) could not answer."""

    status = 503
    code = "SERVICE_UNAVAILABLE"


class CheckoutError(FloraError):
    """Order or payment-intent creation failed; the cart is left as it was."""

    status = 502
    code = "CHECKOUT_FAILED"


class PaymentFailed(FloraError):
    status = 402
    code = "PAYMENT_FAILED"


class AuthenticationRequired(FloraError):
    status = 401
    code = "SUBSCRIPTION_AUTH_REQUIRED"

    def __init__(self, return_path: str = "/checkout", message: str | None = None) -> None:
        super().__init__(message or "Please log in to purchase subscription items")
        self.return_path = return_path

    @property
    def redirect(self) -> str:
        return f"/login?returnTo={self.return_path}"

    def payload(self) -> dict:
        return {"code": self.code, "redirect": self.redirect}


def register_error_handlers(app):
    @app.errorhandler(FloraError)
    def handle_flora_error(e: FloraError):
        if e.status >= 500:
            logger.warning("%s: %s", e.code, e.message)
        return err(e.message, e.status, e.payload())

    @app.errorhandler(ValueError)
    def handle_value_error(e):
        return err(str(e), 422)
