from flask import request, current_app

from . import bp
from ..cart.routes import resolve_repository
from ..services import pricing
from ..services.cart_service import CartService
from ..services.checkout_service import CheckoutForm, CheckoutOrchestrator, DbAttemptStore
from ..services.gateway import LocalGateway
from ..utils.api import ok
from ..utils.decorators import current_user_optional
from ..utils.errors import PaymentFailed
from ..utils.money import format_money, to_major_units


def _orchestrator():
    user = current_user_optional()
    repo = resolve_repository(user)
    cfg = current_app.config
    orchestrator = CheckoutOrchestrator(
        CartService(repo),
        LocalGateway(cfg),
        DbAttemptStore(repo.row),
        user_id=user.id if user else None,
        tax_rate=cfg.get("TAX_RATE", pricing.DEFAULT_TAX_RATE),
        service_state=cfg.get("SERVICE_STATE", "VIC"),
    )
    return repo, orchestrator


def _attempt_api(attempt):
    data = attempt.as_dict()
    data.pop("fingerprint", None)
    if attempt.total_cents is not None:
        data["amount"] = str(to_major_units(attempt.total_cents))
        data["total_display"] = format_money(attempt.total_cents, current_app.config.get("CURRENCY"))
    return data


def _with_cart_id(resp, repo):
    resp.headers["X-Cart-Id"] = repo.cart_uuid
    return resp


# GET /checkout/quote?delivery_type=STANDARD
@bp.get("/quote")
def quote():
    repo, orchestrator = _orchestrator()
    q = orchestrator.quote(request.args.get("delivery_type") or "STANDARD")
    return _with_cart_id(ok("Checkout quote", q.as_api()), repo)


# POST /checkout
@bp.post("")
def submit():
    """
    Body: the checkout form (guest_email, recipient_*, use_same_address, sender_*,
    delivery_type, delivery_notes). Header: X-Cart-Id.
    Answers with the order and the payment intent's client secret.
    """
    repo, orchestrator = _orchestrator()
    form = CheckoutForm.from_payload(request.get_json(silent=True) or {})
    attempt = orchestrator.submit(form)
    return _with_cart_id(ok("Order created, awaiting payment", _attempt_api(attempt), 201), repo)


# POST /checkout/payment-result
@bp.post("/payment-result")
def payment_result():
    """Body: { "succeeded": bool, "error": str }"""
    repo, orchestrator = _orchestrator()
    data = request.get_json(silent=True) or {}
    if data.get("succeeded"):
        attempt = orchestrator.payment_succeeded()
        return _with_cart_id(ok("Order confirmed", _attempt_api(attempt)), repo)
    attempt = orchestrator.payment_failed(data.get("error"))
    raise PaymentFailed(attempt.error, data=_attempt_api(attempt))
