import json
from fastapi import APIRouter, Depends, Request
from starlette.concurrency import run_in_threadpool
from . import config
from .deps import get_current_user, get_users
from .errors import ConfigurationError, UpstreamError, ValidationError
from .log import get_logger
from .schemas import CheckoutOut, StatusOut, WebhookOut
from .store import UserRecord, UserRepository
import stripe

logger = get_logger(__name__)

router = APIRouter(tags=["billing"])

WEBHOOK_TOLERANCE = 300


def _init_stripe():
    if not config.STRIPE_SECRET_KEY or not config.STRIPE_PRICE_ID:
        raise ConfigurationError("Stripe ist nicht konfiguriert", code="payment_not_configured")
    stripe.api_key = config.STRIPE_SECRET_KEY


def create_checkout_session(users: UserRepository, user: UserRecord, origin: str) -> str:
    _init_stripe()
    try:
        customer_id = user.stripe_customer_id
        if not customer_id:
            customer = stripe.Customer.create(email=user.email, metadata={"user_id": user.id})
            customer_id = customer.id
            users.set_customer_id(user.id, customer_id)
        session = stripe.checkout.Session.create(
            mode="subscription",
            line_items=[{"price": config.STRIPE_PRICE_ID, "quantity": 1}],
            success_url=origin + "/?success=true",
            cancel_url=origin + "/?canceled=true",
            customer=customer_id,
            client_reference_id=user.id,
            metadata={"user_id": user.id},
            subscription_data={"metadata": {"user_id": user.id}},
        )
    except stripe.StripeError as e:
        logger.warning(f"Stripe checkout failed for user {user.id}: {e}")
        raise UpstreamError("Stripe Fehler")
    logger.info("checkout session created", extra={"extra_data": {"user_id": user.id, "customer_id": customer_id, "session_id": session.id}})
    return session.url


def handle_webhook(users: UserRepository, payload: bytes, sig_header: str) -> dict:
    """Verify a Stripe event and apply it to the subscription flag.

    Returns the decoded event. Nothing is written unless the signature checks out.
    """
    secret = config.STRIPE_WEBHOOK_SECRET
    if not secret:
        raise ConfigurationError("Webhook ist nicht konfiguriert", code="webhook_not_configured")
    body = payload.decode("utf-8", errors="replace")
    try:
        stripe.WebhookSignature.verify_header(body, sig_header or "", secret, WEBHOOK_TOLERANCE)
        event = json.loads(body)
    except (stripe.SignatureVerificationError, ValueError) as e:
        logger.warning(f"Stripe webhook rejected: {e}")
        raise ValidationError("Ungültige Signatur", code="invalid_signature")

    event_type = event.get("type")
    data = (event.get("data") or {}).get("object") or {}

    if event_type == "checkout.session.completed":
        _handle_checkout_completed(users, data)
    elif event_type == "customer.subscription.deleted":
        _handle_subscription_deleted(users, data)
    else:
        logger.info("Stripe event ignored", extra={"extra_data": {"event_id": event.get("id"), "event_type": event_type}})
    return event


def _handle_checkout_completed(users: UserRepository, data: dict):
    metadata = data.get("metadata") or {}
    user_id = metadata.get("user_id") or data.get("client_reference_id")
    user = users.find_by_id(user_id) if user_id else None
    if user is None:
        logger.warning(f"checkout.session.completed for unknown user {user_id!r}")
        return
    users.update_subscription(user.id, True, customer_id=data.get("customer"))
    logger.info("subscription activated", extra={"extra_data": {"user_id": user.id, "customer_id": data.get("customer")}})


def _handle_subscription_deleted(users: UserRepository, data: dict):
    customer_id = data.get("customer")
    user = users.find_by_customer_id(customer_id)
    if user is None:
        logger.warning(f"customer.subscription.deleted for unknown customer {customer_id!r}")
        return
    users.update_subscription(user.id, False)
    logger.info("subscription cancelled", extra={"extra_data": {"user_id": user.id, "customer_id": customer_id}})


@router.get("/billing/status", response_model=StatusOut)
def status(user: UserRecord = Depends(get_current_user)):
    return StatusOut(is_subscribed=user.is_subscribed)

@router.post("/create-checkout-session", response_model=CheckoutOut)
@router.post("/api/stripe/create-checkout-session", response_model=CheckoutOut)
def create_checkout_session_route(request: Request, users: UserRepository = Depends(get_users), user: UserRecord = Depends(get_current_user)):
    origin = config.APP_URL or request.headers.get("origin") or request.url.scheme + "://" + request.url.netloc
    return CheckoutOut(url=create_checkout_session(users, user, origin.rstrip("/")))

@router.post("/stripe/webhook", response_model=WebhookOut)
async def stripe_webhook(request: Request, users: UserRepository = Depends(get_users)):
    payload = await request.body()
    await run_in_threadpool(handle_webhook, users, payload, request.headers.get("stripe-signature", ""))
    return WebhookOut()
