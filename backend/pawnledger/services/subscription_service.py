"""
Premium subscriptions through Stripe.

The local `subscriptions` table mirrors Stripe and is written only from
webhook events, always as an upsert keyed by stripe_subscription_id, so a
replayed or duplicated event rewrites the same row.

Event handling:
- checkout.session.completed      metadata.userId required; re-fetch, upsert
- customer.subscription.updated   mirror status / periods / cancel fields;
                                  unknown rows created only when the
                                  subscription metadata names the user
- customer.subscription.deleted   status=canceled, canceled_at
- invoice.payment_failed          status=past_due
- invoice.payment_succeeded       re-fetch, mirror status / periods
- anything else                   acknowledged, ignored

Handlers that re-fetch from Stripe see the current state even when events
arrive out of order.
"""

from __future__ import annotations

import json

import stripe
from flask import current_app

from ..extensions import db
from ..models import Subscription, User
from pawnledger.time_utils import utcnow, from_unix


ACTIVE_STATUS = "active"
SUPPORTED_LOCALES = ("en", "fr")


class SubscriptionError(Exception):
    """400: the subscription request cannot be served."""
    pass


class WebhookSignatureError(Exception):
    """400: webhook payload failed signature verification."""
    pass


class WebhookPayloadError(Exception):
    """400: verified webhook carries data we cannot act on."""
    pass


def init_app(app) -> None:
    secret_key = app.config.get("STRIPE_SECRET_KEY")
    if secret_key:
        stripe.api_key = secret_key
    else:
        app.logger.info("Stripe not configured; checkout and portal disabled")


def _require_stripe() -> None:
    if not current_app.config.get("STRIPE_SECRET_KEY"):
        raise SubscriptionError("Payments are not configured")


def _as_dict(obj) -> dict:
    """Plain dict view of a Stripe object (or a dict already)."""
    if obj is None:
        return {}
    if isinstance(obj, dict):
        return obj
    return json.loads(str(obj))


def _locale(locale: str | None) -> str:
    return locale if locale in SUPPORTED_LOCALES else "en"


# ---------------------------------------------------------------------------
# Status
# ---------------------------------------------------------------------------

def latest_subscription(user_id: int) -> Subscription | None:
    return (
        db.session.query(Subscription)
        .filter(Subscription.user_id == user_id)
        .order_by(Subscription.created_at.desc(), Subscription.id.desc())
        .first()
    )


def active_subscription(user_id: int) -> Subscription | None:
    return (
        db.session.query(Subscription)
        .filter(Subscription.user_id == user_id, Subscription.status == ACTIVE_STATUS)
        .order_by(Subscription.created_at.desc(), Subscription.id.desc())
        .first()
    )


def has_active_subscription(user_id: int) -> bool:
    return active_subscription(user_id) is not None


def subscription_status(user_id: int) -> dict:
    subscription = active_subscription(user_id)
    if subscription is None:
        return {"has_active_subscription": False, "subscription": None}

    data = subscription.to_dict()
    return {
        "has_active_subscription": True,
        "subscription": {
            "status": data["status"],
            "current_period_end": data["current_period_end"],
            "cancel_at": data["cancel_at"],
        },
    }


# ---------------------------------------------------------------------------
# Checkout / portal
# ---------------------------------------------------------------------------

def create_checkout_session(user: User, locale: str | None = None) -> str:
    """Stripe Checkout in subscription mode for the premium price. Returns the redirect URL."""
    _require_stripe()
    price_id = current_app.config.get("STRIPE_PRICE_ID_PREMIUM")
    if not price_id:
        raise SubscriptionError("Premium price is not configured")

    locale = _locale(locale)
    app_url = current_app.config["APP_URL"].rstrip("/")
    metadata = {"userId": str(user.id)}

    session = stripe.checkout.Session.create(
        mode="subscription",
        payment_method_types=["card"],
        line_items=[{"price": price_id, "quantity": 1}],
        success_url=f"{app_url}/{locale}/subscription-success",
        cancel_url=f"{app_url}/{locale}/dashboard/subscription?canceled=true",
        customer_email=user.email,
        metadata=metadata,
        subscription_data={"metadata": metadata},
        locale=locale,
        payment_method_collection="always",
    )
    current_app.logger.info("Checkout session created: user=%s session=%s", user.id, session.id)
    return session.url


def create_portal_session(user: User, locale: str | None = None) -> str:
    """Billing portal for the customer of the user's latest subscription."""
    _require_stripe()
    subscription = latest_subscription(user.id)
    if subscription is None or not subscription.stripe_customer_id:
        raise SubscriptionError("No subscription found")

    app_url = current_app.config["APP_URL"].rstrip("/")
    session = stripe.billing_portal.Session.create(
        customer=subscription.stripe_customer_id,
        return_url=f"{app_url}/{_locale(locale)}/dashboard/subscription",
    )
    return session.url


# ---------------------------------------------------------------------------
# Webhook
# ---------------------------------------------------------------------------

def fetch_subscription(subscription_id: str) -> dict:
    """Current state of a subscription from Stripe."""
    return _as_dict(stripe.Subscription.retrieve(subscription_id))


def construct_event(payload: bytes, signature: str | None) -> dict:
    secret = current_app.config.get("STRIPE_WEBHOOK_SECRET")
    if not secret or not signature:
        raise WebhookSignatureError("Invalid signature")
    try:
        event = stripe.Webhook.construct_event(payload, signature, secret)
    except (ValueError, stripe.SignatureVerificationError) as e:
        current_app.logger.warning("Webhook signature verification failed: %s", e)
        raise WebhookSignatureError("Invalid signature") from e
    return _as_dict(event)


def _period_bounds(sub: dict) -> tuple:
    """
    Period start / end of a subscription. Newer API versions moved them
    from the subscription onto its items.
    """
    start = sub.get("current_period_start")
    end = sub.get("current_period_end")
    if start is None or end is None:
        items = (sub.get("items") or {}).get("data") or []
        if items:
            start = start if start is not None else items[0].get("current_period_start")
            end = end if end is not None else items[0].get("current_period_end")
    return from_unix(start), from_unix(end)


def _invoice_subscription_id(invoice: dict) -> str | None:
    subscription_id = invoice.get("subscription")
    if not subscription_id:
        details = ((invoice.get("parent") or {}).get("subscription_details") or {})
        subscription_id = details.get("subscription")
    if isinstance(subscription_id, dict):
        subscription_id = subscription_id.get("id")
    return subscription_id


def _customer_id(sub: dict) -> str | None:
    customer = sub.get("customer")
    if isinstance(customer, dict):
        return customer.get("id")
    return customer


def _find(stripe_subscription_id: str) -> Subscription | None:
    return (
        db.session.query(Subscription)
        .filter(Subscription.stripe_subscription_id == stripe_subscription_id)
        .first()
    )


def upsert_subscription(sub: dict, user_id: int | None = None, *, full: bool = True) -> Subscription | None:
    """
    Mirror a Stripe subscription object into its local row.

    Creates the row when missing and user_id is known; returns None when
    the row is missing and the owner cannot be determined. full=False
    mirrors status and periods only.
    """
    row = _find(sub["id"])
    start, end = _period_bounds(sub)

    if row is None:
        if user_id is None:
            current_app.logger.warning("Subscription %s not found locally and has no user; skipped", sub["id"])
            return None
        if db.session.get(User, user_id) is None:
            raise WebhookPayloadError(f"Unknown user {user_id}")
        row = Subscription(user_id=user_id, stripe_subscription_id=sub["id"])
        db.session.add(row)

    row.status = sub.get("status") or row.status
    row.current_period_start = start
    row.current_period_end = end
    if _customer_id(sub):
        row.stripe_customer_id = _customer_id(sub)
    if full:
        row.cancel_at = from_unix(sub.get("cancel_at"))
        row.canceled_at = from_unix(sub.get("canceled_at"))

    db.session.commit()
    current_app.logger.info("Subscription upserted: %s status=%s user=%s", row.stripe_subscription_id, row.status, row.user_id)
    return row


def _metadata_user_id(obj: dict) -> int | None:
    raw = (obj.get("metadata") or {}).get("userId")
    if raw in (None, ""):
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise WebhookPayloadError("Invalid userId in metadata")


def _handle_checkout_completed(session: dict) -> None:
    user_id = _metadata_user_id(session)
    if user_id is None:
        raise WebhookPayloadError("Missing userId")
    subscription_id = session.get("subscription")
    if isinstance(subscription_id, dict):
        subscription_id = subscription_id.get("id")
    if not subscription_id:
        raise WebhookPayloadError("Missing subscription")

    upsert_subscription(fetch_subscription(subscription_id), user_id=user_id)


def _handle_subscription_updated(sub: dict) -> None:
    upsert_subscription(sub, user_id=_metadata_user_id(sub))


def _handle_subscription_deleted(sub: dict) -> None:
    row = _find(sub["id"])
    if row is None:
        current_app.logger.warning("Deleted subscription %s not found locally", sub["id"])
        return
    row.status = "canceled"
    row.canceled_at = from_unix(sub.get("canceled_at")) or utcnow()
    db.session.commit()


def _handle_payment_failed(invoice: dict) -> None:
    subscription_id = _invoice_subscription_id(invoice)
    if not subscription_id:
        return
    row = _find(subscription_id)
    if row is None:
        current_app.logger.warning("Payment failed for unknown subscription %s", subscription_id)
        return
    row.status = "past_due"
    db.session.commit()


def _handle_payment_succeeded(invoice: dict) -> None:
    subscription_id = _invoice_subscription_id(invoice)
    if not subscription_id:
        return
    sub = fetch_subscription(subscription_id)
    upsert_subscription(sub, user_id=_metadata_user_id(sub), full=False)


EVENT_HANDLERS = {
    "checkout.session.completed": _handle_checkout_completed,
    "customer.subscription.updated": _handle_subscription_updated,
    "customer.subscription.deleted": _handle_subscription_deleted,
    "invoice.payment_failed": _handle_payment_failed,
    "invoice.payment_succeeded": _handle_payment_succeeded,
}


def handle_event(event: dict) -> bool:
    """
    Apply a verified event. Returns False for event types we ignore.

    Raises WebhookPayloadError for unusable payloads; any other error
    rolls back and propagates.
    """
    event_type = event.get("type")
    current_app.logger.info("Webhook received: type=%s id=%s", event_type, event.get("id"))

    handler = EVENT_HANDLERS.get(event_type)
    if handler is None:
        return False

    obj = (event.get("data") or {}).get("object") or {}
    try:
        handler(obj)
    except Exception:
        db.session.rollback()
        raise
    return True
