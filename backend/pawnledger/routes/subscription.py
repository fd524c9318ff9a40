"""
Subscription routes: status, Stripe Checkout / billing portal redirects and
the Stripe webhook.

The webhook is authenticated by its Stripe-Signature header, not by a
session token.
"""

import stripe
from flask import Blueprint, request, jsonify, current_app, g

from ..services import subscription_service
from ..services.subscription_service import (
    SubscriptionError,
    WebhookSignatureError,
    WebhookPayloadError,
)
from ..decorators import require_auth


subscription_bp = Blueprint("subscription", __name__, url_prefix="/api/subscription")


@subscription_bp.get("/status")
@require_auth
def subscription_status_route():
    return jsonify(subscription_service.subscription_status(g.current_user.id)), 200


@subscription_bp.post("/checkout")
@require_auth
def create_checkout_route():
    """Body: {"locale": "en" | "fr"}"""
    data = request.get_json(silent=True) or {}
    try:
        url = subscription_service.create_checkout_session(g.current_user, data.get("locale"))
        return jsonify({"url": url}), 200
    except SubscriptionError as e:
        return jsonify({"error": str(e)}), 400
    except stripe.StripeError:
        current_app.logger.exception("Stripe rejected checkout session")
        return jsonify({"error": "Payment provider error"}), 502
    except Exception:
        current_app.logger.exception("Failed to create checkout session")
        return jsonify({"error": "Internal server error"}), 500


@subscription_bp.post("/portal")
@require_auth
def create_portal_route():
    data = request.get_json(silent=True) or {}
    try:
        url = subscription_service.create_portal_session(g.current_user, data.get("locale"))
        return jsonify({"url": url}), 200
    except SubscriptionError as e:
        return jsonify({"error": str(e)}), 400
    except stripe.InvalidRequestError as e:
        current_app.logger.warning("Stripe rejected portal session: %s", e)
        return jsonify({"error": "Billing portal is not available"}), 400
    except stripe.StripeError:
        current_app.logger.exception("Stripe error creating portal session")
        return jsonify({"error": "Payment provider error"}), 502
    except Exception:
        current_app.logger.exception("Failed to create portal session")
        return jsonify({"error": "Internal server error"}), 500


@subscription_bp.post("/webhook")
def stripe_webhook_route():
    payload = request.get_data()
    signature = request.headers.get("Stripe-Signature")

    try:
        event = subscription_service.construct_event(payload, signature)
    except WebhookSignatureError as e:
        return jsonify({"error": str(e)}), 400

    try:
        subscription_service.handle_event(event)
        return jsonify({"received": True}), 200
    except WebhookPayloadError as e:
        current_app.logger.error("Webhook %s rejected: %s", event.get("id"), e)
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Webhook handler failed for %s", event.get("id"))
        return jsonify({"error": "Webhook handler failed"}), 500
