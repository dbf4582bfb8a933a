"""Wave service: checkout sessions and webhook event handling.

Responsible for:
- Creating Wave Checkout Sessions for a pending transaction
- Verifying and parsing Wave webhook deliveries
- Dispatching checkout.session.completed to the payment state transitions
"""

import json
import logging

import requests
from flask import current_app

from cargopay.errors import (
    AuthenticationError,
    ConfigurationError,
    ProviderError,
    TransactionNotFound,
    ValidationError,
)
from cargopay.services.payment_service import (
    activate_pending_subscription,
    complete_transaction,
    find_transaction_by_reference,
    format_amount,
    get_gateway,
    is_event_processed,
    record_event,
)
from cargopay.services.webhook_auth import authenticate

logger = logging.getLogger(__name__)

CHECKOUT_COMPLETED = "checkout.session.completed"


# ──────────────────────────────────────────────
# Checkout Sessions
# ──────────────────────────────────────────────

def create_checkout_session(amount, currency, client_reference):
    """Create a Wave Checkout Session.

    The Wave API key is read from the ``wave`` row of payment_gateways, not
    from the environment, so admins can rotate it from the dashboard.

    Returns the Wave session object (dict) including ``wave_launch_url``.
    Raises ValidationError, ConfigurationError or ProviderError.
    """
    gateway = get_gateway("wave")
    if gateway is None or not gateway.is_active:
        logger.error("Wave gateway not found or inactive")
        raise ValidationError("Payment method not available")

    wave_token = (gateway.config or {}).get("secret_key")
    if not wave_token:
        logger.error("Wave secret key is missing in gateway config")
        raise ConfigurationError("Server Configuration Error: Missing Wave Key")

    if not amount or not currency or not client_reference:
        raise ValidationError("Missing required fields")

    logger.info(
        f"Creating Wave session for {amount} {currency}, ref: {client_reference}"
    )

    base_url = current_app.config["WAVE_API_BASE_URL"].rstrip("/")
    try:
        resp = requests.post(
            f"{base_url}/v1/checkout/sessions",
            headers={
                "Authorization": f"Bearer {wave_token}",
                "Content-Type": "application/json",
            },
            json={
                "amount": format_amount(amount),
                "currency": currency,
                "client_reference": client_reference,
                "success_url": current_app.config["WAVE_SUCCESS_URL"],
                "error_url": current_app.config["WAVE_ERROR_URL"],
            },
            timeout=current_app.config["WAVE_API_TIMEOUT"],
        )
    except requests.RequestException as e:
        logger.error(f"Wave API request failed: {e}")
        raise ProviderError(str(e), status_code=502) from e

    try:
        data = resp.json()
    except ValueError:
        data = {"raw": resp.text}

    if not resp.ok:
        logger.error(f"Wave API error status {resp.status_code}: {json.dumps(data)}")
        message = "Failed to create checkout session"
        if isinstance(data, dict) and data.get("message"):
            message = data["message"]
        raise ProviderError(message, status_code=resp.status_code, details=data)

    return data


# ──────────────────────────────────────────────
# Webhook Handling
# ──────────────────────────────────────────────

def verify_webhook(headers, raw_body):
    """Authenticate a Wave delivery and return the parsed event.

    ``raw_body`` is the exact request bytes; the same buffer is used for
    signature checking and for JSON parsing.

    Raises ConfigurationError when WAVE_WEBHOOK_SECRET is unset,
    AuthenticationError when no scheme accepts, ValidationError on bad JSON.
    """
    secret = current_app.config.get("WAVE_WEBHOOK_SECRET")
    if not secret:
        logger.error("WAVE_WEBHOOK_SECRET is not set")
        raise ConfigurationError("Server Configuration Error")

    if authenticate(headers, raw_body, secret) is None:
        logger.warning("Invalid Wave signature or auth token")
        raise AuthenticationError("Unauthorized")

    try:
        event = json.loads(raw_body.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        raise ValidationError(f"Invalid JSON payload: {e}") from e

    if not isinstance(event, dict):
        raise ValidationError("Invalid event payload")
    return event


def handle_webhook_event(event):
    """Apply a verified Wave event.

    Only checkout.session.completed changes state; any other type is
    acknowledged so Wave stops retrying it.

    Returns the JSON body to send back with a 200.
    """
    event_type = event.get("type")
    event_id = event.get("id")
    if event_id is not None:
        # provider_event_id is a string column
        event_id = str(event_id)
    logger.info(f"Received Wave event: {event_type}")

    use_ledger = current_app.config.get("WEBHOOK_EVENT_LEDGER") and event_id
    if use_ledger and is_event_processed("wave", event_id):
        logger.info(f"Duplicate Wave event {event_id}, skipping")
        return {"received": True, "duplicate": True}

    if event_type == CHECKOUT_COMPLETED:
        _handle_checkout_completed(event)

    if use_ledger:
        record_event("wave", event_id, event_type or "unknown")

    return {"received": True}


def _handle_checkout_completed(event):
    """Complete the transaction and activate a pending subscription."""
    session = event.get("data")
    if not isinstance(session, dict):
        session = {}

    client_reference = session.get("client_reference")
    if not client_reference:
        logger.warning("No client_reference in Wave session")
        raise ValidationError("No client_reference")

    logger.info(f"Processing payment for reference: {client_reference}")

    transaction = find_transaction_by_reference(client_reference)
    if transaction is None:
        logger.error(f"Transaction not found: {client_reference}")
        raise TransactionNotFound("Transaction not found")

    complete_transaction(transaction, session, metadata_key="wave_session")

    if transaction.user_id:
        activate_pending_subscription(transaction.user_id)
