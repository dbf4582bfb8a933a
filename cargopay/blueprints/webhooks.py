"""Webhooks blueprint: payment provider callbacks.

Route Map:
  POST /wave/webhook      Wave checkout events (bearer or HMAC auth, JSON)
  POST /cinetpay/webhook  CinetPay IPN (form-encoded)
  POST /paytech/webhook   PayTech IPN (form-encoded)
  OPTIONS on each route   CORS preflight

The raw body is read once and the same bytes are used for signature
verification and parsing.
"""

import logging

from flask import Blueprint, jsonify, request

from cargopay.errors import PaymentError
from cargopay.extensions import db
from cargopay.services.ipn_service import (
    handle_cinetpay_notification,
    handle_paytech_notification,
)
from cargopay.services.wave_service import handle_webhook_event, verify_webhook

logger = logging.getLogger(__name__)

webhooks_bp = Blueprint("webhooks", __name__)

CORS_ALLOW_HEADERS = "authorization, x-client-info, apikey, content-type, wave-signature"


@webhooks_bp.after_request
def add_cors_headers(response):
    """Permissive CORS on every provider callback response."""
    response.headers["Access-Control-Allow-Origin"] = "*"
    response.headers["Access-Control-Allow-Headers"] = CORS_ALLOW_HEADERS
    return response


def _error_response(error):
    """Translate a PaymentError into its JSON response."""
    if error.status_code >= 500:
        logger.error(f"Webhook {error.kind} error: {error.message}")
    else:
        logger.warning(f"Webhook {error.kind} error: {error.message}")
    return jsonify(error.to_dict()), error.status_code


def _unexpected_error_response(error):
    """Anything unforeseen is reported as 400 so the provider retries."""
    db.session.rollback()
    logger.error(f"Webhook error: {error}", exc_info=True)
    return jsonify({"error": str(error)}), 400


@webhooks_bp.route("/wave/webhook", methods=["POST", "OPTIONS"])
def wave_webhook():
    """Receive and process Wave webhook events.

    1. Read the raw body once
    2. Authenticate (Bearer secret, then HMAC-SHA256 signature)
    3. Pass the parsed event to handle_webhook_event
    4. Return 200 {received: true} to acknowledge receipt
    """
    logger.info(f"Wave webhook hit, method: {request.method}")
    if request.method == "OPTIONS":
        return "ok", 200

    raw_body = request.get_data()

    try:
        event = verify_webhook(request.headers, raw_body)
        body = handle_webhook_event(event)
    except PaymentError as e:
        return _error_response(e)
    except Exception as e:
        return _unexpected_error_response(e)

    return jsonify(body), 200


@webhooks_bp.route("/cinetpay/webhook", methods=["POST", "OPTIONS"])
def cinetpay_webhook():
    """Receive a CinetPay payment notification."""
    if request.method == "OPTIONS":
        return "ok", 200

    try:
        handle_cinetpay_notification(request.form.to_dict())
    except PaymentError as e:
        return _error_response(e)
    except Exception as e:
        return _unexpected_error_response(e)

    return jsonify({"success": True}), 200


@webhooks_bp.route("/paytech/webhook", methods=["POST", "OPTIONS"])
def paytech_webhook():
    """Receive a PayTech payment notification."""
    if request.method == "OPTIONS":
        return "ok", 200

    try:
        handle_paytech_notification(request.form.to_dict())
    except PaymentError as e:
        return _error_response(e)
    except Exception as e:
        return _unexpected_error_response(e)

    return jsonify({"success": True}), 200
