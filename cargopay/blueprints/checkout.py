"""Checkout blueprint: payment initiation for the browser app.

Route Map:
  POST /wave/checkout      Wave Checkout Session (returns wave_launch_url)
  POST /cinetpay/checkout  CinetPay payment (returns payment_url)
  POST /paytech/checkout   PayTech payment request (returns redirect_url)
  OPTIONS on each route    CORS preflight

The client creates the pending transaction first and redirects to the
provider's URL from the answer.
"""

import logging

from flask import Blueprint, jsonify, make_response, request

from cargopay.errors import PaymentError
from cargopay.extensions import limiter
from cargopay.services.checkout_service import (
    create_cinetpay_payment,
    request_paytech_payment,
)
from cargopay.services.wave_service import create_checkout_session

logger = logging.getLogger(__name__)

checkout_bp = Blueprint("checkout", __name__)


def _cors_response(response):
    """Add CORS headers so the browser app can call this cross-origin."""
    response.headers["Access-Control-Allow-Origin"] = "*"
    response.headers["Access-Control-Allow-Headers"] = (
        "authorization, x-client-info, apikey, content-type"
    )
    return response


def _checkout_response(label, create, *args, **kwargs):
    """Run a checkout call and shape its JSON response."""
    try:
        result = create(*args, **kwargs)
    except PaymentError as e:
        logger.warning(f"{label} checkout failed ({e.kind}): {e.message}")
        return _cors_response(jsonify(e.to_dict())), e.status_code
    except Exception as e:
        logger.error(f"{label} checkout error: {e}", exc_info=True)
        return _cors_response(jsonify(error=str(e) or "Unknown error")), 500

    return _cors_response(jsonify(result)), 200


@checkout_bp.route("/wave/checkout", methods=["OPTIONS"])
@checkout_bp.route("/cinetpay/checkout", methods=["OPTIONS"])
@checkout_bp.route("/paytech/checkout", methods=["OPTIONS"])
def checkout_preflight():
    """Handle CORS preflight requests."""
    return _cors_response(make_response("ok")), 200


@checkout_bp.route("/wave/checkout", methods=["POST"])
@limiter.limit("30 per minute")
def wave_checkout():
    """Create a Wave checkout session.

    Required JSON fields: amount, currency, client_reference

    Returns: Wave session JSON, or { error: "..." }
    """
    data = request.get_json(silent=True) or {}
    return _checkout_response(
        "Wave",
        create_checkout_session,
        amount=data.get("amount"),
        currency=data.get("currency"),
        client_reference=data.get("client_reference"),
    )


@checkout_bp.route("/cinetpay/checkout", methods=["POST"])
@limiter.limit("30 per minute")
def cinetpay_checkout():
    """Initialize a CinetPay payment.

    Required JSON fields: amount, transaction_id
    Optional: currency (XOF), description, notify_url, return_url,
    customer_* fields, metadata
    """
    data = request.get_json(silent=True) or {}
    return _checkout_response("CinetPay", create_cinetpay_payment, data)


@checkout_bp.route("/paytech/checkout", methods=["POST"])
@limiter.limit("30 per minute")
def paytech_checkout():
    """Request a PayTech payment page.

    Required JSON fields: amount, ref_command, item_name
    Optional: currency (XOF), custom_field, success_url, cancel_url
    """
    data = request.get_json(silent=True) or {}
    return _checkout_response("PayTech", request_paytech_payment, data)
