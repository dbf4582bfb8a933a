"""Checkout service: CinetPay and PayTech payment initiation.

The browser app creates the pending transaction first, then asks one of
these functions to open a payment page for it. The provider later reports
the outcome to /cinetpay/webhook or /paytech/webhook (see ipn_service).
"""

import json
import logging

import requests
from flask import current_app, url_for

from cargopay.errors import ConfigurationError, ProviderError, ValidationError
from cargopay.services.payment_service import format_amount, get_gateway

logger = logging.getLogger(__name__)

CINETPAY_CUSTOMER_FIELDS = (
    "customer_name",
    "customer_surname",
    "customer_email",
    "customer_phone_number",
    "customer_address",
    "customer_city",
    "customer_country",
)


def _load_gateway(provider, label):
    gateway = get_gateway(provider)
    if gateway is None or not gateway.is_active:
        logger.error(f"{label} gateway not found or inactive")
        raise ValidationError(f"{label} gateway not configured")
    return gateway


def _post(label, url, **kwargs):
    """POST to a provider API and return its decoded JSON answer."""
    try:
        resp = requests.post(
            url, timeout=current_app.config["PROVIDER_API_TIMEOUT"], **kwargs
        )
    except requests.RequestException as e:
        logger.error(f"{label} API request failed: {e}")
        raise ProviderError(str(e), status_code=502, provider=label) from e

    try:
        data = resp.json()
    except ValueError:
        data = {"raw": resp.text}

    if not resp.ok:
        logger.error(f"{label} API error status {resp.status_code}: {json.dumps(data)}")
        message = "Failed to initialize payment"
        if isinstance(data, dict) and data.get("message"):
            message = data["message"]
        raise ProviderError(
            message, status_code=resp.status_code, details=data, provider=label
        )

    return data


# ──────────────────────────────────────────────
# CinetPay
# ──────────────────────────────────────────────

def create_cinetpay_payment(data):
    """Initialize a CinetPay payment for a pending transaction.

    ``data`` is the JSON body sent by the browser app. ``transaction_id``
    must be the transaction reference; CinetPay echoes it back in its IPN
    as cpm_trans_id. Returns CinetPay's answer, including ``payment_url``.
    """
    gateway = _load_gateway("cinetpay", "CinetPay")

    config = gateway.config or {}
    apikey = config.get("apikey")
    site_id = config.get("site_id")
    if not apikey or not site_id:
        logger.error("CinetPay apikey or site_id is missing in gateway config")
        raise ConfigurationError("Server Configuration Error: Missing CinetPay Key")

    if not data.get("amount") or not data.get("transaction_id"):
        raise ValidationError("Missing required fields")

    logger.info(f"Creating CinetPay payment, ref: {data['transaction_id']}")

    payload = {
        "apikey": apikey,
        "site_id": site_id,
        "transaction_id": data["transaction_id"],
        "amount": data["amount"],
        "currency": data.get("currency") or "XOF",
        "description": data.get("description"),
        "notify_url": data.get("notify_url"),
        "return_url": data.get("return_url"),
        "channels": "ALL",
        "metadata": data.get("metadata") or "",
    }
    for field in CINETPAY_CUSTOMER_FIELDS:
        payload[field] = data.get(field)

    return _post(
        "CinetPay",
        current_app.config["CINETPAY_API_URL"],
        headers={"Content-Type": "application/json"},
        json=payload,
    )


# ──────────────────────────────────────────────
# PayTech
# ──────────────────────────────────────────────

def _paytech_ipn_url():
    return current_app.config.get("PAYTECH_IPN_URL") or url_for(
        "webhooks.paytech_webhook", _external=True
    )


def request_paytech_payment(data):
    """Request a PayTech payment page for a pending transaction.

    ``ref_command`` must be the transaction reference. The gateway's
    ``is_test_mode`` flag picks PayTech's test or prod environment.
    Returns PayTech's answer, including ``redirect_url``.
    """
    gateway = _load_gateway("paytech", "PayTech")

    config = gateway.config or {}
    apikey = config.get("apikey")
    secret_key = config.get("secret_key")
    if not apikey or not secret_key:
        logger.error("PayTech apikey or secret_key is missing in gateway config")
        raise ConfigurationError("Server Configuration Error: Missing PayTech Key")

    amount = data.get("amount")
    ref_command = data.get("ref_command")
    item_name = data.get("item_name")
    if not amount or not ref_command or not item_name:
        raise ValidationError("Missing required fields")

    custom_field = data.get("custom_field")
    if isinstance(custom_field, dict):
        custom_field = json.dumps(custom_field)

    logger.info(f"Requesting PayTech payment, ref: {ref_command}")

    return _post(
        "PayTech",
        current_app.config["PAYTECH_API_URL"],
        headers={
            "API_KEY": apikey,
            "API_SECRET": secret_key,
        },
        data={
            "item_name": item_name,
            "item_price": format_amount(amount),
            "currency": data.get("currency") or "XOF",
            "ref_command": ref_command,
            "command_name": item_name,
            "env": "test" if gateway.is_test_mode else "prod",
            "success_url": data.get("success_url"),
            "cancel_url": data.get("cancel_url"),
            "ipn_url": _paytech_ipn_url(),
            "custom_field": custom_field,
        },
    )
