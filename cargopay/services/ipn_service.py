"""IPN service: CinetPay and PayTech payment notifications.

Both providers POST form-encoded notifications. The transaction is matched
on its reference (cpm_trans_id / ref_command) and settled only while it is
still pending. A shipment_id inside the provider's custom field marks that
shipment paid.
"""

import hashlib
import hmac
import json
import logging

from cargopay.errors import AuthenticationError, ValidationError
from cargopay.services.payment_service import (
    get_gateway,
    mark_shipment_paid,
    settle_transaction,
)

logger = logging.getLogger(__name__)


def _parse_custom_field(raw):
    """Decode the JSON blob the checkout flow passes through the provider."""
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except ValueError as e:
        raise ValidationError(f"Invalid custom field: {e}") from e
    return data if isinstance(data, dict) else {}


def _sha256_hex(value):
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


# ──────────────────────────────────────────────
# CinetPay
# ──────────────────────────────────────────────

def handle_cinetpay_notification(form):
    """Process a CinetPay IPN.

    cpm_resultat "00" means the payment succeeded; anything else fails the
    pending transaction. Returns the updated Transaction or None.
    """
    gateway = get_gateway("cinetpay")
    if gateway is None:
        raise ValidationError("CinetPay gateway not configured")

    if form.get("cpm_site_id") != (gateway.config or {}).get("site_id"):
        logger.warning(f"CinetPay IPN with unknown site id {form.get('cpm_site_id')}")
        raise AuthenticationError("Invalid Site ID")

    trans_id = form.get("cpm_trans_id")
    if not trans_id:
        raise ValidationError("Missing cpm_trans_id")

    payload = {
        "cpm_trans_id": trans_id,
        "cpm_amount": form.get("cpm_amount"),
        "cpm_currency": form.get("cpm_currency"),
        "cpm_payid": form.get("cpm_payid"),
        "cpm_payment_method": form.get("cpm_payment_method"),
        "cpm_trans_status": form.get("cpm_trans_status"),
    }

    if form.get("cpm_resultat") == "00":
        custom = _parse_custom_field(form.get("cpm_custom"))
        transaction = settle_transaction(
            trans_id, succeeded=True,
            provider_payload=payload, metadata_key="cinetpay_ipn",
        )
        if custom.get("shipment_id"):
            mark_shipment_paid(custom["shipment_id"])
        return transaction

    logger.info(
        f"CinetPay payment failed for {trans_id}: {form.get('cpm_error_message')}"
    )
    return settle_transaction(
        trans_id, succeeded=False,
        provider_payload=payload, metadata_key="cinetpay_ipn",
    )


# ──────────────────────────────────────────────
# PayTech
# ──────────────────────────────────────────────

def verify_paytech_keys(form, gateway_config):
    """Check the hashed API credentials PayTech echoes in every IPN.

    Skipped when the gateway row does not hold both credentials.
    """
    api_key = gateway_config.get("apikey")
    api_secret = gateway_config.get("secret_key")
    if not api_key or not api_secret:
        return True

    key_ok = hmac.compare_digest(
        form.get("api_key_sha256") or "", _sha256_hex(api_key)
    )
    secret_ok = hmac.compare_digest(
        form.get("api_secret_sha256") or "", _sha256_hex(api_secret)
    )
    return key_ok and secret_ok


def handle_paytech_notification(form):
    """Process a PayTech IPN.

    Only ``sale`` events settle a transaction; other event types are
    acknowledged. Returns the updated Transaction or None.
    """
    gateway = get_gateway("paytech")
    if gateway is None:
        raise ValidationError("PayTech gateway not configured")

    if not verify_paytech_keys(form, gateway.config or {}):
        logger.warning("PayTech IPN with invalid API key hashes")
        raise AuthenticationError("Invalid API credentials")

    type_event = form.get("type_event")
    if type_event != "sale":
        logger.info(f"Ignoring PayTech event {type_event}")
        return None

    ref_command = form.get("ref_command")
    if not ref_command:
        raise ValidationError("Missing ref_command")

    custom = _parse_custom_field(form.get("custom_field"))
    transaction = settle_transaction(
        ref_command, succeeded=True,
        provider_payload={
            "ref_command": ref_command,
            "item_price": form.get("item_price"),
            "payment_method": form.get("payment_method"),
        },
        metadata_key="paytech_ipn",
    )
    if custom.get("shipment_id"):
        mark_shipment_paid(custom["shipment_id"])
    return transaction
