"""Webhook authentication.

Wave deliveries are accepted through one of two schemes, tried in order:

1. ``Authorization: Bearer <secret>``, the form Wave actually sends for
   webhooks configured with a shared secret.
2. ``Wave-Signature: <hex>``, HMAC-SHA256 of the raw request body keyed
   with the same secret.

Each strategy receives the same raw body buffer, read once by the caller.
"""

import hashlib
import hmac
import logging
import re

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "Wave-Signature"

_HEX_RE = re.compile(r"[0-9a-fA-F]+")


def compute_signature(secret, raw_body):
    """Return the hex HMAC-SHA256 of ``raw_body`` keyed with ``secret``."""
    return hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()


def bearer_strategy(headers, raw_body, secret):
    """Accept when the Authorization header is exactly ``Bearer <secret>``."""
    auth_header = headers.get("Authorization")
    if not auth_header:
        return False
    return hmac.compare_digest(
        auth_header.encode("utf-8"), f"Bearer {secret}".encode("utf-8")
    )


def hmac_strategy(headers, raw_body, secret):
    """Accept when the signature header matches the body's HMAC-SHA256.

    The header must be a plain hex string; whitespace anywhere in it is
    rejected. Any failure while decoding or comparing counts as a rejection.
    """
    signature = headers.get(SIGNATURE_HEADER)
    if not signature:
        return False
    if not _HEX_RE.fullmatch(signature):
        logger.warning("Wave signature is not a hex string")
        return False

    try:
        provided = bytes.fromhex(signature)
        expected = hmac.new(
            secret.encode("utf-8"), raw_body, hashlib.sha256
        ).digest()
        return hmac.compare_digest(provided, expected)
    except (ValueError, TypeError, UnicodeError) as e:
        logger.warning(f"Error verifying HMAC signature: {e}")
        return False


STRATEGIES = [
    ("bearer", bearer_strategy),
    ("hmac", hmac_strategy),
]


def authenticate(headers, raw_body, secret, strategies=None):
    """Run the strategies in order and stop at the first that accepts.

    Returns the accepting strategy's name, or None when every strategy
    rejected the request.
    """
    for name, strategy in strategies or STRATEGIES:
        if strategy(headers, raw_body, secret):
            logger.info(f"Webhook authenticated via {name}")
            return name
    return None
