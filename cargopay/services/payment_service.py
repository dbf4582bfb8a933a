"""Payment service: transaction and subscription state transitions.

Responsible for:
- Looking up transactions by their provider-facing reference
- Completing / failing transactions from provider callbacks
- Activating a user's pending subscription after a confirmed payment
- Marking shipments paid
- The optional processed-event ledger

Each step commits on its own. The database offers no transaction spanning
the transaction and subscription writes here, so a crash between them leaves
the transaction completed and the subscription pending; a redelivery
finishes the job because both steps are safe to repeat.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from cargopay.errors import StoreError
from cargopay.extensions import db
from cargopay.models.gateway import PaymentGateway
from cargopay.models.payment import Transaction, UserSubscription
from cargopay.models.shipment import Shipment
from cargopay.models.webhook_event import WebhookEvent

logger = logging.getLogger(__name__)


def _commit(action):
    """Commit the session, converting database failures into StoreError."""
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Database error while {action}: {e}")
        raise StoreError(f"Database error while {action}") from e


def format_amount(amount):
    """Providers expect the amount as a string without a trailing ``.0``."""
    if isinstance(amount, float) and amount.is_integer():
        return str(int(amount))
    if isinstance(amount, Decimal):
        return format(amount.normalize(), "f")
    return str(amount)


def get_gateway(provider):
    """Return the PaymentGateway row for ``provider``, or None."""
    try:
        return PaymentGateway.query.filter_by(provider=provider).first()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Database error loading {provider} gateway: {e}")
        raise StoreError("Database error while loading payment gateway") from e


def find_transaction_by_reference(reference):
    """Return the Transaction whose reference matches, or None."""
    try:
        return Transaction.query.filter_by(reference=reference).first()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Database error looking up transaction {reference}: {e}")
        raise StoreError("Database error while looking up transaction") from e


def complete_transaction(transaction, provider_payload, metadata_key="wave_session"):
    """Mark a transaction completed and keep the provider payload.

    The payload is merged into the existing metadata under ``metadata_key``;
    other metadata keys are preserved. Repeating the call is harmless.
    """
    metadata = dict(transaction.metadata_ or {})
    metadata[metadata_key] = provider_payload

    transaction.status = "completed"
    transaction.metadata_ = metadata
    _commit(f"updating transaction {transaction.reference}")

    logger.info(f"Transaction {transaction.reference} marked completed")
    return transaction


def activate_pending_subscription(user_id, now=None):
    """Activate the user's subscription awaiting payment.

    Only acts when exactly one subscription is in pending_payment. Zero
    matches is normal (not every payment buys a subscription); several
    matches is ambiguous, so nothing is touched.

    Returns the activated UserSubscription or None.
    """
    try:
        pending = (
            UserSubscription.query
            .filter_by(user_id=user_id, status="pending_payment")
            .limit(2)
            .all()
        )
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Database error looking up subscriptions for {user_id}: {e}")
        raise StoreError("Database error while looking up subscription") from e

    if len(pending) != 1:
        if pending:
            logger.warning(
                f"User {user_id} has several pending_payment subscriptions, "
                "none activated"
            )
        return None

    sub = pending[0]
    sub.status = "active"
    sub.start_date = now or datetime.now(timezone.utc)
    _commit(f"activating subscription {sub.id}")

    logger.info(f"Activated subscription {sub.id} for user {user_id}")
    return sub


def settle_transaction(reference, succeeded, provider_payload=None, metadata_key=None):
    """Move a pending transaction to completed or failed.

    Used by the IPN handlers. Transactions no longer pending are left alone,
    so a repeated notification cannot flip a completed payment to failed.

    Returns the updated Transaction, or None when nothing was pending.
    """
    try:
        transaction = Transaction.query.filter_by(
            reference=reference, status="pending"
        ).first()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Database error looking up transaction {reference}: {e}")
        raise StoreError("Database error while looking up transaction") from e

    if transaction is None:
        logger.info(f"No pending transaction for reference {reference}")
        return None

    transaction.status = "completed" if succeeded else "failed"
    if provider_payload is not None and metadata_key:
        metadata = dict(transaction.metadata_ or {})
        metadata[metadata_key] = provider_payload
        transaction.metadata_ = metadata
    _commit(f"settling transaction {reference}")

    logger.info(f"Transaction {reference} settled as {transaction.status}")
    return transaction


def mark_shipment_paid(shipment_id):
    """Set a shipment's payment_status to paid.

    A failure here must not undo the payment itself, so it is logged and
    reported through the return value instead of raised.
    """
    try:
        shipment = db.session.get(Shipment, shipment_id)
        if shipment is None:
            logger.warning(f"Shipment {shipment_id} not found, payment status unchanged")
            return False
        shipment.payment_status = "paid"
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Error updating shipment {shipment_id}: {e}")
        return False

    logger.info(f"Shipment {shipment_id} marked paid")
    return True


# ──────────────────────────────────────────────
# Processed-event ledger
# ──────────────────────────────────────────────

def is_event_processed(provider, event_id):
    """Check whether (provider, event_id) is already in the ledger."""
    try:
        return WebhookEvent.query.filter_by(
            provider=provider, provider_event_id=event_id
        ).first() is not None
    except SQLAlchemyError as e:
        db.session.rollback()
        raise StoreError("Database error while checking webhook ledger") from e


def record_event(provider, event_id, event_type):
    """Record a processed event. A concurrent duplicate insert is ignored."""
    db.session.add(WebhookEvent(
        provider=provider,
        provider_event_id=event_id,
        event_type=event_type,
    ))
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        logger.info(f"Webhook event {provider}:{event_id} already recorded")
    except SQLAlchemyError as e:
        db.session.rollback()
        raise StoreError("Database error while recording webhook event") from e
