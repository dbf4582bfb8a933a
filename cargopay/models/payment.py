"""Payment models.

- Transaction: one payment attempt, joined to provider callbacks by its
  unique ``reference`` (the provider's client_reference / ref_command).
- UserSubscription: academy plan subscription. Created as pending_payment
  by the checkout flow and activated by a confirmed payment.

Both tables live in the managed Postgres database; the checkout flow in the
browser app creates the rows and this service only updates them.
"""

import uuid

from cargopay.extensions import db


class Transaction(db.Model):
    __tablename__ = "transactions"

    STATUSES = [
        "pending",
        "completed",
        "failed",
        "refunded",
    ]

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    reference = db.Column(
        db.String(255), unique=True, nullable=False
    )  # e.g. "TX-42", sent to the provider as client_reference
    user_id = db.Column(db.String(36), nullable=True)
    amount = db.Column(db.Numeric(12, 2), nullable=True)
    currency = db.Column(db.String(8), nullable=True)  # XOF | EUR | ...
    provider = db.Column(db.String(50), nullable=True)  # wave | cinetpay | paytech
    status = db.Column(
        db.String(50), nullable=False, default="pending"
    )  # pending | completed | failed | refunded
    metadata_ = db.Column(
        "metadata", db.JSON, default=dict
    )  # provider payloads, named metadata_ to avoid the declarative attribute clash
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self):
        return f"<Transaction {self.reference} ({self.status})>"


class UserSubscription(db.Model):
    __tablename__ = "user_subscriptions"

    STATUSES = [
        "pending_payment",
        "active",
        "expired",
        "cancelled",
    ]

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    user_id = db.Column(db.String(36), nullable=False, index=True)
    plan_id = db.Column(db.String(36), nullable=True)
    status = db.Column(
        db.String(50), nullable=False, default="pending_payment"
    )  # pending_payment | active | expired | cancelled
    start_date = db.Column(db.DateTime(timezone=True), nullable=True)
    end_date = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    def __repr__(self):
        return f"<UserSubscription {self.user_id} ({self.status})>"
