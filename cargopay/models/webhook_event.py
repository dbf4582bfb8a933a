"""Webhook event model (idempotency ledger).

Only written when WEBHOOK_EVENT_LEDGER is on. The handler checks this table
for the provider's event ID before processing and records the ID afterwards,
so a retried delivery returns 200 without touching payments again.
"""

import uuid

from cargopay.extensions import db


class WebhookEvent(db.Model):
    __tablename__ = "webhook_events"
    __table_args__ = (
        db.UniqueConstraint(
            "provider", "provider_event_id", name="uq_webhook_events_provider_event"
        ),
    )

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    provider = db.Column(db.String(50), nullable=False)  # e.g. "wave"
    provider_event_id = db.Column(
        db.String(255), nullable=False
    )  # e.g. "AE_ijzo7oGgrlM4"
    event_type = db.Column(
        db.String(255), nullable=False
    )  # e.g. "checkout.session.completed"
    processed_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    def __repr__(self):
        return f"<WebhookEvent {self.provider}:{self.provider_event_id} ({self.event_type})>"
