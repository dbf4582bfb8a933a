"""Shipment model (payment columns only).

The shipments table is much wider; IPN handlers only flip payment_status.
"""

import uuid

from cargopay.extensions import db


class Shipment(db.Model):
    __tablename__ = "shipments"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    tracking_number = db.Column(db.String(64), nullable=True)
    payment_status = db.Column(
        db.String(50), nullable=False, default="unpaid"
    )  # unpaid | paid

    def __repr__(self):
        return f"<Shipment {self.tracking_number or self.id} ({self.payment_status})>"
