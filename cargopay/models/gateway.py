"""Payment gateway settings, one row per provider.

``config`` is provider specific:
    wave:      {"secret_key": "..."}
    cinetpay:  {"site_id": "...", "apikey": "..."}
    paytech:   {"apikey": "...", "secret_key": "..."}

``is_test_mode`` selects the provider sandbox where one exists (PayTech).

"""

import uuid

from cargopay.extensions import db


class PaymentGateway(db.Model):
    __tablename__ = "payment_gateways"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    provider = db.Column(db.String(50), unique=True, nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    is_test_mode = db.Column(db.Boolean, nullable=False, default=False)
    config = db.Column(db.JSON, default=dict)

    def __repr__(self):
        return f"<PaymentGateway {self.provider} active={self.is_active}>"
