# Models package: import all models here so Alembic can discover them.

from cargopay.models.payment import Transaction, UserSubscription  # noqa: F401
from cargopay.models.gateway import PaymentGateway  # noqa: F401
from cargopay.models.shipment import Shipment  # noqa: F401
from cargopay.models.webhook_event import WebhookEvent  # noqa: F401
