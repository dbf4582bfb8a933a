"""Shared test fixtures for the payment callback test suite.

Provides:
- app: Flask app configured for testing (in-memory SQLite, rate limits off)
- client: Flask test client
- db_session: clean database per test (tables created/dropped)
- seed_data: pending transaction, pending subscription, gateways, shipment
- sign: HMAC-SHA256 hex signature helper using the test secret
"""

import hashlib
import hmac

import pytest

from cargopay import create_app
from cargopay.extensions import db as _db
from cargopay.models.gateway import PaymentGateway
from cargopay.models.payment import Transaction, UserSubscription
from cargopay.models.shipment import Shipment


@pytest.fixture(scope="session")
def app():
    """Create the Flask application configured for testing."""
    app = create_app("testing")
    yield app


@pytest.fixture(autouse=True)
def db_session(app):
    """Create all tables before each test, drop after."""
    with app.app_context():
        _db.create_all()
        yield _db.session
        _db.session.rollback()
        _db.drop_all()


@pytest.fixture
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture
def sign(app):
    """Return a function computing the Wave-Signature for raw bytes."""
    secret = app.config["WAVE_WEBHOOK_SECRET"].encode("utf-8")

    def _sign(raw_body):
        return hmac.new(secret, raw_body, hashlib.sha256).hexdigest()

    return _sign


@pytest.fixture
def seed_data(app, db_session):
    """Seed a pending payment for user U1, plus gateway rows and a shipment.

    Returns a dict of plain IDs so tests can use them across app contexts.
    """
    with app.app_context():
        # --- Pending transaction ---
        transaction = Transaction(
            reference="TX-42",
            user_id="U1",
            amount=5000,
            currency="XOF",
            provider="wave",
            status="pending",
            metadata_={"foo": 1},
        )
        _db.session.add(transaction)

        # --- Transaction without a user ---
        guest_transaction = Transaction(
            reference="TX-GUEST",
            user_id=None,
            amount=2500,
            currency="XOF",
            provider="wave",
            status="pending",
            metadata_={},
        )
        _db.session.add(guest_transaction)

        # --- Subscription awaiting payment ---
        subscription = UserSubscription(
            user_id="U1",
            status="pending_payment",
        )
        _db.session.add(subscription)

        # --- Gateways ---
        _db.session.add(PaymentGateway(
            provider="wave",
            is_active=True,
            config={"secret_key": "wave_sk_test"},
        ))
        _db.session.add(PaymentGateway(
            provider="cinetpay",
            is_active=True,
            config={"site_id": "SITE-1", "apikey": "cp_key"},
        ))
        _db.session.add(PaymentGateway(
            provider="paytech",
            is_active=True,
            is_test_mode=True,
            config={"apikey": "pt_key", "secret_key": "pt_secret"},
        ))

        # --- Shipment awaiting payment ---
        shipment = Shipment(tracking_number="NMC-0001", payment_status="unpaid")
        _db.session.add(shipment)

        _db.session.commit()

        return {
            "transaction_id": transaction.id,
            "reference": transaction.reference,
            "user_id": transaction.user_id,
            "guest_transaction_id": guest_transaction.id,
            "subscription_id": subscription.id,
            "shipment_id": shipment.id,
        }
