import os


def _env_flag(name, default=""):
    return os.environ.get(name, default).lower() in ("1", "true", "yes")


class Config:
    """Base configuration. Shared across all environments."""

    # --- Required ---
    SECRET_KEY = os.environ.get("SECRET_KEY")

    # Handle DATABASE_URL: some PaaS providers (Railway, Heroku) use
    # "postgres://" which SQLAlchemy 1.4+ doesn't accept.
    _db_url = os.environ.get("DATABASE_URL", "")
    if _db_url.startswith("postgres://"):
        _db_url = _db_url.replace("postgres://", "postgresql://", 1)
    SQLALCHEMY_DATABASE_URI = _db_url or None

    # --- Wave ---
    WAVE_WEBHOOK_SECRET = os.environ.get("WAVE_WEBHOOK_SECRET")
    WAVE_API_BASE_URL = os.environ.get("WAVE_API_BASE_URL", "https://api.wave.com")
    WAVE_API_TIMEOUT = float(os.environ.get("WAVE_API_TIMEOUT", 15))
    # Wave rejects localhost redirect targets, so these must be public URLs.
    WAVE_SUCCESS_URL = os.environ.get(
        "WAVE_SUCCESS_URL",
        "https://nextmovecargo.com/dashboard/client/payments?status=success",
    )
    WAVE_ERROR_URL = os.environ.get(
        "WAVE_ERROR_URL",
        "https://nextmovecargo.com/dashboard/client/payments?status=error",
    )

    # --- CinetPay / PayTech ---
    CINETPAY_API_URL = os.environ.get(
        "CINETPAY_API_URL", "https://api-checkout.cinetpay.com/v2/payment"
    )
    PAYTECH_API_URL = os.environ.get(
        "PAYTECH_API_URL", "https://paytech.sn/api/payment/request-payment"
    )
    # Where PayTech posts its IPN. Unset means this app's /paytech/webhook.
    PAYTECH_IPN_URL = os.environ.get("PAYTECH_IPN_URL")
    PROVIDER_API_TIMEOUT = float(os.environ.get("PROVIDER_API_TIMEOUT", 15))

    # --- Webhook idempotency ledger ---
    # Off by default: duplicate deliveries then rely on the status filters
    # of the state transitions alone.
    WEBHOOK_EVENT_LEDGER = _env_flag("WEBHOOK_EVENT_LEDGER")

    # --- SQLAlchemy ---
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_recycle": 300,
    }

    @staticmethod
    def validate():
        """Fail fast if required env vars are missing."""
        required = [
            "SECRET_KEY",
            "DATABASE_URL",
            "WAVE_WEBHOOK_SECRET",
        ]
        missing = [v for v in required if not os.environ.get(v)]
        if missing:
            raise RuntimeError(
                f"Missing required environment variables: {', '.join(missing)}"
            )


class DevConfig(Config):
    """Local development."""

    DEBUG = True


class TestConfig(Config):
    """Testing: in-memory SQLite, rate limiting off."""

    TESTING = True
    DEBUG = True
    SECRET_KEY = "test-secret-key-not-for-production"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_ENGINE_OPTIONS = {}
    WAVE_WEBHOOK_SECRET = "wave_whsec_test"
    WAVE_API_BASE_URL = "https://wave.test"
    WAVE_API_TIMEOUT = 5
    CINETPAY_API_URL = "https://cinetpay.test/v2/payment"
    PAYTECH_API_URL = "https://paytech.test/api/payment/request-payment"
    PAYTECH_IPN_URL = None
    PROVIDER_API_TIMEOUT = 5
    WEBHOOK_EVENT_LEDGER = False  # default off in tests; override per-test as needed
    RATELIMIT_ENABLED = False

    @staticmethod
    def validate():
        """Skip validation in test mode; everything is hardcoded."""
        pass


class ProdConfig(Config):
    """Production."""

    DEBUG = False


config_by_name = {
    "development": DevConfig,
    "production": ProdConfig,
    "testing": TestConfig,
}
