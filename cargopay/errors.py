"""Payment error taxonomy.

Each error carries the HTTP status it maps to and a ``kind`` tag, so callers
can tell a bad payload from a failing database without looking at the
status code. StoreError keeps status 400 because payment providers already
retry on it.
"""


class PaymentError(Exception):
    """Base class for errors raised while handling a payment callback."""

    status_code = 400
    kind = "payment"

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self):
        return {"error": self.message}


class ConfigurationError(PaymentError):
    status_code = 500
    kind = "configuration"


class AuthenticationError(PaymentError):
    status_code = 401
    kind = "authentication"


class ValidationError(PaymentError):
    status_code = 400
    kind = "validation"


class TransactionNotFound(PaymentError):
    status_code = 404
    kind = "not_found"


class StoreError(PaymentError):
    """A database read or write failed."""

    status_code = 400
    kind = "downstream"


class ProviderError(PaymentError):
    """The payment provider API answered with an error."""

    status_code = 502
    kind = "provider"

    def __init__(self, message, status_code=None, details=None, provider="Wave"):
        super().__init__(message, status_code=status_code)
        self.details = details
        self.provider = provider

    def to_dict(self):
        return {
            "error": f"{self.provider} API Error",
            "details": self.details,
            "message": self.message,
        }
