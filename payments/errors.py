"""Failure taxonomy for the payment core.

Every error carries a short machine-readable ``code`` so views can report
it back to the storefront or the gateway without string matching.
"""


class PaymentError(Exception):
    code = "payment_error"


class PaymentValidationError(PaymentError):
    """Initiation request is missing or has malformed required fields."""

    code = "validation_error"

    def __init__(self, message, errors=None):
        super().__init__(message)
        self.errors = errors or {}


class PostbackFormatError(PaymentError):
    code = "format_error"


class PostbackAuthenticationError(PaymentError):
    code = "authentication_error"


class CorrelationError(PaymentError):
    code = "correlation_error"


class OrderNotFound(CorrelationError):
    code = "order_not_found"

    def __init__(self, order_id):
        super().__init__(f"Order not found: {order_id}")
        self.order_id = order_id


class GatewayError(PaymentError):
    code = "gateway_error"


class PersistenceError(PaymentError):
    code = "persistence_error"
