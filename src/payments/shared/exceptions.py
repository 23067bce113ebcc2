"""Payments-specific exceptions."""

from protean.exceptions import ValidationError


class InsufficientStockError(ValidationError):
    """Requested quantity exceeds the product's available stock."""

    def __init__(self, product_id: str, available: int, requested: int, product_name: str | None = None):
        self.product_id = product_id
        self.available = available
        self.requested = requested
        label = product_name or product_id
        super().__init__(
            {"stock": [f"Insufficient stock for {label}: available {available}, requested {requested}"]},
        )


class GatewayError(Exception):
    """The payment gateway could not complete a request.

    ``retryable`` is True when the outcome at the gateway is unknown (transport
    failure, timeout, 5xx) and False when the gateway rejected the request.
    """

    def __init__(self, message: str, retryable: bool = True, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.retryable = retryable
        self.status_code = status_code
