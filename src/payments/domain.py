"""Payments bounded context: Checkout, Gateway Reconciliation and Delivery.

Prices carts, records transactions, submits them to the payment gateway and
reconciles the gateway's asynchronous outcome (webhook or polling) back into
transaction state, applying stock decrement and delivery creation exactly once
per approved transaction.
"""

from protean.domain import Domain

from payments.utils.logging import configure_logging, get_logger

# Configure logging for the application
configure_logging()

logger = get_logger(__name__)

payments = Domain(name="payments")
