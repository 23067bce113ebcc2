"""Checkout: price the cart, record the transaction, submit it to the gateway.

Pricing and validation failures raise before anything is persisted or sent to
the gateway. Once the transaction exists, gateway problems come back as a
PaymentResult instead of an exception:

- the gateway could not be reached or answered 5xx: the outcome is unknown,
  so the transaction stays PENDING (GATEWAY_UNAVAILABLE)
- the gateway rejected the request: the transaction moves to ERROR
  (GATEWAY_REJECTED)

Recording the order is the ProcessCheckout command. The gateway is called
only after that command has committed, never from inside a handler, since
Protean retries a handler whose commit hits a version conflict.
"""

from dataclasses import dataclass, field
from datetime import date, datetime

from protean import handle
from protean.fields import Dict, List, String
from protean.utils.globals import current_domain

from payments.customer.customer import Customer, get_or_create_customer
from payments.domain import payments
from payments.gateway import get_gateway
from payments.reconciliation.effects import apply_approved_effects
from payments.reconciliation.guards import customer_guard
from payments.transaction.repository import TransitionOutcome
from payments.transaction.summary import CartItem, calculate_summary
from payments.transaction.transaction import ShippingDetails, Transaction, TransactionStatus
from payments.utils.logging import add_context, get_logger

logger = get_logger(__name__)

PAYMENT_DECLINED = "PAYMENT_DECLINED"
PAYMENT_ERROR = "PAYMENT_ERROR"
GATEWAY_UNAVAILABLE = "GATEWAY_UNAVAILABLE"
GATEWAY_REJECTED = "GATEWAY_REJECTED"


@dataclass(frozen=True)
class CustomerDetails:
    email: str
    full_name: str
    phone: str


@dataclass(frozen=True)
class CheckoutRequest:
    items: list[CartItem]
    customer: CustomerDetails
    address: str
    city: str
    department: str
    card_token: str


@dataclass(frozen=True)
class PaymentError:
    code: str
    message: str


@dataclass(frozen=True)
class DeliverySummary:
    tracking_number: str
    estimated_delivery_date: date
    address: str
    city: str


@dataclass(frozen=True)
class ProductStock:
    product_id: str
    name: str
    updated_stock: int | None


@dataclass(frozen=True)
class PaymentResult:
    success: bool
    transaction_number: str
    status: str
    message: str
    total: float
    currency: str
    delivery: DeliverySummary | None = None
    products: list[ProductStock] = field(default_factory=list)
    error: PaymentError | None = None
    created_at: datetime | None = None
    processed_at: datetime | None = None


def _result(transaction: Transaction, success: bool, message: str, **kwargs) -> PaymentResult:
    return PaymentResult(
        success=success,
        transaction_number=transaction.transaction_number,
        status=transaction.status,
        message=message,
        total=transaction.total.amount,
        currency=transaction.total.currency,
        created_at=transaction.created_at,
        processed_at=transaction.processed_at,
        **kwargs,
    )


def _approved_result(transaction: Transaction) -> PaymentResult:
    effects = apply_approved_effects(str(transaction.id))

    delivery = None
    if effects.delivery is not None:
        delivery = DeliverySummary(
            tracking_number=effects.delivery.tracking_number,
            estimated_delivery_date=effects.delivery.estimated_delivery_date,
            address=effects.delivery.address,
            city=effects.delivery.city,
        )

    remaining = {a.product_id: a.remaining for a in effects.stock_adjustments}
    products = [
        ProductStock(
            product_id=str(item.product_id),
            name=item.product_name,
            updated_stock=remaining.get(str(item.product_id)),
        )
        for item in transaction.items
    ]
    return _result(transaction, True, "Payment processed successfully", delivery=delivery, products=products)


def _outcome_result(outcome: TransitionOutcome, status_message: str | None) -> PaymentResult:
    transaction = outcome.transaction
    status = outcome.status

    if outcome.entered(TransactionStatus.APPROVED):
        return _approved_result(transaction)

    if status == TransactionStatus.APPROVED:
        # Approved through another path while we were submitting
        return _result(transaction, True, "Payment processed successfully")

    if status == TransactionStatus.PENDING:
        products = [
            ProductStock(product_id=str(item.product_id), name=item.product_name, updated_stock=None)
            for item in transaction.items
        ]
        return _result(
            transaction,
            True,
            "Payment is being processed. You will receive a confirmation soon.",
            products=products,
        )

    if status == TransactionStatus.DECLINED:
        return _result(
            transaction,
            False,
            "Payment was declined",
            error=PaymentError(
                code=PAYMENT_DECLINED,
                message=status_message or transaction.error_message or "Declined",
            ),
        )

    return _result(
        transaction,
        False,
        "Payment could not be processed",
        error=PaymentError(code=PAYMENT_ERROR, message=status_message or transaction.error_message or status.value),
    )


@payments.command(part_of="Transaction")
class ProcessCheckout:
    """Price a cart and record it as a PENDING transaction for the customer."""

    items: List(content_type=Dict())
    customer_email: String(max_length=254)
    customer_full_name: String(max_length=255)
    customer_phone: String(max_length=50)
    address: String(max_length=500)
    city: String(max_length=100)
    department: String(max_length=100)


@payments.command_handler(part_of=Transaction)
class ProcessCheckoutHandler:
    @handle(ProcessCheckout)
    def record_checkout(self, command):
        cart = [
            CartItem(product_id=item.get("product_id"), quantity=item.get("quantity")) for item in command.items or []
        ]
        summary = calculate_summary(cart, command.city)
        customer = get_or_create_customer(
            email=command.customer_email or "",
            full_name=command.customer_full_name,
            phone=command.customer_phone,
        )

        transaction = Transaction.create(
            customer_id=str(customer.id),
            summary=summary,
            shipping=ShippingDetails(address=command.address, city=command.city, department=command.department),
        )
        current_domain.repository_for(Transaction).add(transaction)
        return str(transaction.id)


def process_checkout(request: CheckoutRequest) -> PaymentResult:
    """Price, record and submit an order; return the payment outcome.

    Raises ValidationError, InsufficientStockError or ObjectNotFoundError
    for a bad cart or bad customer data. Nothing is persisted in that case.
    """
    command = ProcessCheckout(
        items=[{"product_id": item.product_id, "quantity": item.quantity} for item in request.items],
        customer_email=request.customer.email,
        customer_full_name=request.customer.full_name,
        customer_phone=request.customer.phone,
        address=request.address,
        city=request.city,
        department=request.department,
    )
    with customer_guard((request.customer.email or "").strip().lower()):
        transaction_id = current_domain.process(command, asynchronous=False)

    repo = current_domain.repository_for(Transaction)
    transaction = repo.get(transaction_id)
    customer = current_domain.repository_for(Customer).get(transaction.customer_id)

    add_context(transaction_number=transaction.transaction_number)
    logger.info(
        "transaction_created",
        transaction_number=transaction.transaction_number,
        total=transaction.total.amount,
        currency=transaction.total.currency,
        items=len(transaction.items),
    )

    result = get_gateway().submit_payment(
        amount=transaction.total.amount,
        currency=transaction.total.currency,
        reference=transaction.transaction_number,
        customer_email=customer.email,
        card_token=request.card_token,
    )

    if not result.success:
        if result.retryable:
            logger.warning(
                "payment_outcome_unknown",
                transaction_number=transaction.transaction_number,
                error=result.error_message,
            )
            return _result(
                transaction,
                False,
                "Payment gateway unavailable. The payment will be confirmed once the gateway responds.",
                error=PaymentError(code=GATEWAY_UNAVAILABLE, message=result.error_message or "Gateway unavailable"),
            )

        outcome = repo.transition_from_pending(
            str(transaction.id),
            lambda t: t.set_error(result.error_message or "Gateway rejected the payment"),
        )
        logger.warning(
            "payment_rejected_by_gateway",
            transaction_number=transaction.transaction_number,
            error=result.error_message,
        )
        return _result(
            outcome.transaction,
            False,
            "Payment was rejected by the gateway",
            error=PaymentError(code=GATEWAY_REJECTED, message=result.error_message or "Rejected"),
        )

    outcome = repo.transition_from_pending(
        str(transaction.id),
        lambda t: t.update_from_service(result.gateway_transaction_id, result.status, result.status_message),
    )
    logger.info(
        "payment_submitted",
        transaction_number=transaction.transaction_number,
        gateway_transaction_id=result.gateway_transaction_id,
        gateway_status=result.status,
        status=outcome.status.value,
    )
    return _outcome_result(outcome, result.status_message)
