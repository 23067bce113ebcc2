"""FastAPI routes for the Payments domain: checkout, webhooks and products."""

from fastapi import APIRouter, HTTPException
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from payments.api.schemas import (
    AddProductRequest,
    CalculateSummaryRequest,
    ConfigureGatewayRequest,
    DeliveryResponse,
    GatewayConfigResponse,
    GatewayWebhookEvent,
    MoneyResponse,
    OrderLineResponse,
    OrderSummaryResponse,
    PaymentErrorResponse,
    PaymentResultResponse,
    ProcessPaymentRequest,
    ProductIdResponse,
    ProductResponse,
    ProductStockLevelResponse,
    ProductStockResponse,
    RestockProductRequest,
    TransactionStatusResponse,
    WebhookResponse,
)
from payments.config import get_settings
from payments.gateway import get_gateway
from payments.gateway.fake_adapter import FakeGateway
from payments.product.catalog import AddProduct, list_products, restock_product
from payments.projections.product_stock import ProductStockView
from payments.reconciliation.webhook import process_gateway_webhook
from payments.shared.money import Money
from payments.transaction.checkout import CheckoutRequest, CustomerDetails, PaymentResult, process_checkout
from payments.transaction.status import get_transaction_status
from payments.transaction.summary import CartItem, calculate_summary
from payments.utils.logging import get_logger

logger = get_logger(__name__)


def _money(money: Money) -> MoneyResponse:
    return MoneyResponse(amount=money.amount, currency=money.currency)


def _payment_response(result: PaymentResult) -> PaymentResultResponse:
    return PaymentResultResponse(
        success=result.success,
        transaction_number=result.transaction_number,
        status=result.status,
        message=result.message,
        total=result.total,
        currency=result.currency,
        delivery=DeliveryResponse(**vars(result.delivery)) if result.delivery else None,
        products=[ProductStockResponse(**vars(p)) for p in result.products],
        error=PaymentErrorResponse(**vars(result.error)) if result.error else None,
        created_at=result.created_at,
        processed_at=result.processed_at,
    )


def _product_response(product) -> ProductResponse:
    return ProductResponse(
        id=str(product.id),
        name=product.name,
        description=product.description,
        price=product.price.amount,
        currency=product.price.currency,
        stock=product.stock,
        image_url=product.image_url,
    )


# ---------------------------------------------------------------------------
# Payment Router
# ---------------------------------------------------------------------------
payment_router = APIRouter(prefix="/payments", tags=["payments"])


@payment_router.post("/calculate", response_model=OrderSummaryResponse)
async def calculate(body: CalculateSummaryRequest) -> OrderSummaryResponse:
    """Price a cart without creating anything."""
    summary = calculate_summary(
        [CartItem(product_id=i.product_id, quantity=i.quantity) for i in body.items],
        body.delivery_city,
    )
    return OrderSummaryResponse(
        lines=[
            OrderLineResponse(
                product_id=line.product_id,
                product_name=line.product_name,
                quantity=line.quantity,
                unit_price=_money(line.unit_price),
                line_subtotal=_money(line.line_subtotal),
            )
            for line in summary.lines
        ],
        subtotal=_money(summary.subtotal),
        base_fee=_money(summary.base_fee),
        delivery_fee=_money(summary.delivery_fee),
        total=_money(summary.total),
        delivery_city=summary.delivery_city,
        delivery_tier=summary.delivery_tier.value,
    )


@payment_router.post("/process", response_model=PaymentResultResponse)
async def process_payment(body: ProcessPaymentRequest) -> PaymentResultResponse:
    """Checkout: price the cart, record the transaction and submit it to the gateway."""
    result = process_checkout(
        CheckoutRequest(
            items=[CartItem(product_id=i.product_id, quantity=i.quantity) for i in body.items],
            customer=CustomerDetails(
                email=body.customer.email,
                full_name=body.customer.full_name,
                phone=body.customer.phone,
            ),
            address=body.delivery_address,
            city=body.delivery_city,
            department=body.delivery_department,
            card_token=body.card_token,
        )
    )
    return _payment_response(result)


@payment_router.get("/transactions/{transaction_number}", response_model=TransactionStatusResponse)
async def transaction_status(transaction_number: str) -> TransactionStatusResponse:
    """Local transaction state plus the gateway's latest status."""
    view = get_transaction_status(transaction_number)
    return TransactionStatusResponse(**vars(view))


@payment_router.post("/gateway/configure", response_model=GatewayConfigResponse)
async def configure_gateway(body: ConfigureGatewayRequest) -> GatewayConfigResponse:
    """Configure the FakeGateway behavior (non-production only).

    It allows toggling the gateway's answers for manual API testing.
    """
    if get_settings().is_production:
        raise HTTPException(status_code=403, detail="Gateway configuration not available in production")

    gateway = get_gateway()
    if not isinstance(gateway, FakeGateway):
        raise HTTPException(status_code=400, detail="Gateway configuration only available for FakeGateway")

    gateway.configure(
        should_succeed=body.should_succeed,
        initial_status=body.initial_status,
        settle_to=body.settle_to,
        failure_reason=body.failure_reason,
        failure_retryable=body.failure_retryable,
    )
    return GatewayConfigResponse(
        gateway=type(gateway).__name__,
        should_succeed=gateway.should_succeed,
        initial_status=gateway.initial_status,
        settle_to=gateway.settle_to,
        failure_reason=gateway.failure_reason,
        failure_retryable=gateway.failure_retryable,
    )


# ---------------------------------------------------------------------------
# Webhook Router
# ---------------------------------------------------------------------------
webhook_router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@webhook_router.post("/gateway", response_model=WebhookResponse)
async def gateway_webhook(body: GatewayWebhookEvent) -> WebhookResponse:
    """Reconcile a gateway event.

    Any failure other than a bad signature, a bad payload or an unknown
    transaction answers 500 so the gateway retries delivery.
    """
    event = body.model_dump()
    if not get_gateway().verify_event_signature(event):
        raise HTTPException(status_code=401, detail="Invalid webhook signature")

    try:
        outcome = process_gateway_webhook(event)
    except ObjectNotFoundError as exc:
        logger.warning("webhook_transaction_not_found", error=str(exc))
        raise HTTPException(status_code=404, detail="Transaction not found") from exc
    except ValidationError:
        raise
    except Exception as exc:
        logger.error("webhook_processing_failed", event_type=body.event, error=str(exc), exc_info=True)
        raise HTTPException(status_code=500, detail="Error processing webhook") from exc

    return WebhookResponse(
        status="processed" if outcome.processed else "ignored",
        message=outcome.message,
        transaction_number=outcome.transaction_number,
        transaction_status=outcome.status,
    )


# ---------------------------------------------------------------------------
# Product Router
# ---------------------------------------------------------------------------
product_router = APIRouter(prefix="/products", tags=["products"])


@product_router.get("", response_model=list[ProductResponse])
async def get_products() -> list[ProductResponse]:
    return [_product_response(p) for p in list_products()]


@product_router.post("", status_code=201, response_model=ProductIdResponse)
async def add_product(body: AddProductRequest) -> ProductIdResponse:
    command = AddProduct(
        name=body.name,
        description=body.description,
        price=body.price,
        currency=body.currency,
        stock=body.stock,
        image_url=body.image_url,
    )
    result = current_domain.process(command, asynchronous=False)
    return ProductIdResponse(product_id=result)


@product_router.post("/{product_id}/restock", response_model=ProductResponse)
async def restock(product_id: str, body: RestockProductRequest) -> ProductResponse:
    product = restock_product(product_id, body.quantity)
    return _product_response(product)


@product_router.get("/{product_id}/stock", response_model=ProductStockLevelResponse)
async def stock_level(product_id: str) -> ProductStockLevelResponse:
    """Current stock with the units sold and restocked so far."""
    view = current_domain.repository_for(ProductStockView).get(product_id)
    return ProductStockLevelResponse(
        product_id=str(view.product_id),
        name=view.name,
        stock=view.stock,
        units_sold=view.units_sold or 0,
        units_restocked=view.units_restocked or 0,
        updated_at=view.updated_at,
    )
