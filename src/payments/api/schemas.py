"""Pydantic request/response schemas for the Payments API.

These are external contracts (anti-corruption layer), separate from
internal Protean commands and domain dataclasses.
"""

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class CartItemSchema(BaseModel):
    product_id: str
    quantity: int = Field(gt=0)


class CustomerSchema(BaseModel):
    email: str = Field(min_length=3, max_length=254)
    full_name: str = Field(min_length=3, max_length=255)
    phone: str = Field(min_length=7, max_length=20)


# ---------------------------------------------------------------------------
# Payment Request Schemas
# ---------------------------------------------------------------------------
class CalculateSummaryRequest(BaseModel):
    items: list[CartItemSchema] = Field(min_length=1)
    delivery_city: str


class ProcessPaymentRequest(BaseModel):
    items: list[CartItemSchema] = Field(min_length=1)
    customer: CustomerSchema
    delivery_address: str = Field(min_length=1, max_length=500)
    delivery_city: str = Field(min_length=1, max_length=100)
    delivery_department: str = Field(min_length=1, max_length=100)
    card_token: str = Field(min_length=1)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "items": [{"product_id": "prod-001", "quantity": 2}],
                    "customer": {
                        "email": "ana@example.com",
                        "full_name": "Ana Gómez",
                        "phone": "3001234567",
                    },
                    "delivery_address": "Calle 123 #45-67",
                    "delivery_city": "Bogotá",
                    "delivery_department": "Cundinamarca",
                    "card_token": "tok_test_12345",
                }
            ]
        }
    }


class ConfigureGatewayRequest(BaseModel):
    should_succeed: bool = True
    initial_status: str = "PENDING"
    settle_to: str | None = "APPROVED"
    failure_reason: str = "Gateway unavailable"
    failure_retryable: bool = True


# ---------------------------------------------------------------------------
# Webhook Schemas
# ---------------------------------------------------------------------------
class WebhookSignature(BaseModel):
    checksum: str = ""
    properties: list[str] = []


class GatewayWebhookEvent(BaseModel):
    event: str
    data: dict[str, Any]
    sent_at: str | None = None
    timestamp: int | str | None = None
    signature: WebhookSignature = WebhookSignature()
    environment: str | None = None


# ---------------------------------------------------------------------------
# Product Schemas
# ---------------------------------------------------------------------------
class AddProductRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str | None = None
    price: float = Field(ge=0)
    currency: str = "COP"
    stock: int = Field(default=0, ge=0)
    image_url: str | None = None


class RestockProductRequest(BaseModel):
    quantity: int = Field(gt=0)


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------
class MoneyResponse(BaseModel):
    amount: float
    currency: str


class OrderLineResponse(BaseModel):
    product_id: str
    product_name: str
    quantity: int
    unit_price: MoneyResponse
    line_subtotal: MoneyResponse


class OrderSummaryResponse(BaseModel):
    lines: list[OrderLineResponse]
    subtotal: MoneyResponse
    base_fee: MoneyResponse
    delivery_fee: MoneyResponse
    total: MoneyResponse
    delivery_city: str
    delivery_tier: str


class PaymentErrorResponse(BaseModel):
    code: str
    message: str


class DeliveryResponse(BaseModel):
    tracking_number: str
    estimated_delivery_date: date
    address: str
    city: str


class ProductStockResponse(BaseModel):
    product_id: str
    name: str
    updated_stock: int | None = None


class PaymentResultResponse(BaseModel):
    success: bool
    transaction_number: str
    status: str
    message: str
    total: float
    currency: str
    delivery: DeliveryResponse | None = None
    products: list[ProductStockResponse] = []
    error: PaymentErrorResponse | None = None
    created_at: datetime | None = None
    processed_at: datetime | None = None


class TransactionStatusResponse(BaseModel):
    transaction_number: str
    status: str
    gateway_transaction_id: str | None = None
    gateway_status: str | None = None
    gateway_reported_status: str | None = None
    status_message: str | None = None
    total: float
    currency: str
    created_at: datetime | None = None
    updated_at: datetime | None = None
    processed_at: datetime | None = None
    tracking_number: str | None = None
    estimated_delivery_date: date | None = None


class WebhookResponse(BaseModel):
    status: str
    message: str
    transaction_number: str | None = None
    transaction_status: str | None = None


class ProductResponse(BaseModel):
    id: str
    name: str
    description: str | None = None
    price: float
    currency: str
    stock: int
    image_url: str | None = None


class ProductStockLevelResponse(BaseModel):
    product_id: str
    name: str
    stock: int
    units_sold: int
    units_restocked: int
    updated_at: datetime | None = None


class ProductIdResponse(BaseModel):
    product_id: str


class GatewayConfigResponse(BaseModel):
    gateway: str
    should_succeed: bool
    initial_status: str
    settle_to: str | None
    failure_reason: str
    failure_retryable: bool
