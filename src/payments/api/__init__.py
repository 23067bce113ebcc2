"""Payments domain API package."""

from payments.api.routes import payment_router, product_router, webhook_router

__all__ = ["payment_router", "product_router", "webhook_router"]
