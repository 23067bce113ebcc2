"""Payment gateway factory.

Provides get_gateway() / set_gateway() to swap implementations:
- FakeGateway for development and testing
- HttpGateway for the real card gateway (GATEWAY_PROVIDER=http)
"""

from payments.config import get_settings
from payments.gateway.fake_adapter import FakeGateway
from payments.gateway.http_adapter import HttpGateway
from payments.gateway.port import GatewayResult, PaymentGateway

__all__ = [
    "FakeGateway",
    "GatewayResult",
    "HttpGateway",
    "PaymentGateway",
    "get_gateway",
    "reset_gateway",
    "set_gateway",
]

_current_gateway: PaymentGateway | None = None


def _build_gateway() -> PaymentGateway:
    settings = get_settings()
    if settings.gateway_provider == "http":
        return HttpGateway(
            base_url=settings.gateway_base_url,
            public_key=settings.gateway_public_key,
            private_key=settings.gateway_private_key,
            integrity_secret=settings.gateway_integrity_secret,
            events_secret=settings.gateway_events_secret,
            timeout=settings.gateway_timeout_seconds,
        )
    return FakeGateway()


def get_gateway() -> PaymentGateway:
    """Return the current payment gateway, built from settings on first use."""
    global _current_gateway
    if _current_gateway is None:
        _current_gateway = _build_gateway()
    return _current_gateway


def set_gateway(gateway: PaymentGateway) -> None:
    """Override the active payment gateway (useful for tests)."""
    global _current_gateway
    _current_gateway = gateway


def reset_gateway() -> None:
    """Reset to default gateway."""
    global _current_gateway
    _current_gateway = None
