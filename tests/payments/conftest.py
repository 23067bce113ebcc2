import pytest
from protean.integrations.pytest import DomainFixture


@pytest.fixture(scope="session")
def payments_bed():
    from payments.domain import payments

    bed = DomainFixture(payments)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(payments_bed):
    with payments_bed.domain_context():
        yield


@pytest.fixture(autouse=True)
def run_around_tests(_ctx):
    """Reset settings and the gateway before, and storage after, every test"""
    from payments.config import get_settings
    from payments.gateway import reset_gateway

    get_settings.cache_clear()
    reset_gateway()

    yield

    from protean import current_domain

    # Clear all databases
    for _, provider in current_domain.providers.items():
        provider._data_reset()

    reset_gateway()
    get_settings.cache_clear()


@pytest.fixture()
def gateway():
    """A fresh FakeGateway installed as the active gateway."""
    from payments.gateway import set_gateway
    from payments.gateway.fake_adapter import FakeGateway

    fake = FakeGateway()
    set_gateway(fake)
    return fake


@pytest.fixture()
def make_product():
    """Persist a product and return it."""
    from protean import current_domain

    from payments.product.product import Product

    def _make(name="Teclado Mecánico", price=50000.0, stock=10):
        product = Product.add(name=name, price=price, stock=stock)
        current_domain.repository_for(Product).add(product)
        return product

    return _make


@pytest.fixture()
def make_transaction():
    """Persist a PENDING transaction for ``[(product, quantity), ...]``.

    With ``gateway_transaction_id`` the transaction is recorded as
    acknowledged by the gateway (still PENDING), which makes it pollable.
    """
    from protean import current_domain

    from payments.customer.customer import get_or_create_customer
    from payments.transaction.summary import CartItem, calculate_summary
    from payments.transaction.transaction import ShippingDetails, Transaction

    def _make(
        lines,
        city="Bogotá",
        gateway_transaction_id=None,
        address="Calle 123 #45-67",
        department="Cundinamarca",
    ):
        summary = calculate_summary([CartItem(product_id=str(p.id), quantity=q) for p, q in lines], city)
        customer = get_or_create_customer(email="ana@example.com", full_name="Ana Gómez", phone="3001234567")
        transaction = Transaction.create(
            customer_id=str(customer.id),
            summary=summary,
            shipping=ShippingDetails(address=address, city=city, department=department),
        )
        if gateway_transaction_id:
            transaction.update_from_service(gateway_transaction_id, "PENDING")
        current_domain.repository_for(Transaction).add(transaction)
        return transaction

    return _make


@pytest.fixture()
def webhook_event():
    """Build a gateway webhook event for a transaction number."""

    def _make(reference, status="APPROVED", gateway_transaction_id="gw-txn-001", status_message=None, **extra):
        transaction = {
            "id": gateway_transaction_id,
            "amount_in_cents": 10700000,
            "reference": reference,
            "customer_email": "ana@example.com",
            "currency": "COP",
            "payment_method_type": "CARD",
            "status": status,
            "status_message": status_message,
            "created_at": "2026-01-15T10:00:00.000Z",
            **extra,
        }
        return {
            "event": "transaction.updated",
            "data": {"transaction": transaction},
            "sent_at": "2026-01-15T10:00:05.000Z",
            "timestamp": 1768471205,
            "signature": {
                "checksum": "test-signature",
                "properties": ["transaction.id", "transaction.status", "transaction.amount_in_cents"],
            },
            "environment": "test",
        }

    return _make
