"""Tests for the polling reconciliation job."""

import asyncio
import threading

from payments.delivery.delivery import Delivery
from payments.domain import payments
from payments.gateway.fake_adapter import FakeGateway
from payments.product.product import Product
from payments.reconciliation.effects import apply_approved_effects
from payments.reconciliation.sync import TransactionSyncJob
from payments.reconciliation.webhook import process_gateway_webhook
from payments.transaction.transaction import Transaction, TransactionStatus
from protean.utils.globals import current_domain


def _reload(transaction):
    return current_domain.repository_for(Transaction).get(transaction.id)


def _stock(product):
    return current_domain.repository_for(Product).get(product.id).stock


def _deliveries():
    return current_domain.repository_for(Delivery)._dao.query.all().items


def _approve(transaction):
    current_domain.repository_for(Transaction).transition_from_pending(
        str(transaction.id), lambda t: t.approve("gw-001")
    )


def _acknowledged(gateway, make_transaction, lines):
    """A PENDING transaction that the gateway knows about."""
    submitted = gateway.submit_payment(
        amount=1.0,
        currency="COP",
        reference="TRX-PENDING",
        customer_email="ana@example.com",
        card_token="tok_test_12345",
    )
    return make_transaction(lines, gateway_transaction_id=submitted.gateway_transaction_id)


class BlockingGateway(FakeGateway):
    """Holds every fetch until released."""

    def __init__(self):
        super().__init__()
        self.entered = threading.Event()
        self.release = threading.Event()

    def _fetch_transaction(self, gateway_transaction_id):
        self.entered.set()
        self.release.wait(timeout=5)
        return super()._fetch_transaction(gateway_transaction_id)


class TestSyncTick:
    def test_pending_transaction_settles_to_approved(self, gateway, make_product, make_transaction):
        product = make_product(stock=10)
        transaction = _acknowledged(gateway, make_transaction, [(product, 2)])

        report = TransactionSyncJob(payments, gateway=gateway).run_once()

        assert report.polled == 1
        assert report.updated == 1
        assert report.approved == [transaction.transaction_number]
        assert _reload(transaction).is_approved
        assert _stock(product) == 8
        assert len(_deliveries()) == 1

    def test_declined_at_gateway(self, gateway, make_product, make_transaction):
        gateway.configure(settle_to="DECLINED")
        product = make_product(stock=10)
        transaction = _acknowledged(gateway, make_transaction, [(product, 2)])

        report = TransactionSyncJob(payments, gateway=gateway).run_once()

        assert report.updated == 1
        assert report.approved == []
        assert _reload(transaction).status == TransactionStatus.DECLINED.value
        assert _stock(product) == 10

    def test_still_pending_at_gateway(self, gateway, make_product, make_transaction):
        gateway.configure(settle_to=None)
        product = make_product()
        transaction = _acknowledged(gateway, make_transaction, [(product, 1)])

        report = TransactionSyncJob(payments, gateway=gateway).run_once()

        assert report.polled == 1
        assert report.updated == 0
        assert _reload(transaction).is_pending

    def test_transaction_without_gateway_id_is_not_polled(self, gateway, make_product, make_transaction):
        product = make_product()
        transaction = make_transaction([(product, 1)])

        report = TransactionSyncJob(payments, gateway=gateway).run_once()

        assert report.polled == 0
        assert gateway.calls == []
        assert _reload(transaction).is_pending

    def test_fetch_failure_leaves_transaction_pending(self, gateway, make_product, make_transaction):
        product = make_product()
        transaction = _acknowledged(gateway, make_transaction, [(product, 1)])
        gateway.configure(fail_fetch=True)

        report = TransactionSyncJob(payments, gateway=gateway).run_once()

        assert report.fetch_failures == 1
        assert report.errors == 0
        assert _reload(transaction).is_pending

    def test_unknown_gateway_id_does_not_stop_the_batch(self, gateway, make_product, make_transaction):
        product = make_product(stock=10)
        lost = make_transaction([(product, 1)], gateway_transaction_id="fake_txn_unknown")
        known = _acknowledged(gateway, make_transaction, [(product, 1)])

        report = TransactionSyncJob(payments, gateway=gateway).run_once()

        assert report.polled == 2
        assert report.fetch_failures == 1
        assert _reload(lost).is_pending
        assert _reload(known).is_approved

    def test_batch_size_limits_polling(self, gateway, make_product, make_transaction):
        product = make_product(stock=10)
        for _ in range(3):
            _acknowledged(gateway, make_transaction, [(product, 1)])

        report = TransactionSyncJob(payments, gateway=gateway, batch_size=2).run_once()
        assert report.polled == 2

    def test_unacknowledged_backlog_does_not_crowd_out_pollable(self, gateway, make_product, make_transaction):
        product = make_product(stock=10)
        for _ in range(3):
            make_transaction([(product, 1)])
        transaction = _acknowledged(gateway, make_transaction, [(product, 1)])

        report = TransactionSyncJob(payments, gateway=gateway, batch_size=2).run_once()

        assert report.polled == 1
        assert _reload(transaction).is_approved

    def test_second_tick_does_nothing_new(self, gateway, make_product, make_transaction):
        product = make_product(stock=10)
        _acknowledged(gateway, make_transaction, [(product, 2)])
        job = TransactionSyncJob(payments, gateway=gateway)

        job.run_once()
        report = job.run_once()

        assert report.polled == 0
        assert report.settled == []
        assert _stock(product) == 8
        assert len(_deliveries()) == 1


class TestSettlementSweep:
    def test_approved_but_unsettled_is_completed(self, gateway, make_product, make_transaction):
        product = make_product(stock=10)
        transaction = make_transaction([(product, 2)])
        _approve(transaction)

        report = TransactionSyncJob(payments, gateway=gateway).run_once()

        assert report.settled == [transaction.transaction_number]
        assert _reload(transaction).settled_at is not None
        assert _stock(product) == 8
        assert len(_deliveries()) == 1

    def test_settled_backlog_does_not_crowd_out_unsettled(self, gateway, make_product, make_transaction):
        product = make_product(stock=10)
        for _ in range(3):
            settled = make_transaction([(product, 1)])
            _approve(settled)
            apply_approved_effects(str(settled.id))
        unsettled = make_transaction([(product, 1)])
        _approve(unsettled)

        report = TransactionSyncJob(payments, gateway=gateway, batch_size=2).run_once()

        assert report.settled == [unsettled.transaction_number]
        assert _stock(product) == 6
        assert len(_deliveries()) == 4


class TestRepositoryQueries:
    def test_pollable_excludes_transactions_without_gateway_id(self, make_product, make_transaction):
        product = make_product(stock=10)
        make_transaction([(product, 1)])
        make_transaction([(product, 1)])
        acknowledged = make_transaction([(product, 1)], gateway_transaction_id="gw-ack-001")

        found = current_domain.repository_for(Transaction).find_pollable(batch_size=1)

        assert [t.id for t in found] == [acknowledged.id]

    def test_unsettled_approved_excludes_settled(self, make_product, make_transaction):
        product = make_product(stock=10)
        settled = make_transaction([(product, 1)])
        _approve(settled)
        apply_approved_effects(str(settled.id))
        unsettled = make_transaction([(product, 1)])
        _approve(unsettled)

        found = current_domain.repository_for(Transaction).find_unsettled_approved(batch_size=1)

        assert [t.id for t in found] == [unsettled.id]


class TestConvergence:
    def test_webhook_and_poll_race_applies_effects_once(self, make_product, make_transaction, webhook_event):
        product = make_product(stock=10)

        class WebhookFirstGateway(FakeGateway):
            """Delivers the webhook while the poll is waiting on the gateway."""

            def _fetch_transaction(self, gateway_transaction_id):
                result = super()._fetch_transaction(gateway_transaction_id)
                process_gateway_webhook(
                    webhook_event(transaction.transaction_number, gateway_transaction_id=result.gateway_transaction_id)
                )
                return result

        racing = WebhookFirstGateway()
        transaction = _acknowledged(racing, make_transaction, [(product, 2)])

        report = TransactionSyncJob(payments, gateway=racing).run_once()

        assert report.approved == []
        assert report.errors == 0
        assert _reload(transaction).is_approved
        assert _stock(product) == 8
        assert len(_deliveries()) == 1


class TestSingleFlight:
    def test_overlapping_tick_is_skipped(self, make_product, make_transaction):
        blocking = BlockingGateway()
        product = make_product()
        _acknowledged(blocking, make_transaction, [(product, 1)])
        job = TransactionSyncJob(payments, gateway=blocking)

        results = []
        first = threading.Thread(target=lambda: results.append(job.run_once()))
        first.start()
        assert blocking.entered.wait(timeout=5)

        assert job.is_syncing
        assert job.run_once() is None

        blocking.release.set()
        first.join(timeout=5)
        assert results[0].polled == 1
        assert not job.is_syncing


class TestBackgroundLoop:
    def test_start_ticks_and_stop_returns(self, gateway, make_product, make_transaction):
        product = make_product(stock=10)
        transaction = _acknowledged(gateway, make_transaction, [(product, 1)])
        job = TransactionSyncJob(payments, gateway=gateway, interval_seconds=60)

        async def scenario():
            await job.start()
            for _ in range(100):
                if gateway.calls[-1]["method"] == "fetch_transaction" and not job.is_syncing:
                    break
                await asyncio.sleep(0.01)
            await job.stop()

        asyncio.run(scenario())

        assert _reload(transaction).is_approved
