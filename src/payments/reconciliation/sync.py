"""Polling reconciliation path: the transaction sync job.

Every tick the job asks the gateway for the current status of each PENDING
transaction that has a gateway id, and drives it through the same
conditional transition and approved-payment effects as the webhook. It then
sweeps APPROVED transactions whose effects never completed.

A tick is single-flight: a non-blocking try-lock makes an overlapping tick
skip rather than queue. The lock is per process.
"""

import asyncio
import threading
from dataclasses import dataclass, field

from protean.domain import Domain
from protean.utils.globals import current_domain

from payments.config import get_settings
from payments.gateway import get_gateway
from payments.gateway.port import PaymentGateway
from payments.reconciliation.effects import apply_approved_effects
from payments.transaction.transaction import Transaction, TransactionStatus
from payments.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class SyncReport:
    """What one sync tick did."""

    polled: int = 0
    updated: int = 0
    approved: list[str] = field(default_factory=list)
    fetch_failures: int = 0
    errors: int = 0
    settled: list[str] = field(default_factory=list)


class TransactionSyncJob:
    """Periodic, single-flight poller reconciling PENDING transactions with the gateway."""

    def __init__(
        self,
        domain: Domain,
        gateway: PaymentGateway | None = None,
        interval_seconds: float | None = None,
        batch_size: int | None = None,
    ) -> None:
        settings = get_settings()
        self.domain = domain
        self._gateway = gateway
        self.interval_seconds = interval_seconds or settings.transaction_sync_interval_seconds
        self.batch_size = batch_size or settings.transaction_sync_batch_size
        self._run_lock = threading.Lock()
        self._shutdown_event: asyncio.Event | None = None
        self._task: asyncio.Task | None = None

    @property
    def gateway(self) -> PaymentGateway:
        return self._gateway or get_gateway()

    @property
    def is_syncing(self) -> bool:
        return self._run_lock.locked()

    # -------------------------------------------------------------------
    # One tick
    # -------------------------------------------------------------------
    def run_once(self) -> SyncReport | None:
        """Run a single tick. Returns None when a tick is already in flight."""
        if not self._run_lock.acquire(blocking=False):
            logger.info("transaction_sync_skipped", reason="previous run still in flight")
            return None

        try:
            with self.domain.domain_context():
                return self._sync()
        finally:
            self._run_lock.release()

    def _sync(self) -> SyncReport:
        report = SyncReport()
        repo = current_domain.repository_for(Transaction)

        pending = repo.find_pollable(self.batch_size)
        logger.info("transaction_sync_started", pending=len(pending))

        for transaction in pending:
            report.polled += 1
            try:
                self._sync_transaction(transaction, report)
            except Exception as exc:
                report.errors += 1
                logger.error(
                    "transaction_sync_failed",
                    transaction_number=transaction.transaction_number,
                    error=str(exc),
                    exc_info=True,
                )

        self._settle_approved(report)

        logger.info(
            "transaction_sync_finished",
            polled=report.polled,
            updated=report.updated,
            approved=len(report.approved),
            fetch_failures=report.fetch_failures,
            errors=report.errors,
            settled=len(report.settled),
        )
        return report

    def _sync_transaction(self, transaction: Transaction, report: SyncReport) -> None:
        result = self.gateway.fetch_transaction(transaction.gateway_transaction_id)
        if not result.success:
            report.fetch_failures += 1
            logger.warning(
                "transaction_fetch_failed",
                transaction_number=transaction.transaction_number,
                gateway_transaction_id=transaction.gateway_transaction_id,
                error=result.error_message,
            )
            return

        repo = current_domain.repository_for(Transaction)
        outcome = repo.transition_from_pending(
            str(transaction.id),
            lambda t: t.update_from_service(
                result.gateway_transaction_id or t.gateway_transaction_id,
                result.status,
                result.status_message,
            ),
        )
        if outcome.applied and outcome.status != outcome.previous_status:
            report.updated += 1
            logger.info(
                "transaction_status_synced",
                transaction_number=transaction.transaction_number,
                previous_status=outcome.previous_status.value,
                status=outcome.status.value,
            )

        if outcome.entered(TransactionStatus.APPROVED):
            apply_approved_effects(str(transaction.id))
            report.approved.append(transaction.transaction_number)

    def _settle_approved(self, report: SyncReport) -> None:
        """Re-drive effects for APPROVED transactions that never settled."""
        repo = current_domain.repository_for(Transaction)
        for transaction in repo.find_unsettled_approved(self.batch_size):
            if transaction.transaction_number in report.approved:
                continue
            try:
                effects = apply_approved_effects(str(transaction.id))
            except Exception as exc:
                report.errors += 1
                logger.error(
                    "transaction_settlement_failed",
                    transaction_number=transaction.transaction_number,
                    error=str(exc),
                    exc_info=True,
                )
                continue
            if effects.settled:
                report.settled.append(transaction.transaction_number)

    # -------------------------------------------------------------------
    # Background loop
    # -------------------------------------------------------------------
    async def _loop(self) -> None:
        while not self._shutdown_event.is_set():
            try:
                await asyncio.to_thread(self.run_once)
            except Exception as exc:
                logger.error("transaction_sync_tick_crashed", error=str(exc), exc_info=True)

            try:
                await asyncio.wait_for(self._shutdown_event.wait(), timeout=self.interval_seconds)
            except TimeoutError:
                pass

    async def start(self) -> None:
        """Start ticking every ``interval_seconds`` on the running event loop."""
        if self._task is not None and not self._task.done():
            return
        self._shutdown_event = asyncio.Event()
        self._task = asyncio.create_task(self._loop())
        logger.info("transaction_sync_job_started", interval_seconds=self.interval_seconds)

    async def stop(self) -> None:
        """Stop the loop, letting an in-flight tick finish."""
        if self._task is None:
            return
        self._shutdown_event.set()
        await self._task
        self._task = None
        logger.info("transaction_sync_job_stopped")

    async def run_forever(self) -> None:
        await self.start()
        await self._task
