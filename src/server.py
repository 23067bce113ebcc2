"""Transaction sync runner for the payments domain.

Runs the polling reconciliation job without the HTTP app, for deployments
that serve webhooks and poll from separate processes. Run a single instance:
the job's single-flight guard is per process.

Usage:
    python src/server.py                 # Poll every TRANSACTION_SYNC_INTERVAL_SECONDS
    python src/server.py --interval 60   # Poll every minute
    python src/server.py --once          # Run one tick and exit
"""

import argparse
import asyncio

from payments.reconciliation.sync import TransactionSyncJob


def _get_domain():
    """Import and initialize the payments domain."""
    from payments.domain import payments

    payments.init()
    return payments


async def run(interval=None):
    job = TransactionSyncJob(_get_domain(), interval_seconds=interval)
    try:
        await job.run_forever()
    finally:
        await job.stop()


def main():
    parser = argparse.ArgumentParser(description="Payments transaction sync runner")
    parser.add_argument("--interval", type=float, help="Seconds between ticks (default: from settings)")
    parser.add_argument("--once", action="store_true", help="Run a single sync tick and exit")
    args = parser.parse_args()

    if args.once:
        report = TransactionSyncJob(_get_domain()).run_once()
        if report is not None:
            print(
                f"Polled {report.polled}, updated {report.updated}, approved {len(report.approved)}, "
                f"settled {len(report.settled)}, fetch failures {report.fetch_failures}, errors {report.errors}."
            )
        return

    asyncio.run(run(args.interval))


if __name__ == "__main__":
    main()
