"""Payments FastAPI application.

Serves checkout, gateway webhooks and the product catalogue. Every request
runs inside the payments domain context. The transaction sync job runs in the
same process, started and stopped with the application.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers

from payments.config import get_settings
from payments.domain import payments
from payments.reconciliation.sync import TransactionSyncJob
from payments.utils.logging import clear_context, get_logger

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
# PROTEAN_ENV controls which config overlay from domain.toml is applied.
payments.init()

logger = get_logger(__name__)
settings = get_settings()
sync_job = TransactionSyncJob(payments)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the transaction sync job with the app and stop it on shutdown."""
    if settings.transaction_sync_enabled:
        await sync_job.start()
    else:
        logger.info("transaction_sync_disabled")

    yield

    await sync_job.stop()


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Storefront Payments API",
    description="Checkout, payment gateway reconciliation and deliveries",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_allowed_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def domain_context_middleware(request: Request, call_next):
    """Push the payments domain context for each request."""
    clear_context()
    with payments.domain_context():
        response = await call_next(request)
    return response


register_exception_handlers(app)

# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
from payments.api import payment_router, product_router, webhook_router  # noqa: E402

app.include_router(payment_router)
app.include_router(webhook_router)
app.include_router(product_router)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(
        content={
            "status": "ok",
            "domain": payments.name,
            "sync_job": {
                "enabled": settings.transaction_sync_enabled,
                "interval_seconds": sync_job.interval_seconds,
                "syncing": sync_job.is_syncing,
            },
        }
    )
