"""LeaseKeeper - FastAPI Application Entry Point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from leasekeeper.core.config import get_settings
from leasekeeper.core.database import AsyncSessionLocal
from leasekeeper.core.env_validation import validate_environment
from leasekeeper.core.errors import register_error_handlers
from leasekeeper.routers import (
    admin_router,
    auth_router,
    calendar_router,
    complaints_router,
    leases_router,
    maintenance_router,
    managers_router,
    notifications_router,
    notifications_ws_router,
    owners_router,
    payments_router,
    properties_router,
    reports_router,
    tenants_router,
    users_router,
)
from leasekeeper.services.channels import default_channels
from leasekeeper.services.dispatcher import OutboxDispatcher
from leasekeeper.services.feature_flags import FeatureFlagCache, FeatureFlagService
from leasekeeper.services.realtime import ConnectionManager
from leasekeeper.services.scheduler import SweepScheduler
from leasekeeper.services.storage import get_storage_service

# Hard-fails (exit 1) if required configuration is missing
validate_environment()

settings = get_settings()

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Wire process-wide services, start background work, and stop it on shutdown."""
    app.state.flag_cache = FeatureFlagCache(ttl_seconds=settings.feature_flag_ttl_seconds)
    app.state.connections = ConnectionManager()
    app.state.channels = default_channels(settings, app.state.connections)

    try:
        app.state.storage = get_storage_service()
    except ValueError as e:
        logger.warning(f"[RECEIPT] Storage not configured, receipts disabled: {e}")
        app.state.storage = None

    try:
        async with AsyncSessionLocal() as db:
            created = await FeatureFlagService(db, app.state.flag_cache).seed_defaults()
        if created:
            logger.info(f"[FLAGS] Seeded {created} default feature flags")
    except Exception:
        logger.exception("[FLAGS] Could not seed default feature flags")

    app.state.scheduler = SweepScheduler(AsyncSessionLocal)
    if settings.scheduler_enabled:
        try:
            app.state.scheduler.start()
        except Exception:
            logger.exception("[SWEEP] Scheduler failed to start")

    app.state.dispatcher = OutboxDispatcher(
        AsyncSessionLocal,
        channels=app.state.channels,
        storage=app.state.storage,
        flag_cache=app.state.flag_cache,
        poll_seconds=settings.outbox_poll_seconds,
        batch_size=settings.outbox_batch_size,
    )
    app.state.dispatcher.start()

    yield

    await app.state.dispatcher.stop()
    app.state.scheduler.shutdown()


app = FastAPI(
    title=settings.app_name,
    description="Multi-tenant property rental management: properties, leases, rent payments, complaints and maintenance.",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

# In production, wildcard (*) is blocked by env_validation.py
allowed_origins = [origin.strip() for origin in settings.allowed_origins.split(",")]
logger.info(f"CORS configured with origins: {allowed_origins}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

# API v1 routers
app.include_router(auth_router, prefix=settings.api_v1_prefix)
app.include_router(users_router, prefix=settings.api_v1_prefix)
app.include_router(owners_router, prefix=settings.api_v1_prefix)
app.include_router(managers_router, prefix=settings.api_v1_prefix)
app.include_router(tenants_router, prefix=settings.api_v1_prefix)
app.include_router(properties_router, prefix=settings.api_v1_prefix)
app.include_router(leases_router, prefix=settings.api_v1_prefix)
app.include_router(payments_router, prefix=settings.api_v1_prefix)
app.include_router(complaints_router, prefix=settings.api_v1_prefix)
app.include_router(maintenance_router, prefix=settings.api_v1_prefix)
app.include_router(calendar_router, prefix=settings.api_v1_prefix)  # Derived dated events
app.include_router(notifications_router, prefix=settings.api_v1_prefix)
app.include_router(notifications_ws_router, prefix=settings.api_v1_prefix)  # Socket push
app.include_router(reports_router, prefix=settings.api_v1_prefix)  # Analytics & exports
app.include_router(admin_router, prefix=settings.api_v1_prefix)  # Flags, audit, sweeps


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": settings.app_name}


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": settings.app_name,
        "version": "1.0.0",
        "docs": "/docs" if settings.debug else "Disabled in production",
    }
