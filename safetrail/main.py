"""safetrail FastAPI application."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from safetrail.api import alerts, auth, devices, digital_id, health, tourists, ws
from safetrail.core.config import settings
from safetrail.core.errors import register_error_handlers
from safetrail.core.fanout import fanout
from safetrail.db.session import SessionLocal
from safetrail.services.auth_service import ensure_bootstrap_admin
from safetrail.services.escalation_service import EscalationPolicy, escalation_loop

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Seed the bootstrap admin, then serve with the fan-out loop bound and the sweep running."""
    if settings.bootstrap_admin_email:
        db = SessionLocal()
        try:
            ensure_bootstrap_admin(db)
        finally:
            db.close()
    fanout.bind_loop(asyncio.get_running_loop())
    sweep_task: asyncio.Task | None = None
    if settings.escalation_sweep_enabled:
        sweep_task = asyncio.create_task(
            escalation_loop(
                SessionLocal,
                EscalationPolicy.from_settings(),
                settings.escalation_sweep_interval_seconds,
            )
        )
    logger.info("Starting %s", settings.app_name)
    yield
    if sweep_task is not None:
        sweep_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweep_task
    fanout.bind_loop(None)
    logger.info("Shutting down %s", settings.app_name)


app = FastAPI(
    title=settings.app_name,
    debug=settings.debug,
    lifespan=lifespan,
)

register_error_handlers(app)

app.include_router(health.router)
app.include_router(auth.router)
app.include_router(tourists.router)
app.include_router(devices.router)
app.include_router(alerts.router)
app.include_router(digital_id.router)
app.include_router(ws.router)
