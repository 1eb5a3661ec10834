from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Callable

from fastapi import FastAPI
from prometheus_fastapi_instrumentator import Instrumentator

from fridgesnap.config import Settings
from fridgesnap.controllers import api
from fridgesnap.db import dispose_db, init_db
from fridgesnap.dependencies import Services
from fridgesnap.logger import setup_logging
from fridgesnap.services.quota import QuotaTracker, now_ms
from fridgesnap.services.scans import ScanRegistry
from fridgesnap.services.store import SqlStateBackend, StateStore, StorageError

logger = logging.getLogger(__name__)


def build_services(
    cfg: Settings, clock: Callable[[], int] = now_ms
) -> Services:
    """Connect the database and wire the trackers around the state store."""
    session_factory = init_db(cfg)
    store = StateStore(SqlStateBackend(session_factory))
    store.load()
    return Services(
        settings=cfg,
        store=store,
        quota=QuotaTracker(store.users, cfg, clock=clock),
        scans=ScanRegistry(store.scans, clock=clock),
        clock=clock,
    )


def create_app(
    cfg: Settings | None = None, clock: Callable[[], int] = now_ms
) -> FastAPI:
    cfg = cfg or Settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.services = await asyncio.to_thread(build_services, cfg, clock)
        yield
        services = app.state.services
        try:
            await asyncio.to_thread(services.store.flush)
        except StorageError:
            logger.exception("Failed to flush state on shutdown")
        finally:
            await asyncio.to_thread(dispose_db)

    app = FastAPI(
        title="FridgeSnap Recipe API",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.include_router(api.router)
    return app


settings = Settings()
setup_logging(settings.log_level)

app = create_app(settings)

# 👇 Prometheus metrics on the production app
Instrumentator().instrument(app).expose(app)
