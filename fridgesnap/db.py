from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from fridgesnap.config import Settings
from fridgesnap.models import Base

logger = logging.getLogger(__name__)


engine: Engine | None = None
_session_factory: sessionmaker | None = None


def init_db(cfg: Settings) -> sessionmaker:
    """Create engine and session factory, then make sure the tables exist."""
    global engine, _session_factory

    options: dict[str, Any] = {"future": True, "pool_pre_ping": True}
    if cfg.database_url.startswith("sqlite"):
        options["connect_args"] = {"check_same_thread": False}
    else:
        options.update(pool_size=10, max_overflow=0, pool_recycle=30)

    engine = create_engine(cfg.database_url, **options)
    _session_factory = sessionmaker(
        bind=engine,
        autoflush=False,
        autocommit=False,
        future=True,
    )
    Base.metadata.create_all(engine)
    logger.info("Database initialized (%s)", engine.dialect.name)
    return _session_factory


def dispose_db() -> None:
    global engine, _session_factory
    if engine is not None:
        engine.dispose()
    engine = None
    _session_factory = None
