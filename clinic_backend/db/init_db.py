"""
Database initialization

SQLite databases (local development) are created straight from the models.
Every other backend is managed by Alembic (`alembic upgrade head`).
"""
import logging

from sqlalchemy.engine import Engine

from clinic_backend.db.base import Base
import clinic_backend.models  # noqa: F401  registers all tables on Base.metadata

logger = logging.getLogger(__name__)


def init_db(engine: Engine) -> None:
    """Create missing tables for SQLite; no-op for migrated databases"""
    if engine.dialect.name != "sqlite":
        return
    Base.metadata.create_all(bind=engine)
    logger.info("SQLite schema ensured (%d tables)", len(Base.metadata.tables))
