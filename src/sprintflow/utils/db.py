from contextlib import contextmanager
from typing import Iterator, Optional
from sqlalchemy.pool import StaticPool
from sqlmodel import create_engine, SQLModel, Session, text
from sqlalchemy.engine import Engine
from dotenv import load_dotenv
import time
import os

from sprintflow.config import settings
from sprintflow.core.logging import get_logger

# Load environment variables from .env file
load_dotenv()

logger = get_logger(__name__)

# Connection Pool Configuration (PostgreSQL only)
POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "20"))
MAX_OVERFLOW = int(os.getenv("DB_MAX_OVERFLOW", "40"))
POOL_RECYCLE = int(os.getenv("DB_POOL_RECYCLE", "3600"))
POOL_PRE_PING = os.getenv("DB_POOL_PRE_PING", "true").lower() == "true"


def is_postgres(engine: Engine) -> bool:
    return engine.dialect.name == "postgresql"


def build_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Creates an engine for the given URL.

    PostgreSQL gets a pooled engine whose transactions run at SERIALIZABLE,
    so two concurrent start/reopen calls cannot both pass the active-sprint
    check. SQLite serializes writers on its own; in-memory SQLite shares a
    single connection so every session sees the same database.
    """
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, echo=echo, **kwargs)

    engine = create_engine(
        database_url,
        echo=echo,
        pool_size=POOL_SIZE,
        max_overflow=MAX_OVERFLOW,
        pool_pre_ping=POOL_PRE_PING,
        pool_recycle=POOL_RECYCLE,
        isolation_level="SERIALIZABLE",
    )
    logger.info(
        "database_engine_configured",
        pool_size=POOL_SIZE,
        max_overflow=MAX_OVERFLOW,
        pool_recycle=POOL_RECYCLE,
        pool_pre_ping=POOL_PRE_PING,
        total_connections=POOL_SIZE + MAX_OVERFLOW,
    )
    return engine


engine = build_engine(settings.database_url)


def init_db(target: Optional[Engine] = None):
    """
    Creates all tables and storage-level guards.

    The partial unique index on active sprints and the unique (ticket, sprint)
    ledger constraint are declared on the models, so create_all emits them
    for both PostgreSQL and SQLite.
    """
    target = target or engine
    max_retries = 5
    for i in range(max_retries):
        try:
            logger.info("connecting_to_database", attempt=i + 1)

            # Register Tables
            from sprintflow import schema  # noqa: F401

            SQLModel.metadata.create_all(target)
            logger.info("database_initialized", status="success", dialect=target.dialect.name)
            return
        except Exception as e:
            logger.error("database_connection_failed", error=str(e), attempt=i + 1)
            if i < max_retries - 1:
                logger.info("retrying_connection", delay=2)
                time.sleep(2)
            else:
                logger.critical("initialization_failed")
                raise


@contextmanager
def transaction(target: Optional[Engine] = None, timeout_seconds: Optional[int] = None) -> Iterator[Session]:
    """
    Runs the body as one atomic unit.

    Commits when the block exits normally and rolls back every write made in
    the block when it raises. Objects stay readable after commit.
    """
    target = target or engine
    with Session(target, expire_on_commit=False) as session:
        with session.begin():
            if timeout_seconds and is_postgres(target):
                session.exec(text(f"SET LOCAL statement_timeout = {int(timeout_seconds * 1000)}"))
            yield session


if __name__ == "__main__":
    init_db()
