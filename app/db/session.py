"""
Database session and connection pool setup
===========================================

Pool parameters:
- pool_size: persistent connections (default 10, fits a 4-worker uvicorn)
- max_overflow: burst connections on top of pool_size
- pool_timeout: max seconds to wait for a connection
- pool_recycle: recycle period (avoids PostgreSQL dropping idle connections)
- pool_pre_ping: liveness check before each checkout

SQLite URLs (local runs, tests) skip the pool tuning.
"""

import logging
import time
from sqlalchemy import create_engine, event, inspect
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from app.config import settings

logger = logging.getLogger("customdomains.db")

# ---------------------------------------------------------------------------
# Pool tuning
# ---------------------------------------------------------------------------
POOL_SIZE = settings.DB_POOL_SIZE
MAX_OVERFLOW = settings.DB_MAX_OVERFLOW
POOL_TIMEOUT = settings.DB_POOL_TIMEOUT
POOL_RECYCLE = settings.DB_POOL_RECYCLE  # 30 minutes

# Slow query threshold (ms)
SLOW_QUERY_THRESHOLD_MS = settings.SLOW_QUERY_THRESHOLD_MS

REQUIRED_TABLES = ("custom_domains", "links")


def build_engine(url: str) -> Engine:
    if url.startswith("sqlite"):
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            echo=settings.DB_ECHO,
        )
    return create_engine(
        url,
        pool_pre_ping=True,
        pool_size=POOL_SIZE,
        max_overflow=MAX_OVERFLOW,
        pool_timeout=POOL_TIMEOUT,
        pool_recycle=POOL_RECYCLE,
        echo=settings.DB_ECHO,
    )


engine = build_engine(settings.SQLALCHEMY_DATABASE_URI)


# ---------------------------------------------------------------------------
# Slow query monitoring
# ---------------------------------------------------------------------------
@event.listens_for(engine, "before_cursor_execute")
def _before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
    conn.info.setdefault("query_start_time", []).append(time.perf_counter())


@event.listens_for(engine, "after_cursor_execute")
def _after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
    total_ms = (time.perf_counter() - conn.info["query_start_time"].pop()) * 1000

    if total_ms >= SLOW_QUERY_THRESHOLD_MS:
        # Truncate long SQL to keep log volume sane
        stmt_preview = statement[:500] + "..." if len(statement) > 500 else statement
        logger.warning(
            "Slow query detected",
            extra={
                "duration_ms": round(total_ms, 2),
                "statement": stmt_preview,
                "threshold_ms": SLOW_QUERY_THRESHOLD_MS,
            },
        )


SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class SchemaNotReadyError(RuntimeError):
    """Raised at startup when migrations have not been applied."""


def verify_schema(bind: Engine = engine) -> None:
    """Fail fast if the tables this service needs do not exist.

    Tables are created by `alembic upgrade head` (or scripts/create_tables.py)
    at deploy time, never lazily from a request.
    """
    existing = set(inspect(bind).get_table_names())
    missing = [name for name in REQUIRED_TABLES if name not in existing]
    if missing:
        raise SchemaNotReadyError(
            f"Missing tables: {', '.join(missing)}. Run `alembic upgrade head` first."
        )
    logger.info("Database schema verified (%s)", ", ".join(REQUIRED_TABLES))
