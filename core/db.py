"""
core/db.py -- Engine construction and store error translation.

Shared by auth/store.py and banners/store.py so every repository opens its
engine the same way and reports an unreachable database the same way.

Layer rule: core/ is the kernel. No imports from api/, auth/, or banners/.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from core.errors import StoreUnavailable

logger = logging.getLogger("bannerboard.db")


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def make_engine(db_url: str, timeout: float = 5.0) -> Engine:
    """Create an engine that fails fast when the database is busy or gone.

    SQLite gets a busy timeout and check_same_thread=False (TestClient and
    uvicorn run sync handlers in a thread pool). Other backends get a bounded
    pool checkout wait.
    """
    if db_url.startswith("sqlite"):
        engine = create_engine(
            db_url,
            connect_args={"check_same_thread": False, "timeout": timeout},
        )
        event.listen(engine, "connect", _set_wal_mode)
        return engine
    return create_engine(db_url, pool_timeout=timeout, pool_pre_ping=True)


@contextmanager
def store_errors(operation: str) -> Iterator[None]:
    """Translate driver failures into StoreUnavailable.

    IntegrityError passes through untouched: it is a business signal
    (duplicate key) that the calling store turns into its own error.
    """
    try:
        yield
    except IntegrityError:
        raise
    except (DBAPIError, PoolTimeoutError) as exc:
        logger.error("Store operation %s failed: %s", operation, exc.__class__.__name__)
        raise StoreUnavailable(detail=operation) from exc
