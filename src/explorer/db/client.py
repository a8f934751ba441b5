"""Database connection helpers."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

import psycopg
from psycopg.rows import dict_row

from explorer.config import Settings
from explorer.errors import PersistenceError


async def get_connection(settings: Optional[Settings] = None) -> psycopg.AsyncConnection[Any]:
    """Create a new async database connection returning dict rows."""
    settings = settings or Settings()
    if not settings.has_database():
        raise PersistenceError("Database is not configured (set DATABASE_URL or PG* variables)")
    try:
        url = settings.get_database_url()
    except ValueError as exc:
        raise PersistenceError(str(exc)) from exc
    return await psycopg.AsyncConnection.connect(
        url,
        connect_timeout=settings.db_connect_timeout_seconds,
        row_factory=dict_row,
    )


@asynccontextmanager
async def db_cursor(settings: Optional[Settings] = None) -> AsyncIterator[psycopg.AsyncCursor[Any]]:
    """Yield a dict-row cursor with automatic commit/rollback."""
    conn = await get_connection(settings)
    try:
        async with conn.cursor() as cursor:
            yield cursor
        await conn.commit()
    except Exception:
        await conn.rollback()
        raise
    finally:
        await conn.close()
