"""
Async database access helpers (raw SQL) using asyncpg.

This module owns the connection pool. Each service initializes it on startup
and closes it on shutdown (see `api/main.py` and `api/customers_main.py`).

SQL parameter style:
- asyncpg uses positional placeholders: $1, $2, $3, ...
"""

from __future__ import annotations

import logging
import os
from typing import Any
from urllib.parse import parse_qsl, quote, urlencode, urlsplit, urlunsplit

import asyncpg

from . import config

logger = logging.getLogger(__name__)

_pool: asyncpg.Pool | None = None


def _sanitize_database_url(url: str) -> str:
    parts = urlsplit(url)
    if not parts.query:
        return url

    params = [(k, v) for (k, v) in parse_qsl(parts.query, keep_blank_values=True) if k != "sslmode"]
    query = urlencode(params)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment))


def database_url(default_db_name: str) -> str:
    """
    DATABASE_URL wins when set; otherwise the DSN is assembled from DB_* parts.
    """
    url = os.environ.get("DATABASE_URL", "").strip()
    if url:
        return _sanitize_database_url(url)

    user = quote(config.db_user(), safe="")
    password = quote(config.db_password(), safe="")
    return (
        f"postgresql://{user}:{password}@{config.db_host()}:{config.db_port()}"
        f"/{config.db_name(default_db_name)}"
    )


async def init_pool(default_db_name: str) -> None:
    global _pool
    if _pool is not None:
        return None
    _pool = await asyncpg.create_pool(
        dsn=database_url(default_db_name),
        min_size=1,
        max_size=5,
        command_timeout=30,
    )


async def close_pool() -> None:
    global _pool
    if _pool is None:
        return None
    await _pool.close()
    _pool = None


def pool() -> asyncpg.Pool:
    if _pool is None:
        raise RuntimeError("DB pool is not initialized. Call init_pool() on startup.")
    return _pool


def _record_to_dict(record: asyncpg.Record) -> dict[str, Any]:
    return dict(record)


async def fetch_one(sql: str, *args: Any) -> dict[str, Any] | None:
    """
    Run a query and return a single row as a dict (or None).
    """
    row = await pool().fetchrow(sql, *args)
    return _record_to_dict(row) if row is not None else None


async def fetch_all(sql: str, *args: Any) -> list[dict[str, Any]]:
    """
    Run a query and return all rows as a list of dicts.
    """
    rows = await pool().fetch(sql, *args)
    return [_record_to_dict(r) for r in rows]


async def execute(sql: str, *args: Any) -> str:
    """
    Run a statement (INSERT/UPDATE/DELETE/DDL). Returns the asyncpg status tag.
    """
    return await pool().execute(sql, *args)


def affected_rows(status_tag: str) -> int:
    """
    Parse the row count out of a status tag such as "DELETE 1".
    """
    try:
        return int(status_tag.rsplit(" ", 1)[-1])
    except (ValueError, AttributeError):
        return 0


async def connect(tracing, default_db_name: str) -> None:
    """
    Open the pool under a `database.connect` span; failures propagate.
    """
    name = config.db_name(default_db_name)
    with tracing.span(
        "database.connect",
        {
            "db.system": "postgresql",
            "db.name": name,
            "db.host": config.db_host(),
            "db.port": str(config.db_port()),
        },
    ) as span:
        try:
            await init_pool(default_db_name)
            await pool().execute("SELECT 1")
        except Exception as exc:
            span.error("Failed to connect to database", exc)
            logger.error("database_connect_failed host=%s port=%s", config.db_host(), config.db_port())
            raise
        span.ok()
        logger.info("database_connected host=%s port=%s db=%s", config.db_host(), config.db_port(), name)
