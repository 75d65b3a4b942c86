"""Database helpers for space-aware psycopg connections."""

from __future__ import annotations

import logging
import os

import psycopg
from pgvector.psycopg import register_vector

from .tenant_context import get_current_space_id

logger = logging.getLogger(__name__)


def resolve_space_id(space_id: str | None = None) -> str | None:
    """Return the explicit space id or the one stored in the request context.

    Blank strings collapse to ``None`` (legacy mode).
    """

    effective = space_id if space_id is not None else get_current_space_id()
    if effective is None:
        return None
    value = str(effective).strip()
    return value or None


def _dsn_from_env() -> str:
    url = os.getenv("DATABASE_URL")
    if url:
        # SQLAlchemy URLs carry the driver name; psycopg only understands libpq.
        return url.replace("postgresql+psycopg://", "postgresql://", 1)
    return (
        f"host={os.getenv('PGHOST', 'db')} "
        f"port={os.getenv('PGPORT', '5432')} "
        f"dbname={os.getenv('PGDATABASE', 'planner')} "
        f"user={os.getenv('PGUSER', 'planner')} "
        f"password={os.getenv('PGPASSWORD', 'planner')}"
    )


def get_conn(dsn: str | None = None) -> psycopg.Connection:
    """Open a PostgreSQL connection with pgvector adapters registered.

    The caller is responsible for closing the returned connection.
    """

    conn = psycopg.connect(dsn or _dsn_from_env())
    try:
        register_vector(conn)
    except Exception:  # pragma: no cover - extension missing
        logger.exception("Failed to register pgvector adapters")
        conn.close()
        raise
    return conn
