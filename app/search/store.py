"""Fact storage backends for the content search router.

Two implementations share the :class:`FactStore` protocol:

- :class:`PostgresFactStore` keeps facts in the ``facts`` table and ranks
  them with pgvector's cosine distance operator ``<=>``.
- :class:`InMemoryFactStore` keeps facts in a list. It backs the tests and
  small legacy deployments without PostgreSQL.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field, replace
from typing import Callable, Protocol, Sequence

import numpy as np
import psycopg
from psycopg.rows import dict_row
from psycopg.types.json import Json

from ..core.db import get_conn

logger = logging.getLogger(__name__)


@dataclass
class FactRecord:
    content: str
    category: str | None = None
    subcategory: str | None = None
    time_ref: str | None = None
    date_str: str | None = None
    entities: list[str] = field(default_factory=list)
    source_text: str | None = None
    embedding: list[float] | None = None
    upload_id: int | None = None
    space_id: str | None = None
    id: int | None = None


class FactStore(Protocol):
    def vector_search(
        self, embedding: Sequence[float], limit: int, space_id: str | None
    ) -> list[tuple[FactRecord, float]]: ...

    def keyword_candidates(
        self, keywords: Sequence[str], limit: int, space_id: str | None
    ) -> list[FactRecord]: ...

    def add_facts(self, facts: Sequence[FactRecord]) -> int: ...


_FACT_COLUMNS = (
    "id, content, category, subcategory, time_ref, date_str, entities, "
    "source_text, upload_id, space_id"
)


def _row_to_fact(row: dict) -> FactRecord:
    return FactRecord(
        id=row["id"],
        content=row["content"],
        category=row.get("category"),
        subcategory=row.get("subcategory"),
        time_ref=row.get("time_ref"),
        date_str=row.get("date_str"),
        entities=list(row.get("entities") or []),
        source_text=row.get("source_text"),
        upload_id=row.get("upload_id"),
        space_id=row.get("space_id"),
    )


class PostgresFactStore:
    """pgvector-backed fact store using short-lived psycopg connections."""

    def __init__(self, connect: Callable[[], psycopg.Connection] | None = None) -> None:
        self._connect = connect or get_conn

    def vector_search(
        self, embedding: Sequence[float], limit: int, space_id: str | None
    ) -> list[tuple[FactRecord, float]]:
        vector = np.asarray(embedding, dtype=np.float32)
        with self._connect() as conn, conn.cursor(row_factory=dict_row) as cur:
            cur.execute(
                f"""
                SELECT {_FACT_COLUMNS}, 1 - (embedding <=> %s) AS score
                FROM facts
                WHERE embedding IS NOT NULL AND space_id IS NOT DISTINCT FROM %s
                ORDER BY embedding <=> %s
                LIMIT %s
                """,
                (vector, space_id, vector, limit),
            )
            rows = cur.fetchall()
        return [(_row_to_fact(row), float(row["score"])) for row in rows]

    def keyword_candidates(
        self, keywords: Sequence[str], limit: int, space_id: str | None
    ) -> list[FactRecord]:
        if not keywords:
            return []
        patterns = [f"%{kw}%" for kw in keywords]
        with self._connect() as conn, conn.cursor(row_factory=dict_row) as cur:
            cur.execute(
                f"""
                SELECT {_FACT_COLUMNS}
                FROM facts
                WHERE space_id IS NOT DISTINCT FROM %s
                  AND (content ILIKE ANY(%s)
                       OR subcategory ILIKE ANY(%s)
                       OR time_ref ILIKE ANY(%s))
                ORDER BY created_at DESC
                LIMIT %s
                """,
                (space_id, patterns, patterns, patterns, limit),
            )
            rows = cur.fetchall()
        return [_row_to_fact(row) for row in rows]

    def add_facts(self, facts: Sequence[FactRecord]) -> int:
        if not facts:
            return 0
        with self._connect() as conn, conn.cursor() as cur:
            for fact in facts:
                cur.execute(
                    """
                    INSERT INTO facts (content, category, subcategory, time_ref, date_str,
                                       entities, source_text, embedding, upload_id, space_id,
                                       created_at)
                    VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, now())
                    """,
                    (
                        fact.content,
                        fact.category,
                        fact.subcategory,
                        fact.time_ref,
                        fact.date_str,
                        Json(list(fact.entities)),
                        fact.source_text,
                        np.asarray(fact.embedding, dtype=np.float32)
                        if fact.embedding is not None
                        else None,
                        fact.upload_id,
                        fact.space_id,
                    ),
                )
            conn.commit()
        logger.info("Stored %s facts", len(facts))
        return len(facts)


def _cosine(a: Sequence[float], b: Sequence[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    if norm == 0:
        return 0.0
    return dot / norm


class InMemoryFactStore:
    """List-backed fact store with the same ranking semantics."""

    def __init__(self, facts: Sequence[FactRecord] | None = None) -> None:
        self._facts: list[FactRecord] = []
        if facts:
            self.add_facts(facts)

    @property
    def facts(self) -> list[FactRecord]:
        return list(self._facts)

    def vector_search(
        self, embedding: Sequence[float], limit: int, space_id: str | None
    ) -> list[tuple[FactRecord, float]]:
        scored = [
            (fact, _cosine(embedding, fact.embedding))
            for fact in self._facts
            if fact.space_id == space_id and fact.embedding
        ]
        scored.sort(key=lambda item: item[1], reverse=True)
        return scored[:limit]

    def keyword_candidates(
        self, keywords: Sequence[str], limit: int, space_id: str | None
    ) -> list[FactRecord]:
        matches = []
        for fact in reversed(self._facts):
            if fact.space_id != space_id:
                continue
            haystacks = [
                (fact.content or "").lower(),
                (fact.subcategory or "").lower(),
                (fact.time_ref or "").lower(),
            ]
            if any(kw in hay for kw in keywords for hay in haystacks):
                matches.append(fact)
            if len(matches) >= limit:
                break
        return matches

    def add_facts(self, facts: Sequence[FactRecord]) -> int:
        for fact in facts:
            self._facts.append(replace(fact, id=fact.id or len(self._facts) + 1))
        return len(facts)
