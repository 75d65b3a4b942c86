"""Hybrid vector and keyword search over the fact store.

Both legs fetch up to ``2 * limit`` candidates and run in parallel. Results
are merged on ``(title, date_str)``: the vector entry wins when both legs
found the same fact, keyword-only hits are kept because weekly or terse facts
often embed poorly. An embedding failure just removes the semantic signal.
"""

from __future__ import annotations

import logging
import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Sequence

from .embedder import Embedder
from .store import FactRecord, FactStore

logger = logging.getLogger(__name__)

FALLBACK_KEYWORDS = frozenset(
    {
        "the", "and", "for", "are", "what", "when", "where", "how",
        "who", "why", "can", "does", "will", "about", "with",
    }
)

_PUNCTUATION = re.compile(r"[?!.,]")


@dataclass
class ContentResult:
    title: str
    body: str
    score: float
    date_str: str | None = None
    time_ref: str | None = None
    source: str = "fact"


def extract_keywords(query: str) -> list[str]:
    """Lowercased words longer than two characters, stop words removed."""

    words = _PUNCTUATION.sub("", query.lower()).split()
    keywords: list[str] = []
    for word in words:
        if len(word) > 2 and word not in FALLBACK_KEYWORDS and word not in keywords:
            keywords.append(word)
    return keywords


def keyword_score(fact: FactRecord, keywords: Sequence[str]) -> int:
    subcategory = (fact.subcategory or "").lower()
    content = (fact.content or "").lower()
    time_ref = (fact.time_ref or "").lower()
    score = 0
    for kw in keywords:
        if subcategory == kw:
            score += 10
        elif kw in subcategory:
            score += 5
        if kw in content:
            score += 3
        if kw in time_ref:
            score += 2
    return score


def fact_title(fact: FactRecord) -> str:
    return fact.subcategory or fact.category or "info"


def build_body(fact: FactRecord) -> str:
    lines = [f"📋 {fact.content}"]
    if fact.time_ref:
        lines.append(f"⏰ {fact.time_ref}")
    if fact.subcategory:
        lines.append(f"📁 {fact.subcategory}")
    return "\n".join(lines)


def _to_result(fact: FactRecord, score: float, source: str) -> ContentResult:
    return ContentResult(
        title=fact_title(fact),
        body=build_body(fact),
        score=score,
        date_str=fact.date_str,
        time_ref=fact.time_ref,
        source=source,
    )


class ContentSearchRouter:
    """Run vector and keyword search and merge their rankings."""

    def __init__(self, store: FactStore, embedder: Embedder | None = None, *, limit: int = 5) -> None:
        self._store = store
        self._embedder = embedder
        self.limit = limit

    # Legs --------------------------------------------------------------------
    def _vector_leg(self, query: str, fetch: int, space_id: str | None) -> list[ContentResult]:
        if self._embedder is None:
            return []
        try:
            vectors = self._embedder.embed([query])
        except Exception:
            logger.exception("Embedding failed; continuing with keyword search only")
            return []
        if not vectors or not vectors[0]:
            return []
        try:
            hits = self._store.vector_search(vectors[0], fetch, space_id)
        except Exception:
            logger.exception("Vector search failed")
            return []
        return [_to_result(fact, score, "vector") for fact, score in hits]

    def _keyword_leg(self, query: str, fetch: int, space_id: str | None) -> list[ContentResult]:
        keywords = extract_keywords(query)
        if not keywords:
            return []
        try:
            candidates = self._store.keyword_candidates(keywords, fetch * 4, space_id)
        except Exception:
            logger.exception("Keyword search failed")
            return []
        scored = [(fact, keyword_score(fact, keywords)) for fact in candidates]
        scored = [(fact, score) for fact, score in scored if score > 0]
        scored.sort(key=lambda item: item[1], reverse=True)
        return [_to_result(fact, float(score), "keyword") for fact, score in scored[:fetch]]

    # Public API --------------------------------------------------------------
    def search(
        self, query: str, limit: int | None = None, space_id: str | None = None
    ) -> list[ContentResult]:
        limit = limit or self.limit
        fetch = limit * 2
        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="search") as pool:
            vector_future = pool.submit(self._vector_leg, query, fetch, space_id)
            keyword_future = pool.submit(self._keyword_leg, query, fetch, space_id)
            vector_results = vector_future.result()
            keyword_results = keyword_future.result()

        merged: dict[tuple[str, str | None], ContentResult] = {}
        for result in vector_results:
            merged.setdefault((result.title, result.date_str), result)
        for result in keyword_results:
            merged.setdefault((result.title, result.date_str), result)

        ranked = sorted(merged.values(), key=lambda r: r.score, reverse=True)[:limit]
        if not ranked:
            return keyword_results[:limit]
        return ranked
