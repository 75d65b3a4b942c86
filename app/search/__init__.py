"""Fact storage and hybrid content search."""

from .embedder import Embedder, FastEmbedEmbedder
from .router import ContentResult, ContentSearchRouter, build_body, extract_keywords
from .store import FactRecord, FactStore, InMemoryFactStore, PostgresFactStore

__all__ = [
    "ContentResult",
    "ContentSearchRouter",
    "Embedder",
    "FactRecord",
    "FactStore",
    "FastEmbedEmbedder",
    "InMemoryFactStore",
    "PostgresFactStore",
    "build_body",
    "extract_keywords",
]
