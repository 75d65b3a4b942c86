"""Sentence embeddings for fact search."""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Protocol, Sequence

from fastembed import TextEmbedding

from ..config import DEFAULT_EMBEDDING_MODEL

logger = logging.getLogger(__name__)


class Embedder(Protocol):
    def embed(self, texts: Sequence[str]) -> list[list[float]]: ...


@lru_cache(maxsize=4)
def _load_model(model_name: str) -> TextEmbedding:
    logger.info("Loading embedding model %s", model_name)
    return TextEmbedding(model_name=model_name)


class FastEmbedEmbedder:
    """``fastembed`` multilingual MiniLM embedder.

    The ONNX model is loaded on first use and shared across instances, so
    building the application does not download anything.
    """

    def __init__(self, model_name: str = DEFAULT_EMBEDDING_MODEL) -> None:
        self.model_name = model_name

    def embed(self, texts: Sequence[str]) -> list[list[float]]:
        if not texts:
            return []
        model = _load_model(self.model_name)
        return [[float(x) for x in vector] for vector in model.embed(list(texts))]
