"""Thin wrapper around the OpenAI chat-completions API.

Every planner step that uses the model goes through :class:`LLMClient`. The
wrapper applies per-task parameters and a request timeout, and converts every
failure (network, timeout, refusal, malformed JSON) into ``None`` so callers
only have to implement their deterministic fallback once.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any

from openai import OpenAI

from .parameters import ResponseParameterStore

logger = logging.getLogger(__name__)


class LLMClient:
    """Call the chat-completions API with task defaults and a timeout."""

    def __init__(
        self,
        client: Any,
        *,
        model: str = "gpt-4o-mini",
        timeout: float = 10.0,
        parameters: ResponseParameterStore | None = None,
    ) -> None:
        self._client = client
        self.model = model
        self.timeout = timeout
        self.parameters = parameters or ResponseParameterStore()

    @classmethod
    def from_env(cls, *, model: str, timeout: float) -> "LLMClient | None":
        """Return a client when ``OPENAI_API_KEY`` is configured, else ``None``."""

        if not os.getenv("OPENAI_API_KEY"):
            return None
        return cls(OpenAI(), model=model, timeout=timeout)

    def _create(self, task: str, system: str, user: str, **overrides: Any) -> str | None:
        params = self.parameters.merge(task, overrides)
        wants_json = bool(params.pop("json", False))
        request: dict[str, Any] = {
            "model": params.pop("model", self.model),
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            "timeout": self.timeout,
            **params,
        }
        if wants_json:
            request["response_format"] = {"type": "json_object"}
        try:
            completion = self._client.chat.completions.create(**request)
            content = completion.choices[0].message.content
        except Exception:
            logger.exception("LLM call for task %s failed", task)
            return None
        if not content:
            logger.warning("LLM returned an empty response for task %s", task)
            return None
        return content.strip()

    def complete_text(self, task: str, system: str, user: str, **overrides: Any) -> str | None:
        """Return the model's plain-text answer or ``None`` on failure."""

        return self._create(task, system, user, **overrides)

    def complete_json(
        self, task: str, system: str, user: str, **overrides: Any
    ) -> dict[str, Any] | None:
        """Return the model's answer parsed as a JSON object or ``None``."""

        content = self._create(task, system, user, json=True, **overrides)
        if content is None:
            return None
        try:
            parsed = json.loads(content)
        except ValueError:
            logger.warning("LLM returned invalid JSON for task %s", task)
            return None
        if not isinstance(parsed, dict):
            logger.warning("LLM returned a non-object JSON value for task %s", task)
            return None
        return parsed
