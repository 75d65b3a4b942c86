"""Per-task response parameter defaults for language-model calls."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any


class ResponseParameterStore:
    """Maintain task specific response parameter defaults.

    Each planner step that talks to the model has a name (``classify``,
    ``draft_content`` ...). Extraction steps run cold; answers are allowed a
    little more variety.
    """

    _DEFAULTS: Mapping[str, dict[str, Any]] = {
        "classify": {"temperature": 0.3, "max_tokens": 300, "json": True},
        "draft_content": {"temperature": 0.1, "max_tokens": 120},
        "link_detection": {"temperature": 0.1, "max_tokens": 200, "json": True},
        "mandatory_poll": {"temperature": 0.1, "max_tokens": 100, "json": True},
        "content_answer": {"temperature": 0.3, "max_tokens": 400},
        "event_update": {"temperature": 0.2, "max_tokens": 300, "json": True},
        "knowledge_upload": {"temperature": 0.2, "max_tokens": 150, "json": True},
        "fact_extraction": {"temperature": 0.2, "max_tokens": 800, "json": True},
    }

    def __init__(self, overrides: Mapping[str, Mapping[str, Any]] | None = None):
        self._defaults: dict[str, dict[str, Any]] = {
            task: dict(params) for task, params in self._DEFAULTS.items()
        }
        if overrides:
            for task, params in overrides.items():
                merged = self._defaults.setdefault(task.lower(), {})
                merged.update(params)

    def defaults_for_task(self, task: str) -> dict[str, Any]:
        """Return defaults for ``task``."""

        return dict(self._defaults.get(task.lower(), {"temperature": 0.3}))

    def merge(self, task: str, *overrides: dict[str, Any] | None) -> dict[str, Any]:
        """Merge multiple overrides on top of task defaults."""

        params = self.defaults_for_task(task)
        for override in overrides:
            if override:
                params.update(override)
        return params
