"""Language-model client, prompt templates and task parameters."""

from .client import LLMClient
from .parameters import ResponseParameterStore
from .prompts import PromptTemplateStore

__all__ = ["LLMClient", "PromptTemplateStore", "ResponseParameterStore"]
