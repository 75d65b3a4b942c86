"""Typed metadata stored on outbound messages.

``Message.meta`` is JSON in storage. In code it is a tagged union keyed by
``action``: one pydantic model per planner action. Rows written by older
releases, or by hand, may carry shapes none of the models accept; those parse
to ``None`` instead of raising.
"""

from __future__ import annotations

import logging
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

logger = logging.getLogger(__name__)


class DraftWriteMeta(BaseModel):
    action: Literal["draft_write"] = "draft_write"
    draft_type: str
    draft_content: str = ""
    status: str = "drafting"


class DraftSendMeta(BaseModel):
    """Shared by every outbound copy of one broadcast."""

    action: Literal["draft_send"] = "draft_send"
    draft_type: str
    draft_content: str
    poll_id: int | None = None
    sent: int = 0
    failed: int = 0


class PollResponseMeta(BaseModel):
    action: Literal["poll_response"] = "poll_response"
    poll_id: int | None = None
    verdict: str | None = None
    note: str | None = None
    awaiting_excuse: bool = False


class ContentQueryMeta(BaseModel):
    action: Literal["content_query"] = "content_query"
    result_count: int = 0


class CapabilityQueryMeta(BaseModel):
    action: Literal["capability_query"] = "capability_query"


class KnowledgeUploadMeta(BaseModel):
    action: Literal["knowledge_upload"] = "knowledge_upload"
    upload_id: int | None = None
    fact_count: int = 0


class EventUpdateMeta(BaseModel):
    """A proposed event change waiting for the admin's yes/no."""

    action: Literal["event_update"] = "event_update"
    event_id: int
    updates: dict[str, Any] = Field(default_factory=dict)
    description: str = ""
    status: Literal["pending", "applied", "cancelled"] = "pending"


class ChatMeta(BaseModel):
    action: Literal["chat"] = "chat"
    cancelled_draft: bool = False


MessageMeta = Annotated[
    Union[
        DraftWriteMeta,
        DraftSendMeta,
        PollResponseMeta,
        ContentQueryMeta,
        CapabilityQueryMeta,
        KnowledgeUploadMeta,
        EventUpdateMeta,
        ChatMeta,
    ],
    Field(discriminator="action"),
]

_META_ADAPTER: TypeAdapter[MessageMeta] = TypeAdapter(MessageMeta)


def parse_message_meta(raw: object) -> MessageMeta | None:
    """Validate stored metadata, returning ``None`` for unknown shapes."""

    if not isinstance(raw, dict):
        return None
    try:
        return _META_ADAPTER.validate_python(raw)
    except ValidationError:
        logger.debug("Ignoring unrecognised message meta: %s", raw.get("action"))
        return None


def dump_message_meta(meta: BaseModel | None) -> dict[str, Any] | None:
    if meta is None:
        return None
    return meta.model_dump(mode="json")


__all__ = [
    "CapabilityQueryMeta",
    "ChatMeta",
    "ContentQueryMeta",
    "DraftSendMeta",
    "DraftWriteMeta",
    "EventUpdateMeta",
    "KnowledgeUploadMeta",
    "MessageMeta",
    "PollResponseMeta",
    "dump_message_meta",
    "parse_message_meta",
]
