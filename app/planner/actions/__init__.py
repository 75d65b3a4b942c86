"""One handler per planner action."""

from .capability import handle_capability_query
from .chat import handle_chat, handle_empty_message
from .content import handle_content_query
from .draft import handle_draft_write
from .event_update import handle_event_update
from .knowledge_upload import handle_knowledge_upload
from .poll_response import handle_poll_response
from .send import handle_draft_send

__all__ = [
    "handle_capability_query",
    "handle_chat",
    "handle_content_query",
    "handle_draft_send",
    "handle_draft_write",
    "handle_empty_message",
    "handle_event_update",
    "handle_knowledge_upload",
    "handle_poll_response",
]
