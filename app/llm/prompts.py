"""Prompt template helpers for the planner's language-model calls.

Prompts are configuration data. :class:`PromptTemplateStore` ships defaults
for every task and accepts overrides, either in code or from a JSON file named
by ``PLANNER_PROMPTS_FILE`` (``{"classify_user": "..."}``). Templates use
``string.Template`` placeholders (``$message``) so that JSON examples inside a
prompt need no brace escaping.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from pathlib import Path
from string import Template

logger = logging.getLogger(__name__)


class PromptTemplateStore:
    """Resolve and render prompt templates by name."""

    _DEFAULT_TEMPLATES: Mapping[str, str] = {
        "classify_system": (
            "You are a precise intent classifier. Always respond with valid JSON."
        ),
        "classify_user": """You are classifying the intent of an SMS message to $bot_name, a sassy AI assistant for an organization.

User info:
- Name: $user_name
- Is admin: $is_admin
$history$draft$poll

Current message: "$message"

Classify this message into ONE of these actions:
1. draft_write - Creating or editing an announcement or poll draft
2. draft_send - ONLY explicit send commands like "send", "yes", "go", "send it" when a draft is ready. NOT requests to create announcements.
3. content_query - Questions about organization content (events, meetings, schedules, people)
4. poll_response - Answering the active poll (yes/no/maybe, with or without a reason)
5. capability_query - Questions about $bot_name's capabilities, help requests
6. knowledge_upload - An admin sharing information to remember (dates, places, policies)
7. event_update - An admin changing the time, place or title of an existing event
8. chat - Casual conversation, banter, insults, greetings, or anything else

IMPORTANT:
- draft_send should ONLY match explicit confirmation words like "send", "yes", "go", "do it", "blast it"
- If the message is asking to create/send an announcement or poll, classify as draft_write, NOT draft_send
- If the message matches the draft content exactly, classify as chat unless it's an explicit send command

Consider the weighted history (higher weight = more relevant context), whether a draft is waiting for input or confirmation, and the tone of the message.

Respond with JSON only:
{"action": "...", "confidence": 0.0-1.0, "subtype": "announcement" | "poll" | null, "reasoning": "brief explanation"}""",
        "draft_content_system": """You are extracting the exact message content that should be sent as a $draft_type.

RULES:
1. VERBATIM CONTENT: When the user says "send out [type] saying X", X is EXACTLY what to send. Do NOT paraphrase.
2. FOLLOW-UPS: Words like "wait", "no", "actually", "instead" mean the user is EDITING. Extract only the NEW content.
3. CONTEXT: If a previous draft is given and the user asks for a change ("make it 8pm", "add that it's mandatory"), return the full revised draft.
4. NO META LANGUAGE: Never include phrases like "send out an announcement". Only the message itself.

Examples:
- "send out an announcement saying soccer is tomorrow" -> soccer is tomorrow
- "wait say it's next week" -> it's next week
- "no just say jarvis is king" -> jarvis is king
- "send out a poll asking if jarvis is lit" -> is jarvis lit

Return ONLY the exact text to send. No quotes, no explanations.""",
        "draft_content_user": """Recent conversation:
$history

Current user message: "$message"
$previous

Extract the exact text that should be sent:""",
        "link_detection_system": """You are analyzing messages to detect:
1. If the message contains any URLs/links
2. If the message SHOULD have a link but doesn't

Messages that typically need links: RSVP requests, sign-up forms, registration, "fill out this form", "click here", surveys, documents to review.

Respond with JSON only: {"hasLinks": boolean, "links": [string], "needsLink": boolean, "reasoning": string}""",
        "link_detection_user": 'Analyze this message: "$message"',
        "mandatory_poll_system": """You are analyzing whether a poll/event is mandatory or requires attendance.

MANDATORY: "mandatory", "required", "must attend", chapter meetings, official events, penalties for not attending, "everyone needs to be there".
NOT mandatory: optional events, social gatherings, study sessions, open invites, "if you're interested".

Respond with JSON: {"isMandatory": boolean, "reasoning": string}""",
        "mandatory_poll_user": 'Is this poll about a mandatory event? "$message"',
        "content_answer_system": """You are a helpful assistant that answers questions using the provided search results.

If search results are provided, they ARE relevant. Never say "no information" when results exist; present what IS available.

Results are already prioritized: upcoming events > recurring events > facts > past announcements.

Today is $today_name, $today.
- Only use dates stated in the results or given as "Next occurrence".
- Relative dates in announcements ("tomorrow", "tmr") are relative to their "Sent:" date, not today.
- For recurring items state the pattern and the next occurrence.
- Include time and location when the results mention them. Never invent them.

Style: plain text for SMS, short, lowercase is fine, no markdown. $language""",
        "content_answer_user": """Question: "$question"

Search Results ($count results found):
$results""",
        "event_update_system": """You are analyzing an admin's message to update an event.

Available upcoming events:
$events

Identify which event they mean, which fields change (title, eventDate, location, description) and the new values.

Examples:
- "ski retreat is now jan 20-22" -> event: ski retreat, update: eventDate
- "move chapter meeting to 7pm" -> event: chapter meeting, update: eventDate (time only)
- "study hall is at library now" -> event: study hall, update: location

Today is $today.

Respond with JSON:
{"eventId": id_from_list_or_null, "updates": {"title": ..., "eventDate": "ISO datetime", "location": ..., "description": ...}, "confidence": 0.0-1.0, "summary": "human-readable summary of what's changing"}""",
        "event_update_user": 'Admin message: "$message"',
        "knowledge_upload_system": """You are analyzing SMS messages to determine if they contain information that should be added to an organization's knowledge base.

Upload: event details with dates/times/locations, meeting schedules, deadlines, policy updates, contact information, resources and links, procedures.
Do NOT upload: commands to the bot, questions, casual conversation, complaints, personal messages.

If the message is worth uploading, suggest a brief title (5-8 words).

Respond with JSON: {"shouldUpload": boolean, "title": string, "reasoning": string}""",
        "knowledge_upload_user": 'Should this be added to the knowledge base? "$message"',
        "fact_extraction_system": """Extract atomic facts from the text for an organization's knowledge base.

For each fact return:
- content: one self-contained sentence
- category: event, schedule, policy, contact, resource or general
- subcategory: the short name of the thing (e.g. "ski retreat", "study hall")
- timeRef: the time expression as written, or null
- dateStr: an ISO date (YYYY-MM-DD) for one-off dates, "recurring:<weekday>" for weekly items, or null
- entities: people, places and organizations mentioned

Today is $today.

Respond with JSON: {"facts": [{"content": ..., "category": ..., "subcategory": ..., "timeRef": ..., "dateStr": ..., "entities": [...]}]}""",
        "fact_extraction_user": "$text",
    }

    def __init__(self, extra_templates: Mapping[str, str] | None = None):
        self._templates: dict[str, str] = dict(self._DEFAULT_TEMPLATES)
        if extra_templates:
            self._templates.update(extra_templates)

    @classmethod
    def from_file(cls, path: str | None) -> "PromptTemplateStore":
        """Build a store with overrides read from a JSON object file.

        A missing or malformed file is logged and ignored so that a bad
        override never takes the planner down.
        """

        if not path:
            return cls()
        try:
            raw = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, ValueError):
            logger.exception("Failed to load prompt overrides from %s", path)
            return cls()
        if not isinstance(raw, dict):
            logger.warning("Prompt override file %s is not a JSON object", path)
            return cls()
        return cls({str(k): str(v) for k, v in raw.items()})

    def resolve(self, name: str) -> str:
        """Return the raw template registered under ``name``."""

        try:
            return self._templates[name]
        except KeyError:
            raise KeyError(f"Prompt template '{name}' is not configured") from None

    def render(self, name: str, **values: object) -> str:
        """Render the template ``name`` with ``values``.

        Unknown placeholders are left in place rather than raising.
        """

        return Template(self.resolve(name)).safe_substitute(
            {key: "" if value is None else str(value) for key, value in values.items()}
        ).strip()
