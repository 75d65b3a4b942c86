"""``knowledge_upload``: turn an admin's text into searchable facts."""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Any

from ...search import FactRecord
from ..meta import KnowledgeUploadMeta
from ..text import looks_like_question
from ..types import ActionResult, PlannerContext

if TYPE_CHECKING:
    from ..deps import PlannerDeps

logger = logging.getLogger(__name__)

MIN_UPLOAD_LENGTH = 15
_LEAD_IN = re.compile(
    r"^(fyi|remember( that)?|save this|add to (the )?(knowledge base|kb))[:,]?\s*", re.IGNORECASE
)


def strip_lead_in(message: str) -> str:
    return _LEAD_IN.sub("", message.strip()).strip()


def should_upload(text: str, deps: "PlannerDeps") -> tuple[bool, str]:
    """Whether ``text`` is worth storing, and a short title for it."""

    if deps.llm is not None:
        data = deps.llm.complete_json(
            "knowledge_upload",
            deps.prompts.render("knowledge_upload_system"),
            deps.prompts.render("knowledge_upload_user", message=text),
        )
        if data is not None:
            return bool(data.get("shouldUpload")), str(data.get("title") or "SMS Upload")
    ok = len(text) >= MIN_UPLOAD_LENGTH and not looks_like_question(text)
    return ok, " ".join(text.split()[:6])


def _fact_from_payload(item: dict[str, Any], source_text: str) -> FactRecord | None:
    content = str(item.get("content") or "").strip()
    if not content:
        return None
    entities = item.get("entities") or []
    return FactRecord(
        content=content,
        category=item.get("category") or "general",
        subcategory=item.get("subcategory") or None,
        time_ref=item.get("timeRef") or None,
        date_str=item.get("dateStr") or None,
        entities=[str(e) for e in entities if e] if isinstance(entities, list) else [],
        source_text=source_text,
    )


def extract_facts(text: str, deps: "PlannerDeps") -> list[FactRecord]:
    """Atomic facts from ``text``; a single general fact when no model answers."""

    if deps.llm is not None:
        data = deps.llm.complete_json(
            "fact_extraction",
            deps.prompts.render("fact_extraction_system", today=deps.now().date().isoformat()),
            deps.prompts.render("fact_extraction_user", text=text),
        )
        if data is not None and isinstance(data.get("facts"), list):
            facts = [
                fact
                for item in data["facts"]
                if isinstance(item, dict)
                for fact in [_fact_from_payload(item, text)]
                if fact is not None
            ]
            if facts:
                return facts
    return [FactRecord(content=text, category="general", source_text=text)]


def embed_facts(facts: list[FactRecord], deps: "PlannerDeps") -> None:
    if deps.embedder is None or not facts:
        return
    try:
        vectors = deps.embedder.embed([fact.content for fact in facts])
    except Exception:
        logger.exception("Embedding %s facts failed; storing them without vectors", len(facts))
        return
    for fact, vector in zip(facts, vectors):
        fact.embedding = list(vector) if vector is not None and len(vector) else None


def handle_knowledge_upload(ctx: PlannerContext, deps: "PlannerDeps") -> ActionResult:
    text = strip_lead_in(ctx.message)
    upload, title = should_upload(text, deps)
    if not upload:
        return ActionResult(
            "knowledge_upload",
            "that doesn't look like info to add to the knowledge base. "
            "try something like 'ski retreat is happening jan 16-19 in utah'",
        )

    record = deps.knowledge.create_upload(title, text)
    facts = extract_facts(text, deps)
    for fact in facts:
        fact.upload_id = record.id
        fact.space_id = deps.space_id
    embed_facts(facts, deps)
    stored = deps.fact_store.add_facts(facts)
    logger.info("Knowledge upload %s stored %s facts", record.id, stored)

    summary = f"extracted {stored} fact{'s' if stored != 1 else ''}" if stored else "processed"
    return ActionResult(
        "knowledge_upload",
        f'✅ added to knowledge base: "{title}". {summary}',
        meta=KnowledgeUploadMeta(upload_id=record.id, fact_count=stored),
    )
