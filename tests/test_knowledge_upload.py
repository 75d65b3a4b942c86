from app.models import KnowledgeUpload
from app.planner.actions.knowledge_upload import strip_lead_in
from app.planner.service import PlannerService
from conftest import ADMIN_PHONE, MEMBER_PHONES, FakeLLM, KeywordEmbedder


def test_strip_lead_in():
    assert strip_lead_in("FYI: ski retreat is jan 16-19") == "ski retreat is jan 16-19"
    assert strip_lead_in("remember that parking is out back") == "parking is out back"


def test_heuristic_upload_stores_one_fact(planner, seeded, fact_store):
    result = planner.handle(ADMIN_PHONE, "fyi: ski retreat is jan 16-19 in utah")
    assert result.action == "knowledge_upload"
    assert "added to knowledge base" in result.response
    assert result.meta.fact_count == 1

    upload = seeded.session.get(KnowledgeUpload, result.meta.upload_id)
    assert upload.raw_text == "ski retreat is jan 16-19 in utah"
    [fact] = fact_store.facts
    assert fact.content == "ski retreat is jan 16-19 in utah"
    assert fact.upload_id == upload.id

    answer = planner.handle(MEMBER_PHONES[0], "when is the ski retreat")
    assert "ski retreat is jan 16-19 in utah" in answer.response


def test_short_text_is_rejected(planner, seeded, fact_store):
    result = planner.handle(ADMIN_PHONE, "fyi: hi")
    assert "doesn't look like info" in result.response
    assert fact_store.facts == []


def test_model_extracts_and_embeds_facts(make_deps, seeded, fact_store):
    llm = FakeLLM(
        json_replies={
            "knowledge_upload": {"shouldUpload": True, "title": "Fall schedule"},
            "fact_extraction": {
                "facts": [
                    {
                        "content": "active meeting every wednesday at 8pm",
                        "subcategory": "active meeting",
                        "timeRef": "8pm",
                        "dateStr": "recurring:wednesday",
                        "entities": ["wednesday"],
                    },
                    {"content": "formal is nov 2", "dateStr": "2026-11-02"},
                    {"content": ""},
                ]
            },
        }
    )
    planner = PlannerService(make_deps(llm=llm, embedder=KeywordEmbedder()))
    result = planner.handle(
        ADMIN_PHONE, "fyi active meeting is every wednesday at 8pm and formal is nov 2"
    )
    assert 'added to knowledge base: "Fall schedule". extracted 2 facts' in result.response
    meeting, formal = fact_store.facts
    assert meeting.date_str == "recurring:wednesday"
    assert meeting.category == "general"
    assert meeting.embedding == [1.0, 0.0]
    assert formal.embedding == [0.0, 1.0]


def test_model_can_refuse(make_deps, seeded, fact_store):
    llm = FakeLLM(json_replies={"knowledge_upload": {"shouldUpload": False}})
    planner = PlannerService(make_deps(llm=llm))
    result = planner.handle(ADMIN_PHONE, "remember that lol")
    assert "doesn't look like info" in result.response
    assert fact_store.facts == []
