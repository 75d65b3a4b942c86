from types import SimpleNamespace

import pytest

from app.planner.classifier import (
    HybridIntentClassifier,
    LLMIntentClassifier,
    PatternClassifier,
)
from app.planner.types import Classification, ClassificationContext
from conftest import FakeLLM


def _draft(content="practice at 6", status="ready", draft_type="announcement", payload=None):
    return SimpleNamespace(
        content=content, status=status, draft_type=draft_type, payload=payload or {}
    )


class StubLLMClassifier:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = 0

    def classify(self, context):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.result


@pytest.mark.parametrize(
    ("message", "action", "subtype"),
    [
        ("announce practice moved to 6pm", "draft_write", "announcement"),
        ("make a poll", "draft_write", "poll"),
        ("poll who's driving saturday", "draft_write", "poll"),
        ("fyi: the ski retreat is jan 16-19", "knowledge_upload", None),
        ("move game night to 9pm", "event_update", None),
        ("what can you do", "capability_query", None),
        ("when is the retreat", "content_query", None),
    ],
)
def test_admin_patterns(message, action, subtype):
    result = HybridIntentClassifier().classify(ClassificationContext(message=message, is_admin=True))
    assert result.action == action
    assert result.subtype == subtype
    assert result.confidence >= 0.8


def test_send_and_cancel_need_a_draft():
    patterns = PatternClassifier()
    assert patterns.match(ClassificationContext(message="send")) is None
    with_draft = ClassificationContext(message="send", active_draft=_draft(), is_admin=True)
    assert patterns.match(with_draft).action == "draft_send"
    cancel = ClassificationContext(message="nvm", active_draft=_draft(), is_admin=True)
    assert patterns.match(cancel).action == "chat"


def test_replacement_answer_beats_send():
    draft = _draft(payload={"pending_replacement": {"type": "poll", "content": "x?"}})
    result = PatternClassifier().match(
        ClassificationContext(message="yes", active_draft=draft, is_admin=True)
    )
    assert result.action == "draft_write"


def test_empty_draft_collects_content():
    draft = _draft(content="", status="drafting", draft_type="poll")
    result = PatternClassifier().match(
        ClassificationContext(message="who's bringing snacks", active_draft=draft, is_admin=True)
    )
    assert result.action == "draft_write"
    assert result.subtype == "poll"


def test_ready_draft_edit_words():
    result = PatternClassifier().match(
        ClassificationContext(message="actually make it 7pm", active_draft=_draft(), is_admin=True)
    )
    assert result.action == "draft_write"


def test_non_admin_never_gets_admin_actions():
    classifier = HybridIntentClassifier()
    assert classifier.classify(ClassificationContext(message="announce free pizza")).action == "chat"
    llm = StubLLMClassifier(Classification("draft_write", 0.9, "announcement"))
    question = HybridIntentClassifier(llm).classify(
        ClassificationContext(message="can we announce something?")
    )
    assert question.action == "content_query"
    assert question.subtype is None


def test_pending_excuse_steers_to_poll_response():
    result = HybridIntentClassifier().classify(
        ClassificationContext(message="i have a shift", has_active_poll=True, pending_excuse=True)
    )
    assert result.action == "poll_response"
    assert result.confidence >= 0.9


def test_pending_excuse_keeps_explicit_draft_commands():
    result = HybridIntentClassifier().classify(
        ClassificationContext(
            message="send", active_draft=_draft(), pending_excuse=True, is_admin=True
        )
    )
    assert result.action == "draft_send"


def test_unknown_action_from_model_becomes_chat():
    llm = StubLLMClassifier(Classification("dance", 0.7))
    result = HybridIntentClassifier(llm).classify(ClassificationContext(message="yo so about that"))
    assert result.action == "chat"


def test_model_failure_degrades_to_chat():
    llm = StubLLMClassifier(error=RuntimeError("timeout"))
    result = HybridIntentClassifier(llm).classify(ClassificationContext(message="yo so about that"))
    assert result.action == "chat"
    assert result.confidence == 0.0


def test_confident_pattern_skips_model():
    llm = StubLLMClassifier(Classification("chat", 1.0))
    result = HybridIntentClassifier(llm).classify(
        ClassificationContext(message="announce bbq at noon", is_admin=True)
    )
    assert result.action == "draft_write"
    assert llm.calls == 0


def test_llm_classifier_parses_json_and_prompt():
    fake = FakeLLM(
        json_replies={
            "classify": {"action": "content_query", "confidence": 0.8, "subtype": "bogus"}
        }
    )
    classifier = HybridIntentClassifier(LLMIntentClassifier(fake, bot_name="jarvis"))
    context = ClassificationContext(
        message="yo whats good with the thing",
        active_draft=_draft(),
        has_active_poll=True,
        is_admin=True,
        user_name="Ava",
    )
    result = classifier.classify(context)
    assert result.action == "content_query"
    assert result.subtype is None
    _, _, user_prompt = fake.calls[0]
    assert "yo whats good with the thing" in user_prompt
    assert "practice at 6" in user_prompt
    assert "active poll" in user_prompt


def test_llm_classifier_without_answer_falls_back_to_chat():
    classifier = HybridIntentClassifier(LLMIntentClassifier(FakeLLM()))
    result = classifier.classify(ClassificationContext(message="hmm interesting"))
    assert result.action == "chat"
    assert result.confidence == 0.0
