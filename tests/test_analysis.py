import json

import pytest

from ai_providers.errors import (
    AllProvidersExhaustedError, ProviderHTTPError, ProviderTransportError, SchemaValidationError,
)
from ai_providers.pool import ProviderPool
from services.analysis import AnalysisOrchestrator, ANALYSIS_SCHEMA, parse_analysis
from services.schemas import WeakAreaAnalysis, WrongAnswerRecord
from conftest import FakeChat, ScriptedProvider

ANALYSIS = {
    "summary": "Struggles with cell structure.",
    "weakTopics": [
        {"topic": "Organelles", "reason": "Confuses functions", "mistakeCount": 3,
         "difficultyLevel": "Beginner"},
        {"topic": "Mitosis", "reason": "Mixes phases", "mistakeCount": "2",
         "difficultyLevel": "expert"},
    ],
    "recommendations": ["Draw a labelled cell", "Use flashcards"],
    "learningStyleInsights": "Visual learner.",
}

RECORDS = [
    WrongAnswerRecord(question="What makes ATP?", user_answer=1, correct_answer=2,
                      topic="Organelles", explanation="Mitochondria"),
    WrongAnswerRecord(question="First phase of mitosis?", user_answer=0, correct_answer=1,
                      topic="Mitosis"),
]


def _orchestrator(chat=None, tier_two_responses=None):
    gemini = ScriptedProvider(name="gemini-1", responses=tier_two_responses or [ANALYSIS])
    pool = ProviderPool([gemini])
    return AnalysisOrchestrator.build(pool, chat), gemini


def test_tier_one_used_when_configured():
    chat = FakeChat(result="```json\n" + json.dumps(ANALYSIS) + "\n```")
    orch, gemini = _orchestrator(chat)

    result = orch.analyze(RECORDS)

    assert result.source == "tier1:fake-chat"
    assert [w.topic for w in result.weak_topics] == ["Organelles", "Mitosis"]
    assert gemini.generate_calls == []
    assert "What makes ATP?" in chat.calls[0]


def test_tier_one_http_500_falls_back_to_tier_two():
    orch, gemini = _orchestrator(FakeChat(error=ProviderHTTPError(500, "upstream down")))

    result = orch.analyze(RECORDS)

    assert isinstance(result, WeakAreaAnalysis)
    assert result.source == "tier2:gemini-1"
    assert result.summary == "Struggles with cell structure."
    call = gemini.generate_calls[0]
    assert call["handle"] is None
    assert call["schema"] is ANALYSIS_SCHEMA


def test_tier_one_parse_failure_falls_back():
    orch, gemini = _orchestrator(FakeChat(result="I think the student is doing fine."))
    assert orch.analyze(RECORDS).source == "tier2:gemini-1"


def test_tier_one_not_configured_goes_straight_to_tier_two():
    orch, gemini = _orchestrator(None)
    assert orch.analyze(RECORDS).source == "tier2:gemini-1"
    assert len(gemini.generate_calls) == 1


def test_both_tiers_fail():
    tier_one_error = ProviderHTTPError(500)
    tier_two_error = ProviderTransportError("quota")
    orch, _ = _orchestrator(FakeChat(error=tier_one_error), tier_two_responses=[tier_two_error])

    with pytest.raises(AllProvidersExhaustedError) as info:
        orch.analyze(RECORDS)

    err = info.value
    assert [name for name, _ in err.causes] == ["tier1", "tier2"]
    assert err.causes[0][1] is tier_one_error
    assert err.last_cause is tier_two_error
    assert err.__cause__ is tier_two_error


def test_no_tier_available():
    orch = AnalysisOrchestrator.build(ProviderPool([]), None)
    with pytest.raises(AllProvidersExhaustedError):
        orch.analyze(RECORDS)


def test_empty_input_is_not_an_error():
    orch, gemini = _orchestrator(FakeChat(error=RuntimeError("should not be called")))
    result = orch.analyze([])
    assert result.weak_topics == ()
    assert gemini.generate_calls == []


def test_parse_normalizes_fields():
    result = parse_analysis(json.dumps(ANALYSIS), "x")
    assert result.weak_topics[0].difficulty_level == "beginner"
    assert result.weak_topics[1].difficulty_level == "intermediate"
    assert result.weak_topics[1].mistake_count == 2
    assert result.recommendations == ("Draw a labelled cell", "Use flashcards")
    assert result.to_dict()["weakTopics"][0]["mistakeCount"] == 3


def test_parse_requires_weak_topics_array():
    with pytest.raises(SchemaValidationError):
        parse_analysis('{"summary": "ok"}', "x")
    with pytest.raises(SchemaValidationError):
        parse_analysis('[1, 2]', "x")


def test_wrong_answer_record_from_camel_case():
    r = WrongAnswerRecord.from_dict({"question": " Q? ", "userAnswer": 1, "correctAnswer": 2, "topic": "T"})
    assert r == WrongAnswerRecord(question="Q?", user_answer=1, correct_answer=2, topic="T")
    with pytest.raises(ValueError):
        WrongAnswerRecord.from_dict({"userAnswer": 1})
