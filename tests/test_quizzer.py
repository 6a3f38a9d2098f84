import pytest

from ai_providers.base import FileHandle, FileState
from ai_providers.errors import ProcessingFailedError, ProcessingTimeoutError
from ai_providers.pool import ProviderPool
from services.ingestion import FileIngestionCoordinator, PollPolicy
from services.quizzer import QuizPipeline
from conftest import ScriptedProvider

P, R = FileState.PROCESSING, FileState.READY

QUIZ = {"questions": [{"question": "Q?", "options": ["a", "b", "c", "d"],
                       "correctAnswer": 2, "explanation": "e"}]}


def _pipeline(clients, clock, budget=600.0):
    coordinator = FileIngestionCoordinator(PollPolicy(interval=5.0), clock=clock, sleep=clock.sleep)
    return QuizPipeline(ProviderPool(clients), coordinator, budget=budget, clock=clock)


def test_upload_and_topics_stay_on_primary(clock):
    primary = ScriptedProvider(name="k1", states=[P, R], responses=[{"topics": [{"title": "T", "description": "D"}]}])
    secondary = ScriptedProvider(name="k2", responses=["{}"])
    topics, handle = _pipeline([primary, secondary], clock).upload_and_analyze(b"%PDF", "application/pdf", "a.pdf")

    assert [t.title for t in topics] == ["T"]
    assert handle.state == FileState.READY
    assert len(primary.uploads) == 1 and len(primary.generate_calls) == 1
    assert secondary.uploads == [] and secondary.generate_calls == []


def test_quiz_generation_rotates_clients(clock):
    k1 = ScriptedProvider(name="k1", responses=[QUIZ])
    k2 = ScriptedProvider(name="k2", responses=[QUIZ])
    pipeline = _pipeline([k1, k2], clock)

    pipeline.generate_quiz("Cells", 1, "files/abc")
    pipeline.generate_quiz("Cells", 1, "files/abc")

    assert len(k1.generate_calls) == 1
    assert len(k2.generate_calls) == 1
    assert k2.generate_calls[0]["handle"].id == "files/abc"


def test_budget_covers_the_whole_pipeline(clock):
    client = ScriptedProvider(states=[P, P, R], responses=[{"topics": []}])
    with pytest.raises(ProcessingTimeoutError):
        _pipeline([client], clock, budget=10).upload_and_analyze(b"x", "application/pdf", "a.pdf")
    assert client.generate_calls == []


def test_quiz_needs_ready_file(clock):
    class Stale(ScriptedProvider):
        def get_file(self, handle_id):
            return FileHandle(id=handle_id, uri="u", mime_type="application/pdf", state=FileState.PROCESSING)

    with pytest.raises(ProcessingFailedError):
        _pipeline([Stale(responses=[QUIZ])], clock).generate_quiz("Cells", 1, "files/abc")
