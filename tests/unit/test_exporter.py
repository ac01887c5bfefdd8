"""
Unit tests for AnalyticsExporter and the completion sinks.
"""

import dataclasses
import json

import pytest

from src.trainer.clock import TickClock
from src.trainer.errors import SerializationError
from src.trainer.exporter import AnalyticsExporter
from src.trainer.recorder import InteractionRecorder
from src.trainer.scoring import ScoreAggregator
from src.trainer.session import Session, SessionStatus
from src.trainer.sinks import JsonFileSink, MemorySink

DOCUMENT_KEYS = {
    "sessionId", "trainingId", "startTime", "endTime", "totalDuration",
    "completionStatus", "interactions", "summary",
}


@pytest.fixture
def clock():
    return TickClock()


@pytest.fixture
def session(clock):
    return Session(training_id="fire-safety", start_time=clock.now())


@pytest.fixture
def exporter(clock):
    return AnalyticsExporter(clock)


def export(exporter, session):
    """Score the session, then export it."""
    scored, summary = ScoreAggregator().aggregate(session.interactions)
    return exporter.export(session, scored, summary)


def close_text(session, clock, seconds=5, data=None):
    recorder = InteractionRecorder(session, clock)
    recorder.open("t1", "text", "informative", "text_content", data or {"contentKey": "text_content"})
    clock.tick(seconds)
    recorder.close(success=True)


class TestAnalyticsExporter:
    """Test document assembly and serialization."""

    def test_document_is_field_exact(self, exporter, session, clock):
        """The document has exactly the documented top-level keys."""
        close_text(session, clock)
        session.finish(SessionStatus.COMPLETED, clock.now())

        result = export(exporter, session)
        assert set(result.document) == DOCUMENT_KEYS
        assert result.document["completionStatus"] == "completed"
        assert result.document["totalDuration"] == 5
        assert result.document["interactions"][0]["data"]["finalScore"] == 100
        assert json.loads(result.payload) == result.document

    def test_uses_given_scores(self, exporter, session, clock):
        """The document carries the aggregated values it is handed, unchanged."""
        close_text(session, clock)
        scored, summary = ScoreAggregator().aggregate(session.interactions)
        summary = dataclasses.replace(summary, score=42.0)
        scored[0].data["finalScore"] = 7

        document = exporter.build_document(session, scored, summary)
        assert document["summary"]["score"] == 42.0
        assert document["interactions"][0]["data"]["finalScore"] == 7

    def test_in_progress_end_time_is_now(self, exporter, session, clock):
        """An unfinished session uses the current time as endTime."""
        clock.tick(30)
        document = exporter.build_document(session, [], ScoreAggregator().summarize([]))
        assert document["endTime"] == "2024-01-01T00:00:30Z"
        assert document["completionStatus"] == "in_progress"

    def test_serialization_failure_preserves_session(self, exporter, session, clock):
        """A non-serializable value raises SerializationError and loses nothing."""
        close_text(session, clock, data={"contentKey": "text_content", "bad": object()})

        with pytest.raises(SerializationError):
            export(exporter, session)
        assert len(session.interactions) == 1

        del session.interactions[0].data["bad"]
        assert export(exporter, session).summary.total_interactions == 1

    def test_nan_rejected(self, exporter, session, clock):
        """NaN is not valid JSON."""
        close_text(session, clock, data={"contentKey": "text_content", "scrollPercentage": float("nan")})
        with pytest.raises(SerializationError):
            export(exporter, session)


class TestSinks:
    """Test the completion sinks."""

    def test_json_file_sink_writes_payload(self, tmp_path):
        """Each document goes to its own dated file."""
        sink = JsonFileSink(tmp_path / "out")
        document = {"sessionId": "abc", "startTime": "2024-01-01T00:00:00Z"}
        sink.deliver(document, json.dumps(document))

        assert sink.last_path.name == "2024-01-01_session_abc.json"
        assert json.loads(sink.last_path.read_text(encoding="utf-8")) == document

    def test_memory_sink(self):
        """MemorySink keeps documents and completion signals."""
        sink = MemorySink()
        sink.deliver({"sessionId": "a"}, "{}")
        sink.training_completed("t")
        assert sink.last_document == {"sessionId": "a"}
        assert sink.completed_trainings == ["t"]
