"""
Unit tests for ScenarioProgressionEngine.

Covers the state machine, index monotonicity, duplicate-completion
rejection and the abandon path.
"""

import pytest

from src.trainer.catalog import ScenarioCatalog, load_catalog
from src.trainer.errors import (
    DuplicateCompletionWarning,
    EmptyCatalogError,
    InvalidTransitionError,
    MissingStartNodeError,
    ScenarioMismatchWarning,
    SessionFrozenError,
)
from src.trainer.scenarios.base import HandlerResult
from src.trainer.scoring import ScoreAggregator
from src.trainer.session import EngineState, ScenarioProgressionEngine, SessionStatus


def texts(*ids):
    return load_catalog([{"id": i, "type": "text"} for i in ids], training_id="t")


def finish_text(engine):
    engine.resume({"close": True})


class TestLifecycle:
    """Test start/advance/complete transitions."""

    def test_empty_catalog(self, engine):
        """Starting with no scenarios fails."""
        with pytest.raises(EmptyCatalogError):
            engine.start(ScenarioCatalog("t", ()))
        assert engine.state == EngineState.IDLE

    def test_start_loads_first_scenario(self, engine, sample_catalog):
        """start() creates an in-progress session and activates scenario 0."""
        session = engine.start(sample_catalog)
        assert session.status == SessionStatus.IN_PROGRESS
        assert engine.state == EngineState.SCENARIO_ACTIVE
        assert engine.current_index == 0
        assert engine.current_scenario.id == "q1"

    def test_cannot_start_twice(self, engine, sample_catalog):
        """A running session cannot be restarted."""
        engine.start(sample_catalog)
        with pytest.raises(InvalidTransitionError):
            engine.start(sample_catalog)

    def test_advance_requires_completion(self, engine, sample_catalog):
        """advance() is refused while the scenario is still active."""
        engine.start(sample_catalog)
        with pytest.raises(InvalidTransitionError):
            engine.advance()

    def test_resume_completes_and_transitions(self, engine, sample_catalog):
        """A completing input closes the record and moves to TRANSITIONING."""
        engine.start(sample_catalog)
        engine.resume({"answers": [1, 3]})
        assert engine.state == EngineState.TRANSITIONING
        assert engine.is_scenario_completed("q1")
        with pytest.raises(InvalidTransitionError):
            engine.resume({"answers": [1, 3]})

    def test_index_only_increases(self, engine):
        """The index rises by one per advance and never goes back."""
        engine.start(texts("a", "b", "c"))
        seen = [engine.current_index]
        while engine.state != EngineState.ALL_COMPLETE:
            finish_text(engine)
            engine.advance()
            seen.append(engine.current_index)
        assert seen == [0, 1, 2, 3]

    def test_last_advance_completes_and_delivers(self, engine, sink):
        """The final advance completes, exports and signals the sink."""
        session = engine.start(texts("a"))
        finish_text(engine)
        engine.advance()

        assert engine.state == EngineState.ALL_COMPLETE
        assert session.status == SessionStatus.COMPLETED
        assert session.end_time is not None
        assert sink.last_document["completionStatus"] == "completed"
        assert sink.completed_trainings == ["t"]

    def test_auto_export_disabled(self, context, sink):
        """With auto export off nothing reaches the sink."""
        context.settings = context.settings.model_copy(update={"auto_export_on_completion": False})
        engine = ScenarioProgressionEngine(context)
        engine.start(texts("a"))
        finish_text(engine)
        engine.advance()
        assert sink.documents == []
        assert engine.export().document["completionStatus"] == "completed"

    def test_restart_after_completion_resets(self, engine):
        """A new start after completion gets a fresh session and anti-cheat set."""
        first = engine.start(texts("a"))
        finish_text(engine)
        engine.advance()

        second = engine.start(texts("a"))
        assert second.session_id != first.session_id
        assert not engine.is_scenario_completed("a")
        assert engine.current_index == 0

    def test_progress_percentage(self, engine):
        """Progress counts completed scenarios."""
        engine.start(texts("a", "b", "c", "d"))
        finish_text(engine)
        assert engine.progress_percentage == 25.0


class TestCompletionSignals:
    """Test external completion signals."""

    def test_duplicate_completion_ignored(self, engine):
        """A replayed completion returns a warning and changes nothing."""
        session = engine.start(texts("a", "b"))
        finish_text(engine)
        engine.advance()

        warning = engine.complete_current_scenario(HandlerResult("a", completed=True, success=True))
        assert isinstance(warning, DuplicateCompletionWarning)
        assert engine.state == EngineState.SCENARIO_ACTIVE
        assert len(session.interactions) == 1

    def test_duplicate_in_transitioning(self, engine):
        """Replays while transitioning are also ignored, not raised."""
        engine.start(texts("a", "b"))
        finish_text(engine)
        warning = engine.complete_current_scenario(HandlerResult("a", completed=True))
        assert isinstance(warning, DuplicateCompletionWarning)
        assert engine.state == EngineState.TRANSITIONING

    def test_mismatched_object(self, engine):
        """A completion for a different object is rejected with a warning."""
        engine.start(texts("a", "b"))
        warning = engine.complete_current_scenario(HandlerResult("b", completed=True))
        assert isinstance(warning, ScenarioMismatchWarning)
        assert engine.state == EngineState.SCENARIO_ACTIVE

    def test_host_forced_completion(self, engine):
        """The host can complete the active scenario directly."""
        session = engine.start(texts("a", "b"))
        assert engine.complete_current_scenario(HandlerResult("a", completed=True, success=False)) is None
        assert engine.state == EngineState.TRANSITIONING
        assert session.interactions[0].success is False

    def test_complete_when_idle(self, engine):
        """Completing with no session is a state error."""
        with pytest.raises(InvalidTransitionError):
            engine.complete_current_scenario(HandlerResult("a", completed=True))


class TestAbandon:
    """Test abandoning a session."""

    def test_abandon_keeps_closed_interactions(self, engine, sink):
        """Closed records survive; the open one is discarded."""
        session = engine.start(texts("a", "b", "c"))
        finish_text(engine)
        engine.advance()
        engine.abandon()

        assert engine.state == EngineState.ABANDONED
        assert session.status == SessionStatus.ABANDONED
        assert [r.object_id for r in session.interactions] == ["a"]
        assert sink.last_document["completionStatus"] == "abandoned"
        assert sink.completed_trainings == []

    def test_abandon_twice(self, engine):
        """Abandon is only valid on a running session."""
        engine.start(texts("a"))
        engine.abandon()
        with pytest.raises(InvalidTransitionError):
            engine.abandon()


class TestMissingStartNode:
    """Test dialogues that cannot start."""

    def test_closed_as_failed_and_raised(self, engine):
        """The scenario is closed as failed, the error surfaces, the session continues."""
        catalog = load_catalog([
            {"id": "d", "type": "dialogue", "nodes": [{"id": "e", "type": "end"}]},
            {"id": "t", "type": "text"},
        ], training_id="t")

        with pytest.raises(MissingStartNodeError):
            engine.start(catalog)

        assert engine.state == EngineState.TRANSITIONING
        assert engine.session.interactions[0].success is False
        engine.advance()
        assert engine.current_scenario.id == "t"


class TestForcedTextCompletion:
    """Test host-forced completion of text scenarios."""

    TEXT_KEYS = {"contentKey", "objectId", "scrollPercentage", "timeDisplayed", "readComplete", "finalScore"}

    def test_forced_completion_keeps_full_data_block(self, engine, clock, sink):
        """Completing a text without a close input still records reading time."""
        engine.start(texts("t"))
        clock.tick(6)
        assert engine.complete_current_scenario(HandlerResult("t", completed=True, success=True)) is None
        engine.advance()

        data = sink.last_document["interactions"][0]["data"]
        assert set(data) == self.TEXT_KEYS
        assert data["timeDisplayed"] == 6
        assert data["readComplete"] is True

    def test_forced_completion_too_early_is_unread(self, engine, clock, sink):
        """A short display without scrolling is not read."""
        engine.start(texts("t"))
        clock.tick(1)
        engine.complete_current_scenario(HandlerResult("t", completed=True, success=True))
        engine.advance()

        assert sink.last_document["interactions"][0]["data"]["readComplete"] is False


class TestAbandonWhenIdle:
    """Test abandon before any session exists."""

    def test_abandon_idle_is_noop(self, engine, sink):
        """Nothing is exported and the engine stays idle."""
        engine.abandon()
        assert engine.state == EngineState.IDLE
        assert engine.session is None
        assert sink.documents == []


class TestFrozenSession:
    """Test that finished sessions stay immutable."""

    def test_interactions_are_read_only(self, engine):
        """The interaction view is a tuple and appends are refused once finished."""
        session = engine.start(texts("a"))
        finish_text(engine)
        engine.advance()

        assert isinstance(session.interactions, tuple)
        record = session.interactions[0]
        with pytest.raises(SessionFrozenError):
            session.append_interaction(record)
        assert len(session.interactions) == 1


class CountingAggregator(ScoreAggregator):
    def __init__(self):
        self.calls = 0

    def aggregate(self, records):
        self.calls += 1
        return super().aggregate(records)


class TestExportScoring:
    """Test that the engine scores before handing off to the exporter."""

    def test_engine_aggregates_once_per_export(self, context, sink):
        """Completion scores through the engine's aggregator, then exports."""
        aggregator = CountingAggregator()
        engine = ScenarioProgressionEngine(context, aggregator=aggregator)
        engine.start(texts("a"))
        finish_text(engine)
        engine.advance()

        assert aggregator.calls == 1
        assert sink.last_document["summary"]["score"] == 100

        engine.export()
        assert aggregator.calls == 2
