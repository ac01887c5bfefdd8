"""
Unit tests for InteractionRecorder.

The recorder is where replayed completions are neutralized, so close()
idempotence and the completed-object set get most of the attention here.
"""

import pytest

from src.trainer.clock import TickClock
from src.trainer.errors import InvalidTransitionError, SessionFrozenError
from src.trainer.recorder import InteractionRecorder, ProcedureStep
from src.trainer.session import Session, SessionStatus


@pytest.fixture
def clock():
    return TickClock()


@pytest.fixture
def session(clock):
    return Session(training_id="t", start_time=clock.now())


@pytest.fixture
def recorder(session, clock):
    return InteractionRecorder(session, clock)


class TestInteractionRecorder:
    """Test the open/record/close cycle."""

    def test_open_builds_interaction_id(self, recorder):
        """interactionId is objectId_contentKey_epochMillis."""
        record = recorder.open("q1", "question", "single_choice", "question_1")
        assert record.interaction_id == "q1_question_1_1704067200000"
        assert record.attempts == 0
        assert record.success is False

    def test_single_pending_slot(self, recorder):
        """A second open while one is pending is refused."""
        recorder.open("q1", "question", "single_choice", "question_1")
        with pytest.raises(InvalidTransitionError):
            recorder.open("q2", "question", "single_choice", "question_2")

    def test_record_attempt_appends_copies(self, recorder):
        """Each attempt is appended; later mutation of the input does not leak."""
        recorder.open("q1", "question", "multiple_choice", "question_1")
        answers = [0, 1]
        recorder.record_attempt("userAnswers", answers)
        answers.append(3)
        recorder.record_attempt("userAnswers", [1, 3])

        assert recorder.pending.attempts == 2
        assert recorder.pending.data["userAnswers"] == [[0, 1], [1, 3]]

    def test_close_moves_record_into_session(self, recorder, session, clock):
        """close() fills timing, appends to the session and marks the object."""
        recorder.open("t1", "text", "informative", "text_content")
        clock.tick(12.5)
        record = recorder.close(success=True)

        assert session.interactions == (record,)
        assert record.duration == 12.5
        assert record.attempts == 1
        assert record.closed
        assert recorder.has_completed("t1")
        assert recorder.pending is None

    def test_second_close_is_noop(self, recorder, session):
        """Closing twice leaves exactly one record."""
        recorder.open("t1", "text", "informative", "text_content")
        recorder.close(success=True)
        assert recorder.close(success=False) is None
        assert len(session.interactions) == 1
        assert session.interactions[0].success is True

    def test_record_without_open(self, recorder):
        """Recording with nothing open is a state error."""
        with pytest.raises(InvalidTransitionError):
            recorder.record_attempt("userAnswers", [1])

    def test_discard_pending(self, recorder, session):
        """Discarded records never reach the session."""
        recorder.open("p1", "procedure", "sequential", "procedure")
        assert recorder.discard_pending().object_id == "p1"
        assert session.interactions == ()
        assert not recorder.has_completed("p1")

    def test_frozen_session_rejects_close(self, recorder, session, clock):
        """A terminal session cannot receive records."""
        recorder.open("t1", "text", "informative", "text_content")
        session.finish(SessionStatus.ABANDONED, clock.now())
        with pytest.raises(SessionFrozenError):
            recorder.close(success=True)

    def test_to_dict_shape(self, recorder, clock):
        """Records serialize with camelCase keys and second-precision times."""
        recorder.open("t1", "text", "informative", "text_content", {"contentKey": "text_content"})
        clock.tick(3)
        data = recorder.close(success=True).to_dict()

        assert set(data) == {
            "interactionId", "type", "subtype", "objectId", "startTime",
            "endTime", "duration", "attempts", "success", "data",
        }
        assert data["startTime"] == "2024-01-01T00:00:00Z"
        assert data["endTime"] == "2024-01-01T00:00:03Z"


class TestProcedureStep:
    """Test procedure step serialization."""

    def test_to_dict(self):
        """Steps serialize with every required key."""
        step = ProcedureStep(1, "step_1", "breaker", True, 2.5, 1)
        assert step.to_dict() == {
            "stepNumber": 1,
            "stepKey": "step_1",
            "targetObjectId": "breaker",
            "completed": True,
            "duration": 2.5,
            "wrongClicksOnThisStep": 1,
        }
