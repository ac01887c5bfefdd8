"""
Interaction recording with anti-replay protection.

The recorder owns a single pending slot: one interaction is open at a time.
close() is idempotent, and every closed object id lands in
`completed_object_ids` so a replayed completion signal can never earn
credit twice.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

from loguru import logger

from .clock import Clock, epoch_millis, format_timestamp
from .errors import InvalidTransitionError

if TYPE_CHECKING:
    from .session import Session


@dataclass
class ProcedureStep:
    """Outcome of one procedure step."""

    step_number: int
    step_key: str
    target_object_id: str
    completed: bool = False
    duration: float = 0.0
    wrong_clicks_on_this_step: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "stepNumber": self.step_number,
            "stepKey": self.step_key,
            "targetObjectId": self.target_object_id,
            "completed": self.completed,
            "duration": round(self.duration, 3),
            "wrongClicksOnThisStep": self.wrong_clicks_on_this_step,
        }


@dataclass
class InteractionRecord:
    """One learner interaction with one scenario."""

    interaction_id: str
    type: str
    subtype: str
    object_id: str
    start_time: datetime
    end_time: datetime | None = None
    duration: float = 0.0
    attempts: int = 0
    success: bool = False
    data: dict[str, Any] = field(default_factory=dict)
    closed: bool = False

    def to_dict(self, data: dict[str, Any] | None = None) -> dict[str, Any]:
        """
        Convert to dictionary for JSON serialization.

        Args:
            data: Replacement data block (the scored version); defaults to
                the raw recorded data.
        """
        return {
            "interactionId": self.interaction_id,
            "type": self.type,
            "subtype": self.subtype,
            "objectId": self.object_id,
            "startTime": format_timestamp(self.start_time),
            "endTime": format_timestamp(self.end_time) if self.end_time else None,
            "duration": round(self.duration, 3),
            "attempts": self.attempts,
            "success": self.success,
            "data": self.data if data is None else data,
        }


class InteractionRecorder:
    """
    Opens, accumulates and closes interaction records for one session.

    Usage:
        recorder.open("q1", "question", "single_choice", "question_1", {...})
        recorder.record_attempt("userAnswers", [2])
        recorder.close(success=True)
    """

    def __init__(self, session: "Session", clock: Clock):
        self.session = session
        self.clock = clock
        self.completed_object_ids: set[str] = set()
        self._pending: InteractionRecord | None = None

    @property
    def pending(self) -> InteractionRecord | None:
        return self._pending

    def has_completed(self, object_id: str) -> bool:
        return object_id in self.completed_object_ids

    def open(
        self,
        object_id: str,
        type: str,
        subtype: str,
        content_key: str,
        data: dict[str, Any] | None = None,
    ) -> InteractionRecord:
        """
        Start a new interaction in the pending slot.

        Raises:
            InvalidTransitionError: Another interaction is still open.
        """
        if self._pending is not None:
            raise InvalidTransitionError(
                f"open interaction for '{object_id}'",
                f"recording '{self._pending.object_id}'",
            )

        now = self.clock.now()
        record = InteractionRecord(
            interaction_id=f"{object_id}_{content_key}_{epoch_millis(now)}",
            type=type,
            subtype=subtype,
            object_id=object_id,
            start_time=now,
            data=dict(data or {}),
        )
        self._pending = record
        logger.debug(f"Opened interaction {record.interaction_id}")
        return record

    def _require_pending(self, operation: str) -> InteractionRecord:
        if self._pending is None:
            raise InvalidTransitionError(operation, "no open interaction")
        return self._pending

    def record_attempt(self, history_key: str, entry: Any) -> int:
        """Count an attempt and append a copy of `entry` to data[history_key]."""
        record = self._require_pending("record an attempt")
        record.attempts += 1
        record.data.setdefault(history_key, []).append(copy.deepcopy(entry))
        return record.attempts

    def append(self, key: str, entry: Any) -> None:
        """Append to a history list without counting an attempt."""
        record = self._require_pending("append data")
        record.data.setdefault(key, []).append(copy.deepcopy(entry))

    def set_data(self, **fields: Any) -> None:
        record = self._require_pending("set data")
        record.data.update(fields)

    def elapsed(self) -> float:
        """Seconds since the pending interaction opened."""
        record = self._require_pending("measure elapsed time")
        return (self.clock.now() - record.start_time).total_seconds()

    def close(self, success: bool) -> InteractionRecord | None:
        """
        Close the pending interaction and move it into the session.

        Returns:
            The closed record, or None when nothing was pending (a repeated
            close is a no-op).
        """
        record = self._pending
        if record is None:
            logger.debug("close() called without an open interaction; ignored")
            return None

        end = self.clock.now()
        record.end_time = end
        record.duration = (end - record.start_time).total_seconds()
        record.attempts = max(record.attempts, 1)
        record.success = success

        self.session.append_interaction(record)
        record.closed = True
        self._pending = None
        self.completed_object_ids.add(record.object_id)
        logger.info(
            f"Closed {record.interaction_id}: success={success} "
            f"attempts={record.attempts} duration={record.duration:.1f}s"
        )
        return record

    def discard_pending(self) -> InteractionRecord | None:
        """Drop the open interaction without recording it."""
        record, self._pending = self._pending, None
        if record is not None:
            logger.info(f"Discarded open interaction {record.interaction_id}")
        return record
