"""
Training Session: progression state machine over a scenario catalog.

States:
    IDLE -> SCENARIO_ACTIVE -> TRANSITIONING -> SCENARIO_ACTIVE ... -> ALL_COMPLETE
    SCENARIO_ACTIVE | TRANSITIONING -> ABANDONED (abandon())

Rules:
- scenarios run strictly in catalog order; the index only ever increases
- a scenario is credited once: replayed completions are ignored with a
  DuplicateCompletionWarning
- learner input goes through resume(), which feeds the active handler and
  completes the scenario when the handler says so
- on the last advance() the session is scored, exported, and delivered
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from loguru import logger

from .catalog import ScenarioCatalog, ScenarioDescriptor
from .context import TrainingContext
from .errors import (
    DuplicateCompletionWarning,
    EmptyCatalogError,
    InvalidTransitionError,
    MissingStartNodeError,
    ScenarioMismatchWarning,
    SessionFrozenError,
    TrainerWarning,
)
from .exporter import AnalyticsExporter, ExportResult
from .recorder import InteractionRecord, InteractionRecorder
from .scenarios import create_handler
from .scenarios.base import HandlerResult, ScenarioHandler
from .scoring import ScoreAggregator


class SessionStatus(str, Enum):
    """Completion status of a session."""
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ABANDONED = "abandoned"
    FAILED = "failed"


@dataclass
class Session:
    """One learner's run through a catalog. Frozen once it leaves in_progress."""

    training_id: str
    start_time: datetime
    session_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    end_time: datetime | None = None
    status: SessionStatus = SessionStatus.IN_PROGRESS
    _interactions: list[InteractionRecord] = field(default_factory=list, init=False, repr=False)

    @property
    def frozen(self) -> bool:
        return self.status != SessionStatus.IN_PROGRESS

    @property
    def interactions(self) -> tuple[InteractionRecord, ...]:
        """Closed records in completion order (read-only; use append_interaction)."""
        return tuple(self._interactions)

    def append_interaction(self, record: InteractionRecord) -> None:
        if self.frozen:
            raise SessionFrozenError(
                f"Session {self.session_id} is {self.status.value}; cannot append {record.interaction_id}"
            )
        self._interactions.append(record)

    def finish(self, status: SessionStatus, end_time: datetime) -> None:
        if self.frozen:
            raise SessionFrozenError(f"Session {self.session_id} already {self.status.value}")
        self.status = status
        self.end_time = end_time


class EngineState(str, Enum):
    """Progression engine states."""
    IDLE = "idle"
    SCENARIO_ACTIVE = "scenario_active"
    TRANSITIONING = "transitioning"
    ALL_COMPLETE = "all_complete"
    ABANDONED = "abandoned"


TERMINAL_STATES = {EngineState.ALL_COMPLETE, EngineState.ABANDONED}


class ScenarioProgressionEngine:
    """
    Sequences a learner through a catalog, one scenario at a time.

    Usage:
        context = TrainingContext.create()
        engine = ScenarioProgressionEngine(context)
        engine.start(catalog)
        engine.resume({"answers": [1]})     # question answered correctly
        engine.advance()                    # next scenario (or finish)
    """

    def __init__(
        self,
        context: TrainingContext,
        aggregator: ScoreAggregator | None = None,
        exporter: AnalyticsExporter | None = None,
    ):
        self.context = context
        self.aggregator = aggregator or ScoreAggregator()
        self.exporter = exporter or AnalyticsExporter(
            context.clock,
            indent=context.settings.export_indent,
        )
        self.state = EngineState.IDLE
        self.catalog: ScenarioCatalog | None = None
        self.current_index = -1
        self.handler: ScenarioHandler | None = None
        self.last_result: HandlerResult | None = None
        self.last_export: ExportResult | None = None

    # ─── Properties ─────────────────────────────────────────────────────────

    @property
    def session(self) -> Session | None:
        return self.context.session

    @property
    def current_scenario(self) -> ScenarioDescriptor | None:
        if self.catalog is None or not 0 <= self.current_index < len(self.catalog):
            return None
        return self.catalog[self.current_index]

    @property
    def progress_percentage(self) -> float:
        if not self.catalog or self.context.recorder is None:
            return 0.0
        return len(self.context.recorder.completed_object_ids) / len(self.catalog) * 100

    def is_scenario_completed(self, scenario_id: str) -> bool:
        recorder = self.context.recorder
        return recorder is not None and recorder.has_completed(scenario_id)

    # ─── Lifecycle ──────────────────────────────────────────────────────────

    def start(self, catalog: ScenarioCatalog) -> Session:
        """
        Begin a new session on `catalog` and load its first scenario.

        Starting again after a terminal state resets the session, the
        recorder and its completed-object set.

        Raises:
            EmptyCatalogError: The catalog has no scenarios.
            InvalidTransitionError: A session is already in progress.
            MissingStartNodeError: The first scenario is a dialogue without
                a start node (it is closed as failed first).
        """
        if self.state not in (EngineState.IDLE, *TERMINAL_STATES):
            raise InvalidTransitionError("start a session", self.state.value)
        if len(catalog) == 0:
            raise EmptyCatalogError(f"Catalog '{catalog.training_id}' has no scenarios")

        clock = self.context.clock
        session = Session(training_id=catalog.training_id, start_time=clock.now())
        self.context.session = session
        self.context.recorder = InteractionRecorder(session, clock)
        self.catalog = catalog
        self.current_index = 0
        self.last_export = None
        logger.info(
            f"Session {session.session_id} started: '{catalog.training_id}', {len(catalog)} scenarios"
        )

        self._load_current()
        return session

    def resume(self, learner_input: dict[str, Any]) -> HandlerResult:
        """
        Feed one learner input to the active scenario.

        Raises:
            InvalidTransitionError: No scenario is active.
            InvalidInputError: The input does not fit the scenario.
        """
        if self.state != EngineState.SCENARIO_ACTIVE or self.handler is None:
            raise InvalidTransitionError("resume", self.state.value)

        result = self.handler.resume(learner_input)
        self.last_result = result
        if result.completed:
            self.complete_current_scenario(result)
        return result

    def complete_current_scenario(self, result: HandlerResult) -> TrainerWarning | None:
        """
        Close the active scenario's interaction.

        Returns:
            DuplicateCompletionWarning for an object that already closed,
            ScenarioMismatchWarning for a signal naming another object, the
            handler's own warning (e.g. BrokenEdgeWarning), or None.

        Raises:
            InvalidTransitionError: No scenario is active.
        """
        recorder = self.context.recorder
        if recorder is not None and recorder.has_completed(result.object_id):
            warning = DuplicateCompletionWarning(result.object_id)
            logger.warning(str(warning))
            return warning

        if self.state != EngineState.SCENARIO_ACTIVE or recorder is None:
            raise InvalidTransitionError("complete scenario", self.state.value)

        current = self.current_scenario
        if current is None or result.object_id != current.id:
            warning = ScenarioMismatchWarning(result.object_id, current.id if current else None)
            logger.warning(str(warning))
            return warning

        if self.handler is not None:
            self.handler.finalize()
        recorder.close(result.success)
        self.handler = None
        self.state = EngineState.TRANSITIONING
        logger.info(
            f"Scenario {self.current_index + 1}/{len(self.catalog)} '{current.id}' "
            f"completed (success={result.success})"
        )
        return result.warning

    def advance(self) -> None:
        """
        Move past the completed scenario.

        After the last scenario the session is completed, exported and
        delivered to the sink together with the training-completed signal.

        Raises:
            InvalidTransitionError: The current scenario is not completed.
            MissingStartNodeError: The next scenario is a dialogue without a
                start node (it is closed as failed first).
        """
        if self.state != EngineState.TRANSITIONING:
            raise InvalidTransitionError("advance", self.state.value)

        self.current_index += 1
        if self.current_index >= len(self.catalog):
            self.session.finish(SessionStatus.COMPLETED, self.context.clock.now())
            self.state = EngineState.ALL_COMPLETE
            logger.info(f"Session {self.session.session_id} completed")
            if self.context.settings.auto_export_on_completion:
                self.deliver()
            return

        self._load_current()

    def abandon(self) -> None:
        """
        Stop the session early.

        Closed interactions are kept; the open one is discarded. The partial
        document is delivered without the training-completed signal. With no
        session started there is nothing to abandon and the call is a no-op.

        Raises:
            InvalidTransitionError: The session already ended.
        """
        if self.state == EngineState.IDLE:
            logger.debug("abandon() called before start(); nothing to abandon")
            return
        if self.state not in (EngineState.SCENARIO_ACTIVE, EngineState.TRANSITIONING):
            raise InvalidTransitionError("abandon", self.state.value)

        self.context.recorder.discard_pending()
        self.handler = None
        self.session.finish(SessionStatus.ABANDONED, self.context.clock.now())
        self.state = EngineState.ABANDONED
        logger.info(
            f"Session {self.session.session_id} abandoned after "
            f"{len(self.session.interactions)}/{len(self.catalog)} scenarios"
        )
        if self.context.settings.auto_export_on_completion:
            self.deliver()

    def tick(self, seconds: float) -> None:
        """Forward the host's periodic tick to the clock."""
        self.context.clock.tick(seconds)

    # ─── Export ─────────────────────────────────────────────────────────────

    def export(self) -> ExportResult:
        """
        Score and serialize the current session.

        Safe to call repeatedly; this is the retry path after a
        SerializationError.
        """
        if self.session is None:
            raise InvalidTransitionError("export", self.state.value)
        scored, summary = self.aggregator.aggregate(self.session.interactions)
        self.last_export = self.exporter.export(self.session, scored, summary)
        return self.last_export

    def deliver(self) -> ExportResult:
        """Export the session and hand the document to the sink."""
        result = self.export()
        sink = self.context.sink
        sink.deliver(result.document, result.payload)
        if self.session.status == SessionStatus.COMPLETED:
            sink.training_completed(self.session.training_id)
        return result

    # ─── Internals ──────────────────────────────────────────────────────────

    def _load_current(self) -> None:
        scenario = self.current_scenario
        self.state = EngineState.SCENARIO_ACTIVE
        self.handler = create_handler(scenario, self.context)
        logger.debug(f"Loading scenario {self.current_index + 1}/{len(self.catalog)}: {scenario.id}")

        try:
            result = self.handler.begin()
        except MissingStartNodeError as e:
            logger.error(f"Scenario '{scenario.id}' cannot start: {e}")
            self.context.recorder.close(success=False)
            self.handler = None
            self.state = EngineState.TRANSITIONING
            raise

        self.last_result = result
        if result.completed:
            self.complete_current_scenario(result)
