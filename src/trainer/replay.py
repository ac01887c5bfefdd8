"""
Replay a learner-event script against the progression engine.

Script format (JSON list, one event per entry):
    [
        {"action": "tick", "seconds": 4},
        {"action": "input", "input": {"answers": [1]}},
        {"action": "advance"},
        {"action": "complete", "objectId": "q1", "success": true},
        {"action": "abandon"}
    ]

Rejected steps (bad input, replayed completions, a dialogue without a
start node) are reported per step and the replay carries on, the same way
a live host keeps the learner in the session.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from loguru import logger

from .catalog import ScenarioCatalog
from .errors import (
    CatalogLoadError,
    InvalidInputError,
    InvalidTransitionError,
    MissingStartNodeError,
)
from .exporter import ExportResult
from .scenarios.base import HandlerResult
from .session import EngineState, ScenarioProgressionEngine, Session

ACTIONS = {"input", "complete", "advance", "tick", "abandon"}


@dataclass
class StepOutcome:
    """What happened to one script entry."""

    index: int
    action: str
    accepted: bool
    message: str = ""


@dataclass
class ReplayReport:
    session: Session
    final_state: EngineState
    outcomes: list[StepOutcome] = field(default_factory=list)
    export: ExportResult | None = None

    @property
    def rejected(self) -> list[StepOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.accepted]


def load_script(path: str | Path) -> list[dict[str, Any]]:
    """Read a replay script from a JSON file."""
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            script = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise CatalogLoadError(f"Cannot read script {path}: {e}") from e
    if not isinstance(script, list):
        raise CatalogLoadError(f"Script {path} must be a JSON list of events")
    return script


class ReplayPlayer:
    """
    Plays a script through an engine.

    Args:
        engine: A fresh (IDLE) or terminal engine.
        auto_advance: Call advance() whenever a step leaves the engine
            transitioning, so scripts only need learner actions.
    """

    def __init__(self, engine: ScenarioProgressionEngine, auto_advance: bool = False):
        self.engine = engine
        self.auto_advance = auto_advance

    def play(self, catalog: ScenarioCatalog, script: list[dict[str, Any]]) -> ReplayReport:
        outcomes: list[StepOutcome] = []
        try:
            self.engine.start(catalog)
        except MissingStartNodeError as e:
            outcomes.append(StepOutcome(-1, "start", False, str(e)))
        self._auto_advance(outcomes, -1)

        for index, event in enumerate(script):
            outcome = self._play_one(index, event)
            outcomes.append(outcome)
            if not outcome.accepted:
                logger.warning(f"Replay step {index} ({outcome.action}) rejected: {outcome.message}")
            self._auto_advance(outcomes, index)

        engine = self.engine
        return ReplayReport(
            session=engine.session,
            final_state=engine.state,
            outcomes=outcomes,
            export=engine.last_export,
        )

    def _play_one(self, index: int, event: Any) -> StepOutcome:
        action = event.get("action") if isinstance(event, dict) else None
        if action not in ACTIONS:
            return StepOutcome(index, str(action), False, "unknown action")

        engine = self.engine
        try:
            if action == "tick":
                engine.tick(float(event.get("seconds", 0)))
                return StepOutcome(index, action, True)
            if action == "input":
                result = engine.resume(event.get("input", {}))
                return StepOutcome(index, action, True, result.feedback)
            if action == "complete":
                result = HandlerResult(
                    object_id=str(event.get("objectId", "")),
                    completed=True,
                    success=bool(event.get("success", True)),
                )
                warning = engine.complete_current_scenario(result)
                if warning is not None:
                    return StepOutcome(index, action, False, str(warning))
                return StepOutcome(index, action, True)
            if action == "advance":
                engine.advance()
                return StepOutcome(index, action, True)
            engine.abandon()
            return StepOutcome(index, action, True)
        except (InvalidInputError, InvalidTransitionError, MissingStartNodeError, ValueError) as e:
            return StepOutcome(index, action, False, str(e))

    def _auto_advance(self, outcomes: list[StepOutcome], index: int) -> None:
        while self.auto_advance and self.engine.state == EngineState.TRANSITIONING:
            try:
                self.engine.advance()
            except MissingStartNodeError as e:
                outcomes.append(StepOutcome(index, "advance", False, str(e)))
