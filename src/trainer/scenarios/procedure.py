"""
Procedure scenario handler.

Steps must be performed in order:
- click/zone steps take {"target": "<objectId>"}; a wrong target counts
  against the current step's wrongClicksOnThisStep
- manual steps take {"confirm": true}

Each finished step is appended to the record with its own duration.
"""

from datetime import datetime
from typing import Any

from loguru import logger

from ..catalog import ProcedureScenario, ProcedureStepSpec
from ..context import TrainingContext
from ..errors import InvalidInputError
from ..recorder import ProcedureStep
from . import ScenarioType, register
from .base import HandlerResult, require_key


@register(ScenarioType.PROCEDURE)
class ProcedureHandler:
    """Handler for sequential procedure scenarios."""

    def __init__(self, scenario: ProcedureScenario, context: TrainingContext):
        self.scenario = scenario
        self.context = context
        self.step_index = 0
        self.wrong_clicks = 0
        self.step_started: datetime | None = None

    @property
    def current_step(self) -> ProcedureStepSpec | None:
        if self.step_index >= len(self.scenario.steps):
            return None
        return self.scenario.steps[self.step_index]

    def begin(self) -> HandlerResult:
        scenario = self.scenario
        self.context.require_recorder().open(
            scenario.id,
            "procedure",
            scenario.subtype,
            scenario.procedure_key,
            {
                "procedureKey": scenario.procedure_key,
                "objectId": scenario.id,
                "totalSteps": len(scenario.steps),
                "steps": [],
            },
        )
        self.step_started = self.context.clock.now()
        return HandlerResult(object_id=scenario.id, feedback=self._prompt())

    def resume(self, learner_input: dict[str, Any]) -> HandlerResult:
        step = self.current_step
        if step is None:
            raise InvalidInputError("Procedure has no remaining steps")

        key = require_key(learner_input, "target", "confirm")
        if step.validation_type == "manual":
            if key != "confirm" or learner_input["confirm"] is not True:
                raise InvalidInputError(f"Step '{step.step_key}' needs manual confirmation")
            return self._finish_step(step)

        if key != "target" or not isinstance(learner_input["target"], str):
            raise InvalidInputError(f"Step '{step.step_key}' needs a target object id")

        if learner_input["target"] != step.target_object_id:
            self.wrong_clicks += 1
            logger.debug(f"Wrong target '{learner_input['target']}' on {step.step_key}")
            return HandlerResult(
                object_id=self.scenario.id,
                correct=False,
                feedback=f"Wrong object - {self._prompt()}",
            )
        return self._finish_step(step)

    def finalize(self) -> None:
        pass

    def _finish_step(self, step: ProcedureStepSpec) -> HandlerResult:
        now = self.context.clock.now()
        record = ProcedureStep(
            step_number=self.step_index + 1,
            step_key=step.step_key,
            target_object_id=step.target_object_id,
            completed=True,
            duration=(now - self.step_started).total_seconds(),
            wrong_clicks_on_this_step=self.wrong_clicks,
        )
        self.context.require_recorder().append("steps", record.to_dict())

        self.step_index += 1
        self.wrong_clicks = 0
        self.step_started = now

        if self.current_step is None:
            return HandlerResult(
                object_id=self.scenario.id,
                completed=True,
                success=True,
                correct=True,
                feedback="Procedure complete",
            )
        return HandlerResult(object_id=self.scenario.id, correct=True, feedback=self._prompt())

    def _prompt(self) -> str:
        step = self.current_step
        if step is None:
            return ""
        return f"Step {self.step_index + 1}/{len(self.scenario.steps)}: {step.step_key}"
