"""
Text scenario handler.

Informational content: {"scroll": 0-100} reports scroll depth (the maximum
is kept), {"close": true} finishes. Always completes with success.
"""

from typing import Any

from ..catalog import TextScenario
from ..context import TrainingContext
from ..errors import InvalidInputError
from . import ScenarioType, register
from .base import HandlerResult, require_key


@register(ScenarioType.TEXT)
class TextHandler:
    """Handler for informative text scenarios."""

    def __init__(self, scenario: TextScenario, context: TrainingContext):
        self.scenario = scenario
        self.context = context
        self.max_scroll = 0.0

    def begin(self) -> HandlerResult:
        scenario = self.scenario
        self.context.require_recorder().open(
            scenario.id,
            "text",
            scenario.subtype,
            scenario.content_key,
            {
                "contentKey": scenario.content_key,
                "objectId": scenario.id,
                "scrollPercentage": 0.0,
            },
        )
        return HandlerResult(object_id=scenario.id)

    def resume(self, learner_input: dict[str, Any]) -> HandlerResult:
        key = require_key(learner_input, "scroll", "close")
        recorder = self.context.require_recorder()

        if key == "scroll":
            value = learner_input["scroll"]
            if isinstance(value, bool) or not isinstance(value, (int, float)) or not 0 <= value <= 100:
                raise InvalidInputError(f"scroll must be a percentage between 0 and 100, got {value!r}")
            self.max_scroll = max(self.max_scroll, float(value))
            recorder.set_data(scrollPercentage=self.max_scroll)
            return HandlerResult(object_id=self.scenario.id)

        if learner_input["close"] is not True:
            raise InvalidInputError("close must be true")
        return HandlerResult(object_id=self.scenario.id, completed=True, success=True)

    def finalize(self) -> None:
        """Record reading time and readComplete, however the scenario was completed."""
        settings = self.context.settings
        recorder = self.context.require_recorder()
        displayed = recorder.elapsed()
        read_complete = (
            displayed >= settings.text_read_min_seconds
            or self.max_scroll >= settings.text_read_scroll_percent
        )
        recorder.set_data(
            timeDisplayed=round(displayed, 3),
            readComplete=read_complete,
            scrollPercentage=self.max_scroll,
        )
