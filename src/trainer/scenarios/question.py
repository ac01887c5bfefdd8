"""
Question scenario handler.

- Learner submits one full answer set per attempt: {"answers": [1, 3]}
  ({"answer": 2} is shorthand for a single choice).
- A correct set completes the scenario; a wrong one may be retried until
  question_max_attempts is reached, then the scenario closes as failed.
- Every attempt is kept in userAnswers; scoring only looks at the first.
"""

from typing import Any

from ..catalog import QuestionScenario
from ..context import TrainingContext
from ..errors import InvalidInputError
from . import ScenarioType, register
from .base import HandlerResult, require_key


def _parse_answers(learner_input: dict[str, Any]) -> list[int]:
    key = require_key(learner_input, "answers", "answer")
    raw = learner_input[key]
    answers = raw if key == "answers" else [raw]
    if not isinstance(answers, list) or not answers:
        raise InvalidInputError("answers must be a non-empty list of option indices")
    for index in answers:
        if isinstance(index, bool) or not isinstance(index, int) or index < 0:
            raise InvalidInputError(f"Invalid option index: {index!r}")
    return list(answers)


@register(ScenarioType.QUESTION)
class QuestionHandler:
    """Handler for question scenarios."""

    def __init__(self, scenario: QuestionScenario, context: TrainingContext):
        self.scenario = scenario
        self.context = context
        self.max_attempts = context.settings.question_max_attempts

    @property
    def option_limit(self) -> int | None:
        if self.scenario.question_type == "true_false":
            return 2
        return self.scenario.option_count

    def begin(self) -> HandlerResult:
        scenario = self.scenario
        self.context.require_recorder().open(
            scenario.id,
            "question",
            scenario.subtype,
            scenario.question_key,
            {
                "questionKey": scenario.question_key,
                "objectId": scenario.id,
                "correctAnswers": list(scenario.correct_answers),
                "userAnswers": [],
            },
        )
        return HandlerResult(object_id=scenario.id)

    def resume(self, learner_input: dict[str, Any]) -> HandlerResult:
        answers = _parse_answers(learner_input)
        limit = self.option_limit
        if limit is not None and any(index >= limit for index in answers):
            raise InvalidInputError(f"Option index out of range (options: {limit})")

        attempt = self.context.require_recorder().record_attempt("userAnswers", answers)
        correct = set(answers) == set(self.scenario.correct_answers)

        if correct:
            return HandlerResult(
                object_id=self.scenario.id,
                completed=True,
                success=True,
                correct=True,
                feedback="Correct",
            )

        remaining = self.max_attempts - attempt
        if remaining <= 0:
            return HandlerResult(
                object_id=self.scenario.id,
                completed=True,
                success=False,
                correct=False,
                feedback="Incorrect - no attempts left",
            )
        return HandlerResult(
            object_id=self.scenario.id,
            correct=False,
            feedback=f"Incorrect - {remaining} attempt{'s' if remaining != 1 else ''} left",
        )

    def finalize(self) -> None:
        pass
