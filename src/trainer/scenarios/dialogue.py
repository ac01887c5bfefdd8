"""
Dialogue scenario handler.

Wraps a DialogueGraphEngine: start/line nodes advance on their own, choice
nodes wait for {"choice": "<choiceId>"}. Every selection counts as an
attempt and is kept in the record's choices list.

Reaching an end node completes with success. A dangling or start-targeting
edge halts the walk and completes with success=False plus a
BrokenEdgeWarning; the session carries on with the next scenario.
"""

from typing import Any

from ..catalog import DialogueScenario
from ..context import TrainingContext
from ..dialogue_graph import DialogueEvent, DialogueEventKind, DialogueGraphEngine
from ..errors import InvalidInputError
from . import ScenarioType, register
from .base import HandlerResult, require_key


@register(ScenarioType.DIALOGUE)
class DialogueHandler:
    """Handler for branching dialogue scenarios."""

    def __init__(self, scenario: DialogueScenario, context: TrainingContext):
        self.scenario = scenario
        self.context = context
        self.graph = scenario.graph()
        self.engine = DialogueGraphEngine(self.graph)

    def begin(self) -> HandlerResult:
        """
        Open the interaction and walk to the first choice (or the end).

        Raises:
            MissingStartNodeError: The graph has no usable start node. The
                interaction is already open and is left for the caller to close.
        """
        scenario = self.scenario
        self.context.require_recorder().open(
            scenario.id,
            "dialogue",
            scenario.subtype,
            scenario.dialogue_key,
            {
                "dialogueKey": scenario.dialogue_key,
                "objectId": scenario.id,
                "totalChoiceNodes": self.graph.choice_node_count,
                "choices": [],
                "reachedEnd": False,
                "brokenEdge": False,
            },
        )
        return self._result(self.engine.run())

    def resume(self, learner_input: dict[str, Any]) -> HandlerResult:
        require_key(learner_input, "choice")
        choice_id = learner_input["choice"]
        if not isinstance(choice_id, str):
            raise InvalidInputError(f"choice must be a choice id, got {choice_id!r}")

        self.engine.select_choice(choice_id)
        selection = self.engine.selections[-1]
        self.context.require_recorder().record_attempt("choices", selection.to_dict())
        return self._result(self.engine.run(), correct=selection.is_correct)

    def finalize(self) -> None:
        pass

    def _result(self, event: DialogueEvent, correct: bool | None = None) -> HandlerResult:
        recorder = self.context.require_recorder()

        if event.kind == DialogueEventKind.COMPLETED:
            recorder.set_data(reachedEnd=True)
            return HandlerResult(
                object_id=self.scenario.id,
                completed=True,
                success=True,
                correct=correct,
                feedback="Dialogue complete",
            )

        if event.kind == DialogueEventKind.HALTED:
            recorder.set_data(brokenEdge=True)
            return HandlerResult(
                object_id=self.scenario.id,
                completed=True,
                success=False,
                correct=correct,
                feedback=f"Dialogue stopped at '{event.node_id}'",
                warning=event.warning,
            )

        return HandlerResult(
            object_id=self.scenario.id,
            correct=correct,
            feedback=f"Awaiting choice at '{event.node_id}'",
        )
