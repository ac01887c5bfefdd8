"""
Branching dialogue graphs and their step-driven traversal.

A graph is a set of nodes keyed by id:
- start:  entry point, one nextNodeId
- line:   a spoken line, one nextNodeId ("dialogue" is accepted as an alias)
- choice: an ordered list of choices, each with isCorrect and nextNodeId
- end:    terminal

DialogueGraphEngine walks a graph one step at a time. Every step produces a
DialogueEvent, so the host (and the tests) can observe exactly where the
traversal is. Choice nodes suspend the walk until select_choice() is called.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterable

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .errors import (
    BrokenEdgeWarning,
    InvalidChoiceError,
    InvalidTransitionError,
    MissingStartNodeError,
)


# =============================================================================
# Graph Model
# =============================================================================


class NodeType(str, Enum):
    """Dialogue node variants."""
    START = "start"
    LINE = "line"
    CHOICE = "choice"
    END = "end"


NODE_TYPE_ALIASES = {"dialogue": NodeType.LINE.value}


class DialogueChoice(BaseModel):
    """One option offered at a choice node."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str = Field(min_length=1)
    is_correct: bool = False
    next_node_id: str | None = None
    text_key: str | None = None


class DialogueNode(BaseModel):
    """A single node of a dialogue graph."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str = Field(min_length=1)
    type: NodeType
    next_node_id: str | None = None
    choices: list[DialogueChoice] = Field(default_factory=list)
    text_key: str | None = None

    @field_validator("type", mode="before")
    @classmethod
    def _normalize_type(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip().lower()
            return NODE_TYPE_ALIASES.get(value, value)
        return value

    @model_validator(mode="after")
    def _check_choices(self) -> "DialogueNode":
        if self.type == NodeType.CHOICE:
            if not self.choices:
                raise ValueError(f"choice node '{self.id}' has no choices")
            ids = [choice.id for choice in self.choices]
            if len(ids) != len(set(ids)):
                raise ValueError(f"choice node '{self.id}' has duplicate choice ids")
        return self

    @property
    def evaluated(self) -> bool:
        """A choice node is scored only if at least one of its choices is correct."""
        return any(choice.is_correct for choice in self.choices)

    def choice(self, choice_id: str) -> DialogueChoice | None:
        for choice in self.choices:
            if choice.id == choice_id:
                return choice
        return None

    def targets(self) -> list[str | None]:
        """Outgoing edge targets (None for an edge with no target)."""
        if self.type in (NodeType.START, NodeType.LINE):
            return [self.next_node_id]
        if self.type == NodeType.CHOICE:
            return [choice.next_node_id for choice in self.choices]
        return []


@dataclass(frozen=True)
class GraphIssue:
    """A structural problem found when loading a graph. Never fatal by itself."""

    kind: str  # dangling, targets_start, dead_end, no_end, no_start
    node_id: str | None
    target_id: str | None = None

    def describe(self) -> str:
        if self.kind == "dangling":
            return f"{self.node_id} -> {self.target_id}: dangling reference"
        if self.kind == "targets_start":
            return f"{self.node_id} -> {self.target_id}: edge targets the start node"
        if self.kind == "dead_end":
            return f"{self.node_id}: no path to an end node"
        if self.kind == "no_end":
            return "graph has no end node"
        return f"no usable start node ({self.target_id})"


class DialogueGraph:
    """
    Nodes keyed by id plus start-node resolution and structural validation.

    Duplicate node ids keep the first occurrence; the catalog loader rejects
    such graphs before they get here.
    """

    def __init__(
        self,
        nodes: Iterable[DialogueNode],
        start_node_id: str | None = None,
        dialogue_key: str = "dialogue",
    ):
        self.dialogue_key = dialogue_key
        self.start_node_id = start_node_id
        self.nodes: dict[str, DialogueNode] = {}
        for node in nodes:
            self.nodes.setdefault(node.id, node)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self.nodes

    def __len__(self) -> int:
        return len(self.nodes)

    def get(self, node_id: str | None) -> DialogueNode | None:
        if node_id is None:
            return None
        return self.nodes.get(node_id)

    @property
    def choice_node_count(self) -> int:
        return sum(1 for node in self.nodes.values() if node.type == NodeType.CHOICE)

    def resolve_start(self) -> DialogueNode:
        """
        Find the node traversal begins at.

        An explicit start_node_id wins. Otherwise exactly one node of type
        start must exist.

        Raises:
            MissingStartNodeError: No start node, several start nodes, or an
                explicit start id that names no node.
        """
        if self.start_node_id:
            node = self.nodes.get(self.start_node_id)
            if node is None:
                raise MissingStartNodeError(
                    self.dialogue_key, f"start node '{self.start_node_id}' not found"
                )
            return node

        starts = [node for node in self.nodes.values() if node.type == NodeType.START]
        if not starts:
            raise MissingStartNodeError(self.dialogue_key)
        if len(starts) > 1:
            raise MissingStartNodeError(
                self.dialogue_key, f"{len(starts)} start nodes and no startNodeId"
            )
        return starts[0]

    def validate(self) -> list[GraphIssue]:
        """Return every structural issue in the graph (empty list when clean)."""
        issues: list[GraphIssue] = []

        try:
            start_id: str | None = self.resolve_start().id
        except MissingStartNodeError as e:
            issues.append(GraphIssue("no_start", None, e.reason))
            start_id = None

        for node in self.nodes.values():
            for target in node.targets():
                if target is None or target not in self.nodes:
                    issues.append(GraphIssue("dangling", node.id, target))
                elif target == start_id:
                    issues.append(GraphIssue("targets_start", node.id, target))

        ends = [node_id for node_id, node in self.nodes.items() if node.type == NodeType.END]
        if not ends:
            issues.append(GraphIssue("no_end", None))
            return issues

        # Walk edges backwards from the end nodes
        predecessors: dict[str, set[str]] = {node_id: set() for node_id in self.nodes}
        for node in self.nodes.values():
            for target in node.targets():
                if target in predecessors:
                    predecessors[target].add(node.id)

        can_finish = set(ends)
        queue = deque(ends)
        while queue:
            for source in predecessors[queue.popleft()]:
                if source not in can_finish:
                    can_finish.add(source)
                    queue.append(source)

        for node_id in self.nodes:
            if node_id not in can_finish:
                issues.append(GraphIssue("dead_end", node_id))

        return issues


# =============================================================================
# Traversal
# =============================================================================


class TraversalState(str, Enum):
    """Where a DialogueGraphEngine is in its walk."""
    NOT_STARTED = "not_started"
    RUNNING = "running"
    AWAITING_CHOICE = "awaiting_choice"
    COMPLETED = "completed"
    HALTED = "halted"


class DialogueEventKind(str, Enum):
    ADVANCED = "advanced"
    AWAITING_CHOICE = "awaiting_choice"
    COMPLETED = "completed"
    HALTED = "halted"


@dataclass(frozen=True)
class DialogueEvent:
    """One observable traversal step."""

    kind: DialogueEventKind
    node_id: str
    warning: BrokenEdgeWarning | None = None


@dataclass(frozen=True)
class ChoiceSelection:
    """A learner's pick at a choice node."""

    node_id: str
    choice_id: str
    is_correct: bool
    evaluated: bool
    first_selection: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "nodeId": self.node_id,
            "choiceId": self.choice_id,
            "isCorrect": self.is_correct,
            "evaluated": self.evaluated,
            "firstSelection": self.first_selection,
        }


class DialogueGraphEngine:
    """
    Step-driven walker over a DialogueGraph.

    Usage:
        engine = DialogueGraphEngine(graph)
        event = engine.run()                 # walks start/line nodes
        if event.kind == DialogueEventKind.AWAITING_CHOICE:
            engine.select_choice("c1")
            event = engine.run()

    Revisiting a choice node is allowed; only the first selection made at
    each node counts toward scoring.
    """

    def __init__(
        self,
        graph: DialogueGraph,
        on_event: Callable[[DialogueEvent], None] | None = None,
    ):
        self.graph = graph
        self.on_event = on_event
        self.state = TraversalState.NOT_STARTED
        self.current_node_id: str | None = None
        self.start_id: str | None = None
        self.events: list[DialogueEvent] = []
        self.selections: list[ChoiceSelection] = []
        self.first_selections: dict[str, ChoiceSelection] = {}
        self.warning: BrokenEdgeWarning | None = None

    # ─── Properties ─────────────────────────────────────────────────────────

    @property
    def reached_end(self) -> bool:
        return self.state == TraversalState.COMPLETED

    @property
    def halted(self) -> bool:
        return self.state == TraversalState.HALTED

    @property
    def current_node(self) -> DialogueNode | None:
        return self.graph.get(self.current_node_id)

    @property
    def critical_path_correct(self) -> bool:
        """True when every first selection at an evaluated node was correct."""
        return all(
            selection.is_correct
            for selection in self.first_selections.values()
            if selection.evaluated
        )

    # ─── Operations ─────────────────────────────────────────────────────────

    def enter_graph(self) -> DialogueEvent:
        """
        Position the walk on the start node.

        Raises:
            MissingStartNodeError: The graph has no usable start node.
            InvalidTransitionError: The graph was already entered.
        """
        if self.state != TraversalState.NOT_STARTED:
            raise InvalidTransitionError("enter graph", self.state.value)

        start = self.graph.resolve_start()
        self.start_id = start.id
        self.current_node_id = start.id
        self.state = TraversalState.RUNNING
        logger.debug(f"Dialogue '{self.graph.dialogue_key}' entered at '{start.id}'")
        return self._emit(DialogueEventKind.ADVANCED, start.id)

    def advance_from(self, node_id: str) -> DialogueEvent:
        """
        Take one step out of the current node.

        start/line nodes move to their nextNodeId, a choice node suspends the
        walk, and an end node completes it.
        """
        if self.state != TraversalState.RUNNING:
            raise InvalidTransitionError(f"advance from '{node_id}'", self.state.value)
        if node_id != self.current_node_id:
            raise InvalidTransitionError(
                f"advance from '{node_id}'", f"at node '{self.current_node_id}'"
            )

        node = self.graph.get(node_id)
        if node is None:
            return self._halt(node_id, node_id, "node missing")

        if node.type == NodeType.END:
            self.state = TraversalState.COMPLETED
            logger.debug(f"Dialogue '{self.graph.dialogue_key}' reached end '{node.id}'")
            return self._emit(DialogueEventKind.COMPLETED, node.id)

        if node.type == NodeType.CHOICE:
            self.state = TraversalState.AWAITING_CHOICE
            return self._emit(DialogueEventKind.AWAITING_CHOICE, node.id)

        return self._move(node, node.next_node_id)

    def select_choice(self, choice_id: str) -> DialogueEvent:
        """
        Resolve the pending choice node.

        Raises:
            InvalidTransitionError: The walk is not waiting for a choice.
            InvalidChoiceError: choice_id is not offered at the current node.
        """
        if self.state != TraversalState.AWAITING_CHOICE:
            raise InvalidTransitionError(f"select choice '{choice_id}'", self.state.value)

        node = self.current_node
        choice = node.choice(choice_id) if node else None
        if node is None or choice is None:
            raise InvalidChoiceError(self.current_node_id, choice_id)

        first = node.id not in self.first_selections
        selection = ChoiceSelection(
            node_id=node.id,
            choice_id=choice.id,
            is_correct=choice.is_correct,
            evaluated=node.evaluated,
            first_selection=first,
        )
        self.selections.append(selection)
        if first:
            self.first_selections[node.id] = selection

        self.state = TraversalState.RUNNING
        return self._move(node, choice.next_node_id)

    def run(self) -> DialogueEvent:
        """
        Walk until the graph suspends on a choice, completes, or halts.

        A start/line cycle that never passes through a choice node would
        spin forever, so revisiting a line node within one run halts the walk.
        """
        if self.state == TraversalState.NOT_STARTED:
            self.enter_graph()
        if self.state != TraversalState.RUNNING:
            return self.events[-1]

        visited: set[str] = set()
        event = self.events[-1]
        while self.state == TraversalState.RUNNING:
            node_id = self.current_node_id
            if node_id in visited:
                return self._halt(node_id, node_id, "cycle without a choice")
            visited.add(node_id)
            event = self.advance_from(node_id)
        return event

    # ─── Internals ──────────────────────────────────────────────────────────

    def _move(self, node: DialogueNode, target_id: str | None) -> DialogueEvent:
        if target_id is None or target_id not in self.graph:
            return self._halt(node.id, target_id, "dangling reference")
        if target_id == self.start_id:
            return self._halt(node.id, target_id, "edge targets the start node")

        self.current_node_id = target_id
        return self._emit(DialogueEventKind.ADVANCED, target_id)

    def _halt(self, node_id: str, target_id: str | None, reason: str) -> DialogueEvent:
        self.warning = BrokenEdgeWarning(node_id, target_id, reason)
        self.state = TraversalState.HALTED
        logger.warning(f"Dialogue '{self.graph.dialogue_key}' halted: {self.warning}")
        return self._emit(DialogueEventKind.HALTED, node_id, self.warning)

    def _emit(
        self,
        kind: DialogueEventKind,
        node_id: str,
        warning: BrokenEdgeWarning | None = None,
    ) -> DialogueEvent:
        event = DialogueEvent(kind=kind, node_id=node_id, warning=warning)
        self.events.append(event)
        if self.on_event is not None:
            self.on_event(event)
        return event
