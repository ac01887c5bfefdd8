"""
Exception and warning taxonomy for the trainer core.

Exceptions are raised for conditions the caller must handle:
- fatal-to-scenario: EmptyCatalogError, MissingStartNodeError
- programming/state errors: InvalidTransitionError, InvalidInputError,
  InvalidChoiceError, SessionFrozenError, CatalogLoadError
- transient: SerializationError (session preserved for retry)

Warnings are *returned* (and logged), never raised. They describe signals
the core rejected or degraded without stopping the session.
"""

from __future__ import annotations


class TrainerError(Exception):
    """Base class for all trainer errors."""


class CatalogLoadError(TrainerError):
    """The catalog source could not be read or is not a list of scenarios."""


class EmptyCatalogError(TrainerError):
    """A session was started with zero scenarios."""


class MissingStartNodeError(TrainerError):
    """A dialogue graph has no usable start node."""

    def __init__(self, dialogue_key: str, reason: str = "no start node"):
        self.dialogue_key = dialogue_key
        self.reason = reason
        super().__init__(f"Dialogue '{dialogue_key}': {reason}")


class InvalidTransitionError(TrainerError):
    """An operation was called in a state that does not allow it."""

    def __init__(self, operation: str, state: str):
        self.operation = operation
        self.state = state
        super().__init__(f"Cannot {operation} in state {state}")


class InvalidInputError(TrainerError):
    """Learner input does not fit the active scenario."""


class InvalidChoiceError(InvalidInputError):
    """A choice id does not belong to the current choice node."""

    def __init__(self, node_id: str | None, choice_id: str):
        self.node_id = node_id
        self.choice_id = choice_id
        super().__init__(f"Choice '{choice_id}' is not offered at node '{node_id}'")


class SessionFrozenError(TrainerError):
    """A terminal session was mutated."""


class SerializationError(TrainerError):
    """The analytics document could not be serialized."""


# =============================================================================
# Warnings (returned, not raised)
# =============================================================================


class TrainerWarning(UserWarning):
    """Base class for non-fatal conditions reported to the caller."""


class DuplicateCompletionWarning(TrainerWarning):
    """A completion signal arrived for an object that already closed."""

    def __init__(self, object_id: str):
        self.object_id = object_id
        super().__init__(f"Object '{object_id}' already completed; signal ignored")


class ScenarioMismatchWarning(TrainerWarning):
    """A completion signal named an object other than the active scenario."""

    def __init__(self, object_id: str, expected_id: str | None):
        self.object_id = object_id
        self.expected_id = expected_id
        super().__init__(
            f"Completion for '{object_id}' does not match active scenario '{expected_id}'"
        )


class BrokenEdgeWarning(TrainerWarning):
    """Dialogue traversal halted on a dangling or start-targeting edge."""

    def __init__(self, node_id: str, target_id: str | None, reason: str = "dangling reference"):
        self.node_id = node_id
        self.target_id = target_id
        self.reason = reason
        super().__init__(f"Edge {node_id} -> {target_id}: {reason}")
