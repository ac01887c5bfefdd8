"""
Base protocol and types for scenario handlers.
"""

from dataclasses import dataclass
from typing import Any, Protocol

from ..errors import InvalidInputError, TrainerWarning


@dataclass
class HandlerResult:
    """Result of one handler step (begin or resume)."""
    object_id: str
    completed: bool = False
    success: bool = False
    correct: bool | None = None  # None when the step was not graded
    feedback: str = ""
    warning: TrainerWarning | None = None


def require_key(learner_input: Any, *keys: str) -> str:
    """Return the first of `keys` present in the input dict."""
    if not isinstance(learner_input, dict):
        raise InvalidInputError(f"Learner input must be an object, got {type(learner_input).__name__}")
    for key in keys:
        if key in learner_input:
            return key
    raise InvalidInputError(f"Learner input needs one of: {', '.join(keys)}")


class ScenarioHandler(Protocol):
    """Protocol for scenario type handlers."""

    def begin(self) -> HandlerResult:
        """Open the interaction. May complete immediately (e.g. a linear dialogue)."""
        ...

    def resume(self, learner_input: dict[str, Any]) -> HandlerResult:
        """Apply one learner input. Raises InvalidInputError for malformed input."""
        ...

    def finalize(self) -> None:
        """Fill derived data fields just before the interaction closes."""
        ...
