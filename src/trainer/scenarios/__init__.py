"""
Scenario type handlers for training sessions.

Each scenario type (question, procedure, text, dialogue) has its own module with:
- begin(): Open the interaction and present the scenario
- resume(): Feed one learner input and report whether the scenario finished
"""

from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..catalog import ScenarioDescriptor
    from ..context import TrainingContext
    from .base import ScenarioHandler


class ScenarioType(str, Enum):
    """Supported scenario types."""
    QUESTION = "question"
    PROCEDURE = "procedure"
    TEXT = "text"
    DIALOGUE = "dialogue"


# Handler registry - populated by @register decorator
HANDLERS: dict[ScenarioType, type] = {}


def register(scenario_type: ScenarioType):
    """Decorator to register a scenario handler class."""
    def decorator(cls):
        HANDLERS[scenario_type] = cls
        return cls
    return decorator


def get_handler_class(scenario_type: str | ScenarioType) -> type | None:
    """Get the handler class for a scenario type."""
    if isinstance(scenario_type, str):
        try:
            scenario_type = ScenarioType(scenario_type.lower())
        except ValueError:
            return None
    return HANDLERS.get(scenario_type)


def create_handler(scenario: "ScenarioDescriptor", context: "TrainingContext") -> "ScenarioHandler":
    """Instantiate a fresh handler for one run of a scenario."""
    handler_cls = get_handler_class(scenario.type)
    if handler_cls is None:
        raise ValueError(f"No handler registered for scenario type '{scenario.type}'")
    return handler_cls(scenario, context)


# Import handlers to trigger registration
from . import question
from . import procedure
from . import text
from . import dialogue

__all__ = [
    "ScenarioType",
    "HANDLERS",
    "create_handler",
    "get_handler_class",
    "register",
]
