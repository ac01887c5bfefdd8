"""
Scenario Trainer: sequencing, recording and scoring of training sessions.

Components:
- ScenarioProgressionEngine: ordered, no-skip, no-regress progression
- DialogueGraphEngine: step-driven traversal of branching dialogues
- InteractionRecorder: one open interaction at a time, replay-proof closes
- ScoreAggregator / AnalyticsExporter: deterministic scores, stable document
"""

from .catalog import ScenarioCatalog, load_catalog, load_catalog_file
from .clock import SystemClock, TickClock
from .context import TrainingContext
from .dialogue_graph import DialogueGraph, DialogueGraphEngine
from .exporter import AnalyticsExporter
from .recorder import InteractionRecorder
from .scoring import ScoreAggregator
from .session import EngineState, ScenarioProgressionEngine, Session, SessionStatus
from .sinks import JsonFileSink, MemorySink

__all__ = [
    "AnalyticsExporter",
    "DialogueGraph",
    "DialogueGraphEngine",
    "EngineState",
    "InteractionRecorder",
    "JsonFileSink",
    "MemorySink",
    "ScenarioCatalog",
    "ScenarioProgressionEngine",
    "ScoreAggregator",
    "Session",
    "SessionStatus",
    "SystemClock",
    "TickClock",
    "TrainingContext",
    "load_catalog",
    "load_catalog_file",
]
