"""
Explicit training context.

Everything a component needs (settings, clock, sink, and, once a session
starts, the session and its recorder) travels in one TrainingContext passed
to constructors. There are no module-level singletons in the core.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from config import Settings, get_settings

from .clock import Clock, SystemClock
from .sinks import CompletionSink, JsonFileSink

if TYPE_CHECKING:
    from .recorder import InteractionRecorder
    from .session import Session


@dataclass
class TrainingContext:
    settings: Settings
    clock: Clock
    sink: CompletionSink
    session: "Session | None" = None
    recorder: "InteractionRecorder | None" = None

    @classmethod
    def create(
        cls,
        settings: Settings | None = None,
        clock: Clock | None = None,
        sink: CompletionSink | None = None,
    ) -> "TrainingContext":
        """Build a context, filling gaps from configuration."""
        settings = settings or get_settings()
        return cls(
            settings=settings,
            clock=clock or SystemClock(),
            sink=sink or JsonFileSink(settings.export_dir),
        )

    def require_recorder(self) -> "InteractionRecorder":
        if self.recorder is None:
            raise RuntimeError("No session has been started on this context")
        return self.recorder
