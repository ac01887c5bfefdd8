"""
Completion sinks: where finished session documents go.

File Structure (JsonFileSink):
    outputs/analytics/
        2025-12-07_session_<sessionId>.json   # One document per session

The core only talks to the CompletionSink protocol; hosts plug in whatever
transport they need (file, memory, platform upload).
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Protocol

from loguru import logger


class CompletionSink(Protocol):
    """Receives the analytics document at the end of a session."""

    def deliver(self, document: dict[str, Any], payload: str) -> None:
        """Accept the document and its serialized JSON payload."""
        ...

    def training_completed(self, training_id: str) -> None:
        """Signal that every scenario of the training was completed."""
        ...


class JsonFileSink:
    """Writes each session document to its own JSON file."""

    def __init__(self, export_dir: str | Path):
        self.export_dir = Path(export_dir)
        self.last_path: Path | None = None

    def path_for(self, document: dict[str, Any]) -> Path:
        date_str = str(document.get("startTime", ""))[:10] or "undated"
        return self.export_dir / f"{date_str}_session_{document['sessionId']}.json"

    def deliver(self, document: dict[str, Any], payload: str) -> None:
        self.export_dir.mkdir(parents=True, exist_ok=True)
        filepath = self.path_for(document)
        with open(filepath, "w", encoding="utf-8") as f:
            f.write(payload)
        self.last_path = filepath
        logger.info(f"Analytics written to {filepath}")

    def training_completed(self, training_id: str) -> None:
        logger.info(f"Training '{training_id}' completed")


class MemorySink:
    """Keeps delivered documents in memory (embedding hosts and tests)."""

    def __init__(self):
        self.documents: list[dict[str, Any]] = []
        self.payloads: list[str] = []
        self.completed_trainings: list[str] = []

    @property
    def last_document(self) -> dict[str, Any] | None:
        return self.documents[-1] if self.documents else None

    def deliver(self, document: dict[str, Any], payload: str) -> None:
        self.documents.append(document)
        self.payloads.append(payload)

    def training_completed(self, training_id: str) -> None:
        self.completed_trainings.append(training_id)
