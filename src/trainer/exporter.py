"""
Analytics document assembly and serialization.

Document shape (field-exact):
    {sessionId, trainingId, startTime, endTime, totalDuration,
     completionStatus, interactions[], summary}

The exporter only reads the session and the scores it is handed; scoring
happens in ScoreAggregator before export. A failed serialization raises
SerializationError and leaves the session untouched, so the caller can
retry after fixing whatever non-serializable value slipped into a record.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Sequence

from loguru import logger

from .clock import Clock, format_timestamp
from .errors import SerializationError
from .scoring import ScoredInteraction, SessionSummary

if TYPE_CHECKING:
    from .session import Session


@dataclass
class ExportResult:
    """A built document plus its JSON payload."""

    document: dict[str, Any]
    payload: str
    summary: SessionSummary


class AnalyticsExporter:
    """Builds and serializes the per-session analytics document."""

    def __init__(self, clock: Clock, indent: int | None = 2):
        self.clock = clock
        self.indent = indent

    def build_document(
        self,
        session: "Session",
        scored: Sequence[ScoredInteraction],
        summary: SessionSummary,
    ) -> dict[str, Any]:
        """
        Assemble the document from a session and its aggregated scores.

        A session still in progress is exported with endTime set to now.
        """
        end_time = session.end_time or self.clock.now()
        return {
            "sessionId": session.session_id,
            "trainingId": session.training_id,
            "startTime": format_timestamp(session.start_time),
            "endTime": format_timestamp(end_time),
            "totalDuration": round((end_time - session.start_time).total_seconds(), 3),
            "completionStatus": session.status.value,
            "interactions": [item.to_dict() for item in scored],
            "summary": summary.to_dict(),
        }

    def serialize(self, document: dict[str, Any]) -> str:
        """
        Serialize a document to JSON.

        Raises:
            SerializationError: A value is not JSON-serializable (or is NaN/inf).
        """
        try:
            return json.dumps(document, indent=self.indent, ensure_ascii=False, allow_nan=False)
        except (TypeError, ValueError) as e:
            logger.error(f"Export of session {document.get('sessionId')} failed: {e}")
            raise SerializationError(str(e)) from e

    def export(
        self,
        session: "Session",
        scored: Sequence[ScoredInteraction],
        summary: SessionSummary,
    ) -> ExportResult:
        document = self.build_document(session, scored, summary)
        payload = self.serialize(document)
        logger.debug(
            f"Exported session {session.session_id}: "
            f"{summary.total_interactions} interactions, score={summary.score:.1f}"
        )
        return ExportResult(document=document, payload=payload, summary=summary)
