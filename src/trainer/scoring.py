"""
Score aggregation over closed interaction records.

Per-type rules:
- Question:  100 iff the first attempt's answer set equals the correct set
- Procedure: 100 iff no wrong clicks on any step (perfectCompletion)
- Dialogue:  100 iff the end was reached and every first selection at an
             evaluated choice node was correct
- Text:      100 always

Scoring is binary and based on the first attempt only; later attempts are
kept in the record for review but earn no partial credit.

Nothing here mutates a record. The scored data block is a new dict.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable

from .recorder import InteractionRecord


@dataclass
class SessionSummary:
    """Session-level aggregate."""

    total_interactions: int
    successful_interactions: int
    failed_interactions: int
    average_time_per_interaction: float
    total_attempts: int
    total_failed_attempts: int
    success_rate: float  # 0-100
    score: float  # 0-100

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "totalInteractions": self.total_interactions,
            "successfulInteractions": self.successful_interactions,
            "failedInteractions": self.failed_interactions,
            "averageTimePerInteraction": round(self.average_time_per_interaction, 3),
            "totalAttempts": self.total_attempts,
            "totalFailedAttempts": self.total_failed_attempts,
            "successRate": round(self.success_rate, 2),
            "score": round(self.score, 2),
        }


@dataclass
class ScoredInteraction:
    record: InteractionRecord
    data: dict[str, Any]

    @property
    def final_score(self) -> int:
        return self.data["finalScore"]

    def to_dict(self) -> dict[str, Any]:
        return self.record.to_dict(self.data)


class ScoreAggregator:
    """
    Derives per-interaction scores and the session summary.

    All methods are pure: same records in, same numbers out.
    """

    FULL_SCORE = 100
    ZERO_SCORE = 0

    def score(self, record: InteractionRecord) -> ScoredInteraction:
        """Return the record's data block with its derived score fields."""
        scorer = {
            "question": self.score_question,
            "procedure": self.score_procedure,
            "dialogue": self.score_dialogue,
            "text": self.score_text,
        }.get(record.type)
        if scorer is None:
            raise ValueError(f"No scoring rule for interaction type '{record.type}'")
        return ScoredInteraction(record, scorer(record))

    def score_question(self, record: InteractionRecord) -> dict[str, Any]:
        data = dict(record.data)
        correct = set(data.get("correctAnswers", []))
        answers = data.get("userAnswers") or []
        first_correct = bool(answers) and set(answers[0]) == correct
        data["firstAttemptCorrect"] = first_correct
        data["finalScore"] = self.FULL_SCORE if first_correct else self.ZERO_SCORE
        return data

    def score_procedure(self, record: InteractionRecord) -> dict[str, Any]:
        data = dict(record.data)
        steps = data.get("steps", [])
        wrong_clicks = sum(step["wrongClicksOnThisStep"] for step in steps)
        # A procedure force-closed as failed never counts as perfect
        perfect = wrong_clicks == 0 and record.success
        data["totalSteps"] = data.get("totalSteps", len(steps))
        data["totalWrongClicks"] = wrong_clicks
        data["totalDuration"] = round(sum(step["duration"] for step in steps), 3)
        data["perfectCompletion"] = perfect
        data["perfectStepsCount"] = sum(
            1 for step in steps if step["completed"] and step["wrongClicksOnThisStep"] == 0
        )
        data["finalScore"] = self.FULL_SCORE if perfect else self.ZERO_SCORE
        return data

    def score_dialogue(self, record: InteractionRecord) -> dict[str, Any]:
        data = dict(record.data)
        first_evaluated = [
            choice for choice in data.get("choices", [])
            if choice["firstSelection"] and choice["evaluated"]
        ]
        path_correct = all(choice["isCorrect"] for choice in first_evaluated)
        reached_end = bool(data.get("reachedEnd")) and not data.get("brokenEdge")
        data["criticalPathCorrect"] = path_correct
        data["finalScore"] = self.FULL_SCORE if path_correct and reached_end else self.ZERO_SCORE
        return data

    def score_text(self, record: InteractionRecord) -> dict[str, Any]:
        data = dict(record.data)
        data["finalScore"] = self.FULL_SCORE
        return data

    def summarize(self, scored: Iterable[ScoredInteraction]) -> SessionSummary:
        """
        Aggregate scored interactions into a SessionSummary.

        An empty session scores 0 across the board.
        """
        scored = list(scored)
        total = len(scored)
        if total == 0:
            return SessionSummary(0, 0, 0, 0.0, 0, 0, 0.0, 0.0)

        records = [item.record for item in scored]
        successful = sum(1 for record in records if record.success)
        return SessionSummary(
            total_interactions=total,
            successful_interactions=successful,
            failed_interactions=total - successful,
            average_time_per_interaction=sum(record.duration for record in records) / total,
            total_attempts=sum(record.attempts for record in records),
            total_failed_attempts=sum(
                max(record.attempts - 1, 0) for record in records if not record.success
            ),
            success_rate=successful / total * 100,
            score=sum(item.final_score for item in scored) / total,
        )

    def aggregate(self, records: Iterable[InteractionRecord]) -> tuple[list[ScoredInteraction], SessionSummary]:
        """Score every record and summarize the lot."""
        scored = [self.score(record) for record in records]
        return scored, self.summarize(scored)
