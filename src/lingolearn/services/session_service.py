"""Per-session answer counting."""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from lingolearn.exceptions import InvalidStateError, SessionFinalizedError
from lingolearn.models.learning_models import AnswerOutcome, SessionMode

logger = logging.getLogger(__name__)


def accuracy_of(known_count: int, total_reviewed: int) -> float:
    """Share of known answers; 0 for an empty session."""
    return known_count / total_reviewed if total_reviewed > 0 else 0.0


def words_per_minute_of(total_reviewed: int, elapsed_seconds: float) -> float:
    """Answer rate; 0 when no time has passed."""
    return total_reviewed / (elapsed_seconds / 60) if elapsed_seconds > 0 else 0.0


@dataclass(frozen=True)
class SessionStats:
    """Read-only summary of a finished session."""
    mode: SessionMode
    started_at: datetime
    finished_at: datetime
    total_reviewed: int
    known_count: int
    unknown_count: int
    duration_seconds: float

    @property
    def accuracy(self) -> float:
        return accuracy_of(self.known_count, self.total_reviewed)

    @property
    def words_per_minute(self) -> float:
        return words_per_minute_of(self.total_reviewed, self.duration_seconds)

    @property
    def is_perfect(self) -> bool:
        return self.total_reviewed > 0 and self.unknown_count == 0


class SessionAggregator:
    """Running counts for one learning or review session.

    Only touches its own fields; word records and daily totals are updated
    by whoever drives the session.
    """

    def __init__(self, mode: SessionMode, started_at: datetime):
        self.mode = mode
        self.started_at = started_at
        self.total_reviewed = 0
        self.known_count = 0
        self.unknown_count = 0
        self._summary: Optional[SessionStats] = None

    @property
    def is_finalized(self) -> bool:
        return self._summary is not None

    def _ensure_open(self) -> None:
        if self.is_finalized:
            raise SessionFinalizedError("Session already finalized")

    def record_answer(self, outcome: AnswerOutcome) -> None:
        """Count one answer."""
        self._ensure_open()
        self.total_reviewed += 1
        if outcome.is_correct:
            self.known_count += 1
        else:
            self.unknown_count += 1

    def can_undo(self, outcome: AnswerOutcome) -> bool:
        """Whether an answer of the given kind has been counted and can be taken back."""
        if self.is_finalized:
            return False
        return (self.known_count if outcome.is_correct else self.unknown_count) > 0

    def undo(self, outcome: AnswerOutcome) -> None:
        """Take back the last answer of the given kind."""
        self._ensure_open()
        if not self.can_undo(outcome):
            raise InvalidStateError(f"No {outcome.value} answer to undo")
        if outcome.is_correct:
            self.known_count -= 1
        else:
            self.unknown_count -= 1
        self.total_reviewed -= 1

    def elapsed_seconds(self, now: datetime) -> float:
        return max(0.0, (now - self.started_at).total_seconds())

    def accuracy(self) -> float:
        return accuracy_of(self.known_count, self.total_reviewed)

    def words_per_minute(self, now: datetime) -> float:
        return words_per_minute_of(self.total_reviewed, self.elapsed_seconds(now))

    def finalize(self, now: datetime) -> SessionStats:
        """Freeze the counts and return the summary. Later calls return the same summary."""
        if self._summary is None:
            self._summary = SessionStats(
                mode=self.mode,
                started_at=self.started_at,
                finished_at=now,
                total_reviewed=self.total_reviewed,
                known_count=self.known_count,
                unknown_count=self.unknown_count,
                duration_seconds=self.elapsed_seconds(now),
            )
            logger.info(
                f"Session finalized: {self.total_reviewed} reviewed, "
                f"{self.known_count} known, {self.unknown_count} unknown"
            )
        return self._summary
