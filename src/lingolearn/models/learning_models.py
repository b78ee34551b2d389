"""Value types shared by the mastery, scheduling and progress services."""
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Optional, Union


class MasteryLevel(Enum):
    """How well a word is retained, from NEW up to MASTERED."""
    NEW = "new"
    LEARNING = "learning"
    REVIEWING = "reviewing"
    MASTERED = "mastered"

    @property
    def rank(self) -> int:
        return MASTERY_ORDER.index(self)

    def successor(self) -> Optional["MasteryLevel"]:
        """Next level up, or None at the top."""
        if self.rank + 1 < len(MASTERY_ORDER):
            return MASTERY_ORDER[self.rank + 1]
        return None

    def predecessor(self) -> Optional["MasteryLevel"]:
        """Next level down, or None at the floor."""
        if self.rank > 0:
            return MASTERY_ORDER[self.rank - 1]
        return None

    def __lt__(self, other: "MasteryLevel") -> bool:
        if not isinstance(other, MasteryLevel):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: "MasteryLevel") -> bool:
        if not isinstance(other, MasteryLevel):
            return NotImplemented
        return self.rank <= other.rank


MASTERY_ORDER = (
    MasteryLevel.NEW,
    MasteryLevel.LEARNING,
    MasteryLevel.REVIEWING,
    MasteryLevel.MASTERED,
)


class AnswerOutcome(Enum):
    """Result of showing a card to the learner."""
    KNOWN = "known"  # right swipe / know button
    EASY = "easy"  # "too easy" swipe, a stronger known
    UNKNOWN = "unknown"  # left swipe / don't know button

    @property
    def is_correct(self) -> bool:
        return self is not AnswerOutcome.UNKNOWN


class SessionMode(Enum):
    """Kind of session; decides which daily counter a session feeds."""
    LEARNING = "learning"
    REVIEW = "review"


class ReviewPolicy(Enum):
    """Interval growth rule used when scheduling the next review."""
    SM2 = "sm2"  # multiplicative, practice flow
    LINEAR = "linear"  # interval + 1 day, quick review flow


class StreakChange(Enum):
    """What folding a session did to the streak."""
    STARTED = "started"
    EXTENDED = "extended"
    BRIDGED = "bridged"  # a freeze covered the missed day
    UNCHANGED = "unchanged"
    RESET = "reset"


@dataclass(frozen=True)
class Scheduled:
    """Word has a review booked at ``due_at``."""
    due_at: datetime


@dataclass(frozen=True)
class Unscheduled:
    """Word has never been studied."""


UNSCHEDULED = Unscheduled()

ReviewSchedule = Union[Scheduled, Unscheduled]


@dataclass(frozen=True)
class ReviewResult:
    """Output of an interval calculation."""
    ease_factor: float
    interval: int
    repetitions: int
    next_review_date: datetime


@dataclass(frozen=True)
class DayForecast:
    """Number of reviews falling on one study day."""
    day: date
    count: int
    is_today: bool = False


@dataclass(frozen=True)
class WordSnapshot:
    """Learning state of a word captured before an answer, for undo."""
    word_id: int
    outcome: AnswerOutcome
    times_studied: int
    times_correct: int
    mastery_level: MasteryLevel
    interval: int
    ease_factor: float
    repetitions: int
    next_review_date: Optional[datetime]
    last_studied_date: Optional[datetime]


@dataclass(frozen=True)
class StreakStatus:
    """Read-only view of the streak for display."""
    current_streak: int
    longest_streak: int
    streak_freezes: int
    last_study_date: Optional[datetime]
    studied_today: bool
    at_risk: bool
    freeze_applicable: bool
