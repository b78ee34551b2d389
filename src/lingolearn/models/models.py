"""Database models for the review engine."""
from datetime import datetime, UTC
from typing import Optional

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    Enum,
    Float,
    Integer,
    String,
)

from lingolearn.config import settings
from lingolearn.models.base import Base, UTCDateTime
from lingolearn.models.learning_models import (
    MasteryLevel,
    ReviewSchedule,
    Scheduled,
    SessionMode,
    UNSCHEDULED,
)


class TimestampMixin:
    """Mixin for adding created_at and updated_at timestamps."""

    created_at = Column(UTCDateTime, default=lambda: datetime.now(UTC))
    updated_at = Column(
        UTCDateTime,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )


class WordRecord(Base, TimestampMixin):
    """A vocabulary item together with its learning state."""

    __tablename__ = "words"

    id = Column(Integer, primary_key=True)
    english = Column(String, nullable=False)
    chinese = Column(String, nullable=False)
    category = Column(String, nullable=True)
    is_favorite = Column(Boolean, default=False, nullable=False)

    times_studied = Column(Integer, default=0, nullable=False)
    times_correct = Column(Integer, default=0, nullable=False)
    mastery_level = Column(Enum(MasteryLevel), default=MasteryLevel.NEW, nullable=False)
    interval = Column(Integer, default=0, nullable=False)  # in days
    ease_factor = Column(Float, default=settings.scheduling.default_ease_factor, nullable=False)
    repetitions = Column(Integer, default=0, nullable=False)  # consecutive successful reviews
    next_review_date = Column(UTCDateTime, nullable=True, index=True)
    last_studied_date = Column(UTCDateTime, nullable=True)

    # Optimistic locking: a commit fails if another writer bumped the version first
    version = Column(Integer, nullable=False)
    __mapper_args__ = {"version_id_col": version}

    def __init__(self, **kwargs):
        # Column defaults only apply at flush; pure logic needs them right away
        kwargs.setdefault("is_favorite", False)
        kwargs.setdefault("times_studied", 0)
        kwargs.setdefault("times_correct", 0)
        kwargs.setdefault("mastery_level", MasteryLevel.NEW)
        kwargs.setdefault("interval", 0)
        kwargs.setdefault("ease_factor", settings.scheduling.default_ease_factor)
        kwargs.setdefault("repetitions", 0)
        super().__init__(**kwargs)

    @property
    def schedule(self) -> ReviewSchedule:
        if self.next_review_date is None:
            return UNSCHEDULED
        return Scheduled(self.next_review_date)

    @property
    def accuracy(self) -> Optional[float]:
        """Share of correct answers, or None if the word was never studied."""
        if not self.times_studied:
            return None
        return self.times_correct / self.times_studied

    def reset_learning_state(self) -> None:
        """Forget all progress; the vocabulary content stays."""
        self.times_studied = 0
        self.times_correct = 0
        self.mastery_level = MasteryLevel.NEW
        self.interval = 0
        self.ease_factor = settings.scheduling.default_ease_factor
        self.repetitions = 0
        self.next_review_date = None
        self.last_studied_date = None

    def __repr__(self) -> str:
        return f"<WordRecord {self.id} {self.english!r} {self.mastery_level.value}>"


class DailyProgress(Base, TimestampMixin):
    """Totals for one study day."""

    __tablename__ = "daily_progress"

    id = Column(Integer, primary_key=True)
    date = Column(Date, unique=True, nullable=False)
    words_learned = Column(Integer, default=0, nullable=False)
    words_reviewed = Column(Integer, default=0, nullable=False)
    total_study_time = Column(Float, default=0.0, nullable=False)  # in seconds
    sessions_completed = Column(Integer, default=0, nullable=False)
    accuracy = Column(Float, default=0.0, nullable=False)  # percent, weighted over the day's words

    version = Column(Integer, nullable=False)
    __mapper_args__ = {"version_id_col": version}

    def __init__(self, **kwargs):
        kwargs.setdefault("words_learned", 0)
        kwargs.setdefault("words_reviewed", 0)
        kwargs.setdefault("total_study_time", 0.0)
        kwargs.setdefault("sessions_completed", 0)
        kwargs.setdefault("accuracy", 0.0)
        super().__init__(**kwargs)

    @property
    def total_words(self) -> int:
        return self.words_learned + self.words_reviewed


class UserStats(Base, TimestampMixin):
    """Aggregate study statistics. A single row per database."""

    __tablename__ = "user_stats"

    id = Column(Integer, primary_key=True)
    current_streak = Column(Integer, default=0, nullable=False)
    longest_streak = Column(Integer, default=0, nullable=False)
    last_study_date = Column(UTCDateTime, nullable=True)
    total_words_learned = Column(Integer, default=0, nullable=False)
    total_study_time = Column(Float, default=0.0, nullable=False)  # in seconds

    version = Column(Integer, nullable=False)
    __mapper_args__ = {"version_id_col": version}

    def __init__(self, **kwargs):
        kwargs.setdefault("current_streak", 0)
        kwargs.setdefault("longest_streak", 0)
        kwargs.setdefault("total_words_learned", 0)
        kwargs.setdefault("total_study_time", 0.0)
        super().__init__(**kwargs)


class UserSettings(Base, TimestampMixin):
    """Learner preferences, including the streak freeze wallet. A single row per database."""

    __tablename__ = "user_settings"

    id = Column(Integer, primary_key=True)
    daily_goal = Column(Integer, default=settings.goal.default_daily_goal, nullable=False)
    streak_freezes = Column(Integer, default=settings.streak.initial_streak_freezes, nullable=False)
    last_streak_freeze_used = Column(UTCDateTime, nullable=True)

    version = Column(Integer, nullable=False)
    __mapper_args__ = {"version_id_col": version}

    def __init__(self, **kwargs):
        goal = kwargs.get("daily_goal", settings.goal.default_daily_goal)
        # Clamp between the configured bounds
        kwargs["daily_goal"] = min(settings.goal.max_daily_goal, max(settings.goal.min_daily_goal, goal))
        kwargs.setdefault("streak_freezes", settings.streak.initial_streak_freezes)
        super().__init__(**kwargs)


class StudySession(Base, TimestampMixin):
    """Record of a finished learning or review session."""

    __tablename__ = "study_sessions"

    id = Column(Integer, primary_key=True)
    session_type = Column(Enum(SessionMode), nullable=False)
    study_day = Column(Date, nullable=False, index=True)
    started_at = Column(UTCDateTime, nullable=False)
    finished_at = Column(UTCDateTime, nullable=False)
    words_studied = Column(Integer, default=0, nullable=False)
    words_correct = Column(Integer, default=0, nullable=False)
    words_incorrect = Column(Integer, default=0, nullable=False)
    duration = Column(Float, default=0.0, nullable=False)  # in seconds
    completed = Column(Boolean, default=True, nullable=False)
