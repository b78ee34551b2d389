"""Learning service: the entry point the UI layer calls into."""
import logging
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.orm import Session

from lingolearn import monitoring
from lingolearn.clock import Clock, SystemClock, ensure_utc
from lingolearn.config import settings
from lingolearn.exceptions import InvalidStateError, WordNotFoundError
from lingolearn.models.base import commit_or_raise
from lingolearn.models.learning_models import (
    AnswerOutcome,
    DayForecast,
    MasteryLevel,
    ReviewPolicy,
    SessionMode,
    StreakStatus,
    WordSnapshot,
)
from lingolearn.models.models import DailyProgress, UserStats, WordRecord
from lingolearn.services import mastery_service
from lingolearn.services.progress_service import FoldResult, ProgressService
from lingolearn.services.review_scheduler import ReviewScheduler
from lingolearn.services.session_service import SessionAggregator, SessionStats

logger = logging.getLogger(__name__)


class LearningService:
    """Applies answers, answers queue queries and keeps daily progress.

    Every operation takes an optional ``now``; when omitted the injected
    clock is read once at the start of the call.
    """

    def __init__(self, db: Session, clock: Optional[Clock] = None):
        """Initialize the service with a database session and a clock."""
        self.db = db
        self.clock = clock or SystemClock()
        self.scheduler = ReviewScheduler(db)
        self.progress = ProgressService(db)
        self.session: Optional[SessionAggregator] = None

    def _now(self, now: Optional[datetime]) -> datetime:
        return ensure_utc(now) if now is not None else self.clock.now()

    def get_word(self, word_id: int) -> WordRecord:
        """Get a word or raise WordNotFoundError."""
        word = self.db.get(WordRecord, word_id)
        if word is None:
            raise WordNotFoundError(word_id)
        return word

    def add_word(self, english: str, chinese: str, category: Optional[str] = None) -> WordRecord:
        """Add a vocabulary item in the NEW state."""
        word = WordRecord(english=english, chinese=chinese, category=category)
        self.db.add(word)
        commit_or_raise(self.db)
        self.db.refresh(word)
        return word

    # Answers

    def snapshot(self, word: WordRecord, outcome: AnswerOutcome) -> WordSnapshot:
        """Capture the learning state of a word before an answer is applied."""
        return WordSnapshot(
            word_id=word.id,
            outcome=outcome,
            times_studied=word.times_studied,
            times_correct=word.times_correct,
            mastery_level=word.mastery_level,
            interval=word.interval,
            ease_factor=word.ease_factor,
            repetitions=word.repetitions,
            next_review_date=word.next_review_date,
            last_studied_date=word.last_studied_date,
        )

    def submit_answer(
        self,
        word_id: int,
        outcome: AnswerOutcome,
        now: Optional[datetime] = None,
        policy: ReviewPolicy = ReviewPolicy.SM2,
    ) -> WordRecord:
        """Apply one answer to a word and book its next review.

        If a session is active the answer is counted there as well.
        """
        now = self._now(now)
        word = self.get_word(word_id)

        mastery_service.apply_answer(word, outcome, now)
        self.scheduler.schedule(word, outcome, now, policy)
        commit_or_raise(self.db)

        if self.session is not None and not self.session.is_finalized:
            self.session.record_answer(outcome)

        monitoring.answers_submitted.labels(outcome=outcome.value).inc()
        logger.debug(
            f"Answer {outcome.value} for word {word.id}: {word.mastery_level.value}, "
            f"{word.times_correct}/{word.times_studied} correct"
        )
        return word

    def undo_answer(self, snapshot: WordSnapshot) -> WordRecord:
        """Restore a word to the state captured before an answer.

        Raises InvalidStateError, leaving the word untouched, if the active
        session has no such answer to take back.
        """
        session_open = self.session is not None and not self.session.is_finalized
        if session_open and not self.session.can_undo(snapshot.outcome):
            raise InvalidStateError(
                f"Active session has no {snapshot.outcome.value} answer to undo"
            )
        word = self.get_word(snapshot.word_id)
        word.times_studied = snapshot.times_studied
        word.times_correct = snapshot.times_correct
        word.mastery_level = snapshot.mastery_level
        word.interval = snapshot.interval
        word.ease_factor = snapshot.ease_factor
        word.repetitions = snapshot.repetitions
        word.next_review_date = snapshot.next_review_date
        word.last_studied_date = snapshot.last_studied_date
        commit_or_raise(self.db)

        if session_open:
            self.session.undo(snapshot.outcome)
        logger.info(f"Undid {snapshot.outcome.value} answer for word {word.id}")
        return word

    def toggle_favorite(self, word_id: int) -> WordRecord:
        """Flip the favorite mark. Mastery and schedule are untouched."""
        word = self.get_word(word_id)
        word.is_favorite = not word.is_favorite
        commit_or_raise(self.db)
        return word

    # Queues

    def due_words(self, now: Optional[datetime] = None, limit: Optional[int] = None) -> List[WordRecord]:
        return self.scheduler.due_words(self._now(now), limit)

    def overdue_words(self, now: Optional[datetime] = None, limit: Optional[int] = None) -> List[WordRecord]:
        return self.scheduler.overdue_words(self._now(now), limit)

    def due_soon_words(self, now: Optional[datetime] = None) -> List[WordRecord]:
        return self.scheduler.due_soon_words(self._now(now))

    def forecast(self, now: Optional[datetime] = None, days: Optional[int] = None) -> List[DayForecast]:
        return self.scheduler.forecast(self._now(now), days)

    def learning_queue(self, now: Optional[datetime] = None, limit: Optional[int] = None) -> List[WordRecord]:
        """Words for a learning session: barely studied ones first, then weak ones.

        Words booked for a later review are left alone.
        """
        now = self._now(now)
        if limit is None:
            limit = settings.scheduling.queue_limit
        min_times = settings.mastery.min_times_studied_for_learning
        not_booked = or_(WordRecord.next_review_date.is_(None), WordRecord.next_review_date <= now)

        fresh = (
            self.db.query(WordRecord)
            .filter(WordRecord.times_studied < min_times, not_booked)
            .order_by(WordRecord.times_studied.asc(), WordRecord.id.asc())
            .limit(limit)
            .all()
        )
        if len(fresh) >= limit:
            return fresh

        weak = (
            self.db.query(WordRecord)
            .filter(
                WordRecord.times_studied >= min_times,
                WordRecord.mastery_level.in_([MasteryLevel.NEW, MasteryLevel.LEARNING]),
                not_booked,
            )
            .order_by(WordRecord.id.asc())
            .limit(limit - len(fresh))
            .all()
        )
        return fresh + weak

    def mastery_breakdown(self) -> Dict[MasteryLevel, int]:
        """Number of words at each mastery level."""
        breakdown = {level: 0 for level in MasteryLevel}
        for word in self.db.query(WordRecord.mastery_level).all():
            breakdown[word.mastery_level] += 1
        return breakdown

    # Sessions

    def start_session(self, mode: SessionMode, now: Optional[datetime] = None) -> SessionAggregator:
        """Open a session; answers submitted from now on are counted in it."""
        if self.session is not None and not self.session.is_finalized:
            raise InvalidStateError("A session is already in progress")
        self.session = SessionAggregator(mode, self._now(now))
        logger.info(f"Started {mode.value} session")
        return self.session

    def record_session_answer(self, outcome: AnswerOutcome) -> None:
        """Count an answer in the active session without touching any word."""
        if self.session is None:
            raise InvalidStateError("No session in progress")
        self.session.record_answer(outcome)

    def finalize_session(self, now: Optional[datetime] = None) -> SessionStats:
        if self.session is None:
            raise InvalidStateError("No session in progress")
        return self.session.finalize(self._now(now))

    def fold_session_into_day(
        self, session_stats: SessionStats, now: Optional[datetime] = None
    ) -> Tuple[DailyProgress, UserStats]:
        result = self.fold_session(session_stats, now)
        return result.daily_progress, result.user_stats

    def fold_session(self, session_stats: SessionStats, now: Optional[datetime] = None) -> FoldResult:
        """Fold a finished session into today and report what changed."""
        now = self._now(now)
        user_stats = self.progress.get_user_stats()
        user_settings = self.progress.get_user_settings()
        return self.progress.fold_session(session_stats, user_stats, user_settings, now)

    def end_session(self, now: Optional[datetime] = None) -> FoldResult:
        """Finalize the active session and fold it into today in one go."""
        now = self._now(now)
        summary = self.finalize_session(now)
        result = self.fold_session(summary, now)
        self.session = None
        return result

    # Streak

    def use_streak_freeze(self, now: Optional[datetime] = None) -> bool:
        now = self._now(now)
        user_stats = self.progress.get_user_stats()
        user_settings = self.progress.get_user_settings()
        return self.progress.use_streak_freeze(user_stats, user_settings, now)

    def streak_status(self, now: Optional[datetime] = None) -> StreakStatus:
        now = self._now(now)
        return self.progress.streak_status(
            self.progress.get_user_stats(), self.progress.get_user_settings(), now
        )

    def daily_history(self, now: Optional[datetime] = None, days: int = 7) -> List[DailyProgress]:
        return self.progress.daily_history(self._now(now), days)

    # Reset

    def reset_progress(self) -> None:
        """Forget all learning state but keep the vocabulary."""
        words = self.db.query(WordRecord).all()
        for word in words:
            word.reset_learning_state()
        self.progress.reset(self.progress.get_user_stats(), self.progress.get_user_settings())
        commit_or_raise(self.db)
        self.session = None
        logger.info(f"Progress reset for {len(words)} words")
