"""Review scheduling: interval growth and due-word queries."""
import logging
from collections import Counter
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy.orm import Session

from lingolearn.clock import day_bounds, study_day
from lingolearn.config import SchedulingSettings, settings
from lingolearn.models.learning_models import (
    AnswerOutcome,
    DayForecast,
    MasteryLevel,
    ReviewPolicy,
    ReviewResult,
    Scheduled,
)
from lingolearn.models.models import WordRecord

logger = logging.getLogger(__name__)


def quality_for(outcome: AnswerOutcome, config: Optional[SchedulingSettings] = None) -> int:
    """Map an answer onto the SM-2 0-5 quality scale."""
    config = config or settings.scheduling
    if outcome is AnswerOutcome.EASY:
        return config.easy_quality
    if outcome is AnswerOutcome.KNOWN:
        return config.known_quality
    return config.unknown_quality


def calculate_next_review(
    ease_factor: float,
    interval: int,
    repetitions: int,
    quality: int,
    now: datetime,
    config: Optional[SchedulingSettings] = None,
) -> ReviewResult:
    """SM-2 step.

    Args:
        ease_factor: Current ease factor.
        interval: Current interval in days.
        repetitions: Number of consecutive successful reviews.
        quality: Rating 0-5 (0=complete blackout, 5=perfect).
        now: Moment of the answer.

    Returns:
        The new ease factor, interval, repetitions and review date. Failed
        answers come back after ``retry_hours`` rather than a full day.
    """
    config = config or settings.scheduling

    new_ef = ease_factor + (0.1 - (5 - quality) * (0.08 + (5 - quality) * 0.02))
    new_ef = max(config.min_ease_factor, new_ef)

    if quality >= 3:
        if repetitions == 0:
            new_interval = 1
        elif repetitions == 1:
            new_interval = 6
        else:
            # Always grow by at least a day so successes keep pushing the date out
            new_interval = max(interval + 1, round(interval * ease_factor))
        new_interval = min(max(new_interval, config.min_interval_days), config.max_interval_days)
        return ReviewResult(
            ease_factor=round(new_ef, 2),
            interval=new_interval,
            repetitions=repetitions + 1,
            next_review_date=now + timedelta(days=new_interval),
        )

    return ReviewResult(
        ease_factor=round(new_ef, 2),
        interval=config.min_interval_days,
        repetitions=0,
        next_review_date=now + timedelta(hours=config.retry_hours),
    )


def calculate_linear_review(
    ease_factor: float,
    interval: int,
    repetitions: int,
    is_correct: bool,
    now: datetime,
    config: Optional[SchedulingSettings] = None,
) -> ReviewResult:
    """Quick-review step: one more day per success, short retry on failure."""
    config = config or settings.scheduling
    if is_correct:
        new_interval = min(max(interval + 1, config.min_interval_days), config.max_interval_days)
        return ReviewResult(
            ease_factor=ease_factor,
            interval=new_interval,
            repetitions=repetitions + 1,
            next_review_date=now + timedelta(days=new_interval),
        )
    return ReviewResult(
        ease_factor=ease_factor,
        interval=config.min_interval_days,
        repetitions=0,
        next_review_date=now + timedelta(hours=config.retry_hours),
    )


def is_due(word: WordRecord, now: datetime) -> bool:
    schedule = word.schedule
    return isinstance(schedule, Scheduled) and schedule.due_at <= now


def is_overdue(word: WordRecord, now: datetime) -> bool:
    return is_due(word, now) and word.mastery_level is not MasteryLevel.NEW


def is_due_soon(word: WordRecord, now: datetime, hours: Optional[int] = None) -> bool:
    if hours is None:
        hours = settings.scheduling.due_soon_hours
    schedule = word.schedule
    return isinstance(schedule, Scheduled) and now < schedule.due_at <= now + timedelta(hours=hours)


class ReviewScheduler:
    """Books next reviews and answers due/forecast queries."""

    def __init__(self, db: Session):
        """Initialize the scheduler with a database session."""
        self.db = db

    def schedule(
        self,
        word: WordRecord,
        outcome: AnswerOutcome,
        now: datetime,
        policy: ReviewPolicy = ReviewPolicy.SM2,
    ) -> ReviewResult:
        """Compute and store the word's next review. Does not commit."""
        if policy is ReviewPolicy.LINEAR:
            result = calculate_linear_review(
                word.ease_factor, word.interval, word.repetitions, outcome.is_correct, now
            )
        else:
            result = calculate_next_review(
                word.ease_factor, word.interval, word.repetitions, quality_for(outcome), now
            )

        word.ease_factor = result.ease_factor
        word.interval = result.interval
        word.repetitions = result.repetitions
        word.next_review_date = result.next_review_date
        logger.debug(
            f"Word {word.id} scheduled for {result.next_review_date.isoformat()} "
            f"(interval {result.interval}d, ef {result.ease_factor}, policy {policy.value})"
        )
        return result

    def _scheduled_query(self):
        return self.db.query(WordRecord).filter(WordRecord.next_review_date.isnot(None))

    def due_words(self, now: datetime, limit: Optional[int] = None) -> List[WordRecord]:
        """Words whose review time has arrived, earliest first."""
        query = (
            self._scheduled_query()
            .filter(WordRecord.next_review_date <= now)
            .order_by(WordRecord.next_review_date.asc(), WordRecord.id.asc())
        )
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    def overdue_words(self, now: datetime, limit: Optional[int] = None) -> List[WordRecord]:
        """Due words that have already left the NEW level."""
        query = (
            self._scheduled_query()
            .filter(
                WordRecord.next_review_date <= now,
                WordRecord.mastery_level != MasteryLevel.NEW,
            )
            .order_by(WordRecord.next_review_date.asc(), WordRecord.id.asc())
        )
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    def due_soon_words(self, now: datetime, hours: Optional[int] = None) -> List[WordRecord]:
        """Words coming due within the next ``hours`` (24 by default)."""
        if hours is None:
            hours = settings.scheduling.due_soon_hours
        return (
            self._scheduled_query()
            .filter(
                WordRecord.next_review_date > now,
                WordRecord.next_review_date <= now + timedelta(hours=hours),
            )
            .order_by(WordRecord.next_review_date.asc(), WordRecord.id.asc())
            .all()
        )

    def forecast(self, now: datetime, days: Optional[int] = None) -> List[DayForecast]:
        """Review counts per study day, starting with today."""
        if days is None:
            days = settings.scheduling.forecast_days
        if days <= 0:
            return []

        today = study_day(now)
        window_start, _ = day_bounds(today)
        _, window_end = day_bounds(today + timedelta(days=days - 1))

        dates = (
            self.db.query(WordRecord.next_review_date)
            .filter(
                WordRecord.next_review_date.isnot(None),
                WordRecord.next_review_date >= window_start,
                WordRecord.next_review_date < window_end,
            )
            .all()
        )
        counts = Counter(study_day(next_review) for (next_review,) in dates)

        forecast = []
        for offset in range(days):
            day = today + timedelta(days=offset)
            forecast.append(DayForecast(day=day, count=counts.get(day, 0), is_today=offset == 0))
        return forecast
