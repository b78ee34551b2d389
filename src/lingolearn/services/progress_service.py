"""Daily progress and streak tracking."""
import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import List

from sqlalchemy.orm import Session

from lingolearn import monitoring
from lingolearn.clock import day_start, study_day
from lingolearn.config import settings
from lingolearn.models.base import commit_or_raise, flush_or_raise
from lingolearn.models.learning_models import SessionMode, StreakChange, StreakStatus
from lingolearn.models.models import DailyProgress, StudySession, UserSettings, UserStats
from lingolearn.services.session_service import SessionStats

logger = logging.getLogger(__name__)


@dataclass
class FoldResult:
    """Outcome of folding a session into the day."""
    daily_progress: DailyProgress
    user_stats: UserStats
    streak_change: StreakChange
    goal_just_reached: bool = False
    freeze_awarded: bool = False
    freeze_used: bool = False


def _days_since_last_study(user_stats: UserStats, today: date) -> int:
    return (today - study_day(user_stats.last_study_date)).days


def freeze_applicable(user_stats: UserStats, user_settings: UserSettings, now: datetime) -> bool:
    """A freeze can bridge exactly one missed day of a running streak."""
    if user_stats.last_study_date is None or user_stats.current_streak <= 0:
        return False
    if user_settings.streak_freezes <= 0:
        return False
    return _days_since_last_study(user_stats, study_day(now)) == 2


class ProgressService:
    """Folds sessions into daily totals and keeps the streak."""

    def __init__(self, db: Session):
        """Initialize the service with a database session."""
        self.db = db

    def get_user_stats(self) -> UserStats:
        """Get the stats row, creating it on first use."""
        stats = self.db.query(UserStats).order_by(UserStats.id).first()
        if stats is None:
            stats = UserStats()
            self.db.add(stats)
            flush_or_raise(self.db)
        return stats

    def get_user_settings(self) -> UserSettings:
        """Get the settings row, creating it on first use."""
        prefs = self.db.query(UserSettings).order_by(UserSettings.id).first()
        if prefs is None:
            prefs = UserSettings()
            self.db.add(prefs)
            flush_or_raise(self.db)
        return prefs

    def get_daily_progress(self, day: date) -> DailyProgress:
        """Find or create the record for a study day."""
        progress = self.db.query(DailyProgress).filter(DailyProgress.date == day).first()
        if progress is None:
            progress = DailyProgress(date=day)
            self.db.add(progress)
            flush_or_raise(self.db)
        return progress

    def daily_history(self, now: datetime, days: int = 7) -> List[DailyProgress]:
        """Existing day records for the last ``days`` days, oldest first."""
        today = study_day(now)
        return (
            self.db.query(DailyProgress)
            .filter(
                DailyProgress.date > today - timedelta(days=days),
                DailyProgress.date <= today,
            )
            .order_by(DailyProgress.date.asc())
            .all()
        )

    def _consume_freeze(self, user_settings: UserSettings, now: datetime) -> None:
        user_settings.streak_freezes -= 1
        user_settings.last_streak_freeze_used = now
        monitoring.streak_freezes_used.inc()

    def _award_freeze(self, user_stats: UserStats, user_settings: UserSettings) -> bool:
        every = settings.streak.freeze_award_every_days
        if user_stats.current_streak <= 0 or user_stats.current_streak % every != 0:
            return False
        if user_settings.streak_freezes >= settings.streak.max_streak_freezes:
            return False
        user_settings.streak_freezes += 1
        monitoring.streak_freezes_awarded.inc()
        logger.info(
            f"Streak freeze earned at {user_stats.current_streak} days "
            f"({user_settings.streak_freezes} available)"
        )
        return True

    def extend_streak(
        self, user_stats: UserStats, user_settings: UserSettings, now: datetime
    ) -> StreakChange:
        """Advance the streak for study happening at ``now``. Does not commit.

        Keys off study-day transitions of the last study date, so calling it
        twice on the same day changes nothing the second time.
        """
        today = study_day(now)
        if user_stats.last_study_date is None or user_stats.current_streak <= 0:
            user_stats.current_streak = 1
            change = StreakChange.STARTED
        else:
            gap = _days_since_last_study(user_stats, today)
            if gap <= 0:
                change = StreakChange.UNCHANGED
            elif gap == 1:
                user_stats.current_streak += 1
                change = StreakChange.EXTENDED
            elif settings.streak.auto_apply_freeze and freeze_applicable(user_stats, user_settings, now):
                self._consume_freeze(user_settings, now)
                user_stats.current_streak += 1
                change = StreakChange.BRIDGED
                logger.info("Streak freeze applied automatically for one missed day")
            else:
                logger.info(
                    f"Streak of {user_stats.current_streak} days broken after a {gap - 1} day gap"
                )
                user_stats.current_streak = 1
                monitoring.streak_resets.inc()
                change = StreakChange.RESET

        if change is not StreakChange.UNCHANGED:
            user_stats.last_study_date = now
        user_stats.longest_streak = max(user_stats.longest_streak, user_stats.current_streak)
        monitoring.current_streak.set(user_stats.current_streak)
        return change

    def fold_session(
        self,
        session: SessionStats,
        user_stats: UserStats,
        user_settings: UserSettings,
        now: datetime,
    ) -> FoldResult:
        """Add a finished session to today's totals and update the streak."""
        today = study_day(now)
        progress = self.get_daily_progress(today)

        previous_total = progress.total_words
        was_under_goal = previous_total < user_settings.daily_goal

        if session.mode is SessionMode.LEARNING:
            progress.words_learned += session.total_reviewed
        else:
            progress.words_reviewed += session.total_reviewed
        progress.sessions_completed += 1
        progress.total_study_time += session.duration_seconds

        # Weighted average of the day's accuracy, in percent
        if session.total_reviewed > 0:
            session_accuracy = session.accuracy * 100
            if previous_total > 0:
                progress.accuracy = (
                    progress.accuracy * previous_total + session_accuracy * session.total_reviewed
                ) / (previous_total + session.total_reviewed)
            else:
                progress.accuracy = session_accuracy

        goal_just_reached = was_under_goal and progress.total_words >= user_settings.daily_goal

        user_stats.total_words_learned += session.known_count
        user_stats.total_study_time += session.duration_seconds

        freezes_before = user_settings.streak_freezes
        if session.total_reviewed > 0:
            change = self.extend_streak(user_stats, user_settings, now)
        else:
            change = StreakChange.UNCHANGED
        freeze_used = user_settings.streak_freezes < freezes_before
        freeze_awarded = False
        if change in (StreakChange.STARTED, StreakChange.EXTENDED, StreakChange.BRIDGED):
            freeze_awarded = self._award_freeze(user_stats, user_settings)

        self.db.add(StudySession(
            session_type=session.mode,
            study_day=today,
            started_at=session.started_at,
            finished_at=session.finished_at,
            words_studied=session.total_reviewed,
            words_correct=session.known_count,
            words_incorrect=session.unknown_count,
            duration=session.duration_seconds,
            completed=True,
        ))

        commit_or_raise(self.db)
        monitoring.sessions_folded.labels(mode=session.mode.value).inc()
        logger.info(
            f"Folded {session.mode.value} session into {today}: "
            f"{progress.words_learned} learned, {progress.words_reviewed} reviewed, "
            f"streak {user_stats.current_streak} ({change.value})"
        )
        return FoldResult(
            daily_progress=progress,
            user_stats=user_stats,
            streak_change=change,
            goal_just_reached=goal_just_reached,
            freeze_awarded=freeze_awarded,
            freeze_used=freeze_used,
        )

    def use_streak_freeze(
        self, user_stats: UserStats, user_settings: UserSettings, now: datetime
    ) -> bool:
        """Spend a freeze on the one missed day, if that is possible.

        The freeze stands in for the missed day: the last study date moves to
        yesterday, so studying today continues the streak.
        """
        if not freeze_applicable(user_stats, user_settings, now):
            logger.info("Streak freeze not applicable")
            return False

        self._consume_freeze(user_settings, now)
        user_stats.last_study_date = day_start(study_day(now) - timedelta(days=1))
        commit_or_raise(self.db)
        logger.info(
            f"Streak freeze used to protect a {user_stats.current_streak} day streak "
            f"({user_settings.streak_freezes} left)"
        )
        return True

    def streak_status(
        self, user_stats: UserStats, user_settings: UserSettings, now: datetime
    ) -> StreakStatus:
        """Snapshot of the streak as the learner should see it right now."""
        today = study_day(now)
        studied_today = False
        at_risk = False
        if user_stats.last_study_date is not None:
            gap = _days_since_last_study(user_stats, today)
            studied_today = gap <= 0
            at_risk = gap >= 2 and user_stats.current_streak > 0
        return StreakStatus(
            current_streak=user_stats.current_streak,
            longest_streak=user_stats.longest_streak,
            streak_freezes=user_settings.streak_freezes,
            last_study_date=user_stats.last_study_date,
            studied_today=studied_today,
            at_risk=at_risk,
            freeze_applicable=freeze_applicable(user_stats, user_settings, now),
        )

    def reset(self, user_stats: UserStats, user_settings: UserSettings) -> None:
        """Clear the streak, totals and day history. Does not commit."""
        self.db.query(DailyProgress).delete()
        self.db.query(StudySession).delete()
        user_stats.current_streak = 0
        user_stats.longest_streak = 0
        user_stats.last_study_date = None
        user_stats.total_words_learned = 0
        user_stats.total_study_time = 0.0
        user_settings.streak_freezes = settings.streak.initial_streak_freezes
        user_settings.last_streak_freeze_used = None
        monitoring.current_streak.set(0)
