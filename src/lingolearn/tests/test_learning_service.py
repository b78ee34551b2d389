"""Tests for learning service."""
from datetime import date, timedelta
from typing import Callable

import pytest
from sqlalchemy.orm import Session

from lingolearn.clock import FixedClock
from lingolearn.exceptions import InvalidStateError, WordNotFoundError
from lingolearn.models.learning_models import (
    AnswerOutcome,
    MasteryLevel,
    ReviewPolicy,
    SessionMode,
    StreakChange,
)
from lingolearn.models.models import DailyProgress, StudySession, WordRecord
from lingolearn.services.learning_service import LearningService


def test_submit_answer_on_new_word(
    learning_service: LearningService, make_word: Callable[..., WordRecord], clock: FixedClock
) -> None:
    """Test a first known answer counts, promotes and schedules the word."""
    word = make_word()

    updated = learning_service.submit_answer(word.id, AnswerOutcome.KNOWN)

    assert updated.times_studied == 1
    assert updated.times_correct == 1
    assert updated.mastery_level is not MasteryLevel.NEW
    assert updated.last_studied_date == clock.now()
    assert updated.next_review_date == clock.now() + timedelta(days=1)


def test_submit_answer_for_missing_word(learning_service: LearningService) -> None:
    """Test an unknown id is a typed failure."""
    with pytest.raises(WordNotFoundError) as exc_info:
        learning_service.submit_answer(999, AnswerOutcome.KNOWN)

    assert exc_info.value.word_id == 999
    assert isinstance(exc_info.value, InvalidStateError)


def test_unknown_answer_resurfaces_within_hours(
    learning_service: LearningService, make_word: Callable[..., WordRecord], clock: FixedClock
) -> None:
    """Test a wrong answer comes back in four hours."""
    word = make_word(interval=15, repetitions=3, mastery_level=MasteryLevel.REVIEWING,
                     times_studied=5, times_correct=5)

    updated = learning_service.submit_answer(word.id, AnswerOutcome.UNKNOWN)

    assert updated.next_review_date == clock.now() + timedelta(hours=4)
    assert updated.interval == 1
    assert updated.repetitions == 0
    assert updated.mastery_level is MasteryLevel.LEARNING


def test_linear_policy_through_service(
    learning_service: LearningService, make_word: Callable[..., WordRecord], clock: FixedClock
) -> None:
    """Test the quick review rule can be chosen per answer."""
    word = make_word(interval=2)

    updated = learning_service.submit_answer(word.id, AnswerOutcome.KNOWN, policy=ReviewPolicy.LINEAR)

    assert updated.interval == 3
    assert updated.next_review_date == clock.now() + timedelta(days=3)


def test_counters_hold_over_a_long_run(
    learning_service: LearningService, make_word: Callable[..., WordRecord], clock: FixedClock
) -> None:
    """Test counters stay consistent over many days of mixed answers."""
    word = make_word()
    outcomes = [AnswerOutcome.KNOWN, AnswerOutcome.KNOWN, AnswerOutcome.UNKNOWN, AnswerOutcome.EASY]
    for day in range(20):
        clock.advance(days=1)
        updated = learning_service.submit_answer(word.id, outcomes[day % len(outcomes)])
        assert updated.times_correct <= updated.times_studied

    assert updated.times_studied == 20
    assert updated.times_correct == 15


def test_due_words_scenario(
    learning_service: LearningService, make_word: Callable[..., WordRecord], clock: FixedClock
) -> None:
    """Test now-1h, now+1h and unscheduled items return only the first."""
    now = clock.now()
    due = make_word(next_review_date=now - timedelta(hours=1))
    make_word(next_review_date=now + timedelta(hours=1))
    make_word()

    assert [word.id for word in learning_service.due_words()] == [due.id]
    assert [word.id for word in learning_service.due_words(now + timedelta(hours=2))] != [due.id]


def test_forecast_through_service(
    learning_service: LearningService, make_word: Callable[..., WordRecord], clock: FixedClock
) -> None:
    """Test answered words show up in the forecast."""
    word = make_word()
    learning_service.submit_answer(word.id, AnswerOutcome.KNOWN)  # due tomorrow

    forecast = learning_service.forecast(days=3)

    assert [day.count for day in forecast] == [0, 1, 0]
    assert forecast[0].day == date(2025, 3, 10)


def test_session_flow(
    learning_service: LearningService, make_word: Callable[..., WordRecord], clock: FixedClock, db: Session
) -> None:
    """Test answers during a session are counted and folded at the end."""
    words = [make_word() for _ in range(4)]
    learning_service.start_session(SessionMode.LEARNING)

    for word, outcome in zip(words, [AnswerOutcome.KNOWN, AnswerOutcome.KNOWN, AnswerOutcome.UNKNOWN, AnswerOutcome.EASY]):
        learning_service.submit_answer(word.id, outcome)
    clock.advance(minutes=2)

    result = learning_service.end_session()

    assert result.streak_change is StreakChange.STARTED
    assert result.daily_progress.words_learned == 4
    assert result.daily_progress.total_study_time == 120
    assert result.user_stats.total_words_learned == 3
    assert db.query(StudySession).one().words_correct == 3
    assert learning_service.session is None


def test_finalize_and_fold_separately(learning_service: LearningService, clock: FixedClock) -> None:
    """Test the explicit finalize / fold pair."""
    learning_service.start_session(SessionMode.REVIEW)
    learning_service.record_session_answer(AnswerOutcome.KNOWN)
    learning_service.record_session_answer(AnswerOutcome.UNKNOWN)
    clock.advance(seconds=30)

    stats = learning_service.finalize_session()
    progress, user_stats = learning_service.fold_session_into_day(stats)

    assert stats.total_reviewed == 2
    assert stats.accuracy == 0.5
    assert progress.words_reviewed == 2
    assert user_stats.current_streak == 1


def test_session_guards(learning_service: LearningService) -> None:
    """Test misuse of the session API is a typed failure."""
    with pytest.raises(InvalidStateError):
        learning_service.record_session_answer(AnswerOutcome.KNOWN)
    with pytest.raises(InvalidStateError):
        learning_service.finalize_session()

    learning_service.start_session(SessionMode.LEARNING)
    with pytest.raises(InvalidStateError):
        learning_service.start_session(SessionMode.REVIEW)


def test_streak_across_days(learning_service: LearningService, clock: FixedClock) -> None:
    """Test daily study builds a streak and a two day gap resets it."""
    for _ in range(3):
        learning_service.start_session(SessionMode.REVIEW)
        learning_service.record_session_answer(AnswerOutcome.KNOWN)
        learning_service.end_session()
        clock.advance(days=1)

    assert learning_service.streak_status().current_streak == 3

    clock.advance(days=2)
    learning_service.start_session(SessionMode.REVIEW)
    learning_service.record_session_answer(AnswerOutcome.KNOWN)
    result = learning_service.end_session()

    assert result.streak_change is StreakChange.RESET
    assert result.user_stats.current_streak == 1
    assert result.user_stats.longest_streak == 3


def test_use_streak_freeze_scenario(learning_service: LearningService, clock: FixedClock) -> None:
    """Test a 5 day streak with one missed day survives via a freeze."""
    stats = learning_service.progress.get_user_stats()
    prefs = learning_service.progress.get_user_settings()
    stats.current_streak = 5
    stats.longest_streak = 5
    stats.last_study_date = clock.now() - timedelta(days=2)
    prefs.streak_freezes = 1

    assert learning_service.use_streak_freeze() is True
    assert learning_service.use_streak_freeze() is False

    learning_service.start_session(SessionMode.REVIEW)
    learning_service.record_session_answer(AnswerOutcome.KNOWN)
    result = learning_service.end_session()

    assert result.user_stats.current_streak == 6
    assert learning_service.streak_status().streak_freezes == 0


def test_undo_answer(
    learning_service: LearningService, make_word: Callable[..., WordRecord]
) -> None:
    """Test undo restores the word and the session counts."""
    word = make_word()
    learning_service.start_session(SessionMode.LEARNING)
    snapshot = learning_service.snapshot(word, AnswerOutcome.KNOWN)
    learning_service.submit_answer(word.id, AnswerOutcome.KNOWN)

    restored = learning_service.undo_answer(snapshot)

    assert restored.times_studied == 0
    assert restored.mastery_level is MasteryLevel.NEW
    assert restored.next_review_date is None
    assert learning_service.session.total_reviewed == 0


def test_undo_answer_outside_session_leaves_word(
    learning_service: LearningService, make_word: Callable[..., WordRecord], db: Session
) -> None:
    """Test undo of an answer the active session never counted changes nothing."""
    word = make_word()
    snapshot = learning_service.snapshot(word, AnswerOutcome.KNOWN)
    learning_service.submit_answer(word.id, AnswerOutcome.KNOWN)
    learning_service.start_session(SessionMode.LEARNING)

    with pytest.raises(InvalidStateError):
        learning_service.undo_answer(snapshot)

    db.expire_all()
    stored = db.get(WordRecord, word.id)
    assert stored.times_studied == 1
    assert stored.times_correct == 1
    assert stored.mastery_level is MasteryLevel.LEARNING
    assert stored.next_review_date is not None
    assert learning_service.session.total_reviewed == 0


def test_toggle_favorite_leaves_mastery(
    learning_service: LearningService, make_word: Callable[..., WordRecord]
) -> None:
    """Test favorites are an annotation only."""
    word = make_word(mastery_level=MasteryLevel.LEARNING, times_studied=1, times_correct=1)

    updated = learning_service.toggle_favorite(word.id)

    assert updated.is_favorite is True
    assert updated.mastery_level is MasteryLevel.LEARNING
    assert updated.times_studied == 1


def test_learning_queue(
    learning_service: LearningService, make_word: Callable[..., WordRecord], clock: FixedClock
) -> None:
    """Test barely studied words come first and booked words are skipped."""
    now = clock.now()
    weak = make_word(times_studied=5, times_correct=1, mastery_level=MasteryLevel.LEARNING,
                     next_review_date=now - timedelta(hours=1))
    fresh = make_word()
    once = make_word(times_studied=1, times_correct=1, mastery_level=MasteryLevel.LEARNING,
                     next_review_date=now - timedelta(hours=2))
    make_word(times_studied=1, times_correct=1, mastery_level=MasteryLevel.LEARNING,
              next_review_date=now + timedelta(days=1))
    make_word(times_studied=6, times_correct=6, mastery_level=MasteryLevel.MASTERED,
              next_review_date=now - timedelta(hours=1))

    queue = learning_service.learning_queue()

    assert [word.id for word in queue] == [fresh.id, once.id, weak.id]
    assert [word.id for word in learning_service.learning_queue(limit=1)] == [fresh.id]


def test_mastery_breakdown(
    learning_service: LearningService, make_word: Callable[..., WordRecord]
) -> None:
    """Test counts per level include empty levels."""
    make_word()
    make_word()
    make_word(mastery_level=MasteryLevel.MASTERED)

    breakdown = learning_service.mastery_breakdown()

    assert breakdown[MasteryLevel.NEW] == 2
    assert breakdown[MasteryLevel.MASTERED] == 1
    assert breakdown[MasteryLevel.REVIEWING] == 0


def test_reset_progress_keeps_words(
    learning_service: LearningService, make_word: Callable[..., WordRecord], db: Session
) -> None:
    """Test reset clears learning state, history and streak but not content."""
    word = make_word(english="harbor", chinese="港口")
    learning_service.start_session(SessionMode.LEARNING)
    learning_service.submit_answer(word.id, AnswerOutcome.KNOWN)
    learning_service.end_session()

    learning_service.reset_progress()

    db.refresh(word)
    assert word.english == "harbor"
    assert word.times_studied == 0
    assert word.times_correct == 0
    assert word.mastery_level is MasteryLevel.NEW
    assert word.interval == 0
    assert word.next_review_date is None
    assert word.last_studied_date is None
    assert db.query(DailyProgress).count() == 0
    assert db.query(StudySession).count() == 0
    status = learning_service.streak_status()
    assert status.current_streak == 0
    assert status.longest_streak == 0
    assert learning_service.due_words() == []


def test_add_word(learning_service: LearningService) -> None:
    """Test new words start unscheduled at NEW."""
    word = learning_service.add_word("river", "河", category="nature")

    assert word.id is not None
    assert word.mastery_level is MasteryLevel.NEW
    assert word.next_review_date is None
    assert word.accuracy is None
