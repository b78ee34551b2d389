"""Mastery state machine: how one answer moves a word along the mastery ladder."""
import logging
from datetime import datetime
from typing import Optional

from lingolearn import monitoring
from lingolearn.config import MasterySettings, settings
from lingolearn.models.learning_models import AnswerOutcome, MasteryLevel
from lingolearn.models.models import WordRecord

logger = logging.getLogger(__name__)


def _accuracy(times_studied: int, times_correct: int) -> float:
    return times_correct / times_studied if times_studied > 0 else 0.0


def meets_threshold(
    level: MasteryLevel,
    times_studied: int,
    times_correct: int,
    thresholds: Optional[MasterySettings] = None,
) -> bool:
    """Whether the study history is good enough to hold the given level."""
    thresholds = thresholds or settings.mastery
    accuracy = _accuracy(times_studied, times_correct)
    if level is MasteryLevel.NEW:
        return True
    if level is MasteryLevel.LEARNING:
        return times_studied > 0
    if level is MasteryLevel.REVIEWING:
        return (
            times_studied >= thresholds.times_studied_for_reviewing
            and accuracy >= thresholds.accuracy_for_reviewing
        )
    return (
        times_studied >= thresholds.times_studied_for_mastered
        and accuracy >= thresholds.accuracy_for_mastered
    )


def next_mastery_level(
    current: MasteryLevel,
    outcome: AnswerOutcome,
    times_studied: int,
    times_correct: int,
    thresholds: Optional[MasterySettings] = None,
) -> MasteryLevel:
    """Level after an answer, given counters that already include that answer.

    A correct answer climbs at most one rung, and only if the counters meet
    the next rung's threshold. A wrong answer drops REVIEWING and MASTERED
    one rung; NEW and LEARNING stay where they are.
    """
    if outcome.is_correct:
        target = current.successor()
        if target is not None and meets_threshold(target, times_studied, times_correct, thresholds):
            return target
        return current

    if current in (MasteryLevel.REVIEWING, MasteryLevel.MASTERED):
        return current.predecessor()
    return current


def apply_answer(word: WordRecord, outcome: AnswerOutcome, now: datetime) -> MasteryLevel:
    """Update the word's counters and mastery for one answer.

    Returns the level the word had before the answer. Scheduling is left
    to the review scheduler.
    """
    previous = word.mastery_level
    word.times_studied += 1
    if outcome.is_correct:
        word.times_correct += 1
    word.last_studied_date = now

    word.mastery_level = next_mastery_level(
        previous, outcome, word.times_studied, word.times_correct
    )

    if word.mastery_level is not previous:
        direction = "promoted" if previous < word.mastery_level else "demoted"
        monitoring.mastery_transitions.labels(direction=direction).inc()
        logger.info(
            f"Word {word.id} {direction}: {previous.value} -> {word.mastery_level.value}"
        )
    return previous
