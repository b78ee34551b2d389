"""Exceptions raised by the review engine."""


class LingoLearnError(Exception):
    """Base class for engine errors."""


class InvalidStateError(LingoLearnError):
    """Raised when an operation refers to state that does not exist or cannot accept it."""


class WordNotFoundError(InvalidStateError):
    """Raised when an answer is submitted for an unknown word id."""

    def __init__(self, word_id: int):
        super().__init__(f"Word {word_id} not found")
        self.word_id = word_id


class SessionFinalizedError(InvalidStateError):
    """Raised when a finalized session receives more answers."""


class ConcurrencyConflictError(LingoLearnError):
    """Raised when another writer updated the same row first.

    The caller may reload the affected records and retry the operation.
    """

    retryable = True
