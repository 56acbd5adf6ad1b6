"""
Domain error taxonomy.

Every error carries the HTTP-equivalent status code the interface layer
reports it with. Errors are raised before any state mutation.
"""

from dataclasses import dataclass


class StudyError(Exception):
    """Base class for all studymate domain errors."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(StudyError):
    """Malformed input: quality out of range, empty title, too few concepts."""

    status_code = 400


class InvalidConceptError(ValidationError):
    """Fewer than the minimum number of owned concepts remain after filtering."""


class NotFoundError(StudyError):
    """Referenced card, concept, session or question does not exist."""

    status_code = 404


class ForbiddenError(StudyError):
    """Entity exists but belongs to another user."""

    status_code = 403


class ConflictError(StudyError):
    """Operation conflicts with the current state of the entity."""

    status_code = 409


class AnswerConflictError(ConflictError):
    """An answer was already recorded for this question."""


class SessionClosedError(ConflictError):
    """The session is completed and no longer accepts answers."""


class OracleFailureError(StudyError):
    """The question-generation oracle failed, timed out or under-delivered."""

    status_code = 502


@dataclass(frozen=True)
class GradingFallback:
    """
    Degraded-mode event recorded when the grading oracle fails.

    Not an error: the answer is still graded, using exact matching.

    Attributes:
        question_id: Question whose grading fell back.
        reason: Short description of the oracle failure.
    """

    question_id: int
    reason: str
