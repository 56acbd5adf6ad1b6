# Domain Package
from .errors import (
    AnswerConflictError,
    ConflictError,
    ForbiddenError,
    GradingFallback,
    InvalidConceptError,
    NotFoundError,
    OracleFailureError,
    SessionClosedError,
    StudyError,
    ValidationError,
)
from .models import (
    Concept,
    ConceptProgress,
    Difficulty,
    Flashcard,
    InterleavedQuestion,
    InterleavedSession,
    MasteryStatus,
    MemoryState,
    QuestionType,
    UserContext,
)

__all__ = [
    "StudyError",
    "ValidationError",
    "InvalidConceptError",
    "NotFoundError",
    "ForbiddenError",
    "ConflictError",
    "AnswerConflictError",
    "SessionClosedError",
    "OracleFailureError",
    "GradingFallback",
    "Concept",
    "ConceptProgress",
    "Difficulty",
    "Flashcard",
    "InterleavedQuestion",
    "InterleavedSession",
    "MasteryStatus",
    "MemoryState",
    "QuestionType",
    "UserContext",
]
