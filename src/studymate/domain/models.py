"""
Domain models for flashcard scheduling and interleaved study sessions.

These are pure data structures with no I/O or external dependencies.
All entities are immutable; services derive updated copies with
`dataclasses.replace` and hand them back to the repository.
"""

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum

from .constants import DEFAULT_EASE_FACTOR, DEFAULT_INTERVAL, MIN_EASE_FACTOR
from .errors import GradingFallback, ValidationError


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class QuestionType(str, Enum):
    MULTIPLE_CHOICE = "multiple_choice"
    SHORT_ANSWER = "short_answer"
    TRUE_FALSE = "true_false"


class MasteryStatus(str, Enum):
    STUDY = "study"
    KNOWN = "known"
    REVIEWING = "reviewing"


@dataclass(frozen=True)
class UserContext:
    """Identity of the user a request acts for."""

    user_id: str


@dataclass(frozen=True)
class MemoryState:
    """
    SM-2 scheduling parameters for a single flashcard.

    Attributes:
        difficulty: Opaque label carried through reviews unchanged.
        interval: Days until the next review (>= 1).
        repetitions: Consecutive successful reviews (>= 0).
        ease_factor: Interval growth multiplier (>= 1.3).
        next_review_date: Day on which the card becomes due.
    """

    next_review_date: date
    difficulty: int = 0
    interval: int = DEFAULT_INTERVAL
    repetitions: int = 0
    ease_factor: float = DEFAULT_EASE_FACTOR

    def __post_init__(self):
        if self.difficulty < 0:
            raise ValidationError(f"difficulty must be non-negative, got {self.difficulty}")
        if self.interval < 1:
            raise ValidationError(f"interval must be at least 1 day, got {self.interval}")
        if self.repetitions < 0:
            raise ValidationError(f"repetitions must be non-negative, got {self.repetitions}")
        if self.ease_factor < MIN_EASE_FACTOR:
            raise ValidationError(
                f"ease_factor must be at least {MIN_EASE_FACTOR}, got {self.ease_factor}"
            )

    @classmethod
    def initial(cls, today: date) -> "MemoryState":
        """State of a freshly created card: due today with default parameters."""
        return cls(next_review_date=today)

    def is_due(self, today: date) -> bool:
        return self.next_review_date <= today


@dataclass(frozen=True)
class Concept:
    id: int
    user_id: str
    title: str
    description: str | None = None
    tags: tuple[str, ...] = ()


@dataclass(frozen=True)
class ConceptProgress:
    """A user's self-reported mastery of one concept."""

    id: int
    user_id: str
    concept_id: int
    status: MasteryStatus
    last_reviewed: datetime
    created_at: datetime
    updated_at: datetime
    confidence: int | None = None


@dataclass(frozen=True)
class Flashcard:
    id: int
    user_id: str
    question: str
    answer: str
    memory: MemoryState
    concept_id: int | None = None
    tags: tuple[str, ...] = ()


@dataclass(frozen=True)
class GeneratedQuestion:
    """A question as delivered by the question-generation oracle."""

    question: str
    answer: str
    question_type: QuestionType
    options: tuple[str, ...] | None = None


@dataclass(frozen=True)
class NewQuestion:
    """A question ready to be persisted with its session (no id yet)."""

    concept_id: int
    question: str
    answer: str
    question_type: QuestionType
    order_in_session: int
    options: tuple[str, ...] | None = None


@dataclass(frozen=True)
class InterleavedSession:
    id: int
    user_id: str
    title: str
    concepts: tuple[int, ...]
    difficulty: Difficulty
    total_questions: int
    created_at: datetime
    description: str | None = None
    questions_answered: int = 0
    correct_answers: int = 0
    is_active: bool = True
    completed_at: datetime | None = None


@dataclass(frozen=True)
class InterleavedQuestion:
    id: int
    session_id: int
    concept_id: int
    question: str
    answer: str
    question_type: QuestionType
    order_in_session: int
    options: tuple[str, ...] | None = None
    user_answer: str | None = None
    is_correct: bool | None = None
    time_spent: int | None = None

    @property
    def is_answered(self) -> bool:
        return self.user_answer is not None


@dataclass(frozen=True)
class SessionProgress:
    """Aggregate progress of an interleaved session, as shown to the learner."""

    session_id: int
    total_questions: int
    questions_answered: int
    correct_answers: int
    is_active: bool
    completed_at: datetime | None = None

    @property
    def remaining(self) -> int:
        return self.total_questions - self.questions_answered

    @property
    def all_answered(self) -> bool:
        return self.total_questions > 0 and self.questions_answered >= self.total_questions

    @property
    def progress_percent(self) -> int:
        if self.total_questions == 0:
            return 0
        return _percent(self.questions_answered, self.total_questions)

    @property
    def accuracy_percent(self) -> int:
        if self.questions_answered == 0:
            return 0
        return _percent(self.correct_answers, self.questions_answered)


@dataclass(frozen=True)
class AnswerResult:
    """Verdict returned to the caller after an answer submission."""

    question_id: int
    is_correct: bool
    canonical_answer: str
    fallback: GradingFallback | None = None


@dataclass(frozen=True)
class QuestionView:
    """A session question decorated with its concept title for display."""

    question: InterleavedQuestion
    concept_title: str


@dataclass(frozen=True)
class ReviewPlanStep:
    """One row of a simulated review plan."""

    reviewed_on: date
    quality: int
    state: MemoryState


def _percent(part: int, whole: int) -> int:
    # Half-up rounding on non-negative ratios
    return (part * 200 + whole) // (whole * 2)


