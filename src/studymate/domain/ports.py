"""
Ports (interfaces) for the study core.

These define the contract that infrastructure adapters must implement.
Application services depend on these abstractions, not concrete implementations.
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from contextlib import AbstractAsyncContextManager
from datetime import date, datetime

from .models import (
    Concept,
    ConceptProgress,
    Difficulty,
    Flashcard,
    GeneratedQuestion,
    InterleavedQuestion,
    InterleavedSession,
    MasteryStatus,
    MemoryState,
    NewQuestion,
)


class Clock(ABC):
    """Source of "now" and "today"; injected so scheduling stays deterministic."""

    @abstractmethod
    def now(self) -> datetime:
        pass

    def today(self) -> date:
        return self.now().date()


class QuestionGenerator(ABC):
    """
    Port for the question-generation oracle.

    Implementations:
        - OpenAIQuestionGenerator: Chat-completions backed generator.
    """

    @abstractmethod
    async def generate_questions(
        self, concept: Concept, difficulty: Difficulty, count: int
    ) -> list[GeneratedQuestion]:
        """
        Produce study questions about a concept.

        Args:
            concept: The concept to quiz on.
            difficulty: Requested difficulty level.
            count: Number of questions wanted.

        Returns:
            Generated questions. May contain fewer than `count` items; callers
            treat under-delivery as a failure.
        """
        pass


class AnswerGrader(ABC):
    """
    Port for the answer-grading oracle used for free-text answers.

    Implementations:
        - OpenAIAnswerGrader: Chat-completions backed grader.
    """

    @abstractmethod
    async def is_answer_correct(
        self, question: str, canonical_answer: str, user_answer: str
    ) -> bool:
        pass


class StudyRepository(ABC):
    """
    Port for persisting concepts, flashcards and interleaved sessions.

    Read-modify-write sequences on a single entity must run inside
    `lock(kind, entity_id)`; different entities never share a lock.
    """

    @abstractmethod
    def lock(self, kind: str, entity_id: int) -> AbstractAsyncContextManager[None]:
        """Mutual-exclusion boundary for one entity, e.g. ("session", 7)."""
        pass

    # Concepts

    @abstractmethod
    async def add_concept(
        self, user_id: str, title: str, description: str | None, tags: Sequence[str]
    ) -> Concept:
        pass

    @abstractmethod
    async def get_concept(self, concept_id: int) -> Concept | None:
        pass

    @abstractmethod
    async def list_concepts(self, user_id: str) -> list[Concept]:
        pass

    @abstractmethod
    async def upsert_concept_progress(
        self,
        user_id: str,
        concept_id: int,
        status: MasteryStatus,
        confidence: int | None,
        reviewed_at: datetime,
    ) -> ConceptProgress:
        """
        Record mastery of a concept, one row per (user, concept).

        An existing row keeps its id, creation time and, when `confidence`
        is None, its confidence.
        """
        pass

    @abstractmethod
    async def list_concept_progress(self, user_id: str) -> list[ConceptProgress]:
        pass

    # Flashcards

    @abstractmethod
    async def add_flashcard(
        self,
        user_id: str,
        question: str,
        answer: str,
        memory: MemoryState,
        concept_id: int | None = None,
        tags: Sequence[str] = (),
    ) -> Flashcard:
        pass

    @abstractmethod
    async def get_flashcard(self, flashcard_id: int) -> Flashcard | None:
        pass

    @abstractmethod
    async def list_flashcards(self, user_id: str) -> list[Flashcard]:
        pass

    @abstractmethod
    async def save_flashcard(self, flashcard: Flashcard) -> Flashcard:
        pass

    # Interleaved sessions

    @abstractmethod
    async def add_session(
        self,
        user_id: str,
        title: str,
        description: str | None,
        concepts: Sequence[int],
        difficulty: Difficulty,
        total_questions: int,
        created_at: datetime,
        questions: Sequence[NewQuestion],
    ) -> tuple[InterleavedSession, list[InterleavedQuestion]]:
        """
        Persist a session together with all of its questions.

        Either everything is stored or nothing is.
        """
        pass

    @abstractmethod
    async def get_session(self, session_id: int) -> InterleavedSession | None:
        pass

    @abstractmethod
    async def list_sessions(self, user_id: str) -> list[InterleavedSession]:
        """Sessions of a user, newest first."""
        pass

    @abstractmethod
    async def save_session(self, session: InterleavedSession) -> InterleavedSession:
        pass

    @abstractmethod
    async def get_question(self, question_id: int) -> InterleavedQuestion | None:
        pass

    @abstractmethod
    async def list_questions(self, session_id: int) -> list[InterleavedQuestion]:
        """Questions of a session ordered by `order_in_session`."""
        pass

    @abstractmethod
    async def save_question(self, question: InterleavedQuestion) -> InterleavedQuestion:
        pass
