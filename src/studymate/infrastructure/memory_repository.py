"""
In-process implementation of the StudyRepository port.

Entities are kept in dictionaries keyed by id, ids are assigned from
per-table counters. Per-entity mutual exclusion is provided by asyncio
locks keyed by (kind, id).
"""

import asyncio
import itertools
import logging
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from dataclasses import replace
from datetime import datetime

from studymate.domain.errors import NotFoundError, ValidationError
from studymate.domain.models import (
    Concept,
    ConceptProgress,
    Difficulty,
    Flashcard,
    InterleavedQuestion,
    InterleavedSession,
    MasteryStatus,
    MemoryState,
    NewQuestion,
)
from studymate.domain.ports import StudyRepository

logger = logging.getLogger(__name__)


class _Slot:
    __slots__ = ("lock", "users")

    def __init__(self):
        self.lock = asyncio.Lock()
        self.users = 0


class KeyedLock:
    """
    One asyncio.Lock per key, created on first use.

    A key's lock is dropped once its last holder or waiter leaves, so the
    table only holds keys that are in use.
    """

    def __init__(self):
        self._locks: dict[tuple[str, int], _Slot] = {}

    @asynccontextmanager
    async def hold(self, kind: str, entity_id: int) -> AsyncIterator[None]:
        key = (kind, entity_id)
        slot = self._locks.get(key)
        if slot is None:
            slot = self._locks[key] = _Slot()
        slot.users += 1
        try:
            async with slot.lock:
                yield
        finally:
            slot.users -= 1
            if slot.users == 0:
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


class InMemoryStudyRepository(StudyRepository):
    """Dictionary-backed repository. Suitable for a single process."""

    def __init__(self):
        self._locks = KeyedLock()
        self._concepts: dict[int, Concept] = {}
        self._progress: dict[tuple[str, int], ConceptProgress] = {}
        self._flashcards: dict[int, Flashcard] = {}
        self._sessions: dict[int, InterleavedSession] = {}
        self._questions: dict[int, InterleavedQuestion] = {}
        self._concept_ids = itertools.count(1)
        self._progress_ids = itertools.count(1)
        self._flashcard_ids = itertools.count(1)
        self._session_ids = itertools.count(1)
        self._question_ids = itertools.count(1)

    def lock(self, kind: str, entity_id: int):
        return self._locks.hold(kind, entity_id)

    # Concepts

    async def add_concept(
        self, user_id: str, title: str, description: str | None, tags: Sequence[str] = ()
    ) -> Concept:
        concept = Concept(
            id=next(self._concept_ids),
            user_id=user_id,
            title=title,
            description=description,
            tags=tuple(tags),
        )
        self._concepts[concept.id] = concept
        return concept

    async def get_concept(self, concept_id: int) -> Concept | None:
        return self._concepts.get(concept_id)

    async def list_concepts(self, user_id: str) -> list[Concept]:
        return [c for c in self._concepts.values() if c.user_id == user_id]

    async def upsert_concept_progress(
        self,
        user_id: str,
        concept_id: int,
        status: MasteryStatus,
        confidence: int | None,
        reviewed_at: datetime,
    ) -> ConceptProgress:
        current = self._progress.get((user_id, concept_id))
        if current is None:
            progress = ConceptProgress(
                id=next(self._progress_ids),
                user_id=user_id,
                concept_id=concept_id,
                status=status,
                confidence=confidence,
                last_reviewed=reviewed_at,
                created_at=reviewed_at,
                updated_at=reviewed_at,
            )
        else:
            progress = replace(
                current,
                status=status,
                confidence=current.confidence if confidence is None else confidence,
                last_reviewed=reviewed_at,
                updated_at=reviewed_at,
            )
        self._progress[(user_id, concept_id)] = progress
        return progress

    async def list_concept_progress(self, user_id: str) -> list[ConceptProgress]:
        owned = [p for p in self._progress.values() if p.user_id == user_id]
        return sorted(owned, key=lambda p: p.concept_id)

    # Flashcards

    async def add_flashcard(
        self,
        user_id: str,
        question: str,
        answer: str,
        memory: MemoryState,
        concept_id: int | None = None,
        tags: Sequence[str] = (),
    ) -> Flashcard:
        card = Flashcard(
            id=next(self._flashcard_ids),
            user_id=user_id,
            question=question,
            answer=answer,
            memory=memory,
            concept_id=concept_id,
            tags=tuple(tags),
        )
        self._flashcards[card.id] = card
        return card

    async def get_flashcard(self, flashcard_id: int) -> Flashcard | None:
        return self._flashcards.get(flashcard_id)

    async def list_flashcards(self, user_id: str) -> list[Flashcard]:
        return [f for f in self._flashcards.values() if f.user_id == user_id]

    async def save_flashcard(self, flashcard: Flashcard) -> Flashcard:
        if flashcard.id not in self._flashcards:
            raise NotFoundError(f"Flashcard {flashcard.id} not found")
        self._flashcards[flashcard.id] = flashcard
        return flashcard

    # Interleaved sessions

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
        orders = sorted(q.order_in_session for q in questions)
        if orders != list(range(len(questions))):
            raise ValidationError("order_in_session must be 0-based and contiguous")

        # Everything is built before anything is stored
        session = InterleavedSession(
            id=next(self._session_ids),
            user_id=user_id,
            title=title,
            description=description,
            concepts=tuple(concepts),
            difficulty=difficulty,
            total_questions=total_questions,
            created_at=created_at,
        )
        stored = [
            InterleavedQuestion(
                id=next(self._question_ids),
                session_id=session.id,
                concept_id=q.concept_id,
                question=q.question,
                answer=q.answer,
                question_type=q.question_type,
                options=q.options,
                order_in_session=q.order_in_session,
            )
            for q in questions
        ]

        self._sessions[session.id] = session
        self._questions.update((q.id, q) for q in stored)
        logger.debug(f"Stored session {session.id} with {len(stored)} questions")
        return session, sorted(stored, key=lambda q: q.order_in_session)

    async def get_session(self, session_id: int) -> InterleavedSession | None:
        return self._sessions.get(session_id)

    async def list_sessions(self, user_id: str) -> list[InterleavedSession]:
        owned = [s for s in self._sessions.values() if s.user_id == user_id]
        return sorted(owned, key=lambda s: (s.created_at, s.id), reverse=True)

    async def save_session(self, session: InterleavedSession) -> InterleavedSession:
        current = self._sessions.get(session.id)
        if current is None:
            raise NotFoundError(f"Session {session.id} not found")
        if current.completed_at is not None:
            # completed_at is write-once
            session = replace(session, completed_at=current.completed_at, is_active=False)
        self._sessions[session.id] = session
        return session

    async def get_question(self, question_id: int) -> InterleavedQuestion | None:
        return self._questions.get(question_id)

    async def list_questions(self, session_id: int) -> list[InterleavedQuestion]:
        owned = [q for q in self._questions.values() if q.session_id == session_id]
        return sorted(owned, key=lambda q: q.order_in_session)

    async def save_question(self, question: InterleavedQuestion) -> InterleavedQuestion:
        if question.id not in self._questions:
            raise NotFoundError(f"Question {question.id} not found")
        self._questions[question.id] = question
        return question
