"""
Flashcard review service: creating cards and applying graded reviews.

Coordinates ownership checks, the SM-2 scheduler and persistence so that
each review is an atomic read-modify-write on one card.
"""

import logging
from collections.abc import Sequence
from dataclasses import replace

from studymate.domain.errors import ForbiddenError, NotFoundError, ValidationError
from studymate.domain.models import Flashcard, MemoryState, UserContext
from studymate.domain.ports import Clock, StudyRepository

from .due_selector import DueSet, due_cards
from .scheduler import schedule, validate_quality

logger = logging.getLogger(__name__)


class FlashcardReviewService:
    """
    Application service for creating and reviewing flashcards.

    Follows Dependency Inversion: depends on the StudyRepository and Clock
    abstractions, not concrete adapter implementations.
    """

    def __init__(self, repo: StudyRepository, clock: Clock):
        self._repo = repo
        self._clock = clock

    async def create_flashcard(
        self,
        ctx: UserContext,
        question: str,
        answer: str,
        concept_id: int | None = None,
        tags: Sequence[str] = (),
    ) -> Flashcard:
        """Create a card with default memory state, due today."""
        if not question.strip() or not answer.strip():
            raise ValidationError("Flashcard question and answer must not be empty")

        if concept_id is not None:
            concept = await self._repo.get_concept(concept_id)
            if concept is None:
                raise NotFoundError(f"Concept {concept_id} not found")
            if concept.user_id != ctx.user_id:
                raise ForbiddenError(f"Concept {concept_id} belongs to another user")

        return await self._repo.add_flashcard(
            user_id=ctx.user_id,
            question=question,
            answer=answer,
            memory=MemoryState.initial(self._clock.today()),
            concept_id=concept_id,
            tags=tags,
        )

    async def list_flashcards(self, ctx: UserContext) -> list[Flashcard]:
        return await self._repo.list_flashcards(ctx.user_id)

    async def due_flashcards(self, ctx: UserContext) -> DueSet:
        cards = await self._repo.list_flashcards(ctx.user_id)
        return due_cards(cards, self._clock.today())

    async def review(self, ctx: UserContext, flashcard_id: int, quality: int) -> Flashcard:
        """
        Apply a graded review to a card and persist the new memory state.

        Raises:
            ValidationError: Quality outside [0, 5].
            NotFoundError: Unknown card.
            ForbiddenError: Card belongs to another user.
        """
        quality = validate_quality(quality)

        async with self._repo.lock("flashcard", flashcard_id):
            card = await self._repo.get_flashcard(flashcard_id)
            if card is None:
                raise NotFoundError(f"Flashcard {flashcard_id} not found")
            if card.user_id != ctx.user_id:
                raise ForbiddenError(f"Flashcard {flashcard_id} belongs to another user")

            memory = schedule(quality, card.memory, self._clock.today())
            card = await self._repo.save_flashcard(replace(card, memory=memory))

        logger.info(
            f"Flashcard {flashcard_id} reviewed with quality {quality}: "
            f"next review {memory.next_review_date} (interval {memory.interval}d, "
            f"ease {memory.ease_factor:.2f})"
        )
        return card
