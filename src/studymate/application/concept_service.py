"""
Concept catalogue and per-user concept mastery.
"""

import logging
from collections.abc import Sequence

from studymate.domain.constants import MAX_CONFIDENCE, MIN_CONFIDENCE
from studymate.domain.errors import ForbiddenError, NotFoundError, ValidationError
from studymate.domain.models import Concept, ConceptProgress, MasteryStatus, UserContext
from studymate.domain.ports import Clock, StudyRepository

logger = logging.getLogger(__name__)


class ConceptService:
    def __init__(self, repo: StudyRepository, clock: Clock):
        self._repo = repo
        self._clock = clock

    async def create_concept(
        self,
        ctx: UserContext,
        title: str,
        description: str | None = None,
        tags: Sequence[str] = (),
    ) -> Concept:
        title = title.strip()
        if not title:
            raise ValidationError("Concept title must not be empty")
        return await self._repo.add_concept(ctx.user_id, title, description, tags)

    async def list_concepts(self, ctx: UserContext) -> list[Concept]:
        return await self._repo.list_concepts(ctx.user_id)

    async def record_progress(
        self,
        ctx: UserContext,
        concept_id: int,
        status: MasteryStatus | str,
        confidence: int | None = None,
    ) -> ConceptProgress:
        """
        Record how well the user knows a concept, stamped as reviewed now.

        Raises:
            ValidationError: Unknown status or confidence outside [1, 5].
            NotFoundError: Unknown concept.
            ForbiddenError: Concept belongs to another user.
        """
        try:
            status = MasteryStatus(status)
        except ValueError:
            raise ValidationError(f"Unknown mastery status: {status!r}") from None
        if confidence is not None and (
            isinstance(confidence, bool)
            or not isinstance(confidence, int)
            or not MIN_CONFIDENCE <= confidence <= MAX_CONFIDENCE
        ):
            raise ValidationError(
                f"confidence must be an integer between {MIN_CONFIDENCE} and "
                f"{MAX_CONFIDENCE}, got {confidence!r}"
            )

        async with self._repo.lock("concept", concept_id):
            concept = await self._repo.get_concept(concept_id)
            if concept is None:
                raise NotFoundError(f"Concept {concept_id} not found")
            if concept.user_id != ctx.user_id:
                raise ForbiddenError(f"Concept {concept_id} belongs to another user")

            progress = await self._repo.upsert_concept_progress(
                ctx.user_id, concept_id, status, confidence, self._clock.now()
            )

        logger.info(f"Concept {concept_id} marked {status.value} by user {ctx.user_id}")
        return progress

    async def list_progress(self, ctx: UserContext) -> list[ConceptProgress]:
        return await self._repo.list_concept_progress(ctx.user_id)
