"""
Interleaved session builder.

Builds a study session that mixes questions from several concepts:
1. Validates the request and keeps only concepts the user owns
2. Asks the question oracle for a fixed number of questions per concept
3. Shuffles the combined list and numbers it by final position
4. Persists the session and its questions in one atomic step

Any oracle failure aborts the whole creation; no partial session is stored.
"""

import asyncio
import logging
import random
from collections.abc import Sequence

from studymate.domain.constants import (
    MAX_DESCRIPTION_LENGTH,
    MAX_SESSION_CONCEPTS,
    MAX_TITLE_LENGTH,
    MIN_SESSION_CONCEPTS,
    ORACLE_TIMEOUT,
    QUESTIONS_PER_CONCEPT,
)
from studymate.domain.errors import InvalidConceptError, OracleFailureError, ValidationError
from studymate.domain.models import (
    Concept,
    Difficulty,
    GeneratedQuestion,
    InterleavedQuestion,
    InterleavedSession,
    NewQuestion,
    QuestionType,
    UserContext,
)
from studymate.domain.ports import Clock, QuestionGenerator, StudyRepository

logger = logging.getLogger(__name__)


class SessionBuilder:
    """
    Creates interleaved sessions.

    Depends on the QuestionGenerator and StudyRepository abstractions; the
    random source is injectable so tests can fix the shuffle order.
    """

    def __init__(
        self,
        repo: StudyRepository,
        generator: QuestionGenerator,
        clock: Clock,
        rng: random.Random | None = None,
        questions_per_concept: int = QUESTIONS_PER_CONCEPT,
        oracle_timeout: float = ORACLE_TIMEOUT,
    ):
        self._repo = repo
        self._generator = generator
        self._clock = clock
        self._rng = rng or random.Random()
        self._per_concept = questions_per_concept
        self._timeout = oracle_timeout

    async def create_session(
        self,
        ctx: UserContext,
        title: str,
        description: str | None,
        concept_ids: Sequence[int],
        difficulty: Difficulty | str = Difficulty.MEDIUM,
    ) -> tuple[InterleavedSession, list[InterleavedQuestion]]:
        """
        Build and persist a new interleaved session.

        Returns:
            The session and its questions ordered by `order_in_session`.

        Raises:
            ValidationError: Malformed title, description, concept list or difficulty.
            InvalidConceptError: Fewer than two owned concepts remain.
            OracleFailureError: Question generation failed for any concept.
        """
        title = _validate_title(title)
        description = _validate_description(description)
        difficulty = _validate_difficulty(difficulty)
        if not MIN_SESSION_CONCEPTS <= len(concept_ids) <= MAX_SESSION_CONCEPTS:
            raise ValidationError(
                f"A session needs between {MIN_SESSION_CONCEPTS} and "
                f"{MAX_SESSION_CONCEPTS} concepts, got {len(concept_ids)}"
            )

        concepts = await self._resolve_concepts(ctx, concept_ids)

        batches = await self._generate_all(concepts, difficulty)

        pool: list[tuple[int, GeneratedQuestion]] = [
            (concept.id, item)
            for concept, batch in zip(concepts, batches, strict=True)
            for item in batch
        ]
        self._rng.shuffle(pool)

        new_questions = [
            NewQuestion(
                concept_id=concept_id,
                question=item.question,
                answer=item.answer,
                question_type=item.question_type,
                options=item.options,
                order_in_session=position,
            )
            for position, (concept_id, item) in enumerate(pool)
        ]

        session, questions = await self._repo.add_session(
            user_id=ctx.user_id,
            title=title,
            description=description,
            concepts=[c.id for c in concepts],
            difficulty=difficulty,
            total_questions=len(concepts) * self._per_concept,
            created_at=self._clock.now(),
            questions=new_questions,
        )
        logger.info(
            f"Created interleaved session {session.id} for user {ctx.user_id} "
            f"({len(concepts)} concepts, {session.total_questions} questions)"
        )
        return session, questions

    async def _resolve_concepts(
        self, ctx: UserContext, concept_ids: Sequence[int]
    ) -> list[Concept]:
        owned = {c.id: c for c in await self._repo.list_concepts(ctx.user_id)}

        valid: list[Concept] = []
        seen: set[int] = set()
        for concept_id in concept_ids:
            if concept_id in seen:
                continue
            seen.add(concept_id)
            if concept_id in owned:
                valid.append(owned[concept_id])
            else:
                logger.debug(f"Dropping concept {concept_id}: not owned by {ctx.user_id}")

        if len(valid) < MIN_SESSION_CONCEPTS:
            raise InvalidConceptError(
                f"At least {MIN_SESSION_CONCEPTS} valid concepts are required, "
                f"found {len(valid)}"
            )
        return valid

    async def _generate_all(
        self, concepts: list[Concept], difficulty: Difficulty
    ) -> list[list[GeneratedQuestion]]:
        """Generate every concept's batch; the first failure cancels the rest."""
        try:
            async with asyncio.TaskGroup() as tg:
                tasks = [
                    tg.create_task(self._generate_for(concept, difficulty))
                    for concept in concepts
                ]
        except ExceptionGroup as group:
            failure = next(
                (e for e in group.exceptions if isinstance(e, OracleFailureError)), None
            )
            if failure is None:
                raise
            raise failure from None

        return [task.result() for task in tasks]

    async def _generate_for(
        self, concept: Concept, difficulty: Difficulty
    ) -> list[GeneratedQuestion]:
        try:
            batch = await asyncio.wait_for(
                self._generator.generate_questions(concept, difficulty, self._per_concept),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError as e:
            logger.error(f"Question generation for concept {concept.id} timed out")
            raise OracleFailureError(
                f"Question generation for concept {concept.id} timed out"
            ) from e
        except OracleFailureError:
            raise
        except Exception as e:
            logger.error(f"Question generation for concept {concept.id} failed: {e}")
            raise OracleFailureError(
                f"Question generation for concept {concept.id} failed: {e}"
            ) from e

        if len(batch) < self._per_concept:
            raise OracleFailureError(
                f"Expected {self._per_concept} questions for concept {concept.id}, "
                f"got {len(batch)}"
            )

        batch = list(batch[: self._per_concept])
        for item in batch:
            _check_generated(concept, item)
        return batch


def _check_generated(concept: Concept, item: GeneratedQuestion) -> None:
    if not item.question.strip() or not item.answer.strip():
        raise OracleFailureError(f"Empty question or answer generated for concept {concept.id}")
    if item.question_type == QuestionType.MULTIPLE_CHOICE and not item.options:
        raise OracleFailureError(
            f"Multiple choice question without options generated for concept {concept.id}"
        )
    if item.question_type != QuestionType.MULTIPLE_CHOICE and item.options:
        raise OracleFailureError(
            f"Options supplied for a {item.question_type.value} question "
            f"for concept {concept.id}"
        )


def _validate_title(title: str) -> str:
    title = (title or "").strip()
    if not title:
        raise ValidationError("Session title must not be empty")
    if len(title) > MAX_TITLE_LENGTH:
        raise ValidationError(f"Session title exceeds {MAX_TITLE_LENGTH} characters")
    return title


def _validate_description(description: str | None) -> str | None:
    if description is not None and len(description) > MAX_DESCRIPTION_LENGTH:
        raise ValidationError(f"Session description exceeds {MAX_DESCRIPTION_LENGTH} characters")
    return description


def _validate_difficulty(difficulty: Difficulty | str) -> Difficulty:
    try:
        return Difficulty(difficulty)
    except ValueError:
        raise ValidationError(f"Unknown difficulty: {difficulty!r}") from None
