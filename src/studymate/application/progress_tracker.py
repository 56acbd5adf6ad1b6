"""
Session progress tracking.

Records answers to interleaved questions, keeps the session's running
totals in sync with its questions, and moves sessions to their terminal
completed state.
"""

import logging
from dataclasses import replace

from studymate.domain.errors import (
    AnswerConflictError,
    ForbiddenError,
    NotFoundError,
    SessionClosedError,
    ValidationError,
)
from studymate.domain.models import (
    AnswerResult,
    InterleavedSession,
    QuestionView,
    SessionProgress,
    UserContext,
)
from studymate.domain.ports import Clock, StudyRepository

from .answer_checker import AnswerChecker

logger = logging.getLogger(__name__)


class SessionProgressTracker:
    """
    Application service for answering questions and completing sessions.

    All writes to a session happen under the repository's per-session lock.
    """

    def __init__(
        self,
        repo: StudyRepository,
        clock: Clock,
        checker: AnswerChecker | None = None,
    ):
        self._repo = repo
        self._clock = clock
        self._checker = checker or AnswerChecker()

    async def get_session(self, ctx: UserContext, session_id: int) -> InterleavedSession:
        session = await self._repo.get_session(session_id)
        if session is None:
            raise NotFoundError(f"Session {session_id} not found")
        if session.user_id != ctx.user_id:
            raise ForbiddenError(f"Session {session_id} belongs to another user")
        return session

    async def list_sessions(self, ctx: UserContext) -> list[InterleavedSession]:
        return await self._repo.list_sessions(ctx.user_id)

    async def list_questions(self, ctx: UserContext, session_id: int) -> list[QuestionView]:
        """Questions in presentation order, each with its concept title."""
        await self.get_session(ctx, session_id)
        titles = {c.id: c.title for c in await self._repo.list_concepts(ctx.user_id)}
        return [
            QuestionView(question=q, concept_title=titles.get(q.concept_id, "Unknown Concept"))
            for q in await self._repo.list_questions(session_id)
        ]

    async def progress(self, ctx: UserContext, session_id: int) -> SessionProgress:
        session = await self.get_session(ctx, session_id)
        return _progress_of(session)

    async def submit_answer(
        self,
        ctx: UserContext,
        session_id: int | None,
        question_id: int,
        raw_answer: str,
        time_spent: int,
    ) -> AnswerResult:
        """
        Grade and record an answer, then refresh the session totals.

        Args:
            ctx: The requesting user.
            session_id: Session the question must belong to. None resolves it
                from the question itself.
            question_id: Question being answered.
            raw_answer: The learner's answer as typed or selected.
            time_spent: Seconds spent on the question.

        Raises:
            ValidationError: Negative time or non-string answer.
            NotFoundError: Unknown question or session, or question not in session.
            ForbiddenError: Session belongs to another user.
            SessionClosedError: Session already completed.
            AnswerConflictError: Question already answered.
        """
        if not isinstance(raw_answer, str):
            raise ValidationError("answer must be a string")
        if isinstance(time_spent, bool) or not isinstance(time_spent, int) or time_spent < 0:
            raise ValidationError(f"time_spent must be a non-negative integer, got {time_spent!r}")

        question = await self._repo.get_question(question_id)
        if question is None:
            raise NotFoundError(f"Question {question_id} not found")
        if session_id is None:
            session_id = question.session_id
        elif question.session_id != session_id:
            raise NotFoundError(f"Question {question_id} not found in session {session_id}")

        async with self._repo.lock("session", session_id):
            session = await self.get_session(ctx, session_id)
            if not session.is_active:
                raise SessionClosedError(f"Session {session_id} is already completed")

            # Re-read inside the lock so a concurrent submission is seen
            question = await self._repo.get_question(question_id)
            if question.is_answered:
                raise AnswerConflictError(f"Question {question_id} was already answered")

            verdict = await self._checker.check(question, raw_answer)
            await self._repo.save_question(
                replace(
                    question,
                    user_answer=raw_answer,
                    is_correct=verdict.is_correct,
                    time_spent=time_spent,
                )
            )
            await self._refresh_totals(session)

        logger.info(
            f"Session {session_id}: question {question_id} answered "
            f"({'correct' if verdict.is_correct else 'incorrect'})"
        )
        return AnswerResult(
            question_id=question_id,
            is_correct=verdict.is_correct,
            canonical_answer=question.answer,
            fallback=verdict.fallback,
        )

    async def complete_session(self, ctx: UserContext, session_id: int) -> InterleavedSession:
        """
        Move a session to its terminal completed state.

        Completing an already completed session returns it unchanged.
        """
        async with self._repo.lock("session", session_id):
            session = await self.get_session(ctx, session_id)
            if not session.is_active:
                return session

            session = await self._repo.save_session(
                replace(session, is_active=False, completed_at=self._clock.now())
            )

        logger.info(
            f"Session {session_id} completed: {session.correct_answers}/"
            f"{session.questions_answered} correct of {session.total_questions}"
        )
        return session

    async def _refresh_totals(self, session: InterleavedSession) -> InterleavedSession:
        questions = await self._repo.list_questions(session.id)
        answered = sum(1 for q in questions if q.is_answered)
        correct = sum(1 for q in questions if q.is_correct is True)
        return await self._repo.save_session(
            replace(session, questions_answered=answered, correct_answers=correct)
        )


def _progress_of(session: InterleavedSession) -> SessionProgress:
    return SessionProgress(
        session_id=session.id,
        total_questions=session.total_questions,
        questions_answered=session.questions_answered,
        correct_answers=session.correct_answers,
        is_active=session.is_active,
        completed_at=session.completed_at,
    )

