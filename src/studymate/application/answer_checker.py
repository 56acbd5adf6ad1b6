"""
Answer checking at the grading-oracle boundary.

Closed-form questions (multiple choice, true/false) are graded locally by
normalized exact match. Free-text answers go to the pluggable AnswerGrader;
when it fails or times out, exact match is used instead and a
GradingFallback event is returned alongside the verdict.
"""

import asyncio
import logging
from dataclasses import dataclass

from studymate.domain.constants import GRADING_TIMEOUT
from studymate.domain.errors import GradingFallback
from studymate.domain.models import InterleavedQuestion, QuestionType
from studymate.domain.ports import AnswerGrader

logger = logging.getLogger(__name__)


def normalize_answer(text: str) -> str:
    return text.strip().lower()


def exact_match(user_answer: str, canonical_answer: str) -> bool:
    """Case-insensitive, whitespace-trimmed string equality."""
    return normalize_answer(user_answer) == normalize_answer(canonical_answer)


@dataclass(frozen=True)
class Verdict:
    is_correct: bool
    fallback: GradingFallback | None = None


class AnswerChecker:
    """Grades a raw answer against a question's canonical answer."""

    def __init__(self, grader: AnswerGrader | None = None, timeout: float = GRADING_TIMEOUT):
        self._grader = grader
        self._timeout = timeout

    async def check(self, question: InterleavedQuestion, raw_answer: str) -> Verdict:
        if question.question_type != QuestionType.SHORT_ANSWER or self._grader is None:
            return Verdict(is_correct=exact_match(raw_answer, question.answer))

        try:
            is_correct = await asyncio.wait_for(
                self._grader.is_answer_correct(question.question, question.answer, raw_answer),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            return self._fall_back(question, raw_answer, f"timed out after {self._timeout}s")
        except Exception as e:
            return self._fall_back(question, raw_answer, f"{type(e).__name__}: {e}")

        if not isinstance(is_correct, bool):
            return self._fall_back(
                question, raw_answer, f"grader returned a non-boolean verdict: {is_correct!r}"
            )
        return Verdict(is_correct=is_correct)

    def _fall_back(self, question: InterleavedQuestion, raw_answer: str, reason: str) -> Verdict:
        logger.warning(
            f"Grading oracle failed for question {question.id} ({reason}); using exact match"
        )
        return Verdict(
            is_correct=exact_match(raw_answer, question.answer),
            fallback=GradingFallback(question_id=question.id, reason=reason),
        )
