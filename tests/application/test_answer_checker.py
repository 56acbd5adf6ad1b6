"""Tests for the answer-grading boundary and its exact-match fallback."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from studymate.application.answer_checker import AnswerChecker, exact_match
from studymate.domain.models import InterleavedQuestion, QuestionType


def make_question(question_type: QuestionType, answer: str = "Paris") -> InterleavedQuestion:
    return InterleavedQuestion(
        id=42,
        session_id=1,
        concept_id=1,
        question="Capital of France?",
        answer=answer,
        question_type=question_type,
        order_in_session=0,
        options=("Paris", "Rome") if question_type == QuestionType.MULTIPLE_CHOICE else None,
    )


def test_exact_match_ignores_case_and_outer_whitespace():
    assert exact_match("  paris ", "Paris")
    assert exact_match("TRUE", "true")
    assert not exact_match("Par is", "Paris")
    assert not exact_match("Lyon", "Paris")


@pytest.mark.asyncio
async def test_closed_questions_never_call_grader():
    grader = AsyncMock()
    checker = AnswerChecker(grader)

    mc = await checker.check(make_question(QuestionType.MULTIPLE_CHOICE), " PARIS")
    tf = await checker.check(make_question(QuestionType.TRUE_FALSE, "false"), "true")

    assert mc.is_correct is True
    assert tf.is_correct is False
    grader.is_answer_correct.assert_not_called()


@pytest.mark.asyncio
async def test_short_answer_delegates_to_grader():
    grader = AsyncMock()
    grader.is_answer_correct.return_value = True
    checker = AnswerChecker(grader)

    verdict = await checker.check(make_question(QuestionType.SHORT_ANSWER), "the city of Paris")

    assert verdict.is_correct is True
    assert verdict.fallback is None
    grader.is_answer_correct.assert_awaited_once_with(
        "Capital of France?", "Paris", "the city of Paris"
    )


@pytest.mark.asyncio
async def test_grader_failure_falls_back_to_exact_match():
    grader = AsyncMock()
    grader.is_answer_correct.side_effect = RuntimeError("rate limited")
    checker = AnswerChecker(grader)

    right = await checker.check(make_question(QuestionType.SHORT_ANSWER), "paris")
    wrong = await checker.check(make_question(QuestionType.SHORT_ANSWER), "the city of Paris")

    assert right.is_correct is True
    assert wrong.is_correct is False
    assert right.fallback is not None
    assert right.fallback.question_id == 42
    assert "rate limited" in right.fallback.reason


@pytest.mark.asyncio
async def test_grader_timeout_falls_back():
    async def slow(*args):
        await asyncio.sleep(1)
        return True

    grader = AsyncMock()
    grader.is_answer_correct.side_effect = slow
    checker = AnswerChecker(grader, timeout=0.01)

    verdict = await checker.check(make_question(QuestionType.SHORT_ANSWER), "Rome")

    assert verdict.is_correct is False
    assert verdict.fallback is not None
    assert "timed out" in verdict.fallback.reason


@pytest.mark.asyncio
async def test_without_grader_short_answers_use_exact_match():
    checker = AnswerChecker()

    verdict = await checker.check(make_question(QuestionType.SHORT_ANSWER), "Paris ")

    assert verdict.is_correct is True
    assert verdict.fallback is None


@pytest.mark.asyncio
@pytest.mark.parametrize("raw_verdict", ["false", "true", None, 1])
async def test_non_boolean_verdict_falls_back(raw_verdict):
    grader = AsyncMock()
    grader.is_answer_correct.return_value = raw_verdict
    checker = AnswerChecker(grader)

    verdict = await checker.check(make_question(QuestionType.SHORT_ANSWER), "Lyon")

    assert verdict.is_correct is False
    assert verdict.fallback is not None
    assert "non-boolean" in verdict.fallback.reason
