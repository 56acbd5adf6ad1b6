"""
SM-2 review scheduler.

Given a quality rating of a recall attempt, derives the next memory state of a
flashcard and the day it becomes due again. This is a pure computation module
with no I/O: callers persist the returned state.
"""

from collections.abc import Iterable
from dataclasses import replace
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal

from studymate.domain.constants import (
    DEFAULT_INTERVAL,
    MAX_QUALITY,
    MIN_EASE_FACTOR,
    MIN_QUALITY,
    PASSING_QUALITY,
    SECOND_INTERVAL,
)
from studymate.domain.errors import ValidationError
from studymate.domain.models import MemoryState, ReviewPlanStep


def validate_quality(quality: object) -> int:
    """Return `quality` if it is an integer rating in [0, 5], else raise."""
    if isinstance(quality, bool) or not isinstance(quality, int):
        raise ValidationError(f"quality must be an integer, got {quality!r}")
    if not MIN_QUALITY <= quality <= MAX_QUALITY:
        raise ValidationError(
            f"quality must be between {MIN_QUALITY} and {MAX_QUALITY}, got {quality}"
        )
    return quality


def round_half_away_from_zero(value: float) -> int:
    """Round to the nearest integer, ties away from zero (2.5 -> 3, -2.5 -> -3)."""
    return int(Decimal(value).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def next_ease_factor(ease_factor: float, quality: int) -> float:
    """
    SM-2 ease update, floored at 1.3.

    EF' = EF + (0.1 - (5 - q) * (0.08 + (5 - q) * 0.02))
    """
    miss = MAX_QUALITY - quality
    updated = ease_factor + (0.1 - miss * (0.08 + miss * 0.02))
    return max(updated, MIN_EASE_FACTOR)


def schedule(quality: int, state: MemoryState, today: date) -> MemoryState:
    """
    Apply one graded review to a memory state.

    Args:
        quality: Self-assessed recall quality, 0 (blackout) to 5 (perfect).
        state: Current memory state of the card.
        today: Day the review happens on.

    Returns:
        The new MemoryState. `state` itself is never modified.

    Raises:
        ValidationError: If quality is not an integer in [0, 5].
    """
    quality = validate_quality(quality)

    if quality >= PASSING_QUALITY:
        if state.repetitions == 0:
            interval = DEFAULT_INTERVAL
        elif state.repetitions == 1:
            interval = SECOND_INTERVAL
        else:
            interval = round_half_away_from_zero(state.interval * state.ease_factor)
        repetitions = state.repetitions + 1
    else:
        interval = DEFAULT_INTERVAL
        repetitions = 0

    return replace(
        state,
        interval=interval,
        repetitions=repetitions,
        ease_factor=next_ease_factor(state.ease_factor, quality),
        next_review_date=today + timedelta(days=interval),
    )


def plan_reviews(
    qualities: Iterable[int], start: date, state: MemoryState | None = None
) -> list[ReviewPlanStep]:
    """
    Simulate a sequence of reviews, each one taken on the day the card falls due.

    The first review happens on `start`.
    """
    current = state or MemoryState.initial(start)
    reviewed_on = start
    steps: list[ReviewPlanStep] = []

    for quality in qualities:
        current = schedule(quality, current, reviewed_on)
        steps.append(ReviewPlanStep(reviewed_on=reviewed_on, quality=quality, state=current))
        reviewed_on = current.next_review_date

    return steps
