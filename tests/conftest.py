import random
from datetime import date, datetime, timezone

import pytest

from studymate.application.session_builder import SessionBuilder
from studymate.domain.models import UserContext
from studymate.infrastructure.clock import FixedClock
from studymate.infrastructure.memory_repository import InMemoryStudyRepository
from tests.fakes import FakeQuestionGenerator

START = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock():
    return FixedClock(START)


@pytest.fixture
def today(clock) -> date:
    return clock.today()


@pytest.fixture
def repo():
    return InMemoryStudyRepository()


@pytest.fixture
def ctx():
    return UserContext(user_id="alice")


@pytest.fixture
def other_ctx():
    return UserContext(user_id="mallory")


@pytest.fixture
def generator():
    return FakeQuestionGenerator()


@pytest.fixture
async def concepts(repo, ctx):
    """Three concepts owned by alice."""
    return [
        await repo.add_concept(ctx.user_id, "Photosynthesis", "Light to sugar", ("bio",)),
        await repo.add_concept(ctx.user_id, "Mitosis", "Cell division", ()),
        await repo.add_concept(ctx.user_id, "Osmosis", None, ()),
    ]


@pytest.fixture
async def foreign_concept(repo, other_ctx):
    return await repo.add_concept(other_ctx.user_id, "Stolen", None, ())


@pytest.fixture
async def session_with_questions(repo, generator, clock, ctx, concepts):
    """A two-concept session (10 questions) built with a fixed shuffle seed."""
    builder = SessionBuilder(repo, generator, clock, rng=random.Random(11))
    return await builder.create_session(ctx, "Biology", None, [concepts[0].id, concepts[1].id])
