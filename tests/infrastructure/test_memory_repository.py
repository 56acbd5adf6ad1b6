import asyncio
from dataclasses import replace
from datetime import timedelta

import pytest

from studymate.domain.errors import NotFoundError, ValidationError
from studymate.domain.models import (
    Difficulty,
    MasteryStatus,
    MemoryState,
    NewQuestion,
    QuestionType,
)
from studymate.infrastructure.memory_repository import InMemoryStudyRepository, KeyedLock


def new_questions(orders, concept_id=1):
    return [
        NewQuestion(
            concept_id=concept_id,
            question=f"Q{o}",
            answer="true",
            question_type=QuestionType.TRUE_FALSE,
            order_in_session=o,
        )
        for o in orders
    ]


async def add_session(repo, created_at, user_id="alice", orders=(1, 0, 2)):
    return await repo.add_session(
        user_id=user_id,
        title="S",
        description=None,
        concepts=[1, 2],
        difficulty=Difficulty.MEDIUM,
        total_questions=len(orders),
        created_at=created_at,
        questions=new_questions(orders),
    )


class TestSessions:
    @pytest.mark.asyncio
    async def test_add_session_stores_questions_in_order(self, repo, clock):
        session, questions = await add_session(repo, clock.now())

        assert [q.order_in_session for q in questions] == [0, 1, 2]
        assert all(q.session_id == session.id for q in questions)
        assert await repo.list_questions(session.id) == questions
        assert session.concepts == (1, 2)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("orders", [(0, 2), (1, 2), (0, 0, 1)])
    async def test_non_contiguous_order_stores_nothing(self, repo, clock, orders):
        with pytest.raises(ValidationError):
            await add_session(repo, clock.now(), orders=orders)

        assert await repo.list_sessions("alice") == []

    @pytest.mark.asyncio
    async def test_list_sessions_newest_first(self, repo, clock):
        older, _ = await add_session(repo, clock.now())
        newer, _ = await add_session(repo, clock.now() + timedelta(minutes=5))
        await add_session(repo, clock.now(), user_id="bob")

        listed = await repo.list_sessions("alice")

        assert [s.id for s in listed] == [newer.id, older.id]

    @pytest.mark.asyncio
    async def test_completed_at_is_write_once(self, repo, clock):
        session, _ = await add_session(repo, clock.now())
        done = await repo.save_session(
            replace(session, is_active=False, completed_at=clock.now())
        )

        later = clock.now() + timedelta(days=1)
        again = await repo.save_session(replace(done, is_active=True, completed_at=later))

        assert again.completed_at == done.completed_at
        assert again.is_active is False

    @pytest.mark.asyncio
    async def test_saving_unknown_entities(self, repo, clock):
        session, questions = await add_session(repo, clock.now())

        with pytest.raises(NotFoundError):
            await repo.save_session(replace(session, id=99))
        with pytest.raises(NotFoundError):
            await repo.save_question(replace(questions[0], id=99))


class TestFlashcards:
    @pytest.mark.asyncio
    async def test_ids_are_sequential_per_table(self, repo, today):
        a = await repo.add_flashcard("alice", "Q1", "A1", MemoryState.initial(today))
        b = await repo.add_flashcard("bob", "Q2", "A2", MemoryState.initial(today))
        concept = await repo.add_concept("alice", "C", None)

        assert (a.id, b.id, concept.id) == (1, 2, 1)
        assert await repo.list_flashcards("alice") == [a]

    @pytest.mark.asyncio
    async def test_save_unknown_flashcard(self, repo, today):
        card = await repo.add_flashcard("alice", "Q", "A", MemoryState.initial(today))

        with pytest.raises(NotFoundError):
            await repo.save_flashcard(replace(card, id=5))


class TestKeyedLock:
    @pytest.mark.asyncio
    async def test_same_key_is_exclusive(self):
        locks = KeyedLock()
        events = []

        async def worker(name):
            async with locks.hold("session", 1):
                events.append(f"{name}-in")
                await asyncio.sleep(0.01)
                events.append(f"{name}-out")

        await asyncio.gather(worker("a"), worker("b"))

        assert events in (
            ["a-in", "a-out", "b-in", "b-out"],
            ["b-in", "b-out", "a-in", "a-out"],
        )

    @pytest.mark.asyncio
    async def test_different_keys_do_not_block(self):
        locks = KeyedLock()
        inside = asyncio.Event()

        async def holder():
            async with locks.hold("session", 1):
                await asyncio.wait_for(inside.wait(), timeout=1)

        async def other():
            async with locks.hold("flashcard", 1):
                inside.set()

        await asyncio.gather(holder(), other())

        assert len(locks) == 0

    @pytest.mark.asyncio
    async def test_lock_is_dropped_after_last_holder(self):
        locks = KeyedLock()
        entered = asyncio.Event()
        release = asyncio.Event()

        async def first():
            async with locks.hold("session", 1):
                entered.set()
                await release.wait()

        async def second():
            await entered.wait()
            async with locks.hold("session", 1):
                assert len(locks) == 1

        task = asyncio.gather(first(), second())
        await entered.wait()
        await asyncio.sleep(0)
        assert len(locks) == 1
        release.set()
        await task

        assert len(locks) == 0

    @pytest.mark.asyncio
    async def test_lock_is_dropped_when_body_raises(self):
        locks = KeyedLock()

        with pytest.raises(RuntimeError):
            async with locks.hold("flashcard", 9):
                raise RuntimeError("boom")

        assert len(locks) == 0

    @pytest.mark.asyncio
    async def test_repository_exposes_lock(self):
        repo = InMemoryStudyRepository()

        async with repo.lock("flashcard", 3):
            pass


class TestConceptProgress:
    @pytest.mark.asyncio
    async def test_upsert_keeps_one_row_per_user_and_concept(self, repo, clock):
        first = await repo.upsert_concept_progress("alice", 1, MasteryStatus.STUDY, 2, clock.now())
        later = clock.now() + timedelta(hours=1)
        second = await repo.upsert_concept_progress(
            "alice", 1, MasteryStatus.KNOWN, None, later
        )

        assert second.id == first.id
        assert second.created_at == first.created_at
        assert second.status == MasteryStatus.KNOWN
        assert second.confidence == 2
        assert second.last_reviewed == second.updated_at == later
        assert await repo.list_concept_progress("alice") == [second]

    @pytest.mark.asyncio
    async def test_progress_is_listed_per_user(self, repo, clock):
        await repo.upsert_concept_progress("alice", 2, MasteryStatus.REVIEWING, 4, clock.now())
        await repo.upsert_concept_progress("alice", 1, MasteryStatus.STUDY, None, clock.now())
        await repo.upsert_concept_progress("bob", 1, MasteryStatus.KNOWN, 5, clock.now())

        listed = await repo.list_concept_progress("alice")

        assert [p.concept_id for p in listed] == [1, 2]
        assert {p.user_id for p in listed} == {"alice"}
