from datetime import timedelta

import pytest

from studymate.application.concept_service import ConceptService
from studymate.domain.errors import ForbiddenError, NotFoundError, ValidationError
from studymate.domain.models import MasteryStatus


@pytest.fixture
def service(repo, clock):
    return ConceptService(repo, clock)


class TestCatalogue:
    @pytest.mark.asyncio
    async def test_create_trims_title(self, service, ctx):
        concept = await service.create_concept(ctx, "  Osmosis ", "Water", ["bio"])

        assert concept.title == "Osmosis"
        assert concept.tags == ("bio",)
        assert await service.list_concepts(ctx) == [concept]

    @pytest.mark.asyncio
    async def test_blank_title_rejected(self, service, ctx):
        with pytest.raises(ValidationError):
            await service.create_concept(ctx, "   ")


class TestRecordProgress:
    @pytest.mark.asyncio
    async def test_first_record_is_stamped_now(self, service, clock, ctx, concepts):
        progress = await service.record_progress(ctx, concepts[0].id, "study", 3)

        assert progress.user_id == ctx.user_id
        assert progress.status == MasteryStatus.STUDY
        assert progress.confidence == 3
        assert progress.last_reviewed == progress.created_at == clock.now()

    @pytest.mark.asyncio
    async def test_second_record_updates_the_same_row(self, service, clock, ctx, concepts):
        first = await service.record_progress(ctx, concepts[0].id, MasteryStatus.STUDY, 2)
        clock.set(clock.now() + timedelta(days=1))

        second = await service.record_progress(ctx, concepts[0].id, MasteryStatus.KNOWN)

        assert second.id == first.id
        assert second.created_at == first.created_at
        assert second.status == MasteryStatus.KNOWN
        assert second.confidence == 2
        assert second.updated_at == second.last_reviewed == clock.now()

    @pytest.mark.asyncio
    async def test_unknown_status(self, service, ctx, concepts):
        with pytest.raises(ValidationError, match="status"):
            await service.record_progress(ctx, concepts[0].id, "forgotten")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("confidence", [0, 6, 2.5, True, "3"])
    async def test_confidence_out_of_range(self, service, ctx, concepts, confidence):
        with pytest.raises(ValidationError, match="confidence"):
            await service.record_progress(ctx, concepts[0].id, "known", confidence)

        assert await service.list_progress(ctx) == []

    @pytest.mark.asyncio
    async def test_foreign_concept(self, service, other_ctx, concepts):
        with pytest.raises(ForbiddenError):
            await service.record_progress(other_ctx, concepts[0].id, "known")

    @pytest.mark.asyncio
    async def test_unknown_concept(self, service, ctx):
        with pytest.raises(NotFoundError):
            await service.record_progress(ctx, 404, "known")


@pytest.mark.asyncio
async def test_progress_is_scoped_to_user(service, ctx, other_ctx, concepts, foreign_concept):
    await service.record_progress(ctx, concepts[1].id, "reviewing", 4)
    await service.record_progress(other_ctx, foreign_concept.id, "known", 5)

    mine = await service.list_progress(ctx)

    assert [p.concept_id for p in mine] == [concepts[1].id]
