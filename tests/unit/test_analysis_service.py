"""
Unit tests for the AnalysisService pipeline.

The vision model is replaced by MockVisionModelService and image loading by
a fake store, so these tests exercise ordering and error propagation only.
"""
import asyncio
import json
import uuid
from unittest.mock import AsyncMock, patch

import pytest

from app.models import AnalysisRecord, EntryType, JournalEntry
from app.services.analysis_card import CardRegistry
from app.services.analysis_errors import (
    AnalysisCancelledError,
    CardBusyError,
    PersistenceError,
    RefusalError,
    UnparsableResponseError,
    ValidationError,
)
from app.services.analysis_service import AnalysisService, record_from_payload
from app.services.analysis_store import AnalysisStore
from app.services.health_report_service import HealthReportService
from app.services.image_store import ImageStore, LoadedImage
from tests.factories import create_entry, create_subject
from tests.fixtures.mocks import MockVisionModelService, analysis_payload


class FakeImageStore(ImageStore):
    def __init__(self):
        super().__init__(upload_dir=".")
        self.loaded = []

    async def load(self, image_ref, mime_type=None):
        self.loaded.append(image_ref)
        return LoadedImage(data="QUJD" * 40, mime_type=mime_type or "image/png")


@pytest.fixture
def model():
    return MockVisionModelService()


@pytest.fixture
def images():
    return FakeImageStore()


@pytest.fixture
def service(model, images):
    return AnalysisService(
        model_service=model, store=AnalysisStore(), images=images, cards=CardRegistry()
    )


@pytest.fixture
def subject(db, test_user):
    return create_subject(db, test_user, breed="Akita")


class TestAnalyze:
    @pytest.mark.asyncio
    async def test_exact_photo_ref_scenario(self, db, service, model, images, context, subject):
        entry = create_entry(db, subject, EntryType.POOP, photo_ref="uploads/pochi/1.jpg")
        entries_before = db.query(JournalEntry).count()

        outcome = await service.analyze(
            db, context, {"analysis_type": "poop", "image_ref": "uploads/pochi/1.jpg"}
        )

        assert len(model.calls) == 1
        assert images.loaded == ["uploads/pochi/1.jpg"]
        assert outcome.saved
        assert outcome.resolution.entry_id == entry.id
        records = db.query(AnalysisRecord).filter_by(journal_entry_id=entry.id).all()
        assert len(records) == 1
        assert records[0].analysis_type == EntryType.POOP
        assert db.query(JournalEntry).count() == entries_before

    @pytest.mark.asyncio
    async def test_inline_image_sniffed(self, db, service, model, images, context, subject, image_data):
        outcome = await service.analyze(
            db, context, {"analysis_type": "meal", "image_data": image_data}
        )

        call = model.calls[0]
        assert call["mime_type"] == "image/jpeg"
        assert call["image_data"] == image_data
        assert images.loaded == []
        assert outcome.resolution.strategy == "placeholder"

    @pytest.mark.asyncio
    async def test_declared_mime_type_wins(self, db, service, model, context, subject, image_data):
        await service.analyze(
            db,
            context,
            {"analysis_type": "meal", "image_data": image_data, "image_mime_type": "image/webp"},
        )
        assert model.calls[0]["mime_type"] == "image/webp"

    @pytest.mark.asyncio
    async def test_validation_before_any_call(self, db, service, model, context):
        with pytest.raises(ValidationError) as exc_info:
            await service.analyze(db, context, {"analysis_type": "walk", "image_ref": "a.jpg"})

        assert exc_info.value.reason == "invalid_type"
        assert model.calls == []
        assert db.query(JournalEntry).count() == 0

    @pytest.mark.asyncio
    async def test_refused_analyses_create_no_entries(
        self, db, service, model, context, subject, image_data
    ):
        report = HealthReportService()
        before = report.compute(db, subject.id, "week")
        for _ in range(3):
            model.set_error(RefusalError())
            with pytest.raises(RefusalError):
                await service.analyze(db, context, {"analysis_type": "poop", "image_data": image_data})

        assert len(model.calls) == 3
        assert db.query(JournalEntry).count() == 0
        assert db.query(AnalysisRecord).count() == 0
        after = report.compute(db, subject.id, "week")
        assert after.poop_count == before.poop_count == 0
        assert after.health_score == before.health_score

    @pytest.mark.asyncio
    async def test_placeholder_created_after_successful_parse(self, db, service, model, context, subject):
        await service.analyze(db, context, {"analysis_type": "poop", "image_ref": "new.jpg"})

        placeholder = db.query(JournalEntry).filter_by(photo_ref="new.jpg").one()
        assert placeholder.subject_id == subject.id
        record = db.query(AnalysisRecord).one()
        assert record.journal_entry_id == placeholder.id

    @pytest.mark.asyncio
    async def test_unparsable_stores_nothing(self, db, service, model, context, subject):
        model.set_response("The dog looks healthy.")

        with pytest.raises(UnparsableResponseError):
            await service.analyze(db, context, {"analysis_type": "poop", "image_ref": "a.jpg"})

        assert db.query(AnalysisRecord).count() == 0
        assert db.query(JournalEntry).count() == 0

    @pytest.mark.asyncio
    async def test_save_failure_still_returns_result(self, db, service, context, subject):
        with patch.object(service.store, "insert", AsyncMock(side_effect=PersistenceError())):
            outcome = await service.analyze(
                db, context, {"analysis_type": "meal", "image_ref": "a.jpg"}
            )

        assert outcome.save_failed
        assert not outcome.saved
        response = outcome.to_response()
        assert response["success"] is True
        assert response["details"]["save_failed"] is True
        assert response["analysis"]["health_score"] == 8

    @pytest.mark.asyncio
    async def test_response_shape(self, db, service, context, subject):
        outcome = await service.analyze(db, context, {"analysis_type": "meal", "image_ref": "a.jpg"})

        response = outcome.to_response()
        assert response["analysis"]["journal_entry_id"] == str(outcome.resolution.entry_id)
        assert response["analysis"]["analysis_type"] == "meal"
        assert "save_failed" not in response["details"]
        assert response["details"]["strategy"] == "placeholder"
        assert response["analysis"]["health_label"] == "excellent"
        assert response["analysis"]["confidence_label"] == "high"

    @pytest.mark.asyncio
    async def test_subject_info_from_most_recent_subject(self, db, service, model, context, subject):
        await service.analyze(
            db,
            context,
            {"analysis_type": "meal", "image_ref": "a.jpg", "include_subject_info": True},
        )
        assert "Akita" in model.calls[0]["prompt"].instruction

    @pytest.mark.asyncio
    async def test_explicit_subject_info(self, db, service, model, context, subject):
        await service.analyze(
            db,
            context,
            {"analysis_type": "meal", "image_ref": "a.jpg", "subject_info": {"breed": "Corgi"}},
        )
        assert "Corgi" in model.calls[0]["prompt"].instruction

    @pytest.mark.asyncio
    async def test_card_released_after_request(self, db, service, context, subject):
        await service.analyze(db, context, {"analysis_type": "meal", "image_ref": "a.jpg"})
        assert service.cards.find(context.user_id, "a.jpg") is None


class TestConcurrency:
    @pytest.mark.asyncio
    async def test_same_card_busy(self, db, service, model, context, subject):
        model.hang_until_cancelled()
        raw = {"analysis_type": "poop", "image_ref": "a.jpg"}

        first = asyncio.ensure_future(service.analyze(db, context, raw))
        while not model.calls:
            await asyncio.sleep(0)

        with pytest.raises(CardBusyError):
            await service.analyze(db, context, raw)
        assert len(model.calls) == 1

        assert service.cancel(context, "a.jpg") is True
        with pytest.raises(AnalysisCancelledError):
            await first
        assert db.query(AnalysisRecord).count() == 0

    def test_cancel_unknown_card(self, service, context):
        assert service.cancel(context, "nothing") is False


class TestExplicitSave:
    @pytest.mark.asyncio
    async def test_save_then_resave(self, db, service, context, subject):
        entry = create_entry(db, subject, EntryType.MEAL)
        analysis = dict(analysis_payload(), analysis_type="meal", id=str(uuid.uuid4()))

        first = await service.save(db, context, analysis, str(entry.id))
        analysis["health_score"] = 4
        second = await service.save(db, context, analysis, str(entry.id))

        assert first.id == second.id
        assert second.health_score == 4
        assert db.query(AnalysisRecord).filter_by(journal_entry_id=entry.id).count() == 1

    @pytest.mark.asyncio
    async def test_unknown_entry(self, db, service, context):
        with pytest.raises(ValidationError):
            await service.save(
                db, context, dict(analysis_payload(), analysis_type="meal"), str(uuid.uuid4())
            )

    @pytest.mark.asyncio
    async def test_persistence_error_propagates(self, db, service, context, subject):
        entry = create_entry(db, subject)
        with patch.object(service.store, "save", AsyncMock(side_effect=PersistenceError())):
            with pytest.raises(PersistenceError):
                await service.save(
                    db, context, dict(analysis_payload(), analysis_type="poop"), str(entry.id)
                )
        assert service.cards.find(context.user_id, str(entry.id)) is None


class TestRecordFromPayload:
    def test_keeps_valid_id(self, context):
        record_id = uuid.uuid4()
        record = record_from_payload(
            dict(analysis_payload(), analysis_type="poop", id=str(record_id)), context
        )
        assert record.id == record_id
        assert record.user_id == context.user_id

    def test_new_id_when_missing(self, context):
        record = record_from_payload(dict(analysis_payload(), analysis_type="poop"), context)
        assert isinstance(record.id, uuid.UUID)

    def test_out_of_range_rejected(self, context):
        with pytest.raises(ValidationError):
            record_from_payload(dict(analysis_payload(health_score=20), analysis_type="poop"), context)

    def test_bad_type_rejected(self, context):
        with pytest.raises(ValidationError) as exc_info:
            record_from_payload(dict(analysis_payload(), analysis_type="walk"), context)
        assert exc_info.value.reason == "invalid_type"

    def test_model_text_round_trips(self, context):
        text = json.dumps(analysis_payload())
        record = record_from_payload(dict(json.loads(text), analysis_type="meal"), context)
        assert record.observations == analysis_payload()["observations"]
