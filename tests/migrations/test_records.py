"""Tests for record metadata migration."""

import logging
from unittest.mock import AsyncMock

import pytest
from conftest import ScriptedPrompter

from content_migrations.models import ContentRecord, OperationResult
from content_migrations.records import (
    RecordMigrator,
    apply_record_migrations,
    plan_record_migrations,
)
from content_migrations.repository import ContentRepository, InMemoryContentRepository


class TestPlanRecordMigrations:

    def test_auto_detects_poster_to_cover(self, records):
        plans = plan_record_migrations(records)

        assert [p.record.id for p in plans] == ["r1", "r3"]
        assert plans[0].migrated_metadata() == {"author": "A", "cover": "cid-1"}

    def test_explicit_fields_with_category_filter(self, records):
        plans = plan_record_migrations(records, "posterCID", "cover", category="music")

        assert [p.record.id for p in plans] == ["r1", "r2"]
        assert plans[1].migrated_metadata() == {"cover": "cid-2"}

    def test_fields_must_be_given_together(self, records):
        with pytest.raises(ValueError):
            plan_record_migrations(records, from_field="posterCID")

    def test_nothing_to_do(self, records):
        assert plan_record_migrations(records, "missing", "other") == []


class TestRecordMigrator:
    """Test the preview, confirm and apply flow."""

    @pytest.fixture
    def repository(self, records):
        return InMemoryContentRepository(records=records)

    @pytest.mark.asyncio
    async def test_dry_run_changes_nothing(self, repository, caplog):
        with caplog.at_level(logging.INFO):
            report = await RecordMigrator(repository).migrate(dry_run=True)

        assert report.dry_run
        assert report.planned == 2
        assert (await repository.list_records())[0].metadata["posterCID"] == "cid-1"
        assert "Dry run complete. No changes were made." in caplog.text

    @pytest.mark.asyncio
    async def test_preview_shows_first_five(self, caplog):
        many = [
            ContentRecord(id=f"r{i}", name=f"Release {i}", category_id="music",
                          metadata={"posterCID": f"cid-{i}"})
            for i in range(7)
        ]

        with caplog.at_level(logging.INFO):
            await RecordMigrator(InMemoryContentRepository(records=many)).migrate(dry_run=True)

        assert "Release 4 (music)" in caplog.text
        assert "Release 5 (music)" not in caplog.text
        assert "... and 2 more" in caplog.text

    @pytest.mark.asyncio
    async def test_apply_after_confirmation(self, repository):
        prompter = ScriptedPrompter([True])

        report = await RecordMigrator(repository, prompter=prompter).migrate()

        assert report.succeeded == ["r1", "r3"]
        assert report.failed == {}
        migrated = {r.id: r.metadata for r in await repository.list_records()}
        assert migrated["r1"] == {"author": "A", "cover": "cid-1"}
        assert migrated["r2"] == {"posterCID": "cid-2", "cover": "cid-existing"}
        assert prompter.questions[0][1] == "Migrate 2 records?"

    @pytest.mark.asyncio
    async def test_declined_confirmation_cancels(self, repository):
        report = await RecordMigrator(repository).migrate()

        assert report.cancelled
        assert (await repository.list_records())[0].metadata["posterCID"] == "cid-1"

    @pytest.mark.asyncio
    async def test_failures_are_counted(self, records, caplog):
        repository = AsyncMock(spec=ContentRepository)
        repository.list_records.return_value = records

        async def update(patch):
            if patch["id"] == "r1":
                return OperationResult(success=False, id="r1", error="read-only")
            if patch["id"] == "r3":
                raise ConnectionError("peer gone")
            return OperationResult(success=True, id=patch["id"])

        repository.update_record.side_effect = update

        report = await RecordMigrator(repository).migrate(assume_yes=True)

        assert report.succeeded == []
        assert report.failed == {"r1": "read-only", "r3": "peer gone"}
        assert "Failed to migrate record Album One: read-only" in caplog.text

    @pytest.mark.asyncio
    async def test_apply_keeps_other_record_attributes(self, records):
        repository = InMemoryContentRepository(records=records)
        plans = plan_record_migrations(records, category="movies")

        report = await apply_record_migrations(repository, plans)

        assert report.succeeded == ["r3"]
        (film,) = [r for r in await repository.list_records() if r.id == "r3"]
        assert film.name == "Film One"
        assert film.category_id == "movies"
