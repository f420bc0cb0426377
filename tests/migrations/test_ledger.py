"""Tests for the applied-migration ledger."""

import json

import pytest

from content_migrations.exceptions import LedgerError
from content_migrations.ledger import DEFAULT_LEDGER_FILENAME, AppliedMigrationLedger


class TestAppliedMigrationLedger:

    @pytest.fixture
    def ledger(self, data_dir):
        return AppliedMigrationLedger(data_dir)

    @pytest.mark.asyncio
    async def test_missing_file_is_empty(self, ledger):
        assert await ledger.load() == []

    @pytest.mark.asyncio
    async def test_append_persists_in_order(self, ledger, data_dir):
        await ledger.append("002-b")
        await ledger.append("001-a")

        assert await ledger.load() == ["002-b", "001-a"]
        assert json.loads((data_dir / DEFAULT_LEDGER_FILENAME).read_text()) == ["002-b", "001-a"]

    @pytest.mark.asyncio
    async def test_append_is_idempotent(self, ledger):
        await ledger.append("001-a")
        await ledger.append("001-a")

        assert await ledger.load() == ["001-a"]

    @pytest.mark.asyncio
    async def test_remove(self, ledger):
        for migration_id in ("001-a", "002-b", "003-c"):
            await ledger.append(migration_id)

        await ledger.remove("002-b")

        assert await ledger.load() == ["001-a", "003-c"]
        assert not await ledger.contains("002-b")
        assert await ledger.contains("003-c")

    @pytest.mark.asyncio
    async def test_creates_data_dir(self, tmp_path):
        ledger = AppliedMigrationLedger(tmp_path / "nested" / "data", filename="ledger.json")

        await ledger.append("001-a")

        assert (tmp_path / "nested" / "data" / "ledger.json").exists()
        assert not (tmp_path / "nested" / "data" / "ledger.json.tmp").exists()

    @pytest.mark.asyncio
    async def test_empty_file_is_empty(self, ledger):
        ledger.path.write_text("   ")

        assert await ledger.load() == []

    @pytest.mark.asyncio
    async def test_corrupt_file_raises(self, ledger):
        ledger.path.write_text("[not json")

        with pytest.raises(LedgerError, match="not valid JSON"):
            await ledger.load()

    @pytest.mark.asyncio
    async def test_wrong_shape_raises(self, ledger):
        ledger.path.write_text(json.dumps({"applied": ["001-a"]}))

        with pytest.raises(LedgerError, match="must be a JSON array"):
            await ledger.load()
