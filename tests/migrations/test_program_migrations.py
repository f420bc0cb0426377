"""
Tests for program migrations.

Covers marker-gated exactly-once execution, registration order and the
built-in access controller repair.
"""

from datetime import datetime
from pathlib import Path

import pytest

from content_migrations.exceptions import ManualInterventionRequired
from content_migrations.program_migrations import (
    AccessControllerRenameMigration,
    ProgramMigration,
    ProgramMigrationRunner,
    create_program_migration_runner,
)
from content_migrations.repository import UnavailableContentRepository


class RecordingMigration(ProgramMigration):
    """Program migration that records how often it was checked and run."""

    def __init__(self, migration_id: str, needed: bool = True, fail: bool = False, journal=None):
        super().__init__()
        self._id = migration_id
        self.needed = needed
        self.fail = fail
        self.journal = journal if journal is not None else []
        self.check_calls = 0
        self.run_calls = 0

    @property
    def id(self) -> str:
        return self._id

    @property
    def description(self) -> str:
        return f"Recording migration {self._id}"

    async def check(self, repository) -> bool:
        self.check_calls += 1
        self.journal.append(("check", self._id))
        return self.needed

    async def run(self, repository, data_dir: Path) -> None:
        self.run_calls += 1
        self.journal.append(("run", self._id))
        if self.fail:
            raise RuntimeError("repair failed")


class TestProgramMigrationRunner:
    """Test completion markers and ordering."""

    @pytest.mark.asyncio
    async def test_runs_exactly_once(self, data_dir, music_repository):
        migration = RecordingMigration("001-repair")
        runner = ProgramMigrationRunner(data_dir)
        runner.register(migration)

        assert await runner.run(music_repository) == ["001-repair"]
        assert await runner.run(music_repository) == []

        assert migration.check_calls == 1
        assert migration.run_calls == 1

    @pytest.mark.asyncio
    async def test_marker_holds_iso_timestamp(self, data_dir, music_repository):
        runner = ProgramMigrationRunner(data_dir)
        runner.register(RecordingMigration("001-repair"))

        await runner.run(music_repository)

        marker = data_dir / ".program-migrations" / "001-repair.done"
        assert marker.exists()
        datetime.fromisoformat(marker.read_text())

    @pytest.mark.asyncio
    async def test_unneeded_migration_is_marked_done(self, data_dir, music_repository):
        migration = RecordingMigration("001-repair", needed=False)
        runner = ProgramMigrationRunner(data_dir)
        runner.register(migration)

        assert await runner.run(music_repository) == []
        migration.needed = True
        await runner.run(music_repository)

        assert migration.check_calls == 1
        assert migration.run_calls == 0
        assert runner.marker_path("001-repair").exists()

    @pytest.mark.asyncio
    async def test_registration_order_not_id_order(self, data_dir, music_repository):
        journal = []
        runner = ProgramMigrationRunner(data_dir)
        runner.register(RecordingMigration("b-second", journal=journal))
        runner.register(RecordingMigration("a-first", needed=False, journal=journal))

        await runner.run(music_repository)

        assert journal == [("check", "b-second"), ("run", "b-second"), ("check", "a-first")]

    @pytest.mark.asyncio
    async def test_failure_propagates_without_marker(self, data_dir, music_repository):
        failing = RecordingMigration("001-repair", fail=True)
        later = RecordingMigration("002-later")
        runner = ProgramMigrationRunner(data_dir)
        runner.register(failing)
        runner.register(later)

        with pytest.raises(RuntimeError, match="repair failed"):
            await runner.run(music_repository)

        assert not runner.marker_path("001-repair").exists()
        assert later.check_calls == 0

        failing.fail = False
        await runner.run(music_repository)
        assert failing.run_calls == 2
        assert later.run_calls == 1

    @pytest.mark.asyncio
    async def test_custom_markers_dir(self, data_dir, music_repository):
        runner = ProgramMigrationRunner(data_dir, markers_dirname="markers")
        runner.register(RecordingMigration("001-repair"))

        await runner.run(music_repository)

        assert (data_dir / "markers" / "001-repair.done").exists()

    @pytest.mark.asyncio
    async def test_completed_lists_markers(self, data_dir, music_repository):
        runner = ProgramMigrationRunner(data_dir)
        assert await runner.completed() == {}

        runner.register(RecordingMigration("001-repair", needed=False))
        await runner.run(music_repository)

        completed = await runner.completed()
        assert list(completed) == ["001-repair"]
        datetime.fromisoformat(completed["001-repair"])

    def test_duplicate_registration_rejected(self, data_dir):
        runner = ProgramMigrationRunner(data_dir)
        runner.register(RecordingMigration("001-repair"))

        with pytest.raises(ValueError):
            runner.register(RecordingMigration("001-repair"))


class TestAccessControllerRenameMigration:
    """Test the built-in access controller repair."""

    @pytest.fixture
    def migration(self):
        return AccessControllerRenameMigration()

    @pytest.mark.asyncio
    async def test_not_needed_for_readable_repository(self, migration, music_repository):
        assert not await migration.check(music_repository)

    @pytest.mark.asyncio
    async def test_needed_when_open_error_names_legacy_type(self, migration):
        repository = UnavailableContentRepository(
            RuntimeError("Failed to deserialize variant RoleBasedccessController")
        )

        assert await migration.check(repository)

    @pytest.mark.asyncio
    async def test_not_needed_for_unrelated_error(self, migration):
        repository = UnavailableContentRepository(ConnectionError("peer unreachable"))

        assert not await migration.check(repository)

    @pytest.mark.asyncio
    async def test_run_demands_manual_intervention(self, migration, data_dir, caplog):
        with pytest.raises(ManualInterventionRequired) as exc_info:
            await migration.run(UnavailableContentRepository(RuntimeError("x")), data_dir)

        error = exc_info.value
        assert len(error.suggestions) == 3
        assert str(data_dir) in error.suggestions[0]
        assert error.details["migration_id"] == "001-access-controller-rename"
        assert "requires manual intervention" in caplog.text

    @pytest.mark.asyncio
    async def test_registry_marks_healthy_store_done(self, data_dir, music_repository):
        runner = create_program_migration_runner(data_dir)

        assert [m.id for m in runner.migrations] == ["001-access-controller-rename"]
        assert await runner.run(music_repository) == []
        assert "001-access-controller-rename" in await runner.completed()

    @pytest.mark.asyncio
    async def test_registry_stops_broken_store_without_marker(self, data_dir):
        runner = create_program_migration_runner(data_dir)
        repository = UnavailableContentRepository(
            ValueError("unknown type RoleBasedccessController")
        )

        with pytest.raises(ManualInterventionRequired):
            await runner.run(repository)

        assert await runner.completed() == {}
