"""
Migration Runner

Applies pending migration units in id order and undoes applied units in
reverse application order. The ledger is written after every unit, so after
a failure it holds exactly the units that completed.
"""

import logging
import time
from collections.abc import Callable
from enum import Enum
from typing import Any

from .base import BaseMigration
from .exceptions import IrreversibleMigrationError, MigrationNotFoundError
from .ledger import AppliedMigrationLedger
from .repository import ContentRepository
from .store import MigrationStore

logger = logging.getLogger(__name__)


class UndoOutcome(str, Enum):
    """Result of undoing a single migration unit."""

    UNDONE = "undone"
    NOT_APPLIED = "not-applied"


class MigrationRunner:
    """
    Migration execution engine.

    Units run one at a time, never concurrently, and a failing unit halts the
    run with the error propagated to the caller.
    """

    def __init__(
        self,
        store: MigrationStore,
        ledger: AppliedMigrationLedger,
        progress_callback: Callable[[int, int, str], None] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        """
        Initialize migration runner.

        Args:
            store: Source of migration units
            ledger: Applied-migration ledger
            progress_callback: Optional callback for progress updates
                               Called with (current_step, total_steps, message)
            logger: Optional logger
        """
        self.store = store
        self.ledger = ledger
        self.progress_callback = progress_callback
        self.logger = logger or logging.getLogger(__name__)

    async def pending_migrations(self) -> list[BaseMigration]:
        """Units not yet in the ledger, in id order."""
        units = self.store.discover(force=True)
        applied = set(await self.ledger.load())
        return [m for m in units if m.id not in applied]

    async def run(self, repository: ContentRepository) -> list[str]:
        """
        Apply every pending migration unit in id order.

        Args:
            repository: Content repository the units operate on

        Returns:
            Ids applied by this run

        Raises:
            MigrationExecutionError: If a unit fails; later units are not attempted
        """
        start_time = time.time()
        pending = await self.pending_migrations()

        if not pending:
            self.logger.info("No pending migrations")
            return []

        self.logger.info(
            f"Applying {len(pending)} migrations: {[m.id for m in pending]}"
        )

        applied: list[str] = []
        for i, migration in enumerate(pending):
            self._report_progress(i, len(pending), f"Applying migration {migration.id}")
            try:
                await migration.apply(repository)
            except Exception as e:
                self.logger.error(f"Error running migration {migration.id}: {e}")
                raise
            await self.ledger.append(migration.id)
            applied.append(migration.id)

        self._report_progress(len(pending), len(pending), "Migration completed successfully")
        self.logger.info(
            f"Applied {len(applied)} migrations in {(time.time() - start_time) * 1000:.1f}ms"
        )
        return applied

    def _resolve(self, migration_id: str) -> BaseMigration:
        migration = self.store.get(migration_id)
        if migration is None:
            raise MigrationNotFoundError(migration_id)
        return migration

    async def undo(self, migration_id: str, repository: ContentRepository) -> UndoOutcome:
        """
        Undo one applied migration unit.

        Returns:
            UndoOutcome.UNDONE, or UndoOutcome.NOT_APPLIED if the id is not in the ledger

        Raises:
            MigrationNotFoundError: If no unit has this id
            IrreversibleMigrationError: If the unit has no reverse step
            MigrationExecutionError: If the reverse step fails
        """
        migration = self._resolve(migration_id)
        if not migration.reversible:
            raise IrreversibleMigrationError(migration_id)

        if not await self.ledger.contains(migration_id):
            self.logger.warning(f"Migration {migration_id} has not been applied, nothing to undo")
            return UndoOutcome.NOT_APPLIED

        await migration.revert(repository)
        await self.ledger.remove(migration_id)
        return UndoOutcome.UNDONE

    async def _undo_sequence(self, sequence: list[str], repository: ContentRepository) -> list[str]:
        if not sequence:
            self.logger.info("No migrations to undo")
            return []

        self.logger.info(f"Undoing {len(sequence)} migrations: {sequence}")

        # Validate the whole sequence before reverting anything
        for migration_id in sequence:
            if not self._resolve(migration_id).reversible:
                raise IrreversibleMigrationError(migration_id)

        undone: list[str] = []
        for i, migration_id in enumerate(sequence):
            self._report_progress(i, len(sequence), f"Undoing migration {migration_id}")
            outcome = await self.undo(migration_id, repository)
            if outcome == UndoOutcome.UNDONE:
                undone.append(migration_id)

        self._report_progress(len(sequence), len(sequence), "Undo completed successfully")
        return undone

    async def undo_all(self, repository: ContentRepository) -> list[str]:
        """
        Undo every applied unit, most recently applied first.

        Returns:
            Ids undone, in the order they were undone
        """
        applied = await self.ledger.load()
        return await self._undo_sequence(list(reversed(applied)), repository)

    async def undo_through(self, migration_id: str, repository: ContentRepository) -> list[str]:
        """
        Undo every unit applied after ``migration_id``, then ``migration_id`` itself.

        Raises:
            MigrationNotFoundError: If ``migration_id`` is not in the ledger
        """
        applied = await self.ledger.load()
        if migration_id not in applied:
            raise MigrationNotFoundError(migration_id)

        sequence = list(reversed(applied[applied.index(migration_id):]))
        return await self._undo_sequence(sequence, repository)

    async def get_status(self) -> dict[str, Any]:
        """
        Describe known units against the ledger.

        Returns:
            Dictionary with known, applied, pending and orphaned ids
        """
        known = [m.id for m in self.store.discover(force=True)]
        applied = await self.ledger.load()
        known_set = set(known)
        applied_set = set(applied)

        return {
            "known": known,
            "applied": applied,
            "pending": [i for i in known if i not in applied_set],
            "orphaned": [i for i in applied if i not in known_set],
            "up_to_date": known_set <= applied_set,
        }

    def _report_progress(self, current: int, total: int, message: str) -> None:
        """Report progress to callback if available."""
        if self.progress_callback:
            try:
                self.progress_callback(current, total, message)
            except Exception as e:
                self.logger.warning(f"Progress callback failed: {e}")
