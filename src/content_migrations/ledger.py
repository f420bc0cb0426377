"""
Applied Migration Ledger

Tracks which migration units have been applied, as a JSON array of ids in
application order. The ledger is re-read and rewritten on every change so
that it always reflects exactly the units that completed.
"""

import json
import logging
from pathlib import Path

import aiofiles
import aiofiles.os

from .exceptions import LedgerError

logger = logging.getLogger(__name__)

DEFAULT_LEDGER_FILENAME = "applied-migrations.json"


class AppliedMigrationLedger:
    """
    Ordered, persisted list of applied migration ids.

    Insertion order is application order; undo walks it backwards.
    """

    def __init__(
        self,
        data_dir: str | Path,
        filename: str = DEFAULT_LEDGER_FILENAME,
        logger: logging.Logger | None = None,
    ) -> None:
        """
        Initialize ledger.

        Args:
            data_dir: Directory holding the ledger file
            filename: Ledger file name inside ``data_dir``
            logger: Optional logger
        """
        self.data_dir = Path(data_dir)
        self.path = self.data_dir / filename
        self.logger = logger or logging.getLogger(__name__)

    async def load(self) -> list[str]:
        """
        Read applied migration ids.

        Returns:
            Applied ids in application order, empty if no ledger exists yet

        Raises:
            LedgerError: If the ledger exists but is not a JSON array of strings
        """
        if not await aiofiles.os.path.exists(self.path):
            return []

        try:
            async with aiofiles.open(self.path, encoding="utf-8") as f:
                content = await f.read()
        except OSError as e:
            raise LedgerError(f"Cannot read migration ledger {self.path}: {e}") from e

        if not content.strip():
            return []

        try:
            applied = json.loads(content)
        except json.JSONDecodeError as e:
            raise LedgerError(
                f"Migration ledger {self.path} is not valid JSON: {e}",
                suggestions=["Restore the ledger from backup or fix it by hand"],
            ) from e

        if not isinstance(applied, list) or not all(isinstance(i, str) for i in applied):
            raise LedgerError(f"Migration ledger {self.path} must be a JSON array of ids")

        return applied

    async def _save(self, applied: list[str]) -> None:
        await aiofiles.os.makedirs(self.data_dir, exist_ok=True)
        temp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            async with aiofiles.open(temp_path, "w", encoding="utf-8") as f:
                await f.write(json.dumps(applied, indent=2))
            await aiofiles.os.replace(temp_path, self.path)
        except OSError as e:
            raise LedgerError(f"Cannot write migration ledger {self.path}: {e}") from e

    async def append(self, migration_id: str) -> None:
        """Record ``migration_id`` as applied; no-op if already recorded."""
        applied = await self.load()
        if migration_id in applied:
            self.logger.debug(f"Migration {migration_id} already in ledger")
            return
        applied.append(migration_id)
        await self._save(applied)
        self.logger.info(f"Recorded migration {migration_id} as applied")

    async def remove(self, migration_id: str) -> None:
        """Remove ``migration_id`` from the ledger."""
        applied = await self.load()
        remaining = [i for i in applied if i != migration_id]
        await self._save(remaining)
        self.logger.info(f"Recorded migration {migration_id} as undone")

    async def contains(self, migration_id: str) -> bool:
        return migration_id in await self.load()
