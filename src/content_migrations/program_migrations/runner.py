"""
Program Migration Runner

Runs one-shot, irreversible structural repairs. Each unit is evaluated at
most once per data directory: a completion marker
``<data_dir>/.program-migrations/<id>.done`` holding an ISO-8601 timestamp
is written when the unit is found unnecessary or finishes successfully.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path

import aiofiles
import aiofiles.os

from ..repository import ContentRepository

logger = logging.getLogger(__name__)

DEFAULT_MARKERS_DIRNAME = ".program-migrations"
MARKER_SUFFIX = ".done"


class ProgramMigration(ABC):
    """
    Base class for program migrations.

    ``check`` may receive a repository that failed to open; it should treat
    repository errors as evidence rather than let them escape.
    """

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.logger = logger or logging.getLogger(__name__)

    @property
    @abstractmethod
    def id(self) -> str:
        """Unique program migration id."""
        pass

    @property
    @abstractmethod
    def description(self) -> str:
        pass

    @abstractmethod
    async def check(self, repository: ContentRepository) -> bool:
        """Return True if this repair is needed."""
        pass

    @abstractmethod
    async def run(self, repository: ContentRepository, data_dir: Path) -> None:
        """Apply the repair. May raise to demand manual recovery."""
        pass


class ProgramMigrationRunner:
    """Runs registered program migrations in registration order, each at most once."""

    def __init__(
        self,
        data_dir: str | Path,
        markers_dirname: str = DEFAULT_MARKERS_DIRNAME,
        logger: logging.Logger | None = None,
    ) -> None:
        """
        Initialize program migration runner.

        Args:
            data_dir: Data directory handed to each unit's ``run``
            markers_dirname: Name of the completion marker directory inside ``data_dir``
            logger: Optional logger
        """
        self.data_dir = Path(data_dir)
        self.markers_dir = self.data_dir / markers_dirname
        self.logger = logger or logging.getLogger(__name__)
        self._migrations: list[ProgramMigration] = []

    @property
    def migrations(self) -> list[ProgramMigration]:
        return list(self._migrations)

    def register(self, migration: ProgramMigration) -> None:
        if any(m.id == migration.id for m in self._migrations):
            raise ValueError(f"Program migration {migration.id} is already registered")
        self._migrations.append(migration)

    def marker_path(self, migration_id: str) -> Path:
        return self.markers_dir / f"{migration_id}{MARKER_SUFFIX}"

    async def is_completed(self, migration_id: str) -> bool:
        return await aiofiles.os.path.exists(self.marker_path(migration_id))

    async def _mark_completed(self, migration_id: str) -> None:
        async with aiofiles.open(self.marker_path(migration_id), "w", encoding="utf-8") as f:
            await f.write(datetime.now(timezone.utc).isoformat())

    async def run(self, repository: ContentRepository) -> list[str]:
        """
        Evaluate every registered program migration.

        Args:
            repository: Content repository, possibly one that failed to open

        Returns:
            Ids whose ``run`` step executed in this call
        """
        self.logger.info("Checking for program migrations...")
        await aiofiles.os.makedirs(self.markers_dir, exist_ok=True)

        executed: list[str] = []
        for migration in self._migrations:
            if await self.is_completed(migration.id):
                self.logger.info(f"Migration {migration.id} already applied, skipping")
                continue

            self.logger.info(f"Checking migration: {migration.id} - {migration.description}")
            if not await migration.check(repository):
                self.logger.info(f"Migration {migration.id} not needed")
                await self._mark_completed(migration.id)
                continue

            self.logger.warning(f"APPLYING PROGRAM MIGRATION: {migration.id}")
            self.logger.warning(f"Description: {migration.description}")
            self.logger.warning(
                "This is a severe operation that will modify program data structures"
            )

            await migration.run(repository, self.data_dir)

            await self._mark_completed(migration.id)
            executed.append(migration.id)
            self.logger.info(f"Migration {migration.id} completed successfully")

        self.logger.info("All program migrations completed")
        return executed

    async def completed(self) -> dict[str, str]:
        """
        List completion markers.

        Returns:
            Mapping of program migration id to the recorded timestamp
        """
        if not await aiofiles.os.path.isdir(self.markers_dir):
            return {}

        markers: dict[str, str] = {}
        for name in sorted(await aiofiles.os.listdir(self.markers_dir)):
            if not name.endswith(MARKER_SUFFIX):
                continue
            async with aiofiles.open(self.markers_dir / name, encoding="utf-8") as f:
                markers[name[: -len(MARKER_SUFFIX)]] = (await f.read()).strip()
        return markers
