"""
Migration Unit Store

Discovers, loads and orders migration units from a directory:
- ``<id>.migration.json`` files hold generated, declarative units
- ``<id>.py`` files hold hand-written units exposing ``id``, ``description``,
  ``up`` and optionally ``down``

Units are ordered by id using plain string comparison. File names are
expected to start with the id so that directory listing order matches.
"""

import importlib.util
import json
import logging
from pathlib import Path

import aiofiles
import aiofiles.os
from pydantic import ValidationError

from .base import BaseMigration, DeclarativeMigration, ModuleMigration
from .exceptions import MigrationLoadError
from .models import MigrationDocument

logger = logging.getLogger(__name__)

DECLARATIVE_SUFFIX = ".migration.json"


class MigrationStore:
    """Directory of migration unit definitions."""

    def __init__(self, migrations_dir: str | Path, logger: logging.Logger | None = None) -> None:
        """
        Initialize migration store.

        Args:
            migrations_dir: Directory holding migration unit files
            logger: Optional logger
        """
        self.migrations_dir = Path(migrations_dir)
        self.logger = logger or logging.getLogger(__name__)
        self._migrations: dict[str, BaseMigration] = {}
        self._discovery_completed = False

    def discover(self, force: bool = False) -> list[BaseMigration]:
        """
        Load every migration unit in the directory.

        Args:
            force: Re-scan even if discovery already ran

        Returns:
            Units sorted ascending by id

        Raises:
            MigrationLoadError: If a file cannot be loaded or two units share an id
        """
        if self._discovery_completed and not force:
            return self.units()

        self.logger.info(f"Discovering migrations in: {self.migrations_dir}")
        self.migrations_dir.mkdir(parents=True, exist_ok=True)
        self._migrations = {}

        for file_path in sorted(self.migrations_dir.iterdir()):
            if file_path.name.endswith(DECLARATIVE_SUFFIX):
                migration = self._load_declarative(file_path)
            elif file_path.suffix == ".py" and not file_path.name.startswith("_"):
                migration = self._load_module(file_path)
            else:
                continue

            if migration.id in self._migrations:
                raise MigrationLoadError(
                    f"Duplicate migration id {migration.id} in {file_path.name}",
                    details={"migration_id": migration.id},
                )
            if not file_path.name.startswith(migration.id):
                self.logger.warning(
                    f"Migration file {file_path.name} does not start with its id {migration.id}"
                )

            self._migrations[migration.id] = migration
            self.logger.debug(f"Loaded migration {migration.id}: {migration.description}")

        self._discovery_completed = True
        self.logger.info(f"Loaded {len(self._migrations)} migrations")
        return self.units()

    def _load_declarative(self, file_path: Path) -> DeclarativeMigration:
        try:
            document = MigrationDocument.model_validate_json(file_path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as e:
            raise MigrationLoadError(
                f"Error loading migration file {file_path}: {e}",
                details={"path": str(file_path)},
            ) from e
        return DeclarativeMigration(document, logger=self.logger)

    def _load_module(self, file_path: Path) -> ModuleMigration:
        module_name = f"content_migrations_unit_{file_path.stem.replace('-', '_').replace('.', '_')}"
        spec = importlib.util.spec_from_file_location(module_name, file_path)
        if spec is None or spec.loader is None:
            raise MigrationLoadError(f"Could not load spec for {file_path}")

        module = importlib.util.module_from_spec(spec)
        try:
            spec.loader.exec_module(module)
        except Exception as e:
            raise MigrationLoadError(
                f"Error loading migration file {file_path}: {e}",
                details={"path": str(file_path)},
            ) from e
        return ModuleMigration(module, logger=self.logger)

    def units(self) -> list[BaseMigration]:
        """Loaded units sorted by id."""
        return [self._migrations[i] for i in sorted(self._migrations)]

    def ids(self) -> list[str]:
        return sorted(self._migrations)

    def get(self, migration_id: str) -> BaseMigration | None:
        self.discover()
        return self._migrations.get(migration_id)

    async def write_document(self, document: MigrationDocument) -> Path:
        """
        Persist a declarative migration unit.

        Returns:
            Path of the written file
        """
        await aiofiles.os.makedirs(self.migrations_dir, exist_ok=True)
        path = self.migrations_dir / f"{document.id}{DECLARATIVE_SUFFIX}"
        if await aiofiles.os.path.exists(path):
            raise MigrationLoadError(f"Migration file already exists: {path}")

        payload = json.dumps(document.model_dump(mode="json"), indent=2)
        async with aiofiles.open(path, "w", encoding="utf-8") as f:
            await f.write(payload + "\n")

        self._discovery_completed = False
        self.logger.debug(f"Wrote migration document {path}")
        return path
