"""
Migration Generator

Turns detected schema changes into a persisted, declarative migration unit,
or applies them to the repository straight away.
"""

import logging
import re
from datetime import datetime, timezone
from pathlib import Path

from .detector import ChangeDetector
from .executor import ExecutionReport, execute_changes
from .models import ChangeType, ExpectedCategory, MigrationDocument, SchemaChange
from .prompts import Prompter
from .repository import ContentRepository
from .store import MigrationStore

logger = logging.getLogger(__name__)

_VERSION_SEPARATORS = re.compile(r"[^A-Za-z0-9]+")


def _normalize_version(version: str) -> str:
    return _VERSION_SEPARATORS.sub("-", version.strip()).strip("-")


def build_migration_id(
    from_version: str, to_version: str, now: datetime | None = None
) -> str:
    """
    Build a sortable migration id.

    The id is the UTC timestamp in ISO-8601 form with ``:`` and ``.``
    replaced by ``-``, followed by the normalized version pair, e.g.
    ``2024-05-01T10-20-30-123Z_v0-1-32_to_v0-1-33``.
    """
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    timestamp = now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"
    timestamp = timestamp.replace(":", "-").replace(".", "-")
    return (
        f"{timestamp}_v{_normalize_version(from_version)}"
        f"_to_v{_normalize_version(to_version)}"
    )


class MigrationGenerator:
    """Generates migration units from detected category schema drift."""

    def __init__(
        self,
        repository: ContentRepository,
        expected_categories: list[ExpectedCategory],
        migrations_dir: str | Path,
        prompter: Prompter | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        """
        Initialize migration generator.

        Args:
            repository: Content repository to read current schemas from
            expected_categories: Canonical category definitions
            migrations_dir: Directory new migration units are written to
            prompter: Prompt layer used to resolve stray fields
            logger: Optional logger
        """
        self.repository = repository
        self.logger = logger or logging.getLogger(__name__)
        self.detector = ChangeDetector(
            repository, expected_categories, prompter=prompter, logger=self.logger
        )
        self.store = MigrationStore(migrations_dir, logger=self.logger)

    async def generate_migration(
        self,
        from_version: str,
        to_version: str,
        interactive: bool = True,
        now: datetime | None = None,
    ) -> Path | None:
        """
        Detect changes and persist them as a new migration unit.

        Args:
            from_version: Version the unit migrates from
            to_version: Version the unit migrates to
            interactive: Ask the operator about stray fields
            now: Timestamp for the id, defaults to the current time

        Returns:
            Path of the written unit, or None when nothing changed
        """
        changes = await self.detector.detect_changes(interactive=interactive)
        if not changes:
            self.logger.info("No changes detected, no migration needed")
            return None

        document = MigrationDocument(
            id=build_migration_id(from_version, to_version, now),
            description=f"Update content category schemas from v{from_version} to v{to_version}",
            from_version=from_version,
            to_version=to_version,
            changes=changes,
        )
        path = await self.store.write_document(document)

        self.logger.info(f"Generated migration file: {path}")
        self.logger.info(f"Changes detected: {len(changes)}")
        for change in changes:
            self.logger.info(f"  - {change.summary()}")
        self._warn_rename_followups(changes)
        return path

    async def apply_changes(self, changes: list[SchemaChange]) -> ExecutionReport:
        """
        Apply changes to the repository immediately.

        Failures are logged per category and do not stop the other categories.
        """
        self.logger.info(f"Applying {len(changes)} schema changes")
        report = await execute_changes(self.repository, changes, strict=False, log=self.logger)

        if report.failed:
            self.logger.warning(
                f"Schema update finished with {len(report.failed)} failed categories: "
                f"{', '.join(report.failed)}"
            )
        else:
            self.logger.info("Content category schemas updated successfully")
        return report

    def _warn_rename_followups(self, changes: list[SchemaChange]) -> None:
        for change in changes:
            if change.type == ChangeType.RENAME_FIELD:
                self.logger.warning(
                    f"Records in '{change.category_id}' still store '{change.old_field}'; "
                    f"run records-migrate --from-field {change.old_field} "
                    f"--to-field {change.new_field} to move their metadata"
                )
