"""
Record Metadata Migration

Moves values stored under one metadata key to another across content
records. Category schema renames do not touch stored records, so this is
the follow-up that carries existing record data over to the new field name.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from .models import ContentRecord
from .prompts import NonInteractivePrompter, Prompter
from .repository import ContentRepository

logger = logging.getLogger(__name__)

# Known renames applied when no explicit field pair is given
AUTO_FIELD_RENAMES: list[tuple[str, str]] = [("posterCID", "cover")]

PREVIEW_LIMIT = 5


@dataclass
class FieldMove:
    from_field: str
    to_field: str
    value: Any


@dataclass
class RecordMigrationPlan:
    """Field moves planned for one record."""

    record: ContentRecord
    moves: list[FieldMove] = field(default_factory=list)

    def migrated_metadata(self) -> dict[str, Any]:
        metadata = dict(self.record.metadata)
        for move in self.moves:
            metadata[move.to_field] = move.value
            metadata.pop(move.from_field, None)
        return metadata


@dataclass
class RecordMigrationReport:
    planned: int = 0
    succeeded: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)
    dry_run: bool = False
    cancelled: bool = False


def plan_record_migrations(
    records: list[ContentRecord],
    from_field: str | None = None,
    to_field: str | None = None,
    category: str | None = None,
) -> list[RecordMigrationPlan]:
    """
    Work out which records need a metadata key moved.

    With an explicit ``from_field``/``to_field`` pair every record carrying
    ``from_field`` is planned. Without one, the known renames in
    ``AUTO_FIELD_RENAMES`` are applied where the target key is still absent.

    Args:
        records: Records to inspect
        from_field: Source metadata key
        to_field: Target metadata key
        category: Only consider records in this category slug

    Raises:
        ValueError: If only one of ``from_field``/``to_field`` is given
    """
    if bool(from_field) != bool(to_field):
        raise ValueError("from_field and to_field must be given together")

    if category:
        records = [r for r in records if r.category_id == category]

    plans: list[RecordMigrationPlan] = []
    for record in records:
        metadata = record.metadata
        if from_field and to_field:
            moves = (
                [FieldMove(from_field, to_field, metadata[from_field])]
                if from_field in metadata
                else []
            )
        else:
            moves = [
                FieldMove(source, target, metadata[source])
                for source, target in AUTO_FIELD_RENAMES
                if source in metadata and target not in metadata
            ]
        if moves:
            plans.append(RecordMigrationPlan(record, moves))
    return plans


def log_plan_preview(
    plans: list[RecordMigrationPlan], log: logging.Logger | None = None, limit: int = PREVIEW_LIMIT
) -> None:
    log = log or logger
    log.info(f"Found {len(plans)} records to migrate:")
    log.info("-" * 50)
    for plan in plans[:limit]:
        log.info(f"Record: {plan.record.name} ({plan.record.category_id})")
        for move in plan.moves:
            log.info(f"  {move.from_field} -> {move.to_field}: {move.value}")
    if len(plans) > limit:
        log.info(f"... and {len(plans) - limit} more")
    log.info("-" * 50)


async def apply_record_migrations(
    repository: ContentRepository,
    plans: list[RecordMigrationPlan],
    log: logging.Logger | None = None,
) -> RecordMigrationReport:
    """
    Write planned moves back, one record at a time.

    Failures are logged per record and do not stop the batch.
    """
    log = log or logger
    report = RecordMigrationReport(planned=len(plans))

    for plan in plans:
        record = plan.record
        patch = record.model_dump(by_alias=True)
        patch["metadata"] = plan.migrated_metadata()
        try:
            result = await repository.update_record(patch)
        except Exception as e:
            log.error(f"Error migrating record {record.name}: {e}")
            report.failed[record.id] = str(e)
            continue

        if result.success:
            log.debug(f"Migrated record: {record.name}")
            report.succeeded.append(record.id)
        else:
            log.error(f"Failed to migrate record {record.name}: {result.error}")
            report.failed[record.id] = result.error or "unknown error"

    log.info("Migration complete:")
    log.info(f"  Successful: {len(report.succeeded)}")
    log.info(f"  Failed: {len(report.failed)}")
    return report


class RecordMigrator:
    """Plans, previews and applies record metadata key moves."""

    def __init__(
        self,
        repository: ContentRepository,
        prompter: Prompter | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.repository = repository
        self.prompter = prompter or NonInteractivePrompter()
        self.logger = logger or logging.getLogger(__name__)

    async def migrate(
        self,
        from_field: str | None = None,
        to_field: str | None = None,
        category: str | None = None,
        dry_run: bool = False,
        assume_yes: bool = False,
    ) -> RecordMigrationReport:
        """
        Move a metadata key across records.

        Args:
            from_field: Source metadata key, or None to use the known renames
            to_field: Target metadata key
            category: Only migrate records in this category slug
            dry_run: Only show what would change
            assume_yes: Skip the confirmation prompt

        Returns:
            RecordMigrationReport with per-record outcomes
        """
        self.logger.info("Starting record metadata migration...")
        records = await self.repository.list_records()
        self.logger.info(f"Found {len(records)} records")
        if category:
            in_category = sum(1 for r in records if r.category_id == category)
            self.logger.info(f"Filtered to {in_category} records in category '{category}'")

        plans = plan_record_migrations(records, from_field, to_field, category)
        if not plans:
            self.logger.info("No records need migration")
            return RecordMigrationReport(dry_run=dry_run)

        log_plan_preview(plans, self.logger)

        if dry_run:
            self.logger.info("Dry run complete. No changes were made.")
            return RecordMigrationReport(planned=len(plans), dry_run=True)

        if not assume_yes and not await self.prompter.confirm(
            f"Migrate {len(plans)} records?", default=False
        ):
            self.logger.info("Migration cancelled")
            return RecordMigrationReport(planned=len(plans), cancelled=True)

        return await apply_record_migrations(self.repository, plans, self.logger)
