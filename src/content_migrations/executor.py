"""
Schema Change Executor

Applies a list of schema changes to the content repository, one category at
a time. Each affected category is read once, has all of its changes applied
in list order, and is written back once.

Two failure policies are supported:
- strict: the first failure raises, used inside migration steps
- best-effort: failures are logged per category and the batch continues
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any

from .detector import index_by_slug
from .exceptions import MigrationError, RepositoryOperationError
from .models import ChangeType, ContentCategory, SchemaChange
from .repository import ContentRepository
from .schema_ops import apply_change, category_patch, group_by_category, parse_schema

logger = logging.getLogger(__name__)


@dataclass
class ExecutionReport:
    """Per-category outcome of executing a change list."""

    updated: list[str] = field(default_factory=list)
    created: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return not self.failed


def _new_category_payload(change: SchemaChange) -> dict[str, Any]:
    payload = dict(change.new_value or {})
    payload["categoryId"] = change.category_id
    schema = payload.get("metadataSchema")
    if not isinstance(schema, str):
        payload["metadataSchema"] = json.dumps(schema or {})
    return payload


async def _create_category(
    repository: ContentRepository,
    change: SchemaChange,
    existing: dict[str, ContentCategory],
    log: logging.Logger,
) -> ContentCategory | None:
    slug = change.category_id
    result = await repository.add_category(_new_category_payload(change))
    if not result.success:
        raise RepositoryOperationError(
            f"Failed to add category '{slug}': {result.error}",
            details={"category_id": slug},
        )
    log.info(f"Added category '{slug}'")
    created = await repository.get_category(result.id) if result.id else None
    if created is not None:
        existing[slug] = created
    return created


async def _execute_category(
    repository: ContentRepository,
    slug: str,
    changes: list[SchemaChange],
    categories: dict[str, ContentCategory],
    report: ExecutionReport,
    log: logging.Logger,
) -> None:
    field_changes: list[SchemaChange] = []
    for change in changes:
        if change.type == ChangeType.ADD_CATEGORY:
            if slug not in categories:
                await _create_category(repository, change, categories, log)
                report.created.append(slug)
            else:
                log.info(f"Category '{slug}' already exists, not adding")
        elif change.type == ChangeType.REMOVE_CATEGORY:
            log.warning(f"Category removal is never applied automatically, keeping '{slug}'")
        else:
            field_changes.append(change)

    if not field_changes:
        return

    category = categories.get(slug)
    if category is None:
        log.warning(f"Category {slug} not found, skipping {len(field_changes)} change(s)")
        report.skipped.append(slug)
        return

    try:
        schema = parse_schema(category)
    except ValueError as e:
        raise MigrationError(
            f"Failed to parse schema for category '{slug}': {e}",
            details={"category_id": slug},
        ) from e

    for change in field_changes:
        apply_change(schema, change, log)

    result = await repository.update_category(category_patch(category, schema))
    if not result.success:
        raise RepositoryOperationError(
            f"Failed to update category '{slug}': {result.error}",
            details={"category_id": slug},
        )
    log.info(f"Successfully updated category '{slug}'")
    report.updated.append(slug)


async def execute_changes(
    repository: ContentRepository,
    changes: list[SchemaChange],
    strict: bool = True,
    log: logging.Logger | None = None,
) -> ExecutionReport:
    """
    Apply ``changes`` to the repository, grouped by category.

    Args:
        repository: Content repository to read and write
        changes: Ordered change list
        strict: Raise on the first failure instead of continuing
        log: Logger for per-change output

    Returns:
        ExecutionReport describing what happened to each category
    """
    log = log or logger
    report = ExecutionReport()
    categories = index_by_slug(await repository.list_categories())

    for slug, category_changes in group_by_category(changes).items():
        try:
            await _execute_category(repository, slug, category_changes, categories, report, log)
        except Exception as e:
            if strict:
                raise
            log.error(f"Error updating category '{slug}': {e}")
            report.failed[slug] = str(e)

    return report
