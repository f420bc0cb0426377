"""
Schema Change Detector

Compares the expected category definitions against the categories persisted
in the content repository.

Detection runs in two steps:
- ``diff_schemas`` is synchronous and pure; it reports concrete changes and
  stray fields (persisted but not expected) that need a decision
- ``resolve_stray_fields`` turns stray fields into changes, either by logging
  and keeping them (non-interactive) or by asking the operator

Removal is never decided automatically: stray fields are kept unless an
operator chooses otherwise, and unknown categories are only reported.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Union

from .models import ChangeType, ContentCategory, ExpectedCategory, SchemaChange, StrayField
from .prompts import STRAY_FIELD_CHOICES, ConsolePrompter, Prompter, StrayFieldAction
from .repository import ContentRepository
from .schema_ops import parse_schema

logger = logging.getLogger(__name__)

DiffEntry = Union[SchemaChange, StrayField]


@dataclass
class SchemaDiff:
    """Ordered result of comparing expected and persisted schemas."""

    entries: list[DiffEntry] = field(default_factory=list)
    unknown_categories: list[str] = field(default_factory=list)

    @property
    def changes(self) -> list[SchemaChange]:
        return [e for e in self.entries if isinstance(e, SchemaChange)]

    @property
    def stray_fields(self) -> list[StrayField]:
        return [e for e in self.entries if isinstance(e, StrayField)]


def _canonical(value) -> str:
    return json.dumps(value, sort_keys=True)


def index_by_slug(categories: list[ContentCategory]) -> dict[str, ContentCategory]:
    """Map category slug to category; a later duplicate replaces an earlier one."""
    indexed: dict[str, ContentCategory] = {}
    for category in categories:
        if category.category_id in indexed:
            logger.debug(f"Duplicate category slug '{category.category_id}' (id {category.id})")
        indexed[category.category_id] = category
    return indexed


def diff_schemas(
    expected: list[ExpectedCategory],
    current: list[ContentCategory],
    log: logging.Logger | None = None,
) -> SchemaDiff:
    """
    Compare expected category schemas with persisted ones.

    Entries follow the order of ``expected``, then, within a category, the
    union of persisted and expected field names in insertion order.

    Args:
        expected: Canonical category definitions
        current: Categories as persisted
        log: Logger for parse errors and debug output

    Returns:
        SchemaDiff with changes, stray fields and unknown category slugs
    """
    log = log or logger
    diff = SchemaDiff()
    remaining = index_by_slug(current)

    for expected_category in expected:
        slug = expected_category.category_id
        current_category = remaining.pop(slug, None)

        if current_category is None:
            diff.entries.append(
                SchemaChange.add_category(slug, expected_category.model_dump(by_alias=True))
            )
            continue

        expected_schema = expected_category.metadata_schema
        try:
            current_schema = parse_schema(current_category)
        except ValueError as e:
            log.error(f"Failed to parse current schema for '{slug}': {e}")
            current_schema = {}

        log.debug(
            f"Checking '{slug}': current fields {list(current_schema)}, "
            f"expected fields {list(expected_schema)}"
        )

        all_fields = list(dict.fromkeys([*current_schema, *expected_schema]))
        for name in all_fields:
            in_current = name in current_schema
            in_expected = name in expected_schema

            if in_expected and not in_current:
                diff.entries.append(SchemaChange.add_field(slug, name, expected_schema[name]))
            elif in_current and not in_expected:
                diff.entries.append(
                    StrayField(
                        category_id=slug,
                        field=name,
                        current_value=current_schema[name],
                        expected_schema=dict(expected_schema),
                    )
                )
            elif _canonical(current_schema[name]) != _canonical(expected_schema[name]):
                diff.entries.append(
                    SchemaChange.update_field(
                        slug, name, current_schema[name], expected_schema[name]
                    )
                )

    diff.unknown_categories = list(remaining)
    return diff


async def resolve_stray_field(
    stray: StrayField, prompter: Prompter, log: logging.Logger | None = None
) -> SchemaChange | None:
    """Ask the operator what to do with one stray field."""
    log = log or logger
    log.info(
        f"Field '{stray.field}' exists in category '{stray.category_id}' but not in the expected schema"
    )

    choices = STRAY_FIELD_CHOICES
    if not stray.expected_schema:
        choices = [c for c in choices if c[0] != StrayFieldAction.RENAME_EXISTING.value]

    action = StrayFieldAction(
        await prompter.select(f"What would you like to do with field '{stray.field}'?", choices)
    )

    if action == StrayFieldAction.RENAME_EXISTING:
        target = await prompter.select(
            f"Select the target field to rename '{stray.field}' to:",
            [(name, name) for name in stray.expected_schema],
        )
        return SchemaChange.rename_field(
            stray.category_id,
            stray.field,
            target,
            old_value=stray.current_value,
            new_value=stray.expected_schema[target],
        )

    if action == StrayFieldAction.RENAME_NEW:
        new_name = await prompter.text("Enter the new field name:")
        return SchemaChange.rename_field(
            stray.category_id, stray.field, new_name, old_value=stray.current_value
        )

    if action == StrayFieldAction.REMOVE:
        return SchemaChange.remove_field(stray.category_id, stray.field, stray.current_value)

    log.info(f"Keeping field '{stray.field}' in category '{stray.category_id}'")
    return None


async def resolve_stray_fields(
    diff: SchemaDiff,
    interactive: bool,
    prompter: Prompter | None = None,
    log: logging.Logger | None = None,
) -> list[SchemaChange]:
    """
    Flatten a diff into a change list, deciding what to do with stray fields.

    In non-interactive mode stray fields are logged and kept. A stray field
    renamed onto an expected field replaces the pending add of that field,
    so the rename alone carries the expected definition.
    """
    log = log or logger
    if interactive and prompter is None:
        prompter = ConsolePrompter()
    changes: list[SchemaChange] = []
    rename_targets: set[tuple[str, str]] = set()

    for entry in diff.entries:
        if isinstance(entry, SchemaChange):
            changes.append(entry)
            continue

        if not interactive:
            log.warning(
                f"Field '{entry.field}' exists in category '{entry.category_id}' "
                f"but not in the expected schema"
            )
            continue

        change = await resolve_stray_field(entry, prompter, log)
        if change is None:
            continue
        changes.append(change)
        if change.type == ChangeType.RENAME_FIELD and change.new_value is not None:
            rename_targets.add((change.category_id, change.new_field))

    if rename_targets:
        changes = [
            c
            for c in changes
            if not (c.type == ChangeType.ADD_FIELD and (c.category_id, c.field) in rename_targets)
        ]

    for slug in diff.unknown_categories:
        log.warning(f"Category '{slug}' exists in the repository but not in the expected set")

    return changes


async def detect_changes(
    expected: list[ExpectedCategory],
    current: list[ContentCategory],
    interactive: bool = False,
    prompter: Prompter | None = None,
    log: logging.Logger | None = None,
) -> list[SchemaChange]:
    """Diff ``expected`` against ``current`` and resolve stray fields."""
    diff = diff_schemas(expected, current, log)
    return await resolve_stray_fields(diff, interactive, prompter, log)


class ChangeDetector:
    """Detects schema drift between expected categories and a content repository."""

    def __init__(
        self,
        repository: ContentRepository,
        expected_categories: list[ExpectedCategory],
        prompter: Prompter | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.repository = repository
        self.expected_categories = expected_categories
        self.prompter = prompter
        self.logger = logger or logging.getLogger(__name__)

    async def detect_changes(self, interactive: bool = False) -> list[SchemaChange]:
        """
        Read persisted categories and report the changes needed.

        Args:
            interactive: Ask the operator about stray fields instead of keeping them

        Returns:
            Ordered list of schema changes
        """
        current = await self.repository.list_categories()
        changes = await detect_changes(
            self.expected_categories,
            current,
            interactive=interactive,
            prompter=self.prompter,
            log=self.logger,
        )
        self.logger.info(f"Detected {len(changes)} schema changes")
        return changes
