"""
Schema Operations

Helpers for reading, changing and writing category metadata schemas. A
schema is a plain ``dict`` mapping field name to an opaque, JSON-serializable
field definition.
"""

import json
import logging
from typing import Any

from .models import ChangeType, ContentCategory, SchemaChange

logger = logging.getLogger(__name__)


def parse_schema(category: ContentCategory) -> dict[str, Any]:
    """
    Decode the persisted schema of a category.

    Raises:
        ValueError: If the stored schema is not a JSON object
    """
    if not category.metadata_schema:
        return {}
    schema = json.loads(category.metadata_schema)
    if not isinstance(schema, dict):
        raise ValueError(
            f"Schema of category {category.category_id} is {type(schema).__name__}, expected object"
        )
    return schema


def serialize_schema(schema: dict[str, Any]) -> str:
    return json.dumps(schema)


def category_patch(category: ContentCategory, schema: dict[str, Any]) -> dict[str, Any]:
    """Build an update patch for ``category`` carrying ``schema``."""
    patch = category.model_dump(by_alias=True)
    patch["metadataSchema"] = serialize_schema(schema)
    return patch


def _rename_key(schema: dict[str, Any], old: str, new: str, value: Any) -> dict[str, Any]:
    """Return a copy of ``schema`` with ``old`` replaced by ``new`` at the same position."""
    if new in schema:
        renamed = dict(schema)
        renamed[new] = value
        del renamed[old]
        return renamed
    return {(new if key == old else key): (value if key == old else v) for key, v in schema.items()}


def apply_change(
    schema: dict[str, Any], change: SchemaChange, log: logging.Logger | None = None
) -> bool:
    """
    Apply one field-level change to ``schema`` in place.

    Returns:
        True if the schema was modified
    """
    log = log or logger
    category_id = change.category_id

    if change.type in (ChangeType.ADD_FIELD, ChangeType.UPDATE_FIELD):
        schema[change.field] = change.new_value
        verb = "Added" if change.type == ChangeType.ADD_FIELD else "Updated"
        log.info(f"{verb} field '{change.field}' in category '{category_id}'")
        return True

    if change.type == ChangeType.REMOVE_FIELD:
        if change.field not in schema:
            log.info(f"Field '{change.field}' already absent from category '{category_id}'")
            return False
        del schema[change.field]
        log.info(f"Removed field '{change.field}' from category '{category_id}'")
        return True

    if change.type == ChangeType.RENAME_FIELD:
        if change.old_field not in schema:
            log.warning(
                f"Cannot rename '{change.old_field}' in category '{category_id}': field not present"
            )
            return False
        value = change.new_value if change.new_value is not None else schema[change.old_field]
        renamed = _rename_key(schema, change.old_field, change.new_field, value)
        schema.clear()
        schema.update(renamed)
        log.info(
            f"Renamed field '{change.old_field}' to '{change.new_field}' in category '{category_id}'"
        )
        log.warning(
            f"Existing record metadata in category '{category_id}' still uses field "
            f"'{change.old_field}' and needs a separate record migration"
        )
        return True

    log.warning(f"{change.type.value} is not a field-level change, ignored for '{category_id}'")
    return False


def invert_change(change: SchemaChange) -> SchemaChange | None:
    """
    Build the change that undoes ``change``.

    Returns:
        The inverse change, or None for category-level changes
    """
    if change.type == ChangeType.ADD_FIELD:
        return SchemaChange.remove_field(change.category_id, change.field, change.new_value)
    if change.type == ChangeType.REMOVE_FIELD:
        return SchemaChange.add_field(change.category_id, change.field, change.old_value)
    if change.type == ChangeType.UPDATE_FIELD:
        return SchemaChange.update_field(
            change.category_id, change.field, change.new_value, change.old_value
        )
    if change.type == ChangeType.RENAME_FIELD:
        return SchemaChange.rename_field(
            change.category_id,
            change.new_field,
            change.old_field,
            old_value=change.new_value,
            new_value=change.old_value,
        )
    return None


def group_by_category(changes: list[SchemaChange]) -> dict[str, list[SchemaChange]]:
    """Group changes by category slug, keeping first-seen category order and list order."""
    grouped: dict[str, list[SchemaChange]] = {}
    for change in changes:
        grouped.setdefault(change.category_id, []).append(change)
    return grouped
