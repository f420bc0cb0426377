"""
Content Migration Models

Pydantic models for content categories, records, detected schema changes and
persisted migration documents.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator


class ChangeType(str, Enum):
    """Kinds of schema change the detector can emit."""

    ADD_FIELD = "add-field"
    REMOVE_FIELD = "remove-field"
    UPDATE_FIELD = "update-field"
    RENAME_FIELD = "rename-field"
    ADD_CATEGORY = "add-category"
    REMOVE_CATEGORY = "remove-category"


FIELD_CHANGES = {ChangeType.ADD_FIELD, ChangeType.REMOVE_FIELD, ChangeType.UPDATE_FIELD}
CATEGORY_CHANGES = {ChangeType.ADD_CATEGORY, ChangeType.REMOVE_CATEGORY}


class SchemaChange(BaseModel):
    """
    A single difference between the expected and persisted schema of a category.

    The populated attributes depend on ``type``: field-level changes use
    ``field``, renames use ``old_field``/``new_field``, category-level changes
    use neither. ``category_id`` is always the category slug, never the
    storage id.
    """

    type: ChangeType = Field(..., description="Kind of change")
    category_id: str = Field(..., min_length=1, description="Category slug")
    field: str | None = Field(None, description="Field name for add/remove/update")
    old_field: str | None = Field(None, description="Source field name for renames")
    new_field: str | None = Field(None, description="Target field name for renames")
    old_value: Any = Field(None, description="Field definition before the change")
    new_value: Any = Field(None, description="Field definition after the change")

    @model_validator(mode="after")
    def validate_shape(self) -> "SchemaChange":
        """Enforce the attribute combination each change type allows."""
        if self.type in FIELD_CHANGES:
            if not self.field:
                raise ValueError(f"{self.type.value} requires 'field'")
            if self.old_field or self.new_field:
                raise ValueError(f"{self.type.value} must not set rename fields")
        elif self.type == ChangeType.RENAME_FIELD:
            if not self.old_field or not self.new_field:
                raise ValueError("rename-field requires 'old_field' and 'new_field'")
            if self.field:
                raise ValueError("rename-field must not set 'field'")
        elif self.field or self.old_field or self.new_field:
            raise ValueError(f"{self.type.value} must not set field names")
        return self

    # Constructors mirroring the change variants

    @classmethod
    def add_field(cls, category_id: str, field: str, new_value: Any) -> "SchemaChange":
        return cls(type=ChangeType.ADD_FIELD, category_id=category_id, field=field, new_value=new_value)

    @classmethod
    def remove_field(cls, category_id: str, field: str, old_value: Any) -> "SchemaChange":
        return cls(type=ChangeType.REMOVE_FIELD, category_id=category_id, field=field, old_value=old_value)

    @classmethod
    def update_field(
        cls, category_id: str, field: str, old_value: Any, new_value: Any
    ) -> "SchemaChange":
        return cls(
            type=ChangeType.UPDATE_FIELD,
            category_id=category_id,
            field=field,
            old_value=old_value,
            new_value=new_value,
        )

    @classmethod
    def rename_field(
        cls,
        category_id: str,
        old_field: str,
        new_field: str,
        old_value: Any = None,
        new_value: Any = None,
    ) -> "SchemaChange":
        return cls(
            type=ChangeType.RENAME_FIELD,
            category_id=category_id,
            old_field=old_field,
            new_field=new_field,
            old_value=old_value,
            new_value=new_value,
        )

    @classmethod
    def add_category(cls, category_id: str, new_value: Any) -> "SchemaChange":
        return cls(type=ChangeType.ADD_CATEGORY, category_id=category_id, new_value=new_value)

    @classmethod
    def remove_category(cls, category_id: str) -> "SchemaChange":
        return cls(type=ChangeType.REMOVE_CATEGORY, category_id=category_id)

    def summary(self) -> str:
        """Short human-readable form, e.g. ``add-field music.author``."""
        if self.type == ChangeType.RENAME_FIELD:
            return f"{self.type.value} {self.category_id}.{self.old_field} -> {self.new_field}"
        if self.field:
            return f"{self.type.value} {self.category_id}.{self.field}"
        return f"{self.type.value} {self.category_id}"


class StrayField(BaseModel):
    """A field persisted on a category but absent from its expected schema."""

    category_id: str
    field: str
    current_value: Any = None
    expected_schema: dict[str, Any] = Field(default_factory=dict)


class ContentCategory(BaseModel):
    """A category as persisted by the content repository."""

    id: str = Field(..., description="Storage-assigned identity")
    category_id: str = Field(..., alias="categoryId", description="Stable category slug")
    display_name: str = Field("", alias="displayName")
    featured: bool = False
    metadata_schema: str | None = Field(
        None, alias="metadataSchema", description="JSON-encoded field definitions"
    )

    class Config:
        populate_by_name = True
        extra = "allow"


class ExpectedCategory(BaseModel):
    """A canonical category definition the running code expects."""

    category_id: str = Field(..., alias="categoryId", min_length=1)
    display_name: str = Field("", alias="displayName")
    featured: bool = False
    metadata_schema: dict[str, Any] = Field(default_factory=dict, alias="metadataSchema")

    class Config:
        populate_by_name = True

    @field_validator("metadata_schema", mode="before")
    @classmethod
    def decode_schema(cls, v: Any) -> Any:
        """Accept the schema either as an object or as a JSON string."""
        if v is None:
            return {}
        if isinstance(v, str):
            return json.loads(v) if v.strip() else {}
        return v


class ContentRecord(BaseModel):
    """A content record (release) with free-form metadata."""

    id: str
    name: str = ""
    category_id: str = Field(..., alias="categoryId")
    metadata: dict[str, Any] = Field(default_factory=dict)

    class Config:
        populate_by_name = True
        extra = "allow"


class OperationResult(BaseModel):
    """Outcome of a content repository write."""

    success: bool
    id: str | None = None
    error: str | None = None


class MigrationDocument(BaseModel):
    """Declarative, persisted form of a generated migration unit."""

    id: str = Field(..., min_length=1)
    description: str = ""
    from_version: str | None = None
    to_version: str | None = None
    created_at: datetime = Field(default_factory=datetime.now)
    changes: list[SchemaChange] = Field(default_factory=list)
