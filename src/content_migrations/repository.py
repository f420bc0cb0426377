"""
Content Repository Interface

Defines the operations the migration engine needs from the content
repository service, plus an in-memory implementation used for dry runs
and tests.
"""

import copy
import logging
import uuid
from abc import ABC, abstractmethod
from typing import Any, NoReturn

from .exceptions import RepositoryOperationError
from .models import ContentCategory, ContentRecord, OperationResult

logger = logging.getLogger(__name__)


class ContentRepository(ABC):
    """
    Content repository service surface consumed by migrations.

    Writes report failure through ``OperationResult`` rather than raising,
    so callers decide whether a rejection is fatal.
    """

    @abstractmethod
    async def list_categories(self) -> list[ContentCategory]:
        """List all persisted categories."""
        pass

    @abstractmethod
    async def get_category(self, id: str) -> ContentCategory | None:
        """Get a category by storage id."""
        pass

    @abstractmethod
    async def add_category(self, category: dict[str, Any]) -> OperationResult:
        """Create a category from a field mapping."""
        pass

    @abstractmethod
    async def update_category(self, patch: dict[str, Any]) -> OperationResult:
        """Update a category; ``patch`` must carry the storage ``id``."""
        pass

    @abstractmethod
    async def list_records(self) -> list[ContentRecord]:
        """List all content records."""
        pass

    @abstractmethod
    async def update_record(self, patch: dict[str, Any]) -> OperationResult:
        """Update a content record; ``patch`` must carry the record ``id``."""
        pass


class UnavailableContentRepository(ContentRepository):
    """
    Stand-in for a repository that failed to open.

    Every operation raises the original open error, so program migrations
    can inspect it from ``check``.
    """

    def __init__(self, error: Exception) -> None:
        self.error = error

    def _fail(self) -> NoReturn:
        raise RepositoryOperationError(
            f"Content repository is unavailable: {self.error}",
            details={"cause": type(self.error).__name__},
        ) from self.error

    async def list_categories(self) -> list[ContentCategory]:
        self._fail()

    async def get_category(self, id: str) -> ContentCategory | None:
        self._fail()

    async def add_category(self, category: dict[str, Any]) -> OperationResult:
        self._fail()

    async def update_category(self, patch: dict[str, Any]) -> OperationResult:
        self._fail()

    async def list_records(self) -> list[ContentRecord]:
        self._fail()

    async def update_record(self, patch: dict[str, Any]) -> OperationResult:
        self._fail()


class InMemoryContentRepository(ContentRepository):
    """Dictionary-backed repository keeping categories and records in insertion order."""

    def __init__(
        self,
        categories: list[ContentCategory] | None = None,
        records: list[ContentRecord] | None = None,
    ) -> None:
        self._categories: dict[str, ContentCategory] = {}
        self._records: dict[str, ContentRecord] = {}
        self.rejected_categories: set[str] = set()
        self.category_updates: list[dict[str, Any]] = []

        for category in categories or []:
            self._categories[category.id] = category
        for record in records or []:
            self._records[record.id] = record

    async def list_categories(self) -> list[ContentCategory]:
        return [c.model_copy(deep=True) for c in self._categories.values()]

    async def get_category(self, id: str) -> ContentCategory | None:
        category = self._categories.get(id)
        return category.model_copy(deep=True) if category else None

    async def add_category(self, category: dict[str, Any]) -> OperationResult:
        data = copy.deepcopy(category)
        data.setdefault("id", uuid.uuid4().hex)
        try:
            created = ContentCategory.model_validate(data)
        except ValueError as e:
            return OperationResult(success=False, error=str(e))
        self._categories[created.id] = created
        logger.debug(f"Created category {created.category_id} ({created.id})")
        return OperationResult(success=True, id=created.id)

    async def update_category(self, patch: dict[str, Any]) -> OperationResult:
        category_id = patch.get("id")
        existing = self._categories.get(category_id) if category_id else None
        if existing is None:
            return OperationResult(success=False, error=f"Category {category_id} not found")
        if existing.category_id in self.rejected_categories:
            return OperationResult(success=False, id=category_id, error="Update rejected")

        merged = existing.model_dump(by_alias=True)
        merged.update(copy.deepcopy(patch))
        self._categories[category_id] = ContentCategory.model_validate(merged)
        self.category_updates.append(copy.deepcopy(patch))
        return OperationResult(success=True, id=category_id)

    async def list_records(self) -> list[ContentRecord]:
        return [r.model_copy(deep=True) for r in self._records.values()]

    async def update_record(self, patch: dict[str, Any]) -> OperationResult:
        record_id = patch.get("id")
        existing = self._records.get(record_id) if record_id else None
        if existing is None:
            return OperationResult(success=False, error=f"Record {record_id} not found")

        merged = existing.model_dump(by_alias=True)
        merged.update(copy.deepcopy(patch))
        self._records[record_id] = ContentRecord.model_validate(merged)
        return OperationResult(success=True, id=record_id)
