"""
Base Migration Class

Common behaviour for all migration units:
- Forward (up) and optional reverse (down) steps against a content repository
- Timing and logging around each step
- Uniform wrapping of step failures in MigrationExecutionError

Two concrete kinds exist: ``DeclarativeMigration`` interprets a persisted
change list, ``ModuleMigration`` wraps a hand-written Python module.
"""

import inspect
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from types import ModuleType
from typing import Any

from .exceptions import IrreversibleMigrationError, MigrationExecutionError, MigrationLoadError
from .executor import execute_changes
from .models import MigrationDocument, SchemaChange
from .repository import ContentRepository
from .schema_ops import invert_change

logger = logging.getLogger(__name__)

MigrationStep = Callable[[ContentRepository], Any]


class BaseMigration(ABC):
    """
    Base class for all migration units.

    A unit is identified by a sortable ``id``; ids are compared as strings
    and are constructed so that string order matches creation order.
    """

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.logger = logger or logging.getLogger(__name__)
        self.execution_time = 0.0

    @property
    @abstractmethod
    def id(self) -> str:
        """Unique, sortable migration id."""
        pass

    @property
    @abstractmethod
    def description(self) -> str:
        """Human-readable description of what this migration does."""
        pass

    @property
    def reversible(self) -> bool:
        """Whether this migration has a reverse step."""
        return False

    @abstractmethod
    async def up(self, repository: ContentRepository) -> None:
        """Apply the migration."""
        pass

    async def down(self, repository: ContentRepository) -> None:
        """
        Reverse the migration.

        Default implementation raises; override in reversible migrations.
        """
        raise IrreversibleMigrationError(self.id)

    async def apply(self, repository: ContentRepository) -> None:
        """
        Run the forward step with timing and logging.

        Raises:
            MigrationExecutionError: If the forward step fails
        """
        self.logger.info(f"Running migration: {self.id} - {self.description}")
        start_time = time.time()
        try:
            await self.up(repository)
        except Exception as e:
            self.execution_time = time.time() - start_time
            self.logger.error(
                f"Migration {self.id} failed after {self.execution_time:.3f}s: {e}"
            )
            raise MigrationExecutionError(self.id, "forward step", e) from e

        self.execution_time = time.time() - start_time
        self.logger.info(
            f"Migration {self.id} completed successfully in {self.execution_time:.3f}s"
        )

    async def revert(self, repository: ContentRepository) -> None:
        """
        Run the reverse step with timing and logging.

        Raises:
            IrreversibleMigrationError: If the unit has no reverse step
            MigrationExecutionError: If the reverse step fails
        """
        if not self.reversible:
            raise IrreversibleMigrationError(self.id)

        self.logger.info(f"Undoing migration: {self.id} - {self.description}")
        start_time = time.time()
        try:
            await self.down(repository)
        except Exception as e:
            self.execution_time = time.time() - start_time
            self.logger.error(
                f"Undo of migration {self.id} failed after {self.execution_time:.3f}s: {e}"
            )
            raise MigrationExecutionError(self.id, "reverse step", e) from e

        self.execution_time = time.time() - start_time
        self.logger.info(
            f"Migration {self.id} undone successfully in {self.execution_time:.3f}s"
        )

    def get_migration_info(self) -> dict[str, Any]:
        """Get metadata about this migration."""
        return {
            "id": self.id,
            "description": self.description,
            "reversible": self.reversible,
            "execution_time": self.execution_time,
        }


class DeclarativeMigration(BaseMigration):
    """
    Migration interpreted from a persisted change list.

    The forward step applies the recorded changes in order; the reverse step
    applies their inverses in reverse order. Category additions have no
    inverse and are left in place on undo.
    """

    def __init__(
        self, document: MigrationDocument, logger: logging.Logger | None = None
    ) -> None:
        super().__init__(logger)
        self.document = document

    @property
    def id(self) -> str:
        return self.document.id

    @property
    def description(self) -> str:
        return self.document.description

    @property
    def reversible(self) -> bool:
        return True

    @property
    def changes(self) -> list[SchemaChange]:
        return self.document.changes

    def reverse_changes(self) -> list[SchemaChange]:
        """Inverse changes in the order the reverse step applies them."""
        reversed_changes = []
        for change in reversed(self.document.changes):
            inverse = invert_change(change)
            if inverse is None:
                self.logger.warning(
                    f"Cannot undo {change.summary()} in migration {self.id}, leaving it in place"
                )
                continue
            reversed_changes.append(inverse)
        return reversed_changes

    async def up(self, repository: ContentRepository) -> None:
        await execute_changes(repository, self.document.changes, strict=True, log=self.logger)
        self.logger.info("Content category schemas updated successfully")

    async def down(self, repository: ContentRepository) -> None:
        await execute_changes(repository, self.reverse_changes(), strict=True, log=self.logger)
        self.logger.info("Content category schemas reverted successfully")


class ModuleMigration(BaseMigration):
    """
    Migration defined by a hand-written Python module.

    The module exposes ``id``, ``description``, an async ``up`` (or
    ``forward``) function and optionally an async ``down`` (or ``reverse``)
    function, each taking the content repository.
    """

    def __init__(self, module: ModuleType, logger: logging.Logger | None = None) -> None:
        super().__init__(logger)
        migration_id = getattr(module, "id", None)
        if not isinstance(migration_id, str) or not migration_id:
            raise MigrationLoadError(f"Migration module {module.__name__} has no string 'id'")

        forward = getattr(module, "up", None) or getattr(module, "forward", None)
        if not callable(forward):
            raise MigrationLoadError(
                f"Migration module {module.__name__} has no 'up' or 'forward' function"
            )
        reverse = getattr(module, "down", None) or getattr(module, "reverse", None)

        self._id = migration_id
        self._description = str(getattr(module, "description", ""))
        self._forward: MigrationStep = forward
        self._reverse: MigrationStep | None = reverse if callable(reverse) else None

    @property
    def id(self) -> str:
        return self._id

    @property
    def description(self) -> str:
        return self._description

    @property
    def reversible(self) -> bool:
        return self._reverse is not None

    async def up(self, repository: ContentRepository) -> None:
        await _call_step(self._forward, repository)

    async def down(self, repository: ContentRepository) -> None:
        if self._reverse is None:
            raise IrreversibleMigrationError(self.id)
        await _call_step(self._reverse, repository)


async def _call_step(step: MigrationStep, repository: ContentRepository) -> None:
    result = step(repository)
    if inspect.isawaitable(result):
        await result
