"""
Migration Exceptions

Exception hierarchy for schema detection, migration execution, undo and
program-level repairs. Each error carries enough context for operator
tooling to decide how to react.
"""

from typing import Any


class MigrationError(Exception):
    """Base exception for all migration errors."""

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
        suggestions: list[str] | None = None,
    ) -> None:
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        self.suggestions = suggestions or []
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for reporting."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "suggestions": self.suggestions,
        }


class MigrationLoadError(MigrationError):
    """Raised when a migration unit file cannot be loaded."""

    pass


class MigrationNotFoundError(MigrationError):
    """Raised when a migration id does not match any known unit."""

    def __init__(self, migration_id: str) -> None:
        super().__init__(
            f"Migration {migration_id} not found",
            details={"migration_id": migration_id},
        )
        self.migration_id = migration_id


class IrreversibleMigrationError(MigrationError):
    """Raised when undo is requested for a unit without a reverse step."""

    def __init__(self, migration_id: str) -> None:
        super().__init__(
            f"Migration {migration_id} does not support undo (no reverse step)",
            details={"migration_id": migration_id},
        )
        self.migration_id = migration_id


class MigrationExecutionError(MigrationError):
    """Raised when a forward or reverse step fails."""

    def __init__(self, migration_id: str, operation: str, cause: Exception) -> None:
        super().__init__(
            f"Migration {migration_id} {operation} failed: {cause}",
            details={"migration_id": migration_id, "operation": operation},
        )
        self.migration_id = migration_id
        self.operation = operation


class LedgerError(MigrationError):
    """Raised when the applied-migration ledger cannot be read or written."""

    pass


class RepositoryOperationError(MigrationError):
    """Raised when the content repository rejects an operation inside a migration step."""

    pass


class ManualInterventionRequired(MigrationError):
    """
    Raised by program migrations that refuse to repair data automatically.

    The suggestions list holds the recovery options shown to the operator.
    """

    pass


class ConfigurationError(MigrationError):
    """Raised when the migration configuration is invalid."""

    def __init__(self, issues: list[str]) -> None:
        super().__init__(
            f"Configuration validation failed: {'; '.join(issues)}",
            details={"issues": issues},
        )
        self.issues = issues
