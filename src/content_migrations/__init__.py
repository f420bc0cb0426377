"""
Content Migrations

Schema evolution and data migration for content categories:
- Change detection between expected and persisted category schemas
- Declarative migration unit generation
- Ordered, ledger-tracked migration runs with undo
- One-shot program migrations for structural repairs
"""

from .base import BaseMigration, DeclarativeMigration, ModuleMigration
from .catalog import load_expected_categories, parse_expected_categories
from .config import MigrationConfig, configure_logging, load_config
from .detector import ChangeDetector, SchemaDiff, detect_changes, diff_schemas
from .exceptions import (
    ConfigurationError,
    IrreversibleMigrationError,
    LedgerError,
    ManualInterventionRequired,
    MigrationError,
    MigrationExecutionError,
    MigrationLoadError,
    MigrationNotFoundError,
    RepositoryOperationError,
)
from .executor import ExecutionReport, execute_changes
from .generator import MigrationGenerator, build_migration_id
from .ledger import AppliedMigrationLedger
from .models import (
    ChangeType,
    ContentCategory,
    ContentRecord,
    ExpectedCategory,
    MigrationDocument,
    OperationResult,
    SchemaChange,
    StrayField,
)
from .program_migrations import (
    ProgramMigration,
    ProgramMigrationRunner,
    create_program_migration_runner,
)
from .prompts import ConsolePrompter, NonInteractivePrompter, Prompter
from .records import RecordMigrator, plan_record_migrations
from .repository import ContentRepository, InMemoryContentRepository
from .runner import MigrationRunner, UndoOutcome
from .store import MigrationStore

__version__ = "1.0.0"

__all__ = [
    "AppliedMigrationLedger",
    "BaseMigration",
    "ChangeDetector",
    "ChangeType",
    "ConfigurationError",
    "ConsolePrompter",
    "ContentCategory",
    "ContentRecord",
    "ContentRepository",
    "DeclarativeMigration",
    "ExecutionReport",
    "ExpectedCategory",
    "InMemoryContentRepository",
    "IrreversibleMigrationError",
    "LedgerError",
    "ManualInterventionRequired",
    "MigrationConfig",
    "MigrationDocument",
    "MigrationError",
    "MigrationExecutionError",
    "MigrationGenerator",
    "MigrationLoadError",
    "MigrationNotFoundError",
    "MigrationRunner",
    "MigrationStore",
    "ModuleMigration",
    "NonInteractivePrompter",
    "OperationResult",
    "ProgramMigration",
    "ProgramMigrationRunner",
    "Prompter",
    "RecordMigrator",
    "RepositoryOperationError",
    "SchemaChange",
    "SchemaDiff",
    "StrayField",
    "UndoOutcome",
    "build_migration_id",
    "configure_logging",
    "create_program_migration_runner",
    "detect_changes",
    "diff_schemas",
    "execute_changes",
    "load_config",
    "load_expected_categories",
    "parse_expected_categories",
    "plan_record_migrations",
]
