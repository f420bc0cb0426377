"""
Migration Configuration

Settings for the migration tooling, loaded from environment variables
(``CONTENT_MIGRATIONS_*``) after reading an optional ``.env`` file.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from .exceptions import ConfigurationError
from .ledger import DEFAULT_LEDGER_FILENAME
from .program_migrations.runner import DEFAULT_MARKERS_DIRNAME

logger = logging.getLogger(__name__)

ENV_PREFIX = "CONTENT_MIGRATIONS_"
VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _env(name: str, default: str | None = None) -> str | None:
    return os.getenv(f"{ENV_PREFIX}{name}", default)


def _env_bool(name: str, default: bool) -> bool:
    value = _env(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class MigrationConfig:
    """Configuration for detecting, generating and running migrations."""

    data_dir: Path = Path("./data")
    migrations_dir: Path = Path("./migrations")
    ledger_filename: str = DEFAULT_LEDGER_FILENAME
    program_markers_dirname: str = DEFAULT_MARKERS_DIRNAME
    categories_file: Path | None = None
    repository_factory: str | None = None
    interactive: bool = True
    log_level: str = "INFO"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    log_file: str | None = None
    program_migration_warning_delay: float = 3.0

    @classmethod
    def from_environment(cls, env_file: str | Path | None = None) -> "MigrationConfig":
        """
        Create configuration from environment variables.

        Args:
            env_file: Optional ``.env`` file; the default lookup is used when omitted
        """
        if env_file is not None:
            load_dotenv(env_file)
        else:
            load_dotenv()

        defaults = cls()
        categories_file = _env("CATEGORIES_FILE")

        return cls(
            data_dir=Path(_env("DATA_DIR", str(defaults.data_dir))),
            migrations_dir=Path(_env("MIGRATIONS_DIR", str(defaults.migrations_dir))),
            ledger_filename=_env("LEDGER_FILENAME", defaults.ledger_filename),
            program_markers_dirname=_env(
                "PROGRAM_MARKERS_DIRNAME", defaults.program_markers_dirname
            ),
            categories_file=Path(categories_file) if categories_file else None,
            repository_factory=_env("REPOSITORY_FACTORY"),
            interactive=_env_bool("INTERACTIVE", defaults.interactive),
            log_level=_env("LOG_LEVEL", defaults.log_level),
            log_format=_env("LOG_FORMAT", defaults.log_format),
            log_file=_env("LOG_FILE"),
            program_migration_warning_delay=float(
                _env("PROGRAM_WARNING_DELAY", str(defaults.program_migration_warning_delay))
            ),
        )

    @property
    def ledger_path(self) -> Path:
        return self.data_dir / self.ledger_filename

    @property
    def program_markers_dir(self) -> Path:
        return self.data_dir / self.program_markers_dirname

    def validate(self) -> list[str]:
        """Validate configuration and return a list of issues."""
        issues: list[str] = []

        if self.log_level.upper() not in VALID_LOG_LEVELS:
            issues.append(f"Invalid logging level: {self.log_level}")

        for name, value in (
            ("ledger_filename", self.ledger_filename),
            ("program_markers_dirname", self.program_markers_dirname),
        ):
            if not value or Path(value).name != value:
                issues.append(f"{name} must be a plain file name, got {value!r}")

        if self.program_migration_warning_delay < 0:
            issues.append("program_migration_warning_delay cannot be negative")

        if self.data_dir.exists() and not self.data_dir.is_dir():
            issues.append(f"data_dir is not a directory: {self.data_dir}")
        if self.migrations_dir.exists() and not self.migrations_dir.is_dir():
            issues.append(f"migrations_dir is not a directory: {self.migrations_dir}")
        if self.categories_file is not None and not self.categories_file.is_file():
            issues.append(f"categories_file not found: {self.categories_file}")

        if self.repository_factory and ":" not in self.repository_factory:
            issues.append(
                f"repository_factory must look like 'module:callable', got {self.repository_factory!r}"
            )

        return issues


def load_config(env_file: str | Path | None = None) -> MigrationConfig:
    """
    Load and validate configuration from the environment.

    Raises:
        ConfigurationError: If validation reports any issue
    """
    config = MigrationConfig.from_environment(env_file)
    issues = config.validate()
    if issues:
        raise ConfigurationError(issues)
    return config


def configure_logging(config: MigrationConfig) -> None:
    """Configure root logging from ``config``."""
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper()),
        format=config.log_format,
        filename=config.log_file,
    )

    logger.debug(f"Logging configured: level={config.log_level}, file={config.log_file}")
