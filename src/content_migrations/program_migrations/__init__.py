"""
Program Migrations

One-shot structural repairs that run outside the reversible migration
pipeline, typically before the content repository can be opened.
"""

import logging
from pathlib import Path

from .access_controller import AccessControllerRenameMigration
from .runner import DEFAULT_MARKERS_DIRNAME, ProgramMigration, ProgramMigrationRunner


def create_program_migration_runner(
    data_dir: str | Path,
    markers_dirname: str = DEFAULT_MARKERS_DIRNAME,
    logger: logging.Logger | None = None,
) -> ProgramMigrationRunner:
    """Build a runner with every built-in program migration registered in order."""
    runner = ProgramMigrationRunner(data_dir, markers_dirname=markers_dirname, logger=logger)
    runner.register(AccessControllerRenameMigration(logger=logger))
    # Add future program migrations here, in the order they must run
    return runner


__all__ = [
    "AccessControllerRenameMigration",
    "ProgramMigration",
    "ProgramMigrationRunner",
    "create_program_migration_runner",
]
