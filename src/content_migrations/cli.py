"""
Command-line interface for content migrations.

The content repository is supplied by a factory given as ``module:callable``
(``--repository`` or ``CONTENT_MIGRATIONS_REPOSITORY_FACTORY``). The callable
receives the ``MigrationConfig`` and returns a ``ContentRepository`` or an
awaitable resolving to one. A repository exposing ``close()`` is closed when
the command ends.
"""

import argparse
import asyncio
import importlib
import inspect
import json
import logging
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

from .catalog import load_expected_categories
from .config import MigrationConfig, configure_logging
from .detector import ChangeDetector
from .exceptions import ConfigurationError, MigrationError
from .generator import MigrationGenerator
from .ledger import AppliedMigrationLedger
from .models import ExpectedCategory
from .program_migrations import create_program_migration_runner
from .prompts import ConsolePrompter, NonInteractivePrompter, Prompter
from .records import RecordMigrator
from .repository import ContentRepository, UnavailableContentRepository
from .runner import MigrationRunner, UndoOutcome
from .store import MigrationStore

logger = logging.getLogger(__name__)

RepositoryFactory = Callable[[MigrationConfig], Any]


def load_repository_factory(path: str) -> RepositoryFactory:
    """Resolve a ``module:callable`` reference."""
    module_name, _, attribute = path.partition(":")
    if not module_name or not attribute:
        raise ConfigurationError([f"Repository factory must look like 'module:callable', got {path!r}"])

    module = importlib.import_module(module_name)
    factory = getattr(module, attribute, None)
    if not callable(factory):
        raise ConfigurationError([f"{path} is not callable"])
    return factory


async def open_repository(config: MigrationConfig) -> ContentRepository:
    if not config.repository_factory:
        raise ConfigurationError(
            ["No repository factory configured; pass --repository module:callable"]
        )
    factory = load_repository_factory(config.repository_factory)
    repository = factory(config)
    if inspect.isawaitable(repository):
        repository = await repository
    return repository


async def close_repository(repository: ContentRepository | None) -> None:
    close = getattr(repository, "close", None)
    if close is None:
        return
    try:
        result = close()
        if inspect.isawaitable(result):
            await result
    except Exception as e:
        logger.error(f"Error closing repository: {e}")


def _prompter(config: MigrationConfig) -> Prompter:
    return ConsolePrompter() if config.interactive else NonInteractivePrompter()


def _expected_categories(config: MigrationConfig) -> list[ExpectedCategory]:
    if config.categories_file is None:
        raise ConfigurationError(
            ["No categories file configured; pass --categories-file or set "
             "CONTENT_MIGRATIONS_CATEGORIES_FILE"]
        )
    return load_expected_categories(config.categories_file)


def _runner(config: MigrationConfig) -> MigrationRunner:
    store = MigrationStore(config.migrations_dir)
    ledger = AppliedMigrationLedger(config.data_dir, config.ledger_filename)
    return MigrationRunner(store, ledger)


# Command handlers


async def cmd_migrate(config: MigrationConfig, args: argparse.Namespace) -> int:
    logger.info("Starting migration process...")
    repository = await open_repository(config)
    try:
        applied = await _runner(config).run(repository)
    finally:
        await close_repository(repository)

    logger.info(f"Migration complete, {len(applied)} applied")
    if applied:
        logger.info("Some records may need metadata migration.")
        logger.info('Run "content-migrations records-migrate" to update record metadata.')
    return 0


async def cmd_undo(config: MigrationConfig, args: argparse.Namespace) -> int:
    logger.info("Starting undo migration process...")
    runner = _runner(config)
    applied = await runner.ledger.load()
    if not applied:
        logger.info("No migrations to undo")
        return 0

    repository = await open_repository(config)
    try:
        if args.all:
            undone = await runner.undo_all(repository)
        elif args.through:
            undone = await runner.undo_through(args.through, repository)
        elif args.migration_id:
            outcome = await runner.undo(args.migration_id, repository)
            undone = [args.migration_id] if outcome == UndoOutcome.UNDONE else []
        elif config.interactive:
            selected = await ConsolePrompter().select(
                "Select migration to undo (it and every later migration are undone):",
                [(i, i) for i in reversed(applied)],
            )
            undone = await runner.undo_through(selected, repository)
        else:
            logger.error("Nothing selected: pass a migration id, --through ID or --all")
            return 2
    finally:
        await close_repository(repository)

    logger.info(f"Undo complete, {len(undone)} undone")
    return 0


async def cmd_generate_migration(config: MigrationConfig, args: argparse.Namespace) -> int:
    prompter = _prompter(config)
    from_version = args.from_version or await prompter.text("Version to migrate from:")
    to_version = args.to_version or await prompter.text("Version to migrate to:")
    expected = _expected_categories(config)

    logger.info(f"Generating migration from v{from_version} to v{to_version}...")
    repository = await open_repository(config)
    try:
        generator = MigrationGenerator(
            repository, expected, config.migrations_dir, prompter=prompter
        )
        path = await generator.generate_migration(
            from_version, to_version, interactive=config.interactive
        )
    finally:
        await close_repository(repository)

    if path is not None:
        print(path)
    logger.info("Migration generation complete")
    return 0


async def cmd_update_categories(config: MigrationConfig, args: argparse.Namespace) -> int:
    prompter = _prompter(config)
    expected = _expected_categories(config)
    repository = await open_repository(config)
    try:
        detector = ChangeDetector(repository, expected, prompter=prompter)
        changes = await detector.detect_changes(interactive=config.interactive)
        if not changes:
            logger.info("Content categories are up to date")
            return 0

        for change in changes:
            logger.info(f"  - {change.summary()}")
        if not args.yes and not await prompter.confirm(
            f"Apply {len(changes)} changes now?", default=False
        ):
            logger.info("Update cancelled")
            return 0

        report = await MigrationGenerator(
            repository, expected, config.migrations_dir, prompter=prompter
        ).apply_changes(changes)
    finally:
        await close_repository(repository)

    return 0 if report.success else 1


async def cmd_program_migrate(config: MigrationConfig, args: argparse.Namespace) -> int:
    logger.warning("=" * 60)
    logger.warning("PROGRAM MIGRATION WARNING")
    logger.warning("=" * 60)
    logger.warning("You are about to run program-level migrations.")
    logger.warning("These are SEVERE operations that can modify core data structures.")
    logger.warning("Make sure you have backed up your data before proceeding.")
    logger.warning("=" * 60)
    await asyncio.sleep(config.program_migration_warning_delay)

    logger.info("Starting program migration process...")
    repository: ContentRepository | None = None
    try:
        repository = await open_repository(config)
    except ConfigurationError:
        raise
    except Exception as e:
        logger.warning(
            f"Failed to open repository normally ({e}), checking if migration can fix it..."
        )
        repository = UnavailableContentRepository(e)

    try:
        runner = create_program_migration_runner(
            config.data_dir, markers_dirname=config.program_markers_dirname
        )
        await runner.run(repository)
    finally:
        await close_repository(repository)

    logger.info("Program migration process complete")
    return 0


async def cmd_records_migrate(config: MigrationConfig, args: argparse.Namespace) -> int:
    repository = await open_repository(config)
    try:
        report = await RecordMigrator(repository, prompter=_prompter(config)).migrate(
            from_field=args.from_field,
            to_field=args.to_field,
            category=args.category,
            dry_run=args.dry_run,
            assume_yes=args.yes,
        )
    finally:
        await close_repository(repository)
    return 1 if report.failed else 0


async def cmd_status(config: MigrationConfig, args: argparse.Namespace) -> int:
    status = await _runner(config).get_status()
    status["program_migrations"] = await create_program_migration_runner(
        config.data_dir, markers_dirname=config.program_markers_dirname
    ).completed()

    if args.json:
        print(json.dumps(status, indent=2))
        return 0

    print(f"Known migrations:   {len(status['known'])}")
    print(f"Applied migrations: {len(status['applied'])}")
    for migration_id in status["pending"]:
        print(f"  pending: {migration_id}")
    for migration_id in status["orphaned"]:
        print(f"  applied but not found: {migration_id}")
    for migration_id, completed_at in status["program_migrations"].items():
        print(f"  program migration {migration_id} done at {completed_at}")
    return 0


COMMANDS = {
    "migrate": cmd_migrate,
    "undo": cmd_undo,
    "generate-migration": cmd_generate_migration,
    "update-categories": cmd_update_categories,
    "program-migrate": cmd_program_migrate,
    "records-migrate": cmd_records_migrate,
    "status": cmd_status,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="content-migrations",
        description="Detect, generate, apply and undo content schema migrations",
    )
    parser.add_argument("--env-file", type=str, help="Read environment variables from this file")
    parser.add_argument("--data-dir", type=str, help="Data directory holding the ledger")
    parser.add_argument("--migrations-dir", type=str, help="Directory of migration units")
    parser.add_argument("--categories-file", type=str, help="Expected category definitions (JSON)")
    parser.add_argument("--repository", type=str, help="Repository factory as module:callable")
    parser.add_argument(
        "--non-interactive", action="store_true", help="Never prompt; use safe defaults"
    )
    parser.add_argument("--verbose", action="store_true", help="Enable verbose logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("migrate", help="Apply pending migrations")

    undo = subparsers.add_parser("undo", help="Undo applied migrations")
    undo.add_argument("migration_id", nargs="?", help="Undo a single migration")
    undo_group = undo.add_mutually_exclusive_group()
    undo_group.add_argument("--all", action="store_true", help="Undo all applied migrations")
    undo_group.add_argument(
        "--through", type=str, metavar="ID", help="Undo every migration back through ID"
    )

    generate = subparsers.add_parser(
        "generate-migration", help="Generate a migration from detected schema changes"
    )
    generate.add_argument("--from-version", type=str, help="Version to migrate from")
    generate.add_argument("--to-version", type=str, help="Version to migrate to")

    update = subparsers.add_parser(
        "update-categories", help="Apply detected schema changes immediately"
    )
    update.add_argument("--yes", action="store_true", help="Do not ask for confirmation")

    subparsers.add_parser(
        "program-migrate",
        help="Apply severe program-level migrations (USE WITH CAUTION)",
        epilog="Program migrations modify core data structures. Back up your data first.",
    )

    records = subparsers.add_parser(
        "records-migrate", help="Move record metadata fields (e.g. posterCID to cover)"
    )
    records.add_argument("--from-field", type=str, help="Source field name to migrate from")
    records.add_argument("--to-field", type=str, help="Target field name to migrate to")
    records.add_argument("--category", type=str, help="Only migrate records in this category")
    records.add_argument(
        "--dry-run", action="store_true", help="Show what would be migrated without changes"
    )
    records.add_argument("--yes", action="store_true", help="Do not ask for confirmation")

    status = subparsers.add_parser("status", help="Show applied and pending migrations")
    status.add_argument("--json", action="store_true", help="Print status as JSON")

    return parser


def config_from_args(args: argparse.Namespace) -> MigrationConfig:
    config = MigrationConfig.from_environment(args.env_file)
    if args.data_dir:
        config.data_dir = Path(args.data_dir)
    if args.migrations_dir:
        config.migrations_dir = Path(args.migrations_dir)
    if args.categories_file:
        config.categories_file = Path(args.categories_file)
    if args.repository:
        config.repository_factory = args.repository
    if args.non_interactive:
        config.interactive = False
    if args.verbose:
        config.log_level = "DEBUG"
    return config


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "records-migrate" and bool(args.from_field) != bool(args.to_field):
        parser.error("--from-field and --to-field must be given together")
    if args.command == "undo" and args.migration_id and (args.all or args.through):
        parser.error("a migration id cannot be combined with --all or --through")

    try:
        config = config_from_args(args)
        issues = config.validate()
        if issues:
            raise ConfigurationError(issues)
    except (ConfigurationError, ValueError) as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 2

    configure_logging(config)

    try:
        return asyncio.run(COMMANDS[args.command](config, args))
    except MigrationError as e:
        logger.error(f"{args.command} failed: {e.message}")
        for suggestion in e.suggestions:
            logger.error(f"  - {suggestion}")
        return 1
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return 130
    except Exception as e:
        logger.error(f"{args.command} failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
