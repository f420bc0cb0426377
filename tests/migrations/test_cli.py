"""Tests for the command-line interface."""

import json
import os
import sys
import types

import pytest
from conftest import STRING_FIELD, make_category, write_module_unit

from content_migrations.cli import build_parser, load_repository_factory, main
from content_migrations.config import ENV_PREFIX
from content_migrations.exceptions import ConfigurationError
from content_migrations.repository import InMemoryContentRepository

FACTORY_MODULE = "cli_test_repository_factory"


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for name in [n for n in os.environ if n.startswith(ENV_PREFIX)]:
        monkeypatch.delenv(name)
    monkeypatch.setenv("CONTENT_MIGRATIONS_PROGRAM_WARNING_DELAY", "0")


@pytest.fixture
def repository():
    repository = InMemoryContentRepository([make_category("music", {"title": STRING_FIELD})])
    repository.calls = []
    repository.closed = False

    async def close():
        repository.closed = True

    repository.close = close
    return repository


@pytest.fixture
def factory_module(monkeypatch, repository):
    """Importable module exposing repository factories for ``--repository``."""
    module = types.ModuleType(FACTORY_MODULE)
    module.create = lambda config: repository

    def broken(config):
        raise RuntimeError("cannot load type RoleBasedccessController")

    module.broken = broken
    monkeypatch.setitem(sys.modules, FACTORY_MODULE, module)
    return module


@pytest.fixture
def base_args(tmp_path, data_dir, migrations_dir):
    return [
        "--env-file", str(tmp_path / "absent.env"),
        "--data-dir", str(data_dir),
        "--migrations-dir", str(migrations_dir),
        "--non-interactive",
    ]


class TestParser:

    def test_undo_options_are_exclusive(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["undo", "--all", "--through", "001-a"])

    @pytest.mark.parametrize("option", [["--all"], ["--through", "001-a"]])
    def test_undo_id_conflicts_with_bulk_options(self, base_args, option):
        with pytest.raises(SystemExit):
            main([*base_args, "undo", "002-b", *option])

    def test_records_migrate_requires_both_fields(self, base_args):
        with pytest.raises(SystemExit):
            main([*base_args, "records-migrate", "--from-field", "posterCID"])

    def test_load_repository_factory_validates_reference(self, factory_module):
        assert load_repository_factory(f"{FACTORY_MODULE}:create") is factory_module.create
        with pytest.raises(ConfigurationError):
            load_repository_factory(FACTORY_MODULE)


class TestCommands:
    """Test commands end to end against an in-memory repository."""

    def test_migrate_then_undo_all(self, base_args, factory_module, repository, migrations_dir, data_dir):
        write_module_unit(migrations_dir, "001-a")
        write_module_unit(migrations_dir, "002-b")
        args = [*base_args, "--repository", f"{FACTORY_MODULE}:create"]

        assert main([*args, "migrate"]) == 0
        assert json.loads((data_dir / "applied-migrations.json").read_text()) == ["001-a", "002-b"]
        assert repository.closed

        assert main([*args, "undo", "--all"]) == 0
        assert repository.calls[-2:] == [("down", "002-b"), ("down", "001-a")]
        assert json.loads((data_dir / "applied-migrations.json").read_text()) == []

    def test_migrate_failure_exit_code(self, base_args, factory_module, repository, migrations_dir):
        write_module_unit(migrations_dir, "001-a")
        repository.fail_on = "001-a"

        assert main([*base_args, "--repository", f"{FACTORY_MODULE}:create", "migrate"]) == 1

    def test_missing_repository_factory(self, base_args):
        assert main([*base_args, "migrate"]) == 1

    def test_invalid_configuration(self, base_args, monkeypatch):
        monkeypatch.setenv("CONTENT_MIGRATIONS_LOG_LEVEL", "LOUD")

        assert main([*base_args, "status"]) == 2

    def test_status_json(self, base_args, migrations_dir, capsys):
        write_module_unit(migrations_dir, "001-a")

        assert main([*base_args, "status", "--json"]) == 0

        status = json.loads(capsys.readouterr().out)
        assert status["pending"] == ["001-a"]
        assert status["program_migrations"] == {}

    def test_program_migrate_healthy_store(self, base_args, factory_module, data_dir):
        args = [*base_args, "--repository", f"{FACTORY_MODULE}:create", "program-migrate"]

        assert main(args) == 0
        assert (data_dir / ".program-migrations" / "001-access-controller-rename.done").exists()

    def test_program_migrate_broken_store(self, base_args, factory_module, data_dir):
        args = [*base_args, "--repository", f"{FACTORY_MODULE}:broken", "program-migrate"]

        assert main(args) == 1
        assert not (data_dir / ".program-migrations" / "001-access-controller-rename.done").exists()

    def test_update_categories(self, base_args, factory_module, repository, tmp_path):
        categories = tmp_path / "categories.json"
        categories.write_text(
            json.dumps(
                [{"categoryId": "music",
                  "metadataSchema": {"title": STRING_FIELD, "author": STRING_FIELD}}]
            )
        )
        args = [
            *base_args,
            "--repository", f"{FACTORY_MODULE}:create",
            "--categories-file", str(categories),
            "update-categories", "--yes",
        ]

        assert main(args) == 0
        assert repository.category_updates[-1]["metadataSchema"] == json.dumps(
            {"title": STRING_FIELD, "author": STRING_FIELD}
        )

    def test_generate_migration(self, base_args, factory_module, migrations_dir, tmp_path):
        categories = tmp_path / "categories.json"
        categories.write_text(
            json.dumps([{"categoryId": "music", "metadataSchema": {"title": STRING_FIELD, "year": STRING_FIELD}}])
        )
        args = [
            *base_args,
            "--repository", f"{FACTORY_MODULE}:create",
            "--categories-file", str(categories),
            "generate-migration", "--from-version", "0.1.0", "--to-version", "0.2.0",
        ]

        assert main(args) == 0
        (generated,) = migrations_dir.glob("*.migration.json")
        assert generated.name.endswith("_v0-1-0_to_v0-2-0.migration.json")
