"""Shared fixtures for the content migration test suite."""

import json
import textwrap
from collections.abc import Sequence
from pathlib import Path

import pytest

from content_migrations.models import ContentCategory, ContentRecord, ExpectedCategory
from content_migrations.prompts import Prompter
from content_migrations.repository import ContentRepository, InMemoryContentRepository

STRING_FIELD = {"type": "string"}


def make_category(slug: str, schema, id: str | None = None) -> ContentCategory:
    """Build a persisted category; ``schema`` may be a dict or a raw string."""
    raw = schema if isinstance(schema, str) else json.dumps(schema)
    return ContentCategory(
        id=id or f"id-{slug}",
        category_id=slug,
        display_name=slug.title(),
        metadata_schema=raw,
    )


def make_expected(slug: str, schema: dict) -> ExpectedCategory:
    return ExpectedCategory(category_id=slug, display_name=slug.title(), metadata_schema=schema)


async def schema_of(repository: ContentRepository, slug: str) -> dict:
    for category in await repository.list_categories():
        if category.category_id == slug:
            return json.loads(category.metadata_schema or "{}")
    raise AssertionError(f"category {slug} not found")


def write_module_unit(
    migrations_dir: Path, migration_id: str, reversible: bool = True
) -> Path:
    """
    Write a hand-authored unit that records its calls on the repository.

    The repository must carry a ``calls`` list; setting ``fail_on`` to the
    unit id makes its forward step raise.
    """
    source = f'''
        id = "{migration_id}"
        description = "Test unit {migration_id}"


        async def up(repository):
            if getattr(repository, "fail_on", None) == id:
                raise RuntimeError("forward step exploded")
            repository.calls.append(("up", id))
        '''
    if reversible:
        source += '''

        async def down(repository):
            repository.calls.append(("down", id))
        '''
    path = migrations_dir / f"{migration_id}.py"
    path.write_text(textwrap.dedent(source), encoding="utf-8")
    return path


class ScriptedPrompter(Prompter):
    """Prompter answering from a queue and recording every question."""

    def __init__(self, answers: list | None = None) -> None:
        self.answers = list(answers or [])
        self.questions: list[tuple[str, str, list]] = []

    def _next(self):
        if not self.answers:
            raise AssertionError("prompter ran out of answers")
        return self.answers.pop(0)

    async def select(self, message: str, choices: Sequence[tuple[str, str]]) -> str:
        self.questions.append(("select", message, [value for value, _ in choices]))
        return self._next()

    async def text(self, message: str, default: str | None = None) -> str:
        self.questions.append(("text", message, []))
        return self._next()

    async def confirm(self, message: str, default: bool = False) -> bool:
        self.questions.append(("confirm", message, []))
        return self._next()


@pytest.fixture
def music_repository():
    """Repository with a music category holding only a title field."""
    repository = InMemoryContentRepository(
        categories=[make_category("music", {"title": STRING_FIELD})]
    )
    repository.calls = []
    return repository


@pytest.fixture
def expected_music():
    return [make_expected("music", {"title": STRING_FIELD, "author": STRING_FIELD})]


@pytest.fixture
def migrations_dir(tmp_path):
    path = tmp_path / "migrations"
    path.mkdir()
    return path


@pytest.fixture
def data_dir(tmp_path):
    path = tmp_path / "data"
    path.mkdir()
    return path


@pytest.fixture
def records():
    return [
        ContentRecord(id="r1", name="Album One", category_id="music",
                      metadata={"posterCID": "cid-1", "author": "A"}),
        ContentRecord(id="r2", name="Album Two", category_id="music",
                      metadata={"posterCID": "cid-2", "cover": "cid-existing"}),
        ContentRecord(id="r3", name="Film One", category_id="movies",
                      metadata={"posterCID": "cid-3"}),
        ContentRecord(id="r4", name="Podcast", category_id="podcasts", metadata={}),
    ]
