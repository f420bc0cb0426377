"""
Operator Prompts

Prompt layer consulted when a decision cannot be made automatically, such as
what to do with a field that exists in the repository but not in the
expected schema.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from enum import Enum

logger = logging.getLogger(__name__)


class StrayFieldAction(str, Enum):
    """Operator choices for a stray field."""

    RENAME_EXISTING = "rename-existing"
    RENAME_NEW = "rename-new"
    REMOVE = "remove"
    SKIP = "skip"


STRAY_FIELD_CHOICES: list[tuple[str, str]] = [
    (StrayFieldAction.RENAME_EXISTING.value, "Rename to an existing field in the schema"),
    (StrayFieldAction.RENAME_NEW.value, "Rename to a new field name"),
    (StrayFieldAction.REMOVE.value, "Remove the field entirely"),
    (StrayFieldAction.SKIP.value, "Keep the field (skip)"),
]


class Prompter(ABC):
    """Presents choices or text input to an operator."""

    @abstractmethod
    async def select(self, message: str, choices: Sequence[tuple[str, str]]) -> str:
        """
        Ask the operator to pick one of ``choices``.

        Args:
            message: Question shown to the operator
            choices: ``(value, label)`` pairs

        Returns:
            The chosen value
        """
        pass

    @abstractmethod
    async def text(self, message: str, default: str | None = None) -> str:
        """Ask the operator for a non-empty line of text."""
        pass

    @abstractmethod
    async def confirm(self, message: str, default: bool = False) -> bool:
        """Ask a yes/no question."""
        pass


class NonInteractivePrompter(Prompter):
    """Answers every prompt with its safe default, for automated runs."""

    async def select(self, message: str, choices: Sequence[tuple[str, str]]) -> str:
        values = [value for value, _ in choices]
        if StrayFieldAction.SKIP.value in values:
            return StrayFieldAction.SKIP.value
        if not values:
            raise ValueError(f"No choices offered for: {message}")
        return values[0]

    async def text(self, message: str, default: str | None = None) -> str:
        if default is None:
            raise ValueError(f"No default available for non-interactive prompt: {message}")
        return default

    async def confirm(self, message: str, default: bool = False) -> bool:
        return default


class ConsolePrompter(Prompter):
    """Line-based prompts on standard input/output."""

    async def _ask(self, message: str) -> str:
        return (await asyncio.to_thread(input, message)).strip()

    async def select(self, message: str, choices: Sequence[tuple[str, str]]) -> str:
        if not choices:
            raise ValueError(f"No choices offered for: {message}")
        print(message)
        for index, (_, label) in enumerate(choices, start=1):
            print(f"  {index}) {label}")
        while True:
            answer = await self._ask(f"Choose 1-{len(choices)}: ")
            if answer.isdigit() and 1 <= int(answer) <= len(choices):
                return choices[int(answer) - 1][0]
            print("Invalid choice")

    async def text(self, message: str, default: str | None = None) -> str:
        suffix = f" [{default}]" if default else ""
        while True:
            answer = await self._ask(f"{message}{suffix} ")
            if answer:
                return answer
            if default:
                return default
            print("Value cannot be empty")

    async def confirm(self, message: str, default: bool = False) -> bool:
        hint = "Y/n" if default else "y/N"
        answer = (await self._ask(f"{message} ({hint}) ")).lower()
        if not answer:
            return default
        return answer in ("y", "yes")
