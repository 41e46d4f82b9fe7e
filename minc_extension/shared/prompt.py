"""User prompts: interactive (click) and preset (non-interactive)."""

from __future__ import annotations

import asyncio
from typing import Optional, Protocol, Sequence, TypeVar

import click


class QuickPickItem(Protocol):
    label: str


T = TypeVar("T", bound=QuickPickItem)


class UserPrompt(Protocol):
    """Host prompt surface used by the managers."""

    async def show_quick_pick(self, items: Sequence[T], placeholder: str) -> Optional[T]:
        """Return the chosen item, or ``None`` when nothing was chosen."""

    async def show_information_message(self, message: str, *choices: str) -> Optional[str]:
        """Return the chosen button label, or ``None`` when dismissed."""


class ClickPrompt:
    """Terminal prompt backed by click."""

    async def show_quick_pick(self, items: Sequence[T], placeholder: str) -> Optional[T]:
        if not items:
            return None
        return await asyncio.to_thread(self._pick, items, placeholder)

    async def show_information_message(self, message: str, *choices: str) -> Optional[str]:
        if not choices:
            click.echo(message)
            return None
        return await asyncio.to_thread(self._choose, message, choices)

    @staticmethod
    def _pick(items: Sequence[T], placeholder: str) -> Optional[T]:
        click.echo(placeholder)
        for index, item in enumerate(items, start=1):
            click.echo(f"  {index}) {item.label}")
        click.echo("  0) Cancel")
        selected = click.prompt(
            "Choice", type=click.IntRange(0, len(items)), default=1
        )
        if selected == 0:
            return None
        return items[selected - 1]

    @staticmethod
    def _choose(message: str, choices: Sequence[str]) -> Optional[str]:
        answer = click.prompt(
            message,
            type=click.Choice(list(choices), case_sensitive=False),
            default=choices[0],
        )
        for choice in choices:
            if choice.lower() == answer.lower():
                return choice
        return None


class PresetPrompt:
    """Answers prompts from values decided up front (flags, tests)."""

    def __init__(self, selection: Optional[str] = None, answer: Optional[str] = None) -> None:
        self.selection = selection
        self.answer = answer

    async def show_quick_pick(self, items: Sequence[T], placeholder: str) -> Optional[T]:
        if self.selection is None:
            return None
        wanted = self.selection.lstrip("v")
        for item in items:
            tag = getattr(item, "tag", item.label)
            if self.selection in (item.label, tag) or tag.lstrip("v") == wanted:
                return item
        return None

    async def show_information_message(self, message: str, *choices: str) -> Optional[str]:
        if self.answer in choices:
            return self.answer
        return None
