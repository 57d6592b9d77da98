"""Terminal prompts for the setup flow.

``PromptGateway`` is what the setup flow asks questions through;
``ClickPromptGateway`` renders them with click. Blocking prompts run on
the shared IO executor so the event loop keeps serving event streams
while the user is typing.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from typing import IO

import click

from credsetup.models import ChoiceOption, SetupChoice
from credsetup.utils.concurrency import run_blocking_io

logger = logging.getLogger(__name__)

# Returns None when the input is acceptable, otherwise the message to show.
Validator = Callable[[str], str | None]


class PromptGateway(ABC):
    """Abstract user interaction used by the setup flow."""

    @abstractmethod
    async def ask_choice(
        self, message: str, options: Sequence[ChoiceOption],
    ) -> SetupChoice:
        """Ask the user to pick one option; return its value."""
        ...

    @abstractmethod
    async def ask_confirm(self, message: str, default: bool = True) -> bool:
        ...

    @abstractmethod
    async def ask_free_text(
        self, message: str, validator: Validator | None = None,
    ) -> str:
        """Ask for a line of text, re-asking until *validator* accepts it.

        Returns the stripped input.
        """
        ...

    @abstractmethod
    async def ask_acknowledge(self, message: str) -> None:
        """Wait for the user to press Enter.

        Cancelling the awaiting task retracts the prompt before it consumes
        any input.
        """
        ...

    @abstractmethod
    def show(self, message: str) -> None:
        """Display a status line."""
        ...


class ClickPromptGateway(PromptGateway):
    """Click-rendered prompts on the controlling terminal."""

    def __init__(self, input_stream: IO[str] | None = None) -> None:
        self._input = input_stream

    @property
    def _stream(self) -> IO[str]:
        return self._input if self._input is not None else sys.stdin

    async def ask_choice(
        self, message: str, options: Sequence[ChoiceOption],
    ) -> SetupChoice:
        if not options:
            raise ValueError("ask_choice needs at least one option")
        return await run_blocking_io(self._choose, message, list(options))

    @staticmethod
    def _choose(message: str, options: list[ChoiceOption]) -> SetupChoice:
        click.echo()
        click.echo(message)
        click.echo()
        for i, option in enumerate(options, 1):
            click.echo(f"  {i}. {option.label}")
        click.echo()
        choice = click.prompt(
            "Choice",
            type=click.IntRange(1, len(options)),
            default=1,
        )
        return options[choice - 1].value

    async def ask_confirm(self, message: str, default: bool = True) -> bool:
        return await run_blocking_io(click.confirm, message, default=default)

    async def ask_free_text(
        self, message: str, validator: Validator | None = None,
    ) -> str:
        return await run_blocking_io(self._free_text, message, validator)

    @staticmethod
    def _free_text(message: str, validator: Validator | None) -> str:
        while True:
            value = str(click.prompt(message)).strip()
            problem = validator(value) if validator is not None else None
            if problem is None:
                return value
            click.echo(problem, err=True)

    async def ask_acknowledge(self, message: str) -> None:
        click.echo(f"{message} ", nl=False)
        stream = self._stream
        loop = asyncio.get_running_loop()
        answered: asyncio.Future[str] = loop.create_future()

        def _on_readable() -> None:
            line = stream.readline()
            if not answered.done():
                answered.set_result(line)

        try:
            fd = stream.fileno()
            loop.add_reader(fd, _on_readable)
        except (NotImplementedError, OSError, ValueError) as e:
            # No selectable stdin (Windows proactor loop, captured streams):
            # read on a worker thread, which cannot be retracted.
            logger.debug("Falling back to blocking acknowledge prompt: %s", e)
            await run_blocking_io(stream.readline)
            return

        try:
            await answered
        except asyncio.CancelledError:
            click.echo()
            raise
        finally:
            loop.remove_reader(fd)

    def show(self, message: str) -> None:
        click.echo(message)
