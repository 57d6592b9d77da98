"""Opening Dashboard and AWS console pages for the user."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

import click

logger = logging.getLogger(__name__)


class BrowserLauncher(ABC):
    """Fire-and-forget URL opener."""

    @abstractmethod
    def open(self, url: str) -> None:
        ...


class ClickBrowserLauncher(BrowserLauncher):
    """Open URLs with the platform's default browser via ``click.launch``.

    The URL is always echoed so the user can open it by hand when no
    browser is available.
    """

    def open(self, url: str) -> None:
        click.echo(f"\nOpening {url}\n")
        try:
            code = click.launch(url)
        except OSError as e:
            logger.warning("Could not open browser for %s: %s", url, e)
            return
        if code:
            logger.warning("Browser launcher exited with %s for %s", code, url)
