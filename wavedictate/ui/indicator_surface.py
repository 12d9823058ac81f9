"""Terminal recording indicator drawn with rich."""

import logging
from typing import Optional

from rich.console import Console
from rich.status import Status

logger = logging.getLogger(__name__)


MODE_STYLES = {
    "recording": ("🔴 Recording...", "bold red", "point"),
    "processing": ("⏳ Transcribing...", "bold yellow", "dots"),
}


class RichIndicatorSurface:
    """Spinner line shown while a session is active.

    The console and status line are created on the first ``show``.
    """

    def __init__(self, console: Optional[Console] = None):
        self._console = console
        self._status: Optional[Status] = None
        self.mode: Optional[str] = None

    @property
    def console(self) -> Console:
        if self._console is None:
            self._console = Console()
        return self._console

    def show(self, mode: str) -> None:
        text, style, spinner = MODE_STYLES.get(mode, (mode, "bold", "dots"))
        message = f"[{style}]{text}[/{style}]"
        if self._status is None:
            self._status = self.console.status(message, spinner=spinner)
            self._status.start()
        else:
            self._status.update(message, spinner=spinner)
        self.mode = mode
        logger.debug(f"Indicator shown: {mode}")

    def hide(self) -> None:
        if self._status is None:
            return
        self._status.stop()
        self._status = None
        self.mode = None
        logger.debug("Indicator hidden")

    def notify(self, message: str, style: str = "blue") -> None:
        """Print a one-line notice below the indicator."""
        self.console.print(message, style=style)
