"""Clipboard writes and paste-at-cursor keystrokes."""

import sys
import time
import logging
from typing import Optional

import pyperclip
from pynput import keyboard

logger = logging.getLogger(__name__)


CLIPBOARD_COPY_DELAY = 0.05
CLIPBOARD_RESTORE_DELAY = 0.3


class ClipboardWriter:
    """Puts text on the system clipboard."""

    def write_text(self, text: str) -> None:
        pyperclip.copy(text)
        logger.debug(f"Clipboard updated ({len(text)} characters)")


class CursorPaster:
    """Pastes text into the focused application.

    The text goes through the clipboard followed by a Cmd+V (macOS) or
    Ctrl+V keystroke. The previous clipboard contents are put back
    afterwards when ``restore_clipboard`` is set.
    """

    def __init__(self, restore_clipboard: bool = True,
                 controller: Optional[keyboard.Controller] = None):
        self.restore_clipboard = restore_clipboard
        self.controller = controller or keyboard.Controller()
        self.paste_modifier = keyboard.Key.cmd if sys.platform == "darwin" else keyboard.Key.ctrl

    def _read_clipboard(self) -> Optional[str]:
        try:
            return pyperclip.paste()
        except pyperclip.PyperclipException as e:
            logger.debug(f"Failed to read existing clipboard: {e}")
            return None

    def paste_at_cursor(self, text: str) -> bool:
        """Paste ``text`` at the cursor; returns False if the keystroke failed."""
        if not text:
            return False

        previous = self._read_clipboard() if self.restore_clipboard else None

        try:
            pyperclip.copy(text)
        except pyperclip.PyperclipException as e:
            logger.error(f"Could not put text on the clipboard for pasting: {e}")
            return False
        time.sleep(CLIPBOARD_COPY_DELAY)

        success = True
        try:
            with self.controller.pressed(self.paste_modifier):
                self.controller.press('v')
                self.controller.release('v')
            logger.info(f"Pasted {len(text)} characters at cursor")
        except Exception as e:
            logger.error(f"Paste keystroke failed: {e}")
            success = False

        if previous is not None:
            time.sleep(CLIPBOARD_RESTORE_DELAY)
            try:
                pyperclip.copy(previous)
            except pyperclip.PyperclipException as e:
                logger.warning(f"Failed to restore clipboard: {e}")

        return success
