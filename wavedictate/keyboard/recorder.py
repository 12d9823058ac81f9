"""Capture new shortcut definitions from live key events."""

import logging
from typing import Callable, List, Optional, Union

from pydantic import ValidationError

from ..models.events import KeyEvent
from ..models.session import TriggerType
from ..models.settings import HoldShortcut, KeyPattern, ToggleShortcut
from .keys import HOLD_MODIFIER_KEY_CODES, shortcut_label

logger = logging.getLogger(__name__)


RecordedShortcut = Union[HoldShortcut, ToggleShortcut]


def _pattern(event: KeyEvent) -> KeyPattern:
    return KeyPattern(event_kind=event.event_kind, key_code=event.key_code,
                      modifier_flags=event.modifier_flags)


class ShortcutRecorder:
    """Records the next shortcut the user presses.

    A hold shortcut is the press and release of one modifier key (two
    ``flagsChanged`` events); anything else restarts the capture. A toggle
    shortcut is the first ``keyDown`` event seen.
    """

    def __init__(self, shortcut_type: TriggerType,
                 on_recorded: Callable[[RecordedShortcut], None]):
        self.shortcut_type = shortcut_type
        self.on_recorded = on_recorded
        self.recorded: List[KeyEvent] = []
        self.finished = False

    def feed(self, event: KeyEvent) -> Optional[RecordedShortcut]:
        """Consume one key event; returns the shortcut once it is complete."""
        if self.finished:
            return None

        if self.shortcut_type == TriggerType.HOLD:
            shortcut = self._feed_hold(event)
        else:
            shortcut = self._feed_toggle(event)

        if shortcut is not None:
            self.finished = True
            logger.info(f"Recorded {self.shortcut_type.value} shortcut: "
                        f"{shortcut_label(shortcut.start.key_code, shortcut.start.modifier_flags)}")
            self.on_recorded(shortcut)
        return shortcut

    def _feed_hold(self, event: KeyEvent) -> Optional[HoldShortcut]:
        if event.event_kind != "flagsChanged" or event.key_code not in HOLD_MODIFIER_KEY_CODES:
            if self.recorded:
                logger.debug(f"Key {event.key_code} is not a hold modifier, restarting capture")
            self.recorded.clear()
            return None

        self.recorded.append(event)
        if len(self.recorded) < 2:
            return None

        start, end = self.recorded
        self.recorded.clear()
        try:
            return HoldShortcut(start=_pattern(start), end=_pattern(end))
        except ValidationError as e:
            logger.warning(f"Rejected hold shortcut: {e}")
            return None

    def _feed_toggle(self, event: KeyEvent) -> Optional[ToggleShortcut]:
        if event.event_kind != "keyDown":
            return None
        return ToggleShortcut(start=_pattern(event))
