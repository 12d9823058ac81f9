"""Map raw key events to logical recording triggers.

Precedence when one event matches several patterns:

* While a hold-started session is recording, only the hold end pattern can
  end it, so HOLD_END wins over a coincident toggle match.
* While a toggle-started session is recording, only the toggle pattern can
  end it.
* While idle, the toggle pattern is evaluated before the hold start
  pattern. A toggle match that falls inside the debounce window is
  dropped outright; it does not fall through to hold start.
* While transcribing, nothing matches.
"""

import logging
from enum import Enum
from typing import Optional

from ..models.events import KeyEvent
from ..models.session import Session, SessionStatus, TriggerType
from ..models.settings import ShortcutConfig

logger = logging.getLogger(__name__)

# Duplicate toggle events from key repeat arrive well inside this window
TOGGLE_DEBOUNCE_MS = 300


class Trigger(Enum):
    """Logical trigger produced by a key event."""
    NONE = "none"
    HOLD_START = "hold_start"
    HOLD_END = "hold_end"
    TOGGLE_START = "toggle_start"
    TOGGLE_STOP = "toggle_stop"

    @property
    def is_toggle(self) -> bool:
        return self in (Trigger.TOGGLE_START, Trigger.TOGGLE_STOP)


def _is_debounced(event: KeyEvent, last_toggle_timestamp: Optional[float]) -> bool:
    if last_toggle_timestamp is None:
        return False
    return event.timestamp - last_toggle_timestamp < TOGGLE_DEBOUNCE_MS


def match_shortcut(event: Optional[KeyEvent],
                   shortcuts: ShortcutConfig,
                   last_toggle_timestamp: Optional[float],
                   active_session: Optional[Session]) -> Trigger:
    """Decide which trigger, if any, ``event`` fires.

    Args:
        event: Raw key event (``None`` and malformed events are inert)
        shortcuts: Active hold and toggle definitions
        last_toggle_timestamp: Timestamp (ms) of the last accepted toggle trigger
        active_session: Session currently recording or transcribing, if any

    Returns:
        The matching Trigger, Trigger.NONE otherwise
    """
    try:
        is_toggle = shortcuts.toggle.pattern.matches(event)
        is_hold_start = shortcuts.hold.start.matches(event)
        is_hold_end = shortcuts.hold.end.matches(event)
        debounced = is_toggle and _is_debounced(event, last_toggle_timestamp)
    except (AttributeError, TypeError) as e:
        logger.debug(f"Ignoring malformed key event {event!r}: {e}")
        return Trigger.NONE

    if active_session is None or not active_session.is_active:
        if is_toggle:
            if debounced:
                logger.debug("Ignoring duplicate toggle event inside debounce window")
                return Trigger.NONE
            return Trigger.TOGGLE_START
        if is_hold_start:
            return Trigger.HOLD_START
        return Trigger.NONE

    if active_session.status != SessionStatus.RECORDING:
        return Trigger.NONE

    if active_session.trigger == TriggerType.HOLD:
        return Trigger.HOLD_END if is_hold_end else Trigger.NONE

    if is_toggle:
        if debounced:
            logger.debug("Ignoring duplicate toggle event inside debounce window")
            return Trigger.NONE
        return Trigger.TOGGLE_STOP
    return Trigger.NONE


class ShortcutMatcher:
    """Stateful wrapper that remembers the last accepted toggle trigger."""

    def __init__(self, shortcuts: ShortcutConfig):
        self.shortcuts = shortcuts
        self.last_toggle_timestamp: Optional[float] = None

    def match(self, event: Optional[KeyEvent], active_session: Optional[Session]) -> Trigger:
        """Match ``event`` without touching the debounce window."""
        trigger = match_shortcut(event, self.shortcuts, self.last_toggle_timestamp, active_session)
        if trigger != Trigger.NONE:
            logger.info(f"Key event matched {trigger.value}")
        return trigger

    def accept(self, trigger: Trigger, event: KeyEvent) -> None:
        """Record a trigger the session machine acted on.

        Only accepted toggle triggers open a new debounce window; a start the
        machine rejected leaves the window where it was.
        """
        if trigger.is_toggle:
            self.last_toggle_timestamp = event.timestamp

    def update_shortcuts(self, shortcuts: ShortcutConfig) -> None:
        self.shortcuts = shortcuts
        self.last_toggle_timestamp = None
