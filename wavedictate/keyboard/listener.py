"""Global key event source built on pynput."""

import sys
import time
import asyncio
import logging
from typing import Callable, Dict, Optional, Set, Tuple

from pubsub import pub
from pynput import keyboard

from ..models.events import KeyEvent, KEYBOARD_TOPIC
from . import keys

logger = logging.getLogger(__name__)


# pynput modifier -> (key code, device independent mask, left/right bit)
_MODIFIERS: Dict[keyboard.Key, Tuple[int, int, int]] = {
    keyboard.Key.ctrl: (59, keys.CONTROL_MASK, keys.LEFT_CONTROL_BIT),
    keyboard.Key.ctrl_l: (59, keys.CONTROL_MASK, keys.LEFT_CONTROL_BIT),
    keyboard.Key.ctrl_r: (62, keys.CONTROL_MASK, keys.RIGHT_CONTROL_BIT),
    keyboard.Key.shift: (56, keys.SHIFT_MASK, keys.LEFT_SHIFT_BIT),
    keyboard.Key.shift_l: (56, keys.SHIFT_MASK, keys.LEFT_SHIFT_BIT),
    keyboard.Key.shift_r: (60, keys.SHIFT_MASK, keys.RIGHT_SHIFT_BIT),
    keyboard.Key.alt: (58, keys.ALTERNATE_MASK, keys.LEFT_ALTERNATE_BIT),
    keyboard.Key.alt_l: (58, keys.ALTERNATE_MASK, keys.LEFT_ALTERNATE_BIT),
    keyboard.Key.alt_r: (61, keys.ALTERNATE_MASK, keys.RIGHT_ALTERNATE_BIT),
    keyboard.Key.cmd: (55, keys.COMMAND_MASK, keys.LEFT_COMMAND_BIT),
    keyboard.Key.cmd_l: (55, keys.COMMAND_MASK, keys.LEFT_COMMAND_BIT),
    keyboard.Key.cmd_r: (54, keys.COMMAND_MASK, keys.RIGHT_COMMAND_BIT),
}

_NAMED_KEYS: Dict[keyboard.Key, int] = {
    keyboard.Key.space: 49,
    keyboard.Key.enter: 36,
    keyboard.Key.tab: 48,
    keyboard.Key.esc: 53,
    keyboard.Key.backspace: 51,
    keyboard.Key.up: 126,
    keyboard.Key.down: 125,
    keyboard.Key.left: 123,
    keyboard.Key.right: 124,
    keyboard.Key.caps_lock: 57,
}

_CHAR_CODES: Dict[str, int] = {label: code for code, label in keys.KEY_LABELS.items() if len(label) == 1}

# Quartz CGEventType values
_DARWIN_EVENT_KINDS = {10: "keyDown", 11: "keyUp", 12: "flagsChanged"}


def publish_key_event(event: KeyEvent) -> None:
    """Default sink: publish the event on the keyboard topic."""
    pub.sendMessage(KEYBOARD_TOPIC, event=event)


class KeyEventSource:
    """Pushes raw key events from the pynput listener thread onto the event loop.

    On macOS the event tap hands over the native key code and flags
    unchanged. Elsewhere the same values are rebuilt from the key and the
    modifiers currently held.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop,
                 callback: Callable[[KeyEvent], None] = publish_key_event):
        self.loop = loop
        self.callback = callback
        self.listener: Optional[keyboard.Listener] = None
        self._held: Set[keyboard.Key] = set()

    def start(self) -> None:
        """Start the listener thread."""
        if self.listener is not None:
            return

        if sys.platform == "darwin":
            self.listener = keyboard.Listener(darwin_intercept=self._darwin_intercept)
        else:
            self.listener = keyboard.Listener(on_press=self._on_press, on_release=self._on_release)
        self.listener.daemon = True
        self.listener.start()
        logger.info("Key event source started")

    def stop(self) -> None:
        """Stop the listener thread."""
        if self.listener is None:
            return
        self.listener.stop()
        self.listener = None
        self._held.clear()
        logger.info("Key event source stopped")

    def _emit(self, event_kind: str, key_code: int, modifier_flags: int) -> None:
        event = KeyEvent(event_kind=event_kind, key_code=key_code,
                         modifier_flags=modifier_flags, timestamp=time.time() * 1000)
        try:
            self.loop.call_soon_threadsafe(self.callback, event)
        except RuntimeError:
            # Loop already closed during shutdown
            logger.debug("Dropping key event, event loop is closed")

    def _current_flags(self) -> int:
        flags = keys.NON_COALESCED_MASK
        for key in self._held:
            _, mask, bit = _MODIFIERS[key]
            flags |= mask | bit
        return flags

    def key_code_for(self, key) -> Optional[int]:
        """Translate a pynput key into a key code, or None when unknown."""
        if key in _MODIFIERS:
            return _MODIFIERS[key][0]
        if key in _NAMED_KEYS:
            return _NAMED_KEYS[key]
        char = getattr(key, "char", None)
        if char and char.lower() in _CHAR_CODES:
            return _CHAR_CODES[char.lower()]
        return getattr(key, "vk", None)

    def _on_press(self, key) -> None:
        key_code = self.key_code_for(key)
        if key_code is None:
            return
        if key in _MODIFIERS:
            self._held.add(key)
            self._emit("flagsChanged", key_code, self._current_flags())
        else:
            self._emit("keyDown", key_code, self._current_flags())

    def _on_release(self, key) -> None:
        key_code = self.key_code_for(key)
        if key_code is None:
            return
        if key in _MODIFIERS:
            self._held.discard(key)
            self._emit("flagsChanged", key_code, self._current_flags())
        else:
            self._emit("keyUp", key_code, self._current_flags())

    def _darwin_intercept(self, event_type, event):
        import Quartz

        event_kind = _DARWIN_EVENT_KINDS.get(event_type)
        if event_kind is not None:
            key_code = Quartz.CGEventGetIntegerValueField(event, Quartz.kCGKeyboardEventKeycode)
            flags = Quartz.CGEventGetFlags(event)
            self._emit(event_kind, int(key_code), int(flags))
        return event
