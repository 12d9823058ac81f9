"""Global shortcut handling."""

from .matcher import ShortcutMatcher, Trigger, match_shortcut, TOGGLE_DEBOUNCE_MS
from .recorder import ShortcutRecorder
from .keys import shortcut_label

__all__ = [
    "ShortcutMatcher",
    "Trigger",
    "match_shortcut",
    "TOGGLE_DEBOUNCE_MS",
    "ShortcutRecorder",
    "shortcut_label",
]
