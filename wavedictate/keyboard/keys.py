"""Key codes and modifier masks used by shortcut definitions.

Values follow the macOS virtual key codes and CGEvent flag masks so that
shortcuts recorded on a Mac match byte for byte. Other platforms build the
same bitmask from the modifiers pynput reports.
"""

from typing import Dict

# Device independent modifier masks
SHIFT_MASK = 1 << 17
CONTROL_MASK = 1 << 18
ALTERNATE_MASK = 1 << 19
COMMAND_MASK = 1 << 20
SECONDARY_FN_MASK = 1 << 23

# Always set on events coming from the event tap
NON_COALESCED_MASK = 0x100

# Device dependent (left/right) modifier bits
LEFT_CONTROL_BIT = 0x1
LEFT_SHIFT_BIT = 0x2
RIGHT_SHIFT_BIT = 0x4
LEFT_COMMAND_BIT = 0x8
RIGHT_COMMAND_BIT = 0x10
LEFT_ALTERNATE_BIT = 0x20
RIGHT_ALTERNATE_BIT = 0x40
RIGHT_CONTROL_BIT = 0x2000

# Modifier keys allowed as hold shortcuts: Globe, LCtrl, LAlt, LCmd, RCmd, RAlt
HOLD_MODIFIER_KEY_CODES = frozenset({63, 59, 58, 55, 54, 61})

KEY_LABELS: Dict[int, str] = {
    0: "a", 11: "b", 8: "c", 2: "d", 14: "e", 3: "f", 5: "g", 4: "h",
    34: "i", 38: "j", 40: "k", 37: "l", 46: "m", 45: "n", 31: "o", 35: "p",
    12: "q", 15: "r", 1: "s", 17: "t", 32: "u", 9: "v", 13: "w", 7: "x",
    16: "y", 6: "z",
    18: "1", 19: "2", 20: "3", 21: "4", 23: "5", 22: "6", 26: "7", 28: "8",
    25: "9", 29: "0",
    50: "`", 24: "=", 27: "-", 33: "[", 30: "]", 42: "\\", 41: ";", 39: "'",
    43: ",", 47: ".", 44: "/",
    55: "LCommand", 54: "RCommand", 63: "Globe", 59: "LCtrl", 62: "RCtrl",
    56: "LShift", 60: "RShift", 58: "LAlt", 61: "RAlt", 57: "CapsLock",
    49: "Space", 36: "Enter", 51: "Backspace", 48: "Tab", 53: "Escape",
    126: "ArrowUp", 125: "ArrowDown", 123: "ArrowLeft", 124: "ArrowRight",
}

FLAG_LABELS: Dict[str, int] = {
    "LCtrl": CONTROL_MASK | NON_COALESCED_MASK | LEFT_CONTROL_BIT,
    "LShift": SHIFT_MASK | NON_COALESCED_MASK | LEFT_SHIFT_BIT,
    "LAlt": ALTERNATE_MASK | NON_COALESCED_MASK | LEFT_ALTERNATE_BIT,
    "LCommand": COMMAND_MASK | NON_COALESCED_MASK | LEFT_COMMAND_BIT,
    "RCommand": COMMAND_MASK | NON_COALESCED_MASK | RIGHT_COMMAND_BIT,
    "RAlt": ALTERNATE_MASK | NON_COALESCED_MASK | RIGHT_ALTERNATE_BIT,
}


def shortcut_label(key_code: int, modifier_flags: int) -> str:
    """Human readable label such as ``LCtrl + Space``."""
    key_label = KEY_LABELS.get(key_code, str(key_code))
    flags = [name for name, mask in FLAG_LABELS.items() if modifier_flags & mask == mask]
    if flags:
        return " + ".join(flags + [key_label])
    return key_label
