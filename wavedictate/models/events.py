"""Event models published on the pubsub bus."""

from dataclasses import dataclass
from typing import Optional

from .session import SessionStatus


# pubsub topic names
KEYBOARD_TOPIC = "keyboard.event"
SESSION_STATE_TOPIC = "session.state"
RECORDING_COMPLETE_TOPIC = "recording.complete"


@dataclass(frozen=True)
class KeyEvent:
    """Raw key event from the global key listener."""
    event_kind: str        # "keyDown", "keyUp" or "flagsChanged"
    key_code: int
    modifier_flags: int
    timestamp: float       # Milliseconds since the epoch


@dataclass(frozen=True)
class RecordingStateEvent:
    """Session progress broadcast to the indicator and any UI listener."""
    recording: bool
    transcribing: bool
    session_id: Optional[str] = None
    status: Optional[SessionStatus] = None
