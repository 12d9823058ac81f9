"""Recording session model."""

import random
import string
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class SessionStatus(Enum):
    """Lifecycle status of a recording session."""
    IDLE = "idle"
    RECORDING = "recording"
    TRANSCRIBING = "transcribing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


ACTIVE_STATUSES = frozenset({SessionStatus.RECORDING, SessionStatus.TRANSCRIBING})
TERMINAL_STATUSES = frozenset({SessionStatus.COMPLETED, SessionStatus.FAILED, SessionStatus.CANCELLED})


class TriggerType(Enum):
    """Which shortcut started a session."""
    HOLD = "hold"
    TOGGLE = "toggle"


def new_session_id() -> str:
    """Timestamp-based session id with a random suffix."""
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    random_suffix = ''.join(random.choices(string.ascii_lowercase + string.digits, k=4))
    return f"{timestamp}_{random_suffix}"


@dataclass
class Session:
    """One start-to-terminal recording/transcription attempt."""
    session_id: str
    trigger: TriggerType
    status: SessionStatus = SessionStatus.IDLE
    started_at: Optional[float] = None   # Unix timestamp of entering RECORDING
    ended_at: Optional[float] = None
    audio: Optional[bytes] = None
    original_text: Optional[str] = None
    enhanced_text: Optional[str] = None
    error: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def best_text(self) -> Optional[str]:
        """Enhanced text when present, else the raw transcript."""
        if self.enhanced_text is not None:
            return self.enhanced_text
        return self.original_text
