"""Data models for the WaveDictate application."""

from .session import Session, SessionStatus, TriggerType
from .events import KeyEvent, RecordingStateEvent
from .recording import RecordingRecord
from .results import EnhancementResult, PipelineResult
from .settings import (
    AppSettings,
    HoldShortcut,
    KeyPattern,
    ShortcutConfig,
    ToggleShortcut,
)

__all__ = [
    "Session",
    "SessionStatus",
    "TriggerType",
    "KeyEvent",
    "RecordingStateEvent",
    "RecordingRecord",
    "EnhancementResult",
    "PipelineResult",
    # Settings
    "AppSettings",
    "HoldShortcut",
    "KeyPattern",
    "ShortcutConfig",
    "ToggleShortcut",
]
