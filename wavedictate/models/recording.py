"""Persisted recording history entries."""

from dataclasses import dataclass, asdict, field
from datetime import datetime
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class RecordingRecord:
    """A completed (or failed) dictation attempt as stored in the history."""
    id: str
    text: str                       # Display text, the enhanced transcript
    original_text: str
    enhanced_text: str
    timestamp: float                # Session start, Unix seconds
    duration_seconds: float
    audio_file_path: Optional[str] = None
    status: str = "completed"
    created_at: str = field(default_factory=lambda: datetime.now().isoformat())

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RecordingRecord":
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        return cls(**known)
