"""Recording history stored as a JSON log under the data directory."""

import json
import math
import logging
import threading
from pathlib import Path
from datetime import datetime, timedelta
from typing import Dict, Any, List, Optional

from ..errors import RecordingNotFoundError
from ..models.recording import RecordingRecord

logger = logging.getLogger(__name__)


DEFAULT_PAGE_SIZE = 15


class RecordingHistory:
    """Append/list/delete store for finished dictation sessions.

    Records are kept newest-first in ``recordings.json``; audio files live
    next to it in ``audio/``.
    """

    def __init__(self, data_dir: str = "./data"):
        """Initialize the history store.

        Args:
            data_dir: Base directory for the history file and audio
        """
        self.data_dir = Path(data_dir)
        self.audio_dir = self.data_dir / "audio"
        self.history_file = self.data_dir / "recordings.json"
        self._lock = threading.Lock()

        self._ensure_directories()
        logger.info(f"RecordingHistory initialized with data_dir: {self.data_dir}")

    def _ensure_directories(self) -> None:
        for directory in [self.data_dir, self.audio_dir]:
            directory.mkdir(parents=True, exist_ok=True)

    def _load(self) -> List[Dict[str, Any]]:
        if not self.history_file.exists():
            return []
        try:
            with open(self.history_file, "r") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Error reading history file {self.history_file}: {e}")
            return []
        if not isinstance(data, list):
            logger.error(f"History file {self.history_file} does not hold a list, ignoring it")
            return []
        return data

    def _save(self, entries: List[Dict[str, Any]]) -> None:
        tmp_file = self.history_file.with_suffix(".json.tmp")
        with open(tmp_file, "w") as f:
            json.dump(entries, f, indent=2)
        tmp_file.replace(self.history_file)

    def append(self, record: RecordingRecord) -> None:
        """Add a record at the head of the history."""
        with self._lock:
            entries = self._load()
            entries.insert(0, record.to_dict())
            self._save(entries)
        logger.info(f"Recording saved to history: {record.id} ({len(record.text)} chars)")

    def list(self, page: int = 0, limit: int = DEFAULT_PAGE_SIZE) -> Dict[str, Any]:
        """Return one page of records, newest first.

        Returns:
            Dictionary with ``recordings``, ``total_count``, ``has_more``,
            ``current_page`` and ``total_pages``
        """
        page = max(page, 0)
        limit = max(limit, 1)
        with self._lock:
            entries = self._load()

        start = page * limit
        window = entries[start:start + limit]
        recordings = [RecordingRecord.from_dict(entry) for entry in window]
        total_count = len(entries)

        return {
            "recordings": recordings,
            "total_count": total_count,
            "has_more": start + limit < total_count,
            "current_page": page,
            "total_pages": math.ceil(total_count / limit),
        }

    def get(self, recording_id: str) -> Optional[RecordingRecord]:
        with self._lock:
            entries = self._load()
        for entry in entries:
            if entry.get("id") == recording_id:
                return RecordingRecord.from_dict(entry)
        return None

    def delete(self, recording_id: str) -> None:
        """Delete a record and its audio file.

        Raises:
            RecordingNotFoundError: if no record has this id
        """
        with self._lock:
            entries = self._load()
            remaining = [entry for entry in entries if entry.get("id") != recording_id]
            if len(remaining) == len(entries):
                raise RecordingNotFoundError(f"Recording not found: {recording_id}")
            removed = next(entry for entry in entries if entry.get("id") == recording_id)
            self._save(remaining)

        self._remove_audio(removed.get("audio_file_path"))
        logger.info(f"Deleted recording: {recording_id}")

    def save_audio(self, recording_id: str, audio_data: bytes) -> str:
        """Store a recording's WAV bytes and return the file path."""
        audio_file_path = self.audio_dir / f"{recording_id}.wav"
        with open(audio_file_path, "wb") as f:
            f.write(audio_data)
        logger.info(f"Audio file saved: {audio_file_path} ({len(audio_data)} bytes)")
        return str(audio_file_path)

    def cleanup_older_than(self, max_age_days: int) -> int:
        """Drop records (and their audio) older than ``max_age_days``.

        Returns:
            Number of records removed
        """
        cutoff = datetime.now() - timedelta(days=max_age_days)
        with self._lock:
            entries = self._load()
            kept, expired = [], []
            for entry in entries:
                if self._entry_time(entry) < cutoff:
                    expired.append(entry)
                else:
                    kept.append(entry)
            if expired:
                self._save(kept)

        for entry in expired:
            self._remove_audio(entry.get("audio_file_path"))

        logger.info(f"Cleaned up {len(expired)} recordings older than {max_age_days} days")
        return len(expired)

    @staticmethod
    def _entry_time(entry: Dict[str, Any]) -> datetime:
        try:
            return datetime.fromisoformat(entry.get("created_at", ""))
        except (TypeError, ValueError):
            return datetime.fromtimestamp(entry.get("timestamp", 0))

    def _remove_audio(self, audio_file_path: Optional[str]) -> None:
        if not audio_file_path:
            return
        try:
            Path(audio_file_path).unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Failed to delete audio file {audio_file_path}: {e}")

    def get_storage_stats(self) -> Dict[str, Any]:
        """Get storage usage statistics."""
        audio_files = [p for p in self.audio_dir.glob("*.wav") if p.is_file()]
        total_size = sum(p.stat().st_size for p in audio_files)
        with self._lock:
            record_count = len(self._load())
        return {
            "record_count": record_count,
            "audio_files": len(audio_files),
            "total_size_bytes": total_size,
            "total_size_mb": round(total_size / (1024 * 1024), 2),
            "data_directory": str(self.data_dir),
        }
