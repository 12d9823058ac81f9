"""Deliver the final text of a session: clipboard, paste and history."""

import time
import asyncio
import logging
from typing import Any, Callable, Dict, Optional

from pubsub import pub

from ..models.events import RECORDING_COMPLETE_TOPIC
from ..models.recording import RecordingRecord
from ..models.session import Session
from ..models.settings import AppSettings

logger = logging.getLogger(__name__)


class SideEffectDispatcher:
    """Runs every side effect for a finished session, each in isolation.

    A failing clipboard write never stops the paste or the history entry,
    and the indicator is always hidden at the end.
    """

    def __init__(self,
                 settings_provider: Callable[[], AppSettings],
                 clipboard=None,
                 paster=None,
                 history=None,
                 indicator=None,
                 clock: Callable[[], float] = time.time):
        """Initialize the dispatcher.

        Args:
            settings_provider: Returns the current settings at dispatch time
            clipboard: Object with ``write_text(text)``
            paster: Object with ``paste_at_cursor(text) -> bool``
            history: RecordingHistory (or anything with ``append``/``save_audio``)
            indicator: Object with an idempotent ``hide()``
            clock: Time source for the recording duration
        """
        self.settings_provider = settings_provider
        self.clipboard = clipboard
        self.paster = paster
        self.history = history
        self.indicator = indicator
        self.clock = clock

    def _settings(self) -> AppSettings:
        try:
            return self.settings_provider()
        except Exception as e:
            logger.error(f"Could not read settings, using defaults for dispatch: {e}")
            return AppSettings()

    async def dispatch(self, text: Optional[str], meta: Session) -> Dict[str, Any]:
        """Perform all side effects for ``meta``'s final ``text``.

        Returns:
            Dictionary with per-effect flags (``clipboard``, ``paste``,
            ``history``) and the stored ``record``, if any
        """
        results: Dict[str, Any] = {"clipboard": False, "paste": False, "history": False, "record": None}
        try:
            settings = self._settings()

            # Paste first: it restores the previous clipboard when done
            if text and settings.auto_paste_to_cursor and self.paster is not None:
                try:
                    results["paste"] = bool(await asyncio.to_thread(self.paster.paste_at_cursor, text))
                    if not results["paste"]:
                        logger.warning("Paste at cursor reported failure")
                except Exception as e:
                    logger.error(f"Paste at cursor failed: {e}")

            if text and settings.copy_to_clipboard and self.clipboard is not None:
                try:
                    await asyncio.to_thread(self.clipboard.write_text, text)
                    results["clipboard"] = True
                    logger.info("Copied transcript to clipboard")
                except Exception as e:
                    logger.error(f"Clipboard write failed: {e}")

            if text is not None and self.history is not None:
                try:
                    record = await asyncio.to_thread(self._persist, text, meta)
                    results["history"] = True
                    results["record"] = record
                except Exception as e:
                    logger.error(f"Saving recording {meta.session_id} to history failed: {e}")
                else:
                    self._notify_complete(record)
        finally:
            if self.indicator is not None:
                try:
                    self.indicator.hide()
                except Exception as e:
                    logger.warning(f"Failed to hide indicator: {e}")

        return results

    def _persist(self, text: str, meta: Session) -> RecordingRecord:
        now = self.clock()
        started_at = meta.started_at if meta.started_at is not None else now

        audio_file_path = None
        if meta.audio:
            try:
                audio_file_path = self.history.save_audio(meta.session_id, meta.audio)
            except Exception as e:
                # Record is still stored, without audio
                logger.error(f"Saving audio for {meta.session_id} failed: {e}")

        record = RecordingRecord(
            id=meta.session_id,
            text=text,
            original_text=meta.original_text or "",
            enhanced_text=text,
            timestamp=started_at,
            duration_seconds=round(max(now - started_at, 0.0), 3),
            audio_file_path=audio_file_path,
            status=meta.status.value,
        )
        self.history.append(record)
        return record

    def _notify_complete(self, record: RecordingRecord) -> None:
        try:
            pub.sendMessage(RECORDING_COMPLETE_TOPIC, record=record)
        except Exception as e:
            logger.error(f"A recording.complete listener failed: {e}")
