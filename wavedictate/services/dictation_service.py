"""Top-level service wiring keyboard, session machine and side effects."""

import asyncio
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from pubsub import pub

from ..audio import to_mono_pcm
from ..audio.capture import PyAudioRecorder
from ..audio.cues import CuePlayer
from ..config import WaveDictateConfig, load_settings
from ..enhancement import TranscriptEnhancer
from ..keyboard import ShortcutMatcher, ShortcutRecorder
from ..keyboard.listener import KeyEventSource
from ..models.events import KEYBOARD_TOPIC, SESSION_STATE_TOPIC, KeyEvent, RecordingStateEvent
from ..models.session import SessionStatus, TriggerType
from ..models.settings import AppSettings
from ..output import ClipboardWriter, CursorPaster
from ..transcription import DictationPipeline
from ..transcription.whisper_backend import FasterWhisperBackend
from ..ui import RichIndicatorSurface
from .dispatcher import SideEffectDispatcher
from .indicator import IndicatorPresenter
from .library_service import DEFAULT_SPEECH_MODEL, LibraryService, llm_engine_from_config
from .session_machine import SessionStateMachine
from .state_publisher import StatePublisher

logger = logging.getLogger(__name__)


WHISPER_SAMPLE_RATE = 16000


class DictationService:
    """Builds every component from the configuration and runs the app."""

    def __init__(self, config: WaveDictateConfig):
        """Initialize the dictation service.

        Args:
            config: Application configuration
        """
        self.config = config
        settings = self.settings()
        data_dir = Path(config.get_data_directory())

        logger.info("Initializing DictationService...")

        self.library = LibraryService(config)
        self.history = self.library.history
        self.model_store = self.library.model_store

        self.backend = FasterWhisperBackend(
            self.model_store,
            config.get('transcription.model', DEFAULT_SPEECH_MODEL),
            language=settings.language,
            device=config.get('transcription.device', 'auto'),
            compute_type=config.get('transcription.compute_type', 'int8'),
            beam_size=config.get('transcription.beam_size', 5),
        )

        self.enhancer = TranscriptEnhancer(self.settings, llm_engine_from_config(config))

        self.pipeline = DictationPipeline(
            to_mono_pcm,
            self.backend,
            self.enhancer,
            work_dir=str(data_dir / "tmp"),
            language=settings.language,
            sample_rate=WHISPER_SAMPLE_RATE,
        )

        self.surface = RichIndicatorSurface() if config.get('ui.indicator', True) else None
        self.presenter = IndicatorPresenter(self.surface, cues=CuePlayer(lambda: self.settings().play_audio))
        self.publisher = StatePublisher()

        self.dispatcher = SideEffectDispatcher(
            self.settings,
            clipboard=ClipboardWriter(),
            paster=CursorPaster(restore_clipboard=config.get('output.restore_clipboard', True)),
            history=self.history,
            indicator=self.presenter,
        )

        self.recorder = PyAudioRecorder(
            sample_rate=config.get('audio.sample_rate', 16000),
            chunk_size=config.get('audio.chunk_size', 1024),
            channels=config.get('audio.channels', 1),
        )

        self.machine = SessionStateMachine(
            self.recorder,
            self.pipeline,
            self.dispatcher,
            self.publisher,
            watchdog_seconds=config.get('session.watchdog_seconds', 300),
        )
        self.matcher = ShortcutMatcher(settings.shortcuts)

        self.key_source: Optional[KeyEventSource] = None
        self.shortcut_recorder: Optional[ShortcutRecorder] = None
        self._recorded: Optional[asyncio.Future] = None
        self._stop_event: Optional[asyncio.Event] = None
        self._download_task: Optional[asyncio.Task] = None

        logger.info("DictationService ready")

    def settings(self) -> AppSettings:
        """Current user settings, re-read on every call."""
        return load_settings(self.config)

    # Keyboard handling

    def on_key_event(self, event: KeyEvent) -> None:
        if self.shortcut_recorder is not None:
            self.shortcut_recorder.feed(event)
            return

        trigger = self.matcher.match(event, self.machine.active_session)
        if self.machine.handle_trigger(trigger):
            self.matcher.accept(trigger, event)

    def on_state_event(self, event: RecordingStateEvent) -> None:
        if event.status not in (SessionStatus.FAILED, SessionStatus.CANCELLED):
            return
        session = self.machine.last_session
        reason = session.error if session is not None and session.error else event.status.value
        self._notify(f"Dictation {event.status.value}: {reason}", style="red")

    async def record_shortcut(self, shortcut_type: TriggerType):
        """Capture the next shortcut the user presses and store it."""
        loop = asyncio.get_running_loop()
        self._recorded = loop.create_future()
        self.shortcut_recorder = ShortcutRecorder(shortcut_type, self._save_shortcut)
        logger.info(f"Waiting for a new {shortcut_type.value} shortcut")
        try:
            return await self._recorded
        finally:
            self.shortcut_recorder = None
            self._recorded = None

    def _save_shortcut(self, shortcut) -> None:
        key = f"settings.shortcuts.{self.shortcut_recorder.shortcut_type.value}"
        self.config.set(key, shortcut.model_dump(mode="json"))
        self.config.save()
        self.matcher.update_shortcuts(self.settings().shortcuts)
        if self._recorded is not None and not self._recorded.done():
            self._recorded.set_result(shortcut)

    # Lifecycle

    async def startup(self) -> None:
        pub.subscribe(self.on_key_event, KEYBOARD_TOPIC)
        pub.subscribe(self.on_state_event, SESSION_STATE_TOPIC)
        self.presenter.subscribe()

        settings = self.settings()
        if settings.auto_cleanup:
            removed = await asyncio.to_thread(self.history.cleanup_older_than, settings.data_retention_days)
            logger.info(f"Startup cleanup removed {removed} old recordings")

        if not await self.backend.initialize():
            if self.library.needs_download(self.backend.model_id):
                self._download_task = asyncio.ensure_future(self._download_speech_model(self.backend.model_id))
            else:
                logger.warning("Speech model is not ready; transcriptions will fail until it is downloaded")

        self.key_source = KeyEventSource(asyncio.get_running_loop())
        self.key_source.start()

    async def _download_speech_model(self, model_id: str) -> None:
        """Fetch the configured model in the background, then load it."""
        logger.info(f"Speech model {model_id} is not downloaded, fetching it")
        self._notify(f"Downloading speech model {model_id}...", style="blue")

        result = await self.library.download_model(model_id)
        if not result["success"]:
            self._notify(f"Speech model download failed: {result['error']}", style="red")
            return

        if await self.backend.initialize():
            self._notify(f"Speech model {model_id} is ready", style="green")
        else:
            self._notify(f"Speech model {model_id} could not be loaded", style="red")

    def _notify(self, message: str, style: str) -> None:
        if self.surface is not None and self.settings().notifications:
            self.surface.notify(message, style=style)

    async def run(self) -> None:
        """Run until ``request_stop`` is called or the task is cancelled."""
        self._stop_event = asyncio.Event()
        await self.startup()
        try:
            await self._stop_event.wait()
        finally:
            await self.shutdown()

    def request_stop(self) -> None:
        if self._stop_event is not None:
            self._stop_event.set()

    async def shutdown(self) -> None:
        logger.info("Shutting down DictationService...")
        logger.info(f"Status at shutdown: {self.get_status()}")
        if self.key_source is not None:
            self.key_source.stop()
            self.key_source = None

        if self._download_task is not None and not self._download_task.done():
            # Partial files are removed when the download is cancelled
            self.library.cancel_download(self.backend.model_id)
            self._download_task.cancel()
            await asyncio.wait({self._download_task})
        self._download_task = None

        if self.machine.current is not None:
            self.machine.force_reset("Shutting down")
        await self.machine.wait_idle()

        pub.unsubscribe(self.on_key_event, KEYBOARD_TOPIC)
        pub.unsubscribe(self.on_state_event, SESSION_STATE_TOPIC)
        self.presenter.unsubscribe()

        await self.enhancer.close()
        await self.backend.cleanup()
        logger.info("DictationService stopped")

    def get_status(self) -> Dict[str, Any]:
        status = self.machine.get_status()
        status["speech_model"] = self.backend.model_id
        status["speech_model_ready"] = self.backend.slot.is_ready
        status["speech_model_downloading"] = self.model_store.is_downloading(self.backend.model_id)
        return status
