"""Integration tests: key events through to history, clipboard and indicator."""

import asyncio
import threading
from pathlib import Path
from unittest.mock import Mock

import pytest

from conftest import FakeBackend, FakeRecorder, FakeSurface, HOLD_PRESS, HOLD_RELEASE, TOGGLE_PRESS
from wavedictate.audio import to_mono_pcm
from wavedictate.keyboard import ShortcutMatcher
from wavedictate.models.events import KeyEvent
from wavedictate.models.session import SessionStatus
from wavedictate.models.settings import AppSettings
from wavedictate.services import IndicatorPresenter, SessionStateMachine, SideEffectDispatcher, StatePublisher
from wavedictate.storage import RecordingHistory
from wavedictate.transcription import DictationPipeline


class HangingBackend(FakeBackend):
    """Speech backend that never returns."""

    async def transcribe(self, audio_path, language=None):
        self.calls.append((audio_path, language))
        await asyncio.Event().wait()


class DictationHarness:
    """Wires the real components the way DictationService does, minus hardware."""

    def __init__(self, data_dir: str, audio: bytes, backend=None, watchdog_seconds: float = 300.0):
        settings = AppSettings()
        self.surface = FakeSurface()
        self.presenter = IndicatorPresenter(self.surface)
        self.presenter.subscribe()
        self.history = RecordingHistory(data_dir)
        self.clipboard = Mock()
        self.paster = Mock()
        self.paster.paste_at_cursor.return_value = True
        self.recorder = FakeRecorder(audio=audio)
        self.backend = backend or FakeBackend()

        pipeline = DictationPipeline(to_mono_pcm, self.backend, None,
                                     work_dir=str(Path(data_dir) / "tmp"))
        dispatcher = SideEffectDispatcher(
            lambda: settings,
            clipboard=self.clipboard,
            paster=self.paster,
            history=self.history,
            indicator=self.presenter,
        )
        self.publisher = StatePublisher()
        self.machine = SessionStateMachine(self.recorder, pipeline, dispatcher, self.publisher,
                                           watchdog_seconds=watchdog_seconds)
        self.matcher = ShortcutMatcher(settings.shortcuts)

    def press(self, raw: dict, timestamp: float = 0.0) -> None:
        event = KeyEvent(timestamp=timestamp, **raw)
        trigger = self.matcher.match(event, self.machine.active_session)
        if self.machine.handle_trigger(trigger):
            self.matcher.accept(trigger, event)


@pytest.mark.integration
class TestDictationFlow:
    """End-to-end session scenarios."""

    def test_hold_to_talk_writes_one_record(self, temp_data_dir, wav_bytes):
        harness = DictationHarness(temp_data_dir, wav_bytes)

        async def scenario():
            harness.press(HOLD_PRESS)
            assert harness.machine.active_session.status == SessionStatus.RECORDING
            harness.press(HOLD_RELEASE)
            await harness.machine.wait_idle()

        asyncio.run(scenario())

        page = harness.history.list()
        assert page["total_count"] == 1
        assert page["recordings"][0].text == "hello world"
        assert page["recordings"][0].status == "completed"
        harness.clipboard.write_text.assert_called_once_with("hello world")
        harness.paster.paste_at_cursor.assert_called_once_with("hello world")
        assert harness.surface.commands == [("show", "recording"), ("show", "processing"), ("hide", None)]
        assert harness.machine.current is None
        assert harness.publisher.last_event.status == SessionStatus.COMPLETED

    def test_stuck_transcription_is_cancelled_by_watchdog(self, temp_data_dir, wav_bytes):
        harness = DictationHarness(temp_data_dir, wav_bytes, backend=HangingBackend(),
                                   watchdog_seconds=0.2)

        async def scenario():
            harness.press(TOGGLE_PRESS, timestamp=0.0)
            harness.press(TOGGLE_PRESS, timestamp=1000.0)
            await asyncio.sleep(0.6)
            await harness.machine.wait_idle()

        asyncio.run(scenario())

        assert harness.machine.current is None
        assert harness.machine.last_session.status == SessionStatus.CANCELLED
        assert harness.machine.last_session.error == "Watchdog timeout"
        assert harness.presenter.state.visible is False
        assert harness.surface.commands[-1] == ("hide", None)
        assert harness.history.list()["total_count"] == 0
        harness.clipboard.write_text.assert_not_called()

    def test_rapid_double_toggle_is_debounced(self, temp_data_dir, wav_bytes):
        harness = DictationHarness(temp_data_dir, wav_bytes)

        async def scenario():
            harness.press(TOGGLE_PRESS, timestamp=0.0)
            harness.press(TOGGLE_PRESS, timestamp=100.0)
            assert harness.machine.active_session.status == SessionStatus.RECORDING
            harness.press(TOGGLE_PRESS, timestamp=500.0)
            await harness.machine.wait_idle()

        asyncio.run(scenario())

        assert harness.recorder.started == 1
        assert harness.recorder.stopped == 1
        assert harness.history.list()["total_count"] == 1

    def test_new_session_after_completion(self, temp_data_dir, wav_bytes):
        harness = DictationHarness(temp_data_dir, wav_bytes)

        async def scenario():
            for _ in range(2):
                harness.press(HOLD_PRESS)
                harness.press(HOLD_RELEASE)
                await harness.machine.wait_idle()

        asyncio.run(scenario())

        assert harness.recorder.started == 2
        assert harness.history.list()["total_count"] == 2

    def test_keys_while_transcribing_are_ignored(self, temp_data_dir, wav_bytes):
        harness = DictationHarness(temp_data_dir, wav_bytes)

        async def scenario():
            harness.press(HOLD_PRESS)
            harness.press(HOLD_RELEASE)
            assert harness.machine.active_session.status == SessionStatus.TRANSCRIBING
            harness.press(HOLD_PRESS)
            harness.press(TOGGLE_PRESS, timestamp=2000.0)
            await harness.machine.wait_idle()

        asyncio.run(scenario())

        assert harness.recorder.started == 1
        assert harness.history.list()["total_count"] == 1

    def test_toggle_rejected_while_dispatching_keeps_debounce_window(self, temp_data_dir, wav_bytes):
        harness = DictationHarness(temp_data_dir, wav_bytes)
        gate = threading.Event()
        harness.paster.paste_at_cursor.side_effect = lambda text: gate.wait(timeout=2.0)

        async def scenario():
            harness.press(TOGGLE_PRESS, timestamp=0.0)
            harness.press(TOGGLE_PRESS, timestamp=1000.0)
            while harness.machine.active_session is not None:
                await asyncio.sleep(0.01)
            assert harness.machine.current.status == SessionStatus.COMPLETED

            # Slot still held by the dispatching session: start is rejected
            harness.press(TOGGLE_PRESS, timestamp=1500.0)
            assert harness.matcher.last_toggle_timestamp == 1000.0

            gate.set()
            await harness.machine.wait_idle()
            harness.press(TOGGLE_PRESS, timestamp=1600.0)
            assert harness.machine.active_session.status == SessionStatus.RECORDING
            harness.machine.force_reset("test teardown")

        asyncio.run(scenario())

        assert harness.recorder.started == 2
