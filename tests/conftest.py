"""Pytest configuration and fixtures for WaveDictate tests."""

import io
import time
import wave
import asyncio
import logging
import tempfile
from pathlib import Path
from unittest.mock import Mock, patch

import numpy as np
import pytest
import yaml
from pubsub import pub

from wavedictate.models.events import KeyEvent
from wavedictate.models.results import EnhancementResult, PipelineResult
from wavedictate.models.settings import AppSettings


# Configure logging for tests
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests without hardware or network")
    config.addinivalue_line("markers", "integration: several real components wired together")


@pytest.fixture(autouse=True)
def clean_pubsub():
    """Drop every pubsub listener a test registered."""
    yield
    pub.unsubAll()


@pytest.fixture
def temp_data_dir():
    """Create temporary directory for test data."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield temp_dir


@pytest.fixture
def config_file(temp_data_dir):
    """Minimal wavedictate.yaml keeping data and models under the temp dir."""
    path = Path(temp_data_dir) / "wavedictate.yaml"
    path.write_text(yaml.safe_dump({
        "storage": {"data_directory": "data"},
        "models": {"directory": "data/models"},
        "transcription": {"model": "tiny"},
        "llm": {"enabled": True, "base_url": "http://127.0.0.1:9"},
        "settings": {"language": "en"},
    }))
    return str(path)


@pytest.fixture
def sample_audio_chunk():
    """Generate a sample audio chunk for testing."""
    # 1024 samples of a 440 Hz sine at 16 kHz
    sample_rate = 16000
    duration = 1024 / sample_rate
    t = np.linspace(0, duration, 1024, False)
    wave_data = np.sin(2 * np.pi * 440 * t)
    audio_data = (wave_data * 32767).astype(np.int16)
    return audio_data.tobytes()


@pytest.fixture
def wav_bytes(sample_audio_chunk):
    """In-memory 16 kHz mono WAV file, as the recorder returns it."""
    buffer = io.BytesIO()
    with wave.open(buffer, 'wb') as wf:
        wf.setnchannels(1)
        wf.setsampwidth(2)
        wf.setframerate(16000)
        for _ in range(10):
            wf.writeframes(sample_audio_chunk)
    return buffer.getvalue()


@pytest.fixture
def sample_audio_file(temp_data_dir, wav_bytes):
    """Create a sample WAV file for testing."""
    file_path = Path(temp_data_dir) / "test_audio.wav"
    file_path.write_bytes(wav_bytes)
    return str(file_path)


@pytest.fixture
def mock_pyaudio():
    """Mock PyAudio for testing without actual audio hardware."""
    with patch('pyaudio.PyAudio') as mock_pyaudio_class:
        mock_pyaudio_instance = Mock()
        mock_stream = Mock()

        def read_silence(*args, **kwargs):
            time.sleep(0.005)
            return b'\x00' * 2048  # Silent audio

        mock_stream.read.side_effect = read_silence
        mock_stream.stop_stream.return_value = None
        mock_stream.close.return_value = None

        mock_pyaudio_instance.open.return_value = mock_stream
        mock_pyaudio_instance.terminate.return_value = None
        mock_pyaudio_instance.get_sample_size.return_value = 2

        mock_pyaudio_class.return_value = mock_pyaudio_instance

        yield {
            'class': mock_pyaudio_class,
            'instance': mock_pyaudio_instance,
            'stream': mock_stream
        }


def key_event(event_kind: str, key_code: int, modifier_flags: int, timestamp: float = 0.0) -> KeyEvent:
    return KeyEvent(event_kind=event_kind, key_code=key_code,
                    modifier_flags=modifier_flags, timestamp=timestamp)


# Default shortcuts as raw events
HOLD_PRESS = dict(event_kind="flagsChanged", key_code=63, modifier_flags=8388864)
HOLD_RELEASE = dict(event_kind="flagsChanged", key_code=63, modifier_flags=256)
TOGGLE_PRESS = dict(event_kind="keyDown", key_code=49, modifier_flags=262401)


class FakeRecorder:
    """Recorder double that hands back fixed audio."""

    def __init__(self, audio: bytes = b"RIFF-fake-audio", fail_start: bool = False,
                 fail_stop: bool = False):
        self.audio = audio
        self.fail_start = fail_start
        self.fail_stop = fail_stop
        self.started = 0
        self.stopped = 0
        self.aborted = 0

    def start(self) -> None:
        if self.fail_start:
            raise RuntimeError("microphone unavailable")
        self.started += 1

    async def stop(self) -> bytes:
        self.stopped += 1
        if self.fail_stop:
            raise RuntimeError("No audio captured")
        return self.audio

    def abort(self) -> None:
        self.aborted += 1


class FakePipeline:
    """Pipeline double returning a preset result, or hanging when ``hang`` is set."""

    def __init__(self, result: PipelineResult = None, hang: bool = False, stages=("normalize", "transcribe", "enhance")):
        self.result = result or PipelineResult(success=True, text="hello world",
                                               original_text="hello world")
        self.hang = hang
        self.stages = stages
        self.calls = []
        self.release = asyncio.Event() if hang else None

    async def run(self, audio: bytes, on_stage=None) -> PipelineResult:
        self.calls.append(audio)
        for stage in self.stages:
            if on_stage is not None:
                on_stage(stage)
        if self.hang:
            await self.release.wait()
        return self.result


class RecordingDispatcher:
    """Dispatcher double that remembers what it was asked to deliver."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls = []

    async def dispatch(self, text, meta):
        self.calls.append((text, meta))
        if self.fail:
            raise RuntimeError("dispatch exploded")
        return {"history": True}


class EventLog:
    """Publisher double collecting (recording, transcribing, status) tuples."""

    def __init__(self):
        self.events = []

    def publish(self, session):
        from wavedictate.services.state_publisher import state_event_for
        event = state_event_for(session)
        self.events.append((event.recording, event.transcribing, event.status))
        return event


class FakeBackend:
    """Speech backend double."""

    def __init__(self, result=None, error: Exception = None):
        self.result = ["hello world"] if result is None else result
        self.error = error
        self.calls = []

    async def transcribe(self, audio_path, language=None):
        self.calls.append((audio_path, language))
        if self.error is not None:
            raise self.error
        return self.result

    async def initialize(self):
        return True

    async def cleanup(self):
        pass


class FakeEnhancer:
    def __init__(self, result: EnhancementResult = None, error: Exception = None):
        self.result = result
        self.error = error
        self.calls = []

    async def enhance(self, text):
        self.calls.append(text)
        if self.error is not None:
            raise self.error
        return self.result or EnhancementResult(text=text)


class FakeEngine:
    """LLM engine double with the OllamaEngine interface."""

    def __init__(self, response: str = "Hello, world.", load_error: Exception = None,
                 generate_error: Exception = None):
        self.response = response
        self.load_error = load_error
        self.generate_error = generate_error
        self.loaded = []
        self.disposed = []
        self.prompts = []
        self.options = []

    async def load_model(self, model):
        if self.load_error is not None:
            raise self.load_error
        self.loaded.append(model)
        return f"handle:{model}"

    async def generate(self, handle, prompt, temperature=0.3, max_tokens=512, top_p=0.8):
        if self.generate_error is not None:
            raise self.generate_error
        self.prompts.append(prompt)
        self.options.append({"temperature": temperature, "max_tokens": max_tokens, "top_p": top_p})
        return self.response

    async def dispose(self, handle):
        self.disposed.append(handle)


class FakeSurface:
    def __init__(self):
        self.commands = []

    def show(self, mode):
        self.commands.append(("show", mode))

    def hide(self):
        self.commands.append(("hide", None))

    def notify(self, message, style="blue"):
        self.commands.append(("notify", message))


@pytest.fixture
def settings():
    return AppSettings()


@pytest.fixture
def fake_recorder():
    return FakeRecorder()


@pytest.fixture
def fake_backend():
    return FakeBackend()


@pytest.fixture
def fake_engine():
    return FakeEngine()


@pytest.fixture
def fake_surface():
    return FakeSurface()
