"""Microphone capture for a single dictation session."""

import io
import wave
import asyncio
import logging
from threading import Thread, Event, Lock
from typing import List, Optional
from datetime import datetime

import pyaudio

from ..models.audio import AudioStats

logger = logging.getLogger(__name__)


class AudioCapture:
    """Records microphone audio in a background thread until stopped."""

    def __init__(
        self,
        sample_rate: int = 16000,
        chunk_size: int = 1024,
        channels: int = 1,
        format: int = pyaudio.paInt16,
    ):
        """Initialize audio capture with specified parameters.

        Args:
            sample_rate: Audio sample rate (16kHz for Whisper compatibility)
            chunk_size: Size of each audio chunk in samples
            channels: Number of audio channels (1 for mono)
            format: Audio format (16-bit signed int)
        """
        self.sample_rate = sample_rate
        self.chunk_size = chunk_size
        self.channels = channels
        self.format = format

        # Recording thread management
        self.recording_thread: Optional[Thread] = None
        self.stop_event = Event()
        self.is_recording = False

        # Captured frames
        self.audio_data: List[bytes] = []
        self._data_lock = Lock()

        # Statistics tracking
        self.start_time: Optional[datetime] = None
        self.total_chunks = 0
        self.error: Optional[Exception] = None

    def start_recording(self) -> None:
        """Start continuous recording in background thread."""
        if self.is_recording:
            logger.warning("Recording already in progress")
            return

        self._join_recording_thread()

        logger.info("Starting audio recording")
        # Each recording owns its stop event and frame list
        self.stop_event = Event()
        self.start_time = datetime.now()
        self.total_chunks = 0
        self.error = None
        frames: List[bytes] = []
        with self._data_lock:
            self.audio_data = frames

        self.recording_thread = Thread(target=self._record_continuously,
                                       args=(self.stop_event, frames), daemon=True)
        self.recording_thread.name = "AudioCaptureThread"
        self.recording_thread.start()
        self.is_recording = True

    def stop_recording(self) -> None:
        """Stop recording and wait for the capture thread to release the device."""
        if not self.is_recording:
            logger.warning("No recording in progress")
            return

        logger.info("Stopping audio recording")
        self.stop_event.set()
        self._join_recording_thread()

        self.is_recording = False
        logger.info(f"Recording stopped. Total chunks: {self.total_chunks}")

    def _join_recording_thread(self) -> None:
        thread = self.recording_thread
        if thread is None or not thread.is_alive():
            return
        thread.join(timeout=2.0)
        if thread.is_alive():
            logger.warning("Recording thread did not stop cleanly")

    def _open_audio_stream(self):
        audio = pyaudio.PyAudio()
        try:
            stream = audio.open(
                format=self.format,
                channels=self.channels,
                rate=self.sample_rate,
                input=True,
                frames_per_buffer=self.chunk_size,
                stream_callback=None
            )
        except Exception:
            audio.terminate()
            raise
        logger.info(f"Audio stream opened: {self.sample_rate}Hz, "
                    f"{self.chunk_size} samples/chunk")
        return audio, stream

    def _record_continuously(self, stop_event: Event, frames: List[bytes]) -> None:
        """Internal method: continuous recording loop in background thread."""
        audio = stream = None
        try:
            audio, stream = self._open_audio_stream()
            while not stop_event.is_set():
                audio_chunk = stream.read(self.chunk_size, exception_on_overflow=False)
                with self._data_lock:
                    frames.append(audio_chunk)
                if stop_event is self.stop_event:
                    self.total_chunks += 1
        except Exception as e:
            logger.error(f"Audio capture failed: {e}")
            if stop_event is self.stop_event:
                self.error = e
        finally:
            if stream:
                stream.stop_stream()
                stream.close()
            if audio:
                audio.terminate()

    def get_wav_bytes(self) -> bytes:
        """Return everything captured so far as an in-memory WAV file."""
        with self._data_lock:
            frames = list(self.audio_data)

        buffer = io.BytesIO()
        with wave.open(buffer, 'wb') as wf:
            wf.setnchannels(self.channels)
            wf.setsampwidth(pyaudio.get_sample_size(self.format))
            wf.setframerate(self.sample_rate)
            for chunk in frames:
                wf.writeframes(chunk)
        return buffer.getvalue()

    def clear_audio_data(self) -> None:
        with self._data_lock:
            self.audio_data = []

    def get_recording_stats(self) -> AudioStats:
        """Get current recording statistics."""
        duration = 0.0
        if self.start_time:
            duration = (datetime.now() - self.start_time).total_seconds()

        return AudioStats(
            is_recording=self.is_recording,
            duration_seconds=duration,
            sample_rate=self.sample_rate,
            chunk_size=self.chunk_size,
            total_chunks=self.total_chunks,
        )

    def __del__(self):
        """Ensure resources are cleaned up on deletion."""
        if self.is_recording:
            self.stop_recording()


class PyAudioRecorder:
    """Async facade over AudioCapture used by the session state machine."""

    def __init__(self, sample_rate: int = 16000, chunk_size: int = 1024, channels: int = 1):
        self.capture = AudioCapture(sample_rate=sample_rate, chunk_size=chunk_size, channels=channels)

    def start(self) -> None:
        """Begin capturing; returns immediately."""
        self.capture.start_recording()

    async def stop(self) -> bytes:
        """Stop capturing and return the recording as WAV bytes.

        Raises:
            RuntimeError: if the capture thread failed or nothing was recorded
        """
        stats = self.capture.get_recording_stats()
        await asyncio.to_thread(self.capture.stop_recording)
        logger.info(f"Captured {stats.total_chunks} chunks in {stats.duration_seconds:.1f}s")
        if self.capture.error is not None:
            raise RuntimeError(f"Audio capture failed: {self.capture.error}")
        if not self.capture.audio_data:
            raise RuntimeError("No audio captured")
        audio = self.capture.get_wav_bytes()
        self.capture.clear_audio_data()
        return audio

    def abort(self) -> None:
        """Stop capturing and drop whatever was recorded."""
        if self.capture.is_recording:
            # The capture thread has exited once this returns
            self.capture.stop_recording()
        self.capture.clear_audio_data()
        logger.info("Audio capture aborted")
