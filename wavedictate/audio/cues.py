"""Short tones played when the recording indicator appears and disappears."""

import logging
import threading
from typing import Callable, Dict, Optional, Tuple

import numpy as np
import pyaudio

logger = logging.getLogger(__name__)


APPEAR = "appear"
DISAPPEAR = "disappear"

CUE_SAMPLE_RATE = 44100
CUE_VOLUME = 0.3
CUE_DECAY = 10.0

# name -> (frequency in Hz, duration in seconds)
CUE_TONES: Dict[str, Tuple[float, float]] = {
    APPEAR: (1000.0, 0.08),
    DISAPPEAR: (600.0, 0.1),
}


def generate_cue(frequency: float, duration: float, sample_rate: int = CUE_SAMPLE_RATE) -> np.ndarray:
    """Exponentially decaying sine blip as 16-bit mono samples."""
    t = np.arange(int(round(sample_rate * duration))) / sample_rate
    wave_data = np.sin(2 * np.pi * frequency * t) * np.exp(-t * CUE_DECAY) * CUE_VOLUME
    return (wave_data * 32767).astype(np.int16)


class CuePlayer:
    """Plays the indicator cues through PyAudio without blocking the caller.

    ``enabled`` is asked on every ``play`` so a settings change takes
    effect on the next cue.
    """

    def __init__(self, enabled: Callable[[], bool] = lambda: True,
                 sample_rate: int = CUE_SAMPLE_RATE):
        self.enabled = enabled
        self.sample_rate = sample_rate
        self._cues = {
            name: generate_cue(frequency, duration, sample_rate).tobytes()
            for name, (frequency, duration) in CUE_TONES.items()
        }
        # Cues play one after another, never mixed
        self._lock = threading.Lock()

    def play(self, name: str) -> Optional[threading.Thread]:
        """Start playing cue ``name`` on a daemon thread.

        Returns:
            The playback thread, or None when cues are off or the name is unknown
        """
        try:
            enabled = self.enabled()
        except Exception as e:
            logger.warning(f"Could not read the sound setting, skipping cue {name}: {e}")
            return None
        if not enabled:
            logger.debug(f"Sound cues disabled, skipping {name}")
            return None

        samples = self._cues.get(name)
        if samples is None:
            logger.warning(f"Unknown sound cue: {name}")
            return None

        thread = threading.Thread(target=self._play_sync, args=(name, samples),
                                  daemon=True, name="CuePlayerThread")
        thread.start()
        return thread

    def _play_sync(self, name: str, samples: bytes) -> None:
        with self._lock:
            audio = pyaudio.PyAudio()
            try:
                stream = audio.open(format=pyaudio.paInt16, channels=1,
                                    rate=self.sample_rate, output=True)
                try:
                    stream.write(samples)
                finally:
                    stream.stop_stream()
                    stream.close()
                logger.debug(f"Played sound cue: {name}")
            except OSError as e:
                logger.warning(f"Could not play sound cue {name}: {e}")
            finally:
                audio.terminate()
