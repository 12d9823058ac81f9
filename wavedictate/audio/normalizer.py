"""Convert captured audio to the mono 16-bit PCM the speech engine expects."""

import logging
from math import gcd
from pathlib import Path
from typing import Optional

import numpy as np
from scipy.io import wavfile
from scipy.signal import resample_poly

logger = logging.getLogger(__name__)


def _to_float(samples: np.ndarray) -> np.ndarray:
    """Scale any PCM dtype scipy can read into float32 in [-1, 1]."""
    if samples.dtype == np.uint8:
        return (samples.astype(np.float32) - 128.0) / 128.0
    if np.issubdtype(samples.dtype, np.integer):
        return samples.astype(np.float32) / float(np.iinfo(samples.dtype).max)
    return samples.astype(np.float32)


def to_mono_pcm(input_path: str, sample_rate_hz: int = 16000,
                output_path: Optional[str] = None) -> str:
    """Down-mix and resample a WAV file.

    Args:
        input_path: Source WAV file
        sample_rate_hz: Target sample rate
        output_path: Destination; defaults to ``<input>-<rate>.wav`` beside the source

    Returns:
        Path of the written mono 16-bit WAV file

    Raises:
        ValueError: if the input holds no samples or cannot be parsed
    """
    if output_path is None:
        source = Path(input_path)
        output_path = str(source.with_name(f"{source.stem}-{sample_rate_hz // 1000}k.wav"))

    source_rate, samples = wavfile.read(input_path)
    if samples.size == 0:
        raise ValueError(f"Audio file has no samples: {input_path}")

    audio = _to_float(samples)
    if audio.ndim > 1:
        audio = audio.mean(axis=1)

    if source_rate != sample_rate_hz:
        divisor = gcd(int(source_rate), int(sample_rate_hz))
        audio = resample_poly(audio, sample_rate_hz // divisor, source_rate // divisor)

    pcm = np.clip(audio * 32767.0, -32768, 32767).astype(np.int16)
    wavfile.write(output_path, sample_rate_hz, pcm)

    logger.info(f"Normalized audio {input_path} ({source_rate}Hz, "
                f"{samples.shape[1] if samples.ndim > 1 else 1}ch) -> {output_path} ({sample_rate_hz}Hz mono)")
    return output_path
