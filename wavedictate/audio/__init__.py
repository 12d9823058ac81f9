"""Audio capture and normalization."""

from .normalizer import to_mono_pcm

__all__ = [
    'to_mono_pcm',
]
