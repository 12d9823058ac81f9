"""Speech-to-text stage of WaveDictate."""

from .base import AbstractTranscriptionBackend
from .segments import join_segments
from .pipeline import DictationPipeline, transcript_from_result
from ..models.results import PipelineResult

__all__ = [
    "AbstractTranscriptionBackend",
    "DictationPipeline",
    "PipelineResult",
    "join_segments",
    "transcript_from_result",
]
