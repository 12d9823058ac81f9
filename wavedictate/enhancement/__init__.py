"""Optional LLM clean-up of transcripts."""

from .engine import OllamaEngine, LLMHandle
from .enhancer import TranscriptEnhancer, build_prompt, max_tokens_for

__all__ = [
    "OllamaEngine",
    "LLMHandle",
    "TranscriptEnhancer",
    "build_prompt",
    "max_tokens_for",
]
