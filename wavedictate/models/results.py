"""Result objects returned by the pipeline stages."""

from dataclasses import dataclass
from typing import Optional


@dataclass
class EnhancementResult:
    """Outcome of the optional LLM clean-up pass."""
    text: str
    processed: bool = False
    skipped: bool = False
    error: Optional[str] = None


@dataclass
class PipelineResult:
    """Outcome of a full normalize/transcribe/enhance run."""
    success: bool
    text: Optional[str] = None            # Display text (enhanced or original)
    original_text: Optional[str] = None   # Post-ASR, pre-enhancement
    processed: bool = False               # True when the LLM output was used
    error: Optional[str] = None
    stage: Optional[str] = None           # Stage that failed, if any
