"""Best-effort LLM clean-up of raw transcripts."""

import logging
from typing import Callable, Optional

from ..model_slot import ModelSlot
from ..models.results import EnhancementResult
from ..models.settings import AppSettings
from .engine import OllamaEngine

logger = logging.getLogger(__name__)


MIN_ENHANCE_LENGTH = 3
TEMPERATURE = 0.3
TOP_P = 0.8
MIN_MAX_TOKENS = 512


def build_prompt(template: str, transcript: str) -> str:
    """Append the transcript to the user's instruction template."""
    return f"{template}\n\nTranscription:\n{transcript}"


def max_tokens_for(transcript: str) -> int:
    """Output budget proportional to the input, with a floor."""
    return max(len(transcript) * 2, MIN_MAX_TOKENS)


class TranscriptEnhancer:
    """Runs the configured LLM over a transcript, never failing the session.

    Any problem (disabled, no model, engine missing, load or generation
    error, empty reply) returns the original transcript with
    ``processed=False``.
    """

    def __init__(self,
                 settings_provider: Callable[[], AppSettings],
                 engine: Optional[OllamaEngine],
                 model_slot: Optional[ModelSlot] = None):
        self.settings_provider = settings_provider
        self.engine = engine
        if model_slot is None and engine is not None:
            model_slot = ModelSlot("llm", engine.load_model, engine.dispose)
        self.model_slot = model_slot

    async def enhance(self, text: str) -> EnhancementResult:
        if not text or len(text.strip()) < MIN_ENHANCE_LENGTH:
            logger.warning("Transcript is empty or too short, skipping enhancement")
            return EnhancementResult(text=text or "", error="Text too short")

        settings = self.settings_provider()
        if not settings.enhanced_prompts:
            logger.info("Enhanced prompts disabled, using original transcript")
            return EnhancementResult(text=text, skipped=True)

        if not settings.llm_model:
            logger.info("No LLM model selected, using original transcript")
            return EnhancementResult(text=text)

        if self.engine is None or self.model_slot is None:
            logger.error("LLM engine not configured, using original transcript")
            return EnhancementResult(text=text, error="LLM engine not configured")

        try:
            handle = await self.model_slot.acquire(settings.llm_model)
        except Exception as e:
            logger.error(f"Failed to load LLM model {settings.llm_model}, using original transcript: {e}")
            return EnhancementResult(text=text, error=str(e))

        prompt = build_prompt(settings.prompt_template, text)
        try:
            response = await self.engine.generate(
                handle,
                prompt,
                temperature=TEMPERATURE,
                max_tokens=max_tokens_for(text),
                top_p=TOP_P,
            )
        except Exception as e:
            logger.error(f"LLM generation failed, using original transcript: {e}")
            return EnhancementResult(text=text, error=str(e))

        if not response:
            logger.warning("LLM returned an empty response, using original transcript")
            return EnhancementResult(text=text, error="Empty response")

        logger.info(f"Enhanced transcript: {len(text)} -> {len(response)} characters")
        return EnhancementResult(text=response, processed=True)

    async def close(self) -> None:
        if self.model_slot is not None:
            await self.model_slot.release()
