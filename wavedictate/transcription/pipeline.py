"""Normalize, transcribe and enhance one captured recording."""

import time
import asyncio
import logging
from pathlib import Path
from typing import Callable, List, Optional, Protocol, Union

from .base import AbstractTranscriptionBackend
from .segments import join_segments
from ..errors import PipelineStageError
from ..models.results import EnhancementResult, PipelineResult

logger = logging.getLogger(__name__)


STAGE_NORMALIZE = "normalize"
STAGE_TRANSCRIBE = "transcribe"
STAGE_ENHANCE = "enhance"

StageCallback = Callable[[str], None]
Normalizer = Callable[[str, int], str]


class Enhancer(Protocol):
    """Anything that can clean up a transcript without ever failing the run."""

    async def enhance(self, text: str) -> EnhancementResult:
        ...


def transcript_from_result(result: Union[str, List[str], None]) -> str:
    """Flatten a speech engine result into one transcript.

    Raises:
        PipelineStageError: if the engine returned something unusable
    """
    if isinstance(result, (list, tuple)) and len(result) > 0:
        return join_segments(result)
    if isinstance(result, str):
        return result.strip()
    raise PipelineStageError(STAGE_TRANSCRIBE, f"No valid transcription returned: {result!r}")


class DictationPipeline:
    """Runs the post-capture stages for a single session.

    Stage failures are converted into a failed PipelineResult at the stage
    boundary. Enhancement never fails the run; it falls back to the raw
    transcript.
    """

    def __init__(self,
                 normalizer: Normalizer,
                 backend: AbstractTranscriptionBackend,
                 enhancer: Optional[Enhancer],
                 work_dir: str,
                 language: str = "en",
                 sample_rate: int = 16000):
        """Initialize the pipeline.

        Args:
            normalizer: ``(input_path, sample_rate) -> output_path`` converter
            backend: Speech-to-text backend
            enhancer: Optional transcript enhancer
            work_dir: Directory for temporary audio files
            language: Language passed to the speech engine
            sample_rate: Sample rate the speech engine requires
        """
        self.normalizer = normalizer
        self.backend = backend
        self.enhancer = enhancer
        self.work_dir = Path(work_dir)
        self.language = language
        self.sample_rate = sample_rate
        self.work_dir.mkdir(parents=True, exist_ok=True)

    async def run(self, audio: bytes, on_stage: Optional[StageCallback] = None) -> PipelineResult:
        """Turn captured WAV bytes into display text.

        Args:
            audio: WAV file contents from the recorder
            on_stage: Called with the stage name as each stage begins

        Returns:
            PipelineResult; ``success`` is False only for normalize/transcribe failures
        """
        temp_files: List[Path] = []
        try:
            self._enter_stage(on_stage, STAGE_NORMALIZE)
            try:
                normalized_path = await self._normalize(audio, temp_files)
            except Exception as e:
                logger.error(f"Audio normalization failed: {e}")
                return PipelineResult(success=False, error=str(e), stage=STAGE_NORMALIZE)

            self._enter_stage(on_stage, STAGE_TRANSCRIBE)
            try:
                raw_result = await self.backend.transcribe(normalized_path, self.language)
                original_text = transcript_from_result(raw_result)
            except Exception as e:
                logger.error(f"Transcription failed: {e}")
                return PipelineResult(success=False, error=str(e), stage=STAGE_TRANSCRIBE)

            logger.info(f"Transcription result: '{original_text}'")

            self._enter_stage(on_stage, STAGE_ENHANCE)
            enhancement = await self._enhance(original_text)
            logger.info(f"Using {'LLM-processed' if enhancement.processed else 'original'} text")

            return PipelineResult(
                success=True,
                text=enhancement.text,
                original_text=original_text,
                processed=enhancement.processed,
            )
        finally:
            self._remove_temp_files(temp_files)

    def _enter_stage(self, on_stage: Optional[StageCallback], stage: str) -> None:
        logger.debug(f"Pipeline stage: {stage}")
        if on_stage is not None:
            on_stage(stage)

    async def _normalize(self, audio: bytes, temp_files: List[Path]) -> str:
        if not audio:
            raise PipelineStageError(STAGE_NORMALIZE, "No audio data")

        raw_path = self.work_dir / f"recording-{int(time.time() * 1000)}.wav"
        temp_files.append(raw_path)
        await asyncio.to_thread(raw_path.write_bytes, audio)

        normalized_path = await asyncio.to_thread(self.normalizer, str(raw_path), self.sample_rate)
        temp_files.append(Path(normalized_path))
        return normalized_path

    async def _enhance(self, original_text: str) -> EnhancementResult:
        if self.enhancer is None:
            return EnhancementResult(text=original_text, skipped=True)
        try:
            return await self.enhancer.enhance(original_text)
        except Exception as e:
            logger.error(f"Enhancement raised, using original transcript: {e}")
            return EnhancementResult(text=original_text, error=str(e))

    def _remove_temp_files(self, temp_files: List[Path]) -> None:
        for path in temp_files:
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                logger.warning(f"Failed to remove temp file {path}: {e}")
