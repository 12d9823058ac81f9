"""Local faster-whisper speech-to-text backend."""

import asyncio
import logging
from pathlib import Path
from typing import List, Optional

from faster_whisper import WhisperModel

from .base import AbstractTranscriptionBackend
from ..errors import ModelNotAvailableError
from ..model_slot import ModelSlot
from ..storage.model_store import ModelStore

logger = logging.getLogger(__name__)


class FasterWhisperBackend(AbstractTranscriptionBackend):
    """Runs faster-whisper in a worker thread, one model loaded at a time."""

    def __init__(self,
                 model_store: ModelStore,
                 model_id: str,
                 language: str = "en",
                 device: str = "auto",
                 compute_type: str = "int8",
                 beam_size: int = 5):
        """Initialize the backend.

        Args:
            model_store: Store resolving model ids to downloaded directories
            model_id: Catalog id or a directory holding a CTranslate2 model
            language: Default language code ("auto" lets whisper detect it)
            device: "cpu", "cuda" or "auto"
            compute_type: CTranslate2 compute type
            beam_size: Decoder beam size
        """
        super().__init__(language)
        self.model_store = model_store
        self.model_id = model_id
        self.device = device
        self.compute_type = compute_type
        self.beam_size = beam_size
        self.slot = ModelSlot("whisper", self._load_model, self._dispose_model)
        self.service_name = "faster-whisper"

    def _resolve_model_path(self, model_id: str) -> str:
        if Path(model_id).is_dir():
            return model_id
        if not self.model_store.is_downloaded(model_id):
            raise ModelNotAvailableError(f"Model {model_id} is not downloaded")
        return str(self.model_store.model_path(model_id))

    async def _load_model(self, model_id: str) -> WhisperModel:
        model_path = self._resolve_model_path(model_id)
        logger.info(f"Loading whisper model from {model_path} "
                    f"(device={self.device}, compute={self.compute_type})")
        return await asyncio.to_thread(
            WhisperModel, model_path, device=self.device, compute_type=self.compute_type
        )

    async def _dispose_model(self, model: WhisperModel) -> None:
        # CTranslate2 frees the weights once the last reference goes away
        del model

    async def initialize(self) -> bool:
        try:
            await self.slot.acquire(self.model_id)
            return True
        except Exception as e:
            logger.error(f"Failed to initialize whisper model {self.model_id}: {e}")
            return False

    async def transcribe(self, audio_path: str, language: Optional[str] = None) -> List[str]:
        model = await self.slot.acquire(self.model_id)
        language = language or self.language
        whisper_language = None if language == "auto" else language
        logger.info(f"Transcribing {audio_path} (language={language})")
        return await asyncio.to_thread(self._transcribe_sync, model, audio_path, whisper_language)

    def _transcribe_sync(self, model: WhisperModel, audio_path: str,
                         language: Optional[str]) -> List[str]:
        segments, info = model.transcribe(audio_path, language=language, beam_size=self.beam_size)
        # The segment generator does the actual decoding
        texts = [segment.text for segment in segments]
        logger.debug(f"Whisper returned {len(texts)} segments "
                     f"(detected language={info.language}, duration={info.duration:.1f}s)")
        return texts

    async def cleanup(self) -> None:
        await self.slot.release()
