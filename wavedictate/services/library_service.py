"""Speech models, LLM models and recording history outside of a session."""

import asyncio
import logging
from typing import Any, Dict, List, Optional

import aiohttp

from ..config import WaveDictateConfig, load_settings
from ..enhancement import OllamaEngine
from ..errors import LLMEngineError, ModelDownloadError, ModelNotAvailableError, RecordingNotFoundError
from ..storage import ModelStore, RecordingHistory
from ..storage.history import DEFAULT_PAGE_SIZE
from ..storage.model_store import ProgressCallback

logger = logging.getLogger(__name__)


DEFAULT_SPEECH_MODEL = "base.en"


def llm_engine_from_config(config: WaveDictateConfig) -> Optional[OllamaEngine]:
    """Build the Ollama client from the ``llm`` section, or None when disabled."""
    if not config.get('llm.enabled', True):
        return None
    return OllamaEngine(
        base_url=config.get('llm.base_url', 'http://localhost:11434'),
        keep_alive=config.get('llm.keep_alive', '10m'),
        request_timeout=config.get('llm.request_timeout', 120.0),
    )


class LibraryService:
    """High-level API over the model store, the LLM server and the history.

    Nothing here touches audio or keyboard hardware, so the command line
    can manage models and recordings without starting a dictation service.
    Every operation returns a dict with ``success`` and either its payload
    or an ``error`` message.
    """

    def __init__(self, config: WaveDictateConfig):
        """Initialize the library service.

        Args:
            config: Application configuration, written back on selection changes
        """
        self.config = config
        self.model_store = ModelStore(config.get_models_directory())
        self.history = RecordingHistory(config.get_data_directory())
        self.engine = llm_engine_from_config(config)

        logger.info("LibraryService initialized")

    # Speech models

    @property
    def selected_model(self) -> str:
        return self.config.get('transcription.model', DEFAULT_SPEECH_MODEL)

    def speech_models(self) -> List[Dict[str, Any]]:
        """Catalog entries merged with their download state."""
        status = self.model_store.status()
        models = []
        for model in self.model_store.available_models():
            state = status[model["id"]]
            entry = dict(model)
            entry.update(downloaded=state["downloaded"], downloading=state["downloading"],
                         path=state["path"], disk_size=state["size"])
            entry["selected"] = model["id"] == self.selected_model
            models.append(entry)
        return models

    def needs_download(self, model_id: str) -> bool:
        """True when ``model_id`` is a catalog model that is missing and may be fetched."""
        if not self.config.get('transcription.auto_download', True):
            return False
        if model_id not in self.model_store.catalog:
            return False
        return not self.model_store.is_downloaded(model_id) and not self.model_store.is_downloading(model_id)

    async def download_model(self, model_id: str,
                             progress_callback: Optional[ProgressCallback] = None) -> Dict[str, Any]:
        try:
            return await self.model_store.download(model_id, progress_callback)
        except (ModelNotAvailableError, ModelDownloadError) as e:
            logger.error(f"Download of {model_id} failed: {e}")
            return {"success": False, "error": str(e)}

    def cancel_download(self, model_id: str) -> bool:
        """Flag a running download of ``model_id`` as cancelled."""
        return self.model_store.cancel(model_id)

    def delete_model(self, model_id: str) -> Dict[str, Any]:
        try:
            return self.model_store.delete(model_id)
        except (ModelNotAvailableError, ModelDownloadError) as e:
            logger.error(f"Delete of {model_id} failed: {e}")
            return {"success": False, "error": str(e)}

    def select_model(self, model_id: str) -> Dict[str, Any]:
        """Make ``model_id`` the speech model the next dictation service loads."""
        if model_id not in self.model_store.catalog:
            return {"success": False, "error": f"Unknown model: {model_id}"}

        self.config.set('transcription.model', model_id)
        self.config.save()
        logger.info(f"Selected speech model: {model_id}")
        return {
            "success": True,
            "model_id": model_id,
            "downloaded": self.model_store.is_downloaded(model_id),
        }

    # LLM models

    async def llm_models(self) -> Dict[str, Any]:
        """Models the Ollama server has, plus the one enhancement uses."""
        if self.engine is None:
            return {"success": False, "error": "LLM enhancement is disabled in the configuration"}
        try:
            models = await self.engine.list_models()
        except (LLMEngineError, aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Could not list LLM models: {e}")
            return {"success": False, "error": str(e)}
        return {"success": True, "models": models, "selected": load_settings(self.config).llm_model}

    async def pull_llm(self, model: str, progress_callback=None, select: bool = True) -> Dict[str, Any]:
        """Pull ``model`` onto the Ollama server and, by default, use it for enhancement."""
        if self.engine is None:
            return {"success": False, "error": "LLM enhancement is disabled in the configuration"}
        try:
            await self.engine.pull_model(model, progress_callback)
        except (LLMEngineError, aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.error(f"Pull of LLM model {model} failed: {e}")
            return {"success": False, "error": str(e)}

        if select:
            self.config.set('settings.llm_model', model)
            self.config.save()
            logger.info(f"Selected LLM model: {model}")
        return {"success": True, "model": model, "selected": select}

    # History

    def history_page(self, page: int = 0, limit: int = DEFAULT_PAGE_SIZE) -> Dict[str, Any]:
        result = self.history.list(page, limit)
        result["success"] = True
        result["storage"] = self.history.get_storage_stats()
        return result

    def recording(self, recording_id: str) -> Dict[str, Any]:
        record = self.history.get(recording_id)
        if record is None:
            return {"success": False, "error": f"Recording not found: {recording_id}"}
        return {"success": True, "record": record}

    def delete_recording(self, recording_id: str) -> Dict[str, Any]:
        try:
            self.history.delete(recording_id)
        except RecordingNotFoundError as e:
            return {"success": False, "error": str(e)}
        return {"success": True, "recording_id": recording_id}
