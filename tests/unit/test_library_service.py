"""Unit tests for LibraryService: models and history without hardware."""

import json
import time
import asyncio
from unittest.mock import patch

import pytest
from aiohttp import web
from aiohttp import test_utils

from wavedictate.config import WaveDictateConfig
from wavedictate.enhancement import OllamaEngine
from wavedictate.errors import ModelDownloadError
from wavedictate.models.recording import RecordingRecord
from wavedictate.services import LibraryService
from wavedictate.storage.model_store import MODEL_CATALOG, MODEL_FILES, _ActiveDownload


def install_model(library: LibraryService, model_id: str) -> None:
    path = library.model_store.models_dir / model_id
    path.mkdir(parents=True)
    for filename in MODEL_FILES:
        (path / filename).write_bytes(b"x" * 8)


def ollama_app(pulled: list) -> web.Application:
    async def tags(request):
        return web.json_response({"models": [{"name": "llama3.2:3b"}]})

    async def pull(request):
        payload = await request.json()
        pulled.append(payload["model"])
        response = web.StreamResponse()
        await response.prepare(request)
        await response.write(json.dumps({"status": "downloading", "total": 10, "completed": 10}).encode() + b"\n")
        await response.write(json.dumps({"status": "success"}).encode() + b"\n")
        await response.write_eof()
        return response

    app = web.Application()
    app.router.add_get("/api/tags", tags)
    app.router.add_post("/api/pull", pull)
    return app


def run_with_ollama(library: LibraryService, pulled: list, call):
    async def scenario():
        async with test_utils.TestServer(ollama_app(pulled)) as server:
            library.engine = OllamaEngine(base_url=f"http://{server.host}:{server.port}")
            return await call()

    return asyncio.run(scenario())


@pytest.fixture
def library(config_file):
    return LibraryService(WaveDictateConfig(config_file))


@pytest.mark.unit
class TestSpeechModels:
    """Speech model listing, selection and downloads."""

    def test_listing_shows_download_state_and_selection(self, library):
        install_model(library, "tiny")

        models = {m["id"]: m for m in library.speech_models()}

        assert set(models) == set(MODEL_CATALOG)
        assert models["tiny"]["downloaded"] is True
        assert models["tiny"]["selected"] is True
        assert models["tiny"]["disk_size"] == 8 * len(MODEL_FILES)
        assert models["base.en"]["downloaded"] is False
        assert models["base.en"]["selected"] is False
        assert models["base.en"]["size"] == MODEL_CATALOG["base.en"].size

    def test_needs_download(self, library):
        assert library.needs_download("tiny") is True
        assert library.needs_download("/opt/models/custom") is False

        install_model(library, "tiny")
        assert library.needs_download("tiny") is False

    def test_needs_download_respects_config(self, library):
        library.config.set('transcription.auto_download', False)
        assert library.needs_download("tiny") is False

    def test_select_model_is_saved(self, library, config_file):
        result = library.select_model("small")

        assert result == {"success": True, "model_id": "small", "downloaded": False}
        assert WaveDictateConfig(config_file).get('transcription.model') == "small"

    def test_select_unknown_model(self, library, config_file):
        result = library.select_model("huge")

        assert result["success"] is False
        assert WaveDictateConfig(config_file).get('transcription.model') == "tiny"

    def test_download_failure_is_reported(self, library):
        with patch.object(library.model_store, "download",
                          side_effect=ModelDownloadError("HTTP 404 while fetching model.bin for tiny")):
            result = asyncio.run(library.download_model("tiny"))

        assert result == {"success": False, "error": "HTTP 404 while fetching model.bin for tiny"}

    def test_download_unknown_model(self, library):
        result = asyncio.run(library.download_model("huge"))
        assert result["success"] is False
        assert "Unknown model" in result["error"]

    def test_delete_model(self, library):
        install_model(library, "tiny")

        assert library.delete_model("tiny")["success"] is True
        assert not library.model_store.is_downloaded("tiny")

    def test_cancel_download_flags_running_download(self, library):
        library.model_store._active["tiny"] = _ActiveDownload("tiny")

        assert library.cancel_download("tiny") is True
        assert library.model_store.is_downloading("tiny") is False
        assert library.cancel_download("base") is False

    def test_delete_during_download_is_refused(self, library):
        install_model(library, "tiny")
        library.model_store._active["tiny"] = _ActiveDownload("tiny")

        result = library.delete_model("tiny")

        assert result["success"] is False
        assert "download in progress" in result["error"]
        assert library.model_store.is_downloaded("tiny")


@pytest.mark.unit
class TestLLMModels:
    """LLM model listing and pulls against a local fake Ollama server."""

    def test_list_models(self, library):
        result = run_with_ollama(library, [], library.llm_models)
        assert result == {"success": True, "models": ["llama3.2:3b"], "selected": None}

    def test_pull_selects_model(self, library, config_file):
        pulled, updates = [], []

        result = run_with_ollama(library, pulled, lambda: library.pull_llm("qwen2.5:1.5b", updates.append))

        assert result["success"] is True
        assert pulled == ["qwen2.5:1.5b"]
        assert updates[0]["progress"] == 100
        assert WaveDictateConfig(config_file).get('settings.llm_model') == "qwen2.5:1.5b"

    def test_unreachable_server(self, library):
        result = asyncio.run(library.llm_models())
        assert result["success"] is False

    def test_llm_disabled(self, library):
        library.engine = None
        assert asyncio.run(library.llm_models())["success"] is False
        assert asyncio.run(library.pull_llm("llama3.2:3b"))["success"] is False


@pytest.mark.unit
class TestHistory:
    """History pages and deletion."""

    def test_history_page_includes_storage_stats(self, library):
        for index in range(3):
            library.history.append(RecordingRecord(
                id=f"rec_{index}", text=f"text {index}", original_text=f"raw {index}",
                enhanced_text=f"text {index}", timestamp=time.time(), duration_seconds=1.0,
            ))

        page = library.history_page(0, limit=2)

        assert page["success"] is True
        assert [r.id for r in page["recordings"]] == ["rec_2", "rec_1"]
        assert page["has_more"] is True
        assert page["storage"]["record_count"] == 3

    def test_delete_recording(self, library):
        library.history.append(RecordingRecord(
            id="rec_1", text="hi", original_text="hi", enhanced_text="hi",
            timestamp=time.time(), duration_seconds=1.0,
        ))

        assert library.recording("rec_1")["record"].text == "hi"
        assert library.delete_recording("rec_1") == {"success": True, "recording_id": "rec_1"}
        assert library.recording("rec_1")["success"] is False
        assert library.delete_recording("rec_1")["success"] is False
