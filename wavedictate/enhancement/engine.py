"""Local LLM engine talking to an Ollama server."""

import json
import time
import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

import aiohttp

from ..errors import LLMEngineError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LLMHandle:
    """A model the server has loaded for us."""
    model: str
    loaded_at: float = field(default_factory=time.time)


PullProgressCallback = Callable[[dict], None]


class OllamaEngine:
    """Minimal client for the Ollama generate API on localhost."""

    def __init__(self, base_url: str = "http://localhost:11434",
                 keep_alive: str = "10m", request_timeout: float = 120.0):
        """Initialize the engine.

        Args:
            base_url: Ollama server URL
            keep_alive: How long the server keeps a loaded model in memory
            request_timeout: Total timeout in seconds for one request
        """
        self.base_url = base_url.rstrip("/")
        self.keep_alive = keep_alive
        self.timeout = aiohttp.ClientTimeout(total=request_timeout)

        logger.info(f"OllamaEngine initialized with server: {self.base_url}")

    async def _post(self, path: str, payload: dict) -> dict:
        async with aiohttp.ClientSession(timeout=self.timeout) as session:
            async with session.post(f"{self.base_url}{path}", json=payload) as response:
                if response.status != 200:
                    error_text = await response.text()
                    raise LLMEngineError(f"Ollama API error: {response.status} - {error_text}")
                return await response.json()

    async def load_model(self, model: str) -> LLMHandle:
        """Ask the server to load ``model`` and keep it resident.

        Raises:
            LLMEngineError: if the server rejects the request
            aiohttp.ClientError: if the server is unreachable
        """
        await self._post("/api/generate", {"model": model, "keep_alive": self.keep_alive})
        logger.info(f"LLM model loaded: {model}")
        return LLMHandle(model=model)

    async def generate(self, handle: LLMHandle, prompt: str, temperature: float = 0.3,
                       max_tokens: int = 512, top_p: float = 0.8) -> str:
        """Generate a completion for ``prompt``.

        Returns:
            The stripped response text
        """
        data = {
            "model": handle.model,
            "prompt": prompt,
            "stream": False,
            "keep_alive": self.keep_alive,
            "options": {
                "temperature": temperature,
                "num_predict": max_tokens,
                "top_p": top_p,
            },
        }
        result = await self._post("/api/generate", data)
        return (result.get("response") or "").strip()

    async def dispose(self, handle: LLMHandle) -> None:
        """Unload the model from server memory."""
        await self._post("/api/generate", {"model": handle.model, "keep_alive": 0})
        logger.info(f"LLM model unloaded: {handle.model}")

    async def list_models(self) -> list:
        """Names of models available on the server."""
        async with aiohttp.ClientSession(timeout=self.timeout) as session:
            async with session.get(f"{self.base_url}/api/tags") as response:
                if response.status != 200:
                    raise LLMEngineError(f"Ollama API error: {response.status}")
                result = await response.json()
        return [m.get("name", "") for m in result.get("models", [])]

    async def pull_model(self, model: str,
                         progress_callback: Optional[PullProgressCallback] = None) -> None:
        """Download ``model`` onto the server, reporting progress as it streams."""
        timeout = aiohttp.ClientTimeout(total=None, sock_read=self.timeout.total)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.post(f"{self.base_url}/api/pull",
                                    json={"model": model, "stream": True}) as response:
                if response.status != 200:
                    error_text = await response.text()
                    raise LLMEngineError(f"Ollama pull failed: {response.status} - {error_text}")

                async for line in response.content:
                    if not line.strip():
                        continue
                    update = json.loads(line)
                    if "error" in update:
                        raise LLMEngineError(f"Ollama pull failed: {update['error']}")
                    if progress_callback is not None:
                        total = update.get("total") or 0
                        completed = update.get("completed") or 0
                        progress_callback({
                            "model_id": model,
                            "status": update.get("status", ""),
                            "progress": round(completed / total * 100) if total else 0,
                            "downloaded_size": completed,
                            "total_size": total,
                        })
        logger.info(f"Pulled LLM model: {model}")
