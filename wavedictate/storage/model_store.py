"""Download and cache management for local faster-whisper models."""

import shutil
import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Any, List, Optional

import aiohttp

from ..errors import ModelDownloadError, ModelNotAvailableError

logger = logging.getLogger(__name__)


HF_RESOLVE_URL = "https://huggingface.co/{repo}/resolve/main/{filename}"
MODEL_FILES = ("model.bin", "config.json", "tokenizer.json", "vocabulary.txt")
DOWNLOAD_CHUNK_SIZE = 1024 * 1024
DISK_SPACE_MARGIN = 1.2

ProgressCallback = Callable[[Dict[str, Any]], None]


@dataclass(frozen=True)
class ModelInfo:
    """A speech model the store knows how to fetch."""
    id: str
    name: str
    repo: str
    size: int                # Approximate download size in bytes


MB = 1024 * 1024

MODEL_CATALOG: Dict[str, ModelInfo] = {
    info.id: info for info in [
        ModelInfo("tiny", "Whisper Tiny", "Systran/faster-whisper-tiny", 75 * MB),
        ModelInfo("base", "Whisper Base", "Systran/faster-whisper-base", 145 * MB),
        ModelInfo("base.en", "Whisper Base (English)", "Systran/faster-whisper-base.en", 145 * MB),
        ModelInfo("small", "Whisper Small", "Systran/faster-whisper-small", 484 * MB),
        ModelInfo("medium", "Whisper Medium", "Systran/faster-whisper-medium", 1530 * MB),
        ModelInfo("large-v3-turbo", "Whisper Large V3 Turbo",
                  "mobiuslabsgmbh/faster-whisper-large-v3-turbo", 1620 * MB),
    ]
}


class _ActiveDownload:
    def __init__(self, model_id: str):
        self.model_id = model_id
        self.cancelled = False


class ModelStore:
    """Keeps downloaded models under ``models_dir/<model_id>/``."""

    def __init__(self, models_dir: str, catalog: Optional[Dict[str, ModelInfo]] = None):
        self.models_dir = Path(models_dir)
        self.catalog = catalog if catalog is not None else MODEL_CATALOG
        self._active: Dict[str, _ActiveDownload] = {}

        self.models_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"ModelStore initialized with models_dir: {self.models_dir}")

    def _info(self, model_id: str) -> ModelInfo:
        info = self.catalog.get(model_id)
        if info is None:
            raise ModelNotAvailableError(f"Unknown model: {model_id}")
        return info

    def model_path(self, model_id: str) -> Path:
        self._info(model_id)
        return self.models_dir / model_id

    def is_downloaded(self, model_id: str) -> bool:
        if model_id not in self.catalog:
            return False
        path = self.models_dir / model_id
        return all((path / filename).is_file() for filename in MODEL_FILES)

    def is_downloading(self, model_id: str) -> bool:
        download = self._active.get(model_id)
        return download is not None and not download.cancelled

    def available_models(self) -> List[Dict[str, Any]]:
        return [{"id": m.id, "name": m.name, "size": m.size} for m in self.catalog.values()]

    def status(self) -> Dict[str, Dict[str, Any]]:
        """Per-model download state for every catalog entry."""
        status = {}
        for model_id in self.catalog:
            downloaded = self.is_downloaded(model_id)
            path = self.models_dir / model_id
            size = sum(p.stat().st_size for p in path.iterdir() if p.is_file()) if downloaded else 0
            status[model_id] = {
                "downloaded": downloaded,
                "path": str(path) if downloaded else None,
                "size": size,
                "downloading": self.is_downloading(model_id),
            }
        return status

    def _check_disk_space(self, info: ModelInfo) -> None:
        available = shutil.disk_usage(self.models_dir).free
        required = info.size * DISK_SPACE_MARGIN
        if available < required:
            raise ModelDownloadError(
                f"Insufficient disk space. Available: {available / 1024 ** 3:.2f} GB, "
                f"Required: {required / 1024 ** 3:.2f} GB"
            )

    async def download(self, model_id: str,
                       progress_callback: Optional[ProgressCallback] = None) -> Dict[str, Any]:
        """Fetch every file of ``model_id``, reporting overall progress.

        Returns:
            Dictionary with ``success``, ``path`` and ``message``

        Raises:
            ModelNotAvailableError: for an unknown model id
            ModelDownloadError: if a download of this model is already running,
                the disk is too full, the transfer fails or it was cancelled
        """
        if self.is_downloading(model_id):
            raise ModelDownloadError(f"Model {model_id} is already being downloaded")
        self._active.pop(model_id, None)

        info = self._info(model_id)
        target_dir = self.models_dir / model_id

        if self.is_downloaded(model_id):
            logger.info(f"Model {model_id} already exists at {target_dir}")
            return {"success": True, "path": str(target_dir), "message": "Model already exists"}

        self._check_disk_space(info)

        download = _ActiveDownload(model_id)
        self._active[model_id] = download
        partial_dir = self.models_dir / f".{model_id}.partial"

        try:
            await self._fetch_files(info, partial_dir, download, progress_callback)
            if target_dir.exists():
                shutil.rmtree(target_dir)
            partial_dir.rename(target_dir)
        except (ModelDownloadError, asyncio.CancelledError):
            shutil.rmtree(partial_dir, ignore_errors=True)
            raise
        except (aiohttp.ClientError, OSError) as e:
            shutil.rmtree(partial_dir, ignore_errors=True)
            logger.error(f"Download failed for {model_id}: {e}")
            raise ModelDownloadError(f"Failed to download {info.name}: {e}") from e
        finally:
            self._active.pop(model_id, None)

        logger.info(f"Download completed for {model_id}")
        return {
            "success": True,
            "path": str(target_dir),
            "message": f"Successfully downloaded {info.name}",
        }

    async def _fetch_files(self, info: ModelInfo, partial_dir: Path,
                           download: _ActiveDownload,
                           progress_callback: Optional[ProgressCallback]) -> None:
        partial_dir.mkdir(parents=True, exist_ok=True)
        downloaded_size = 0
        timeout = aiohttp.ClientTimeout(total=None, sock_connect=30, sock_read=60)

        async with aiohttp.ClientSession(timeout=timeout) as session:
            for filename in MODEL_FILES:
                url = HF_RESOLVE_URL.format(repo=info.repo, filename=filename)
                logger.info(f"Downloading {url}")
                async with session.get(url) as response:
                    if response.status != 200:
                        raise ModelDownloadError(
                            f"HTTP {response.status} while fetching {filename} for {info.id}"
                        )
                    with open(partial_dir / filename, "wb") as f:
                        async for chunk in response.content.iter_chunked(DOWNLOAD_CHUNK_SIZE):
                            if download.cancelled:
                                logger.info(f"Download cancelled for {info.id}")
                                raise ModelDownloadError(f"Download cancelled for {info.name}")
                            f.write(chunk)
                            downloaded_size += len(chunk)
                            if progress_callback is not None:
                                total_size = max(info.size, downloaded_size)
                                progress_callback({
                                    "model_id": info.id,
                                    "progress": round(downloaded_size / total_size * 100),
                                    "downloaded_size": downloaded_size,
                                    "total_size": total_size,
                                })

    def cancel(self, model_id: str) -> bool:
        """Stop an in-flight download of ``model_id``."""
        download = self._active.get(model_id)
        if download is None:
            return False
        download.cancelled = True
        logger.info(f"Cancelled download for {model_id}")
        return True

    def delete(self, model_id: str) -> Dict[str, Any]:
        """Remove a downloaded model.

        Raises:
            ModelNotAvailableError: for an unknown model id
            ModelDownloadError: while a download of the model is running
        """
        info = self._info(model_id)
        if self.is_downloading(model_id):
            raise ModelDownloadError(f"Cannot delete model {model_id}: download in progress")

        path = self.models_dir / model_id
        if not path.exists():
            return {"success": True, "message": f"Model {info.name} was not found"}

        shutil.rmtree(path)
        logger.info(f"Deleted model {model_id}")
        return {"success": True, "message": f"Deleted {info.name}"}
