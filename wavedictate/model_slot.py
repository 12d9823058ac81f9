"""Process-wide holder for one loaded model of a given kind."""

import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class SlotState(Enum):
    UNLOADED = "unloaded"
    LOADING = "loading"
    READY = "ready"


Loader = Callable[[str], Awaitable[Any]]
Disposer = Callable[[Any], Awaitable[None]]


class ModelSlot:
    """Keeps at most one model handle alive.

    Loads are serialized: a caller asking for the model that is currently
    loading waits for that load and gets the same handle. Switching to a
    different model disposes the previous handle before the new load starts.
    """

    def __init__(self, name: str, loader: Loader, disposer: Optional[Disposer] = None):
        self.name = name
        self._loader = loader
        self._disposer = disposer
        self._lock = asyncio.Lock()
        self.state = SlotState.UNLOADED
        self.key: Optional[str] = None
        self.handle: Any = None

    @property
    def is_ready(self) -> bool:
        return self.state == SlotState.READY

    async def acquire(self, key: str) -> Any:
        """Return the handle for ``key``, loading it if needed.

        Raises:
            Whatever the loader raises; the slot is left UNLOADED.
        """
        if self.state == SlotState.READY and self.key == key:
            return self.handle

        async with self._lock:
            # Another caller may have loaded it while we waited
            if self.state == SlotState.READY and self.key == key:
                return self.handle

            await self._dispose_current()

            self.state = SlotState.LOADING
            self.key = key
            logger.info(f"[{self.name}] Loading model: {key}")
            try:
                handle = await self._loader(key)
            except BaseException:
                self.state = SlotState.UNLOADED
                self.key = None
                raise

            self.handle = handle
            self.state = SlotState.READY
            logger.info(f"[{self.name}] Model ready: {key}")
            return handle

    async def release(self) -> None:
        """Dispose the current handle, if any."""
        async with self._lock:
            await self._dispose_current()

    async def _dispose_current(self) -> None:
        if self.handle is None:
            self.state = SlotState.UNLOADED
            self.key = None
            return

        handle, key = self.handle, self.key
        self.handle = None
        self.key = None
        self.state = SlotState.UNLOADED
        if self._disposer is not None:
            try:
                await self._disposer(handle)
            except Exception as e:
                logger.warning(f"[{self.name}] Error disposing model {key}: {e}")
        logger.info(f"[{self.name}] Released model: {key}")
