import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Hashable, Optional

logger = logging.getLogger(__name__)

class Debouncer:
    """Per-key trailing-edge debounce on the running event loop.

    Each ``schedule`` call cancels the pending call for the same key and
    starts a new timer. Only the last call within ``delay`` seconds runs.
    """

    def __init__(self, delay: float):
        self.delay = delay
        self._pending: Dict[Hashable, asyncio.Task] = {}

    def schedule(self, key: Hashable, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> asyncio.Task:
        self.cancel(key)
        task = asyncio.get_running_loop().create_task(self._fire(key, func, args, kwargs))
        self._pending[key] = task
        return task

    async def _fire(self, key, func, args, kwargs):
        try:
            await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            return None
        # the timer elapsed; from here on the call is no longer cancellable by schedule()
        if self._pending.get(key) is asyncio.current_task():
            del self._pending[key]
        return await func(*args, **kwargs)

    def cancel(self, key: Hashable) -> bool:
        task = self._pending.pop(key, None)
        if task is not None and not task.done():
            task.cancel()
            return True
        return False

    def is_pending(self, key: Hashable) -> bool:
        task = self._pending.get(key)
        return task is not None and not task.done()

    def cancel_all(self):
        for key in list(self._pending):
            self.cancel(key)

    async def flush(self, key: Hashable) -> Optional[Any]:
        """Wait for the pending call of ``key`` (if any) and return its result."""
        task = self._pending.get(key)
        if task is None:
            return None
        return await task
