"""
Debounced Task Queue - Innovation Assessment Client
assessment_app/sync/debounced_queue.py

Keyed debounce on the asyncio loop: scheduling a key again before its timer
fires replaces the payload and restarts the timer, so a burst of edits to the
same key produces one handler call with the latest payload.

Handler calls for the same key never overlap (per-key lock); different keys
run independently.
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

import structlog

logger = structlog.get_logger(__name__)

Handler = Callable[[str, Any], Awaitable[Any]]


class DebouncedTaskQueue:
    """Reusable keyed debounce with explicit flush and cancel."""

    def __init__(self, handler: Handler, delay_seconds: float, name: str = "debounce"):
        if delay_seconds < 0:
            raise ValueError(f"delay_seconds must be >= 0, got {delay_seconds}")
        self._handler = handler
        self.delay_seconds = delay_seconds
        self.name = name
        self._timers: Dict[str, asyncio.TimerHandle] = {}
        self._payloads: Dict[str, Any] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._tasks: Set[asyncio.Task] = set()
        self._closed = False

    # -- scheduling ------------------------------------------------------

    def schedule(self, key: str, payload: Any = None) -> None:
        """(Re)start the timer for `key`; must be called from the running loop."""
        if self._closed:
            raise RuntimeError(f"{self.name} queue is closed")
        loop = asyncio.get_running_loop()
        self._payloads[key] = payload
        self._cancel_timer(key)
        self._timers[key] = loop.call_later(self.delay_seconds, self._fire, key)

    def is_scheduled(self, key: str) -> bool:
        return key in self._timers

    @property
    def pending_keys(self) -> List[str]:
        """Keys holding a payload that has not been handed to the handler yet."""
        return sorted(self._payloads)

    # -- running ---------------------------------------------------------

    async def flush(self, key: str) -> Any:
        """
        Run the handler for `key` now instead of waiting for its timer.

        Returns the handler's result, or None when nothing was pending. Handler
        exceptions propagate to the caller.
        """
        self._cancel_timer(key)
        if key not in self._payloads:
            return None
        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            # a concurrent flush may have consumed it while we waited
            if key not in self._payloads:
                return None
            payload = self._payloads.pop(key)
            return await self._handler(key, payload)

    async def run_now(self, key: str, payload: Any = None) -> Any:
        """Replace the payload for `key` and flush it immediately."""
        if self._closed:
            raise RuntimeError(f"{self.name} queue is closed")
        self._payloads[key] = payload
        return await self.flush(key)

    async def flush_all(self) -> Dict[str, Any]:
        """
        Flush every pending key concurrently.

        Returns key -> handler result, or the exception the handler raised.
        """
        keys = sorted(set(self._payloads) | set(self._timers))
        results = await asyncio.gather(
            *(self.flush(k) for k in keys), return_exceptions=True
        )
        return dict(zip(keys, results))

    # -- cancelling ------------------------------------------------------

    def cancel(self, key: str) -> None:
        """Drop the timer and payload for `key`. An in-flight handler call is not interrupted."""
        self._cancel_timer(key)
        self._payloads.pop(key, None)

    def cancel_all(self) -> None:
        for key in list(self._timers):
            self._cancel_timer(key)
        self._payloads.clear()

    async def aclose(self) -> None:
        """Cancel all timers and wait for handler calls already running."""
        self._closed = True
        self.cancel_all()
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # -- internals -------------------------------------------------------

    def _cancel_timer(self, key: str) -> None:
        timer: Optional[asyncio.TimerHandle] = self._timers.pop(key, None)
        if timer is not None:
            timer.cancel()

    def _fire(self, key: str) -> None:
        self._timers.pop(key, None)
        task = asyncio.get_running_loop().create_task(self.flush(key))
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "debounced_task_failed",
                queue=self.name,
                error=str(exc),
                error_type=type(exc).__name__,
            )
