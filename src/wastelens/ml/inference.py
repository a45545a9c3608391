"""Classification concurrency layer.

Architecture:
    FastAPI (async) -> asyncio.Semaphore(N) -> ThreadPoolExecutor(N) -> heuristic classifier

Requests beyond the semaphore limit queue for ``queue_timeout`` seconds, then
fail with PoolBusyError. A running classification that exceeds
``classify_timeout`` seconds fails with ClassificationTimeoutError; its slot is
only freed once the worker thread returns, so abandoned work still counts
against ``max_concurrent``.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, TypeVar

from wastelens.errors import ClassificationTimeoutError, PoolBusyError

if TYPE_CHECKING:
    from collections.abc import Callable

    from wastelens.config import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ClassificationPool:
    """Manages the semaphore and thread pool for classification work."""

    def __init__(self, settings: Settings) -> None:
        self._semaphore = asyncio.Semaphore(settings.max_concurrent)
        self._executor = ThreadPoolExecutor(
            max_workers=settings.max_concurrent,
            thread_name_prefix="wastelens-classify",
        )
        self._queue_timeout = settings.queue_timeout
        self._classify_timeout = settings.classify_timeout
        self._active_count: int = 0
        self._queue_depth: int = 0
        self._counter_lock = threading.Lock()

    async def run(self, func: Callable[..., T], *args: object) -> T:
        """Run a synchronous function in the classification thread pool.

        Raises:
            PoolBusyError: If no slot frees up within the queue timeout.
            ClassificationTimeoutError: If the call exceeds the classify timeout.
        """
        with self._counter_lock:
            self._queue_depth += 1
        try:
            await asyncio.wait_for(self._semaphore.acquire(), timeout=self._queue_timeout)
        except TimeoutError:
            logger.warning("No classification slot free after %.1fs", self._queue_timeout)
            raise PoolBusyError from None
        finally:
            with self._counter_lock:
                self._queue_depth -= 1

        with self._counter_lock:
            self._active_count += 1
        try:
            future = asyncio.get_running_loop().run_in_executor(self._executor, func, *args)
        except BaseException:
            self._release_slot()
            raise
        # The slot stays held until the worker thread returns, even after a timeout
        future.add_done_callback(self._on_worker_done)

        try:
            return await asyncio.wait_for(asyncio.shield(future), timeout=self._classify_timeout)
        except TimeoutError:
            logger.warning("Classification exceeded %.1fs budget", self._classify_timeout)
            raise ClassificationTimeoutError from None

    def _on_worker_done(self, future: asyncio.Future[object]) -> None:
        if not future.cancelled() and future.exception() is not None:
            logger.debug("Worker finished with %r", future.exception())
        self._release_slot()

    def _release_slot(self) -> None:
        self._semaphore.release()
        with self._counter_lock:
            self._active_count -= 1

    @property
    def active_count(self) -> int:
        """Number of currently running classifications."""
        with self._counter_lock:
            return self._active_count

    @property
    def queue_depth(self) -> int:
        """Number of requests waiting for a semaphore slot."""
        with self._counter_lock:
            return self._queue_depth

    def shutdown(self) -> None:
        """Shut down the thread pool executor."""
        self._executor.shutdown(wait=True)
