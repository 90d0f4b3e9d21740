"""
Background asyncio runtime.

The monitoring core is asyncio-based while Flask request handlers are
synchronous. ``AsyncRuntime`` owns one event loop running in a daemon thread;
handlers submit coroutines with :meth:`AsyncRuntime.run` and block on the
result. All garden state is therefore only ever touched from the loop thread.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import logging
import threading
from typing import Any, Coroutine, Optional, TypeVar

from garden_monitor.domain.exceptions import UpstreamUnavailable

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AsyncRuntime:
    def __init__(self, name: str = "garden-monitor-loop"):
        self.name = name
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._ready = threading.Event()
        self._lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and self._loop is not None

    @property
    def loop(self) -> Optional[asyncio.AbstractEventLoop]:
        return self._loop

    def start(self) -> None:
        with self._lock:
            if self.is_running:
                return
            self._ready.clear()
            self._loop = asyncio.new_event_loop()
            self._thread = threading.Thread(target=self._run_loop, name=self.name, daemon=True)
            self._thread.start()
        self._ready.wait()
        logger.info("Async runtime '%s' started", self.name)

    def _run_loop(self) -> None:
        loop = self._loop
        asyncio.set_event_loop(loop)
        loop.call_soon(self._ready.set)
        try:
            loop.run_forever()
        finally:
            pending = [t for t in asyncio.all_tasks(loop) if not t.done()]
            for task in pending:
                task.cancel()
            if pending:
                loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
            loop.run_until_complete(loop.shutdown_asyncgens())
            loop.close()

    def run(self, coro: Coroutine[Any, Any, T], timeout: Optional[float] = None) -> T:
        """Run ``coro`` on the background loop and wait for its result.

        Raises:
            RuntimeError: the runtime is not started, or called from the loop thread
            UpstreamUnavailable: ``timeout`` elapsed (the coroutine is cancelled)
        """
        if not self.is_running:
            coro.close()
            raise RuntimeError(f"Async runtime '{self.name}' is not running")
        if threading.current_thread() is self._thread:
            coro.close()
            raise RuntimeError("AsyncRuntime.run() cannot be called from the loop thread")

        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        try:
            return future.result(timeout)
        except concurrent.futures.TimeoutError as exc:
            future.cancel()
            raise UpstreamUnavailable(
                f"Operation did not finish within {timeout:g}s",
                detail={"timeout_s": timeout},
            ) from exc

    def stop(self, timeout: float = 5.0) -> None:
        with self._lock:
            loop, thread = self._loop, self._thread
            if loop is None or thread is None:
                return
            if thread.is_alive():
                loop.call_soon_threadsafe(loop.stop)
                thread.join(timeout)
            self._loop = None
            self._thread = None
        logger.info("Async runtime '%s' stopped", self.name)
