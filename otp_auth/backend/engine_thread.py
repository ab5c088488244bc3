"""
engine_thread.py — run the RefreshScheduler on a background asyncio loop.

Flask handles requests on its own threads. They reach the session only
through EngineThread.call(), which queues the event on the scheduler and
waits for the consumer's reply.
"""

import asyncio
import logging
import threading
from typing import Optional

from otp_auth.core.config import COARSE_INTERVAL, FINE_INTERVAL
from otp_auth.core.events import Reply, ShowMessage
from otp_auth.core.errors import LoadError
from otp_auth.core.scheduler import RefreshScheduler, Renderer
from otp_auth.database.provider_store import ProviderStore

logger = logging.getLogger(__name__)

CALL_TIMEOUT = 10.0


class EngineThread(threading.Thread):
    def __init__(
        self,
        store: ProviderStore,
        load_error: Optional[LoadError] = None,
        render: Optional[Renderer] = None,
        coarse_interval: float = COARSE_INTERVAL,
        fine_interval: float = FINE_INTERVAL,
    ):
        super().__init__(name="otp-engine", daemon=True)
        self.scheduler = RefreshScheduler(
            store, render, coarse_interval=coarse_interval, fine_interval=fine_interval
        )
        self._load_error = load_error
        self._ready = threading.Event()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._stop_event: Optional[asyncio.Event] = None
        self._failure: Optional[BaseException] = None

    def run(self) -> None:
        try:
            asyncio.run(self._main())
        except BaseException as e:
            self._failure = e
            self._ready.set()
            logger.exception("engine thread crashed")

    async def _main(self) -> None:
        self._loop = asyncio.get_running_loop()
        self._stop_event = asyncio.Event()
        async with self.scheduler:
            if self._load_error is not None:
                self.scheduler.submit(ShowMessage(error=f"Error loading providers: {self._load_error}"))
            self._ready.set()
            await self._stop_event.wait()

    def start_and_wait(self, timeout: float = CALL_TIMEOUT) -> "EngineThread":
        """Start the thread and block until the scheduler accepts events."""
        self.start()
        if not self._ready.wait(timeout):
            raise RuntimeError("engine did not start in time")
        if self._failure is not None:
            raise RuntimeError(f"engine failed to start: {self._failure}")
        return self

    def call(self, event, timeout: float = CALL_TIMEOUT) -> Reply:
        return self.scheduler.request_threadsafe(event, timeout)

    def shutdown(self, timeout: float = CALL_TIMEOUT) -> None:
        if self._loop is not None and not self._loop.is_closed():
            self._loop.call_soon_threadsafe(self._stop_event.set)
        self.join(timeout)
