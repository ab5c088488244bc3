"""
scheduler.py — refresh loop for the live OTP display.

Two timer tasks and any number of user inputs feed one asyncio.Queue:

    coarse timer (15s)  --CoarseTick-->  +-------+
    fine timer   (1s)   --FineTick---->  | queue |  --> consumer --> SessionState
    user / HTTP         --Select/Add-->  +-------+                --> render()

The consumer handles one event at a time in arrival order. It is the only
code that writes SessionState or calls the renderer, so a code from one
window can never be shown next to a countdown from another.

Timers only sleep and enqueue. Provider file writes run in a worker thread
awaited by the consumer, so a slow disk delays the queue but never the
timers.
"""

import asyncio
import enum
import logging
import time
from dataclasses import dataclass
from typing import Callable, List, Optional

from otp_auth.core.config import COARSE_INTERVAL, FINE_INTERVAL
from otp_auth.core.errors import OTPAuthError, SaveError, ValidationError
from otp_auth.core.events import (
    AddProvider,
    CoarseTick,
    FineTick,
    ListProviders,
    RemoveProvider,
    Reply,
    SelectProvider,
    ShowMessage,
    Snapshot,
)
from otp_auth.core.secret_source import read_secret_from_file
from otp_auth.core.session import RenderModel, SessionState
from otp_auth.database.provider_store import Provider, ProviderStore

logger = logging.getLogger(__name__)

Renderer = Callable[[RenderModel, bool], None]


class RenderMode(enum.Enum):
    NONE = 0
    PARTIAL = 1
    FULL = 2


@dataclass
class _Envelope:
    event: object
    future: Optional[asyncio.Future] = None


_STOP = _Envelope(event=None)


def _no_render(model: RenderModel, partial: bool) -> None:
    pass


class RefreshScheduler:
    """
    Owns the SessionState and the queue that serializes access to it.

    Arguments:
        store: provider list the session indexes into
        render: called as render(model, partial) after each cycle that
            changed what is shown; partial=True means only the countdown
        clock: epoch seconds source
        coarse_interval / fine_interval: timer periods in seconds
    """

    def __init__(
        self,
        store: ProviderStore,
        render: Optional[Renderer] = None,
        clock: Callable[[], float] = time.time,
        coarse_interval: float = COARSE_INTERVAL,
        fine_interval: float = FINE_INTERVAL,
    ):
        self.store = store
        self.session = SessionState(store, clock)
        self.coarse_interval = coarse_interval
        self.fine_interval = fine_interval
        self._render = render or _no_render
        self._clock = clock
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._queue: Optional[asyncio.Queue] = None
        self._consumer: Optional[asyncio.Task] = None
        self._timers: List[asyncio.Task] = []
        self._stopping = False
        self._refresh_pending = False
        self.last_model = self.session.render_model()

    # --- Lifecycle ---------------------------------------------------------
    async def start(self, timers: bool = True) -> None:
        """Start the consumer and, unless *timers* is False, both timers."""
        if self._consumer is not None:
            raise RuntimeError("scheduler already started")
        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue()
        self._consumer = asyncio.create_task(self._consume(), name="otp-consumer")
        if timers:
            self._timers = [
                asyncio.create_task(self._tick_every(self.coarse_interval, CoarseTick), name="otp-coarse"),
                asyncio.create_task(self._tick_every(self.fine_interval, FineTick), name="otp-fine"),
            ]
        logger.info(
            "scheduler started (coarse=%ss, fine=%ss, timers=%s)",
            self.coarse_interval, self.fine_interval, timers,
        )
        self.submit(Snapshot(render=True))

    async def stop(self) -> None:
        """
        Stop both timers, discard queued events and wait for the cycle in
        progress (if any) to finish.
        """
        if self._consumer is None or self._stopping:
            return
        self._stopping = True
        for task in self._timers:
            task.cancel()
        await asyncio.gather(*self._timers, return_exceptions=True)

        discarded = 0
        while True:
            try:
                envelope = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            discarded += 1
            if envelope.future is not None and not envelope.future.done():
                envelope.future.cancel()
        self._queue.put_nowait(_STOP)
        await self._consumer
        logger.info("scheduler stopped, %d queued event(s) discarded", discarded)

    async def __aenter__(self) -> "RefreshScheduler":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    @property
    def running(self) -> bool:
        return self._consumer is not None and not self._stopping

    # --- Producers ---------------------------------------------------------
    def submit(self, event) -> None:
        """Enqueue *event* without waiting. Must be called on the loop thread."""
        if self._queue is None:
            raise RuntimeError("scheduler not started")
        if self._stopping:
            logger.debug("scheduler stopping, dropped %r", event)
            return
        self._queue.put_nowait(_Envelope(event))

    async def request(self, event) -> Reply:
        """Enqueue *event* and wait until the consumer has handled it."""
        if self._queue is None or self._stopping:
            raise RuntimeError("scheduler not running")
        future = self._loop.create_future()
        self._queue.put_nowait(_Envelope(event, future))
        return await future

    def submit_threadsafe(self, event) -> None:
        """submit() for callers on other threads (terminal input reader)."""
        self._loop.call_soon_threadsafe(self.submit, event)

    def request_threadsafe(self, event, timeout: Optional[float] = None) -> Reply:
        """request() for callers on other threads (HTTP handlers). Blocks."""
        future = asyncio.run_coroutine_threadsafe(self.request(event), self._loop)
        return future.result(timeout)

    async def _tick_every(self, interval: float, make_event) -> None:
        while True:
            await asyncio.sleep(interval)
            self.submit(make_event(self._clock()))

    # --- Consumer ----------------------------------------------------------
    async def _consume(self) -> None:
        while True:
            envelope = await self._queue.get()
            if envelope is _STOP:
                break
            try:
                reply = await self._cycle(envelope.event)
            except Exception as e:
                # a broken renderer or handler must not stop the refresh loop
                logger.exception("error handling %r", envelope.event)
                if envelope.future is not None and not envelope.future.done():
                    envelope.future.set_exception(e)
                continue
            if envelope.future is not None and not envelope.future.done():
                envelope.future.set_result(reply)

    async def _cycle(self, event) -> Reply:
        now = getattr(event, "now", None)
        if now is None:
            now = self._clock()
        mode, error, value = await self._handle(event, now)
        model = self.session.render_model(now)
        self.last_model = model
        if mode is not RenderMode.NONE:
            self._render(model, mode is RenderMode.PARTIAL)
        return Reply(model, error, value)

    async def _handle(self, event, now: float):
        session = self.session

        if isinstance(event, CoarseTick):
            self._refresh_pending = False
            if session.selected_index is None:
                return RenderMode.NONE, None, None
            session.refresh(now)
            return RenderMode.FULL, None, None

        if isinstance(event, FineTick):
            if session.code_expired(now):
                # window rolled over before the coarse timer fired; the queued
                # refresh does the next full render
                if not self._refresh_pending:
                    self._refresh_pending = True
                    self.submit(CoarseTick(now))
                return RenderMode.NONE, None, None
            if session.current_code is None:
                return RenderMode.NONE, None, None
            return RenderMode.PARTIAL, None, None

        if isinstance(event, SelectProvider):
            session.set_notice()
            session.select(event.index, now)
            return RenderMode.FULL, None, None

        if isinstance(event, AddProvider):
            error = await self._add_provider(event, now)
            return RenderMode.FULL, error, None

        if isinstance(event, RemoveProvider):
            error = await self._remove_provider(event)
            return RenderMode.FULL, error, None

        if isinstance(event, ShowMessage):
            session.set_notice(event.notice, event.error)
            return RenderMode.FULL, None, None

        if isinstance(event, ListProviders):
            return RenderMode.NONE, None, self.store.names()

        if isinstance(event, Snapshot):
            return (RenderMode.FULL if event.render else RenderMode.NONE), None, None

        raise TypeError(f"unknown event {event!r}")

    async def _add_provider(self, event: AddProvider, now: float) -> Optional[OTPAuthError]:
        form = event.form
        try:
            secret = form.secret
            if not secret.strip() and form.file_path:
                secret = await asyncio.to_thread(read_secret_from_file, form.file_path)
            provider = Provider.create(form.name, secret)
            index = await asyncio.to_thread(self.store.add, provider)
        except SaveError as e:
            logger.error("error saving providers: %s", e)
            self.session.set_notice(error=f"Error saving providers: {e}")
            return e
        except OTPAuthError as e:
            logger.info("add provider rejected: %s", e)
            self.session.set_notice(error=str(e))
            return e

        logger.info("added provider %r at index %d", provider.name, index)
        self.session.set_notice(
            notice=f"Added new provider: {provider.name} (saved to {self.store.path})"
        )
        self.session.select(index, now)
        return None

    async def _remove_provider(self, event: RemoveProvider) -> Optional[OTPAuthError]:
        if not 0 <= event.index < len(self.store):
            error = ValidationError(f"No provider at position {event.index + 1}")
            self.session.set_notice(error=str(error))
            return error
        try:
            removed = await asyncio.to_thread(self.store.remove, event.index)
        except SaveError as e:
            logger.error("error saving providers: %s", e)
            self.session.set_notice(error=f"Error saving providers: {e}")
            return e
        self.session.provider_removed(event.index)
        self.session.set_notice(notice=f"Removed provider: {removed.name}")
        logger.info("removed provider %r", removed.name)
        return None
