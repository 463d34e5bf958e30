from __future__ import annotations

import asyncio
import time
from collections import deque
from contextlib import asynccontextmanager, suppress
from dataclasses import dataclass
from typing import AsyncIterator, Awaitable, Callable, Deque, Dict, Optional, TypeVar

from .config import CrawlOptions
from .error_codes import PoolCapacityError, PoolClosedError, SessionCreationError
from .logging_utils import _crawl_event
from .session import SessionFactory, WebSession

T = TypeVar("T")

# Handed to a waiter instead of a session: "a slot is free, create your own".
_SLOT = object()


@dataclass
class _IdleEntry:
    session: WebSession
    idle_since: float


class SessionPool:
    """
    Bounded pool of browser sessions.

    - At most ``max_sessions`` sessions exist at once (idle, borrowed, being
      created, or in transit to a waiter).
    - Borrowers beyond that queue FIFO; once ``max_waiting_clients`` are
      queued, further ``acquire`` calls fail fast with PoolCapacityError.
    - Sessions are validated on every hand-out; invalid ones are destroyed and
      their slot passed on, never reused.
    """

    def __init__(
        self,
        factory: SessionFactory,
        *,
        max_sessions: int = 8,
        max_waiting_clients: int = 600,
        soft_idle_timeout: float = 600.0,
        eviction_interval: float = 180.0,
        acquire_timeout: Optional[float] = None,
        fifo: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._factory = factory
        self._max = max(1, max_sessions)
        self._max_waiting = max(0, max_waiting_clients)
        self._soft_idle_timeout = soft_idle_timeout
        self._eviction_interval = eviction_interval
        self._acquire_timeout = acquire_timeout
        self._fifo = fifo
        self._clock = clock

        self._size = 0
        self._idle: Deque[_IdleEntry] = deque()
        self._borrowed: Dict[int, WebSession] = {}
        self._waiters: Deque[asyncio.Future] = deque()
        self._draining = False
        self._settled: Optional[asyncio.Event] = None
        self._eviction_task: Optional[asyncio.Task] = None
        self._peak_borrowed = 0

    @classmethod
    def from_options(cls, factory: SessionFactory, options: CrawlOptions) -> "SessionPool":
        return cls(
            factory,
            max_sessions=options.max_sessions,
            max_waiting_clients=options.max_waiting_clients,
            soft_idle_timeout=options.soft_idle_timeout_seconds,
            eviction_interval=options.eviction_interval_seconds,
            acquire_timeout=options.acquire_timeout_seconds,
        )

    @property
    def max_sessions(self) -> int:
        return self._max

    @property
    def size(self) -> int:
        return self._size

    @property
    def borrowed(self) -> int:
        return len(self._borrowed)

    @property
    def available(self) -> int:
        return len(self._idle)

    @property
    def pending(self) -> int:
        return sum(1 for waiter in self._waiters if not waiter.done())

    @property
    def peak_borrowed(self) -> int:
        return self._peak_borrowed

    # -- borrowing -----------------------------------------------------

    async def acquire(self) -> WebSession:
        if self._draining:
            raise PoolClosedError("pool is draining")
        self._start_evictor()

        if not self._idle and self._size >= self._max and self.pending >= self._max_waiting:
            _crawl_event(
                "error",
                phase="pool",
                kind="queue_full",
                pending=self.pending,
                max_waiting=self._max_waiting,
            )
            raise PoolCapacityError(
                f"{self.pending} borrowers already waiting (limit {self._max_waiting})"
            )

        has_slot = False
        while True:
            if not has_slot:
                session = await self._take_idle()
                if session is not None:
                    return self._lend(session)
                if self._size < self._max:
                    self._size += 1
                    has_slot = True
            if has_slot:
                return self._lend(await self._create())

            outcome = await self._wait_turn()
            if outcome is _SLOT:
                has_slot = True
                continue
            if self._factory.validate(outcome):
                return self._lend(outcome)
            # Dead on arrival: close it but keep its slot for ourselves.
            try:
                await self._dispose(outcome, reason="invalid_on_borrow")
            except BaseException:
                self._free_slot()
                raise
            has_slot = True

    async def release(self, session: WebSession) -> None:
        if self._borrowed.pop(id(session), None) is None:
            raise ValueError("session was not borrowed from this pool")
        if not self._factory.validate(session):
            await self._destroy(session, reason="invalid_on_release")
            return
        self._hand_off(session)

    @asynccontextmanager
    async def session(self) -> AsyncIterator[WebSession]:
        """Borrow a session for one unit of work; always returned."""

        session = await self.acquire()
        try:
            yield session
        finally:
            await self.release(session)

    async def with_session(self, work: Callable[[WebSession], Awaitable[T]]) -> T:
        async with self.session() as session:
            return await work(session)

    # -- lifecycle -----------------------------------------------------

    async def evict_idle(self) -> int:
        """Destroy idle sessions older than the soft idle timeout."""

        now = self._clock()
        keep: Deque[_IdleEntry] = deque()
        stale = []
        for entry in self._idle:
            if now - entry.idle_since > self._soft_idle_timeout:
                stale.append(entry)
            else:
                keep.append(entry)
        self._idle = keep
        for entry in stale:
            await self._destroy(entry.session, reason="idle")
        return len(stale)

    async def drain(self) -> None:
        """Refuse new borrowers, wait for outstanding work, destroy everything."""

        self._draining = True
        _crawl_event("pool", kind="drain", size=self._size, borrowed=self.borrowed, pending=self.pending)
        if not self._is_settled():
            self._settled = asyncio.Event()
            await self._settled.wait()
        await self.clear()

    async def clear(self) -> None:
        """Destroy all idle sessions and stop the eviction sweep."""

        if self._eviction_task is not None:
            self._eviction_task.cancel()
            with suppress(asyncio.CancelledError):
                await self._eviction_task
            self._eviction_task = None
        while self._idle:
            entry = self._idle.popleft()
            await self._destroy(entry.session, reason="clear")

    # -- internals -----------------------------------------------------

    def _lend(self, session: WebSession) -> WebSession:
        self._borrowed[id(session)] = session
        self._peak_borrowed = max(self._peak_borrowed, len(self._borrowed))
        return session

    async def _take_idle(self) -> Optional[WebSession]:
        while self._idle:
            entry = self._idle.popleft() if self._fifo else self._idle.pop()
            if self._clock() - entry.idle_since > self._soft_idle_timeout:
                await self._destroy(entry.session, reason="idle")
                continue
            if not self._factory.validate(entry.session):
                await self._destroy(entry.session, reason="invalid_on_borrow")
                continue
            return entry.session
        return None

    async def _create(self) -> WebSession:
        try:
            session = await self._factory.create()
        except BaseException as exc:
            self._free_slot()
            if isinstance(exc, Exception):
                _crawl_event("error", phase="pool", kind="create_failed", error=str(exc))
                raise SessionCreationError(f"could not create session: {exc}") from exc
            raise
        _crawl_event("pool", kind="create", size=self._size)
        return session

    async def _wait_turn(self) -> object:
        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        try:
            if self._acquire_timeout:
                return await asyncio.wait_for(waiter, self._acquire_timeout)
            return await waiter
        except BaseException as exc:
            # Gave up after being served: pass what we got to the next in line.
            if waiter.done() and not waiter.cancelled():
                outcome = waiter.result()
                if outcome is _SLOT:
                    self._free_slot()
                else:
                    self._hand_off(outcome)
            if isinstance(exc, asyncio.TimeoutError):
                raise PoolCapacityError(
                    f"no session became available within {self._acquire_timeout}s"
                ) from None
            raise
        finally:
            with suppress(ValueError):
                self._waiters.remove(waiter)

    def _next_waiter(self) -> Optional[asyncio.Future]:
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                return waiter
        return None

    def _hand_off(self, session: WebSession) -> None:
        waiter = self._next_waiter()
        if waiter is not None:
            waiter.set_result(session)
        else:
            self._idle.append(_IdleEntry(session, self._clock()))
        self._check_settled()

    def _free_slot(self) -> None:
        waiter = self._next_waiter()
        if waiter is not None:
            waiter.set_result(_SLOT)
        else:
            self._size -= 1
        self._check_settled()

    async def _dispose(self, session: WebSession, *, reason: str) -> None:
        _crawl_event("pool", kind="destroy", reason=reason, size=self._size)
        try:
            await self._factory.destroy(session)
        except Exception as exc:  # noqa: BLE001
            _crawl_event("error", phase="pool", kind="destroy_failed", reason=reason, error=str(exc))

    async def _destroy(self, session: WebSession, *, reason: str) -> None:
        try:
            await self._dispose(session, reason=reason)
        finally:
            self._free_slot()

    def _is_settled(self) -> bool:
        return not self._borrowed and self.pending == 0 and self._size == len(self._idle)

    def _check_settled(self) -> None:
        if self._settled is not None and self._is_settled():
            self._settled.set()

    def _start_evictor(self) -> None:
        if self._eviction_task is None and self._eviction_interval > 0:
            self._eviction_task = asyncio.get_running_loop().create_task(self._evict_loop())

    async def _evict_loop(self) -> None:
        while True:
            await asyncio.sleep(self._eviction_interval)
            evicted = await self.evict_idle()
            if evicted:
                _crawl_event("pool", kind="evicted", count=evicted, size=self._size)


__all__ = ["SessionPool"]
