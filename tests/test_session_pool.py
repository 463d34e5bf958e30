from __future__ import annotations

import asyncio

import pytest

from fjud.scraper.error_codes import PoolCapacityError, PoolClosedError, SessionCreationError
from fjud.scraper.session_pool import SessionPool


class FakeSession:
    def __init__(self, number: int) -> None:
        self.number = number
        self.closed = False

    def is_closed(self) -> bool:
        return self.closed

    async def close(self) -> None:
        self.closed = True


class FakeFactory:
    def __init__(self, *, fail_first: int = 0) -> None:
        self.created: list[FakeSession] = []
        self.destroyed: list[FakeSession] = []
        self._fail_first = fail_first

    async def create(self) -> FakeSession:
        if self._fail_first > 0:
            self._fail_first -= 1
            raise RuntimeError("browser crashed")
        session = FakeSession(len(self.created))
        self.created.append(session)
        return session

    async def destroy(self, session: FakeSession) -> None:
        self.destroyed.append(session)
        await session.close()

    def validate(self, session: FakeSession) -> bool:
        return not session.is_closed()

    async def close(self) -> None:
        return None


async def _settle() -> None:
    for _ in range(5):
        await asyncio.sleep(0)


def _pool(factory: FakeFactory, **kwargs) -> SessionPool:
    kwargs.setdefault("eviction_interval", 0)
    return SessionPool(factory, **kwargs)


def test_concurrency_never_exceeds_max_sessions() -> None:
    factory = FakeFactory()

    async def scenario() -> SessionPool:
        pool = _pool(factory, max_sessions=2)

        async def work(session: FakeSession) -> int:
            await asyncio.sleep(0.01)
            return session.number

        await asyncio.gather(*(pool.with_session(work) for _ in range(6)))
        return pool

    pool = asyncio.run(scenario())

    assert pool.peak_borrowed == 2
    assert len(factory.created) == 2
    assert pool.borrowed == 0
    assert pool.available == 2


def test_waiters_are_served_in_fifo_order() -> None:
    factory = FakeFactory()

    async def scenario() -> list[str]:
        pool = _pool(factory, max_sessions=1)
        order: list[str] = []
        held = await pool.acquire()

        async def borrower(name: str) -> None:
            async with pool.session():
                order.append(name)

        tasks = [asyncio.ensure_future(borrower(name)) for name in ("a", "b", "c")]
        await _settle()
        assert pool.pending == 3
        await pool.release(held)
        await asyncio.gather(*tasks)
        return order

    assert asyncio.run(scenario()) == ["a", "b", "c"]
    assert len(factory.created) == 1


def test_invalid_session_is_destroyed_on_release_and_never_reused() -> None:
    factory = FakeFactory()

    async def scenario() -> tuple[FakeSession, FakeSession, SessionPool]:
        pool = _pool(factory)
        first = await pool.acquire()
        await first.close()
        await pool.release(first)
        assert pool.size == 0
        second = await pool.acquire()
        return first, second, pool

    first, second, pool = asyncio.run(scenario())

    assert second is not first
    assert factory.destroyed == [first]
    assert pool.size == 1


def test_idle_session_that_died_is_replaced_on_borrow() -> None:
    factory = FakeFactory()

    async def scenario() -> tuple[FakeSession, FakeSession]:
        pool = _pool(factory)
        first = await pool.acquire()
        await pool.release(first)
        first.closed = True
        second = await pool.acquire()
        return first, second

    first, second = asyncio.run(scenario())

    assert second is not first
    assert first in factory.destroyed


def test_create_failure_raises_and_keeps_capacity() -> None:
    factory = FakeFactory(fail_first=1)

    async def scenario() -> SessionPool:
        pool = _pool(factory, max_sessions=1)
        with pytest.raises(SessionCreationError):
            await pool.acquire()
        assert pool.size == 0
        session = await pool.acquire()
        await pool.release(session)
        return pool

    pool = asyncio.run(scenario())

    assert pool.size == 1
    assert len(factory.created) == 1


def test_queue_full_fails_fast() -> None:
    factory = FakeFactory()

    async def scenario() -> None:
        pool = _pool(factory, max_sessions=1, max_waiting_clients=1)
        held = await pool.acquire()
        waiter = asyncio.ensure_future(pool.acquire())
        await _settle()

        with pytest.raises(PoolCapacityError):
            await pool.acquire()

        await pool.release(held)
        session = await waiter
        assert session is held

    asyncio.run(scenario())


def test_acquire_timeout_raises_capacity_error() -> None:
    factory = FakeFactory()

    async def scenario() -> SessionPool:
        pool = _pool(factory, max_sessions=1, acquire_timeout=0.02)
        held = await pool.acquire()
        with pytest.raises(PoolCapacityError) as excinfo:
            await pool.acquire()
        assert not isinstance(excinfo.value, PoolClosedError)
        await pool.release(held)
        return pool

    pool = asyncio.run(scenario())

    assert pool.pending == 0
    assert pool.available == 1


def test_with_session_releases_when_work_raises() -> None:
    factory = FakeFactory()

    async def failing(session: FakeSession) -> None:
        raise ValueError("boom")

    async def scenario() -> SessionPool:
        pool = _pool(factory)
        with pytest.raises(ValueError):
            await pool.with_session(failing)
        return pool

    pool = asyncio.run(scenario())

    assert pool.borrowed == 0
    assert pool.available == 1


def test_release_of_foreign_session_is_rejected() -> None:
    async def scenario() -> None:
        pool = _pool(FakeFactory())
        with pytest.raises(ValueError):
            await pool.release(FakeSession(99))

    asyncio.run(scenario())


def test_drain_waits_for_borrowers_then_destroys_everything() -> None:
    factory = FakeFactory()

    async def scenario() -> SessionPool:
        pool = _pool(factory, max_sessions=2)
        held = await pool.acquire()
        drain = asyncio.ensure_future(pool.drain())
        await _settle()
        assert not drain.done()

        with pytest.raises(PoolClosedError):
            await pool.acquire()

        await pool.release(held)
        await drain
        return pool

    pool = asyncio.run(scenario())

    assert pool.size == 0
    assert all(session.closed for session in factory.created)


def test_evict_idle_uses_soft_idle_timeout() -> None:
    factory = FakeFactory()
    now = [0.0]

    async def scenario() -> tuple[int, int, SessionPool]:
        pool = _pool(factory, soft_idle_timeout=10, clock=lambda: now[0])
        session = await pool.acquire()
        await pool.release(session)

        now[0] = 5.0
        kept = await pool.evict_idle()
        now[0] = 11.0
        evicted = await pool.evict_idle()
        return kept, evicted, pool

    kept, evicted, pool = asyncio.run(scenario())

    assert kept == 0
    assert evicted == 1
    assert pool.size == 0
    assert factory.created[0].closed


def test_from_options_reads_pool_settings() -> None:
    from fjud.scraper.config import CrawlOptions

    options = CrawlOptions(max_sessions=3, max_waiting_clients=7)
    pool = SessionPool.from_options(FakeFactory(), options)

    assert pool.max_sessions == 3
    assert pool.size == 0
