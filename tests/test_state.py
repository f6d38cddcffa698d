"""Tests for StateCoordinator ordering, reader sections and cancellation."""

import asyncio

from src.schulnetz.state import LockToken, StateCoordinator


async def _acquire_and_record(state: StateCoordinator, order: list[str], name: str, priority=False):
    token = await state.acquire(priority=priority, owner=name)
    if token is None:
        order.append(f"{name}:cancelled")
        return None
    order.append(name)
    await asyncio.sleep(0)
    state.release(token)
    return token


class TestExclusiveLock:
    async def test_free_lock_is_granted_immediately(self):
        state = StateCoordinator()
        token = await state.acquire()
        assert token is not None
        assert state.locked
        assert state.state_changing

        state.release(token)
        assert not state.locked

    async def test_waiters_are_served_in_fifo_order(self):
        state = StateCoordinator()
        order: list[str] = []
        holder = await state.acquire()

        tasks = [
            asyncio.create_task(_acquire_and_record(state, order, f"page-{i}"))
            for i in range(3)
        ]
        await asyncio.sleep(0)
        assert state.queued == 3

        state.release(holder)
        await asyncio.gather(*tasks)
        assert order == ["page-0", "page-1", "page-2"]
        assert not state.locked

    async def test_priority_waiter_goes_first(self):
        state = StateCoordinator()
        order: list[str] = []
        holder = await state.acquire()

        tasks = [
            asyncio.create_task(_acquire_and_record(state, order, f"page-{i}"))
            for i in range(3)
        ]
        await asyncio.sleep(0)
        tasks.append(asyncio.create_task(_acquire_and_record(state, order, "login", priority=True)))
        await asyncio.sleep(0)

        state.release(holder)
        await asyncio.gather(*tasks)
        assert order == ["login", "page-0", "page-1", "page-2"]

    async def test_release_with_foreign_token_is_ignored(self):
        state = StateCoordinator()
        holder = await state.acquire()
        other = await _try_acquire_now(state)
        assert other is None

        state.release(None)
        state.release(LockToken("page"))
        assert state.locked
        state.release(holder)
        assert not state.locked

    async def test_cancelled_task_leaves_the_queue(self):
        state = StateCoordinator()
        holder = await state.acquire()
        task = asyncio.create_task(state.acquire(owner="page"))
        await asyncio.sleep(0)
        assert state.queued == 1

        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        assert state.queued == 0

        state.release(holder)
        assert not state.locked


async def _try_acquire_now(state: StateCoordinator):
    task = asyncio.create_task(state.acquire(owner="probe"))
    await asyncio.sleep(0)
    if task.done():
        return task.result()
    task.cancel()
    await asyncio.gather(task, return_exceptions=True)
    return None


class TestStableState:
    async def test_readers_share_the_section(self):
        state = StateCoordinator()
        assert await state.retain_stable()
        assert await state.retain_stable()

        assert state.readers == 2
        assert state.locked
        assert not state.state_changing

    async def test_exclusive_waits_for_last_reader(self):
        state = StateCoordinator()
        await state.retain_stable()
        await state.retain_stable()

        task = asyncio.create_task(state.acquire(owner="page"))
        await asyncio.sleep(0)
        assert not task.done()

        state.release_stable()
        await asyncio.sleep(0)
        assert not task.done()

        state.release_stable()
        token = await task
        assert token is not None
        assert state.state_changing
        assert state.readers == 0

    async def test_readers_wait_while_state_changes(self):
        state = StateCoordinator()
        holder = await state.acquire()

        readers = [asyncio.create_task(state.retain_stable()) for _ in range(2)]
        await asyncio.sleep(0)
        assert not any(task.done() for task in readers)

        state.release(holder)
        assert await asyncio.gather(*readers) == [True, True]
        assert state.readers == 2
        assert not state.state_changing

    async def test_release_stable_without_readers_is_a_no_op(self):
        state = StateCoordinator()
        state.release_stable()
        assert state.readers == 0
        assert not state.locked


class TestForceAcquire:
    async def test_force_acquire_cancels_every_waiter(self):
        state = StateCoordinator()
        holder = await state.acquire()

        lock_waiters = [asyncio.create_task(state.acquire(owner=f"page-{i}")) for i in range(5)]
        stable_waiters = [asyncio.create_task(state.retain_stable()) for _ in range(2)]
        await asyncio.sleep(0)
        assert state.queued == 7

        logout = asyncio.create_task(state.force_acquire())
        await asyncio.sleep(0)

        assert await asyncio.gather(*lock_waiters) == [None] * 5
        assert await asyncio.gather(*stable_waiters) == [False, False]
        assert not logout.done()

        state.release(holder)
        token = await logout
        assert token is not None
        assert token.owner == "logout"
        assert state.queued == 0

    async def test_force_acquire_on_free_lock(self):
        state = StateCoordinator()
        token = await state.force_acquire()
        assert token is not None
        assert state.locked

    async def test_teardown_frees_everything(self):
        state = StateCoordinator()
        await state.retain_stable()
        waiter = asyncio.create_task(state.acquire())
        await asyncio.sleep(0)

        state.teardown()
        assert await waiter is None
        assert not state.locked
        assert state.readers == 0
