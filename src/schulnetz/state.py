"""State lock coordination for one portal session.

The portal tracks a transaction id per session and may rotate it on every
navigation. Requests that can rotate it ("state-changing") must run one at a
time; requests that cannot ("stable-state" reads, e.g. CSV downloads) may run
together, but never while a state-changing request is in flight.

StateCoordinator is the only place that knows how this is arranged:

* one exclusive lock, identified by an opaque token,
* a FIFO queue of exclusive waiters (priority waiters go to the front),
* a reader count; the first reader takes the lock as a placeholder and the
  last one gives it back, so exclusive waiters queue behind a burst of reads,
* a queue of readers waiting for an exclusive holder to finish.

Grants are handed over synchronously inside release(): the waiter's future is
resolved only after the coordinator already records it as the holder (or as
a reader), so no other task can slip in between the release and the resume.
Cancelled waiters (force_acquire/teardown) get None/False, never a hang.
"""

import asyncio
from collections import deque
from dataclasses import dataclass, field

from src.schulnetz.logging import get_logger

log = get_logger(__name__)


@dataclass(frozen=True, eq=False)
class LockToken:
    """Opaque proof of holding the state lock. Compared by identity."""

    owner: str = field(default="exclusive")


class StateCoordinator:
    def __init__(self) -> None:
        self._holder: LockToken | None = None
        self._reader_token: LockToken | None = None
        self._readers = 0
        self._lock_waiters: deque[tuple[asyncio.Future, LockToken]] = deque()
        self._reader_waiters: list[asyncio.Future] = []

    @property
    def locked(self) -> bool:
        return self._holder is not None

    @property
    def state_changing(self) -> bool:
        """An exclusive holder (not the reader placeholder) is active."""
        return self._holder is not None and self._holder is not self._reader_token

    @property
    def readers(self) -> int:
        return self._readers

    @property
    def queued(self) -> int:
        return len(self._lock_waiters) + len(self._reader_waiters)

    async def acquire(self, *, priority: bool = False, owner: str = "exclusive") -> LockToken | None:
        """Wait for exclusive access.

        Returns:
            The token to pass to release(), or None if the wait was cancelled.
        """
        token = LockToken(owner)
        if self._holder is None:
            self._holder = token
            return token

        future = asyncio.get_running_loop().create_future()
        if priority:
            self._lock_waiters.appendleft((future, token))
        else:
            self._lock_waiters.append((future, token))
        log.debug("state_lock_queued", owner=owner, priority=priority, queued=len(self._lock_waiters))

        try:
            granted = await future
        except asyncio.CancelledError:
            self._abandon_lock_wait(future, token)
            raise
        return token if granted else None

    def release(self, token: LockToken | None) -> None:
        """Release the lock if ``token`` holds it; otherwise do nothing."""
        if token is None or token is not self._holder:
            return
        self._holder = None
        self._hand_over()

    async def force_acquire(self, owner: str = "logout") -> LockToken | None:
        """Cancel every waiter, then take the lock once the current holder is done."""
        self._cancel_waiters()
        return await self.acquire(owner=owner)

    async def retain_stable(self) -> bool:
        """Enter a stable-state section.

        Returns:
            True once admitted, False if the wait was cancelled.
        """
        if not self.state_changing:
            self._admit_reader()
            return True

        future = asyncio.get_running_loop().create_future()
        self._reader_waiters.append(future)
        log.debug("stable_state_queued", queued=len(self._reader_waiters))

        try:
            admitted = await future
        except asyncio.CancelledError:
            if future in self._reader_waiters:
                self._reader_waiters.remove(future)
            elif future.done() and not future.cancelled() and future.result():
                self.release_stable()
            raise
        return bool(admitted)

    def release_stable(self) -> None:
        if self._readers <= 0:
            return
        self._readers -= 1
        if self._readers == 0:
            token, self._reader_token = self._reader_token, None
            self.release(token)

    def teardown(self) -> None:
        """Cancel every waiter and reset to free. Used when logout cannot take the lock."""
        self._cancel_waiters()
        self._holder = None
        self._reader_token = None
        self._readers = 0

    def _admit_reader(self) -> None:
        if self._readers == 0:
            self._reader_token = LockToken("stable-state")
            self._holder = self._reader_token
        self._readers += 1

    def _hand_over(self) -> None:
        while self._lock_waiters:
            future, token = self._lock_waiters.popleft()
            if future.done():
                continue
            self._holder = token
            future.set_result(True)
            return

        waiters, self._reader_waiters = self._reader_waiters, []
        for future in waiters:
            if future.done():
                continue
            self._admit_reader()
            future.set_result(True)

    def _cancel_waiters(self) -> None:
        lock_waiters, self._lock_waiters = self._lock_waiters, deque()
        reader_waiters, self._reader_waiters = self._reader_waiters, []
        for future, _ in lock_waiters:
            if not future.done():
                future.set_result(False)
        for future in reader_waiters:
            if not future.done():
                future.set_result(False)
        if lock_waiters or reader_waiters:
            log.info(
                "state_waiters_cancelled",
                lock_waiters=len(lock_waiters),
                stable_waiters=len(reader_waiters),
            )

    def _abandon_lock_wait(self, future: asyncio.Future, token: LockToken) -> None:
        try:
            self._lock_waiters.remove((future, token))
        except ValueError:
            # Already granted before the task saw its cancellation
            if future.done() and not future.cancelled() and future.result():
                self.release(token)
