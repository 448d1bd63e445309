"""Cancellable self-re-arming poll timers.

A poll fires its action once, then re-arms ``interval`` seconds after the
action returns, whether it returned normally or raised. The next firing is
only armed after the current one finishes, so a handle never overlaps itself.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Hashable
from typing import Generic, Protocol, TypeVar

_logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)


class PollHandle:
    """Cancellation token for a scheduled poll or one-shot call."""

    def __init__(self) -> None:
        self._cancelled = False
        self._timer: asyncio.Handle | None = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True
        timer = self._timer
        self._timer = None
        if timer is not None:
            timer.cancel()


class Scheduler(Protocol):
    def schedule(self, action: Callable[[], None], interval: float) -> PollHandle: ...

    def call_later(self, delay: float, action: Callable[[], None]) -> PollHandle: ...


def run_guarded(action: Callable[[], None]) -> None:
    """Run a timer action, logging instead of propagating its failure."""
    try:
        action()
    except Exception:
        _logger.warning("Scheduled action %r failed", action, exc_info=True)


class AsyncioScheduler:
    """:class:`Scheduler` backed by an asyncio event loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def schedule(self, action: Callable[[], None], interval: float) -> PollHandle:
        if interval <= 0:
            raise ValueError("poll interval must be positive")
        handle = PollHandle()
        loop = self.loop

        def fire() -> None:
            if handle.cancelled:
                return
            run_guarded(action)
            if not handle.cancelled:
                handle._timer = loop.call_later(interval, fire)

        handle._timer = loop.call_soon(fire)
        return handle

    def call_later(self, delay: float, action: Callable[[], None]) -> PollHandle:
        handle = PollHandle()

        def fire() -> None:
            if handle.cancelled:
                return
            handle._timer = None
            run_guarded(action)

        handle._timer = self.loop.call_later(max(0.0, delay), fire)
        return handle


class HandleTable(Generic[K]):
    """Poll handles grouped by owner, cancelled together on teardown."""

    def __init__(self) -> None:
        self._handles: dict[K, list[PollHandle]] = {}

    def add(self, owner: K, handle: PollHandle) -> PollHandle:
        self._handles.setdefault(owner, []).append(handle)
        return handle

    def active(self, owner: K) -> int:
        return sum(1 for handle in self._handles.get(owner, []) if not handle.cancelled)

    def cancel(self, owner: K) -> int:
        """Cancel and forget every handle of *owner*; return how many were live."""
        handles = self._handles.pop(owner, [])
        live = 0
        for handle in handles:
            if not handle.cancelled:
                live += 1
            handle.cancel()
        return live

    def cancel_all(self) -> None:
        for owner in list(self._handles):
            self.cancel(owner)

    def __contains__(self, owner: object) -> bool:
        return owner in self._handles

    def __len__(self) -> int:
        return len(self._handles)
