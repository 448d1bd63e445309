from __future__ import annotations

import heapq
import itertools
from collections.abc import Callable
from dataclasses import dataclass, field

import pytest

from chainview.layers.registry import LayerRegistry
from chainview.preferences import MemoryPreferenceStore
from chainview.render import InMemorySurface
from chainview.router import TopicRouter
from chainview.scheduling import PollHandle, run_guarded
from chainview.state.store import ModelStore


@dataclass(frozen=True)
class Published:
    topic: str
    payload: str | bytes
    qos: int
    retain: bool


@dataclass
class FakeTransport:
    """Records every broker call instead of talking to a broker."""

    subscribed: list[str] = field(default_factory=list)
    published: list[Published] = field(default_factory=list)
    unsubscribe_all_calls: int = 0
    started: bool = False
    stopped: bool = False
    handler: Callable[[str, bytes], None] | None = None

    def set_message_handler(self, handler: Callable[[str, bytes], None]) -> None:
        self.handler = handler

    def start(self) -> None:
        self.started = True

    def stop(self) -> None:
        self.stopped = True

    def subscribe(self, pattern: str) -> None:
        self.subscribed.append(pattern)

    def unsubscribe_all(self) -> None:
        self.unsubscribe_all_calls += 1

    def publish(self, topic: str, payload: str | bytes, *, qos: int = 1, retain: bool = True) -> None:
        self.published.append(Published(topic, payload, qos, retain))

    def deliver(self, topic: str, payload: str | bytes) -> None:
        assert self.handler is not None
        self.handler(topic, payload.encode() if isinstance(payload, str) else payload)

    def topics(self) -> list[str]:
        return [message.topic for message in self.published]


class ManualScheduler:
    """Virtual-time scheduler; timers only fire inside :meth:`advance`."""

    def __init__(self) -> None:
        self.now = 0.0
        self._queue: list[tuple[float, int, PollHandle, Callable[[], None]]] = []
        self._seq = itertools.count()

    def clock(self) -> float:
        return self.now

    def _push(self, due: float, handle: PollHandle, fire: Callable[[], None]) -> None:
        heapq.heappush(self._queue, (due, next(self._seq), handle, fire))

    def schedule(self, action: Callable[[], None], interval: float) -> PollHandle:
        handle = PollHandle()

        def fire() -> None:
            run_guarded(action)
            if not handle.cancelled:
                self._push(self.now + interval, handle, fire)

        self._push(self.now, handle, fire)
        return handle

    def call_later(self, delay: float, action: Callable[[], None]) -> PollHandle:
        handle = PollHandle()
        self._push(self.now + delay, handle, lambda: run_guarded(action))
        return handle

    def advance(self, seconds: float = 0.0) -> None:
        target = self.now + seconds
        while self._queue and self._queue[0][0] <= target:
            due, _seq, handle, fire = heapq.heappop(self._queue)
            if handle.cancelled:
                continue
            self.now = due
            fire()
        self.now = target

    def pending(self) -> int:
        return sum(1 for _due, _seq, handle, _fire in self._queue if not handle.cancelled)


@dataclass
class RouterHarness:
    transport: FakeTransport
    scheduler: ManualScheduler
    surface: InMemorySurface
    store: ModelStore
    layers: LayerRegistry
    router: TopicRouter

    def send(self, topic: str, payload: str) -> bool:
        return self.router.handle_message(topic, payload)


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def surface() -> InMemorySurface:
    return InMemorySurface()


@pytest.fixture
def harness(scheduler: ManualScheduler, transport: FakeTransport, surface: InMemorySurface) -> RouterHarness:
    store = ModelStore(clock=scheduler.clock)
    layers = LayerRegistry(surface, scheduler, MemoryPreferenceStore(), clock=scheduler.clock)
    router = TopicRouter(transport, store, layers, scheduler, surface)
    transport.set_message_handler(router.handle_message)
    router.start()
    return RouterHarness(transport, scheduler, surface, store, layers, router)
