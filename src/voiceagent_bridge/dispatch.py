"""Single-threaded dispatch of callbacks produced on background threads.

Network activity runs on its own thread; everything the application observes
(opened/closed/message/error) is queued here as a zero-argument action and
executed only when the host calls :meth:`Dispatcher.tick` from its own loop.
"""

from __future__ import annotations

import threading
import time
from collections import deque
from typing import Any, Callable, Deque, List, Optional

from voiceagent_bridge.utils.logger_util import get_logger, logging

logger = get_logger(__name__, logging.DEBUG)

Action = Callable[[], Any]


class Dispatcher:
    """FIFO of pending actions: enqueue from any thread, drain on one.

    The lock guards only the enqueue and the swap of the queue; actions run
    with the lock released so an action may enqueue (or send) without
    deadlocking. Actions enqueued while a tick is draining run on the next tick.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._pending: Deque[Action] = deque()
        self._owner: Optional[int] = None
        self.failures = 0

    @property
    def pending(self) -> int:
        with self._lock:
            return len(self._pending)

    def enqueue(self, action: Action) -> None:
        if not callable(action):
            raise TypeError(f"dispatch action must be callable, got {type(action).__name__}")
        with self._lock:
            self._pending.append(action)

    def tick(self) -> int:
        """Run every action queued before this call. Returns how many ran."""
        ident = threading.get_ident()
        if self._owner is None:
            self._owner = ident
        elif self._owner != ident:
            raise RuntimeError("Dispatcher.tick() must always be called from the same thread")

        with self._lock:
            if not self._pending:
                return 0
            batch, self._pending = self._pending, deque()

        ran = 0
        for action in batch:
            ran += 1
            try:
                action()
            except Exception:
                self.failures += 1
                logger.exception("dispatched action %r failed", action)
        return ran

    def run_until(self, predicate: Callable[[], bool], timeout: float = 5.0, interval: float = 0.01) -> bool:
        """Tick repeatedly until ``predicate()`` holds or ``timeout`` elapses.

        Meant for scripts and tests; hosts with their own frame loop call
        ``tick()`` directly.
        """
        deadline = time.monotonic() + timeout
        while True:
            self.tick()
            if predicate():
                return True
            if time.monotonic() >= deadline:
                return False
            time.sleep(interval)


class Broadcast:
    """Multi-subscriber hook.

    ``emit`` calls subscribers in subscription order; a failing subscriber is
    logged and the others still run.
    """

    def __init__(self, name: str):
        self.name = name
        self._subscribers: List[Callable[..., Any]] = []

    def __len__(self) -> int:
        return len(self._subscribers)

    def subscribe(self, callback: Callable[..., Any]) -> Callable[[], None]:
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            self.unsubscribe(callback)

        return _unsubscribe

    def unsubscribe(self, callback: Callable[..., Any]) -> None:
        try:
            self._subscribers.remove(callback)
        except ValueError:
            pass

    def emit(self, *args: Any) -> None:
        for callback in list(self._subscribers):
            try:
                callback(*args)
            except Exception:
                logger.exception("%s subscriber %r failed", self.name, callback)
