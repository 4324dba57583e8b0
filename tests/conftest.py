import asyncio
import threading
import time
from typing import Any, Callable, List, Optional, Tuple

import pytest

from voiceagent_bridge.config import ENV_VARS
from voiceagent_bridge.dispatch import Dispatcher
from voiceagent_bridge.transport import WebSocketTransport


class PeerClose:
    """Inbox marker: the remote side sends a close frame."""

    def __init__(self, code: int = 1000, reason: str = ""):
        self.code = code
        self.reason = reason


class Fault:
    """Inbox marker: the next receive raises ``exc``."""

    def __init__(self, exc: BaseException):
        self.exc = exc


class FakeSocket:
    """Stands in for a websockets client connection inside the transport loop."""

    def __init__(self, close_delay: float = 0.0, fail_send: Optional[BaseException] = None):
        self.loop = asyncio.get_running_loop()
        self.inbox: asyncio.Queue = asyncio.Queue()
        self.sent: List[Any] = []
        self.close_calls = 0
        self.close_code: Optional[int] = None
        self.close_reason: Optional[str] = None
        self.close_delay = close_delay
        self.fail_send = fail_send

    def feed(self, item: Any) -> None:
        """Thread-safe: queue an inbound frame or marker from the test thread."""
        self.loop.call_soon_threadsafe(self.inbox.put_nowait, item)

    def __aiter__(self):
        return self._frames()

    async def _frames(self):
        while True:
            item = await self.inbox.get()
            if isinstance(item, PeerClose):
                self.close_code, self.close_reason = item.code, item.reason
                return
            if isinstance(item, Fault):
                raise item.exc
            yield item

    async def send(self, frame: Any) -> None:
        if self.fail_send is not None:
            raise self.fail_send
        self.sent.append(frame)

    async def close(self, code: int = 1000, reason: str = "") -> None:
        self.close_calls += 1
        if self.close_delay:
            await asyncio.sleep(self.close_delay)
        self.close_code, self.close_reason = code, reason


class FakeConnector:
    """Replacement for ``websockets.connect`` that hands out FakeSockets."""

    def __init__(self, error: Optional[BaseException] = None, **socket_kwargs: Any):
        self.error = error
        self.socket_kwargs = socket_kwargs
        self.calls: List[Tuple[str, dict]] = []
        self.socket: Optional[FakeSocket] = None
        self.ready = threading.Event()

    async def __call__(self, url: str, **kwargs: Any) -> FakeSocket:
        self.calls.append((url, kwargs))
        if self.error is not None:
            raise self.error
        self.socket = FakeSocket(**self.socket_kwargs)
        self.ready.set()
        return self.socket


def wait_for(predicate: Callable[[], bool], timeout: float = 2.0) -> bool:
    """Poll without ticking; for asserting on the network thread's side."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return predicate()


@pytest.fixture(autouse=True)
def isolate_env(monkeypatch):
    """Keep VOICE_AGENT_* settings from the developer's shell out of the tests."""
    for var in ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    yield


@pytest.fixture
def dispatcher() -> Dispatcher:
    return Dispatcher()


@pytest.fixture
def make_ws_transport(dispatcher):
    """Build WebSocketTransports on a FakeConnector and join their threads afterwards."""
    created: List[WebSocketTransport] = []

    def _make(connector: Optional[FakeConnector] = None, close_timeout: float = 1.0) -> WebSocketTransport:
        t = WebSocketTransport(dispatcher, open_timeout=1.0, close_timeout=close_timeout, connector=connector or FakeConnector())
        created.append(t)
        return t

    yield _make
    for t in created:
        t.close()
        t.join(timeout=3.0)
