"""WebSocket transport built on the ``websockets`` asyncio client.

Each :meth:`WebSocketTransport.connect` starts one daemon thread that owns an
asyncio loop for the lifetime of the connection. The loop runs three tasks:

* the receive loop, which turns each inbound frame into a dispatcher action;
* the writer, which drains the outbound queue in submission order;
* a waiter on the close request coming from :meth:`close`.

Nothing on that thread calls consumer code; see :mod:`voiceagent_bridge.dispatch`.
"""

from __future__ import annotations

import asyncio
import contextlib
import threading
from typing import Any, Awaitable, Callable, Optional

import websockets
from websockets.exceptions import ConnectionClosedError

from voiceagent_bridge.dispatch import Dispatcher
from voiceagent_bridge.exceptions import CloseError, ConnectError, ReceiveError, SendError
from voiceagent_bridge.transport.base import (
    ABNORMAL_CLOSURE,
    NORMAL_CLOSURE,
    BaseTransport,
    CloseInfo,
    Frame,
)
from voiceagent_bridge.transport.state import TransportStates
from voiceagent_bridge.utils.logger_util import get_logger, logging

logger = get_logger(__name__, logging.DEBUG)

Connector = Callable[..., Awaitable[Any]]


class WebSocketTransport(BaseTransport):
    def __init__(
        self,
        dispatcher: Dispatcher,
        open_timeout: float = 10.0,
        close_timeout: float = 5.0,
        connector: Optional[Connector] = None,
    ):
        super().__init__(dispatcher)
        self.open_timeout = float(open_timeout)
        self.close_timeout = float(close_timeout)
        self._connector: Connector = connector or websockets.connect
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._close_requested: Optional[asyncio.Event] = None
        self._outbox: Optional[asyncio.Queue] = None

    # -- caller-thread API ---------------------------------------------------
    def connect(self, url: str) -> None:
        with self._state_lock:
            state = self._state
            if state in (TransportStates.CONNECTING, TransportStates.OPEN):
                logger.debug("connect(%s) ignored: transport already %s", url, state.value)
                return
            if state is not TransportStates.DISCONNECTED:
                refused = ConnectError(f"transport is {state.value}; create a new transport to reconnect")
            else:
                refused = None
                self.url = url
                self._loop = asyncio.new_event_loop()
                self._close_requested = asyncio.Event()
                self._outbox = None
                self._transition_locked(TransportStates.CONNECTING)
        if refused is not None:
            self._emit_error(refused)
            return

        self._thread = threading.Thread(
            target=self._run, args=(self._loop, url), name="voice-agent-transport", daemon=True
        )
        self._thread.start()

    def send(self, data: Frame, is_binary: bool = False) -> None:
        if not self.is_open:
            self._emit_error(SendError("Cannot send: Not connected"))
            return
        try:
            frame = _as_frame(data, is_binary)
        except (TypeError, UnicodeDecodeError) as exc:
            self._emit_error(SendError(f"Send failed: {exc}"))
            return
        try:
            self._loop.call_soon_threadsafe(self._outbox.put_nowait, frame)
        except RuntimeError as exc:
            # loop shut down between the state check and the hand-off
            self._emit_error(SendError(f"Send failed: {exc}"))

    def close(self) -> None:
        with self._state_lock:
            state = self._state
            if state in (TransportStates.CLOSING, TransportStates.CLOSED):
                return
            never_connected = state is TransportStates.DISCONNECTED
            if not never_connected:
                self._transition_locked(TransportStates.CLOSING)

        if never_connected:
            self._finish_close(CloseInfo(NORMAL_CLOSURE, "closed before open"))
            return
        try:
            self._loop.call_soon_threadsafe(self._close_requested.set)
        except RuntimeError:
            self._finish_close(
                CloseInfo(ABNORMAL_CLOSURE, "transport loop stopped", CloseError("transport loop stopped before close"))
            )

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the network thread to exit. Returns True if it has."""
        if self._thread is None:
            return True
        self._thread.join(timeout)
        return not self._thread.is_alive()

    # -- network thread ------------------------------------------------------
    def _run(self, loop: asyncio.AbstractEventLoop, url: str) -> None:
        asyncio.set_event_loop(loop)
        try:
            loop.run_until_complete(self._session(url))
        except Exception as exc:
            logger.exception("transport session for %s crashed", url)
            self._emit_error(ReceiveError(f"Transport failure: {exc}"))
            self._finish_close(CloseInfo(ABNORMAL_CLOSURE, "transport failure"))
        finally:
            try:
                loop.run_until_complete(loop.shutdown_asyncgens())
            finally:
                asyncio.set_event_loop(None)
                loop.close()

    async def _session(self, url: str) -> None:
        try:
            ws = await self._connector(url, open_timeout=self.open_timeout, close_timeout=self.close_timeout)
        except Exception as exc:
            logger.debug("connect to %s failed: %r", url, exc)
            self._emit_error(ConnectError(f"Connection failed: {exc}"))
            if not self._transition(TransportStates.DISCONNECTED):
                # close() arrived while connecting
                self._finish_close(CloseInfo(ABNORMAL_CLOSURE, "connect failed"))
            return

        # the outbox must exist before OPEN becomes visible to send()
        self._outbox = asyncio.Queue()
        if not self._transition(TransportStates.OPEN):
            self._finish_close(await self._close_handshake(ws))
            return
        self._emit_opened()

        receiver = asyncio.create_task(self._receive_loop(ws))
        writer = asyncio.create_task(self._write_loop(ws))
        waiter = asyncio.create_task(self._close_requested.wait())
        try:
            await asyncio.wait({receiver, waiter}, return_when=asyncio.FIRST_COMPLETED)
            peer_close = receiver.result() if receiver.done() else None
            if peer_close is not None:
                self._finish_close(peer_close)
                return
            # either close() was requested, or the receive loop faulted and
            # the consumer has to decide; both end with close()
            await waiter
            await _cancel(receiver)
            self._finish_close(await self._close_handshake(ws))
        finally:
            for task in (receiver, writer, waiter):
                await _cancel(task)

    async def _receive_loop(self, ws) -> Optional[CloseInfo]:
        """Queue inbound frames until the socket closes.

        Returns the peer's CloseInfo, or None when a local close was requested
        or a fault left the connection in place.
        """
        try:
            async for frame in ws:
                # state flips to CLOSING in close() before the loop sees the request
                if self._close_requested.is_set() or self.state is not TransportStates.OPEN:
                    return None
                self._emit_message(frame)
        except ConnectionClosedError as exc:
            if self._close_requested.is_set():
                return None
            self._emit_error(ReceiveError(f"Receive error: {exc}"))
            return CloseInfo(getattr(ws, "close_code", None) or ABNORMAL_CLOSURE, getattr(ws, "close_reason", "") or "")
        except Exception as exc:
            if self._close_requested.is_set():
                return None
            logger.debug("receive loop fault on %s: %r", self.url, exc)
            self._emit_error(ReceiveError(f"Receive error: {exc}"))
            return None

        if self._close_requested.is_set():
            return None
        return CloseInfo(getattr(ws, "close_code", None) or NORMAL_CLOSURE, getattr(ws, "close_reason", "") or "")

    async def _write_loop(self, ws) -> None:
        while True:
            frame = await self._outbox.get()
            try:
                await ws.send(frame)
            except Exception as exc:
                self._emit_error(SendError(f"Send failed: {exc}"))
            finally:
                self._outbox.task_done()

    async def _close_handshake(self, ws) -> CloseInfo:
        if self._outbox is not None:
            try:
                await asyncio.wait_for(self._outbox.join(), timeout=self.close_timeout)
            except asyncio.TimeoutError:
                logger.warning("closing with %d unsent frame(s)", self._outbox.qsize())
        try:
            await asyncio.wait_for(ws.close(code=NORMAL_CLOSURE, reason="Closing"), timeout=self.close_timeout)
        except asyncio.TimeoutError:
            return CloseInfo(
                ABNORMAL_CLOSURE,
                "close handshake timed out",
                CloseError(f"close handshake timed out after {self.close_timeout}s"),
            )
        except Exception as exc:
            logger.warning("close handshake with %s failed: %r", self.url, exc)
            return CloseInfo(ABNORMAL_CLOSURE, "close handshake failed", CloseError(f"Close error: {exc}"))
        return CloseInfo(getattr(ws, "close_code", None) or NORMAL_CLOSURE, getattr(ws, "close_reason", "") or "Closing")


def _as_frame(data: Frame, is_binary: bool) -> Frame:
    if is_binary:
        if isinstance(data, str):
            return data.encode("utf-8")
        return bytes(data)
    if isinstance(data, (bytes, bytearray)):
        return bytes(data).decode("utf-8")
    if not isinstance(data, str):
        raise TypeError(f"text frame must be str or bytes, got {type(data).__name__}")
    return data


async def _cancel(task: asyncio.Task) -> None:
    if task.done():
        return
    task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await task
