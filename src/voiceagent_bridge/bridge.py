"""The facade applications use to send events to the Voice Agent.

Construct one :class:`VoiceAgentBridge` at application start, hand it to the
code that tracks events, call :meth:`VoiceAgentBridge.tick` once per
iteration of the host loop, and :meth:`VoiceAgentBridge.disconnect` on
shutdown::

    bridge = VoiceAgentBridge(load_config())
    bridge.on_message.subscribe(print)
    bridge.start()
    while running:
        bridge.tick()
        ...
    bridge.disconnect()
"""

from __future__ import annotations

from typing import Any, Callable, Optional

from voiceagent_bridge import codec
from voiceagent_bridge.config import BridgeConfig
from voiceagent_bridge.dispatch import Broadcast, Dispatcher
from voiceagent_bridge.exceptions import BridgeError, DecodeError, EncodeError, NotConnectedError
from voiceagent_bridge.transport import BaseTransport, CloseInfo, TransportStates, create_transport
from voiceagent_bridge.utils.logger_util import get_logger, logging

logger = get_logger(__name__, logging.DEBUG)

TransportFactory = Callable[[Dispatcher, BridgeConfig], BaseTransport]


def default_transport_factory(dispatcher: Dispatcher, config: BridgeConfig) -> BaseTransport:
    return create_transport(
        config.transport,
        dispatcher,
        open_timeout=config.open_timeout,
        close_timeout=config.close_timeout,
    )


class VoiceAgentBridge:
    """Owns one transport, encodes events, and republishes transport callbacks.

    Subscriptions (all multi-subscriber, all invoked from ``tick()`` except
    the synchronous facade errors described on ``send_event``):

    * ``on_opened()``
    * ``on_closed(CloseInfo)``
    * ``on_message(text)``: every inbound frame as text
    * ``on_envelope(Envelope)``: inbound frames that parse as an envelope
    * ``on_error(BridgeError)``
    """

    def __init__(
        self,
        config: Optional[BridgeConfig] = None,
        transport_factory: Optional[TransportFactory] = None,
        dispatcher: Optional[Dispatcher] = None,
    ):
        self.config = config or BridgeConfig()
        self.dispatcher = dispatcher or Dispatcher()
        self._transport_factory = transport_factory or default_transport_factory
        self._transport: Optional[BaseTransport] = None
        self._is_connected = False

        self.on_opened = Broadcast("on_opened")
        self.on_closed = Broadcast("on_closed")
        self.on_message = Broadcast("on_message")
        self.on_envelope = Broadcast("on_envelope")
        self.on_error = Broadcast("on_error")

    def __enter__(self) -> "VoiceAgentBridge":
        return self

    def __exit__(self, *exc_info) -> None:
        self.disconnect()

    # -- properties ----------------------------------------------------------
    @property
    def is_connected(self) -> bool:
        return self._is_connected

    @property
    def state(self) -> TransportStates:
        if self._transport is None:
            return TransportStates.DISCONNECTED
        return self._transport.state

    @property
    def transport(self) -> Optional[BaseTransport]:
        return self._transport

    # -- lifecycle -----------------------------------------------------------
    def start(self) -> None:
        """Connect if the config asks for it; call once at application start."""
        if self.config.auto_connect:
            self.connect()

    def connect(self) -> None:
        if self.state in (TransportStates.CONNECTING, TransportStates.OPEN):
            self._log("Already connected to Voice Agent")
            return

        # a closed transport whose callback is still queued counts as gone
        self._is_connected = False
        transport = self._transport_factory(self.dispatcher, self.config)
        transport.opened.subscribe(lambda: self._handle_opened(transport))
        transport.message.subscribe(self._handle_message)
        transport.error.subscribe(lambda err: self._handle_error(transport, err))
        transport.closed.subscribe(lambda info: self._handle_closed(transport, info))
        self._transport = transport

        self._log(f"Connecting to Voice Agent at {self.config.agent_url}...")
        transport.connect(self.config.agent_url)

    def disconnect(self) -> None:
        transport = self._transport
        if transport is None or transport.state in (TransportStates.CLOSING, TransportStates.CLOSED):
            return
        self._log("Disconnecting from Voice Agent...")
        transport.close()

    def tick(self) -> int:
        """Deliver pending transport callbacks; call once per host loop iteration."""
        return self.dispatcher.tick()

    # -- sending -------------------------------------------------------------
    def send_event(self, event: Any) -> bool:
        """Encode ``event`` and hand it to the transport.

        Not-connected and unencodable events are reported to ``on_error``
        immediately (before this returns) and nothing is queued for later.
        Returns True if the frame was handed to the transport.
        """
        if not self._can_send():
            self.report_error(NotConnectedError("Cannot send event: Not connected to Voice Agent"))
            return False
        if event is None:
            self.report_error(EncodeError("Cannot send null event data"))
            return False
        try:
            envelope = codec.build_envelope(event)
            text = envelope.to_wire()
        except EncodeError as exc:
            self.report_error(exc)
            return False

        self._log(f"Sending event: {envelope.type}\n{text}")
        self._transport.send(text)
        return True

    def send_raw(self, text: str) -> bool:
        """Send ``text`` verbatim, bypassing the codec."""
        if not self._can_send():
            self.report_error(NotConnectedError("Cannot send message: Not connected to Voice Agent"))
            return False
        self._transport.send(text)
        self._log(f"Sent raw message: {text}")
        return True

    def _can_send(self) -> bool:
        # opened has been ticked and the transport has not started closing since
        return self._is_connected and self._transport is not None and self._transport.is_open

    # -- transport callbacks (dispatch thread) ------------------------------
    def _handle_opened(self, transport: BaseTransport) -> None:
        if transport is not self._transport:
            return
        self._is_connected = True
        self._log("Connected to Voice Agent successfully")
        self.on_opened.emit()

    def _handle_message(self, frame) -> None:
        text = frame.decode("utf-8", errors="replace") if isinstance(frame, (bytes, bytearray)) else frame
        self._log(f"Received message: {text}")
        self.on_message.emit(text)
        if not len(self.on_envelope):
            return
        try:
            envelope = codec.decode(text)
        except DecodeError as exc:
            logger.debug("inbound frame is not an envelope: %s", exc)
            return
        self.on_envelope.emit(envelope)

    def _handle_error(self, transport: BaseTransport, err: BridgeError) -> None:
        if transport is not self._transport:
            return
        self.report_error(err)

    def _handle_closed(self, transport: BaseTransport, info: CloseInfo) -> None:
        if transport is not self._transport:
            # late callback from a transport this bridge already replaced
            return
        self._is_connected = False
        self._log(f"Connection closed: code={info.code} reason={info.reason!r}")
        self.on_closed.emit(info)

    # -- logging -------------------------------------------------------------
    def report_error(self, err: BridgeError) -> None:
        """Log ``err`` and deliver it to ``on_error`` subscribers right away."""
        logger.error("[VoiceAgentBridge] %s: %s", type(err).__name__, err)
        self.on_error.emit(err)

    def _log(self, message: str) -> None:
        if self.config.debug_mode:
            logger.debug("[VoiceAgentBridge] %s", message)
