"""Dependent client side of the protocol.

ClientSession owns one outbound TCP connection to the host. The game loop
sends input with send(), drains snapshots with receive() and calls
check_liveness() once per frame. The client is the side that must prove
it is alive, so check_liveness() sends heartbeats as well as detecting a
lost session.

Lifecycle: DISCONNECTED -> CONNECTING -> CONNECTED -> DISCONNECTING -> DISCONNECTED.
"""

from __future__ import annotations

import logging
import os
import socket
import time
from enum import Enum, auto

from duotris.config import CLIENT_POLL_TIMEOUT_S, HEARTBEAT_INTERVAL_MS, RECV_BUFFER_SIZE
from duotris.networking.errors import (
    ConnectFailed,
    DisconnectedError,
    FramingError,
    HeartbeatTimeout,
    InvalidStateError,
    ProtocolError,
    SendFailed,
)
from duotris.networking.framing import FrameBuffer, SendBuffer
from duotris.networking.liveness import Clock, HeartbeatMonitor
from duotris.networking.multiplex import is_would_block, wait_readable
from duotris.networking.protocol import (
    ConnectRequest,
    MessageType,
    NetworkMessage,
)
from duotris.networking.serialization import (
    decode_message,
    encode_message,
    make_message,
    message_for,
)
from duotris.networking.validation import validate_message

logger = logging.getLogger(__name__)

UNASSIGNED_PLAYER_ID = -1


class ClientState(Enum):
    DISCONNECTED = auto()
    CONNECTING = auto()
    CONNECTED = auto()
    DISCONNECTING = auto()


class ClientSession:
    """One connection to a host."""

    def __init__(
        self,
        heartbeat_interval_ms: int = HEARTBEAT_INTERVAL_MS,
        clock: Clock = time.monotonic,
    ) -> None:
        self._sock: socket.socket | None = None
        self._remote: tuple[str, int] | None = None
        self._state = ClientState.DISCONNECTED
        self._player_id = UNASSIGNED_PLAYER_ID
        self._monitor = HeartbeatMonitor(heartbeat_interval_ms, clock)
        self._frames = FrameBuffer()
        self._outbound = SendBuffer()

    def __enter__(self) -> ClientSession:
        return self

    def __exit__(self, *exc_info) -> None:
        self.disconnect()

    @property
    def state(self) -> ClientState:
        return self._state

    @property
    def player_id(self) -> int:
        """Slot id assigned by the host, or UNASSIGNED_PLAYER_ID."""
        return self._player_id

    @property
    def remote_address(self) -> tuple[str, int] | None:
        return self._remote

    @property
    def last_heartbeat(self) -> float:
        return self._monitor.last_heartbeat

    def is_connected(self) -> bool:
        return self._state == ClientState.CONNECTED

    def connect(self, address: str, port: int) -> None:
        """Start a non-blocking connection to the host.

        An attempt still in progress counts as success; the state becomes
        CONNECTED straight away and a refused connection surfaces later as a
        DisconnectedError from receive().

        Raises:
            ConnectFailed: the attempt failed outright. State stays DISCONNECTED.
        """
        if self._state != ClientState.DISCONNECTED:
            raise InvalidStateError(f"Cannot connect in state {self._state.name}")
        try:
            sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        except OSError as e:
            raise ConnectFailed(f"Cannot create socket: {e}") from e

        self._state = ClientState.CONNECTING
        try:
            sock.setblocking(False)
            err = sock.connect_ex((address, port))
        except OSError as e:
            sock.close()
            self._state = ClientState.DISCONNECTED
            raise ConnectFailed(f"Cannot connect to {address}:{port}: {e}") from e
        if err != 0 and not is_would_block(err):
            sock.close()
            self._state = ClientState.DISCONNECTED
            raise ConnectFailed(f"Cannot connect to {address}:{port}: {os.strerror(err)}")

        try:
            sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        except OSError as e:
            logger.debug("TCP_NODELAY not set: %s", e)
        self._sock = sock
        self._remote = (address, port)
        self._frames.clear()
        self._outbound.clear()
        self._player_id = UNASSIGNED_PLAYER_ID
        self._monitor.stamp()
        self._state = ClientState.CONNECTED
        logger.info("Connecting to %s:%d", address, port)

    def request_join(self, player_name: str) -> bool:
        """Ask the host for a player id. The answer arrives via receive()."""
        return self.send(message_for(ConnectRequest(player_name)))

    def send(self, message: NetworkMessage) -> bool:
        """Encode and send one message.

        Returns:
            True if sent, False if the socket would block (message dropped).

        Raises:
            SendFailed: the send failed, or the session is not connected.
        """
        if self._sock is None or self._state != ClientState.CONNECTED:
            raise SendFailed("Not connected")
        return self._send_bytes(encode_message(message))

    def _send_bytes(self, data: bytes) -> bool:
        try:
            sent = self._outbound.send_frame(self._sock, data)
        except OSError as e:
            logger.error("Send to host failed: %s", e)
            raise SendFailed(f"Send to host failed: {e}") from e
        if not sent:
            logger.warning("Send would block, message dropped")
        return sent

    def receive(self, timeout: float = CLIENT_POLL_TIMEOUT_S) -> NetworkMessage | None:
        """Return the next valid message from the host, or None if none is ready.

        The unsent tail of a partially written frame is flushed first.
        Frames already buffered from an earlier read are returned first
        without touching the socket. Corrupt or invalid frames are logged and
        dropped (None is returned for that call).

        Raises:
            DisconnectedError: the host closed the connection or the read
                failed. The socket is torn down and the state is DISCONNECTED.
        """
        if self._sock is None or self._state != ClientState.CONNECTED:
            raise InvalidStateError(f"Cannot receive in state {self._state.name}")

        if self._outbound.pending:
            try:
                self._outbound.flush(self._sock)
            except OSError as e:
                self._teardown()
                raise DisconnectedError(f"Connection to host lost: {e}") from e

        frame = self._pop_frame()
        if frame is None:
            if not wait_readable([self._sock], timeout):
                return None
            try:
                data = self._sock.recv(RECV_BUFFER_SIZE)
            except OSError as e:
                if is_would_block(e):
                    return None
                self._teardown()
                raise DisconnectedError(f"Connection to host lost: {e}") from e
            if not data:
                self._teardown()
                raise DisconnectedError("Connection closed by host")
            self._frames.feed(data)
            frame = self._pop_frame()
            if frame is None:
                return None
        return self._handle_frame(frame)

    def _pop_frame(self) -> bytes | None:
        try:
            return self._frames.pop_frame()
        except FramingError as e:
            logger.warning("Stream from host desynchronised, discarding: %s", e)
            return None

    def _handle_frame(self, frame: bytes) -> NetworkMessage | None:
        try:
            message = decode_message(frame)
        except ProtocolError as e:
            logger.warning("Dropping corrupt frame from host: %s", e)
            return None
        if not validate_message(message):
            logger.warning("Dropping invalid message from host")
            return None

        msg_type = message.msg_type
        if msg_type == MessageType.HEARTBEAT:
            self._monitor.stamp()
            logger.debug("Heartbeat received")
        elif msg_type == MessageType.CONNECT_ACCEPT:
            self._player_id = message.payload.player_id
            logger.info("Joined as player %d", self._player_id)
        elif msg_type == MessageType.CONNECT_REJECT:
            reason = message.payload
            logger.warning("Host refused the connection: %s", getattr(reason, "reason", reason))
        elif msg_type == MessageType.DISCONNECT:
            logger.info("Host is closing the session")
        return message

    def check_liveness(self) -> bool:
        """Send a heartbeat when due, and detect a lost session.

        Returns:
            True if a heartbeat was sent by this call.

        Raises:
            HeartbeatTimeout: more than three intervals since the last
                heartbeat; the caller should treat the session as lost.
        """
        if self._state != ClientState.CONNECTED:
            raise InvalidStateError(f"Cannot check liveness in state {self._state.name}")
        if self._monitor.timed_out():
            elapsed = self._monitor.elapsed_ms()
            logger.warning("Host connection stale (last heartbeat %.0f ms ago)", elapsed)
            raise HeartbeatTimeout(f"No heartbeat for {elapsed:.0f} ms")
        if self._monitor.should_send() and self.send(make_message(MessageType.HEARTBEAT)):
            self._monitor.stamp()
            logger.debug("Heartbeat sent")
            return True
        return False

    def disconnect(self) -> None:
        """Say goodbye if possible and close the socket. Never raises."""
        if self._sock is None:
            self._state = ClientState.DISCONNECTED
            return
        self._state = ClientState.DISCONNECTING
        try:
            self._send_bytes(encode_message(make_message(MessageType.DISCONNECT)))
        except SendFailed:
            pass  # already logged, teardown continues
        try:
            self._sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass  # not connected or already reset
        self._teardown()
        logger.info("Disconnected from host")

    def _teardown(self) -> None:
        if self._sock is not None:
            self._sock.close()
            self._sock = None
        self._frames.clear()
        self._outbound.clear()
        self._player_id = UNASSIGNED_PLAYER_ID
        self._state = ClientState.DISCONNECTED
