"""Authoritative host side of the protocol.

HostSession owns a listening TCP socket and a fixed array of peer slots.
The game loop calls poll_and_dispatch() once per frame; everything else
(accepting, reading, routing, liveness) happens inside that call or in the
explicit broadcast/send/check_liveness operations. Nothing blocks for
longer than the poll timeout.

Lifecycle: IDLE -> LISTENING -> RUNNING -> SHUTDOWN.
"""

from __future__ import annotations

import logging
import socket
import time
from dataclasses import dataclass, field
from enum import Enum, auto

from duotris.config import (
    DEFAULT_PORT,
    HEARTBEAT_INTERVAL_MS,
    HOST_POLL_TIMEOUT_S,
    MAX_PEERS,
    RECV_BUFFER_SIZE,
)
from duotris.networking.errors import (
    AllSendsFailed,
    CapacityExceeded,
    FramingError,
    InitializationError,
    InvalidPeer,
    InvalidStateError,
    ProtocolError,
    SendFailed,
)
from duotris.networking.framing import FrameBuffer, SendBuffer
from duotris.networking.liveness import Clock, HeartbeatMonitor
from duotris.networking.multiplex import is_would_block, wait_readable
from duotris.networking.protocol import (
    ConnectAccept,
    ConnectReject,
    MessageType,
    NetworkMessage,
    RejectReason,
)
from duotris.networking.serialization import (
    decode_message,
    encode_message,
    make_message,
    message_for,
)
from duotris.networking.validation import validate_message

logger = logging.getLogger(__name__)


class HostState(Enum):
    IDLE = auto()
    LISTENING = auto()
    RUNNING = auto()
    SHUTDOWN = auto()


class SendOutcome(Enum):
    SENT = auto()
    WOULD_BLOCK = auto()  # peer misses this message, no retry
    FAILED = auto()       # peer has been disconnected


@dataclass(slots=True)
class ConnectionEndpoint:
    """One peer slot. Never handed to application code.

    The record stays in its slot after a disconnect (connected=False) so
    the slot id remains meaningful until a new accept reuses it.
    """
    sock: socket.socket
    address: tuple[str, int]
    slot_id: int
    monitor: HeartbeatMonitor
    connected: bool = True
    frames: FrameBuffer = field(default_factory=FrameBuffer)
    outbound: SendBuffer = field(default_factory=SendBuffer)


class HostSession:
    """Listening endpoint plus a bounded set of peer connections.

    Usage:
        host = HostSession(port=5555)
        host.start()
        while running:
            host.poll_and_dispatch()
            for slot_id, message in host.receive_inputs():
                ...
            host.broadcast(snapshot_message)
            host.check_liveness()
        host.shutdown()
    """

    def __init__(
        self,
        port: int = DEFAULT_PORT,
        max_peers: int = MAX_PEERS,
        heartbeat_interval_ms: int = HEARTBEAT_INTERVAL_MS,
        bind_address: str = "0.0.0.0",
        clock: Clock = time.monotonic,
    ) -> None:
        if max_peers < 1:
            raise ValueError("max_peers must be at least 1")
        self._port = port
        self._bind_address = bind_address
        self._heartbeat_interval_ms = heartbeat_interval_ms
        self._clock = clock
        self._listen_sock: socket.socket | None = None
        self._slots: list[ConnectionEndpoint | None] = [None] * max_peers
        self._state = HostState.IDLE
        self._received_inputs: list[tuple[int, NetworkMessage]] = []

    def __enter__(self) -> HostSession:
        if self._state == HostState.IDLE:
            self.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.shutdown()

    # --- Introspection ---

    @property
    def state(self) -> HostState:
        return self._state

    @property
    def max_peers(self) -> int:
        return len(self._slots)

    @property
    def address(self) -> tuple[str, int]:
        """Bound (host, port). Useful after binding port 0."""
        if self._listen_sock is None:
            return (self._bind_address, self._port)
        return self._listen_sock.getsockname()[:2]

    @property
    def peer_count(self) -> int:
        return len(self._connected())

    def connected_slots(self) -> list[int]:
        return [ep.slot_id for ep in self._connected()]

    def is_connected(self, slot_id: int) -> bool:
        if not 0 <= slot_id < len(self._slots):
            return False
        ep = self._slots[slot_id]
        return ep is not None and ep.connected

    def peer_address(self, slot_id: int) -> tuple[str, int] | None:
        ep = self._slots[slot_id] if 0 <= slot_id < len(self._slots) else None
        return ep.address if ep is not None and ep.connected else None

    def last_heartbeat(self, slot_id: int) -> float | None:
        """Clock reading of the peer's last proof of liveness."""
        ep = self._slots[slot_id] if 0 <= slot_id < len(self._slots) else None
        return ep.monitor.last_heartbeat if ep is not None else None

    # --- Lifecycle ---

    def start(self) -> None:
        """Bind and listen. IDLE -> LISTENING.

        Raises InitializationError if the socket cannot be created, bound or
        put into listening mode.
        """
        if self._state != HostState.IDLE:
            raise InvalidStateError(f"Cannot start host in state {self._state.name}")
        try:
            sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        except OSError as e:
            raise InitializationError(f"Cannot create socket: {e}") from e
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((self._bind_address, self._port))
            sock.listen(len(self._slots))
            sock.setblocking(False)
        except OSError as e:
            sock.close()
            raise InitializationError(
                f"Cannot listen on {self._bind_address}:{self._port}: {e}"
            ) from e
        self._listen_sock = sock
        self._state = HostState.LISTENING
        host, port = self.address
        logger.info("Listening on %s:%d (max %d peers)", host, port, len(self._slots))

    def shutdown(self) -> None:
        """Notify and close every peer, close the listener. Terminal.

        Safe to call more than once.
        """
        if self._state == HostState.SHUTDOWN:
            return
        goodbye = encode_message(make_message(MessageType.DISCONNECT))
        for ep in self._connected():
            self._transmit(ep, goodbye)
            if ep.connected:
                try:
                    ep.sock.shutdown(socket.SHUT_RDWR)
                except OSError:
                    pass  # already reset by the peer
                self._close_endpoint(ep, "host shutdown")
        if self._listen_sock is not None:
            self._listen_sock.close()
            self._listen_sock = None
        self._received_inputs.clear()
        self._state = HostState.SHUTDOWN
        logger.info("Host shut down")

    # --- Accepting ---

    def accept(self) -> int | None:
        """Accept one pending connection into the lowest vacant slot.

        Returns:
            The new peer's slot id, or None if no connection was pending.

        Raises:
            CapacityExceeded: every slot is occupied.
        """
        self._require_active()
        slot_id = self._free_slot()
        if slot_id is None:
            raise CapacityExceeded(f"All {len(self._slots)} peer slots are occupied")
        try:
            sock, addr = self._listen_sock.accept()
        except OSError as e:
            if not is_would_block(e):
                logger.warning("Accept failed: %s", e)
            return None
        try:
            sock.setblocking(False)
        except OSError as e:
            logger.warning("Dropping %s:%d, socket setup failed: %s", addr[0], addr[1], e)
            sock.close()
            return None
        try:
            sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        except OSError as e:
            logger.debug("TCP_NODELAY not set for %s:%d: %s", addr[0], addr[1], e)
        self._slots[slot_id] = ConnectionEndpoint(
            sock=sock,
            address=addr[:2],
            slot_id=slot_id,
            monitor=HeartbeatMonitor(self._heartbeat_interval_ms, self._clock),
        )
        if self._state == HostState.LISTENING:
            self._state = HostState.RUNNING
        logger.info("Peer %d connected from %s:%d", slot_id, addr[0], addr[1])
        return slot_id

    def _reject_pending(self, reason: RejectReason) -> None:
        """Accept a pending connection only to refuse it and close it."""
        try:
            sock, addr = self._listen_sock.accept()
        except OSError as e:
            if not is_would_block(e):
                logger.warning("Accept failed: %s", e)
            return
        logger.warning("Rejecting %s:%d (%s)", addr[0], addr[1], reason.name)
        try:
            sock.setblocking(False)
            sock.send(encode_message(message_for(ConnectReject(reason))))
        except OSError as e:
            logger.debug("Reject notice to %s:%d not sent: %s", addr[0], addr[1], e)
        finally:
            sock.close()

    # --- Receiving ---

    def poll_and_dispatch(self, timeout: float = HOST_POLL_TIMEOUT_S) -> int:
        """One tick of network input.

        Finishes any partially sent frames, waits at most timeout seconds
        for readiness on the listener and all connected peers, accepts at
        most one new peer, then reads once from each ready peer and routes
        every complete message it now holds.

        Returns:
            The number of valid messages processed.
        """
        self._require_active()
        self._flush_outbound()
        watched = [self._listen_sock] + [ep.sock for ep in self._connected()]
        ready = wait_readable(watched, timeout)
        if not ready:
            return 0

        if self._listen_sock in ready:
            try:
                self.accept()
            except CapacityExceeded:
                self._reject_pending(RejectReason.SERVER_FULL)

        processed = 0
        for ep in self._slots:
            if ep is not None and ep.connected and ep.sock in ready:
                processed += self._receive_from(ep)
        return processed

    def receive_inputs(self) -> list[tuple[int, NetworkMessage]]:
        """Remove and return queued PLAYER_INPUT messages as (slot_id, message)."""
        inputs = self._received_inputs
        self._received_inputs = []
        return inputs

    def _receive_from(self, ep: ConnectionEndpoint) -> int:
        try:
            data = ep.sock.recv(RECV_BUFFER_SIZE)
        except OSError as e:
            if is_would_block(e):
                return 0
            self._close_endpoint(ep, f"read failed: {e}")
            return 0
        if not data:
            self._close_endpoint(ep, "closed by peer")
            return 0

        ep.frames.feed(data)
        processed = 0
        while ep.connected:
            try:
                frame = ep.frames.pop_frame()
            except FramingError as e:
                logger.warning("Peer %d stream desynchronised, discarding: %s", ep.slot_id, e)
                break
            if frame is None:
                break
            if self._dispatch(ep, frame):
                processed += 1
        return processed

    def _dispatch(self, ep: ConnectionEndpoint, frame: bytes) -> bool:
        try:
            message = decode_message(frame)
        except ProtocolError as e:
            logger.warning("Dropping corrupt frame from peer %d: %s", ep.slot_id, e)
            return False
        if not validate_message(message):
            logger.warning("Dropping invalid message from peer %d", ep.slot_id)
            return False

        msg_type = message.msg_type
        if msg_type == MessageType.PLAYER_INPUT:
            logger.debug("Input from peer %d", ep.slot_id)
            self._received_inputs.append((ep.slot_id, message))
        elif msg_type == MessageType.HEARTBEAT:
            logger.debug("Heartbeat from peer %d", ep.slot_id)
            ep.monitor.stamp()
        elif msg_type == MessageType.DISCONNECT:
            self._close_endpoint(ep, "disconnect requested")
        elif msg_type == MessageType.CONNECT_REQUEST:
            logger.info("Peer %d joined as %r", ep.slot_id, message.payload.player_name)
            self._transmit(ep, encode_message(message_for(ConnectAccept(ep.slot_id))))
        else:
            logger.warning("Ignoring message type %d from peer %d", msg_type, ep.slot_id)
        return True

    # --- Sending ---

    def broadcast(self, message: NetworkMessage) -> int:
        """Send the same encoded bytes to every connected peer.

        A peer whose socket would block simply misses this message. A peer
        whose send fails outright is disconnected.

        Returns:
            The number of peers the message was sent to (0 with no peers).

        Raises:
            AllSendsFailed: every connected peer failed outright.
        """
        self._require_active()
        data = encode_message(message)
        peers = self._connected()
        sent = failed = 0
        for ep in peers:
            outcome = self._transmit(ep, data)
            if outcome == SendOutcome.SENT:
                sent += 1
            elif outcome == SendOutcome.FAILED:
                failed += 1
        if peers and failed == len(peers):
            raise AllSendsFailed(f"Broadcast failed for all {failed} peers")
        return sent

    def send_to(self, slot_id: int, message: NetworkMessage) -> bool:
        """Send to one peer.

        Returns:
            True if sent, False if the peer's socket would block.

        Raises:
            InvalidPeer: slot_id is out of range or vacant.
            SendFailed: the send failed and the peer was disconnected.
        """
        self._require_active()
        ep = self._endpoint(slot_id)
        outcome = self._transmit(ep, encode_message(message))
        if outcome == SendOutcome.FAILED:
            raise SendFailed(f"Send to peer {slot_id} failed")
        return outcome == SendOutcome.SENT

    def _transmit(self, ep: ConnectionEndpoint, data: bytes) -> SendOutcome:
        try:
            sent = ep.outbound.send_frame(ep.sock, data)
        except OSError as e:
            logger.error("Send to peer %d failed: %s", ep.slot_id, e)
            self._close_endpoint(ep, "send failed")
            return SendOutcome.FAILED
        if not sent:
            logger.warning("Send to peer %d would block, dropped", ep.slot_id)
            return SendOutcome.WOULD_BLOCK
        return SendOutcome.SENT

    def _flush_outbound(self) -> None:
        """Write partially sent frames that are still owed to peers."""
        for ep in self._connected():
            if not ep.outbound.pending:
                continue
            try:
                ep.outbound.flush(ep.sock)
            except OSError as e:
                logger.error("Send to peer %d failed: %s", ep.slot_id, e)
                self._close_endpoint(ep, "send failed")

    # --- Liveness ---

    def check_liveness(self) -> int:
        """Disconnect peers silent for more than three heartbeat intervals.

        The host never sends heartbeats itself; peers must prove liveness.

        Returns:
            The number of peers disconnected by this call.
        """
        self._require_active()
        dropped = 0
        for ep in self._connected():
            if ep.monitor.timed_out():
                logger.warning(
                    "Peer %d timed out (last heartbeat %.0f ms ago)",
                    ep.slot_id, ep.monitor.elapsed_ms(),
                )
                self._close_endpoint(ep, "heartbeat timeout")
                dropped += 1
        return dropped

    def disconnect_peer(self, slot_id: int) -> None:
        """Tell one peer goodbye and vacate its slot."""
        self._require_active()
        ep = self._endpoint(slot_id)
        self._transmit(ep, encode_message(make_message(MessageType.DISCONNECT)))
        self._close_endpoint(ep, "disconnected by host")

    # --- Slots ---

    def _connected(self) -> list[ConnectionEndpoint]:
        return [ep for ep in self._slots if ep is not None and ep.connected]

    def _free_slot(self) -> int | None:
        for slot_id, ep in enumerate(self._slots):
            if ep is None or not ep.connected:
                return slot_id
        return None

    def _endpoint(self, slot_id: int) -> ConnectionEndpoint:
        if not 0 <= slot_id < len(self._slots):
            raise InvalidPeer(f"Slot {slot_id} out of range")
        ep = self._slots[slot_id]
        if ep is None or not ep.connected:
            raise InvalidPeer(f"Slot {slot_id} is not connected")
        return ep

    def _close_endpoint(self, ep: ConnectionEndpoint, reason: str) -> None:
        if not ep.connected:
            return
        ep.connected = False
        ep.frames.clear()
        ep.outbound.clear()
        ep.sock.close()
        logger.info("Peer %d disconnected (%s)", ep.slot_id, reason)

    def _require_active(self) -> None:
        if self._state not in (HostState.LISTENING, HostState.RUNNING):
            raise InvalidStateError(f"Host is {self._state.name}")
