"""Binary serialization for network messages.

All encoding uses struct for a compact, deterministic binary format.
Network byte order (big-endian) throughout, whatever the host architecture.

Wire format for a full message:
    [size:u32][type:u32][integrity_token:u16][payload:size-10 bytes]

Payload formats:
    GAME_STATE       [elapsed_time:f64][score:i32][board:200 bytes][next_piece:u8]
    PLAYER_INPUT     [keys:9 bytes][timestamp:f64]
    CONNECT_REQUEST  [player_name:16 bytes, UTF-8, NUL padded]
    CONNECT_ACCEPT   [player_id:u8]
    CONNECT_REJECT   [reason:u8]
    GAME_EVENT       [kind:u16][value:i32]
    HEARTBEAT, DISCONNECT carry no payload.
"""

from __future__ import annotations

import struct
from typing import Callable

from duotris.config import BOARD_SIZE, PLAYER_NAME_MAX_BYTES, RECV_BUFFER_SIZE
from duotris.networking.errors import (
    BufferTooSmall,
    IntegrityMismatch,
    MalformedHeader,
    TruncatedHeader,
    TruncatedPayload,
)
from duotris.networking.protocol import (
    INPUT_KEY_COUNT,
    PAYLOAD_TYPES,
    ConnectAccept,
    ConnectReject,
    ConnectRequest,
    GameEvent,
    GameEventKind,
    GameStateSnapshot,
    MessageHeader,
    MessageType,
    NetworkMessage,
    Payload,
    PlayerInputBatch,
    RejectReason,
)


# --- Message framing ---

HEADER = struct.Struct("!IIH")  # size (u32), type (u32), integrity_token (u16)
HEADER_SIZE = HEADER.size       # 10


def compute_integrity_token(payload: bytes) -> int:
    """16-bit rolling XOR over the payload.

    Full 4-byte groups contribute bytes 0 and 2 in the high octet and bytes
    1 and 3 in the low octet. The trailing 0-3 bytes go high when their
    offset is even, low when odd. Both peers must compute this bit for bit.

    Any single flipped bit changes the token. Two flips of the same bit at
    offsets of equal parity cancel out; that is a known limitation.
    """
    token = 0
    full = len(payload) - len(payload) % 4
    for i in range(0, full, 4):
        token ^= payload[i] << 8
        token ^= payload[i + 1]
        token ^= payload[i + 2] << 8
        token ^= payload[i + 3]
    for i in range(full, len(payload)):
        if i % 2 == 0:
            token ^= payload[i] << 8
        else:
            token ^= payload[i]
    return token & 0xFFFF


# --- Payload formats ---

GAME_STATE_FMT = struct.Struct(f"!di{BOARD_SIZE}sB")
PLAYER_INPUT_FMT = struct.Struct(f"!{INPUT_KEY_COUNT}sd")
CONNECT_REQUEST_FMT = struct.Struct(f"!{PLAYER_NAME_MAX_BYTES}s")
CONNECT_ACCEPT_FMT = struct.Struct("!B")
CONNECT_REJECT_FMT = struct.Struct("!B")
GAME_EVENT_FMT = struct.Struct("!Hi")


def _pack_game_state(p: GameStateSnapshot) -> bytes:
    return GAME_STATE_FMT.pack(p.elapsed_time, p.score, p.board, p.next_piece)


def _unpack_game_state(fields: tuple) -> GameStateSnapshot:
    elapsed_time, score, board, next_piece = fields
    return GameStateSnapshot(elapsed_time, score, board, next_piece)


def _pack_player_input(p: PlayerInputBatch) -> bytes:
    return PLAYER_INPUT_FMT.pack(bytes(p.keys), p.timestamp)


def _unpack_player_input(fields: tuple) -> PlayerInputBatch:
    keys, timestamp = fields
    return PlayerInputBatch(keys=tuple(keys), timestamp=timestamp)


def _pack_connect_request(p: ConnectRequest) -> bytes:
    return CONNECT_REQUEST_FMT.pack(p.player_name.encode("utf-8"))


def _unpack_connect_request(fields: tuple) -> ConnectRequest:
    (raw,) = fields
    return ConnectRequest(raw.rstrip(b"\x00").decode("utf-8", errors="replace"))


def _pack_connect_accept(p: ConnectAccept) -> bytes:
    return CONNECT_ACCEPT_FMT.pack(p.player_id)


def _unpack_connect_accept(fields: tuple) -> ConnectAccept:
    return ConnectAccept(fields[0])


def _pack_connect_reject(p: ConnectReject) -> bytes:
    return CONNECT_REJECT_FMT.pack(p.reason)


def _unpack_connect_reject(fields: tuple) -> ConnectReject:
    return ConnectReject(RejectReason(fields[0]))


def _pack_game_event(p: GameEvent) -> bytes:
    return GAME_EVENT_FMT.pack(p.kind, p.value)


def _unpack_game_event(fields: tuple) -> GameEvent:
    kind, value = fields
    return GameEvent(GameEventKind(kind), value)


_PAYLOAD_CODECS: dict[MessageType, tuple[struct.Struct, Callable, Callable]] = {
    MessageType.GAME_STATE: (GAME_STATE_FMT, _pack_game_state, _unpack_game_state),
    MessageType.PLAYER_INPUT: (PLAYER_INPUT_FMT, _pack_player_input, _unpack_player_input),
    MessageType.CONNECT_REQUEST: (
        CONNECT_REQUEST_FMT, _pack_connect_request, _unpack_connect_request,
    ),
    MessageType.CONNECT_ACCEPT: (
        CONNECT_ACCEPT_FMT, _pack_connect_accept, _unpack_connect_accept,
    ),
    MessageType.CONNECT_REJECT: (
        CONNECT_REJECT_FMT, _pack_connect_reject, _unpack_connect_reject,
    ),
    MessageType.GAME_EVENT: (GAME_EVENT_FMT, _pack_game_event, _unpack_game_event),
}


def payload_size(msg_type: int) -> int | None:
    """Fixed payload size for a type, 0 for empty types, None if unregistered."""
    if msg_type in (MessageType.HEARTBEAT, MessageType.DISCONNECT):
        return 0
    codec = _PAYLOAD_CODECS.get(msg_type)
    return codec[0].size if codec is not None else None


def encode_payload(payload: Payload) -> bytes:
    """Pack a payload object into bytes. None packs to nothing."""
    if payload is None:
        return b""
    if isinstance(payload, (bytes, bytearray)):
        return bytes(payload)
    _, pack, _ = _PAYLOAD_CODECS[PAYLOAD_TYPES[type(payload)]]
    return pack(payload)


def decode_payload(msg_type: int, body: bytes) -> Payload:
    """Select and build the payload variant for msg_type.

    Returns the raw bytes when the type has no registered shape or the body
    cannot be parsed; validate_message() decides whether that is acceptable.
    """
    if msg_type in (MessageType.HEARTBEAT, MessageType.DISCONNECT):
        return None
    codec = _PAYLOAD_CODECS.get(msg_type)
    if codec is None:
        return bytes(body)
    fmt, _, unpack = codec
    if len(body) < fmt.size:
        return bytes(body)
    try:
        return unpack(fmt.unpack_from(body))
    except ValueError:
        # enum field outside its known range
        return bytes(body)


# --- Messages ---

def make_message(msg_type: MessageType, payload: Payload = None) -> NetworkMessage:
    """Build a message whose header matches its payload."""
    body = encode_payload(payload)
    header = MessageHeader(
        size=HEADER_SIZE + len(body),
        msg_type=msg_type,
        integrity_token=compute_integrity_token(body),
    )
    return NetworkMessage(header=header, payload=payload)


def message_for(payload: Payload) -> NetworkMessage:
    """Build a message, inferring the type from the payload class."""
    return make_message(PAYLOAD_TYPES[type(payload)], payload)


def encode_message(message: NetworkMessage, buffer_size: int = RECV_BUFFER_SIZE) -> bytes:
    """Frame a message into bytes.

    The payload is fitted to header.size - HEADER_SIZE bytes (zero padded or
    cut) and the integrity token is recomputed over exactly those bytes.

    Raises BufferTooSmall if header.size exceeds buffer_size, and
    MalformedHeader if header.size is smaller than the header itself.
    """
    size = message.header.size
    if size > buffer_size:
        raise BufferTooSmall(f"Message of {size} bytes exceeds buffer of {buffer_size}")
    if size < HEADER_SIZE:
        raise MalformedHeader(f"Declared size {size} below header size {HEADER_SIZE}")
    body_size = size - HEADER_SIZE
    body = encode_payload(message.payload)[:body_size].ljust(body_size, b"\x00")
    token = compute_integrity_token(body)
    return HEADER.pack(size, message.header.msg_type, token) + body


def peek_size(data: bytes | bytearray) -> int:
    """Declared total size of the frame at the start of data."""
    if len(data) < HEADER_SIZE:
        raise TruncatedHeader(f"Need {HEADER_SIZE} header bytes, have {len(data)}")
    (size,) = struct.unpack_from("!I", data)
    return size


def decode_message(data: bytes | bytearray) -> NetworkMessage:
    """Unwrap one frame from the start of data.

    Bytes past the declared size are ignored.

    Raises TruncatedHeader, MalformedHeader, TruncatedPayload or
    IntegrityMismatch.
    """
    if len(data) < HEADER_SIZE:
        raise TruncatedHeader(f"Need {HEADER_SIZE} header bytes, have {len(data)}")
    size, msg_type, token = HEADER.unpack_from(data)
    if size < HEADER_SIZE:
        raise MalformedHeader(f"Declared size {size} below header size {HEADER_SIZE}")
    if len(data) < size:
        raise TruncatedPayload(f"Declared {size} bytes, have {len(data)}")
    body = bytes(data[HEADER_SIZE:size])
    actual = compute_integrity_token(body)
    if actual != token:
        raise IntegrityMismatch(f"Token {token:#06x} != computed {actual:#06x}")
    header = MessageHeader(size=size, msg_type=msg_type, integrity_token=token)
    return NetworkMessage(header=header, payload=decode_payload(msg_type, body))
