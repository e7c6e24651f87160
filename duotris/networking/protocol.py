"""Network protocol definitions.

Defines message types, the fixed header and the payload shapes exchanged
between the host and its clients. These types are the shared contract;
the codec in serialization.py turns them into bytes and back.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Union


class MessageType(IntEnum):
    """Wire message types. Tags are stable and must never be renumbered."""
    CONNECT_REQUEST = 1  # Client → Host: request to join
    CONNECT_ACCEPT = 2   # Host → Client: accepted, here is your slot
    CONNECT_REJECT = 3   # Host → Client: refused
    GAME_STATE = 4       # Host → Client: authoritative snapshot
    PLAYER_INPUT = 5     # Client → Host: pressed keys
    HEARTBEAT = 6        # Client → Host (and optionally back): liveness only
    DISCONNECT = 7       # Clean shutdown, either direction
    GAME_EVENT = 8       # Host → Client: notable simulation event


class InputKey(IntEnum):
    """Index of each key in a PlayerInputBatch."""
    MOVE_LEFT = 0
    MOVE_RIGHT = 1
    ROTATE_CW = 2
    ROTATE_CCW = 3
    SOFT_DROP = 4
    HARD_DROP = 5
    HOLD = 6
    PAUSE = 7
    QUIT = 8


INPUT_KEY_COUNT = len(InputKey)


class RejectReason(IntEnum):
    SERVER_FULL = 1
    SHUTTING_DOWN = 2


class GameEventKind(IntEnum):
    LINES_CLEARED = 1
    GAME_OVER = 2
    PEER_JOINED = 3
    PEER_LEFT = 4


@dataclass(frozen=True, slots=True)
class MessageHeader:
    """Fixed-size record preceding every payload.

    Attributes:
        size: Total bytes on the wire, header included.
        msg_type: Raw type tag. Kept as a plain int so unknown tags survive
            decoding and can be rejected by the validator.
        integrity_token: 16-bit checksum over the payload bytes.
    """
    size: int
    msg_type: int
    integrity_token: int = 0


@dataclass(frozen=True, slots=True)
class GameStateSnapshot:
    """Authoritative view of the host's simulation. Replaces the client's view."""
    elapsed_time: float
    score: int
    board: bytes      # one byte per cell, row-major, 0 = empty
    next_piece: int


@dataclass(frozen=True, slots=True)
class PlayerInputBatch:
    """Keys currently held by a client, one 0/1 entry per InputKey.

    The timestamp is advisory; the host applies batches in arrival order.
    """
    keys: tuple[int, ...]
    timestamp: float = 0.0

    @classmethod
    def from_pressed(
        cls, pressed: set[InputKey] | frozenset[InputKey], timestamp: float = 0.0,
    ) -> PlayerInputBatch:
        keys = tuple(1 if key in pressed else 0 for key in InputKey)
        return cls(keys=keys, timestamp=timestamp)

    def is_pressed(self, key: InputKey) -> bool:
        return key < len(self.keys) and self.keys[key] != 0


@dataclass(frozen=True, slots=True)
class ConnectRequest:
    player_name: str


@dataclass(frozen=True, slots=True)
class ConnectAccept:
    player_id: int


@dataclass(frozen=True, slots=True)
class ConnectReject:
    reason: RejectReason


@dataclass(frozen=True, slots=True)
class GameEvent:
    kind: GameEventKind
    value: int = 0


Payload = Union[
    GameStateSnapshot,
    PlayerInputBatch,
    ConnectRequest,
    ConnectAccept,
    ConnectReject,
    GameEvent,
    bytes,
    None,
]

PAYLOAD_TYPES: dict[type, MessageType] = {
    GameStateSnapshot: MessageType.GAME_STATE,
    PlayerInputBatch: MessageType.PLAYER_INPUT,
    ConnectRequest: MessageType.CONNECT_REQUEST,
    ConnectAccept: MessageType.CONNECT_ACCEPT,
    ConnectReject: MessageType.CONNECT_REJECT,
    GameEvent: MessageType.GAME_EVENT,
}


@dataclass(frozen=True, slots=True)
class NetworkMessage:
    """A header plus exactly one payload variant selected by header.msg_type.

    payload is None for HEARTBEAT and DISCONNECT, and raw bytes when the
    type has no registered shape or the bytes were too short to parse.
    """
    header: MessageHeader
    payload: Payload = None

    @property
    def msg_type(self) -> int:
        return self.header.msg_type

    def is_type(self, msg_type: MessageType) -> bool:
        return self.header.msg_type == msg_type
