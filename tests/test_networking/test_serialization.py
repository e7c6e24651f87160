"""Tests for message framing and payload serialization."""

import pytest

from duotris.networking.errors import (
    BufferTooSmall,
    IntegrityMismatch,
    MalformedHeader,
    TruncatedHeader,
    TruncatedPayload,
)
from duotris.networking.protocol import (
    ConnectAccept,
    ConnectReject,
    ConnectRequest,
    GameEvent,
    GameEventKind,
    GameStateSnapshot,
    InputKey,
    MessageHeader,
    MessageType,
    NetworkMessage,
    PlayerInputBatch,
    RejectReason,
)
from duotris.networking.serialization import (
    HEADER,
    HEADER_SIZE,
    compute_integrity_token,
    decode_message,
    encode_message,
    make_message,
    message_for,
    payload_size,
    peek_size,
)


def _snapshot(score: int = 100) -> GameStateSnapshot:
    return GameStateSnapshot(
        elapsed_time=12.5, score=score, board=bytes(i % 8 for i in range(200)), next_piece=3,
    )


class TestIntegrityToken:
    def test_empty(self):
        assert compute_integrity_token(b"") == 0

    def test_full_group(self):
        # bytes 0 and 2 go high, 1 and 3 go low
        assert compute_integrity_token(b"\x01\x02\x03\x04") == 0x0206

    def test_remainder_by_offset_parity(self):
        assert compute_integrity_token(b"\xff") == 0xFF00
        assert compute_integrity_token(b"\xab\xcd") == 0xABCD

    def test_group_and_remainder_can_cancel(self):
        assert compute_integrity_token(b"\x01\x02\x03\x04\x05\x06\x07") == 0x0000

    def test_always_16_bit(self):
        assert 0 <= compute_integrity_token(bytes(range(256)) * 4) <= 0xFFFF


class TestMessageRoundtrip:
    @pytest.mark.parametrize("payload", [
        _snapshot(),
        PlayerInputBatch.from_pressed({InputKey.MOVE_LEFT, InputKey.HARD_DROP}, 3.25),
        ConnectRequest("alice"),
        ConnectAccept(1),
        ConnectReject(RejectReason.SERVER_FULL),
        GameEvent(GameEventKind.LINES_CLEARED, -5),
    ])
    def test_roundtrip(self, payload):
        message = message_for(payload)
        assert decode_message(encode_message(message)) == message

    @pytest.mark.parametrize("msg_type", [MessageType.HEARTBEAT, MessageType.DISCONNECT])
    def test_empty_types(self, msg_type):
        data = encode_message(make_message(msg_type))
        assert len(data) == HEADER_SIZE
        decoded = decode_message(data)
        assert decoded.is_type(msg_type)
        assert decoded.payload is None

    def test_game_state_size(self):
        data = encode_message(message_for(_snapshot()))
        assert len(data) == HEADER_SIZE + 8 + 4 + 200 + 1
        assert peek_size(data) == len(data)

    def test_header_is_big_endian(self):
        data = encode_message(make_message(MessageType.HEARTBEAT))
        assert data[:8] == b"\x00\x00\x00\x0a\x00\x00\x00\x06"

    def test_make_message_header_matches_payload(self):
        message = message_for(GameEvent(GameEventKind.GAME_OVER, 1200))
        assert message.header.size == HEADER_SIZE + payload_size(MessageType.GAME_EVENT)
        assert message.header.msg_type == MessageType.GAME_EVENT

    def test_long_player_name_truncated(self):
        message = message_for(ConnectRequest("a" * 40))
        decoded = decode_message(encode_message(message))
        assert decoded.payload.player_name == "a" * 16

    def test_trailing_bytes_ignored(self):
        message = message_for(ConnectAccept(0))
        assert decode_message(encode_message(message) + b"junk") == message

    def test_declared_size_pads_payload(self):
        message = NetworkMessage(MessageHeader(size=HEADER_SIZE + 4, msg_type=MessageType.HEARTBEAT))
        data = encode_message(message)
        assert data[HEADER_SIZE:] == b"\x00" * 4
        assert decode_message(data).header.size == HEADER_SIZE + 4


class TestDecodeErrors:
    def test_truncated_header(self):
        data = encode_message(message_for(_snapshot()))
        with pytest.raises(TruncatedHeader):
            decode_message(data[:HEADER_SIZE - 1])

    def test_truncated_payload(self):
        data = encode_message(message_for(_snapshot()))
        with pytest.raises(TruncatedPayload):
            decode_message(data[:-1])

    def test_size_below_header(self):
        with pytest.raises(MalformedHeader):
            decode_message(HEADER.pack(4, MessageType.HEARTBEAT, 0))

    def test_every_single_bit_flip_detected(self):
        data = bytearray(encode_message(message_for(GameEvent(GameEventKind.PEER_JOINED, 7))))
        for offset in range(HEADER_SIZE, len(data)):
            for bit in range(8):
                corrupted = bytearray(data)
                corrupted[offset] ^= 1 << bit
                with pytest.raises(IntegrityMismatch):
                    decode_message(bytes(corrupted))

    def test_token_field_corruption_detected(self):
        data = bytearray(encode_message(message_for(ConnectAccept(1))))
        data[9] ^= 0x01
        with pytest.raises(IntegrityMismatch):
            decode_message(bytes(data))

    def test_errors_are_value_errors(self):
        with pytest.raises(ValueError):
            decode_message(b"")


class TestEncodeErrors:
    def test_buffer_too_small(self):
        with pytest.raises(BufferTooSmall):
            encode_message(message_for(_snapshot()), buffer_size=100)

    def test_declared_size_below_header(self):
        message = NetworkMessage(MessageHeader(size=3, msg_type=MessageType.HEARTBEAT))
        with pytest.raises(MalformedHeader):
            encode_message(message)


class TestLenientPayloadDecoding:
    def test_unknown_type_keeps_raw_bytes(self):
        body = b"\x01\x02"
        data = HEADER.pack(HEADER_SIZE + 2, 99, compute_integrity_token(body)) + body
        decoded = decode_message(data)
        assert decoded.msg_type == 99
        assert decoded.payload == body

    def test_short_body_keeps_raw_bytes(self):
        body = b"\x00\x01"
        data = HEADER.pack(HEADER_SIZE + 2, MessageType.GAME_STATE, compute_integrity_token(body))
        decoded = decode_message(data + body)
        assert decoded.payload == body

    def test_unknown_enum_value_keeps_raw_bytes(self):
        body = b"\x09"
        data = HEADER.pack(HEADER_SIZE + 1, MessageType.CONNECT_REJECT, compute_integrity_token(body))
        assert decode_message(data + body).payload == body

    def test_payload_sizes(self):
        assert payload_size(MessageType.HEARTBEAT) == 0
        assert payload_size(MessageType.PLAYER_INPUT) == 9 + 8
        assert payload_size(MessageType.CONNECT_REQUEST) == 16
        assert payload_size(99) is None
