"""Tests for semantic message validation."""

import logging

from duotris.networking.protocol import (
    ConnectAccept,
    ConnectRequest,
    GameEvent,
    GameEventKind,
    MessageHeader,
    MessageType,
    NetworkMessage,
    PlayerInputBatch,
)
from duotris.networking.serialization import (
    HEADER,
    HEADER_SIZE,
    compute_integrity_token,
    decode_message,
    make_message,
    message_for,
)
from duotris.networking.validation import validate_message


def _raw(size: int, msg_type: int, payload=None) -> NetworkMessage:
    return NetworkMessage(MessageHeader(size=size, msg_type=msg_type), payload)


def _decoded(msg_type: int, body: bytes) -> NetworkMessage:
    frame = HEADER.pack(HEADER_SIZE + len(body), msg_type, compute_integrity_token(body)) + body
    return decode_message(frame)


class TestValidateMessage:
    def test_well_formed_messages(self):
        assert validate_message(message_for(GameEvent(GameEventKind.GAME_OVER, 10)))
        assert validate_message(message_for(ConnectRequest("bob")))
        assert validate_message(make_message(MessageType.HEARTBEAT))
        assert validate_message(make_message(MessageType.DISCONNECT))

    def test_unknown_type_rejected(self, caplog):
        with caplog.at_level(logging.WARNING):
            assert not validate_message(_raw(HEADER_SIZE, 0))
            assert not validate_message(_raw(HEADER_SIZE, 42))
        assert "Invalid message type" in caplog.text

    def test_short_game_state_rejected(self):
        assert not validate_message(_raw(HEADER_SIZE + 10, MessageType.GAME_STATE))

    def test_short_player_input_rejected(self):
        batch = PlayerInputBatch.from_pressed(set())
        assert not validate_message(_raw(HEADER_SIZE + 16, MessageType.PLAYER_INPUT, batch))
        assert validate_message(_raw(HEADER_SIZE + 17, MessageType.PLAYER_INPUT, batch))

    def test_oversized_is_accepted(self):
        assert validate_message(
            _raw(HEADER_SIZE + 50, MessageType.CONNECT_ACCEPT, ConnectAccept(1))
        )

    def test_heartbeat_with_payload_warns_but_passes(self, caplog):
        with caplog.at_level(logging.WARNING):
            assert validate_message(_raw(HEADER_SIZE + 4, MessageType.HEARTBEAT))
        assert "unexpected payload" in caplog.text


class TestUndecodablePayloads:
    def test_unknown_event_kind_rejected(self, caplog):
        message = _decoded(MessageType.GAME_EVENT, b"\x00\x63\x00\x00\x00\x00")
        assert isinstance(message.payload, bytes)
        with caplog.at_level(logging.WARNING):
            assert not validate_message(message)
        assert "does not decode" in caplog.text

    def test_unknown_reject_reason_rejected(self):
        message = _decoded(MessageType.CONNECT_REJECT, b"\x09")
        assert isinstance(message.payload, bytes)
        assert not validate_message(message)

    def test_known_values_still_pass(self):
        message = _decoded(MessageType.CONNECT_ACCEPT, b"\x01")
        assert message.payload == ConnectAccept(1)
        assert validate_message(message)
