"""Semantic checks on decoded messages.

The codec only guarantees that a frame is intact. validate_message() checks
that its type is one we know, that its declared size can hold the payload
that type requires, and that the payload decoded into its dataclass.
"""

from __future__ import annotations

import logging

from duotris.networking.protocol import PAYLOAD_TYPES, MessageType, NetworkMessage
from duotris.networking.serialization import HEADER_SIZE, payload_size

logger = logging.getLogger(__name__)

_KNOWN_TYPES = frozenset(int(t) for t in MessageType)
_EMPTY_TYPES = (MessageType.HEARTBEAT, MessageType.DISCONNECT)
_PAYLOAD_CLASSES = {msg_type: cls for cls, msg_type in PAYLOAD_TYPES.items()}


def validate_message(message: NetworkMessage) -> bool:
    """Return True if the message may be acted upon.

    - Type codes outside MessageType are rejected.
    - Types with a fixed payload shape are rejected when the declared size
      is below header plus payload size.
    - HEARTBEAT and DISCONNECT with trailing bytes are accepted with a
      warning, leaving room for future payload additions.
    - Fixed-shape types whose payload failed to decode into its dataclass
      (an out-of-range enum field, say) are rejected.
    - Types without a registered shape are passed through unchecked.
    """
    header = message.header
    if header.msg_type not in _KNOWN_TYPES:
        logger.warning("Invalid message type: %d", header.msg_type)
        return False

    msg_type = MessageType(header.msg_type)
    if msg_type in _EMPTY_TYPES:
        if header.size != HEADER_SIZE:
            logger.warning(
                "%s carries %d unexpected payload bytes",
                msg_type.name, header.size - HEADER_SIZE,
            )
        return True

    required = payload_size(msg_type)
    if required is None:
        return True
    if header.size < HEADER_SIZE + required:
        logger.warning(
            "%s too short (need %d bytes, got %d)",
            msg_type.name, HEADER_SIZE + required, header.size,
        )
        return False
    payload_cls = _PAYLOAD_CLASSES.get(msg_type)
    if payload_cls is not None and not isinstance(message.payload, payload_cls):
        logger.warning("%s payload does not decode (bad field value)", msg_type.name)
        return False
    return True
