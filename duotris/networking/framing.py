"""Per-connection framing on top of a TCP byte stream.

A single recv() may return half a frame or several frames back to back.
FrameBuffer accumulates the bytes and hands out one complete frame at a
time, cut at the size declared in each header.

A non-blocking send() may likewise take only part of a frame. SendBuffer
keeps the unsent tail and writes it before anything else, so a frame is
either delivered whole or never started.
"""

from __future__ import annotations

import socket

from duotris.config import RECV_BUFFER_SIZE
from duotris.networking.errors import FramingError
from duotris.networking.multiplex import is_would_block
from duotris.networking.serialization import HEADER_SIZE, peek_size


class FrameBuffer:
    """Accumulates stream bytes and yields whole frames.

    Usage:
        frames = FrameBuffer()
        frames.feed(sock.recv(1024))
        while (frame := frames.pop_frame()) is not None:
            handle(decode_message(frame))
    """

    def __init__(self, max_frame_size: int = RECV_BUFFER_SIZE) -> None:
        self._buffer = bytearray()
        self._max_frame_size = max_frame_size

    def feed(self, data: bytes) -> None:
        self._buffer += data

    def pop_frame(self) -> bytes | None:
        """Remove and return the next complete frame, or None if incomplete.

        Raises FramingError if the next header declares an impossible size.
        The buffer is cleared first because the stream position of the next
        frame is unknown from then on.
        """
        if len(self._buffer) < HEADER_SIZE:
            return None
        size = peek_size(self._buffer)
        if size < HEADER_SIZE or size > self._max_frame_size:
            self._buffer.clear()
            raise FramingError(f"Implausible frame size {size}")
        if len(self._buffer) < size:
            return None
        frame = bytes(self._buffer[:size])
        del self._buffer[:size]
        return frame

    def clear(self) -> None:
        self._buffer.clear()


def _write(sock: socket.socket, data: bytes) -> bytes:
    """Write as much of data as the socket takes now. Returns the rest.

    Raises OSError for anything other than would-block.
    """
    view = memoryview(data)
    while view:
        try:
            sent = sock.send(view)
        except OSError as e:
            if is_would_block(e):
                break
            raise
        view = view[sent:]
    return bytes(view)


class SendBuffer:
    """Holds the unsent tail of a partially written frame."""

    def __init__(self) -> None:
        self._pending = b""

    @property
    def pending(self) -> int:
        """Bytes still owed to the stream."""
        return len(self._pending)

    def flush(self, sock: socket.socket) -> bool:
        """Write the pending tail. True once nothing is left."""
        if self._pending:
            self._pending = _write(sock, self._pending)
        return not self._pending

    def send_frame(self, sock: socket.socket, frame: bytes) -> bool:
        """Send one whole frame after any pending tail.

        Returns False if the frame was dropped untouched, either because an
        earlier tail is still pending or because the socket took nothing.
        Once any byte of the frame is written the rest is queued and True
        is returned.

        Raises OSError if the connection failed.
        """
        if not self.flush(sock):
            return False
        rest = _write(sock, frame)
        if len(rest) == len(frame):
            return False
        self._pending = rest
        return True

    def clear(self) -> None:
        self._pending = b""
