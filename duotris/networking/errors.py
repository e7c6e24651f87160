"""Exceptions raised by the protocol core.

Codec failures derive from ProtocolError (a ValueError, like any malformed
input). Connection failures derive from NetworkError. Transient conditions
such as would-block or "no data yet" are never raised; they come back as
None or 0.
"""

from __future__ import annotations


class ProtocolError(ValueError):
    """A frame could not be encoded or decoded."""


class BufferTooSmall(ProtocolError):
    """The message does not fit in the output buffer."""


class TruncatedHeader(ProtocolError):
    """Fewer bytes than a header were available."""


class MalformedHeader(ProtocolError):
    """The header declares a size smaller than the header itself."""


class TruncatedPayload(ProtocolError):
    """Fewer bytes than the header's declared size were available."""


class IntegrityMismatch(ProtocolError):
    """The recomputed integrity token differs from the header's token."""


class FramingError(ProtocolError):
    """A stream carries a frame length that cannot be trusted."""


class NetworkError(Exception):
    """Base class for connection and session failures."""


class InitializationError(NetworkError):
    """Socket creation, bind or listen failed. Fatal to session start."""


class InvalidStateError(NetworkError):
    """The operation is not valid in the session's current state."""


class CapacityExceeded(NetworkError):
    """All peer slots are occupied."""


class InvalidPeer(NetworkError):
    """The slot id is out of range or not connected."""


class AllSendsFailed(NetworkError):
    """Every connected peer failed a broadcast."""


class SendFailed(NetworkError):
    """A send failed for a reason other than would-block."""


class ConnectFailed(NetworkError):
    """The connection attempt failed outright."""


class DisconnectedError(NetworkError, ConnectionError):
    """The remote side closed the connection or the read failed."""


class HeartbeatTimeout(NetworkError, TimeoutError):
    """No proof of liveness for longer than the timeout multiple."""
