"""Readiness polling shared by the host and client sessions.

Both roles are driven from one game-loop thread. Once per tick they ask
which of their sockets are readable, waiting at most a few milliseconds,
and then perform one non-blocking read per ready socket.
"""

from __future__ import annotations

import errno
import logging
import select
import socket

logger = logging.getLogger(__name__)

# errno values meaning "try again later" rather than failure.
# 10035 is WSAEWOULDBLOCK, 10036 WSAEINPROGRESS, 10037 WSAEALREADY.
WOULD_BLOCK_ERRNOS = frozenset({
    errno.EAGAIN,
    errno.EWOULDBLOCK,
    errno.EINPROGRESS,
    errno.EALREADY,
    10035,
    10036,
    10037,
})


def is_would_block(err: OSError | int) -> bool:
    """Whether an error (or errno value) only means "not ready yet"."""
    if isinstance(err, BlockingIOError):
        return True
    code = err if isinstance(err, int) else err.errno
    return code in WOULD_BLOCK_ERRNOS


def wait_readable(
    sockets: list[socket.socket], timeout: float,
) -> set[socket.socket]:
    """Return the subset of sockets that are readable within timeout seconds.

    An empty list returns immediately. A failing readiness check is logged
    and reported as nothing ready so the caller's tick carries on.
    """
    if not sockets:
        return set()
    try:
        readable, _, _ = select.select(sockets, [], [], timeout)
    except (OSError, ValueError) as e:
        logger.error("Readiness check failed: %s", e)
        return set()
    return set(readable)
