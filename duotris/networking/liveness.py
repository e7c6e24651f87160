"""Heartbeat bookkeeping.

Liveness is asymmetric: clients must prove they are alive by sending
HEARTBEAT messages, and the host passively disconnects any peer that stays
silent for longer than HEARTBEAT_TIMEOUT_MULTIPLE intervals. A client that
has not heard or said anything for HEARTBEAT_SEND_MULTIPLE intervals speaks
first.
"""

from __future__ import annotations

import time
from typing import Callable

from duotris.config import HEARTBEAT_INTERVAL_MS

HEARTBEAT_SEND_MULTIPLE = 2
HEARTBEAT_TIMEOUT_MULTIPLE = 3

Clock = Callable[[], float]  # seconds, monotonic


class HeartbeatMonitor:
    """Tracks the time of the last proof of liveness for one connection.

    Attributes:
        interval_ms: Nominal heartbeat interval.
        last_heartbeat: Clock reading (seconds) of the last stamp.
    """

    def __init__(
        self,
        interval_ms: int = HEARTBEAT_INTERVAL_MS,
        clock: Clock = time.monotonic,
    ) -> None:
        self.interval_ms = interval_ms
        self._clock = clock
        self.last_heartbeat: float = clock()

    def stamp(self) -> None:
        """Record proof of liveness now."""
        self.last_heartbeat = self._clock()

    def elapsed_ms(self) -> float:
        return (self._clock() - self.last_heartbeat) * 1000

    def exceeds(self, multiple: int) -> bool:
        """Whether more than multiple intervals have passed since the last stamp."""
        return self.elapsed_ms() > self.interval_ms * multiple

    def should_send(self) -> bool:
        return self.exceeds(HEARTBEAT_SEND_MULTIPLE)

    def timed_out(self) -> bool:
        return self.exceeds(HEARTBEAT_TIMEOUT_MULTIPLE)
