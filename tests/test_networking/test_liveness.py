"""Tests for heartbeat bookkeeping."""

from duotris.networking.liveness import HeartbeatMonitor
from tests.netutil import FakeClock


class TestHeartbeatMonitor:
    def test_fresh_monitor(self):
        clock = FakeClock()
        monitor = HeartbeatMonitor(1000, clock)
        assert monitor.last_heartbeat == clock.now
        assert monitor.elapsed_ms() == 0
        assert not monitor.should_send()
        assert not monitor.timed_out()

    def test_send_threshold_is_strict(self):
        clock = FakeClock()
        monitor = HeartbeatMonitor(1000, clock)
        clock.advance_ms(2000)
        assert not monitor.should_send()
        clock.advance_ms(1)
        assert monitor.should_send()
        assert not monitor.timed_out()

    def test_timeout_threshold_is_strict(self):
        clock = FakeClock()
        monitor = HeartbeatMonitor(1000, clock)
        clock.advance_ms(3000)
        assert not monitor.timed_out()
        clock.advance_ms(1)
        assert monitor.timed_out()

    def test_stamp_resets(self):
        clock = FakeClock()
        monitor = HeartbeatMonitor(100, clock)
        clock.advance_ms(500)
        monitor.stamp()
        assert monitor.last_heartbeat == clock.now
        assert not monitor.timed_out()
