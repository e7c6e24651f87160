"""Tests for readiness polling helpers."""

import errno
import socket

from duotris.networking.multiplex import is_would_block, wait_readable


class TestIsWouldBlock:
    def test_would_block_codes(self):
        assert is_would_block(errno.EAGAIN)
        assert is_would_block(errno.EINPROGRESS)
        assert is_would_block(10035)
        assert is_would_block(BlockingIOError())

    def test_real_failures(self):
        assert not is_would_block(errno.ECONNRESET)
        assert not is_would_block(OSError(errno.ECONNREFUSED, "refused"))
        assert not is_would_block(0)


class TestWaitReadable:
    def test_no_sockets(self):
        assert wait_readable([], 0.01) == set()

    def test_readable_after_write(self):
        a, b = socket.socketpair()
        try:
            assert wait_readable([b], 0) == set()
            a.sendall(b"x")
            assert wait_readable([b], 1.0) == {b}
        finally:
            a.close()
            b.close()

    def test_closed_socket_reports_nothing(self):
        a, b = socket.socketpair()
        a.close()
        b.close()
        assert wait_readable([b], 0) == set()
