"""Tests for readiness polling."""

import socket

import pytest

from gateway.multiplexer import ReadinessMultiplexer


@pytest.fixture
def mux():
    m = ReadinessMultiplexer()
    yield m
    m.close()


@pytest.fixture
def pair():
    a, b = socket.socketpair()
    yield a, b
    a.close()
    b.close()


class TestReadinessMultiplexer:

    def test_timeout_returns_empty(self, mux, pair):
        a, _ = pair
        assert mux.register(a)
        assert mux.poll(0.01) == set()

    def test_ready_socket_reported(self, mux, pair):
        a, b = pair
        mux.register(a)
        b.sendall(b"x")
        assert mux.poll(1.0) == {a}

    def test_only_ready_sockets_reported(self, mux):
        a1, b1 = socket.socketpair()
        a2, b2 = socket.socketpair()
        try:
            mux.register(a1)
            mux.register(a2)
            b2.sendall(b"x")
            assert mux.poll(1.0) == {a2}
        finally:
            for s in (a1, b1, a2, b2):
                s.close()

    def test_unregistered_socket_not_reported(self, mux, pair):
        a, b = pair
        mux.register(a)
        assert mux.unregister(a)
        b.sendall(b"x")
        assert mux.poll(0.01) == set()

    def test_unregister_unknown_is_false(self, mux, pair):
        a, _ = pair
        assert mux.unregister(a) is False

    def test_double_register_fails_without_raising(self, mux, pair):
        a, _ = pair
        assert mux.register(a)
        assert mux.register(a) is False
        assert len(mux) == 1

    def test_register_closed_socket_fails(self, mux):
        a, b = socket.socketpair()
        a.close()
        b.close()
        assert mux.register(a) is False

    def test_close_marks_closed(self):
        m = ReadinessMultiplexer()
        assert not m.closed
        m.close()
        assert m.closed
