"""Shared test fixtures for Duotris."""

from __future__ import annotations

import socket

import pytest

from duotris.networking.client import ClientSession
from duotris.networking.host import HostSession
from duotris.simulation.state import GameState
from tests.netutil import FakeClock, wait_until


@pytest.fixture
def game_state() -> GameState:
    """A fresh game state with seed 42."""
    return GameState(seed=42)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def host(clock):
    """A listening host on a random localhost port, driven by the fake clock."""
    session = HostSession(port=0, max_peers=2, bind_address="127.0.0.1", clock=clock)
    session.start()
    yield session
    session.shutdown()


@pytest.fixture
def connect_client(host, clock):
    """Factory for clients connected to the host fixture.

    Each call returns a client the host has already accepted.
    """
    clients: list[ClientSession] = []

    def _connect() -> ClientSession:
        client = ClientSession(clock=clock)
        client.connect("127.0.0.1", host.address[1])
        clients.append(client)
        expected = host.peer_count + 1
        wait_until(
            lambda: host.peer_count == expected,
            step=host.poll_and_dispatch,
            message="host did not accept the client",
        )
        return client

    yield _connect

    for client in clients:
        client.disconnect()


@pytest.fixture
def client(connect_client) -> ClientSession:
    return connect_client()


@pytest.fixture
def raw_peer(host):
    """A plain TCP socket the host has accepted, for sending hand-made bytes."""
    sock = socket.create_connection(("127.0.0.1", host.address[1]), timeout=2)
    expected = host.peer_count + 1
    wait_until(
        lambda: host.peer_count == expected,
        step=host.poll_and_dispatch,
        message="host did not accept the raw peer",
    )
    yield sock
    sock.close()
