"""Shared pytest fixtures for wg_tunnel tests."""

import base64
import os
import socket
import threading

import pytest

from wg_tunnel.tunnel.config import TunnelConfig

PRIVATE_KEY_BYTES = bytes(range(32))
PUBLIC_KEY_BYTES = bytes(range(255, 223, -1))


class FakeInterface:
    """Interface handle backed by one end of a pipe."""

    def __init__(self) -> None:
        self.descriptor, self.peer = os.pipe()
        self.detached = False
        self.release_calls = 0

    def detach_descriptor(self) -> int:
        self.detached = True
        return self.descriptor

    def release(self) -> None:
        self.release_calls += 1
        if not self.detached:
            os.close(self.descriptor)

    def is_descriptor_open(self) -> bool:
        try:
            os.fstat(self.descriptor)
            return True
        except OSError:
            return False

    def cleanup(self) -> None:
        # A detached or released descriptor is no longer ours to close
        if not self.detached and not self.release_calls:
            os.close(self.descriptor)
        os.close(self.peer)


class FakeProvider:
    """Host provider handing out FakeInterface objects."""

    def __init__(self, deny: bool = False, error: Exception | None = None) -> None:
        self.deny = deny
        self.error = error
        self.calls: list[dict] = []
        self.interfaces: list[FakeInterface] = []

    def acquire(
        self,
        local_address,
        prefix_length,
        mtu,
        dns_servers,
        routed_prefixes,
        excluded_apps,
        session_name,
    ):
        self.calls.append(
            {
                "local_address": local_address,
                "prefix_length": prefix_length,
                "mtu": mtu,
                "dns_servers": dns_servers,
                "routed_prefixes": routed_prefixes,
                "excluded_apps": excluded_apps,
                "session_name": session_name,
            }
        )
        if self.error is not None:
            raise self.error
        if self.deny:
            return None
        interface = FakeInterface()
        self.interfaces.append(interface)
        return interface


class FakeSession:
    """Engine session that counts stop calls and closes its descriptor once."""

    def __init__(self, descriptor: int, error: Exception | None = None) -> None:
        self.descriptor: int | None = descriptor
        self.stop_calls = 0
        self.error = error

    def stop(self) -> None:
        self.stop_calls += 1
        if self.descriptor is not None:
            os.close(self.descriptor)
            self.descriptor = None
        if self.error is not None:
            raise self.error


class FakeEngine:
    """Engine that records start calls.

    With ``closes_descriptor_on_failure`` set it closes the descriptor it was
    handed when told to fail, like a native engine tearing its device down.
    """

    def __init__(
        self,
        closes_descriptor_on_failure: bool = True,
        fail: Exception | None = None,
        gate: threading.Event | None = None,
        session_error: Exception | None = None,
    ) -> None:
        self.closes_descriptor_on_failure = closes_descriptor_on_failure
        self.fail = fail
        self.gate = gate
        self.entered = threading.Event()
        self.session_error = session_error
        self.calls: list[tuple] = []
        self.sessions: list[FakeSession] = []

    def start(self, descriptor, config_text, proxy_address, params):
        self.calls.append((descriptor, config_text, proxy_address, params))
        self.entered.set()
        if self.gate is not None:
            self.gate.wait(timeout=5)
        if self.fail is not None:
            if self.closes_descriptor_on_failure:
                os.close(descriptor)
            raise self.fail
        session = FakeSession(descriptor, self.session_error)
        self.sessions.append(session)
        return session


class ScriptedSocksServer:
    """One-connection TCP server that answers each request with a scripted reply."""

    def __init__(self, replies: list[bytes]) -> None:
        self.replies = replies
        self.received: list[bytes] = []
        self.trailing = b""
        self.done = threading.Event()
        self._listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._listener.bind(("127.0.0.1", 0))
        self._listener.listen(1)
        self.port = self._listener.getsockname()[1]
        self._thread = threading.Thread(target=self._serve, daemon=True)
        self._thread.start()

    def _serve(self) -> None:
        try:
            conn, _ = self._listener.accept()
        except OSError:
            self.done.set()
            return
        with conn:
            conn.settimeout(5)
            try:
                for reply in self.replies:
                    request = conn.recv(1024)
                    if not request:
                        break
                    self.received.append(request)
                    conn.sendall(reply)
                # Whatever arrives until the client closes
                while True:
                    chunk = conn.recv(1024)
                    if not chunk:
                        break
                    self.trailing += chunk
            except OSError:
                pass
        self.done.set()

    def close(self) -> None:
        self._listener.close()
        self._thread.join(timeout=5)


@pytest.fixture
def private_key() -> str:
    return base64.b64encode(PRIVATE_KEY_BYTES).decode()


@pytest.fixture
def public_key() -> str:
    return base64.b64encode(PUBLIC_KEY_BYTES).decode()


@pytest.fixture
def tunnel_config(private_key, public_key) -> TunnelConfig:
    """A complete configuration routing everything through the tunnel."""
    return TunnelConfig(
        local_address="10.0.0.2",
        prefix_length=32,
        mtu=1500,
        dns_servers=("8.8.8.8",),
        routed_prefixes=("0.0.0.0/0",),
        excluded_apps=frozenset({"com.example.vpn_test"}),
        private_key=private_key,
        peer_public_key=public_key,
        endpoint_host="203.0.113.7",
        endpoint_port=51820,
        keepalive_seconds=25,
        proxy_address="127.0.0.1:1080",
    )


@pytest.fixture
def provider():
    provider = FakeProvider()
    yield provider
    for interface in provider.interfaces:
        interface.cleanup()


@pytest.fixture
def engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def socks_server():
    """Factory for scripted SOCKS servers, closed after the test."""
    servers: list[ScriptedSocksServer] = []

    def factory(*replies: bytes) -> ScriptedSocksServer:
        server = ScriptedSocksServer(list(replies))
        servers.append(server)
        return server

    yield factory
    for server in servers:
        server.close()


@pytest.fixture
def closed_port() -> int:
    """A local port with nothing listening on it."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return port
