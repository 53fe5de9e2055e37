"""SOCKS5 UDP ASSOCIATE capability probe.

Speaks just enough SOCKS5 (RFC 1928, plus RFC 1929 username/password
authentication) to find out whether a proxy will relay UDP and where its
relay endpoint is. No datagrams are ever sent; the TCP control connection is
closed as soon as the answer is known.

Example:
    result = probe_socks5_udp("192.168.1.10", 1080)
    if result.supports_udp:
        print(f"relay at {result.relay_address}")
"""

import concurrent.futures
import ipaddress
import socket
import struct
from collections.abc import Callable
from types import TracebackType
from typing import Final, Literal

from ..common.exceptions import ProbeError
from ..common.logging import get_logger
from ..common.utils import to_hex, validate_port
from ..common.worker import BackgroundWorker
from ..tunnel.config import MAX_CREDENTIAL_BYTES, ProbeSettings
from .models import ProbeFailure, ProbeResult, RelayAddress

logger = get_logger(__name__)

# SOCKS protocol constants
SOCKS_VERSION: Final = 5
AUTH_VERSION: Final = 1
METHOD_NO_AUTH: Final = 0x00
METHOD_USERNAME_PASSWORD: Final = 0x02
METHOD_NO_ACCEPTABLE: Final = 0xFF
UDP_ASSOCIATE_CMD: Final = 3
ADDR_TYPE_IPV4: Final = 1
ADDR_TYPE_DOMAIN: Final = 3
ADDR_TYPE_IPV6: Final = 4

# Reply codes
RESP_SUCCESS: Final = 0x00
RESP_CMD_NOT_SUPPORTED: Final = 0x07

# VER NMETHODS METHODS...
METHOD_REQUEST_NO_AUTH: Final = bytes([SOCKS_VERSION, 1, METHOD_NO_AUTH])
METHOD_REQUEST_WITH_AUTH: Final = bytes(
    [SOCKS_VERSION, 2, METHOD_NO_AUTH, METHOD_USERNAME_PASSWORD]
)
# VER CMD RSV ATYP DST.ADDR(0.0.0.0) DST.PORT(0): the client UDP source is not known yet
UDP_ASSOCIATE_REQUEST: Final = bytes(
    [SOCKS_VERSION, UDP_ASSOCIATE_CMD, 0x00, ADDR_TYPE_IPV4, 0, 0, 0, 0, 0, 0]
)


def _recv_at_most(sock: socket.socket, size: int) -> bytes:
    """Read up to ``size`` bytes, stopping early on EOF.

    A timeout after some bytes have arrived returns the partial data; a
    timeout before any byte arrives is raised.
    """
    data = b""
    while len(data) < size:
        try:
            chunk = sock.recv(size - len(data))
        except socket.timeout:
            if data:
                break
            raise
        if not chunk:
            break
        data += chunk
    return data


def _read_associate_reply(sock: socket.socket) -> bytes:
    reply = _recv_at_most(sock, 4)
    if len(reply) < 4:
        return reply

    address_type = reply[3]
    if address_type == ADDR_TYPE_IPV6:
        return reply + _recv_at_most(sock, 16 + 2)
    if address_type == ADDR_TYPE_DOMAIN:
        length = _recv_at_most(sock, 1)
        if not length:
            return reply
        return reply + length + _recv_at_most(sock, length[0] + 2)
    return reply + _recv_at_most(sock, 4 + 2)


def parse_relay_address(reply: bytes) -> RelayAddress | None:
    """Extract the relay endpoint from a successful UDP ASSOCIATE reply.

    Replies of at least 10 bytes carry an IPv4 address at offsets 4..7 and a
    big-endian port at 8..9. IPv6 and domain relays are recognised by their
    address type.
    """
    address_type = reply[3] if len(reply) >= 4 else None

    if address_type == ADDR_TYPE_IPV6:
        if len(reply) < 22:
            return None
        host = str(ipaddress.IPv6Address(reply[4:20]))
        (port,) = struct.unpack("!H", reply[20:22])
        return RelayAddress(host=host, port=port)

    if address_type == ADDR_TYPE_DOMAIN and len(reply) >= 5:
        length = reply[4]
        if len(reply) >= 5 + length + 2:
            host = reply[5 : 5 + length].decode("ascii", errors="replace")
            (port,) = struct.unpack("!H", reply[5 + length : 7 + length])
            return RelayAddress(host=host, port=port)
        return None

    if len(reply) >= 10:
        host = str(ipaddress.IPv4Address(reply[4:8]))
        (port,) = struct.unpack("!H", reply[8:10])
        return RelayAddress(host=host, port=port)

    return None


class Socks5ProbeClient:
    """Classifies a proxy's UDP ASSOCIATE support over one TCP connection."""

    def __init__(
        self,
        settings: ProbeSettings | None = None,
        status_sink: Callable[[str], None] | None = None,
        worker: BackgroundWorker | None = None,
    ):
        self.settings = settings or ProbeSettings()
        self._status_sink = status_sink
        self._worker = worker
        self._owns_worker = worker is None

    def probe(
        self, host: str, port: int, connect_timeout: float | None = None
    ) -> ProbeResult:
        """Run the probe. Blocks; call from a worker thread.

        Args:
            host: Proxy host
            port: Proxy port
            connect_timeout: Overrides the configured connect timeout

        Returns:
            Classification of the proxy; network failures are results too

        Raises:
            ProbeError: If host or port are invalid
        """
        if not host or not host.strip():
            raise ProbeError("Proxy host cannot be empty")
        try:
            validate_port(port, "Proxy port")
        except ValueError as e:
            raise ProbeError(str(e)) from e

        timeout = connect_timeout if connect_timeout is not None else self.settings.connect_timeout
        self._emit(f"Connecting to {host}:{port}", host=host, port=port)

        try:
            sock = socket.create_connection((host, port), timeout=timeout)
        except OSError as e:
            result = ProbeResult.failure(
                ProbeFailure.NETWORK_ERROR, f"Connect failed: {e}"
            )
            self._report(result)
            return result

        try:
            sock.settimeout(self.settings.read_timeout)
            result = self._handshake(sock)
        except OSError as e:
            result = ProbeResult.failure(ProbeFailure.NETWORK_ERROR, f"Connection error: {e}")
        finally:
            sock.close()

        self._report(result)
        return result

    def probe_async(
        self,
        host: str,
        port: int,
        connect_timeout: float | None = None,
        on_success: Callable[[ProbeResult], None] | None = None,
        on_error: Callable[[BaseException], None] | None = None,
    ) -> "concurrent.futures.Future[ProbeResult]":
        """Run ``probe`` on a background worker."""
        if self._worker is None:
            self._worker = BackgroundWorker(max_workers=4, name="socks5-probe")
        return self._worker.submit(
            self.probe,
            host,
            port,
            connect_timeout,
            on_success=on_success,
            on_error=on_error,
        )

    def shutdown(self) -> None:
        """Shut down the worker this client created for async probes."""
        if self._owns_worker and self._worker is not None:
            self._worker.shutdown()
            self._worker = None

    def __enter__(self) -> "Socks5ProbeClient":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> Literal[False]:
        self.shutdown()
        return False

    def _handshake(self, sock: socket.socket) -> ProbeResult:
        use_auth = self.settings.has_credentials
        request = METHOD_REQUEST_WITH_AUTH if use_auth else METHOD_REQUEST_NO_AUTH
        self._send(sock, request, "method selection")

        reply = _recv_at_most(sock, 2)
        logger.debug("Received method reply", data=to_hex(reply))

        if len(reply) < 2 or reply[0] != SOCKS_VERSION:
            return ProbeResult.failure(
                ProbeFailure.NOT_SOCKS5, f"Not a SOCKS5 server: {to_hex(reply) or 'no reply'}"
            )

        method = reply[1]
        if method == METHOD_NO_ACCEPTABLE:
            return ProbeResult.failure(
                ProbeFailure.AUTH_REQUIRED, "Server requires authentication"
            )
        if method == METHOD_USERNAME_PASSWORD and use_auth:
            if not self._authenticate(sock):
                return ProbeResult.failure(
                    ProbeFailure.AUTH_FAILED, "Username/password rejected"
                )
        elif method != METHOD_NO_AUTH:
            return ProbeResult.failure(
                ProbeFailure.UNSUPPORTED_METHOD, f"Server chose method 0x{method:02X}"
            )

        self._send(sock, UDP_ASSOCIATE_REQUEST, "UDP ASSOCIATE")
        reply = _read_associate_reply(sock)
        logger.debug("Received UDP ASSOCIATE reply", data=to_hex(reply))

        if len(reply) < 2:
            return ProbeResult.failure(
                ProbeFailure.OTHER_SERVER_ERROR, "Truncated UDP ASSOCIATE reply"
            )

        status = reply[1]
        if status == RESP_SUCCESS:
            return ProbeResult.success(parse_relay_address(reply))
        if status == RESP_CMD_NOT_SUPPORTED:
            return ProbeResult.failure(
                ProbeFailure.COMMAND_NOT_SUPPORTED,
                "UDP ASSOCIATE not supported; UDP relaying is disabled on the proxy",
                server_status=status,
            )
        return ProbeResult.failure(
            ProbeFailure.OTHER_SERVER_ERROR,
            f"Server replied with status 0x{status:02X}",
            server_status=status,
        )

    def _authenticate(self, sock: socket.socket) -> bool:
        username = (self.settings.username or "").encode()
        password = (self.settings.password or "").encode()
        if len(username) > MAX_CREDENTIAL_BYTES or len(password) > MAX_CREDENTIAL_BYTES:
            logger.warning("Credentials too long for username/password authentication")
            return False
        request = (
            bytes([AUTH_VERSION, len(username)])
            + username
            + bytes([len(password)])
            + password
        )
        sock.sendall(request)
        logger.debug("Sent username/password authentication")

        reply = _recv_at_most(sock, 2)
        return len(reply) == 2 and reply[1] == 0x00

    @staticmethod
    def _send(sock: socket.socket, data: bytes, what: str) -> None:
        sock.sendall(data)
        logger.debug(f"Sent {what} request", data=to_hex(data))

    def _report(self, result: ProbeResult) -> None:
        if result.supports_udp:
            relay = str(result.relay_address) if result.relay_address else "not reported"
            self._emit(f"Proxy supports UDP, relay at {relay}", relay=relay)
        else:
            self._emit(
                f"Proxy does not support UDP: {result.detail}",
                reason=result.failure_reason.value if result.failure_reason else None,
            )

    def _emit(self, message: str, **context: object) -> None:
        logger.info(message, **context)
        if self._status_sink is not None:
            try:
                self._status_sink(message)
            except Exception as e:
                logger.error("Status sink raised", error=str(e))


def probe_socks5_udp(
    host: str,
    port: int,
    connect_timeout: float = 5.0,
    settings: ProbeSettings | None = None,
) -> ProbeResult:
    """Probe ``host:port`` for SOCKS5 UDP ASSOCIATE support."""
    return Socks5ProbeClient(settings).probe(host, port, connect_timeout)
