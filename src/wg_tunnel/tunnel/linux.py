"""Virtual interface provider for Linux TUN devices."""

import fcntl
import os
import shutil
import struct
import subprocess
import threading
from collections.abc import Sequence

from ..common.exceptions import InterfaceError
from ..common.logging import get_logger
from .config import RoutedPrefix

logger = get_logger(__name__)

TUN_DEVICE = "/dev/net/tun"
TUNSETIFF = 0x400454CA
IFF_TUN = 0x0001
IFF_NO_PI = 0x1000
IFNAMSIZ = 16


class DescriptorHandle:
    """Interface handle owning a raw descriptor until it is detached."""

    def __init__(self, descriptor: int, name: str = "tun"):
        self.name = name
        self._descriptor: int | None = descriptor
        self._lock = threading.Lock()

    @property
    def descriptor(self) -> int | None:
        """The owned descriptor, or None once detached or released."""
        return self._descriptor

    def detach_descriptor(self) -> int:
        """Give up ownership of the descriptor.

        Raises:
            InterfaceError: If the descriptor was already detached or released
        """
        with self._lock:
            if self._descriptor is None:
                raise InterfaceError(f"Interface {self.name} has no descriptor")
            descriptor, self._descriptor = self._descriptor, None
        logger.debug("Descriptor detached", interface=self.name, descriptor=descriptor)
        return descriptor

    def release(self) -> None:
        """Close the descriptor unless it was detached."""
        with self._lock:
            descriptor, self._descriptor = self._descriptor, None
        if descriptor is None:
            return
        try:
            os.close(descriptor)
            logger.debug("Interface closed", interface=self.name)
        except OSError as e:
            logger.warning("Failed to close interface", interface=self.name, error=str(e))


class LinuxTunProvider:
    """Allocates TUN interfaces through ``/dev/net/tun`` and the ``ip`` tool.

    Needs CAP_NET_ADMIN. DNS servers and per-app exclusions have no
    equivalent on a plain Linux host and are logged as ignored.
    """

    def __init__(self, interface_name: str = "wg%d", ip_binary: str | None = None):
        if len(interface_name.encode()) >= IFNAMSIZ:
            raise ValueError(f"Interface name too long: {interface_name}")
        self.interface_name = interface_name
        self.ip_binary = ip_binary or shutil.which("ip") or "/sbin/ip"

    def acquire(
        self,
        local_address: str,
        prefix_length: int,
        mtu: int,
        dns_servers: Sequence[str],
        routed_prefixes: Sequence[RoutedPrefix],
        excluded_apps: frozenset[str],
        session_name: str,
    ) -> DescriptorHandle:
        """Create and configure a TUN interface.

        Raises:
            InterfaceError: If the device cannot be created or configured
        """
        try:
            descriptor = os.open(TUN_DEVICE, os.O_RDWR)
        except OSError as e:
            raise InterfaceError(f"Cannot open {TUN_DEVICE}: {e}") from e

        try:
            ifr = struct.pack(
                "16sH", self.interface_name.encode(), IFF_TUN | IFF_NO_PI
            )
            result = fcntl.ioctl(descriptor, TUNSETIFF, ifr)
            name = result[:IFNAMSIZ].rstrip(b"\x00").decode()
        except OSError as e:
            os.close(descriptor)
            raise InterfaceError(f"TUNSETIFF failed: {e}") from e

        handle = DescriptorHandle(descriptor, name)
        try:
            self._ip("addr", "add", f"{local_address}/{prefix_length}", "dev", name)
            self._ip("link", "set", "dev", name, "mtu", str(mtu), "up")
            for prefix in routed_prefixes:
                self._ip("route", "replace", prefix.cidr, "dev", name)
        except InterfaceError:
            handle.release()
            raise

        if dns_servers:
            logger.warning("DNS servers are not applied on Linux", servers=list(dns_servers))
        if excluded_apps:
            logger.warning("Per-app exclusion is not supported on Linux", apps=sorted(excluded_apps))

        logger.info(
            "TUN interface ready",
            interface=name,
            session=session_name,
            address=f"{local_address}/{prefix_length}",
            mtu=mtu,
        )
        return handle

    def _ip(self, *args: str) -> None:
        command = [self.ip_binary, *args]
        try:
            subprocess.run(command, check=True, capture_output=True, text=True)
        except subprocess.CalledProcessError as e:
            raise InterfaceError(
                f"{' '.join(command)} failed: {(e.stderr or '').strip()}"
            ) from e
        except OSError as e:
            raise InterfaceError(f"Cannot run {self.ip_binary}: {e}") from e
