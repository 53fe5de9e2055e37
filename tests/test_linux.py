"""Tests for the Linux TUN provider and descriptor handles."""

import os
import struct
import subprocess
from unittest.mock import Mock, patch

import pytest

from wg_tunnel.common.exceptions import InterfaceError
from wg_tunnel.tunnel.config import RoutedPrefix
from wg_tunnel.tunnel.interfaces import InterfaceHandle
from wg_tunnel.tunnel.linux import (
    IFF_NO_PI,
    IFF_TUN,
    TUNSETIFF,
    DescriptorHandle,
    LinuxTunProvider,
)


@pytest.fixture
def pipe_fds():
    read_fd, write_fd = os.pipe()
    yield read_fd, write_fd
    for fd in (read_fd, write_fd):
        try:
            os.close(fd)
        except OSError:
            pass


def _is_open(fd: int) -> bool:
    try:
        os.fstat(fd)
        return True
    except OSError:
        return False


class TestDescriptorHandle:
    """Test descriptor ownership rules."""

    def test_is_interface_handle(self, pipe_fds):
        assert isinstance(DescriptorHandle(pipe_fds[0]), InterfaceHandle)

    def test_release_closes_descriptor(self, pipe_fds):
        handle = DescriptorHandle(pipe_fds[0])

        handle.release()
        handle.release()

        assert not _is_open(pipe_fds[0])
        assert handle.descriptor is None

    def test_detach_transfers_ownership(self, pipe_fds):
        handle = DescriptorHandle(pipe_fds[0])

        fd = handle.detach_descriptor()
        handle.release()

        assert fd == pipe_fds[0]
        assert _is_open(fd)

    def test_detach_twice_raises(self, pipe_fds):
        handle = DescriptorHandle(pipe_fds[0])
        handle.detach_descriptor()

        with pytest.raises(InterfaceError):
            handle.detach_descriptor()


class TestLinuxTunProvider:
    """Test TUN allocation with OS calls mocked."""

    def _ioctl_result(self, name: bytes) -> bytes:
        return struct.pack("16sH", name, IFF_TUN | IFF_NO_PI)

    @patch("wg_tunnel.tunnel.linux.subprocess.run")
    @patch("wg_tunnel.tunnel.linux.fcntl.ioctl")
    @patch("wg_tunnel.tunnel.linux.os.open")
    def test_acquire_configures_interface(self, mock_open, mock_ioctl, mock_run):
        mock_open.return_value = 42
        mock_ioctl.return_value = self._ioctl_result(b"wg0")
        provider = LinuxTunProvider(ip_binary="/sbin/ip")

        handle = provider.acquire(
            "10.0.0.2",
            32,
            1420,
            ("8.8.8.8",),
            (RoutedPrefix(address="0.0.0.0", prefix_length=0),),
            frozenset({"com.example.app"}),
            "test",
        )

        assert handle.name == "wg0"
        assert handle.descriptor == 42
        assert mock_ioctl.call_args[0][:2] == (42, TUNSETIFF)

        commands = [call.args[0] for call in mock_run.call_args_list]
        assert commands == [
            ["/sbin/ip", "addr", "add", "10.0.0.2/32", "dev", "wg0"],
            ["/sbin/ip", "link", "set", "dev", "wg0", "mtu", "1420", "up"],
            ["/sbin/ip", "route", "replace", "0.0.0.0/0", "dev", "wg0"],
        ]

    @patch("wg_tunnel.tunnel.linux.os.open")
    def test_open_failure(self, mock_open):
        mock_open.side_effect = PermissionError("denied")

        with pytest.raises(InterfaceError, match="denied"):
            LinuxTunProvider().acquire("10.0.0.2", 32, 1280, (), (), frozenset(), "t")

    @patch("wg_tunnel.tunnel.linux.os.close")
    @patch("wg_tunnel.tunnel.linux.fcntl.ioctl")
    @patch("wg_tunnel.tunnel.linux.os.open")
    def test_ioctl_failure_closes_device(self, mock_open, mock_ioctl, mock_close):
        mock_open.return_value = 42
        mock_ioctl.side_effect = OSError("EPERM")

        with pytest.raises(InterfaceError, match="TUNSETIFF"):
            LinuxTunProvider().acquire("10.0.0.2", 32, 1280, (), (), frozenset(), "t")

        mock_close.assert_called_once_with(42)

    @patch("wg_tunnel.tunnel.linux.os.close")
    @patch("wg_tunnel.tunnel.linux.subprocess.run")
    @patch("wg_tunnel.tunnel.linux.fcntl.ioctl")
    @patch("wg_tunnel.tunnel.linux.os.open")
    def test_ip_failure_releases_device(self, mock_open, mock_ioctl, mock_run, mock_close):
        mock_open.return_value = 42
        mock_ioctl.return_value = self._ioctl_result(b"wg0")
        mock_run.side_effect = subprocess.CalledProcessError(
            2, ["ip"], stderr="RTNETLINK answers: Operation not permitted"
        )

        with pytest.raises(InterfaceError, match="Operation not permitted"):
            LinuxTunProvider().acquire("10.0.0.2", 32, 1280, (), (), frozenset(), "t")

        mock_close.assert_called_once_with(42)

    def test_interface_name_too_long(self):
        with pytest.raises(ValueError):
            LinuxTunProvider(interface_name="a-very-long-interface-name")


def test_provider_with_controller(tunnel_config):
    """The provider plugs into the controller like any host collaborator."""
    from conftest import FakeEngine  # noqa: PLC0415

    from wg_tunnel.tunnel.controller import TunnelSessionController  # noqa: PLC0415

    provider = Mock(wraps=LinuxTunProvider())
    provider.acquire.side_effect = InterfaceError("no CAP_NET_ADMIN")

    result = TunnelSessionController(provider, FakeEngine()).start_session(tunnel_config)

    assert not result.ok
    assert "CAP_NET_ADMIN" in result.detail
