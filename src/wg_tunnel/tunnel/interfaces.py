"""Protocol interfaces for the collaborators a tunnel session depends on."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .config import RoutedPrefix
    from .models import EngineParams


@runtime_checkable
class InterfaceHandle(Protocol):
    """A host-provided virtual network interface."""

    def detach_descriptor(self) -> int:
        """Hand over the raw descriptor; the handle must not be used for I/O after."""
        ...

    def release(self) -> None:
        """Close the interface if its descriptor was never detached."""
        ...


class InterfaceProvider(Protocol):
    """Host OS collaborator that allocates virtual network interfaces."""

    def acquire(
        self,
        local_address: str,
        prefix_length: int,
        mtu: int,
        dns_servers: Sequence[str],
        routed_prefixes: Sequence[RoutedPrefix],
        excluded_apps: frozenset[str],
        session_name: str,
    ) -> InterfaceHandle | None:
        """Allocate an interface; ``None`` or an exception means denied."""
        ...


@runtime_checkable
class EngineSession(Protocol):
    """Opaque handle to a running tunnel."""

    def stop(self) -> None:
        """Stop the tunnel; a no-op when already stopped."""
        ...


class TunnelEngine(Protocol):
    """External tunnel engine reached through a handle-based API.

    ``closes_descriptor_on_failure`` declares who owns the descriptor when
    ``start`` fails: True means the engine has closed it, False means the
    caller must.
    """

    closes_descriptor_on_failure: bool

    def start(
        self,
        descriptor: int,
        config_text: str,
        proxy_address: str,
        params: EngineParams,
    ) -> EngineSession:
        """Start a tunnel on ``descriptor`` configured with ``config_text``."""
        ...
