"""Lifecycle controller for a single tunnel session."""

import concurrent.futures
import os
import threading
from collections.abc import Callable
from types import TracebackType
from typing import Literal

from ..common.exceptions import ConfigurationError
from ..common.logging import get_logger
from ..common.worker import BackgroundWorker
from .builder import EngineConfigBuilder
from .config import TunnelConfig
from .interfaces import EngineSession, InterfaceHandle, InterfaceProvider, TunnelEngine
from .models import EngineParams, SessionState, StartError, StartResult

logger = get_logger(__name__)


class TunnelSessionController:
    """Owns the interface and engine handles of at most one running session.

    State transitions happen under a condition variable. The blocking
    interface acquisition and engine start run outside the lock while the
    state is STARTING, so a concurrent start is rejected at once and a
    concurrent stop waits for the start to resolve before tearing down.
    """

    def __init__(
        self,
        provider: InterfaceProvider,
        engine: TunnelEngine,
        *,
        builder: EngineConfigBuilder | None = None,
        log_level: int = 2,
        status_sink: Callable[[str], None] | None = None,
        worker: BackgroundWorker | None = None,
    ):
        """Initialize the controller.

        Args:
            provider: Host collaborator that allocates virtual interfaces
            engine: Tunnel engine that runs sessions on a descriptor
            builder: Engine configuration builder
            log_level: Engine log level passed with every start
            status_sink: Receives human-readable status lines
            worker: Worker used by the async variants (created on demand)
        """
        self._provider = provider
        self._engine = engine
        self._builder = builder or EngineConfigBuilder()
        self._log_level = log_level
        self._status_sink = status_sink
        self._worker = worker
        self._owns_worker = worker is None

        self._cond = threading.Condition()
        self._state = SessionState.IDLE
        self._interface: InterfaceHandle | None = None
        self._session: EngineSession | None = None

    @property
    def state(self) -> SessionState:
        """Current lifecycle state."""
        with self._cond:
            return self._state

    def is_running(self) -> bool:
        """Check if a session is currently running."""
        return self.state == SessionState.RUNNING

    def start_session(self, config: TunnelConfig) -> StartResult:
        """Start a tunnel session. Blocks; call from a worker thread.

        Args:
            config: Tunnel configuration

        Returns:
            Success, or the reason the session did not start
        """
        with self._cond:
            if self._state != SessionState.IDLE:
                logger.warning("Start rejected, session not idle", state=self._state.value)
                return StartResult.failure(
                    StartError.ALREADY_RUNNING, f"Session is {self._state.value}"
                )
            self._state = SessionState.STARTING

        session: EngineSession | None = None
        try:
            result, session = self._start(config)
        finally:
            with self._cond:
                self._interface = None
                if session is not None:
                    self._session = session
                    self._state = SessionState.RUNNING
                else:
                    self._state = SessionState.IDLE
                self._cond.notify_all()

        return result

    def _start(self, config: TunnelConfig) -> tuple[StartResult, EngineSession | None]:
        self._emit("Acquiring virtual interface", address=config.local_address)
        try:
            interface = self._provider.acquire(
                config.local_address,
                config.prefix_length,
                config.mtu,
                config.dns_servers,
                config.routed_prefixes,
                config.excluded_apps,
                config.session_name,
            )
        except Exception as e:
            logger.error("Interface acquisition failed", error=str(e))
            return StartResult.failure(StartError.INTERFACE_ACQUISITION_FAILED, str(e)), None

        if interface is None:
            logger.error("Interface acquisition denied by host")
            return (
                StartResult.failure(
                    StartError.INTERFACE_ACQUISITION_FAILED,
                    "Host denied the interface or permission is missing",
                ),
                None,
            )

        with self._cond:
            self._interface = interface

        try:
            config_text = self._builder.build(config)
        except ConfigurationError as e:
            logger.error("Invalid tunnel configuration", error=str(e))
            self._release_interface(interface)
            return StartResult.failure(StartError.CONFIGURATION_ERROR, str(e)), None

        try:
            descriptor = interface.detach_descriptor()
        except Exception as e:
            logger.error("Failed to detach interface descriptor", error=str(e))
            self._release_interface(interface)
            return StartResult.failure(StartError.INTERFACE_ACQUISITION_FAILED, str(e)), None

        # The descriptor belongs to the engine from here on
        with self._cond:
            self._interface = None

        params = EngineParams(
            proxy_username=config.proxy_username or "",
            proxy_password=config.proxy_password or "",
            log_level=self._log_level,
        )
        self._emit(
            "Starting tunnel engine",
            endpoint=f"{config.endpoint_host}:{config.endpoint_port}",
            proxy=config.proxy_address,
        )
        try:
            session = self._engine.start(
                descriptor, config_text, config.proxy_address or "", params
            )
            if session is None:
                raise RuntimeError("Engine returned no session handle")
        except Exception as e:
            logger.error("Tunnel engine failed to start", error=str(e))
            if not self._engine.closes_descriptor_on_failure:
                self._close_descriptor(descriptor)
            return StartResult.failure(StartError.ENGINE_START_FAILED, str(e)), None

        self._emit("Tunnel connected", endpoint=f"{config.endpoint_host}:{config.endpoint_port}")
        return StartResult.success(), session

    def stop_session(self) -> None:
        """Stop the session and release what it owns. Never raises."""
        with self._cond:
            while self._state in (SessionState.STARTING, SessionState.STOPPING):
                self._cond.wait()
            previous = self._state
            self._state = SessionState.STOPPING
            session, self._session = self._session, None
            interface, self._interface = self._interface, None

        try:
            if session is not None:
                try:
                    session.stop()
                except Exception as e:
                    logger.error("Error stopping tunnel engine", error=str(e))
            if interface is not None:
                self._release_interface(interface)
        finally:
            with self._cond:
                self._state = SessionState.IDLE
                self._cond.notify_all()

        if previous != SessionState.IDLE:
            self._emit("Tunnel stopped")
        else:
            logger.debug("Stop requested while idle")

    def start_session_async(
        self,
        config: TunnelConfig,
        on_success: Callable[[StartResult], None] | None = None,
        on_error: Callable[[BaseException], None] | None = None,
    ) -> "concurrent.futures.Future[StartResult]":
        """Run ``start_session`` on the background worker."""
        return self._get_worker().submit(
            self.start_session, config, on_success=on_success, on_error=on_error
        )

    def stop_session_async(self) -> "concurrent.futures.Future[None]":
        """Run ``stop_session`` on the background worker."""
        return self._get_worker().submit(self.stop_session)

    def shutdown(self) -> None:
        """Stop the session and the worker this controller created."""
        self.stop_session()
        if self._owns_worker and self._worker is not None:
            self._worker.shutdown()
            self._worker = None

    def _get_worker(self) -> BackgroundWorker:
        with self._cond:
            if self._worker is None:
                self._worker = BackgroundWorker(name="tunnel-session")
                self._owns_worker = True
            return self._worker

    def _release_interface(self, interface: InterfaceHandle) -> None:
        with self._cond:
            if self._interface is interface:
                self._interface = None
        try:
            interface.release()
            logger.debug("Virtual interface released")
        except Exception as e:
            logger.error("Error releasing virtual interface", error=str(e))

    @staticmethod
    def _close_descriptor(descriptor: int) -> None:
        try:
            os.close(descriptor)
            logger.debug("Closed descriptor after engine failure", descriptor=descriptor)
        except OSError as e:
            logger.error("Failed to close descriptor", descriptor=descriptor, error=str(e))

    def _emit(self, message: str, **context: object) -> None:
        logger.info(message, **context)
        if self._status_sink is not None:
            try:
                self._status_sink(message)
            except Exception as e:
                logger.error("Status sink raised", error=str(e))

    def __enter__(self) -> "TunnelSessionController":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> Literal[False]:
        """Stop the session on exit; exceptions propagate."""
        self.shutdown()
        return False
