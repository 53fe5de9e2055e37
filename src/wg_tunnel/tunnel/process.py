"""Tunnel engine that runs in a separate process."""

import os
import subprocess
import threading
from collections.abc import Sequence
from pathlib import Path

from ..common.exceptions import BinaryNotFoundError, EngineError
from ..common.logging import get_logger
from .models import EngineParams

logger = get_logger(__name__)

DEFAULT_ARGS = ("--tun-fd", "{fd}", "--socks5", "{proxy}", "--log-level", "{log_level}")


class ProcessSession:
    """Handle to an engine process; stopping it twice is a no-op."""

    def __init__(self, process: "subprocess.Popen[bytes]", stop_timeout: float = 5.0):
        self._process: subprocess.Popen[bytes] | None = process
        self._stop_timeout = stop_timeout
        self._lock = threading.Lock()

    @property
    def pid(self) -> int | None:
        """Get process ID if running"""
        if self.is_running() and self._process:
            return self._process.pid
        return None

    def is_running(self) -> bool:
        """Check if the engine process is alive"""
        if self._process is None:
            return False
        return self._process.poll() is None

    def stop(self) -> None:
        """Terminate the engine, force killing it after the timeout."""
        with self._lock:
            process, self._process = self._process, None

        if process is None or process.poll() is not None:
            logger.debug("Engine process not running, nothing to stop")
            return

        logger.info("Stopping engine process", pid=process.pid)
        process.terminate()
        try:
            process.wait(timeout=self._stop_timeout)
            logger.info("Engine process terminated gracefully")
        except subprocess.TimeoutExpired:
            logger.warning(
                "Process did not terminate gracefully, force killing", pid=process.pid
            )
            process.kill()
            process.wait()


class SubprocessEngine:
    """Launches an engine binary that inherits the TUN descriptor.

    The argument template may use ``{fd}``, ``{proxy}``, ``{proxy_username}``
    and ``{log_level}``. The control configuration is written to the child's
    stdin, which is then closed. The proxy password travels in the
    ``WG_TUNNEL_PROXY_PASSWORD`` environment variable rather than argv.

    The engine owns the descriptor once ``start`` is called: it closes its
    copy on success and on failure alike.
    """

    closes_descriptor_on_failure = True

    def __init__(
        self,
        binary_path: str,
        args: Sequence[str] = DEFAULT_ARGS,
        startup_timeout: float = 1.0,
    ):
        """Initialize with the engine binary.

        Args:
            binary_path: Path to the engine executable
            args: Argument template
            startup_timeout: Seconds the process must survive to count as started

        Raises:
            BinaryNotFoundError: If binary doesn't exist or isn't executable
        """
        self.binary_path = binary_path
        self.args = tuple(args)
        self.startup_timeout = startup_timeout
        self._validate_binary()

    def _validate_binary(self) -> None:
        binary_path = Path(self.binary_path)

        if not binary_path.exists():
            raise BinaryNotFoundError(f"Binary not found: {self.binary_path}")

        if not binary_path.is_file():
            raise BinaryNotFoundError(f"Binary path is not a file: {self.binary_path}")

        if not os.access(self.binary_path, os.X_OK):
            raise BinaryNotFoundError(f"Binary is not executable: {self.binary_path}")

    def start(
        self,
        descriptor: int,
        config_text: str,
        proxy_address: str,
        params: EngineParams,
    ) -> ProcessSession:
        """Launch the engine on ``descriptor``.

        Raises:
            EngineError: If the process cannot be launched or exits during startup
        """
        command = [self.binary_path] + [
            arg.format(
                fd=descriptor,
                proxy=proxy_address,
                proxy_username=params.proxy_username,
                log_level=params.log_level,
            )
            for arg in self.args
        ]
        env = dict(os.environ)
        if params.proxy_password:
            env["WG_TUNNEL_PROXY_PASSWORD"] = params.proxy_password

        logger.info("Starting engine process", binary_path=self.binary_path)
        try:
            try:
                process = subprocess.Popen(
                    command,
                    stdin=subprocess.PIPE,
                    pass_fds=(descriptor,),
                    env=env,
                )
            except OSError as e:
                logger.error("Failed to start engine process", error=str(e))
                raise EngineError(f"Failed to start engine process: {e}") from e
        finally:
            # The child holds its own copy now, or there is no child at all
            os.close(descriptor)

        session = ProcessSession(process)
        if process.stdin is None:
            session.stop()
            raise EngineError("Engine process has no stdin pipe")
        try:
            process.stdin.write(config_text.encode("utf-8"))
            process.stdin.close()
        except OSError as e:
            session.stop()
            raise EngineError(f"Failed to configure engine process: {e}") from e

        try:
            code = process.wait(timeout=self.startup_timeout)
        except subprocess.TimeoutExpired:
            logger.info("Engine process started successfully", pid=process.pid)
            return session

        raise EngineError(f"Engine process exited during startup with code {code}")
