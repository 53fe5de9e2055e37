"""Supervised background worker for blocking tunnel and probe calls."""

import concurrent.futures
import threading
from collections.abc import Callable
from types import TracebackType
from typing import Any, Literal, TypeVar

from .logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class BackgroundWorker:
    """Runs blocking calls off the caller's thread and reports completion.

    Every submission returns a future. Optional callbacks run on the worker
    thread once the call finishes; errors raised by a callback are logged and
    never reach the future.
    """

    def __init__(self, max_workers: int = 2, name: str = "wg-tunnel"):
        self.name = name
        self._executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix=name,
        )
        self._lock = threading.Lock()
        self._closed = False
        logger.debug("BackgroundWorker initialized", name=name, max_workers=max_workers)

    def submit(
        self,
        fn: Callable[..., T],
        *args: Any,
        on_success: Callable[[T], None] | None = None,
        on_error: Callable[[BaseException], None] | None = None,
        **kwargs: Any,
    ) -> "concurrent.futures.Future[T]":
        """Submit a blocking call.

        Args:
            fn: Callable to run on a worker thread
            *args: Positional arguments for ``fn``
            on_success: Called with the return value when ``fn`` succeeds
            on_error: Called with the exception when ``fn`` raises
            **kwargs: Keyword arguments for ``fn``

        Returns:
            Future resolving to the result of ``fn``

        Raises:
            RuntimeError: If the worker has been shut down
        """
        with self._lock:
            if self._closed:
                raise RuntimeError(f"Worker {self.name} is shut down")
            future = self._executor.submit(fn, *args, **kwargs)

        if on_success is not None or on_error is not None:
            future.add_done_callback(
                lambda done: self._dispatch(done, on_success, on_error)
            )
        return future

    def _dispatch(
        self,
        future: "concurrent.futures.Future[T]",
        on_success: Callable[[T], None] | None,
        on_error: Callable[[BaseException], None] | None,
    ) -> None:
        if future.cancelled():
            return

        error = future.exception()
        try:
            if error is None:
                if on_success is not None:
                    on_success(future.result())
            elif on_error is not None:
                on_error(error)
            else:
                logger.error("Background call failed", worker=self.name, error=str(error))
        except Exception as e:
            logger.error("Completion callback raised", worker=self.name, error=str(e))

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting work and optionally wait for pending calls."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
        logger.debug("Shutting down BackgroundWorker", name=self.name)
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> "BackgroundWorker":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> Literal[False]:
        self.shutdown()
        return False
