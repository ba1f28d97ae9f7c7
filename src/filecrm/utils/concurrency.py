"""
Background execution of store mutations.

Every submission yields a ``concurrent.futures.Future``. Callers that only
want fire-and-forget may drop it; failures are logged either way and stay on
the future for callers that do wait. There is no cancellation contract: a
mutation either completes or fails.
"""

from __future__ import annotations

import asyncio
import contextvars
import itertools
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from concurrent.futures import wait as wait_futures
from typing import TYPE_CHECKING, Any, TypeVar

import structlog

from filecrm.constants import DEFAULT_MAX_WORKERS
from filecrm.observability.logging import correlation_scope

if TYPE_CHECKING:
    from collections.abc import Callable
    from types import TracebackType

T = TypeVar("T")


class MutationWorkerPool:
    """Fixed-size thread pool for store mutations with per-submission futures."""

    def __init__(self, max_workers: int = DEFAULT_MAX_WORKERS, *, logger: Any | None = None) -> None:
        if max_workers <= 0:
            raise ValueError("max_workers must be > 0")
        self._max_workers = max_workers
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="filecrm-mutation",
        )
        self._logger = logger if logger is not None else structlog.get_logger(__name__)
        self._counter = itertools.count(1)
        self._lock = threading.Lock()
        self._in_flight: set[Future[Any]] = set()

    @property
    def max_workers(self) -> int:
        return self._max_workers

    @property
    def in_flight(self) -> int:
        with self._lock:
            return len(self._in_flight)

    def submit(self, label: str, fn: Callable[..., T], /, *args: Any, **kwargs: Any) -> Future[T]:
        """Schedule ``fn(*args, **kwargs)``; the returned future carries its outcome."""

        mutation_id = f"{label}-{next(self._counter)}"

        def _run() -> T:
            with correlation_scope(mutation_id=mutation_id):
                try:
                    return fn(*args, **kwargs)
                except Exception as exc:
                    self._logger.error(
                        "mutation_failed",
                        label=label,
                        mutation_id=mutation_id,
                        error_type=type(exc).__name__,
                        error=str(exc),
                    )
                    raise

        # The caller's correlation fields follow the mutation onto the worker thread.
        context = contextvars.copy_context()
        future = self._executor.submit(context.run, _run)
        with self._lock:
            self._in_flight.add(future)
        future.add_done_callback(self._forget)
        self._logger.debug("mutation_submitted", label=label, mutation_id=mutation_id)
        return future

    def drain(self, timeout: float | None = None) -> list[Future[Any]]:
        """Wait for everything submitted so far; return the futures that failed."""

        with self._lock:
            pending = set(self._in_flight)
        done, not_done = wait_futures(pending, timeout=timeout)
        if not_done:
            raise TimeoutError(f"{len(not_done)} mutation(s) still running after {timeout}s")
        return [future for future in done if future.exception() is not None]

    def shutdown(self, *, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def _forget(self, future: Future[Any]) -> None:
        with self._lock:
            self._in_flight.discard(future)

    def __enter__(self) -> MutationWorkerPool:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.shutdown(wait=True)


def wait_for(future: Future[T], timeout: float) -> T:
    """Block until ``future`` resolves; ``TimeoutError`` instead of waiting forever."""

    if timeout <= 0:
        raise ValueError("timeout must be > 0")
    try:
        return future.result(timeout=timeout)
    except FutureTimeoutError as exc:
        raise TimeoutError(f"mutation did not complete within {timeout}s") from exc


async def wait_async(future: Future[T], timeout: float | None = None) -> T:
    """Await a pool future from asyncio code."""

    wrapped = asyncio.wrap_future(future)
    if timeout is None:
        return await wrapped
    return await asyncio.wait_for(wrapped, timeout)


__all__ = ["MutationWorkerPool", "wait_async", "wait_for"]
