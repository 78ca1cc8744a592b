"""Scoped worker pool and cooperative cancellation.

A :class:`WorkerPool` is created once per scan/run and released when the
``with`` block exits, whatever the exit path.  With a single worker no
executor is created and work runs inline, in order.
"""

from __future__ import annotations

import os
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Iterable, List, Optional, TypeVar

T = TypeVar("T")
R = TypeVar("R")

AUTO = "auto"
DISABLED = "disabled"


def resolve_worker_count(spec: Any) -> int:
    """Translate a worker specification into a concrete worker count.

    ``"auto"`` means available cores minus one (at least one), ``"disabled"``
    or ``None`` means serial execution, and a positive integer is used as is.
    Anything else raises :class:`ValueError`.
    """
    if spec is None:
        return 1
    if isinstance(spec, bool):
        raise ValueError(f"Invalid worker specification: {spec!r}")
    if isinstance(spec, str):
        text = spec.strip().lower()
        if text == AUTO:
            return max(1, (os.cpu_count() or 1) - 1)
        if text == DISABLED:
            return 1
        if not text.isdigit():
            raise ValueError(f"Invalid worker specification: {spec!r}")
        spec = int(text)
    if isinstance(spec, int) and spec >= 1:
        return spec
    raise ValueError(f"Invalid worker specification: {spec!r}")


class CancelToken:
    """Cooperative cancellation flag shared with scan workers."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class WorkerPool:
    """Order-preserving map over a thread pool, usable as a context manager."""

    def __init__(self, workers: Any = AUTO) -> None:
        self.worker_count = resolve_worker_count(workers)
        self._executor: Optional[ThreadPoolExecutor] = None
        self._closed = False

    def __enter__(self) -> "WorkerPool":
        if self.worker_count > 1:
            self._executor = ThreadPoolExecutor(
                max_workers=self.worker_count, thread_name_prefix="sonoscan"
            )
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close(cancel_pending=exc_type is not None)

    @property
    def parallel(self) -> bool:
        return self._executor is not None

    def map(self, fn: Callable[[T], R], items: Iterable[T]) -> List[R]:
        """Apply ``fn`` to every item and return the results in input order.

        The call returns only after every unit of work has finished, so
        callers always observe a complete set of partial results.
        """
        if self._closed:
            raise RuntimeError("WorkerPool is closed")
        work = list(items)
        if self._executor is None or len(work) <= 1:
            return [fn(item) for item in work]
        return list(self._executor.map(fn, work))

    def close(self, cancel_pending: bool = False) -> None:
        if self._closed:
            return
        self._closed = True
        if self._executor is not None:
            self._executor.shutdown(wait=True, cancel_futures=cancel_pending)
            self._executor = None
