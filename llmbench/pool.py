"""Bounded worker pool that runs probes in parallel."""
import concurrent.futures
import threading
from typing import Any, Callable, List, Optional, Sequence

from tqdm import tqdm

from .exceptions import BenchmarkConfigError, PoolShutdownError


class TaskPool:
    """Runs submitted callables on at most ``max_concurrency`` worker threads.

    Submissions beyond the bound are queued by the executor rather than
    rejected. ``submit`` may be called from several threads at once.
    """

    def __init__(self, max_concurrency: int):
        if isinstance(max_concurrency, bool) or not isinstance(max_concurrency, int) or max_concurrency < 1:
            raise BenchmarkConfigError(f"max_concurrency must be a positive integer, got {max_concurrency!r}")
        self.max_concurrency = max_concurrency
        self._executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=max_concurrency,
            thread_name_prefix="llmbench-worker"
        )
        self._lock = threading.Lock()
        self._shutdown = False

    @property
    def is_shutdown(self) -> bool:
        return self._shutdown

    def submit(self, fn: Callable[..., Any], *args, **kwargs) -> concurrent.futures.Future:
        with self._lock:
            if self._shutdown:
                raise PoolShutdownError("Cannot submit work: task pool has been shut down")
            return self._executor.submit(fn, *args, **kwargs)

    @staticmethod
    def wait_all(handles: Sequence[concurrent.futures.Future], progress: Optional[tqdm] = None) -> List[Any]:
        """Block until every handle completes; results come back in submission order."""
        for future in concurrent.futures.as_completed(handles):
            if progress is not None:
                progress.update(1)
        return [future.result() for future in handles]

    def shutdown(self, wait: bool = True):
        with self._lock:
            if self._shutdown:
                return
            self._shutdown = True
        self._executor.shutdown(wait=wait)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.shutdown()
