"""Bounded fork/join over a thread pool with work-helping joins."""

from __future__ import annotations

import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from typing import TypeVar

from image_bisect.bisect.errors import BisectError, BranchAbortedError, BranchFailedError

DEFAULT_MAX_WORKERS = 8

L = TypeVar("L")
R = TypeVar("R")


class ForkJoin:
    """Runs two independent branches concurrently and joins them in order.

    The left branch runs on the calling thread, the right branch is submitted
    to the pool. When the right branch has not been picked up by a worker at
    join time it is cancelled and run inline, so nested joins never wait on
    queued work and a pool of any size makes progress.

    Every branch goes through ``run``: an exception that is not a BisectError
    is raised as BranchFailedError, whichever thread the branch ran on.
    """

    def __init__(self, executor: ThreadPoolExecutor | None) -> None:
        self._executor = executor
        self._aborted = threading.Event()

    def abort(self) -> None:
        """Mark the run failed so branches stop before their next probe."""
        self._aborted.set()

    def check(self) -> None:
        """Raise BranchAbortedError when the run has already failed."""
        if self._aborted.is_set():
            raise BranchAbortedError()

    def join(self, left: Callable[[], L], right: Callable[[], R]) -> tuple[L, R]:
        """Run both branches and return their results as (left, right)."""
        if self._executor is None:
            return self.run(left), self.run(right)

        future: Future[R] = self._executor.submit(self.run, right)
        try:
            left_result = self.run(left)
        except BranchAbortedError:
            # The failure may sit in the right branch; surface it over the marker.
            self._result(future, right)
            raise
        except BaseException:
            future.cancel()
            raise
        return left_result, self._result(future, right)

    def run(self, branch: Callable[[], L]) -> L:
        """Run one branch on the calling thread, aborting the run if it fails."""
        try:
            return branch()
        except BranchAbortedError:
            raise
        except BisectError:
            self.abort()
            raise
        except Exception as error:
            self.abort()
            reason = str(error) or type(error).__name__
            raise BranchFailedError(f"Branch failed: {reason}") from error
        except BaseException:
            self.abort()
            raise

    def _result(self, future: Future[R], branch: Callable[[], R]) -> R:
        if future.cancel():
            return self.run(branch)
        return future.result()


def create_executor(max_workers: int | None) -> ThreadPoolExecutor:
    """Build the worker pool used for one bisection run."""
    workers = max_workers if max_workers is not None else DEFAULT_MAX_WORKERS
    if workers < 1:
        raise ValueError("max_workers must be a positive integer.")
    return ThreadPoolExecutor(max_workers=workers, thread_name_prefix="image-bisect")
