"""
Detached tasks: best-effort side effects that run outside the primary
transaction.

A detached task never reports back to the operation that submitted it. Its
only error channel is the log.
"""

from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Optional

import structlog

logger = structlog.get_logger()


def _run_guarded(name: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
    try:
        fn(*args, **kwargs)
    except Exception as e:
        logger.warning("detached_task_failed", task=name, error=str(e), exc_info=True)
    else:
        logger.debug("detached_task_done", task=name)


class DetachedRunner(ABC):
    """Runs side effects whose failure must never reach the caller."""

    @abstractmethod
    def submit(
        self, name: str, fn: Callable[..., Any], *args: Any, **kwargs: Any
    ) -> Optional[Future]:
        """Schedule ``fn(*args, **kwargs)``. Never raises on task failure."""

    def shutdown(self, wait: bool = True) -> None:
        pass


class InlineDetachedRunner(DetachedRunner):
    """Runs each task immediately in the calling thread.

    Failures are still swallowed, so behaviour matches the thread pool apart
    from timing. Used by tests and the CLI.
    """

    def submit(self, name: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        _run_guarded(name, fn, *args, **kwargs)


class ThreadPoolDetachedRunner(DetachedRunner):
    """Runs tasks on a bounded thread pool."""

    def __init__(self, max_workers: int = 4):
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="ledger-detached"
        )

    def submit(
        self, name: str, fn: Callable[..., Any], *args: Any, **kwargs: Any
    ) -> Optional[Future]:
        return self._executor.submit(_run_guarded, name, fn, *args, **kwargs)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
