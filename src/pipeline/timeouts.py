"""Bounded waits for slow pipeline steps."""

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, Callable

logger = logging.getLogger(__name__)


class StageTimeoutError(TimeoutError):
    """A time-bounded step did not finish in time."""

    def __init__(self, stage: str, timeout: float):
        super().__init__(f"{stage or 'step'} did not finish within {timeout:.1f}s")
        self.stage = stage
        self.timeout = timeout


class PipelineCancelled(RuntimeError):
    """The pipeline was cancelled between stages."""


def call_with_timeout(
    fn: Callable[..., Any],
    timeout: float | None,
    *args,
    stage: str = "",
    **kwargs,
) -> Any:
    """
    Run ``fn`` and wait at most ``timeout`` seconds for its result.

    The call runs on a worker thread. On timeout the thread is abandoned
    (Python threads cannot be killed) and its eventual result is discarded.

    Args:
        fn: Callable to run
        timeout: Seconds to wait (None waits indefinitely)
        *args: Positional arguments for ``fn``
        stage: Name used in the error and log message
        **kwargs: Keyword arguments for ``fn``

    Returns:
        Result of ``fn``

    Raises:
        StageTimeoutError: If ``fn`` did not finish in time
    """
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"timeout-{stage or 'step'}")
    future = executor.submit(fn, *args, **kwargs)
    try:
        return future.result(timeout=timeout)
    except FutureTimeoutError:
        future.cancel()
        logger.warning("%s timed out after %.1fs", stage or "Step", timeout)
        raise StageTimeoutError(stage, timeout) from None
    finally:
        executor.shutdown(wait=False)
