"""Bounded fan-out with first-error-wins join."""

from __future__ import annotations

from concurrent.futures import FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait
from logging import getLogger
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

log = getLogger(__name__)


def gather_bounded[T](
    tasks: Iterable[Callable[[], T]],
    *,
    max_concurrency: int,
    name: str = "task",
) -> list[T]:
    """Run ``tasks`` with at most ``max_concurrency`` in flight and return their results.

    On the first failure no further task is started, tasks already running are
    allowed to finish (their side effects stay committed) and the first error is
    re-raised. Results are returned in submission order.
    """

    if max_concurrency < 1:
        raise ValueError("max_concurrency must be at least 1")

    pending = list(tasks)
    if not pending:
        return []

    futures: list[Future[T]] = []
    failed: list[Future[T]] = []
    with ThreadPoolExecutor(
        max_workers=min(max_concurrency, len(pending)),
        thread_name_prefix=name,
    ) as executor:
        futures = [executor.submit(task) for task in pending]
        done, not_done = wait(futures, return_when=FIRST_EXCEPTION)
        failed = [
            future for future in futures if future in done and future.exception() is not None
        ]
        if failed:
            cancelled = sum(future.cancel() for future in not_done)
            log.warning(
                "%s fan-out failed; cancelled %s queued task(s), waiting for the rest",
                name,
                cancelled,
            )
    # leaving the executor waits for in-flight tasks

    if failed:
        error = failed[0].exception()
        if error is not None:
            raise error
    return [future.result() for future in futures]
