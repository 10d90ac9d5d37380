"""Fold independent sub-results into one parent outcome."""

from __future__ import annotations

from dataclasses import replace
from typing import TYPE_CHECKING

from .result import ReconciliationError, ReconciliationResult, Requeue

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import timedelta


def aggregate(results: Iterable[ReconciliationResult]) -> ReconciliationResult:
    """Combine sub-results with Terminate > InProgress > OK precedence.

    The first Terminate (or, failing that, the first InProgress) in input order is
    surfaced. When every sub-result is unmanaged, including the empty case, the
    parent is unmanaged as well so its condition is cleared rather than left stale.
    """

    collected = list(results)
    for result in collected:
        if result.is_terminate:
            return result
    for result in collected:
        if result.is_in_progress:
            return result
    if all(result.unmanaged for result in collected):
        return ReconciliationResult.ok(unmanaged=True)
    return ReconciliationResult.ok()


def shortest_retry(results: Iterable[ReconciliationResult]) -> timedelta | None:
    hints = [result.retry_after for result in results if result.retry_after is not None]
    return min(hints) if hints else None


def aggregate_with_retry(results: Iterable[ReconciliationResult]) -> ReconciliationResult:
    """``aggregate`` keeping the shortest retry hint of any in-progress sub-result."""

    collected = list(results)
    folded = aggregate(collected)
    if not folded.is_in_progress:
        return folded
    hint = shortest_retry(result for result in collected if result.is_in_progress)
    if hint is None or folded.retry_after == hint:
        return folded
    return replace(folded, retry_after=hint)


def requeue_for(
    result: ReconciliationResult,
    *,
    requeue_interval: timedelta,
    resync_interval: timedelta | None = None,
) -> Requeue:
    """Translate a pass result into the control loop's requeue contract.

    InProgress re-runs after its retry hint or ``requeue_interval``; Terminate is
    fatal; OK re-runs only when a periodic ``resync_interval`` applies.
    """

    if result.is_terminate:
        return Requeue.fatal(result.error or ReconciliationError(result.message))
    if result.is_in_progress:
        return Requeue.after(result.retry_after or requeue_interval)
    if resync_interval is not None:
        return Requeue.after(resync_interval)
    return Requeue.never()
