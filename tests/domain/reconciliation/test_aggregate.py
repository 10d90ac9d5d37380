from __future__ import annotations

from datetime import timedelta

import pytest

from dbfleet.domain.model import ConditionReason
from dbfleet.domain.ports.persistence import ConcurrentModificationError
from dbfleet.domain.ports.provider import ProviderAPIError
from dbfleet.domain.reconciliation import (
    ReconciliationError,
    ReconciliationResult,
    RequeueKind,
    ResultKind,
    TransientError,
    aggregate,
    aggregate_with_retry,
    is_transient,
    requeue_for,
)

OK = ReconciliationResult.ok()
UNMANAGED = ReconciliationResult.ok(unmanaged=True)
CREATING = ReconciliationResult.in_progress(ConditionReason.SEARCH_NODES_CREATING, "creating")
UPDATING = ReconciliationResult.in_progress(ConditionReason.BACKUP_SCHEDULE_UPDATING, "updating")
FAILED = ReconciliationResult.terminate(ConditionReason.CUSTOM_ZONE_MAPPING_FAILED, "bad zone")
BROKEN = ReconciliationResult.terminate(ConditionReason.MANAGED_NAMESPACES_FAILED, "bad ns")


def test_terminate_wins_over_in_progress_and_ok() -> None:
    assert aggregate([OK, CREATING, FAILED, BROKEN]) is FAILED


def test_first_in_progress_is_surfaced() -> None:
    assert aggregate([OK, UPDATING, CREATING]) is UPDATING


def test_all_ok_is_managed_ok() -> None:
    folded = aggregate([OK, UNMANAGED])

    assert folded.is_ok
    assert not folded.unmanaged


@pytest.mark.parametrize("results", [[], [UNMANAGED, UNMANAGED]])
def test_all_unmanaged_stays_unmanaged(results: list[ReconciliationResult]) -> None:
    folded = aggregate(results)

    assert folded.is_ok
    assert folded.unmanaged


def test_aggregate_depends_only_on_the_input_sequence() -> None:
    results = [UNMANAGED, UPDATING, OK, FAILED]

    assert aggregate(results) == aggregate(list(results))
    assert aggregate(reversed(results)) is FAILED


def test_aggregate_with_retry_keeps_the_shortest_hint() -> None:
    slow = ReconciliationResult.in_progress(
        ConditionReason.SEARCH_NODES_UPDATING, retry_after=timedelta(seconds=30)
    )
    fast = ReconciliationResult.in_progress(
        ConditionReason.SEARCH_INDEXES_NOT_READY, retry_after=timedelta(seconds=5)
    )

    folded = aggregate_with_retry([OK, slow, fast])

    assert folded.reason is ConditionReason.SEARCH_NODES_UPDATING
    assert folded.retry_after == timedelta(seconds=5)


def test_result_invariants_are_enforced() -> None:
    with pytest.raises(ValueError, match="must carry an error"):
        ReconciliationResult(kind=ResultKind.TERMINATE, reason=ConditionReason.INTERNAL)
    with pytest.raises(ValueError, match="must carry a reason"):
        ReconciliationResult(kind=ResultKind.IN_PROGRESS)
    with pytest.raises(ValueError, match="neither reason nor error"):
        ReconciliationResult(kind=ResultKind.OK, reason=ConditionReason.INTERNAL)


def test_terminate_wraps_plain_messages() -> None:
    assert isinstance(FAILED.error, ReconciliationError)
    assert FAILED.message == "bad zone"


@pytest.mark.parametrize(
    ("error", "transient"),
    [
        (ProviderAPIError("timeout"), True),
        (ProviderAPIError("busy", status_code=503), True),
        (ProviderAPIError("slow down", status_code=429), True),
        (ProviderAPIError("bad", status_code=400), False),
        (ProviderAPIError("gone", status_code=404), False),
        (ConcurrentModificationError("conflict"), True),
        (TransientError("later"), True),
        (ValueError("boom"), False),
    ],
)
def test_from_error_classifies_failures(error: Exception, *, transient: bool) -> None:
    result = ReconciliationResult.from_error(ConditionReason.DEPLOYMENT_NOT_UPDATED, error)

    assert is_transient(error) is transient
    assert result.is_in_progress is transient
    assert result.is_terminate is not transient
    assert result.reason is ConditionReason.DEPLOYMENT_NOT_UPDATED


def test_requeue_for_maps_results() -> None:
    interval = timedelta(seconds=10)
    resync = timedelta(minutes=15)

    assert requeue_for(FAILED, requeue_interval=interval).kind is RequeueKind.FATAL
    assert requeue_for(FAILED, requeue_interval=interval).error is FAILED.error
    assert requeue_for(CREATING, requeue_interval=interval).delay == interval
    assert requeue_for(OK, requeue_interval=interval).kind is RequeueKind.NONE
    periodic = requeue_for(OK, requeue_interval=interval, resync_interval=resync)
    assert periodic.kind is RequeueKind.AFTER
    assert periodic.delay == resync


def test_requeue_for_prefers_the_retry_hint() -> None:
    hinted = ReconciliationResult.in_progress(
        ConditionReason.DEPLOYMENT_CREATING, retry_after=timedelta(seconds=3)
    )

    assert requeue_for(hinted, requeue_interval=timedelta(seconds=10)).delay == timedelta(
        seconds=3
    )
