from __future__ import annotations

import threading
from datetime import UTC, datetime, timedelta

import pytest

from dbfleet.domain.model import ConditionReason, ConditionSet, ConditionType, StatusCondition
from dbfleet.domain.reconciliation import (
    PassCancelledError,
    PassContext,
    ReconciliationResult,
    guard_cancellation,
)

EPOCH = datetime(2024, 1, 1, tzinfo=UTC)


class Clock:
    def __init__(self) -> None:
        self.now = EPOCH

    def __call__(self) -> datetime:
        return self.now


def test_conditions_keep_transition_time_until_status_flips() -> None:
    clock = Clock()
    conditions = ConditionSet(clock=clock)
    first = conditions.set(
        ConditionType.BACKUP_READY,
        status=False,
        reason=ConditionReason.BACKUP_SCHEDULE_UPDATING,
    )

    clock.now = EPOCH + timedelta(minutes=5)
    same = conditions.set(
        ConditionType.BACKUP_READY,
        status=False,
        reason=ConditionReason.BACKUP_SCHEDULE_NOT_FOUND,
    )
    assert same.last_transition_time == first.last_transition_time
    assert same.reason is ConditionReason.BACKUP_SCHEDULE_NOT_FOUND

    clock.now = EPOCH + timedelta(minutes=10)
    flipped = conditions.set(ConditionType.BACKUP_READY, status=True)
    assert flipped.last_transition_time == clock.now
    assert len(conditions) == 1


def test_apply_result_maps_the_three_outcomes() -> None:
    context = PassContext.start("default/cluster0")

    context.apply_result(
        ConditionType.SEARCH_NODES_READY,
        ReconciliationResult.ok(),
        ready_reason=ConditionReason.SEARCH_NODES_READY,
    )
    context.apply_result(
        ConditionType.BACKUP_READY,
        ReconciliationResult.in_progress(ConditionReason.BACKUP_SCHEDULE_UPDATING, "busy"),
    )
    context.apply_result(
        ConditionType.ZONE_MAPPING_READY,
        ReconciliationResult.terminate(ConditionReason.CUSTOM_ZONE_MAPPING_FAILED, "bad"),
        message="zone mapping failed: bad",
    )

    assert context.conditions.is_true(ConditionType.SEARCH_NODES_READY)
    backup = context.conditions.get(ConditionType.BACKUP_READY)
    assert backup is not None
    assert not backup.status
    assert backup.message == "busy"
    zones = context.conditions.get(ConditionType.ZONE_MAPPING_READY)
    assert zones is not None
    assert zones.message == "zone mapping failed: bad"


def test_unmanaged_result_clears_the_condition_but_keeps_previous() -> None:
    persisted = StatusCondition(
        type=ConditionType.MANAGED_NAMESPACES_READY,
        status=True,
        reason=ConditionReason.MANAGED_NAMESPACES_READY,
        last_transition_time=EPOCH,
    )
    context = PassContext.start("default/cluster0", [persisted])

    context.apply_result(
        ConditionType.MANAGED_NAMESPACES_READY,
        ReconciliationResult.ok(unmanaged=True),
    )

    assert ConditionType.MANAGED_NAMESPACES_READY not in context.conditions
    assert (
        context.previous_reason(ConditionType.MANAGED_NAMESPACES_READY)
        is ConditionReason.MANAGED_NAMESPACES_READY
    )


def test_status_changes_accumulate() -> None:
    context = PassContext.start("default/cluster0")

    context.update_status(state_name="CREATING")
    context.update_status(state_name="IDLE", mongodb_version="8.0.1")

    assert context.status_changes == {"state_name": "IDLE", "mongodb_version": "8.0.1"}


def test_guarded_calls_abort_once_cancelled() -> None:
    cancelled = threading.Event()
    context = PassContext.start("default/cluster0", cancelled=cancelled)
    calls: list[str] = []

    class Service:
        name = "svc"

        def ping(self) -> str:
            calls.append("ping")
            return "pong"

    guarded = guard_cancellation(Service(), context)

    assert guarded.ping() == "pong"
    assert guarded.name == "svc"

    cancelled.set()
    with pytest.raises(PassCancelledError, match="default/cluster0 was cancelled"):
        guarded.ping()
    assert calls == ["ping"]
