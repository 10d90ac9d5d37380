from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from dbfleet.domain.model import DELETION_GUARD, ResourceRef, utcnow
from dbfleet.domain.ports.persistence import ConcurrentModificationError
from dbfleet.domain.reconciliation import OwnershipLedger, attach, detach, has_guard
from tests.support.records import (
    ConflictingStore,
    add_records,
    load_policy,
    load_schedule,
    make_policy,
    make_schedule,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from dbfleet.domain.ports.unit_of_work import StoreUnitOfWork

SCHEDULE = ResourceRef(namespace="default", name="schedule")
POLICY = ResourceRef(namespace="default", name="policy")


def test_attach_adds_dependent_and_guard_once() -> None:
    schedule = make_schedule()

    assert attach(schedule, "default/cluster0")
    assert not attach(schedule, "default/cluster0")

    assert schedule.deployment_ids == ["default/cluster0"]
    assert schedule.finalizers == [DELETION_GUARD]


def test_guard_is_held_while_any_dependent_remains() -> None:
    schedule = make_schedule()
    attach(schedule, "default/a")
    attach(schedule, "default/b")

    assert detach(schedule, "default/a")
    assert has_guard(schedule)

    assert detach(schedule, "default/b")
    assert not has_guard(schedule)
    assert not detach(schedule, "default/b")


def test_detach_repairs_a_stale_guard() -> None:
    policy = make_policy()
    policy.finalizers = [DELETION_GUARD]

    assert detach(policy, "default/unknown")
    assert policy.finalizers == []


def test_attach_to_record_being_deleted_logs_warning(caplog: pytest.LogCaptureFixture) -> None:
    schedule = make_schedule(deletion_requested_at=utcnow())

    attach(schedule, "default/cluster0")

    assert has_guard(schedule)
    assert "marked for deletion but still referenced" in caplog.text


def test_ledger_attaches_schedule_and_policy(store: Callable[[], StoreUnitOfWork]) -> None:
    add_records(store, make_policy(), make_schedule())
    ledger = OwnershipLedger(store)

    ledger.attach_schedule(SCHEDULE, "default/cluster0")
    ledger.attach_policy(POLICY, "default/schedule")

    schedule = load_schedule(store)
    policy = load_policy(store)
    assert schedule is not None
    assert policy is not None
    assert schedule.deployment_ids == ["default/cluster0"]
    assert schedule.has_finalizer()
    assert policy.backup_schedule_ids == ["default/schedule"]
    assert policy.has_finalizer()


def test_ledger_ignores_missing_records(store: Callable[[], StoreUnitOfWork]) -> None:
    ledger = OwnershipLedger(store)

    assert ledger.attach_schedule(SCHEDULE, "default/cluster0") is None
    assert ledger.detach_policy(POLICY, "default/schedule") is None


def test_release_deployment_cascades_to_the_policy(
    store: Callable[[], StoreUnitOfWork],
) -> None:
    add_records(
        store,
        make_policy(),
        make_schedule(
            deployment_ids=["default/cluster0"],
            finalizers=[DELETION_GUARD],
        ),
    )
    ledger = OwnershipLedger(store, max_concurrency=2)
    ledger.attach_policy(POLICY, "default/schedule")

    released = ledger.release_deployment("default/cluster0")

    assert released == [SCHEDULE]
    schedule = load_schedule(store)
    policy = load_policy(store)
    assert schedule is not None
    assert policy is not None
    assert schedule.deployment_ids == []
    assert not schedule.has_finalizer()
    assert policy.backup_schedule_ids == []
    assert not policy.has_finalizer()


def test_release_keeps_policy_guard_while_other_deployments_use_the_schedule(
    store: Callable[[], StoreUnitOfWork],
) -> None:
    add_records(
        store,
        make_policy(),
        make_schedule(
            deployment_ids=["default/cluster0", "default/cluster1"],
            finalizers=[DELETION_GUARD],
        ),
    )
    ledger = OwnershipLedger(store)
    ledger.attach_policy(POLICY, "default/schedule")

    ledger.release_deployment("default/cluster0")

    schedule = load_schedule(store)
    policy = load_policy(store)
    assert schedule is not None
    assert policy is not None
    assert schedule.deployment_ids == ["default/cluster1"]
    assert schedule.has_finalizer()
    assert policy.has_finalizer()


def test_release_deployment_skips_the_kept_schedule(
    store: Callable[[], StoreUnitOfWork],
) -> None:
    add_records(
        store,
        make_policy(),
        make_schedule(deployment_ids=["default/cluster0"], finalizers=[DELETION_GUARD]),
        make_schedule("old", deployment_ids=["default/cluster0"], finalizers=[DELETION_GUARD]),
    )
    ledger = OwnershipLedger(store)

    released = ledger.release_deployment("default/cluster0", keep=SCHEDULE)

    assert released == [ResourceRef(namespace="default", name="old")]
    kept = load_schedule(store)
    old = load_schedule(store, "old")
    assert kept is not None
    assert old is not None
    assert kept.deployment_ids == ["default/cluster0"]
    assert old.deployment_ids == []


def test_detaching_the_last_dependent_purges_a_record_marked_for_deletion(
    store: Callable[[], StoreUnitOfWork],
) -> None:
    add_records(
        store,
        make_policy(),
        make_schedule(
            deployment_ids=["default/cluster0"],
            finalizers=[DELETION_GUARD],
            deletion_requested_at=utcnow(),
        ),
    )
    ledger = OwnershipLedger(store)

    ledger.release_schedule(SCHEDULE, "default/cluster0")

    assert load_schedule(store) is None


def test_ledger_retries_lost_races(store: Callable[[], StoreUnitOfWork]) -> None:
    add_records(store, make_schedule())
    conflicting = ConflictingStore(store, conflicts=2)
    ledger = OwnershipLedger(conflicting, conflict_retries=3)

    ledger.attach_schedule(SCHEDULE, "default/cluster0")

    assert conflicting.commits == 3
    schedule = load_schedule(store)
    assert schedule is not None
    assert schedule.deployment_ids == ["default/cluster0"]


def test_ledger_gives_up_after_exhausting_retries(store: Callable[[], StoreUnitOfWork]) -> None:
    add_records(store, make_schedule())
    ledger = OwnershipLedger(ConflictingStore(store, conflicts=10), conflict_retries=3)

    with pytest.raises(ConcurrentModificationError, match="gave up after 3 attempts"):
        ledger.attach_schedule(SCHEDULE, "default/cluster0")

    schedule = load_schedule(store)
    assert schedule is not None
    assert schedule.deployment_ids == []
