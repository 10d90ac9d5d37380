from __future__ import annotations

import threading
from typing import TYPE_CHECKING, Any

import pytest

from dbfleet import app
from dbfleet.adapters.documents import parse_documents
from dbfleet.domain.deployment import ControlLoop
from dbfleet.domain.model import DELETION_GUARD, ClusterSpec, ResourceRef
from tests.support.records import (
    PROJECT_ID,
    add_records,
    load_deployment,
    load_schedule,
    make_deployment,
    make_schedule,
)

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from dbfleet.domain.deployment import DeploymentController
    from dbfleet.domain.ports.unit_of_work import StoreUnitOfWork
    from tests.support.provider import FakeProvider

REF = ResourceRef(namespace="default", name="cluster0")


def deployment_document(instance_size: str = "M10", **fields: Any) -> dict[str, Any]:
    return {
        "kind": "Deployment",
        "name": "cluster0",
        "project_id": PROJECT_ID,
        "spec": {
            "name": "cluster0",
            "replication_specs": [
                {
                    "region_configs": [
                        {
                            "provider_name": "AWS",
                            "region_name": "US_EAST_1",
                            "instance_size": instance_size,
                            "node_count": 3,
                        }
                    ]
                }
            ],
        },
        **fields,
    }


def test_apply_creates_records(store: Callable[[], StoreUnitOfWork]) -> None:
    documents = parse_documents(
        [
            deployment_document(),
            {"kind": "BackupSchedule", "name": "nightly", "policy_ref": "keep-week"},
        ]
    )

    changed = app.apply_documents(documents, unit_of_work_factory=store)

    assert changed == ["Deployment default/cluster0", "BackupSchedule default/nightly"]
    deployment = load_deployment(store)
    assert deployment is not None
    assert deployment.generation == 1
    assert deployment.project_id == PROJECT_ID
    schedule = load_schedule(store, "nightly")
    assert schedule is not None
    assert schedule.policy_ref == ResourceRef(namespace="default", name="keep-week")


def test_reapplying_the_same_documents_changes_nothing(
    store: Callable[[], StoreUnitOfWork],
) -> None:
    documents = parse_documents(deployment_document())
    app.apply_documents(documents, unit_of_work_factory=store)

    assert app.apply_documents(documents, unit_of_work_factory=store) == []

    deployment = load_deployment(store)
    assert deployment is not None
    assert deployment.generation == 1


def test_spec_change_bumps_the_generation(store: Callable[[], StoreUnitOfWork]) -> None:
    app.apply_documents(parse_documents(deployment_document()), unit_of_work_factory=store)

    changed = app.apply_documents(
        parse_documents(deployment_document("M30")), unit_of_work_factory=store
    )

    assert changed == ["Deployment default/cluster0"]
    deployment = load_deployment(store)
    assert deployment is not None
    assert deployment.generation == 2
    assert isinstance(deployment.spec, ClusterSpec)
    assert deployment.spec.replication_specs[0].region_configs[0].instance_size == "M30"


def test_flag_change_keeps_the_generation(store: Callable[[], StoreUnitOfWork]) -> None:
    app.apply_documents(parse_documents(deployment_document()), unit_of_work_factory=store)

    app.apply_documents(
        parse_documents(deployment_document(keep_on_delete=True)), unit_of_work_factory=store
    )

    deployment = load_deployment(store)
    assert deployment is not None
    assert deployment.keep_on_delete
    assert deployment.generation == 1


def test_records_being_deleted_are_not_updated(store: Callable[[], StoreUnitOfWork]) -> None:
    add_records(store, make_deployment(finalizers=[DELETION_GUARD]))
    assert app.request_deletion("Deployment", REF, unit_of_work_factory=store) is False

    changed = app.apply_documents(
        parse_documents(deployment_document("M30")), unit_of_work_factory=store
    )

    assert changed == []
    deployment = load_deployment(store)
    assert deployment is not None
    assert deployment.generation == 1


def test_apply_file_reads_documents(
    store: Callable[[], StoreUnitOfWork],
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.delenv("DBFLEET_CONFLICT_RETRIES", raising=False)
    path = tmp_path / "fleet.json"
    path.write_text(
        '[{"kind": "BackupPolicy", "name": "keep-week", "items": []}]', encoding="utf-8"
    )

    changed = app.apply_file(path, unit_of_work_factory=store)

    assert changed == ["BackupPolicy default/keep-week"]


def test_deletion_of_a_missing_record(store: Callable[[], StoreUnitOfWork]) -> None:
    assert app.request_deletion("Deployment", REF, unit_of_work_factory=store) is None


def test_unguarded_records_are_purged_right_away(store: Callable[[], StoreUnitOfWork]) -> None:
    add_records(store, make_schedule("nightly"))

    purged = app.request_deletion(
        "BackupSchedule",
        ResourceRef(namespace="default", name="nightly"),
        unit_of_work_factory=store,
    )

    assert purged is True
    assert load_schedule(store, "nightly") is None


def test_guarded_records_wait_for_the_controller(store: Callable[[], StoreUnitOfWork]) -> None:
    add_records(store, make_deployment(finalizers=[DELETION_GUARD]))

    first = app.request_deletion("Deployment", REF, unit_of_work_factory=store)
    requested_at = app.deployment_status(REF, unit_of_work_factory=store)
    second = app.request_deletion("Deployment", REF, unit_of_work_factory=store)

    assert first is False
    assert second is False
    deployment = app.deployment_status(REF, unit_of_work_factory=store)
    assert requested_at is not None
    assert deployment is not None
    assert deployment.deletion_requested_at == requested_at.deletion_requested_at


def test_unknown_kinds_are_rejected(store: Callable[[], StoreUnitOfWork]) -> None:
    with pytest.raises(ValueError, match="Unknown record kind: Cluster"):
        app.request_deletion("Cluster", REF, unit_of_work_factory=store)


def test_reconcile_deployment_runs_one_pass(
    controller: DeploymentController,
    provider: FakeProvider,
    store: Callable[[], StoreUnitOfWork],
) -> None:
    add_records(store, make_deployment())

    outcome = app.reconcile_deployment(REF, controller=controller)

    assert outcome.key == "default/cluster0"
    assert outcome.result.is_in_progress
    assert provider.mutations() == ["create_cluster"]


def test_run_control_loop_once_sweeps_every_deployment(
    controller: DeploymentController,
    store: Callable[[], StoreUnitOfWork],
) -> None:
    add_records(store, make_deployment(), make_deployment(name="cluster1"))
    loop = ControlLoop(controller, store, workers=1)

    outcomes = app.run_control_loop(threading.Event(), once=True, loop=loop)

    assert sorted(outcome.key for outcome in outcomes) == ["default/cluster0", "default/cluster1"]


def test_run_control_loop_returns_when_stopped(
    controller: DeploymentController,
    store: Callable[[], StoreUnitOfWork],
) -> None:
    stop = threading.Event()
    stop.set()

    assert app.run_control_loop(stop, loop=ControlLoop(controller, store)) == []


def test_deployment_status_of_a_missing_record(store: Callable[[], StoreUnitOfWork]) -> None:
    assert app.deployment_status(REF, unit_of_work_factory=store) is None
