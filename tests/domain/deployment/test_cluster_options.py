from __future__ import annotations

from dataclasses import replace
from typing import TYPE_CHECKING

import pytest

from dbfleet.domain.deployment import (
    VARIANTS,
    UnknownLifecycleError,
    covers,
    parse_lifecycle,
    reconcile_process_args,
    reconcile_search_nodes,
)
from dbfleet.domain.model import (
    CloudProvider,
    ConditionReason,
    ConditionType,
    DeploymentKind,
    DeploymentStatus,
    LifecycleState,
    ProcessArgs,
    RegionConfig,
    ReplicationSpec,
    SearchNodeSpec,
    Tag,
)
from tests.support.passes import make_pass
from tests.support.provider import server_error
from tests.support.records import PROJECT_ID, cluster_spec, flex_spec, make_deployment

if TYPE_CHECKING:
    from collections.abc import Callable

    from dbfleet.domain.deployment import DeploymentPass
    from dbfleet.domain.model import ClusterSpec
    from dbfleet.domain.ports.unit_of_work import StoreUnitOfWork
    from tests.support.provider import FakeProvider

NODES = (SearchNodeSpec(instance_size="S30_LOWCPU_NVME", node_count=2),)


def test_covers_ignores_unset_fields() -> None:
    desired = ProcessArgs(javascript_enabled=False)
    observed = ProcessArgs(javascript_enabled=False, oplog_size_mb=2048)

    assert covers(desired, observed)
    assert not covers(ProcessArgs(javascript_enabled=True), observed)
    assert covers(None, observed)


def test_covers_walks_nested_tuples() -> None:
    region = RegionConfig(provider_name=CloudProvider.AWS, region_name="US_EAST_1")
    sized = replace(region, instance_size="M10", node_count=3)

    assert covers(
        (ReplicationSpec(region_configs=(region,)),),
        (ReplicationSpec(region_configs=(sized,)),),
    )
    assert not covers(
        (ReplicationSpec(region_configs=(region, region)),),
        (ReplicationSpec(region_configs=(sized,)),),
    )


def test_parse_lifecycle() -> None:
    assert parse_lifecycle("IDLE") is LifecycleState.IDLE
    with pytest.raises(UnknownLifecycleError, match="unknown deployment state: LOST"):
        parse_lifecycle("LOST")


def test_cluster_shape_ignores_sub_resources_and_tag_order(provider: FakeProvider) -> None:
    tags = (Tag(key="team", value="core"), Tag(key="env", value="prod"))
    observed = provider.put_deployment(PROJECT_ID, cluster_spec(tags=tags))
    desired = cluster_spec(
        tags=tuple(reversed(tags)),
        search_nodes=NODES,
        process_args=ProcessArgs(no_table_scan=True),
    )
    variant = VARIANTS[DeploymentKind.CLUSTER]

    assert not variant.shape_differs(desired, observed)
    assert variant.shape_differs(replace(desired, paused=True), observed)


def test_flex_shape_only_compares_mutable_fields(provider: FakeProvider) -> None:
    observed = provider.put_deployment(PROJECT_ID, flex_spec())
    variant = VARIANTS[DeploymentKind.FLEX]

    assert not variant.shape_differs(flex_spec(region_name="EU_WEST_1"), observed)
    assert variant.shape_differs(flex_spec(termination_protection_enabled=True), observed)


def test_cluster_runs_every_sub_reconciler() -> None:
    names = [name for name, _ in VARIANTS[DeploymentKind.CLUSTER].sub_reconcilers]

    assert names == [
        "backup",
        "process-args",
        "connection-secrets",
        "search-nodes",
        "search-indexes",
        "zone-mapping",
        "managed-namespaces",
    ]


def options_run(
    provider: FakeProvider,
    store: Callable[[], StoreUnitOfWork],
    spec: ClusterSpec,
    status: DeploymentStatus | None = None,
) -> DeploymentPass:
    deployment = make_deployment(spec, status=status or DeploymentStatus())
    return make_pass(deployment, provider, store)


def test_process_args_are_pushed_when_they_differ(
    provider: FakeProvider,
    store: Callable[[], StoreUnitOfWork],
) -> None:
    args = ProcessArgs(javascript_enabled=False, oplog_size_mb=4096)
    run = options_run(provider, store, cluster_spec(process_args=args))

    assert reconcile_process_args(run).is_ok
    assert provider.mutations() == ["update_process_args"]

    provider.calls.clear()
    assert reconcile_process_args(run).is_ok
    assert provider.mutations() == []


def test_deprecated_read_concern_is_dropped(
    provider: FakeProvider,
    store: Callable[[], StoreUnitOfWork],
) -> None:
    args = ProcessArgs(default_read_concern="majority", no_table_scan=True)
    run = options_run(provider, store, cluster_spec(process_args=args))

    reconcile_process_args(run)

    assert provider.process_args[(PROJECT_ID, "cluster0")] == ProcessArgs(no_table_scan=True)


def test_tenant_clusters_have_no_process_args(
    provider: FakeProvider,
    store: Callable[[], StoreUnitOfWork],
) -> None:
    tenant = RegionConfig(
        provider_name=CloudProvider.TENANT,
        region_name="US_EAST_1",
        backing_provider_name=CloudProvider.AWS,
        instance_size="M0",
    )
    spec = cluster_spec(
        replication_specs=(ReplicationSpec(region_configs=(tenant,)),),
        process_args=ProcessArgs(no_table_scan=True),
    )

    assert reconcile_process_args(options_run(provider, store, spec)).unmanaged
    assert provider.calls == []


def test_process_args_failure_is_classified(
    provider: FakeProvider,
    store: Callable[[], StoreUnitOfWork],
) -> None:
    provider.errors["update_process_args"] = server_error()
    run = options_run(provider, store, cluster_spec(process_args=ProcessArgs(no_table_scan=True)))

    result = reconcile_process_args(run)

    assert result.is_in_progress
    assert result.reason is ConditionReason.ADVANCED_OPTIONS_NOT_UPDATED


def test_search_nodes_are_created_then_ready(
    provider: FakeProvider,
    store: Callable[[], StoreUnitOfWork],
) -> None:
    spec = cluster_spec(search_nodes=NODES)
    first = options_run(provider, store, spec)

    created = reconcile_search_nodes(first)

    assert created.reason is ConditionReason.SEARCH_NODES_CREATING
    assert provider.mutations() == ["create_search_nodes"]

    provider.settle_search_nodes(PROJECT_ID, "cluster0")
    second = options_run(
        provider,
        store,
        spec,
        DeploymentStatus(conditions=first.context.conditions.as_tuple()),
    )

    assert reconcile_search_nodes(second).is_ok
    assert second.context.conditions.is_true(ConditionType.SEARCH_NODES_READY)
    assert provider.mutations() == ["create_search_nodes"]


def test_cluster_without_search_nodes_reads_400_as_absent(
    provider: FakeProvider,
    store: Callable[[], StoreUnitOfWork],
) -> None:
    run = options_run(provider, store, cluster_spec())

    result = reconcile_search_nodes(run)

    assert result.unmanaged
    assert provider.called("get_search_nodes")
    assert provider.mutations() == []
