from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from dbfleet.domain.deployment import (
    compare_zone_mappings,
    reconcile_managed_namespaces,
    reconcile_zone_mapping,
)
from dbfleet.domain.model import (
    ClusterType,
    ConditionReason,
    ConditionType,
    ManagedNamespace,
    ZoneMapping,
)
from tests.support.passes import make_pass
from tests.support.provider import server_error
from tests.support.records import PROJECT_ID, cluster_spec, make_deployment

if TYPE_CHECKING:
    from collections.abc import Callable

    from dbfleet.domain.deployment import DeploymentPass
    from dbfleet.domain.ports.unit_of_work import StoreUnitOfWork
    from tests.support.provider import FakeProvider

KEY = (PROJECT_ID, "cluster0")
ZONE_NAMES = {"zone-1": "Zone 1", "zone-2": "Zone 2"}


def geo_run(
    provider: FakeProvider,
    store: Callable[[], StoreUnitOfWork],
    *,
    zones: tuple[ZoneMapping, ...] = (),
    namespaces: tuple[ManagedNamespace, ...] = (),
    cluster_type: ClusterType = ClusterType.GEOSHARDED,
) -> DeploymentPass:
    spec = cluster_spec(
        cluster_type=cluster_type,
        custom_zone_mapping=zones,
        managed_namespaces=namespaces,
    )
    return make_pass(make_deployment(spec), provider, store)


@pytest.mark.parametrize(
    ("existing", "desired", "expected"),
    [
        ({}, [ZoneMapping(location="CA", zone="Zone 1")], (True, False)),
        ({"CA": "zone-1"}, [ZoneMapping(location="CA", zone="Zone 1")], (False, False)),
        (
            {"CA": "zone-1"},
            [
                ZoneMapping(location="CA", zone="Zone 1"),
                ZoneMapping(location="US", zone="Zone 2"),
            ],
            (True, False),
        ),
        ({"CA": "zone-1"}, [ZoneMapping(location="CA", zone="Zone 2")], (True, True)),
        (
            {"CA": "zone-1", "US": "zone-2"},
            [ZoneMapping(location="CA", zone="Zone 1")],
            (True, True),
        ),
        ({"CA": "zone-1"}, [], (False, True)),
    ],
    ids=["create", "in-sync", "grow", "moved", "shrink", "remove-all"],
)
def test_compare_zone_mappings(
    existing: dict[str, str],
    desired: list[ZoneMapping],
    expected: tuple[bool, bool],
) -> None:
    assert compare_zone_mappings(existing, desired, ZONE_NAMES) == expected


def test_zone_mapping_is_created(
    provider: FakeProvider,
    store: Callable[[], StoreUnitOfWork],
) -> None:
    provider.zone_names[KEY] = ZONE_NAMES
    run = geo_run(provider, store, zones=(ZoneMapping(location="CA", zone="Zone 1"),))

    result = reconcile_zone_mapping(run)

    assert result.is_ok
    assert provider.mutations() == ["create_custom_zones"]
    assert provider.custom_zones[KEY] == {"CA": "zone-1"}
    assert run.context.conditions.is_true(ConditionType.ZONE_MAPPING_READY)


def test_shrinking_the_mapping_recreates_it(
    provider: FakeProvider,
    store: Callable[[], StoreUnitOfWork],
) -> None:
    provider.zone_names[KEY] = ZONE_NAMES
    provider.custom_zones[KEY] = {"CA": "zone-1", "US": "zone-2"}
    run = geo_run(provider, store, zones=(ZoneMapping(location="CA", zone="Zone 1"),))

    result = reconcile_zone_mapping(run)

    assert result.is_ok
    assert provider.mutations() == ["delete_custom_zones", "create_custom_zones"]
    assert provider.custom_zones[KEY] == {"CA": "zone-1"}


def test_unknown_zone_is_rejected(
    provider: FakeProvider,
    store: Callable[[], StoreUnitOfWork],
) -> None:
    provider.zone_names[KEY] = ZONE_NAMES
    run = geo_run(provider, store, zones=(ZoneMapping(location="CA", zone="Zone 7"),))

    result = reconcile_zone_mapping(run)

    assert result.is_terminate
    assert result.reason is ConditionReason.CUSTOM_ZONE_MAPPING_FAILED
    assert "Zone 7" in result.message
    assert provider.mutations() == []


def test_duplicate_locations_are_rejected(
    provider: FakeProvider,
    store: Callable[[], StoreUnitOfWork],
) -> None:
    provider.zone_names[KEY] = ZONE_NAMES
    zones = (
        ZoneMapping(location="CA", zone="Zone 1"),
        ZoneMapping(location="CA", zone="Zone 2"),
    )

    result = reconcile_zone_mapping(geo_run(provider, store, zones=zones))

    assert result.is_terminate
    assert "duplicate desired key" in result.message


def test_removing_every_mapping_clears_the_condition(
    provider: FakeProvider,
    store: Callable[[], StoreUnitOfWork],
) -> None:
    provider.zone_names[KEY] = ZONE_NAMES
    provider.custom_zones[KEY] = {"CA": "zone-1"}
    run = geo_run(provider, store)

    result = reconcile_zone_mapping(run)

    assert result.unmanaged
    assert provider.mutations() == ["delete_custom_zones"]
    assert ConditionType.ZONE_MAPPING_READY not in run.context.conditions


def test_replica_sets_without_mapping_are_left_alone(
    provider: FakeProvider,
    store: Callable[[], StoreUnitOfWork],
) -> None:
    run = geo_run(provider, store, cluster_type=ClusterType.REPLICASET)

    assert reconcile_zone_mapping(run).unmanaged
    assert reconcile_managed_namespaces(run).unmanaged
    assert provider.calls == []


def test_zone_mapping_read_failure_is_transient(
    provider: FakeProvider,
    store: Callable[[], StoreUnitOfWork],
) -> None:
    provider.errors["get_custom_zones"] = server_error()
    run = geo_run(provider, store, zones=(ZoneMapping(location="CA", zone="Zone 1"),))

    result = reconcile_zone_mapping(run)

    assert result.is_in_progress
    assert result.reason is ConditionReason.CUSTOM_ZONE_MAPPING_FAILED


ORDERS = ManagedNamespace(db="shop", collection="orders", custom_shard_key="region")
USERS = ManagedNamespace(db="shop", collection="users", custom_shard_key="country")


def test_missing_namespaces_are_created(
    provider: FakeProvider,
    store: Callable[[], StoreUnitOfWork],
) -> None:
    run = geo_run(provider, store, namespaces=(ORDERS, USERS))

    result = reconcile_managed_namespaces(run)

    assert result.is_ok
    assert provider.mutations() == ["create_managed_namespace", "create_managed_namespace"]
    assert run.context.conditions.is_true(ConditionType.MANAGED_NAMESPACES_READY)


def test_changed_namespace_is_replaced_and_stale_one_removed(
    provider: FakeProvider,
    store: Callable[[], StoreUnitOfWork],
) -> None:
    stale = ManagedNamespace(db="shop", collection="carts", custom_shard_key="id")
    provider.managed_namespaces[KEY] = [
        ManagedNamespace(db="shop", collection="orders", custom_shard_key="customer"),
        stale,
    ]
    run = geo_run(provider, store, namespaces=(ORDERS,))

    result = reconcile_managed_namespaces(run)

    assert result.is_ok
    assert [call[0] for call in provider.calls[1:]] == [
        "delete_managed_namespace",
        "delete_managed_namespace",
        "create_managed_namespace",
    ]
    assert provider.managed_namespaces[KEY] == [ORDERS]


def test_namespaces_in_sync_make_no_calls(
    provider: FakeProvider,
    store: Callable[[], StoreUnitOfWork],
) -> None:
    provider.managed_namespaces[KEY] = [ORDERS]

    result = reconcile_managed_namespaces(geo_run(provider, store, namespaces=(ORDERS,)))

    assert result.is_ok
    assert provider.mutations() == []


def test_duplicate_namespaces_are_rejected(
    provider: FakeProvider,
    store: Callable[[], StoreUnitOfWork],
) -> None:
    result = reconcile_managed_namespaces(geo_run(provider, store, namespaces=(ORDERS, ORDERS)))

    assert result.is_terminate
    assert result.reason is ConditionReason.MANAGED_NAMESPACES_FAILED
