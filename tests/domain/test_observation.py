from __future__ import annotations

import pytest

from dbfleet.domain.model import ObservedSearchNodes, SearchNodeSpec
from dbfleet.domain.observation import (
    SEARCH_NODES_ABSENT_STATUSES,
    ObservationAdapter,
    is_not_found,
    observe,
)
from dbfleet.domain.ports.provider import ProviderAPIError
from tests.support.provider import FakeProvider, bad_request, not_found, server_error
from tests.support.records import PROJECT_ID, cluster_spec, flex_spec


@pytest.mark.parametrize(
    ("error", "expected"),
    [
        (not_found("cluster"), True),
        (ProviderAPIError("gone", status_code=400, error_code="CLUSTER_NOT_FOUND"), True),
        (ProviderAPIError("gone", status_code=404), True),
        (bad_request(), False),
        (server_error(), False),
        (ProviderAPIError("no response"), False),
    ],
    ids=["404-code", "code-only", "status-only", "bad-request", "unavailable", "no-response"],
)
def test_is_not_found(error: ProviderAPIError, expected: bool) -> None:  # noqa: FBT001
    assert is_not_found(error) is expected


def test_absent_statuses_can_be_widened() -> None:
    assert is_not_found(bad_request(), absent_statuses=SEARCH_NODES_ABSENT_STATUSES)


def test_observe_maps_absence_to_none() -> None:
    def fetch() -> str:
        raise not_found("thing")

    assert observe(fetch) is None
    assert observe(lambda: "value") == "value"


def test_observe_never_hides_real_failures() -> None:
    def fetch() -> str:
        raise server_error()

    with pytest.raises(ProviderAPIError, match="provider is unavailable"):
        observe(fetch)


def test_deployments_of_another_kind_read_as_absent(provider: FakeProvider) -> None:
    provider.put_deployment(PROJECT_ID, flex_spec("shared"))
    observer = ObservationAdapter(provider)

    assert observer.cluster(PROJECT_ID, "shared") is None
    observed = observer.flex(PROJECT_ID, "shared")
    assert observed is not None
    assert observed.name == "shared"


def test_search_nodes_400_and_empty_specs_read_as_absent(provider: FakeProvider) -> None:
    observer = ObservationAdapter(provider)
    assert observer.search_nodes(PROJECT_ID, "cluster0") is None

    provider.search_nodes[(PROJECT_ID, "cluster0")] = ObservedSearchNodes(
        id="search", state_name="IDLE", specs=()
    )
    assert observer.search_nodes(PROJECT_ID, "cluster0") is None

    nodes = (SearchNodeSpec(instance_size="S20_HIGHCPU_NVME", node_count=2),)
    provider.search_nodes[(PROJECT_ID, "cluster0")] = ObservedSearchNodes(
        id="search", state_name="IDLE", specs=nodes
    )
    observed = observer.search_nodes(PROJECT_ID, "cluster0")
    assert observed is not None
    assert observed.specs == nodes


def test_other_bad_requests_still_fail(provider: FakeProvider) -> None:
    provider.errors["get_cluster"] = bad_request("cluster name")

    with pytest.raises(ProviderAPIError):
        ObservationAdapter(provider).cluster(PROJECT_ID, "cluster0")


def test_zone_mapping_without_data_is_empty(provider: FakeProvider) -> None:
    provider.put_deployment(PROJECT_ID, cluster_spec())
    provider.errors["get_custom_zones"] = not_found("custom zones")

    observed = ObservationAdapter(provider).zone_mapping(PROJECT_ID, "cluster0")

    assert observed.locations == {}
    assert observed.zone_names == {}


def test_missing_managed_namespaces_read_as_absent(provider: FakeProvider) -> None:
    provider.errors["get_managed_namespaces"] = not_found("namespaces")

    assert ObservationAdapter(provider).managed_namespaces(PROJECT_ID, "cluster0") is None
