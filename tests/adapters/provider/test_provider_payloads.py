from __future__ import annotations

import pytest
from pydantic import ValidationError

from dbfleet.adapters.provider.schema import (
    ClusterPayload,
    ConnectionStringsPayload,
    PrivateEndpointPayload,
    SearchIndexPayload,
)
from dbfleet.adapters.provider.translator import (
    cluster_from_payload,
    connection_strings_from_payload,
    managed_namespace_to_payload,
    private_endpoint_update_request,
    search_index_to_payload,
    serverless_to_payload,
    zone_names_from_payload,
)
from dbfleet.domain.model import (
    CloudProvider,
    ClusterSpec,
    ClusterType,
    ManagedNamespace,
    SearchIndex,
    ServerlessPrivateEndpoint,
)
from tests.support.records import serverless_spec


def test_unknown_fields_are_ignored() -> None:
    payload = ClusterPayload.model_validate(
        {"name": "cluster0", "clusterType": "SHARDED", "diskSizeGB": 10, "links": []}
    )

    observed = cluster_from_payload(payload)

    assert isinstance(observed.spec, ClusterSpec)
    assert observed.spec.cluster_type is ClusterType.SHARDED
    assert observed.state_name == ""


def test_private_endpoint_requires_an_id() -> None:
    with pytest.raises(ValidationError):
        PrivateEndpointPayload.model_validate({"comment": "app", "status": "AVAILABLE"})


def test_shard_optimized_string_comes_from_the_first_endpoint_that_has_one() -> None:
    payload = ConnectionStringsPayload.model_validate(
        {
            "standard": "mongodb://a",
            "privateEndpoint": [
                {"connectionString": "mongodb://pe-1"},
                {"srvShardOptimizedConnectionString": "mongodb+srv://pe-2"},
            ],
        }
    )

    strings = connection_strings_from_payload(payload)

    assert strings is not None
    assert strings.standard == "mongodb://a"
    assert strings.private_shard == "mongodb+srv://pe-2"
    assert connection_strings_from_payload(None) is None


def test_zone_names_skip_specs_without_an_id() -> None:
    payload = ClusterPayload.model_validate(
        {
            "name": "geo",
            "replicationSpecs": [
                {"zoneId": "z1", "zoneName": "Zone 1"},
                {"zoneName": "Zone 2"},
            ],
        }
    )

    assert zone_names_from_payload(payload) == {"z1": "Zone 1"}


def test_serverless_requests_name_the_serverless_provider() -> None:
    request = serverless_to_payload(serverless_spec(continuous_backup_enabled=True)).to_request()

    assert request["providerSettings"] == {
        "backingProviderName": "AWS",
        "regionName": "US_EAST_1",
        "providerName": "SERVERLESS",
    }
    assert request["serverlessBackupOptions"] == {"serverlessContinuousBackupEnabled": True}


def test_search_index_request_omits_unset_definition_parts() -> None:
    index = SearchIndex(
        name="default",
        database="shop",
        collection="orders",
        type="search",
        mappings={"dynamic": True},
    )

    request = search_index_to_payload(index).to_request()

    assert request == {
        "name": "default",
        "database": "shop",
        "collectionName": "orders",
        "type": "search",
        "definition": {"mappings": {"dynamic": True}},
    }


def test_search_index_payload_accepts_field_names() -> None:
    payload = SearchIndexPayload(
        name="default", database="shop", collection_name="orders", index_id="abc"
    )

    assert payload.to_request()["indexID"] == "abc"


def test_managed_namespace_chunks_use_provider_name() -> None:
    namespace = ManagedNamespace(
        db="shop", collection="orders", custom_shard_key="region", number_of_initial_chunks=4
    )

    request = managed_namespace_to_payload(namespace).to_request()

    assert request["numInitialChunks"] == 4
    assert request["customShardKey"] == "region"


def test_private_endpoint_update_carries_the_comment() -> None:
    endpoint = ServerlessPrivateEndpoint(
        name="app",
        cloud_provider_endpoint_id="/subscriptions/x",
        private_endpoint_ip_address="10.0.0.4",
    )

    request = private_endpoint_update_request(endpoint, CloudProvider.AZURE).to_request()

    assert request == {
        "providerName": "AZURE",
        "comment": "app",
        "cloudProviderEndpointId": "/subscriptions/x",
        "privateEndpointIpAddress": "10.0.0.4",
    }
