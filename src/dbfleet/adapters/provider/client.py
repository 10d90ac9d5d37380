"""HTTP client for the provider administration API.

Every port method is synchronous and performs exactly one HTTP exchange (the
backup schedule update reads the current policy id first), wrapped in
``asyncio.run`` on a short-lived ``ResilientClient``.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import ValidationError

from dbfleet.adapters.http_resilience import ResilientClient
from dbfleet.config import get_provider_config
from dbfleet.domain.ports.provider import ProviderAPIError

from .schema import (
    BackupSchedulePayload,
    ClusterPayload,
    CustomZoneMappingRequest,
    ErrorPayload,
    FlexPayload,
    GlobalWritesPayload,
    PrivateEndpointCreateRequest,
    PrivateEndpointPayload,
    ProcessArgsPayload,
    ProviderBaseModel,
    SearchDeploymentPayload,
    SearchIndexPayload,
    ServerlessPayload,
)
from .translator import (
    backup_schedule_from_payload,
    backup_schedule_to_payload,
    cluster_from_payload,
    cluster_to_payload,
    flex_from_payload,
    flex_to_payload,
    flex_update_payload,
    managed_namespace_from_payload,
    managed_namespace_to_payload,
    private_endpoint_from_payload,
    private_endpoint_update_request,
    process_args_from_payload,
    process_args_to_payload,
    search_index_from_payload,
    search_index_to_payload,
    search_index_update_payload,
    search_nodes_from_payload,
    search_nodes_request,
    serverless_from_payload,
    serverless_to_payload,
    serverless_update_payload,
    zone_mapping_payloads,
    zone_names_from_payload,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from dbfleet.config import ProviderConfig
    from dbfleet.domain.model import (
        BackupScheduleSpec,
        ClusterSpec,
        FlexSpec,
        ManagedNamespace,
        ObservedBackupSchedule,
        ObservedDeployment,
        ObservedPrivateEndpoint,
        ObservedSearchNodes,
        ProcessArgs,
        SearchIndex,
        SearchNodeSpec,
        ServerlessPrivateEndpoint,
        ServerlessSpec,
        ZoneMapping,
    )
    from dbfleet.domain.ports.provider import ProviderServices

log = getLogger(__name__)

API_PREFIX = "/api/atlas/v2"


def _default_client_factory(config: ProviderConfig) -> ResilientClient:
    return ResilientClient(
        config.resilience,
        auth=httpx.DigestAuth(config.public_key, config.private_key),
    )


def _error_from_response(method: str, path: str, response: httpx.Response) -> ProviderAPIError:
    try:
        payload = ErrorPayload.model_validate(response.json())
    except (ValueError, ValidationError):
        payload = ErrorPayload()
    detail = payload.detail or payload.reason or response.reason_phrase
    return ProviderAPIError(
        f"{method} {path} failed with {response.status_code}: {detail}",
        status_code=response.status_code,
        error_code=payload.error_code,
    )


def _decode[T](response: httpx.Response, translate: Callable[[Any], T]) -> T:
    """Validate and translate a response body; malformed payloads are not retryable."""

    try:
        return translate(response.json())
    except ValueError as error:
        raise ProviderAPIError(
            f"unexpected payload from {response.request.url.path}: {error}",
            status_code=response.status_code,
        ) from error


def _cluster(data: Any) -> ObservedDeployment:
    return cluster_from_payload(ClusterPayload.model_validate(data))


def _zone_names(data: Any) -> dict[str, str]:
    return zone_names_from_payload(ClusterPayload.model_validate(data))


def _flex(data: Any) -> ObservedDeployment:
    return flex_from_payload(FlexPayload.model_validate(data))


def _serverless(data: Any) -> ObservedDeployment:
    return serverless_from_payload(ServerlessPayload.model_validate(data))


def _process_args(data: Any) -> ProcessArgs:
    return process_args_from_payload(ProcessArgsPayload.model_validate(data))


def _backup_schedule(data: Any) -> ObservedBackupSchedule:
    return backup_schedule_from_payload(BackupSchedulePayload.model_validate(data))


def _search_nodes(data: Any) -> ObservedSearchNodes:
    return search_nodes_from_payload(SearchDeploymentPayload.model_validate(data))


def _search_index(data: Any) -> SearchIndex:
    return search_index_from_payload(SearchIndexPayload.model_validate(data))


def _custom_zones(data: Any) -> dict[str, str]:
    return dict(GlobalWritesPayload.model_validate(data).custom_zone_mapping)


def _private_endpoint(data: Any) -> ObservedPrivateEndpoint:
    return private_endpoint_from_payload(PrivateEndpointPayload.model_validate(data))


def _private_endpoints(data: Any) -> list[ObservedPrivateEndpoint]:
    if not isinstance(data, list):
        raise ValueError("expected a list of private endpoints")
    return [_private_endpoint(item) for item in data]  # pyright: ignore[reportUnknownVariableType]


@dataclass(slots=True)
class ProviderClient:
    """Provider API client implementing every provider port."""

    config: ProviderConfig = field(default_factory=get_provider_config)
    client_factory: Callable[[ProviderConfig], ResilientClient] = field(
        default=_default_client_factory
    )

    # transport ---------------------------------------------------------------

    def _send(
        self,
        method: str,
        path: str,
        *,
        body: ProviderBaseModel | None = None,
        params: dict[str, str] | None = None,
    ) -> httpx.Response:
        return asyncio.run(self._send_async(method, path, body=body, params=params))

    async def _send_async(
        self,
        method: str,
        path: str,
        *,
        body: ProviderBaseModel | None,
        params: dict[str, str] | None,
    ) -> httpx.Response:
        url = f"{API_PREFIX}{path}"
        log.debug("%s %s", method, url)
        async with self.client_factory(self.config) as client:
            try:
                response = await client.request(
                    method,
                    url,
                    json=body.to_request() if body is not None else None,
                    params=params,
                )
            except httpx.HTTPError as error:
                raise ProviderAPIError(f"{method} {url} failed: {error}") from error
        if response.is_error:
            raise _error_from_response(method, url, response)
        return response

    @staticmethod
    def _group(project_id: str) -> str:
        return f"/groups/{project_id}"

    def _cluster_path(self, project_id: str, cluster: str) -> str:
        return f"{self._group(project_id)}/clusters/{cluster}"

    # deployments -------------------------------------------------------------

    def get_cluster(self, project_id: str, name: str) -> ObservedDeployment:
        response = self._send("GET", self._cluster_path(project_id, name))
        return _decode(response, _cluster)

    def create_cluster(self, project_id: str, spec: ClusterSpec) -> ObservedDeployment:
        response = self._send(
            "POST", f"{self._group(project_id)}/clusters", body=cluster_to_payload(spec)
        )
        return _decode(response, _cluster)

    def update_cluster(self, project_id: str, spec: ClusterSpec) -> ObservedDeployment:
        response = self._send(
            "PATCH", self._cluster_path(project_id, spec.name), body=cluster_to_payload(spec)
        )
        return _decode(response, _cluster)

    def delete_cluster(self, project_id: str, name: str) -> None:
        self._send("DELETE", self._cluster_path(project_id, name))

    def get_flex(self, project_id: str, name: str) -> ObservedDeployment:
        response = self._send("GET", f"{self._group(project_id)}/flexClusters/{name}")
        return _decode(response, _flex)

    def create_flex(self, project_id: str, spec: FlexSpec) -> ObservedDeployment:
        response = self._send(
            "POST", f"{self._group(project_id)}/flexClusters", body=flex_to_payload(spec)
        )
        return _decode(response, _flex)

    def update_flex(self, project_id: str, spec: FlexSpec) -> ObservedDeployment:
        response = self._send(
            "PATCH",
            f"{self._group(project_id)}/flexClusters/{spec.name}",
            body=flex_update_payload(spec),
        )
        return _decode(response, _flex)

    def delete_flex(self, project_id: str, name: str) -> None:
        self._send("DELETE", f"{self._group(project_id)}/flexClusters/{name}")

    def get_serverless(self, project_id: str, name: str) -> ObservedDeployment:
        response = self._send("GET", f"{self._group(project_id)}/serverless/{name}")
        return _decode(response, _serverless)

    def create_serverless(self, project_id: str, spec: ServerlessSpec) -> ObservedDeployment:
        response = self._send(
            "POST", f"{self._group(project_id)}/serverless", body=serverless_to_payload(spec)
        )
        return _decode(response, _serverless)

    def update_serverless(self, project_id: str, spec: ServerlessSpec) -> ObservedDeployment:
        response = self._send(
            "PATCH",
            f"{self._group(project_id)}/serverless/{spec.name}",
            body=serverless_update_payload(spec),
        )
        return _decode(response, _serverless)

    def delete_serverless(self, project_id: str, name: str) -> None:
        self._send("DELETE", f"{self._group(project_id)}/serverless/{name}")

    def get_process_args(self, project_id: str, name: str) -> ProcessArgs:
        response = self._send("GET", f"{self._cluster_path(project_id, name)}/processArgs")
        return _decode(response, _process_args)

    def update_process_args(self, project_id: str, name: str, args: ProcessArgs) -> None:
        self._send(
            "PATCH",
            f"{self._cluster_path(project_id, name)}/processArgs",
            body=process_args_to_payload(args),
        )

    # backup schedules --------------------------------------------------------

    def _get_backup_payload(self, project_id: str, cluster: str) -> BackupSchedulePayload:
        response = self._send("GET", f"{self._cluster_path(project_id, cluster)}/backup/schedule")
        return _decode(response, BackupSchedulePayload.model_validate)

    def get_backup_schedule(self, project_id: str, cluster: str) -> ObservedBackupSchedule:
        return backup_schedule_from_payload(self._get_backup_payload(project_id, cluster))

    def update_backup_schedule(
        self,
        project_id: str,
        cluster: str,
        schedule: BackupScheduleSpec,
        *,
        update_snapshots: bool = False,
    ) -> ObservedBackupSchedule:
        current = self._get_backup_payload(project_id, cluster)
        policy_id = current.policies[0].id if current.policies else None
        response = self._send(
            "PATCH",
            f"{self._cluster_path(project_id, cluster)}/backup/schedule",
            body=backup_schedule_to_payload(
                schedule, policy_id=policy_id, update_snapshots=update_snapshots
            ),
        )
        return _decode(response, _backup_schedule)

    # search nodes ------------------------------------------------------------

    def _search_deployment_path(self, project_id: str, cluster: str) -> str:
        return f"{self._cluster_path(project_id, cluster)}/search/deployment"

    def get_search_nodes(self, project_id: str, cluster: str) -> ObservedSearchNodes:
        response = self._send("GET", self._search_deployment_path(project_id, cluster))
        return _decode(response, _search_nodes)

    def create_search_nodes(
        self,
        project_id: str,
        cluster: str,
        specs: Sequence[SearchNodeSpec],
    ) -> ObservedSearchNodes:
        response = self._send(
            "POST",
            self._search_deployment_path(project_id, cluster),
            body=search_nodes_request(specs),
        )
        return _decode(response, _search_nodes)

    def update_search_nodes(
        self,
        project_id: str,
        cluster: str,
        specs: Sequence[SearchNodeSpec],
    ) -> ObservedSearchNodes:
        response = self._send(
            "PATCH",
            self._search_deployment_path(project_id, cluster),
            body=search_nodes_request(specs),
        )
        return _decode(response, _search_nodes)

    def delete_search_nodes(self, project_id: str, cluster: str) -> None:
        self._send("DELETE", self._search_deployment_path(project_id, cluster))

    # search indexes ----------------------------------------------------------

    def _search_indexes_path(self, project_id: str, cluster: str) -> str:
        return f"{self._cluster_path(project_id, cluster)}/search/indexes"

    def get_search_index(self, project_id: str, cluster: str, index_id: str) -> SearchIndex:
        response = self._send("GET", f"{self._search_indexes_path(project_id, cluster)}/{index_id}")
        return _decode(response, _search_index)

    def create_search_index(
        self,
        project_id: str,
        cluster: str,
        index: SearchIndex,
    ) -> SearchIndex:
        response = self._send(
            "POST",
            self._search_indexes_path(project_id, cluster),
            body=search_index_to_payload(index),
        )
        return _decode(response, _search_index)

    def update_search_index(
        self,
        project_id: str,
        cluster: str,
        index: SearchIndex,
    ) -> SearchIndex:
        if index.id is None:
            raise ValueError(f"search index {index.name!r} has no id to update")
        response = self._send(
            "PATCH",
            f"{self._search_indexes_path(project_id, cluster)}/{index.id}",
            body=search_index_update_payload(index),
        )
        return _decode(response, _search_index)

    def delete_search_index(self, project_id: str, cluster: str, index_id: str) -> None:
        self._send("DELETE", f"{self._search_indexes_path(project_id, cluster)}/{index_id}")

    # global writes -----------------------------------------------------------

    def _global_writes(self, project_id: str, cluster: str) -> GlobalWritesPayload:
        response = self._send("GET", f"{self._cluster_path(project_id, cluster)}/globalWrites")
        return _decode(response, GlobalWritesPayload.model_validate)

    def get_zone_names(self, project_id: str, cluster: str) -> dict[str, str]:
        response = self._send("GET", self._cluster_path(project_id, cluster))
        return _decode(response, _zone_names)

    def get_custom_zones(self, project_id: str, cluster: str) -> dict[str, str]:
        return dict(self._global_writes(project_id, cluster).custom_zone_mapping)

    def create_custom_zones(
        self,
        project_id: str,
        cluster: str,
        mappings: Sequence[ZoneMapping],
    ) -> dict[str, str]:
        response = self._send(
            "POST",
            f"{self._cluster_path(project_id, cluster)}/globalWrites/customZoneMapping",
            body=CustomZoneMappingRequest(custom_zone_mappings=zone_mapping_payloads(mappings)),
        )
        return _decode(response, _custom_zones)

    def delete_custom_zones(self, project_id: str, cluster: str) -> None:
        self._send(
            "DELETE", f"{self._cluster_path(project_id, cluster)}/globalWrites/customZoneMapping"
        )

    def get_managed_namespaces(self, project_id: str, cluster: str) -> list[ManagedNamespace]:
        payload = self._global_writes(project_id, cluster)
        return [managed_namespace_from_payload(item) for item in payload.managed_namespaces]

    def create_managed_namespace(
        self,
        project_id: str,
        cluster: str,
        namespace: ManagedNamespace,
    ) -> None:
        self._send(
            "POST",
            f"{self._cluster_path(project_id, cluster)}/globalWrites/managedNamespaces",
            body=managed_namespace_to_payload(namespace),
        )

    def delete_managed_namespace(
        self,
        project_id: str,
        cluster: str,
        namespace: ManagedNamespace,
    ) -> None:
        self._send(
            "DELETE",
            f"{self._cluster_path(project_id, cluster)}/globalWrites/managedNamespaces",
            params={"db": namespace.db, "collection": namespace.collection},
        )

    # serverless private endpoints --------------------------------------------

    def _endpoints_path(self, project_id: str, instance: str) -> str:
        return f"{self._group(project_id)}/privateEndpoint/serverless/instance/{instance}/endpoint"

    def list_private_endpoints(
        self,
        project_id: str,
        instance: str,
    ) -> list[ObservedPrivateEndpoint]:
        response = self._send("GET", self._endpoints_path(project_id, instance))
        return _decode(response, _private_endpoints)

    def create_private_endpoint(
        self,
        project_id: str,
        instance: str,
        comment: str,
    ) -> ObservedPrivateEndpoint:
        response = self._send(
            "POST",
            self._endpoints_path(project_id, instance),
            body=PrivateEndpointCreateRequest(comment=comment),
        )
        return _decode(response, _private_endpoint)

    def update_private_endpoint(
        self,
        project_id: str,
        instance: str,
        endpoint_id: str,
        endpoint: ServerlessPrivateEndpoint,
        provider_name: str,
    ) -> ObservedPrivateEndpoint:
        response = self._send(
            "PATCH",
            f"{self._endpoints_path(project_id, instance)}/{endpoint_id}",
            body=private_endpoint_update_request(endpoint, provider_name),
        )
        return _decode(response, _private_endpoint)

    def delete_private_endpoint(self, project_id: str, instance: str, endpoint_id: str) -> None:
        self._send("DELETE", f"{self._endpoints_path(project_id, instance)}/{endpoint_id}")


if TYPE_CHECKING:
    _provider_check: ProviderServices = ProviderClient()
