"""Ports for the remote managed-database provider API."""

from __future__ import annotations

from typing import TYPE_CHECKING, Final, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence

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

TRANSIENT_STATUSES: Final[frozenset[int]] = frozenset({429, 500, 502, 503, 504})


class ProviderAPIError(RuntimeError):
    """Raised when the provider API rejects a call or cannot be reached.

    ``status_code`` is ``None`` when no response was received at all.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        error_code: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code

    @property
    def transient(self) -> bool:
        return self.status_code is None or self.status_code in TRANSIENT_STATUSES


@runtime_checkable
class DeploymentService(Protocol):
    """Per-variant CRUD for deployments; ``get_*`` raise for missing entities."""

    def get_cluster(self, project_id: str, name: str) -> ObservedDeployment: ...

    def create_cluster(self, project_id: str, spec: ClusterSpec) -> ObservedDeployment: ...

    def update_cluster(self, project_id: str, spec: ClusterSpec) -> ObservedDeployment: ...

    def delete_cluster(self, project_id: str, name: str) -> None: ...

    def get_flex(self, project_id: str, name: str) -> ObservedDeployment: ...

    def create_flex(self, project_id: str, spec: FlexSpec) -> ObservedDeployment: ...

    def update_flex(self, project_id: str, spec: FlexSpec) -> ObservedDeployment: ...

    def delete_flex(self, project_id: str, name: str) -> None: ...

    def get_serverless(self, project_id: str, name: str) -> ObservedDeployment: ...

    def create_serverless(self, project_id: str, spec: ServerlessSpec) -> ObservedDeployment: ...

    def update_serverless(self, project_id: str, spec: ServerlessSpec) -> ObservedDeployment: ...

    def delete_serverless(self, project_id: str, name: str) -> None: ...

    def get_process_args(self, project_id: str, name: str) -> ProcessArgs: ...

    def update_process_args(self, project_id: str, name: str, args: ProcessArgs) -> None: ...


@runtime_checkable
class BackupScheduleService(Protocol):
    def get_backup_schedule(self, project_id: str, cluster: str) -> ObservedBackupSchedule: ...

    def update_backup_schedule(
        self,
        project_id: str,
        cluster: str,
        schedule: BackupScheduleSpec,
        *,
        update_snapshots: bool = False,
    ) -> ObservedBackupSchedule: ...


@runtime_checkable
class SearchNodesService(Protocol):
    def get_search_nodes(self, project_id: str, cluster: str) -> ObservedSearchNodes: ...

    def create_search_nodes(
        self,
        project_id: str,
        cluster: str,
        specs: Sequence[SearchNodeSpec],
    ) -> ObservedSearchNodes: ...

    def update_search_nodes(
        self,
        project_id: str,
        cluster: str,
        specs: Sequence[SearchNodeSpec],
    ) -> ObservedSearchNodes: ...

    def delete_search_nodes(self, project_id: str, cluster: str) -> None: ...


@runtime_checkable
class SearchIndexService(Protocol):
    def get_search_index(self, project_id: str, cluster: str, index_id: str) -> SearchIndex: ...

    def create_search_index(
        self,
        project_id: str,
        cluster: str,
        index: SearchIndex,
    ) -> SearchIndex: ...

    def update_search_index(
        self,
        project_id: str,
        cluster: str,
        index: SearchIndex,
    ) -> SearchIndex: ...

    def delete_search_index(self, project_id: str, cluster: str, index_id: str) -> None: ...


@runtime_checkable
class GlobalWritesService(Protocol):
    """Custom zone mapping and managed namespaces of geo-sharded clusters."""

    def get_zone_names(self, project_id: str, cluster: str) -> dict[str, str]: ...

    def get_custom_zones(self, project_id: str, cluster: str) -> dict[str, str]: ...

    def create_custom_zones(
        self,
        project_id: str,
        cluster: str,
        mappings: Sequence[ZoneMapping],
    ) -> dict[str, str]: ...

    def delete_custom_zones(self, project_id: str, cluster: str) -> None: ...

    def get_managed_namespaces(self, project_id: str, cluster: str) -> list[ManagedNamespace]: ...

    def create_managed_namespace(
        self,
        project_id: str,
        cluster: str,
        namespace: ManagedNamespace,
    ) -> None: ...

    def delete_managed_namespace(
        self,
        project_id: str,
        cluster: str,
        namespace: ManagedNamespace,
    ) -> None: ...


@runtime_checkable
class ServerlessPrivateEndpointService(Protocol):
    def list_private_endpoints(
        self,
        project_id: str,
        instance: str,
    ) -> list[ObservedPrivateEndpoint]: ...

    def create_private_endpoint(
        self,
        project_id: str,
        instance: str,
        comment: str,
    ) -> ObservedPrivateEndpoint: ...

    def update_private_endpoint(
        self,
        project_id: str,
        instance: str,
        endpoint_id: str,
        endpoint: ServerlessPrivateEndpoint,
        provider_name: str,
    ) -> ObservedPrivateEndpoint: ...

    def delete_private_endpoint(self, project_id: str, instance: str, endpoint_id: str) -> None: ...


@runtime_checkable
class ProviderServices(
    DeploymentService,
    BackupScheduleService,
    SearchNodesService,
    SearchIndexService,
    GlobalWritesService,
    ServerlessPrivateEndpointService,
    Protocol,
):
    """Everything a reconciliation pass may call on the provider."""
