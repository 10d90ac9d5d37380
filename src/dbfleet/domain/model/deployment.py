"""Desired deployment specs and the deployment record."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar, Literal

from dbfleet.domain.model.conditions import StatusCondition  # noqa: TC001
from dbfleet.domain.model.enums import (
    CloudProvider,
    ClusterType,
    DeploymentKind,
    PrivateEndpointStatus,
    SearchIndexStatusKind,
)
from dbfleet.domain.model.record import Record, ResourceRef


@dataclass(frozen=True, slots=True, kw_only=True)
class Tag:
    key: str
    value: str


@dataclass(frozen=True, slots=True, kw_only=True)
class RegionConfig:
    provider_name: CloudProvider
    region_name: str
    instance_size: str | None = None
    node_count: int | None = None
    priority: int = 7
    backing_provider_name: CloudProvider | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class ReplicationSpec:
    zone_name: str = "Zone 1"
    num_shards: int = 1
    region_configs: tuple[RegionConfig, ...] = ()


@dataclass(frozen=True, slots=True, kw_only=True)
class SearchNodeSpec:
    instance_size: str
    node_count: int


@dataclass(frozen=True, slots=True, kw_only=True)
class SearchIndexSpec:
    """A search index as declared on a deployment.

    ``search`` indexes reference a config record supplying analyzers; ``vectorSearch``
    indexes carry their field definitions inline.
    """

    name: str
    database: str
    collection: str
    type: str
    mappings: dict[str, object] | None = None
    synonyms: tuple[dict[str, object], ...] = ()
    config_ref: ResourceRef | None = None
    fields: tuple[dict[str, object], ...] = ()


@dataclass(frozen=True, slots=True, kw_only=True)
class ZoneMapping:
    location: str
    zone: str


@dataclass(frozen=True, slots=True, kw_only=True)
class ManagedNamespace:
    db: str
    collection: str
    custom_shard_key: str | None = None
    is_custom_shard_key_hashed: bool = False
    is_shard_key_unique: bool = False
    number_of_initial_chunks: int | None = None
    presplit_hashed_zones: bool = False

    @property
    def key(self) -> tuple[str, str]:
        return (self.db, self.collection)


@dataclass(frozen=True, slots=True, kw_only=True)
class ProcessArgs:
    """Advanced process options; ``None`` fields are left to the provider."""

    default_read_concern: str | None = None
    default_write_concern: str | None = None
    javascript_enabled: bool | None = None
    minimum_enabled_tls_protocol: str | None = None
    no_table_scan: bool | None = None
    oplog_size_mb: int | None = None
    oplog_min_retention_hours: float | None = None
    sample_size_bi_connector: int | None = None
    sample_refresh_interval_bi_connector: int | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class ClusterSpec:
    kind: Literal[DeploymentKind.CLUSTER] = DeploymentKind.CLUSTER
    name: str
    cluster_type: ClusterType = ClusterType.REPLICASET
    mongodb_major_version: str | None = None
    replication_specs: tuple[ReplicationSpec, ...] = ()
    backup_enabled: bool = False
    termination_protection_enabled: bool = False
    paused: bool = False
    tags: tuple[Tag, ...] = ()

    backup_schedule_ref: ResourceRef | None = None
    process_args: ProcessArgs | None = None
    search_nodes: tuple[SearchNodeSpec, ...] = ()
    search_indexes: tuple[SearchIndexSpec, ...] = ()
    custom_zone_mapping: tuple[ZoneMapping, ...] = ()
    managed_namespaces: tuple[ManagedNamespace, ...] = ()

    @property
    def is_tenant(self) -> bool:
        return any(
            region.provider_name == CloudProvider.TENANT
            for spec in self.replication_specs
            for region in spec.region_configs
        )


@dataclass(frozen=True, slots=True, kw_only=True)
class FlexSpec:
    kind: Literal[DeploymentKind.FLEX] = DeploymentKind.FLEX
    name: str
    backing_provider_name: CloudProvider
    region_name: str
    termination_protection_enabled: bool = False
    tags: tuple[Tag, ...] = ()


@dataclass(frozen=True, slots=True, kw_only=True)
class ServerlessPrivateEndpoint:
    """Desired serverless private endpoint; ``name`` is stored as the provider comment."""

    name: str
    cloud_provider_endpoint_id: str | None = None
    private_endpoint_ip_address: str | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class ServerlessSpec:
    kind: Literal[DeploymentKind.SERVERLESS] = DeploymentKind.SERVERLESS
    name: str
    backing_provider_name: CloudProvider
    region_name: str
    continuous_backup_enabled: bool = False
    termination_protection_enabled: bool = False
    tags: tuple[Tag, ...] = ()
    private_endpoints: tuple[ServerlessPrivateEndpoint, ...] = ()


type DeploymentSpec = ClusterSpec | FlexSpec | ServerlessSpec


@dataclass(frozen=True, slots=True, kw_only=True)
class ConnectionStrings:
    standard: str | None = None
    standard_srv: str | None = None
    private: str | None = None
    private_srv: str | None = None
    private_shard: str | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class SearchIndexStatus:
    name: str
    id: str
    status: SearchIndexStatusKind
    message: str = ""


@dataclass(frozen=True, slots=True, kw_only=True)
class PrivateEndpointState:
    id: str
    name: str
    status: PrivateEndpointStatus
    endpoint_service_name: str | None = None
    error_message: str | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class DeploymentStatus:
    conditions: tuple[StatusCondition, ...] = ()
    observed_generation: int = 0
    state_name: str | None = None
    mongodb_version: str | None = None
    connection_strings: ConnectionStrings | None = None
    search_indexes: tuple[SearchIndexStatus, ...] = ()
    private_endpoints: tuple[PrivateEndpointState, ...] = ()


@dataclass(eq=False, kw_only=True)
class Deployment(Record):
    """Top-level desired-state record for one managed deployment.

    ``keep_on_delete`` leaves the provider deployment in place when the record is
    deleted; ``external_project`` marks deployments whose project is managed
    elsewhere, which are resynced periodically even when converged.
    """

    KIND: ClassVar[str] = "Deployment"

    project_id: str
    spec: DeploymentSpec
    status: DeploymentStatus = field(default_factory=DeploymentStatus)
    generation: int = 1
    keep_on_delete: bool = False
    external_project: bool = False

    @property
    def kind(self) -> DeploymentKind:
        return self.spec.kind

    @property
    def deployment_name(self) -> str:
        return self.spec.name
