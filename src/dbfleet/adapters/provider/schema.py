"""Pydantic models describing the provider API payloads."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class ProviderBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True, alias_generator=to_camel)

    def to_request(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ErrorPayload(ProviderBaseModel):
    detail: str | None = None
    error: int | None = None
    error_code: str | None = None
    reason: str | None = None


class TagPayload(ProviderBaseModel):
    key: str
    value: str


class HardwareSpecPayload(ProviderBaseModel):
    instance_size: str | None = None
    node_count: int | None = None


class RegionConfigPayload(ProviderBaseModel):
    provider_name: str
    region_name: str
    priority: int = 7
    electable_specs: HardwareSpecPayload | None = None
    backing_provider_name: str | None = None


class ReplicationSpecPayload(ProviderBaseModel):
    id: str | None = None
    zone_id: str | None = None
    zone_name: str = "Zone 1"
    num_shards: int = 1
    region_configs: list[RegionConfigPayload] = Field(default_factory=list)


class PrivateEndpointConnectionPayload(ProviderBaseModel):
    connection_string: str | None = None
    srv_connection_string: str | None = None
    srv_shard_optimized_connection_string: str | None = None


class ConnectionStringsPayload(ProviderBaseModel):
    standard: str | None = None
    standard_srv: str | None = None
    private: str | None = None
    private_srv: str | None = None
    private_endpoint: list[PrivateEndpointConnectionPayload] = Field(default_factory=list)


class ClusterPayload(ProviderBaseModel):
    id: str | None = None
    name: str
    cluster_type: str = "REPLICASET"
    mongo_db_major_version: str | None = Field(default=None, alias="mongoDBMajorVersion")
    mongo_db_version: str | None = Field(default=None, alias="mongoDBVersion")
    replication_specs: list[ReplicationSpecPayload] = Field(default_factory=list)
    backup_enabled: bool = False
    termination_protection_enabled: bool = False
    paused: bool = False
    tags: list[TagPayload] = Field(default_factory=list)
    state_name: str | None = None
    connection_strings: ConnectionStringsPayload | None = None


class ProviderSettingsPayload(ProviderBaseModel):
    backing_provider_name: str
    region_name: str
    provider_name: str | None = None


class FlexPayload(ProviderBaseModel):
    id: str | None = None
    name: str
    provider_settings: ProviderSettingsPayload
    termination_protection_enabled: bool = False
    tags: list[TagPayload] = Field(default_factory=list)
    state_name: str | None = None
    mongo_db_version: str | None = Field(default=None, alias="mongoDBVersion")
    connection_strings: ConnectionStringsPayload | None = None


class FlexUpdatePayload(ProviderBaseModel):
    termination_protection_enabled: bool
    tags: list[TagPayload]


class ServerlessBackupOptionsPayload(ProviderBaseModel):
    serverless_continuous_backup_enabled: bool = False


class ServerlessPayload(ProviderBaseModel):
    id: str | None = None
    name: str
    provider_settings: ProviderSettingsPayload
    serverless_backup_options: ServerlessBackupOptionsPayload | None = None
    termination_protection_enabled: bool = False
    tags: list[TagPayload] = Field(default_factory=list)
    state_name: str | None = None
    mongo_db_version: str | None = Field(default=None, alias="mongoDBVersion")
    connection_strings: ConnectionStringsPayload | None = None


class ServerlessUpdatePayload(ProviderBaseModel):
    serverless_backup_options: ServerlessBackupOptionsPayload
    termination_protection_enabled: bool
    tags: list[TagPayload]


class ProcessArgsPayload(ProviderBaseModel):
    default_read_concern: str | None = None
    default_write_concern: str | None = None
    javascript_enabled: bool | None = None
    minimum_enabled_tls_protocol: str | None = None
    no_table_scan: bool | None = None
    oplog_size_mb: int | None = Field(default=None, alias="oplogSizeMB")
    oplog_min_retention_hours: float | None = None
    sample_size_bi_connector: int | None = Field(default=None, alias="sampleSizeBIConnector")
    sample_refresh_interval_bi_connector: int | None = Field(
        default=None, alias="sampleRefreshIntervalBIConnector"
    )


class BackupPolicyItemPayload(ProviderBaseModel):
    id: str | None = None
    frequency_type: str
    frequency_interval: int
    retention_unit: str
    retention_value: int


class BackupPolicyPayload(ProviderBaseModel):
    id: str | None = None
    policy_items: list[BackupPolicyItemPayload] = Field(default_factory=list)


class CopySettingPayload(ProviderBaseModel):
    cloud_provider: str
    region_name: str
    should_copy_oplogs: bool = False
    frequencies: list[str] = Field(default_factory=list)


class BackupSchedulePayload(ProviderBaseModel):
    cluster_id: str | None = None
    auto_export_enabled: bool = False
    reference_hour_of_day: int | None = None
    reference_minute_of_hour: int | None = None
    restore_window_days: int | None = None
    use_org_and_group_names_in_export_prefix: bool = False
    copy_settings: list[CopySettingPayload] = Field(default_factory=list)
    policies: list[BackupPolicyPayload] = Field(default_factory=list)
    update_snapshots: bool | None = None


class SearchNodeSpecPayload(ProviderBaseModel):
    instance_size: str
    node_count: int


class SearchDeploymentPayload(ProviderBaseModel):
    id: str | None = None
    state_name: str = "IDLE"
    specs: list[SearchNodeSpecPayload] = Field(default_factory=list)


class SearchDeploymentRequest(ProviderBaseModel):
    specs: list[SearchNodeSpecPayload]


class SearchIndexDefinitionPayload(ProviderBaseModel):
    analyzer: str | None = None
    search_analyzer: str | None = None
    analyzers: list[dict[str, Any]] | None = None
    mappings: dict[str, Any] | None = None
    synonyms: list[dict[str, Any]] | None = None
    stored_source: Any | None = None
    fields: list[dict[str, Any]] | None = None


class SearchIndexPayload(ProviderBaseModel):
    """Search index as sent and returned; responses carry ``latestDefinition``."""

    index_id: str | None = Field(default=None, alias="indexID")
    name: str
    database: str
    collection_name: str
    type: str | None = None
    status: str | None = None
    definition: SearchIndexDefinitionPayload | None = None

    @model_validator(mode="before")
    @classmethod
    def _prefer_latest_definition(cls, value: object) -> object:
        if isinstance(value, dict) and "latestDefinition" in value:
            data: dict[str, Any] = dict(value)  # pyright: ignore[reportUnknownArgumentType]
            data["definition"] = data.pop("latestDefinition")
            return data
        return value


class SearchIndexUpdatePayload(ProviderBaseModel):
    definition: SearchIndexDefinitionPayload


class ManagedNamespacePayload(ProviderBaseModel):
    db: str
    collection: str
    custom_shard_key: str | None = None
    is_custom_shard_key_hashed: bool = False
    is_shard_key_unique: bool = False
    num_initial_chunks: int | None = None
    presplit_hashed_zones: bool = False


class ZoneMappingPayload(ProviderBaseModel):
    location: str
    zone: str


class CustomZoneMappingRequest(ProviderBaseModel):
    custom_zone_mappings: list[ZoneMappingPayload]


class GlobalWritesPayload(ProviderBaseModel):
    custom_zone_mapping: dict[str, str] = Field(default_factory=dict)
    managed_namespaces: list[ManagedNamespacePayload] = Field(default_factory=list)


class PrivateEndpointPayload(ProviderBaseModel):
    id: str = Field(alias="_id")
    comment: str = ""
    status: str
    provider_name: str | None = None
    endpoint_service_name: str | None = None
    cloud_provider_endpoint_id: str | None = None
    private_endpoint_ip_address: str | None = None
    error_message: str | None = None


class PrivateEndpointCreateRequest(ProviderBaseModel):
    comment: str


class PrivateEndpointUpdateRequest(ProviderBaseModel):
    provider_name: str
    comment: str
    cloud_provider_endpoint_id: str | None = None
    private_endpoint_ip_address: str | None = None
