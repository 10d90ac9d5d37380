"""Translate between provider payloads and domain values."""

from __future__ import annotations

from typing import TYPE_CHECKING

from dbfleet.domain.model import (
    BackupPolicyItem,
    BackupScheduleSpec,
    CloudProvider,
    ClusterSpec,
    ClusterType,
    ConnectionStrings,
    CopySetting,
    DeploymentKind,
    FlexSpec,
    ManagedNamespace,
    ObservedBackupSchedule,
    ObservedDeployment,
    ObservedPrivateEndpoint,
    ObservedSearchNodes,
    PrivateEndpointStatus,
    ProcessArgs,
    RegionConfig,
    ReplicationSpec,
    SearchIndex,
    SearchNodeSpec,
    ServerlessSpec,
    Tag,
)

from .schema import (
    BackupPolicyItemPayload,
    BackupPolicyPayload,
    BackupSchedulePayload,
    ClusterPayload,
    ConnectionStringsPayload,
    CopySettingPayload,
    FlexPayload,
    FlexUpdatePayload,
    HardwareSpecPayload,
    ManagedNamespacePayload,
    PrivateEndpointPayload,
    PrivateEndpointUpdateRequest,
    ProcessArgsPayload,
    ProviderSettingsPayload,
    RegionConfigPayload,
    ReplicationSpecPayload,
    SearchDeploymentPayload,
    SearchDeploymentRequest,
    SearchIndexDefinitionPayload,
    SearchIndexPayload,
    SearchIndexUpdatePayload,
    SearchNodeSpecPayload,
    ServerlessBackupOptionsPayload,
    ServerlessPayload,
    ServerlessUpdatePayload,
    TagPayload,
    ZoneMappingPayload,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from dbfleet.domain.model import ServerlessPrivateEndpoint, ZoneMapping


# shared ----------------------------------------------------------------------


def _tags(payloads: Sequence[TagPayload]) -> tuple[Tag, ...]:
    return tuple(Tag(key=tag.key, value=tag.value) for tag in payloads)


def _tag_payloads(tags: Sequence[Tag]) -> list[TagPayload]:
    return [TagPayload(key=tag.key, value=tag.value) for tag in tags]


def connection_strings_from_payload(
    payload: ConnectionStringsPayload | None,
) -> ConnectionStrings | None:
    if payload is None:
        return None
    private_shard = next(
        (
            endpoint.srv_shard_optimized_connection_string
            for endpoint in payload.private_endpoint
            if endpoint.srv_shard_optimized_connection_string
        ),
        None,
    )
    return ConnectionStrings(
        standard=payload.standard,
        standard_srv=payload.standard_srv,
        private=payload.private,
        private_srv=payload.private_srv,
        private_shard=private_shard,
    )


# clusters --------------------------------------------------------------------


def _region_config(payload: RegionConfigPayload) -> RegionConfig:
    specs = payload.electable_specs or HardwareSpecPayload()
    return RegionConfig(
        provider_name=CloudProvider(payload.provider_name),
        region_name=payload.region_name,
        instance_size=specs.instance_size,
        node_count=specs.node_count,
        priority=payload.priority,
        backing_provider_name=(
            CloudProvider(payload.backing_provider_name) if payload.backing_provider_name else None
        ),
    )


def cluster_from_payload(payload: ClusterPayload) -> ObservedDeployment:
    spec = ClusterSpec(
        name=payload.name,
        cluster_type=ClusterType(payload.cluster_type),
        mongodb_major_version=payload.mongo_db_major_version,
        replication_specs=tuple(
            ReplicationSpec(
                zone_name=replication.zone_name,
                num_shards=replication.num_shards,
                region_configs=tuple(
                    _region_config(region) for region in replication.region_configs
                ),
            )
            for replication in payload.replication_specs
        ),
        backup_enabled=payload.backup_enabled,
        termination_protection_enabled=payload.termination_protection_enabled,
        paused=payload.paused,
        tags=_tags(payload.tags),
    )
    return ObservedDeployment(
        kind=DeploymentKind.CLUSTER,
        id=payload.id,
        name=payload.name,
        state_name=payload.state_name or "",
        spec=spec,
        mongodb_version=payload.mongo_db_version,
        connection_strings=connection_strings_from_payload(payload.connection_strings),
        replication_spec_zones=zone_names_from_payload(payload),
    )


def zone_names_from_payload(payload: ClusterPayload) -> dict[str, str]:
    """Map zone ids to zone names as listed in the cluster's replication specs."""

    return {
        replication.zone_id: replication.zone_name
        for replication in payload.replication_specs
        if replication.zone_id
    }


def cluster_to_payload(spec: ClusterSpec) -> ClusterPayload:
    return ClusterPayload(
        name=spec.name,
        cluster_type=spec.cluster_type.value,
        mongo_db_major_version=spec.mongodb_major_version,
        replication_specs=[
            ReplicationSpecPayload(
                zone_name=replication.zone_name,
                num_shards=replication.num_shards,
                region_configs=[
                    RegionConfigPayload(
                        provider_name=region.provider_name.value,
                        region_name=region.region_name,
                        priority=region.priority,
                        electable_specs=HardwareSpecPayload(
                            instance_size=region.instance_size,
                            node_count=region.node_count,
                        ),
                        backing_provider_name=(
                            region.backing_provider_name.value
                            if region.backing_provider_name
                            else None
                        ),
                    )
                    for region in replication.region_configs
                ],
            )
            for replication in spec.replication_specs
        ],
        backup_enabled=spec.backup_enabled,
        termination_protection_enabled=spec.termination_protection_enabled,
        paused=spec.paused,
        tags=_tag_payloads(spec.tags),
    )


# flex and serverless ---------------------------------------------------------


def flex_from_payload(payload: FlexPayload) -> ObservedDeployment:
    settings = payload.provider_settings
    return ObservedDeployment(
        kind=DeploymentKind.FLEX,
        id=payload.id,
        name=payload.name,
        state_name=payload.state_name or "",
        spec=FlexSpec(
            name=payload.name,
            backing_provider_name=CloudProvider(settings.backing_provider_name),
            region_name=settings.region_name,
            termination_protection_enabled=payload.termination_protection_enabled,
            tags=_tags(payload.tags),
        ),
        mongodb_version=payload.mongo_db_version,
        connection_strings=connection_strings_from_payload(payload.connection_strings),
    )


def flex_to_payload(spec: FlexSpec) -> FlexPayload:
    return FlexPayload(
        name=spec.name,
        provider_settings=ProviderSettingsPayload(
            backing_provider_name=spec.backing_provider_name.value,
            region_name=spec.region_name,
        ),
        termination_protection_enabled=spec.termination_protection_enabled,
        tags=_tag_payloads(spec.tags),
    )


def flex_update_payload(spec: FlexSpec) -> FlexUpdatePayload:
    return FlexUpdatePayload(
        termination_protection_enabled=spec.termination_protection_enabled,
        tags=_tag_payloads(spec.tags),
    )


def serverless_from_payload(payload: ServerlessPayload) -> ObservedDeployment:
    settings = payload.provider_settings
    backup = payload.serverless_backup_options or ServerlessBackupOptionsPayload()
    return ObservedDeployment(
        kind=DeploymentKind.SERVERLESS,
        id=payload.id,
        name=payload.name,
        state_name=payload.state_name or "",
        spec=ServerlessSpec(
            name=payload.name,
            backing_provider_name=CloudProvider(settings.backing_provider_name),
            region_name=settings.region_name,
            continuous_backup_enabled=backup.serverless_continuous_backup_enabled,
            termination_protection_enabled=payload.termination_protection_enabled,
            tags=_tags(payload.tags),
        ),
        mongodb_version=payload.mongo_db_version,
        connection_strings=connection_strings_from_payload(payload.connection_strings),
    )


def serverless_to_payload(spec: ServerlessSpec) -> ServerlessPayload:
    return ServerlessPayload(
        name=spec.name,
        provider_settings=ProviderSettingsPayload(
            backing_provider_name=spec.backing_provider_name.value,
            region_name=spec.region_name,
            provider_name=CloudProvider.SERVERLESS.value,
        ),
        serverless_backup_options=ServerlessBackupOptionsPayload(
            serverless_continuous_backup_enabled=spec.continuous_backup_enabled
        ),
        termination_protection_enabled=spec.termination_protection_enabled,
        tags=_tag_payloads(spec.tags),
    )


def serverless_update_payload(spec: ServerlessSpec) -> ServerlessUpdatePayload:
    return ServerlessUpdatePayload(
        serverless_backup_options=ServerlessBackupOptionsPayload(
            serverless_continuous_backup_enabled=spec.continuous_backup_enabled
        ),
        termination_protection_enabled=spec.termination_protection_enabled,
        tags=_tag_payloads(spec.tags),
    )


# process args ----------------------------------------------------------------


def process_args_from_payload(payload: ProcessArgsPayload) -> ProcessArgs:
    return ProcessArgs(**payload.model_dump())


def process_args_to_payload(args: ProcessArgs) -> ProcessArgsPayload:
    return ProcessArgsPayload(
        default_read_concern=args.default_read_concern,
        default_write_concern=args.default_write_concern,
        javascript_enabled=args.javascript_enabled,
        minimum_enabled_tls_protocol=args.minimum_enabled_tls_protocol,
        no_table_scan=args.no_table_scan,
        oplog_size_mb=args.oplog_size_mb,
        oplog_min_retention_hours=args.oplog_min_retention_hours,
        sample_size_bi_connector=args.sample_size_bi_connector,
        sample_refresh_interval_bi_connector=args.sample_refresh_interval_bi_connector,
    )


# backup schedules ------------------------------------------------------------


def backup_schedule_from_payload(payload: BackupSchedulePayload) -> ObservedBackupSchedule:
    items = [item for policy in payload.policies for item in policy.policy_items]
    return ObservedBackupSchedule(
        cluster_id=payload.cluster_id,
        spec=BackupScheduleSpec(
            auto_export_enabled=payload.auto_export_enabled,
            reference_hour_of_day=payload.reference_hour_of_day,
            reference_minute_of_hour=payload.reference_minute_of_hour,
            restore_window_days=payload.restore_window_days,
            use_org_and_group_names_in_export_prefix=(
                payload.use_org_and_group_names_in_export_prefix
            ),
            copy_settings=tuple(
                CopySetting(
                    cloud_provider=CloudProvider(setting.cloud_provider),
                    region_name=setting.region_name,
                    should_copy_oplogs=setting.should_copy_oplogs,
                    frequencies=tuple(setting.frequencies),
                )
                for setting in payload.copy_settings
            ),
            policy_items=tuple(
                BackupPolicyItem(
                    frequency_type=item.frequency_type,
                    frequency_interval=item.frequency_interval,
                    retention_unit=item.retention_unit,
                    retention_value=item.retention_value,
                )
                for item in items
            ),
        ),
    )


def backup_schedule_to_payload(
    schedule: BackupScheduleSpec,
    *,
    policy_id: str | None,
    update_snapshots: bool,
) -> BackupSchedulePayload:
    return BackupSchedulePayload(
        auto_export_enabled=schedule.auto_export_enabled,
        reference_hour_of_day=schedule.reference_hour_of_day,
        reference_minute_of_hour=schedule.reference_minute_of_hour,
        restore_window_days=schedule.restore_window_days,
        use_org_and_group_names_in_export_prefix=schedule.use_org_and_group_names_in_export_prefix,
        copy_settings=[
            CopySettingPayload(
                cloud_provider=setting.cloud_provider.value,
                region_name=setting.region_name,
                should_copy_oplogs=setting.should_copy_oplogs,
                frequencies=list(setting.frequencies),
            )
            for setting in schedule.copy_settings
        ],
        policies=[
            BackupPolicyPayload(
                id=policy_id,
                policy_items=[
                    BackupPolicyItemPayload(
                        frequency_type=item.frequency_type,
                        frequency_interval=item.frequency_interval,
                        retention_unit=item.retention_unit,
                        retention_value=item.retention_value,
                    )
                    for item in schedule.policy_items
                ],
            )
        ],
        update_snapshots=update_snapshots,
    )


# search ----------------------------------------------------------------------


def search_nodes_from_payload(payload: SearchDeploymentPayload) -> ObservedSearchNodes:
    return ObservedSearchNodes(
        id=payload.id,
        state_name=payload.state_name,
        specs=tuple(
            SearchNodeSpec(instance_size=spec.instance_size, node_count=spec.node_count)
            for spec in payload.specs
        ),
    )


def search_nodes_request(specs: Sequence[SearchNodeSpec]) -> SearchDeploymentRequest:
    return SearchDeploymentRequest(
        specs=[
            SearchNodeSpecPayload(instance_size=spec.instance_size, node_count=spec.node_count)
            for spec in specs
        ]
    )


def search_index_from_payload(payload: SearchIndexPayload) -> SearchIndex:
    definition = payload.definition or SearchIndexDefinitionPayload()
    return SearchIndex(
        name=payload.name,
        database=payload.database,
        collection=payload.collection_name,
        type=payload.type or "search",
        analyzer=definition.analyzer,
        search_analyzer=definition.search_analyzer,
        analyzers=tuple(definition.analyzers or ()),
        mappings=definition.mappings,
        synonyms=tuple(definition.synonyms or ()),
        stored_source=definition.stored_source,
        fields=tuple(definition.fields or ()),
        id=payload.index_id,
        status=payload.status,
    )


def _definition(index: SearchIndex) -> SearchIndexDefinitionPayload:
    return SearchIndexDefinitionPayload(
        analyzer=index.analyzer,
        search_analyzer=index.search_analyzer,
        analyzers=list(index.analyzers) or None,
        mappings=index.mappings,
        synonyms=list(index.synonyms) or None,
        stored_source=index.stored_source,
        fields=list(index.fields) or None,
    )


def search_index_to_payload(index: SearchIndex) -> SearchIndexPayload:
    return SearchIndexPayload(
        name=index.name,
        database=index.database,
        collection_name=index.collection,
        type=index.type,
        definition=_definition(index),
    )


def search_index_update_payload(index: SearchIndex) -> SearchIndexUpdatePayload:
    return SearchIndexUpdatePayload(definition=_definition(index))


# global writes ---------------------------------------------------------------


def managed_namespace_from_payload(payload: ManagedNamespacePayload) -> ManagedNamespace:
    return ManagedNamespace(
        db=payload.db,
        collection=payload.collection,
        custom_shard_key=payload.custom_shard_key,
        is_custom_shard_key_hashed=payload.is_custom_shard_key_hashed,
        is_shard_key_unique=payload.is_shard_key_unique,
        number_of_initial_chunks=payload.num_initial_chunks,
        presplit_hashed_zones=payload.presplit_hashed_zones,
    )


def managed_namespace_to_payload(namespace: ManagedNamespace) -> ManagedNamespacePayload:
    return ManagedNamespacePayload(
        db=namespace.db,
        collection=namespace.collection,
        custom_shard_key=namespace.custom_shard_key,
        is_custom_shard_key_hashed=namespace.is_custom_shard_key_hashed,
        is_shard_key_unique=namespace.is_shard_key_unique,
        num_initial_chunks=namespace.number_of_initial_chunks,
        presplit_hashed_zones=namespace.presplit_hashed_zones,
    )


def zone_mapping_payloads(mappings: Sequence[ZoneMapping]) -> list[ZoneMappingPayload]:
    return [
        ZoneMappingPayload(location=mapping.location, zone=mapping.zone) for mapping in mappings
    ]


# serverless private endpoints ------------------------------------------------


def private_endpoint_from_payload(payload: PrivateEndpointPayload) -> ObservedPrivateEndpoint:
    return ObservedPrivateEndpoint(
        id=payload.id,
        comment=payload.comment,
        status=PrivateEndpointStatus(payload.status),
        provider_name=CloudProvider(payload.provider_name) if payload.provider_name else None,
        endpoint_service_name=payload.endpoint_service_name,
        cloud_provider_endpoint_id=payload.cloud_provider_endpoint_id,
        private_endpoint_ip_address=payload.private_endpoint_ip_address,
        error_message=payload.error_message,
    )


def private_endpoint_update_request(
    endpoint: ServerlessPrivateEndpoint,
    provider_name: str,
) -> PrivateEndpointUpdateRequest:
    return PrivateEndpointUpdateRequest(
        provider_name=provider_name,
        comment=endpoint.name,
        cloud_provider_endpoint_id=endpoint.cloud_provider_endpoint_id,
        private_endpoint_ip_address=endpoint.private_endpoint_ip_address,
    )
