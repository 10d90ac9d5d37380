"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class DeploymentKind(StrEnum):
    """Tag of the deployment variant; dedicated and shared-tier clusters share ``CLUSTER``."""

    CLUSTER = "cluster"
    FLEX = "flex"
    SERVERLESS = "serverless"


class LifecycleState(StrEnum):
    IDLE = "IDLE"
    CREATING = "CREATING"
    UPDATING = "UPDATING"
    DELETING = "DELETING"
    DELETED = "DELETED"
    REPAIRING = "REPAIRING"


class ClusterType(StrEnum):
    REPLICASET = "REPLICASET"
    SHARDED = "SHARDED"
    GEOSHARDED = "GEOSHARDED"


class CloudProvider(StrEnum):
    AWS = "AWS"
    AZURE = "AZURE"
    GCP = "GCP"
    TENANT = "TENANT"
    SERVERLESS = "SERVERLESS"
    FLEX = "FLEX"


class ConditionType(StrEnum):
    READY = "Ready"
    DEPLOYMENT_READY = "DeploymentReady"
    BACKUP_READY = "BackupReady"
    SEARCH_NODES_READY = "SearchNodesReady"
    SEARCH_INDEXES_READY = "SearchIndexesReady"
    ZONE_MAPPING_READY = "ZoneMappingReady"
    MANAGED_NAMESPACES_READY = "ManagedNamespacesReady"
    PRIVATE_ENDPOINT_READY = "PrivateEndpointReady"


class ConditionReason(StrEnum):
    """Closed set of reasons carried by conditions and in-progress results."""

    # general
    INTERNAL = "InternalError"
    FINALIZER_NOT_SET = "AtlasFinalizerNotSet"
    FINALIZER_NOT_REMOVED = "AtlasFinalizerNotRemoved"
    UNSUPPORTED_FEATURE = "AtlasUnsupportedFeature"

    # deployment
    DEPLOYMENT_NOT_CREATED = "DeploymentNotCreatedInAtlas"
    DEPLOYMENT_NOT_UPDATED = "DeploymentNotUpdatedInAtlas"
    DEPLOYMENT_NOT_DELETED = "DeploymentNotDeletedInAtlas"
    DEPLOYMENT_CREATING = "DeploymentCreating"
    DEPLOYMENT_UPDATING = "DeploymentUpdating"
    DEPLOYMENT_READY = "DeploymentReady"
    CONNECTION_SECRETS_NOT_CREATED = "DeploymentConnectionSecretsNotCreated"
    ADVANCED_OPTIONS_NOT_UPDATED = "DeploymentAdvancedOptionsNotUpdated"

    # backup
    BACKUP_NOT_ENABLED = "BackupNotEnabled"
    BACKUP_SCHEDULE_NOT_FOUND = "BackupScheduleNotFound"
    BACKUP_SCHEDULE_UPDATING = "BackupScheduleUpdating"
    BACKUP_SCHEDULE_NOT_UPDATED = "BackupScheduleNotUpdated"
    BACKUP_READY = "BackupScheduleReady"

    # serverless private endpoints
    SERVERLESS_PRIVATE_ENDPOINT_READY = "ServerlessPrivateEndpointReady"
    SERVERLESS_PRIVATE_ENDPOINT_FAILED = "ServerlessPrivateEndpointFailed"
    SERVERLESS_PRIVATE_ENDPOINT_IN_PROGRESS = "ServerlessPrivateEndpointInProgress"

    # global writes
    MANAGED_NAMESPACES_READY = "ManagedNamespacesReady"
    MANAGED_NAMESPACES_FAILED = "ManagedNamespacesFailed"
    CUSTOM_ZONE_MAPPING_READY = "CustomZoneMappingReady"
    CUSTOM_ZONE_MAPPING_FAILED = "CustomZoneMappingFailed"

    # search nodes
    SEARCH_NODES_READY = "SearchNodesReady"
    SEARCH_NODES_CREATING = "SearchNodesCreating"
    SEARCH_NODES_UPDATING = "SearchNodesUpdating"
    SEARCH_NODES_DELETING = "SearchNodesDeleting"
    SEARCH_NODES_NOT_UPSERTED = "SearchNodesNotUpsertedInAtlas"
    SEARCH_NODES_NOT_DELETED = "SearchNodesNotDeletedInAtlas"
    SEARCH_NODES_OPERATION_ABORTED = "SearchNodesOperationAborted"

    # search indexes
    SEARCH_INDEXES_READY = "SearchIndexesReady"
    SEARCH_INDEXES_NOT_READY = "SearchIndexesNotReady"
    SEARCH_INDEXES_NAMES_NOT_UNIQUE = "SearchIndexesNamesAreNotUnique"
    SEARCH_INDEXES_NOT_ALL_READY = "SearchIndexesNotAllReady"
    SEARCH_INDEX_STATUS_READY = "SearchIndexStatusReady"
    SEARCH_INDEX_STATUS_IN_PROGRESS = "SearchIndexStatusInProgress"
    SEARCH_INDEX_STATUS_ERROR = "SearchIndexStatusError"
    SEARCH_INDEX_CONFIG_NOT_FOUND = "SearchIndexConfigNotFound"


class SearchIndexType(StrEnum):
    SEARCH = "search"
    VECTOR = "vectorSearch"


class SearchIndexStatusKind(StrEnum):
    READY = "Ready"
    IN_PROGRESS = "InProgress"
    ERROR = "Error"


class PrivateEndpointStatus(StrEnum):
    RESERVATION_REQUESTED = "RESERVATION_REQUESTED"
    RESERVED = "RESERVED"
    INITIATING = "INITIATING"
    AVAILABLE = "AVAILABLE"
    FAILED = "FAILED"
    DELETING = "DELETING"


class ScopeType(StrEnum):
    DEPLOYMENT = "CLUSTER"
    DATA_LAKE = "DATA_LAKE"
