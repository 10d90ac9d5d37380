"""Public domain model surface."""

from __future__ import annotations

from dbfleet.domain.model.access import (
    CLUSTER_NAME_LABEL,
    PROJECT_ID_LABEL,
    TYPE_LABEL,
    ConnectionSecret,
    DatabaseUser,
    UserScope,
    connection_secret_name,
    credential_labels,
)
from dbfleet.domain.model.backup import (
    BackupPolicy,
    BackupPolicyItem,
    BackupSchedule,
    BackupScheduleSpec,
    CopySetting,
)
from dbfleet.domain.model.conditions import ConditionSet, StatusCondition, utcnow
from dbfleet.domain.model.deployment import (
    ClusterSpec,
    ConnectionStrings,
    Deployment,
    DeploymentSpec,
    DeploymentStatus,
    FlexSpec,
    ManagedNamespace,
    PrivateEndpointState,
    ProcessArgs,
    RegionConfig,
    ReplicationSpec,
    SearchIndexSpec,
    SearchIndexStatus,
    SearchNodeSpec,
    ServerlessPrivateEndpoint,
    ServerlessSpec,
    Tag,
    ZoneMapping,
)
from dbfleet.domain.model.enums import (
    CloudProvider,
    ClusterType,
    ConditionReason,
    ConditionType,
    DeploymentKind,
    LifecycleState,
    PrivateEndpointStatus,
    ScopeType,
    SearchIndexStatusKind,
    SearchIndexType,
)
from dbfleet.domain.model.observed import (
    ObservedBackupSchedule,
    ObservedDeployment,
    ObservedManagedNamespaces,
    ObservedPrivateEndpoint,
    ObservedSearchNodes,
    ObservedZoneMapping,
)
from dbfleet.domain.model.record import DELETION_GUARD, Record, ResourceRef
from dbfleet.domain.model.search import SearchIndex, SearchIndexConfig, same_definition

__all__ = [
    "CLUSTER_NAME_LABEL",
    "DELETION_GUARD",
    "PROJECT_ID_LABEL",
    "TYPE_LABEL",
    "BackupPolicy",
    "BackupPolicyItem",
    "BackupSchedule",
    "BackupScheduleSpec",
    "CloudProvider",
    "ClusterSpec",
    "ClusterType",
    "ConditionReason",
    "ConditionSet",
    "ConditionType",
    "ConnectionSecret",
    "ConnectionStrings",
    "CopySetting",
    "DatabaseUser",
    "Deployment",
    "DeploymentKind",
    "DeploymentSpec",
    "DeploymentStatus",
    "FlexSpec",
    "LifecycleState",
    "ManagedNamespace",
    "ObservedBackupSchedule",
    "ObservedDeployment",
    "ObservedManagedNamespaces",
    "ObservedPrivateEndpoint",
    "ObservedSearchNodes",
    "ObservedZoneMapping",
    "PrivateEndpointState",
    "PrivateEndpointStatus",
    "ProcessArgs",
    "Record",
    "RegionConfig",
    "ReplicationSpec",
    "ResourceRef",
    "ScopeType",
    "SearchIndex",
    "SearchIndexConfig",
    "SearchIndexSpec",
    "SearchIndexStatus",
    "SearchIndexStatusKind",
    "SearchIndexType",
    "SearchNodeSpec",
    "ServerlessPrivateEndpoint",
    "ServerlessSpec",
    "StatusCondition",
    "Tag",
    "UserScope",
    "ZoneMapping",
    "connection_secret_name",
    "credential_labels",
    "same_definition",
    "utcnow",
]
