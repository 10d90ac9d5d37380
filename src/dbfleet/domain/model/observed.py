"""Snapshots of provider-side state, rebuilt fresh every pass."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from dbfleet.domain.model.enums import CloudProvider, DeploymentKind, PrivateEndpointStatus

if TYPE_CHECKING:
    from dbfleet.domain.model.backup import BackupScheduleSpec
    from dbfleet.domain.model.deployment import (
        ConnectionStrings,
        DeploymentSpec,
        ManagedNamespace,
        SearchNodeSpec,
    )


@dataclass(frozen=True, slots=True, kw_only=True)
class ObservedDeployment:
    """Provider view of one deployment.

    ``state_name`` is kept raw; mapping it onto ``LifecycleState`` is the
    controller's job so unknown values surface instead of being defaulted.
    ``spec`` holds the provider-managed shape in the same variant as the desired spec.
    """

    kind: DeploymentKind
    id: str | None
    name: str
    state_name: str
    spec: DeploymentSpec
    mongodb_version: str | None = None
    connection_strings: ConnectionStrings | None = None
    replication_spec_zones: dict[str, str] = field(default_factory=dict)

    @property
    def termination_protection_enabled(self) -> bool:
        return self.spec.termination_protection_enabled


@dataclass(frozen=True, slots=True, kw_only=True)
class ObservedSearchNodes:
    id: str | None
    state_name: str
    specs: tuple[SearchNodeSpec, ...]


@dataclass(frozen=True, slots=True, kw_only=True)
class ObservedBackupSchedule:
    cluster_id: str | None
    spec: BackupScheduleSpec


@dataclass(frozen=True, slots=True, kw_only=True)
class ObservedZoneMapping:
    """Custom zone mapping as ``location -> zone id`` plus the ``zone id -> name`` map."""

    locations: dict[str, str]
    zone_names: dict[str, str]


@dataclass(frozen=True, slots=True, kw_only=True)
class ObservedManagedNamespaces:
    namespaces: tuple[ManagedNamespace, ...]


@dataclass(frozen=True, slots=True, kw_only=True)
class ObservedPrivateEndpoint:
    id: str
    comment: str
    status: PrivateEndpointStatus
    provider_name: CloudProvider | None = None
    endpoint_service_name: str | None = None
    cloud_provider_endpoint_id: str | None = None
    private_endpoint_ip_address: str | None = None
    error_message: str | None = None
