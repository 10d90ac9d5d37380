"""Domain port definitions for adapters."""

from __future__ import annotations

from .persistence import (
    BackupPolicyRepository,
    BackupScheduleRepository,
    ConcurrentModificationError,
    ConnectionSecretRepository,
    DatabaseUserRepository,
    DeploymentRepository,
    Repository,
    SearchIndexConfigRepository,
)
from .provider import (
    BackupScheduleService,
    DeploymentService,
    GlobalWritesService,
    ProviderAPIError,
    ProviderServices,
    SearchIndexService,
    SearchNodesService,
    ServerlessPrivateEndpointService,
)
from .unit_of_work import (
    RepositoryCollection,
    StoreRepositories,
    StoreUnitOfWork,
    UnitOfWork,
)

__all__ = [
    "BackupPolicyRepository",
    "BackupScheduleRepository",
    "BackupScheduleService",
    "ConcurrentModificationError",
    "ConnectionSecretRepository",
    "DatabaseUserRepository",
    "DeploymentRepository",
    "DeploymentService",
    "GlobalWritesService",
    "ProviderAPIError",
    "ProviderServices",
    "Repository",
    "RepositoryCollection",
    "SearchIndexConfigRepository",
    "SearchIndexService",
    "SearchNodesService",
    "ServerlessPrivateEndpointService",
    "StoreRepositories",
    "StoreUnitOfWork",
    "UnitOfWork",
]
