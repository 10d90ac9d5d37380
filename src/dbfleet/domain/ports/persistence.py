"""Ports for the desired-state store."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from dbfleet.domain.model import (
    BackupPolicy,
    BackupSchedule,
    ConnectionSecret,
    DatabaseUser,
    Deployment,
    Record,
    SearchIndexConfig,
)

if TYPE_CHECKING:
    from collections.abc import Mapping


class ConcurrentModificationError(RuntimeError):
    """Raised when a record changed between read and write (stale ``resource_version``)."""


@runtime_checkable
class Repository[TRecord: Record](Protocol):
    """Minimal repository contract for records keyed by ``(namespace, name)``."""

    def add(self, record: TRecord) -> None: ...

    def get(self, namespace: str, name: str) -> TRecord | None: ...

    def list_all(self, namespace: str | None = None) -> list[TRecord]: ...

    def remove(self, record: TRecord) -> None: ...


@runtime_checkable
class DeploymentRepository(Repository[Deployment], Protocol):
    """Persistence contract for deployments."""


@runtime_checkable
class BackupScheduleRepository(Repository[BackupSchedule], Protocol):
    def referencing_deployment(self, deployment_key: str) -> list[BackupSchedule]: ...


@runtime_checkable
class BackupPolicyRepository(Repository[BackupPolicy], Protocol):
    """Persistence contract for backup policies."""


@runtime_checkable
class SearchIndexConfigRepository(Repository[SearchIndexConfig], Protocol):
    """Persistence contract for search index configs."""


@runtime_checkable
class DatabaseUserRepository(Repository[DatabaseUser], Protocol):
    def for_project(self, namespace: str, project_id: str) -> list[DatabaseUser]: ...


@runtime_checkable
class ConnectionSecretRepository(Repository[ConnectionSecret], Protocol):
    def matching_labels(
        self,
        namespace: str,
        labels: Mapping[str, str],
    ) -> list[ConnectionSecret]: ...
