"""Unit-of-work abstractions for coordinating repositories."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from types import TracebackType

    from dbfleet.domain.ports.persistence import (
        BackupPolicyRepository,
        BackupScheduleRepository,
        ConnectionSecretRepository,
        DatabaseUserRepository,
        DeploymentRepository,
        SearchIndexConfigRepository,
    )


@runtime_checkable
class RepositoryCollection(Protocol):
    """Marker protocol for groups of repositories managed together."""


@runtime_checkable
class UnitOfWork[TRepositories: RepositoryCollection](Protocol):
    """Generic unit-of-work boundary around a repository collection.

    ``commit`` raises ``ConcurrentModificationError`` when an optimistic update lost
    a race; the unit of work is rolled back and must not be reused.
    """

    @property
    def repositories(self) -> TRepositories: ...

    def __enter__(self) -> UnitOfWork[TRepositories]: ...

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> bool: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...


@dataclass(slots=True)
class StoreRepositories(RepositoryCollection):
    """Repositories over every record kind in the desired-state store."""

    deployments: DeploymentRepository
    backup_schedules: BackupScheduleRepository
    backup_policies: BackupPolicyRepository
    search_index_configs: SearchIndexConfigRepository
    database_users: DatabaseUserRepository
    connection_secrets: ConnectionSecretRepository


type StoreUnitOfWork = UnitOfWork[StoreRepositories]
