"""Builders for desired-state records and store helpers."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, cast

from dbfleet.domain.model import (
    BackupPolicy,
    BackupPolicyItem,
    BackupSchedule,
    CloudProvider,
    ClusterSpec,
    DatabaseUser,
    Deployment,
    FlexSpec,
    RegionConfig,
    ReplicationSpec,
    ResourceRef,
    ServerlessSpec,
)
from dbfleet.domain.ports.persistence import ConcurrentModificationError

if TYPE_CHECKING:
    from collections.abc import Callable
    from types import TracebackType

    from dbfleet.domain.model import DeploymentSpec, Record
    from dbfleet.domain.ports.unit_of_work import StoreRepositories, StoreUnitOfWork

PROJECT_ID = "5f1e2d3c4b5a697887766554"


def cluster_spec(name: str = "cluster0", **overrides: Any) -> ClusterSpec:
    region = RegionConfig(
        provider_name=CloudProvider.AWS,
        region_name="US_EAST_1",
        instance_size="M10",
        node_count=3,
    )
    overrides.setdefault("replication_specs", (ReplicationSpec(region_configs=(region,)),))
    return ClusterSpec(name=name, **overrides)


def flex_spec(name: str = "flex0", **overrides: Any) -> FlexSpec:
    overrides.setdefault("backing_provider_name", CloudProvider.AWS)
    overrides.setdefault("region_name", "US_EAST_1")
    return FlexSpec(name=name, **overrides)


def serverless_spec(name: str = "serverless0", **overrides: Any) -> ServerlessSpec:
    overrides.setdefault("backing_provider_name", CloudProvider.AWS)
    overrides.setdefault("region_name", "US_EAST_1")
    return ServerlessSpec(name=name, **overrides)


def make_deployment(
    spec: DeploymentSpec | None = None,
    *,
    namespace: str = "default",
    name: str | None = None,
    project_id: str = PROJECT_ID,
    **fields: Any,
) -> Deployment:
    resolved = spec or cluster_spec()
    return Deployment(
        namespace=namespace,
        name=name or resolved.name,
        project_id=project_id,
        spec=resolved,
        **fields,
    )


def make_policy(name: str = "policy", *, namespace: str = "default") -> BackupPolicy:
    return BackupPolicy(
        namespace=namespace,
        name=name,
        items=(
            BackupPolicyItem(
                frequency_type="daily",
                frequency_interval=1,
                retention_unit="days",
                retention_value=7,
            ),
        ),
    )


def make_schedule(
    name: str = "schedule",
    *,
    policy: str = "policy",
    namespace: str = "default",
    **fields: Any,
) -> BackupSchedule:
    return BackupSchedule(
        namespace=namespace,
        name=name,
        policy_ref=ResourceRef(namespace=namespace, name=policy),
        **fields,
    )


def make_user(
    name: str = "app-user",
    *,
    username: str = "app",
    namespace: str = "default",
    project_id: str = PROJECT_ID,
    **fields: Any,
) -> DatabaseUser:
    fields.setdefault("password", "s3cret")
    fields.setdefault("ready", True)
    return DatabaseUser(
        namespace=namespace,
        name=name,
        project_id=project_id,
        username=username,
        **fields,
    )


def add_records(store: Callable[[], StoreUnitOfWork], *records: Record) -> None:
    repositories_by_kind: dict[str, Callable[[StoreRepositories], Any]] = {
        "Deployment": lambda repositories: repositories.deployments,
        "BackupSchedule": lambda repositories: repositories.backup_schedules,
        "BackupPolicy": lambda repositories: repositories.backup_policies,
        "SearchIndexConfig": lambda repositories: repositories.search_index_configs,
        "DatabaseUser": lambda repositories: repositories.database_users,
        "ConnectionSecret": lambda repositories: repositories.connection_secrets,
    }
    with store() as uow:
        for record in records:
            repositories_by_kind[record.KIND](uow.repositories).add(record)
        uow.commit()


def load_deployment(
    store: Callable[[], StoreUnitOfWork],
    name: str = "cluster0",
    *,
    namespace: str = "default",
) -> Deployment | None:
    with store() as uow:
        return uow.repositories.deployments.get(namespace, name)


def load_schedule(
    store: Callable[[], StoreUnitOfWork],
    name: str = "schedule",
    *,
    namespace: str = "default",
) -> BackupSchedule | None:
    with store() as uow:
        return uow.repositories.backup_schedules.get(namespace, name)


def load_policy(
    store: Callable[[], StoreUnitOfWork],
    name: str = "policy",
    *,
    namespace: str = "default",
) -> BackupPolicy | None:
    with store() as uow:
        return uow.repositories.backup_policies.get(namespace, name)


class ConflictingStore:
    """Unit-of-work factory whose first ``conflicts`` commits lose an optimistic race."""

    def __init__(self, inner: Callable[[], StoreUnitOfWork], *, conflicts: int) -> None:
        self._inner = inner
        self.conflicts = conflicts
        self.commits = 0

    def __call__(self) -> _ConflictingUnitOfWork:
        return _ConflictingUnitOfWork(self, self._inner())


class _ConflictingUnitOfWork:
    def __init__(self, owner: ConflictingStore, inner: StoreUnitOfWork) -> None:
        self._owner = owner
        self._inner = inner

    @property
    def repositories(self) -> StoreRepositories:
        return self._inner.repositories

    def __enter__(self) -> _ConflictingUnitOfWork:
        self._inner.__enter__()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> bool:
        return self._inner.__exit__(exc_type, exc_value, traceback)

    def commit(self) -> None:
        self._owner.commits += 1
        if self._owner.conflicts > 0:
            self._owner.conflicts -= 1
            self._inner.rollback()
            raise ConcurrentModificationError("record changed concurrently")
        self._inner.commit()

    def rollback(self) -> None:
        self._inner.rollback()


class UnavailableStore:
    """Unit-of-work factory whose first ``failures`` units of work cannot be opened."""

    def __init__(self, inner: Callable[[], StoreUnitOfWork], *, failures: int) -> None:
        self._inner = inner
        self.failures = failures

    def __call__(self) -> StoreUnitOfWork:
        if self.failures > 0:
            self.failures -= 1
            return cast("StoreUnitOfWork", _LockedUnitOfWork())
        return self._inner()


class _LockedUnitOfWork:
    def __enter__(self) -> _LockedUnitOfWork:
        raise RuntimeError("database is locked")

    def __exit__(self, *_: object) -> bool:
        return False
