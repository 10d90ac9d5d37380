"""Ownership ledger: reference-counted deletion guards on shared records.

A shared record lists the keys of the records depending on it. Its deletion
guard is present exactly while that list is non-empty. ``attach`` and ``detach``
maintain both together and are idempotent.

Backup wiring is the two-hop case: deployments depend on a backup schedule and
schedules depend on a backup policy. Releasing a deployment detaches it from
every schedule; a schedule left without dependents is in turn detached from its
policy.
"""

from __future__ import annotations

from functools import partial
from logging import getLogger
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from dbfleet.domain.model import DELETION_GUARD
from dbfleet.domain.ports.persistence import ConcurrentModificationError

from .taskgroup import gather_bounded

if TYPE_CHECKING:
    from collections.abc import Callable

    from dbfleet.domain.model import BackupPolicy, BackupSchedule, ResourceRef
    from dbfleet.domain.ports.persistence import Repository
    from dbfleet.domain.ports.unit_of_work import StoreRepositories, StoreUnitOfWork

log = getLogger(__name__)


@runtime_checkable
class SharedRecord(Protocol):
    dependents: list[str]
    finalizers: list[str]

    @property
    def key(self) -> str: ...

    @property
    def is_being_deleted(self) -> bool: ...

    def add_finalizer(self, finalizer: str = DELETION_GUARD) -> bool: ...

    def remove_finalizer(self, finalizer: str = DELETION_GUARD) -> bool: ...


def _sync_guard(record: SharedRecord) -> bool:
    if record.dependents:
        return record.add_finalizer()
    return record.remove_finalizer()


def attach(record: SharedRecord, dependent: str) -> bool:
    """Record ``dependent`` on ``record``; return whether anything changed."""

    changed = False
    if dependent not in record.dependents:
        record.dependents = [*record.dependents, dependent]
        changed = True
    changed = _sync_guard(record) or changed
    if record.is_being_deleted and record.dependents:
        log.warning(
            "%s is marked for deletion but still referenced by %s",
            record.key,
            ", ".join(record.dependents),
        )
    return changed


def detach(record: SharedRecord, dependent: str) -> bool:
    """Drop ``dependent`` from ``record``; return whether anything changed."""

    changed = False
    if dependent in record.dependents:
        record.dependents = [item for item in record.dependents if item != dependent]
        changed = True
    return _sync_guard(record) or changed


def has_guard(record: SharedRecord) -> bool:
    return DELETION_GUARD in record.finalizers


type UnitOfWorkFactory = Callable[[], StoreUnitOfWork]


class OwnershipLedger:
    """Store-backed attach/detach with optimistic retries and bounded GC fan-out."""

    def __init__(
        self,
        unit_of_work_factory: UnitOfWorkFactory,
        *,
        conflict_retries: int = 5,
        max_concurrency: int = 8,
    ) -> None:
        self._unit_of_work_factory = unit_of_work_factory
        self.conflict_retries = conflict_retries
        self.max_concurrency = max_concurrency

    def attach_schedule(self, schedule: ResourceRef, deployment_key: str) -> BackupSchedule | None:
        return self._mutate(
            _schedules, schedule, partial(attach, dependent=deployment_key)
        )

    def detach_schedule(self, schedule: ResourceRef, deployment_key: str) -> BackupSchedule | None:
        return self._mutate(
            _schedules, schedule, partial(detach, dependent=deployment_key)
        )

    def attach_policy(self, policy: ResourceRef, schedule_key: str) -> BackupPolicy | None:
        return self._mutate(_policies, policy, partial(attach, dependent=schedule_key))

    def detach_policy(self, policy: ResourceRef, schedule_key: str) -> BackupPolicy | None:
        return self._mutate(_policies, policy, partial(detach, dependent=schedule_key))

    def release_schedule(self, schedule: ResourceRef, deployment_key: str) -> None:
        """Detach a deployment from one schedule, cascading to the policy when unused."""

        updated = self.detach_schedule(schedule, deployment_key)
        if updated is None or updated.dependents:
            return
        self.detach_policy(updated.policy_ref, updated.key)

    def release_deployment(
        self,
        deployment_key: str,
        *,
        keep: ResourceRef | None = None,
    ) -> list[ResourceRef]:
        """Release every schedule edge of ``deployment_key`` except ``keep``.

        Schedules are processed concurrently; the first failure stops the fan-out
        and is re-raised once in-flight releases finished.
        """

        with self._unit_of_work_factory() as uow:
            referencing = uow.repositories.backup_schedules.referencing_deployment(deployment_key)
            refs = [schedule.ref for schedule in referencing if schedule.ref != keep]
        if not refs:
            return []
        log.info(
            "Releasing %s backup schedule(s) held by %s", len(refs), deployment_key
        )
        gather_bounded(
            [partial(self.release_schedule, ref, deployment_key) for ref in refs],
            max_concurrency=self.max_concurrency,
            name="backup-gc",
        )
        return refs

    def _mutate[R: SharedRecord](
        self,
        select: Callable[[StoreRepositories], Repository[R]],
        ref: ResourceRef,
        change: Callable[[R], bool],
    ) -> R | None:
        for attempt in range(1, self.conflict_retries + 1):
            try:
                with self._unit_of_work_factory() as uow:
                    repository = select(uow.repositories)
                    record = repository.get(ref.namespace, ref.name)
                    if record is None:
                        log.debug("%s no longer exists; nothing to update", ref)
                        return None
                    if change(record):
                        if record.is_being_deleted and not record.finalizers:
                            repository.remove(record)
                        uow.commit()
                    return record
            except ConcurrentModificationError:
                log.debug("Conflict updating %s (attempt %s), retrying", ref, attempt)
        raise ConcurrentModificationError(
            f"{ref} kept changing; gave up after {self.conflict_retries} attempts"
        )


def _schedules(repositories: StoreRepositories) -> Repository[BackupSchedule]:
    return repositories.backup_schedules


def _policies(repositories: StoreRepositories) -> Repository[BackupPolicy]:
    return repositories.backup_policies
