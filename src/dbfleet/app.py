"""Application orchestration entry points."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from dbfleet.adapters.documents import load_documents
from dbfleet.adapters.provider import build_provider_client
from dbfleet.adapters.sqlalchemy.unit_of_work import SqlAlchemyStoreUnitOfWork, is_started, startup
from dbfleet.config import get_control_loop_config
from dbfleet.domain.deployment import (
    ControlLoop,
    ControllerSettings,
    DeploymentController,
    retry_on_conflict,
)
from dbfleet.domain.model import Deployment, utcnow

if TYPE_CHECKING:
    import threading
    from collections.abc import Callable, Iterable
    from pathlib import Path

    from dbfleet.adapters.documents import Document
    from dbfleet.config import ControlLoopConfig
    from dbfleet.domain.deployment import PassOutcome
    from dbfleet.domain.deployment.workflow import UnitOfWorkFactory
    from dbfleet.domain.model import Record, ResourceRef
    from dbfleet.domain.ports.persistence import Repository
    from dbfleet.domain.ports.provider import ProviderServices
    from dbfleet.domain.ports.unit_of_work import StoreRepositories

log = getLogger(__name__)

REPOSITORY_BY_KIND: dict[str, Callable[[StoreRepositories], Repository[Record]]] = {
    "Deployment": lambda repositories: repositories.deployments,
    "BackupSchedule": lambda repositories: repositories.backup_schedules,
    "BackupPolicy": lambda repositories: repositories.backup_policies,
    "SearchIndexConfig": lambda repositories: repositories.search_index_configs,
    "DatabaseUser": lambda repositories: repositories.database_users,
    "ConnectionSecret": lambda repositories: repositories.connection_secrets,
}


def _store_factory(unit_of_work_factory: UnitOfWorkFactory | None) -> UnitOfWorkFactory:
    if unit_of_work_factory is not None:
        return unit_of_work_factory
    if not is_started():
        startup()
    return SqlAlchemyStoreUnitOfWork


def build_controller(
    *,
    provider: ProviderServices | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    config: ControlLoopConfig | None = None,
) -> DeploymentController:
    """Wire a deployment controller to the configured store and provider."""

    loop_config = config or get_control_loop_config()
    return DeploymentController(
        provider=provider or build_provider_client(),
        unit_of_work_factory=_store_factory(unit_of_work_factory),
        settings=ControllerSettings(
            requeue_interval=loop_config.requeue_interval,
            independent_sync_period=loop_config.independent_sync_period,
            conflict_retries=loop_config.conflict_retries,
            gc_concurrency=loop_config.gc_concurrency,
        ),
    )


def build_control_loop(
    *,
    provider: ProviderServices | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    config: ControlLoopConfig | None = None,
) -> ControlLoop:
    loop_config = config or get_control_loop_config()
    store = _store_factory(unit_of_work_factory)
    controller = build_controller(
        provider=provider, unit_of_work_factory=store, config=loop_config
    )
    return ControlLoop(
        controller,
        store,
        workers=loop_config.workers,
        resync_interval=loop_config.resync_interval,
    )


def apply_documents(
    documents: Iterable[Document],
    *,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    conflict_retries: int = 5,
) -> list[str]:
    """Create or update one record per document; return the keys that changed.

    Fields maintained by the controller (status, deletion guards, dependents)
    are left alone. A deployment's generation is bumped whenever its spec changes.
    """

    store = _store_factory(unit_of_work_factory)
    changed: list[str] = []
    for document in documents:
        ref = document.ref

        def upsert(document: Document = document, ref: ResourceRef = ref) -> bool:
            with store() as uow:
                repository = REPOSITORY_BY_KIND[document.kind](uow.repositories)
                record = repository.get(ref.namespace, ref.name)
                if record is None:
                    log.info("Creating %s %s", document.kind, ref)
                    repository.add(document.to_record())
                    uow.commit()
                    return True
                if not _update(record, document):
                    return False
                log.info("Updating %s %s", document.kind, ref)
                uow.commit()
                return True

        if retry_on_conflict(upsert, retries=conflict_retries, what=f"{document.kind} {ref}"):
            changed.append(f"{document.kind} {ref}")
    return changed


def _update(record: Record, document: Document) -> bool:
    if record.is_being_deleted:
        log.warning("%s %s is being deleted; not updating it", document.kind, document.ref)
        return False
    changed = False
    for name, value in document.desired_fields().items():
        if getattr(record, name) != value:
            setattr(record, name, value)
            changed = True
            if name == "spec" and isinstance(record, Deployment):
                record.generation += 1
    return changed


def apply_file(
    path: Path,
    *,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> list[str]:
    config = get_control_loop_config()
    return apply_documents(
        load_documents(path),
        unit_of_work_factory=unit_of_work_factory,
        conflict_retries=config.conflict_retries,
    )


def request_deletion(
    kind: str,
    ref: ResourceRef,
    *,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    conflict_retries: int = 5,
) -> bool | None:
    """Mark a record for deletion.

    Returns ``None`` when the record does not exist, ``True`` when it had no
    deletion guard and was purged right away and ``False`` when it now waits for
    its guards to be released.
    """

    if kind not in REPOSITORY_BY_KIND:
        raise ValueError(f"Unknown record kind: {kind}")
    store = _store_factory(unit_of_work_factory)

    def mark() -> bool | None:
        with store() as uow:
            repository = REPOSITORY_BY_KIND[kind](uow.repositories)
            record = repository.get(ref.namespace, ref.name)
            if record is None:
                return None
            if record.deletion_requested_at is None:
                record.deletion_requested_at = utcnow()
            purged = record.purgeable
            if purged:
                repository.remove(record)
            uow.commit()
            return purged

    outcome = retry_on_conflict(mark, retries=conflict_retries, what=f"deletion of {kind} {ref}")
    if outcome:
        log.info("Deleted %s %s", kind, ref)
    elif outcome is False:
        log.info("Marked %s %s for deletion", kind, ref)
    return outcome


def reconcile_deployment(
    ref: ResourceRef,
    *,
    controller: DeploymentController | None = None,
) -> PassOutcome:
    """Run a single reconciliation pass for one deployment."""

    effective = controller or build_controller()
    outcome = effective.reconcile(ref)
    log.info(
        "Pass for %s finished: %s%s, requeue %s",
        outcome.key,
        outcome.result.kind,
        f" ({outcome.result.reason})" if outcome.result.reason else "",
        outcome.requeue.kind,
    )
    return outcome


def run_control_loop(
    stop: threading.Event,
    *,
    once: bool = False,
    loop: ControlLoop | None = None,
) -> list[PassOutcome]:
    """Sweep due deployments until ``stop`` is set, or once with ``once``."""

    effective = loop or build_control_loop()
    if once:
        return effective.run_once(force=True)
    effective.run_forever(stop)
    return []


def deployment_status(
    ref: ResourceRef,
    *,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> Deployment | None:
    store = _store_factory(unit_of_work_factory)
    with store() as uow:
        return uow.repositories.deployments.get(ref.namespace, ref.name)
