"""Top-level deployment controller: one reconciliation pass per call."""

from __future__ import annotations

from dataclasses import dataclass, replace
from logging import getLogger
from typing import TYPE_CHECKING

from dbfleet.domain.model import (
    ConditionReason,
    ConditionType,
    LifecycleState,
    ResourceRef,
    utcnow,
)
from dbfleet.domain.observation import ObservationAdapter, is_not_found
from dbfleet.domain.ports.persistence import ConcurrentModificationError
from dbfleet.domain.ports.provider import ProviderAPIError
from dbfleet.domain.reconciliation import (
    OwnershipLedger,
    PassCancelledError,
    PassContext,
    ReconciliationResult,
    Requeue,
    aggregate_with_retry,
    guard_cancellation,
    requeue_for,
)

from .connection_secrets import remove_connection_secrets
from .variants import UnknownLifecycleError, variant_for
from .workflow import ControllerSettings, DeploymentPass, retry_on_conflict

if TYPE_CHECKING:
    import threading
    from collections.abc import Callable
    from datetime import datetime

    from dbfleet.domain.model import Deployment
    from dbfleet.domain.ports.provider import ProviderServices

    from .variants import DeploymentVariant
    from .workflow import SubReconciler, UnitOfWorkFactory

log = getLogger(__name__)

PROVISIONING_MESSAGE = "deployment is provisioning"
UPDATING_MESSAGE = "deployment is updating"


@dataclass(frozen=True, slots=True, kw_only=True)
class PassOutcome:
    """What one pass decided: the folded result and when to come back."""

    key: str
    result: ReconciliationResult
    requeue: Requeue
    purged: bool = False


@dataclass(frozen=True, slots=True)
class _Verdict:
    result: ReconciliationResult
    release_guard: bool = False


class DeploymentController:
    """Drive one deployment towards its desired state, one pass at a time.

    A pass loads a snapshot of the record, observes the provider, performs at most
    one corrective call per sub-resource and persists every status change in a
    single optimistic write at the end. Apart from ``PassCancelledError`` nothing
    escapes ``reconcile``: every failure becomes a result and a requeue decision.
    """

    def __init__(
        self,
        *,
        provider: ProviderServices,
        unit_of_work_factory: UnitOfWorkFactory,
        settings: ControllerSettings | None = None,
        ledger: OwnershipLedger | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._provider = provider
        self._unit_of_work_factory = unit_of_work_factory
        self.settings = settings or ControllerSettings()
        self.ledger = ledger or OwnershipLedger(
            unit_of_work_factory,
            conflict_retries=self.settings.conflict_retries,
            max_concurrency=self.settings.gc_concurrency,
        )
        self._clock = clock

    def reconcile(
        self,
        ref: ResourceRef,
        *,
        cancelled: threading.Event | None = None,
    ) -> PassOutcome:
        try:
            deployment = self._load(ref)
        except Exception as error:
            log.exception("Could not load %s from the store", ref)
            result = ReconciliationResult.from_error(ConditionReason.INTERNAL, error)
            return PassOutcome(
                key=str(ref),
                result=result,
                requeue=requeue_for(result, requeue_interval=self.settings.requeue_interval),
            )
        if deployment is None:
            log.debug("%s no longer exists; nothing to reconcile", ref)
            return PassOutcome(
                key=str(ref),
                result=ReconciliationResult.ok(unmanaged=True),
                requeue=Requeue.never(),
            )

        context = PassContext.start(
            deployment.key,
            deployment.status.conditions,
            cancelled=cancelled,
            clock=self._clock,
        )
        provider = guard_cancellation(self._provider, context)
        run = DeploymentPass(
            deployment=deployment,
            context=context,
            provider=provider,
            observer=ObservationAdapter(provider),
            ledger=self.ledger,
            unit_of_work_factory=self._unit_of_work_factory,
            settings=self.settings,
        )
        log.info(
            "Reconciling %s %s (generation %s)",
            deployment.kind,
            deployment.key,
            deployment.generation,
        )

        try:
            verdict = self._run(run)
        except PassCancelledError:
            raise
        except Exception as error:
            log.exception("Unexpected failure reconciling %s", deployment.key)
            verdict = _Verdict(ReconciliationResult.terminate(ConditionReason.INTERNAL, error))

        result = verdict.result
        self._conclude(run, result)

        context.check_cancelled()
        try:
            purged = self._persist(run, release_guard=verdict.release_guard)
        except ConcurrentModificationError as error:
            log.warning("Could not persist status of %s: %s", deployment.key, error)
            result = ReconciliationResult.from_error(ConditionReason.INTERNAL, error)
            purged = False
        except Exception as error:
            log.exception("Could not persist status of %s", deployment.key)
            result = ReconciliationResult.terminate(ConditionReason.INTERNAL, error)
            purged = False

        return PassOutcome(
            key=deployment.key,
            result=result,
            requeue=self._requeue(deployment, result, purged=purged),
            purged=purged,
        )

    def _load(self, ref: ResourceRef) -> Deployment | None:
        with self._unit_of_work_factory() as uow:
            return uow.repositories.deployments.get(ref.namespace, ref.name)

    def _run(self, run: DeploymentPass) -> _Verdict:
        deployment = run.deployment
        variant = variant_for(deployment.spec)

        try:
            run.observed = variant.observe(run.observer, run.project_id, run.deployment_name)
        except ProviderAPIError as error:
            log.warning("Could not observe %s: %s", deployment.key, error)
            return _Verdict(ReconciliationResult.from_error(ConditionReason.INTERNAL, error))

        if deployment.is_being_deleted:
            return self._delete(run, variant)

        if not deployment.has_finalizer():
            try:
                self._ensure_guard(run)
            except ConcurrentModificationError as error:
                return _Verdict(
                    ReconciliationResult.from_error(ConditionReason.FINALIZER_NOT_SET, error)
                )

        return _Verdict(self._converge(run, variant))

    def _converge(self, run: DeploymentPass, variant: DeploymentVariant) -> ReconciliationResult:
        spec = run.deployment.spec
        observed = run.observed

        if observed is None:
            log.info("%s does not exist at the provider; creating it", run.key)
            try:
                run.observed = variant.create(run.provider, run.project_id, spec)
            except ProviderAPIError as error:
                return ReconciliationResult.from_error(
                    ConditionReason.DEPLOYMENT_NOT_CREATED, error
                )
            return ReconciliationResult.in_progress(
                ConditionReason.DEPLOYMENT_CREATING, PROVISIONING_MESSAGE
            )

        try:
            state = variant.lifecycle(observed.state_name)
        except UnknownLifecycleError as error:
            return ReconciliationResult.terminate(ConditionReason.INTERNAL, error)

        if state is LifecycleState.CREATING:
            return ReconciliationResult.in_progress(
                ConditionReason.DEPLOYMENT_CREATING, PROVISIONING_MESSAGE
            )
        if state in (LifecycleState.UPDATING, LifecycleState.REPAIRING):
            return ReconciliationResult.in_progress(
                ConditionReason.DEPLOYMENT_UPDATING, UPDATING_MESSAGE
            )
        if state in (LifecycleState.DELETING, LifecycleState.DELETED):
            log.info("%s is being deleted at the provider; nothing to do", run.key)
            return ReconciliationResult.ok(unmanaged=True)

        if variant.shape_differs(spec, observed):
            log.info("%s differs from its provider shape; updating", run.key)
            try:
                run.observed = variant.update(run.provider, run.project_id, spec)
            except ProviderAPIError as error:
                return ReconciliationResult.from_error(
                    ConditionReason.DEPLOYMENT_NOT_UPDATED, error
                )
            return ReconciliationResult.in_progress(
                ConditionReason.DEPLOYMENT_UPDATING, UPDATING_MESSAGE
            )

        results = [
            self._isolated(run, name, reconciler) for name, reconciler in variant.sub_reconcilers
        ]
        folded = aggregate_with_retry(results)
        return ReconciliationResult.ok() if folded.is_ok else folded

    def _isolated(
        self,
        run: DeploymentPass,
        name: str,
        reconciler: SubReconciler,
    ) -> ReconciliationResult:
        """Run one sub-reconciliation so that its failure never stops the others."""

        try:
            return reconciler(run)
        except PassCancelledError:
            raise
        except Exception as error:
            log.exception("%s reconciliation of %s failed", name, run.key)
            return ReconciliationResult.terminate(ConditionReason.INTERNAL, error)

    def _delete(self, run: DeploymentPass, variant: DeploymentVariant) -> _Verdict:
        deployment = run.deployment
        if not deployment.has_finalizer():
            return _Verdict(ReconciliationResult.ok(unmanaged=True))

        try:
            self.ledger.release_deployment(deployment.key)
        except ConcurrentModificationError as error:
            return _Verdict(
                ReconciliationResult.from_error(ConditionReason.FINALIZER_NOT_REMOVED, error)
            )

        observed = run.observed
        if deployment.keep_on_delete:
            log.info("Keeping provider deployment of %s on record deletion", deployment.key)
        elif observed is not None and observed.termination_protection_enabled:
            log.info(
                "Termination protection is enabled for %s; not deleting it at the provider",
                deployment.key,
            )
        else:
            try:
                remove_connection_secrets(run)
            except ConcurrentModificationError as error:
                return _Verdict(
                    ReconciliationResult.from_error(ConditionReason.FINALIZER_NOT_REMOVED, error)
                )
            if observed is not None:
                log.info("Deleting %s at the provider", deployment.key)
                try:
                    variant.delete(run.provider, run.project_id, run.deployment_name)
                except ProviderAPIError as error:
                    if not is_not_found(error):
                        return _Verdict(
                            ReconciliationResult.from_error(
                                ConditionReason.DEPLOYMENT_NOT_DELETED, error
                            )
                        )
        return _Verdict(ReconciliationResult.ok(), release_guard=True)

    def _ensure_guard(self, run: DeploymentPass) -> None:
        ref = run.deployment.ref

        def add_guard() -> None:
            with self._unit_of_work_factory() as uow:
                record = uow.repositories.deployments.get(ref.namespace, ref.name)
                if record is not None and record.add_finalizer():
                    uow.commit()

        retry_on_conflict(
            add_guard,
            retries=self.settings.conflict_retries,
            what=f"deletion guard of {ref}",
        )
        run.deployment.add_finalizer()

    def _conclude(self, run: DeploymentPass, result: ReconciliationResult) -> None:
        context = run.context
        observed = run.observed
        if observed is not None:
            context.update_status(
                state_name=observed.state_name,
                mongodb_version=observed.mongodb_version,
                connection_strings=observed.connection_strings,
            )
        if result.unmanaged:
            return
        if result.is_ok:
            context.set_true(
                ConditionType.DEPLOYMENT_READY, reason=ConditionReason.DEPLOYMENT_READY
            )
            context.set_true(ConditionType.READY)
            return
        for condition_type in (ConditionType.DEPLOYMENT_READY, ConditionType.READY):
            context.set_false(condition_type, reason=result.reason, message=result.message)

    def _persist(self, run: DeploymentPass, *, release_guard: bool) -> bool:
        """Write the pass' conditions and status changes; return whether the record was purged."""

        ref = run.deployment.ref
        context = run.context
        generation = run.deployment.generation

        def write() -> bool:
            with self._unit_of_work_factory() as uow:
                repository = uow.repositories.deployments
                record = repository.get(ref.namespace, ref.name)
                if record is None:
                    return True
                record.status = replace(
                    record.status,
                    conditions=context.conditions.as_tuple(),
                    observed_generation=generation,
                    **context.status_changes,
                )
                if release_guard:
                    record.remove_finalizer()
                purged = record.purgeable
                if purged:
                    log.info("Purging %s", record.key)
                    repository.remove(record)
                uow.commit()
                return purged

        return retry_on_conflict(
            write,
            retries=self.settings.conflict_retries,
            what=f"status of {ref}",
        )

    def _requeue(
        self,
        deployment: Deployment,
        result: ReconciliationResult,
        *,
        purged: bool,
    ) -> Requeue:
        if purged:
            return Requeue.never()
        resync = self.settings.independent_sync_period if deployment.external_project else None
        return requeue_for(
            result,
            requeue_interval=self.settings.requeue_interval,
            resync_interval=resync,
        )
