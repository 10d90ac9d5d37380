"""Inputs shared by the top-level pass and every sub-reconciliation."""

from __future__ import annotations

from dataclasses import dataclass, field, fields, is_dataclass
from datetime import timedelta
from logging import getLogger
from typing import TYPE_CHECKING

from dbfleet.domain.model import ClusterSpec, ServerlessSpec
from dbfleet.domain.ports.persistence import ConcurrentModificationError
from dbfleet.domain.reconciliation import DEFAULT_RETRY, ReconciliationError

if TYPE_CHECKING:
    from collections.abc import Callable

    from dbfleet.domain.model import Deployment, ObservedDeployment
    from dbfleet.domain.observation import ObservationAdapter
    from dbfleet.domain.ports.provider import ProviderServices
    from dbfleet.domain.ports.unit_of_work import StoreUnitOfWork
    from dbfleet.domain.reconciliation import OwnershipLedger, PassContext, ReconciliationResult

log = getLogger(__name__)

type UnitOfWorkFactory = Callable[[], StoreUnitOfWork]


@dataclass(frozen=True, slots=True, kw_only=True)
class ControllerSettings:
    """Tunables of the deployment controller."""

    requeue_interval: timedelta = DEFAULT_RETRY
    independent_sync_period: timedelta = timedelta(minutes=15)
    conflict_retries: int = 5
    gc_concurrency: int = 8


@dataclass(slots=True, kw_only=True)
class DeploymentPass:
    """Everything one pass over one deployment works with.

    ``deployment`` is a detached snapshot loaded at the start of the pass; status
    changes go to ``context`` and are persisted by the controller. ``provider`` is
    already wrapped so that every call checks for cancellation first.
    """

    deployment: Deployment
    context: PassContext
    provider: ProviderServices
    observer: ObservationAdapter
    ledger: OwnershipLedger
    unit_of_work_factory: UnitOfWorkFactory
    settings: ControllerSettings = field(default_factory=ControllerSettings)
    observed: ObservedDeployment | None = None

    @property
    def project_id(self) -> str:
        return self.deployment.project_id

    @property
    def deployment_name(self) -> str:
        return self.deployment.deployment_name

    @property
    def key(self) -> str:
        return self.deployment.key

    @property
    def cluster_spec(self) -> ClusterSpec:
        spec = self.deployment.spec
        if not isinstance(spec, ClusterSpec):
            raise ReconciliationError(f"{self.key} is not a cluster deployment")
        return spec

    @property
    def serverless_spec(self) -> ServerlessSpec:
        spec = self.deployment.spec
        if not isinstance(spec, ServerlessSpec):
            raise ReconciliationError(f"{self.key} is not a serverless deployment")
        return spec


type SubReconciler = Callable[[DeploymentPass], ReconciliationResult]


def covers(desired: object, observed: object) -> bool:
    """Return whether ``observed`` matches every field ``desired`` actually sets.

    ``None`` in ``desired`` means "leave to the provider" and is ignored, also in
    nested dataclasses and tuples of dataclasses.
    """

    if desired is None:
        return True
    if is_dataclass(desired) and not isinstance(desired, type):
        if type(desired) is not type(observed):
            return False
        return all(
            covers(getattr(desired, item.name), getattr(observed, item.name))
            for item in fields(desired)
        )
    if isinstance(desired, tuple) and isinstance(observed, tuple):
        return len(desired) == len(observed) and all(
            covers(left, right) for left, right in zip(desired, observed, strict=True)
        )
    return desired == observed


def retry_on_conflict[T](action: Callable[[], T], *, retries: int, what: str) -> T:
    """Run a read-modify-write ``action``, re-running it on store conflicts."""

    for attempt in range(1, retries + 1):
        try:
            return action()
        except ConcurrentModificationError:
            if attempt == retries:
                raise
            log.debug("Conflict while writing %s (attempt %s), retrying", what, attempt)
    raise ConcurrentModificationError(f"{what}: no attempt was made")
