"""Advanced process options of dedicated clusters."""

from __future__ import annotations

from dataclasses import replace
from logging import getLogger
from typing import TYPE_CHECKING

from dbfleet.domain.model import ConditionReason
from dbfleet.domain.ports.provider import ProviderAPIError
from dbfleet.domain.reconciliation import ReconciliationResult

from .workflow import covers

if TYPE_CHECKING:
    from .workflow import DeploymentPass

log = getLogger(__name__)


def reconcile_process_args(run: DeploymentPass) -> ReconciliationResult:
    """Push the declared process options when the provider values differ.

    Only options set on the spec are compared. Shared-tier clusters have no
    configurable process options. The outcome has no condition of its own and
    surfaces through the deployment's readiness.
    """

    spec = run.cluster_spec
    desired = spec.process_args
    if spec.is_tenant or desired is None:
        return ReconciliationResult.ok(unmanaged=True)

    if desired.default_read_concern is not None:
        log.warning(
            "%s: default_read_concern is no longer honoured by the provider; ignoring it",
            run.key,
        )
        desired = replace(desired, default_read_concern=None)

    try:
        observed = run.observer.process_args(run.project_id, spec.name)
        if observed is not None and covers(desired, observed):
            return ReconciliationResult.ok()
        log.info("Updating process arguments of %s", run.key)
        run.provider.update_process_args(run.project_id, spec.name, desired)
    except ProviderAPIError as error:
        return ReconciliationResult.from_error(ConditionReason.ADVANCED_OPTIONS_NOT_UPDATED, error)
    return ReconciliationResult.ok()
