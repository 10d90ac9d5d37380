"""Managed namespaces of geo-sharded clusters.

Namespaces cannot be updated in place: a changed entry is deleted and created
again with the new shard key settings.
"""

from __future__ import annotations

from logging import getLogger
from operator import attrgetter
from typing import TYPE_CHECKING

from dbfleet.domain.model import ClusterType, ConditionReason, ConditionType
from dbfleet.domain.ports.provider import ProviderAPIError
from dbfleet.domain.reconciliation import DuplicateKeyError, ReconciliationResult, diff

if TYPE_CHECKING:
    from .workflow import DeploymentPass

log = getLogger(__name__)


def reconcile_managed_namespaces(run: DeploymentPass) -> ReconciliationResult:
    context = run.context
    result = _reconcile(run)
    return context.apply_result(
        ConditionType.MANAGED_NAMESPACES_READY,
        result,
        ready_reason=ConditionReason.MANAGED_NAMESPACES_READY,
    )


def _reconcile(run: DeploymentPass) -> ReconciliationResult:
    spec = run.cluster_spec
    desired = spec.managed_namespaces
    if not desired and spec.cluster_type != ClusterType.GEOSHARDED:
        return ReconciliationResult.ok(unmanaged=True)

    try:
        observed = run.observer.managed_namespaces(run.project_id, spec.name)
    except ProviderAPIError as error:
        return ReconciliationResult.from_error(ConditionReason.MANAGED_NAMESPACES_FAILED, error)
    existing = observed.namespaces if observed is not None else ()

    try:
        changes = diff(desired, existing, key=attrgetter("key"))
    except DuplicateKeyError as error:
        return ReconciliationResult.terminate(ConditionReason.MANAGED_NAMESPACES_FAILED, error)

    if not desired and not existing:
        return ReconciliationResult.ok(unmanaged=True)

    try:
        for namespace in (*changes.to_delete, *(match.observed for match in changes.to_update)):
            log.info(
                "Removing managed namespace %s.%s from %s",
                namespace.db,
                namespace.collection,
                run.key,
            )
            run.provider.delete_managed_namespace(run.project_id, spec.name, namespace)
        for namespace in (*changes.to_create, *(match.desired for match in changes.to_update)):
            log.info(
                "Creating managed namespace %s.%s on %s",
                namespace.db,
                namespace.collection,
                run.key,
            )
            run.provider.create_managed_namespace(run.project_id, spec.name, namespace)
    except ProviderAPIError as error:
        return ReconciliationResult.from_error(ConditionReason.MANAGED_NAMESPACES_FAILED, error)

    if not desired:
        return ReconciliationResult.ok(unmanaged=True)
    return ReconciliationResult.ok()
