"""Backup schedule of a cluster, wired to its shared schedule and policy records."""

from __future__ import annotations

from dataclasses import replace
from logging import getLogger
from typing import TYPE_CHECKING

from dbfleet.domain.model import ConditionReason, ConditionType
from dbfleet.domain.ports.persistence import ConcurrentModificationError
from dbfleet.domain.ports.provider import ProviderAPIError
from dbfleet.domain.reconciliation import ReconciliationResult

if TYPE_CHECKING:
    from dbfleet.domain.model import BackupScheduleSpec

    from .workflow import DeploymentPass

log = getLogger(__name__)


def normalize_schedule(spec: BackupScheduleSpec) -> BackupScheduleSpec:
    """Order-insensitive form of a schedule for comparison."""

    return replace(
        spec,
        copy_settings=tuple(
            sorted(
                (
                    replace(setting, frequencies=tuple(sorted(setting.frequencies)))
                    for setting in spec.copy_settings
                ),
                key=lambda setting: (setting.cloud_provider, setting.region_name),
            )
        ),
        policy_items=tuple(
            sorted(
                spec.policy_items,
                key=lambda item: (
                    item.frequency_type,
                    item.frequency_interval,
                    item.retention_unit,
                    item.retention_value,
                ),
            )
        ),
    )


def reconcile_backup(run: DeploymentPass) -> ReconciliationResult:
    context = run.context
    result = _reconcile(run)
    return context.apply_result(
        ConditionType.BACKUP_READY, result, ready_reason=ConditionReason.BACKUP_READY
    )


def _reconcile(run: DeploymentPass) -> ReconciliationResult:
    spec = run.cluster_spec
    ref = spec.backup_schedule_ref

    if ref is None:
        try:
            run.ledger.release_deployment(run.key)
        except ConcurrentModificationError as error:
            return ReconciliationResult.from_error(ConditionReason.INTERNAL, error)
        return ReconciliationResult.ok(unmanaged=True)

    if not spec.backup_enabled:
        return ReconciliationResult.terminate(
            ConditionReason.BACKUP_NOT_ENABLED,
            "can not proceed with backup configuration. "
            f"Backups are not enabled for cluster {spec.name}",
        )

    try:
        schedule = run.ledger.attach_schedule(ref, run.key)
        if schedule is None:
            return ReconciliationResult.terminate(
                ConditionReason.BACKUP_SCHEDULE_NOT_FOUND, f"backup schedule {ref} not found"
            )
        policy = run.ledger.attach_policy(schedule.policy_ref, schedule.key)
        if policy is None:
            return ReconciliationResult.terminate(
                ConditionReason.BACKUP_SCHEDULE_NOT_FOUND,
                f"backup policy {schedule.policy_ref} not found",
            )
        run.ledger.release_deployment(run.key, keep=ref)
    except ConcurrentModificationError as error:
        return ReconciliationResult.from_error(ConditionReason.INTERNAL, error)

    desired = normalize_schedule(schedule.to_spec(policy))
    try:
        observed = run.observer.backup_schedule(run.project_id, spec.name)
    except ProviderAPIError as error:
        return ReconciliationResult.from_error(ConditionReason.BACKUP_SCHEDULE_NOT_UPDATED, error)

    if observed is not None and normalize_schedule(observed.spec) == desired:
        log.debug("Backup schedule of %s is up to date", run.key)
        return ReconciliationResult.ok()

    log.info("Updating backup schedule of %s from %s", run.key, ref)
    try:
        run.provider.update_backup_schedule(
            run.project_id,
            spec.name,
            desired,
            update_snapshots=schedule.update_snapshots,
        )
    except ProviderAPIError as error:
        return ReconciliationResult.from_error(ConditionReason.BACKUP_SCHEDULE_NOT_UPDATED, error)
    return ReconciliationResult.in_progress(
        ConditionReason.BACKUP_SCHEDULE_UPDATING, "backup schedule is being updated"
    )
