"""Custom zone mapping of geo-sharded clusters.

The provider only supports replacing the whole mapping, so any drift other than
missing locations tears the mapping down and recreates it.
"""

from __future__ import annotations

from logging import getLogger
from operator import attrgetter
from typing import TYPE_CHECKING

from dbfleet.domain.model import ClusterType, ConditionReason, ConditionType, ZoneMapping
from dbfleet.domain.ports.provider import ProviderAPIError
from dbfleet.domain.reconciliation import DuplicateKeyError, ReconciliationResult, diff

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from .workflow import DeploymentPass

log = getLogger(__name__)


def compare_zone_mappings(
    existing: Mapping[str, str],
    desired: Sequence[ZoneMapping],
    zone_names: Mapping[str, str],
) -> tuple[bool, bool]:
    """Return ``(should_create, should_delete)``.

    ``existing`` maps location to zone id, ``zone_names`` zone id to zone name.
    Wrong zones or extra locations need a full teardown and recreate, missing
    locations only a create, an empty ``desired`` only a delete.
    """

    observed = [
        ZoneMapping(location=location, zone=zone_names.get(zone_id, zone_id))
        for location, zone_id in existing.items()
    ]
    changes = diff(desired, observed, key=attrgetter("location"))
    if changes.to_update or changes.to_delete:
        return bool(desired), True
    return bool(changes.to_create), False


def reconcile_zone_mapping(run: DeploymentPass) -> ReconciliationResult:
    context = run.context
    result = _reconcile(run)
    return context.apply_result(
        ConditionType.ZONE_MAPPING_READY,
        result,
        ready_reason=ConditionReason.CUSTOM_ZONE_MAPPING_READY,
    )


def _reconcile(run: DeploymentPass) -> ReconciliationResult:
    spec = run.cluster_spec
    desired = spec.custom_zone_mapping
    if not desired and spec.cluster_type != ClusterType.GEOSHARDED:
        return ReconciliationResult.ok(unmanaged=True)

    try:
        observed = run.observer.zone_mapping(run.project_id, spec.name)
    except ProviderAPIError as error:
        return ReconciliationResult.from_error(ConditionReason.CUSTOM_ZONE_MAPPING_FAILED, error)

    if not desired and not observed.locations:
        return ReconciliationResult.ok(unmanaged=True)

    known_zones = set(observed.zone_names.values())
    unknown = sorted({mapping.zone for mapping in desired} - known_zones) if known_zones else []
    if unknown:
        return ReconciliationResult.terminate(
            ConditionReason.CUSTOM_ZONE_MAPPING_FAILED,
            f"zone(s) {', '.join(unknown)} are not zones of cluster {spec.name}",
        )

    try:
        should_create, should_delete = compare_zone_mappings(
            observed.locations, desired, observed.zone_names
        )
    except DuplicateKeyError as error:
        return ReconciliationResult.terminate(ConditionReason.CUSTOM_ZONE_MAPPING_FAILED, error)

    try:
        if should_delete:
            log.info("Removing custom zone mapping of %s", run.key)
            run.provider.delete_custom_zones(run.project_id, spec.name)
        if should_create:
            log.info("Creating custom zone mapping of %s", run.key)
            run.provider.create_custom_zones(run.project_id, spec.name, desired)
    except ProviderAPIError as error:
        return ReconciliationResult.from_error(ConditionReason.CUSTOM_ZONE_MAPPING_FAILED, error)

    if not desired:
        return ReconciliationResult.ok(unmanaged=True)
    return ReconciliationResult.ok()
