"""Closed table of deployment variants.

Each variant knows how to observe, create, update and delete its provider
deployment, how to tell whether the provider shape differs from the desired
one, and which independent sub-reconciliations run once it is idle.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any

from dbfleet.domain.model import (
    ClusterSpec,
    DeploymentKind,
    FlexSpec,
    LifecycleState,
    ServerlessSpec,
)

from .backup import reconcile_backup
from .connection_secrets import reconcile_connection_secrets
from .managed_namespaces import reconcile_managed_namespaces
from .private_endpoints import reconcile_private_endpoints
from .process_args import reconcile_process_args
from .search_indexes import reconcile_search_indexes
from .search_nodes import reconcile_search_nodes
from .workflow import covers
from .zone_mapping import reconcile_zone_mapping

if TYPE_CHECKING:
    from collections.abc import Callable

    from dbfleet.domain.model import DeploymentSpec, ObservedDeployment, Tag
    from dbfleet.domain.observation import ObservationAdapter
    from dbfleet.domain.ports.provider import ProviderServices

    from .workflow import SubReconciler


class UnknownLifecycleError(ValueError):
    """Raised for a provider lifecycle name outside ``LifecycleState``."""

    def __init__(self, state_name: str) -> None:
        super().__init__(f"unknown deployment state: {state_name}")
        self.state_name = state_name


def parse_lifecycle(state_name: str) -> LifecycleState:
    try:
        return LifecycleState(state_name)
    except ValueError as error:
        raise UnknownLifecycleError(state_name) from error


def _sorted_tags(tags: tuple[Tag, ...]) -> tuple[Tag, ...]:
    return tuple(sorted(tags, key=lambda tag: (tag.key, tag.value)))


def cluster_shape_differs(desired: ClusterSpec, observed: ObservedDeployment) -> bool:
    """Compare only the deployment shape; sub-resources have their own reconcilers."""

    current = observed.spec
    if not isinstance(current, ClusterSpec):
        return True
    wanted = replace(
        desired,
        tags=_sorted_tags(desired.tags),
        backup_schedule_ref=None,
        process_args=None,
        search_nodes=(),
        search_indexes=(),
        custom_zone_mapping=(),
        managed_namespaces=(),
    )
    actual = replace(
        current,
        tags=_sorted_tags(current.tags),
        backup_schedule_ref=None,
        process_args=None,
        search_nodes=(),
        search_indexes=(),
        custom_zone_mapping=(),
        managed_namespaces=(),
    )
    return not covers(wanted, actual)


def flex_shape_differs(desired: FlexSpec, observed: ObservedDeployment) -> bool:
    current = observed.spec
    if not isinstance(current, FlexSpec):
        return True
    # provider and region are fixed at creation time
    return (
        desired.termination_protection_enabled != current.termination_protection_enabled
        or _sorted_tags(desired.tags) != _sorted_tags(current.tags)
    )


def serverless_shape_differs(desired: ServerlessSpec, observed: ObservedDeployment) -> bool:
    current = observed.spec
    if not isinstance(current, ServerlessSpec):
        return True
    return (
        desired.continuous_backup_enabled != current.continuous_backup_enabled
        or desired.termination_protection_enabled != current.termination_protection_enabled
        or _sorted_tags(desired.tags) != _sorted_tags(current.tags)
    )


@dataclass(frozen=True, slots=True, kw_only=True)
class DeploymentVariant:
    """Dispatch entry for one ``DeploymentKind``."""

    kind: DeploymentKind
    observe: Callable[[ObservationAdapter, str, str], ObservedDeployment | None]
    create: Callable[[ProviderServices, str, Any], ObservedDeployment]
    update: Callable[[ProviderServices, str, Any], ObservedDeployment]
    delete: Callable[[ProviderServices, str, str], None]
    shape_differs: Callable[[Any, ObservedDeployment], bool]
    sub_reconcilers: tuple[tuple[str, SubReconciler], ...]
    lifecycle: Callable[[str], LifecycleState] = parse_lifecycle


CLUSTER = DeploymentVariant(
    kind=DeploymentKind.CLUSTER,
    observe=lambda observer, project_id, name: observer.cluster(project_id, name),
    create=lambda provider, project_id, spec: provider.create_cluster(project_id, spec),
    update=lambda provider, project_id, spec: provider.update_cluster(project_id, spec),
    delete=lambda provider, project_id, name: provider.delete_cluster(project_id, name),
    shape_differs=cluster_shape_differs,
    sub_reconcilers=(
        ("backup", reconcile_backup),
        ("process-args", reconcile_process_args),
        ("connection-secrets", reconcile_connection_secrets),
        ("search-nodes", reconcile_search_nodes),
        ("search-indexes", reconcile_search_indexes),
        ("zone-mapping", reconcile_zone_mapping),
        ("managed-namespaces", reconcile_managed_namespaces),
    ),
)

FLEX = DeploymentVariant(
    kind=DeploymentKind.FLEX,
    observe=lambda observer, project_id, name: observer.flex(project_id, name),
    create=lambda provider, project_id, spec: provider.create_flex(project_id, spec),
    update=lambda provider, project_id, spec: provider.update_flex(project_id, spec),
    delete=lambda provider, project_id, name: provider.delete_flex(project_id, name),
    shape_differs=flex_shape_differs,
    sub_reconcilers=(("connection-secrets", reconcile_connection_secrets),),
)

SERVERLESS = DeploymentVariant(
    kind=DeploymentKind.SERVERLESS,
    observe=lambda observer, project_id, name: observer.serverless(project_id, name),
    create=lambda provider, project_id, spec: provider.create_serverless(project_id, spec),
    update=lambda provider, project_id, spec: provider.update_serverless(project_id, spec),
    delete=lambda provider, project_id, name: provider.delete_serverless(project_id, name),
    shape_differs=serverless_shape_differs,
    sub_reconcilers=(
        ("private-endpoints", reconcile_private_endpoints),
        ("connection-secrets", reconcile_connection_secrets),
    ),
)

VARIANTS: dict[DeploymentKind, DeploymentVariant] = {
    variant.kind: variant for variant in (CLUSTER, FLEX, SERVERLESS)
}


def variant_for(spec: DeploymentSpec) -> DeploymentVariant:
    return VARIANTS[spec.kind]
