"""Observation adapter: fetch provider state and tell "absent" apart from "failed".

``observe`` returns ``None`` only when the provider confirmed the entity does not
exist. Every other failure propagates so that a flaky read never looks like a
missing entity (which would trigger a duplicate create).
"""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, Final

from dbfleet.domain.model import ObservedManagedNamespaces, ObservedZoneMapping
from dbfleet.domain.ports.provider import ProviderAPIError

if TYPE_CHECKING:
    from collections.abc import Callable

    from dbfleet.domain.model import (
        ObservedBackupSchedule,
        ObservedDeployment,
        ObservedPrivateEndpoint,
        ObservedSearchNodes,
        ProcessArgs,
        SearchIndex,
    )
    from dbfleet.domain.ports.provider import ProviderServices

log = getLogger(__name__)

NOT_FOUND_STATUSES: Final[frozenset[int]] = frozenset({404})
NOT_FOUND_CODES: Final[frozenset[str]] = frozenset(
    {
        "CLUSTER_NOT_FOUND",
        "FLEX_CLUSTER_NOT_FOUND",
        "INDEX_NOT_FOUND",
        "RESOURCE_NOT_FOUND",
        "SERVERLESS_INSTANCE_NOT_FOUND",
    }
)

# The search-nodes endpoint answers 400 instead of 404 when a cluster has no
# search nodes. Drop 400 here once the provider fixes its status code.
SEARCH_NODES_ABSENT_STATUSES: Final[frozenset[int]] = NOT_FOUND_STATUSES | {400}


def is_not_found(
    error: ProviderAPIError,
    *,
    absent_statuses: frozenset[int] = NOT_FOUND_STATUSES,
) -> bool:
    if error.error_code is not None and error.error_code in NOT_FOUND_CODES:
        return True
    return error.status_code is not None and error.status_code in absent_statuses


def observe[T](
    fetch: Callable[[], T],
    *,
    absent_statuses: frozenset[int] = NOT_FOUND_STATUSES,
) -> T | None:
    """Run ``fetch``; map not-found class errors to ``None`` and re-raise the rest."""

    try:
        return fetch()
    except ProviderAPIError as error:
        if is_not_found(error, absent_statuses=absent_statuses):
            return None
        raise


class ObservationAdapter:
    """Typed observation of every provider entity a pass looks at."""

    def __init__(self, provider: ProviderServices) -> None:
        self._provider = provider

    def cluster(self, project_id: str, name: str) -> ObservedDeployment | None:
        return observe(lambda: self._provider.get_cluster(project_id, name))

    def flex(self, project_id: str, name: str) -> ObservedDeployment | None:
        return observe(lambda: self._provider.get_flex(project_id, name))

    def serverless(self, project_id: str, name: str) -> ObservedDeployment | None:
        return observe(lambda: self._provider.get_serverless(project_id, name))

    def process_args(self, project_id: str, name: str) -> ProcessArgs | None:
        return observe(lambda: self._provider.get_process_args(project_id, name))

    def backup_schedule(self, project_id: str, cluster: str) -> ObservedBackupSchedule | None:
        return observe(lambda: self._provider.get_backup_schedule(project_id, cluster))

    def search_nodes(self, project_id: str, cluster: str) -> ObservedSearchNodes | None:
        observed = observe(
            lambda: self._provider.get_search_nodes(project_id, cluster),
            absent_statuses=SEARCH_NODES_ABSENT_STATUSES,
        )
        if observed is None or not observed.specs:
            return None
        return observed

    def search_index(self, project_id: str, cluster: str, index_id: str) -> SearchIndex | None:
        return observe(lambda: self._provider.get_search_index(project_id, cluster, index_id))

    def zone_mapping(self, project_id: str, cluster: str) -> ObservedZoneMapping:
        """Custom zones plus the zone names they resolve to; no mapping reads as empty."""

        locations = observe(lambda: self._provider.get_custom_zones(project_id, cluster))
        zone_names = observe(lambda: self._provider.get_zone_names(project_id, cluster))
        return ObservedZoneMapping(locations=locations or {}, zone_names=zone_names or {})

    def managed_namespaces(
        self,
        project_id: str,
        cluster: str,
    ) -> ObservedManagedNamespaces | None:
        namespaces = observe(lambda: self._provider.get_managed_namespaces(project_id, cluster))
        if namespaces is None:
            return None
        return ObservedManagedNamespaces(namespaces=tuple(namespaces))

    def private_endpoints(
        self,
        project_id: str,
        instance: str,
    ) -> list[ObservedPrivateEndpoint] | None:
        return observe(lambda: self._provider.list_private_endpoints(project_id, instance))
