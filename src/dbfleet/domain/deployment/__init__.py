"""Reconciliation of managed deployments and their sub-resources."""

from __future__ import annotations

from .backup import normalize_schedule, reconcile_backup
from .connection_secrets import (
    connection_data,
    reconcile_connection_secrets,
    remove_connection_secrets,
)
from .controller import DeploymentController, PassOutcome
from .managed_namespaces import reconcile_managed_namespaces
from .private_endpoints import is_ready_to_connect, reconcile_private_endpoints, sort_tasks
from .process_args import reconcile_process_args
from .scheduler import ControlLoop
from .search_indexes import InvalidIndexError, reconcile_search_indexes, resolve_index
from .search_nodes import SearchNodesTarget, reconcile_search_nodes
from .variants import (
    VARIANTS,
    DeploymentVariant,
    UnknownLifecycleError,
    parse_lifecycle,
    variant_for,
)
from .workflow import ControllerSettings, DeploymentPass, covers, retry_on_conflict
from .zone_mapping import compare_zone_mappings, reconcile_zone_mapping

__all__ = [
    "VARIANTS",
    "ControlLoop",
    "ControllerSettings",
    "DeploymentController",
    "DeploymentPass",
    "DeploymentVariant",
    "InvalidIndexError",
    "PassOutcome",
    "SearchNodesTarget",
    "UnknownLifecycleError",
    "compare_zone_mappings",
    "connection_data",
    "covers",
    "is_ready_to_connect",
    "normalize_schedule",
    "parse_lifecycle",
    "reconcile_backup",
    "reconcile_connection_secrets",
    "reconcile_managed_namespaces",
    "reconcile_private_endpoints",
    "reconcile_process_args",
    "reconcile_search_indexes",
    "reconcile_search_nodes",
    "reconcile_zone_mapping",
    "remove_connection_secrets",
    "resolve_index",
    "retry_on_conflict",
    "sort_tasks",
    "variant_for",
]
