"""Dedicated search nodes, driven through the convergence state machine."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from dbfleet.domain.model import ConditionReason, ConditionType
from dbfleet.domain.reconciliation import ConvergenceMachine, ConvergenceReasons

if TYPE_CHECKING:
    from dbfleet.domain.model import ObservedSearchNodes, SearchNodeSpec
    from dbfleet.domain.reconciliation import ReconciliationResult

    from .workflow import DeploymentPass

SEARCH_NODES_SETTLED_STATE = "IDLE"

SEARCH_NODE_REASONS = ConvergenceReasons(
    ready=ConditionReason.SEARCH_NODES_READY,
    creating=ConditionReason.SEARCH_NODES_CREATING,
    updating=ConditionReason.SEARCH_NODES_UPDATING,
    deleting=ConditionReason.SEARCH_NODES_DELETING,
    not_upserted=ConditionReason.SEARCH_NODES_NOT_UPSERTED,
    not_deleted=ConditionReason.SEARCH_NODES_NOT_DELETED,
    aborted=ConditionReason.SEARCH_NODES_OPERATION_ABORTED,
)

type SearchNodeSpecs = tuple[SearchNodeSpec, ...]


@dataclass(slots=True)
class SearchNodesTarget:
    """Search-node specs of one cluster as a convergence target."""

    run: DeploymentPass
    noun: str = "search nodes"

    def desired(self) -> SearchNodeSpecs | None:
        return self.run.cluster_spec.search_nodes or None

    def observe(self) -> ObservedSearchNodes | None:
        return self.run.observer.search_nodes(self.run.project_id, self.run.deployment_name)

    def create(self, desired: SearchNodeSpecs) -> ObservedSearchNodes:
        return self.run.provider.create_search_nodes(
            self.run.project_id, self.run.deployment_name, desired
        )

    def update(self, desired: SearchNodeSpecs) -> ObservedSearchNodes:
        return self.run.provider.update_search_nodes(
            self.run.project_id, self.run.deployment_name, desired
        )

    def delete(self) -> None:
        self.run.provider.delete_search_nodes(self.run.project_id, self.run.deployment_name)

    def matches(self, desired: SearchNodeSpecs, observed: ObservedSearchNodes) -> bool:
        return desired == observed.specs

    def settled(self, observed: ObservedSearchNodes) -> bool:
        return observed.state_name == SEARCH_NODES_SETTLED_STATE

    def state_name(self, observed: ObservedSearchNodes) -> str:
        return observed.state_name


def reconcile_search_nodes(run: DeploymentPass) -> ReconciliationResult:
    machine = ConvergenceMachine(
        SearchNodesTarget(run),
        condition=ConditionType.SEARCH_NODES_READY,
        reasons=SEARCH_NODE_REASONS,
        retry_after=run.settings.requeue_interval,
    )
    return machine.step(run.context).result
