"""Private endpoints of serverless instances.

Endpoints are matched by their client-assigned name, which the provider keeps
as the endpoint comment. An endpoint is created first and connected once the
provider reserved it and the cloud-side endpoint details are known.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from logging import getLogger
from operator import attrgetter
from typing import TYPE_CHECKING, Final

from dbfleet.domain.model import (
    CloudProvider,
    ConditionReason,
    ConditionType,
    PrivateEndpointState,
    PrivateEndpointStatus,
    ServerlessSpec,
)
from dbfleet.domain.ports.provider import ProviderAPIError
from dbfleet.domain.reconciliation import DuplicateKeyError, ReconciliationResult, diff

if TYPE_CHECKING:
    from collections.abc import Sequence

    from dbfleet.domain.model import ObservedPrivateEndpoint, ServerlessPrivateEndpoint

    from .workflow import DeploymentPass

log = getLogger(__name__)

NOT_SERVERLESS_TENANT_CLUSTER: Final[str] = "NOT_SERVERLESS_TENANT_CLUSTER"
WAITING_MESSAGE: Final[str] = "Waiting serverless private endpoint to be configured"


class PrivateEndpointSyncError(RuntimeError):
    """A provider call failed while syncing serverless private endpoints."""


@dataclass(frozen=True, slots=True)
class EndpointTasks:
    to_create: tuple[ServerlessPrivateEndpoint, ...]
    to_connect: tuple[ServerlessPrivateEndpoint, ...]
    to_delete: tuple[ObservedPrivateEndpoint, ...]


def is_ready_to_connect(
    desired: ServerlessPrivateEndpoint,
    observed: ObservedPrivateEndpoint,
) -> bool:
    """A reserved endpoint can be connected once its cloud-side details are declared."""

    if observed.status != PrivateEndpointStatus.RESERVED:
        return False
    if observed.provider_name == CloudProvider.AWS:
        return bool(desired.cloud_provider_endpoint_id)
    if observed.provider_name == CloudProvider.AZURE:
        return bool(desired.cloud_provider_endpoint_id and desired.private_endpoint_ip_address)
    return False


def sort_tasks(
    desired: Sequence[ServerlessPrivateEndpoint],
    observed: Sequence[ObservedPrivateEndpoint],
) -> EndpointTasks:
    changes = diff(
        desired,
        observed,
        key=attrgetter("name"),
        observed_key=attrgetter("comment"),
        equals=lambda wanted, existing: not is_ready_to_connect(wanted, existing),
    )
    return EndpointTasks(
        to_create=changes.to_create,
        to_connect=tuple(match.desired for match in changes.to_update),
        to_delete=changes.to_delete,
    )


def _state_of(endpoint: ObservedPrivateEndpoint) -> PrivateEndpointState:
    return PrivateEndpointState(
        id=endpoint.id,
        name=endpoint.comment,
        status=endpoint.status,
        endpoint_service_name=endpoint.endpoint_service_name,
        error_message=endpoint.error_message,
    )


def reconcile_private_endpoints(run: DeploymentPass) -> ReconciliationResult:
    context = run.context
    result = _reconcile(run)
    spec = run.deployment.spec
    if not isinstance(spec, ServerlessSpec) or not spec.private_endpoints:
        context.unset(ConditionType.PRIVATE_ENDPOINT_READY)
        return result
    return context.apply_result(
        ConditionType.PRIVATE_ENDPOINT_READY,
        result,
        ready_reason=ConditionReason.SERVERLESS_PRIVATE_ENDPOINT_READY,
    )


def _reconcile(run: DeploymentPass) -> ReconciliationResult:
    spec = run.deployment.spec
    if not isinstance(spec, ServerlessSpec):
        return ReconciliationResult.terminate(
            ConditionReason.INTERNAL, "serverless deployment spec is empty"
        )

    if spec.backing_provider_name == CloudProvider.GCP:
        if spec.private_endpoints:
            return ReconciliationResult.terminate(
                ConditionReason.UNSUPPORTED_FEATURE,
                "serverless private endpoints are not supported for GCP",
            )
        return ReconciliationResult.ok(unmanaged=True)

    try:
        finished = _sync(run)
    except DuplicateKeyError as error:
        return ReconciliationResult.terminate(
            ConditionReason.SERVERLESS_PRIVATE_ENDPOINT_FAILED, error
        )
    except PrivateEndpointSyncError as error:
        cause = error.__cause__
        if isinstance(cause, ProviderAPIError) and cause.transient:
            return ReconciliationResult.in_progress(
                ConditionReason.SERVERLESS_PRIVATE_ENDPOINT_IN_PROGRESS, str(error)
            )
        return ReconciliationResult.terminate(
            ConditionReason.SERVERLESS_PRIVATE_ENDPOINT_FAILED, error
        )
    if not finished:
        return ReconciliationResult.in_progress(
            ConditionReason.SERVERLESS_PRIVATE_ENDPOINT_IN_PROGRESS, WAITING_MESSAGE
        )
    if not spec.private_endpoints:
        return ReconciliationResult.ok(unmanaged=True)
    return ReconciliationResult.ok()


def _sync(run: DeploymentPass) -> bool:
    """Apply creates, connects and deletes; return whether every endpoint is available."""

    spec = run.serverless_spec
    try:
        observed = run.observer.private_endpoints(run.project_id, spec.name)
    except ProviderAPIError as error:
        if error.error_code == NOT_SERVERLESS_TENANT_CLUSTER:
            # the instance is backed by a flex cluster
            if spec.private_endpoints:
                raise PrivateEndpointSyncError(
                    f"serverless private endpoints are not supported: {error}"
                ) from error
            run.context.update_status(private_endpoints=())
            return True
        raise PrivateEndpointSyncError(
            f"unable to retrieve list of serverless private endpoints: {error}"
        ) from error

    tasks = sort_tasks(spec.private_endpoints, observed or [])
    states = {endpoint.comment: _state_of(endpoint) for endpoint in observed or []}

    for endpoint in tasks.to_create:
        log.info("Creating serverless private endpoint %s on %s", endpoint.name, run.key)
        try:
            created = run.provider.create_private_endpoint(run.project_id, spec.name, endpoint.name)
        except ProviderAPIError as error:
            raise PrivateEndpointSyncError(
                f"unable to create serverless private endpoint: {error}"
            ) from error
        states[endpoint.name] = _state_of(created)

    by_comment = {endpoint.comment: endpoint for endpoint in observed or []}
    for endpoint in tasks.to_connect:
        current = by_comment[endpoint.name]
        log.info("Connecting serverless private endpoint %s on %s", endpoint.name, run.key)
        try:
            connected = run.provider.update_private_endpoint(
                run.project_id,
                spec.name,
                current.id,
                endpoint,
                current.provider_name or spec.backing_provider_name,
            )
        except ProviderAPIError as error:
            raise PrivateEndpointSyncError(
                f"unable to update/connect serverless private endpoint: {error}"
            ) from error
        states[endpoint.name] = _state_of(connected)

    for endpoint in tasks.to_delete:
        log.info("Deleting serverless private endpoint %s from %s", endpoint.id, run.key)
        try:
            run.provider.delete_private_endpoint(run.project_id, spec.name, endpoint.id)
        except ProviderAPIError as error:
            raise PrivateEndpointSyncError(
                f"unable to delete serverless private endpoint: {error}"
            ) from error
        # endpoints pass through DELETING before they disappear
        states[endpoint.comment] = replace(
            states[endpoint.comment], status=PrivateEndpointStatus.DELETING
        )

    run.context.update_status(private_endpoints=tuple(states.values()))
    return all(state.status == PrivateEndpointStatus.AVAILABLE for state in states.values())
