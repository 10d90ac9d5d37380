"""Tagged (de)serialization of deployment specs.

Specs travel as plain mappings carrying a ``kind`` tag next to the variant's
fields. The tag picks the dataclass that validates the rest.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Final

from pydantic import TypeAdapter

from dbfleet.domain.model import ClusterSpec, DeploymentKind, FlexSpec, ServerlessSpec

if TYPE_CHECKING:
    from collections.abc import Mapping

    from dbfleet.domain.model import DeploymentSpec

KIND_KEY: Final[str] = "kind"

SPEC_ADAPTERS: dict[DeploymentKind, TypeAdapter[Any]] = {
    DeploymentKind.CLUSTER: TypeAdapter(ClusterSpec),
    DeploymentKind.FLEX: TypeAdapter(FlexSpec),
    DeploymentKind.SERVERLESS: TypeAdapter(ServerlessSpec),
}


def dump_spec(spec: DeploymentSpec) -> dict[str, Any]:
    payload = SPEC_ADAPTERS[spec.kind].dump_python(spec, mode="json", exclude={KIND_KEY})
    return {KIND_KEY: spec.kind.value, **payload}


def load_spec(data: Mapping[str, Any]) -> DeploymentSpec:
    """Validate ``data`` into the spec variant named by its ``kind`` (``cluster`` if absent)."""

    payload = dict(data)
    kind = DeploymentKind(payload.pop(KIND_KEY, DeploymentKind.CLUSTER))
    return SPEC_ADAPTERS[kind].validate_python(payload)
