"""Database users and the connection secrets projected for them."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import ClassVar, Final

from dbfleet.domain.model.enums import ScopeType
from dbfleet.domain.model.record import Record

PROJECT_ID_LABEL: Final[str] = "dbfleet.io/project-id"
CLUSTER_NAME_LABEL: Final[str] = "dbfleet.io/cluster-name"
TYPE_LABEL: Final[str] = "dbfleet.io/type"
CREDENTIALS_TYPE: Final[str] = "credentials"

_INVALID_NAME_CHARS = re.compile(r"[^a-z0-9-]+")


@dataclass(frozen=True, slots=True, kw_only=True)
class UserScope:
    name: str
    type: ScopeType = ScopeType.DEPLOYMENT


@dataclass(eq=False, kw_only=True)
class DatabaseUser(Record):
    """A database user whose credentials are materialized by an external store.

    ``ready`` mirrors the user's own Ready condition; only ready users get secrets.
    """

    KIND: ClassVar[str] = "DatabaseUser"

    project_id: str
    username: str
    password: str = ""
    scopes: tuple[UserScope, ...] = ()
    ready: bool = False

    def grants_access_to(self, deployment_name: str) -> bool:
        deployment_scopes = [
            scope.name for scope in self.scopes if scope.type == ScopeType.DEPLOYMENT
        ]
        return not deployment_scopes or deployment_name in deployment_scopes


@dataclass(eq=False, kw_only=True)
class ConnectionSecret(Record):
    KIND: ClassVar[str] = "ConnectionSecret"

    labels: dict[str, str] = field(default_factory=dict)
    data: dict[str, str] = field(default_factory=dict)


def connection_secret_name(project_id: str, deployment_name: str, username: str) -> str:
    """Return a DNS-label friendly secret name for one user of one deployment."""

    raw = f"{project_id}-{deployment_name}-{username}".lower()
    normalized = _INVALID_NAME_CHARS.sub("-", raw).strip("-")
    return re.sub(r"-{2,}", "-", normalized)


def credential_labels(project_id: str, deployment_name: str) -> dict[str, str]:
    return {
        PROJECT_ID_LABEL: project_id,
        CLUSTER_NAME_LABEL: deployment_name,
        TYPE_LABEL: CREDENTIALS_TYPE,
    }
