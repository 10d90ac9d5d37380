"""Desired-state documents read from JSON files.

A document is one record: a ``kind`` (``Deployment``, ``BackupSchedule``,
``BackupPolicy``, ``SearchIndexConfig`` or ``DatabaseUser``), an optional
``namespace`` (``default``) and a ``name``, followed by the record's fields in
snake case. References to other records are written as ``"namespace/name"`` or
just ``"name"`` for the document's own namespace. A file holds one document or
a list of them.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from logging import getLogger
from typing import TYPE_CHECKING, Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from dbfleet.adapters.specs import load_spec
from dbfleet.domain.model import (
    BackupPolicy,
    BackupPolicyItem,
    BackupSchedule,
    CopySetting,
    DatabaseUser,
    Deployment,
    ResourceRef,
    SearchIndexConfig,
    UserScope,
)

if TYPE_CHECKING:
    from pathlib import Path

    from dbfleet.domain.model import DeploymentSpec, Record

log = getLogger(__name__)


class DocumentError(ValueError):
    """Raised for a document that cannot be turned into a record."""


def _ref(value: str | dict[str, str], namespace: str) -> dict[str, str]:
    if isinstance(value, dict):
        return {"namespace": value.get("namespace", namespace), "name": value["name"]}
    ref = ResourceRef.parse(value, default_namespace=namespace)
    return {"namespace": ref.namespace, "name": ref.name}


class RecordDocument(BaseModel, ABC):
    model_config = ConfigDict(extra="forbid", frozen=True)

    namespace: str = "default"
    name: str = Field(min_length=1)

    @property
    def ref(self) -> ResourceRef:
        return ResourceRef(namespace=self.namespace, name=self.name)

    @abstractmethod
    def desired_fields(self) -> dict[str, Any]:
        """Record attributes owned by the document author."""

    @abstractmethod
    def to_record(self) -> Record: ...


class DeploymentDocument(RecordDocument):
    kind: Literal["Deployment"]
    project_id: str
    spec: dict[str, Any]
    keep_on_delete: bool = False
    external_project: bool = False

    def deployment_spec(self) -> DeploymentSpec:
        data = dict(self.spec)
        if data.get("backup_schedule_ref") is not None:
            data["backup_schedule_ref"] = _ref(data["backup_schedule_ref"], self.namespace)
        indexes = []
        for index in data.get("search_indexes", ()):
            entry = dict(index)
            if entry.get("config_ref") is not None:
                entry["config_ref"] = _ref(entry["config_ref"], self.namespace)
            indexes.append(entry)
        if indexes:
            data["search_indexes"] = indexes
        return load_spec(data)

    def desired_fields(self) -> dict[str, Any]:
        return {
            "project_id": self.project_id,
            "spec": self.deployment_spec(),
            "keep_on_delete": self.keep_on_delete,
            "external_project": self.external_project,
        }

    def to_record(self) -> Deployment:
        return Deployment(namespace=self.namespace, name=self.name, **self.desired_fields())


class BackupScheduleDocument(RecordDocument):
    kind: Literal["BackupSchedule"]
    policy_ref: str | dict[str, str]
    auto_export_enabled: bool = False
    reference_hour_of_day: int | None = Field(default=None, ge=0, le=23)
    reference_minute_of_hour: int | None = Field(default=None, ge=0, le=59)
    restore_window_days: int | None = Field(default=None, ge=0)
    use_org_and_group_names_in_export_prefix: bool = False
    copy_settings: tuple[CopySetting, ...] = ()
    update_snapshots: bool = False

    def desired_fields(self) -> dict[str, Any]:
        policy = _ref(self.policy_ref, self.namespace)
        return {
            "policy_ref": ResourceRef(namespace=policy["namespace"], name=policy["name"]),
            "auto_export_enabled": self.auto_export_enabled,
            "reference_hour_of_day": self.reference_hour_of_day,
            "reference_minute_of_hour": self.reference_minute_of_hour,
            "restore_window_days": self.restore_window_days,
            "use_org_and_group_names_in_export_prefix": (
                self.use_org_and_group_names_in_export_prefix
            ),
            "copy_settings": self.copy_settings,
            "update_snapshots": self.update_snapshots,
        }

    def to_record(self) -> BackupSchedule:
        return BackupSchedule(namespace=self.namespace, name=self.name, **self.desired_fields())


class BackupPolicyDocument(RecordDocument):
    kind: Literal["BackupPolicy"]
    items: tuple[BackupPolicyItem, ...] = ()

    def desired_fields(self) -> dict[str, Any]:
        return {"items": self.items}

    def to_record(self) -> BackupPolicy:
        return BackupPolicy(namespace=self.namespace, name=self.name, **self.desired_fields())


class SearchIndexConfigDocument(RecordDocument):
    kind: Literal["SearchIndexConfig"]
    analyzer: str | None = None
    search_analyzer: str | None = None
    analyzers: list[dict[str, Any]] = Field(default_factory=list)
    stored_source: Any = None

    def desired_fields(self) -> dict[str, Any]:
        return {
            "analyzer": self.analyzer,
            "search_analyzer": self.search_analyzer,
            "analyzers": list(self.analyzers),
            "stored_source": self.stored_source,
        }

    def to_record(self) -> SearchIndexConfig:
        return SearchIndexConfig(namespace=self.namespace, name=self.name, **self.desired_fields())


class DatabaseUserDocument(RecordDocument):
    kind: Literal["DatabaseUser"]
    project_id: str
    username: str
    password: str = ""
    scopes: tuple[UserScope, ...] = ()
    ready: bool = False

    def desired_fields(self) -> dict[str, Any]:
        return {
            "project_id": self.project_id,
            "username": self.username,
            "password": self.password,
            "scopes": self.scopes,
            "ready": self.ready,
        }

    def to_record(self) -> DatabaseUser:
        return DatabaseUser(namespace=self.namespace, name=self.name, **self.desired_fields())


Document = Annotated[
    DeploymentDocument
    | BackupScheduleDocument
    | BackupPolicyDocument
    | SearchIndexConfigDocument
    | DatabaseUserDocument,
    Field(discriminator="kind"),
]

_DOCUMENTS: TypeAdapter[list[Document]] = TypeAdapter(list[Document])


def parse_documents(data: Any) -> list[Document]:
    """Validate one document or a list of documents."""

    items = data if isinstance(data, list) else [data]
    try:
        documents = _DOCUMENTS.validate_python(items)
        for document in documents:
            if isinstance(document, DeploymentDocument):
                document.deployment_spec()
    except (ValidationError, ValueError, KeyError) as error:
        raise DocumentError(f"invalid document: {error}") from error
    return documents


def load_documents(path: Path) -> list[Document]:
    log.debug("Reading documents from %s", path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as error:
        raise DocumentError(f"{path} is not valid JSON: {error}") from error
    return parse_documents(data)
