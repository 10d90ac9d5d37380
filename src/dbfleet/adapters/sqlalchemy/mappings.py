"""SQLAlchemy mapping metadata for the dbfleet records."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from functools import cache
from typing import TYPE_CHECKING, Any

from pydantic import TypeAdapter
from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Dialect,
    Integer,
    String,
    Table,
    TypeDecorator,
    orm,
)

from dbfleet.adapters.specs import dump_spec, load_spec
from dbfleet.domain.model import (
    BackupPolicy,
    BackupPolicyItem,
    BackupSchedule,
    ConnectionSecret,
    CopySetting,
    DatabaseUser,
    Deployment,
    DeploymentStatus,
    ResourceRef,
    SearchIndexConfig,
    UserScope,
)

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

    from dbfleet.domain.model import DeploymentSpec, Record

log = logging.getLogger(__name__)


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


class PydanticJSON(TypeDecorator[Any]):
    """JSON column holding domain values, (de)serialized through a pydantic ``TypeAdapter``."""

    impl = JSON
    cache_ok = True

    def __init__(self, annotation: Any) -> None:
        super().__init__()
        self.annotation = annotation
        self._adapter: TypeAdapter[Any] = TypeAdapter(annotation)

    def process_bind_param(self, value: Any, dialect: Dialect) -> Any:
        _ = dialect
        if value is None:
            return None
        return self._adapter.dump_python(value, mode="json")

    def process_result_value(self, value: Any, dialect: Dialect) -> Any:
        _ = dialect
        if value is None:
            return None
        return self._adapter.validate_python(value)


class DeploymentSpecType(TypeDecorator[Any]):
    """Deployment spec stored as JSON tagged with its ``kind``."""

    impl = JSON
    cache_ok = True

    def process_bind_param(self, value: DeploymentSpec | None, dialect: Dialect) -> Any:
        _ = dialect
        if value is None:
            return None
        return dump_spec(value)

    def process_result_value(self, value: Any, dialect: Dialect) -> DeploymentSpec | None:
        _ = dialect
        if value is None:
            return None
        return load_spec(value)


mapper_registry = orm.registry()
mapper_registry.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_label)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

StringList = PydanticJSON(list[str])
StringMap = PydanticJSON(dict[str, str])


def _record_columns() -> list[Column[Any]]:
    """Columns shared by every record table: identity, deletion guards, version."""

    return [
        Column("namespace", String, primary_key=True),
        Column("name", String, primary_key=True),
        Column("finalizers", StringList, nullable=False),
        Column("deletion_requested_at", UTCDateTime(), nullable=True),
        Column("resource_version", Integer, nullable=False),
    ]


deployment_table = Table(
    "deployment",
    mapper_registry.metadata,
    *_record_columns(),
    Column("project_id", String, nullable=False, index=True),
    Column("spec", DeploymentSpecType(), nullable=False),
    Column("status", PydanticJSON(DeploymentStatus), nullable=False),
    Column("generation", Integer, nullable=False, default=1),
    Column("keep_on_delete", Boolean, nullable=False, default=False),
    Column("external_project", Boolean, nullable=False, default=False),
)

backup_schedule_table = Table(
    "backup_schedule",
    mapper_registry.metadata,
    *_record_columns(),
    Column("policy_ref", PydanticJSON(ResourceRef), nullable=False),
    Column("auto_export_enabled", Boolean, nullable=False, default=False),
    Column("reference_hour_of_day", Integer, nullable=True),
    Column("reference_minute_of_hour", Integer, nullable=True),
    Column("restore_window_days", Integer, nullable=True),
    Column("use_org_and_group_names_in_export_prefix", Boolean, nullable=False, default=False),
    Column("copy_settings", PydanticJSON(tuple[CopySetting, ...]), nullable=False),
    Column("update_snapshots", Boolean, nullable=False, default=False),
    Column("deployment_ids", StringList, nullable=False),
)

backup_policy_table = Table(
    "backup_policy",
    mapper_registry.metadata,
    *_record_columns(),
    Column("items", PydanticJSON(tuple[BackupPolicyItem, ...]), nullable=False),
    Column("backup_schedule_ids", StringList, nullable=False),
)

search_index_config_table = Table(
    "search_index_config",
    mapper_registry.metadata,
    *_record_columns(),
    Column("analyzer", String, nullable=True),
    Column("search_analyzer", String, nullable=True),
    Column("analyzers", PydanticJSON(list[dict[str, Any]]), nullable=False),
    Column("stored_source", PydanticJSON(Any), nullable=True),
)

database_user_table = Table(
    "database_user",
    mapper_registry.metadata,
    *_record_columns(),
    Column("project_id", String, nullable=False, index=True),
    Column("username", String, nullable=False),
    Column("password", String, nullable=False, default=""),
    Column("scopes", PydanticJSON(tuple[UserScope, ...]), nullable=False),
    Column("ready", Boolean, nullable=False, default=False),
)

connection_secret_table = Table(
    "connection_secret",
    mapper_registry.metadata,
    *_record_columns(),
    Column("labels", StringMap, nullable=False),
    Column("data", StringMap, nullable=False),
)

TABLE_BY_RECORD: dict[type[Record], Table] = {
    Deployment: deployment_table,
    BackupSchedule: backup_schedule_table,
    BackupPolicy: backup_policy_table,
    SearchIndexConfig: search_index_config_table,
    DatabaseUser: database_user_table,
    ConnectionSecret: connection_secret_table,
}


@cache
def start_mappers() -> orm.registry:
    """Map every record class onto its table with optimistic version counting."""

    log.info("Starting SQLAlchemy mappers")
    for record_cls, table in TABLE_BY_RECORD.items():
        mapper_registry.map_imperatively(
            record_cls,
            table,
            version_id_col=table.c.resource_version,
        )
    orm.configure_mappers()
    return mapper_registry


def create_all_tables(engine: Engine) -> None:
    """Create every mapped table without running migrations (primarily for tests)."""

    start_mappers()
    mapper_registry.metadata.create_all(engine)
