"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import select

from dbfleet.adapters.sqlalchemy.mappings import (
    TABLE_BY_RECORD,
    database_user_table,
)
from dbfleet.domain.model import (
    BackupPolicy,
    BackupSchedule,
    ConnectionSecret,
    DatabaseUser,
    Deployment,
    SearchIndexConfig,
)

if TYPE_CHECKING:
    from collections.abc import Mapping

    from sqlalchemy.orm import Session

    from dbfleet.domain.model import Record


class SqlAlchemyRecordRepository[TRecord: Record]:
    """Shared CRUD for records keyed by ``(namespace, name)``."""

    def __init__(self, session: Session, record_cls: type[TRecord]) -> None:
        self.session = session
        self._record_cls = record_cls
        self._table = TABLE_BY_RECORD[record_cls]

    def add(self, record: TRecord) -> None:
        self.session.add(record)

    def get(self, namespace: str, name: str) -> TRecord | None:
        return self.session.get(self._record_cls, (namespace, name))

    def list_all(self, namespace: str | None = None) -> list[TRecord]:
        stmt = select(self._record_cls)
        if namespace is not None:
            stmt = stmt.where(self._table.c.namespace == namespace)
        stmt = stmt.order_by(self._table.c.namespace, self._table.c.name)
        return list(self.session.execute(stmt).scalars())

    def remove(self, record: TRecord) -> None:
        self.session.delete(record)


class SqlAlchemyDeploymentRepository(SqlAlchemyRecordRepository[Deployment]):
    def __init__(self, session: Session) -> None:
        super().__init__(session, Deployment)


class SqlAlchemyBackupScheduleRepository(SqlAlchemyRecordRepository[BackupSchedule]):
    def __init__(self, session: Session) -> None:
        super().__init__(session, BackupSchedule)

    def referencing_deployment(self, deployment_key: str) -> list[BackupSchedule]:
        return [
            schedule for schedule in self.list_all() if deployment_key in schedule.deployment_ids
        ]


class SqlAlchemyBackupPolicyRepository(SqlAlchemyRecordRepository[BackupPolicy]):
    def __init__(self, session: Session) -> None:
        super().__init__(session, BackupPolicy)


class SqlAlchemySearchIndexConfigRepository(SqlAlchemyRecordRepository[SearchIndexConfig]):
    def __init__(self, session: Session) -> None:
        super().__init__(session, SearchIndexConfig)


class SqlAlchemyDatabaseUserRepository(SqlAlchemyRecordRepository[DatabaseUser]):
    def __init__(self, session: Session) -> None:
        super().__init__(session, DatabaseUser)

    def for_project(self, namespace: str, project_id: str) -> list[DatabaseUser]:
        stmt = (
            select(DatabaseUser)
            .where(database_user_table.c.namespace == namespace)
            .where(database_user_table.c.project_id == project_id)
            .order_by(database_user_table.c.name)
        )
        return list(self.session.execute(stmt).scalars())


class SqlAlchemyConnectionSecretRepository(SqlAlchemyRecordRepository[ConnectionSecret]):
    def __init__(self, session: Session) -> None:
        super().__init__(session, ConnectionSecret)

    def matching_labels(
        self,
        namespace: str,
        labels: Mapping[str, str],
    ) -> list[ConnectionSecret]:
        return [
            secret
            for secret in self.list_all(namespace)
            if all(secret.labels.get(key) == value for key, value in labels.items())
        ]
