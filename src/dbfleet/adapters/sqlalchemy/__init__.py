"""SQLAlchemy adapter package for dbfleet."""

from __future__ import annotations

from .mappings import (
    TABLE_BY_RECORD,
    create_all_tables,
    mapper_registry,
    start_mappers,
)
from .repositories import (
    SqlAlchemyBackupPolicyRepository,
    SqlAlchemyBackupScheduleRepository,
    SqlAlchemyConnectionSecretRepository,
    SqlAlchemyDatabaseUserRepository,
    SqlAlchemyDeploymentRepository,
    SqlAlchemyRecordRepository,
    SqlAlchemySearchIndexConfigRepository,
)
from .unit_of_work import (
    SqlAlchemyStoreUnitOfWork,
    StartupError,
    shutdown,
    startup,
)

__all__ = [
    "TABLE_BY_RECORD",
    "SqlAlchemyBackupPolicyRepository",
    "SqlAlchemyBackupScheduleRepository",
    "SqlAlchemyConnectionSecretRepository",
    "SqlAlchemyDatabaseUserRepository",
    "SqlAlchemyDeploymentRepository",
    "SqlAlchemyRecordRepository",
    "SqlAlchemySearchIndexConfigRepository",
    "SqlAlchemyStoreUnitOfWork",
    "StartupError",
    "create_all_tables",
    "mapper_registry",
    "shutdown",
    "start_mappers",
    "startup",
]
