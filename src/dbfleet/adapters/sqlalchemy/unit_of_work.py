"""SQLAlchemy-backed unit of work for the desired-state store."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING, Literal

from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from dbfleet.adapters.sqlalchemy.mappings import start_mappers
from dbfleet.adapters.sqlalchemy.migrations import upgrade_head
from dbfleet.adapters.sqlalchemy.repositories import (
    SqlAlchemyBackupPolicyRepository,
    SqlAlchemyBackupScheduleRepository,
    SqlAlchemyConnectionSecretRepository,
    SqlAlchemyDatabaseUserRepository,
    SqlAlchemyDeploymentRepository,
    SqlAlchemySearchIndexConfigRepository,
)
from dbfleet.config import get_database_config
from dbfleet.domain.ports.persistence import ConcurrentModificationError
from dbfleet.domain.ports.unit_of_work import RepositoryCollection, StoreRepositories

if TYPE_CHECKING:
    from types import TracebackType

    from sqlalchemy.engine import Engine

log = getLogger(__name__)


class StartupError(RuntimeError):
    """Raised when a SQLAlchemy unit of work is used before initialisation."""


@dataclass(slots=True)
class _AdapterState:
    _engine: Engine | None = None
    _session_factory: sessionmaker[Session] | None = None

    @property
    def engine(self) -> Engine | None:
        return self._engine

    @engine.setter
    def engine(self, value: Engine | None) -> None:
        self._session_factory = None
        self._engine = value

    @property
    def session_factory(self) -> sessionmaker[Session]:
        if self._engine is None:
            raise StartupError(
                "SQLAlchemy adapter not initialised. Call dbfleet.adapters.sqlalchemy."
                "unit_of_work.startup() before requesting a unit of work."
            )
        if self._session_factory is None:
            self._session_factory = sessionmaker(bind=self._engine, expire_on_commit=False)
        return self._session_factory


_STATE = _AdapterState()


def startup(
    *,
    engine: Engine | None = None,
    database_uri: str | None = None,
    force: bool = False,
) -> None:
    """Initialise the SQLAlchemy engine, migrate the schema and build the session factory."""

    if _STATE.engine is not None and not force:
        raise StartupError(
            "SQLAlchemy adapter already initialised. Pass force=True to reconfigure."
        )

    resolved_engine = engine or create_engine(
        database_uri or get_database_config().uri, future=True
    )
    start_mappers()
    upgrade_head(engine=resolved_engine)
    _STATE.engine = resolved_engine


def is_started() -> bool:
    """Return whether the adapter has been initialised."""

    return _STATE.engine is not None


def shutdown() -> None:
    """Dispose the managed engine and reset state (primarily for tests)."""

    if _STATE.engine is not None:
        _STATE.engine.dispose()
    _STATE.engine = None


class BaseSqlAlchemyUnitOfWork[TRepositories: RepositoryCollection](ABC):
    """Generic SQLAlchemy unit of work with pluggable repository collections.

    ``commit`` turns lost optimistic races (a stale ``resource_version`` or a
    concurrent insert of the same key) into ``ConcurrentModificationError``.
    """

    def __init__(self) -> None:
        self.session_factory: sessionmaker[Session] = _STATE.session_factory
        self._session: Session | None = None

    @abstractmethod
    def _build_repositories(self, session: Session) -> TRepositories: ...

    def __enter__(self) -> BaseSqlAlchemyUnitOfWork[TRepositories]:
        self.session = self.session_factory()
        self._repositories = self._build_repositories(self.session)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        if exc_type is not None:
            self.rollback()
        self.session.close()
        self.session = None
        return False

    def commit(self) -> None:
        try:
            self.session.commit()
        except (StaleDataError, IntegrityError) as error:
            self.session.rollback()
            log.debug("Commit lost an optimistic race: %s", error)
            raise ConcurrentModificationError(str(error)) from error

    def rollback(self) -> None:
        self.session.rollback()

    @property
    def repositories(self) -> TRepositories:
        if self._session is None:
            raise StartupError("Unit of work session not initialised")
        return self._repositories

    @property
    def session(self) -> Session:
        if self._session is None:
            raise StartupError("Unit of work session not initialised")
        return self._session

    @session.setter
    def session(self, session: Session | None) -> None:
        if self._session is not None and session is not None:
            raise StartupError("Unit of work session already initialised")
        self._session = session


class SqlAlchemyStoreUnitOfWork(BaseSqlAlchemyUnitOfWork[StoreRepositories]):
    """Unit of work over every record kind of the desired-state store."""

    def _build_repositories(self, session: Session) -> StoreRepositories:
        return StoreRepositories(
            deployments=SqlAlchemyDeploymentRepository(session),
            backup_schedules=SqlAlchemyBackupScheduleRepository(session),
            backup_policies=SqlAlchemyBackupPolicyRepository(session),
            search_index_configs=SqlAlchemySearchIndexConfigRepository(session),
            database_users=SqlAlchemyDatabaseUserRepository(session),
            connection_secrets=SqlAlchemyConnectionSecretRepository(session),
        )


if TYPE_CHECKING:
    from dbfleet.domain.ports.unit_of_work import StoreUnitOfWork

    _uow_check: StoreUnitOfWork = SqlAlchemyStoreUnitOfWork()
