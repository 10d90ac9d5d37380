from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine  # noqa: TC002

from dbfleet.adapters.sqlalchemy import start_mappers
from dbfleet.adapters.sqlalchemy.migrations import upgrade_head
from dbfleet.adapters.sqlalchemy.unit_of_work import SqlAlchemyStoreUnitOfWork, shutdown, startup
from dbfleet.domain.deployment import ControllerSettings, DeploymentController
from tests.support.provider import FakeProvider

os.environ.setdefault("DATABASE_URI", "sqlite+pysqlite:///:memory:")

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator
    from pathlib import Path

    from dbfleet.domain.ports.unit_of_work import StoreUnitOfWork


@pytest.fixture
def sqlite_engine(tmp_path: Path) -> Iterator[Engine]:
    # a file database so that worker threads share the same data
    engine = create_engine(f"sqlite+pysqlite:///{tmp_path / 'dbfleet.db'}", future=True)
    start_mappers()
    upgrade_head(engine=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def store(sqlite_engine: Engine) -> Iterator[Callable[[], StoreUnitOfWork]]:
    startup(engine=sqlite_engine, force=True)

    def factory() -> StoreUnitOfWork:
        return SqlAlchemyStoreUnitOfWork()

    try:
        yield factory
    finally:
        shutdown()


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def settings() -> ControllerSettings:
    return ControllerSettings(conflict_retries=3, gc_concurrency=2)


@pytest.fixture
def controller(
    provider: FakeProvider,
    store: Callable[[], StoreUnitOfWork],
    settings: ControllerSettings,
) -> DeploymentController:
    return DeploymentController(provider=provider, unit_of_work_factory=store, settings=settings)
