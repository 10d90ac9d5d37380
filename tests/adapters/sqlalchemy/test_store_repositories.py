from __future__ import annotations

from typing import TYPE_CHECKING

from dbfleet.domain.model import ConnectionSecret
from tests.support.records import (
    PROJECT_ID,
    add_records,
    cluster_spec,
    make_deployment,
    make_schedule,
    make_user,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from dbfleet.domain.ports.unit_of_work import StoreUnitOfWork


def test_list_all_orders_by_namespace_and_name(store: Callable[[], StoreUnitOfWork]) -> None:
    add_records(
        store,
        make_deployment(cluster_spec("zeta"), namespace="team-b"),
        make_deployment(cluster_spec("beta"), namespace="team-a"),
        make_deployment(cluster_spec("alpha"), namespace="team-b"),
    )

    with store() as uow:
        everything = [d.key for d in uow.repositories.deployments.list_all()]
        team_b = [d.key for d in uow.repositories.deployments.list_all("team-b")]

    assert everything == ["team-a/beta", "team-b/alpha", "team-b/zeta"]
    assert team_b == ["team-b/alpha", "team-b/zeta"]


def test_get_returns_none_for_unknown_keys(store: Callable[[], StoreUnitOfWork]) -> None:
    with store() as uow:
        assert uow.repositories.deployments.get("default", "nope") is None


def test_users_are_scoped_to_project_and_namespace(store: Callable[[], StoreUnitOfWork]) -> None:
    add_records(
        store,
        make_user("b-user", username="b"),
        make_user("a-user", username="a"),
        make_user("other-project", username="c", project_id="another"),
        make_user("other-namespace", username="d", namespace="elsewhere"),
    )

    with store() as uow:
        users = uow.repositories.database_users.for_project("default", PROJECT_ID)

    assert [user.name for user in users] == ["a-user", "b-user"]


def test_secrets_match_every_label(store: Callable[[], StoreUnitOfWork]) -> None:
    add_records(
        store,
        ConnectionSecret(namespace="default", name="one", labels={"project": "p", "cluster": "c"}),
        ConnectionSecret(namespace="default", name="two", labels={"project": "p"}),
        ConnectionSecret(namespace="other", name="three", labels={"project": "p", "cluster": "c"}),
    )

    with store() as uow:
        secrets = uow.repositories.connection_secrets.matching_labels(
            "default", {"project": "p", "cluster": "c"}
        )

    assert [secret.name for secret in secrets] == ["one"]


def test_schedules_referencing_a_deployment(store: Callable[[], StoreUnitOfWork]) -> None:
    add_records(
        store,
        make_schedule("daily", deployment_ids=["default/cluster0", "default/cluster1"]),
        make_schedule("weekly", deployment_ids=["default/cluster1"]),
    )

    with store() as uow:
        schedules = uow.repositories.backup_schedules.referencing_deployment("default/cluster0")

    assert [schedule.name for schedule in schedules] == ["daily"]


def test_removed_records_are_gone(store: Callable[[], StoreUnitOfWork]) -> None:
    add_records(store, make_user())

    with store() as uow:
        user = uow.repositories.database_users.get("default", "app-user")
        assert user is not None
        uow.repositories.database_users.remove(user)
        uow.commit()

    with store() as uow:
        assert uow.repositories.database_users.list_all() == []
