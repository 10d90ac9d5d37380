"""Connection secrets projected for the database users of a deployment's project."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from dbfleet.domain.model import (
    ConditionReason,
    ConnectionSecret,
    connection_secret_name,
    credential_labels,
)
from dbfleet.domain.ports.persistence import ConcurrentModificationError
from dbfleet.domain.reconciliation import ReconciliationResult

from .workflow import retry_on_conflict

if TYPE_CHECKING:
    from dbfleet.domain.model import ConnectionStrings, DatabaseUser

    from .workflow import DeploymentPass

log = getLogger(__name__)


def connection_data(user: DatabaseUser, strings: ConnectionStrings | None) -> dict[str, str]:
    data = {"username": user.username, "password": user.password}
    if strings is None:
        return data
    for key, value in (
        ("connectionStringStandard", strings.standard),
        ("connectionStringStandardSrv", strings.standard_srv),
        ("connectionStringPrivate", strings.private),
        ("connectionStringPrivateSrv", strings.private_srv),
        ("connectionStringPrivateShard", strings.private_shard),
    ):
        if value:
            data[key] = value
    return data


def reconcile_connection_secrets(run: DeploymentPass) -> ReconciliationResult:
    """Upsert one secret per qualifying user and drop the ones no longer backed by a user.

    A user qualifies when it is ready and either has no deployment scopes or
    lists this deployment among them.
    """

    strings = run.observed.connection_strings if run.observed is not None else None
    try:
        names = retry_on_conflict(
            lambda: _project_secrets(run, strings),
            retries=run.settings.conflict_retries,
            what=f"connection secrets of {run.key}",
        )
    except ConcurrentModificationError as error:
        return ReconciliationResult.from_error(
            ConditionReason.CONNECTION_SECRETS_NOT_CREATED, error
        )
    if not names:
        return ReconciliationResult.ok(unmanaged=True)
    log.debug("Connection secrets of %s: %s", run.key, ", ".join(names))
    return ReconciliationResult.ok()


def _project_secrets(run: DeploymentPass, strings: ConnectionStrings | None) -> list[str]:
    namespace = run.deployment.namespace
    labels = credential_labels(run.project_id, run.deployment_name)
    with run.unit_of_work_factory() as uow:
        secrets = uow.repositories.connection_secrets
        existing = {secret.name: secret for secret in secrets.matching_labels(namespace, labels)}
        changed = False
        kept: list[str] = []
        for user in uow.repositories.database_users.for_project(namespace, run.project_id):
            if not user.ready:
                log.debug("Database user %s is not ready; no connection secret", user.key)
                continue
            if not user.grants_access_to(run.deployment_name):
                continue
            name = connection_secret_name(run.project_id, run.deployment_name, user.username)
            data = connection_data(user, strings)
            secret = existing.get(name) or secrets.get(namespace, name)
            if secret is None:
                log.info("Creating connection secret %s/%s", namespace, name)
                secrets.add(
                    ConnectionSecret(namespace=namespace, name=name, labels=labels, data=data)
                )
                changed = True
            elif secret.data != data or secret.labels != labels:
                log.info("Updating connection secret %s", secret.key)
                secret.labels = dict(labels)
                secret.data = data
                changed = True
            kept.append(name)
        for name, secret in existing.items():
            if name not in kept:
                log.info("Removing stale connection secret %s", secret.key)
                secrets.remove(secret)
                changed = True
        if changed:
            uow.commit()
    return kept


def remove_connection_secrets(run: DeploymentPass) -> int:
    """Delete every connection secret projected for the deployment."""

    def remove() -> int:
        labels = credential_labels(run.project_id, run.deployment_name)
        with run.unit_of_work_factory() as uow:
            secrets = uow.repositories.connection_secrets
            stale = secrets.matching_labels(run.deployment.namespace, labels)
            for secret in stale:
                secrets.remove(secret)
            if stale:
                uow.commit()
            return len(stale)

    removed = retry_on_conflict(
        remove,
        retries=run.settings.conflict_retries,
        what=f"connection secrets of {run.key}",
    )
    if removed:
        log.info("Removed %s connection secret(s) of %s", removed, run.key)
    return removed
