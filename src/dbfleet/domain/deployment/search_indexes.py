"""Search indexes of a cluster.

Index ids assigned by the provider are remembered in the deployment status and
are the only way an existing index is found again. Every declared index is
resolved into a full definition (``search`` indexes pull their analyzers from a
shared config record), diffed by name against what the remembered ids point to,
and handled one by one. Per-index outcomes are folded into ``SearchIndexesReady``.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from logging import getLogger
from operator import attrgetter
from typing import TYPE_CHECKING, Final

from dbfleet.domain.model import (
    ConditionReason,
    ConditionType,
    SearchIndex,
    SearchIndexStatus,
    SearchIndexStatusKind,
    SearchIndexType,
    same_definition,
)
from dbfleet.domain.ports.provider import ProviderAPIError
from dbfleet.domain.reconciliation import (
    ReconciliationError,
    ReconciliationResult,
    aggregate,
    diff,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

    from dbfleet.domain.model import ResourceRef, SearchIndexConfig, SearchIndexSpec

    from .workflow import DeploymentPass

log = getLogger(__name__)

INDEX_STATUS_READY: Final[str] = "READY"


class InvalidIndexError(ReconciliationError):
    """A declared index that cannot be turned into a provider definition."""

    def __init__(
        self,
        message: str,
        *,
        reason: ConditionReason = ConditionReason.SEARCH_INDEX_STATUS_ERROR,
    ) -> None:
        super().__init__(message)
        self.reason = reason


def resolve_index(
    declared: SearchIndexSpec,
    configs: dict[ResourceRef, SearchIndexConfig],
) -> SearchIndex:
    """Build the full definition of ``declared``; raise ``InvalidIndexError`` if impossible."""

    if declared.type == SearchIndexType.SEARCH:
        if declared.config_ref is None:
            raise InvalidIndexError(
                f"index '{declared.name}' has type '{SearchIndexType.SEARCH}' "
                "but no search configuration reference"
            )
        config = configs.get(declared.config_ref)
        if config is None:
            raise InvalidIndexError(
                f"can not get search index configuration {declared.config_ref} "
                f"for index '{declared.name}'",
                reason=ConditionReason.SEARCH_INDEX_CONFIG_NOT_FOUND,
            )
        return SearchIndex(
            name=declared.name,
            database=declared.database,
            collection=declared.collection,
            type=declared.type,
            analyzer=config.analyzer,
            search_analyzer=config.search_analyzer,
            analyzers=tuple(config.analyzers),
            mappings=declared.mappings,
            synonyms=declared.synonyms,
            stored_source=config.stored_source,
        )
    if declared.type == SearchIndexType.VECTOR:
        return SearchIndex(
            name=declared.name,
            database=declared.database,
            collection=declared.collection,
            type=declared.type,
            fields=declared.fields,
        )
    raise InvalidIndexError(
        f"index '{declared.name}' has unknown type '{declared.type}'. "
        f"Can be either {SearchIndexType.SEARCH} or {SearchIndexType.VECTOR}"
    )


@dataclass(slots=True)
class _IndexBook:
    """Per-index results and status entries collected during one pass."""

    results: list[ReconciliationResult] = field(default_factory=list)
    statuses: dict[str, SearchIndexStatus] = field(default_factory=dict)

    def ready(self, index: SearchIndex) -> None:
        self.statuses[index.name] = SearchIndexStatus(
            name=index.name,
            id=index.id or "",
            status=SearchIndexStatusKind.READY,
            message=_status_message(index),
        )
        self.results.append(ReconciliationResult.ok())

    def progress(self, index: SearchIndex) -> None:
        message = _status_message(index)
        self.statuses[index.name] = SearchIndexStatus(
            name=index.name,
            id=index.id or "",
            status=SearchIndexStatusKind.IN_PROGRESS,
            message=message,
        )
        self.results.append(
            ReconciliationResult.in_progress(
                ConditionReason.SEARCH_INDEX_STATUS_IN_PROGRESS, message
            )
        )

    def failed(
        self,
        name: str,
        error: Exception,
        *,
        index_id: str | None,
        reason: ConditionReason = ConditionReason.SEARCH_INDEX_STATUS_ERROR,
    ) -> None:
        message = f"error with processing index {name}. err: {error}"
        log.warning("Search index %s failed: %s", name, error)
        self.statuses[name] = SearchIndexStatus(
            name=name,
            id=index_id or "",
            status=SearchIndexStatusKind.ERROR,
            message=message,
        )
        self.results.append(
            ReconciliationResult.from_error(reason, error).with_message(message)
        )

    def removed(self) -> None:
        self.results.append(ReconciliationResult.ok(unmanaged=True))


def _status_message(index: SearchIndex) -> str:
    return f"search index status: {index.status or 'UNKNOWN'}"


def _is_settled(index: SearchIndex) -> bool:
    return not index.status or index.status == INDEX_STATUS_READY


def reconcile_search_indexes(run: DeploymentPass) -> ReconciliationResult:
    context = run.context
    declared = run.cluster_spec.search_indexes

    names = [index.name for index in declared]
    if len(set(names)) != len(names):
        result = ReconciliationResult.terminate(
            ConditionReason.SEARCH_INDEXES_NAMES_NOT_UNIQUE, "every index 'Name' must be unique"
        )
        return context.apply_result(ConditionType.SEARCH_INDEXES_READY, result)

    book = _IndexBook()
    blocked: set[str] = set()
    observed = _observe_previous(run, book, blocked)
    desired = _resolve_declared(run, declared, observed, book, blocked)

    changes = diff(
        [index for index in desired if index.name not in blocked],
        [index for index in observed if index.name not in blocked],
        key=attrgetter("name"),
        equals=same_definition,
    )
    for index in changes.to_create:
        _create(run, book, index)
    for match in (*changes.to_update, *changes.to_keep):
        _sync(run, book, match.desired, match.observed)
    for index in changes.to_delete:
        _delete(run, book, index)

    ordered = [book.statuses[name] for name in names if name in book.statuses]
    ordered += [status for name, status in book.statuses.items() if name not in names]
    context.update_status(search_indexes=tuple(ordered))

    return context.apply_result(
        ConditionType.SEARCH_INDEXES_READY,
        _fold(book.results),
        ready_reason=ConditionReason.SEARCH_INDEXES_READY,
    )


def _observe_previous(
    run: DeploymentPass,
    book: _IndexBook,
    blocked: set[str],
) -> list[SearchIndex]:
    observed: dict[str, SearchIndex] = {}
    for previous in run.deployment.status.search_indexes:
        if not previous.id:
            continue
        try:
            found = run.observer.search_index(run.project_id, run.deployment_name, previous.id)
        except ProviderAPIError as error:
            book.failed(previous.name, error, index_id=previous.id)
            blocked.add(previous.name)
            continue
        if found is None:
            log.debug("Search index %s (%s) no longer exists", previous.name, previous.id)
            continue
        observed[found.name] = found
    return list(observed.values())


def _resolve_declared(
    run: DeploymentPass,
    declared: Iterable[SearchIndexSpec],
    observed: list[SearchIndex],
    book: _IndexBook,
    blocked: set[str],
) -> list[SearchIndex]:
    declared = list(declared)
    configs = _load_configs(run, declared)
    observed_ids = {index.name: index.id for index in observed}
    resolved: list[SearchIndex] = []
    for spec in declared:
        if spec.name in blocked:
            continue
        try:
            resolved.append(resolve_index(spec, configs))
        except InvalidIndexError as error:
            book.failed(spec.name, error, index_id=observed_ids.get(spec.name), reason=error.reason)
            blocked.add(spec.name)
    return resolved


def _load_configs(
    run: DeploymentPass,
    declared: list[SearchIndexSpec],
) -> dict[ResourceRef, SearchIndexConfig]:
    refs = {spec.config_ref for spec in declared if spec.config_ref is not None}
    if not refs:
        return {}
    configs: dict[ResourceRef, SearchIndexConfig] = {}
    with run.unit_of_work_factory() as uow:
        for ref in refs:
            config = uow.repositories.search_index_configs.get(ref.namespace, ref.name)
            if config is not None:
                configs[ref] = config
    return configs


def _create(run: DeploymentPass, book: _IndexBook, index: SearchIndex) -> None:
    log.info("Creating search index %s on %s", index.name, run.key)
    try:
        created = run.provider.create_search_index(run.project_id, run.deployment_name, index)
    except ProviderAPIError as error:
        book.failed(index.name, error, index_id=None)
        return
    book.progress(created)


def _sync(
    run: DeploymentPass,
    book: _IndexBook,
    desired: SearchIndex,
    observed: SearchIndex,
) -> None:
    if not _is_settled(observed):
        # the provider is still building the index; nothing can be changed meanwhile
        book.progress(observed)
        return
    if same_definition(desired, observed):
        book.ready(observed)
        return
    log.info("Updating search index %s on %s", desired.name, run.key)
    try:
        updated = run.provider.update_search_index(
            run.project_id, run.deployment_name, replace(desired, id=observed.id)
        )
    except ProviderAPIError as error:
        book.failed(desired.name, error, index_id=observed.id)
        return
    book.progress(updated)


def _delete(run: DeploymentPass, book: _IndexBook, index: SearchIndex) -> None:
    if index.id is None:
        book.removed()
        return
    log.info("Deleting search index %s from %s", index.name, run.key)
    try:
        run.provider.delete_search_index(run.project_id, run.deployment_name, index.id)
    except ProviderAPIError as error:
        book.failed(index.name, error, index_id=index.id)
        return
    book.removed()


def _fold(results: list[ReconciliationResult]) -> ReconciliationResult:
    folded = aggregate(results)
    if folded.is_terminate:
        return ReconciliationResult.terminate(
            ConditionReason.SEARCH_INDEXES_NOT_ALL_READY,
            ReconciliationError(folded.message),
        )
    if folded.is_in_progress:
        return ReconciliationResult.in_progress(
            ConditionReason.SEARCH_INDEXES_NOT_READY, folded.message
        )
    return folded
