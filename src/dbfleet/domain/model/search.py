"""Search indexes and the shared analyzer configuration they reference."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar

from dbfleet.domain.model.record import Record


@dataclass(eq=False, kw_only=True)
class SearchIndexConfig(Record):
    """Analyzer settings shared by every ``search`` index that references them."""

    KIND: ClassVar[str] = "SearchIndexConfig"

    analyzer: str | None = None
    search_analyzer: str | None = None
    analyzers: list[dict[str, object]] = field(default_factory=list)
    stored_source: object | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class SearchIndex:
    """A fully resolved index definition.

    Desired indexes have no ``id`` or ``status``; observed ones carry both.
    """

    name: str
    database: str
    collection: str
    type: str
    analyzer: str | None = None
    search_analyzer: str | None = None
    analyzers: tuple[dict[str, object], ...] = ()
    mappings: dict[str, object] | None = None
    synonyms: tuple[dict[str, object], ...] = ()
    stored_source: object | None = None
    fields: tuple[dict[str, object], ...] = ()
    id: str | None = None
    status: str | None = None


def _empty_to_none(value: object) -> object:
    if value in (None, "", [], (), {}):
        return None
    if isinstance(value, tuple):
        return list(value)
    return value


_DEFINITION_FIELDS = (
    "database",
    "collection",
    "type",
    "analyzer",
    "search_analyzer",
    "analyzers",
    "mappings",
    "synonyms",
    "stored_source",
    "fields",
)


def same_definition(left: SearchIndex, right: SearchIndex) -> bool:
    """Compare two indexes ignoring server-assigned fields; null and empty are equal."""

    return all(
        _empty_to_none(getattr(left, name)) == _empty_to_none(getattr(right, name))
        for name in _DEFINITION_FIELDS
    )
