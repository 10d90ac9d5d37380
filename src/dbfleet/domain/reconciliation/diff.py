"""Set reconciliation: partition desired vs observed collections into change sets."""

from __future__ import annotations

import operator
from collections.abc import Callable, Hashable, Iterable
from dataclasses import dataclass
from typing import Any, cast


class DuplicateKeyError(ValueError):
    """Raised when a collection holds two items with the same identity."""

    def __init__(self, side: str, key: Hashable) -> None:
        super().__init__(f"duplicate {side} key: {key!r}")
        self.side = side
        self.key = key


@dataclass(frozen=True, slots=True)
class Match[D, O]:
    """A desired item paired with the observed item of the same identity."""

    desired: D
    observed: O


@dataclass(frozen=True, slots=True)
class SetDiff[D, O]:
    to_create: tuple[D, ...] = ()
    to_update: tuple[Match[D, O], ...] = ()
    to_delete: tuple[O, ...] = ()
    to_keep: tuple[Match[D, O], ...] = ()

    @property
    def in_sync(self) -> bool:
        """Nothing to create, update or delete."""

        return not (self.to_create or self.to_update or self.to_delete)


def _index[T](items: Iterable[T], key: Callable[[T], Hashable], side: str) -> dict[Hashable, T]:
    indexed: dict[Hashable, T] = {}
    for item in items:
        item_key = key(item)
        if item_key in indexed:
            raise DuplicateKeyError(side, item_key)
        indexed[item_key] = item
    return indexed


def diff[D, O](
    desired: Iterable[D],
    observed: Iterable[O],
    *,
    key: Callable[[D], Hashable],
    observed_key: Callable[[O], Hashable] | None = None,
    equals: Callable[[D, O], bool] = operator.eq,
) -> SetDiff[D, O]:
    """Compute create/update/delete/keep sets by identity and value equality.

    ``observed_key`` defaults to ``key`` for collections of one item type.
    Output order follows the desired collection for create/update/keep and the
    observed collection for delete, so equal inputs always give equal diffs.
    An empty desired collection turns every observed item into a delete.
    """

    resolved_observed_key = observed_key or cast("Callable[[Any], Hashable]", key)
    desired_by_key = _index(desired, key, "desired")
    observed_by_key = _index(observed, resolved_observed_key, "observed")

    to_create: list[D] = []
    to_update: list[Match[D, O]] = []
    to_keep: list[Match[D, O]] = []
    for item_key, wanted in desired_by_key.items():
        if item_key not in observed_by_key:
            to_create.append(wanted)
            continue
        existing = observed_by_key[item_key]
        if equals(wanted, existing):
            to_keep.append(Match(wanted, existing))
        else:
            to_update.append(Match(wanted, existing))

    to_delete = [
        existing
        for item_key, existing in observed_by_key.items()
        if item_key not in desired_by_key
    ]

    return SetDiff(
        to_create=tuple(to_create),
        to_update=tuple(to_update),
        to_delete=tuple(to_delete),
        to_keep=tuple(to_keep),
    )
