from __future__ import annotations

from dataclasses import dataclass

import pytest

from dbfleet.domain.reconciliation import DuplicateKeyError, Match, diff


@dataclass(frozen=True)
class Item:
    name: str
    size: int = 1


def by_name(item: Item) -> str:
    return item.name


def test_diff_partitions_by_identity_and_value() -> None:
    desired = [Item("a"), Item("b", 2), Item("c")]
    observed = [Item("b", 1), Item("c"), Item("d")]

    result = diff(desired, observed, key=by_name)

    assert result.to_create == (Item("a"),)
    assert result.to_update == (Match(Item("b", 2), Item("b", 1)),)
    assert result.to_keep == (Match(Item("c"), Item("c")),)
    assert result.to_delete == (Item("d"),)
    assert not result.in_sync


def test_diff_with_empty_desired_deletes_everything() -> None:
    observed = [Item("a"), Item("b")]

    result = diff([], observed, key=by_name)

    assert result.to_delete == tuple(observed)
    assert result.to_create == ()
    assert result.to_update == ()


def test_diff_of_equal_collections_is_in_sync() -> None:
    items = [Item("a"), Item("b")]

    result = diff(items, list(items), key=by_name)

    assert result.in_sync
    assert [match.desired for match in result.to_keep] == items


def test_applying_a_diff_reaches_a_fixed_point() -> None:
    desired = [Item("a", 3), Item("b")]
    observed = [Item("a", 1), Item("z")]

    first = diff(desired, observed, key=by_name)
    applied = [
        *first.to_create,
        *(match.desired for match in first.to_update),
        *(match.desired for match in first.to_keep),
    ]

    assert diff(desired, applied, key=by_name).in_sync


def test_diff_supports_different_observed_types() -> None:
    desired = [Item("a", 2)]
    observed = [{"id": "a", "size": 2}, {"id": "x", "size": 5}]

    result = diff(
        desired,
        observed,
        key=by_name,
        observed_key=lambda entry: entry["id"],
        equals=lambda wanted, existing: wanted.size == existing["size"],
    )

    assert [match.observed for match in result.to_keep] == [{"id": "a", "size": 2}]
    assert result.to_delete == ({"id": "x", "size": 5},)


def test_diff_is_deterministic() -> None:
    desired = [Item(name) for name in "edcba"]
    observed = [Item(name, 2) for name in "bdfh"]

    assert diff(desired, observed, key=by_name) == diff(desired, observed, key=by_name)
    assert [item.name for item in diff(desired, observed, key=by_name).to_create] == [
        "e",
        "c",
        "a",
    ]


@pytest.mark.parametrize(
    ("desired", "observed", "side"),
    [
        ([Item("a"), Item("a", 2)], [], "desired"),
        ([], [Item("b"), Item("b")], "observed"),
    ],
)
def test_diff_rejects_duplicate_keys(
    desired: list[Item],
    observed: list[Item],
    side: str,
) -> None:
    with pytest.raises(DuplicateKeyError, match=f"duplicate {side} key") as excinfo:
        diff(desired, observed, key=by_name)

    assert excinfo.value.side == side
