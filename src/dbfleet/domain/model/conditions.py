"""Status conditions persisted per sub-resource kind."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from dbfleet.domain.model.enums import ConditionReason, ConditionType

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Iterator


def utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True, kw_only=True)
class StatusCondition:
    type: ConditionType
    status: bool
    reason: ConditionReason | None = None
    message: str = ""
    last_transition_time: datetime


class ConditionSet:
    """At most one condition per type; setting a type overwrites it.

    ``last_transition_time`` is carried over unless the boolean status flips, so
    repeating the same outcome every pass does not churn the timestamp.
    """

    def __init__(
        self,
        conditions: Iterable[StatusCondition] = (),
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._conditions: dict[ConditionType, StatusCondition] = {}
        self._clock = clock
        for condition in conditions:
            self._conditions[condition.type] = condition

    def __iter__(self) -> Iterator[StatusCondition]:
        return iter(self.as_tuple())

    def __len__(self) -> int:
        return len(self._conditions)

    def __contains__(self, condition_type: object) -> bool:
        return condition_type in self._conditions

    def get(self, condition_type: ConditionType) -> StatusCondition | None:
        return self._conditions.get(condition_type)

    def reason_of(self, condition_type: ConditionType) -> ConditionReason | None:
        condition = self._conditions.get(condition_type)
        return condition.reason if condition is not None else None

    def is_true(self, condition_type: ConditionType) -> bool:
        condition = self._conditions.get(condition_type)
        return condition is not None and condition.status

    def set(
        self,
        condition_type: ConditionType,
        *,
        status: bool,
        reason: ConditionReason | None = None,
        message: str = "",
    ) -> StatusCondition:
        previous = self._conditions.get(condition_type)
        if previous is not None and previous.status == status:
            condition = replace(previous, reason=reason, message=message)
        else:
            condition = StatusCondition(
                type=condition_type,
                status=status,
                reason=reason,
                message=message,
                last_transition_time=self._clock(),
            )
        self._conditions[condition_type] = condition
        return condition

    def unset(self, condition_type: ConditionType) -> None:
        self._conditions.pop(condition_type, None)

    def as_tuple(self) -> tuple[StatusCondition, ...]:
        return tuple(sorted(self._conditions.values(), key=lambda item: item.type.value))
