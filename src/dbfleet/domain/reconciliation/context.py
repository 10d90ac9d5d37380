"""Per-pass working state: condition edits, status changes and cancellation."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Any, cast

from dbfleet.domain.model import ConditionSet, utcnow

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable
    from datetime import datetime

    from dbfleet.domain.model import ConditionReason, ConditionType, StatusCondition

    from .result import ReconciliationResult

log = getLogger(__name__)


class PassCancelledError(RuntimeError):
    """Raised when the driving context cancels a pass; nothing is persisted."""


@dataclass(slots=True, kw_only=True)
class PassContext:
    """Mutable scratchpad of one reconciliation pass.

    ``previous`` is the condition set as persisted before the pass and is what the
    state machines read; ``conditions`` collects this pass's edits. Nothing here is
    written anywhere until the controller persists the pass at the very end.
    """

    key: str
    previous: ConditionSet
    conditions: ConditionSet
    status_changes: dict[str, object] = field(default_factory=dict)
    cancelled: threading.Event = field(default_factory=threading.Event)

    @classmethod
    def start(
        cls,
        key: str,
        conditions: Iterable[StatusCondition] = (),
        *,
        cancelled: threading.Event | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> PassContext:
        persisted = tuple(conditions)
        return cls(
            key=key,
            previous=ConditionSet(persisted, clock=clock),
            conditions=ConditionSet(persisted, clock=clock),
            cancelled=cancelled or threading.Event(),
        )

    def check_cancelled(self) -> None:
        if self.cancelled.is_set():
            log.info("Aborting pass for %s: cancelled", self.key)
            raise PassCancelledError(f"reconciliation of {self.key} was cancelled")

    def previous_reason(self, condition_type: ConditionType) -> ConditionReason | None:
        return self.previous.reason_of(condition_type)

    def set_true(
        self,
        condition_type: ConditionType,
        *,
        reason: ConditionReason | None = None,
        message: str = "",
    ) -> None:
        self.conditions.set(condition_type, status=True, reason=reason, message=message)

    def set_false(
        self,
        condition_type: ConditionType,
        *,
        reason: ConditionReason | None,
        message: str = "",
    ) -> None:
        self.conditions.set(condition_type, status=False, reason=reason, message=message)

    def unset(self, condition_type: ConditionType) -> None:
        self.conditions.unset(condition_type)

    def apply_result(
        self,
        condition_type: ConditionType,
        result: ReconciliationResult,
        *,
        ready_reason: ConditionReason | None = None,
        message: str | None = None,
    ) -> ReconciliationResult:
        """Reflect ``result`` on ``condition_type`` and hand the result back.

        Unmanaged OK clears the condition; OK sets it true; anything else sets it
        false with the result's reason and ``message`` (or the result's message).
        """

        if result.is_ok:
            if result.unmanaged:
                self.unset(condition_type)
            else:
                self.set_true(condition_type, reason=ready_reason)
            return result
        self.set_false(
            condition_type,
            reason=result.reason,
            message=result.message if message is None else message,
        )
        return result

    def update_status(self, **changes: object) -> None:
        self.status_changes.update(changes)


class _CancellationGuard:
    """Proxy checking the pass' cancellation flag before every method call."""

    def __init__(self, target: object, context: PassContext) -> None:
        self._target = target
        self._context = context

    def __getattr__(self, name: str) -> Any:
        attribute = getattr(self._target, name)
        if not callable(attribute):
            return attribute

        def guarded(*args: Any, **kwargs: Any) -> Any:
            self._context.check_cancelled()
            return attribute(*args, **kwargs)

        return guarded


def guard_cancellation[T](target: T, context: PassContext) -> T:
    """Wrap ``target`` so that calls abort once the pass is cancelled."""

    return cast("T", _CancellationGuard(target, context))
