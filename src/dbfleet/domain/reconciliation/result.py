"""Outcome of one (sub-)reconciliation and the requeue decision derived from it."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from enum import StrEnum
from typing import TYPE_CHECKING

from dbfleet.domain.ports.persistence import ConcurrentModificationError
from dbfleet.domain.ports.provider import ProviderAPIError

if TYPE_CHECKING:
    from dbfleet.domain.model import ConditionReason


class ResultKind(StrEnum):
    OK = "ok"
    IN_PROGRESS = "in_progress"
    TERMINATE = "terminate"


@dataclass(frozen=True, slots=True, kw_only=True)
class ReconciliationResult:
    """Tri-state result: ``OK``, ``InProgress(reason, message)`` or ``Terminate(reason, error)``.

    An OK result may be ``unmanaged``: nothing is declared and nothing exists, so
    the owning condition is cleared instead of being set ready.
    """

    kind: ResultKind
    reason: ConditionReason | None = None
    message: str = ""
    error: BaseException | None = None
    retry_after: timedelta | None = None
    unmanaged: bool = False

    def __post_init__(self) -> None:
        if self.kind is ResultKind.TERMINATE and self.error is None:
            raise ValueError("terminate results must carry an error")
        if self.kind is ResultKind.IN_PROGRESS and self.reason is None:
            raise ValueError("in-progress results must carry a reason")
        if self.kind is ResultKind.OK and (self.reason is not None or self.error is not None):
            raise ValueError("ok results carry neither reason nor error")

    @classmethod
    def ok(cls, *, unmanaged: bool = False) -> ReconciliationResult:
        return cls(kind=ResultKind.OK, unmanaged=unmanaged)

    @classmethod
    def in_progress(
        cls,
        reason: ConditionReason,
        message: str = "",
        *,
        retry_after: timedelta | None = None,
    ) -> ReconciliationResult:
        return cls(
            kind=ResultKind.IN_PROGRESS,
            reason=reason,
            message=message,
            retry_after=retry_after,
        )

    @classmethod
    def terminate(
        cls,
        reason: ConditionReason,
        error: BaseException | str,
    ) -> ReconciliationResult:
        exc = error if isinstance(error, BaseException) else ReconciliationError(error)
        return cls(kind=ResultKind.TERMINATE, reason=reason, message=str(exc), error=exc)

    @classmethod
    def from_error(
        cls,
        reason: ConditionReason,
        error: Exception,
        *,
        retry_after: timedelta | None = None,
    ) -> ReconciliationResult:
        """Classify a provider or store failure.

        Transient failures (network, 5xx, rate limiting, exhausted conflict retries)
        keep the sub-resource in progress; everything else terminates.
        """

        if is_transient(error):
            return cls.in_progress(reason, str(error), retry_after=retry_after)
        return cls.terminate(reason, error)

    @property
    def is_ok(self) -> bool:
        return self.kind is ResultKind.OK

    @property
    def is_in_progress(self) -> bool:
        return self.kind is ResultKind.IN_PROGRESS

    @property
    def is_terminate(self) -> bool:
        return self.kind is ResultKind.TERMINATE

    def with_message(self, message: str) -> ReconciliationResult:
        if self.is_ok:
            return self
        return ReconciliationResult(
            kind=self.kind,
            reason=self.reason,
            message=message,
            error=self.error,
            retry_after=self.retry_after,
        )


class ReconciliationError(RuntimeError):
    """Semantic failure raised or reported by a reconciliation step."""


class TransientError(RuntimeError):
    """Failure expected to clear on its own; reported as in progress."""


def is_transient(error: BaseException) -> bool:
    if isinstance(error, (TransientError, ConcurrentModificationError)):
        return True
    if isinstance(error, ProviderAPIError):
        return error.transient
    return False


class RequeueKind(StrEnum):
    NONE = "none"
    AFTER = "after"
    FATAL = "fatal"


@dataclass(frozen=True, slots=True, kw_only=True)
class Requeue:
    """Exactly one of no-requeue, requeue-after(delay) or fatal-error."""

    kind: RequeueKind
    delay: timedelta | None = None
    error: BaseException | None = None

    @classmethod
    def never(cls) -> Requeue:
        return cls(kind=RequeueKind.NONE)

    @classmethod
    def after(cls, delay: timedelta) -> Requeue:
        return cls(kind=RequeueKind.AFTER, delay=delay)

    @classmethod
    def fatal(cls, error: BaseException) -> Requeue:
        return cls(kind=RequeueKind.FATAL, error=error)


DEFAULT_RETRY = timedelta(seconds=10)
