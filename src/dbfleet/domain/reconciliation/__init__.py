"""Reconciliation core shared by every deployment sub-resource.

Layered flow of one pass:
1) observe provider state (``dbfleet.domain.observation``)
2) diff collection-typed sub-resources (``diff``)
3) drive stateful sub-resources one step (``state_machine``)
4) maintain shared-record guards (``ledger``)
5) fold sub-results into one outcome and requeue decision (``aggregate``)
"""

from __future__ import annotations

from .aggregate import aggregate, aggregate_with_retry, requeue_for
from .context import PassCancelledError, PassContext, guard_cancellation
from .diff import DuplicateKeyError, Match, SetDiff, diff
from .ledger import OwnershipLedger, SharedRecord, attach, detach, has_guard
from .result import (
    DEFAULT_RETRY,
    ReconciliationError,
    ReconciliationResult,
    Requeue,
    RequeueKind,
    ResultKind,
    TransientError,
    is_transient,
)
from .state_machine import (
    ConvergenceMachine,
    ConvergenceReasons,
    ConvergenceState,
    ConvergenceTarget,
    Transition,
)
from .taskgroup import gather_bounded

__all__ = [
    "DEFAULT_RETRY",
    "ConvergenceMachine",
    "ConvergenceReasons",
    "ConvergenceState",
    "ConvergenceTarget",
    "DuplicateKeyError",
    "Match",
    "OwnershipLedger",
    "PassCancelledError",
    "PassContext",
    "ReconciliationError",
    "ReconciliationResult",
    "Requeue",
    "RequeueKind",
    "ResultKind",
    "SetDiff",
    "SharedRecord",
    "TransientError",
    "Transition",
    "aggregate",
    "aggregate_with_retry",
    "attach",
    "detach",
    "diff",
    "gather_bounded",
    "guard_cancellation",
    "has_guard",
    "is_transient",
    "requeue_for",
]
