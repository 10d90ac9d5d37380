"""Convergence state machine for stateful, asynchronously provisioned sub-resources.

The machine keeps no memory between passes. Each pass reads the reason of the
previously persisted condition to decide which handler runs:

- a creating or updating reason resumes ``upserting``
- a deleting reason resumes ``deleting``
- anything else (including no condition) starts at ``pending``

Every handler issues at most one corrective provider call and returns a
``Transition``; the owning condition is updated on the pass context.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from dbfleet.domain.ports.provider import ProviderAPIError

from .result import ReconciliationResult

if TYPE_CHECKING:
    from datetime import timedelta

    from dbfleet.domain.model import ConditionReason, ConditionType

    from .context import PassContext

log = getLogger(__name__)


class ConvergenceState(StrEnum):
    PENDING = "pending"
    CREATING = "creating"
    UPDATING = "updating"
    DELETING = "deleting"
    IDLE = "idle"
    UNMANAGED = "unmanaged"


@dataclass(frozen=True, slots=True, kw_only=True)
class ConvergenceReasons:
    """Condition reasons a machine instance writes for each situation."""

    ready: ConditionReason
    creating: ConditionReason
    updating: ConditionReason
    deleting: ConditionReason
    not_upserted: ConditionReason
    not_deleted: ConditionReason
    aborted: ConditionReason


@runtime_checkable
class ConvergenceTarget[S, O](Protocol):
    """What the machine drives: one desired value against one observed snapshot.

    ``observe`` returns ``None`` only for a confirmed absence and raises otherwise.
    """

    noun: str

    def desired(self) -> S | None: ...

    def observe(self) -> O | None: ...

    def create(self, desired: S) -> O: ...

    def update(self, desired: S) -> O: ...

    def delete(self) -> None: ...

    def matches(self, desired: S, observed: O) -> bool: ...

    def settled(self, observed: O) -> bool: ...

    def state_name(self, observed: O) -> str: ...


@dataclass(frozen=True, slots=True)
class Transition:
    state: ConvergenceState
    result: ReconciliationResult


class ConvergenceMachine[S, O]:
    def __init__(
        self,
        target: ConvergenceTarget[S, O],
        *,
        condition: ConditionType,
        reasons: ConvergenceReasons,
        retry_after: timedelta | None = None,
    ) -> None:
        self.target = target
        self.condition = condition
        self.reasons = reasons
        self.retry_after = retry_after

    def resume_state(self, previous_reason: ConditionReason | None) -> ConvergenceState:
        if previous_reason == self.reasons.creating:
            return ConvergenceState.CREATING
        if previous_reason == self.reasons.updating:
            return ConvergenceState.UPDATING
        if previous_reason == self.reasons.deleting:
            return ConvergenceState.DELETING
        return ConvergenceState.PENDING

    def step(self, context: PassContext) -> Transition:
        previous_reason = context.previous_reason(self.condition)
        state = self.resume_state(previous_reason)
        failure_reason = (
            self.reasons.not_deleted
            if state is ConvergenceState.DELETING
            else self.reasons.not_upserted
        )
        try:
            desired = self.target.desired()
            observed = self.target.observe()
        except ProviderAPIError as error:
            resuming = state is not ConvergenceState.PENDING
            if error.transient and resuming and previous_reason is not None:
                return self._stall(context, state, previous_reason, error)
            return self._fail(context, state, failure_reason, error)

        log.debug(
            "Resuming %s of %s in state %s (previous reason %s)",
            self.target.noun,
            context.key,
            state,
            previous_reason,
        )
        if state in (ConvergenceState.CREATING, ConvergenceState.UPDATING):
            return self._handle_upserting(context, state, desired, observed)
        if state is ConvergenceState.DELETING:
            return self._handle_deleting(context, desired, observed)
        return self._handle_pending(context, desired, observed)

    def _handle_pending(
        self,
        context: PassContext,
        desired: S | None,
        observed: O | None,
    ) -> Transition:
        if desired is None:
            if observed is None:
                return self._unmanage(context)
            try:
                self.target.delete()
            except ProviderAPIError as error:
                return self._fail(
                    context, ConvergenceState.PENDING, self.reasons.not_deleted, error
                )
            log.info("Deleting %s of %s", self.target.noun, context.key)
            return self._progress(
                context,
                ConvergenceState.DELETING,
                self.reasons.deleting,
                self.target.state_name(observed),
            )

        if observed is None:
            try:
                created = self.target.create(desired)
            except ProviderAPIError as error:
                return self._fail(
                    context, ConvergenceState.PENDING, self.reasons.not_upserted, error
                )
            log.info("Creating %s of %s", self.target.noun, context.key)
            return self._progress(
                context,
                ConvergenceState.CREATING,
                self.reasons.creating,
                self.target.state_name(created),
            )

        if self.target.matches(desired, observed):
            if self.target.settled(observed):
                return self._idle(context)
            return self._progress(
                context,
                ConvergenceState.UPDATING,
                self.reasons.updating,
                self.target.state_name(observed),
            )

        try:
            updated = self.target.update(desired)
        except ProviderAPIError as error:
            return self._fail(context, ConvergenceState.PENDING, self.reasons.not_upserted, error)
        log.info("Updating %s of %s", self.target.noun, context.key)
        return self._progress(
            context,
            ConvergenceState.UPDATING,
            self.reasons.updating,
            self.target.state_name(updated),
        )

    def _handle_upserting(
        self,
        context: PassContext,
        state: ConvergenceState,
        desired: S | None,
        observed: O | None,
    ) -> Transition:
        if desired is None:
            return self._terminate(
                context,
                self.reasons.aborted,
                f"aborting update/create: no {self.target.noun} specified",
            )
        if observed is None:
            return self._terminate(
                context,
                self.reasons.not_upserted,
                f"no {self.target.noun} found in the provider",
            )
        if not self.target.matches(desired, observed):
            return self._terminate(
                context,
                self.reasons.aborted,
                "aborting update/create: spec has changed",
            )
        if not self.target.settled(observed):
            reason = (
                self.reasons.creating
                if state is ConvergenceState.CREATING
                else self.reasons.updating
            )
            return self._progress(context, state, reason, self.target.state_name(observed))
        return self._idle(context)

    def _handle_deleting(
        self,
        context: PassContext,
        desired: S | None,
        observed: O | None,
    ) -> Transition:
        if desired is not None:
            return self._terminate(
                context,
                self.reasons.aborted,
                f"aborting deletion: {self.target.noun} are specified",
            )
        if observed is not None:
            return self._progress(
                context,
                ConvergenceState.DELETING,
                self.reasons.deleting,
                self.target.state_name(observed),
            )
        return self._unmanage(context)

    def _progress(
        self,
        context: PassContext,
        state: ConvergenceState,
        reason: ConditionReason,
        state_name: str,
    ) -> Transition:
        coarse = f"{self.target.noun} are {state.value}"
        result = ReconciliationResult.in_progress(reason, coarse, retry_after=self.retry_after)
        context.apply_result(
            self.condition,
            result,
            message=f"{coarse}, provider state: {state_name}",
        )
        return Transition(state, result)

    def _terminate(
        self,
        context: PassContext,
        reason: ConditionReason,
        message: str,
    ) -> Transition:
        log.warning("%s of %s: %s", self.target.noun, context.key, message)
        result = ReconciliationResult.terminate(reason, message)
        context.apply_result(self.condition, result)
        return Transition(ConvergenceState.PENDING, result)

    def _fail(
        self,
        context: PassContext,
        state: ConvergenceState,
        reason: ConditionReason,
        error: ProviderAPIError,
    ) -> Transition:
        log.warning("Provider call for %s of %s failed: %s", self.target.noun, context.key, error)
        result = ReconciliationResult.from_error(reason, error, retry_after=self.retry_after)
        context.apply_result(self.condition, result)
        return Transition(state, result)

    def _stall(
        self,
        context: PassContext,
        state: ConvergenceState,
        reason: ConditionReason,
        error: ProviderAPIError,
    ) -> Transition:
        """Keep the in-flight reason when observation failed transiently."""

        log.warning("Could not observe %s of %s: %s", self.target.noun, context.key, error)
        result = ReconciliationResult.in_progress(reason, str(error), retry_after=self.retry_after)
        context.apply_result(self.condition, result)
        return Transition(state, result)

    def _idle(self, context: PassContext) -> Transition:
        result = ReconciliationResult.ok()
        context.apply_result(self.condition, result, ready_reason=self.reasons.ready)
        return Transition(ConvergenceState.IDLE, result)

    def _unmanage(self, context: PassContext) -> Transition:
        result = ReconciliationResult.ok(unmanaged=True)
        context.apply_result(self.condition, result)
        return Transition(ConvergenceState.UNMANAGED, result)
