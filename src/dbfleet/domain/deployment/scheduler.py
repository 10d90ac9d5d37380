"""Control loop scheduling deployment passes.

Requeue times are the only state kept in memory; losing them only delays work
because every record is picked up again on the next resync.
"""

from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import timedelta
from logging import getLogger
from typing import TYPE_CHECKING

from dbfleet.domain.model import ConditionReason
from dbfleet.domain.reconciliation import (
    PassCancelledError,
    ReconciliationResult,
    Requeue,
    RequeueKind,
)

from .controller import PassOutcome

if TYPE_CHECKING:
    from collections.abc import Callable

    from dbfleet.domain.model import ResourceRef

    from .controller import DeploymentController
    from .workflow import UnitOfWorkFactory

log = getLogger(__name__)


@dataclass(slots=True)
class _Schedule:
    due_at: dict[ResourceRef, float] = field(default_factory=dict)
    failures: dict[ResourceRef, int] = field(default_factory=dict)
    revisions: dict[ResourceRef, tuple[int, bool]] = field(default_factory=dict)


class ControlLoop:
    """Run passes for due deployments on a worker pool, never two for one key at once.

    A deployment is due when its record changed since the last pass (new
    generation or deletion mark), when the requeue time of its last outcome has
    passed, or when ``resync_interval`` elapsed since it was last looked at.
    Fatal outcomes back off exponentially from ``requeue_interval`` up to
    ``max_backoff``.
    """

    def __init__(
        self,
        controller: DeploymentController,
        unit_of_work_factory: UnitOfWorkFactory,
        *,
        workers: int = 4,
        resync_interval: timedelta = timedelta(minutes=5),
        max_backoff: timedelta = timedelta(minutes=10),
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if workers < 1:
            raise ValueError("workers must be at least 1")
        self.controller = controller
        self._unit_of_work_factory = unit_of_work_factory
        self.workers = workers
        self.resync_interval = resync_interval
        self.max_backoff = max_backoff
        self._clock = clock
        self._schedule = _Schedule()
        self._cancelled = threading.Event()

    def due(self, *, force: bool = False) -> list[ResourceRef]:
        """Return the deployments a sweep would reconcile now."""

        now = self._clock()
        with self._unit_of_work_factory() as uow:
            records = [
                (deployment.ref, (deployment.generation, deployment.is_being_deleted))
                for deployment in uow.repositories.deployments.list_all()
            ]
        known = {ref for ref, _ in records}
        for ref in list(self._schedule.due_at):
            if ref not in known:
                self._forget(ref)
        due: list[ResourceRef] = []
        for ref, revision in sorted(records):
            changed = self._schedule.revisions.get(ref) != revision
            if force or changed or self._schedule.due_at.get(ref, now) <= now:
                self._schedule.revisions[ref] = revision
                due.append(ref)
        return due

    def run_once(self, *, force: bool = False) -> list[PassOutcome]:
        """Reconcile every due deployment once and wait for all passes to finish."""

        refs = self.due(force=force)
        if not refs:
            return []
        log.debug("Sweep: %s deployment(s) due", len(refs))
        outcomes: list[PassOutcome] = []
        with ThreadPoolExecutor(
            max_workers=min(self.workers, len(refs)),
            thread_name_prefix="reconcile",
        ) as executor:
            futures = {ref: executor.submit(self._pass, ref) for ref in refs}
        for ref, future in futures.items():
            outcome = future.result()
            if outcome is None:
                continue
            self._record(ref, outcome)
            outcomes.append(outcome)
        return outcomes

    def run_forever(self, stop: threading.Event, *, poll_interval: float = 1.0) -> None:
        """Sweep until ``stop`` is set; passes still running are cancelled."""

        log.info("Control loop started with %s worker(s)", self.workers)
        watcher = threading.Thread(target=self._cancel_on, args=(stop,), daemon=True)
        watcher.start()
        while not stop.is_set():
            try:
                self.run_once()
            except Exception:
                log.exception("Sweep failed; retrying in %ss", poll_interval)
            stop.wait(poll_interval)
        log.info("Control loop stopped")

    def _cancel_on(self, stop: threading.Event) -> None:
        stop.wait()
        self._cancelled.set()

    def _pass(self, ref: ResourceRef) -> PassOutcome | None:
        try:
            return self.controller.reconcile(ref, cancelled=self._cancelled)
        except PassCancelledError:
            log.info("Pass for %s cancelled", ref)
            return None
        except Exception as error:
            log.exception("Pass for %s failed outside the controller", ref)
            return PassOutcome(
                key=str(ref),
                result=ReconciliationResult.terminate(ConditionReason.INTERNAL, error),
                requeue=Requeue.fatal(error),
            )

    def _record(self, ref: ResourceRef, outcome: PassOutcome) -> None:
        now = self._clock()
        requeue = outcome.requeue
        if outcome.purged:
            self._forget(ref)
            return
        if requeue.kind is RequeueKind.FATAL:
            failures = self._schedule.failures.get(ref, 0) + 1
            self._schedule.failures[ref] = failures
            delay = self.backoff(failures)
            log.warning(
                "Reconciling %s failed (%s in a row), retrying in %ss: %s",
                ref,
                failures,
                int(delay.total_seconds()),
                requeue.error,
            )
        else:
            self._schedule.failures.pop(ref, None)
            delay = self.resync_interval
            if requeue.kind is RequeueKind.AFTER and requeue.delay is not None:
                delay = requeue.delay
        self._schedule.due_at[ref] = now + delay.total_seconds()

    def backoff(self, failures: int) -> timedelta:
        base = self.controller.settings.requeue_interval
        return min(base * (2 ** max(failures - 1, 0)), self.max_backoff)

    def _forget(self, ref: ResourceRef) -> None:
        self._schedule.due_at.pop(ref, None)
        self._schedule.failures.pop(ref, None)
        self._schedule.revisions.pop(ref, None)
