"""Control loop timing and concurrency settings."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

from .env import positive_number_env

DEFAULT_REQUEUE_SECONDS = 10.0
DEFAULT_INDEPENDENT_SYNC_SECONDS = 900.0
DEFAULT_RESYNC_SECONDS = 300.0
DEFAULT_GC_CONCURRENCY = 8
DEFAULT_CONFLICT_RETRIES = 5
DEFAULT_WORKERS = 4


@dataclass(frozen=True, slots=True)
class ControlLoopConfig:
    requeue_interval: timedelta = timedelta(seconds=DEFAULT_REQUEUE_SECONDS)
    independent_sync_period: timedelta = timedelta(seconds=DEFAULT_INDEPENDENT_SYNC_SECONDS)
    resync_interval: timedelta = timedelta(seconds=DEFAULT_RESYNC_SECONDS)
    gc_concurrency: int = DEFAULT_GC_CONCURRENCY
    conflict_retries: int = DEFAULT_CONFLICT_RETRIES
    workers: int = DEFAULT_WORKERS


def get_control_loop_config() -> ControlLoopConfig:
    return ControlLoopConfig(
        requeue_interval=timedelta(
            seconds=positive_number_env("DBFLEET_REQUEUE_SECONDS", DEFAULT_REQUEUE_SECONDS)
        ),
        independent_sync_period=timedelta(
            seconds=positive_number_env(
                "DBFLEET_INDEPENDENT_SYNC_SECONDS", DEFAULT_INDEPENDENT_SYNC_SECONDS
            )
        ),
        resync_interval=timedelta(
            seconds=positive_number_env("DBFLEET_RESYNC_SECONDS", DEFAULT_RESYNC_SECONDS)
        ),
        gc_concurrency=int(positive_number_env("DBFLEET_GC_CONCURRENCY", DEFAULT_GC_CONCURRENCY)),
        conflict_retries=int(
            positive_number_env("DBFLEET_CONFLICT_RETRIES", DEFAULT_CONFLICT_RETRIES)
        ),
        workers=int(positive_number_env("DBFLEET_WORKERS", DEFAULT_WORKERS)),
    )
