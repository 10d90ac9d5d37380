"""Root logger setup for the dbfleet CLI and control loop."""

from __future__ import annotations

import logging

FORMAT = "%(asctime)s %(levelname)s [%(threadName)s %(name)s] %(message)s"


def configure_logging(*, level: int = logging.INFO, force: bool = False) -> None:
    """Log to stderr with the worker thread in every line.

    Passes run on ``reconcile_*`` and ``backup-gc_*`` threads, so the thread name
    tells interleaved passes apart. httpx logs each request at INFO; it stays at
    WARNING unless ``level`` is stricter still.
    """

    logging.basicConfig(level=level, format=FORMAT, datefmt="%H:%M:%S", force=force)
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))
