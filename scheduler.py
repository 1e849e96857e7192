"""
Background scheduler: one APScheduler instance per app.

Carries two kinds of short-lived jobs:
  - profile-write:<user>  one-shot debounced profile writes
  - focus-timer:<user>    one-second ticks while a focus timer runs

On shutdown pending profile writes are flushed before the scheduler stops.
"""

from __future__ import annotations

import atexit
import logging

from apscheduler.schedulers.background import BackgroundScheduler

logger = logging.getLogger(__name__)


def create_scheduler() -> BackgroundScheduler:
    # Ticks that fall behind are dropped rather than replayed
    return BackgroundScheduler(
        daemon=True,
        job_defaults={"coalesce": True, "max_instances": 1, "misfire_grace_time": 5},
    )


def init_scheduler(app, scheduler, registry):
    """Start the scheduler and register the shutdown hook.

    Returns the shutdown function so callers (and tests) can run it directly.
    """
    if not scheduler.running:
        scheduler.start()
        app.logger.info("Background scheduler started")

    def shutdown() -> None:
        registry.stop()
        if scheduler.running:
            scheduler.shutdown(wait=False)
        logger.info("Background scheduler stopped")

    atexit.register(shutdown)
    return shutdown
