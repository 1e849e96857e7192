"""Debounced profile persistence.

Every in-memory change calls ``schedule(key, value)``; the write only happens
once the key has been quiet for ``delay`` seconds. A newer change cancels the
pending job and arms a fresh one, so a burst of changes (a running timer,
rapid checkbox clicks) produces a single write carrying the latest value.

Jobs run on an APScheduler scheduler. Tests pass a fake scheduler with a
controllable clock instead of ``BackgroundScheduler``.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

from apscheduler.jobstores.base import JobLookupError

logger = logging.getLogger(__name__)

_MISSING = object()


class DebouncedWriter:
    """Trailing-edge debounce of ``write_fn(key, value)`` per key."""

    JOB_PREFIX = "profile-write:"

    def __init__(
        self,
        write_fn: Callable[[str, Any], None],
        scheduler: Any,
        delay: float = 1.0,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._write_fn = write_fn
        self._scheduler = scheduler
        self._delay = delay
        self._clock = clock
        self._pending: dict[str, Any] = {}
        self._lock = threading.Lock()

    def _job_id(self, key: str) -> str:
        return f"{self.JOB_PREFIX}{key}"

    def schedule(self, key: str, value: Any) -> None:
        """Remember ``value`` as the latest for ``key`` and restart its quiet period."""
        with self._lock:
            self._pending[key] = value
            self._scheduler.add_job(
                self._run,
                trigger="date",
                run_date=self._clock() + timedelta(seconds=self._delay),
                args=[key],
                id=self._job_id(key),
                replace_existing=True,
            )

    def flush(self, key: str | None = None) -> None:
        """Write now instead of waiting; all pending keys when ``key`` is None."""
        keys = [key] if key is not None else self.pending_keys()
        for k in keys:
            self._remove_job(k)
            self._run(k)

    def cancel(self, key: str | None = None) -> None:
        """Drop pending writes without performing them."""
        keys = [key] if key is not None else self.pending_keys()
        with self._lock:
            for k in keys:
                self._pending.pop(k, None)
        for k in keys:
            self._remove_job(k)

    def pending_keys(self) -> list[str]:
        with self._lock:
            return list(self._pending)

    def is_pending(self, key: str) -> bool:
        with self._lock:
            return key in self._pending

    def _remove_job(self, key: str) -> None:
        try:
            self._scheduler.remove_job(self._job_id(key))
        except JobLookupError:
            pass

    def _run(self, key: str) -> None:
        with self._lock:
            value = self._pending.pop(key, _MISSING)
        if value is _MISSING:
            return
        try:
            self._write_fn(key, value)
            logger.debug("Profile %s persisted", key)
        except Exception as e:
            # No retry: the next change schedules a fresh write
            logger.error("Profile write failed for %s: %s", key, e)
