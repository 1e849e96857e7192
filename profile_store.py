"""
Profile Store: the in-memory source of truth for one user's profile.

All views read ``store.value`` and change it only through ``set`` (a full
replacement or a function of the previous value) or ``dispatch`` (a named
reducer action). Listeners are told about every actual change; the session
gate uses that to schedule debounced writes.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from typing import Any, Union

from profile_model import Profile, default_profile
from reducer import CREATES_ENTITY, reduce

Update = Union[Profile, Callable[[Profile], Profile]]
Listener = Callable[[Profile], None]


class IdSource:
    """Creation-time ids: millisecond clock, bumped to stay strictly increasing."""

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._last = 0
        self._lock = threading.Lock()

    def next(self, profile: Profile | None = None) -> int:
        with self._lock:
            candidate = int(self._clock() * 1000)
            floor = self._last
            if profile is not None:
                floor = max([floor, *profile.all_ids()])
            if candidate <= floor:
                candidate = floor + 1
            self._last = candidate
            return candidate


class ProfileStore:
    def __init__(self, initial: Profile | None = None, id_source: IdSource | None = None) -> None:
        self._value = initial if initial is not None else default_profile()
        self._ids = id_source or IdSource()
        self._listeners: list[Listener] = []
        # Re-entrant so a listener may read the value while notified
        self._lock = threading.RLock()

    @property
    def value(self) -> Profile:
        return self._value

    def set(self, update: Update) -> Profile:
        """Replace the profile, either outright or from the previous value.

        Functional updates run under the store lock, so concurrent callers
        each see the result of the one before and no update is lost.
        """
        with self._lock:
            prev = self._value
            nxt = update(prev) if callable(update) else update
            if not isinstance(nxt, Profile):
                raise TypeError(f"Profile expected, got {type(nxt).__name__}")
            if nxt == prev:
                return prev
            self._value = nxt
            for listener in list(self._listeners):
                listener(nxt)
            return nxt

    def dispatch(self, action: str, **payload: Any) -> Profile:
        """Run a reducer action against the latest value."""
        with self._lock:
            if action in CREATES_ENTITY and "id" not in payload:
                payload["id"] = self._ids.next(self._value)
            return self.set(lambda prev: reduce(prev, action, payload))

    def next_id(self) -> int:
        return self._ids.next(self._value)

    def reset(self, profile: Profile | None = None, notify: bool = True) -> None:
        """Swap in a profile wholesale (sign-in load or sign-out reset)."""
        with self._lock:
            self._value = profile if profile is not None else default_profile()
            if notify:
                for listener in list(self._listeners):
                    listener(self._value)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe
