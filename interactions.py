"""Pending confirmations for destructive or saving actions.

A request registers a callback under a fresh id; the client shows the
message and answers with ``resolve(id, accepted)``. Only an accepted answer
runs the callback. Unknown or already-resolved ids raise ``KeyError``.
There is at most one open prompt per kind; a new request replaces the
older one.
"""

from __future__ import annotations

import secrets
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any


@dataclass
class PendingAction:
    id: str
    kind: str
    message: str
    on_accept: Callable[[], Any] = field(repr=False)
    on_decline: Callable[[], Any] | None = field(default=None, repr=False)

    def to_dict(self) -> dict:
        return {"id": self.id, "kind": self.kind, "message": self.message}


class PendingActions:
    def __init__(self) -> None:
        self._items: dict[str, PendingAction] = {}
        self._lock = threading.Lock()

    def request(self, kind: str, message: str, on_accept: Callable[[], Any],
                on_decline: Callable[[], Any] | None = None) -> PendingAction:
        pending = PendingAction(secrets.token_hex(8), kind, message, on_accept, on_decline)
        with self._lock:
            for stale in [k for k, p in self._items.items() if p.kind == kind]:
                del self._items[stale]
            self._items[pending.id] = pending
        return pending

    def resolve(self, action_id: str, accepted: bool) -> Any:
        with self._lock:
            pending = self._items.pop(action_id)
        if accepted:
            return pending.on_accept()
        if pending.on_decline is not None:
            return pending.on_decline()
        return None

    def get(self, action_id: str) -> PendingAction | None:
        with self._lock:
            return self._items.get(action_id)

    def find(self, kind: str) -> PendingAction | None:
        with self._lock:
            return next((p for p in self._items.values() if p.kind == kind), None)

    def list(self) -> list[dict]:
        with self._lock:
            return [p.to_dict() for p in self._items.values()]

    def clear(self) -> None:
        with self._lock:
            self._items.clear()
