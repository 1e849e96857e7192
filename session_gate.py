"""
Session Gate: what a user sees before the dashboard.

One ``SessionGate`` per signed-in user holds that user's Profile Store, timer
and pending confirmations. It loads the profile document when the identity
stream reports a sign-in, creates the default document on first sign-in,
and wires every later change into the shared debounced writer.

``SessionRegistry`` subscribes to the identity provider on start and routes
each ``(user_id, user | None)`` event to the right gate.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from datetime import date
from typing import Any

from catalog import get_user_subjects
from document_store import DocumentStore, DocumentStoreError
from identity import IdentityProvider, IdentityUser
from interactions import PendingActions
from persistence import DebouncedWriter
from profile_model import Profile, ProfileError, default_profile
from profile_store import ProfileStore
from timer_engine import FocusTimer, TimerDriver

logger = logging.getLogger(__name__)

COLLECTION = "users"

LOADING = "loading"
SIGNED_OUT = "signed_out"
EMAIL_UNVERIFIED = "email_unverified"
EXAM_SELECTION = "exam_selection"
READY = "ready"


class SessionGate:
    def __init__(self, user_id: int, documents: DocumentStore, writer: DebouncedWriter,
                 scheduler: Any, chat_factory: Callable[[int], Any] | None = None) -> None:
        self.user_id = user_id
        self.key = str(user_id)
        self.user: IdentityUser | None = None
        self.loading = False
        self.loaded = False
        self.needs_exam_selection = False
        self.store = ProfileStore()
        self.pending = PendingActions()
        self.timer = FocusTimer()
        self.driver = TimerDriver(self.timer, scheduler, self.key)
        self._documents = documents
        self._writer = writer
        self._chat_factory = chat_factory
        self._chat = None
        self._unsubscribe: Callable[[], None] | None = None
        self._lock = threading.RLock()

    @property
    def state(self) -> str:
        if self.loading:
            return LOADING
        if self.user is None:
            return SIGNED_OUT
        if not self.user.email_verified:
            return EMAIL_UNVERIFIED
        if self.needs_exam_selection:
            return EXAM_SELECTION
        return READY

    @property
    def profile(self) -> Profile:
        return self.store.value

    @property
    def chat(self):
        if self._chat is None and self._chat_factory is not None:
            self._chat = self._chat_factory(self.user_id)
        return self._chat

    def on_user(self, user: IdentityUser) -> None:
        """Load (or create) the user's profile document.

        Raises ``DocumentStoreError`` when the store cannot be read; the gate
        is left unloaded so the next request tries again.
        """
        with self._lock:
            self.user = user
            if self.loaded:
                return
            self.loading = True
            try:
                doc = self._documents.get(COLLECTION, self.key)
                if doc is None:
                    profile = default_profile()
                    self._documents.set(COLLECTION, self.key, profile.to_document())
                    self.needs_exam_selection = True
                else:
                    profile = Profile.from_document(doc)
                    self.needs_exam_selection = not profile.selected_exams
            except DocumentStoreError:
                logger.error("Profile load failed for user %s", self.user_id)
                raise
            finally:
                self.loading = False

            self.store.reset(profile, notify=False)
            self.timer.set_subject(get_user_subjects(profile.selected_exams)[0])
            if self._unsubscribe is None:
                self._unsubscribe = self.store.subscribe(self._persist)
            self.loaded = True
            logger.info("Profile loaded for user %s", self.user_id)

    def _persist(self, profile: Profile) -> None:
        self._writer.schedule(self.key, profile.to_document())

    def on_signed_out(self) -> None:
        with self._lock:
            self._writer.flush(self.key)
            if self._unsubscribe is not None:
                self._unsubscribe()
                self._unsubscribe = None
            self.driver.halt()
            self.timer.reset()
            self.pending.clear()
            self.store.reset(default_profile(), notify=False)
            self.user = None
            self.loaded = False
            self.needs_exam_selection = False
            self._chat = None

    def select_exams(self, exams: list[str]) -> Profile:
        if not exams:
            raise ProfileError("Select at least one exam.")
        profile = self.store.dispatch("exams/select", exams=list(exams))
        self.needs_exam_selection = False
        return profile

    def change_exams(self) -> None:
        self.needs_exam_selection = True


class SessionRegistry:
    """Per-user gates fed by the identity provider's auth-state stream."""

    def __init__(self, identity: IdentityProvider, documents: DocumentStore, scheduler: Any,
                 write_delay: float = 1.0, chat_factory: Callable[[int], Any] | None = None,
                 today: Callable[[], date] = date.today) -> None:
        self.identity = identity
        self.documents = documents
        self.scheduler = scheduler
        self.today = today
        self.writer = DebouncedWriter(self._write, scheduler, delay=write_delay)
        self._chat_factory = chat_factory
        self._gates: dict[int, SessionGate] = {}
        self._unsubscribe: Callable[[], None] | None = None
        self._lock = threading.Lock()

    def _write(self, key: str, document: dict) -> None:
        self.documents.set(COLLECTION, key, document)

    def start(self) -> None:
        if self._unsubscribe is None:
            self._unsubscribe = self.identity.on_auth_state_changed(self._on_auth)

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        with self._lock:
            gates = list(self._gates.values())
        for gate in gates:
            gate.driver.halt()
        self.writer.flush()

    def _gate(self, user_id: int) -> SessionGate:
        with self._lock:
            gate = self._gates.get(user_id)
            if gate is None:
                gate = SessionGate(user_id, self.documents, self.writer, self.scheduler, self._chat_factory)
                self._gates[user_id] = gate
            return gate

    def get(self, user_id: int) -> SessionGate | None:
        with self._lock:
            return self._gates.get(user_id)

    def _on_auth(self, user_id: int, user: IdentityUser | None) -> None:
        if user is None:
            with self._lock:
                gate = self._gates.pop(user_id, None)
            if gate is not None:
                gate.on_signed_out()
            return
        try:
            self._gate(user_id).on_user(user)
        except DocumentStoreError as e:
            # Retried by gate_for on the next request
            logger.error("trouble connecting to profile store: %s", e)

    def gate_for(self, user: IdentityUser) -> SessionGate:
        """The loaded gate for a signed-in user, loading it if needed."""
        gate = self._gate(user.id)
        gate.on_user(user)
        return gate
