"""Tests for the session gate, the per-user registry and pending confirmations."""

from __future__ import annotations

from datetime import date

import pytest

from conftest import FakeScheduler
from document_store import DocumentStoreError, InMemoryDocumentStore
from identity import IdentityProvider, IdentityUser
from interactions import PendingActions
from persistence import DebouncedWriter
from profile_model import ProfileError, default_profile
from session_gate import (
    COLLECTION,
    EMAIL_UNVERIFIED,
    EXAM_SELECTION,
    LOADING,
    READY,
    SIGNED_OUT,
    SessionGate,
    SessionRegistry,
)

VERIFIED = IdentityUser(id=42, email="a@example.com", email_verified=True)
UNVERIFIED = IdentityUser(id=42, email="a@example.com", email_verified=False)


class BrokenStore:
    def get(self, collection, doc_id):
        raise DocumentStoreError("offline")

    def set(self, collection, doc_id, value):
        raise DocumentStoreError("offline")


@pytest.fixture
def sched():
    return FakeScheduler()


@pytest.fixture
def documents():
    return InMemoryDocumentStore()


@pytest.fixture
def writer(sched, documents):
    return DebouncedWriter(lambda key, doc: documents.set(COLLECTION, key, doc), sched, clock=sched.clock)


@pytest.fixture
def gate(documents, writer, sched):
    return SessionGate(42, documents, writer, sched)


class TestGateStates:
    def test_signed_out_before_any_user(self, gate):
        assert gate.state == SIGNED_OUT

    def test_loading_wins(self, gate):
        gate.on_user(VERIFIED)
        gate.loading = True
        assert gate.state == LOADING

    def test_unverified_before_exam_selection(self, gate):
        gate.on_user(UNVERIFIED)
        assert gate.needs_exam_selection
        assert gate.state == EMAIL_UNVERIFIED

    def test_first_sign_in_creates_document(self, gate, documents):
        gate.on_user(VERIFIED)
        assert gate.state == EXAM_SELECTION
        assert documents.get(COLLECTION, "42") == default_profile().to_document()

    def test_select_exams_opens_dashboard(self, gate):
        gate.on_user(VERIFIED)
        gate.select_exams(["NEET 2027"])
        assert gate.state == READY
        assert gate.profile.selected_exams == ("NEET 2027",)

    def test_empty_selection_rejected(self, gate):
        gate.on_user(VERIFIED)
        with pytest.raises(ProfileError):
            gate.select_exams([])
        assert gate.state == EXAM_SELECTION

    def test_existing_document_with_exams_is_ready(self, gate, documents):
        doc = default_profile().replace(selected_exams=("NEET 2027",), xp=77).to_document()
        documents.set(COLLECTION, "42", doc)
        gate.on_user(VERIFIED)
        assert gate.state == READY
        assert gate.profile.xp == 77
        assert gate.timer.subject == "Physics"

    def test_change_exams_returns_to_selection(self, gate):
        gate.on_user(VERIFIED)
        gate.select_exams(["NEET 2027"])
        gate.change_exams()
        assert gate.state == EXAM_SELECTION

    def test_store_failure_propagates(self, writer, sched):
        gate = SessionGate(42, BrokenStore(), writer, sched)
        with pytest.raises(DocumentStoreError):
            gate.on_user(VERIFIED)
        assert not gate.loaded
        assert gate.state != LOADING


class TestGatePersistence:
    def test_changes_are_written_after_quiet_period(self, gate, documents, sched):
        gate.on_user(VERIFIED)
        gate.select_exams(["NEET 2027"])
        gate.store.dispatch("task/add", text="Revise")
        assert documents.get(COLLECTION, "42")["tasks"] == []
        sched.advance(1.5)
        assert documents.get(COLLECTION, "42")["tasks"][0]["text"] == "Revise"

    def test_loading_does_not_write(self, gate, documents, sched):
        documents.set(COLLECTION, "42", default_profile().replace(xp=5).to_document())
        gate.on_user(VERIFIED)
        assert sched.jobs == {}

    def test_sign_out_flushes_and_resets(self, gate, documents, sched):
        gate.on_user(VERIFIED)
        gate.select_exams(["NEET 2027"])
        gate.driver.start()
        gate.on_signed_out()
        assert documents.get(COLLECTION, "42")["selectedExams"] == ["NEET 2027"]
        assert sched.jobs == {}
        assert gate.state == SIGNED_OUT
        assert gate.profile == default_profile()

        gate.store.dispatch("goal/set", hours=3)
        assert sched.jobs == {}


class TestRegistry:
    @pytest.fixture
    def identity(self):
        return IdentityProvider()

    @pytest.fixture
    def registry(self, identity, documents, sched):
        registry = SessionRegistry(identity, documents, sched, today=lambda: date(2026, 3, 10))
        registry.start()
        return registry

    def test_sign_in_event_loads_gate(self, identity, registry):
        identity._emit(42, VERIFIED)
        assert registry.get(42).state == EXAM_SELECTION

    def test_sign_out_event_drops_gate(self, identity, registry, documents):
        identity._emit(42, VERIFIED)
        registry.get(42).select_exams(["NEET 2027"])
        identity._emit(42, None)
        assert registry.get(42) is None
        assert documents.get(COLLECTION, "42")["selectedExams"] == ["NEET 2027"]

    def test_store_failure_is_retried_by_gate_for(self, identity, sched):
        registry = SessionRegistry(identity, BrokenStore(), sched)
        registry.start()
        identity._emit(42, VERIFIED)
        with pytest.raises(DocumentStoreError):
            registry.gate_for(VERIFIED)

    def test_stop_unsubscribes_and_flushes(self, identity, registry, documents):
        identity._emit(42, VERIFIED)
        registry.get(42).select_exams(["BITSAT 2027"])
        registry.stop()
        assert documents.get(COLLECTION, "42")["selectedExams"] == ["BITSAT 2027"]
        identity._emit(7, VERIFIED)
        assert registry.get(7) is None

    def test_gates_are_per_user(self, identity, registry):
        identity._emit(1, IdentityUser(id=1, email="one@example.com", email_verified=True))
        identity._emit(2, IdentityUser(id=2, email="two@example.com", email_verified=True))
        registry.get(1).store.dispatch("goal/set", hours=2)
        assert registry.get(2).profile.daily_goal == 10


class TestPendingActions:
    def test_accept_runs_callback(self):
        pending = PendingActions()
        item = pending.request("delete_mock", "Delete record?", lambda: "done")
        assert pending.list() == [{"id": item.id, "kind": "delete_mock", "message": "Delete record?"}]
        assert pending.resolve(item.id, True) == "done"
        assert pending.list() == []

    def test_decline_runs_nothing(self):
        calls = []
        pending = PendingActions()
        item = pending.request("delete_mock", "Delete record?", lambda: calls.append(1))
        assert pending.resolve(item.id, False) is None
        assert calls == []

    def test_decline_callback(self):
        pending = PendingActions()
        item = pending.request("x", "?", lambda: "yes", on_decline=lambda: "no")
        assert pending.resolve(item.id, False) == "no"

    def test_new_request_replaces_same_kind(self):
        pending = PendingActions()
        first = pending.request("delete_mock", "Delete record?", lambda: "first")
        second = pending.request("delete_mock", "Delete record?", lambda: "second")
        other = pending.request("delete_kpp", "Delete KPP?", lambda: "kpp")
        assert [p["id"] for p in pending.list()] == [second.id, other.id]
        assert pending.find("delete_mock") is second
        with pytest.raises(KeyError):
            pending.resolve(first.id, True)
        assert pending.resolve(second.id, True) == "second"

    def test_repeated_requests_do_not_pile_up(self):
        pending = PendingActions()
        for _ in range(20):
            pending.request("clear_chat", "Delete chat history?", lambda: None)
        assert len(pending.list()) == 1

    def test_find_missing_kind(self):
        assert PendingActions().find("save_session") is None

    def test_unknown_id(self):
        with pytest.raises(KeyError):
            PendingActions().resolve("nope", True)
