"""
Test fixtures for PrepPilot.

Provides app, client and auth_client fixtures with file-based SQLite, an
in-memory document store and a fake scheduler whose jobs only run when a
test fires them. The text client is a MagicMock, so Gemini is never called.
"""

from __future__ import annotations

import re
import sys
from datetime import date, datetime, timedelta
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
from apscheduler.jobstores.base import JobLookupError

sys.path.insert(0, str(Path(__file__).parent.parent))

TODAY = date(2026, 3, 10)
PASSWORD = "StrongPass1"
EXAM = "JEE Mains (Jan) 2027"


class FakeScheduler:
    """Records jobs like APScheduler's add_job/remove_job; runs nothing on its own."""

    running = False

    def __init__(self, now: datetime | None = None) -> None:
        self.now = now or datetime(2026, 3, 10, 9, 0, 0)
        self.jobs: dict[str, SimpleNamespace] = {}

    def clock(self) -> datetime:
        return self.now

    def add_job(self, func, trigger=None, args=None, id=None, replace_existing=False,
                run_date=None, seconds=None, **kwargs):
        if id in self.jobs and not replace_existing:
            raise ValueError(f"duplicate job {id}")
        job = SimpleNamespace(func=func, trigger=trigger, args=list(args or []),
                              run_date=run_date, seconds=seconds)
        self.jobs[id] = job
        return job

    def remove_job(self, job_id):
        if job_id not in self.jobs:
            raise JobLookupError(job_id)
        del self.jobs[job_id]

    def get_job(self, job_id):
        return self.jobs.get(job_id)

    def advance(self, seconds: float) -> None:
        """Move the clock forward and run date jobs that have come due."""
        self.now += timedelta(seconds=seconds)
        for job_id, job in list(self.jobs.items()):
            if job.trigger == "date" and job.run_date <= self.now:
                del self.jobs[job_id]
                job.func(*job.args)

    def run_date_jobs(self) -> None:
        """Run every one-shot job regardless of its run date."""
        for job_id, job in list(self.jobs.items()):
            if job.trigger == "date":
                del self.jobs[job_id]
                job.func(*job.args)

    def fire(self, job_id: str, times: int = 1) -> None:
        """Run an interval job ``times`` times, stopping if it removes itself."""
        for _ in range(times):
            job = self.jobs.get(job_id)
            if job is None:
                return
            job.func(*job.args)


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def text_client():
    client = MagicMock()
    client.generate.return_value = "Newton's second law:\n* **F = ma**\n\nForce equals mass times acceleration."
    return client


@pytest.fixture
def documents():
    from document_store import InMemoryDocumentStore
    return InMemoryDocumentStore()


def make_app(tmp_path, scheduler, text_client, documents, **overrides):
    from app import create_app

    config = {
        "TESTING": True,
        "DATABASE": str(tmp_path / "test.db"),
        "SECRET_KEY": "test-secret-key",
        "WTF_CSRF_ENABLED": False,
        "EMAIL_BACKEND": "log",
        "TODAY": lambda: TODAY,
        "SCHEDULER": scheduler,
        "TEXT_CLIENT": text_client,
        "DOCUMENT_STORE": documents,
    }
    config.update(overrides)
    app = create_app(config)

    with app.app_context():
        from database import init_db, run_migrations
        init_db()
        run_migrations()
    return app


@pytest.fixture
def app(tmp_path, scheduler, text_client, documents):
    """App with file-based SQLite for users and an in-memory profile store."""
    return make_app(tmp_path, scheduler, text_client, documents)


@pytest.fixture
def client(app):
    """Unauthenticated test client."""
    return app.test_client()


def register(client, email="student@example.com", password=PASSWORD):
    return client.post("/register", json={"email": email, "password": password, "name": "Asha"})


def verify(app, client, email="student@example.com"):
    from database import get_db

    with app.app_context():
        row = get_db().execute(
            "SELECT email_verification_token FROM users WHERE email = ?", (email,)
        ).fetchone()
    return client.get(f"/verify-email/{row['email_verification_token']}")


@pytest.fixture
def unverified_client(client):
    """Signed in straight after registration, before the email is confirmed."""
    resp = register(client)
    assert resp.status_code == 201
    client.user_id = resp.get_json()["user"]["id"]
    return client


@pytest.fixture
def auth_client(app, unverified_client):
    """Signed in, verified, with one exam selected: the dashboard is open."""
    client = unverified_client
    assert verify(app, client).status_code == 200
    resp = client.post("/api/exams", json={"exams": [EXAM]})
    assert resp.get_json()["state"] == "ready"
    return client


@pytest.fixture
def registry(app):
    return app.extensions["preppilot"]["registry"]


@pytest.fixture
def gate(auth_client, registry):
    return registry.get(auth_client.user_id)


@pytest.fixture
def sent_emails():
    """Capture outgoing mail as (to, subject, body) tuples."""
    sent = []

    def _send(to, subject, body_html):
        sent.append((to, subject, body_html))
        return True

    with patch("identity.EmailService.send", side_effect=_send):
        yield sent


def link_from(body: str) -> str:
    return re.search(r'href="([^"]+)"', body).group(1)
