"""Route tests for the tracker's JSON API."""

from __future__ import annotations

import io

import pytest
from PIL import Image

from conftest import EXAM, make_app, register, verify
from document_store import DocumentStoreError


def _accept(client, pending, accept=True):
    return client.post(f"/api/pending/{pending['id']}", json={"accept": accept})


class TestAppState:
    def test_signed_out(self, client):
        assert client.get("/api/app").get_json() == {"state": "signed_out"}

    def test_health(self, client):
        assert client.get("/health").get_json() == {"status": "ok"}

    def test_exam_selection_lists_catalog(self, app, unverified_client):
        verify(app, unverified_client)
        body = unverified_client.get("/api/app").get_json()
        assert body["state"] == "exam_selection"
        assert len(body["exams"]) == 11
        assert body["selected"] == []

    def test_ready_dashboard(self, auth_client):
        body = auth_client.get("/api/app").get_json()
        assert body["state"] == "ready"
        assert body["view"] == "dashboard"
        assert body["title"] == "PrepPilot Pro"
        model = body["model"]
        assert model["countdowns"][0]["exam"] == EXAM
        assert model["streak"] == 0
        assert model["dailyGoal"] == 10
        assert len(model["heatmap"]) == 12
        assert body["shell"]["level"] == 0

    def test_switch_view(self, auth_client):
        body = auth_client.post("/api/view", json={"view": "analysis", "range": "Month"}).get_json()
        assert body["view"] == "analysis"
        assert len(body["model"]["timeline"]) == 31
        assert auth_client.get("/api/app").get_json()["view"] == "analysis"

    def test_unknown_view(self, auth_client):
        assert auth_client.post("/api/view", json={"view": "leaderboard"}).status_code == 400

    def test_security_headers(self, client):
        resp = client.get("/health")
        assert resp.headers["X-Content-Type-Options"] == "nosniff"
        assert resp.headers["X-Request-ID"]


class TestExams:
    def test_empty_selection_rejected(self, app, unverified_client):
        verify(app, unverified_client)
        resp = unverified_client.post("/api/exams", json={"exams": []})
        assert resp.status_code == 400

    def test_unknown_exam_rejected(self, auth_client):
        assert auth_client.post("/api/exams", json={"exams": ["GRE"]}).status_code == 400

    def test_change_exams(self, auth_client):
        assert auth_client.post("/api/exams/change").get_json()["state"] == "exam_selection"
        assert auth_client.get("/api/syllabus").status_code == 403
        body = auth_client.post("/api/exams", json={"exams": ["NEET 2027"]}).get_json()
        assert body["state"] == "ready"
        assert body["shell"]["selectedExams"] == ["NEET 2027"]


class TestTasks:
    def test_add_toggle_remove(self, auth_client):
        resp = auth_client.post("/api/tasks", json={"text": "Solve HCV ch 5", "subject": "Physics"})
        assert resp.status_code == 201
        task = resp.get_json()["tasks"][0]
        assert task["subject"] == "Physics" and task["completed"] is False

        tasks = auth_client.post(f"/api/tasks/{task['id']}/toggle").get_json()["tasks"]
        assert tasks[0]["completed"] is True

        assert auth_client.delete(f"/api/tasks/{task['id']}").get_json()["tasks"] == []

    def test_empty_task(self, auth_client):
        resp = auth_client.post("/api/tasks", json={"text": ""})
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Task name is required."

    def test_bad_id(self, auth_client):
        assert auth_client.post("/api/tasks/abc/toggle").status_code == 400

    def test_writes_are_debounced(self, auth_client, documents, scheduler):
        for text in ("one", "two", "three"):
            auth_client.post("/api/tasks", json={"text": text})
        key = str(auth_client.user_id)
        assert documents.get("users", key)["tasks"] == []
        assert [j for j in scheduler.jobs if j.startswith("profile-write:")] == [f"profile-write:{key}"]

        scheduler.run_date_jobs()
        assert [t["text"] for t in documents.get("users", key)["tasks"]] == ["three", "two", "one"]


class TestSyllabus:
    def _add(self, client, subject, name="Optics", lectures=10):
        return client.post("/api/syllabus/chapters", json={
            "subject": subject, "name": name, "total_lectures": lectures, "grade": "11",
        })

    def test_add_chapter_and_toggle(self, auth_client):
        resp = self._add(auth_client, "Physics")
        assert resp.status_code == 201
        chapter = resp.get_json()["chapters"][0]
        assert chapter["lectures"] == [False] * 10
        assert "diby" not in chapter

        body = auth_client.post(
            f"/api/syllabus/chapters/{chapter['id']}/lectures/0", json={"subject": "Physics"}
        ).get_json()
        body = auth_client.post(
            f"/api/syllabus/chapters/{chapter['id']}/lectures/3", json={"subject": "Physics"}
        ).get_json()
        assert body["chapters"][0]["completed"] == 2
        assert body["chapters"][0]["progress"] == 20
        assert body["progress"] == {"completed": 2, "total": 10, "percentage": 20}

    def test_grade_filter(self, auth_client):
        self._add(auth_client, "Physics")
        body = auth_client.get("/api/syllabus?subject=Physics&grade=12").get_json()
        assert body["chapters"] == []

    def test_hidden_subject(self, auth_client):
        assert self._add(auth_client, "Biology").status_code == 400

    def test_diby_only_for_maths(self, auth_client):
        chapter = self._add(auth_client, "Maths", name="Limits").get_json()["chapters"][0]
        assert chapter["diby"] == {"solved": 0, "total": 0}
        body = auth_client.post(
            f"/api/syllabus/chapters/{chapter['id']}/diby", json={"subject": "Maths", "solved": 5, "total": 20}
        ).get_json()
        assert body["showDiby"] is True
        assert body["chapters"][0]["diby"] == {"solved": 5, "total": 20}

    def test_misc_lectures(self, auth_client):
        chapter = self._add(auth_client, "Physics").get_json()["chapters"][0]
        base = f"/api/syllabus/chapters/{chapter['id']}/misc"
        misc = auth_client.post(base, json={"subject": "Physics", "name": "PYQs", "total": 3}).get_json()
        misc = misc["chapters"][0]["miscLectures"][0]
        body = auth_client.post(f"{base}/{misc['id']}/2", json={"subject": "Physics"}).get_json()
        assert body["chapters"][0]["miscLectures"][0]["checked"] == [False, False, True]

        resp = auth_client.delete(f"{base}/{misc['id']}", json={"subject": "Physics"})
        assert resp.status_code == 202
        _accept(auth_client, resp.get_json()["pending"])
        body = auth_client.get("/api/syllabus?subject=Physics").get_json()
        assert body["chapters"][0]["miscLectures"] == []

    def test_delete_chapter_needs_confirmation(self, auth_client):
        chapter = self._add(auth_client, "Physics").get_json()["chapters"][0]
        resp = auth_client.delete(f"/api/syllabus/chapters/{chapter['id']}", json={"subject": "Physics"})
        assert resp.status_code == 202
        pending = resp.get_json()["pending"]
        assert pending["message"] == "Delete chapter 'Optics'?"

        _accept(auth_client, pending, accept=False)
        assert len(auth_client.get("/api/syllabus?subject=Physics").get_json()["chapters"]) == 1

        resp = auth_client.delete(f"/api/syllabus/chapters/{chapter['id']}", json={"subject": "Physics"})
        result = _accept(auth_client, resp.get_json()["pending"]).get_json()
        assert result["result"] == {"removed": chapter["id"]}
        assert auth_client.get("/api/syllabus?subject=Physics").get_json()["chapters"] == []


class TestMocks:
    def _add(self, client, **fields):
        data = {"name": "AITS 1", "date": "2026-02-01", "p": 80, "c": 70, "m": 90}
        data.update(fields)
        return client.post("/api/mocks", json=data)

    def test_add_uses_exam_defaults(self, auth_client):
        resp = self._add(auth_client)
        assert resp.status_code == 201
        test = resp.get_json()["tests"][0]
        assert test["type"] == EXAM
        assert test["maxMarks"] == 300
        assert test["total"] == 240
        assert test["percentage"] == 80

    def test_reminder_asks_for_notifications(self, auth_client):
        body = self._add(auth_client, reminder=True).get_json()
        assert body["requestNotificationPermission"] is True

    def test_filter_and_series(self, auth_client):
        self._add(auth_client, name="Older", date="2026-01-01")
        self._add(auth_client, name="Newer", date="2026-02-15")
        self._add(auth_client, name="Custom quiz", type="Custom")
        body = auth_client.get("/api/mocks", query_string={"type": EXAM}).get_json()
        assert [t["name"] for t in body["tests"]] == ["Newer", "Older"]
        assert [p["name"] for p in body["series"]] == ["Older", "Newer"]
        assert auth_client.get("/api/mocks").get_json()["series"] == []

    def test_unknown_filter(self, auth_client):
        assert auth_client.get("/api/mocks?type=SAT").status_code == 400

    def test_delete_with_confirmation(self, auth_client):
        test = self._add(auth_client).get_json()["tests"][0]
        resp = auth_client.delete(f"/api/mocks/{test['id']}")
        assert resp.get_json()["pending"]["message"] == "Delete record?"
        _accept(auth_client, resp.get_json()["pending"])
        assert auth_client.get("/api/mocks").get_json()["tests"] == []

    def test_unknown_pending(self, auth_client):
        assert auth_client.post("/api/pending/nope", json={"accept": True}).status_code == 404

    def test_pending_needs_boolean(self, auth_client):
        test = self._add(auth_client).get_json()["tests"][0]
        pending = auth_client.delete(f"/api/mocks/{test['id']}").get_json()["pending"]
        assert auth_client.post(f"/api/pending/{pending['id']}", json={"accept": "yes"}).status_code == 400
        assert auth_client.get("/api/pending").get_json()["pending"] == [pending]


class TestKpp:
    def test_add_requires_name_and_chapter(self, auth_client):
        resp = auth_client.post("/api/kpp", json={"name": "KPP 1"})
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Name and Chapter required"

    def test_numeric_name_is_accepted(self, auth_client):
        resp = auth_client.post("/api/kpp", json={"name": 5, "chapter": "Optics"})
        assert resp.status_code == 201
        assert resp.get_json()["papers"][0]["name"] == "5"

    def test_add_update_delete(self, auth_client):
        resp = auth_client.post("/api/kpp", json={"name": "KPP 1", "chapter": "Optics", "totalScore": 40})
        assert resp.status_code == 201
        paper = resp.get_json()["papers"][0]

        body = auth_client.patch(f"/api/kpp/{paper['id']}", json={"myScore": 30, "attempted": True}).get_json()
        assert body["papers"][0]["percentage"] == 75
        assert body["papers"][0]["attempted"] is True
        assert body["series"] == [{"name": "KPP 1", "percentage": 75}]

        resp = auth_client.delete(f"/api/kpp/{paper['id']}")
        assert resp.get_json()["pending"]["message"] == "Delete KPP?"

    def test_unknown_field(self, auth_client):
        paper = auth_client.post("/api/kpp", json={"name": "K", "chapter": "C"}).get_json()["papers"][0]
        assert auth_client.patch(f"/api/kpp/{paper['id']}", json={"grade": "A"}).status_code == 400

    def test_chapter_choices_from_physics_syllabus(self, auth_client):
        auth_client.post("/api/syllabus/chapters", json={"subject": "Physics", "name": "Optics", "total_lectures": 2})
        assert auth_client.get("/api/kpp").get_json()["chapters"] == ["Optics"]


class TestTimer:
    def _job(self, client):
        return f"focus-timer:{client.user_id}"

    def test_stopwatch_session_is_saved_on_confirmation(self, auth_client, scheduler):
        assert auth_client.post("/api/timer/start").get_json()["timer"]["state"] == "running"
        scheduler.fire(self._job(auth_client), times=125)
        assert auth_client.get("/api/app").get_json()["title"] == "(02:05) PrepPilot"

        resp = auth_client.post("/api/timer/stop")
        assert resp.status_code == 202
        pending = resp.get_json()["pending"]
        assert pending["message"] == "Save 2 minutes of study?"
        assert self._job(auth_client) not in scheduler.jobs

        result = _accept(auth_client, pending).get_json()
        assert result["result"] == {"saved": 125}
        app_state = result["app"]
        assert app_state["model"]["todayMinutes"] == 2.08
        assert app_state["model"]["streak"] == 1
        assert app_state["shell"]["xp"] == 2

        analysis = auth_client.get("/api/analysis").get_json()
        assert {"name": "Physics", "value": 125} in analysis["subjectMix"]
        assert analysis["mostStudied"] == "Physics"

    def test_short_session_discarded(self, auth_client, scheduler):
        auth_client.post("/api/timer/start")
        scheduler.fire(self._job(auth_client), times=30)
        resp = auth_client.post("/api/timer/stop")
        assert resp.status_code == 200
        assert resp.get_json()["timer"]["seconds"] == 0

    def test_pause(self, auth_client, scheduler):
        auth_client.post("/api/timer/start")
        body = auth_client.post("/api/timer/pause").get_json()
        assert body["timer"]["state"] == "paused"
        assert self._job(auth_client) not in scheduler.jobs

    def test_countdown_settings(self, auth_client):
        auth_client.post("/api/timer/duration", json={"minutes": 25})
        body = auth_client.post("/api/timer/mode", json={"mode": "timer"}).get_json()
        assert body["timer"]["display"] == "25:00"
        assert auth_client.post("/api/timer/duration", json={"minutes": 0}).status_code == 400

    def test_mode_change_while_running(self, auth_client):
        auth_client.post("/api/timer/start")
        assert auth_client.post("/api/timer/mode", json={"mode": "timer"}).status_code == 400

    def test_subject_must_be_visible(self, auth_client):
        assert auth_client.post("/api/timer/subject", json={"subject": "Biology"}).status_code == 400
        body = auth_client.post("/api/timer/subject", json={"subject": "Maths"}).get_json()
        assert body["timer"]["subject"] == "Maths"

    def test_floating_frame(self, auth_client):
        resp = auth_client.get("/api/timer/frame")
        assert resp.status_code == 200
        assert resp.mimetype == "image/png"

    def test_background_url_and_clear(self, auth_client):
        body = auth_client.post("/api/timer/background", json={"url": "https://example.com/bg.jpg"}).get_json()
        assert body["bgImage"] == "https://example.com/bg.jpg"
        assert auth_client.delete("/api/timer/background").get_json() == {"bgImage": ""}

    def test_background_upload(self, auth_client):
        buf = io.BytesIO()
        Image.new("RGB", (4, 4), (255, 0, 0)).save(buf, format="PNG")
        buf.seek(0)
        resp = auth_client.post(
            "/api/timer/background",
            data={"image": (buf, "bg.png")},
            content_type="multipart/form-data",
        )
        assert resp.get_json()["bgImage"].startswith("data:image/png;base64,")

    def test_background_upload_rejects_non_images(self, auth_client):
        resp = auth_client.post(
            "/api/timer/background",
            data={"image": (io.BytesIO(b"not an image"), "bg.png")},
            content_type="multipart/form-data",
        )
        assert resp.status_code == 400


class TestAnalysis:
    def test_default_week(self, auth_client):
        body = auth_client.get("/api/analysis").get_json()
        assert body["range"] == "Week"
        assert len(body["timeline"]) == 7
        assert body["mostStudied"] == "-"

    def test_unknown_range(self, auth_client):
        assert auth_client.get("/api/analysis?range=Decade").status_code == 400

    def test_heatmap(self, auth_client):
        body = auth_client.get("/api/analysis/heatmap").get_json()
        assert body["year"] == 2026
        assert len(body["days"]) == 12


class TestChat:
    def test_greeting(self, auth_client):
        messages = auth_client.get("/api/chat").get_json()["messages"]
        assert len(messages) == 1
        assert messages[0]["role"] == "model"

    def test_send(self, auth_client, text_client):
        body = auth_client.post("/api/chat", json={"text": "Explain Newton's 2nd law"}).get_json()
        assert body["reply"]["text"].startswith("Newton's second law")
        model_reply = body["messages"][-1]
        assert [b["type"] for b in model_reply["blocks"]] == ["heading", "bullet", "spacer", "paragraph"]
        assert "<strong>F = ma</strong>" in model_reply["html"]

        model_name, parts = text_client.generate.call_args.args
        assert model_name == "gemini-1.5-flash"
        assert EXAM in parts[0]
        assert parts[0].endswith("User: Explain Newton's 2nd law")

    def test_send_with_image(self, auth_client, text_client):
        auth_client.post(
            "/api/chat",
            data={"text": "Solve this", "image": (io.BytesIO(b"jpegbytes"), "q.jpg")},
            content_type="multipart/form-data",
        )
        parts = text_client.generate.call_args.args[1]
        assert parts[1]["data"] == b"jpegbytes"

    def test_empty_message(self, auth_client, text_client):
        assert auth_client.post("/api/chat", json={"text": "  "}).status_code == 400
        text_client.generate.assert_not_called()

    def test_clear_with_confirmation(self, auth_client):
        auth_client.post("/api/chat", json={"text": "hi"})
        resp = auth_client.post("/api/chat/clear")
        assert resp.get_json()["pending"]["message"] == "Delete chat history?"
        _accept(auth_client, resp.get_json()["pending"])
        messages = auth_client.get("/api/chat").get_json()["messages"]
        assert [m["text"] for m in messages] == ["Chat cleared. Ready for new doubts!"]

    def test_briefing(self, auth_client, text_client):
        text_client.generate.return_value = "Solid start today."
        assert auth_client.post("/api/briefing").get_json() == {"briefing": "Solid start today."}

    def test_briefing_fallback(self, auth_client, text_client):
        text_client.generate.side_effect = RuntimeError("down")
        body = auth_client.post("/api/briefing").get_json()
        assert body["briefing"] == "Unable to generate briefing right now."


class TestSettings:
    def test_get_includes_activity(self, auth_client):
        body = auth_client.get("/api/settings").get_json()
        assert body["email"] == "student@example.com"
        assert body["theme"] == "Violet"
        actions = [e["action"] for e in body["recentActivity"]]
        assert "register" in actions and "email_verified" in actions

    def test_update(self, auth_client):
        body = auth_client.post("/api/settings", json={"theme": "Teal", "mode": "Light", "username": "Asha"}).get_json()
        assert body["settings"] == {"theme": "Teal", "mode": "Light", "username": "Asha"}
        assert auth_client.get("/api/app").get_json()["shell"]["theme"] == {"name": "Teal", "hex": "#14b8a6"}

    def test_unknown_theme(self, auth_client):
        assert auth_client.post("/api/settings", json={"theme": "Neon"}).status_code == 400

    def test_goal(self, auth_client):
        assert auth_client.post("/api/goal", json={"hours": 8}).get_json() == {"dailyGoal": 8}
        assert auth_client.post("/api/goal", json={"hours": -1}).status_code == 400


class TestStoreUnavailable:
    @pytest.fixture
    def broken_app(self, tmp_path, scheduler, text_client):
        class BrokenStore:
            def get(self, collection, doc_id):
                raise DocumentStoreError("offline")

            def set(self, collection, doc_id, value):
                raise DocumentStoreError("offline")

        return make_app(tmp_path, scheduler, text_client, BrokenStore())

    def test_trouble_connecting(self, broken_app):
        client = broken_app.test_client()
        assert register(client).status_code == 201
        resp = client.get("/api/app")
        assert resp.status_code == 503
        assert "trouble connecting" in resp.get_json()["error"]
