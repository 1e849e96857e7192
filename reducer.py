"""
Profile reducer: every state change as a pure (profile, action) -> profile.

Views never edit the profile directly: they dispatch a named action with a
payload through ``ProfileStore.dispatch`` which runs ``reduce`` against the
latest value. Actions that create entities expect the new ``id`` in their
payload; the store supplies it.
"""

from __future__ import annotations

import math
from collections.abc import Callable
from dataclasses import replace
from datetime import date
from typing import Any

from catalog import (
    CUSTOM_EXAM,
    DEFAULT_MAX_MARKS,
    EXAM_CONFIG,
    MODES,
    is_theme,
    task_subject_from_hint,
    TASK_SUBJECTS,
)
from profile_model import Chapter, Kpp, MiscLecture, MockTest, Profile, ProfileError, Task

Reducer = Callable[..., Profile]

ACTIONS: dict[str, Reducer] = {}

# Actions whose payload needs a freshly minted id
CREATES_ENTITY = {"task/add", "chapter/add", "chapter/add_misc", "mock/add", "kpp/add"}


def action(name: str) -> Callable[[Reducer], Reducer]:
    def register(fn: Reducer) -> Reducer:
        ACTIONS[name] = fn
        return fn
    return register


def reduce(profile: Profile, name: str, payload: dict[str, Any] | None = None) -> Profile:
    """Apply one named action. Unknown names raise ``ValueError``."""
    handler = ACTIONS.get(name)
    if handler is None:
        raise ValueError(f"Unknown action: {name}")
    try:
        return handler(profile, **(payload or {}))
    except TypeError as e:
        raise ProfileError(f"Bad payload for {name}: {e}") from e


def _required(value: Any, message: str) -> str:
    text = str(value or "").strip()
    if not text:
        raise ProfileError(message)
    return text


def _count(value: Any, label: str) -> int:
    try:
        count = int(value)
    except (TypeError, ValueError):
        raise ProfileError(f"{label} must be a whole number.") from None
    if count < 0:
        raise ProfileError(f"{label} cannot be negative.")
    return count


# ── Tasks ──────────────────────────────────────────────────────────────

@action("task/add")
def add_task(profile: Profile, id: int, text: str, subject: str | None = None) -> Profile:
    text = _required(text, "Task name is required.")
    tag = subject if subject in TASK_SUBJECTS else task_subject_from_hint(subject)
    task = Task(id=id, text=text, subject=tag)
    return profile.replace(tasks=(task,) + profile.tasks)


@action("task/toggle")
def toggle_task(profile: Profile, task_id: int) -> Profile:
    return profile.replace(tasks=tuple(
        replace(t, completed=not t.completed) if t.id == task_id else t
        for t in profile.tasks
    ))


@action("task/remove")
def remove_task(profile: Profile, task_id: int) -> Profile:
    return profile.replace(tasks=tuple(t for t in profile.tasks if t.id != task_id))


# ── Syllabus ───────────────────────────────────────────────────────────

def _update_chapter(profile: Profile, subject: str, chapter_id: str,
                    change: Callable[[Chapter], Chapter]) -> Profile:
    entry = profile.subject(subject)
    chapter = change(entry.chapter(chapter_id))
    return profile.with_subject(subject, entry.with_chapter(chapter))


@action("chapter/add")
def add_chapter(profile: Profile, subject: str, id: Any, name: str,
                total_lectures: Any, grade: str = "11") -> Profile:
    name = _required(name, "Chapter name is required.")
    chapter = Chapter.create(str(id), name, _count(total_lectures, "Lecture count"), str(grade))
    entry = profile.subject(subject)
    return profile.with_subject(subject, entry.with_chapter(chapter))


@action("chapter/remove")
def remove_chapter(profile: Profile, subject: str, chapter_id: str) -> Profile:
    entry = profile.subject(subject)
    return profile.with_subject(subject, entry.without_chapter(chapter_id))


@action("chapter/toggle_lecture")
def toggle_lecture(profile: Profile, subject: str, chapter_id: str, index: int) -> Profile:
    return _update_chapter(profile, subject, chapter_id, lambda c: c.toggle_lecture(int(index)))


@action("chapter/add_misc")
def add_misc_lecture(profile: Profile, subject: str, chapter_id: str, id: int,
                     name: str, total: Any) -> Profile:
    name = _required(name, "Misc lecture name is required.")
    misc = MiscLecture.create(id, name, _count(total, "Video count"))
    return _update_chapter(profile, subject, chapter_id, lambda c: c.with_misc(misc))


@action("chapter/toggle_misc")
def toggle_misc_lecture(profile: Profile, subject: str, chapter_id: str,
                        misc_id: int, index: int) -> Profile:
    return _update_chapter(
        profile, subject, chapter_id, lambda c: c.with_misc_toggled(misc_id, int(index))
    )


@action("chapter/remove_misc")
def remove_misc_lecture(profile: Profile, subject: str, chapter_id: str, misc_id: int) -> Profile:
    return _update_chapter(profile, subject, chapter_id, lambda c: c.without_misc(misc_id))


@action("chapter/update_diby")
def update_diby(profile: Profile, subject: str, chapter_id: str, field: str, value: Any) -> Profile:
    return _update_chapter(profile, subject, chapter_id, lambda c: c.with_diby(field, value))


# ── Mock tests & practice papers ───────────────────────────────────────

@action("mock/add")
def add_mock_test(profile: Profile, id: int, name: str, date: str, type: str = CUSTOM_EXAM,
                  p: Any = 0, c: Any = 0, m: Any = 0, max_marks: Any = None,
                  reminder: bool = False) -> Profile:
    name = _required(name, "Test name is required.")
    test_date = _required(date, "Test date is required.")
    if type != CUSTOM_EXAM and type not in EXAM_CONFIG:
        raise ProfileError(f"Unknown exam: {type}")
    if not max_marks:
        config = EXAM_CONFIG.get(type)
        max_marks = (config.marks if config else 0) or DEFAULT_MAX_MARKS
    test = MockTest.create(id, type, name, test_date, p, c, m, max_marks, reminder)
    return profile.replace(mock_tests=profile.mock_tests + (test,))


@action("mock/remove")
def remove_mock_test(profile: Profile, test_id: int) -> Profile:
    return profile.replace(mock_tests=tuple(t for t in profile.mock_tests if t.id != test_id))


@action("kpp/add")
def add_kpp(profile: Profile, id: int, name: str, chapter: str, attempted: bool = False,
            corrected: bool = False, my_score: Any = 0, total_score: Any = 0) -> Profile:
    name = _required(name, "Name and Chapter required")
    chapter = _required(chapter, "Name and Chapter required")
    kpp = Kpp(id=id, name=name, chapter=chapter)
    kpp = kpp.with_field("attempted", attempted).with_field("corrected", corrected)
    kpp = kpp.with_field("myScore", my_score).with_field("totalScore", total_score)
    return profile.replace(kpp_list=profile.kpp_list + (kpp,))


@action("kpp/update")
def update_kpp(profile: Profile, kpp_id: int, field: str, value: Any) -> Profile:
    return profile.replace(kpp_list=tuple(
        k.with_field(field, value) if k.id == kpp_id else k for k in profile.kpp_list
    ))


@action("kpp/remove")
def remove_kpp(profile: Profile, kpp_id: int) -> Profile:
    return profile.replace(kpp_list=tuple(k for k in profile.kpp_list if k.id != kpp_id))


# ── Study sessions ─────────────────────────────────────────────────────

@action("session/commit")
def commit_session(profile: Profile, subject: str, seconds: int, today: date | str) -> Profile:
    """Fold a finished timer session into history, subject time and XP."""
    seconds = int(seconds)
    if seconds < 0:
        raise ProfileError("Session length cannot be negative.")
    minutes = round(seconds / 60, 2)
    day = today.isoformat() if isinstance(today, date) else str(today)

    history = dict(profile.history)
    history[day] = history.get(day, 0) + minutes

    entry = profile.subject(subject)
    entry = replace(entry, time_spent=entry.time_spent + seconds)

    return profile.with_subject(subject, entry).replace(
        history=history,
        xp=profile.xp + math.floor(minutes),
    )


# ── Settings & preferences ─────────────────────────────────────────────

@action("settings/update")
def update_settings(profile: Profile, theme: str | None = None, mode: str | None = None,
                    username: str | None = None) -> Profile:
    settings = profile.settings
    if theme is not None:
        if not is_theme(theme):
            raise ProfileError(f"Unknown theme: {theme}")
        settings = replace(settings, theme=theme)
    if mode is not None:
        if mode not in MODES:
            raise ProfileError(f"Unknown mode: {mode}")
        settings = replace(settings, mode=mode)
    if username is not None:
        settings = replace(settings, username=str(username).strip())
    return profile.replace(settings=settings)


@action("goal/set")
def set_daily_goal(profile: Profile, hours: Any) -> Profile:
    try:
        goal = float(hours)
    except (TypeError, ValueError):
        raise ProfileError("Daily goal must be a number.") from None
    if goal <= 0 or math.isnan(goal):
        raise ProfileError("Daily goal must be positive.")
    return profile.replace(daily_goal=goal)


@action("background/set")
def set_background(profile: Profile, image: str | None) -> Profile:
    return profile.replace(bg_image=image or "")


@action("exams/select")
def select_exams(profile: Profile, exams: list[str]) -> Profile:
    unknown = [e for e in exams if e not in EXAM_CONFIG]
    if unknown:
        raise ProfileError(f"Unknown exam: {', '.join(unknown)}")
    # Keep the caller's order, drop duplicates
    return profile.replace(selected_exams=tuple(dict.fromkeys(exams)))
