"""
View models for each screen of the tracker.

Every builder is a pure function of the profile (plus whatever per-session
state the screen needs) and the current date, returning a JSON-able dict.
"""

from __future__ import annotations

from datetime import date
from typing import Any

import analytics
from catalog import (
    CUSTOM_EXAM,
    DEFAULT_MAX_MARKS,
    EXAM_CONFIG,
    GRADES,
    MODES,
    THEME_COLORS,
    get_theme,
    get_user_subjects,
)
from formatter import format_blocks, render_html
from profile_model import Chapter, Profile, ProfileError
from timer_engine import FocusTimer

VIEWS = ("dashboard", "prepai", "timer", "analysis", "syllabus", "mocks", "kpp", "settings")
DEFAULT_VIEW = "dashboard"

# Only the Maths syllabus tracks DIBY practice sheets
DIBY_SUBJECT = "Maths"
KPP_SUBJECT = "Physics"


def is_view(name: str) -> bool:
    return name in VIEWS


def build_shell(profile: Profile, email: str = "") -> dict:
    """Header data shared by every screen: theme, level and navigation."""
    theme = get_theme(profile.settings.theme)
    return {
        "views": list(VIEWS),
        "theme": {"name": theme.name, "hex": theme.hex},
        "mode": profile.settings.mode,
        "email": email,
        "level": analytics.level(profile.xp),
        "xp": profile.xp,
        "selectedExams": list(profile.selected_exams),
    }


def build_dashboard(profile: Profile, today: date) -> dict:
    minutes = analytics.today_minutes(profile.history, today)
    return {
        "username": profile.settings.username,
        "countdowns": analytics.countdowns(profile.selected_exams, today),
        "todayMinutes": minutes,
        "todayLabel": analytics.format_minutes(minutes),
        "streak": analytics.streak(profile.history, today),
        "dailyGoal": profile.daily_goal,
        "goalProgress": analytics.goal_progress(profile.history, profile.daily_goal, today),
        "weeklyHours": analytics.weekly_hours(profile.history, today),
        "tasks": [t.to_dict() for t in profile.tasks],
        "pendingTasks": len(profile.pending_tasks),
        "heatmap": analytics.heatmap(profile.history, today.year),
    }


def build_prepai(messages: list[dict]) -> dict:
    return {
        "messages": [
            {
                **m,
                "blocks": format_blocks(m["text"]) if m["role"] == "model" else None,
                "html": str(render_html(m["text"])) if m["role"] == "model" else None,
            }
            for m in messages
        ],
    }


def build_timer(profile: Profile, timer: FocusTimer, today: date) -> dict:
    return {
        "timer": timer.to_dict(),
        "subjects": get_user_subjects(profile.selected_exams),
        "todayMinutes": analytics.today_minutes(profile.history, today),
        "goalProgress": analytics.goal_progress(profile.history, profile.daily_goal, today),
        "bgImage": profile.bg_image,
        "theme": get_theme(profile.settings.theme).hex,
    }


def build_analysis(profile: Profile, range_name: str, today: date) -> dict:
    series = analytics.timeline(profile.history, range_name, today)
    return {
        "range": range_name,
        "ranges": list(analytics.RANGES),
        "timeline": series,
        "totalHours": analytics.total_hours(series),
        "subjectMix": analytics.subject_mix(profile.subjects),
        "mostStudied": analytics.most_studied(profile.subjects),
    }


def _chapter_view(chapter: Chapter, with_diby: bool) -> dict:
    view = chapter.to_dict()
    view["completed"] = analytics.completed_count(chapter)
    view["progress"] = analytics.chapter_progress(chapter)
    if not with_diby:
        view.pop("diby", None)
    return view


def build_syllabus(profile: Profile, subject: str | None = None, grade: str = "11") -> dict:
    visible = get_user_subjects(profile.selected_exams)
    subject = subject or visible[0]
    if subject not in visible:
        raise ProfileError(f"Subject not available: {subject}")
    if grade not in GRADES:
        raise ProfileError(f"Unknown grade: {grade}")

    entry = profile.subject(subject)
    chapters = [c for c in entry.chapters if (c.grade or "11") == grade]
    return {
        "subjects": visible,
        "subject": subject,
        "grades": list(GRADES),
        "grade": grade,
        "showDiby": subject == DIBY_SUBJECT,
        "chapters": [_chapter_view(c, subject == DIBY_SUBJECT) for c in chapters],
        "progress": analytics.subject_progress(entry),
    }


def default_mock_type(profile: Profile) -> dict[str, Any]:
    exam = profile.selected_exams[0] if profile.selected_exams else CUSTOM_EXAM
    config = EXAM_CONFIG.get(exam)
    return {"type": exam, "maxMarks": (config.marks if config else 0) or DEFAULT_MAX_MARKS}


def build_mocks(profile: Profile, exam_type: str = "All") -> dict:
    if exam_type != "All" and exam_type != CUSTOM_EXAM and exam_type not in EXAM_CONFIG:
        raise ProfileError(f"Unknown exam: {exam_type}")
    tests = analytics.filter_mock_tests(profile.mock_tests, exam_type)
    return {
        "filter": exam_type,
        "filters": ["All", *profile.selected_exams],
        "examTypes": [*EXAM_CONFIG, CUSTOM_EXAM],
        "defaults": default_mock_type(profile),
        # Newest first for the list
        "tests": [dict(t.to_dict(), percentage=t.percentage) for t in reversed(tests)],
        "series": analytics.mock_series(profile.mock_tests, exam_type) if exam_type != "All" else [],
    }


def build_kpp(profile: Profile) -> dict:
    return {
        "chapters": [c.name for c in profile.subject(KPP_SUBJECT).chapters],
        "papers": [dict(k.to_dict(), percentage=k.percentage) for k in profile.kpp_list],
        "series": analytics.kpp_series(profile.kpp_list),
    }


def build_settings(profile: Profile, email: str = "") -> dict:
    return {
        "email": email,
        "username": profile.settings.username,
        "theme": profile.settings.theme,
        "mode": profile.settings.mode,
        "themes": [{"name": t.name, "hex": t.hex} for t in THEME_COLORS],
        "modes": list(MODES),
        "dailyGoal": profile.daily_goal,
        "bgImage": profile.bg_image,
    }


def build_view(name: str, gate: Any, params: dict, today: date, email: str = "") -> dict:
    """Model for the named screen of a ready session."""
    if not is_view(name):
        raise ProfileError(f"Unknown view: {name}")
    profile = gate.profile
    if name == "dashboard":
        return build_dashboard(profile, today)
    if name == "prepai":
        return build_prepai(gate.chat.messages())
    if name == "timer":
        return build_timer(profile, gate.timer, today)
    if name == "analysis":
        range_name = params.get("range", "Week")
        if range_name not in analytics.RANGES:
            raise ProfileError(f"Unknown range: {range_name}")
        return build_analysis(profile, range_name, today)
    if name == "syllabus":
        return build_syllabus(profile, params.get("subject"), params.get("grade", "11"))
    if name == "mocks":
        return build_mocks(profile, params.get("type", "All"))
    if name == "kpp":
        return build_kpp(profile)
    return build_settings(profile, email)
