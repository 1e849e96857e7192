"""Derived Analytics: streaks, countdowns, timelines and subject mix.

Every function here is pure: inputs in, values out. The current date is
always passed in by the caller so results are deterministic under test.
Nothing computed here is ever written back into the profile.
"""

from __future__ import annotations

import calendar
from datetime import date, timedelta
from typing import Iterable, Mapping

from catalog import EXAM_CONFIG, SUBJECT_CATEGORIES

RANGES = ("Week", "Month", "Year")

# Upper bounds (minutes) for heatmap intensity buckets 1..4
_HEATMAP_BOUNDS = (60, 180, 360)

XP_PER_LEVEL = 60


def _minutes(history: Mapping[str, float], day: date) -> float:
    return history.get(day.isoformat(), 0) or 0


# ── Streaks & daily totals ─────────────────────────────────────────────

def streak(history: Mapping[str, float], today: date) -> int:
    """Consecutive days with positive study time, walking back from today.

    Today only counts once it is already positive; a zero today does not
    break the streak carried by yesterday and earlier.
    """
    count = 1 if _minutes(history, today) > 0 else 0
    day = today - timedelta(days=1)
    while _minutes(history, day) > 0:
        count += 1
        day -= timedelta(days=1)
    return count


def today_minutes(history: Mapping[str, float], today: date) -> float:
    return _minutes(history, today)


def format_minutes(minutes: float) -> str:
    """Render minutes as "Xh Ym"."""
    return f"{int(minutes // 60)}h {round(minutes % 60)}m"


def goal_progress(history: Mapping[str, float], daily_goal: float, today: date) -> int:
    """Percent of today's goal (hours) reached, capped at 100."""
    if not daily_goal or daily_goal <= 0:
        return 0
    pct = round(_minutes(history, today) / (daily_goal * 60) * 100)
    return min(100, pct)


def level(xp: int) -> int:
    return (xp or 0) // XP_PER_LEVEL


# ── Countdowns ─────────────────────────────────────────────────────────

def countdowns(selected_exams: Iterable[str], today: date) -> list[dict]:
    """Whole days until each selected exam, soonest first.

    Exams without a catalog date or whose date has passed are left out; an
    exam falling on ``today`` is included with ``days == 0``.
    """
    result = []
    for exam in selected_exams or []:
        config = EXAM_CONFIG.get(exam)
        if config is None:
            continue
        days = (config.exam_date - today).days
        if days < 0:
            continue
        result.append({"exam": exam, "days": days, "date": config.date})
    result.sort(key=lambda c: c["days"])
    return result


# ── Timelines ──────────────────────────────────────────────────────────

def week_start(today: date) -> date:
    """Sunday on or before ``today``."""
    return today - timedelta(days=(today.weekday() + 1) % 7)


def weekly_series(history: Mapping[str, float], today: date) -> list[dict]:
    start = week_start(today)
    series = []
    for i in range(7):
        day = start + timedelta(days=i)
        series.append({"label": day.strftime("%a"), "date": day.isoformat(), "minutes": _minutes(history, day)})
    return series


def monthly_series(history: Mapping[str, float], today: date) -> list[dict]:
    days_in_month = calendar.monthrange(today.year, today.month)[1]
    series = []
    for d in range(1, days_in_month + 1):
        day = today.replace(day=d)
        series.append({"label": str(d), "date": day.isoformat(), "minutes": _minutes(history, day)})
    return series


def yearly_series(history: Mapping[str, float], today: date) -> list[dict]:
    totals = [0.0] * 12
    prefix = f"{today.year}-"
    for key, minutes in history.items():
        if not key.startswith(prefix):
            continue
        try:
            month = int(key[5:7])
        except ValueError:
            continue
        if 1 <= month <= 12:
            totals[month - 1] += minutes or 0
    return [
        {"label": calendar.month_abbr[i + 1], "minutes": totals[i]}
        for i in range(12)
    ]


def timeline(history: Mapping[str, float], range_name: str, today: date) -> list[dict]:
    if range_name == "Week":
        return weekly_series(history, today)
    if range_name == "Month":
        return monthly_series(history, today)
    if range_name == "Year":
        return yearly_series(history, today)
    raise ValueError(f"Unknown range: {range_name}")


def total_hours(series: Iterable[dict]) -> float:
    return round(sum(p["minutes"] for p in series) / 60, 1)


def weekly_hours(history: Mapping[str, float], today: date) -> list[dict]:
    """Dashboard bar chart: this week's hours per day, one decimal."""
    return [
        {"label": p["label"], "hours": round(p["minutes"] / 60, 1)}
        for p in weekly_series(history, today)
    ]


def heatmap(history: Mapping[str, float], year: int) -> list[dict]:
    """Twelve month grids for the yearly activity view.

    Each month's ``slots`` list is padded with ``None`` up to the weekday of
    the 1st (Sunday first), followed by one cell per day carrying an
    intensity bucket from 0 (nothing) to 4 (over six hours).
    """
    months = []
    for month in range(1, 13):
        first_weekday, days_in_month = calendar.monthrange(year, month)
        slots: list[dict | None] = [None] * ((first_weekday + 1) % 7)
        for d in range(1, days_in_month + 1):
            key = f"{year}-{month:02d}-{d:02d}"
            minutes = history.get(key, 0) or 0
            slots.append({"date": key, "day": d, "minutes": minutes, "level": _intensity(minutes)})
        months.append({"month": calendar.month_name[month], "slots": slots})
    return months


def _intensity(minutes: float) -> int:
    if minutes <= 0:
        return 0
    for bucket, bound in enumerate(_HEATMAP_BOUNDS, start=1):
        if minutes <= bound:
            return bucket
    return 4


# ── Subjects & syllabus ────────────────────────────────────────────────

def subject_mix(subjects: Mapping) -> list[dict]:
    """Seconds studied per display category, Chemistry summing its branches."""
    mix = []
    for category, members in SUBJECT_CATEGORIES.items():
        seconds = sum(subjects[m].time_spent for m in members if m in subjects)
        mix.append({"name": category, "value": seconds})
    return mix


def most_studied(subjects: Mapping) -> str:
    mix = subject_mix(subjects)
    top = max(mix, key=lambda s: s["value"])
    return top["name"] if top["value"] > 0 else "-"


def completed_count(chapter) -> int:
    return sum(1 for done in chapter.lectures if done)


def chapter_progress(chapter) -> int:
    if chapter.total_lectures <= 0:
        return 0
    return round(100 * completed_count(chapter) / chapter.total_lectures)


def subject_progress(subject) -> dict:
    total = sum(c.total_lectures for c in subject.chapters)
    done = sum(completed_count(c) for c in subject.chapters)
    return {
        "completed": done,
        "total": total,
        "percentage": round(100 * done / total) if total else 0,
    }


# ── Tests & practice papers ────────────────────────────────────────────

def filter_mock_tests(tests: Iterable, exam_type: str) -> list:
    """Tests of one type ("All" keeps everything), oldest first."""
    selected = [t for t in tests if exam_type == "All" or t.type == exam_type]
    return sorted(selected, key=lambda t: t.date)


def mock_series(tests: Iterable, exam_type: str) -> list[dict]:
    return [
        {"name": t.name, "date": t.date, "p": t.p, "c": t.c, "m": t.m,
         "total": t.total, "percentage": t.percentage}
        for t in filter_mock_tests(tests, exam_type)
    ]


def kpp_series(kpp_list: Iterable, limit: int = 7) -> list[dict]:
    papers = list(kpp_list)[-limit:]
    return [{"name": k.name, "percentage": k.percentage} for k in papers]
