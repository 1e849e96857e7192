"""
Catalogs: subjects, exams and theme palettes.

Provides three fixed data structures:
  1. ALL_SUBJECTS: the six tracked subjects, in display order
  2. EXAM_CONFIG: exam name -> date, max marks and stream (Math/Bio)
  3. THEME_COLORS: the named accent palettes for the UI
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date


# ── Data classes ───────────────────────────────────────────────────────

@dataclass(frozen=True)
class ExamConfig:
    date: str       # "YYYY-MM-DD"
    marks: int      # 0 when the paper has no fixed maximum
    type: str       # "Math" | "Bio"

    @property
    def exam_date(self) -> date:
        return date.fromisoformat(self.date)


@dataclass(frozen=True)
class ThemeColor:
    name: str
    hex: str


# ── Subjects ───────────────────────────────────────────────────────────

ALL_SUBJECTS: tuple[str, ...] = (
    "Physics",
    "Maths",
    "Biology",
    "Organic Chem",
    "Inorganic Chem",
    "Physical Chem",
)

CHEMISTRY_BRANCHES: tuple[str, ...] = ("Organic Chem", "Inorganic Chem", "Physical Chem")

# Display categories used for the subject mix chart
SUBJECT_CATEGORIES: dict[str, tuple[str, ...]] = {
    "Physics": ("Physics",),
    "Maths": ("Maths",),
    "Chemistry": CHEMISTRY_BRANCHES,
    "Biology": ("Biology",),
}

TASK_SUBJECTS: tuple[str, ...] = ("Physics", "Chemistry", "Maths", "Biology", "General")

GRADES: tuple[str, ...] = ("11", "12")


# ── Exams ──────────────────────────────────────────────────────────────

EXAM_CONFIG: dict[str, ExamConfig] = {
    "JEE Mains (Jan) 2027": ExamConfig("2027-01-21", 300, "Math"),
    "JEE Mains (April) 2027": ExamConfig("2027-04-02", 300, "Math"),
    "JEE Advanced 2026": ExamConfig("2026-05-15", 0, "Math"),
    "JEE Advanced 2027": ExamConfig("2027-05-15", 0, "Math"),
    "BITSAT 2027": ExamConfig("2027-04-15", 390, "Math"),
    "NEET 2026": ExamConfig("2026-05-05", 720, "Bio"),
    "NEET 2027": ExamConfig("2027-05-05", 720, "Bio"),
    "MHT-CET (PCM) 2026": ExamConfig("2026-04-10", 200, "Math"),
    "MHT-CET (PCB) 2026": ExamConfig("2026-04-10", 200, "Bio"),
    "MHT-CET (PCM) 2027": ExamConfig("2027-04-10", 200, "Math"),
    "MHT-CET (PCB) 2027": ExamConfig("2027-04-10", 200, "Bio"),
}

CUSTOM_EXAM = "Custom"
DEFAULT_MAX_MARKS = 300


# ── Themes ─────────────────────────────────────────────────────────────

THEME_COLORS: tuple[ThemeColor, ...] = (
    ThemeColor("Teal", "#14b8a6"),
    ThemeColor("Rose", "#f43f5e"),
    ThemeColor("Violet", "#8b5cf6"),
    ThemeColor("Amber", "#f59e0b"),
    ThemeColor("Cyan", "#06b6d4"),
    ThemeColor("Slate", "#64748b"),
)

DEFAULT_THEME = "Violet"
MODES: tuple[str, ...] = ("Dark", "Light")


def get_exam_config(exam_name: str) -> ExamConfig | None:
    return EXAM_CONFIG.get(exam_name)


def get_all_exam_names() -> list[str]:
    return list(EXAM_CONFIG)


def get_theme(name: str | None) -> ThemeColor:
    """Look up a palette by name, falling back to the default theme."""
    for theme in THEME_COLORS:
        if theme.name == name:
            return theme
    return next(t for t in THEME_COLORS if t.name == DEFAULT_THEME)


def is_theme(name: str) -> bool:
    return any(t.name == name for t in THEME_COLORS)


def get_user_subjects(selected_exams: list[str] | tuple[str, ...] | None) -> list[str]:
    """Subjects visible for an exam selection.

    An empty selection shows everything. Otherwise Maths appears only when
    a Math-stream exam is selected and Biology only for a Bio-stream exam.
    """
    exams = selected_exams or []
    if not exams:
        return list(ALL_SUBJECTS)

    streams = {EXAM_CONFIG[e].type for e in exams if e in EXAM_CONFIG}
    visible = []
    for subject in ALL_SUBJECTS:
        if subject == "Maths" and "Math" not in streams:
            continue
        if subject == "Biology" and "Bio" not in streams:
            continue
        visible.append(subject)
    return visible


def task_subject_from_hint(hint: str | None) -> str:
    """Map a free-form subject hint ("p", "chem", ...) to a task tag."""
    if not hint:
        return "General"
    first = hint.strip().lower()[:1]
    return {
        "p": "Physics",
        "c": "Chemistry",
        "m": "Maths",
        "b": "Biology",
    }.get(first, "General")
