"""
Study Profile: the single per-user document holding all persisted state.

Entities are frozen dataclasses; every change produces a new copy through the
helpers below (``toggle_lecture``, ``with_chapter``, ...), so lecture and
checkbox arrays can only be created at the right length and never edited in
place. ``Profile.to_document``/``Profile.from_document`` convert to and from
the camelCase JSON document kept in the document store.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any

from catalog import ALL_SUBJECTS, DEFAULT_THEME, GRADES

DEFAULT_DAILY_GOAL = 10


class ProfileError(ValueError):
    """Raised when an update would break the document's shape."""


def _bool_row(values: Any, length: int) -> tuple[bool, ...]:
    """Coerce a stored checkbox list to exactly ``length`` booleans."""
    row = [bool(v) for v in (values or [])][:length]
    row.extend([False] * (length - len(row)))
    return tuple(row)


def _number(value: Any, default: float = 0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


# ── Syllabus ───────────────────────────────────────────────────────────

@dataclass(frozen=True)
class MiscLecture:
    id: int
    name: str
    total: int
    checked: tuple[bool, ...]

    @staticmethod
    def create(id: int, name: str, total: int) -> MiscLecture:
        if total < 0:
            raise ProfileError("Video count cannot be negative.")
        return MiscLecture(id=id, name=name, total=total, checked=(False,) * total)

    def toggle(self, index: int) -> MiscLecture:
        if not 0 <= index < self.total:
            raise ProfileError(f"No video {index} in '{self.name}'.")
        checked = list(self.checked)
        checked[index] = not checked[index]
        return replace(self, checked=tuple(checked))

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "total": self.total, "checked": list(self.checked)}

    @staticmethod
    def from_dict(data: dict) -> MiscLecture:
        total = max(0, _int(data.get("total")))
        return MiscLecture(
            id=data.get("id", 0),
            name=data.get("name", ""),
            total=total,
            checked=_bool_row(data.get("checked"), total),
        )


@dataclass(frozen=True)
class Diby:
    """Maths practice counter: questions solved out of total."""
    solved: int = 0
    total: int = 0


@dataclass(frozen=True)
class Chapter:
    id: str
    name: str
    total_lectures: int
    lectures: tuple[bool, ...]
    grade: str = "11"
    misc_lectures: tuple[MiscLecture, ...] = ()
    diby: Diby = field(default_factory=Diby)

    @staticmethod
    def create(id: str, name: str, total_lectures: int, grade: str = "11") -> Chapter:
        if total_lectures < 0:
            raise ProfileError("Lecture count cannot be negative.")
        if grade not in GRADES:
            raise ProfileError(f"Unknown class: {grade}")
        return Chapter(
            id=str(id),
            name=name,
            total_lectures=total_lectures,
            lectures=(False,) * total_lectures,
            grade=grade,
        )

    def toggle_lecture(self, index: int) -> Chapter:
        if not 0 <= index < self.total_lectures:
            raise ProfileError(f"No lecture {index} in '{self.name}'.")
        lectures = list(self.lectures)
        lectures[index] = not lectures[index]
        return replace(self, lectures=tuple(lectures))

    def with_misc(self, misc: MiscLecture) -> Chapter:
        return replace(self, misc_lectures=self.misc_lectures + (misc,))

    def with_misc_toggled(self, misc_id: int, index: int) -> Chapter:
        if not any(m.id == misc_id for m in self.misc_lectures):
            raise ProfileError(f"No misc lecture {misc_id}.")
        return replace(self, misc_lectures=tuple(
            m.toggle(index) if m.id == misc_id else m for m in self.misc_lectures
        ))

    def without_misc(self, misc_id: int) -> Chapter:
        return replace(self, misc_lectures=tuple(m for m in self.misc_lectures if m.id != misc_id))

    def with_diby(self, field_name: str, value: Any) -> Chapter:
        if field_name not in ("solved", "total"):
            raise ProfileError(f"Unknown DIBY field: {field_name}")
        return replace(self, diby=replace(self.diby, **{field_name: _int(value)}))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "totalLectures": self.total_lectures,
            "lectures": list(self.lectures),
            "grade": self.grade,
            "miscLectures": [m.to_dict() for m in self.misc_lectures],
            "diby": {"solved": self.diby.solved, "total": self.diby.total},
        }

    @staticmethod
    def from_dict(data: dict) -> Chapter:
        total = max(0, _int(data.get("totalLectures")))
        diby = data.get("diby") or {}
        return Chapter(
            id=str(data.get("id", "")),
            name=data.get("name", ""),
            total_lectures=total,
            lectures=_bool_row(data.get("lectures"), total),
            grade=str(data.get("grade", "11")),
            misc_lectures=tuple(MiscLecture.from_dict(m) for m in data.get("miscLectures") or []),
            diby=Diby(solved=_int(diby.get("solved")), total=_int(diby.get("total"))),
        )


@dataclass(frozen=True)
class Subject:
    chapters: tuple[Chapter, ...] = ()
    time_spent: int = 0  # seconds

    def chapter(self, chapter_id: str) -> Chapter:
        for c in self.chapters:
            if c.id == str(chapter_id):
                return c
        raise ProfileError(f"No chapter {chapter_id}.")

    def with_chapter(self, chapter: Chapter) -> Subject:
        """Replace the chapter with the same id, or append a new one."""
        if any(c.id == chapter.id for c in self.chapters):
            return replace(self, chapters=tuple(
                chapter if c.id == chapter.id else c for c in self.chapters
            ))
        return replace(self, chapters=self.chapters + (chapter,))

    def without_chapter(self, chapter_id: str) -> Subject:
        return replace(self, chapters=tuple(c for c in self.chapters if c.id != str(chapter_id)))

    def to_dict(self) -> dict:
        return {"chapters": [c.to_dict() for c in self.chapters], "timeSpent": self.time_spent}

    @staticmethod
    def from_dict(data: dict | None) -> Subject:
        data = data or {}
        return Subject(
            chapters=tuple(Chapter.from_dict(c) for c in data.get("chapters") or []),
            time_spent=_int(data.get("timeSpent")),
        )


# ── Tasks, mock tests, practice papers ─────────────────────────────────

@dataclass(frozen=True)
class Task:
    id: int
    text: str
    subject: str = "General"
    completed: bool = False

    def to_dict(self) -> dict:
        return {"id": self.id, "text": self.text, "subject": self.subject, "completed": self.completed}

    @staticmethod
    def from_dict(data: dict) -> Task:
        return Task(
            id=data.get("id", 0),
            text=data.get("text", ""),
            subject=data.get("subject", "General"),
            completed=bool(data.get("completed", False)),
        )


@dataclass(frozen=True)
class MockTest:
    id: int
    type: str
    name: str
    date: str
    p: float
    c: float
    m: float
    total: float
    max_marks: int
    reminder: bool = False

    @staticmethod
    def create(id: int, type: str, name: str, date: str, p: Any, c: Any, m: Any,
               max_marks: Any, reminder: bool = False) -> MockTest:
        p, c, m = _number(p), _number(c), _number(m)
        return MockTest(
            id=id, type=type, name=name, date=date,
            p=p, c=c, m=m, total=p + c + m,
            max_marks=_int(max_marks) or 300,
            reminder=bool(reminder),
        )

    @property
    def percentage(self) -> int:
        return round(self.total / self.max_marks * 100) if self.max_marks > 0 else 0

    def to_dict(self) -> dict:
        return {
            "id": self.id, "type": self.type, "name": self.name, "date": self.date,
            "p": self.p, "c": self.c, "m": self.m, "total": self.total,
            "maxMarks": self.max_marks, "reminder": self.reminder,
        }

    @staticmethod
    def from_dict(data: dict) -> MockTest:
        p, c, m = _number(data.get("p")), _number(data.get("c")), _number(data.get("m"))
        return MockTest(
            id=data.get("id", 0),
            type=data.get("type", "Custom"),
            name=data.get("name", ""),
            date=data.get("date", ""),
            p=p, c=c, m=m,
            # Stored total is authoritative once written
            total=_number(data.get("total"), p + c + m),
            max_marks=_int(data.get("maxMarks"), 300),
            reminder=bool(data.get("reminder", False)),
        )


@dataclass(frozen=True)
class Kpp:
    id: int
    name: str
    chapter: str
    attempted: bool = False
    corrected: bool = False
    my_score: float = 0
    total_score: float = 0

    EDITABLE = {
        "name": "name",
        "chapter": "chapter",
        "attempted": "attempted",
        "corrected": "corrected",
        "myScore": "my_score",
        "totalScore": "total_score",
    }

    @property
    def percentage(self) -> int:
        return round(self.my_score / self.total_score * 100) if self.total_score > 0 else 0

    def with_field(self, doc_field: str, value: Any) -> Kpp:
        attr = self.EDITABLE.get(doc_field)
        if attr is None:
            raise ProfileError(f"Unknown KPP field: {doc_field}")
        if attr in ("attempted", "corrected"):
            value = bool(value)
        elif attr in ("my_score", "total_score"):
            value = _number(value)
        else:
            value = str(value)
        return replace(self, **{attr: value})

    def to_dict(self) -> dict:
        return {
            "id": self.id, "name": self.name, "chapter": self.chapter,
            "attempted": self.attempted, "corrected": self.corrected,
            "myScore": self.my_score, "totalScore": self.total_score,
        }

    @staticmethod
    def from_dict(data: dict) -> Kpp:
        return Kpp(
            id=data.get("id", 0),
            name=data.get("name", ""),
            chapter=data.get("chapter", ""),
            attempted=bool(data.get("attempted", False)),
            corrected=bool(data.get("corrected", False)),
            my_score=_number(data.get("myScore")),
            total_score=_number(data.get("totalScore")),
        )


@dataclass(frozen=True)
class Settings:
    theme: str = DEFAULT_THEME
    mode: str = "Dark"
    username: str = ""


# ── Profile ────────────────────────────────────────────────────────────

def _default_subjects() -> dict[str, Subject]:
    return {name: Subject() for name in ALL_SUBJECTS}


@dataclass(frozen=True)
class Profile:
    daily_goal: float = DEFAULT_DAILY_GOAL
    tasks: tuple[Task, ...] = ()
    subjects: dict[str, Subject] = field(default_factory=_default_subjects)
    mock_tests: tuple[MockTest, ...] = ()
    kpp_list: tuple[Kpp, ...] = ()
    history: dict[str, float] = field(default_factory=dict)
    xp: int = 0
    settings: Settings = field(default_factory=Settings)
    bg_image: str = ""
    selected_exams: tuple[str, ...] = ()

    def replace(self, **changes: Any) -> Profile:
        return replace(self, **changes)

    def subject(self, name: str) -> Subject:
        if name not in self.subjects:
            raise ProfileError(f"Unknown subject: {name}")
        return self.subjects[name]

    def with_subject(self, name: str, subject: Subject) -> Profile:
        if name not in ALL_SUBJECTS:
            raise ProfileError(f"Unknown subject: {name}")
        return replace(self, subjects={**self.subjects, name: subject})

    @property
    def pending_tasks(self) -> list[Task]:
        return [t for t in self.tasks if not t.completed]

    def all_ids(self) -> list[int]:
        """Every integer id in the document, used to keep new ids unique."""
        ids = [t.id for t in self.tasks] + [t.id for t in self.mock_tests] + [k.id for k in self.kpp_list]
        for subject in self.subjects.values():
            for chapter in subject.chapters:
                if chapter.id.isdigit():
                    ids.append(int(chapter.id))
                ids.extend(m.id for m in chapter.misc_lectures)
        return [i for i in ids if isinstance(i, int)]

    def to_document(self) -> dict:
        return {
            "dailyGoal": self.daily_goal,
            "tasks": [t.to_dict() for t in self.tasks],
            "subjects": {name: s.to_dict() for name, s in self.subjects.items()},
            "mockTests": [t.to_dict() for t in self.mock_tests],
            "kppList": [k.to_dict() for k in self.kpp_list],
            "history": dict(self.history),
            "xp": self.xp,
            "settings": {
                "theme": self.settings.theme,
                "mode": self.settings.mode,
                "username": self.settings.username,
            },
            "bgImage": self.bg_image,
            "selectedExams": list(self.selected_exams),
        }

    @staticmethod
    def from_document(doc: dict | None) -> Profile:
        """Build a Profile from a stored document, filling any missing fields."""
        if not doc:
            return default_profile()
        stored_subjects = doc.get("subjects") or {}
        settings = doc.get("settings") or {}
        return Profile(
            daily_goal=_number(doc.get("dailyGoal"), DEFAULT_DAILY_GOAL) or DEFAULT_DAILY_GOAL,
            tasks=tuple(Task.from_dict(t) for t in doc.get("tasks") or []),
            subjects={name: Subject.from_dict(stored_subjects.get(name)) for name in ALL_SUBJECTS},
            mock_tests=tuple(MockTest.from_dict(t) for t in doc.get("mockTests") or []),
            kpp_list=tuple(Kpp.from_dict(k) for k in doc.get("kppList") or []),
            history={str(k): _number(v) for k, v in (doc.get("history") or {}).items()},
            xp=_int(doc.get("xp")),
            settings=Settings(
                theme=settings.get("theme") or DEFAULT_THEME,
                mode=settings.get("mode") or "Dark",
                username=settings.get("username") or "",
            ),
            bg_image=doc.get("bgImage") or "",
            selected_exams=tuple(doc.get("selectedExams") or ()),
        )


def default_profile() -> Profile:
    """The fixed shape every new user starts with."""
    return Profile()
