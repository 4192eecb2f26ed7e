from __future__ import annotations
import math
import uuid
from dataclasses import dataclass, field, replace
from typing import Any, Dict, NamedTuple, Optional, Tuple

SUBJECTS = ["Bahasa Melayu", "Bahasa Inggeris", "Bahasa Cina"]

SEVERITY_NONE = "none"
SEVERITY_WARNING = "warning"
SEVERITY_CRITICAL = "critical"
SEVERITIES = (SEVERITY_NONE, SEVERITY_WARNING, SEVERITY_CRITICAL)

DIRECTION_POSITIVE = "positive"  # PBD > UASA
DIRECTION_NEGATIVE = "negative"  # PBD < UASA
DIRECTION_NEUTRAL = "neutral"


def new_id() -> str:
    return str(uuid.uuid4())


def _opt_grade(x: Any) -> Optional[str]:
    if x is None:
        return None
    s = str(x).strip().upper()
    return s or None


def _opt_level(x: Any) -> Optional[int]:
    if x is None or isinstance(x, bool):
        return None
    try:
        n = int(float(x))
    except (TypeError, ValueError):
        return None
    return n if n > 0 else None


def _opt_marks(x: Any) -> Optional[float]:
    if x is None or isinstance(x, bool) or x == "":
        return None
    try:
        v = float(x)
    except (TypeError, ValueError):
        return None
    return v if math.isfinite(v) else None


@dataclass(frozen=True)
class Student:
    """
    One student in one class taking one subject.
    uasa_grade / pbd_tp / marks are None when not recorded.
    """
    name: str
    class_name: str
    subject: str
    uasa_grade: Optional[str] = None
    pbd_tp: Optional[int] = None
    marks: Optional[float] = None
    id: str = field(default_factory=new_id)

    def with_changes(self, **changes) -> "Student":
        return replace(self, **changes)

    @property
    def has_grade(self) -> bool:
        return bool(self.uasa_grade and self.uasa_grade.strip())

    @property
    def has_level(self) -> bool:
        return self.pbd_tp is not None and self.pbd_tp > 0

    def to_dict(self) -> Dict[str, Any]:
        # stored shape keeps the original field names
        return {
            "id": self.id,
            "name": self.name,
            "className": self.class_name,
            "subject": self.subject,
            "uasaGrade": self.uasa_grade,
            "pbdTP": self.pbd_tp,
            "marks": self.marks,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Student":
        """
        Accepts both the stored shape and older documents that used
        "" / 0 as "not recorded".
        """
        sid = str(d.get("id") or "").strip() or new_id()
        return cls(
            id=sid,
            name=str(d.get("name", "") or ""),
            class_name=str(d.get("className", d.get("class_name", "")) or ""),
            subject=str(d.get("subject", "") or ""),
            uasa_grade=_opt_grade(d.get("uasaGrade", d.get("uasa_grade"))),
            pbd_tp=_opt_level(d.get("pbdTP", d.get("pbd_tp"))),
            marks=_opt_marks(d.get("marks")),
        )


class IdentityKey(NamedTuple):
    name: str
    class_name: str
    subject: str


@dataclass(frozen=True)
class AnalysisResult:
    student: Student
    uasa_numeric: int
    gap: int
    gap_direction: str
    severity: str


@dataclass(frozen=True)
class DuplicatePair:
    original: Student
    match: Student
    similarity: float
    reason: str


@dataclass(frozen=True)
class RecordSet:
    """
    Versioned snapshot of the current record collection. Owned by the shell;
    core functions return new snapshots instead of mutating this one.
    """
    students: Tuple[Student, ...] = ()
    version: int = 0

    def replace(self, students) -> "RecordSet":
        return RecordSet(students=tuple(students), version=self.version + 1)

    def by_id(self, student_id: str) -> Optional[Student]:
        for s in self.students:
            if s.id == student_id:
                return s
        return None

    def __len__(self) -> int:
        return len(self.students)

    def __iter__(self):
        return iter(self.students)
