from __future__ import annotations
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple
import numpy as np
import pandas as pd
from .grades import GPMP_VALUES, GRADE_LABELS, GRADES
from .models import (
    AnalysisResult, Student,
    SEVERITY_NONE, SEVERITY_WARNING, SEVERITY_CRITICAL,
)

ALL = "all"
OTHER_FORM = "Lain-lain"
LEVELS = [1, 2, 3, 4, 5, 6]

SEVERITY_LABELS = {
    SEVERITY_NONE: "Tiada Jurang",
    SEVERITY_WARNING: "Amaran (1 Tahap)",
    SEVERITY_CRITICAL: "Kritikal (2+ Tahap)",
}

_FORM_RE = re.compile(r"^\d+")
_NAT_RE = re.compile(r"(\d+)")


def form_from_class(class_name: str) -> str:
    # "1 ANGGERIK" -> "1", "PERALIHAN" -> "Lain-lain"
    m = _FORM_RE.match(class_name or "")
    return m.group(0) if m else OTHER_FORM


def natural_key(s: str) -> List[Any]:
    # "2 AMANAH" < "10 AMANAH"
    parts = _NAT_RE.split((s or "").lower())
    return [int(p) if p.isdigit() else p for p in parts]


def is_incomplete(s: Student) -> bool:
    return s.has_grade != s.has_level


def incomplete_count(students: Sequence[Student]) -> int:
    return sum(1 for s in students if is_incomplete(s))


def class_options(students: Sequence[Student]) -> List[str]:
    return sorted({s.class_name for s in students if s.class_name})


def form_options(students: Sequence[Student]) -> List[str]:
    return sorted({form_from_class(s.class_name) for s in students})
# =========================

# Gap table
# =========================
@dataclass
class FilterState:
    search: str = ""
    class_name: str = ""
    subject: str = ALL
    severity: str = ALL
    min_gap: int = 0
    tp_range: Optional[Tuple[int, int]] = None  # drill-down from the PBD view
    incomplete_only: bool = False


def filter_results(results: Sequence[AnalysisResult], f: FilterState) -> List[AnalysisResult]:
    q = (f.search or "").strip().lower()
    out = []
    for r in results:
        s = r.student
        if f.incomplete_only and not is_incomplete(s):
            continue
        if q and q not in s.name.lower():
            continue
        if f.class_name and s.class_name != f.class_name:
            continue
        if f.subject != ALL and s.subject != f.subject:
            continue
        if f.severity != ALL and r.severity != f.severity:
            continue
        if r.gap < f.min_gap:
            continue
        if f.tp_range is not None:
            lo, hi = f.tp_range
            if not s.has_level or not (lo <= s.pbd_tp <= hi):
                continue
        out.append(r)
    out.sort(key=lambda r: (r.student.class_name, r.student.name))
    return out


def summary_stats(results: Sequence[AnalysisResult]) -> Dict[str, Any]:
    levels = [r.student.pbd_tp for r in results if r.student.has_level]
    return {
        "total": len(results),
        "critical": sum(1 for r in results if r.severity == SEVERITY_CRITICAL),
        "warning": sum(1 for r in results if r.severity == SEVERITY_WARNING),
        "average_tp": round(float(np.mean(levels)), 1) if levels else 0.0,
    }


def severity_distribution(results: Sequence[AnalysisResult]) -> pd.DataFrame:
    counts = {k: 0 for k in SEVERITY_LABELS}
    for r in results:
        counts[r.severity] = counts.get(r.severity, 0) + 1
    return pd.DataFrame({
        "Status": [SEVERITY_LABELS[k] for k in SEVERITY_LABELS],
        "Bilangan": [counts[k] for k in SEVERITY_LABELS],
    })


def gap_histogram(results: Sequence[AnalysisResult]) -> pd.DataFrame:
    # complete records only, by gap size
    gaps = [r.gap for r in results if r.student.has_level and r.uasa_numeric > 0]
    return pd.DataFrame({
        "Jurang": list(range(6)),
        "Bilangan": [gaps.count(g) for g in range(6)],
    })


def tp_distribution(students: Sequence[Student]) -> pd.DataFrame:
    counts = {tp: 0 for tp in LEVELS}
    for s in students:
        if s.pbd_tp in counts:
            counts[s.pbd_tp] += 1
    return pd.DataFrame({"TP": [f"TP {tp}" for tp in LEVELS], "Bilangan": [counts[tp] for tp in LEVELS]})
# =========================

# UASA view
# =========================
def _by_form_subject(students: Sequence[Student], form: str, subject: str) -> List[Student]:
    out = []
    for s in students:
        if form != ALL and form_from_class(s.class_name) != form:
            continue
        if subject != ALL and s.subject != subject:
            continue
        out.append(s)
    return out


def uasa_view(students: Sequence[Student], form: str = ALL, subject: str = ALL) -> List[Student]:
    return [s for s in _by_form_subject(students, form, subject) if s.has_grade]


def achievement_stats(students: Sequence[Student]) -> pd.DataFrame:
    total = len(students)
    rows = []
    for g in GRADES:
        n = sum(1 for s in students if (s.uasa_grade or "").upper() == g)
        rows.append({
            "Gred": g,
            "Pencapaian": GRADE_LABELS[g],
            "Bilangan": n,
            "Peratus": round(100.0 * n / total, 1) if total else 0.0,
        })
    return pd.DataFrame(rows)


def pass_count(students: Sequence[Student]) -> int:
    return sum(1 for s in students if s.has_grade and s.uasa_grade.upper() != "F")


def gpmp(counts: Dict[str, int]) -> float:
    """GPMP = sum(count x grade value) / students graded A..F. Lower is better."""
    total = sum(counts.get(g, 0) for g in GRADES)
    if not total:
        return 0.0
    points = sum(counts.get(g, 0) * GPMP_VALUES[g] for g in GRADES)
    return round(points / total, 2)


def uasa_class_breakdown(students: Sequence[Student]) -> pd.DataFrame:
    columns = ["Kelas"] + GRADES + ["Jumlah", "GPMP"]
    groups: Dict[str, Dict[str, int]] = {}
    for s in students:
        g = (s.uasa_grade or "").upper()
        counts = groups.setdefault(s.class_name, {k: 0 for k in GRADES})
        if g in counts:
            counts[g] += 1

    rows = []
    for cls in sorted(groups, key=natural_key):
        counts = groups[cls]
        row = {"Kelas": cls, **counts}
        row["Jumlah"] = sum(counts.values())
        row["GPMP"] = gpmp(counts)
        rows.append(row)
    return pd.DataFrame(rows, columns=columns)


def uasa_student_table(students: Sequence[Student], search: str = "", grade: str = ALL) -> List[Student]:
    q = (search or "").strip().lower()
    out = [
        s for s in students
        if (not q or q in s.name.lower()) and (grade == ALL or (s.uasa_grade or "").upper() == grade)
    ]
    out.sort(key=lambda s: (s.class_name, s.name))
    return out
# =========================

# PBD view
# =========================
def pbd_view(students: Sequence[Student], form: str = ALL, subject: str = ALL) -> List[Student]:
    return [s for s in _by_form_subject(students, form, subject) if s.has_level]


def tp_class_breakdown(students: Sequence[Student]) -> pd.DataFrame:
    columns = ["Kelas"] + [f"TP {tp}" for tp in LEVELS] + ["Jumlah"]
    groups: Dict[str, Dict[int, int]] = {}
    for s in students:
        counts = groups.setdefault(s.class_name, {tp: 0 for tp in LEVELS})
        if s.pbd_tp in counts:
            counts[s.pbd_tp] += 1

    rows = []
    for cls in sorted(groups, key=natural_key):
        counts = groups[cls]
        row = {"Kelas": cls}
        row.update({f"TP {tp}": counts[tp] for tp in LEVELS})
        row["Jumlah"] = sum(counts.values())
        rows.append(row)
    return pd.DataFrame(rows, columns=columns)
