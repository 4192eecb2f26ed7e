from __future__ import annotations
from typing import Any, Dict, List, Optional, Tuple
import pandas as pd

# A is best and maps highest, like TP 6 (mastery)
GRADE_TO_LEVEL: Dict[str, int] = {"A": 6, "B": 5, "C": 4, "D": 3, "E": 2, "F": 1}
LEVEL_TO_GRADE: Dict[int, str] = {v: k for k, v in GRADE_TO_LEVEL.items()}
GRADES = list(GRADE_TO_LEVEL.keys())

GRADE_LABELS: Dict[str, str] = {
    "A": "Cemerlang",
    "B": "Baik",
    "C": "Memuaskan",
    "D": "Sederhana",
    "E": "Lemah",
    "F": "Sangat Lemah",
}

# KPM grade values for GPMP (lower is better)
GPMP_VALUES: Dict[str, int] = {"A": 1, "B": 2, "C": 3, "D": 4, "E": 5, "F": 6}

MARK_BANDS: List[Tuple[str, float, float]] = [
    ("A", 85, 100),
    ("B", 70, 84),
    ("C", 55, 69),
    ("D", 40, 54),
    ("E", 20, 39),
    ("F", 0, 19),
]


def grade_to_level(grade: Any) -> int:
    """Letter grade -> 1..6, 0 when unknown or empty."""
    if grade is None:
        return 0
    return GRADE_TO_LEVEL.get(str(grade).strip().upper(), 0)


def level_to_grade(level: Any) -> Optional[str]:
    # undefined for 0 / out of range
    try:
        return LEVEL_TO_GRADE.get(int(level))
    except (TypeError, ValueError):
        return None


def grade_for_marks(marks: Any) -> Optional[str]:
    if marks is None:
        return None
    try:
        m = float(marks)
    except (TypeError, ValueError):
        return None
    if m < 0 or m > 100:
        return None
    for grade, lo, _hi in MARK_BANDS:
        if m >= lo:
            return grade
    return None


def reference_table() -> pd.DataFrame:
    rows = []
    for grade, lo, hi in MARK_BANDS:
        rows.append({
            "Gred": grade,
            "TP Sasaran": f"TP {GRADE_TO_LEVEL[grade]}",
            "Julat Markah": f"{int(lo)} - {int(hi)}",
            "Pencapaian": GRADE_LABELS[grade],
        })
    return pd.DataFrame(rows)
