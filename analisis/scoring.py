from __future__ import annotations
from typing import Iterable, List
import numpy as np
import pandas as pd
from .grades import grade_to_level
from .models import (
    AnalysisResult, Student,
    SEVERITY_NONE, SEVERITY_WARNING, SEVERITY_CRITICAL,
    DIRECTION_POSITIVE, DIRECTION_NEGATIVE, DIRECTION_NEUTRAL,
)


def severity_for_gap(gap: int) -> str:
    if gap >= 2:
        return SEVERITY_CRITICAL
    if gap == 1:
        return SEVERITY_WARNING
    return SEVERITY_NONE


def analyze(student: Student) -> AnalysisResult:
    """
    PBD level vs UASA grade for one record.
    Incomplete records (no mappable grade or no level) get gap 0 / neutral / none.
    """
    uasa = grade_to_level(student.uasa_grade)
    tp = student.pbd_tp or 0

    if uasa == 0 or tp <= 0:
        return AnalysisResult(student, uasa, 0, DIRECTION_NEUTRAL, SEVERITY_NONE)

    gap = abs(tp - uasa)
    if tp > uasa:
        direction = DIRECTION_POSITIVE
    elif tp < uasa:
        direction = DIRECTION_NEGATIVE
    else:
        direction = DIRECTION_NEUTRAL

    return AnalysisResult(student, uasa, gap, direction, severity_for_gap(gap))


def analyze_all(students: Iterable[Student]) -> List[AnalysisResult]:
    return [analyze(s) for s in students]


def results_to_frame(results: List[AnalysisResult]) -> pd.DataFrame:
    # flat table for the dashboard / Excel report
    rows = []
    for r in results:
        s = r.student
        rows.append({
            "id": s.id,
            "Nama Murid": s.name,
            "Kelas": s.class_name,
            "Subjek": s.subject,
            "Markah": np.nan if s.marks is None else s.marks,
            "Gred UASA": s.uasa_grade or "",
            "TP PBD": s.pbd_tp or 0,
            "UASA (TP)": r.uasa_numeric,
            "Jurang (Gap)": r.gap,
            "Arah": r.gap_direction,
            "Status": r.severity,
        })
    columns = ["id", "Nama Murid", "Kelas", "Subjek", "Markah", "Gred UASA", "TP PBD",
               "UASA (TP)", "Jurang (Gap)", "Arah", "Status"]
    return pd.DataFrame(rows, columns=columns)
