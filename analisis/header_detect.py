from __future__ import annotations
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

# Wide layout: one row per student, per-subject columns ("Markah BM", "Gred BI", "TP BC")
SUBJECT_CONFIGS: List[Tuple[str, str, str]] = [
    # (canonical name, abbreviation, full name)
    ("Bahasa Melayu", "bm", "bahasa melayu"),
    ("Bahasa Inggeris", "bi", "bahasa inggeris"),
    ("Bahasa Cina", "bc", "bahasa cina"),
]

# checked in this order; a header gets at most one field ("Markah UASA BM" is marks)
WIDE_FIELD_KWS: List[Tuple[str, List[str]]] = [
    ("marks", ["markah"]),
    ("grade", ["gred", "uasa"]),
    ("tp", ["tp", "pbd", "tahap", "band"]),
]

# Long layout: one row per student-subject pair; grade is checked before
# marks, so "Markah UASA" is the grade column here (unlike wide headers)
LONG_FIELD_KWS: List[Tuple[str, List[str]]] = [
    ("name", ["nama"]),
    ("class_name", ["kelas"]),
    ("subject", ["subjek", "mata"]),
    ("grade", ["uasa", "gred"]),
    ("marks", ["markah"]),
    ("tp", ["pbd", "tp"]),
]

_TOKEN_RE = re.compile(r"[^a-z0-9]+")


def _tokens(header: str) -> List[str]:
    return [t for t in _TOKEN_RE.split(header.lower()) if t]


def mentions_subject(header: str, abbrev: str, full_name: str) -> bool:
    # abbreviations only as whole tokens ("bi" must not hit "bilangan")
    h = header.lower()
    return full_name in h or abbrev in _tokens(h)


def _field_of(header: str, table: List[Tuple[str, List[str]]]) -> Optional[str]:
    h = header.lower()
    for fld, kws in table:
        if any(k in h for k in kws):
            return fld
    return None


def first_index(headers: List[str], keyword: str) -> int:
    for i, h in enumerate(headers):
        if keyword in h.lower():
            return i
    return -1


@dataclass
class Layout:
    """
    kind == "wide": subjects maps canonical subject -> {field: column index}
    kind == "long": columns maps column index -> field
    """
    kind: str
    name_idx: int = -1
    class_idx: int = -1
    subjects: Dict[str, Dict[str, int]] = field(default_factory=dict)
    columns: Dict[int, str] = field(default_factory=dict)


def find_wide_columns(headers: List[str]) -> Dict[str, Dict[str, int]]:
    out: Dict[str, Dict[str, int]] = {}
    for subject, abbrev, full_name in SUBJECT_CONFIGS:
        cols: Dict[str, int] = {}
        for i, h in enumerate(headers):
            if not mentions_subject(h, abbrev, full_name):
                continue
            fld = _field_of(h, WIDE_FIELD_KWS)
            if fld and fld not in cols:
                cols[fld] = i
        if cols:
            out[subject] = cols
    return out


def map_long_columns(headers: List[str]) -> Dict[int, str]:
    out: Dict[int, str] = {}
    for i, h in enumerate(headers):
        fld = _field_of(h, LONG_FIELD_KWS)
        if fld:
            out[i] = fld
    return out


def detect_layout(headers: List[str]) -> Layout:
    """
    Header names are matched by keyword, case-insensitive, never as an exact schema.
    Wide wins if any header combines a subject with a field keyword.
    """
    wide = find_wide_columns(headers)
    if wide:
        return Layout(
            kind="wide",
            name_idx=first_index(headers, "nama"),
            class_idx=first_index(headers, "kelas"),
            subjects=wide,
        )
    return Layout(kind="long", columns=map_long_columns(headers))
