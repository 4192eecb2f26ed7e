from __future__ import annotations
import logging
import math
import re
from io import BytesIO
from typing import Any, List, Optional
from openpyxl import load_workbook
from .grades import LEVEL_TO_GRADE
from .header_detect import Layout, detect_layout
from .models import Student
from .utils import clean_display, extract_number

logger = logging.getLogger(__name__)

DEFAULT_SUBJECT = "Bahasa Melayu"
NO_CLASS = "N/A"

_LEADING_FLOAT_RE = re.compile(r"^[-+]?(\d+(\.\d*)?|\.\d+)([eE][-+]?\d+)?")
# =========================

# Cells
# =========================
def _cell(v: Any) -> str:
    # trims, drops BOM, strips outer quotes left on field boundaries (interior ones stay)
    if v is None:
        return ""
    s = str(v).replace("\ufeff", "").strip()
    if len(s) >= 2 and s[0] == s[-1] == '"':
        s = s[1:-1].strip()
    return s


def _field(raw: str) -> str:
    # one quote off each end, then "" -> "
    s = raw.replace("\ufeff", "").strip()
    if s.startswith('"'):
        s = s[1:]
    if s.endswith('"'):
        s = s[:-1]
    return s.replace('""', '"').strip()


def split_csv_line(line: str) -> List[str]:
    """
    Quote-aware split of one line. Every double quote toggles quoted mode and
    commas inside quoted mode stay in the field, so `Ali, "5, Merah"` is two
    fields even with the space before the opening quote.
    """
    out: List[str] = []
    buf: List[str] = []
    in_quotes = False
    for ch in line:
        if ch == '"':
            in_quotes = not in_quotes
            buf.append(ch)
        elif ch == "," and not in_quotes:
            out.append(_field("".join(buf)))
            buf = []
        else:
            buf.append(ch)
    out.append(_field("".join(buf)))
    return out


def standardize_subject(value: str) -> str:
    """
    BM/BI/BC and the full names -> canonical subject, case-insensitive.
    Anything else keeps its text with the first letter capitalized.
    """
    raw = (value or "").strip()
    t = raw.lower()
    if "bahasa melayu" in t or t == "bm":
        return "Bahasa Melayu"
    if "bahasa inggeris" in t or t == "bi":
        return "Bahasa Inggeris"
    if "bahasa cina" in t or t == "bc":
        return "Bahasa Cina"
    return raw[:1].upper() + raw[1:]


def parse_marks(value: str) -> Optional[float]:
    s = (value or "").strip().replace(",", ".")
    if not s:
        return None
    m = _LEADING_FLOAT_RE.match(s)
    if not m:
        return None
    x = float(m.group(0))
    return x if math.isfinite(x) else None


def parse_level(value: str) -> Optional[int]:
    # only TP 1..6 counts as recorded ("Band 10" does not)
    n = extract_number(value)
    return n if n in LEVEL_TO_GRADE else None


def parse_grade(value: str) -> Optional[str]:
    g = (value or "").strip().upper()
    return g or None
# =========================

# Rows -> students
# =========================
def _at(row: List[str], idx: int) -> str:
    if idx < 0 or idx >= len(row):
        return ""
    return row[idx]


def _wide_students(layout: Layout, row: List[str]) -> List[Student]:
    name = clean_display(_at(row, layout.name_idx))
    if not name:
        return []
    cls = _at(row, layout.class_idx).strip().upper() or NO_CLASS

    out: List[Student] = []
    for subject, cols in layout.subjects.items():
        grade = _at(row, cols.get("grade", -1))
        marks = _at(row, cols.get("marks", -1))
        level = parse_level(_at(row, cols.get("tp", -1)))
        if not grade and not marks and level is None:
            continue
        out.append(Student(
            name=name,
            class_name=cls,
            subject=subject,
            uasa_grade=parse_grade(grade),
            pbd_tp=level,
            marks=parse_marks(marks),
        ))
    return out


def _long_student(layout: Layout, row: List[str]) -> Optional[Student]:
    fields = {"subject": DEFAULT_SUBJECT, "uasa_grade": None, "pbd_tp": None, "marks": None}
    name = ""
    cls = ""
    for idx, fld in layout.columns.items():
        value = _at(row, idx)
        if not value:
            continue
        if fld == "name":
            name = clean_display(value)
        elif fld == "class_name":
            cls = value.strip().upper()
        elif fld == "subject":
            fields["subject"] = standardize_subject(value)
        elif fld == "marks":
            fields["marks"] = parse_marks(value)
        elif fld == "grade":
            fields["uasa_grade"] = parse_grade(value)
        elif fld == "tp":
            fields["pbd_tp"] = parse_level(value)

    # identity-critical
    if not name or not cls:
        return None
    return Student(name=name, class_name=cls, **fields)


def parse_rows(rows: List[List[Any]]) -> List[Student]:
    """
    First non-empty row is the header; wide or long layout is sniffed from it.
    Returns [] when there is no data row or nothing survives filtering.
    """
    matrix = []
    for r in rows:
        cells = [_cell(v) for v in (r or [])]
        if any(cells):
            matrix.append(cells)
    if len(matrix) < 2:
        return []

    headers = [h.lower() for h in matrix[0]]
    layout = detect_layout(headers)

    students: List[Student] = []
    skipped = 0
    for row in matrix[1:]:
        if len(row) < 2:
            skipped += 1
            continue
        if layout.kind == "wide":
            got = _wide_students(layout, row)
            if not got:
                skipped += 1
            students.extend(got)
        else:
            st = _long_student(layout, row)
            if st is None:
                skipped += 1
            else:
                students.append(st)

    logger.info("Parsed %d records from %d data rows (%s layout, %d skipped)",
                len(students), len(matrix) - 1, layout.kind, skipped)
    return students


def parse_csv(text: str) -> List[Student]:
    if not text:
        return []
    lines = [ln for ln in text.replace("\r\n", "\n").replace("\r", "\n").split("\n") if ln.strip()]
    return parse_rows([split_csv_line(ln) for ln in lines])
# =========================

# Uploads (CSV bytes / XLSX)
# =========================
def _decode_csv_bytes(data: bytes) -> str:
    for enc in ("utf-8-sig", "utf-8", "cp1252"):
        try:
            return data.decode(enc)
        except UnicodeDecodeError:
            continue
    return data.decode("utf-8", errors="replace")


def _sheet_to_matrix_with_merged(data: bytes) -> List[List[Any]]:
    wb = load_workbook(BytesIO(data), read_only=False, data_only=True)
    ws = wb.worksheets[0]
    merged_map = {}
    for r in ws.merged_cells.ranges:
        min_col, min_row, max_col, max_row = r.bounds
        top_val = ws.cell(min_row, min_col).value
        for rr in range(min_row, max_row + 1):
            for cc in range(min_col, max_col + 1):
                merged_map[(rr, cc)] = top_val

    rows = []
    for r in range(1, ws.max_row + 1):
        row_vals = []
        for c in range(1, ws.max_column + 1):
            v = ws.cell(r, c).value
            if (r, c) in merged_map and (v is None or str(v).strip() == ""):
                v = merged_map[(r, c)]
            row_vals.append("" if v is None else v)
        rows.append(row_vals)
    return rows


def load_rows_from_upload(name: str, data: bytes) -> List[List[Any]]:
    """Uploaded file -> row matrix (header row first) for parse_rows."""
    lower = (name or "").lower()
    if lower.endswith(".csv") or lower.endswith(".txt"):
        text = _decode_csv_bytes(data)
        lines = [ln for ln in text.splitlines() if ln.strip()]
        return [split_csv_line(ln) for ln in lines]
    if lower.endswith(".xlsx"):
        return _sheet_to_matrix_with_merged(data)
    raise ValueError(f"Unsupported file type: {name}")


def parse_upload(name: str, data: bytes) -> List[Student]:
    return parse_rows(load_rows_from_upload(name, data))
