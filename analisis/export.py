from __future__ import annotations
import datetime as dt
from io import BytesIO
from typing import Any, List, Optional, Sequence
import pandas as pd
from .models import AnalysisResult, DuplicatePair, SEVERITY_CRITICAL, SEVERITY_WARNING
from .scoring import results_to_frame

CSV_HEADERS = ["Nama Murid", "Kelas", "Subjek", "Markah", "Gred UASA", "TP PBD", "Jurang (Gap)", "Status"]

STATUS_LABELS = {
    SEVERITY_CRITICAL: "Kritikal",
    SEVERITY_WARNING: "Amaran",
}
STATUS_DEFAULT = "Baik"

# Starter files: (file name, header, sample rows)
TEMPLATES = {
    "all": (
        "template_basic.csv",
        ["Nama Murid", "Kelas", "Subjek", "Markah", "Gred UASA", "TP PBD"],
        ["Ali Bin Abu,5 Merah,Bahasa Melayu,85,A,6",
         "Ali Bin Abu,5 Merah,Bahasa Inggeris,70,B,4"],
    ),
    "uasa": (
        "template_uasa_markah.csv",
        ["Nama Murid", "Kelas", "Markah BM", "Gred BM", "Markah BI", "Gred BI", "Markah BC", "Gred BC"],
        ["Ali Bin Abu,5 Merah,85,A,60,B,40,D",
         "Siti Aminah,5 Biru,70,B,80,A,55,C"],
    ),
    "pbd": (
        "template_pbd.csv",
        ["Nama Murid", "Kelas", "TP BM", "TP BI", "TP BC"],
        ["Ali Bin Abu,5 Merah,6,4,3",
         "Siti Aminah,5 Biru,5,5,4"],
    ),
}


class UnknownTemplateError(ValueError):
    pass


def status_label(severity: str) -> str:
    return STATUS_LABELS.get(severity, STATUS_DEFAULT)


def _quote(s: Any) -> str:
    return '"' + str(s or "").replace('"', '""') + '"'


def _num(x: Optional[float]) -> str:
    if x is None:
        return ""
    return str(int(x)) if float(x).is_integer() else str(x)


def export_to_csv(results: Sequence[AnalysisResult]) -> str:
    """
    One row per result, in the given order. Not an import format:
    "Jurang (Gap)" and "Status" are derived and ignored on re-import.
    """
    lines = [",".join(CSV_HEADERS)]
    for r in results:
        s = r.student
        lines.append(",".join([
            _quote(s.name),
            _quote(s.class_name),
            _quote(s.subject),
            _num(s.marks),
            s.uasa_grade or "",
            str(s.pbd_tp) if s.pbd_tp else "",
            str(r.gap),
            status_label(r.severity),
        ]))
    return "\n".join(lines)


def export_filename(today: Optional[dt.date] = None) -> str:
    today = today or dt.date.today()
    return f"analisis_data_murid_{today.isoformat()}.csv"


def template_csv(kind: str = "all") -> tuple:
    """Returns (file name, csv text)."""
    if kind not in TEMPLATES:
        raise UnknownTemplateError(f"Unknown template: {kind}")
    name, headers, rows = TEMPLATES[kind]
    return name, "\n".join([",".join(headers)] + rows)


def _duplicates_frame(pairs: Sequence[DuplicatePair]) -> pd.DataFrame:
    rows = []
    for p in pairs:
        rows.append({
            "Nama (1)": p.original.name,
            "Nama (2)": p.match.name,
            "Kelas": p.original.class_name,
            "Subjek": p.original.subject,
            "Keserupaan (%)": round(p.similarity * 100, 1),
            "Sebab": p.reason,
        })
    return pd.DataFrame(rows)


def export_to_excel_bytes(
    results: Sequence[AnalysisResult],
    class_df: Optional[pd.DataFrame] = None,
    duplicates: Optional[List[DuplicatePair]] = None,
) -> bytes:
    bio = BytesIO()

    analysis_df = results_to_frame(list(results)).drop(columns=["id"])
    analysis_df["Status"] = analysis_df["Status"].map(status_label)
    dup_df = _duplicates_frame(duplicates or [])

    with pd.ExcelWriter(bio, engine="xlsxwriter") as writer:
        analysis_df.to_excel(writer, index=False, sheet_name="Analisis")
        if class_df is not None and not class_df.empty:
            class_df.to_excel(writer, index=False, sheet_name="Ringkasan Kelas")
        if not dup_df.empty:
            dup_df.to_excel(writer, index=False, sheet_name="Calon Pendua")

        wb = writer.book
        fmt_header = wb.add_format({"bold": True, "bg_color": "#F2F2F2", "border": 1, "valign": "vcenter"})
        fmt_crit = wb.add_format({"bg_color": "#FCE8E6"})
        fmt_warn = wb.add_format({"bg_color": "#FEF7E0"})

        def format_df_sheet(sheet_name: str, df: pd.DataFrame, default_width: int = 14, max_width: int = 40):
            ws = writer.sheets.get(sheet_name)
            if ws is None:
                return
            ws.freeze_panes(1, 0)
            ws.autofilter(0, 0, max(1, len(df)), max(0, len(df.columns) - 1))
            for col, name in enumerate(df.columns):
                ws.write(0, col, name, fmt_header)
                w = max(10, min(max_width, int(len(str(name)) * 1.2) + 4))
                ws.set_column(col, col, max(default_width, w))

        format_df_sheet("Analisis", analysis_df)
        ws = writer.sheets["Analisis"]
        ws.set_column(0, 0, 32)
        if len(analysis_df):
            jstat = list(analysis_df.columns).index("Status")
            last_row = len(analysis_df)
            ws.conditional_format(1, jstat, last_row, jstat, {
                "type": "text", "criteria": "containing", "value": "Kritikal", "format": fmt_crit,
            })
            ws.conditional_format(1, jstat, last_row, jstat, {
                "type": "text", "criteria": "containing", "value": "Amaran", "format": fmt_warn,
            })

        if class_df is not None and not class_df.empty:
            format_df_sheet("Ringkasan Kelas", class_df, default_width=10)
        if not dup_df.empty:
            format_df_sheet("Calon Pendua", dup_df, default_width=18, max_width=48)

    return bio.getvalue()
