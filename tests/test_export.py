"""
Test: CSV / Excel export and starter templates.
"""
import datetime as dt
from io import BytesIO
import pytest
from openpyxl import load_workbook
from analisis.dedupe import find_similar_students
from analisis.export import (
    CSV_HEADERS, UnknownTemplateError, export_filename, export_to_csv, export_to_excel_bytes,
    status_label, template_csv,
)
from analisis.report import uasa_class_breakdown
from analisis.scoring import analyze_all


def test_csv_rows(make_student):
    students = [
        make_student(name='ALI "BOB" ABU', uasa_grade="D", pbd_tp=6, marks=45.0),
        make_student(name="SITI", uasa_grade="B", pbd_tp=4, marks=72.5),
        make_student(name="ZAINAB"),
    ]
    lines = export_to_csv(analyze_all(students)).split("\n")
    assert lines[0] == ",".join(CSV_HEADERS)
    assert lines[1] == '"ALI ""BOB"" ABU","5 MERAH","Bahasa Melayu",45,D,6,3,Kritikal'
    assert lines[2] == '"SITI","5 MERAH","Bahasa Melayu",72.5,B,4,1,Amaran'
    assert lines[3] == '"ZAINAB","5 MERAH","Bahasa Melayu",,,,0,Baik'


def test_csv_empty():
    assert export_to_csv([]) == ",".join(CSV_HEADERS)


def test_status_label():
    assert status_label("critical") == "Kritikal"
    assert status_label("warning") == "Amaran"
    assert status_label("none") == "Baik"


def test_export_filename():
    assert export_filename(dt.date(2024, 3, 9)) == "analisis_data_murid_2024-03-09.csv"


@pytest.mark.parametrize("kind,name", [
    ("all", "template_basic.csv"),
    ("uasa", "template_uasa_markah.csv"),
    ("pbd", "template_pbd.csv"),
])
def test_templates(kind, name):
    got_name, text = template_csv(kind)
    assert got_name == name
    assert len(text.split("\n")) == 3


def test_unknown_template():
    with pytest.raises(UnknownTemplateError):
        template_csv("sejarah")


def test_excel_workbook(make_student):
    students = [
        make_student(name="NURUL AINA", uasa_grade="D", pbd_tp=6),
        make_student(name="NURUL AINI", uasa_grade="B", pbd_tp=5),
    ]
    data = export_to_excel_bytes(
        analyze_all(students),
        class_df=uasa_class_breakdown(students),
        duplicates=find_similar_students(students),
    )
    assert data[:2] == b"PK"

    wb = load_workbook(BytesIO(data))
    assert wb.sheetnames == ["Analisis", "Ringkasan Kelas", "Calon Pendua"]
    ws = wb["Analisis"]
    header = [c.value for c in ws[1]]
    assert "id" not in header
    assert header[0] == "Nama Murid"
    status_col = header.index("Status") + 1
    assert ws.cell(2, status_col).value == "Kritikal"


def test_excel_without_optional_sheets(make_student):
    data = export_to_excel_bytes(analyze_all([make_student()]))
    wb = load_workbook(BytesIO(data))
    assert wb.sheetnames == ["Analisis"]
