"""
Shared fixtures. Storage always points at a temp directory; nothing touches
the real user data dir.
"""
import pytest
from analisis.models import Student
from analisis.storage import JsonStudentStore


@pytest.fixture(autouse=True)
def _isolated_data_dir(monkeypatch, tmp_path):
    monkeypatch.setenv("ANALISIS_DATA_DIR", str(tmp_path / "userdata"))
    monkeypatch.delenv("APPDATA", raising=False)


@pytest.fixture
def make_student():
    """Factory with sensible defaults; override any field by keyword."""
    def _make(name="ALI BIN ABU", class_name="5 MERAH", subject="Bahasa Melayu", **kw):
        return Student(name=name, class_name=class_name, subject=subject, **kw)
    return _make


@pytest.fixture
def store(tmp_path):
    return JsonStudentStore(tmp_path / "students.json")
