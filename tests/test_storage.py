"""
Test: local JSON store.
"""
import json
import pytest
from analisis.storage import JsonStudentStore, StorageError, default_store_path, storage_mode


def test_empty_when_missing(store):
    assert store.fetch_all() == []


def test_upsert_and_fetch(store, make_student):
    a = make_student(uasa_grade="A", pbd_tp=6, marks=90.0)
    b = make_student(name="SITI")
    assert store.upsert_many([a, b]) == 2
    assert store.fetch_all() == [a, b]


def test_upsert_replaces_by_id(store, make_student):
    a = make_student()
    store.upsert_one(a)
    store.upsert_one(a.with_changes(uasa_grade="C"))
    out = store.fetch_all()
    assert len(out) == 1
    assert out[0].uasa_grade == "C"


def test_stored_shape(store, make_student):
    a = make_student(pbd_tp=4)
    store.upsert_one(a)
    with open(store.path, encoding="utf-8") as f:
        doc = json.load(f)
    assert doc[a.id] == {
        "id": a.id, "name": "ALI BIN ABU", "className": "5 MERAH", "subject": "Bahasa Melayu",
        "uasaGrade": None, "pbdTP": 4, "marks": None,
    }


def test_delete_one(store, make_student):
    a, b = make_student(), make_student(name="SITI")
    store.upsert_many([a, b])
    store.delete_one(a.id)
    store.delete_one("not-there")
    assert store.fetch_all() == [b]


def test_clear(store, make_student):
    store.upsert_one(make_student())
    store.clear()
    assert store.fetch_all() == []
    store.clear()


def test_legacy_list_with_empty_sentinels(store):
    store.path.write_text(json.dumps([
        {"id": "x1", "name": "ALI", "className": "1 A", "subject": "Bahasa Melayu",
         "uasaGrade": "", "pbdTP": 0, "marks": ""},
    ]), encoding="utf-8")
    [s] = store.fetch_all()
    assert s.id == "x1"
    assert (s.uasa_grade, s.pbd_tp, s.marks) == (None, None, None)


def test_corrupt_file_raises(store):
    store.path.write_text("{not json", encoding="utf-8")
    with pytest.raises(StorageError):
        store.fetch_all()


def test_default_path_follows_env(tmp_path, monkeypatch):
    monkeypatch.setenv("ANALISIS_DATA_DIR", str(tmp_path / "elsewhere"))
    assert default_store_path() == tmp_path / "elsewhere" / "students.json"
    assert JsonStudentStore().path == tmp_path / "elsewhere" / "students.json"


def test_mode_names_path(store):
    assert str(store.path) in store.mode


def test_storage_mode_label(store):
    assert storage_mode(store) == store.mode
