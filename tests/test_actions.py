"""
Test: record-set operations and how they reach storage.
"""
import pytest
from analisis import actions
from analisis.actions import ActionResult, PendingDelete, PendingMerge
from analisis.dedupe import find_similar_students
from analisis.models import RecordSet
from analisis.storage import StorageError


class FailingStore:
    def __init__(self):
        self.calls = []

    def upsert_many(self, students):
        self.calls.append(("upsert_many", len(list(students))))
        raise StorageError("offline")

    def delete_one(self, student_id):
        self.calls.append(("delete_one", student_id))
        raise StorageError("offline")


@pytest.fixture
def records(make_student):
    return RecordSet(students=(
        make_student(uasa_grade="B", pbd_tp=4),
        make_student(name="SITI AMINAH", class_name="5 BIRU", uasa_grade="A"),
    ))


class TestImport:
    def test_import_csv_merges_and_reports(self, records):
        res = actions.import_csv(records, "Nama,Kelas,Subjek,TP\nali bin abu,5 merah,BM,6\nZainab,5 Biru,BM,3")
        assert isinstance(res, ActionResult)
        assert res.imported == 2
        assert res.message == "Berjaya memproses 2 baris data. Data telah digabungkan."
        assert len(res.records) == 3
        assert res.records.version == records.version + 1
        ali = res.records.students[0]
        assert (ali.uasa_grade, ali.pbd_tp) == ("B", 6)
        assert {s.name for s in res.upserts} == {"ALI BIN ABU", "ZAINAB"}
        assert res.deletes == []

    def test_empty_import_changes_nothing(self, records):
        res = actions.import_csv(records, "Nama,Kelas,Subjek")
        assert res.records is records
        assert res.upserts == [] and res.deletes == []
        assert res.message == "Tiada data untuk diimport."


class TestEdit:
    def test_plain_edit(self, records):
        target = records.students[0]
        res = actions.propose_edit(records, target.with_changes(uasa_grade="A"))
        assert isinstance(res, ActionResult)
        assert res.records.by_id(target.id).uasa_grade == "A"
        assert [s.id for s in res.upserts] == [target.id]

    def test_collision_needs_confirmation(self, records):
        siti = records.students[1]
        edited = siti.with_changes(name="Ali Bin Abu", class_name="5 Merah", pbd_tp=5)
        pending = actions.propose_edit(records, edited)
        assert isinstance(pending, PendingMerge)
        assert pending.target.id == records.students[0].id

        res = actions.confirm_merge(records, pending)
        assert len(res.records) == 1
        merged = res.records.students[0]
        assert merged.id == records.students[0].id
        assert (merged.uasa_grade, merged.pbd_tp) == ("A", 5)
        assert res.deletes == [siti.id]
        assert res.message == "Data berjaya digabungkan! TP dan Gred telah disatukan."

    def test_decline_drops_whole_edit(self, records):
        siti = records.students[1]
        pending = actions.propose_edit(records, siti.with_changes(name="ALI BIN ABU", class_name="5 MERAH"))
        res = actions.decline_merge(records, pending)
        assert res.records is records
        assert res.upserts == [] and res.deletes == []
        assert res.message == "Suntingan dibatalkan."


class TestDelete:
    def test_single(self, records):
        sid = records.students[0].id
        res = actions.delete_student(records, sid)
        assert records.by_id(sid) is not None
        assert res.records.by_id(sid) is None
        assert res.deletes == [sid]

    def test_bulk_is_two_phase(self, records):
        ids = [s.id for s in records]
        pending = actions.request_bulk_delete(ids + [ids[0], "missing"])
        assert isinstance(pending, PendingDelete)
        assert pending.ids == tuple(ids + ["missing"])

        res = actions.confirm_bulk_delete(records, pending)
        assert len(res.records) == 0
        assert res.deletes == ids
        assert res.message == "2 rekod dipadam."


class TestDuplicateTool:
    def test_resolve_keeps_one(self, make_student):
        keep = make_student(name="NURUL AINA", uasa_grade="C")
        discard = make_student(name="NURUL AINI", pbd_tp=3)
        rs = RecordSet(students=(keep, discard))
        res = actions.resolve_duplicate(rs, keep, discard)
        assert len(res.records) == 1
        out = res.records.students[0]
        assert (out.id, out.name, out.uasa_grade, out.pbd_tp) == (keep.id, "NURUL AINA", "C", 3)
        assert res.deletes == [discard.id]

    def test_resolve_does_not_overwrite_kept_values(self, make_student):
        keep = make_student(name="NURUL AINA", uasa_grade="A", pbd_tp=6)
        discard = make_student(name="NURUL AINI", uasa_grade="F", pbd_tp=1, marks=12.0)
        res = actions.resolve_duplicate(RecordSet(students=(keep, discard)), keep, discard)
        [out] = res.records.students
        assert (out.id, out.name, out.uasa_grade, out.pbd_tp, out.marks) == (keep.id, "NURUL AINA", "A", 6, 12.0)
        assert res.upserts == [out]

    def test_forget_and_ignore(self, make_student):
        students = [make_student(name="siti"), make_student(name="SITI"), make_student(name="Siti.")]
        pairs = find_similar_students(students)
        assert len(actions.forget_pairs(pairs, students[0].id)) == 1
        assert len(actions.ignore_duplicate(pairs, 0)) == 2
        assert actions.ignore_duplicate(pairs, 0) == pairs[1:]

    def test_clean_exact_duplicates(self, make_student):
        a = make_student(uasa_grade="B")
        b = make_student(name="ali bin abu", pbd_tp=5)
        res = actions.clean_duplicates(RecordSet(students=(a, b)))
        assert len(res.records) == 1
        assert res.deletes == [b.id]
        assert [s.id for s in res.upserts] == [a.id]
        assert res.message == "1 pendua digabungkan."

    def test_clean_nothing_found(self, records):
        res = actions.clean_duplicates(records)
        assert res.records is records
        assert res.message == "Tiada pendua ditemui."


class TestApply:
    def test_writes_to_store(self, records, store):
        store.upsert_many(records.students)
        res = actions.delete_student(records, records.students[1].id)
        res2 = actions.propose_edit(res.records, res.records.students[0].with_changes(marks=66.0))
        actions.apply(store, res)
        actions.apply(store, res2)
        stored = store.fetch_all()
        assert [(s.id, s.marks) for s in stored] == [(records.students[0].id, 66.0)]

    def test_failure_propagates_and_memory_keeps_new_state(self, records):
        res = actions.delete_student(records, records.students[0].id)
        failing = FailingStore()
        with pytest.raises(StorageError):
            actions.apply(failing, res)
        assert failing.calls == [("delete_one", records.students[0].id)]
        # no rollback: the snapshot already reflects the delete
        assert len(res.records) == 1

    def test_stops_at_first_failure(self, records):
        res = actions.confirm_bulk_delete(records, actions.request_bulk_delete([s.id for s in records]))
        failing = FailingStore()
        with pytest.raises(StorageError):
            actions.apply(failing, res)
        assert len(failing.calls) == 1
