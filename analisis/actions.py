"""
Record-set operations for the dashboard shell.

Every operation takes the current RecordSet and returns either an ActionResult
(new snapshot + the persistence calls to issue) or a pending decision that the
shell shows to the user before calling the matching confirm/decline function.
The in-memory snapshot is meant to be committed immediately; persistence
failures are reported, not rolled back.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Union
from .entity import deduplicate, find_collision, merge, merge_import
from .ingest import parse_csv
from .models import DuplicatePair, RecordSet, Student
from .storage import StudentStore

logger = logging.getLogger(__name__)


@dataclass
class ActionResult:
    records: RecordSet
    upserts: List[Student] = field(default_factory=list)
    deletes: List[str] = field(default_factory=list)
    message: str = ""
    imported: int = 0


@dataclass(frozen=True)
class PendingMerge:
    edited: Student
    target: Student


@dataclass(frozen=True)
class PendingDelete:
    ids: tuple


def _without(records: RecordSet, drop_id: str, replace_with: Optional[Student] = None) -> List[Student]:
    out = []
    for s in records:
        if s.id == drop_id:
            continue
        if replace_with is not None and s.id == replace_with.id:
            out.append(replace_with)
        else:
            out.append(s)
    return out


def import_students(records: RecordSet, incoming: Sequence[Student]) -> ActionResult:
    if not incoming:
        return ActionResult(records, message="Tiada data untuk diimport.")
    res = merge_import(records.students, incoming)
    logger.info("Import: %d new, %d updated, %d folded", len(res.added), len(res.updated), len(res.removed_ids))
    return ActionResult(
        records.replace(res.students),
        upserts=res.changed,
        deletes=list(res.removed_ids),
        message=f"Berjaya memproses {len(incoming)} baris data. Data telah digabungkan.",
        imported=len(incoming),
    )


def import_csv(records: RecordSet, text: str) -> ActionResult:
    return import_students(records, parse_csv(text))


def propose_edit(records: RecordSet, edited: Student) -> Union[ActionResult, PendingMerge]:
    """
    Applies an edit, or returns PendingMerge when the edited identity now
    matches a different record.
    """
    target = find_collision(records.students, edited)
    if target is not None:
        logger.info("Edit of %s collides with %s", edited.id, target.id)
        return PendingMerge(edited=edited, target=target)
    students = [edited if s.id == edited.id else s for s in records]
    return ActionResult(records.replace(students), upserts=[edited])


def confirm_merge(records: RecordSet, pending: PendingMerge) -> ActionResult:
    merged = merge(pending.target, pending.edited)
    students = _without(records, pending.edited.id, replace_with=merged)
    return ActionResult(
        records.replace(students),
        upserts=[merged],
        deletes=[pending.edited.id],
        message="Data berjaya digabungkan! TP dan Gred telah disatukan.",
    )


def decline_merge(records: RecordSet, pending: PendingMerge) -> ActionResult:
    # the whole edit is dropped, not only the identity change
    return ActionResult(records, message="Suntingan dibatalkan.")


def delete_student(records: RecordSet, student_id: str) -> ActionResult:
    students = [s for s in records if s.id != student_id]
    return ActionResult(records.replace(students), deletes=[student_id])


def request_bulk_delete(ids: Iterable[str]) -> PendingDelete:
    return PendingDelete(ids=tuple(dict.fromkeys(ids)))


def confirm_bulk_delete(records: RecordSet, pending: PendingDelete) -> ActionResult:
    drop = set(pending.ids)
    students = [s for s in records if s.id not in drop]
    return ActionResult(
        records.replace(students),
        deletes=[i for i in pending.ids if records.by_id(i) is not None],
        message=f"{len(records) - len(students)} rekod dipadam.",
    )


def resolve_duplicate(records: RecordSet, keep: Student, discard: Student) -> ActionResult:
    # keep's recorded values win; discard only fills what keep lacks
    merged = merge(discard, keep).with_changes(
        id=keep.id, name=keep.name, class_name=keep.class_name, subject=keep.subject,
    )
    students = _without(records, discard.id, replace_with=merged)
    return ActionResult(records.replace(students), upserts=[merged], deletes=[discard.id])


def forget_pairs(pairs: Sequence[DuplicatePair], *ids: str) -> List[DuplicatePair]:
    # drop candidate pairs that mention any of the given records
    gone = set(ids)
    return [p for p in pairs if p.original.id not in gone and p.match.id not in gone]


def ignore_duplicate(pairs: Sequence[DuplicatePair], index: int) -> List[DuplicatePair]:
    return [p for i, p in enumerate(pairs) if i != index]


def clean_duplicates(records: RecordSet) -> ActionResult:
    res = deduplicate(records.students)
    if not res.removed_ids:
        return ActionResult(records, message="Tiada pendua ditemui.")
    before = {s.id: s for s in records}
    changed = [s for s in res.students if before.get(s.id) != s]
    return ActionResult(
        records.replace(res.students),
        upserts=changed,
        deletes=list(res.removed_ids),
        message=f"{len(res.removed_ids)} pendua digabungkan.",
    )


def apply(store: StudentStore, result: ActionResult) -> None:
    """
    Issues the persistence calls of an ActionResult: one upsert_many, then one
    delete_one per id. Stops at the first StorageError; no retry, no rollback.
    """
    if result.upserts:
        store.upsert_many(result.upserts)
    for sid in result.deletes:
        store.delete_one(sid)
