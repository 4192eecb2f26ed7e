from __future__ import annotations
import math
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional
from .models import IdentityKey, Student
from .utils import norm_key


def identity_key(s: Student) -> IdentityKey:
    return IdentityKey(norm_key(s.name), norm_key(s.class_name), norm_key(s.subject))


def _is_number(x) -> bool:
    return isinstance(x, (int, float)) and not isinstance(x, bool) and math.isfinite(x)


def merge(existing: Student, incoming: Student) -> Student:
    """
    Fill gaps, never downgrade to empty.
    Base is `existing`; incoming values win only when they carry data:
      - marks: a finite number
      - uasa_grade: non-empty after trim
      - pbd_tp: > 0
    id/name/class/subject always stay from `existing`.
    Import, edit-time collisions and the duplicate tool all go through here.
    """
    marks = incoming.marks if _is_number(incoming.marks) else existing.marks
    grade = existing.uasa_grade
    if incoming.uasa_grade and incoming.uasa_grade.strip():
        grade = incoming.uasa_grade.strip()
    tp = incoming.pbd_tp if (incoming.pbd_tp or 0) > 0 else existing.pbd_tp
    return existing.with_changes(marks=marks, uasa_grade=grade, pbd_tp=tp)


@dataclass
class DedupeResult:
    students: List[Student]
    removed_ids: List[str] = field(default_factory=list)


def deduplicate(students: Iterable[Student]) -> DedupeResult:
    """
    Folds records that already share an identity key.
    First occurrence keeps its id and position; later ones are merged into it.
    """
    by_key: Dict[IdentityKey, Student] = {}
    removed: List[str] = []
    for s in students:
        key = identity_key(s)
        if key in by_key:
            by_key[key] = merge(by_key[key], s)
            removed.append(s.id)
        else:
            by_key[key] = s
    return DedupeResult(list(by_key.values()), removed)


@dataclass
class ImportResult:
    students: List[Student]
    added: List[Student] = field(default_factory=list)
    updated: List[Student] = field(default_factory=list)
    removed_ids: List[str] = field(default_factory=list)

    @property
    def changed(self) -> List[Student]:
        return self.updated + self.added


def merge_import(current: Iterable[Student], incoming: Iterable[Student]) -> ImportResult:
    """
    Identity-keyed merge of an import batch into the current set.
    Existing keys are merged, new keys appended in incoming order.
    """
    base = deduplicate(current)
    by_key: Dict[IdentityKey, Student] = {identity_key(s): s for s in base.students}
    added_keys: List[IdentityKey] = []
    updated_keys: List[IdentityKey] = []

    for inc in incoming:
        key = identity_key(inc)
        existing = by_key.get(key)
        if existing is None:
            by_key[key] = inc
            added_keys.append(key)
        else:
            by_key[key] = merge(existing, inc)
            if key not in added_keys and key not in updated_keys:
                updated_keys.append(key)

    return ImportResult(
        students=list(by_key.values()),
        added=[by_key[k] for k in added_keys],
        updated=[by_key[k] for k in updated_keys],
        removed_ids=base.removed_ids,
    )


def find_collision(students: Iterable[Student], edited: Student) -> Optional[Student]:
    # another record (not the edited one) with the same identity key
    key = identity_key(edited)
    for s in students:
        if s.id != edited.id and identity_key(s) == key:
            return s
    return None
