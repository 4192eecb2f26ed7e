from __future__ import annotations
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Protocol
from .models import Student
from .utils import load_rules, user_data_dir

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """A persistence call failed; the caller decides whether to retry or alert."""


class StudentStore(Protocol):
    def fetch_all(self) -> List[Student]: ...

    def upsert_many(self, students: Iterable[Student]) -> int: ...

    def upsert_one(self, student: Student) -> None: ...

    def delete_one(self, student_id: str) -> None: ...


def storage_mode(store: StudentStore) -> str:
    # label for the sidebar
    return getattr(store, "mode", type(store).__name__)


def default_store_path() -> Path:
    name = load_rules().get("storage", {}).get("file_name", "students.json")
    return user_data_dir() / name


class JsonStudentStore:
    """
    Local JSON document store: {id: student_dict}.
    Every call is independent (no transactions across calls).
    """

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else default_store_path()

    @property
    def mode(self) -> str:
        return f"Local JSON ({self.path})"

    def _read(self) -> Dict[str, Dict[str, Any]]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                obj = json.load(f)
        except (OSError, ValueError) as e:
            raise StorageError(f"Cannot read {self.path}: {e}") from e

        # older files were a plain list of students
        if isinstance(obj, list):
            return {str(d.get("id", "")): d for d in obj if isinstance(d, dict) and d.get("id")}
        if not isinstance(obj, dict):
            raise StorageError(f"Unexpected content in {self.path}")
        return {k: v for k, v in obj.items() if isinstance(v, dict)}

    def _write(self, docs: Dict[str, Dict[str, Any]]) -> None:
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(docs, f, ensure_ascii=False, indent=2)
            os.replace(tmp, self.path)
        except OSError as e:
            raise StorageError(f"Cannot write {self.path}: {e}") from e

    def fetch_all(self) -> List[Student]:
        docs = self._read()
        out = []
        for sid, d in docs.items():
            d = dict(d)
            d.setdefault("id", sid)
            out.append(Student.from_dict(d))
        return out

    def upsert_many(self, students: Iterable[Student]) -> int:
        docs = self._read()
        n = 0
        for s in students:
            docs[s.id] = s.to_dict()
            n += 1
        if n:
            self._write(docs)
        logger.info("Upserted %d records", n)
        return n

    def upsert_one(self, student: Student) -> None:
        self.upsert_many([student])

    def delete_one(self, student_id: str) -> None:
        docs = self._read()
        if docs.pop(student_id, None) is not None:
            self._write(docs)
            logger.info("Deleted record %s", student_id)

    def clear(self) -> None:
        try:
            if self.path.exists():
                self.path.unlink()
        except OSError as e:
            raise StorageError(f"Cannot remove {self.path}: {e}") from e
        logger.info("Cleared %s", self.path)
