"""
Analisis PBD & UASA:
- import of CSV/XLSX sheets (wide or long layout)
- PBD level vs UASA grade gap per record
- identity keys and fill-gaps merging of repeated imports
- fuzzy duplicate candidates for manual review
- class/form reports and CSV/Excel export
"""
from .models import Student, IdentityKey, AnalysisResult, DuplicatePair, RecordSet, SUBJECTS
from .utils import norm_key
from .grades import grade_to_level, level_to_grade
from .scoring import analyze, analyze_all
from .ingest import parse_csv, parse_rows, parse_upload
from .entity import identity_key, merge, merge_import, deduplicate, find_collision
from .dedupe import edit_distance, similarity, find_similar_students
from .export import export_to_csv, export_to_excel_bytes, template_csv
from .storage import JsonStudentStore, StorageError

__all__ = [
    "Student",
    "IdentityKey",
    "AnalysisResult",
    "DuplicatePair",
    "RecordSet",
    "SUBJECTS",
    "norm_key",
    "grade_to_level",
    "level_to_grade",
    "analyze",
    "analyze_all",
    "parse_csv",
    "parse_rows",
    "parse_upload",
    "identity_key",
    "merge",
    "merge_import",
    "deduplicate",
    "find_collision",
    "edit_distance",
    "similarity",
    "find_similar_students",
    "export_to_csv",
    "export_to_excel_bytes",
    "template_csv",
    "JsonStudentStore",
    "StorageError",
]
