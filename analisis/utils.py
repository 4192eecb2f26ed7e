import os
import re
import json
from pathlib import Path
from typing import Any, Dict, Optional

BASE_DIR = Path(__file__).resolve().parent.parent
DEFAULT_DATA_DIR = BASE_DIR / "data"

DEFAULT_RULES: Dict[str, Any] = {
    "duplicates": {
        "similarity_threshold": 0.8,
        "max_typo_distance": 2,
        "min_typo_length": 5,
    },
    "storage": {
        "file_name": "students.json",
    },
}


def user_data_dir() -> Path:
    override = os.environ.get("ANALISIS_DATA_DIR")
    if override:
        return Path(override)
    appdata = os.environ.get("APPDATA")
    if appdata:
        return Path(appdata) / "AnalisisPBD" / "data"
    return DEFAULT_DATA_DIR  # fallback


def load_json(path: Path, default: Any):
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, ValueError):
        return default


def rules_path() -> Path:
    return DEFAULT_DATA_DIR / "rules.json"


def load_rules(path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Built-in defaults with data/rules.json layered on top (one level deep).
    """
    loaded = load_json(path or rules_path(), {})
    rules = {k: dict(v) for k, v in DEFAULT_RULES.items()}
    if not isinstance(loaded, dict):
        return rules
    for section, values in loaded.items():
        if isinstance(values, dict):
            rules.setdefault(section, {}).update(values)
    return rules


_NON_ALNUM_RE = re.compile(r"[^a-z0-9]")
_WS_RE = re.compile(r"\s+")
_INT_RE = re.compile(r"\d+")


def norm_key(s: Any) -> str:
    """
    Comparison key for names/classes/subjects:
    - lower
    - everything outside [a-z0-9] -> space
    - trim, collapse spaces
    Never used for display.
    """
    if s is None:
        return ""
    s = _NON_ALNUM_RE.sub(" ", str(s).lower())
    return _WS_RE.sub(" ", s).strip()


def clean_display(s: Any) -> str:
    # display form: uppercase, single spaces
    if s is None:
        return ""
    return _WS_RE.sub(" ", str(s).replace("\ufeff", "")).strip().upper()


def extract_number(s: Any) -> int:
    # first integer anywhere in the cell ("TP4", "Band 4"), 0 if none
    if s is None:
        return 0
    m = _INT_RE.search(str(s))
    return int(m.group(0)) if m else 0
