from __future__ import annotations
import logging
from typing import Dict, Iterable, List, Optional, Set, Tuple
from rapidfuzz.distance import Levenshtein
from .models import DuplicatePair, Student
from .utils import load_rules, norm_key

logger = logging.getLogger(__name__)

RULES = load_rules().get("duplicates", {})
SIMILARITY_THRESHOLD = float(RULES.get("similarity_threshold", 0.8))
MAX_TYPO_DISTANCE = int(RULES.get("max_typo_distance", 2))
MIN_TYPO_LENGTH = int(RULES.get("min_typo_length", 5))

REASON_EXACT = "Nama sama persis (setelah dibersihkan)"


def edit_distance(a: str, b: str) -> int:
    # unit-cost insert/delete/substitute, no transpositions
    return Levenshtein.distance(a or "", b or "")


def similarity_from_distance(distance: int, a: str, b: str) -> float:
    return 1.0 - distance / max(len(a or ""), len(b or ""), 1)


def similarity(a: str, b: str) -> float:
    """1 - distance / longer length; two empty strings are 1.0."""
    return similarity_from_distance(edit_distance(a, b), a, b)


def is_candidate(distance: int, sim: float, longest: int) -> bool:
    """
    Flagged when:
      1) similarity is above the ratio threshold, or
      2) only a couple of edits apart and the longer name is long enough
         (typos in long names the ratio alone would miss)
    """
    if sim > SIMILARITY_THRESHOLD:
        return True
    return distance <= MAX_TYPO_DISTANCE and longest > MIN_TYPO_LENGTH


def _group_by_context(students: Iterable[Student]) -> Dict[Tuple[str, str], List[Student]]:
    groups: Dict[Tuple[str, str], List[Student]] = {}
    for s in students:
        groups.setdefault((norm_key(s.class_name), norm_key(s.subject)), []).append(s)
    return groups


def _compare(s1: Student, s2: Student) -> Optional[DuplicatePair]:
    n1 = norm_key(s1.name)
    n2 = norm_key(s2.name)
    if n1 == n2:
        return DuplicatePair(s1, s2, 1.0, REASON_EXACT)

    dist = edit_distance(n1, n2)
    sim = similarity_from_distance(dist, n1, n2)
    if not is_candidate(dist, sim, max(len(n1), len(n2))):
        return None
    return DuplicatePair(s1, s2, sim, f"Hampir serupa ({round(sim * 100)}%)")


def find_similar_students(students: Iterable[Student]) -> List[DuplicatePair]:
    """
    Candidate duplicate pairs for manual review, most similar first.
    Only records in the same class + subject are compared; each pair is emitted once.
    Read-only: nothing is merged here.
    """
    pairs: List[DuplicatePair] = []
    processed: Set[Tuple[str, str]] = set()

    for group in _group_by_context(students).values():
        for i in range(len(group)):
            for j in range(i + 1, len(group)):
                s1, s2 = group[i], group[j]
                pair_key = tuple(sorted((s1.id, s2.id)))
                if pair_key in processed:
                    continue
                pair = _compare(s1, s2)
                if pair is None:
                    continue
                pairs.append(pair)
                processed.add(pair_key)

    pairs.sort(key=lambda p: p.similarity, reverse=True)
    logger.info("Duplicate scan: %d candidate pairs", len(pairs))
    return pairs
