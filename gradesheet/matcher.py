#!/usr/bin/env python3
"""
Student Matcher - Resolve extracted names against a class roster.

1. Exact match on the normalized name - confidence 1.0
2. Token-set (Jaccard) similarity - confidence = |A & B| / |A | B|

A match is only accepted at or above the threshold (0.62 by default);
below it the ranked candidates are still returned for manual review.
When several roster entries share a normalized name, the first one wins.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional, List, Dict, Callable, Iterable

from .models import RosterEntry, CandidateMatch
from .normalizer import normalize_name, normalize_whitespace, tokenize

logger = logging.getLogger(__name__)

DEFAULT_MATCH_THRESHOLD = 0.62
DEFAULT_CANDIDATE_LIMIT = 3

SimilarityFunc = Callable[[str, str], float]


def jaccard_similarity(left: str, right: str) -> float:
    """
    Token-set Jaccard similarity between two names.

    Returns:
        Similarity ratio (0-1); 0 if either side has no tokens
    """
    left_tokens = set(tokenize(left))
    right_tokens = set(tokenize(right))

    if not left_tokens or not right_tokens:
        return 0.0

    union = left_tokens | right_tokens
    return len(left_tokens & right_tokens) / len(union)


@dataclass
class MatchResult:
    """Result of resolving one extracted name."""
    matched_student_id: str = ""
    matched_student_name: str = ""
    confidence: float = 0.0
    candidates: List[CandidateMatch] = field(default_factory=list)

    @property
    def is_match(self) -> bool:
        return bool(self.matched_student_id)


@dataclass
class _DirectoryEntry:
    student_id: str
    student_name: str
    normalized_name: str
    roster_entry: RosterEntry


class StudentDirectory:
    """Roster indexed by id and by normalized name, in roster order."""

    def __init__(self, roster: Iterable[RosterEntry]):
        self.entries: List[_DirectoryEntry] = []
        self.by_id: Dict[str, _DirectoryEntry] = {}
        self.by_normalized_name: Dict[str, List[_DirectoryEntry]] = {}

        for student in roster or []:
            student_id = str(student.student_id or "").strip()
            student_name = normalize_whitespace(student.student_name)
            if not student_id or not student_name:
                continue

            entry = _DirectoryEntry(student_id, student_name, normalize_name(student_name), student)
            self.entries.append(entry)
            self.by_id.setdefault(student_id, entry)
            self.by_normalized_name.setdefault(entry.normalized_name, []).append(entry)

    def get(self, student_id: str) -> Optional[RosterEntry]:
        """Get the roster entry for an id, if present."""
        entry = self.by_id.get(str(student_id or "").strip())
        return entry.roster_entry if entry else None

    def __len__(self):
        return len(self.entries)


def build_candidates(
    source_name: str,
    directory: StudentDirectory,
    similarity: SimilarityFunc = jaccard_similarity,
    limit: int = DEFAULT_CANDIDATE_LIMIT,
) -> List[CandidateMatch]:
    """
    Rank roster entries for an extracted name.

    Exact normalized matches short-circuit with confidence 1.0. Otherwise
    every entry is scored; zero scores are dropped and ties keep roster order.
    """
    normalized = normalize_name(source_name)
    if not normalized:
        return []

    exact = directory.by_normalized_name.get(normalized, [])
    if exact:
        return [CandidateMatch(e.student_id, e.student_name, 1.0) for e in exact[:limit]]

    scored = [
        CandidateMatch(e.student_id, e.student_name, similarity(normalized, e.normalized_name))
        for e in directory.entries
    ]
    scored = [c for c in scored if c.confidence > 0]
    scored.sort(key=lambda c: c.confidence, reverse=True)
    return scored[:limit]


def resolve_match(
    source_name: str,
    roster,
    similarity: SimilarityFunc = jaccard_similarity,
    threshold: float = DEFAULT_MATCH_THRESHOLD,
    limit: int = DEFAULT_CANDIDATE_LIMIT,
) -> MatchResult:
    """
    Find the best roster match for an extracted name.

    Args:
        source_name: Name as extracted from the sheet
        roster: StudentDirectory or iterable of RosterEntry
        similarity: Similarity function over normalized names (0-1)
        threshold: Minimum confidence to accept the top candidate
        limit: Maximum number of candidates returned

    Returns:
        MatchResult; matched_student_id is empty below the threshold
    """
    directory = roster if isinstance(roster, StudentDirectory) else StudentDirectory(roster)
    candidates = build_candidates(source_name, directory, similarity, limit)

    if not candidates:
        return MatchResult()

    top = candidates[0]
    if top.confidence < threshold:
        return MatchResult(confidence=top.confidence, candidates=candidates)

    return MatchResult(
        matched_student_id=top.student_id,
        matched_student_name=top.student_name,
        confidence=top.confidence,
        candidates=candidates,
    )


class StudentMatcher:
    """
    Matching policy bound to a similarity function and threshold.

    Usage:
        matcher = StudentMatcher(threshold=0.7)
        result = matcher.resolve("Ahmed Ali", directory)
    """

    def __init__(
        self,
        threshold: float = DEFAULT_MATCH_THRESHOLD,
        similarity: SimilarityFunc = jaccard_similarity,
        limit: int = DEFAULT_CANDIDATE_LIMIT,
    ):
        self.threshold = threshold
        self.similarity = similarity
        self.limit = limit

    def resolve(self, source_name: str, directory: StudentDirectory) -> MatchResult:
        """Resolve a name against the directory."""
        result = resolve_match(source_name, directory, self.similarity, self.threshold, self.limit)
        if not result.is_match and result.candidates:
            logger.debug(
                f"No confident match for '{source_name}' "
                f"(best {result.candidates[0].student_name} at {result.confidence:.2f})"
            )
        return result

    def candidates(self, source_name: str, directory: StudentDirectory) -> List[CandidateMatch]:
        """Ranked candidates without applying the threshold."""
        return build_candidates(source_name, directory, self.similarity, self.limit)
