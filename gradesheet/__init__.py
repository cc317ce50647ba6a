#!/usr/bin/env python3
"""
Gradesheet Module - Import grade sheets into student score records.

Components:
- normalizer: Arabic/Latin name and digit normalization
- parser: Score parsing ("17/20", "85%", "17")
- extractor: Row extraction strategies (structured rows, AI, text)
- llm_extractor: OpenRouter/Ollama extraction capability
- matcher: Match extracted names to a class roster
- conflicts: Detect overwrites of existing scores
- service: Two-phase preview/confirm import
- store: Score record stores (in-memory, SQL)
- roster: Load class rosters from the database
"""

from .exceptions import GradeImportError, ImportRequestError
from .models import (
    IssueCode,
    ScoreRecord,
    RosterEntry,
    RawRow,
    CandidateMatch,
    PreviewRow,
    PreviewReport,
)
from .normalizer import normalize_name, normalize_digits
from .parser import ScoreParser, ParsedScore, parse_score
from .extractor import ExtractionSource, ExtractionResult, RowExtractor, parse_rows_from_text
from .llm_extractor import LLMGradeExtractor, create_llm_extractor
from .matcher import StudentMatcher, StudentDirectory, MatchResult, jaccard_similarity
from .conflicts import OverwriteCheck, check_overwrite
from .outcomes import Created, Updated, Skipped, Unrecognized, SkipReason, ImportResult
from .service import GradeImportService, PreviewRequest, ConfirmRequest
from .store import ScoreStore, InMemoryScoreStore, SqlScoreStore
from .roster import SqlRosterProvider

__all__ = [
    "GradeImportError",
    "ImportRequestError",
    "IssueCode",
    "ScoreRecord",
    "RosterEntry",
    "RawRow",
    "CandidateMatch",
    "PreviewRow",
    "PreviewReport",
    "normalize_name",
    "normalize_digits",
    "ScoreParser",
    "ParsedScore",
    "parse_score",
    "ExtractionSource",
    "ExtractionResult",
    "RowExtractor",
    "parse_rows_from_text",
    "LLMGradeExtractor",
    "create_llm_extractor",
    "StudentMatcher",
    "StudentDirectory",
    "MatchResult",
    "jaccard_similarity",
    "OverwriteCheck",
    "check_overwrite",
    "Created",
    "Updated",
    "Skipped",
    "Unrecognized",
    "SkipReason",
    "ImportResult",
    "GradeImportService",
    "PreviewRequest",
    "ConfirmRequest",
    "ScoreStore",
    "InMemoryScoreStore",
    "SqlScoreStore",
    "SqlRosterProvider",
]
