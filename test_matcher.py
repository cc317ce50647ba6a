import pytest

from gradesheet.matcher import (
    StudentDirectory,
    StudentMatcher,
    build_candidates,
    jaccard_similarity,
    resolve_match,
)
from gradesheet.models import RosterEntry


class TestJaccardSimilarity:

    def test_identical(self):
        assert jaccard_similarity("Ahmed Ali", "ahmed ali") == 1.0

    def test_partial_overlap(self):
        # {ahmed, ali} vs {ahmed, ali, hassan}
        assert jaccard_similarity("Ahmed Ali", "Ahmed Ali Hassan") == pytest.approx(2 / 3)

    def test_no_tokens(self):
        assert jaccard_similarity("", "Ahmed") == 0.0


class TestResolveMatch:

    def test_exact_match_after_normalization(self, roster):
        result = resolve_match("  AHMED   ali ", roster)

        assert result.matched_student_id == "s1"
        assert result.matched_student_name == "Ahmed Ali"
        assert result.confidence == 1.0
        assert result.is_match

    def test_fuzzy_match_above_threshold(self):
        roster = [RosterEntry("s1", "Ahmed Ali Hassan", {"5A"})]

        result = resolve_match("Ahmed Ali", roster)

        assert result.matched_student_id == "s1"
        assert result.confidence == pytest.approx(2 / 3)

    def test_below_threshold_keeps_candidates(self, roster):
        # {ahmed} vs {ahmed, ali} = 0.5
        result = resolve_match("Ahmed", roster)

        assert result.matched_student_id == ""
        assert not result.is_match
        assert result.confidence == 0.5
        assert [c.student_id for c in result.candidates] == ["s1"]

    def test_threshold_is_configurable(self, roster):
        assert resolve_match("Ahmed", roster, threshold=0.5).matched_student_id == "s1"
        assert resolve_match("Ahmed Ali", roster, threshold=1.0).matched_student_id == "s1"

    def test_no_candidates(self, roster):
        result = resolve_match("Zainab Karim", roster)
        assert result == resolve_match("", roster)
        assert result.candidates == []
        assert result.confidence == 0.0

    def test_custom_similarity(self, roster):
        result = resolve_match("anything", roster, similarity=lambda a, b: 0.9 if b == "sara noor" else 0.1)
        assert result.matched_student_id == "s2"

    def test_duplicate_names_first_wins(self):
        roster = [RosterEntry("a", "Sara Noor"), RosterEntry("b", "sara  noor")]

        result = resolve_match("Sara Noor", roster)

        assert result.matched_student_id == "a"
        assert [c.student_id for c in result.candidates] == ["a", "b"]


class TestBuildCandidates:

    def test_ranked_and_limited(self):
        directory = StudentDirectory([
            RosterEntry("1", "Ali Omar"),
            RosterEntry("2", "Ahmed Ali Omar"),
            RosterEntry("3", "Ali Hassan"),
            RosterEntry("4", "Ali Karim"),
            RosterEntry("5", "Sara Noor"),
        ])

        candidates = build_candidates("Ahmed Ali", directory, limit=3)

        assert [c.student_id for c in candidates] == ["2", "1", "3"]
        assert all(c.confidence > 0 for c in candidates)

    def test_zero_scores_dropped(self):
        directory = StudentDirectory([RosterEntry("1", "Sara Noor")])
        assert build_candidates("Ahmed", directory) == []


class TestStudentDirectory:

    def test_skips_entries_without_id_or_name(self):
        directory = StudentDirectory([RosterEntry("", "Ghost"), RosterEntry("x", "  "), RosterEntry("1", "Sara")])
        assert len(directory) == 1

    def test_get(self, roster):
        directory = StudentDirectory(roster)
        assert directory.get("s2").student_name == "Sara Noor"
        assert directory.get("missing") is None


def test_student_matcher_uses_its_threshold(roster):
    directory = StudentDirectory(roster)

    assert StudentMatcher(threshold=0.4).resolve("Ahmed", directory).matched_student_id == "s1"
    assert StudentMatcher().resolve("Ahmed", directory).matched_student_id == ""
    assert len(StudentMatcher(limit=1).candidates("Ali", directory)) == 1
