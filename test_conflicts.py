from gradesheet.conflicts import check_overwrite, find_existing
from gradesheet.models import ScoreRecord

RECORDS = [
    ScoreRecord("Math", "Quiz 1", 8, 10),
    ScoreRecord("Science", "Quiz 1", 5, 10),
]


class TestCheckOverwrite:

    def test_no_existing_record(self):
        check = check_overwrite(RECORDS, "Math", "Quiz 2", 9, 10)
        assert not check.has_existing
        assert not check.requires_overwrite_confirmation
        assert not check.no_change
        assert check.existing is None

    def test_different_score_requires_confirmation(self):
        check = check_overwrite(RECORDS, "Math", "Quiz 1", 9, 10)
        assert check.has_existing
        assert check.requires_overwrite_confirmation
        assert check.existing.score == 8

    def test_different_max_requires_confirmation(self):
        assert check_overwrite(RECORDS, "Math", "Quiz 1", 8, 20).requires_overwrite_confirmation

    def test_same_values_is_no_change(self):
        check = check_overwrite(RECORDS, "Math", "Quiz 1", 8.00001, 10)
        assert check.has_existing
        assert not check.requires_overwrite_confirmation
        assert check.no_change

    def test_key_is_case_insensitive(self):
        assert check_overwrite(RECORDS, " math ", "QUIZ 1", 9, 10).requires_overwrite_confirmation

    def test_subject_scopes_the_key(self):
        assert not check_overwrite(RECORDS, "History", "Quiz 1", 9, 10).has_existing

    def test_blank_label_means_default(self):
        records = [ScoreRecord("Math", "Assessment", 50, 100)]
        assert check_overwrite(records, "Math", "", 50, 100).no_change


def test_find_existing():
    assert find_existing(RECORDS, "science", "quiz 1") is RECORDS[1]
    assert find_existing([], "Math", "Quiz 1") is None
    assert find_existing(None, "Math", "Quiz 1") is None
