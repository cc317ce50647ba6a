import pytest
import requests
from unittest.mock import MagicMock

from config import LLMConfig
from gradesheet.extractor import (
    ExtractionSource,
    RowExtractor,
    NO_ROWS_NOTE,
    normalize_input_row,
    parse_rows_from_text,
)
from gradesheet.llm_extractor import (
    LLMGradeExtractor,
    create_llm_extractor,
    extract_json_payload,
    is_image_data_url,
)
from gradesheet.models import IssueCode

IMAGE = "data:image/png;base64,iVBORw0KGgo="


def _response(payload):
    response = MagicMock()
    response.json.return_value = payload
    response.raise_for_status.return_value = None
    return response


# --- Text parser ---


class TestParseRowsFromText:

    def test_name_and_ratio_per_line(self):
        result = parse_rows_from_text("Ahmed Ali 17/20\nSara Noor 9/10")

        assert result.strategy == "text"
        assert [(r.source_student_name, r.score, r.max_marks) for r in result.rows] == [
            ("Ahmed Ali", 17.0, 20.0),
            ("Sara Noor", 9.0, 10.0),
        ]
        assert result.notes == []

    def test_delimited_columns(self):
        text = "Ahmed Ali\t17\nSara Noor | 85%\nOmar Hassan, 12"
        result = parse_rows_from_text(text, default_max_marks=20)

        assert [(r.source_student_name, r.score, r.max_marks) for r in result.rows] == [
            ("Ahmed Ali", 17.0, 20.0),
            ("Sara Noor", 85.0, 100.0),
            ("Omar Hassan", 12.0, 20.0),
        ]

    def test_arabic_digits(self):
        result = parse_rows_from_text("Ahmed Ali ١٧/٢٠")
        assert (result.rows[0].score, result.rows[0].max_marks) == (17.0, 20.0)

    def test_noise_lines_are_dropped(self):
        result = parse_rows_from_text("GRADE SHEET\n\nAhmed Ali 17/20\n-----")
        assert len(result.rows) == 1

    def test_no_rows_adds_note(self):
        result = parse_rows_from_text("nothing useful here")
        assert result.rows == []
        assert result.notes == [NO_ROWS_NOTE]


class TestNormalizeInputRow:

    def test_numeric_fields(self):
        row = normalize_input_row({"studentName": " Sara  Noor ", "score": 9, "maxMarks": 10}, 100)
        assert (row.source_student_name, row.score, row.max_marks) == ("Sara Noor", 9.0, 10.0)

    def test_missing_max_uses_default(self):
        row = normalize_input_row({"name": "Sara", "score": "17"}, 20)
        assert row.max_marks == 20.0

    def test_score_text_goes_through_parser(self):
        row = normalize_input_row({"name": "Sara", "score_text": "17/20"}, 100)
        assert (row.score, row.max_marks) == (17.0, 20.0)

    def test_missing_score_flagged(self):
        row = normalize_input_row({"name": "Sara"}, 100)
        assert row.score is None
        assert IssueCode.MISSING_SCORE in row.issues

    def test_review_state_is_carried(self):
        row = normalize_input_row(
            {"name": "Sara", "score": 9, "matched_student_id": "s2", "confirm_overwrite": True, "skip": True},
            10,
        )
        assert row.matched_student_id == "s2"
        assert row.confirm_overwrite is True
        assert row.skip is True

    def test_truthy_strings_are_not_flags(self):
        row = normalize_input_row({"name": "Sara", "score": 9, "skip": "yes", "confirmOverwrite": 1}, 10)
        assert row.skip is False
        assert row.confirm_overwrite is False


# --- Strategy chain ---


class TestRowExtractor:

    def test_structured_rows_win(self):
        capability = MagicMock()
        extractor = RowExtractor(capability)

        result = extractor.extract(ExtractionSource(
            rows=[{"name": "Ahmed Ali", "score": 17, "max_marks": 20}],
            ocr_text="Sara Noor 9/10",
        ))

        assert result.strategy == "structured"
        assert len(result.rows) == 1
        capability.extract.assert_not_called()

    def test_ai_rows_used_when_available(self):
        capability = MagicMock()
        capability.extract.return_value = {
            "columns": ["name", "score"],
            "rows": [{"studentName": "Ahmed Ali", "score": 17, "maxMarks": 20, "matchedStudentId": "s9"}],
            "notes": ["one blurry row"],
        }
        extractor = RowExtractor(capability, default_max_marks=20)

        result = extractor.extract(ExtractionSource(ocr_text="garbled"))

        assert result.strategy == "ai"
        assert result.columns == ["name", "score"]
        assert result.notes == ["one blurry row"]
        assert result.rows[0].score == 17.0
        # Model output never carries review decisions
        assert result.rows[0].matched_student_id == ""
        capability.extract.assert_called_once_with("garbled", "", ["Student Name", "Score", "Max Marks"], 20.0)

    def test_ai_failure_falls_back_to_text(self):
        capability = MagicMock()
        capability.extract.side_effect = requests.Timeout("timed out")
        extractor = RowExtractor(capability)

        result = extractor.extract(ExtractionSource(ocr_text="Ahmed Ali 17/20"))

        assert result.strategy == "text"
        assert result.rows[0].source_student_name == "Ahmed Ali"

    @pytest.mark.parametrize("payload", [None, [], "rows", {"rows": "nope"}, {"rows": []}])
    def test_unusable_ai_payload_falls_back(self, payload):
        capability = MagicMock()
        capability.extract.return_value = payload

        result = RowExtractor(capability).extract(ExtractionSource(ocr_text="Ahmed Ali 17/20"))

        assert result.strategy == "text"

    def test_image_only_without_capability_yields_note(self):
        result = RowExtractor().extract(ExtractionSource(image_data_url=IMAGE))
        assert result.rows == []
        assert result.notes == [NO_ROWS_NOTE]

    def test_call_max_marks_overrides_default(self):
        result = RowExtractor(default_max_marks=20).extract(ExtractionSource(ocr_text="Ahmed\t7"), 10)
        assert result.rows[0].max_marks == 10.0


# --- LLM capability ---


class TestExtractJsonPayload:

    def test_plain_json(self):
        assert extract_json_payload('{"rows": []}') == {"rows": []}

    def test_json_wrapped_in_prose(self):
        assert extract_json_payload('Here you go:\n```json\n{"rows": [1]}\n```') == {"rows": [1]}

    def test_array_span(self):
        assert extract_json_payload("result: [1, 2]") == [1, 2]

    def test_garbage(self):
        assert extract_json_payload("no json at all") is None
        assert extract_json_payload("") is None


class TestLLMGradeExtractor:

    def test_requires_configured_provider(self):
        with pytest.raises(ValueError):
            LLMGradeExtractor(LLMConfig(openrouter_api_key=""))
        assert create_llm_extractor(LLMConfig(openrouter_api_key="")) is None

    def test_openrouter_request(self):
        session = MagicMock()
        session.post.return_value = _response({
            "choices": [{"message": {"content": '{"rows": [{"studentName": "Ahmed", "score": 17}]}'}}]
        })
        config = LLMConfig(openrouter_api_key="key", openrouter_vision_model="vision-model", timeout=5)
        extractor = LLMGradeExtractor(config, session=session)

        payload = extractor.extract("Ahmed 17", IMAGE, ["Student Name", "Score"], 20)

        assert payload == {"rows": [{"studentName": "Ahmed", "score": 17}]}
        args, kwargs = session.post.call_args
        assert args[0] == "https://openrouter.ai/api/v1/chat/completions"
        assert kwargs["timeout"] == 5
        assert kwargs["headers"]["Authorization"] == "Bearer key"
        assert kwargs["json"]["model"] == "vision-model"
        content = kwargs["json"]["messages"][1]["content"]
        assert content[-1] == {"type": "image_url", "image_url": {"url": IMAGE}}

    def test_ollama_request(self):
        session = MagicMock()
        session.post.return_value = _response({"response": '{"rows": []}'})
        config = LLMConfig(provider="ollama", ollama_url="http://ollama:11434/api/generate", ollama_model="m")
        extractor = LLMGradeExtractor(config, session=session)

        assert extractor.extract("", IMAGE, ["Score"], 100) == {"rows": []}

        args, kwargs = session.post.call_args
        assert args[0] == "http://ollama:11434/api/generate"
        assert kwargs["json"]["images"] == ["iVBORw0KGgo="]
        assert kwargs["json"]["format"] == "json"

    def test_nothing_to_send(self):
        session = MagicMock()
        extractor = LLMGradeExtractor(LLMConfig(openrouter_api_key="key"), session=session)

        assert extractor.extract("  ", "not-an-image", ["Score"], 100) is None
        session.post.assert_not_called()

    def test_http_error_propagates(self):
        session = MagicMock()
        response = MagicMock()
        response.raise_for_status.side_effect = requests.HTTPError("502")
        session.post.return_value = response
        extractor = LLMGradeExtractor(LLMConfig(openrouter_api_key="key"), session=session)

        with pytest.raises(requests.HTTPError):
            extractor.extract("Ahmed 17", "", ["Score"], 100)


def test_is_image_data_url():
    assert is_image_data_url(IMAGE)
    assert not is_image_data_url("https://example.com/sheet.png")
    assert not is_image_data_url(None)
