import pytest

from config import Config
from database.models import ExamMark
from web.grade_import import app

SHEET = {
    "className": "Grade 5A",
    "subject": "Math",
    "examTitle": "Quiz 1",
    "ocrText": "Ahmed Ali 17/20\nSara Noor 9/10\nLayla Mahmoud 9/10",
}


@pytest.fixture
def client(seeded_db, session_factory, monkeypatch):
    """Test client over the seeded in-memory database, text parser only."""
    monkeypatch.setattr("web.grade_import.get_session", session_factory)
    monkeypatch.setattr("web.grade_import.get_config", lambda: Config())
    app.config["TESTING"] = True
    with app.test_client() as client:
        yield client


def test_health_check(client):
    response = client.get("/")
    assert response.status_code == 200


class TestPreviewEndpoint:

    def test_preview(self, client):
        response = client.post("/grade-import/preview", json=SHEET)

        assert response.status_code == 200
        data = response.get_json()
        preview = data["preview"]
        assert data["class_name"] == "Grade 5A"
        assert [row["matched_student_id"] for row in preview["rows"]] == ["1", "2", "3"]
        assert preview["rows"][0]["normalized_percentage"] == 85.0
        assert preview["rows"][2]["issues"] == ["overwrite_confirmation_required"]
        assert preview["rows"][2]["existing"]["score"] == 8.0
        assert preview["summary"]["overwrite_rows"] == 1
        assert preview["strategy"] == "text"

    def test_structured_rows(self, client):
        response = client.post("/grade-import/preview", json={
            "class_name": "Grade 5A",
            "subject": "Math",
            "rows": [{"studentName": "Zainab Karim", "score": 12, "maxMarks": 20}],
        })

        assert response.status_code == 200
        assert response.get_json()["preview"]["unrecognized_names"] == ["Zainab Karim"]

    def test_missing_class(self, client):
        response = client.post("/grade-import/preview", json={**SHEET, "className": ""})

        assert response.status_code == 400
        assert response.get_json() == {"message": "Class name and subject are required."}

    def test_missing_source(self, client):
        response = client.post("/grade-import/preview", json={**SHEET, "ocrText": " "})

        assert response.status_code == 400
        assert "Provide OCR text" in response.get_json()["message"]

    def test_non_json_body(self, client):
        response = client.post("/grade-import/preview", data="not json", content_type="text/plain")
        assert response.status_code == 400


class TestConfirmEndpoint:

    def _preview_rows(self, client):
        return client.post("/grade-import/preview", json=SHEET).get_json()["preview"]["rows"]

    def test_confirm(self, client, seeded_db):
        rows = self._preview_rows(client)

        response = client.post("/grade-import/confirm", json={
            "class_name": "Grade 5A",
            "subject": "Math",
            "confirm_import": True,
            "recorded_by": "Ms. Rana",
            "rows": rows,
        })

        assert response.status_code == 200
        data = response.get_json()
        assert data["message"] == "Grade import completed."
        assert (data["created_count"], data["updated_count"], data["skipped_count"]) == (2, 0, 1)
        assert data["skipped"][0]["reason"] == "overwrite_confirmation_required"

        marks = seeded_db.query(ExamMark).filter_by(subject_key="math").order_by(ExamMark.student_id).all()
        assert [(m.student_id, m.score) for m in marks] == [(1, 17.0), (2, 9.0), (3, 8.0)]
        assert marks[0].recorded_by == "Ms. Rana"

    def test_confirm_requires_confirmation(self, client, seeded_db):
        rows = self._preview_rows(client)

        response = client.post("/grade-import/confirm", json={
            "className": "Grade 5A",
            "subject": "Math",
            "confirmImport": "yes",
            "rows": rows,
        })

        assert response.status_code == 400
        assert response.get_json() == {"message": "Import confirmation is required. No grades were changed."}
        assert seeded_db.query(ExamMark).count() == 2

    def test_confirm_requires_rows(self, client):
        response = client.post("/grade-import/confirm", json={
            "className": "Grade 5A",
            "subject": "Math",
            "confirmImport": True,
            "rows": [],
        })

        assert response.status_code == 400
        assert response.get_json()["message"] == "At least one row is required for import."
