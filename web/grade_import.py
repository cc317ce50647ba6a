#!/usr/bin/env python3
"""
Grade Import Web Endpoint - JSON API for the two-phase grade sheet import.

Run with: python -m web.grade_import

Endpoints:
    GET  /                        Health check
    POST /grade-import/preview    Extract and annotate rows (no writes)
    POST /grade-import/confirm    Apply reviewed rows
"""

import logging
from flask import Flask, request, jsonify

from config import get_config
from database.connection import get_session
from gradesheet.exceptions import ImportRequestError
from gradesheet.extractor import ExtractionSource, RowExtractor
from gradesheet.llm_extractor import create_llm_extractor
from gradesheet.roster import SqlRosterProvider
from gradesheet.service import GradeImportService, PreviewRequest, ConfirmRequest
from gradesheet.store import SqlScoreStore

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = Flask(__name__)


def _value(data: dict, *keys, default=None):
    """First present value among snake_case/camelCase spellings of a field."""
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return default


def _build_service(session) -> GradeImportService:
    config = get_config()
    extractor = RowExtractor(
        capability=create_llm_extractor(config.llm),
        default_max_marks=config.grade_import.default_max_marks,
    )
    return GradeImportService(SqlScoreStore(session), extractor, settings=config.grade_import)


def _text(value) -> str:
    return str(value or "").strip()


@app.errorhandler(ImportRequestError)
def handle_import_request_error(error):
    """Malformed import requests are client errors; nothing was changed."""
    return jsonify({"message": error.message}), 400


@app.route("/")
def index():
    """Health check endpoint."""
    return "Grade Sheet Import Service"


@app.route("/grade-import/preview", methods=["POST"])
def preview_import():
    """
    Preview a grade sheet import.

    JSON body:
        class_name, subject: Required
        ocr_text / image_data_url / rows: At least one source
        assessment_label, default_max_marks: Optional
    """
    data = request.get_json(silent=True) or {}
    class_name = _text(_value(data, "class_name", "className"))
    subject = _text(_value(data, "subject"))

    rows = _value(data, "rows", default=[])
    source = ExtractionSource(
        rows=rows if isinstance(rows, list) else [],
        ocr_text=str(_value(data, "ocr_text", "ocrText", default="")),
        image_data_url=str(_value(data, "image_data_url", "imageDataUrl", default="")),
    )

    session = get_session()
    try:
        roster = SqlRosterProvider(session).get_roster(class_name, subject) if class_name and subject else []
        service = _build_service(session)
        report = service.preview(PreviewRequest(
            class_name=class_name,
            subject=subject,
            roster=roster,
            source=source,
            assessment_label=_text(_value(data, "assessment_label", "assessmentLabel", "exam_title", "examTitle")),
            default_max_marks=_positive_number(_value(data, "default_max_marks", "defaultMaxMarks")),
        ))
    finally:
        session.close()

    return jsonify({"class_name": class_name, "subject": subject, "preview": report.to_dict()})


@app.route("/grade-import/confirm", methods=["POST"])
def confirm_import():
    """
    Confirm a reviewed grade sheet import.

    JSON body:
        class_name, subject: Required
        confirm_import: Must be true
        rows: Reviewed preview rows (skip / matched_student_id / confirm_overwrite)
    """
    data = request.get_json(silent=True) or {}
    class_name = _text(_value(data, "class_name", "className"))
    subject = _text(_value(data, "subject"))

    rows = _value(data, "rows", default=[])

    session = get_session()
    try:
        roster = SqlRosterProvider(session).get_roster(class_name, subject) if class_name and subject else []
        service = _build_service(session)
        result = service.confirm(ConfirmRequest(
            class_name=class_name,
            subject=subject,
            roster=roster,
            rows=rows if isinstance(rows, list) else [],
            confirm_import=_value(data, "confirm_import", "confirmImport") is True,
            assessment_label=_text(_value(data, "assessment_label", "assessmentLabel", "exam_title", "examTitle")),
            recorded_by=_text(_value(data, "recorded_by", "recordedBy")),
        ))
    finally:
        session.close()

    logger.info(f"Grade import confirmed for {class_name}/{subject}: {result.imported_count} imported")

    return jsonify({
        "message": "Grade import completed.",
        "class_name": class_name,
        "subject": subject,
        **result.to_dict(),
    })


def _positive_number(value):
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


def run_server(host="0.0.0.0", port=5000, debug=False):
    """Run the Flask development server."""
    app.run(host=host, port=port, debug=debug)


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Run grade import web server")
    parser.add_argument("--host", default="0.0.0.0", help="Host to bind to")
    parser.add_argument("--port", type=int, default=5000, help="Port to listen on")
    parser.add_argument("--debug", action="store_true", help="Enable debug mode")

    args = parser.parse_args()

    print(f"Starting grade import server on http://{args.host}:{args.port}")
    print("Endpoints:")
    print("  POST /grade-import/preview - Preview a grade sheet import")
    print("  POST /grade-import/confirm - Apply reviewed rows")
    print()

    run_server(host=args.host, port=args.port, debug=args.debug)
