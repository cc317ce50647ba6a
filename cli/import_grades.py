#!/usr/bin/env python3
"""
Import Grades CLI - Preview and confirm grade sheet imports.

Commands:
    python -m cli.import_grades preview --class 5A --subject Math --text sheet.txt -o preview.json
    python -m cli.import_grades confirm --class 5A --subject Math --rows preview.json --yes
    python -m cli.import_grades students --class 5A
    python -m cli.import_grades init-db
    python -m cli.import_grades status
"""

import argparse
import base64
import json
import logging
import mimetypes
import sys
from pathlib import Path

from config import get_config, print_config_status, validate_config
from database.connection import get_session, init_db
from gradesheet.exceptions import ImportRequestError
from gradesheet.extractor import ExtractionSource, RowExtractor
from gradesheet.llm_extractor import create_llm_extractor
from gradesheet.roster import SqlRosterProvider
from gradesheet.service import GradeImportService, PreviewRequest, ConfirmRequest
from gradesheet.store import SqlScoreStore

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def build_service(session, use_ai: bool = True) -> GradeImportService:
    """Create an import service bound to a database session."""
    config = get_config()
    capability = create_llm_extractor(config.llm) if use_ai else None
    extractor = RowExtractor(capability=capability, default_max_marks=config.grade_import.default_max_marks)
    return GradeImportService(SqlScoreStore(session), extractor, settings=config.grade_import)


def load_rows(path: str) -> list:
    """
    Load rows from a JSON file.

    Accepts a plain list of rows, a saved preview ({"preview": {"rows": [...]}}),
    or a preview report ({"rows": [...]}).
    """
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    if isinstance(data, dict):
        report = data.get("preview", data)
        data = report.get("rows") if isinstance(report, dict) else None
    if not isinstance(data, list):
        raise ValueError(f"{path} does not contain a list of rows")
    return data


def image_to_data_url(path: Path) -> str:
    """Read an image file into a base64 data URL."""
    mime_type = mimetypes.guess_type(str(path))[0] or "image/png"
    encoded = base64.b64encode(path.read_bytes()).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"


def cmd_preview(args):
    """Preview an import without writing anything."""
    source = ExtractionSource()

    try:
        if args.text:
            source.ocr_text = Path(args.text).read_text(encoding="utf-8")
        if args.image:
            source.image_data_url = image_to_data_url(Path(args.image))
        if args.rows:
            source.rows = load_rows(args.rows)
    except (OSError, ValueError) as e:
        print(f"Error: {e}")
        sys.exit(1)

    print(f"Previewing import for {args.class_name} / {args.subject}")
    print("=" * 60)

    session = get_session()
    try:
        roster = SqlRosterProvider(session).get_roster(args.class_name, args.subject)
        service = build_service(session, use_ai=not args.no_ai)
        report = service.preview(PreviewRequest(
            class_name=args.class_name,
            subject=args.subject,
            roster=roster,
            source=source,
            assessment_label=args.label or "",
            default_max_marks=args.max_marks,
        ))
    except ImportRequestError as e:
        print(f"Error: {e.message}")
        sys.exit(1)
    finally:
        session.close()

    print(f"Strategy: {report.strategy}")
    print(f"Columns: {', '.join(report.detected_columns)}")
    for note in report.notes:
        print(f"Note: {note}")

    print()
    print(f"{'#':<4} {'Source name':<25} {'Matched student':<25} {'Conf':>5} {'Score':>12} {'%':>7}  Issues")
    print("-" * 100)

    for row in report.rows:
        score = f"{row.score:g}/{row.max_marks:g}" if row.score is not None and row.max_marks else "-"
        pct = f"{row.normalized_percentage:.1f}" if row.normalized_percentage is not None else "-"
        issues = ", ".join(issue.value for issue in row.issues)
        print(
            f"{row.row_index:<4} {row.source_student_name[:24]:<25} {row.matched_student_name[:24] or '?':<25} "
            f"{row.match_confidence:>5.2f} {score:>12} {pct:>7}  {issues}"
        )
        if not row.matched_student_id and row.candidate_matches and args.verbose:
            for candidate in row.candidate_matches:
                print(f"       candidate: {candidate.student_name} ({candidate.student_id}) {candidate.confidence:.2f}")

    summary = report.summary
    print()
    print(f"Total: {summary['total_rows']}  Matched: {summary['matched_rows']}  "
          f"Unrecognized: {summary['unrecognized_rows']}  Inconsistent: {summary['inconsistent_rows']}  "
          f"Overwrites: {summary['overwrite_rows']}")

    if args.output:
        output_path = Path(args.output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(
                {"class_name": args.class_name, "subject": args.subject, "preview": report.to_dict()},
                f, ensure_ascii=False, indent=2,
            )
        print(f"\nPreview saved to: {output_path}")
        print("Review it (skip / matched_student_id / confirm_overwrite), then run 'confirm'.")


def cmd_confirm(args):
    """Apply reviewed rows."""
    try:
        rows = load_rows(args.rows)
    except (OSError, ValueError) as e:
        print(f"Error: {e}")
        sys.exit(1)

    if not args.yes:
        print(f"About to import {len(rows)} rows into {args.class_name} / {args.subject}.")
        response = input("Continue? (y/N): ").strip().lower()
        if response != "y":
            print("Cancelled. No grades were changed.")
            return

    session = get_session()
    try:
        roster = SqlRosterProvider(session).get_roster(args.class_name, args.subject)
        service = build_service(session, use_ai=False)
        result = service.confirm(ConfirmRequest(
            class_name=args.class_name,
            subject=args.subject,
            roster=roster,
            rows=rows,
            confirm_import=True,
            assessment_label=args.label or "",
            recorded_by=args.recorded_by or "",
        ))
    except ImportRequestError as e:
        print(f"Error: {e.message}")
        sys.exit(1)
    finally:
        session.close()

    print("Import completed")
    print("=" * 60)
    print(f"  Created:      {result.created_count}")
    print(f"  Updated:      {result.updated_count}")
    print(f"  Skipped:      {result.skipped_count}")
    print(f"  Unrecognized: {result.unrecognized_count}")

    if result.skipped:
        print("\nSkipped rows:")
        for entry in result.skipped:
            name = entry.source_student_name or f"Row {entry.row_index + 1}"
            print(f"  {entry.row_index:<4} {name:<25} {entry.reason.value}")


def cmd_students(args):
    """List the roster of a class."""
    session = get_session()
    try:
        roster = SqlRosterProvider(session).get_roster(args.class_name, args.subject)
    finally:
        session.close()

    print(f"Students in {args.class_name}:")
    print("=" * 40)

    if not roster:
        print("  No students found.")
        return

    for entry in roster:
        print(f"  [{entry.student_id}] {entry.student_name}")
        if args.subject:
            for record in entry.existing_scores:
                print(f"       {record.assessment_label}: {record.score:g}/{record.max_marks:g}")


def cmd_init_db(args):
    """Create database tables."""
    init_db()


def cmd_status(args):
    """Show configuration status."""
    config = get_config()
    print_config_status(config)

    errors = validate_config(config)
    if errors:
        print("\nConfiguration Errors:")
        for error in errors:
            print(f"  - {error}")


def main():
    parser = argparse.ArgumentParser(
        description="Import grade sheets into student score records",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Preview a pasted sheet and save it for review:
    python -m cli.import_grades preview --class 5A --subject Math --label "Quiz 1" --text sheet.txt -o preview.json

  Preview a photo of a sheet (needs an LLM provider):
    python -m cli.import_grades preview --class 5A --subject Math --image sheet.jpg

  Apply the reviewed preview:
    python -m cli.import_grades confirm --class 5A --subject Math --rows preview.json --yes
"""
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Preview command
    preview_parser = subparsers.add_parser("preview", help="Preview an import (no writes)")
    preview_parser.add_argument("-c", "--class", dest="class_name", required=True, help="Class name")
    preview_parser.add_argument("-s", "--subject", required=True, help="Subject")
    preview_parser.add_argument("-l", "--label", help="Assessment label (default: Assessment)")
    preview_parser.add_argument("-m", "--max-marks", type=float, help="Max marks for bare scores")
    preview_parser.add_argument("-t", "--text", help="OCR or pasted text file")
    preview_parser.add_argument("-i", "--image", help="Image of the grade sheet")
    preview_parser.add_argument("-r", "--rows", help="JSON file of rows")
    preview_parser.add_argument("-o", "--output", help="Save the preview as JSON")
    preview_parser.add_argument("--no-ai", action="store_true", help="Skip AI extraction")
    preview_parser.add_argument("-v", "--verbose", action="store_true", help="Show candidates for unmatched rows")
    preview_parser.set_defaults(func=cmd_preview)

    # Confirm command
    confirm_parser = subparsers.add_parser("confirm", help="Apply reviewed rows")
    confirm_parser.add_argument("-c", "--class", dest="class_name", required=True, help="Class name")
    confirm_parser.add_argument("-s", "--subject", required=True, help="Subject")
    confirm_parser.add_argument("-r", "--rows", required=True, help="Reviewed preview JSON file")
    confirm_parser.add_argument("-l", "--label", help="Assessment label for rows without one")
    confirm_parser.add_argument("--recorded-by", help="Name recorded on written scores")
    confirm_parser.add_argument("-y", "--yes", action="store_true", help="Do not ask for confirmation")
    confirm_parser.set_defaults(func=cmd_confirm)

    # Students command
    students_parser = subparsers.add_parser("students", help="List a class roster")
    students_parser.add_argument("-c", "--class", dest="class_name", required=True, help="Class name")
    students_parser.add_argument("-s", "--subject", help="Show existing scores for this subject")
    students_parser.set_defaults(func=cmd_students)

    # Init-db command
    init_parser = subparsers.add_parser("init-db", help="Create database tables")
    init_parser.set_defaults(func=cmd_init_db)

    # Status command
    status_parser = subparsers.add_parser("status", help="Show config status")
    status_parser.set_defaults(func=cmd_status)

    args = parser.parse_args()
    for name in ("class_name", "subject"):
        if isinstance(getattr(args, name, None), str):
            setattr(args, name, getattr(args, name).strip())

    if not args.command:
        parser.print_help()
        sys.exit(1)

    args.func(args)


if __name__ == "__main__":
    main()
