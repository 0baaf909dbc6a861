"""Import question banks into a course's question pool."""
import csv
import json
import logging
import re
from pathlib import Path

import yaml

from cert_portal.db import get_connection
from cert_portal.models import OPTION_COLUMNS

logger = logging.getLogger(__name__)

FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)


class QuestionFormatError(ValueError):
    """A question bank entry does not have the expected shape."""


def strip_code_fences(text: str) -> str:
    """Remove ```json fences that generated question lists often come wrapped in."""
    return FENCE_RE.sub("", text).strip()


def read_question_bank(file_path: str) -> list[dict]:
    path = Path(file_path)
    try:
        data = _parse_bank(path)
    except UnicodeDecodeError as e:
        raise QuestionFormatError(f"{path.name} is not UTF-8 text: {e}") from e

    if isinstance(data, dict) and "questions" in data:
        data = data["questions"]
    if not isinstance(data, list):
        raise QuestionFormatError("A question bank must be a list of questions")
    return data


def _parse_bank(path: Path):
    suffix = path.suffix.lower()
    if suffix == ".json":
        try:
            data = json.loads(strip_code_fences(path.read_text(encoding="utf-8")))
        except json.JSONDecodeError as e:
            raise QuestionFormatError(f"Invalid JSON in {path.name}: {e}") from e
    elif suffix in (".yaml", ".yml"):
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8"))
        except yaml.YAMLError as e:
            raise QuestionFormatError(f"Invalid YAML in {path.name}: {e}") from e
    elif suffix == ".csv":
        with path.open(newline="", encoding="utf-8") as f:
            data = [
                {
                    "text": row.get("text", ""),
                    "options": [row.get(col, "") for col in OPTION_COLUMNS],
                    "correct_answer": row.get("correct_answer") or row.get("correctAnswer", ""),
                }
                for row in csv.DictReader(f)
            ]
    else:
        raise QuestionFormatError(f"Unsupported question bank format: {suffix or path.name}")
    return data


def validate_question(entry: dict, position: int = 0) -> dict:
    """Normalize one entry to {text, options, correct_answer} or raise QuestionFormatError."""
    if not isinstance(entry, dict):
        raise QuestionFormatError(f"Question {position}: expected a mapping")
    text = str(entry.get("text") or "").strip()
    if not text:
        raise QuestionFormatError(f"Question {position}: missing text")
    options = entry.get("options")
    if not isinstance(options, list) or len(options) != len(OPTION_COLUMNS):
        raise QuestionFormatError(f"Question {position}: needs exactly {len(OPTION_COLUMNS)} options")
    options = [str(o).strip() for o in options]
    if not all(options):
        raise QuestionFormatError(f"Question {position}: options must not be empty")
    raw = entry.get("correctAnswer", entry.get("correct_answer"))
    try:
        correct = int(raw)
    except (TypeError, ValueError):
        raise QuestionFormatError(f"Question {position}: correct answer must be an option index")
    if not 0 <= correct < len(options):
        raise QuestionFormatError(f"Question {position}: correct answer {correct} out of range")
    return {"text": text, "options": options, "correct_answer": correct}


def import_questions(db_path: str, course_id: str, file_path: str) -> dict:
    """Validate every entry of a question bank file, then add them all to a course."""
    entries = read_question_bank(file_path)
    questions = [validate_question(e, i) for i, e in enumerate(entries, 1)]
    conn = get_connection(db_path)
    if conn.execute("SELECT 1 FROM courses WHERE id = ?", (course_id,)).fetchone() is None:
        conn.close()
        raise QuestionFormatError(f"Unknown course: {course_id}")
    conn.executemany(
        f"INSERT INTO questions (course_id, text, {', '.join(OPTION_COLUMNS)}, correct_answer) "
        "VALUES (?, ?, ?, ?, ?, ?, ?)",
        [(course_id, q["text"], *q["options"], q["correct_answer"]) for q in questions],
    )
    conn.commit()
    conn.close()
    logger.info("Imported %d questions into %s from %s", len(questions), course_id, file_path)
    return {"filename": Path(file_path).name, "course_id": course_id, "count": len(questions)}
