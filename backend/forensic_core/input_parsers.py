import json
import logging
import math
from typing import Any, Dict, List, Tuple

from .conclusion import normalize_conclusion
from .models import RESERVED_COLUMNS, AnswerKey, ExplanationKey, SpecimenRow, StudentAnswer

# Configure logger
logger = logging.getLogger("uvicorn.error")

# Anything above this is not a real point value
MAX_POINTS = 10 ** 6


def _decode(raw: Any, what: str) -> Tuple[Any, bool]:
    """
    Decodes a stored JSON blob. Already-decoded objects pass through.
    Returns (payload, parse_error). None or an empty blob means nothing was stored.
    """
    if raw is None:
        return None, False
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError:
            raw = raw.decode("latin1")
    if isinstance(raw, str):
        if not raw.strip():
            return None, False
        try:
            return json.loads(raw), False
        except (ValueError, RecursionError) as e:
            logger.warning(f"Malformed {what} JSON: {e}")
            return None, True
    return raw, False


def _coerce_points(value: Any, default: int, minimum: int) -> int:
    if isinstance(value, bool) or value is None:
        return default
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return default
    if isinstance(value, float) and not math.isfinite(value):
        return default
    if not isinstance(value, (int, float)) or abs(value) > MAX_POINTS:
        return default
    value = int(value)
    return value if value >= minimum else default


def _row_schema(rows: List[Any]) -> List[str]:
    # The first row defines the comparable columns for the whole table
    if not rows or not isinstance(rows[0], dict):
        return []
    return [str(c) for c in rows[0].keys() if c not in RESERVED_COLUMNS]


def _parse_specimens(rows: List[Any]) -> List[SpecimenRow]:
    specimens = []
    for row in rows:
        if not isinstance(row, dict):
            specimens.append(SpecimenRow())
            continue
        specimens.append(SpecimenRow(
            cells={str(k): v for k, v in row.items() if k not in RESERVED_COLUMNS},
            points=_coerce_points(row.get("points"), default=1, minimum=1),
        ))
    return specimens


def _parse_explanation(raw: Any) -> ExplanationKey:
    if not isinstance(raw, dict):
        return ExplanationKey()
    text = raw.get("text")
    points = raw.get("points")
    # Only numeric points count, same as the exam-taking screen
    if isinstance(points, bool) or not isinstance(points, (int, float)):
        points = 0
    return ExplanationKey(
        text=text if isinstance(text, str) else "",
        points=_coerce_points(points, default=0, minimum=0),
        conclusion=normalize_conclusion(raw.get("conclusion")),
    )


def parse_answer_key(raw: Any) -> AnswerKey:
    """
    Normalizes an instructor answer key into the canonical AnswerKey.
    Accepts the legacy array-only format and the current object format:
      [ {questionSpecimen, standardSpecimen, points}, ... ]
      {"specimens": [...], "explanation": {"text", "points", "conclusion"}}
    Never raises; undecodable input yields an empty key with parse_error set.
    """
    if isinstance(raw, AnswerKey):
        return raw

    payload, parse_error = _decode(raw, "answer key")
    if parse_error:
        return AnswerKey(parse_error=True)

    if isinstance(payload, list):
        rows, explanation = payload, ExplanationKey()
    elif isinstance(payload, dict):
        rows = payload.get("specimens")
        if not isinstance(rows, list):
            logger.warning("Answer key has no specimens array, grading as empty table")
            rows = []
        explanation = _parse_explanation(payload.get("explanation"))
    elif payload is None:
        rows, explanation = [], ExplanationKey()
    else:
        logger.warning(f"Unsupported answer key payload type: {type(payload).__name__}")
        return AnswerKey(parse_error=True)

    return AnswerKey(
        specimens=_parse_specimens(rows),
        explanation=explanation,
        columns=_row_schema(rows),
    )


def _parse_table(rows: Any) -> List[Dict[str, Any]]:
    if not isinstance(rows, list):
        return []
    return [row if isinstance(row, dict) else {} for row in rows]


def parse_student_answer(raw: Any) -> StudentAnswer:
    """
    Normalizes a stored student submission. Besides the current
    {"tableAnswers", "conclusion", "explanationText"} object, older
    submissions stored a bare array of rows or kept the text under "explanation".
    """
    if isinstance(raw, StudentAnswer):
        return raw

    payload, parse_error = _decode(raw, "student answer")
    if parse_error:
        return StudentAnswer(parse_error=True)

    if payload is None:
        return StudentAnswer()
    if isinstance(payload, list):
        return StudentAnswer(table_answers=_parse_table(payload))
    if not isinstance(payload, dict):
        logger.warning(f"Unsupported student answer payload type: {type(payload).__name__}")
        return StudentAnswer(parse_error=True)

    text = payload.get("explanationText")
    if not isinstance(text, str):
        text = payload.get("explanation")
    return StudentAnswer(
        table_answers=_parse_table(payload.get("tableAnswers")),
        conclusion=normalize_conclusion(payload.get("conclusion")),
        explanation_text=text if isinstance(text, str) else None,
    )
