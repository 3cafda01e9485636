from typing import Any, Dict, List, Optional

from .models import AnswerKey, CellResult, RowResult, SpecimenResult


def cell_text(value: Any) -> str:
    """Stored cell value as compared text: missing/empty -> "", trimmed, lowercased."""
    if not value:
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip().lower()


def _display(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def compare_specimens(key: AnswerKey, table_answers: List[Dict[str, Any]]) -> SpecimenResult:
    """
    Cell-by-cell comparison of a student's specimen table against the key.

    Row i of the answer is compared with row i of the key over the key's
    column schema. A row earns its points only when every column matches;
    partially correct rows still count towards raw_correct.
    """
    if key.parse_error:
        return SpecimenResult(parse_error=True)

    columns = key.columns
    result = SpecimenResult(raw_total=len(key.specimens) * len(columns))

    for row_idx, row in enumerate(key.specimens):
        submitted = table_answers[row_idx] if row_idx < len(table_answers) else {}

        cells = []
        for col in columns:
            user_value = cell_text(submitted.get(col))
            correct_value = cell_text(row.cells.get(col))
            cells.append(CellResult(
                column=col,
                submitted=user_value,
                expected=correct_value,
                is_exact_match=user_value == correct_value,
            ))

        matched = sum(1 for c in cells if c.is_exact_match)
        correct = bool(cells) and matched == len(cells)
        awarded = row.points if correct else 0

        result.raw_correct += matched
        result.weighted_specimen_score += awarded
        result.rows.append(RowResult(
            row_index=row_idx,
            question_specimen=_display(row.question_specimen),
            standard_specimen=_display(row.standard_specimen),
            cells=cells,
            matched=matched,
            correct=correct,
            points=awarded,
            possible_points=row.points,
        ))

    return result
