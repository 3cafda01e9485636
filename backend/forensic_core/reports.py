import logging
from typing import Dict, List, Mapping, Optional

import pandas as pd

from .models import ClassStatistics, ConclusionOutcome, ReportRow, ScoreResult

logger = logging.getLogger(__name__)

CONCLUSION_COLORS = {
    ConclusionOutcome.MATCH: "green",
    ConclusionOutcome.MISMATCH: "red",
    ConclusionOutcome.UNKNOWN: "black",
}

REPORT_COLUMNS = {
    "student": "Student",
    "raw_score": "Raw Score",
    "raw_total": "Raw Total",
    "points": "Points",
    "percentage": "Percentage",
    "conclusion": "Conclusion",
}

SORT_KEYS = ("student", "score", "percentage")


def conclusion_label(result: ScoreResult) -> str:
    """E.g. "Fake ✓" / "Real ✗"; no mark when the key has no expected conclusion."""
    submitted = result.submitted_conclusion
    if not submitted:
        return "-"
    label = submitted.capitalize()
    if result.conclusion_outcome == ConclusionOutcome.MATCH:
        return f"{label} ✓"
    if result.conclusion_outcome == ConclusionOutcome.MISMATCH:
        return f"{label} ✗"
    return label


def build_report_rows(results: Mapping[str, ScoreResult],
                      names: Optional[Mapping[str, str]] = None,
                      sort_by: Optional[str] = None) -> List[ReportRow]:
    """
    One printable row per student. Input order is kept unless sort_by is
    "student" (ascending name), "score" or "percentage" (descending).
    """
    if sort_by is not None and sort_by not in SORT_KEYS:
        raise ValueError(f"sort_by must be one of {SORT_KEYS}, got {sort_by!r}")
    names = names or {}

    rows = []
    for sid, result in results.items():
        rows.append(ReportRow(
            student_id=str(sid),
            student=names.get(sid) or str(sid),
            raw_score=result.raw_correct,
            raw_total=result.raw_total,
            points=f"{result.total_score}/{result.max_score}",
            earned=result.total_score,
            max_points=result.max_score,
            percentage=result.percentage,
            conclusion=conclusion_label(result),
            conclusion_color=CONCLUSION_COLORS[result.conclusion_outcome],
        ))

    if sort_by == "student":
        rows.sort(key=lambda r: r.student.lower())
    elif sort_by == "score":
        rows.sort(key=lambda r: r.earned, reverse=True)
    elif sort_by == "percentage":
        rows.sort(key=lambda r: r.percentage, reverse=True)
    return rows


def class_statistics(results: Mapping[str, ScoreResult]) -> ClassStatistics:
    if not results:
        return ClassStatistics()

    df = pd.DataFrame([
        {
            "score": r.total_score,
            "percentage": r.percentage,
            "outcome": r.conclusion_outcome.value,
            "parse_error": r.key_parse_error or r.answer_parse_error,
        }
        for r in results.values()
    ])

    outcomes: Dict[str, int] = {o.value: 0 for o in ConclusionOutcome}
    outcomes.update({k: int(v) for k, v in df["outcome"].value_counts().items()})

    return ClassStatistics(
        participants=len(df),
        average_score=round(float(df["score"].mean()), 2),
        average_percentage=round(float(df["percentage"].mean()), 2),
        highest_score=int(df["score"].max()),
        lowest_score=int(df["score"].min()),
        conclusion_outcomes=outcomes,
        parse_errors=int(df["parse_error"].sum()),
    )


def report_to_dataframe(rows: List[ReportRow]) -> pd.DataFrame:
    df = pd.DataFrame([r.model_dump() for r in rows], columns=["student_id", *REPORT_COLUMNS])
    return df[list(REPORT_COLUMNS)].rename(columns=REPORT_COLUMNS)


def report_to_csv(rows: List[ReportRow]) -> str:
    df = report_to_dataframe(rows)
    logger.info(f"Exporting class report with {len(df)} rows")
    return df.to_csv(index=False)
