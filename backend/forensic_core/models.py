from enum import Enum
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import List, Dict, Optional, Any, Literal, Union

RESERVED_COLUMNS = ("points", "id", "rowId")
CONCLUSIONS = ("fake", "real")


class CamelModel(BaseModel):
    """Base for everything that is serialized back to the browser."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ConclusionOutcome(str, Enum):
    MATCH = "match"
    MISMATCH = "mismatch"
    UNKNOWN = "unknown"


# ================= ANSWER CONTRACTS =================

class SpecimenRow(CamelModel):
    cells: Dict[str, Any] = {}
    points: int = 1

    @property
    def question_specimen(self) -> Any:
        return self.cells.get("questionSpecimen")

    @property
    def standard_specimen(self) -> Any:
        return self.cells.get("standardSpecimen")


class ExplanationKey(CamelModel):
    text: str = ""
    points: int = 0
    conclusion: Optional[Literal["fake", "real"]] = None


class AnswerKey(CamelModel):
    specimens: List[SpecimenRow] = []
    explanation: ExplanationKey = Field(default_factory=ExplanationKey)
    columns: List[str] = []
    parse_error: bool = False

    @property
    def max_points(self) -> int:
        return sum(row.points for row in self.specimens) + self.explanation.points


class StudentAnswer(CamelModel):
    table_answers: List[Dict[str, Any]] = []
    conclusion: Optional[Literal["fake", "real"]] = None
    explanation_text: Optional[str] = None
    parse_error: bool = False


# ================= RESULTS =================

class CellResult(CamelModel):
    column: str
    submitted: str
    expected: str
    is_exact_match: bool


class RowResult(CamelModel):
    row_index: int
    question_specimen: Optional[str] = None
    standard_specimen: Optional[str] = None
    cells: List[CellResult]
    matched: int
    correct: bool
    points: int
    possible_points: int


class SpecimenResult(CamelModel):
    raw_correct: int = 0
    raw_total: int = 0
    weighted_specimen_score: int = 0
    rows: List[RowResult] = []
    parse_error: bool = False


class ExplanationResult(CamelModel):
    is_relevant: bool
    has_conclusion: bool
    has_explanation: bool
    score: Literal[0, 1]
    feedback: str


class ScoreResult(CamelModel):
    raw_correct: int
    raw_total: int
    weighted_specimen_score: int
    explanation_score: int
    conclusion_outcome: ConclusionOutcome
    conclusion_match: Union[bool, Literal["unknown"]]
    expected_conclusion: Optional[Literal["fake", "real"]] = None
    submitted_conclusion: Optional[Literal["fake", "real"]] = None
    total_score: int
    max_score: int
    percentage: int
    rows: List[RowResult] = []
    explanation: Optional[ExplanationResult] = None
    key_parse_error: bool = False
    answer_parse_error: bool = False


# ================= REPORTS =================

class ReportRow(CamelModel):
    student_id: str
    student: str
    raw_score: int
    raw_total: int
    points: str
    earned: int
    max_points: int
    percentage: int
    conclusion: str
    conclusion_color: str


class ClassStatistics(CamelModel):
    participants: int = 0
    average_score: float = 0.0
    average_percentage: float = 0.0
    highest_score: int = 0
    lowest_score: int = 0
    conclusion_outcomes: Dict[str, int] = Field(
        default_factory=lambda: {o.value: 0 for o in ConclusionOutcome}
    )
    parse_errors: int = 0
