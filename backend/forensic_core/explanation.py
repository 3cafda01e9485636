from typing import Optional

from .keywords import (
    ACRONYM_PATTERN,
    ANALYSIS_PATTERN,
    DIGIT_PATTERN,
    FORENSIC_KEYWORDS,
    TECHNICAL_TERM_MIN_LENGTH,
)
from .models import ExplanationResult

RELEVANT_FEEDBACK = "Explanation is relevant to forensic science."
IRRELEVANT_FEEDBACK = "Explanation should be related to forensic science analysis."


def _is_technical(word: str) -> bool:
    return (
        len(word) >= TECHNICAL_TERM_MIN_LENGTH
        or ACRONYM_PATTERN.search(word) is not None
        or DIGIT_PATTERN.search(word) is not None
    )


def is_forensic_science_related(explanation: Optional[str]) -> bool:
    """
    Keyword heuristic: the text either names a forensic-science term, or it
    uses technical-looking vocabulary (long words, acronyms, measurements)
    together with an analysis verb such as "compare" or "measure".
    """
    if not explanation or not explanation.strip():
        return False

    lowered = explanation.lower()
    if any(keyword in lowered for keyword in FORENSIC_KEYWORDS):
        return True

    has_technical_terms = any(_is_technical(word) for word in explanation.split())
    has_analysis_patterns = ANALYSIS_PATTERN.search(explanation) is not None
    return has_technical_terms and has_analysis_patterns


def score_explanation(explanation: Optional[str], conclusion: Optional[str]) -> ExplanationResult:
    is_relevant = is_forensic_science_related(explanation)
    has_conclusion = bool(conclusion and conclusion.strip())
    has_explanation = bool(explanation and explanation.strip())

    return ExplanationResult(
        is_relevant=is_relevant,
        has_conclusion=has_conclusion,
        has_explanation=has_explanation,
        score=1 if is_relevant and has_conclusion and has_explanation else 0,
        feedback=RELEVANT_FEEDBACK if is_relevant else IRRELEVANT_FEEDBACK,
    )
