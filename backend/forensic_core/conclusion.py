from typing import Any, Optional

from .models import CONCLUSIONS, ConclusionOutcome


def normalize_conclusion(value: Any) -> Optional[str]:
    """Map a stored conclusion onto "fake"/"real"; anything else is absent."""
    if not isinstance(value, str):
        return None
    value = value.strip().lower()
    return value if value in CONCLUSIONS else None


def validate_conclusion(expected: Any, submitted: Any) -> ConclusionOutcome:
    expected = normalize_conclusion(expected)
    submitted = normalize_conclusion(submitted)
    # Either side missing is neutral, never a mismatch
    if expected is None or submitted is None:
        return ConclusionOutcome.UNKNOWN
    if expected == submitted:
        return ConclusionOutcome.MATCH
    return ConclusionOutcome.MISMATCH
