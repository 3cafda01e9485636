"""
Forensic-science vocabulary used to decide whether a student's explanation
is on topic. The list is matched as lowercase substrings and must stay in
this exact order and spelling (duplicates included) so that stored results
keep grading the same way. Bump KEYWORD_LIST_VERSION whenever it changes.
"""
import re
from typing import Tuple

KEYWORD_LIST_VERSION = 1

FORENSIC_KEYWORDS: Tuple[str, ...] = (
    "forensic",
    "evidence",
    "specimen",
    "analysis",
    "comparison",
    "examination",
    "microscopic",
    "chemical",
    "physical",
    "biological",
    "trace",
    "fiber",
    "hair",
    "blood",
    "fingerprint",
    "document",
    "ballistics",
    "toxicology",
    "pathology",
    "anthropology",
    "odontology",
    "entomology",
    "botany",
    "soil",
    "glass",
    "paint",
    "toolmark",
    "impression",
    "firearm",
    "explosive",
    "drug",
    "alcohol",
    "dna",
    "serology",
    "immunology",
    "chromatography",
    "spectroscopy",
    "microscopy",
    "photography",
    "reconstruction",
    "identification",
    "authentication",
    "verification",
    "authentic",
    "genuine",
    "counterfeit",
    "fake",
    "real",
    "original",
    "sample",
    "test",
    "procedure",
    "method",
    "technique",
    "protocol",
    "laboratory",
    "crime",
    "investigation",
    "detection",
    "identification",
)

# Tokens longer than this count as technical terms
TECHNICAL_TERM_MIN_LENGTH = 9

ACRONYM_PATTERN = re.compile(r"[A-Z]{2,}")
DIGIT_PATTERN = re.compile(r"\d")
ANALYSIS_PATTERN = re.compile(
    r"(compare|analyze|examine|identify|determine|conclude|observe|measure|test)",
    re.IGNORECASE,
)


class KeywordTableError(RuntimeError):
    """The keyword table is broken. This is a deployment bug, not bad input."""


def _check_table() -> None:
    if not FORENSIC_KEYWORDS:
        raise KeywordTableError("Forensic keyword table is empty")
    for keyword in FORENSIC_KEYWORDS:
        if not isinstance(keyword, str) or not keyword or keyword != keyword.strip().lower():
            raise KeywordTableError(f"Invalid forensic keyword: {keyword!r}")


_check_table()
