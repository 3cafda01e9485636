import json

import pytest

RELEVANT_EXPLANATION = "Forensic examination of the specimen shows inconsistent chromatography results."


@pytest.fixture
def specimen_rows():
    return [
        {"questionSpecimen": "A", "standardSpecimen": "B", "points": 2},
        {"questionSpecimen": "C", "standardSpecimen": "D", "points": 3},
    ]


@pytest.fixture
def answer_key(specimen_rows):
    return {
        "specimens": specimen_rows,
        "explanation": {"text": "Ink chromatography differs.", "points": 5, "conclusion": "fake"},
    }


@pytest.fixture
def answer_key_json(answer_key):
    return json.dumps(answer_key)


@pytest.fixture
def partial_answer():
    return {
        "tableAnswers": [
            {"questionSpecimen": "A", "standardSpecimen": "B"},
            {"questionSpecimen": "C", "standardSpecimen": "wrong"},
        ],
        "conclusion": "fake",
        "explanationText": RELEVANT_EXPLANATION,
    }
