import asyncio
import json

import pytest

from forensic_core.engine import GradingCancelled, GradingEngine, aggregate, grade, grade_batch
from forensic_core.explanation import score_explanation
from forensic_core.input_parsers import parse_answer_key
from forensic_core.models import ConclusionOutcome, SpecimenResult

from conftest import RELEVANT_EXPLANATION


def test_scenario_partial_table_with_explanation(answer_key_json, partial_answer):
    result = grade(answer_key_json, json.dumps(partial_answer))

    assert result.weighted_specimen_score == 2
    assert result.explanation_score == 5
    assert result.conclusion_match is True
    assert result.conclusion_outcome == ConclusionOutcome.MATCH
    assert result.total_score == 7
    assert result.raw_correct == 3
    assert result.raw_total == 4
    assert result.max_score == 10
    assert result.percentage == 70


def test_scenario_nothing_submitted(answer_key_json):
    result = grade(answer_key_json, "{}")

    assert result.total_score == 0
    assert result.raw_total == 4
    assert result.raw_correct == 0
    assert result.conclusion_outcome == ConclusionOutcome.UNKNOWN
    assert result.conclusion_match == "unknown"


def test_grading_is_deterministic(answer_key_json, partial_answer):
    assert grade(answer_key_json, partial_answer) == grade(answer_key_json, partial_answer)


def test_case_and_whitespace_do_not_change_score(answer_key, partial_answer):
    noisy = dict(partial_answer)
    noisy["tableAnswers"] = [
        {col: f"  {val.upper()} " for col, val in row.items()}
        for row in partial_answer["tableAnswers"]
    ]

    assert grade(answer_key, noisy).total_score == grade(answer_key, partial_answer).total_score
    assert grade(answer_key, noisy).raw_correct == grade(answer_key, partial_answer).raw_correct


def test_legacy_key_grades_like_object_key(specimen_rows, partial_answer):
    legacy = grade(json.dumps(specimen_rows), partial_answer)
    structured = grade({"specimens": specimen_rows,
                        "explanation": {"text": "", "points": 0, "conclusion": ""}}, partial_answer)

    assert legacy == structured


def test_explanation_gate(specimen_rows):
    key = {"specimens": specimen_rows,
           "explanation": {"text": "Ink differs", "points": 5, "conclusion": "real"}}

    weak = grade(key, {"tableAnswers": [], "conclusion": "real",
                       "explanationText": "I just like how it looks"})
    strong = grade(key, {"tableAnswers": [], "conclusion": "real",
                         "explanationText": RELEVANT_EXPLANATION})

    assert weak.explanation_score == 0
    assert strong.explanation_score == 5
    assert strong.total_score == 5


def test_conclusion_absent_on_key_is_neutral(specimen_rows, partial_answer):
    key = {"specimens": specimen_rows, "explanation": {"text": "", "points": 5, "conclusion": ""}}
    result = grade(key, partial_answer)

    assert result.conclusion_outcome == ConclusionOutcome.UNKNOWN
    assert result.total_score == 7


def test_conclusion_mismatch_does_not_change_total(answer_key, partial_answer):
    mismatched = dict(partial_answer, conclusion="real")
    result = grade(answer_key, mismatched)

    assert result.conclusion_match is False
    assert result.total_score == grade(answer_key, partial_answer).total_score


def test_malformed_answer_scores_zero(answer_key_json):
    result = grade(answer_key_json, "{oops")

    assert result.answer_parse_error
    assert result.total_score == 0
    assert result.raw_total == 4


def test_malformed_key_scores_zero(partial_answer):
    result = grade("[{", partial_answer)

    assert result.key_parse_error
    assert result.raw_total == 0
    assert result.total_score == 0
    assert result.percentage == 0


def test_deeply_nested_blobs_score_zero(answer_key_json, partial_answer):
    nested = "[" * 100000 + "]" * 100000

    bad_answer = grade(answer_key_json, nested)
    bad_key = grade(nested, partial_answer)

    assert bad_answer.answer_parse_error
    assert bad_answer.total_score == 0
    assert bad_key.key_parse_error
    assert bad_key.max_score == 0


def test_oversized_points_grade_as_one(partial_answer):
    huge = "9" * 400
    key = ('{"specimens": [{"questionSpecimen": "A", "standardSpecimen": "B", "points": %s}],'
           ' "explanation": {"text": "t", "points": %s, "conclusion": "fake"}}' % (huge, huge))

    result = grade(key, {"tableAnswers": [{"questionSpecimen": "a", "standardSpecimen": "b"}]})

    assert not result.key_parse_error
    assert result.weighted_specimen_score == 1
    assert result.max_score == 1
    assert result.percentage == 100


def test_zero_point_row_is_worth_one():
    key = [{"questionSpecimen": "A", "standardSpecimen": "B", "points": 0}]

    result = grade(key, {"tableAnswers": [{"questionSpecimen": "A", "standardSpecimen": "B"}]})

    assert result.weighted_specimen_score == 1
    assert result.max_score == 1


def test_aggregate_without_explanation_points():
    key = parse_answer_key([{"questionSpecimen": "A", "standardSpecimen": "B", "points": 4}])
    specimen = SpecimenResult(raw_correct=2, raw_total=2, weighted_specimen_score=4)
    result = aggregate(specimen, score_explanation(RELEVANT_EXPLANATION, "fake"),
                       ConclusionOutcome.UNKNOWN, key)

    assert result.explanation_score == 0
    assert result.total_score == 4
    assert result.percentage == 100


def test_percentage_rounds_half_up():
    key = parse_answer_key([{"questionSpecimen": "A", "points": 1}] * 8)
    result = grade(key, [{"questionSpecimen": "a"}])

    # 1/8 = 12.5%
    assert result.percentage == 13


def test_score_result_serializes_camel_case(answer_key, partial_answer):
    payload = grade(answer_key, partial_answer).model_dump(by_alias=True, mode="json")

    assert payload["totalScore"] == 7
    assert payload["conclusionOutcome"] == "match"
    assert payload["rows"][0]["possiblePoints"] == 2
    assert payload["explanation"]["isRelevant"] is True


class TestBatch:

    @pytest.fixture
    def submissions(self, partial_answer):
        return {
            "s3": partial_answer,
            "s1": "{}",
            "s2": json.dumps(dict(partial_answer, conclusion="real")),
            "s4": "not json",
        }

    def test_batch_matches_single_grading_in_input_order(self, answer_key, submissions):
        results = grade_batch(answer_key, submissions)

        assert list(results) == ["s3", "s1", "s2", "s4"]
        for sid, answer in submissions.items():
            assert results[sid] == grade(answer_key, answer)

    def test_single_worker(self, answer_key, submissions):
        results = GradingEngine(max_workers=1).grade_batch(answer_key, submissions)

        assert results["s3"].total_score == 7
        assert results["s4"].answer_parse_error

    def test_empty_batch(self, answer_key):
        assert grade_batch(answer_key, {}) == {}

    def test_invalid_worker_count(self):
        with pytest.raises(ValueError):
            GradingEngine(max_workers=0)

    def test_async_batch(self, answer_key, submissions):
        progress = []
        engine = GradingEngine(max_workers=2)

        results = asyncio.run(engine.grade_batch_async(
            answer_key, submissions, status_callback=lambda msg, pct: progress.append(pct)))

        assert list(results) == list(submissions)
        assert results["s3"] == grade(answer_key, submissions["s3"])
        assert progress[0] == 0
        assert progress[-1] == 100

    def test_async_batch_cancellation(self, answer_key, submissions):
        async def cancelled():
            return True

        with pytest.raises(GradingCancelled):
            asyncio.run(GradingEngine().grade_batch_async(answer_key, submissions,
                                                          is_cancelled=cancelled))

    def test_async_batch_not_cancelled(self, answer_key, submissions):
        async def still_connected():
            return False

        results = asyncio.run(GradingEngine().grade_batch_async(answer_key, submissions,
                                                                is_cancelled=still_connected))
        assert len(results) == 4

    def test_async_batch_with_unreadable_key(self, submissions):
        nested = "[" * 100000 + "]" * 100000

        results = asyncio.run(GradingEngine(max_workers=2).grade_batch_async(nested, submissions))

        assert all(r.key_parse_error and r.total_score == 0 for r in results.values())
