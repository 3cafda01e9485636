import asyncio
import logging
import math
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

from .comparator import compare_specimens
from .conclusion import normalize_conclusion, validate_conclusion
from .explanation import score_explanation
from .input_parsers import parse_answer_key, parse_student_answer
from .models import (
    AnswerKey,
    ConclusionOutcome,
    ExplanationResult,
    ScoreResult,
    SpecimenResult,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 4


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class GradingCancelled(Exception):
    """Raised when a batch is abandoned before every submission was graded."""


def aggregate(specimen_result: SpecimenResult,
              explanation_result: ExplanationResult,
              conclusion_outcome: ConclusionOutcome,
              key: AnswerKey,
              answer_parse_error: bool = False,
              submitted_conclusion: Optional[str] = None) -> ScoreResult:
    """Combine the component results into the reported score. Never raises."""
    weighted = specimen_result.weighted_specimen_score
    explanation_score = key.explanation.points if explanation_result.score else 0
    total = weighted + explanation_score
    max_score = key.max_points

    if conclusion_outcome == ConclusionOutcome.UNKNOWN:
        conclusion_match = "unknown"
    else:
        conclusion_match = conclusion_outcome == ConclusionOutcome.MATCH

    return ScoreResult(
        raw_correct=specimen_result.raw_correct,
        raw_total=specimen_result.raw_total,
        weighted_specimen_score=weighted,
        explanation_score=explanation_score,
        conclusion_outcome=conclusion_outcome,
        conclusion_match=conclusion_match,
        expected_conclusion=key.explanation.conclusion,
        submitted_conclusion=normalize_conclusion(submitted_conclusion),
        total_score=total,
        max_score=max_score,
        percentage=round_half_up(total / max_score * 100) if max_score > 0 else 0,
        rows=specimen_result.rows,
        explanation=explanation_result,
        key_parse_error=key.parse_error,
        answer_parse_error=answer_parse_error,
    )


def _grade_parsed(key: AnswerKey, raw_answer: Any) -> ScoreResult:
    answer = parse_student_answer(raw_answer)
    specimen_result = compare_specimens(key, answer.table_answers)
    explanation_result = score_explanation(answer.explanation_text, answer.conclusion)
    outcome = validate_conclusion(key.explanation.conclusion, answer.conclusion)
    return aggregate(specimen_result, explanation_result, outcome, key,
                     answer_parse_error=answer.parse_error,
                     submitted_conclusion=answer.conclusion)


class GradingEngine:
    def __init__(self, max_workers: int = DEFAULT_MAX_WORKERS):
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.max_workers = max_workers

    def grade(self, key: Any, answer: Any) -> ScoreResult:
        """Grade one submission. key/answer may be stored JSON text or decoded objects."""
        return _grade_parsed(parse_answer_key(key), answer)

    def grade_batch(self, key: Any, answers: Mapping[str, Any]) -> Dict[str, ScoreResult]:
        """
        Grade every submission against one key on a bounded thread pool.
        Results come back keyed by student ID in the input order.
        """
        parsed_key = parse_answer_key(key)
        if not answers:
            return {}

        graded: Dict[str, ScoreResult] = {}
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(answers))) as pool:
            futures = {
                pool.submit(_grade_parsed, parsed_key, answer): sid
                for sid, answer in answers.items()
            }
            for future in as_completed(futures):
                graded[futures[future]] = future.result()

        logger.info(f"Graded {len(graded)} submissions")
        return {sid: graded[sid] for sid in answers}

    # ================== ASYNC JOB ======================
    async def grade_batch_async(self,
                                key: Any,
                                answers: Mapping[str, Any],
                                is_cancelled: Optional[Callable[[], Awaitable[bool]]] = None,
                                status_callback: Optional[Callable[[str, int], None]] = None
                                ) -> Dict[str, ScoreResult]:
        """
        Same as grade_batch, run on the event loop's executor so a request
        handler stays responsive. is_cancelled is awaited between completions;
        once it returns True the remaining work is dropped and
        GradingCancelled is raised.
        """
        def report(message: str, pct: int):
            if status_callback:
                status_callback(message, pct)

        parsed_key = parse_answer_key(key)
        total = len(answers)
        report("Grading submissions...", 0)
        if not total:
            report("Finalizing...", 100)
            return {}

        loop = asyncio.get_running_loop()
        semaphore = asyncio.Semaphore(self.max_workers)

        async def grade_one(sid: str, answer: Any):
            async with semaphore:
                result = await loop.run_in_executor(None, _grade_parsed, parsed_key, answer)
            return sid, result

        tasks = [asyncio.ensure_future(grade_one(sid, answer)) for sid, answer in answers.items()]
        graded: Dict[str, ScoreResult] = {}
        try:
            for next_done in asyncio.as_completed(tasks):
                sid, result = await next_done
                graded[sid] = result
                report(f"Graded student {sid}", int(len(graded) / total * 100))
                if is_cancelled is not None and await is_cancelled():
                    logger.warning(f"Batch cancelled after {len(graded)}/{total} submissions")
                    raise GradingCancelled(f"Cancelled after {len(graded)} of {total} submissions")
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()

        report("Finalizing...", 100)
        return {sid: graded[sid] for sid in answers}


_default_engine = GradingEngine()


def grade(key: Any, answer: Any) -> ScoreResult:
    return _default_engine.grade(key, answer)


def grade_batch(key: Any, answers: Mapping[str, Any]) -> Dict[str, ScoreResult]:
    return _default_engine.grade_batch(key, answers)
