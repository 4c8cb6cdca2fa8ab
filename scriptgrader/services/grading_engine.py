"""
Grading Engine
Compares a student's extracted handwriting with the mark scheme text using a reasoning model.

Flow:
1. Local precondition checks (no remote call for empty inputs)
2. One model call, retried with backoff on network-class errors only
3. Primary decoder: strip code fences, json.loads
4. Fallback decoder: recover score / feedback / complete breakdown items from truncated output
5. Clamp the score to [0, max_score] whatever the model said
"""

import json
import logging
import math
import re
import time
from typing import Any, Callable, List, Optional

from pydantic import ValidationError

from scriptgrader.core.errors import (
    MalformedResponseError,
    TransientServiceError,
    is_network_error,
)
from scriptgrader.schemas.grading import GradingResult, QuestionBreakdown
from scriptgrader.services.llm_client import GradingModelClient

logger = logging.getLogger(__name__)

DEFAULT_MAX_SCORE = 100

NO_STUDENT_TEXT_FEEDBACK = "No handwritten content could be extracted from the student's submission."
NO_MARK_SCHEME_FEEDBACK = (
    "No mark scheme text available for grading. This is an assessment configuration "
    "problem, not a reflection of the student's work."
)
TRUNCATION_NOTE = (
    " (Note: the detailed question breakdown may be incomplete because the grading "
    "response was truncated.)"
)

_FENCE_RE = re.compile(r"^```(?:json|JSON)?\s*|\s*```$")
_SCORE_RE = re.compile(r'"score"\s*:\s*"?(-?\d+(?:\.\d+)?)')
_MAX_SCORE_RE = re.compile(r'"maxScore"\s*:\s*"?(-?\d+(?:\.\d+)?)')
_FEEDBACK_RE = re.compile(r'"feedback"\s*:\s*"((?:[^"\\]|\\.)*)"')
_BREAKDOWN_ITEM_RE = re.compile(r'\{\s*"questionId"')

STATUS_ICONS = {
    "correct": "✅",
    "partial": "⚠️",
    "incorrect": "❌",
    "unanswered": "⭕",
}


def strip_code_fences(text: str) -> str:
    return _FENCE_RE.sub("", (text or "").strip()).strip()


def _to_number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def clamp_score(score: float, max_score: int) -> int:
    # half marks round up
    rounded = int(math.floor(score + 0.5))
    return min(max(0, rounded), max_score)


def _parse_breakdown(items: Any) -> List[QuestionBreakdown]:
    breakdown: List[QuestionBreakdown] = []
    if not isinstance(items, list):
        return breakdown
    for item in items:
        if not isinstance(item, dict):
            continue
        try:
            breakdown.append(QuestionBreakdown.model_validate(item))
        except ValidationError as e:
            logger.warning(f"Skipping malformed breakdown item {item!r}: {e}")
    return breakdown


def _resolve_max_score(total_marks: int, reported: Any) -> int:
    if total_marks and total_marks > 0:
        reported_number = _to_number(reported)
        if reported_number is not None and int(reported_number) != total_marks:
            logger.warning(
                f"Model reported maxScore={reported}, using the assessment's total of {total_marks}"
            )
        return total_marks
    reported_number = _to_number(reported)
    if reported_number and reported_number > 0:
        return int(reported_number)
    return DEFAULT_MAX_SCORE


def parse_grading_response(text: str, total_marks: int) -> GradingResult:
    """Primary decoder. Raises MalformedResponseError if the text is not a usable JSON verdict."""
    cleaned = strip_code_fences(text)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise MalformedResponseError(f"Grading response is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise MalformedResponseError("Grading response JSON is not an object")

    raw_score = _to_number(data.get("score"))
    if raw_score is None:
        raise MalformedResponseError("Grading response has no numeric score")

    max_score = _resolve_max_score(total_marks, data.get("maxScore"))
    score = clamp_score(raw_score, max_score)
    feedback = data.get("feedback")
    if not isinstance(feedback, str) or not feedback.strip():
        feedback = f"Score: {score}/{max_score}"

    return GradingResult(
        score=score,
        max_score=max_score,
        feedback=feedback,
        breakdown=_parse_breakdown(data.get("breakdown")),
    )


def recover_truncated_response(text: str, total_marks: int) -> Optional[GradingResult]:
    """
    Fallback decoder for output that stopped mid-JSON (token limit) or is otherwise broken.

    Pulls out the score, the overall feedback and every breakdown item that is still a
    complete JSON object. Returns None when not even the score can be found.
    """
    cleaned = strip_code_fences(text)
    score_match = _SCORE_RE.search(cleaned)
    if score_match is None:
        logger.warning("Could not extract score from truncated response")
        return None

    max_match = _MAX_SCORE_RE.search(cleaned)
    max_score = _resolve_max_score(total_marks, max_match.group(1) if max_match else None)
    score = clamp_score(float(score_match.group(1)), max_score)

    # the overall feedback comes before the breakdown; item feedback must not be mistaken for it
    head = cleaned.split('"breakdown"', 1)[0]
    feedback = None
    feedback_match = _FEEDBACK_RE.search(head)
    if feedback_match:
        try:
            feedback = json.loads(f'"{feedback_match.group(1)}"')
        except json.JSONDecodeError:
            feedback = feedback_match.group(1)
    if not feedback:
        feedback = f"Score: {score}/{max_score} (response was truncated, detailed breakdown unavailable)"

    decoder = json.JSONDecoder()
    items = []
    for match in _BREAKDOWN_ITEM_RE.finditer(cleaned):
        try:
            item, _ = decoder.raw_decode(cleaned, match.start())
        except json.JSONDecodeError:
            continue
        items.append(item)
    breakdown = _parse_breakdown(items)
    logger.info(f"Recovered {len(breakdown)} complete breakdown items from truncated response")

    if not breakdown:
        feedback += TRUNCATION_NOTE

    return GradingResult(score=score, max_score=max_score, feedback=feedback, breakdown=breakdown)


def _unanswered_result(total_marks: int, feedback: str, item_feedback: str) -> GradingResult:
    max_score = total_marks if total_marks and total_marks > 0 else DEFAULT_MAX_SCORE
    return GradingResult(
        score=0,
        max_score=max_score,
        feedback=feedback,
        breakdown=[
            QuestionBreakdown(
                question_id="All",
                points=0,
                max_points=max_score,
                status="unanswered",
                feedback=item_feedback,
            )
        ],
    )


class GradingEngine:
    def __init__(
        self,
        client: GradingModelClient,
        *,
        max_attempts: int = 3,
        retry_base_delay: float = 2.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.client = client
        self.max_attempts = max(1, max_attempts)
        self.retry_base_delay = retry_base_delay
        self.sleep = sleep

    def _call_with_retry(self, student_text: str, mark_scheme_text: str, total_marks: int) -> str:
        last_error: Optional[Exception] = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                logger.info(f"Grading call attempt {attempt}/{self.max_attempts}")
                return self.client.grade(student_text, mark_scheme_text, total_marks)
            except Exception as e:
                if not is_network_error(e):
                    # auth / config / bad request: retrying cannot help
                    raise
                last_error = e
                logger.warning(f"Grading call attempt {attempt} failed: {e}")
                if attempt < self.max_attempts:
                    delay = attempt * self.retry_base_delay
                    logger.info(f"Retrying in {delay:.1f}s")
                    self.sleep(delay)

        raise TransientServiceError(
            f"Grading call failed after {self.max_attempts} attempts: {last_error}"
        ) from last_error

    def grade(self, student_text: str, mark_scheme_text: str, total_marks: int) -> GradingResult:
        if not student_text or not student_text.strip():
            return _unanswered_result(
                total_marks,
                NO_STUDENT_TEXT_FEEDBACK,
                "No handwritten answers were detected in the submission.",
            )
        if not mark_scheme_text or not mark_scheme_text.strip():
            return _unanswered_result(
                total_marks,
                NO_MARK_SCHEME_FEEDBACK,
                "Mark scheme text is missing. Please ensure the assessment has a valid mark scheme.",
            )

        response_text = self._call_with_retry(student_text, mark_scheme_text, total_marks)

        try:
            result = parse_grading_response(response_text, total_marks)
        except MalformedResponseError as parse_error:
            logger.error(f"Grading response could not be parsed: {parse_error}. Response: {response_text[:500]!r}")
            logger.info("Attempting truncation recovery...")
            result = recover_truncated_response(response_text, total_marks)
            if result is None:
                raise MalformedResponseError(
                    f"Failed to parse grading response as JSON: {parse_error}"
                ) from parse_error
            logger.info(f"Truncation recovery successful - extracted score: {result.score}")

        logger.info(f"Grading complete: {result.score}/{result.max_score}")
        return result


def _fmt_points(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else f"{value:g}"


def format_feedback_as_markdown(result: GradingResult) -> str:
    percentage = round(result.score / result.max_score * 100) if result.max_score else 0
    lines = [
        "## Grading Results",
        "",
        f"**Score: {result.score}/{result.max_score}** ({percentage}%)",
        "",
        "### Overall Feedback",
        result.feedback,
        "",
    ]

    if result.breakdown:
        lines += ["### Question-by-Question Breakdown", ""]
        for item in result.breakdown:
            icon = STATUS_ICONS.get(item.status, "")
            lines.append(f"#### {icon} Question {item.question_id}")
            lines.append(f"**Score:** {_fmt_points(item.points)}/{_fmt_points(item.max_points)}")
            lines.append("")
            lines.append(item.feedback)
            lines.append("")
            if item.deductions:
                lines.append("**Deductions:**")
                for deduction in item.deductions:
                    plural = "" if deduction.points_lost == 1 else "s"
                    lines.append(
                        f"- −{_fmt_points(deduction.points_lost)} mark{plural}: {deduction.reason}"
                    )
                lines.append("")

    return "\n".join(lines).rstrip() + "\n"
