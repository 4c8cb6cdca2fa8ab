# scriptgrader/services/scoring_service.py
from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from scriptgrader.core.config import settings
from scriptgrader.core.errors import SubmissionSuperseded, user_message_for
from scriptgrader.models.assessment import Assessment
from scriptgrader.models.submission import Submission, SubmissionStatus
from scriptgrader.models.user import User
from scriptgrader.schemas.score import ScoreUpdate
from scriptgrader.services.execution import (
    ParallelStrategy,
    SequentialStrategy,
    make_strategy,
)
from scriptgrader.services.grading_engine import GradingEngine, format_feedback_as_markdown
from scriptgrader.services.handwriting import HandwritingExtractor
from scriptgrader.services.imaging import normalize_orientation
from scriptgrader.services.llm_client import GeminiClient, GradingModelClient
from scriptgrader.services.page_order import PageImage, PageOrderResolver
from scriptgrader.services.storage import LocalImageStorage, get_storage

logger = logging.getLogger(__name__)


class ScoringError(Exception):
    pass


def _get_submission_and_assessment(
    db: Session,
    submission_id: int,
) -> tuple[Submission, Assessment]:
    submission: Optional[Submission] = db.get(Submission, submission_id)
    if submission is None:
        raise ScoringError(f"submission {submission_id} not found")

    assessment: Optional[Assessment] = db.get(Assessment, submission.assessment_id)
    if assessment is None:
        raise ScoringError(
            f"assessment {submission.assessment_id} for submission {submission_id} not found"
        )

    return submission, assessment


def _fresh_submission(db: Session, submission_id: int) -> Optional[Submission]:
    # always hit the database: a re-submission may have deleted the row meanwhile
    return (
        db.query(Submission)
        .filter(Submission.id == submission_id)
        .populate_existing()
        .first()
    )


class GradingPipeline:
    """
    The background half of a submission's lifecycle:

        PROCESSING -> resolve page order -> persist image_urls
                   -> extract handwriting -> persist extracted_text
                   -> grade                -> persist score / feedback, GRADED
        any uncaught error                 -> ERROR with a user-safe message

    Each stage only reads immutable inputs and overwrites its own fields, so running the
    whole pipeline again for a PROCESSING row is safe.
    """

    def __init__(
        self,
        client: GradingModelClient,
        storage: LocalImageStorage,
        *,
        detection_strategy=None,
        extraction_strategy=None,
        normalize_orientation: bool = True,
        max_attempts: int = 3,
        retry_base_delay: float = 2.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.storage = storage
        self.normalize_orientation = normalize_orientation
        self.resolver = PageOrderResolver(client, strategy=detection_strategy or ParallelStrategy())
        self.extractor = HandwritingExtractor(client, strategy=extraction_strategy or SequentialStrategy())
        self.engine = GradingEngine(
            client,
            max_attempts=max_attempts,
            retry_base_delay=retry_base_delay,
            sleep=sleep,
        )

    def _load_pages(self, image_urls: List[str]) -> List[PageImage]:
        pages = self.storage.load_many(image_urls)
        if self.normalize_orientation:
            pages = [normalize_orientation(page) for page in pages]
        return pages

    def _save(self, db: Session, submission_id: int, **fields) -> Submission:
        """Write one stage's output, unless the row was superseded or already finished."""
        submission = _fresh_submission(db, submission_id)
        if submission is None:
            raise SubmissionSuperseded(f"submission {submission_id} no longer exists")
        if submission.status != SubmissionStatus.PROCESSING:
            raise SubmissionSuperseded(
                f"submission {submission_id} is {submission.status}, not {SubmissionStatus.PROCESSING}"
            )
        for field, value in fields.items():
            setattr(submission, field, value)
        db.add(submission)
        db.commit()
        db.refresh(submission)
        return submission

    def _mark_error(self, db: Session, submission_id: int, message: str) -> Optional[Submission]:
        submission = _fresh_submission(db, submission_id)
        if submission is None:
            return None
        if submission.status in SubmissionStatus.TERMINAL:
            # terminal states are final
            return submission
        submission.status = SubmissionStatus.ERROR
        submission.feedback = message
        db.add(submission)
        db.commit()
        db.refresh(submission)
        return submission

    def run(self, db: Session, submission_id: int) -> Optional[Submission]:
        """
        worker 调用：对单个 submission 跑完整的评分流水线。

        Returns the submission in its terminal state, or None if it was superseded
        (deleted by a re-submission) while running.
        """
        submission, assessment = _get_submission_and_assessment(db, submission_id)

        if submission.status in SubmissionStatus.TERMINAL:
            logger.info(f"Submission {submission_id} is already {submission.status}; nothing to do")
            return submission

        mark_scheme_text = assessment.mark_scheme_text or ""
        total_marks = assessment.total_marks
        image_urls = list(submission.image_urls or [])
        extracted_text = submission.extracted_text

        try:
            if extracted_text is None:
                # STEP 1: sort pages by detected page number
                logger.info(f"Processing submission {submission_id}: resolving order of {len(image_urls)} page(s)")
                pages = self._load_pages(image_urls)
                order = self.resolver.resolve_order(pages)
                sorted_urls = [image_urls[i] for i in order.ordered_indices]
                self._save(db, submission_id, image_urls=sorted_urls)

                # STEP 2: extract ONLY handwritten content
                extraction = self.extractor.extract_handwritten(order.ordered_images)
                extracted_text = extraction.text
                self._save(db, submission_id, extracted_text=extracted_text)
            else:
                # extracted_text is immutable once set; a re-run picks up from grading
                logger.info(f"Submission {submission_id} already has extracted text; re-grading only")

            # STEP 3: compare against the cached mark scheme text
            logger.info(f"Grading submission {submission_id}")
            result = self.engine.grade(extracted_text, mark_scheme_text, total_marks)

            submission = self._save(
                db,
                submission_id,
                score=result.score,
                max_score=result.max_score,
                feedback=format_feedback_as_markdown(result),
                status=SubmissionStatus.GRADED,
                graded_at=datetime.now(timezone.utc),
            )
            logger.info(f"Submission {submission_id} graded: {result.score}/{result.max_score}")
            return submission

        except SubmissionSuperseded as e:
            db.rollback()
            logger.info(f"Stopping pipeline for submission {submission_id}: {e}")
            return None

        except Exception as e:
            db.rollback()
            logger.error(f"Error processing submission {submission_id}: {e}", exc_info=True)
            return self._mark_error(db, submission_id, user_message_for(e))


def build_grading_pipeline(
    *,
    client: GradingModelClient | None = None,
    storage: LocalImageStorage | None = None,
) -> GradingPipeline:
    """Composition root: the one place that turns settings into pipeline collaborators."""
    if client is None:
        client = GeminiClient(
            settings.GEMINI_API_KEY,
            page_model=settings.PAGE_DETECTION_MODEL,
            extraction_model=settings.EXTRACTION_MODEL,
            grading_model=settings.GRADING_MODEL,
            timeout=settings.LLM_TIMEOUT_SECONDS,
        )
    return GradingPipeline(
        client,
        storage or get_storage(),
        detection_strategy=make_strategy(settings.PAGE_DETECTION_STRATEGY, settings.PAGE_DETECTION_WORKERS),
        extraction_strategy=make_strategy(settings.EXTRACTION_STRATEGY, settings.PAGE_DETECTION_WORKERS),
        normalize_orientation=settings.NORMALIZE_ORIENTATION,
        max_attempts=settings.GRADING_MAX_ATTEMPTS,
        retry_base_delay=settings.GRADING_RETRY_BASE_DELAY,
    )


def run_grading_for_submission(
    db: Session,
    submission_id: int,
    *,
    pipeline: GradingPipeline | None = None,
) -> Optional[Submission]:
    pipeline = pipeline or build_grading_pipeline()
    return pipeline.run(db, submission_id)


def teacher_override_score(
    db: Session,
    *,
    submission: Submission,
    teacher: User,
    score_in: ScoreUpdate,
) -> Submission:
    """
    老师手动调分：只允许对 GRADED 的提交操作，第一次调分时记下 AI 原始分。
    status 不变。
    """
    if submission.status != SubmissionStatus.GRADED:
        raise ScoringError(f"submission {submission.id} is {submission.status}, only GRADED can be adjusted")

    max_score = submission.max_score or 0
    if submission.original_score is None:
        submission.original_score = submission.score
    submission.score = min(max(0, score_in.score), max_score)
    submission.adjusted_by = teacher.id
    submission.adjustment_reason = score_in.reason
    submission.adjusted_at = datetime.now(timezone.utc)

    db.add(submission)
    db.commit()
    db.refresh(submission)
    return submission
