"""
Grading Tasks for Worker
These tasks are executed by RQ workers (or FastAPI background tasks) to grade submissions
"""

import logging
from scriptgrader.db.session import SessionLocal
from scriptgrader.models.submission import SubmissionStatus
from scriptgrader.services.scoring_service import (
    GradingPipeline,
    ScoringError,
    build_grading_pipeline,
)

logger = logging.getLogger(__name__)


def grading_task(submission_id: int, pipeline: GradingPipeline | None = None) -> dict:
    """
    Worker task to run the grading pipeline for one submission.

    This task:
    1. Creates a database session
    2. Builds the pipeline (Gemini client is configured lazily on first call)
    3. Runs page ordering -> handwriting extraction -> grading
    4. Returns result summary

    Pipeline failures never raise out of here: they end as status=ERROR on the row.
    """
    db = SessionLocal()
    try:
        logger.info(f"Starting grading task for submission {submission_id}")

        pipeline = pipeline or build_grading_pipeline()
        submission = pipeline.run(db, submission_id)

        if submission is None:
            return {
                "status": "superseded",
                "submission_id": submission_id,
                "message": f"Submission {submission_id} was replaced before grading finished",
            }

        logger.info(
            f"Completed grading task for submission {submission_id}: "
            f"status={submission.status}, score={submission.score}/{submission.max_score}"
        )

        return {
            "status": "success" if submission.status == SubmissionStatus.GRADED else "error",
            "submission_id": submission.id,
            "submission_status": submission.status,
            "score": submission.score,
            "max_score": submission.max_score,
            "message": f"Finished submission {submission_id} with status {submission.status}",
        }

    except ScoringError as e:
        logger.error(f"Grading failed for submission {submission_id}: {e}")
        return {
            "status": "error",
            "submission_id": submission_id,
            "error": str(e),
            "message": f"Grading failed for submission {submission_id}"
        }

    except Exception as e:
        logger.error(
            f"Unexpected error during grading task for submission {submission_id}: {e}",
            exc_info=True
        )
        return {
            "status": "error",
            "submission_id": submission_id,
            "error": str(e),
            "message": "Unexpected error during grading"
        }

    finally:
        db.close()
