# scriptgrader/services/submission_service.py
import logging
from typing import Callable, List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from scriptgrader.core.errors import user_message_for
from scriptgrader.models.assessment import Assessment, AssessmentStatus
from scriptgrader.models.submission import Submission, SubmissionStatus
from scriptgrader.models.user import User
from scriptgrader.schemas.submission import SubmissionCreate
from scriptgrader.services.storage import LocalImageStorage, build_filename

logger = logging.getLogger(__name__)


class SubmissionError(Exception):
    """Invalid submission request; the API answers 400."""


class NotFoundError(SubmissionError):
    """Referenced row does not exist; the API answers 404."""


def store_uploaded_pages(
    storage: LocalImageStorage,
    *,
    student_id: int,
    assessment_id: int,
    files: Sequence[Tuple[str, bytes]],
) -> List[str]:
    """保存新上传的图片，返回按上传顺序排列的 URL"""
    for index, (filename, data) in enumerate(files):
        if not data:
            raise SubmissionError(f"Uploaded file {filename or index} is empty")

    urls = []
    for index, (filename, data) in enumerate(files):
        urls.append(storage.save(data, build_filename(student_id, assessment_id, filename, index)))
    return urls


def check_reused_images(storage: LocalImageStorage, urls: Sequence[str]) -> List[str]:
    """重新提交时复用之前的图片：每个 URL 都必须还在存储里"""
    for url in urls:
        if not storage.exists(url):
            raise SubmissionError(f"Failed to load previous image: {url}")
    return list(urls)


def validate_submission_target(db: Session, *, assessment_id: int, student_id: int) -> Assessment:
    """上传前检查：试卷存在且 ACTIVE，学生存在。先于写文件调用"""
    assessment: Optional[Assessment] = db.get(Assessment, assessment_id)
    if assessment is None:
        raise NotFoundError("Assessment not found")
    if assessment.status != AssessmentStatus.ACTIVE:
        raise SubmissionError("This assessment is not accepting submissions")

    student: Optional[User] = db.get(User, student_id)
    if student is None or student.role != "student":
        raise NotFoundError("Student not found")
    return assessment


def _validate_request(db: Session, obj_in: SubmissionCreate) -> Assessment:
    assessment = validate_submission_target(
        db, assessment_id=obj_in.assessment_id, student_id=obj_in.student_id
    )
    if not obj_in.image_urls:
        raise SubmissionError("No files uploaded and no previous images to reuse")
    return assessment


def delete_existing_submission(db: Session, *, student_id: int, assessment_id: int) -> bool:
    """同一学生同一试卷只保留一条：旧的直接删除，不做软删除"""
    existing = (
        db.query(Submission)
        .filter(
            Submission.student_id == student_id,
            Submission.assessment_id == assessment_id,
        )
        .first()
    )
    if existing is None:
        return False
    if existing.status == SubmissionStatus.PROCESSING:
        # its pipeline keeps running and will find the row gone
        logger.warning(
            f"Superseding submission {existing.id} while it is still processing"
        )
    db.delete(existing)
    db.flush()
    logger.info(f"Deleted previous submission {existing.id} for student {student_id}, assessment {assessment_id}")
    return True


def create_submission_and_enqueue_task(
    db: Session,
    *,
    obj_in: SubmissionCreate,
    enqueue: Optional[Callable[[int], object]] = None,
) -> Submission:
    """
    创建 submission + 把评分流水线交给后台
    status 初始为 'PROCESSING'，这里不等评分结果，立即返回
    """
    assessment = _validate_request(db, obj_in)

    delete_existing_submission(
        db, student_id=obj_in.student_id, assessment_id=obj_in.assessment_id
    )

    submission = Submission(
        assessment_id=obj_in.assessment_id,
        student_id=obj_in.student_id,
        image_urls=list(obj_in.image_urls),
        status=SubmissionStatus.PROCESSING,
    )
    db.add(submission)
    db.commit()
    db.refresh(submission)

    if not (assessment.mark_scheme_text or "").strip():
        logger.warning(f"Assessment {assessment.id} has no mark scheme text")

    if enqueue is None:
        from scriptgrader.workers.queue import enqueue_grading_task
        enqueue = enqueue_grading_task

    try:
        enqueue(submission.id)
    except Exception as e:
        # nothing will ever pick this row up, so it must not stay PROCESSING
        logger.error(f"Failed to dispatch grading for submission {submission.id}: {e}", exc_info=True)
        submission.status = SubmissionStatus.ERROR
        submission.feedback = user_message_for(e)
        db.add(submission)
        db.commit()
        db.refresh(submission)

    return submission


def get_submission(db: Session, submission_id: int) -> Optional[Submission]:
    return db.get(Submission, submission_id)


def get_submission_for_pair(db: Session, *, student_id: int, assessment_id: int) -> Optional[Submission]:
    return (
        db.query(Submission)
        .filter(
            Submission.student_id == student_id,
            Submission.assessment_id == assessment_id,
        )
        .first()
    )


def list_submissions_for_assessment(
    db: Session,
    *,
    assessment_id: int,
    skip: int = 0,
    limit: int = 100,
) -> List[Submission]:
    """
    老师按试卷查看所有学生的提交
    """
    return (
        db.query(Submission)
        .filter(Submission.assessment_id == assessment_id)
        .order_by(Submission.created_at.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )


def list_processing_submission_ids(db: Session) -> List[int]:
    # 一次取完 id：遍历期间其它 worker 改了状态也不会漏掉
    rows = (
        db.query(Submission)
        .filter(Submission.status == SubmissionStatus.PROCESSING)
        .order_by(Submission.created_at.asc(), Submission.id.asc())
        .with_entities(Submission.id)
        .all()
    )
    return [row.id for row in rows]
