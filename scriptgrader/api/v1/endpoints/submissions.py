# scriptgrader/api/v1/endpoints/submissions.py
import json
import logging
from typing import List

from fastapi import (
    APIRouter,
    BackgroundTasks,
    Depends,
    File,
    Form,
    HTTPException,
    UploadFile,
    status,
)
from sqlalchemy.orm import Session

from scriptgrader.core.config import settings
from scriptgrader.db.session import get_db
from scriptgrader.schemas.submission import (
    SubmissionCreate,
    SubmissionCreated,
    SubmissionPublic,
)
from scriptgrader.services import submission_service
from scriptgrader.services.storage import LocalImageStorage, get_storage
from scriptgrader.workers.queue import enqueue_grading_task
from scriptgrader.workers.tasks import grading_task

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/submissions", tags=["submissions"])


def get_image_storage() -> LocalImageStorage:
    return get_storage()


def _parse_reuse_urls(raw: str | None) -> list[str]:
    if not raw:
        return []
    try:
        urls = json.loads(raw)
    except json.JSONDecodeError:
        raise HTTPException(status_code=400, detail="Invalid reuse_image_urls format")
    if not isinstance(urls, list) or not all(isinstance(u, str) for u in urls):
        raise HTTPException(status_code=400, detail="Invalid reuse_image_urls format")
    return urls


@router.post("/upload", response_model=SubmissionCreated, status_code=status.HTTP_201_CREATED)
def upload_submission(
    background_tasks: BackgroundTasks,
    assessment_id: int = Form(...),
    student_id: int = Form(...),
    files: List[UploadFile] = File(default=[]),
    reuse_image_urls: str | None = Form(default=None),
    db: Session = Depends(get_db),
    storage: LocalImageStorage = Depends(get_image_storage),
):
    """
    老师替学生上传答题纸图片；创建 submission 后立即返回，评分在后台进行。
    重新提交会删除同一学生同一试卷的旧 submission。
    """
    reuse_urls = _parse_reuse_urls(reuse_image_urls)
    uploads = [f for f in files if f.filename]
    if not uploads and not reuse_urls:
        raise HTTPException(status_code=400, detail="No files uploaded and no previous images to reuse")

    try:
        # 先校验试卷和学生，再写文件；被拒的上传不在磁盘上留东西
        submission_service.validate_submission_target(
            db, assessment_id=assessment_id, student_id=student_id
        )

        if reuse_urls:
            logger.info(f"Reusing {len(reuse_urls)} existing images for resubmission")
            image_urls = submission_service.check_reused_images(storage, reuse_urls)
        else:
            contents = [(f.filename, f.file.read()) for f in uploads]
            image_urls = submission_service.store_uploaded_pages(
                storage,
                student_id=student_id,
                assessment_id=assessment_id,
                files=contents,
            )

        if settings.GRADING_DISPATCH == "background":
            enqueue = lambda submission_id: background_tasks.add_task(grading_task, submission_id)  # noqa: E731
        else:
            enqueue = enqueue_grading_task

        sub = submission_service.create_submission_and_enqueue_task(
            db,
            obj_in=SubmissionCreate(
                assessment_id=assessment_id,
                student_id=student_id,
                image_urls=image_urls,
            ),
            enqueue=enqueue,
        )
    except submission_service.NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except submission_service.SubmissionError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return sub


@router.get("/assessment/{assessment_id}", response_model=List[SubmissionPublic])
def list_submissions_for_assessment(
    assessment_id: int,
    db: Session = Depends(get_db),
    skip: int = 0,
    limit: int = 100,
):
    return submission_service.list_submissions_for_assessment(
        db, assessment_id=assessment_id, skip=skip, limit=limit
    )


@router.get("/assessment/{assessment_id}/student/{student_id}", response_model=SubmissionPublic)
def get_submission_for_student(
    assessment_id: int,
    student_id: int,
    db: Session = Depends(get_db),
):
    sub = submission_service.get_submission_for_pair(
        db, student_id=student_id, assessment_id=assessment_id
    )
    if not sub:
        raise HTTPException(status_code=404, detail="Submission not found")
    return sub


@router.get("/{submission_id}", response_model=SubmissionPublic)
def get_submission(submission_id: int, db: Session = Depends(get_db)):
    """
    前端在 PROCESSING 期间轮询这个接口，直到 GRADED 或 ERROR。
    """
    sub = submission_service.get_submission(db, submission_id)
    if not sub:
        raise HTTPException(status_code=404, detail="Submission not found")
    return sub
