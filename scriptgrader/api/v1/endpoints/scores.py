# scriptgrader/api/v1/endpoints/scores.py
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from scriptgrader.db.session import get_db
from scriptgrader.models.assessment import Assessment
from scriptgrader.models.user import User
from scriptgrader.schemas.score import ScoreUpdate
from scriptgrader.schemas.submission import SubmissionPublic
from scriptgrader.services import scoring_service, submission_service

router = APIRouter(prefix="/scores", tags=["scores"])


@router.put("/{submission_id}", response_model=SubmissionPublic)
def update_score(
    submission_id: int,
    score_in: ScoreUpdate,
    db: Session = Depends(get_db),
):
    """
    老师手动调分：
      - 写 score / original_score / adjusted_*
      - status 保持 GRADED
    """
    sub = submission_service.get_submission(db, submission_id)
    if not sub:
        raise HTTPException(status_code=404, detail="Submission not found")

    teacher = db.get(User, score_in.teacher_id)
    if teacher is None or teacher.role != "teacher":
        raise HTTPException(status_code=403, detail="Only teachers can adjust scores")

    # 权限：必须是自己的试卷
    assessment = db.get(Assessment, sub.assessment_id)
    if assessment is None or (
        assessment.teacher_id is not None and assessment.teacher_id != teacher.id
    ):
        raise HTTPException(status_code=403, detail="Not allowed to grade this submission")

    try:
        updated = scoring_service.teacher_override_score(
            db, submission=sub, teacher=teacher, score_in=score_in
        )
    except scoring_service.ScoringError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return updated
