# scriptgrader/api/v1/endpoints/assessments.py
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from scriptgrader.db.session import get_db
from scriptgrader.models.assessment import Assessment, AssessmentStatus
from scriptgrader.schemas.assessment import AssessmentCreate, AssessmentPublic

router = APIRouter(prefix="/assessments", tags=["assessments"])

_STATUSES = (AssessmentStatus.DRAFT, AssessmentStatus.ACTIVE, AssessmentStatus.CLOSED)


@router.post("/", response_model=AssessmentPublic, status_code=status.HTTP_201_CREATED)
def create_assessment(obj_in: AssessmentCreate, db: Session = Depends(get_db)):
    """
    老师建卷；mark_scheme_text 是建卷时已经 OCR 好的评分标准文本。
    """
    if obj_in.status not in _STATUSES:
        raise HTTPException(status_code=400, detail=f"status must be one of {', '.join(_STATUSES)}")

    assessment = Assessment(
        teacher_id=obj_in.teacher_id,
        title=obj_in.title,
        mark_scheme_text=obj_in.mark_scheme_text,
        total_marks=obj_in.total_marks,
        status=obj_in.status,
    )
    db.add(assessment)
    db.commit()
    db.refresh(assessment)
    return assessment


@router.get("/{assessment_id}", response_model=AssessmentPublic)
def get_assessment(assessment_id: int, db: Session = Depends(get_db)):
    assessment = db.get(Assessment, assessment_id)
    if not assessment:
        raise HTTPException(status_code=404, detail="Assessment not found")
    return assessment
