# scriptgrader/schemas/assessment.py
from pydantic import BaseModel, Field
from datetime import datetime


class AssessmentBase(BaseModel):
    title: str
    mark_scheme_text: str | None = None
    total_marks: int = Field(default=100, ge=1)
    status: str = "ACTIVE"


class AssessmentCreate(AssessmentBase):
    teacher_id: int | None = None


class AssessmentPublic(AssessmentBase):
    id: int
    teacher_id: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}
