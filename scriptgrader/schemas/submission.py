# scriptgrader/schemas/submission.py
from pydantic import BaseModel, Field
from datetime import datetime


class SubmissionCreate(BaseModel):
    assessment_id: int
    student_id: int
    image_urls: list[str] = Field(min_length=1)


class SubmissionCreated(BaseModel):
    """上传接口的快速返回：只给 id 和状态，前端随后轮询"""
    id: int
    status: str

    model_config = {"from_attributes": True}


class SubmissionPublic(BaseModel):
    id: int
    assessment_id: int
    student_id: int
    status: str  # PROCESSING / GRADED / ERROR

    image_urls: list[str]
    extracted_text: str | None = None

    score: int | None = None
    max_score: int | None = None
    feedback: str | None = None
    graded_at: datetime | None = None

    # Teacher override
    original_score: int | None = None
    adjusted_by: int | None = None
    adjustment_reason: str | None = None
    adjusted_at: datetime | None = None

    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}
