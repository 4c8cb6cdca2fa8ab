# scriptgrader/schemas/score.py
from pydantic import BaseModel, Field


class ScoreUpdate(BaseModel):
    """教师手动调分"""
    score: int
    teacher_id: int
    reason: str | None = Field(default=None, max_length=2000)
