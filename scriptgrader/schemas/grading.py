# scriptgrader/schemas/grading.py
"""Ephemeral grading result types. Never persisted as-is; see format_feedback_as_markdown."""
from typing import List, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

BreakdownStatus = Literal["correct", "partial", "incorrect", "unanswered"]
VALID_STATUSES = ("correct", "partial", "incorrect", "unanswered")


class Deduction(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    reason: str
    points_lost: float = Field(alias="pointsLost")


class QuestionBreakdown(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # free-form label: "1", "1a", "2b)ii"
    question_id: str = Field(alias="questionId")
    points: float = 0
    max_points: float = Field(default=0, alias="maxPoints")
    status: BreakdownStatus = "incorrect"
    feedback: str = ""
    deductions: List[Deduction] = Field(default_factory=list)

    @field_validator("question_id", mode="before")
    @classmethod
    def _stringify_question_id(cls, value):
        return str(value)

    @field_validator("deductions", mode="before")
    @classmethod
    def _none_to_empty(cls, value):
        return value or []

    @model_validator(mode="before")
    @classmethod
    def _infer_status(cls, data):
        # models sometimes invent statuses ("wrong", "half"); derive one from the points instead
        if isinstance(data, dict):
            status = str(data.get("status", "")).strip().lower()
            if status not in VALID_STATUSES:
                points = float(data.get("points") or 0)
                max_points = float(data.get("maxPoints", data.get("max_points")) or 0)
                if max_points and points >= max_points:
                    status = "correct"
                elif points > 0:
                    status = "partial"
                else:
                    status = "incorrect"
            data = {**data, "status": status}
        return data

    @model_validator(mode="after")
    def _clamp_points(self):
        if self.max_points < 0:
            self.max_points = 0
        self.points = min(max(0, self.points), self.max_points) if self.max_points else max(0, self.points)
        return self


class GradingResult(BaseModel):
    score: int
    max_score: int
    feedback: str
    breakdown: List[QuestionBreakdown] = Field(default_factory=list)
