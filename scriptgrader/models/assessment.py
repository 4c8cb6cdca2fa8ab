# scriptgrader/models/assessment.py
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey
from sqlalchemy.sql import func
from scriptgrader.db.base import Base


class AssessmentStatus:
    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    CLOSED = "CLOSED"


class Assessment(Base):
    __tablename__ = "assessments"

    id = Column(Integer, primary_key=True, index=True)
    teacher_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    title = Column(String(255), nullable=False)
    # 建卷时 OCR 一次得到的评分标准文本，评分时只读
    mark_scheme_text = Column(Text, nullable=True)
    total_marks = Column(Integer, nullable=False, default=100)

    status = Column(String(20), nullable=False, default=AssessmentStatus.ACTIVE)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )
