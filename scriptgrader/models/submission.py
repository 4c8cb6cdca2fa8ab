# scriptgrader/models/submission.py
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    DateTime,
    ForeignKey,
    JSON,
    UniqueConstraint,
)
from sqlalchemy.sql import func
from scriptgrader.db.base import Base


class SubmissionStatus:
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    GRADED = "GRADED"
    ERROR = "ERROR"

    TERMINAL = (GRADED, ERROR)


class Submission(Base):
    __tablename__ = "submissions"
    __table_args__ = (
        UniqueConstraint("student_id", "assessment_id", name="uq_submission_student_assessment"),
        # 删除后的 id 不复用，旧流水线按 id 找不到行就会停下
        {"sqlite_autoincrement": True},
    )

    id = Column(Integer, primary_key=True, index=True)

    assessment_id = Column(Integer, ForeignKey("assessments.id"), nullable=False, index=True)
    student_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # 页面顺序确定后原地重排，数量不变
    image_urls = Column(JSON, nullable=False, default=list)
    extracted_text = Column(Text, nullable=True)

    # 状态：PROCESSING / GRADED / ERROR
    status = Column(String(20), nullable=False, default=SubmissionStatus.PENDING, index=True)

    # AI 评分
    score = Column(Integer, nullable=True)
    max_score = Column(Integer, nullable=True)
    feedback = Column(Text, nullable=True)
    graded_at = Column(DateTime(timezone=True), nullable=True)

    # 老师手动调分（评分流水线不写这些字段）
    original_score = Column(Integer, nullable=True)
    adjusted_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    adjustment_reason = Column(Text, nullable=True)
    adjusted_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )
