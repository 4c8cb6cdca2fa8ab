"""Shared fixtures: in-memory database, users, an assessment, local storage."""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from scriptgrader.db.base import Base
from scriptgrader import models  # noqa
from scriptgrader.models.assessment import Assessment, AssessmentStatus
from scriptgrader.models.user import User
from scriptgrader.services.execution import SequentialStrategy
from scriptgrader.services.scoring_service import GradingPipeline
from scriptgrader.services.storage import LocalImageStorage
from tests.fakes import MARK_SCHEME

# Test database (in-memory SQLite)
TEST_DATABASE_URL = "sqlite:///:memory:"


@pytest.fixture(scope="function")
def db_session():
    """Create a test database session."""
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def test_teacher(db_session):
    teacher = User(email="teacher@test.com", name="Test Teacher", role="teacher")
    db_session.add(teacher)
    db_session.commit()
    db_session.refresh(teacher)
    return teacher


@pytest.fixture
def test_student(db_session):
    student = User(email="student@test.com", name="Test Student", role="student")
    db_session.add(student)
    db_session.commit()
    db_session.refresh(student)
    return student


@pytest.fixture
def test_assessment(db_session, test_teacher):
    assessment = Assessment(
        teacher_id=test_teacher.id,
        title="Arithmetic Quiz",
        mark_scheme_text=MARK_SCHEME,
        total_marks=10,
        status=AssessmentStatus.ACTIVE,
    )
    db_session.add(assessment)
    db_session.commit()
    db_session.refresh(assessment)
    return assessment


@pytest.fixture
def storage(tmp_path):
    return LocalImageStorage(tmp_path / "uploads", "/uploads")


@pytest.fixture
def no_sleep():
    """Records retry delays instead of sleeping."""
    delays = []
    return delays, delays.append


@pytest.fixture
def make_pipeline(storage, no_sleep):
    _, sleep = no_sleep

    def _make(client):
        return GradingPipeline(
            client,
            storage,
            detection_strategy=SequentialStrategy(),
            extraction_strategy=SequentialStrategy(),
            normalize_orientation=False,
            sleep=sleep,
        )

    return _make
