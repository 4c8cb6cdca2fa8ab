from scriptgrader.models.assessment import Assessment, AssessmentStatus
from scriptgrader.models.submission import Submission, SubmissionStatus
from scriptgrader.workers import worker_main


def _submission(db_session, assessment, student, status):
    sub = Submission(
        assessment_id=assessment.id,
        student_id=student.id,
        image_urls=["/uploads/a.jpg"],
        status=status,
    )
    db_session.add(sub)
    db_session.commit()
    db_session.refresh(sub)
    return sub


class TestRequeueProcessing:
    def test_requeues_every_processing_row_once(
        self, db_session, test_assessment, test_student, test_teacher, monkeypatch
    ):
        second_assessment = Assessment(
            teacher_id=test_teacher.id,
            title="Second Quiz",
            mark_scheme_text="Q1: 1",
            total_marks=5,
            status=AssessmentStatus.ACTIVE,
        )
        third_assessment = Assessment(
            teacher_id=test_teacher.id,
            title="Third Quiz",
            mark_scheme_text="Q1: 1",
            total_marks=5,
            status=AssessmentStatus.ACTIVE,
        )
        db_session.add_all([second_assessment, third_assessment])
        db_session.commit()

        first = _submission(db_session, test_assessment, test_student, SubmissionStatus.PROCESSING)
        second = _submission(db_session, second_assessment, test_student, SubmissionStatus.PROCESSING)
        _submission(db_session, third_assessment, test_student, SubmissionStatus.GRADED)
        first_id, second_id = first.id, second.id

        enqueued = []

        def enqueue_and_finish(submission_id):
            # another worker finishes the row as soon as it is queued
            enqueued.append(submission_id)
            row = db_session.get(Submission, submission_id)
            row.status = SubmissionStatus.GRADED
            db_session.commit()

        monkeypatch.setattr(worker_main, "SessionLocal", lambda: db_session)
        monkeypatch.setattr(worker_main, "enqueue_grading_task", enqueue_and_finish)

        count = worker_main.requeue_processing_submissions()

        assert count == 2
        assert enqueued == [first_id, second_id]

    def test_nothing_to_requeue(self, db_session, monkeypatch):
        enqueued = []
        monkeypatch.setattr(worker_main, "SessionLocal", lambda: db_session)
        monkeypatch.setattr(worker_main, "enqueue_grading_task", enqueued.append)

        assert worker_main.requeue_processing_submissions() == 0
        assert enqueued == []
