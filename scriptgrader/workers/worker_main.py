# scriptgrader/workers/worker_main.py

import argparse
import logging

from rq import Queue, SimpleWorker

from scriptgrader.core.config import settings
from scriptgrader.core.logging_config import setup_logging
from scriptgrader.db.session import SessionLocal
from scriptgrader.services.submission_service import list_processing_submission_ids
from scriptgrader.workers.queue import enqueue_grading_task, get_redis_connection

logger = logging.getLogger(__name__)

QUEUE_NAMES = [settings.GRADING_QUEUE_NAME]


def requeue_processing_submissions() -> int:
    """
    重新入队还停在 PROCESSING 的提交（例如 worker 崩溃后）。
    流水线对同一输入可以安全重跑。
    """
    db = SessionLocal()
    try:
        submission_ids = list_processing_submission_ids(db)
    finally:
        db.close()

    for submission_id in submission_ids:
        enqueue_grading_task(submission_id)
    logger.info(f"Re-queued {len(submission_ids)} submission(s) still in PROCESSING")
    return len(submission_ids)


def main():
    parser = argparse.ArgumentParser(description="Grading worker")
    parser.add_argument(
        "--requeue-processing",
        action="store_true",
        help="re-queue submissions left in PROCESSING before starting the worker",
    )
    args = parser.parse_args()

    setup_logging(settings.LOG_LEVEL)

    if args.requeue_processing:
        requeue_processing_submissions()

    redis_conn = get_redis_connection()

    queues = [Queue(name, connection=redis_conn) for name in QUEUE_NAMES]

    worker = SimpleWorker(queues, connection=redis_conn)

    worker.work()


if __name__ == "__main__":
    main()
