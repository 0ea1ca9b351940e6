"""
IJobScheduler on top of the Application's JobQueue (APScheduler).
"""

from datetime import datetime
from typing import Optional

from telegram.ext import CallbackContext, JobQueue

from utils.logger import get_logger

from ..interfaces import IJobScheduler, JobCallback

logger = get_logger(__name__)


class TelegramJobScheduler(IJobScheduler):

    def __init__(self, job_queue: Optional[JobQueue]):
        if job_queue is None:
            logger.warning("JobQueue is not available; install python-telegram-bot[job-queue] for timers")
        self._job_queue = job_queue

    def schedule_once(
        self,
        name: str,
        callback: JobCallback,
        when_dt: datetime,
        data: Optional[dict] = None,
    ) -> None:
        if self._job_queue is None:
            raise RuntimeError("job queue is not available")
        self.cancel_job(name)

        async def _fire(context: CallbackContext) -> None:
            try:
                await callback(context.job.data or {})
            except Exception as e:
                logger.exception(f"Scheduled job {name} failed: {e}")

        self._job_queue.run_once(_fire, when=when_dt, name=name, data=dict(data or {}))
        logger.debug(f"Scheduled job {name} at {when_dt.isoformat()}")

    def cancel_job(self, name: str) -> None:
        if self._job_queue is None:
            return
        for job in self._job_queue.get_jobs_by_name(name):
            job.schedule_removal()
