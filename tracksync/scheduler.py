"""Background scheduler for periodic sync"""

import logging
from datetime import datetime

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from tracksync.models import ImsProject
from tracksync.models.base import SessionLocal
from tracksync.services.sync_service import SyncService

logger = logging.getLogger(__name__)


class SyncScheduler:
    """Scheduler for periodic issue synchronization"""

    def __init__(self, session_factory=SessionLocal, scheduler=None):
        self.session_factory = session_factory
        self.scheduler = scheduler or BackgroundScheduler()
        # Best-effort in-memory index of jobs we created.
        # APScheduler itself is the source of truth (see get_job()).
        self.jobs = {}

    @staticmethod
    def job_id(project_id: int) -> str:
        return f"sync_project_{project_id}"

    def start(self):
        """Start the scheduler"""
        self.scheduler.start()
        logger.info("Sync scheduler started")

        # Schedule all enabled IMS projects
        self.schedule_all_projects()

    def stop(self):
        """Stop the scheduler"""
        self.scheduler.shutdown()
        logger.info("Sync scheduler stopped")

    def schedule_all_projects(self):
        """Schedule sync jobs for all enabled IMS projects"""
        db = self.session_factory()
        try:
            enabled = db.query(ImsProject).filter(ImsProject.sync_enabled == True).all()  # noqa: E712
            enabled_ids = {p.id for p in enabled}

            # If this is ever re-run, reconcile existing jobs too.
            for job_id in list(self.jobs.keys()):
                try:
                    project_id = int(job_id.split("sync_project_", 1)[1])
                except (IndexError, ValueError):
                    continue
                if project_id not in enabled_ids:
                    self.unschedule_project(project_id)

            for project in enabled:
                self.schedule_project(project.id, project.sync_interval_minutes)
        finally:
            db.close()

    def schedule_project(self, project_id: int, interval_minutes: int):
        """Schedule sync job for a specific IMS project"""
        job_id = self.job_id(project_id)

        # Remove existing job if it exists (don't rely solely on self.jobs)
        if self.scheduler.get_job(job_id) is not None:
            self.scheduler.remove_job(job_id)

        # One running pass per project; missed runs collapse into one.
        self.scheduler.add_job(
            func=self._sync_project_job,
            trigger=IntervalTrigger(minutes=interval_minutes),
            id=job_id,
            args=[project_id],
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.jobs[job_id] = True
        logger.info(f"Scheduled sync for IMS project {project_id} every {interval_minutes} minutes")

    def unschedule_project(self, project_id: int):
        """Remove sync job for an IMS project"""
        job_id = self.job_id(project_id)
        if self.scheduler.get_job(job_id) is not None:
            self.scheduler.remove_job(job_id)
        self.jobs.pop(job_id, None)
        logger.info(f"Unscheduled sync for IMS project {project_id}")

    def trigger_now(self, project_id: int):
        """Run the project's job as soon as possible (manual trigger)"""
        job = self.scheduler.get_job(self.job_id(project_id))
        if job is None:
            raise ValueError(f"No sync job scheduled for IMS project {project_id}")
        job.modify(next_run_time=datetime.now())
        logger.info(f"Triggered sync for IMS project {project_id}")

    def _sync_project_job(self, project_id: int):
        """Job function to sync an IMS project"""
        db = self.session_factory()
        try:
            logger.info(f"Running scheduled sync for IMS project {project_id}")
            result = SyncService(db).sync_project_by_id(project_id)
            logger.info(f"Scheduled sync completed for IMS project {project_id}: {result}")
        except Exception as e:
            logger.error(f"Scheduled sync failed for IMS project {project_id}: {e}")
        finally:
            db.close()


# Global scheduler instance
scheduler = SyncScheduler()
