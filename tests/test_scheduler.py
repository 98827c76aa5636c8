import logging
import unittest
from unittest.mock import MagicMock, Mock, patch

from helpers import make_session, seed_project

logging.disable(logging.CRITICAL)


class SyncSchedulerTests(unittest.TestCase):
    def _scheduler(self, session_factory=None):
        from tracksync.scheduler import SyncScheduler

        backend = Mock()
        backend.get_job = Mock(return_value=None)
        return SyncScheduler(session_factory=session_factory or Mock(), scheduler=backend), backend

    def test_schedule_project_registers_single_instance_interval_job(self):
        sched, backend = self._scheduler()

        sched.schedule_project(3, 15)

        _, kwargs = backend.add_job.call_args
        self.assertEqual(kwargs["id"], "sync_project_3")
        self.assertEqual(kwargs["args"], [3])
        self.assertEqual(kwargs["max_instances"], 1)
        self.assertTrue(kwargs["coalesce"])
        self.assertEqual(kwargs["trigger"].interval.total_seconds(), 15 * 60)
        self.assertIn("sync_project_3", sched.jobs)

    def test_reschedule_replaces_existing_job(self):
        sched, backend = self._scheduler()
        backend.get_job.return_value = object()

        sched.schedule_project(3, 5)

        backend.remove_job.assert_called_once_with("sync_project_3")

    def test_schedule_all_projects_uses_enabled_projects(self):
        db = make_session()
        enabled = seed_project(db, "a")
        disabled = seed_project(db, "b")
        disabled.sync_enabled = False
        enabled.sync_interval_minutes = 7
        db.commit()
        enabled_id = enabled.id

        sched, backend = self._scheduler(session_factory=lambda: db)
        sched.jobs["sync_project_99"] = True
        backend.get_job.side_effect = lambda job_id: object() if job_id == "sync_project_99" else None

        sched.schedule_all_projects()

        job_ids = [c.kwargs["id"] for c in backend.add_job.call_args_list]
        self.assertEqual(job_ids, [f"sync_project_{enabled_id}"])
        backend.remove_job.assert_called_once_with("sync_project_99")
        self.assertNotIn("sync_project_99", sched.jobs)

    def test_trigger_now_requires_a_scheduled_job(self):
        sched, backend = self._scheduler()
        with self.assertRaises(ValueError):
            sched.trigger_now(1)

        job = Mock()
        backend.get_job.return_value = job
        sched.trigger_now(1)
        self.assertIn("next_run_time", job.modify.call_args.kwargs)

    def test_job_runs_project_sync_and_closes_session(self):
        db = MagicMock()
        sched, _ = self._scheduler(session_factory=lambda: db)

        with patch("tracksync.scheduler.SyncService") as service_cls:
            sched._sync_project_job(4)

        service_cls.assert_called_once_with(db)
        service_cls.return_value.sync_project_by_id.assert_called_once_with(4)
        db.close.assert_called_once_with()

    def test_job_failure_is_logged_not_raised(self):
        db = MagicMock()
        sched, _ = self._scheduler(session_factory=lambda: db)

        with patch("tracksync.scheduler.SyncService") as service_cls:
            service_cls.return_value.sync_project_by_id.side_effect = RuntimeError("boom")
            sched._sync_project_job(4)

        db.close.assert_called_once_with()


if __name__ == "__main__":
    unittest.main()
