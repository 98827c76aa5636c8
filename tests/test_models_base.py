import unittest

from sqlalchemy import create_engine, inspect
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from helpers import seed_project


class InitDbTests(unittest.TestCase):
    def setUp(self):
        from tracksync.models.base import init_db

        self.engine = create_engine(
            "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
        )
        init_db(self.engine)
        self.db = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)()

    def tearDown(self):
        self.db.close()

    def test_sync_tables_rely_on_declared_unique_constraints(self):
        inspector = inspect(self.engine)
        for table in ("remote_issue_records", "timeline_event_cache"):
            unique_indexes = [ix["name"] for ix in inspector.get_indexes(table) if ix["unique"]]
            self.assertEqual(unique_indexes, [], table)
            self.assertEqual(len(inspector.get_unique_constraints(table)), 1, table)

    def test_duplicate_remote_issue_record_is_rejected(self):
        from tracksync.models import Issue, RemoteIssueRecord

        project = seed_project(self.db)
        issue = Issue(
            trackable=project.trackable, template=project.issue_template, title="x", templated_fields={}
        )
        self.db.add(issue)
        self.db.commit()
        for _ in range(2):
            self.db.add(
                RemoteIssueRecord(ims_project_id=project.id, remote_issue_id="1001", remote_iid=1, issue=issue)
            )

        with self.assertRaises(IntegrityError):
            self.db.commit()


if __name__ == "__main__":
    unittest.main()
