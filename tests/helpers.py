"""Shared fixtures: in-memory database and a fake GitLab client"""

import json
from types import SimpleNamespace

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from tracksync.errors import TransientSyncError

NULLABLE_STRING = json.dumps({"type": ["string", "null"]})


def make_session():
    from tracksync.models.base import init_db

    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    init_db(engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)()


def seed_project(db, name="proj", instance=None, field_specifications=None, read_username=None):
    from tracksync.models import ImsInstance, ImsProject, Template, Trackable

    if field_specifications is None:
        field_specifications = {"severity": NULLABLE_STRING}
    if instance is None:
        instance = ImsInstance(
            name=f"gitlab-{name}",
            url="https://gitlab.example",
            access_token="token",
            read_username=read_username,
        )
        db.add(instance)
    template = Template(name=f"{name}-issues", field_specifications=field_specifications)
    trackable = Trackable(name=f"{name}-trackable")
    project = ImsProject(
        name=name,
        ims_instance=instance,
        remote_project_id=f"group/{name}",
        trackable=trackable,
        issue_template=template,
    )
    db.add_all([template, trackable, project])
    db.commit()
    return project


def remote_issue(iid, title="Fix bug", updated_at="2025-01-01T10:00:00Z", **extra):
    data = dict(
        id=1000 + iid,
        iid=iid,
        title=title,
        description="",
        state="opened",
        labels=[],
        created_at="2025-01-01T09:00:00Z",
        updated_at=updated_at,
    )
    data.update(extra)
    return SimpleNamespace(**data)


def comment(event_id, body="hello", created_at="2025-01-01T09:30:00Z", last_edited_at=None):
    return {
        "id": event_id,
        "kind": "comment",
        "created_at": created_at,
        "updated_at": last_edited_at or created_at,
        "last_edited_at": last_edited_at,
        "author": "alice",
        "body": body,
    }


class FakeGitLab:
    def __init__(self, issues=None, timelines=None, username="sync-bot"):
        self.issues = list(issues or [])
        self.timelines = dict(timelines or {})
        self.username = username
        self.issue_calls = []
        self.timeline_calls = []
        self.fail_issues = False
        self.fail_timelines = set()

    def current_username(self):
        return self.username

    def get_issues(self, project_id, updated_after=None):
        self.issue_calls.append((project_id, updated_after))
        if self.fail_issues:
            raise TransientSyncError("listing failed")
        return list(self.issues)

    def get_issue_timeline(self, project_id, issue_iid):
        self.timeline_calls.append((project_id, issue_iid))
        if issue_iid in self.fail_timelines:
            raise TransientSyncError("timeline failed")
        return [dict(e) for e in self.timelines.get(issue_iid, [])]
