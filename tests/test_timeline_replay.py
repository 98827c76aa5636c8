import logging
import unittest
from datetime import datetime

from helpers import comment, make_session, remote_issue, seed_project

logging.disable(logging.CRITICAL)


def _issue(**kwargs):
    from tracksync.models import Issue

    kwargs.setdefault("title", "Fix bug")
    kwargs.setdefault("state", "open")
    kwargs.setdefault("labels", [])
    kwargs.setdefault("templated_fields", {})
    return Issue(**kwargs)


class TimelineItemHandlerTests(unittest.TestCase):
    def test_comment_creates_item_and_edit_updates_it(self):
        from tracksync.models import IssueComment
        from tracksync.services.timeline import TimelineItemHandler

        handler = TimelineItemHandler()
        issue = _issue()

        item, ts = handler.handle(issue, comment("note:1", "first"))
        self.assertIsInstance(item, IssueComment)
        self.assertEqual(item.body, "first")
        self.assertEqual(item.created_by, "alice")
        self.assertEqual(ts, datetime(2025, 1, 1, 9, 30))

        edited = comment("note:1", "second", last_edited_at="2025-01-02T08:00:00Z")
        same, ts = handler.handle(issue, edited, existing_item=item)
        self.assertIs(same, item)
        self.assertEqual(item.body, "second")
        self.assertEqual(item.last_edited_at, datetime(2025, 1, 2, 8, 0))
        self.assertEqual(ts, datetime(2025, 1, 2, 8, 0))
        self.assertEqual(len(issue.timeline_items), 1)

    def test_label_events_update_issue_labels(self):
        from tracksync.services.timeline import TimelineItemHandler

        handler = TimelineItemHandler()
        issue = _issue(labels=["ui"])

        handler.handle(issue, {"id": "label:1", "kind": "label_added", "label": "bug",
                               "created_at": "2025-01-01T10:00:00Z"})
        handler.handle(issue, {"id": "label:2", "kind": "label_removed", "label": "ui",
                               "created_at": "2025-01-01T11:00:00Z"})

        self.assertEqual(issue.labels, ["bug"])
        self.assertEqual(
            [type(i).__name__ for i in issue.timeline_items], ["LabelAddedEvent", "LabelRemovedEvent"]
        )

    def test_state_change_records_previous_state(self):
        from tracksync.services.timeline import TimelineItemHandler

        issue = _issue()
        item, _ = TimelineItemHandler().handle(
            issue, {"id": "state:1", "kind": "state_changed", "state": "closed",
                    "created_at": "2025-01-01T10:00:00+02:00"}
        )
        self.assertEqual((item.old_state, item.new_state), ("open", "closed"))
        # offsets are normalized to naive UTC
        self.assertEqual(item.created_at, datetime(2025, 1, 1, 8, 0))

    def test_state_history_of_closed_issue_is_replayed_in_order(self):
        from tracksync.services.timeline import TimelineItemHandler

        handler = TimelineItemHandler()
        # snapshot taken from the remote's current state
        issue = _issue(state="closed")
        for n, state in enumerate(["closed", "open", "closed"], start=1):
            handler.handle(
                issue,
                {"id": f"state:{n}", "kind": "state_changed", "state": state,
                 "created_at": f"2025-01-0{n}T10:00:00Z"},
            )

        self.assertEqual(
            [(i.old_state, i.new_state) for i in issue.timeline_items],
            [("open", "closed"), ("closed", "open"), ("open", "closed")],
        )
        self.assertEqual(issue.state, "closed")

    def test_unknown_kind_has_no_representation(self):
        from tracksync.services.timeline import TimelineItemHandler

        issue = _issue()
        item, ts = TimelineItemHandler().handle(issue, {"id": "note:9", "kind": "system_note", "body": "x"})
        self.assertIsNone(item)
        self.assertIsNone(ts)
        self.assertEqual(list(issue.timeline_items), [])


class IssueCleanerTests(unittest.TestCase):
    def test_derives_title_state_labels_and_modification_time(self):
        from tracksync.models import IssueComment, StateChangedEvent, TitleChangedEvent
        from tracksync.services.timeline import IssueCleaner

        issue = _issue(labels=["b", "a", "b"], last_modified_at=datetime(2025, 1, 1))
        issue.timeline_items.append(
            TitleChangedEvent(created_at=datetime(2025, 1, 3), old_title="Fix", new_title="Fix crash")
        )
        issue.timeline_items.append(
            TitleChangedEvent(created_at=datetime(2025, 1, 2), old_title="Fix bug", new_title="Fix")
        )
        issue.timeline_items.append(
            StateChangedEvent(created_at=datetime(2025, 1, 2), old_state="open", new_state="closed")
        )
        issue.timeline_items.append(
            IssueComment(created_at=datetime(2025, 1, 4), last_modified_at=datetime(2025, 1, 5), body="hi")
        )

        IssueCleaner().clean_issue(issue)

        self.assertEqual(issue.title, "Fix crash")
        self.assertEqual(issue.state, "closed")
        self.assertEqual(issue.labels, ["a", "b"])
        self.assertEqual(issue.last_modified_at, datetime(2025, 1, 5))


class TimelineEventReplayTests(unittest.TestCase):
    def setUp(self):
        from tracksync.services.dereplicator import NullDereplicator
        from tracksync.services.sync_service import SyncService

        self.db = make_session()
        self.project = seed_project(self.db)
        self.service = SyncService(self.db, dereplicator=NullDereplicator())
        self.record, self.issue = self.service.ensure_issue(self.project, remote_issue(1))
        self.db.commit()

    def tearDown(self):
        self.db.close()

    def _infos(self):
        from tracksync.models import TimelineEventInfo

        return self.db.query(TimelineEventInfo).all()

    def test_event_is_applied_once(self):
        from tracksync.models import IssueComment

        event = comment("note:1", "hello")
        first = self.service.handle_timeline_event(self.record, event)
        second = self.service.handle_timeline_event(self.record, dict(event))
        self.db.commit()

        self.assertEqual(first, second)
        self.assertEqual(self.db.query(IssueComment).count(), 1)
        infos = self._infos()
        self.assertEqual(len(infos), 1)
        self.assertEqual(infos[0].remote_event_id, "note:1")
        self.assertEqual(infos[0].kind, "comment")

    def test_edited_event_updates_the_same_item(self):
        from tracksync.models import IssueComment

        self.service.handle_timeline_event(self.record, comment("note:1", "hello"))
        ts = self.service.handle_timeline_event(
            self.record, comment("note:1", "hello, edited", last_edited_at="2025-01-02T10:00:00Z")
        )
        self.db.commit()

        comments = self.db.query(IssueComment).all()
        self.assertEqual(len(comments), 1)
        self.assertEqual(comments[0].body, "hello, edited")
        self.assertEqual(ts, datetime(2025, 1, 2, 10, 0))
        self.assertEqual(self._infos()[0].last_modified_at, datetime(2025, 1, 2, 10, 0))

    def test_unrepresented_event_is_not_remembered(self):
        ts = self.service.handle_timeline_event(
            self.record, {"id": "note:2", "kind": "system_note", "body": "assigned"}
        )
        self.db.commit()

        self.assertIsNone(ts)
        self.assertEqual(self._infos(), [])


if __name__ == "__main__":
    unittest.main()
