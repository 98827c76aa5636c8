"""Replay of remote timeline events onto the internal issue timeline"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

from tracksync.models import (
    Issue,
    IssueComment,
    LabelAddedEvent,
    LabelRemovedEvent,
    StateChangedEvent,
    TimelineItem,
    TitleChangedEvent,
)

logger = logging.getLogger(__name__)


def parse_remote_datetime(value: Any) -> Optional[datetime]:
    """Parse GitLab ISO8601 timestamps into UTC tz-naive datetimes."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


class TimelineItemHandler:
    """Turns one normalized remote event into an internal timeline item"""

    def handle(
        self, issue: Issue, event: Dict[str, Any], existing_item: Optional[TimelineItem] = None
    ) -> Tuple[Optional[TimelineItem], Optional[datetime]]:
        """
        Apply ``event`` to ``issue``.

        ``existing_item`` is the item a previous replay of the same event produced, if any.
        Returns the timeline item and the time of the event, or ``(None, None)`` for events
        without an internal representation.
        """
        handler = getattr(self, f"_handle_{event.get('kind')}", None)
        if handler is None:
            logger.debug(f"No timeline representation for event {event.get('id')} ({event.get('kind')})")
            return None, None
        return handler(issue, event, existing_item)

    def _handle_comment(self, issue, event, existing_item):
        created_at = parse_remote_datetime(event.get("created_at"))
        edited_at = parse_remote_datetime(event.get("last_edited_at"))
        modified_at = edited_at or created_at
        if isinstance(existing_item, IssueComment):
            existing_item.body = event.get("body") or ""
            existing_item.last_edited_at = edited_at
            existing_item.last_modified_at = modified_at
            return existing_item, modified_at
        comment = IssueComment(
            created_at=created_at,
            last_modified_at=modified_at,
            created_by=event.get("author"),
            body=event.get("body") or "",
            last_edited_at=edited_at,
        )
        issue.timeline_items.append(comment)
        return comment, modified_at

    def _handle_title_changed(self, issue, event, existing_item):
        created_at = parse_remote_datetime(event.get("created_at"))
        if existing_item is not None:
            return existing_item, created_at
        item = TitleChangedEvent(
            created_at=created_at,
            last_modified_at=created_at,
            created_by=event.get("author"),
            old_title=event.get("old_title"),
            new_title=event.get("new_title"),
        )
        issue.timeline_items.append(item)
        return item, created_at

    def _handle_state_changed(self, issue, event, existing_item):
        created_at = parse_remote_datetime(event.get("created_at"))
        if existing_item is not None:
            return existing_item, created_at
        item = StateChangedEvent(
            created_at=created_at,
            last_modified_at=created_at,
            created_by=event.get("author"),
            old_state=self._state_before(issue, created_at),
            new_state=event.get("state"),
        )
        issue.timeline_items.append(item)
        issue.state = item.new_state
        return item, created_at

    @staticmethod
    def _state_before(issue, created_at):
        """State of ``issue`` right before ``created_at``, from its state change history"""
        previous = [
            item
            for item in issue.timeline_items
            if isinstance(item, StateChangedEvent)
            and item.created_at is not None
            and (created_at is None or item.created_at <= created_at)
        ]
        if not previous:
            # Remote issues are always created open.
            return "open"
        return max(previous, key=lambda item: item.created_at).new_state

    def _handle_label_added(self, issue, event, existing_item):
        return self._label_event(LabelAddedEvent, issue, event, existing_item)

    def _handle_label_removed(self, issue, event, existing_item):
        return self._label_event(LabelRemovedEvent, issue, event, existing_item)

    def _label_event(self, cls, issue, event, existing_item):
        created_at = parse_remote_datetime(event.get("created_at"))
        if existing_item is not None:
            return existing_item, created_at
        label = event.get("label")
        labels = [lbl for lbl in (issue.labels or []) if lbl != label]
        if cls is LabelAddedEvent:
            labels.append(label)
        issue.labels = labels
        item = cls(
            created_at=created_at,
            last_modified_at=created_at,
            created_by=event.get("author"),
            label=label,
        )
        issue.timeline_items.append(item)
        return item, created_at


class IssueCleaner:
    """Recomputes the derived state of an issue from its timeline after replay"""

    def clean_issue(self, issue: Issue):
        items = sorted(
            issue.timeline_items,
            key=lambda item: item.created_at or datetime.min,
        )
        for item in items:
            if isinstance(item, TitleChangedEvent) and item.new_title:
                issue.title = item.new_title
            elif isinstance(item, StateChangedEvent) and item.new_state:
                issue.state = item.new_state

        issue.labels = sorted(set(issue.labels or []))

        stamps = [item.last_modified_at or item.created_at for item in items]
        stamps = [s for s in stamps if s is not None]
        if issue.last_modified_at is not None:
            stamps.append(issue.last_modified_at)
        if stamps:
            issue.last_modified_at = max(stamps)
