"""Issue dereplication: recognizing already-known issues among synced ones"""

import re
import uuid
from dataclasses import dataclass, field
from typing import Any, List, Optional, Protocol

from tracksync.models import Issue, TimelineItem, TitleChangedEvent
from tracksync.models.base import utcnow


@dataclass
class DereplicatorIssueResult:
    """Issue to use, and timeline items created while dereplicating it"""

    issue: Issue
    created_timeline_items: List[TimelineItem] = field(default_factory=list)


@dataclass
class DereplicatorTimelineItemResult:
    timeline_items: List[TimelineItem] = field(default_factory=list)


class IssueDereplicator(Protocol):
    def validate_issue(self, ims_project: Any, issue: Issue) -> DereplicatorIssueResult:
        ...

    def validate_timeline_item(self, issue: Issue, timeline_items: List[TimelineItem]) -> DereplicatorTimelineItemResult:
        ...


class InvasiveDereplicator:
    """
    Dereplicator that stamps a UUID at the end of issue titles.

    Two issues whose current titles carry the same stamp are the same logical issue.
    The current title is derived from the title change history, so the stamp of an
    issue never changes once assigned.
    """

    _TITLE_RE = re.compile(
        r"\[([0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12})\]$"
    )

    @staticmethod
    def current_title(issue: Issue) -> str:
        title = issue.title
        changes = [item for item in issue.timeline_items if isinstance(item, TitleChangedEvent)]
        for change in sorted(changes, key=lambda item: item.created_at):
            title = change.new_title
        return title

    @classmethod
    def get_id(cls, issue: Issue) -> Optional[str]:
        m = cls._TITLE_RE.search(cls.current_title(issue) or "")
        return m.group(1) if m else None

    def validate_issue(self, ims_project: Any, issue: Issue) -> DereplicatorIssueResult:
        issue_id = self.get_id(issue)
        if issue_id is not None:
            for other in ims_project.trackable.issues:
                if other is issue:
                    continue
                if self.get_id(other) == issue_id:
                    return DereplicatorIssueResult(other, [])
            return DereplicatorIssueResult(issue, [])

        title = self.current_title(issue)
        now = utcnow()
        title_change = TitleChangedEvent(
            created_at=now,
            last_modified_at=now,
            old_title=title,
            new_title=f"{title} [{uuid.uuid4()}]",
        )
        issue.timeline_items.append(title_change)
        return DereplicatorIssueResult(issue, [title_change])

    def validate_timeline_item(self, issue: Issue, timeline_items: List[TimelineItem]) -> DereplicatorTimelineItemResult:
        return DereplicatorTimelineItemResult(list(timeline_items))


class NullDereplicator:
    """Dereplicator that treats every issue as new and never touches it"""

    def validate_issue(self, ims_project: Any, issue: Issue) -> DereplicatorIssueResult:
        return DereplicatorIssueResult(issue, [])

    def validate_timeline_item(self, issue: Issue, timeline_items: List[TimelineItem]) -> DereplicatorTimelineItemResult:
        return DereplicatorTimelineItemResult(list(timeline_items))


_DEREPLICATORS = {
    "invasive": InvasiveDereplicator,
    "none": NullDereplicator,
}


def get_dereplicator(name: Optional[str]) -> IssueDereplicator:
    """Dereplication strategy by configuration name"""
    key = (name or "invasive").strip().lower()
    try:
        return _DEREPLICATORS[key]()
    except KeyError:
        raise ValueError(f"Unknown dereplicator '{name}'") from None
