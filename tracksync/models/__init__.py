"""Database models"""

from tracksync.models.base import Base
from tracksync.models.ims import ImsInstance, ImsProject
from tracksync.models.issue import (
    Issue,
    IssueComment,
    LabelAddedEvent,
    LabelRemovedEvent,
    Relation,
    StateChangedEvent,
    TimelineItem,
    TitleChangedEvent,
    Trackable,
)
from tracksync.models.sync_log import SyncLog, SyncNotification
from tracksync.models.sync_state import (
    CachedTimelineEvent,
    RemoteIssueRecord,
    TimelineEventCacheEntry,
    TimelineEventInfo,
)
from tracksync.models.template import Template, TemplateKind

__all__ = [
    "Base",
    "Template",
    "TemplateKind",
    "Trackable",
    "Issue",
    "Relation",
    "TimelineItem",
    "IssueComment",
    "TitleChangedEvent",
    "StateChangedEvent",
    "LabelAddedEvent",
    "LabelRemovedEvent",
    "ImsInstance",
    "ImsProject",
    "RemoteIssueRecord",
    "TimelineEventCacheEntry",
    "CachedTimelineEvent",
    "TimelineEventInfo",
    "SyncLog",
    "SyncNotification",
]
