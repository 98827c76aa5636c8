"""Sync side-store models"""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, JSON, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from tracksync.models.base import Base, utcnow


class RemoteIssueRecord(Base):
    """Cache entry for a remote issue and its dirty state"""

    __tablename__ = "remote_issue_records"
    __table_args__ = (
        UniqueConstraint("ims_project_id", "remote_issue_id", name="uq_remote_issue_records_project_remote"),
    )

    id = Column(Integer, primary_key=True, index=True)
    ims_project_id = Column(Integer, ForeignKey("ims_projects.id"), nullable=False, index=True)

    remote_issue_id = Column(String, nullable=False)  # Issue ID on the remote tracker
    remote_iid = Column(Integer, nullable=False)  # Issue IID (per-project number)
    issue_id = Column(Integer, ForeignKey("issues.id"), nullable=False)

    # True while remote timeline changes remain to be pulled and replayed.
    dirty = Column(Boolean, nullable=False, default=True, index=True)
    remote_updated_at = Column(DateTime, nullable=True)
    last_synced_at = Column(DateTime, nullable=True)

    ims_project = relationship("ImsProject")
    issue = relationship("Issue")

    def __repr__(self):
        return f"<RemoteIssueRecord(remote_iid={self.remote_iid}, dirty={self.dirty})>"


class TimelineEventCacheEntry(Base):
    """Replay attempt bookkeeping for one remote issue"""

    __tablename__ = "timeline_event_cache"
    __table_args__ = (
        UniqueConstraint("ims_project_id", "remote_issue_id", name="uq_timeline_event_cache_project_remote"),
    )

    id = Column(Integer, primary_key=True, index=True)
    ims_project_id = Column(Integer, ForeignKey("ims_projects.id"), nullable=False, index=True)
    remote_issue_id = Column(String, nullable=False)

    attempts = Column(Integer, nullable=False, default=0)
    last_error = Column(Text, nullable=True)
    last_attempt_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)

    def __repr__(self):
        return f"<TimelineEventCacheEntry(remote_issue_id={self.remote_issue_id}, attempts={self.attempts})>"


class CachedTimelineEvent(Base):
    """Raw remote timeline event, fetched but not necessarily replayed"""

    __tablename__ = "cached_timeline_events"
    __table_args__ = (
        UniqueConstraint(
            "ims_project_id", "remote_issue_id", "remote_event_id", name="uq_cached_timeline_events_event"
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    ims_project_id = Column(Integer, ForeignKey("ims_projects.id"), nullable=False, index=True)
    remote_issue_id = Column(String, nullable=False, index=True)
    remote_event_id = Column(String, nullable=False)

    kind = Column(String, nullable=False)
    created_at = Column(DateTime, nullable=True, index=True)
    payload = Column(JSON, nullable=False)
    fetched_at = Column(DateTime, default=utcnow)

    def __repr__(self):
        return f"<CachedTimelineEvent(remote_event_id={self.remote_event_id}, kind={self.kind})>"


class TimelineEventInfo(Base):
    """Remote event that has been replayed onto an internal timeline item"""

    __tablename__ = "timeline_event_infos"
    __table_args__ = (
        UniqueConstraint("ims_project_id", "remote_event_id", name="uq_timeline_event_infos_event"),
    )

    id = Column(Integer, primary_key=True, index=True)
    ims_project_id = Column(Integer, ForeignKey("ims_projects.id"), nullable=False, index=True)
    remote_event_id = Column(String, nullable=False)
    timeline_item_id = Column(Integer, ForeignKey("timeline_items.id"), nullable=True)
    last_modified_at = Column(DateTime, nullable=False)
    kind = Column(String, nullable=False)

    def __repr__(self):
        return f"<TimelineEventInfo(remote_event_id={self.remote_event_id}, kind={self.kind})>"
