"""Sync log and notification models"""
from sqlalchemy import Column, Integer, ForeignKey, DateTime, String, Text, Enum
from sqlalchemy.orm import relationship
import enum
from tracksync.models.base import Base, utcnow


class SyncStatus(str, enum.Enum):
    """Sync status enumeration"""
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"
    SKIPPED = "skipped"


class SyncLog(Base):
    """Log of sync passes"""

    __tablename__ = "sync_logs"

    id = Column(Integer, primary_key=True, index=True)

    ims_project_id = Column(Integer, ForeignKey("ims_projects.id"), nullable=False)

    status = Column(Enum(SyncStatus), nullable=False)
    message = Column(Text, nullable=True)
    details = Column(Text, nullable=True)  # JSON stats

    created_at = Column(DateTime, default=utcnow, index=True)

    ims_project = relationship("ImsProject")

    def __repr__(self):
        return f"<SyncLog(status={self.status})>"


class SyncNotification(Base):
    """Condition forwarded to operators (one row per occurrence)"""

    __tablename__ = "sync_notifications"

    id = Column(Integer, primary_key=True, index=True)
    reason = Column(String, nullable=False, index=True)  # e.g. "SYNC_GITLAB_USER_INVALID_IMS"
    message = Column(Text, nullable=True)

    ims_instance_id = Column(Integer, ForeignKey("ims_instances.id"), nullable=True)
    ims_project_id = Column(Integer, ForeignKey("ims_projects.id"), nullable=True)
    remote_issue_id = Column(String, nullable=True)

    created_at = Column(DateTime, default=utcnow, index=True)

    def __repr__(self):
        return f"<SyncNotification(reason={self.reason})>"
