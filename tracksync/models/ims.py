"""IMS (remote issue management system) models"""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from tracksync.models.base import Base, utcnow


class ImsInstance(Base):
    """Remote tracker instance configuration"""

    __tablename__ = "ims_instances"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, nullable=False, index=True)
    url = Column(String, nullable=False)
    access_token = Column(String, nullable=False)
    # Account the token must belong to. If unset, any authenticated account is accepted.
    read_username = Column(String, nullable=True)
    sync_enabled = Column(Boolean, default=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    projects = relationship("ImsProject", back_populates="ims_instance", order_by="ImsProject.id")

    def __repr__(self):
        return f"<ImsInstance(name='{self.name}', url='{self.url}')>"


class ImsProject(Base):
    """Remote project synced into a local trackable"""

    __tablename__ = "ims_projects"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, nullable=False, index=True)

    ims_instance_id = Column(Integer, ForeignKey("ims_instances.id"), nullable=False)
    remote_project_id = Column(String, nullable=False)  # GitLab project ID or path

    # Local side
    trackable_id = Column(Integer, ForeignKey("trackables.id"), nullable=False)
    issue_template_id = Column(Integer, ForeignKey("templates.id"), nullable=False)

    # Sync configuration
    sync_enabled = Column(Boolean, default=True)
    sync_interval_minutes = Column(Integer, default=10)
    dereplicator = Column(String, nullable=True)  # strategy name; falls back to settings

    # Resume token for incremental issue discovery (max remote updated_at seen).
    last_issue_updated_at = Column(DateTime, nullable=True)
    last_sync_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    ims_instance = relationship("ImsInstance", back_populates="projects")
    trackable = relationship("Trackable")
    issue_template = relationship("Template")

    def __repr__(self):
        return f"<ImsProject(name='{self.name}', remote_project_id='{self.remote_project_id}')>"
