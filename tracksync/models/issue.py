"""Issue, timeline and relation models"""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, JSON, String, Text
from sqlalchemy.ext.mutable import MutableDict
from sqlalchemy.orm import relationship, synonym

from tracksync.models.base import Base, utcnow


class Trackable(Base):
    """Container of issues (a project in the internal model)"""

    __tablename__ = "trackables"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, nullable=False, index=True)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow)

    issues = relationship("Issue", back_populates="trackable", order_by="Issue.id")

    def __repr__(self):
        return f"<Trackable(name='{self.name}')>"


class Issue(Base):
    """Issue validated against exactly one issue template"""

    __tablename__ = "issues"

    id = Column(Integer, primary_key=True, index=True)
    trackable_id = Column(Integer, ForeignKey("trackables.id"), nullable=False, index=True)
    template_id = Column(Integer, ForeignKey("templates.id"), nullable=False)

    title = Column(String, nullable=False)
    body = Column(Text, nullable=False, default="")
    state = Column(String, nullable=False, default="open")
    labels = Column(JSON, nullable=False, default=list)

    # Field name -> deterministic JSON string, validated against the template.
    templated_fields = Column(MutableDict.as_mutable(JSON), nullable=False, default=dict)

    created_at = Column(DateTime, default=utcnow)
    last_modified_at = Column(DateTime, default=utcnow)

    trackable = relationship("Trackable", back_populates="issues")
    template = relationship("Template")
    timeline_items = relationship(
        "TimelineItem",
        back_populates="issue",
        order_by="TimelineItem.created_at",
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<Issue(id={self.id}, title='{self.title}')>"


class TimelineItem(Base):
    """Entry of an issue's timeline"""

    __tablename__ = "timeline_items"

    id = Column(Integer, primary_key=True, index=True)
    issue_id = Column(Integer, ForeignKey("issues.id"), nullable=False, index=True)
    type = Column(String, nullable=False)

    created_at = Column(DateTime, default=utcnow, index=True)
    last_modified_at = Column(DateTime, default=utcnow)
    created_by = Column(String, nullable=True)  # remote username, if known

    # Kind-specific payload
    body = Column(Text, nullable=True)
    last_edited_at = Column(DateTime, nullable=True)
    label = Column(String, nullable=True)
    old_value = Column(String, nullable=True)
    new_value = Column(String, nullable=True)

    issue = relationship("Issue", back_populates="timeline_items")

    __mapper_args__ = {"polymorphic_on": type, "polymorphic_identity": "timeline_item"}

    def __repr__(self):
        return f"<{self.__class__.__name__}(issue_id={self.issue_id}, created_at={self.created_at})>"


class IssueComment(TimelineItem):
    __mapper_args__ = {"polymorphic_identity": "comment"}


class TitleChangedEvent(TimelineItem):
    __mapper_args__ = {"polymorphic_identity": "title_changed"}

    old_title = synonym("old_value")
    new_title = synonym("new_value")


class StateChangedEvent(TimelineItem):
    __mapper_args__ = {"polymorphic_identity": "state_changed"}

    old_state = synonym("old_value")
    new_state = synonym("new_value")


class LabelAddedEvent(TimelineItem):
    __mapper_args__ = {"polymorphic_identity": "label_added"}


class LabelRemovedEvent(TimelineItem):
    __mapper_args__ = {"polymorphic_identity": "label_removed"}


class Relation(Base):
    """Directed relation between two issues, validated against a relation template"""

    __tablename__ = "relations"

    id = Column(Integer, primary_key=True, index=True)
    start_issue_id = Column(Integer, ForeignKey("issues.id"), nullable=False)
    end_issue_id = Column(Integer, ForeignKey("issues.id"), nullable=False)
    template_id = Column(Integer, ForeignKey("templates.id"), nullable=False)

    templated_fields = Column(MutableDict.as_mutable(JSON), nullable=False, default=dict)
    created_at = Column(DateTime, default=utcnow)

    start_issue = relationship("Issue", foreign_keys=[start_issue_id])
    end_issue = relationship("Issue", foreign_keys=[end_issue_id])
    template = relationship("Template")

    def __repr__(self):
        return f"<Relation({self.start_issue_id} -> {self.end_issue_id})>"
