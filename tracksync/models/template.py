"""Template model"""

from typing import Dict

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, JSON, String, Table, Text
from sqlalchemy.orm import relationship

from tracksync.models.base import Base, utcnow

template_extends = Table(
    "template_extends",
    Base.metadata,
    Column("template_id", Integer, ForeignKey("templates.id"), primary_key=True),
    Column("extended_template_id", Integer, ForeignKey("templates.id"), primary_key=True),
)


class TemplateKind:
    """Which kind of templated node a template applies to"""

    ISSUE = "issue"
    RELATION = "relation"


class Template(Base):
    """Named schema for templated fields"""

    __tablename__ = "templates"

    id = Column(Integer, primary_key=True, index=True)
    kind = Column(String, nullable=False, default=TemplateKind.ISSUE, index=True)
    name = Column(String, nullable=False, index=True)
    description = Column(Text, nullable=False, default="")
    version = Column(Integer, nullable=False, default=1)
    deprecated = Column(Boolean, default=False)

    # Field name -> JSON schema (as string), only the fields declared by this template itself.
    field_specifications = Column(JSON, nullable=False, default=dict)

    created_at = Column(DateTime, default=utcnow)

    extends = relationship(
        "Template",
        secondary=template_extends,
        primaryjoin=id == template_extends.c.template_id,
        secondaryjoin=id == template_extends.c.extended_template_id,
        backref="extended_by",
    )

    @property
    def template_field_specifications(self) -> Dict[str, str]:
        """Own field specifications merged with those of all (transitively) extended templates."""
        merged: Dict[str, str] = {}
        seen = set()
        stack = [self]
        while stack:
            template = stack.pop()
            if id(template) in seen:
                continue
            seen.add(id(template))
            for name, schema in (template.field_specifications or {}).items():
                merged.setdefault(name, schema)
            stack.extend(template.extends)
        return merged

    def __repr__(self):
        return f"<Template(kind='{self.kind}', name='{self.name}', version={self.version})>"
