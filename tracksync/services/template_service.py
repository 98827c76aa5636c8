"""Template definition and template migration of templated nodes"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

from sqlalchemy.orm import Session

from tracksync.errors import TemplateFieldConflictError
from tracksync.models import Template, TemplateKind
from tracksync.services import schema_validator
from tracksync.services.templated_fields import TemplatedFieldService

logger = logging.getLogger(__name__)


class TemplateService:
    """Service for creating templates and moving nodes between them"""

    def __init__(self, db: Session, fields: Optional[TemplatedFieldService] = None):
        self.db = db
        self.fields = fields or TemplatedFieldService()

    def create_template(
        self,
        name: str,
        field_specifications: Mapping[str, str],
        extends: Sequence[Template] = (),
        kind: str = TemplateKind.ISSUE,
        description: str = "",
        version: int = 1,
    ) -> Template:
        """
        Create a template extending ``extends``.

        Each schema must be a valid JSON schema and a field name may only be declared once
        across the new template and everything it (transitively) extends.
        """
        for field, schema in field_specifications.items():
            schema_validator.check_schema(schema)

        for parent in extends:
            if parent.kind != kind:
                raise ValueError(
                    f"Template '{name}' ({kind}) cannot extend '{parent.name}' ({parent.kind})"
                )

        # A template reached through several parents declares its fields only once.
        inherited: Dict[str, Template] = {}
        for ancestor in self._ancestors(extends):
            for field in ancestor.field_specifications or {}:
                if field in inherited:
                    raise TemplateFieldConflictError(field, name)
                inherited[field] = ancestor
        for field in field_specifications:
            if field in inherited:
                raise TemplateFieldConflictError(field, name)

        template = Template(
            kind=kind,
            name=name,
            description=description,
            version=version,
            field_specifications=dict(field_specifications),
        )
        template.extends.extend(extends)
        self.db.add(template)
        self.db.commit()
        self.db.refresh(template)
        logger.info(f"Created {kind} template '{name}' v{version} with {len(template.template_field_specifications)} fields")
        return template

    @staticmethod
    def _ancestors(extends: Sequence[Template]) -> List[Template]:
        """All templates in ``extends`` and what they extend, each listed once"""
        result: List[Template] = []
        seen = set()
        stack = list(extends)
        while stack:
            template = stack.pop()
            if id(template) in seen:
                continue
            seen.add(id(template))
            result.append(template)
            stack.extend(template.extends)
        return result

    def change_template(self, node: Any, template: Template, updates: Optional[Mapping[str, Any]] = None):
        """Swap the template of ``node`` and reconcile its templated fields.

        The node is not committed; that stays with the caller.
        """
        if node.template is not None and node.template.kind != template.kind:
            raise ValueError(f"Cannot move a {node.template.kind} node to a {template.kind} template")
        node.template = template
        self.fields.update_fields(node, updates, template_was_updated=True)
