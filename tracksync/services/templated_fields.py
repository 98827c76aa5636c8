"""Templated field store: validated field maps for templated nodes"""

import json
import logging
from typing import Any, Dict, List, Mapping, Optional

from tracksync.errors import UnknownFieldError, ValidationError
from tracksync.services import schema_validator

logger = logging.getLogger(__name__)


def serialize(value: Any) -> str:
    """Deterministic JSON string for a field value (sorted keys, compact)."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


class TemplatedFieldService:
    """Service for templated fields of nodes (issues, relations, ...).

    A node is anything with a ``template`` exposing ``template_field_specifications``
    and a ``templated_fields`` mapping of field name -> serialized value.

    Nothing here checks permissions or persists the node; callers hold the node's
    session for the duration of validation plus write.
    """

    @staticmethod
    def ensure_field_exists(template: Any, field: str):
        """Raise UnknownFieldError if ``field`` is not declared by ``template``."""
        if field not in template.template_field_specifications:
            raise UnknownFieldError(field)

    def ensure_fields_exist(self, template: Any, fields):
        for field in fields:
            self.ensure_field_exists(template, field)

    def validate_initial_fields(
        self, template: Any, provided: Optional[Mapping[str, Any]] = None
    ) -> Dict[str, str]:
        """
        Validate the initial templated fields of a node to create.

        Every field declared by ``template`` gets a value; fields without input
        default to null (which must be allowed by the schema). Input naming a field
        the template does not declare is rejected, not ignored.

        Returns the initial value for ``templated_fields``.
        """
        provided = provided or {}
        self.ensure_fields_exist(template, provided.keys())
        result: Dict[str, str] = {}
        for name, schema in template.template_field_specifications.items():
            value = provided.get(name)
            schema_validator.validate(value, schema, name)
            result[name] = serialize(value)
        return result

    def update_field(self, node: Any, name: str, value: Any):
        """Validate and store a single field on ``node``."""
        template = node.template
        self.ensure_field_exists(template, name)
        schema_validator.validate(value, template.template_field_specifications[name], name)
        node.templated_fields[name] = serialize(value)

    def update_fields(
        self,
        node: Any,
        updates: Optional[Mapping[str, Any]] = None,
        template_was_updated: bool = False,
    ):
        """
        Update the templated fields of ``node``.

        If ``template_was_updated`` (the new template must already be set on the node),
        fields the template no longer declares are removed and all remaining fields that
        are not part of ``updates`` are validated against the new schemas.
        """
        updates = updates or {}
        if updates:
            self.ensure_fields_exist(node.template, updates.keys())
            for name, value in updates.items():
                self.update_field(node, name, value)
        if template_was_updated:
            self._validate_fields_after_template_update(node, updates.keys())

    def _validate_fields_after_template_update(self, node: Any, changed_fields):
        specs = node.template.template_field_specifications
        changed = set(changed_fields)
        to_remove: List[str] = []
        messages: List[str] = []
        invalid: List[str] = []
        for name, raw in list(node.templated_fields.items()):
            if name in changed:
                continue
            if name not in specs:
                to_remove.append(name)
                continue
            errors = schema_validator.collect_errors(json.loads(raw), specs[name])
            if errors:
                invalid.append(name)
                messages.extend(f"{name}: {msg}" for msg in errors)
        for name in to_remove:
            del node.templated_fields[name]
        if to_remove:
            logger.info(f"Removed templated fields no longer declared by template: {to_remove}")
        if invalid:
            field = invalid[0] if len(invalid) == 1 else ",".join(invalid)
            raise ValidationError(field, messages)

    def validate_field(self, node: Any, name: str) -> bool:
        """True if the stored value of ``name`` is compatible with the node's template."""
        raw = node.templated_fields.get(name)
        if raw is None:
            return False
        schema = node.template.template_field_specifications.get(name)
        if schema is None:
            return False
        try:
            return schema_validator.is_valid(json.loads(raw), schema)
        except ValueError as e:
            logger.warning(f"Stored value of templated field {name} is not valid JSON: {e}")
            return False
