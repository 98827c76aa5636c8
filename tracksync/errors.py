"""Exceptions raised by the field store and the sync engine"""

from typing import Iterable, List, Optional


class UnknownFieldError(ValueError):
    """A templated field name is not declared by the template."""

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"Unknown templated field {field}")


class ValidationError(ValueError):
    """A templated field value does not satisfy its schema.

    ``messages`` holds every violation found, not just the first one.
    """

    def __init__(self, field: str, messages: Iterable[str]):
        self.field = field
        self.messages: List[str] = list(messages)
        super().__init__(f"Invalid input for templated field {field}: {self.messages}")


class TemplateFieldConflictError(ValueError):
    """A field is declared more than once across a template and the templates it extends."""

    def __init__(self, field: str, template_name: Optional[str] = None):
        self.field = field
        self.template_name = template_name
        where = f" in template '{template_name}'" if template_name else ""
        super().__init__(f"Templated field {field} is declared more than once{where}")


class NotifiedError(Exception):
    """A condition that needs operator attention.

    Carries a machine readable ``reason`` code (e.g. ``SYNC_GITLAB_USER_INVALID_IMS``).
    """

    def __init__(self, reason: str, message: Optional[str] = None):
        self.reason = reason
        self.message = message
        super().__init__(f"{reason}: {message}" if message else reason)


class TransientSyncError(Exception):
    """Remote or storage failure that is not classified otherwise."""
