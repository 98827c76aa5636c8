"""Services"""

from tracksync.services.dereplicator import InvasiveDereplicator, IssueDereplicator, NullDereplicator
from tracksync.services.gitlab_client import GitLabClient
from tracksync.services.notifier import SyncNotificator
from tracksync.services.sync_service import SyncService
from tracksync.services.template_service import TemplateService
from tracksync.services.templated_fields import TemplatedFieldService

__all__ = [
    "GitLabClient",
    "SyncService",
    "SyncNotificator",
    "TemplateService",
    "TemplatedFieldService",
    "IssueDereplicator",
    "InvasiveDereplicator",
    "NullDereplicator",
]
