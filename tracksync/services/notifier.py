"""Notification sink for conditions that need operator attention"""

import logging
from typing import Any, Optional

from sqlalchemy.orm import Session

from tracksync.errors import NotifiedError
from tracksync.models import SyncNotification

logger = logging.getLogger(__name__)


class SyncNotificator:
    """Records one notification per NotifiedError occurrence (no batching or dedup)"""

    def __init__(self, db: Session):
        self.db = db

    def send_notification(
        self,
        error: NotifiedError,
        ims_instance: Any = None,
        ims_project: Any = None,
        remote_issue_id: Optional[str] = None,
    ) -> Optional[SyncNotification]:
        target = getattr(ims_project, "name", None) or getattr(ims_instance, "name", None) or "sync"
        logger.warning(f"Sync notification for {target}: {error.reason} ({error.message or '-'})")
        notification = SyncNotification(
            reason=error.reason,
            message=error.message,
            ims_instance_id=getattr(ims_instance, "id", None),
            ims_project_id=getattr(ims_project, "id", None),
            remote_issue_id=remote_issue_id,
        )
        try:
            self.db.add(notification)
            self.db.commit()
        except Exception as e:
            # Delivery is best-effort and not retried.
            self.db.rollback()
            logger.error(f"Failed to persist sync notification ({error.reason}): {e}")
            return None
        return notification
