"""Incoming issue synchronization service"""

import json
import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from sqlalchemy import and_, inspect, or_, update
from sqlalchemy.orm import Session

from tracksync.config import Settings, settings as default_settings
from tracksync.errors import NotifiedError
from tracksync.models import (
    CachedTimelineEvent,
    ImsInstance,
    ImsProject,
    Issue,
    RemoteIssueRecord,
    SyncLog,
    TimelineEventCacheEntry,
    TimelineEventInfo,
    TimelineItem,
)
from tracksync.models.base import utcnow
from tracksync.models.sync_log import SyncStatus
from tracksync.services.dereplicator import IssueDereplicator, get_dereplicator
from tracksync.services.gitlab_client import GitLabClient
from tracksync.services.notifier import SyncNotificator
from tracksync.services.templated_fields import TemplatedFieldService
from tracksync.services.timeline import IssueCleaner, TimelineItemHandler, parse_remote_datetime

logger = logging.getLogger(__name__)

_MISSING = object()


class SyncService:
    """
    Service for pulling issues and their timelines from GitLab into the local model.

    A pass over an IMS project has three phases:

    1. discover: list issues updated since the last pass, dereplicate them, store their
       templated fields and mark their records dirty;
    2. fetch: pull the timeline of every dirty issue into the raw event cache;
    3. replay: apply cached events onto the internal timeline, then clear the dirty flag.

    Failed fetches/replays count against a bounded attempt budget per issue. Failures are
    isolated per IMS instance, per project and per issue.
    """

    def __init__(
        self,
        db: Session,
        settings: Optional[Settings] = None,
        notificator: Optional[SyncNotificator] = None,
        dereplicator: Optional[IssueDereplicator] = None,
        client_factory: Optional[Callable[[ImsInstance], Any]] = None,
        fields: Optional[TemplatedFieldService] = None,
        timeline_handler: Optional[TimelineItemHandler] = None,
        issue_cleaner: Optional[IssueCleaner] = None,
    ):
        self.db = db
        self.settings = settings or default_settings
        self.notificator = notificator or SyncNotificator(db)
        self.dereplicator = dereplicator
        self.client_factory = client_factory or self._default_client
        self.fields = fields or TemplatedFieldService()
        self.timeline_handler = timeline_handler or TimelineItemHandler()
        self.issue_cleaner = issue_cleaner or IssueCleaner()
        self.clients: Dict[int, Any] = {}

    def _default_client(self, instance: ImsInstance) -> GitLabClient:
        return GitLabClient(instance.url, instance.access_token, per_page=self.settings.gitlab_per_page)

    @staticmethod
    def _safe_attr(obj: Any, name: str, default: Any = None) -> Any:
        """Get attribute or dict key safely."""
        if obj is None:
            return default
        if isinstance(obj, dict):
            return obj.get(name, default)
        return getattr(obj, name, default)

    def _get_client(self, instance: ImsInstance):
        """Get or create the API client for an IMS instance"""
        if instance.id not in self.clients:
            self.clients[instance.id] = self.client_factory(instance)
        return self.clients[instance.id]

    def _dereplicator_for(self, project: ImsProject) -> IssueDereplicator:
        if self.dereplicator is not None:
            return self.dereplicator
        return get_dereplicator(project.dereplicator or self.settings.default_dereplicator)

    @property
    def max_attempts(self) -> int:
        return self.settings.timeline_max_attempts

    # -------------------------------------------------------------------------
    # Entry points
    # -------------------------------------------------------------------------

    def sync(self) -> Dict[str, Any]:
        """Sync all enabled IMS instances; one failing instance doesn't stop the others"""
        results: Dict[str, Any] = {}
        instances = self.db.query(ImsInstance).filter(ImsInstance.sync_enabled == True).all()  # noqa: E712
        for instance in instances:
            try:
                results.update(self.sync_ims(instance))
            except NotifiedError as e:
                self.db.rollback()
                self.notificator.send_notification(e, ims_instance=instance)
            except Exception as e:
                self.db.rollback()
                logger.error(f"Sync failed for IMS {instance.name}: {e}")
        return results

    def sync_ims(self, instance: ImsInstance) -> Dict[str, Any]:
        """Sync all enabled projects of one IMS instance"""
        client = self._get_client(instance)
        self._check_read_user(instance, client)

        results: Dict[str, Any] = {}
        for project in list(instance.projects):
            if not project.sync_enabled:
                continue
            name = project.name
            try:
                results[name] = self.sync_project(project, client)
            except NotifiedError as e:
                self.db.rollback()
                self.notificator.send_notification(e, ims_instance=instance, ims_project=project)
                results[name] = {"status": SyncStatus.FAILED.value, "error": str(e)}
            except Exception as e:
                self.db.rollback()
                logger.error(f"Sync failed for project {name}: {e}")
                results[name] = {"status": SyncStatus.FAILED.value, "error": str(e)}
        return results

    def sync_project_by_id(self, ims_project_id: int) -> Dict[str, Any]:
        """Sync a single IMS project (scheduled or manual trigger)"""
        project = self.db.query(ImsProject).filter(ImsProject.id == ims_project_id).first()
        if not project:
            raise ValueError(f"IMS project {ims_project_id} not found")

        if not project.sync_enabled:
            logger.info(f"Sync disabled for IMS project {project.name}")
            return {"status": SyncStatus.SKIPPED.value, "message": "Sync disabled"}

        instance = project.ims_instance
        try:
            client = self._get_client(instance)
            self._check_read_user(instance, client)
            return self.sync_project(project, client)
        except NotifiedError as e:
            self.db.rollback()
            self.notificator.send_notification(e, ims_instance=instance, ims_project=project)
            return {"status": SyncStatus.FAILED.value, "error": str(e)}

    def _check_read_user(self, instance: ImsInstance, client: Any):
        if not instance.read_username:
            return
        username = client.current_username()
        if username != instance.read_username:
            raise NotifiedError(
                "SYNC_GITLAB_USER_INVALID_IMS",
                f"Token of {instance.name} belongs to '{username}', expected '{instance.read_username}'",
            )

    def sync_project(self, project: ImsProject, client: Any) -> Dict[str, Any]:
        """Run discover, fetch and replay for one IMS project"""
        name = project.name
        logger.info(f"Starting sync for IMS project: {name}")

        stats = {
            "discovered": 0,
            "timelines_fetched": 0,
            "replayed": 0,
            "replay_failures": 0,
            "notified": 0,
            "errors": 0,
            "stuck": 0,
        }

        try:
            self._discover_issues(project, client, stats)
            fetch_failed = self._fetch_timelines(project, client, stats)
            self._replay_timelines(project, stats, skip=fetch_failed)

            stats["stuck"] = len(self.stuck_issues(project))
            project.last_sync_at = utcnow()
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Sync failed for {name}: {e}")
            self._log_sync(project, SyncStatus.FAILED, f"Sync failed: {e}", stats)
            raise

        if stats["stuck"]:
            logger.warning(f"{stats['stuck']} issue(s) of {name} exhausted their replay attempts")
        failures = stats["errors"] + stats["notified"] + stats["replay_failures"]
        status = SyncStatus.SUCCESS if failures == 0 else SyncStatus.PARTIAL
        logger.info(f"Sync completed for {name}: {stats}")
        self._log_sync(project, status, f"Sync completed: {stats}", stats)
        return {"status": status.value, "stats": stats}

    # -------------------------------------------------------------------------
    # Discover
    # -------------------------------------------------------------------------

    def _discover_issues(self, project: ImsProject, client: Any, stats: Dict[str, int]):
        """List issues changed since the resume token and mark them dirty"""
        updated_after = None
        if project.last_issue_updated_at is not None:
            updated_after = project.last_issue_updated_at - timedelta(
                minutes=self.settings.issue_update_overlap_minutes
            )

        remote_issues = client.get_issues(project.remote_project_id, updated_after=updated_after)

        newest = project.last_issue_updated_at
        failed = False
        for remote_issue in remote_issues:
            iid = self._safe_attr(remote_issue, "iid")
            try:
                updated_at = self.issue_modified(project, remote_issue)
                stats["discovered"] += 1
                if updated_at is not None and (newest is None or updated_at > newest):
                    newest = updated_at
            except NotifiedError as e:
                self.db.rollback()
                failed = True
                stats["notified"] += 1
                self.notificator.send_notification(
                    e, ims_project=project, remote_issue_id=str(self._safe_attr(remote_issue, "id"))
                )
            except Exception as e:
                self.db.rollback()
                stats["errors"] += 1
                logger.error(f"Failed to discover issue #{iid} of {project.name}: {e}")
                attempts = self._record_failed_attempt(
                    project,
                    str(self._safe_attr(remote_issue, "id")),
                    e,
                    reason="SYNC_ISSUE_DISCOVERY_RETRIES_EXHAUSTED",
                )
                # An issue that exhausted its budget no longer holds back the resume token.
                if attempts is None or attempts < self.max_attempts:
                    failed = True

        # Only move the resume token when nothing was skipped, otherwise failed issues
        # would fall out of the incremental window.
        if not failed and newest is not None and newest != project.last_issue_updated_at:
            project.last_issue_updated_at = newest
            self.db.commit()

    def issue_modified(self, project: ImsProject, remote_issue: Any) -> Optional[datetime]:
        """
        Ensure the local issue for ``remote_issue`` and mark its record dirty.

        Returns the time the remote issue was last changed.
        """
        record, _issue = self.ensure_issue(project, remote_issue)
        updated_at = parse_remote_datetime(self._safe_attr(remote_issue, "updated_at"))
        self._mark_dirty(record, updated_at)
        self.db.commit()
        return updated_at

    def _mark_dirty(self, record: RemoteIssueRecord, updated_at: Optional[datetime]):
        stmt = update(RemoteIssueRecord).where(RemoteIssueRecord.id == record.id)
        if updated_at is None:
            stmt = stmt.values(dirty=True)
        else:
            # Re-reads inside the overlap window must not re-dirty an unchanged issue.
            stmt = stmt.where(
                or_(
                    RemoteIssueRecord.remote_updated_at.is_(None),
                    RemoteIssueRecord.remote_updated_at < updated_at,
                )
            ).values(dirty=True, remote_updated_at=updated_at)
        self.db.execute(stmt.execution_options(synchronize_session=False))
        self.db.expire(record)

    def _remote_templated_fields(self, remote_issue: Any, template: Any) -> Dict[str, Any]:
        """Values of remote attributes named like fields declared by ``template``"""
        values: Dict[str, Any] = {}
        for name in template.template_field_specifications:
            value = self._safe_attr(remote_issue, name, _MISSING)
            if value is not _MISSING:
                values[name] = value
        return values

    @staticmethod
    def _map_state(remote_state: Optional[str]) -> str:
        return "closed" if remote_state == "closed" else "open"

    def ensure_issue(self, project: ImsProject, remote_issue: Any) -> Tuple[RemoteIssueRecord, Issue]:
        """Find or create the local issue (and its sync record) for a remote issue"""
        remote_id = str(self._safe_attr(remote_issue, "id"))
        record = (
            self.db.query(RemoteIssueRecord)
            .filter(
                RemoteIssueRecord.ims_project_id == project.id,
                RemoteIssueRecord.remote_issue_id == remote_id,
            )
            .first()
        )
        if record is not None:
            issue = record.issue
            provided = self._remote_templated_fields(remote_issue, issue.template)
            if provided:
                self.fields.update_fields(issue, provided)
            return record, issue

        template = project.issue_template
        now = utcnow()
        candidate = Issue(
            trackable=project.trackable,
            template=template,
            title=self._safe_attr(remote_issue, "title") or "",
            body=self._safe_attr(remote_issue, "description") or "",
            state=self._map_state(self._safe_attr(remote_issue, "state")),
            labels=sorted(set(self._safe_attr(remote_issue, "labels") or [])),
            created_at=parse_remote_datetime(self._safe_attr(remote_issue, "created_at")) or now,
            last_modified_at=parse_remote_datetime(self._safe_attr(remote_issue, "updated_at")) or now,
            templated_fields=self.fields.validate_initial_fields(
                template, self._remote_templated_fields(remote_issue, template)
            ),
        )
        self.db.add(candidate)

        result = self._dereplicator_for(project).validate_issue(project, candidate)
        issue = result.issue
        if issue is not candidate:
            # Same logical issue already known locally; drop the candidate.
            project.trackable.issues.remove(candidate)
            if inspect(candidate).persistent:
                self.db.delete(candidate)
            else:
                self.db.expunge(candidate)
            provided = self._remote_templated_fields(remote_issue, issue.template)
            if provided:
                self.fields.update_fields(issue, provided)
            logger.info(
                f"Remote issue #{self._safe_attr(remote_issue, 'iid')} of {project.name} "
                f"matches existing issue {issue.id}"
            )
        elif result.created_timeline_items:
            logger.info(
                f"Stamped remote issue #{self._safe_attr(remote_issue, 'iid')} of {project.name} "
                f"for dereplication"
            )

        record = RemoteIssueRecord(
            ims_project_id=project.id,
            remote_issue_id=remote_id,
            remote_iid=int(self._safe_attr(remote_issue, "iid")),
            issue=issue,
            dirty=True,
        )
        self.db.add(record)
        self.db.flush()
        return record, issue

    # -------------------------------------------------------------------------
    # Fetch
    # -------------------------------------------------------------------------

    def _dirty_records(self, project: ImsProject) -> List[RemoteIssueRecord]:
        return (
            self.db.query(RemoteIssueRecord)
            .outerjoin(
                TimelineEventCacheEntry,
                and_(
                    TimelineEventCacheEntry.ims_project_id == RemoteIssueRecord.ims_project_id,
                    TimelineEventCacheEntry.remote_issue_id == RemoteIssueRecord.remote_issue_id,
                ),
            )
            .filter(
                RemoteIssueRecord.ims_project_id == project.id,
                RemoteIssueRecord.dirty == True,  # noqa: E712
                or_(
                    TimelineEventCacheEntry.id.is_(None),
                    TimelineEventCacheEntry.attempts < self.max_attempts,
                ),
            )
            .order_by(RemoteIssueRecord.id)
            .all()
        )

    def _fetch_timelines(self, project: ImsProject, client: Any, stats: Dict[str, int]) -> Set[int]:
        """Fetch timelines of dirty issues; returns ids of records whose fetch failed"""
        failed: Set[int] = set()
        for record in self._dirty_records(project):
            record_id = record.id
            remote_issue_id = record.remote_issue_id
            try:
                self.fetch_timeline(project, client, record)
                stats["timelines_fetched"] += 1
            except NotifiedError as e:
                self.db.rollback()
                failed.add(record_id)
                stats["notified"] += 1
                self.notificator.send_notification(e, ims_project=project, remote_issue_id=remote_issue_id)
            except Exception as e:
                self.db.rollback()
                failed.add(record_id)
                stats["errors"] += 1
                logger.error(f"Failed to fetch timeline of remote issue {remote_issue_id}: {e}")
                self._record_failed_attempt(project, remote_issue_id, e)
        return failed

    def _ensure_cache_entry(self, project: ImsProject, remote_issue_id: str) -> TimelineEventCacheEntry:
        entry = (
            self.db.query(TimelineEventCacheEntry)
            .filter(
                TimelineEventCacheEntry.ims_project_id == project.id,
                TimelineEventCacheEntry.remote_issue_id == remote_issue_id,
            )
            .first()
        )
        if entry is None:
            entry = TimelineEventCacheEntry(ims_project_id=project.id, remote_issue_id=remote_issue_id, attempts=0)
            self.db.add(entry)
            self.db.commit()
        return entry

    def fetch_timeline(self, project: ImsProject, client: Any, record: RemoteIssueRecord) -> int:
        """Store the raw timeline of a remote issue; nothing is interpreted yet"""
        self._ensure_cache_entry(project, record.remote_issue_id)
        events = client.get_issue_timeline(project.remote_project_id, record.remote_iid)

        cached = {
            row.remote_event_id: row
            for row in self.db.query(CachedTimelineEvent).filter(
                CachedTimelineEvent.ims_project_id == project.id,
                CachedTimelineEvent.remote_issue_id == record.remote_issue_id,
            )
        }
        for event in events:
            event_id = str(event["id"])
            row = cached.get(event_id)
            if row is None:
                row = CachedTimelineEvent(
                    ims_project_id=project.id,
                    remote_issue_id=record.remote_issue_id,
                    remote_event_id=event_id,
                )
                self.db.add(row)
                cached[event_id] = row
            row.kind = event.get("kind") or "unknown"
            row.created_at = parse_remote_datetime(event.get("created_at"))
            row.payload = dict(event)
            row.fetched_at = utcnow()
        self.db.commit()
        return len(events)

    # -------------------------------------------------------------------------
    # Replay
    # -------------------------------------------------------------------------

    def _replay_timelines(self, project: ImsProject, stats: Dict[str, int], skip: Set[int] = frozenset()):
        records = (
            self.db.query(RemoteIssueRecord)
            .join(
                TimelineEventCacheEntry,
                and_(
                    TimelineEventCacheEntry.ims_project_id == RemoteIssueRecord.ims_project_id,
                    TimelineEventCacheEntry.remote_issue_id == RemoteIssueRecord.remote_issue_id,
                ),
            )
            .filter(
                RemoteIssueRecord.ims_project_id == project.id,
                RemoteIssueRecord.dirty == True,  # noqa: E712
                TimelineEventCacheEntry.attempts < self.max_attempts,
            )
            .order_by(RemoteIssueRecord.id)
            .all()
        )
        for record in records:
            if record.id in skip:
                continue
            remote_issue_id = record.remote_issue_id
            try:
                self.replay_issue(project, record)
                stats["replayed"] += 1
            except NotifiedError as e:
                self.db.rollback()
                stats["notified"] += 1
                self.notificator.send_notification(e, ims_project=project, remote_issue_id=remote_issue_id)
            except Exception as e:
                self.db.rollback()
                stats["replay_failures"] += 1
                logger.error(f"Failed to replay timeline of remote issue {remote_issue_id}: {e}")
                self._record_failed_attempt(project, remote_issue_id, e)

    def handle_timeline_event(self, record: RemoteIssueRecord, event: Dict[str, Any]) -> Optional[datetime]:
        """
        Apply a single remote timeline event to the issue of ``record``.

        An event already applied (and not edited since) returns its stored time without
        being processed again. Events without an internal representation return None and
        are not remembered, so they are looked at again next time.
        """
        event_id = str(event["id"])
        info = (
            self.db.query(TimelineEventInfo)
            .filter(
                TimelineEventInfo.ims_project_id == record.ims_project_id,
                TimelineEventInfo.remote_event_id == event_id,
            )
            .first()
        )
        edited_at = parse_remote_datetime(event.get("last_edited_at"))
        if info is not None and not (edited_at is not None and edited_at > info.last_modified_at):
            return info.last_modified_at

        existing_item = None
        if info is not None and info.timeline_item_id is not None:
            existing_item = self.db.get(TimelineItem, info.timeline_item_id)

        item, timestamp = self.timeline_handler.handle(record.issue, event, existing_item)
        if timestamp is not None:
            self.db.flush()
            if info is None:
                info = TimelineEventInfo(ims_project_id=record.ims_project_id, remote_event_id=event_id)
                self.db.add(info)
            info.timeline_item_id = item.id if item is not None else None
            info.last_modified_at = timestamp
            info.kind = event.get("kind") or "unknown"
            self.db.flush()
        return timestamp

    def replay_issue(self, project: ImsProject, record: RemoteIssueRecord):
        """Replay all cached events of one issue and clear its dirty flag"""
        marker = record.remote_updated_at
        issue = record.issue
        known_items = set(issue.timeline_items)

        events = (
            self.db.query(CachedTimelineEvent)
            .filter(
                CachedTimelineEvent.ims_project_id == project.id,
                CachedTimelineEvent.remote_issue_id == record.remote_issue_id,
            )
            .order_by(CachedTimelineEvent.created_at, CachedTimelineEvent.id)
            .all()
        )
        for cached in events:
            self.handle_timeline_event(record, cached.payload)

        new_items = [item for item in issue.timeline_items if item not in known_items]
        if new_items:
            accepted = self._dereplicator_for(project).validate_timeline_item(issue, new_items).timeline_items
            self._drop_rejected_items(issue, [item for item in new_items if item not in accepted])

        self.issue_cleaner.clean_issue(issue)
        self.db.flush()

        stmt = update(RemoteIssueRecord).where(RemoteIssueRecord.id == record.id)
        if marker is None:
            stmt = stmt.where(RemoteIssueRecord.remote_updated_at.is_(None))
        else:
            stmt = stmt.where(RemoteIssueRecord.remote_updated_at == marker)
        result = self.db.execute(
            stmt.values(dirty=False, last_synced_at=utcnow()).execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            logger.info(f"Remote issue {record.remote_issue_id} changed during replay; it stays dirty")
        self.db.execute(
            update(TimelineEventCacheEntry)
            .where(
                TimelineEventCacheEntry.ims_project_id == project.id,
                TimelineEventCacheEntry.remote_issue_id == record.remote_issue_id,
            )
            .values(attempts=0, last_error=None)
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        self.db.expire(record)

    def _drop_rejected_items(self, issue: Issue, rejected: List[TimelineItem]):
        if not rejected:
            return
        ids = [item.id for item in rejected if item.id is not None]
        if ids:
            # Keep the event infos so rejected events are not evaluated again.
            self.db.execute(
                update(TimelineEventInfo)
                .where(TimelineEventInfo.timeline_item_id.in_(ids))
                .values(timeline_item_id=None)
                .execution_options(synchronize_session=False)
            )
        for item in rejected:
            issue.timeline_items.remove(item)
        logger.info(f"Dereplicator rejected {len(rejected)} timeline item(s) of issue {issue.id}")

    def _record_failed_attempt(
        self,
        project: ImsProject,
        remote_issue_id: str,
        error: Exception,
        reason: str = "SYNC_TIMELINE_RETRIES_EXHAUSTED",
    ) -> Optional[int]:
        """Count a failed discovery/fetch/replay against the issue's attempt budget.

        Returns the attempt count, or None if it could not be recorded.
        """
        try:
            self._ensure_cache_entry(project, remote_issue_id)
            self.db.execute(
                update(TimelineEventCacheEntry)
                .where(
                    TimelineEventCacheEntry.ims_project_id == project.id,
                    TimelineEventCacheEntry.remote_issue_id == remote_issue_id,
                )
                .values(
                    attempts=TimelineEventCacheEntry.attempts + 1,
                    last_error=str(error)[:2000],
                    last_attempt_at=utcnow(),
                )
                .execution_options(synchronize_session=False)
            )
            self.db.commit()
            attempts = (
                self.db.query(TimelineEventCacheEntry.attempts)
                .filter(
                    TimelineEventCacheEntry.ims_project_id == project.id,
                    TimelineEventCacheEntry.remote_issue_id == remote_issue_id,
                )
                .scalar()
            )
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to record attempt for remote issue {remote_issue_id}: {e}")
            return None

        if attempts == self.max_attempts:
            logger.error(
                f"Remote issue {remote_issue_id} of {project.name} failed {attempts} times; "
                f"giving up until its attempts are reset"
            )
            self.notificator.send_notification(
                NotifiedError(reason, f"Last error: {error}"),
                ims_project=project,
                remote_issue_id=remote_issue_id,
            )
        return attempts

    # -------------------------------------------------------------------------
    # Stuck issues
    # -------------------------------------------------------------------------

    def stuck_issues(self, project: ImsProject) -> List[RemoteIssueRecord]:
        """Dirty records whose attempt budget is exhausted (need manual intervention)"""
        return (
            self.db.query(RemoteIssueRecord)
            .join(
                TimelineEventCacheEntry,
                and_(
                    TimelineEventCacheEntry.ims_project_id == RemoteIssueRecord.ims_project_id,
                    TimelineEventCacheEntry.remote_issue_id == RemoteIssueRecord.remote_issue_id,
                ),
            )
            .filter(
                RemoteIssueRecord.ims_project_id == project.id,
                RemoteIssueRecord.dirty == True,  # noqa: E712
                TimelineEventCacheEntry.attempts >= self.max_attempts,
            )
            .order_by(RemoteIssueRecord.id)
            .all()
        )

    def reset_attempts(self, project: ImsProject, remote_issue_id: str) -> bool:
        """Re-arm automatic retries for a stuck issue"""
        result = self.db.execute(
            update(TimelineEventCacheEntry)
            .where(
                TimelineEventCacheEntry.ims_project_id == project.id,
                TimelineEventCacheEntry.remote_issue_id == remote_issue_id,
            )
            .values(attempts=0, last_error=None)
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        if result.rowcount:
            logger.info(f"Reset replay attempts of remote issue {remote_issue_id} ({project.name})")
        return bool(result.rowcount)

    def _log_sync(self, project: ImsProject, status: SyncStatus, message: str = "", stats: Optional[Dict] = None):
        """Log sync operation"""
        log = SyncLog(
            ims_project_id=project.id,
            status=status,
            message=message,
            details=json.dumps(stats) if stats is not None else None,
        )
        try:
            self.db.add(log)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to persist sync log: {e}")
