"""GitLab API client wrapper"""
import gitlab
import logging
import re
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from tracksync.errors import NotifiedError, TransientSyncError

logger = logging.getLogger(__name__)


class GitLabClient:
    """Wrapper for the GitLab API operations the incoming sync needs"""

    _TITLE_CHANGE_RE = re.compile(r"^changed title from \*\*(?P<old>.*)\*\* to \*\*(?P<new>.*)\*\*$", re.DOTALL)
    # GitLab renders title diffs inline: {-removed-} and {+added+}
    _REMOVED_RE = re.compile(r"\{-(.*?)-\}", re.DOTALL)
    _ADDED_RE = re.compile(r"\{\+(.*?)\+\}", re.DOTALL)

    def __init__(self, url: str, access_token: str, per_page: int = 100):
        """Initialize GitLab client"""
        self.url = url
        self.per_page = per_page
        self.gl = gitlab.Gitlab(url, private_token=access_token)
        self._call(self.gl.auth)

    @staticmethod
    def _should_retry(exc: Exception) -> bool:
        """Best-effort retry predicate for transient GitLab failures."""
        # python-gitlab exceptions often carry an HTTP response code
        rc = getattr(exc, "response_code", None)
        if rc in (429, 500, 502, 503, 504):
            return True
        # If we can't classify, don't retry to avoid hiding real issues.
        return False

    def _with_retries(self, fn, *, max_attempts: int = 3, base_delay_s: float = 0.5):
        """Run callable with small exponential backoff on transient errors."""
        attempt = 1
        while True:
            try:
                return fn()
            except Exception as e:
                if attempt >= max_attempts or not self._should_retry(e):
                    raise
                time.sleep(base_delay_s * (2 ** (attempt - 1)))
                attempt += 1

    def _call(self, fn):
        """Run a (retried) API call and classify its failure."""
        try:
            return self._with_retries(fn)
        except gitlab.exceptions.GitlabAuthenticationError as e:
            raise NotifiedError("SYNC_GITLAB_AUTH_FAILED", f"{self.url}: {e}") from e
        except gitlab.exceptions.GitlabError as e:
            if getattr(e, "response_code", None) in (401, 403):
                raise NotifiedError("SYNC_GITLAB_AUTH_FAILED", f"{self.url}: {e}") from e
            raise TransientSyncError(f"GitLab request to {self.url} failed: {e}") from e

    def current_username(self) -> Optional[str]:
        """Username of the account the access token belongs to"""
        user = self.gl.user
        if user is None:
            self._call(self.gl.auth)
            user = self.gl.user
        return getattr(user, "username", None)

    def get_project(self, project_id: str):
        """Get project by ID or path"""
        try:
            return self._call(lambda: self.gl.projects.get(project_id))
        except (NotifiedError, TransientSyncError) as e:
            logger.error(f"Failed to get project {project_id}: {e}")
            raise

    def get_issues(self, project_id: str, updated_after: Optional[datetime] = None) -> List[Any]:
        """Get issues of a project, oldest update first"""
        project = self.get_project(project_id)
        # GitLab defaults to state=opened; closed issues must be synced too.
        params = {
            "order_by": "updated_at",
            "sort": "asc",
            "state": "all",
            "per_page": self.per_page,
        }
        if updated_after:
            # Our DB uses UTC tz-naive; assume UTC if tzinfo is missing.
            if updated_after.tzinfo is None:
                updated_after = updated_after.replace(tzinfo=timezone.utc)
            params["updated_after"] = updated_after.isoformat()
        try:
            return self._call(lambda: project.issues.list(get_all=True, **params))
        except (NotifiedError, TransientSyncError) as e:
            logger.error(f"Failed to get issues for project {project_id}: {e}")
            raise

    def get_issue_timeline(self, project_id: str, issue_iid: int) -> List[Dict[str, Any]]:
        """
        Get the timeline of an issue as normalized events, oldest first.

        Merges notes (comments and system notes) with resource label and state events.
        """
        project = self.get_project(project_id)
        issue = self._call(lambda: project.issues.get(issue_iid))
        list_kwargs = {"get_all": True, "per_page": self.per_page}

        notes = self._call(lambda: issue.notes.list(order_by="created_at", sort="asc", **list_kwargs))
        label_events = self._call(lambda: issue.resourcelabelevents.list(**list_kwargs))
        state_events = self._call(lambda: issue.resourcestateevents.list(**list_kwargs))

        events = [self.normalize_note(n) for n in notes]
        events += [e for e in (self.normalize_label_event(le) for le in label_events) if e]
        events += [self.normalize_state_event(se) for se in state_events]
        events.sort(key=lambda e: (e.get("created_at") or "", e["id"]))
        return events

    @staticmethod
    def _attr(obj: Any, name: str, default: Any = None) -> Any:
        if obj is None:
            return default
        if isinstance(obj, dict):
            return obj.get(name, default)
        return getattr(obj, name, default)

    @classmethod
    def _username(cls, user: Any) -> Optional[str]:
        return cls._attr(user, "username")

    @classmethod
    def _split_title_diff(cls, text: str) -> tuple[str, str]:
        """Return (before, after) for a title rendered with inline diff markers."""
        before = cls._ADDED_RE.sub("", cls._REMOVED_RE.sub(r"\1", text))
        after = cls._REMOVED_RE.sub("", cls._ADDED_RE.sub(r"\1", text))
        return before, after

    @classmethod
    def normalize_note(cls, note: Any) -> Dict[str, Any]:
        created_at = cls._attr(note, "created_at")
        updated_at = cls._attr(note, "updated_at")
        event = {
            "id": f"note:{cls._attr(note, 'id')}",
            "created_at": created_at,
            "updated_at": updated_at,
            "author": cls._username(cls._attr(note, "author")),
        }
        body = cls._attr(note, "body") or ""
        if not cls._attr(note, "system", False):
            event.update(
                kind="comment",
                body=body,
                last_edited_at=updated_at if updated_at and updated_at != created_at else None,
            )
            return event

        m = cls._TITLE_CHANGE_RE.match(body.strip())
        if m:
            old_title, _ = cls._split_title_diff(m.group("old"))
            _, new_title = cls._split_title_diff(m.group("new"))
            event.update(kind="title_changed", old_title=old_title, new_title=new_title)
        else:
            event.update(kind="system_note", body=body)
        return event

    @classmethod
    def normalize_label_event(cls, label_event: Any) -> Optional[Dict[str, Any]]:
        label = cls._attr(cls._attr(label_event, "label"), "name")
        action = cls._attr(label_event, "action")
        if not label or action not in ("add", "remove"):
            # Deleted labels come back without a name.
            return None
        return {
            "id": f"label:{cls._attr(label_event, 'id')}",
            "kind": "label_added" if action == "add" else "label_removed",
            "created_at": cls._attr(label_event, "created_at"),
            "updated_at": None,
            "author": cls._username(cls._attr(label_event, "user")),
            "label": label,
        }

    @classmethod
    def normalize_state_event(cls, state_event: Any) -> Dict[str, Any]:
        state = cls._attr(state_event, "state")
        return {
            "id": f"state:{cls._attr(state_event, 'id')}",
            "kind": "state_changed",
            "created_at": cls._attr(state_event, "created_at"),
            "updated_at": None,
            "author": cls._username(cls._attr(state_event, "user")),
            "state": "closed" if state == "closed" else "open",
        }
