# scrumboard/services/issue_sync.py
from dataclasses import dataclass
from typing import Any, Iterable

import httpx
import structlog

from scrumboard.core.errors import NotFoundError, ValidationError
from scrumboard.github_client import GitHubClient, describe_github_error
from scrumboard.models import GitHubIssue
from scrumboard.models.common import parse_github_datetime
from scrumboard.models.github_issue import STATE_CLOSED, STATUS_DONE, STATUS_IN_PROGRESS, STATUS_TODO
from scrumboard.services.stores import IssueStore

log = structlog.get_logger()

# Statuses a user may move an issue to; "done" only comes from GitHub
USER_SETTABLE_STATUSES = (STATUS_TODO, STATUS_IN_PROGRESS)

# Rejections that make us retry the listing without credentials
AUTH_FAILURE_CODES = (401, 403)


@dataclass
class SyncResult:
    synced: int = 0
    skipped_pull_requests: int = 0
    skipped_malformed: int = 0
    authenticated: bool = False
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def issue_fields(item: dict[str, Any]) -> dict[str, Any]:
    """Mirror columns for one item of GitHub's issue listing."""
    return {
        "title": item.get("title") or "",
        "body": item.get("body") or None,
        "state": item.get("state") or "open",
        "html_url": item.get("html_url") or "",
        "labels": item.get("labels") or [],
        "assignees": item.get("assignees") or [],
        "github_created_at": parse_github_datetime(item.get("created_at")),
        "github_updated_at": parse_github_datetime(item.get("updated_at")),
    }


class IssueSyncEngine:
    """Pulls a repository's issues from GitHub into the local mirror and answers board queries over it."""

    def __init__(self, store: IssueStore, client: httpx.AsyncClient | None = None):
        self.store = store
        self.client = client

    async def sync_project_issues(
        self,
        project_id: int,
        owner: str,
        repo: str,
        token: str | None,
        state: str = "all",
    ) -> SyncResult:
        """Run one sync pass. Never raises for upstream failures; see ``SyncResult.error``.

        Safe to repeat: every item is upserted on (project_id, issue_number),
        new issues land in the backlog and closed issues are forced to "done".
        """
        if not owner or not repo:
            raise ValueError("owner and repo are required to sync issues")

        result = SyncResult()
        try:
            items, result.authenticated = await self._fetch_issues(owner, repo, token, state)
        except (httpx.HTTPError, ValueError) as e:
            result.error = describe_github_error(e, f"list issues of {owner}/{repo}")
            log.warning("GitHub issue sync failed", project_id=project_id, owner=owner, repo=repo, error=result.error)
            return result

        for item in items:
            number = item.get("number") if isinstance(item, dict) else None
            if not isinstance(number, int):
                result.skipped_malformed += 1
                log.warning("Skipping GitHub issue without a number", project_id=project_id, owner=owner, repo=repo)
                continue

            # Issues and pull requests share numbering upstream
            if item.get("pull_request"):
                result.skipped_pull_requests += 1
                continue

            fields = issue_fields(item)
            self.store.upsert_issue(
                project_id,
                number,
                fields,
                force_done=fields["state"] == STATE_CLOSED,
            )
            result.synced += 1

        log.info(
            "GitHub issue sync completed",
            project_id=project_id,
            owner=owner,
            repo=repo,
            synced=result.synced,
            skipped_pull_requests=result.skipped_pull_requests,
            skipped_malformed=result.skipped_malformed,
            authenticated=result.authenticated,
        )
        return result

    async def _fetch_issues(self, owner: str, repo: str, token: str | None, state: str) -> tuple[list[dict], bool]:
        gh = GitHubClient(token, client=self.client)
        if not gh.authenticated:
            log.info("No GitHub token, using public API", owner=owner, repo=repo)
            return await gh.list_issues(owner, repo, state=state), False

        try:
            return await gh.list_issues(owner, repo, state=state), True
        except httpx.HTTPStatusError as e:
            if e.response.status_code not in AUTH_FAILURE_CODES:
                raise
            log.info(
                "Authenticated request rejected, falling back to public API",
                owner=owner,
                repo=repo,
                status_code=e.response.status_code,
            )
        return await gh.anonymous().list_issues(owner, repo, state=state), False

    # Board queries over the mirror

    def list_backlog(self, project_ids: Iterable[int]) -> list[GitHubIssue]:
        return self.store.list_backlog(project_ids)

    def list_for_sprint(self, sprint_id: int) -> list[GitHubIssue]:
        return self.store.list_for_sprint(sprint_id)

    def set_status(self, issue_id: int, status: str) -> GitHubIssue:
        if status == STATUS_DONE:
            raise ValidationError("Issues can only be moved to 'done' by closing them on GitHub.")
        if status not in USER_SETTABLE_STATUSES:
            raise ValidationError(f"Invalid status '{status}'. Use one of: {', '.join(USER_SETTABLE_STATUSES)}")

        issue = self.store.get_issue(issue_id)
        if not issue:
            raise NotFoundError("Issue not found")

        if issue.state == STATE_CLOSED or issue.status == STATUS_DONE:
            raise ValidationError("Closed issues cannot be moved.")

        return self.store.save_issue(issue, status=status)
