# scrumboard/services/issue_actions.py
import json
from dataclasses import dataclass

import httpx
import structlog

from scrumboard.core.errors import NotFoundError, ValidationError
from scrumboard.github_client import GitHubClient, describe_github_error
from scrumboard.models import GitHubIssue, Project
from scrumboard.models.github_issue import STATE_CLOSED, STATE_OPEN, STATUS_DONE, STATUS_TODO
from scrumboard.services.issue_sync import issue_fields
from scrumboard.services.stores import IssueStore

log = structlog.get_logger()


@dataclass
class ActionResult:
    """Local outcome of an action plus a warning when GitHub could not be updated."""

    issue: GitHubIssue | None
    warning: str | None = None


def issue_assignee_logins(issue: GitHubIssue) -> list[str]:
    """GitHub logins assigned to an issue. Unparseable metadata counts as no assignees."""
    value = issue.assignees
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            return []
    if not isinstance(value, list):
        return []
    return [a["login"] for a in value if isinstance(a, dict) and isinstance(a.get("login"), str)]


class IssueActions:
    """User-initiated changes to mirrored issues, mirrored to GitHub where a repository is linked."""

    def __init__(self, store: IssueStore, client: httpx.AsyncClient | None = None):
        self.store = store
        self.client = client

    def _get(self, issue_id: int) -> GitHubIssue:
        issue = self.store.get_issue(issue_id)
        if not issue:
            raise NotFoundError("Issue not found")
        return issue

    def assign_to_sprint(self, issue_id: int, sprint_id: int | None) -> GitHubIssue:
        issue = self._get(issue_id)
        fields = {"sprint_id": sprint_id}
        if issue.state != STATE_CLOSED:
            fields["status"] = STATUS_TODO
        return self.store.save_issue(issue, **fields)

    def create_local_issue(self, project_id: int, title: str, body: str | None = None) -> GitHubIssue:
        issue = GitHubIssue(
            project_id=project_id,
            sprint_id=None,
            issue_number=self.store.next_local_issue_number(project_id),
            title=title,
            body=body or None,
            state=STATE_OPEN,
            status=STATUS_TODO,
            html_url="",
            labels=[],
            assignees=[],
        )
        return self.store.add_issue(issue)

    async def create_issue(self, project: Project, title: str, body: str | None, token: str | None) -> ActionResult:
        if not title or not title.strip():
            raise ValidationError("Title is required")

        if not project.has_repository:
            return ActionResult(self.create_local_issue(project.id, title, body))

        if not token:
            issue = self.create_local_issue(project.id, title, body)
            return ActionResult(issue, "No GitHub connection; the issue was only created locally.")

        gh = GitHubClient(token, client=self.client)
        try:
            item = await gh.create_issue(project.repository_owner, project.repository_name, title, body)
            number = int(item["number"])
        except (httpx.HTTPError, ValueError, KeyError, TypeError) as e:
            warning = describe_github_error(e, "create the issue") + "; the issue was only created locally."
            log.warning("Creating GitHub issue failed", project_id=project.id, error=warning)
            return ActionResult(self.create_local_issue(project.id, title, body), warning)

        fields = issue_fields(item)
        self.store.upsert_issue(project.id, number, fields, force_done=fields["state"] == STATE_CLOSED)
        issue = next(i for i in self.store.list_for_project(project.id) if i.issue_number == number)
        return ActionResult(issue)

    def update_issue(self, issue_id: int, title: str | None = None, body: str | None = None) -> GitHubIssue:
        issue = self._get(issue_id)
        fields = {}
        if title is not None:
            if not title.strip():
                raise ValidationError("Title cannot be empty")
            fields["title"] = title
        if body is not None:
            fields["body"] = body or None
        if not fields:
            return issue
        return self.store.save_issue(issue, **fields)

    async def close_issue(self, issue_id: int, project: Project, token: str | None) -> ActionResult:
        """Close upstream when possible; the local issue is closed either way."""
        issue = self._get(issue_id)
        if issue.state == STATE_CLOSED:
            return ActionResult(issue)

        warning = None
        if project.has_repository and issue.html_url:
            if not token:
                warning = "No GitHub connection; the issue was only closed locally."
            else:
                gh = GitHubClient(token, client=self.client)
                try:
                    await gh.close_issue(project.repository_owner, project.repository_name, issue.issue_number)
                except (httpx.HTTPError, ValueError) as e:
                    warning = describe_github_error(e, "close the issue") + "; the issue was only closed locally."
                    log.warning("Closing GitHub issue failed", issue_id=issue_id, error=warning)

        issue = self.store.save_issue(issue, state=STATE_CLOSED, status=STATUS_DONE)
        return ActionResult(issue, warning)

    def delete_issue(self, issue_id: int) -> None:
        self.store.delete_issue(self._get(issue_id))
