# scrumboard/services/closed_issues.py
"""Issues a GitHub user closed recently, used to prefill the "yesterday" field of a standup."""
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta, timezone

import httpx
import structlog

from scrumboard.core.config import settings
from scrumboard.github_client import GitHubClient
from scrumboard.models.common import parse_github_datetime

log = structlog.get_logger()


@dataclass
class ClosedIssueRecord:
    number: int
    title: str
    html_url: str
    closed_at: datetime
    closed_by: str

    def to_dict(self) -> dict:
        data = asdict(self)
        data["closed_at"] = self.closed_at.isoformat() + "Z"
        return data


def yesterday_start(now: datetime | None = None) -> datetime:
    """00:00 UTC of the previous day, as naive UTC."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc).replace(tzinfo=None)
    return datetime(now.year, now.month, now.day) - timedelta(days=1)


async def closed_by_user_since(
    owner: str,
    repo: str,
    token: str | None,
    username: str,
    since: datetime,
    client: httpx.AsyncClient | None = None,
    per_page: int | None = None,
) -> list[ClosedIssueRecord]:
    """Issues closed by ``username`` at or after ``since`` (naive UTC).

    Reads a single page of the repository's issue-event stream, so older
    closures on busy repositories are missed. Any failure yields an empty list.
    """
    if not token or not username:
        return []

    gh = GitHubClient(token, client=client)
    try:
        events = await gh.list_issue_events(owner, repo, per_page=per_page or settings.CLOSED_EVENTS_PAGE_SIZE)
    except (httpx.HTTPError, ValueError) as e:
        log.info("Could not fetch issue events", owner=owner, repo=repo, error=str(e))
        return []

    wanted = username.lower()
    seen: set[int] = set()
    records: list[ClosedIssueRecord] = []
    for event in events:
        if not isinstance(event, dict) or event.get("event") != "closed":
            continue
        actor = (event.get("actor") or {}).get("login") or ""
        if actor.lower() != wanted:
            continue
        closed_at = parse_github_datetime(event.get("created_at"))
        if closed_at is None or closed_at < since:
            continue
        issue = event.get("issue") or {}
        number = issue.get("number")
        if number is None or number in seen:
            continue
        seen.add(number)
        records.append(
            ClosedIssueRecord(
                number=number,
                title=issue.get("title") or "",
                html_url=issue.get("html_url") or "",
                closed_at=closed_at,
                closed_by=actor,
            )
        )
    return records
