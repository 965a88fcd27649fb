# scrumboard/github_client.py
import httpx

from scrumboard.core.config import settings

GITHUB_ACCEPT = "application/vnd.github.v3+json"


class GitHubClient:
    def __init__(self, token: str | None = None, client: httpx.AsyncClient | None = None, base_url: str | None = None):
        self.base_url = (base_url or settings.GITHUB_API_URL).rstrip("/")

        # If caller passed an AsyncClient, reuse it; otherwise use ad-hoc clients per request.
        self.client = client

        self.authenticated = bool(token)
        self.headers = {"Accept": GITHUB_ACCEPT}
        if token:
            self.headers["Authorization"] = f"Bearer {token}"

    def anonymous(self) -> "GitHubClient":
        """Same transport, no credentials. Used to read public repositories."""
        return GitHubClient(None, client=self.client, base_url=self.base_url)

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        """Internal helper that uses either the provided client or a temporary one."""
        if not url.startswith("http"):
            url = f"{self.base_url}{url}"
        if self.client:
            resp = await self.client.request(method, url, headers=self.headers, **kwargs)
        else:
            async with httpx.AsyncClient() as client:
                resp = await client.request(method, url, headers=self.headers, **kwargs)
        resp.raise_for_status()
        return resp

    async def get_authenticated_user(self) -> dict:
        resp = await self._request("GET", "/user")
        return resp.json()

    async def list_issues(self, owner: str, repo: str, state: str = "all") -> list[dict]:
        """All issues of a repository, following Link pagination. Pull requests are included."""
        items: list[dict] = []
        url = f"/repos/{owner}/{repo}/issues"
        params: dict | None = {"state": state, "per_page": 100}
        while url:
            resp = await self._request("GET", url, params=params)
            page = resp.json()
            if not isinstance(page, list):
                raise ValueError("Expected a list of issues from GitHub")
            items.extend(page)
            # "next" links already carry the query string
            url = resp.links.get("next", {}).get("url")
            params = None
        return items

    async def list_issue_events(self, owner: str, repo: str, per_page: int = 100) -> list[dict]:
        # Single page only
        resp = await self._request("GET", f"/repos/{owner}/{repo}/issues/events", params={"per_page": per_page})
        events = resp.json()
        if not isinstance(events, list):
            raise ValueError("Expected a list of issue events from GitHub")
        return events

    async def create_issue(self, owner: str, repo: str, title: str, body: str | None = None) -> dict:
        payload = {"title": title}
        if body:
            payload["body"] = body
        resp = await self._request("POST", f"/repos/{owner}/{repo}/issues", json=payload)
        return resp.json()

    async def update_issue(self, owner: str, repo: str, issue_number: int, **fields) -> dict:
        resp = await self._request("PATCH", f"/repos/{owner}/{repo}/issues/{issue_number}", json=fields)
        return resp.json()

    async def close_issue(self, owner: str, repo: str, issue_number: int) -> dict:
        return await self.update_issue(owner, repo, issue_number, state="closed")


def describe_github_error(exc: Exception, action: str) -> str:
    """User-readable message that tells an unreachable GitHub apart from a rejected request."""
    if isinstance(exc, httpx.HTTPStatusError):
        resp = exc.response
        try:
            detail = resp.json().get("message")
        except (ValueError, AttributeError):
            detail = None
        msg = f"GitHub rejected the request to {action} (status {resp.status_code})"
        return f"{msg}: {detail}" if detail else msg
    if isinstance(exc, httpx.TransportError):
        return f"Could not reach GitHub to {action}; check the network connection ({exc.__class__.__name__})"
    if isinstance(exc, ValueError):
        return f"GitHub sent an unreadable response to {action}"
    return f"Failed to {action}: {exc}"
