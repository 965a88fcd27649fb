import json

import httpx
import pytest

from scrumboard.github_client import GitHubClient, describe_github_error


def status_error(status: int, payload=None, content: bytes | None = None) -> httpx.HTTPStatusError:
    request = httpx.Request("GET", "https://api.github.com/repos/acme/board/issues")
    response = httpx.Response(status, json=payload, content=content, request=request)
    return httpx.HTTPStatusError("error", request=request, response=response)


class TestDescribeGitHubError:
    def test_rejection_includes_status_and_message(self) -> None:
        msg = describe_github_error(status_error(404, payload={"message": "Not Found"}), "sync issues")
        assert msg == "GitHub rejected the request to sync issues (status 404): Not Found"

    def test_rejection_without_json_body(self) -> None:
        msg = describe_github_error(status_error(502, content=b"<html>Bad gateway</html>"), "sync issues")
        assert msg == "GitHub rejected the request to sync issues (status 502)"

    def test_unreachable(self) -> None:
        msg = describe_github_error(httpx.ConnectError("dns failure"), "sync issues")
        assert msg.startswith("Could not reach GitHub to sync issues")
        assert "ConnectError" in msg


class TestGitHubClient:
    @pytest.mark.asyncio
    async def test_anonymous_drops_credentials(self, github, http_client) -> None:
        github.add("GET", "/user", json={"login": "octocat"})
        gh = GitHubClient("tok", client=http_client)

        assert gh.authenticated
        assert not gh.anonymous().authenticated
        await gh.anonymous().get_authenticated_user()

        (request,) = github.calls("GET", "/user")
        assert "Authorization" not in request.headers

    @pytest.mark.asyncio
    async def test_create_issue_omits_empty_body(self, github, http_client) -> None:
        github.add("POST", "/repos/acme/board/issues", json={"number": 1}, status=201)

        await GitHubClient("tok", client=http_client).create_issue("acme", "board", "Title", "")

        (request,) = github.calls("POST", "/repos/acme/board/issues")
        assert json.loads(request.content) == {"title": "Title"}
