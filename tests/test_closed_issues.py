"""Tests for the "closed by me since yesterday" query."""

from datetime import datetime, timedelta, timezone

import httpx
import pytest

from scrumboard.services.closed_issues import closed_by_user_since, yesterday_start

EVENTS_PATH = "/repos/acme/board/issues/events"
SINCE = datetime(2024, 3, 4)


def event(kind: str, actor: str | None, created_at: str, number: int, title: str = "") -> dict:
    return {
        "event": kind,
        "actor": {"login": actor} if actor else None,
        "created_at": created_at,
        "issue": {
            "number": number,
            "title": title or f"Issue {number}",
            "html_url": f"https://github.com/acme/board/issues/{number}",
        },
    }


class TestClosedByUserSince:
    @pytest.mark.asyncio
    async def test_filters_by_kind_actor_and_window(self, github, http_client) -> None:
        github.add(
            "GET",
            EVENTS_PATH,
            json=[
                event("closed", "OctoCat", "2024-03-04T09:00:00Z", 7, "Login page"),
                event("closed", "hubot", "2024-03-04T10:00:00Z", 8),
                event("reopened", "octocat", "2024-03-04T11:00:00Z", 9),
                event("closed", "octocat", "2024-03-03T23:59:59Z", 10),
                event("closed", None, "2024-03-04T12:00:00Z", 11),
            ],
        )

        records = await closed_by_user_since("acme", "board", "tok", "octocat", SINCE, client=http_client)

        assert [r.number for r in records] == [7]
        (record,) = records
        assert record.title == "Login page"
        assert record.closed_by == "OctoCat"
        assert record.closed_at == datetime(2024, 3, 4, 9)
        assert record.to_dict()["closed_at"] == "2024-03-04T09:00:00Z"

    @pytest.mark.asyncio
    async def test_window_start_is_inclusive(self, github, http_client) -> None:
        github.add("GET", EVENTS_PATH, json=[event("closed", "octocat", "2024-03-04T00:00:00Z", 3)])

        records = await closed_by_user_since("acme", "board", "tok", "octocat", SINCE, client=http_client)

        assert [r.number for r in records] == [3]

    @pytest.mark.asyncio
    async def test_reclosed_issue_appears_once(self, github, http_client) -> None:
        github.add(
            "GET",
            EVENTS_PATH,
            json=[
                event("closed", "octocat", "2024-03-04T15:00:00Z", 5),
                event("reopened", "octocat", "2024-03-04T12:00:00Z", 5),
                event("closed", "octocat", "2024-03-04T09:00:00Z", 5),
            ],
        )

        records = await closed_by_user_since("acme", "board", "tok", "octocat", SINCE, client=http_client)

        assert len(records) == 1
        assert records[0].closed_at == datetime(2024, 3, 4, 15)

    @pytest.mark.asyncio
    async def test_uses_configured_page_size(self, github, http_client) -> None:
        github.add("GET", EVENTS_PATH, json=[])

        await closed_by_user_since("acme", "board", "tok", "octocat", SINCE, client=http_client, per_page=30)

        (request,) = github.calls("GET", EVENTS_PATH)
        assert request.url.params["per_page"] == "30"
        assert request.headers["Authorization"] == "Bearer tok"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [401, 404, 500])
    async def test_upstream_error_yields_empty_list(self, github, http_client, status) -> None:
        github.add("GET", EVENTS_PATH, json={"message": "nope"}, status=status)

        assert await closed_by_user_since("acme", "board", "tok", "octocat", SINCE, client=http_client) == []

    @pytest.mark.asyncio
    async def test_network_error_yields_empty_list(self, github, http_client) -> None:
        github.fail("GET", EVENTS_PATH, httpx.ReadTimeout("timed out"))

        assert await closed_by_user_since("acme", "board", "tok", "octocat", SINCE, client=http_client) == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(200, text="<html>captive portal</html>"),
            httpx.Response(200, json={"message": "unexpected"}),
        ],
    )
    async def test_unreadable_body_yields_empty_list(self, github, http_client, response) -> None:
        github.add("GET", EVENTS_PATH, handler=lambda request: response)

        assert await closed_by_user_since("acme", "board", "tok", "octocat", SINCE, client=http_client) == []

    @pytest.mark.asyncio
    async def test_malformed_events_are_ignored(self, github, http_client) -> None:
        github.add(
            "GET",
            EVENTS_PATH,
            json=["garbage", None, event("closed", "octocat", "2024-03-04T09:00:00Z", 7)],
        )

        records = await closed_by_user_since("acme", "board", "tok", "octocat", SINCE, client=http_client)

        assert [r.number for r in records] == [7]

    @pytest.mark.asyncio
    async def test_without_token_makes_no_request(self, github, http_client) -> None:
        assert await closed_by_user_since("acme", "board", None, "octocat", SINCE, client=http_client) == []
        assert github.requests == []


class TestYesterdayStart:
    def test_naive_input(self) -> None:
        assert yesterday_start(datetime(2024, 3, 5, 8, 30)) == datetime(2024, 3, 4)

    def test_aware_input_is_converted_to_utc(self) -> None:
        now = datetime(2024, 3, 5, 1, 0, tzinfo=timezone(timedelta(hours=3)))
        # 01:00+03:00 is 22:00 UTC on the 4th
        assert yesterday_start(now) == datetime(2024, 3, 3)

    def test_month_boundary(self) -> None:
        assert yesterday_start(datetime(2024, 3, 1, 0, 0)) == datetime(2024, 2, 29)
