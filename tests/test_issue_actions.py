"""Tests for user-initiated issue changes."""

import json

import httpx
import pytest

from conftest import github_issue
from scrumboard.core.errors import NotFoundError, ValidationError
from scrumboard.models import GitHubIssue, Project
from scrumboard.services.issue_actions import IssueActions, issue_assignee_logins
from scrumboard.services.issue_sync import IssueSyncEngine
from scrumboard.services.stores import SqlIssueStore


@pytest.fixture
def actions(db, http_client):
    return IssueActions(SqlIssueStore(db), client=http_client)


@pytest.fixture
def local_project(db, classroom):
    project = Project(team_id=classroom["team"].id, name="Offline")
    db.add(project)
    db.commit()
    return project


def add_issue(db, project, number, **fields):
    fields.setdefault("html_url", "")
    issue = GitHubIssue(project_id=project.id, issue_number=number, title=f"Issue {number}", **fields)
    db.add(issue)
    db.commit()
    return issue


class TestLocalIssues:
    def test_numbers_continue_above_current_max(self, db, local_project, actions) -> None:
        add_issue(db, local_project, 7)

        issue = actions.create_local_issue(local_project.id, "Write tests")

        assert issue.issue_number == 8
        assert issue.html_url == ""
        assert (issue.state, issue.status, issue.sprint_id) == ("open", "todo", None)

    def test_first_local_issue_is_number_one(self, local_project, actions) -> None:
        assert actions.create_local_issue(local_project.id, "First").issue_number == 1

    @pytest.mark.asyncio
    async def test_create_without_repository_stays_local(self, local_project, github, actions) -> None:
        result = await actions.create_issue(local_project, "Plan sprint", None, "tok")

        assert result.warning is None
        assert result.issue.html_url == ""
        assert github.requests == []

    @pytest.mark.asyncio
    async def test_create_requires_title(self, local_project, actions) -> None:
        with pytest.raises(ValidationError):
            await actions.create_issue(local_project, "  ", None, None)


class TestCreateUpstream:
    @pytest.mark.asyncio
    async def test_creates_on_github_and_mirrors(self, db, classroom, github, actions) -> None:
        github.add("POST", "/repos/acme/board/issues", json=github_issue(12, "Login page"), status=201)

        result = await actions.create_issue(classroom["project"], "Login page", "As a user...", "tok")

        assert result.warning is None
        assert result.issue.issue_number == 12
        assert result.issue.html_url == "https://github.com/acme/board/issues/12"
        assert result.issue.sprint_id is None
        (request,) = github.calls("POST", "/repos/acme/board/issues")
        assert json.loads(request.content) == {"title": "Login page", "body": "As a user..."}

    @pytest.mark.asyncio
    async def test_upstream_failure_falls_back_to_local(self, classroom, github, actions) -> None:
        github.add("POST", "/repos/acme/board/issues", json={"message": "Resource not accessible"}, status=403)

        result = await actions.create_issue(classroom["project"], "Login page", None, "tok")

        assert result.issue.html_url == ""
        assert "403" in result.warning
        assert "only created locally" in result.warning

    @pytest.mark.asyncio
    async def test_no_token_creates_locally_with_warning(self, classroom, github, actions) -> None:
        result = await actions.create_issue(classroom["project"], "Login page", None, None)

        assert result.issue.html_url == ""
        assert result.warning
        assert github.requests == []


class TestCloseIssue:
    @pytest.mark.asyncio
    async def test_closes_upstream_and_locally(self, db, classroom, github, actions) -> None:
        project = classroom["project"]
        issue = add_issue(db, project, 4, html_url="https://github.com/acme/board/issues/4", status="in_progress")
        github.add("PATCH", "/repos/acme/board/issues/4", json=github_issue(4, "x", state="closed"))

        result = await actions.close_issue(issue.id, project, "tok")

        assert result.warning is None
        assert (result.issue.state, result.issue.status) == ("closed", "done")
        (request,) = github.calls("PATCH", "/repos/acme/board/issues/4")
        assert json.loads(request.content) == {"state": "closed"}

    @pytest.mark.asyncio
    async def test_unreachable_github_closes_locally_with_warning(self, db, classroom, github, actions) -> None:
        project = classroom["project"]
        issue = add_issue(db, project, 4, html_url="https://github.com/acme/board/issues/4")
        github.fail("PATCH", "/repos/acme/board/issues/4", httpx.ConnectError("dns"))

        result = await actions.close_issue(issue.id, project, "tok")

        assert result.issue.status == "done"
        assert result.warning.startswith("Could not reach GitHub")

    @pytest.mark.asyncio
    async def test_unreadable_response_closes_locally_with_warning(self, db, classroom, github, actions) -> None:
        project = classroom["project"]
        issue = add_issue(db, project, 4, html_url="https://github.com/acme/board/issues/4")
        github.add(
            "PATCH",
            "/repos/acme/board/issues/4",
            handler=lambda request: httpx.Response(200, text="<html>captive portal</html>"),
        )

        result = await actions.close_issue(issue.id, project, "tok")

        assert result.issue.status == "done"
        assert "unreadable response" in result.warning

    @pytest.mark.asyncio
    async def test_sync_after_local_close_keeps_done(self, db, classroom, github, actions, http_client) -> None:
        project = classroom["project"]
        issue = add_issue(db, project, 4, html_url="https://github.com/acme/board/issues/4")
        github.add("PATCH", "/repos/acme/board/issues/4", json={})
        await actions.close_issue(issue.id, project, "tok")

        github.add("GET", "/repos/acme/board/issues", json=[github_issue(4, "Issue 4", state="closed")])
        await IssueSyncEngine(SqlIssueStore(db), client=http_client).sync_project_issues(project.id, "acme", "board", "tok")

        db.expire_all()
        assert db.get(GitHubIssue, issue.id).status == "done"


class TestDeleteAndAssign:
    def test_delete_detaches_from_sprint(self, db, classroom, actions) -> None:
        project, sprint = classroom["project"], classroom["sprint"]
        issue = add_issue(db, project, 1, sprint_id=sprint.id)
        other = add_issue(db, project, 2, sprint_id=sprint.id)

        actions.delete_issue(issue.id)

        store = SqlIssueStore(db)
        assert [i.id for i in store.list_for_sprint(sprint.id)] == [other.id]
        assert store.get_issue(issue.id) is None

    def test_delete_unknown_issue(self, actions) -> None:
        with pytest.raises(NotFoundError):
            actions.delete_issue(404)

    def test_assign_to_sprint_resets_status(self, db, classroom, actions) -> None:
        project, sprint = classroom["project"], classroom["sprint"]
        issue = add_issue(db, project, 1, status="in_progress")

        moved = actions.assign_to_sprint(issue.id, sprint.id)

        assert (moved.sprint_id, moved.status) == (sprint.id, "todo")

    def test_assign_closed_issue_keeps_done(self, db, classroom, actions) -> None:
        project, sprint = classroom["project"], classroom["sprint"]
        issue = add_issue(db, project, 1, state="closed", status="done")

        assert actions.assign_to_sprint(issue.id, sprint.id).status == "done"

    def test_update_issue(self, db, classroom, actions) -> None:
        issue = add_issue(db, classroom["project"], 1)

        updated = actions.update_issue(issue.id, title="Renamed", body="")

        assert (updated.title, updated.body) == ("Renamed", None)
        with pytest.raises(ValidationError):
            actions.update_issue(issue.id, title=" ")


class TestAssigneeLogins:
    @pytest.mark.parametrize(
        "assignees, expected",
        [
            ([{"login": "octocat"}, {"login": "hubot"}], ["octocat", "hubot"]),
            ('[{"login": "octocat"}]', ["octocat"]),
            ("not json", []),
            (None, []),
            ({"login": "octocat"}, []),
            ([{"id": 1}, "x", {"login": "ok"}], ["ok"]),
        ],
    )
    def test_tolerates_malformed_metadata(self, assignees, expected) -> None:
        issue = GitHubIssue(assignees=assignees)
        assert issue_assignee_logins(issue) == expected
