import os

# Keep the app's module-level engine off the filesystem
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import datetime, timedelta
from typing import Any, Callable

import httpx
import pytest
from sqlalchemy.pool import StaticPool

from scrumboard.core.db import Base, make_engine, make_session_factory
from scrumboard.models import (
    ClassTeacher,
    Classroom,
    GitHubAccount,
    Project,
    Sprint,
    Team,
    TeamMember,
    User,
)
from scrumboard.models.user import ROLE_STUDENT, ROLE_TEACHER


@pytest.fixture
def db():
    engine = make_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    session = make_session_factory(engine)()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


Handler = Callable[[httpx.Request], httpx.Response]


class FakeGitHub:
    """Routes requests by (method, path) and records everything it receives."""

    def __init__(self):
        self.routes: dict[tuple[str, str], Handler] = {}
        self.requests: list[httpx.Request] = []

    def add(self, method: str, path: str, json: Any = None, status: int = 200, handler: Handler | None = None):
        if handler is None:
            def handler(request: httpx.Request, _json=json, _status=status) -> httpx.Response:
                return httpx.Response(_status, json=_json)
        self.routes[(method, path)] = handler

    def fail(self, method: str, path: str, exc: Exception):
        def handler(request: httpx.Request) -> httpx.Response:
            raise exc
        self.routes[(method, path)] = handler

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes.get((request.method, request.url.path))
        if handler is None:
            return httpx.Response(404, json={"message": "Not Found"})
        return handler(request)

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]


@pytest.fixture
def github() -> FakeGitHub:
    return FakeGitHub()


@pytest.fixture
def http_client(github: FakeGitHub) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(github))


def github_issue(number: int, title: str, state: str = "open", pull_request: bool = False, **extra) -> dict:
    item = {
        "number": number,
        "title": title,
        "body": extra.pop("body", None),
        "state": state,
        "html_url": f"https://github.com/acme/board/issues/{number}",
        "labels": extra.pop("labels", []),
        "assignees": extra.pop("assignees", []),
        "created_at": "2024-03-01T10:00:00Z",
        "updated_at": extra.pop("updated_at", "2024-03-02T10:00:00Z"),
    }
    if pull_request:
        item["pull_request"] = {"url": f"https://api.github.com/repos/acme/board/pulls/{number}"}
    item.update(extra)
    return item


def make_user(db, name: str, role: str = ROLE_STUDENT, login: str | None = None, class_id: int | None = None) -> User:
    user = User(name=name, role=role, github_login=login, class_id=class_id)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def make_account(db, user: User, **fields) -> GitHubAccount:
    account = GitHubAccount(user_id=user.id, provider="github", **fields)
    db.add(account)
    db.commit()
    db.refresh(account)
    return account


@pytest.fixture
def classroom(db):
    """A class with a teacher, one team/project linked to acme/board, a student member and an active sprint."""
    teacher = make_user(db, "Teacher", role=ROLE_TEACHER, login="teach")
    cls = Classroom(name="Scrum 101", teacher_id=teacher.id)
    db.add(cls)
    db.commit()
    db.add(ClassTeacher(class_id=cls.id, teacher_id=teacher.id))
    student = make_user(db, "Student", login="octocat", class_id=cls.id)

    team = Team(name="Team A", class_id=cls.id)
    db.add(team)
    db.commit()
    project = Project(
        team_id=team.id,
        name="Team A Project",
        repository_url="https://github.com/acme/board",
        repository_owner="acme",
        repository_name="board",
    )
    db.add(project)
    db.add(TeamMember(team_id=team.id, user_id=student.id))
    db.commit()

    now = datetime(2024, 3, 1)
    sprint = Sprint(project_id=project.id, name="Sprint 1", start_date=now, end_date=now + timedelta(days=14), status="active")
    db.add(sprint)
    db.commit()

    return {"teacher": teacher, "student": student, "class": cls, "team": team, "project": project, "sprint": sprint}
