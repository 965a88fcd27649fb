# scrumboard/api/schemas.py
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict


class IssueOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    project_id: int
    sprint_id: int | None = None
    issue_number: int
    title: str
    body: str | None = None
    state: str
    status: str
    html_url: str
    labels: Any = None
    assignees: Any = None
    github_created_at: datetime | None = None
    github_updated_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class IssueCreate(BaseModel):
    title: str
    body: str | None = None
    project_id: int | None = None


class IssueUpdate(BaseModel):
    title: str | None = None
    body: str | None = None


class IssueAssign(BaseModel):
    issue_id: int


class IssueStatusIn(BaseModel):
    issue_id: int
    status: str


class SprintCreate(BaseModel):
    project_id: int
    name: str
    goal: str | None = None
    start_date: datetime
    end_date: datetime
    status: str | None = None


class SprintOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    project_id: int
    name: str
    goal: str | None = None
    start_date: datetime
    end_date: datetime
    status: str


class StandupIn(BaseModel):
    yesterday: str
    today: str
    blockers: str | None = None


class StandupOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    sprint_id: int
    user_id: int
    date: datetime
    yesterday: str
    today: str
    blockers: str | None = None


class RetrospectiveIn(BaseModel):
    what_went_well: str
    what_can_improve: str
    action_items: str | None = None


class RetrospectiveOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    sprint_id: int
    user_id: int
    what_went_well: str
    what_can_improve: str
    action_items: str | None = None
    created_at: datetime


class ClassCreate(BaseModel):
    name: str
    description: str | None = None


class ClassOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str | None = None
    teacher_id: int | None = None


class JoinRequestIn(BaseModel):
    class_id: int


class RequestActionIn(BaseModel):
    action: str


class TeamCreate(BaseModel):
    name: str
    class_id: int
    description: str | None = None


class TeamMemberIn(BaseModel):
    user_id: int
    role: str = "member"


class RepositoryLinkIn(BaseModel):
    repository_url: str
    repository_owner: str
    repository_name: str


class ProjectOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    team_id: int
    name: str
    repository_url: str | None = None
    repository_owner: str | None = None
    repository_name: str | None = None


class ClassUpdate(BaseModel):
    name: str | None = None
    description: str | None = None


class TeamUpdate(BaseModel):
    name: str


class UserSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str | None = None
    email: str | None = None
    image: str | None = None
