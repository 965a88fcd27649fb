# scrumboard/models/__init__.py
from scrumboard.models.user import User
from scrumboard.models.github_account import GitHubAccount
from scrumboard.models.classroom import Classroom, ClassTeacher, ClassRequest
from scrumboard.models.team import Team, TeamMember, Project
from scrumboard.models.sprint import Sprint, Standup, Retrospective
from scrumboard.models.github_issue import GitHubIssue

__all__ = [
    "User",
    "GitHubAccount",
    "Classroom",
    "ClassTeacher",
    "ClassRequest",
    "Team",
    "TeamMember",
    "Project",
    "Sprint",
    "Standup",
    "Retrospective",
    "GitHubIssue",
]
