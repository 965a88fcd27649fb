# scrumboard/models/github_issue.py
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Text, JSON, UniqueConstraint
from scrumboard.core.db import Base
from scrumboard.models.common import utcnow

STATE_OPEN = "open"
STATE_CLOSED = "closed"

STATUS_TODO = "todo"
STATUS_IN_PROGRESS = "in_progress"
STATUS_DONE = "done"


class GitHubIssue(Base):
    """Local mirror of an upstream issue (or a local-only issue)."""

    __tablename__ = "github_issues"
    __table_args__ = (UniqueConstraint("project_id", "issue_number", name="uq_github_issues_project_number"),)

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    sprint_id = Column(Integer, ForeignKey("sprints.id", ondelete="SET NULL"), nullable=True, index=True)  # NULL = backlog

    issue_number = Column(Integer, nullable=False)
    title = Column(String, nullable=False)
    body = Column(Text, nullable=True)
    state = Column(String, nullable=False, default=STATE_OPEN)      # upstream: open, closed
    status = Column(String, nullable=False, default=STATUS_TODO)    # board: todo, in_progress, done
    html_url = Column(String, nullable=False, default="")           # "" for local-only issues

    labels = Column(JSON, nullable=True)
    assignees = Column(JSON, nullable=True)

    github_created_at = Column(DateTime, nullable=True)
    github_updated_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
