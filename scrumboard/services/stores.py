# scrumboard/services/stores.py
"""Record-store interfaces the GitHub services depend on, plus their SQLAlchemy implementations."""
from typing import Any, Iterable, Protocol

from sqlalchemy import func
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from scrumboard.models import GitHubAccount, GitHubIssue
from scrumboard.models.common import utcnow
from scrumboard.models.github_issue import STATUS_DONE, STATUS_TODO


class CredentialStore(Protocol):
    def find_credential(self, user_id: int, provider: str) -> GitHubAccount | None: ...

    def update_credential(self, credential: GitHubAccount, **fields: Any) -> None: ...


class IssueStore(Protocol):
    def upsert_issue(self, project_id: int, issue_number: int, fields: dict[str, Any], force_done: bool) -> None: ...

    def get_issue(self, issue_id: int) -> GitHubIssue | None: ...

    def list_backlog(self, project_ids: Iterable[int]) -> list[GitHubIssue]: ...

    def list_for_sprint(self, sprint_id: int) -> list[GitHubIssue]: ...

    def list_for_project(self, project_id: int) -> list[GitHubIssue]: ...

    def next_local_issue_number(self, project_id: int) -> int: ...

    def add_issue(self, issue: GitHubIssue) -> GitHubIssue: ...

    def save_issue(self, issue: GitHubIssue, **fields: Any) -> GitHubIssue: ...

    def delete_issue(self, issue: GitHubIssue) -> None: ...


class SqlCredentialStore:
    def __init__(self, db: Session):
        self.db = db

    def find_credential(self, user_id: int, provider: str) -> GitHubAccount | None:
        # At most one row per (user, provider); first match is canonical
        return (
            self.db.query(GitHubAccount)
            .filter(GitHubAccount.user_id == user_id, GitHubAccount.provider == provider)
            .order_by(GitHubAccount.id)
            .first()
        )

    def update_credential(self, credential: GitHubAccount, **fields: Any) -> None:
        for key, value in fields.items():
            setattr(credential, key, value)
        self.db.commit()


def _insert_for(db: Session):
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert
    if dialect == "sqlite":
        return sqlite.insert
    raise NotImplementedError(f"Issue upsert is not supported on {dialect}")


class SqlIssueStore:
    def __init__(self, db: Session):
        self.db = db

    def upsert_issue(self, project_id: int, issue_number: int, fields: dict[str, Any], force_done: bool) -> None:
        """Insert or update the mirror row keyed on (project_id, issue_number) in one statement.

        New rows always land in the backlog. Existing rows keep their sprint and,
        unless ``force_done`` is set, their board status.
        """
        now = utcnow()
        insert = _insert_for(self.db)
        stmt = insert(GitHubIssue).values(
            project_id=project_id,
            issue_number=issue_number,
            sprint_id=None,
            status=STATUS_DONE if force_done else STATUS_TODO,
            created_at=now,
            updated_at=now,
            **fields,
        )

        update = {key: stmt.excluded[key] for key in fields if key != "github_created_at"}
        update["updated_at"] = now
        if force_done:
            update["status"] = STATUS_DONE

        stmt = stmt.on_conflict_do_update(index_elements=["project_id", "issue_number"], set_=update)
        self.db.execute(stmt)
        self.db.commit()
        # Rows loaded earlier in this session are stale after a core-level write
        self.db.expire_all()

    def get_issue(self, issue_id: int) -> GitHubIssue | None:
        return self.db.query(GitHubIssue).filter(GitHubIssue.id == issue_id).first()

    def list_backlog(self, project_ids: Iterable[int]) -> list[GitHubIssue]:
        project_ids = list(project_ids)
        if not project_ids:
            return []
        return (
            self.db.query(GitHubIssue)
            .filter(GitHubIssue.project_id.in_(project_ids), GitHubIssue.sprint_id.is_(None))
            .order_by(GitHubIssue.created_at.desc(), GitHubIssue.id.desc())
            .all()
        )

    def list_for_sprint(self, sprint_id: int) -> list[GitHubIssue]:
        return (
            self.db.query(GitHubIssue)
            .filter(GitHubIssue.sprint_id == sprint_id)
            .order_by(GitHubIssue.issue_number.asc())
            .all()
        )

    def list_for_project(self, project_id: int) -> list[GitHubIssue]:
        return (
            self.db.query(GitHubIssue)
            .filter(GitHubIssue.project_id == project_id)
            .order_by(GitHubIssue.issue_number.asc())
            .all()
        )

    def next_local_issue_number(self, project_id: int) -> int:
        current = (
            self.db.query(func.max(GitHubIssue.issue_number))
            .filter(GitHubIssue.project_id == project_id)
            .scalar()
        )
        return (current or 0) + 1

    def add_issue(self, issue: GitHubIssue) -> GitHubIssue:
        self.db.add(issue)
        self.db.commit()
        self.db.refresh(issue)
        return issue

    def save_issue(self, issue: GitHubIssue, **fields: Any) -> GitHubIssue:
        for key, value in fields.items():
            setattr(issue, key, value)
        self.db.commit()
        self.db.refresh(issue)
        return issue

    def delete_issue(self, issue: GitHubIssue) -> None:
        # Detach from the sprint first, then remove, in one transaction
        issue.sprint_id = None
        self.db.flush()
        self.db.delete(issue)
        self.db.commit()
