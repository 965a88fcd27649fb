# scrumboard/api/deps.py
import httpx
from fastapi import Depends
from sqlalchemy.orm import Session

from scrumboard.core.db import get_db
from scrumboard.services.github_token_service import TokenProvider
from scrumboard.services.issue_actions import IssueActions
from scrumboard.services.issue_sync import IssueSyncEngine
from scrumboard.services.stores import SqlCredentialStore, SqlIssueStore


def get_http_client() -> httpx.AsyncClient | None:
    # None = services open a short-lived client per GitHub call
    return None


def get_token_provider(
    db: Session = Depends(get_db),
    client: httpx.AsyncClient | None = Depends(get_http_client),
) -> TokenProvider:
    return TokenProvider(SqlCredentialStore(db), client=client)


def get_sync_engine(
    db: Session = Depends(get_db),
    client: httpx.AsyncClient | None = Depends(get_http_client),
) -> IssueSyncEngine:
    return IssueSyncEngine(SqlIssueStore(db), client=client)


def get_issue_actions(
    db: Session = Depends(get_db),
    client: httpx.AsyncClient | None = Depends(get_http_client),
) -> IssueActions:
    return IssueActions(SqlIssueStore(db), client=client)
