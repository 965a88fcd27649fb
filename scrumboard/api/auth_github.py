# scrumboard/api/auth_github.py
import secrets
import time
import urllib.parse

import httpx
import structlog
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from scrumboard.api.deps import get_http_client
from scrumboard.core.auth import Principal, get_current_principal
from scrumboard.core.config import settings
from scrumboard.core.db import get_db
from scrumboard.models import GitHubAccount, User
from scrumboard.models.github_account import GITHUB_PROVIDER

router = APIRouter(prefix="/auth/github", tags=["auth"])
log = structlog.get_logger()

# For now, we'll keep state in memory (single process only)
STATE_TOKENS = set()


def get_or_create_user_from_github(db: Session, github_user_data: dict) -> User:
    github_id = github_user_data.get("id")

    user = db.query(User).filter(User.github_id == github_id).first()
    if user:
        user.github_login = github_user_data.get("login")
        user.name = github_user_data.get("name") or user.name
        user.email = github_user_data.get("email") or user.email
        user.image = github_user_data.get("avatar_url") or user.image
    else:
        user = User(
            github_id=github_id,
            github_login=github_user_data.get("login"),
            name=github_user_data.get("name"),
            email=github_user_data.get("email"),
            image=github_user_data.get("avatar_url"),
        )
        db.add(user)

    db.commit()
    db.refresh(user)
    return user


def store_github_account(db: Session, user: User, token_data: dict) -> GitHubAccount:
    # One GitHub account row per user
    account = (
        db.query(GitHubAccount)
        .filter(GitHubAccount.user_id == user.id, GitHubAccount.provider == GITHUB_PROVIDER)
        .first()
    )
    if not account:
        account = GitHubAccount(user_id=user.id, provider=GITHUB_PROVIDER)
        db.add(account)

    expires_in = token_data.get("expires_in")
    account.provider_account_id = str(user.github_id) if user.github_id is not None else None
    account.access_token = token_data.get("access_token")
    account.refresh_token = token_data.get("refresh_token")
    account.expires_at = int(time.time()) + int(expires_in) if expires_in else None
    account.refresh_token_expires_in = token_data.get("refresh_token_expires_in")
    account.token_type = token_data.get("token_type")
    account.scope = token_data.get("scope")

    db.commit()
    return account


@router.get("/login")
def github_login():
    # 1. Generate random state token (protects against CSRF)
    state = secrets.token_urlsafe(16)
    STATE_TOKENS.add(state)

    # 2. Build GitHub authorization URL
    params = {
        "client_id": settings.GITHUB_CLIENT_ID,
        "redirect_uri": settings.GITHUB_OAUTH_CALLBACK_URL,
        "scope": settings.GITHUB_OAUTH_SCOPES,
        "state": state,
        "allow_signup": "true",
    }
    url = f"{settings.GITHUB_OAUTH_URL}/authorize?" + urllib.parse.urlencode(params)

    # 3. Redirect the user to GitHub OAuth
    return RedirectResponse(url)


@router.get("/callback")
async def github_callback(
    code: str | None = None,
    state: str | None = None,
    db: Session = Depends(get_db),
    client: httpx.AsyncClient | None = Depends(get_http_client),
):
    # 1. Validate state
    if not state or state not in STATE_TOKENS:
        raise HTTPException(status_code=400, detail="Invalid state")
    STATE_TOKENS.discard(state)

    if not code:
        raise HTTPException(status_code=400, detail="Missing code")

    # 2. Exchange code for access + refresh token
    data = {
        "client_id": settings.GITHUB_CLIENT_ID,
        "client_secret": settings.GITHUB_CLIENT_SECRET,
        "code": code,
        "redirect_uri": settings.GITHUB_OAUTH_CALLBACK_URL,
        "state": state,
    }
    http = client or httpx.AsyncClient()
    try:
        token_resp = await http.post(
            f"{settings.GITHUB_OAUTH_URL}/access_token", data=data, headers={"Accept": "application/json"}
        )
        token_resp.raise_for_status()
        token_data = token_resp.json()

        access_token = token_data.get("access_token")
        if not access_token:
            log.warning("GitHub code exchange failed", error=token_data.get("error"))
            raise HTTPException(status_code=400, detail="Failed to get access token")

        # 3. Use access_token to fetch user info from GitHub API
        user_resp = await http.get(
            f"{settings.GITHUB_API_URL}/user",
            headers={"Authorization": f"Bearer {access_token}", "Accept": "application/vnd.github+json"},
        )
        user_resp.raise_for_status()
        github_user_data = user_resp.json()
    finally:
        if client is None:
            await http.aclose()

    # 4. Store user + account in DB
    user = get_or_create_user_from_github(db, github_user_data)
    store_github_account(db, user, token_data)
    log.info("GitHub sign-in completed", user_id=user.id, login=user.github_login)

    response = RedirectResponse(url="/", status_code=302)
    response.set_cookie(key="user_id", value=str(user.id), httponly=True, samesite="lax")
    return response


@router.delete("")
def github_deauthorize(principal: Principal = Depends(get_current_principal), db: Session = Depends(get_db)):
    """Forget the caller's GitHub tokens. Signing in again reconnects."""
    deleted = (
        db.query(GitHubAccount)
        .filter(GitHubAccount.user_id == principal.id, GitHubAccount.provider == GITHUB_PROVIDER)
        .delete()
    )
    db.commit()
    log.info("GitHub account disconnected", user_id=principal.id, removed=deleted)
    return {"ok": True, "removed": deleted}
