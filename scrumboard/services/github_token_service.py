# scrumboard/services/github_token_service.py
import time
from typing import Callable

import httpx
import structlog

from scrumboard.core.config import settings
from scrumboard.github_client import GitHubClient
from scrumboard.models.github_account import GITHUB_PROVIDER
from scrumboard.services.stores import CredentialStore

log = structlog.get_logger()


class TokenProvider:
    """Hands out a currently valid GitHub access token for a user, refreshing it when expired.

    ``None`` is the normal "not connected" answer: no account, no token, no
    refresh token, or a refresh that failed. Callers degrade instead of failing.

    Concurrent refreshes for the same user are not serialized. GitHub rotates
    the refresh token on use, so the losing request gets ``None`` and the next
    request sees the tokens persisted by the winner.
    """

    def __init__(
        self,
        store: CredentialStore,
        client: httpx.AsyncClient | None = None,
        clock: Callable[[], float] = time.time,
        client_id: str | None = None,
        client_secret: str | None = None,
    ):
        self.store = store
        self.client = client
        self.clock = clock
        self.client_id = client_id if client_id is not None else settings.GITHUB_CLIENT_ID
        self.client_secret = client_secret if client_secret is not None else settings.GITHUB_CLIENT_SECRET

    async def get_valid_token(self, user_id: int) -> str | None:
        account = self.store.find_credential(user_id, GITHUB_PROVIDER)
        if not account:
            log.info("No GitHub account found for user", user_id=user_id)
            return None

        if not account.access_token:
            log.info("No access token found for GitHub account", user_id=user_id)
            return None

        now = int(self.clock())
        if account.expires_at is None or account.expires_at >= now:
            return account.access_token

        log.info("GitHub access token expired, refreshing", user_id=user_id, expired_at=account.expires_at)
        if not account.refresh_token:
            log.info("No refresh token available, cannot refresh", user_id=user_id)
            return None

        data = await self._exchange_refresh_token(account.refresh_token, user_id)
        if data is None:
            return None

        # GitHub answers 200 even when the exchange failed
        if data.get("error"):
            log.warning(
                "GitHub token refresh rejected",
                user_id=user_id,
                error=data.get("error"),
                error_description=data.get("error_description"),
            )
            return None

        access_token = data.get("access_token")
        if not access_token:
            log.warning("No access token in refresh response", user_id=user_id)
            return None

        expires_in = data.get("expires_in")
        self.store.update_credential(
            account,
            access_token=access_token,
            expires_at=int(self.clock()) + int(expires_in) if expires_in else None,
            # Refresh tokens rotate: the old one is now spent
            refresh_token=data.get("refresh_token") or account.refresh_token,
            refresh_token_expires_in=data.get("refresh_token_expires_in"),
        )
        log.info("Refreshed GitHub access token", user_id=user_id)
        return access_token

    async def _exchange_refresh_token(self, refresh_token: str, user_id: int) -> dict | None:
        url = f"{settings.GITHUB_OAUTH_URL}/access_token"
        payload = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
        }
        headers = {"Accept": "application/json"}
        try:
            if self.client:
                resp = await self.client.post(url, json=payload, headers=headers)
            else:
                async with httpx.AsyncClient() as client:
                    resp = await client.post(url, json=payload, headers=headers)
            return resp.json()
        except (httpx.HTTPError, ValueError) as e:
            log.warning("Error refreshing GitHub token", user_id=user_id, error=str(e))
            return None

    async def get_github_username(self, user_id: int) -> str | None:
        token = await self.get_valid_token(user_id)
        if not token:
            return None

        try:
            data = await GitHubClient(token, client=self.client).get_authenticated_user()
        except httpx.HTTPError as e:
            log.info("Could not fetch GitHub identity", user_id=user_id, error=str(e))
            return None
        return data.get("login")
