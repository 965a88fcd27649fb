"""Tests for GitHub access-token lookup and refresh."""

import json

import httpx
import pytest

from conftest import make_account, make_user
from scrumboard.models import GitHubAccount
from scrumboard.services.github_token_service import TokenProvider
from scrumboard.services.stores import SqlCredentialStore

NOW = 1_700_000_000
TOKEN_PATH = "/login/oauth/access_token"


class CountingCredentialStore:
    """In-memory credential store that counts writes."""

    def __init__(self, accounts: list[GitHubAccount] | None = None):
        self.accounts = accounts or []
        self.writes = 0

    def find_credential(self, user_id, provider):
        return next((a for a in self.accounts if a.user_id == user_id and a.provider == provider), None)

    def update_credential(self, credential, **fields):
        self.writes += 1
        for key, value in fields.items():
            setattr(credential, key, value)


def expired_account(**overrides) -> GitHubAccount:
    fields = dict(
        user_id=1,
        provider="github",
        access_token="old-access",
        refresh_token="old-refresh",
        expires_at=NOW - 60,
    )
    fields.update(overrides)
    return GitHubAccount(**fields)


class TestGetValidToken:
    @pytest.mark.asyncio
    async def test_no_account_returns_none_without_writes(self, http_client) -> None:
        store = CountingCredentialStore()
        provider = TokenProvider(store, client=http_client, clock=lambda: NOW)

        assert await provider.get_valid_token(1) is None
        assert store.writes == 0

    @pytest.mark.asyncio
    async def test_account_without_access_token(self, http_client) -> None:
        store = CountingCredentialStore([expired_account(access_token=None)])
        provider = TokenProvider(store, client=http_client, clock=lambda: NOW)

        assert await provider.get_valid_token(1) is None

    @pytest.mark.asyncio
    async def test_unexpired_token_is_returned_unchanged(self, github, http_client) -> None:
        store = CountingCredentialStore([expired_account(expires_at=NOW + 3600)])
        provider = TokenProvider(store, client=http_client, clock=lambda: NOW)

        assert await provider.get_valid_token(1) == "old-access"
        assert store.writes == 0
        assert github.requests == []

    @pytest.mark.asyncio
    async def test_token_without_expiry_never_expires(self, github, http_client) -> None:
        store = CountingCredentialStore([expired_account(expires_at=None, refresh_token=None)])
        provider = TokenProvider(store, client=http_client, clock=lambda: NOW)

        assert await provider.get_valid_token(1) == "old-access"
        assert github.requests == []

    @pytest.mark.asyncio
    async def test_expired_without_refresh_token(self, github, http_client) -> None:
        store = CountingCredentialStore([expired_account(refresh_token=None)])
        provider = TokenProvider(store, client=http_client, clock=lambda: NOW)

        assert await provider.get_valid_token(1) is None
        assert github.requests == []

    @pytest.mark.asyncio
    async def test_refresh_rotates_and_persists_tokens(self, github, http_client) -> None:
        github.add(
            "POST",
            TOKEN_PATH,
            json={
                "access_token": "new-access",
                "expires_in": 28800,
                "refresh_token": "new-refresh",
                "refresh_token_expires_in": 15897600,
                "token_type": "bearer",
                "scope": "",
            },
        )
        account = expired_account()
        store = CountingCredentialStore([account])
        provider = TokenProvider(store, client=http_client, clock=lambda: NOW, client_id="cid", client_secret="sec")

        assert await provider.get_valid_token(1) == "new-access"

        assert store.writes == 1
        assert account.access_token == "new-access"
        assert account.refresh_token == "new-refresh"
        assert account.expires_at == NOW + 28800
        assert account.refresh_token_expires_in == 15897600

        (request,) = github.calls("POST", TOKEN_PATH)
        assert json.loads(request.content) == {
            "client_id": "cid",
            "client_secret": "sec",
            "grant_type": "refresh_token",
            "refresh_token": "old-refresh",
        }

    @pytest.mark.asyncio
    async def test_refresh_error_in_200_body_returns_none(self, github, http_client) -> None:
        github.add(
            "POST",
            TOKEN_PATH,
            json={"error": "bad_refresh_token", "error_description": "The refresh token passed is incorrect or expired."},
        )
        account = expired_account()
        store = CountingCredentialStore([account])
        provider = TokenProvider(store, client=http_client, clock=lambda: NOW)

        assert await provider.get_valid_token(1) is None
        assert store.writes == 0
        assert account.refresh_token == "old-refresh"

    @pytest.mark.asyncio
    async def test_network_failure_during_refresh_returns_none(self, github, http_client) -> None:
        github.fail("POST", TOKEN_PATH, httpx.ConnectError("name resolution failed"))
        store = CountingCredentialStore([expired_account()])
        provider = TokenProvider(store, client=http_client, clock=lambda: NOW)

        assert await provider.get_valid_token(1) is None
        assert store.writes == 0

    @pytest.mark.asyncio
    async def test_refresh_persists_through_sql_store(self, db, github, http_client) -> None:
        github.add("POST", TOKEN_PATH, json={"access_token": "fresh", "expires_in": 600, "refresh_token": "r2"})
        user = make_user(db, "Ada")
        make_account(db, user, access_token="stale", refresh_token="r1", expires_at=NOW - 1)

        provider = TokenProvider(SqlCredentialStore(db), client=http_client, clock=lambda: NOW)
        assert await provider.get_valid_token(user.id) == "fresh"

        db.expire_all()
        stored = db.query(GitHubAccount).filter(GitHubAccount.user_id == user.id).one()
        assert stored.access_token == "fresh"
        assert stored.refresh_token == "r2"
        assert stored.expires_at == NOW + 600
        assert stored.expires_at > NOW - 1


class TestGetGitHubUsername:
    @pytest.mark.asyncio
    async def test_returns_login(self, github, http_client) -> None:
        github.add("GET", "/user", json={"login": "octocat", "id": 1})
        store = CountingCredentialStore([expired_account(expires_at=None)])
        provider = TokenProvider(store, client=http_client, clock=lambda: NOW)

        assert await provider.get_github_username(1) == "octocat"
        (request,) = github.calls("GET", "/user")
        assert request.headers["Authorization"] == "Bearer old-access"

    @pytest.mark.asyncio
    async def test_not_connected(self, github, http_client) -> None:
        provider = TokenProvider(CountingCredentialStore(), client=http_client, clock=lambda: NOW)

        assert await provider.get_github_username(1) is None
        assert github.requests == []

    @pytest.mark.asyncio
    async def test_rejected_identity_call(self, github, http_client) -> None:
        github.add("GET", "/user", json={"message": "Bad credentials"}, status=401)
        store = CountingCredentialStore([expired_account(expires_at=None)])
        provider = TokenProvider(store, client=http_client, clock=lambda: NOW)

        assert await provider.get_github_username(1) is None
