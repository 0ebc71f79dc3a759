"""Shared fixtures for federation tests."""

import base64
import hashlib
import itertools
from collections import defaultdict
from datetime import UTC, datetime, timedelta
from typing import Any
from unittest.mock import Mock
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from src.toolbox.auth.exceptions import DuplicateAccountError
from src.toolbox.auth.models import LocalAccount
from src.toolbox.auth.sessions import SessionEstablisher
from src.toolbox.config import Settings
from src.toolbox.federation.accounts import AccountRepository, AccountResolver
from src.toolbox.federation.identity import IdentityFetcher
from src.toolbox.federation.provider import ProviderConfig, ProviderSettingsRepository
from src.toolbox.federation.responder import CompletionResponder
from src.toolbox.federation.service import FederationService
from src.toolbox.federation.store import InMemoryPendingAuthorizationStore
from src.toolbox.federation.token_client import TokenExchangeClient

APP_ID = "app-123"
APP_SECRET = "zalo-app-secret"
TOKEN_URL = "https://oauth.zaloapp.com/v4/access_token"
PROFILE_URL = "https://graph.zalo.me/v2.0/me"
SESSION_SECRET = "test-session-secret"


class FakeClock:
    """Controllable clock for TTL tests."""

    def __init__(self) -> None:
        self.now = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class StaticProviderSettings(ProviderSettingsRepository):
    """Provider settings held in memory."""

    def __init__(self, config: ProviderConfig) -> None:
        self.config = config

    def load(self) -> ProviderConfig:
        return self.config


class InMemoryAccountRepository(AccountRepository):
    """
    Account table with the same uniqueness rules as ``users``.

    ``before_create`` runs once before the next insert; tests use it to let a
    competing login win the race.
    """

    def __init__(self) -> None:
        self.rows: dict[int, LocalAccount] = {}
        self._ids = itertools.count(1)
        self.before_create = None
        self.create_calls = 0
        self.update_calls: list[tuple[int, dict[str, Any]]] = []

    def get_by_federated_id(self, provider: str, federated_id: str) -> LocalAccount | None:
        for account in self.rows.values():
            if account.provider == provider and account.federated_id == federated_id:
                return account
        return None

    def get_by_id(self, account_id: int) -> LocalAccount | None:
        return self.rows.get(account_id)

    def create(self, data: dict[str, Any]) -> LocalAccount:
        self.create_calls += 1
        if self.before_create is not None:
            hook, self.before_create = self.before_create, None
            hook(data)

        for account in self.rows.values():
            if account.username == data["username"] or (
                account.provider == data["provider"]
                and account.federated_id == data["federated_id"]
            ):
                raise DuplicateAccountError("duplicate key value violates unique constraint")

        account = LocalAccount.model_validate({"id": next(self._ids), **data})
        self.rows[account.id] = account
        return account

    def update(self, account_id: int, data: dict[str, Any]) -> LocalAccount:
        self.update_calls.append((account_id, data))
        account = LocalAccount.model_validate({**self.rows[account_id].model_dump(), **data})
        self.rows[account_id] = account
        return account


class InMemoryQueryBuilder:
    """Stand-in for SupabaseQueryBuilder covering the calls sessions make."""

    def __init__(self) -> None:
        self.tables: dict[str, dict[Any, dict[str, Any]]] = defaultdict(dict)

    def insert_record(self, table: str, data: dict[str, Any]) -> dict[str, Any]:
        row = dict(data)
        self.tables[table][row["id"]] = row
        return row

    def get_by_id(self, table: str, record_id: Any, columns: str = "*") -> dict[str, Any] | None:
        return self.tables[table].get(record_id)

    def delete_record(self, table: str, record_id: Any) -> bool:
        return self.tables[table].pop(record_id, None) is not None


def s256(verifier: str) -> str:
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")


class StubZaloProvider:
    """
    Minimal Zalo OAuth server behind ``httpx.MockTransport``.

    ``authorize`` plays the permission page: it records the code challenge
    and hands back a code. The token endpoint only answers with a token when
    the secret header matches and the verifier hashes to the recorded
    challenge. Errors come back with HTTP 200, as Zalo does.
    """

    def __init__(self, profile: dict[str, Any] | None = None) -> None:
        self.profile = profile or {
            "id": "8001",
            "name": "Nguyen Van A",
            "picture": {"data": {"url": "https://s120.avatar.talk.zdn.vn/a.jpg"}},
        }
        self.challenges: dict[str, str] = {}
        self.token_requests: list[httpx.Request] = []
        self.profile_requests: list[httpx.Request] = []
        self.token_error: Exception | None = None
        self._codes = itertools.count(1)

    def authorize(self, auth_url: str) -> tuple[str, str]:
        """Return ``(code, state)`` for an authorization URL."""
        query = parse_qs(urlparse(auth_url).query)
        assert query["app_id"] == [APP_ID]
        code = f"code-{next(self._codes)}"
        self.challenges[code] = query["code_challenge"][0]
        return code, query["state"][0]

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.url.path == "/v4/access_token":
            self.token_requests.append(request)
            if self.token_error is not None:
                raise self.token_error
            form = parse_qs(request.content.decode())
            if request.headers.get("secret_key") != APP_SECRET:
                return httpx.Response(200, json={"error": -14002, "message": "Invalid secret key"})

            code = form.get("code", [""])[0]
            verifier = form.get("code_verifier", [""])[0]
            challenge = self.challenges.pop(code, None)
            if challenge is None or challenge != s256(verifier):
                return httpx.Response(
                    200, json={"error": -14019, "error_description": "Invalid code verifier"}
                )
            return httpx.Response(
                200,
                json={
                    "access_token": f"access-{code}",
                    "refresh_token": f"refresh-{code}",
                    "expires_in": "3600",
                    "refresh_token_expires_in": "7776000",
                },
            )

        if request.url.path == "/v2.0/me":
            self.profile_requests.append(request)
            return httpx.Response(200, json=self.profile)

        return httpx.Response(404)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def clock() -> FakeClock:
    """Provide a controllable clock."""
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> InMemoryPendingAuthorizationStore:
    """Provide an in-memory pending store with a 10 minute TTL."""
    return InMemoryPendingAuthorizationStore(ttl_seconds=600, clock=clock)


@pytest.fixture
def provider_config() -> ProviderConfig:
    """Provide a usable provider configuration."""
    return ProviderConfig(enabled=True, app_id=APP_ID, app_secret=APP_SECRET, starter_credits=50)


@pytest.fixture
def provider_settings(provider_config: ProviderConfig) -> StaticProviderSettings:
    """Provide provider settings backed by memory."""
    return StaticProviderSettings(provider_config)


@pytest.fixture
def accounts() -> InMemoryAccountRepository:
    """Provide an empty account table."""
    return InMemoryAccountRepository()


@pytest.fixture
def sessions_db() -> InMemoryQueryBuilder:
    """Provide in-memory storage for session rows."""
    return InMemoryQueryBuilder()


@pytest.fixture
def zalo() -> StubZaloProvider:
    """Provide a stub Zalo provider."""
    return StubZaloProvider()


@pytest.fixture
def test_settings() -> Settings:
    """Provide settings pointing at the stub provider."""
    return Settings(
        zalo_token_url=TOKEN_URL,
        zalo_profile_url=PROFILE_URL,
        session_secret_key=SESSION_SECRET,
        rate_limit_enabled=False,
        posthog_api_key=None,
    )


@pytest.fixture
def analytics() -> Mock:
    """Provide a mock analytics service."""
    return Mock()


@pytest.fixture
def federation_service(
    test_settings: Settings,
    provider_settings: StaticProviderSettings,
    store: InMemoryPendingAuthorizationStore,
    accounts: InMemoryAccountRepository,
    sessions_db: InMemoryQueryBuilder,
    zalo: StubZaloProvider,
    analytics: Mock,
) -> FederationService:
    """Provide a federation service wired to in-memory storage and the stub provider."""
    http_client = httpx.AsyncClient(transport=zalo.transport())
    return FederationService(
        settings=test_settings,
        provider_settings=provider_settings,
        store=store,
        token_client=TokenExchangeClient(TOKEN_URL, http_client=http_client),
        identity_fetcher=IdentityFetcher(
            PROFILE_URL,
            test_settings.zalo_profile_fields,
            restricted_error_codes=[-501],
            http_client=http_client,
        ),
        resolver=AccountResolver(accounts),
        sessions=SessionEstablisher(
            db=sessions_db,
            secret_key=SESSION_SECRET,
            issuer=test_settings.session_issuer,
            ttl_seconds=test_settings.session_ttl_seconds,
        ),
        responder=CompletionResponder("/dashboard", "/auth?error=oauth_failed"),
        analytics=analytics,
    )
