"""Mapping of provider identities to local accounts."""

import hashlib
import hmac
import logging
import secrets
from abc import ABC, abstractmethod
from datetime import UTC, datetime
from typing import Any

from postgrest.exceptions import APIError
from pydantic import BaseModel

from src.toolbox.auth.exceptions import AccountResolutionFailed, DuplicateAccountError
from src.toolbox.auth.models import LocalAccount
from src.toolbox.federation.identity import (
    FullIdentity,
    InvalidIdentity,
    ProviderIdentity,
    RestrictedIdentity,
)
from src.toolbox.federation.provider import PROVIDER, RESTRICTED_PROVIDER, ProviderConfig
from src.toolbox.federation.token_client import ProviderToken
from src.toolbox.services.database.utils import SupabaseQueryBuilder

logger = logging.getLogger(__name__)

USERS_TABLE = "users"
UNIQUE_VIOLATION = "23505"

RESTRICTED_DISPLAY_NAME = "Zalo User"
PSEUDO_ID_LENGTH = 32


class AccountRepository(ABC):
    """Storage for local accounts."""

    @abstractmethod
    def get_by_federated_id(self, provider: str, federated_id: str) -> LocalAccount | None:
        """Look up the account linked to a provider identity."""

    @abstractmethod
    def get_by_id(self, account_id: int) -> LocalAccount | None:
        """Look up an account by primary key."""

    @abstractmethod
    def create(self, data: dict[str, Any]) -> LocalAccount:
        """
        Insert a new account.

        Raises:
            DuplicateAccountError: If ``(provider, federated_id)`` or ``username`` is taken
        """

    @abstractmethod
    def update(self, account_id: int, data: dict[str, Any]) -> LocalAccount:
        """Update fields of an existing account and return the new row."""


class SupabaseAccountRepository(AccountRepository):
    """
    Account storage on the ``users`` table.

    Relies on unique constraints over ``(provider, federated_id)`` and
    ``username`` so concurrent first logins cannot create two rows.
    """

    def __init__(self, db: SupabaseQueryBuilder):
        self.db = db

    def get_by_federated_id(self, provider: str, federated_id: str) -> LocalAccount | None:
        row = self.db.find_one(USERS_TABLE, {"provider": provider, "federated_id": federated_id})
        return LocalAccount.model_validate(row) if row else None

    def get_by_id(self, account_id: int) -> LocalAccount | None:
        row = self.db.get_by_id(USERS_TABLE, account_id)
        return LocalAccount.model_validate(row) if row else None

    def create(self, data: dict[str, Any]) -> LocalAccount:
        try:
            row = self.db.insert_record(USERS_TABLE, data)
        except APIError as e:
            if e.code == UNIQUE_VIOLATION:
                raise DuplicateAccountError(e.message) from e
            raise

        if row is None:
            raise RuntimeError("Insert into users returned no row")
        return LocalAccount.model_validate(row)

    def update(self, account_id: int, data: dict[str, Any]) -> LocalAccount:
        try:
            row = self.db.update_record(USERS_TABLE, account_id, data)
        except APIError as e:
            if e.code == UNIQUE_VIOLATION:
                raise DuplicateAccountError(e.message) from e
            raise

        if row is None:
            raise RuntimeError(f"User {account_id} disappeared during update")
        return LocalAccount.model_validate(row)


class ResolvedAccount(BaseModel):
    """Outcome of account resolution."""

    account: LocalAccount
    created: bool


def restricted_pseudo_id(access_token: str, app_secret: str) -> str:
    """
    Derive the identifier for a login whose profile was withheld.

    Keyed with the app secret so it cannot be computed from outside the server.
    """
    digest = hmac.new(app_secret.encode(), access_token.encode(), hashlib.sha256).hexdigest()
    return digest[:PSEUDO_ID_LENGTH]


def _unusable_password() -> str:
    # "!" prefix never matches a password hash, so the account has no local credential
    return f"!oauth${secrets.token_hex(16)}"


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


class AccountResolver:
    """
    Finds or creates the local account for a provider identity.

    Policy:
    * Full identity: match on ``(zalo, provider_user_id)``; refresh display
      name and avatar for returning users; create a verified account with
      starter credits for new ones.
    * Restricted identity: same, under the separate ``zalo:restricted``
      namespace with a pseudo-id and a placeholder profile. Never merged with
      a full-identity account.
    * Invalid identity: abort with AccountResolutionFailed.

    ``role``, ``credits`` and ``verified`` are written only at creation.
    """

    def __init__(self, repository: AccountRepository):
        self.repository = repository

    def resolve(
        self, identity: ProviderIdentity, token: ProviderToken, config: ProviderConfig
    ) -> ResolvedAccount:
        """
        Resolve an identity to a local account.

        Args:
            identity: Classified profile response
            token: Token from the code exchange (restricted path only)
            config: Provider settings (app secret, starter credits)

        Returns:
            ResolvedAccount with the account and whether it was just created

        Raises:
            AccountResolutionFailed: Invalid identity or account storage failure
        """
        if isinstance(identity, InvalidIdentity):
            raise AccountResolutionFailed(f"No usable identity: {identity.reason}")

        try:
            if isinstance(identity, FullIdentity):
                return self._resolve_full(identity, config)
            if isinstance(identity, RestrictedIdentity):
                return self._resolve_restricted(token, config)
        except AccountResolutionFailed:
            raise
        except Exception as e:
            logger.error(f"Account storage failed during resolution: {e}", exc_info=True)
            raise AccountResolutionFailed("Account storage failure") from e

        raise AccountResolutionFailed(f"Unknown identity variant: {type(identity).__name__}")

    def _resolve_full(self, identity: FullIdentity, config: ProviderConfig) -> ResolvedAccount:
        federated_id = identity.provider_user_id
        profile = {"display_name": identity.display_name, "avatar_url": identity.avatar_url}

        existing = self.repository.get_by_federated_id(PROVIDER, federated_id)
        if existing is not None:
            return ResolvedAccount(account=self._refresh_profile(existing, profile), created=False)

        username = f"zalo_{federated_id}"
        data = self._new_account(
            provider=PROVIDER,
            federated_id=federated_id,
            username=username,
            email=f"{username}@zalo.user",
            display_name=identity.display_name or f"Zalo User {federated_id}",
            avatar_url=identity.avatar_url,
            profile_complete=True,
            config=config,
        )
        return self._create_or_adopt(PROVIDER, federated_id, data, profile)

    def _resolve_restricted(self, token: ProviderToken, config: ProviderConfig) -> ResolvedAccount:
        pseudo_id = restricted_pseudo_id(token.access_token, config.app_secret)

        existing = self.repository.get_by_federated_id(RESTRICTED_PROVIDER, pseudo_id)
        if existing is not None:
            return ResolvedAccount(account=existing, created=False)

        username = f"zalo_r_{pseudo_id}"
        data = self._new_account(
            provider=RESTRICTED_PROVIDER,
            federated_id=pseudo_id,
            username=username,
            email=f"{username}@zalo.temp",
            display_name=RESTRICTED_DISPLAY_NAME,
            avatar_url=None,
            profile_complete=False,
            config=config,
        )
        resolved = self._create_or_adopt(RESTRICTED_PROVIDER, pseudo_id, data, profile=None)
        logger.warning(
            "Resolved placeholder account for restricted Zalo profile",
            extra={"account_id": resolved.account.id, "new_account": resolved.created},
        )
        return resolved

    def _create_or_adopt(
        self,
        provider: str,
        federated_id: str,
        data: dict[str, Any],
        profile: dict[str, str | None] | None,
    ) -> ResolvedAccount:
        try:
            account = self.repository.create(data)
        except DuplicateAccountError:
            # A concurrent login for the same identity inserted first
            winner = self.repository.get_by_federated_id(provider, federated_id)
            if winner is None:
                raise AccountResolutionFailed(
                    f"Username {data['username']!r} is taken by an unrelated account"
                )
            logger.info(
                "Concurrent account creation detected, using existing row",
                extra={"account_id": winner.id, "provider": provider},
            )
            if profile is not None:
                winner = self._refresh_profile(winner, profile)
            return ResolvedAccount(account=winner, created=False)

        logger.info(
            "Created account from Zalo login",
            extra={"account_id": account.id, "provider": provider, "username": account.username},
        )
        return ResolvedAccount(account=account, created=True)

    def _refresh_profile(
        self, account: LocalAccount, profile: dict[str, str | None]
    ) -> LocalAccount:
        changes = {
            field: value
            for field, value in profile.items()
            if value and value != getattr(account, field)
        }
        if not changes:
            return account

        changes["updated_at"] = _now_iso()
        updated = self.repository.update(account.id, changes)
        logger.info(
            "Refreshed profile from Zalo",
            extra={"account_id": account.id, "fields": sorted(k for k in changes if k != "updated_at")},
        )
        return updated

    def complete_profile(
        self, account_id: int, display_name: str, email: str | None = None
    ) -> LocalAccount | None:
        """
        Fill in the details a withheld provider profile did not supply.

        Writes ``display_name``, and ``email`` only when given, then marks the
        profile complete. ``role``, ``credits`` and ``verified`` are untouched.

        Args:
            account_id: Signed-in account
            display_name: Validated, trimmed full name
            email: Validated email, or None to keep the stored one

        Returns:
            The updated account, or None if it no longer exists

        Raises:
            DuplicateAccountError: If the email belongs to another account
        """
        account = self.repository.get_by_id(account_id)
        if account is None:
            return None

        changes: dict[str, Any] = {
            "display_name": display_name,
            "profile_complete": True,
            "updated_at": _now_iso(),
        }
        if email is not None:
            changes["email"] = email

        updated = self.repository.update(account.id, changes)
        logger.info(
            "Completed account profile",
            extra={"account_id": account.id, "email_provided": email is not None},
        )
        return updated

    @staticmethod
    def _new_account(
        *,
        provider: str,
        federated_id: str,
        username: str,
        email: str,
        display_name: str,
        avatar_url: str | None,
        profile_complete: bool,
        config: ProviderConfig,
    ) -> dict[str, Any]:
        now = _now_iso()
        return {
            "username": username,
            "display_name": display_name,
            "avatar_url": avatar_url,
            "provider": provider,
            "federated_id": federated_id,
            "email": email,
            "password_placeholder": _unusable_password(),
            "role": "user",
            "credits": config.starter_credits,
            "verified": True,
            "profile_complete": profile_complete,
            "created_at": now,
            "updated_at": now,
        }
