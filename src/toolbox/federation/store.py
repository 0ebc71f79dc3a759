"""One-time storage for pending OAuth authorizations.

A pending authorization pairs the CSRF ``state`` sent to the provider with
the PKCE ``code_verifier`` that must accompany the code exchange. Records
are consumed exactly once by the callback and are invalid after a fixed TTL
even if they have not been swept yet.

Two backends are provided: an in-process map guarded by a lock (single
instance) and Redis (multi-instance deployments, atomic GETDEL).
"""

import asyncio
import json
import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

import redis.asyncio as redis
from pydantic import BaseModel, Field

from src.toolbox.config import Settings

logger = logging.getLogger(__name__)

REDIS_KEY_PREFIX = "oauth:pending:"


def _utcnow() -> datetime:
    return datetime.now(UTC)


class PendingAuthorization(BaseModel):
    """A registered, not yet consumed authorization request."""

    state: str
    code_verifier: str = Field(repr=False)
    created_at: datetime

    def is_expired(self, ttl_seconds: int, now: datetime) -> bool:
        return now - self.created_at >= timedelta(seconds=ttl_seconds)


class PendingAuthorizationStore(ABC):
    """
    Storage contract for pending authorizations.

    ``take_and_delete`` must be atomic: when several callbacks race on the
    same state, at most one of them receives the record.
    """

    def __init__(self, ttl_seconds: int, clock: Callable[[], datetime] = _utcnow):
        self.ttl_seconds = ttl_seconds
        self._clock = clock

    @abstractmethod
    async def put(self, state: str, code_verifier: str) -> None:
        """Register a new pending authorization."""

    @abstractmethod
    async def take_and_delete(self, state: str) -> PendingAuthorization | None:
        """Consume the record for ``state``; None when unknown, used, or expired."""

    @abstractmethod
    async def sweep(self) -> int:
        """Drop expired records and return how many were removed."""

    async def close(self) -> None:
        """Release backend resources."""


class InMemoryPendingAuthorizationStore(PendingAuthorizationStore):
    """
    Process-local store backed by a lock-guarded dict.

    Suitable for a single application instance only.

    Example:
        >>> store = InMemoryPendingAuthorizationStore(ttl_seconds=600)
        >>> await store.put("state-abc", "verifier-xyz")
        >>> record = await store.take_and_delete("state-abc")
    """

    def __init__(self, ttl_seconds: int, clock: Callable[[], datetime] = _utcnow):
        super().__init__(ttl_seconds, clock)
        self._records: dict[str, PendingAuthorization] = {}
        self._lock = threading.Lock()

    async def put(self, state: str, code_verifier: str) -> None:
        record = PendingAuthorization(
            state=state, code_verifier=code_verifier, created_at=self._clock()
        )
        with self._lock:
            self._records[state] = record

        logger.debug("Pending authorization stored", extra={"state_prefix": state[:8]})

    async def take_and_delete(self, state: str) -> PendingAuthorization | None:
        with self._lock:
            record = self._records.pop(state, None)

        if record is None:
            logger.warning("Pending authorization not found", extra={"state_prefix": state[:8]})
            return None

        if record.is_expired(self.ttl_seconds, self._clock()):
            logger.warning("Pending authorization expired", extra={"state_prefix": state[:8]})
            return None

        return record

    async def sweep(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [s for s, r in self._records.items() if r.is_expired(self.ttl_seconds, now)]
            for state in expired:
                del self._records[state]

        if expired:
            logger.info(
                f"Swept {len(expired)} expired pending authorizations",
                extra={"expired_count": len(expired), "remaining": len(self._records)},
            )
        return len(expired)

    def __len__(self) -> int:
        return len(self._records)


class RedisPendingAuthorizationStore(PendingAuthorizationStore):
    """
    Redis-backed store shared by every application instance.

    Records are written with ``SETEX`` so Redis expires them on its own and
    consumed with ``GETDEL`` so only one caller can ever read a given state.
    """

    def __init__(
        self,
        client: redis.Redis,
        ttl_seconds: int,
        clock: Callable[[], datetime] = _utcnow,
    ):
        super().__init__(ttl_seconds, clock)
        self._client = client

    @classmethod
    def from_url(cls, url: str, ttl_seconds: int) -> "RedisPendingAuthorizationStore":
        client = redis.from_url(url, encoding="utf-8", decode_responses=True)
        return cls(client, ttl_seconds)

    async def put(self, state: str, code_verifier: str) -> None:
        payload = json.dumps(
            {"code_verifier": code_verifier, "created_at": self._clock().isoformat()}
        )
        await self._client.setex(f"{REDIS_KEY_PREFIX}{state}", self.ttl_seconds, payload)

    async def take_and_delete(self, state: str) -> PendingAuthorization | None:
        raw = await self._client.getdel(f"{REDIS_KEY_PREFIX}{state}")
        if not raw:
            logger.warning(
                "Pending authorization not found",
                extra={"state_prefix": state[:8], "store": "redis"},
            )
            return None

        try:
            data = json.loads(raw)
            record = PendingAuthorization(
                state=state,
                code_verifier=data["code_verifier"],
                created_at=datetime.fromisoformat(data["created_at"]),
            )
        except (ValueError, KeyError, TypeError):
            logger.warning(
                "Pending authorization payload is corrupt",
                extra={"state_prefix": state[:8], "store": "redis"},
            )
            return None

        if record.is_expired(self.ttl_seconds, self._clock()):
            return None
        return record

    async def sweep(self) -> int:
        # Keys carry their own TTL
        return 0

    async def close(self) -> None:
        await self._client.aclose()


def build_pending_store(settings: Settings) -> PendingAuthorizationStore:
    """Choose the store backend from settings (Redis when ``redis_url`` is set)."""
    if settings.redis_url:
        logger.info("Using Redis for pending OAuth authorizations")
        return RedisPendingAuthorizationStore.from_url(
            settings.redis_url, settings.oauth_state_ttl_seconds
        )

    logger.info("Using in-memory store for pending OAuth authorizations")
    return InMemoryPendingAuthorizationStore(ttl_seconds=settings.oauth_state_ttl_seconds)


async def run_sweeper(store: PendingAuthorizationStore, interval_seconds: float) -> None:
    """
    Periodically reclaim expired records until cancelled.

    Started from the application lifespan; a failed sweep is logged and the
    loop carries on.
    """
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            await store.sweep()
        except Exception as e:
            logger.error(f"Pending authorization sweep failed: {e}", exc_info=True)
