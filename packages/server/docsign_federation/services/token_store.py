"""
One-time federation tokens.

A token maps to a pending claim (who the partner authenticated, for which
business, with which role). A token can be exchanged exactly once and only
within the TTL; after that it is permanently unusable.

Two backends share the `TokenStore` interface:
- `InMemoryTokenStore`: process-local dict under a single asyncio lock.
- `RedisTokenStore`: `SET ... EX` + atomic `GETDEL`, usable across replicas.
"""

from __future__ import annotations

import abc
import asyncio
import secrets
import time
from typing import Callable, Optional

import structlog
from pydantic import BaseModel

from docsign_federation.core.errors import TokenInvalidOrExpired
from docsign_federation.core.redis import get_redis

from docsign_federation_shared.schemas.common import ExternalRole

log = structlog.get_logger()

TOKEN_TTL_SECONDS = 5 * 60
TOKEN_BYTES = 32  # 64 hex characters


class PendingClaim(BaseModel):
    email: str
    name: str
    business_id: str
    business_name: str
    role: ExternalRole = ExternalRole.MEMBER
    issued_at: float = 0.0


def generate_token() -> str:
    return secrets.token_hex(TOKEN_BYTES)


class TokenStore(abc.ABC):
    """Single-use, expiring mapping from token to PendingClaim."""

    def __init__(
        self,
        ttl_seconds: int = TOKEN_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.ttl_seconds = ttl_seconds
        self._clock = clock

    def is_expired(self, claim: PendingClaim, now: float | None = None) -> bool:
        now = self._clock() if now is None else now
        return now - claim.issued_at > self.ttl_seconds

    @abc.abstractmethod
    async def issue(self, claim: PendingClaim) -> str:
        """Store the claim under a fresh token and return the token."""

    @abc.abstractmethod
    async def exchange(self, token: str) -> PendingClaim:
        """Consume the token. Raises TokenInvalidOrExpired if unknown, used or stale."""

    @abc.abstractmethod
    async def sweep(self) -> int:
        """Drop expired entries. Returns how many were removed."""


class InMemoryTokenStore(TokenStore):

    def __init__(self, ttl_seconds: int = TOKEN_TTL_SECONDS, clock: Callable[[], float] = time.time):
        super().__init__(ttl_seconds, clock)
        self._entries: dict[str, PendingClaim] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    async def issue(self, claim: PendingClaim) -> str:
        token = generate_token()
        stored = claim.model_copy(update={"issued_at": self._clock()})
        async with self._lock:
            self._entries[token] = stored
        log.info("token.issued", business_id=claim.business_id, role=claim.role.value)
        return token

    async def exchange(self, token: str) -> PendingClaim:
        async with self._lock:
            claim = self._entries.pop(token, None)
        if claim is None or self.is_expired(claim):
            log.info("token.rejected", found=claim is not None)
            raise TokenInvalidOrExpired()
        return claim

    async def sweep(self) -> int:
        now = self._clock()
        async with self._lock:
            expired = [t for t, c in self._entries.items() if self.is_expired(c, now)]
            for token in expired:
                del self._entries[token]
        return len(expired)


class RedisTokenStore(TokenStore):
    """Token store backed by Redis key expiry."""

    key_prefix = "federation:token:"

    def __init__(
        self,
        redis_client=None,
        ttl_seconds: int = TOKEN_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
        *,
        redis_url: str | None = None,
    ):
        super().__init__(ttl_seconds, clock)
        self._redis = redis_client
        self._redis_url = redis_url

    async def _client(self):
        if self._redis is not None:
            return self._redis
        return await get_redis(self._redis_url)

    def _key(self, token: str) -> str:
        return f"{self.key_prefix}{token}"

    async def issue(self, claim: PendingClaim) -> str:
        token = generate_token()
        stored = claim.model_copy(update={"issued_at": self._clock()})
        redis = await self._client()
        await redis.set(self._key(token), stored.model_dump_json(), ex=self.ttl_seconds)
        log.info("token.issued", business_id=claim.business_id, role=claim.role.value, backend="redis")
        return token

    async def exchange(self, token: str) -> PendingClaim:
        redis = await self._client()
        raw: Optional[str] = await redis.getdel(self._key(token))
        if raw is None:
            log.info("token.rejected", found=False, backend="redis")
            raise TokenInvalidOrExpired()
        claim = PendingClaim.model_validate_json(raw)
        if self.is_expired(claim):
            log.info("token.rejected", found=True, backend="redis")
            raise TokenInvalidOrExpired()
        return claim

    async def sweep(self) -> int:
        # Keys carry their own expiry.
        return 0
