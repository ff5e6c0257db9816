from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Dict, Iterable, Optional

import redis.asyncio as redis

from .models import Session, UserData

logger = logging.getLogger(__name__)

ACCESS_TOKEN_KEY = "userToken"
REFRESH_TOKEN_KEY = "refreshToken"
USER_NAME_KEY = "userName"
USER_EMAIL_KEY = "userEmail"
USER_ID_KEY = "userId"

USER_KEYS = (USER_NAME_KEY, USER_EMAIL_KEY, USER_ID_KEY, ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY)


class CredentialStore(ABC):
    """Async string key/value store for tokens and cached user fields."""

    @abstractmethod
    async def get_item(self, key: str) -> Optional[str]: ...

    @abstractmethod
    async def set_item(self, key: str, value: str) -> None: ...

    @abstractmethod
    async def remove_items(self, keys: Iterable[str]) -> None: ...

    async def get_access_token(self) -> Optional[str]:
        return await self.get_item(ACCESS_TOKEN_KEY)

    async def get_refresh_token(self) -> Optional[str]:
        return await self.get_item(REFRESH_TOKEN_KEY)

    async def save_session(self, session: Session) -> None:
        await self.set_item(ACCESS_TOKEN_KEY, session.access_token)
        await self.set_item(REFRESH_TOKEN_KEY, session.refresh_token)

    async def clear_session(self) -> None:
        await self.remove_items((ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY))

    async def save_user_data(self, user: UserData) -> None:
        await self.set_item(USER_NAME_KEY, user.user_name)
        if user.email:
            await self.set_item(USER_EMAIL_KEY, user.email)
        if user.user_id:
            await self.set_item(USER_ID_KEY, user.user_id)

    async def get_user_data(self) -> Optional[UserData]:
        name = await self.get_item(USER_NAME_KEY)
        if not name:
            return None
        return UserData(
            user_name=name,
            email=await self.get_item(USER_EMAIL_KEY),
            user_id=await self.get_item(USER_ID_KEY),
        )

    async def update_user_name(self, user_name: str) -> None:
        await self.set_item(USER_NAME_KEY, user_name)

    async def clear_user_data(self) -> None:
        await self.remove_items(USER_KEYS)


class MemoryCredentialStore(CredentialStore):
    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._items: Dict[str, str] = dict(initial or {})

    async def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    async def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    async def remove_items(self, keys: Iterable[str]) -> None:
        for key in keys:
            self._items.pop(key, None)


class RedisCredentialStore(CredentialStore):
    """Keys live under ``wh:<namespace>:`` so several sessions can share one Redis."""

    def __init__(self, r: redis.Redis, namespace: str, ttl_sec: int = 0):
        self.r = r
        self.namespace = namespace
        self.ttl = ttl_sec or None

    @classmethod
    def connect(cls, host: str, port: int, namespace: str, ttl_sec: int = 0) -> "RedisCredentialStore":
        return cls(redis.Redis(host=host, port=port, decode_responses=True), namespace, ttl_sec)

    def _key(self, key: str) -> str:
        return f"wh:{self.namespace}:{key}"

    async def get_item(self, key: str) -> Optional[str]:
        return await self.r.get(self._key(key))

    async def set_item(self, key: str, value: str) -> None:
        await self.r.set(self._key(key), value, ex=self.ttl)

    async def remove_items(self, keys: Iterable[str]) -> None:
        names = [self._key(k) for k in keys]
        if names:
            await self.r.delete(*names)


def create_store(cfg, namespace: str, redis_client: Optional[redis.Redis] = None) -> CredentialStore:
    backend = (cfg.CREDENTIAL_BACKEND or "memory").lower()
    if backend == "redis":
        if redis_client is None:
            return RedisCredentialStore.connect(cfg.REDIS_HOST, cfg.REDIS_PORT, namespace, cfg.CREDENTIAL_TTL_SEC)
        return RedisCredentialStore(redis_client, namespace, cfg.CREDENTIAL_TTL_SEC)
    if backend != "memory":
        logger.warning("unknown CREDENTIAL_BACKEND=%r, falling back to memory", backend)
    return MemoryCredentialStore()
