"""Store para Redis usando redis.asyncio."""

import logging
import math
from typing import Any
from uuid import uuid4

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from ..entry import CacheEntry
from ..exceptions import CacheConnectionError, CacheKeyError
from ..serializer import EntryCodec, Serializer

logger = logging.getLogger(__name__)

DEFAULT_LOCK_PREFIX = "LOCK-"

# Remove o lock somente se o valor ainda for o token de quem está liberando
UNLOCK_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""


def _ttl_ms(ttl: float) -> int:
    return max(1, math.ceil(ttl * 1000))


class RedisCacheStore:
    """Store para Redis com lease via ``SET NX PX``.

    - Entradas: ``SET key payload PX hard_ttl``
    - Lease: ``SET LOCK-key token PX lease_ttl NX``
    - Liberação: script Lua que compara o token antes do ``DEL``

    O cliente deve ser criado com ``decode_responses=False``, pois o
    payload é binário (MsgPack).

    Example:
        ```python
        store = RedisCacheStore.from_url("redis://localhost:6379/0")
        cache = StampedeCache(store, on_miss=load_user, soft_ttl=60, ...)
        ```
    """

    def __init__(
        self,
        client: aioredis.Redis,
        serializer: Serializer | None = None,
        lock_prefix: str = DEFAULT_LOCK_PREFIX,
    ) -> None:
        """Inicializa o store.

        Args:
            client: Cliente redis.asyncio já configurado
            serializer: Serializer do payload (default: MsgPackSerializer)
            lock_prefix: Prefixo das chaves de lock
        """
        self._client = client
        self._codec = EntryCodec(serializer)
        self._lock_prefix = lock_prefix

    @classmethod
    def from_url(cls, url: str, serializer: Serializer | None = None, **kwargs: Any) -> "RedisCacheStore":
        """Cria store a partir de uma URL Redis."""
        kwargs["decode_responses"] = False
        return cls(aioredis.from_url(url, **kwargs), serializer=serializer)

    def _lock_key(self, key: str) -> str:
        return f"{self._lock_prefix}{key}"

    def _validate_key(self, key: str) -> None:
        if not key:
            raise CacheKeyError("Chave não pode ser vazia", key=key)

    async def get(self, key: str) -> CacheEntry | None:
        self._validate_key(key)
        try:
            payload = await self._client.get(key)
        except RedisError as e:
            raise CacheConnectionError(f"Falha no GET do Redis: {e}", key=key) from e

        if payload is None:
            logger.debug(f"Cache miss para chave: {key}")
            return None
        return self._codec.decode(payload, key=key)

    async def set(self, key: str, entry: CacheEntry, hard_ttl: float) -> bool:
        self._validate_key(key)
        payload = self._codec.encode(entry)
        try:
            result = await self._client.set(key, payload, px=_ttl_ms(hard_ttl))
        except RedisError as e:
            raise CacheConnectionError(f"Falha no SET do Redis: {e}", key=key) from e
        return bool(result)

    async def delete(self, key: str) -> bool:
        if not key:
            return False
        try:
            removed = await self._client.delete(key)
        except RedisError as e:
            raise CacheConnectionError(f"Falha no DEL do Redis: {e}", key=key) from e
        return removed > 0

    async def lock(self, key: str, lease_ttl: float) -> str | None:
        self._validate_key(key)
        token = str(uuid4())
        try:
            acquired = await self._client.set(self._lock_key(key), token, px=_ttl_ms(lease_ttl), nx=True)
        except RedisError as e:
            raise CacheConnectionError(f"Falha ao obter lock no Redis: {e}", key=key) from e
        return token if acquired else None

    async def unlock(self, key: str, token: str) -> bool:
        if not key or not token:
            return False
        try:
            released = await self._client.eval(UNLOCK_SCRIPT, 1, self._lock_key(key), token)
        except RedisError as e:
            raise CacheConnectionError(f"Falha ao liberar lock no Redis: {e}", key=key) from e
        return bool(released)

    async def aclose(self) -> None:
        """Fecha a conexão com o Redis."""
        await self._client.aclose()

    async def __aenter__(self) -> "RedisCacheStore":
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()
