"""Store em memória (testes e processo único)."""

import logging
import time
from uuid import uuid4

from ..entry import CacheEntry

logger = logging.getLogger(__name__)


class MemoryCacheStore:
    """Store em memória com expiração e leases.

    As expirações (hard TTL das entradas e TTL dos leases) são verificadas
    na leitura usando ``time.monotonic()``. Nenhuma operação suspende o
    event loop, então cada uma é atômica em relação às demais corrotinas.
    """

    def __init__(self) -> None:
        self._items: dict[str, tuple[CacheEntry, float]] = {}
        self._locks: dict[str, tuple[str, float]] = {}

    async def get(self, key: str) -> CacheEntry | None:
        item = self._items.get(key)
        if item is None:
            return None

        entry, expires_at = item
        if expires_at <= time.monotonic():
            del self._items[key]
            return None
        return entry

    async def set(self, key: str, entry: CacheEntry, hard_ttl: float) -> bool:
        self._items[key] = (entry, time.monotonic() + hard_ttl)
        return True

    async def delete(self, key: str) -> bool:
        return self._items.pop(key, None) is not None

    async def lock(self, key: str, lease_ttl: float) -> str | None:
        now = time.monotonic()
        current = self._locks.get(key)
        if current is not None and current[1] > now:
            return None

        token = str(uuid4())
        self._locks[key] = (token, now + lease_ttl)
        return token

    async def unlock(self, key: str, token: str) -> bool:
        current = self._locks.get(key)
        if current is None:
            return False

        current_token, expires_at = current
        if current_token != token:
            logger.debug(f"Unlock ignorado para {key}: token não confere")
            return False

        del self._locks[key]
        # Lease já expirado não conta como liberado
        return expires_at > time.monotonic()

    def is_locked(self, key: str) -> bool:
        """Indica se há lease válido para a chave."""
        current = self._locks.get(key)
        return current is not None and current[1] > time.monotonic()

    def reset(self) -> None:
        """Remove todas as entradas e leases."""
        self._items.clear()
        self._locks.clear()
