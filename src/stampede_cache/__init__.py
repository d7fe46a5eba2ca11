"""stampede-cache: Cache read-through com proteção contra stampede.

Coordena leituras concorrentes de uma mesma chave para que a função de
origem rode no máximo uma vez por vez, mesmo entre processos (via lease no
store), com suporte a servir dados stale enquanto o refresh acontece.

Uso básico:
    ```python
    from stampede_cache import MemoryCacheStore, StampedeCache

    async def load_user(key: str) -> dict:
        return await db.fetch_user(key)

    cache = StampedeCache(
        MemoryCacheStore(),
        on_miss=load_user,
        soft_ttl=60,
        hard_ttl=3600,
        lease_ttl=10,
        wait_for_lock=5,
        retry_interval=0.05,
        return_stale=True,
    )

    user = await cache.get("123")
    ```

Com decorator e Dapr:
    ```python
    from stampede_cache import CacheConfig, DaprStateStore, StampedeCache, cached

    cache = StampedeCache(DaprStateStore("cache", lock_store_name="lockstore"), config=CacheConfig.from_env())

    @cached(cache, prefix="users")
    async def get_user(user_id: int) -> dict:
        return await db.fetch_user(user_id)

    await get_user.invalidate(123)
    ```
"""

__version__ = "0.1.0"

# Coordenador
from .cache import StampedeCache

# Configuração
from .config import CacheConfig

# Decorator
from .decorator import BoundCachedMethod, CachedFunction, cached

# Deduplicação (uso avançado)
from .deduplication import DeduplicationManager
from .entry import CacheEntry

# Exceções
from .exceptions import (
    CacheConnectionError,
    CacheError,
    CacheKeyError,
    CacheSerializationError,
    LockAcquisitionError,
)

# Geração de chaves
from .key_builder import DefaultKeyBuilder
from .lease import Lease, acquire_lease

# Métricas
from .metrics import (
    CacheMetrics,
    CacheStats,
    InMemoryMetrics,
    KeyStats,
    NoOpMetrics,
    OpenTelemetryMetrics,
)

# Protocols (para extensibilidade)
from .protocols import BackgroundErrorHandler, CacheStore, KeyBuilder, Producer

# Serialização
from .serializer import EntryCodec, MsgPackSerializer, Serializer

# Stores
from .stores import DaprStateStore, MemoryCacheStore, RedisCacheStore
from .validators import ValidationError

__all__ = [
    # Coordenador
    "StampedeCache",
    "CacheConfig",
    "CacheEntry",
    "Lease",
    "acquire_lease",
    # Decorator
    "cached",
    "CachedFunction",
    "BoundCachedMethod",
    # Stores
    "CacheStore",
    "DaprStateStore",
    "MemoryCacheStore",
    "RedisCacheStore",
    # Serialização
    "EntryCodec",
    "MsgPackSerializer",
    "Serializer",
    # Geração de chaves
    "DefaultKeyBuilder",
    "KeyBuilder",
    # Callables
    "Producer",
    "BackgroundErrorHandler",
    # Métricas
    "CacheMetrics",
    "CacheStats",
    "KeyStats",
    "NoOpMetrics",
    "InMemoryMetrics",
    "OpenTelemetryMetrics",
    # Exceções
    "CacheError",
    "CacheConnectionError",
    "CacheSerializationError",
    "CacheKeyError",
    "LockAcquisitionError",
    "ValidationError",
    # Deduplicação
    "DeduplicationManager",
]
