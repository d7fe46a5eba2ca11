"""Decorator @cached para ligar funções assíncronas a um StampedeCache."""

import inspect
import logging
from collections.abc import Callable
from functools import wraps
from typing import Any

from .cache import StampedeCache
from .key_builder import DefaultKeyBuilder
from .protocols import KeyBuilder

logger = logging.getLogger(__name__)

DEFAULT_KEY_PREFIX = "cache"


class CachedFunction:
    """Wrapper para funções decoradas com @cached.

    Cada chamada monta a chave com o key builder e delega ao coordenador,
    usando a própria chamada da função como função de origem.

    Implementa o descriptor protocol para suportar métodos de instância.
    """

    def __init__(
        self,
        func: Callable[..., Any],
        cache: StampedeCache,
        key_builder: KeyBuilder,
    ) -> None:
        if not inspect.iscoroutinefunction(func):
            raise TypeError(f"@cached requer uma função async: {getattr(func, '__qualname__', func)!r}")

        self._func = func
        self._cache = cache
        self._key_builder = key_builder

        # Preserva metadados da função original
        wraps(func)(self)

    @property
    def cache(self) -> StampedeCache:
        """Coordenador usado pela função."""
        return self._cache

    def __get__(self, obj: Any, _objtype: type | None = None) -> "CachedFunction | BoundCachedMethod":
        if obj is None:
            return self
        return BoundCachedMethod(self, obj)

    def build_key(self, *args: Any, **kwargs: Any) -> str:
        """Chave de cache (sem o key_prefix do coordenador) para os argumentos."""
        return self._key_builder.build_key(self._func, args, kwargs)

    async def __call__(self, *args: Any, **kwargs: Any) -> Any:
        key = self.build_key(*args, **kwargs)
        return await self._cache.get(key, on_miss=self._producer(args, kwargs))

    async def refresh(self, *args: Any, **kwargs: Any) -> Any:
        """Força a regeneração da entrada para os argumentos especificados."""
        key = self.build_key(*args, **kwargs)
        logger.debug(f"Refresh forçado: {key}")
        return await self._cache.refresh(key, on_miss=self._producer(args, kwargs))

    async def invalidate(self, *args: Any, **kwargs: Any) -> bool:
        """Remove a entrada para os argumentos especificados."""
        return await self._cache.clear(self.build_key(*args, **kwargs))

    def _producer(self, args: tuple[Any, ...], kwargs: dict[str, Any]) -> Callable[[str], Any]:
        func = self._func

        def produce(_key: str) -> Any:
            return func(*args, **kwargs)

        return produce


class BoundCachedMethod:
    """Wrapper para métodos bound (com self/cls)."""

    def __init__(self, wrapper: CachedFunction, instance: Any) -> None:
        self._wrapper = wrapper
        self._instance = instance

    async def __call__(self, *args: Any, **kwargs: Any) -> Any:
        return await self._wrapper(self._instance, *args, **kwargs)

    async def refresh(self, *args: Any, **kwargs: Any) -> Any:
        return await self._wrapper.refresh(self._instance, *args, **kwargs)

    async def invalidate(self, *args: Any, **kwargs: Any) -> bool:
        return await self._wrapper.invalidate(self._instance, *args, **kwargs)


def cached(
    cache: StampedeCache,
    *,
    key_builder: KeyBuilder | None = None,
    prefix: str = DEFAULT_KEY_PREFIX,
) -> Callable[[Callable[..., Any]], CachedFunction]:
    """Decorator para servir uma função async através de um StampedeCache.

    Args:
        cache: Coordenador que guarda os resultados
        key_builder: Construtor de chaves customizado
        prefix: Prefixo do DefaultKeyBuilder (ignorado com key_builder)

    Returns:
        Decorator que produz um CachedFunction

    Example:
        ```python
        cache = StampedeCache(MemoryCacheStore(), soft_ttl=60, hard_ttl=600, ...)

        @cached(cache, prefix="users")
        async def get_user(user_id: int) -> dict:
            return await db.fetch_user(user_id)

        user = await get_user(123)
        await get_user.refresh(123)
        await get_user.invalidate(user_id=123)
        ```
    """
    builder = key_builder or DefaultKeyBuilder(prefix=prefix)

    def decorator(fn: Callable[..., Any]) -> CachedFunction:
        return CachedFunction(fn, cache, builder)

    return decorator
