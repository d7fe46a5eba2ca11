"""Configuração de fixtures para testes."""

from collections.abc import Callable
from typing import Any

import pytest

from stampede_cache import InMemoryMetrics, MemoryCacheStore, StampedeCache

# Parâmetros rápidos para testes (segundos)
FAST_OPTIONS: dict[str, Any] = {
    "soft_ttl": 10.0,
    "hard_ttl": 60.0,
    "lease_ttl": 5.0,
    "wait_for_lock": 0.5,
    "retry_interval": 0.01,
    "return_stale": False,
}


@pytest.fixture
def sample_data() -> dict:
    """Dados de exemplo para testes."""
    return {"user_id": 123, "name": "Test User", "active": True}


@pytest.fixture
def store() -> MemoryCacheStore:
    """Store em memória isolado por teste."""
    return MemoryCacheStore()


@pytest.fixture
def metrics() -> InMemoryMetrics:
    """Coletor de métricas em memória."""
    return InMemoryMetrics()


@pytest.fixture
def make_cache(store: MemoryCacheStore) -> Callable[..., StampedeCache]:
    """Fábrica de coordenadores sobre o store do teste.

    Aceita os mesmos argumentos do StampedeCache; opções não informadas
    usam FAST_OPTIONS.
    """

    def factory(on_miss: Any = None, **kwargs: Any) -> StampedeCache:
        target_store = kwargs.pop("store", store)
        extra = {name: kwargs.pop(name) for name in ("metrics", "on_background_error", "deduplication") if name in kwargs}
        options = {**FAST_OPTIONS, **kwargs}
        return StampedeCache(target_store, on_miss, **extra, **options)

    return factory
