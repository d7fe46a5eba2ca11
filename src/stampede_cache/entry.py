"""Entrada de cache persistida pelo store."""

import time
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class CacheEntry:
    """Valor em cache com o instante de expiração "soft".

    A ausência de entrada é representada pelo store retornando ``None``
    no lugar de um ``CacheEntry``. Por isso ``data`` pode conter qualquer
    valor, inclusive ``None``, ``False``, ``0`` ou ``""``.

    Attributes:
        data: Valor produzido pela função de origem
        soft_expires_at: Timestamp absoluto (``time.time()``) a partir do qual
            a entrada é considerada stale
    """

    data: Any
    soft_expires_at: float

    def is_stale(self, now: float | None = None) -> bool:
        """Indica se a entrada já passou do soft TTL."""
        if now is None:
            now = time.time()
        return now >= self.soft_expires_at

    @classmethod
    def create(cls, data: Any, soft_ttl: float, now: float | None = None) -> "CacheEntry":
        """Cria entrada que expira (soft) em ``soft_ttl`` segundos."""
        if now is None:
            now = time.time()
        return cls(data=data, soft_expires_at=now + soft_ttl)
