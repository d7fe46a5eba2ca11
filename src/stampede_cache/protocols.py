"""Protocols para extensibilidade da biblioteca.

Define interfaces que permitem implementações customizadas de:
- CacheStore: Armazenamento de entradas e leases por chave
- KeyBuilder: Geração de chaves de cache no decorator
- Producer / BackgroundErrorHandler: Callables injetados no coordenador
"""

from collections.abc import Callable
from typing import Any, Protocol

from .entry import CacheEntry

Producer = Callable[[str], Any]
"""Função que (re)gera o valor de uma chave. Recebe a chave sem prefixo."""

BackgroundErrorHandler = Callable[[str, Exception], None]
"""Destino de erros que ocorrem fora do caminho do chamador."""


class CacheStore(Protocol):
    """Protocol para stores de cache com lock por lease.

    Implemente este protocol para usar outro backend de armazenamento.
    Todas as operações são assíncronas.

    Example:
        ```python
        class MyStore:
            async def get(self, key: str) -> CacheEntry | None: ...
            async def set(self, key: str, entry: CacheEntry, hard_ttl: float) -> bool: ...
            async def delete(self, key: str) -> bool: ...
            async def lock(self, key: str, lease_ttl: float) -> str | None: ...
            async def unlock(self, key: str, token: str) -> bool: ...
        ```
    """

    async def get(self, key: str) -> CacheEntry | None:
        """Busca entrada armazenada.

        Args:
            key: Chave (já prefixada)

        Returns:
            Entrada ou None se ausente. Nunca confunde ausência com valor "falsy".
        """
        ...

    async def set(self, key: str, entry: CacheEntry, hard_ttl: float) -> bool:
        """Armazena entrada atomicamente com expiração absoluta.

        Args:
            key: Chave (já prefixada)
            entry: Entrada a armazenar
            hard_ttl: Segundos até o store remover a entrada

        Returns:
            True se armazenado com sucesso
        """
        ...

    async def delete(self, key: str) -> bool:
        """Remove entrada.

        Returns:
            True se algo foi removido
        """
        ...

    async def lock(self, key: str, lease_ttl: float) -> str | None:
        """Tenta obter lease exclusivo (set-if-absent).

        Args:
            key: Chave (já prefixada)
            lease_ttl: Segundos até o lease expirar sozinho

        Returns:
            Token único do lease, ou None se já existe outro dono
        """
        ...

    async def unlock(self, key: str, token: str) -> bool:
        """Libera o lease somente se o token for o do dono atual.

        Returns:
            True se o lease foi liberado
        """
        ...


class KeyBuilder(Protocol):
    """Protocol para construtores de chaves de cache.

    Implemente este protocol para customizar como as chaves
    de cache são geradas a partir de funções e argumentos.

    Example:
        ```python
        class MyKeyBuilder:
            def build_key(self, func, args, kwargs) -> str:
                return f"my-prefix:{func.__name__}:{hash(args)}"
        ```
    """

    def build_key(
        self,
        func: Callable[..., Any],
        args: tuple[Any, ...],
        kwargs: dict[str, Any],
    ) -> str:
        """Constrói chave de cache.

        Args:
            func: Função decorada
            args: Argumentos posicionais
            kwargs: Argumentos nomeados

        Returns:
            Chave de cache como string
        """
        ...
