"""Exceções do stampede-cache."""


class CacheError(Exception):
    """Erro base para operações de cache."""

    def __init__(self, message: str, key: str | None = None) -> None:
        self.key = key
        super().__init__(message)


class CacheConnectionError(CacheError):
    """Erro de comunicação com o store (sidecar Dapr, Redis, etc.)."""

    pass


class CacheSerializationError(CacheError):
    """Erro de serialização/deserialização de entradas."""

    pass


class CacheKeyError(CacheError):
    """Erro relacionado à chave de cache (vazia, inválida, etc.)."""

    pass


class LockAcquisitionError(CacheError):
    """Lease não obtido dentro do tempo de espera configurado.

    Só chega ao chamador quando não há dado em cache para servir.
    """

    pass
