"""Serialização de entradas de cache usando MsgPack."""

from typing import Any, Protocol

import msgpack

from .entry import CacheEntry
from .exceptions import CacheSerializationError


class Serializer(Protocol):
    """Protocol para serializers customizados."""

    def serialize(self, data: Any) -> bytes:
        """Serializa dados Python para bytes."""
        ...

    def deserialize(self, data: bytes) -> Any:
        """Deserializa bytes para dados Python."""
        ...


class MsgPackSerializer:
    """Serializer usando MessagePack.

    MsgPack é um formato binário eficiente, mais compacto que JSON
    e com melhor performance para serialização/deserialização.

    Suporta tipos Python nativos:
    - None, bool, int, float, str, bytes
    - list, tuple, dict
    """

    def serialize(self, data: Any) -> bytes:
        """Serializa dados Python para bytes MsgPack.

        Raises:
            CacheSerializationError: Se falhar ao serializar
        """
        try:
            result = msgpack.packb(data, use_bin_type=True)
            if result is None:
                raise CacheSerializationError("msgpack.packb retornou None")
            return result
        except (TypeError, ValueError) as e:
            raise CacheSerializationError(f"Falha ao serializar dados: {e}") from e

    def deserialize(self, data: bytes) -> Any:
        """Deserializa bytes MsgPack para dados Python.

        Raises:
            CacheSerializationError: Se falhar ao deserializar
        """
        try:
            return msgpack.unpackb(data, raw=False)
        except (msgpack.UnpackException, ValueError) as e:
            raise CacheSerializationError(f"Falha ao deserializar dados: {e}") from e


class EntryCodec:
    """Converte ``CacheEntry`` em bytes e vice-versa.

    O valor é sempre embrulhado em um mapa ``{"data": ..., "soft_expires_at": ...}``,
    de forma que valores "falsy" (None, False, 0, "") continuam distinguíveis
    de uma chave ausente depois de passar pelo store.
    """

    DATA_FIELD = "data"
    SOFT_EXPIRES_FIELD = "soft_expires_at"

    def __init__(self, serializer: Serializer | None = None) -> None:
        self._serializer = serializer or MsgPackSerializer()

    @property
    def serializer(self) -> Serializer:
        """Serializer usado para o payload."""
        return self._serializer

    def encode(self, entry: CacheEntry) -> bytes:
        """Serializa a entrada completa."""
        return self._serializer.serialize(
            {
                self.DATA_FIELD: entry.data,
                self.SOFT_EXPIRES_FIELD: entry.soft_expires_at,
            }
        )

    def decode(self, payload: bytes, key: str | None = None) -> CacheEntry:
        """Reconstrói a entrada a partir dos bytes armazenados.

        Raises:
            CacheSerializationError: Se o payload não tiver o formato esperado
        """
        raw = self._serializer.deserialize(payload)
        if not isinstance(raw, dict) or self.DATA_FIELD not in raw or self.SOFT_EXPIRES_FIELD not in raw:
            raise CacheSerializationError("Payload de cache em formato inesperado", key=key)

        soft_expires_at = raw[self.SOFT_EXPIRES_FIELD]
        if isinstance(soft_expires_at, bool) or not isinstance(soft_expires_at, (int, float)):
            raise CacheSerializationError("soft_expires_at inválido no payload de cache", key=key)

        return CacheEntry(data=raw[self.DATA_FIELD], soft_expires_at=float(soft_expires_at))
