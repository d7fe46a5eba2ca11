"""Construtor de chaves de cache determinísticas."""

import hashlib
import inspect
from collections.abc import Callable
from typing import Any

import msgpack

HASH_LENGTH = 16
BOUND_PARAMETERS = ("self", "cls")


class DefaultKeyBuilder:
    """Constrói chaves no formato ``{prefix}:{module}.{qualname}:{hash}``.

    Os argumentos são associados à assinatura da função antes do hash, então
    ``f(1)``, ``f(x=1)`` e ``f()`` (com ``x=1`` como default) geram a mesma
    chave. ``self`` e ``cls`` ficam fora do hash, o que permite
    compartilhar o cache entre instâncias.

    Attributes:
        prefix: Prefixo para todas as chaves geradas
    """

    def __init__(self, prefix: str = "cache") -> None:
        if not prefix:
            raise ValueError("Prefix não pode ser vazio")
        self._prefix = prefix

    @property
    def prefix(self) -> str:
        """Prefixo das chaves."""
        return self._prefix

    def build_key(self, func: Callable[..., Any], args: tuple[Any, ...], kwargs: dict[str, Any]) -> str:
        """Constrói a chave para uma chamada de ``func``."""
        module = getattr(func, "__module__", "unknown")
        qualname = getattr(func, "__qualname__", getattr(func, "__name__", "unknown"))
        arguments = self._bind_arguments(func, args, kwargs)
        return f"{self._prefix}:{module}.{qualname}:{self._digest(arguments)}"

    def _bind_arguments(
        self, func: Callable[..., Any], args: tuple[Any, ...], kwargs: dict[str, Any]
    ) -> list[tuple[str, Any]]:
        try:
            bound = inspect.signature(func).bind(*args, **kwargs)
        except (TypeError, ValueError):
            # Assinatura indisponível ou chamada inválida: usa os argumentos como vieram
            return [("*", list(args)), *sorted(kwargs.items())]

        bound.apply_defaults()
        return [(name, value) for name, value in bound.arguments.items() if name not in BOUND_PARAMETERS]

    def _digest(self, arguments: list[tuple[str, Any]]) -> str:
        payload = msgpack.packb(
            [[name, _normalize(value)] for name, value in arguments],
            use_bin_type=True,
        )
        return hashlib.sha256(payload).hexdigest()[:HASH_LENGTH]


def _normalize(value: Any) -> Any:
    """Converte valor para uma forma estável e serializável em MsgPack."""
    if value is None or isinstance(value, (bool, int, float, str, bytes)):
        return value
    if isinstance(value, (list, tuple)):
        return [_normalize(item) for item in value]
    if isinstance(value, dict):
        return sorted(([str(k), _normalize(v)] for k, v in value.items()), key=lambda item: item[0])
    if isinstance(value, (set, frozenset)):
        return sorted((_normalize(item) for item in value), key=lambda item: (type(item).__name__, repr(item)))
    return repr(value)
