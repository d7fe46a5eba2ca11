"""Configuração do coordenador de cache.

Resolve parâmetros seguindo a precedência:

1. Argumento explícito (maior precedência)
2. Variável de ambiente (``STAMPEDE_CACHE_*``)
3. Valor padrão (menor precedência)
"""

import math
import os
from dataclasses import dataclass
from typing import Any

from .constants import (
    DEFAULT_KEY_PREFIX,
    DEFAULT_WAIT_BEFORE_STALE,
    ENV_HARD_TTL,
    ENV_KEY_PREFIX,
    ENV_LEASE_TTL,
    ENV_RETRY_INTERVAL,
    ENV_RETURN_STALE,
    ENV_SOFT_TTL,
    ENV_WAIT_BEFORE_STALE,
    ENV_WAIT_FOR_LOCK,
    ERROR_ENV_VALUE_INVALID,
    ERROR_OPTION_MISSING,
    FALSY_ENV_VALUES,
    TRUTHY_ENV_VALUES,
)
from .validators import ValidationError, validate_cache_parameters


@dataclass(frozen=True)
class CacheConfig:
    """Parâmetros do coordenador (durações em segundos).

    Attributes:
        soft_ttl: Tempo até uma entrada escrita ficar stale
        hard_ttl: Tempo até o store remover a entrada (deve ser > soft_ttl)
        lease_ttl: Tempo até um lease não liberado expirar sozinho
        wait_for_lock: Tempo máximo tentando obter o lease
        retry_interval: Intervalo entre tentativas de obter o lease
        return_stale: Se True, dados stale são servidos enquanto o refresh
            roda em background
        wait_before_stale: Quanto esperar pelo refresh antes de servir stale
        key_prefix: Namespace aplicado apenas às chaves do store
    """

    soft_ttl: float
    hard_ttl: float
    lease_ttl: float
    wait_for_lock: float
    retry_interval: float
    return_stale: bool
    wait_before_stale: float = DEFAULT_WAIT_BEFORE_STALE
    key_prefix: str = DEFAULT_KEY_PREFIX

    def __post_init__(self) -> None:
        validate_cache_parameters(
            soft_ttl=self.soft_ttl,
            hard_ttl=self.hard_ttl,
            lease_ttl=self.lease_ttl,
            wait_for_lock=self.wait_for_lock,
            retry_interval=self.retry_interval,
            return_stale=self.return_stale,
            wait_before_stale=self.wait_before_stale,
            key_prefix=self.key_prefix,
        )

    @property
    def max_lock_retries(self) -> int:
        """Número de novas tentativas após a primeira falha ao obter o lease."""
        return math.ceil(self.wait_for_lock / self.retry_interval)

    @classmethod
    def from_env(cls, **overrides: Any) -> "CacheConfig":
        """Cria configuração a partir de argumentos e variáveis de ambiente.

        Args:
            **overrides: Valores explícitos (têm precedência sobre o ambiente)

        Raises:
            ValidationError: Se um parâmetro obrigatório faltar ou for inválido
        """
        return cls(
            soft_ttl=_resolve_float("soft_ttl", ENV_SOFT_TTL, overrides.get("soft_ttl")),
            hard_ttl=_resolve_float("hard_ttl", ENV_HARD_TTL, overrides.get("hard_ttl")),
            lease_ttl=_resolve_float("lease_ttl", ENV_LEASE_TTL, overrides.get("lease_ttl")),
            wait_for_lock=_resolve_float("wait_for_lock", ENV_WAIT_FOR_LOCK, overrides.get("wait_for_lock")),
            retry_interval=_resolve_float("retry_interval", ENV_RETRY_INTERVAL, overrides.get("retry_interval")),
            return_stale=_resolve_bool("return_stale", ENV_RETURN_STALE, overrides.get("return_stale")),
            wait_before_stale=_resolve_float(
                "wait_before_stale",
                ENV_WAIT_BEFORE_STALE,
                overrides.get("wait_before_stale"),
                default=DEFAULT_WAIT_BEFORE_STALE,
            ),
            key_prefix=_resolve_str(ENV_KEY_PREFIX, overrides.get("key_prefix"), DEFAULT_KEY_PREFIX),
        )


def _resolve_float(name: str, env_name: str, explicit_value: Any, default: float | None = None) -> Any:
    if explicit_value is not None:
        return explicit_value

    env_value = os.getenv(env_name)
    if env_value:
        try:
            return float(env_value)
        except ValueError as e:
            raise ValidationError(ERROR_ENV_VALUE_INVALID.format(env_name=env_name, value=env_value)) from e

    if default is None:
        raise ValidationError(ERROR_OPTION_MISSING.format(name=name, env_name=env_name))
    return default


def _resolve_bool(name: str, env_name: str, explicit_value: Any) -> Any:
    if explicit_value is not None:
        return explicit_value

    env_value = os.getenv(env_name)
    if env_value:
        normalized = env_value.strip().lower()
        if normalized in TRUTHY_ENV_VALUES:
            return True
        if normalized in FALSY_ENV_VALUES:
            return False
        raise ValidationError(ERROR_ENV_VALUE_INVALID.format(env_name=env_name, value=env_value))

    raise ValidationError(ERROR_OPTION_MISSING.format(name=name, env_name=env_name))


def _resolve_str(env_name: str, explicit_value: Any, default: str) -> Any:
    if explicit_value is not None:
        return explicit_value
    return os.getenv(env_name) or default
