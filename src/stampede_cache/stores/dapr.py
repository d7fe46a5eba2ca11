"""Store para Dapr via API HTTP do sidecar (state + distributed lock)."""

import asyncio
import base64
import binascii
import json
import logging
import math
import os
from typing import Any
from uuid import uuid4

import httpx

from ..entry import CacheEntry
from ..exceptions import CacheConnectionError, CacheKeyError
from ..serializer import EntryCodec, Serializer

logger = logging.getLogger(__name__)

# Configuração do sidecar Dapr
DEFAULT_DAPR_HTTP_PORT = 3500
DEFAULT_TIMEOUT_SECONDS = 5.0
MIN_TTL_SECONDS = 1
UNLOCK_SUCCESS = 0


def _get_dapr_url() -> str:
    """Obtém a URL base do sidecar Dapr."""
    host = os.getenv("DAPR_HTTP_HOST", "127.0.0.1")
    port = os.getenv("DAPR_HTTP_PORT", str(DEFAULT_DAPR_HTTP_PORT))
    return f"http://{host}:{port}"


def _ttl_seconds(ttl: float) -> int:
    """Converte TTL em segundos inteiros (Dapr não aceita frações nem zero)."""
    return max(MIN_TTL_SECONDS, math.ceil(ttl))


class DaprStateStore:
    """Store para Dapr usando a API HTTP direta do sidecar.

    Entradas ficam no building block de State Management e os leases no
    building block de Distributed Lock:

    - GET /v1.0/state/{storename}/{key} - buscar entrada
    - POST /v1.0/state/{storename} - salvar entrada (com ttlInSeconds)
    - DELETE /v1.0/state/{storename}/{key} - deletar entrada
    - POST /v1.0-alpha1/lock/{lockstore} - obter lease
    - POST /v1.0-alpha1/unlock/{lockstore} - liberar lease

    O token do lease é o ``lockOwner`` enviado ao Dapr; o sidecar só libera
    o lock quando o mesmo dono é apresentado.

    Attributes:
        store_name: Nome do state store configurado no Dapr
        lock_store_name: Nome do lock store configurado no Dapr
    """

    def __init__(
        self,
        store_name: str,
        lock_store_name: str | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        dapr_url: str | None = None,
        serializer: Serializer | None = None,
    ) -> None:
        """Inicializa o store.

        Args:
            store_name: Nome do state store Dapr
            lock_store_name: Nome do lock store Dapr (default: mesmo do state store)
            timeout: Timeout para operações HTTP
            dapr_url: URL do sidecar (usa env vars se não fornecido)
            serializer: Serializer do payload (default: MsgPackSerializer)

        Raises:
            CacheKeyError: Se store_name for vazio
        """
        if not store_name:
            raise CacheKeyError("store_name não pode ser vazio")

        self._store_name = store_name
        self._lock_store_name = lock_store_name or store_name
        self._timeout = timeout
        self._base_url = dapr_url or _get_dapr_url()
        self._codec = EntryCodec(serializer)

        # Cliente é criado sob demanda para melhor gerenciamento de recursos
        self._client: httpx.AsyncClient | None = None
        # asyncio.Lock é criado lazy para evitar "no current event loop" em Python 3.10+
        # quando a classe é instanciada antes de um event loop existir
        self._client_lock: asyncio.Lock | None = None

    @property
    def store_name(self) -> str:
        """Nome do state store."""
        return self._store_name

    @property
    def lock_store_name(self) -> str:
        """Nome do lock store."""
        return self._lock_store_name

    def _get_client_lock(self) -> asyncio.Lock:
        if self._client_lock is None:
            self._client_lock = asyncio.Lock()
        return self._client_lock

    async def _get_client(self) -> httpx.AsyncClient:
        """Obtém ou cria cliente HTTP assíncrono (async-safe).

        Usa double-checked locking com asyncio.Lock para não bloquear o event loop.
        """
        if self._client is None:
            async with self._get_client_lock():
                if self._client is None:
                    self._client = httpx.AsyncClient(
                        base_url=self._base_url,
                        timeout=self._timeout,
                    )
        return self._client

    def _state_url(self, key: str | None = None) -> str:
        """Constrói URL para operações de state."""
        if key:
            return f"/v1.0/state/{self._store_name}/{key}"
        return f"/v1.0/state/{self._store_name}"

    def _lock_url(self) -> str:
        return f"/v1.0-alpha1/lock/{self._lock_store_name}"

    def _unlock_url(self) -> str:
        return f"/v1.0-alpha1/unlock/{self._lock_store_name}"

    def _encode_value(self, value: bytes) -> str:
        """Codifica valor em base64 para envio via JSON."""
        return base64.b64encode(value).decode("ascii")

    def _decode_value(self, content: bytes) -> bytes | None:
        """Decodifica valor recebido do Dapr.

        O Dapr devolve o valor salvo como JSON, ou seja, a string base64
        entre aspas.
        """
        try:
            text = content.decode("utf-8").strip()
            if text.startswith('"'):
                text = json.loads(text)
            return base64.b64decode(text, validate=True)
        except (UnicodeDecodeError, json.JSONDecodeError, binascii.Error, TypeError) as e:
            logger.warning(f"Valor inválido recebido do Dapr: {e}")
            return None

    async def get(self, key: str) -> CacheEntry | None:
        """Busca entrada do cache.

        Returns:
            Entrada ou None se não encontrada

        Raises:
            CacheConnectionError: Se o sidecar não responder ou responder com erro
            CacheSerializationError: Se o payload armazenado for inválido
        """
        if not key:
            raise CacheKeyError("Chave não pode ser vazia", key=key)

        try:
            client = await self._get_client()
            response = await client.get(self._state_url(key))
        except httpx.ConnectError as e:
            raise CacheConnectionError(f"Não foi possível conectar ao sidecar Dapr: {e}", key=key) from e
        except httpx.TimeoutException as e:
            raise CacheConnectionError(f"Timeout ao buscar chave no sidecar Dapr: {e}", key=key) from e

        if response.status_code == 204 or not response.content:
            logger.debug(f"Cache miss para chave: {key}")
            return None

        if response.status_code != 200:
            raise CacheConnectionError(f"Resposta inesperada do Dapr: {response.status_code}", key=key)

        payload = self._decode_value(response.content)
        if payload is None:
            return None
        return self._codec.decode(payload, key=key)

    async def set(self, key: str, entry: CacheEntry, hard_ttl: float) -> bool:
        """Armazena entrada com TTL nativo do Dapr.

        Returns:
            True se armazenado com sucesso

        Raises:
            CacheConnectionError: Se o sidecar não responder
        """
        if not key:
            raise CacheKeyError("Chave não pode ser vazia", key=key)

        ttl_seconds = _ttl_seconds(hard_ttl)
        payload = [
            {
                "key": key,
                "value": self._encode_value(self._codec.encode(entry)),
                "metadata": {"ttlInSeconds": str(ttl_seconds)},
            }
        ]

        try:
            client = await self._get_client()
            response = await client.post(self._state_url(), json=payload)
        except httpx.ConnectError as e:
            raise CacheConnectionError(f"Não foi possível conectar ao sidecar Dapr: {e}", key=key) from e
        except httpx.TimeoutException as e:
            raise CacheConnectionError(f"Timeout ao salvar chave no sidecar Dapr: {e}", key=key) from e

        if response.status_code in (200, 201, 204):
            logger.debug(f"Cache set para chave: {key}, TTL: {ttl_seconds}s")
            return True

        logger.warning(f"Falha ao salvar cache: {response.status_code}")
        return False

    async def delete(self, key: str) -> bool:
        """Remove entrada do cache.

        O Dapr responde 204 mesmo quando a chave não existe, então o retorno
        indica apenas que a remoção foi aceita.

        Raises:
            CacheConnectionError: Se o sidecar não responder
        """
        if not key:
            return False

        try:
            client = await self._get_client()
            response = await client.delete(self._state_url(key))
        except httpx.ConnectError as e:
            raise CacheConnectionError(f"Não foi possível conectar ao sidecar Dapr: {e}", key=key) from e
        except httpx.TimeoutException as e:
            raise CacheConnectionError(f"Timeout ao deletar chave no sidecar Dapr: {e}", key=key) from e

        if response.status_code in (200, 204):
            logger.debug(f"Cache delete para chave: {key}")
            return True

        logger.warning(f"Falha ao deletar chave {key}: {response.status_code}")
        return False

    async def lock(self, key: str, lease_ttl: float) -> str | None:
        """Tenta obter o lock distribuído da chave.

        Returns:
            Token (lockOwner) se obtido, None caso contrário

        Raises:
            CacheConnectionError: Se o sidecar não responder ou responder com erro
        """
        if not key:
            raise CacheKeyError("Chave não pode ser vazia", key=key)

        token = str(uuid4())
        payload = {
            "resourceId": key,
            "lockOwner": token,
            "expiryInSeconds": _ttl_seconds(lease_ttl),
        }

        try:
            client = await self._get_client()
            response = await client.post(self._lock_url(), json=payload)
        except httpx.ConnectError as e:
            raise CacheConnectionError(f"Não foi possível conectar ao sidecar Dapr: {e}", key=key) from e
        except httpx.TimeoutException as e:
            raise CacheConnectionError(f"Timeout ao obter lock no sidecar Dapr: {e}", key=key) from e

        if response.status_code != 200:
            raise CacheConnectionError(f"Falha ao obter lock: {response.status_code}", key=key)

        if self._json_body(response).get("success") is True:
            logger.debug(f"Lock obtido para chave: {key}")
            return token

        logger.debug(f"Lock ocupado para chave: {key}")
        return None

    async def unlock(self, key: str, token: str) -> bool:
        """Libera o lock distribuído se o token for o dono atual.

        Raises:
            CacheConnectionError: Se o sidecar não responder
        """
        if not key or not token:
            return False

        payload = {"resourceId": key, "lockOwner": token}

        try:
            client = await self._get_client()
            response = await client.post(self._unlock_url(), json=payload)
        except httpx.ConnectError as e:
            raise CacheConnectionError(f"Não foi possível conectar ao sidecar Dapr: {e}", key=key) from e
        except httpx.TimeoutException as e:
            raise CacheConnectionError(f"Timeout ao liberar lock no sidecar Dapr: {e}", key=key) from e

        if response.status_code != 200:
            logger.warning(f"Falha ao liberar lock: {response.status_code}")
            return False

        status = self._json_body(response).get("status")
        if status != UNLOCK_SUCCESS:
            logger.debug(f"Lock não liberado para chave {key} (status: {status})")
            return False
        return True

    def _json_body(self, response: httpx.Response) -> dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}

    # ========== Gerenciamento de Recursos ==========

    async def aclose(self) -> None:
        """Fecha o cliente HTTP."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "DaprStateStore":
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()
