"""Coordenador de cache read-through com proteção contra stampede."""

import asyncio
import inspect
import logging
import time
from collections.abc import Coroutine
from typing import Any

from .config import CacheConfig
from .constants import ERROR_CONFIG_AND_OPTIONS
from .deduplication import DeduplicationManager
from .entry import CacheEntry
from .exceptions import CacheError, CacheKeyError, LockAcquisitionError
from .lease import Lease, acquire_lease
from .metrics import CacheMetrics, NoOpMetrics
from .protocols import BackgroundErrorHandler, CacheStore, Producer
from .validators import ValidationError

logger = logging.getLogger(__name__)


class StampedeCache:
    """Cache read-through que evita regeneração concorrente da mesma chave.

    Cada leitura classifica a entrada do store em um de três estados:

    - **MISSING**: não há entrada. Obtém o lease (esperando até
      ``wait_for_lock``), chama a função de origem e devolve o valor.
    - **FRESH**: ``now < soft_expires_at``. Devolve o valor sem lease e sem
      chamar a função de origem.
    - **STALE**: ``now >= soft_expires_at``. Inicia um refresh; a política
      ``return_stale`` decide o que o chamador recebe.

    Deduplicação acontece em dois níveis:

    - No processo: chamadas concorrentes para a mesma chave compartilham
      uma única execução (``DeduplicationManager``).
    - Entre processos: o lease do store garante um único refresh por chave.
      Quem precisou esperar pelo lease relê o store antes de chamar a função
      de origem, pois outro processo pode já ter feito o refresh.

    Após uma chamada bem-sucedida à função de origem, a escrita no store e
    a liberação do lease rodam em background (o chamador não espera por
    elas). Erros fora do caminho do chamador vão para
    ``on_background_error``.

    Example:
        ```python
        store = MemoryCacheStore()

        async def load_user(key: str) -> dict:
            return await db.fetch_user(key)

        cache = StampedeCache(
            store,
            on_miss=load_user,
            soft_ttl=60,
            hard_ttl=3600,
            lease_ttl=10,
            wait_for_lock=5,
            retry_interval=0.05,
            return_stale=True,
            wait_before_stale=0.2,
            key_prefix="users:",
        )

        user = await cache.get("123")
        await cache.refresh("123")
        await cache.clear("123")
        ```
    """

    def __init__(
        self,
        store: CacheStore,
        on_miss: Producer | None = None,
        config: CacheConfig | None = None,
        *,
        metrics: CacheMetrics | None = None,
        on_background_error: BackgroundErrorHandler | None = None,
        deduplication: DeduplicationManager | None = None,
        **options: Any,
    ) -> None:
        """Inicializa o coordenador.

        Args:
            store: Store com entradas e leases
            on_miss: Função de origem padrão (recebe a chave sem prefixo)
            config: Configuração completa (alternativa a ``**options``)
            metrics: Coletor de métricas (default: NoOpMetrics)
            on_background_error: Destino de erros fora do caminho do chamador
                (default: log em nível ERROR)
            deduplication: Tabela de operações em andamento (default: nova)
            **options: Campos de ``CacheConfig`` (soft_ttl, hard_ttl, ...)

        Raises:
            ValidationError: Se a configuração for inválida
        """
        if config is not None and options:
            raise ValidationError(ERROR_CONFIG_AND_OPTIONS)

        self._config = config or CacheConfig(**options)
        self._store = store
        self._on_miss = on_miss
        self._metrics = metrics or NoOpMetrics()
        self._on_background_error = on_background_error
        self._in_flight = deduplication or DeduplicationManager()
        # Refreshes forçados por refresh(), separados das leituras
        self._forced = DeduplicationManager()

        # Refreshes de dados stale rodando em background, por chave
        self._refreshing: dict[str, asyncio.Task[Any]] = {}
        # Escritas + liberação de lease pendentes, por chave do store
        self._commits: dict[str, asyncio.Task[None]] = {}
        # Referências fortes para tasks em background
        self._background: set[asyncio.Task[Any]] = set()

    @property
    def config(self) -> CacheConfig:
        """Configuração em uso."""
        return self._config

    @property
    def store(self) -> CacheStore:
        """Store subjacente."""
        return self._store

    @property
    def metrics(self) -> CacheMetrics:
        """Coletor de métricas."""
        return self._metrics

    # ========== Operações públicas ==========

    async def get(self, key: str, on_miss: Producer | None = None) -> Any:
        """Retorna o valor em cache ou produzido pela função de origem.

        Args:
            key: Chave (sem prefixo)
            on_miss: Função de origem para esta chamada (default: a do construtor)

        Returns:
            Valor em cache, recém-produzido ou stale (conforme a política)

        Raises:
            LockAcquisitionError: Sem dado em cache e lease não obtido a tempo
            Exception: Erro da função de origem ou do store quando não há dado
                em cache para servir
        """
        producer = self._resolve_producer(key, on_miss)
        if await self._forced.is_pending(key):
            return await self._forced.deduplicate(key, lambda: self._force_refresh(key, producer))
        return await self._in_flight.deduplicate(key, lambda: self._get(key, producer))

    async def refresh(self, key: str, on_miss: Producer | None = None) -> Any:
        """Força chamada à função de origem e escrita, ignorando o soft TTL.

        Um ``get`` concorrente da mesma chave aguarda este refresh; um
        ``get`` já em andamento termina antes de o refresh começar.

        Continua sujeito ao lease: se outro dono gravou um valor novo enquanto
        este refresh esperava pelo lease, o valor escrito por ele é usado.
        """
        producer = self._resolve_producer(key, on_miss)
        return await self._forced.deduplicate(key, lambda: self._force_refresh(key, producer))

    async def clear(self, key: str) -> bool:
        """Remove a entrada do store. Não mexe em leases.

        Returns:
            True se o store removeu a entrada
        """
        self._validate_key(key)
        store_key = self._store_key(key)
        await self._wait_for_commit(store_key)
        deleted = await self._store.delete(store_key)
        logger.debug(f"Cache clear para chave: {key} (removido: {deleted})")
        return deleted

    async def wait_for_background(self) -> None:
        """Aguarda todos os refreshes e escritas em background."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def aclose(self) -> None:
        """Finaliza o coordenador aguardando o trabalho em background."""
        await self.wait_for_background()

    async def __aenter__(self) -> "StampedeCache":
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    # ========== Máquina de estados ==========

    async def _get(self, key: str, producer: Producer) -> Any:
        store_key = self._store_key(key)
        await self._wait_for_commit(store_key)

        start_time = time.perf_counter()
        entry = await self._store.get(store_key)
        latency = time.perf_counter() - start_time

        if entry is None:
            self._metrics.record_miss(key, latency)
            logger.debug(f"Cache miss: {key}")
            return await self._refresh(key, producer)

        if not entry.is_stale():
            self._metrics.record_hit(key, latency)
            logger.debug(f"Cache hit: {key}")
            return entry.data

        self._metrics.record_stale(key, latency)
        logger.debug(f"Cache stale: {key}")

        if self._config.return_stale:
            return await self._serve_stale(key, entry, producer)

        try:
            return await self._refresh(key, producer, entry)
        except Exception as e:
            # Há dado em mãos: o erro vai para o handler e o chamador recebe o valor stale
            logger.warning(f"Refresh falhou para {key}, servindo dado stale: {e}")
            self._report_error(key, e)
            return entry.data

    async def _serve_stale(self, key: str, entry: CacheEntry, producer: Producer) -> Any:
        """Corre o refresh em background contra o tempo de espera configurado."""
        task = self._background_refresh(key, entry, producer)

        wait_time = self._config.wait_before_stale
        if wait_time <= 0:
            return entry.data

        done, _ = await asyncio.wait({task}, timeout=wait_time)
        if task in done and not task.cancelled() and task.exception() is None:
            logger.debug(f"Refresh concluído dentro do tempo de espera: {key}")
            return task.result()

        logger.debug(f"Servindo dado stale: {key}")
        return entry.data

    def _background_refresh(self, key: str, entry: CacheEntry, producer: Producer) -> asyncio.Task[Any]:
        """Retorna o refresh em background da chave, iniciando um se necessário."""
        task = self._refreshing.get(key)
        if task is not None:
            return task

        task = self._spawn(self._refresh(key, producer, entry))
        self._refreshing[key] = task
        task.add_done_callback(lambda done, key=key: self._on_refresh_done(key, done))
        return task

    def _on_refresh_done(self, key: str, task: asyncio.Task[Any]) -> None:
        if self._refreshing.get(key) is task:
            del self._refreshing[key]
        if task.cancelled():
            return
        error = task.exception()
        if isinstance(error, Exception):
            self._report_error(key, error)

    # ========== Refresh protegido por lease ==========

    async def _force_refresh(self, key: str, producer: Producer) -> Any:
        """Refresh pedido por refresh(): espera o get em andamento e lê a entrada atual."""
        await self._in_flight.wait_for(key)

        store_key = self._store_key(key)
        await self._wait_for_commit(store_key)
        seen = await self._store.get(store_key)
        return await self._refresh(key, producer, seen)

    async def _refresh(self, key: str, producer: Producer, seen: CacheEntry | None = None) -> Any:
        """Chama a função de origem sob o lease da chave.

        ``seen`` é a entrada lida antes do refresh (``None`` se não havia).
        Se foi preciso esperar pelo lease e o store tem agora uma entrada
        fresca diferente dela, outro dono já fez o refresh e o valor dele é
        devolvido sem chamar a função de origem.
        """
        store_key = self._store_key(key)
        await self._wait_for_commit(store_key)

        lease = await self._acquire(key, store_key)

        if lease.did_spin:
            try:
                current = await self._store.get(store_key)
            except Exception:
                self._commit(key, store_key, lease.token, None)
                raise
            if current is not None and not current.is_stale() and not self._same_entry(current, seen):
                logger.debug(f"Chave atualizada por outro dono durante a espera: {key}")
                self._commit(key, store_key, lease.token, None)
                return current.data

        entry: CacheEntry | None = None
        try:
            start_time = time.perf_counter()
            data = await self._produce(producer, key)
            self._metrics.record_refresh(key, time.perf_counter() - start_time)
            entry = CacheEntry.create(data, self._config.soft_ttl)
            return data
        finally:
            # Sem entry (erro ou cancelamento) apenas libera o lease
            self._commit(key, store_key, lease.token, entry)

    async def _acquire(self, key: str, store_key: str) -> Lease:
        try:
            lease = await acquire_lease(
                self._store,
                store_key,
                lease_ttl=self._config.lease_ttl,
                retry_interval=self._config.retry_interval,
                max_retries=self._config.max_lock_retries,
            )
        except LockAcquisitionError:
            self._metrics.record_lock_contention(key)
            raise

        if lease.did_spin:
            self._metrics.record_lock_contention(key)
        return lease

    def _same_entry(self, entry: CacheEntry, seen: CacheEntry | None) -> bool:
        return seen is not None and entry.soft_expires_at == seen.soft_expires_at

    async def _produce(self, producer: Producer, key: str) -> Any:
        result = producer(key)
        if inspect.isawaitable(result):
            result = await result
        return result

    # ========== Escrita e liberação em background ==========

    def _commit(self, key: str, store_key: str, token: str, entry: CacheEntry | None) -> None:
        """Agenda escrita (se houver entry) seguida da liberação do lease."""
        task = self._spawn(self._write_and_unlock(key, store_key, token, entry))
        self._commits[store_key] = task
        task.add_done_callback(lambda done, store_key=store_key: self._on_commit_done(store_key, done))

    def _on_commit_done(self, store_key: str, task: asyncio.Task[None]) -> None:
        if self._commits.get(store_key) is task:
            del self._commits[store_key]

    async def _write_and_unlock(self, key: str, store_key: str, token: str, entry: CacheEntry | None) -> None:
        try:
            if entry is not None:
                try:
                    written = await self._store.set(store_key, entry, self._config.hard_ttl)
                    if written:
                        logger.debug(f"Cache set: {key}")
                    else:
                        logger.warning(f"Store recusou a escrita da chave: {key}")
                except Exception as e:
                    self._report_error(key, e)
        finally:
            # Passo isolado: o lease é liberado mesmo se a escrita falhou
            try:
                await self._store.unlock(store_key, token)
            except Exception as e:
                self._report_error(key, e)

    async def _wait_for_commit(self, store_key: str) -> None:
        """Espera a escrita pendente da chave neste processo (se houver)."""
        commit = self._commits.get(store_key)
        if commit is not None and not commit.done():
            await asyncio.wait({commit})

    # ========== Utilitários ==========

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        task = asyncio.get_running_loop().create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    def _report_error(self, key: str, error: Exception) -> None:
        """Envia erro fora do caminho do chamador para o handler configurado."""
        self._metrics.record_error(key, error)

        if self._on_background_error is None:
            logger.error(f"Erro em background para chave {key}: {error!r}")
            return

        try:
            self._on_background_error(key, error)
        except Exception as e:
            logger.warning(f"Erro no handler de erros em background para chave {key}: {e}")

    def _resolve_producer(self, key: str, on_miss: Producer | None) -> Producer:
        self._validate_key(key)
        producer = on_miss or self._on_miss
        if producer is None:
            raise CacheError("Nenhuma função de origem (on_miss) configurada", key=key)
        return producer

    def _validate_key(self, key: str) -> None:
        if not isinstance(key, str) or not key:
            raise CacheKeyError("Chave não pode ser vazia", key=key)

    def _store_key(self, key: str) -> str:
        return f"{self._config.key_prefix}{key}"
