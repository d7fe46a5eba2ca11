"""Métricas de cache usando OpenTelemetry."""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from threading import Lock
from typing import Any, Protocol

from opentelemetry import metrics as otel_metrics

logger = logging.getLogger(__name__)


class CacheMetrics(Protocol):
    """Protocol para coletores de métricas."""

    def record_hit(self, key: str, latency: float) -> None:
        """Registra leitura de entrada fresca."""
        ...

    def record_miss(self, key: str, latency: float) -> None:
        """Registra leitura sem entrada no store."""
        ...

    def record_stale(self, key: str, latency: float) -> None:
        """Registra leitura de entrada stale."""
        ...

    def record_refresh(self, key: str, latency: float) -> None:
        """Registra chamada bem-sucedida à função de origem."""
        ...

    def record_lock_contention(self, key: str) -> None:
        """Registra lease que só foi obtido após espera (ou não foi obtido)."""
        ...

    def record_error(self, key: str, error: Exception) -> None:
        """Registra erro de cache."""
        ...


class NoOpMetrics:
    """Coletor de métricas que não faz nada (default)."""

    def record_hit(self, key: str, latency: float) -> None:
        pass

    def record_miss(self, key: str, latency: float) -> None:
        pass

    def record_stale(self, key: str, latency: float) -> None:
        pass

    def record_refresh(self, key: str, latency: float) -> None:
        pass

    def record_lock_contention(self, key: str) -> None:
        pass

    def record_error(self, key: str, error: Exception) -> None:
        pass


@dataclass
class KeyStats:
    """Estatísticas para uma chave específica."""

    hits: int = 0
    misses: int = 0
    stale: int = 0
    refreshes: int = 0
    lock_contentions: int = 0
    errors: int = 0
    total_latency_refreshes: float = 0.0

    @property
    def total_reads(self) -> int:
        return self.hits + self.misses + self.stale

    @property
    def hit_ratio(self) -> float:
        total = self.total_reads
        return self.hits / total if total > 0 else 0.0

    @property
    def avg_refresh_latency_ms(self) -> float:
        return (self.total_latency_refreshes / self.refreshes * 1000) if self.refreshes > 0 else 0.0


@dataclass
class CacheStats:
    """Estatísticas agregadas do cache."""

    hits: int = 0
    misses: int = 0
    stale: int = 0
    refreshes: int = 0
    lock_contentions: int = 0
    errors: int = 0
    read_latencies: list[float] = field(default_factory=list)
    refresh_latencies: list[float] = field(default_factory=list)

    @property
    def total_reads(self) -> int:
        return self.hits + self.misses + self.stale

    @property
    def hit_ratio(self) -> float:
        total = self.total_reads
        return self.hits / total if total > 0 else 0.0

    @property
    def stale_ratio(self) -> float:
        total = self.total_reads
        return self.stale / total if total > 0 else 0.0

    @property
    def avg_read_latency_ms(self) -> float:
        if not self.read_latencies:
            return 0.0
        return sum(self.read_latencies) / len(self.read_latencies) * 1000

    @property
    def avg_refresh_latency_ms(self) -> float:
        if not self.refresh_latencies:
            return 0.0
        return sum(self.refresh_latencies) / len(self.refresh_latencies) * 1000


class OpenTelemetryMetrics:
    """Coletor de métricas usando OpenTelemetry.

    Métricas exportadas:
    - cache.hits (counter): Leituras de entradas frescas
    - cache.misses (counter): Leituras sem entrada
    - cache.stale (counter): Leituras de entradas stale
    - cache.refreshes (counter): Chamadas à função de origem
    - cache.lock_contentions (counter): Leases disputados
    - cache.errors (counter): Número de erros
    - cache.latency (histogram): Latência das leituras e refreshes em segundos

    Example:
        ```python
        from opentelemetry.sdk.metrics import MeterProvider
        from opentelemetry import metrics

        metrics.set_meter_provider(MeterProvider())

        cache = StampedeCache(store, on_miss=load, metrics=OpenTelemetryMetrics(), ...)
        ```
    """

    def __init__(self, meter_name: str = "stampede_cache") -> None:
        """Inicializa métricas OpenTelemetry.

        Args:
            meter_name: Nome do meter para agrupar métricas
        """
        meter = otel_metrics.get_meter(meter_name)

        # Counters
        self._hits_counter = meter.create_counter(
            "cache.hits",
            description="Número de leituras de entradas frescas",
            unit="1",
        )
        self._misses_counter = meter.create_counter(
            "cache.misses",
            description="Número de leituras sem entrada",
            unit="1",
        )
        self._stale_counter = meter.create_counter(
            "cache.stale",
            description="Número de leituras de entradas stale",
            unit="1",
        )
        self._refreshes_counter = meter.create_counter(
            "cache.refreshes",
            description="Número de chamadas à função de origem",
            unit="1",
        )
        self._contentions_counter = meter.create_counter(
            "cache.lock_contentions",
            description="Número de leases disputados",
            unit="1",
        )
        self._errors_counter = meter.create_counter(
            "cache.errors",
            description="Número de erros de cache",
            unit="1",
        )

        # Histograms
        self._latency_histogram = meter.create_histogram(
            "cache.latency",
            description="Latência das operações de cache",
            unit="s",
        )

    def record_hit(self, key: str, latency: float) -> None:
        """Registra leitura de entrada fresca."""
        self._hits_counter.add(1, {"key": key})
        self._latency_histogram.record(latency, {"operation": "hit", "key": key})

    def record_miss(self, key: str, latency: float) -> None:
        """Registra leitura sem entrada."""
        self._misses_counter.add(1, {"key": key})
        self._latency_histogram.record(latency, {"operation": "miss", "key": key})

    def record_stale(self, key: str, latency: float) -> None:
        """Registra leitura de entrada stale."""
        self._stale_counter.add(1, {"key": key})
        self._latency_histogram.record(latency, {"operation": "stale", "key": key})

    def record_refresh(self, key: str, latency: float) -> None:
        """Registra chamada à função de origem."""
        self._refreshes_counter.add(1, {"key": key})
        self._latency_histogram.record(latency, {"operation": "refresh", "key": key})

    def record_lock_contention(self, key: str) -> None:
        """Registra lease disputado."""
        self._contentions_counter.add(1, {"key": key})

    def record_error(self, key: str, error: Exception) -> None:
        """Registra erro de cache."""
        self._errors_counter.add(1, {"key": key, "error_type": type(error).__name__})


class InMemoryMetrics:
    """Coletor de métricas em memória com estatísticas por chave.

    Útil para desenvolvimento, testes e análise detalhada.
    Mantém estatísticas agregadas e por chave com thread-safety.

    Attributes:
        max_samples: Máximo de amostras de latência mantidas
    """

    def __init__(self, max_samples: int = 1000) -> None:
        """Inicializa coletor de métricas.

        Args:
            max_samples: Máximo de amostras de latência a manter
        """
        self._max_samples = max_samples
        self._lock = Lock()
        self._overall = CacheStats()
        self._by_key: dict[str, KeyStats] = defaultdict(KeyStats)

    def record_hit(self, key: str, latency: float) -> None:
        """Registra leitura de entrada fresca."""
        with self._lock:
            self._overall.hits += 1
            self._record_read_latency(latency)
            self._by_key[key].hits += 1

    def record_miss(self, key: str, latency: float) -> None:
        """Registra leitura sem entrada."""
        with self._lock:
            self._overall.misses += 1
            self._record_read_latency(latency)
            self._by_key[key].misses += 1

    def record_stale(self, key: str, latency: float) -> None:
        """Registra leitura de entrada stale."""
        with self._lock:
            self._overall.stale += 1
            self._record_read_latency(latency)
            self._by_key[key].stale += 1

    def record_refresh(self, key: str, latency: float) -> None:
        """Registra chamada à função de origem."""
        with self._lock:
            self._overall.refreshes += 1
            self._overall.refresh_latencies.append(latency)
            self._trim_samples(self._overall.refresh_latencies)

            self._by_key[key].refreshes += 1
            self._by_key[key].total_latency_refreshes += latency

    def record_lock_contention(self, key: str) -> None:
        """Registra lease disputado."""
        with self._lock:
            self._overall.lock_contentions += 1
            self._by_key[key].lock_contentions += 1

    def record_error(self, key: str, error: Exception) -> None:
        """Registra erro de cache."""
        with self._lock:
            self._overall.errors += 1
            self._by_key[key].errors += 1

    def _record_read_latency(self, latency: float) -> None:
        self._overall.read_latencies.append(latency)
        self._trim_samples(self._overall.read_latencies)

    def _trim_samples(self, samples: list[Any]) -> None:
        """Remove amostras antigas se exceder limite."""
        if len(samples) > self._max_samples:
            del samples[: len(samples) - self._max_samples]

    def get_stats(self) -> CacheStats:
        """Retorna estatísticas agregadas."""
        with self._lock:
            return CacheStats(
                hits=self._overall.hits,
                misses=self._overall.misses,
                stale=self._overall.stale,
                refreshes=self._overall.refreshes,
                lock_contentions=self._overall.lock_contentions,
                errors=self._overall.errors,
                read_latencies=self._overall.read_latencies.copy(),
                refresh_latencies=self._overall.refresh_latencies.copy(),
            )

    def get_key_stats(self, key: str) -> KeyStats | None:
        """Retorna estatísticas de uma chave específica."""
        with self._lock:
            if key not in self._by_key:
                return None
            return self._copy_key_stats(self._by_key[key])

    def get_all_key_stats(self) -> dict[str, KeyStats]:
        """Retorna estatísticas de todas as chaves."""
        with self._lock:
            return {key: self._copy_key_stats(stats) for key, stats in self._by_key.items()}

    @staticmethod
    def _copy_key_stats(stats: KeyStats) -> KeyStats:
        return KeyStats(
            hits=stats.hits,
            misses=stats.misses,
            stale=stats.stale,
            refreshes=stats.refreshes,
            lock_contentions=stats.lock_contentions,
            errors=stats.errors,
            total_latency_refreshes=stats.total_latency_refreshes,
        )

    def get_top_keys(self, by: str = "hits", limit: int = 10) -> list[tuple[str, int]]:
        """Retorna as chaves mais acessadas.

        Args:
            by: Critério de ordenação (hits, misses, stale, refreshes, lock_contentions, errors)
            limit: Número máximo de chaves a retornar
        """
        with self._lock:
            items = [(key, getattr(stats, by)) for key, stats in self._by_key.items()]
            items.sort(key=lambda x: x[1], reverse=True)
            return items[:limit]

    def reset(self) -> None:
        """Reseta todas as estatísticas."""
        with self._lock:
            self._overall = CacheStats()
            self._by_key.clear()
