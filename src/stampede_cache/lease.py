"""Protocolo de obtenção de lease (acquire / spin / give up)."""

import asyncio
import logging
from dataclasses import dataclass

from .exceptions import LockAcquisitionError
from .protocols import CacheStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Lease:
    """Lease obtido no store.

    Attributes:
        token: Token emitido pelo store, exigido para liberar o lease
        did_spin: True se foi preciso esperar (houve contenção) antes de obter
    """

    token: str
    did_spin: bool = False


async def acquire_lease(
    store: CacheStore,
    key: str,
    lease_ttl: float,
    retry_interval: float,
    max_retries: int,
) -> Lease:
    """Obtém o lease da chave, tentando novamente em intervalos fixos.

    Faz uma tentativa imediata e até ``max_retries`` novas tentativas,
    dormindo ``retry_interval`` antes de cada uma. Não dorme depois da
    última falha.

    Args:
        store: Store que emite os leases
        key: Chave (já prefixada)
        lease_ttl: Duração do lease em segundos
        retry_interval: Espera entre tentativas em segundos
        max_retries: Número máximo de novas tentativas

    Returns:
        Lease obtido, indicando se houve espera

    Raises:
        LockAcquisitionError: Se o lease não foi obtido dentro do orçamento
    """
    attempt = 0
    while True:
        token = await store.lock(key, lease_ttl)
        if token:
            if attempt:
                logger.debug(f"Lease obtido para {key} após {attempt} nova(s) tentativa(s)")
            else:
                logger.debug(f"Lease obtido para {key}")
            return Lease(token=token, did_spin=attempt > 0)

        if attempt >= max_retries:
            break

        attempt += 1
        await asyncio.sleep(retry_interval)

    logger.debug(f"Lease não obtido para {key} após {attempt + 1} tentativa(s)")
    raise LockAcquisitionError(f"Não foi possível obter o lease para a chave: {key}", key=key)
