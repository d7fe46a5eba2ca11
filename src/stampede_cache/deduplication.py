"""Deduplicação de operações em andamento (in-flight) por chave."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DeduplicationManager:
    """Tabela de operações em andamento para evitar thundering herd local.

    Quando múltiplas chamadas concorrentes pedem a mesma chave dentro do
    mesmo processo, apenas uma execução acontece e o resultado (ou a
    exceção) é compartilhado com todas as chamadas aguardando.

    A entrada é removida assim que a execução termina, com sucesso ou
    falha, de forma que a próxima chamada começa do zero em vez de
    repetir uma falha antiga.

    A execução roda em uma task própria e cada chamador aguarda através
    de ``asyncio.shield``: cancelar um chamador não cancela o trabalho
    compartilhado pelos demais.

    Exemplo:
        ```python
        manager = DeduplicationManager()

        async def expensive_compute():
            await asyncio.sleep(1)
            return "result"

        # Apenas uma computação é executada, mesmo com 10 chamadas
        results = await asyncio.gather(*[
            manager.deduplicate("key", expensive_compute)
            for _ in range(10)
        ])
        ```
    """

    def __init__(self) -> None:
        """Inicializa o gerenciador de deduplicação."""
        self._pending: dict[str, asyncio.Task[Any]] = {}

    async def deduplicate(
        self,
        key: str,
        compute_func: Callable[[], Awaitable[T]],
    ) -> T:
        """Executa computação com deduplicação.

        Se já existe uma computação em andamento para a mesma chave,
        aguarda e retorna o mesmo resultado.

        Args:
            key: Chave de deduplicação
            compute_func: Função async que computa o valor

        Returns:
            Resultado da computação

        Raises:
            Exception: Propaga exceções da computação para todos os waiters
        """
        # Consulta e registro acontecem sem ponto de suspensão entre eles,
        # o que basta para serem atômicos no event loop
        task = self._pending.get(key)
        if task is None:
            logger.debug(f"Iniciando computação para: {key}")
            task = asyncio.get_running_loop().create_task(self._run(compute_func))
            self._pending[key] = task
            task.add_done_callback(lambda done, key=key: self._forget(key, done))
        else:
            logger.debug(f"Aguardando computação existente para: {key}")

        return await asyncio.shield(task)

    async def _run(self, compute_func: Callable[[], Awaitable[T]]) -> T:
        return await compute_func()

    def _forget(self, key: str, task: asyncio.Task[Any]) -> None:
        """Remove a task da tabela (somente se ainda for a registrada)."""
        if self._pending.get(key) is task:
            del self._pending[key]
        # Evita "Task exception was never retrieved" quando todos os
        # chamadores foram cancelados antes do fim
        if not task.cancelled():
            task.exception()

    async def is_pending(self, key: str) -> bool:
        """Verifica se há computação pendente para a chave."""
        return key in self._pending

    async def wait_for(self, key: str) -> None:
        """Aguarda a computação pendente da chave terminar (se houver).

        Não propaga o resultado nem a exceção da computação.
        """
        task = self._pending.get(key)
        if task is not None:
            await asyncio.wait({task})

    async def pending_count(self) -> int:
        """Retorna número de computações pendentes."""
        return len(self._pending)

    async def clear(self) -> int:
        """Limpa computações pendentes (cancela todas).

        Returns:
            Número de computações canceladas
        """
        count = len(self._pending)
        for task in self._pending.values():
            if not task.done():
                task.cancel()
        self._pending.clear()
        return count
