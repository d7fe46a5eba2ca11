"""Testes para o decorator @cached."""

import asyncio
from collections.abc import Callable
from unittest.mock import MagicMock

import pytest

from stampede_cache import MemoryCacheStore, StampedeCache
from stampede_cache.decorator import BoundCachedMethod, CachedFunction, cached


class TestCachedDecorator:
    """Testes de construção do decorator @cached."""

    def test_returns_wrapper(self, make_cache: Callable[..., StampedeCache]) -> None:
        """Deve produzir um CachedFunction."""
        cache = make_cache()

        @cached(cache)
        async def my_func(x: int) -> int:
            return x * 2

        assert isinstance(my_func, CachedFunction)
        assert my_func.cache is cache

    def test_preserves_metadata(self, make_cache: Callable[..., StampedeCache]) -> None:
        """Deve preservar nome e docstring da função."""

        @cached(make_cache())
        async def documented_func(x: int) -> int:
            """This is the docstring."""
            return x

        assert documented_func.__name__ == "documented_func"
        assert documented_func.__doc__ == "This is the docstring."

    def test_rejects_sync_function(self, make_cache: Callable[..., StampedeCache]) -> None:
        """Deve rejeitar funções síncronas."""
        with pytest.raises(TypeError, match="async"):

            @cached(make_cache())
            def sync_func(x: int) -> int:
                return x

    def test_custom_key_builder(self, make_cache: Callable[..., StampedeCache]) -> None:
        """Deve usar o key builder informado."""
        builder = MagicMock()
        builder.build_key.return_value = "custom-key"

        @cached(make_cache(), key_builder=builder)
        async def my_func(x: int) -> int:
            return x

        assert my_func.build_key(1) == "custom-key"
        builder.build_key.assert_called_once()

    def test_prefix(self, make_cache: Callable[..., StampedeCache]) -> None:
        """Deve aplicar o prefixo do key builder padrão."""

        @cached(make_cache(), prefix="users")
        async def my_func(x: int) -> int:
            return x

        assert my_func.build_key(1).startswith("users:")


class TestCachedFunction:
    """Testes de execução do CachedFunction."""

    @pytest.mark.asyncio
    async def test_caches_result(self, make_cache: Callable[..., StampedeCache]) -> None:
        """Segunda chamada com os mesmos argumentos deve vir do cache."""
        call_count = 0

        @cached(make_cache())
        async def compute(x: int) -> int:
            nonlocal call_count
            call_count += 1
            return x * 2

        assert await compute(5) == 10
        assert await compute(x=5) == 10
        assert call_count == 1

    @pytest.mark.asyncio
    async def test_different_arguments(self, make_cache: Callable[..., StampedeCache]) -> None:
        """Argumentos diferentes devem gerar entradas diferentes."""
        call_count = 0

        @cached(make_cache())
        async def compute(x: int) -> int:
            nonlocal call_count
            call_count += 1
            return x * 2

        assert await compute(1) == 2
        assert await compute(2) == 4
        assert call_count == 2

    @pytest.mark.asyncio
    async def test_concurrent_calls_deduplicated(self, make_cache: Callable[..., StampedeCache]) -> None:
        """Chamadas concorrentes devem executar a função uma vez."""
        call_count = 0

        @cached(make_cache())
        async def slow(x: int) -> int:
            nonlocal call_count
            call_count += 1
            await asyncio.sleep(0.05)
            return x

        results = await asyncio.gather(*[slow(7) for _ in range(5)])

        assert results == [7] * 5
        assert call_count == 1

    @pytest.mark.asyncio
    async def test_invalidate(self, make_cache: Callable[..., StampedeCache]) -> None:
        """invalidate deve forçar nova execução."""
        call_count = 0

        @cached(make_cache())
        async def compute(x: int) -> int:
            nonlocal call_count
            call_count += 1
            return call_count

        assert await compute(1) == 1
        assert await compute.invalidate(1) is True
        assert await compute(1) == 2

    @pytest.mark.asyncio
    async def test_refresh(self, make_cache: Callable[..., StampedeCache]) -> None:
        """refresh deve reexecutar e atualizar o cache."""
        call_count = 0

        @cached(make_cache())
        async def compute(x: int) -> int:
            nonlocal call_count
            call_count += 1
            return call_count

        assert await compute(1) == 1
        assert await compute.refresh(1) == 2
        assert await compute(1) == 2

    @pytest.mark.asyncio
    async def test_respects_cache_key_prefix(
        self, make_cache: Callable[..., StampedeCache], store: MemoryCacheStore
    ) -> None:
        """A chave do decorator passa pelo key_prefix do coordenador."""
        cache = make_cache(key_prefix="app:")

        @cached(cache, prefix="fn")
        async def compute(x: int) -> int:
            return x

        await compute(3)
        await cache.wait_for_background()

        assert await store.get(f"app:{compute.build_key(3)}") is not None


class TestBoundCachedMethod:
    """Testes para métodos decorados."""

    @pytest.mark.asyncio
    async def test_method_shares_cache_between_instances(self, make_cache: Callable[..., StampedeCache]) -> None:
        """Instâncias diferentes devem compartilhar o cache."""
        cache = make_cache()
        calls: list[int] = []

        class UserService:
            @cached(cache)
            async def get_user(self, user_id: int) -> dict:
                calls.append(user_id)
                return {"id": user_id}

        assert await UserService().get_user(1) == {"id": 1}
        assert await UserService().get_user(1) == {"id": 1}
        assert calls == [1]

    @pytest.mark.asyncio
    async def test_bound_invalidate_and_refresh(self, make_cache: Callable[..., StampedeCache]) -> None:
        """Métodos bound devem expor invalidate e refresh."""
        cache = make_cache()
        calls: list[int] = []

        class UserService:
            @cached(cache)
            async def get_user(self, user_id: int) -> int:
                calls.append(user_id)
                return len(calls)

        service = UserService()
        assert isinstance(service.get_user, BoundCachedMethod)
        assert isinstance(UserService.get_user, CachedFunction)

        assert await service.get_user(1) == 1
        assert await service.get_user.refresh(1) == 2
        assert await service.get_user.invalidate(1) is True
        assert await service.get_user(1) == 3
