"""Helpers for building a disposable container from modules in tests.

Example:
  testing_module = await Test.create_module(
      imports=[UserModule],
  ).override_provider(UserRepository, FakeRepository()).compile()

  service = testing_module.get(UserService)

"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ._container import Container
from ._modules import Module, ModuleMetadata, ModuleRegistry


if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from ._binding import Resolver


class TestingModule:
    """Read-only access to a compiled test container."""

    __test__ = False

    def __init__(self, container: Container, registry: ModuleRegistry) -> None:
        self._container = container
        self._registry = registry

    def get(self, token: Any) -> Any:
        return self._container.resolve(token)

    def has(self, token: Any) -> bool:
        return self._container.has(token)

    async def close(self) -> None:
        await self._registry.clear()


class TestModuleBuilder:
    __test__ = False

    def __init__(
        self,
        imports: Sequence[type] = (),
        providers: Sequence[Any] = (),
        controllers: Sequence[type] = (),
    ) -> None:
        self._imports = tuple(imports)
        self._providers = tuple(providers)
        self._controllers = tuple(controllers)
        self._overrides: list[tuple[Any, Callable[[Resolver], Any]]] = []
        self._extra_providers: list[tuple[Any, Callable[[Resolver], Any]]] = []

    def override_provider(self, token: Any, value: object) -> TestModuleBuilder:
        """Replace ``token`` with ``value`` wherever a module would register it."""
        return self.override_provider_factory(token, lambda _: value)

    def override_provider_factory(self, token: Any, factory: Callable[[Resolver], Any]) -> TestModuleBuilder:
        self._overrides.append((token, factory))
        return self

    def add_provider(self, token: Any, value: object) -> TestModuleBuilder:
        """Bind ``token`` after the modules are loaded."""
        self._extra_providers.append((token, lambda _: value))
        return self

    async def compile(self) -> TestingModule:
        container = Container()
        registry = ModuleRegistry()

        # overrides go first so module registration skips their tokens
        for token, factory in self._overrides:
            container.register(token, factory)

        for module in self._imports:
            registry.register(module)
        registry.register(self._make_test_module())

        await registry.load_modules(container)

        for token, factory in self._extra_providers:
            container.register(token, factory)

        return TestingModule(container, registry)

    def _make_test_module(self) -> type[Module]:
        metadata = ModuleMetadata(
            imports=self._imports,
            providers=self._providers,
            controllers=self._controllers,
        )
        return type("TestModule", (Module,), {"metadata": metadata})


class Test:
    __test__ = False

    @staticmethod
    def create_module(
        imports: Sequence[type] = (),
        providers: Sequence[Any] = (),
        controllers: Sequence[type] = (),
    ) -> TestModuleBuilder:
        return TestModuleBuilder(imports, providers, controllers)
