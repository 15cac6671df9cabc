from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, ClassVar

from ._binding import Binding, BindingHandle, Lifetime, map_deps
from ._container import class_provider
from ._errors import NonExportedTokenError, ResolutionError
from ._tokens import token_name
from ._validation import probe_dependencies


logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from ._binding import Resolver
    from ._container import Container


@dataclass(frozen=True)
class Provider:
    """A provider entry with an explicit factory and lifetime.

    Bare classes listed in ``ModuleMetadata.providers`` are registered as
    transient class providers; use ``Provider`` for anything else.
    """

    token: Any
    factory: Callable[[Resolver], Any] | None = None
    lifetime: Lifetime = Lifetime.TRANSIENT

    @classmethod
    def value(cls, token: Any, value: object) -> Provider:
        return cls(token, lambda _: value, Lifetime.SINGLETON)


@dataclass(frozen=True)
class ModuleMetadata:
    """Declarative description of a module: what it imports, provides and exports."""

    imports: Sequence[type] = ()
    providers: Sequence[Any] = ()
    controllers: Sequence[type] = ()
    exports: Sequence[Any] = ()

    def __post_init__(self) -> None:
        for name in ("imports", "providers", "controllers", "exports"):
            object.__setattr__(self, name, tuple(getattr(self, name)))


class Module:
    """Base class for DI modules.

    Example:
      class UserModule(Module):
          metadata = ModuleMetadata(
              imports=[DatabaseModule],
              providers=[UserService, Provider("clock", lambda r: time.time)],
              controllers=[UserController],
              exports=[UserService],
          )

    The default ``register`` binds every provider, then every controller.
    Override it to register bindings by hand.
    """

    metadata: ClassVar[ModuleMetadata] = ModuleMetadata()

    def register(self, container: ModuleContainer | Container) -> None:
        for provider in self.metadata.providers:
            register_provider(container, provider)

        for controller in self.metadata.controllers:
            container.register(controller)

    def on_module_init(self) -> Any:
        """Called once the module's bindings are registered. May be a coroutine."""

    def on_module_destroy(self) -> Any:
        """Called in reverse load order when the registry is torn down. May be a coroutine."""


def register_provider(container: ModuleContainer | Container, provider: Any) -> BindingHandle:
    if isinstance(provider, Provider):
        handle = container.register(provider.token, provider.factory)
        if provider.lifetime is not Lifetime.TRANSIENT:
            handle.set_lifetime(provider.lifetime)
        return handle
    return container.register(provider)


def metadata_of(module: type) -> ModuleMetadata:
    return getattr(module, "metadata", None) or ModuleMetadata()


def module_name(module: type) -> str:
    return getattr(module, "__name__", "") or "AnonymousModule"


@dataclass(frozen=True)
class _TokenOwner:
    module: type
    exported: bool


class ModuleContainer:
    """Per-module view of a shared container enforcing encapsulation.

    A module sees its own tokens, the exported tokens of the modules it
    imports directly, and tokens bound outside any module. Exports are not
    re-exported: importing a module grants nothing from that module's imports.
    """

    def __init__(self, base: Container, module: type, owners: dict[Any, _TokenOwner]) -> None:
        metadata = metadata_of(module)
        self._base = base
        self._module = module
        self._exports = frozenset(metadata.exports)
        self._imports = frozenset(metadata.imports)
        self._owners = owners
        self.registered: list[Any] = []

    @property
    def name(self) -> str:
        return module_name(self._module)

    @property
    def base(self) -> Container:
        return self._base

    def register(self, token: Any, factory: Callable[[Resolver], Any] | None = None) -> BindingHandle:
        if factory is None:
            factory = class_provider(token)

        if self._is_preregistered(token):
            logger.debug("Module %s skips %s: already bound outside any module", self.name, token_name(token))
            self.registered.append(token)
            return BindingHandle(Binding(token=token, factory=factory))

        handle = self._base.register(token, self._wrap(factory))
        self._track(token)
        return handle

    def register_instance(self, token: Any, instance: object) -> BindingHandle:
        if self._is_preregistered(token):
            logger.debug("Module %s skips %s: already bound outside any module", self.name, token_name(token))
            self.registered.append(token)
            return BindingHandle(Binding(token=token, factory=lambda _: instance))

        handle = self._base.register_instance(token, instance)
        self._track(token)
        return handle

    def _is_preregistered(self, token: Any) -> bool:
        return token not in self._owners and self._base.has(token)

    def _track(self, token: Any) -> None:
        self._owners[token] = _TokenOwner(self._module, token in self._exports)
        self.registered.append(token)

    def _wrap(self, factory: Callable[[Resolver], Any]) -> Callable[[Resolver], Any]:
        def wrapped(resolver: Resolver) -> Any:
            return factory(ModuleResolver(self, resolver))

        return wrapped

    def denial(self, token: Any) -> str | None:
        """Why ``token`` is invisible to this module, or ``None`` if it is visible."""
        owner = self._owners.get(token)
        if owner is None or owner.module is self._module:
            return None
        if not owner.exported:
            return NonExportedTokenError.NOT_EXPORTED
        if owner.module not in self._imports:
            return NonExportedTokenError.NOT_IMPORTED
        return None

    def check(self, token: Any) -> None:
        reason = self.denial(token)
        if reason is not None:
            owner = self._owners[token]
            raise NonExportedTokenError(
                token, self.name, module_name(owner.module), reason, self.accessible_tokens()
            )

    def accessible_tokens(self) -> list[Any]:
        return [token for token in self._base.tokens() if self.denial(token) is None]

    def resolve(self, token: Any) -> Any:
        self.check(token)
        return self._base.resolve(token)

    def build_deps(self, tokens: Any) -> Any:
        return map_deps(tokens, self.resolve)

    def has(self, token: Any) -> bool:
        return self.denial(token) is None and self._base.has(token)

    def get_binding(self, token: Any) -> Binding | None:
        self.check(token)
        return self._base.get_binding(token)

    def clear(self) -> None:
        self._base.clear()


class ModuleResolver:
    """The resolver a module's factories receive: the module view over an in-flight resolution."""

    def __init__(self, view: ModuleContainer, resolver: Resolver) -> None:
        self._view = view
        self._resolver = resolver

    def resolve(self, token: Any) -> Any:
        self._view.check(token)
        return self._resolver.resolve(token)

    def build_deps(self, tokens: Any) -> Any:
        return map_deps(tokens, self.resolve)

    def has(self, token: Any) -> bool:
        return self._view.denial(token) is None and self._resolver.has(token)

    def get_binding(self, token: Any) -> Binding | None:
        self._view.check(token)
        return self._resolver.get_binding(token)


class ModuleRegistry:
    """Loads modules in import order and runs their lifecycle hooks.

    Example:
      registry = ModuleRegistry()
      registry.register(AppModule)
      await registry.load_modules(container)
      ...
      await registry.destroy_modules()

    """

    def __init__(self) -> None:
        self._modules: dict[type, None] = {}
        self._loaded: set[type] = set()
        self._instances: list[Any] = []
        self._owners: dict[Any, _TokenOwner] = {}
        self._views: dict[type, ModuleContainer] = {}

    def register(self, module: type) -> None:
        self._modules.setdefault(module, None)

    async def load_modules(self, container: Container) -> None:
        """Load every registered module in registration order, then check encapsulation."""
        for module in list(self._modules):
            await self.load_module(module, container)

        self.check_encapsulation()

    async def load_module(self, module: type, container: Container) -> None:
        if module in self._loaded:
            return

        # marked before its imports so an import cycle back to it stops here
        self._loaded.add(module)

        metadata = metadata_of(module)
        for imported in metadata.imports:
            await self.load_module(imported, container)

        view = ModuleContainer(container, module, self._owners)
        self._views[module] = view

        instance = module()
        instance.register(view)
        self._instances.append(instance)
        logger.debug("Loaded module %s (%d bindings)", view.name, len(view.registered))

        for token in metadata.exports:
            if token not in view.registered:
                logger.warning("Module %s exports %s but does not register it", view.name, token_name(token))

        await _run_hook(instance, "on_module_init")

    def check_encapsulation(self) -> None:
        """Probe every module-owned factory so encapsulation errors surface at load time."""
        for token, owner in list(self._owners.items()):
            view = self._views.get(owner.module)
            binding = view.base.get_binding(token) if view is not None else None
            if binding is None:
                continue

            try:
                probe_dependencies(binding, view.base)
            except NonExportedTokenError:
                raise
            except ResolutionError as exc:
                # real resolution will report it with the actual values
                logger.debug("Probing %s in %s raised %r", token_name(token), view.name, exc)

    def is_loaded(self, module: type) -> bool:
        return module in self._loaded

    async def destroy_modules(self) -> None:
        for instance in reversed(self._instances):
            logger.debug("Destroying module %s", module_name(type(instance)))
            await _run_hook(instance, "on_module_destroy")

    async def clear(self) -> None:
        await self.destroy_modules()
        self._modules.clear()
        self._loaded.clear()
        self._instances.clear()
        self._owners.clear()
        self._views.clear()


async def _run_hook(instance: Any, name: str) -> None:
    hook = getattr(instance, name, None)
    if hook is None:
        return
    result = hook()
    if inspect.isawaitable(result):
        await result
