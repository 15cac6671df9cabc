from __future__ import annotations

import inspect
import logging
import threading
from typing import (
    TYPE_CHECKING,
    Any,
    TypeVar,
    get_type_hints,
    overload,
)

from ._binding import Binding, BindingHandle, Lifetime, map_deps
from ._errors import ChildScopeError, ResolutionError, TokenCollisionError, TokenNotFoundError
from ._tokens import Token, token_name
from ._validation import ScopeValidator


logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from collections.abc import Callable

    from ._binding import Resolver
    from ._tokens import TokenLike

    T = TypeVar("T")


class _Slot:
    __slots__ = ("ready", "value")

    def __init__(self) -> None:
        self.ready = False
        self.value: object | None = None


class ForwardRef:
    """Stand-in returned when a token is requested while it is being built.

    Every access is forwarded to the instance that construction produces. The
    holder must not dereference it until its own construction has returned.
    """

    __slots__ = ("_slot", "_token")

    def __init__(self, token: Any, slot: _Slot) -> None:
        object.__setattr__(self, "_token", token)
        object.__setattr__(self, "_slot", slot)

    def _target(self) -> Any:
        if not self._slot.ready:
            msg = f"{self!r} used before '{token_name(self._token)}' finished construction"
            raise AttributeError(msg)
        return self._slot.value

    def __getattr__(self, name: str) -> Any:
        if name == "__await__":
            raise AttributeError(name)
        return getattr(self._target(), name)

    def __setattr__(self, name: str, value: Any) -> None:
        setattr(self._target(), name, value)

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        return self._target()(*args, **kwargs)

    def __getitem__(self, key: Any) -> Any:
        return self._target()[key]

    def __setitem__(self, key: Any, value: Any) -> None:
        self._target()[key] = value

    def __iter__(self):
        return iter(self._target())

    def __len__(self) -> int:
        return len(self._target())

    def __contains__(self, item: Any) -> bool:
        return item in self._target()

    def __bool__(self) -> bool:
        return bool(self._slot.value) if self._slot.ready else True

    def __eq__(self, other: object) -> bool:
        if not self._slot.ready:
            return self is other
        return self._slot.value == unwrap(other)

    def __hash__(self) -> int:
        # identity until settled; a pending ref must not be used as a key
        return hash(self._slot.value) if self._slot.ready else object.__hash__(self)

    def __repr__(self) -> str:
        if self._slot.ready:
            return repr(self._slot.value)
        return f"<circular reference to {token_name(self._token)!r}>"

    def __str__(self) -> str:
        if self._slot.ready:
            return str(self._slot.value)
        return repr(self)


def unwrap(value: Any) -> Any:
    """Return the instance behind a ``ForwardRef`` (``None`` while pending), else ``value``."""
    if isinstance(value, ForwardRef):
        slot = object.__getattribute__(value, "_slot")
        return slot.value if slot.ready else None
    return value


class ResolutionContext:
    """Tokens under construction for one outer ``resolve`` call."""

    def __init__(self) -> None:
        self.path: list[Any] = []
        self._slots: dict[Any, _Slot] = {}

    def forward_ref(self, token: Any) -> ForwardRef:
        slot = self._slots.setdefault(token, _Slot())
        return ForwardRef(token, slot)

    def settle(self, token: Any, instance: object) -> None:
        slot = self._slots.pop(token, None)
        if slot is not None:
            slot.value = instance
            slot.ready = True


class _ContextResolver:
    def __init__(self, container: Container, context: ResolutionContext) -> None:
        self._container = container
        self._context = context

    def resolve(self, token: Any) -> Any:
        return self._container._resolve(token, self._context)  # noqa: SLF001

    def build_deps(self, tokens: Any) -> Any:
        return map_deps(tokens, self.resolve)

    def has(self, token: Any) -> bool:
        return self._container.has(token)

    def get_binding(self, token: Any) -> Binding | None:
        return self._container.get_binding(token)


class Container:
    """Minimal DI container.

    - register factories (or classes) under tokens
    - resolve with cycle-safe forwarding
    - lifetimes: transient / singleton / scoped
    - child scopes via ``create_scope``.
    """

    def __init__(self) -> None:
        self._bindings: dict[Any, Binding] = {}
        self._scoped: dict[Any, object] = {}
        self._lock = threading.RLock()

    @property
    def is_root(self) -> bool:
        return True

    @overload
    def register(self, token: type[T], factory: Callable[[Resolver], T] | None = ...) -> BindingHandle: ...

    @overload
    def register(self, token: str | Token[Any], factory: Callable[[Resolver], Any]) -> BindingHandle: ...

    def register(self, token: TokenLike, factory: Callable[[Resolver], Any] | None = None) -> BindingHandle:
        """Bind a factory to a token as TRANSIENT.

        Example:
          container.register("db", lambda r: Database(r.resolve("config"))).as_singleton()
          container.register(UserService)  # class provider

        """
        if factory is None:
            factory = class_provider(token)

        binding = Binding(token=token, factory=factory)
        self._add(binding)
        return BindingHandle(binding)

    def register_instance(self, token: TokenLike, instance: object) -> BindingHandle:
        """Register a pre-built instance (always singleton)."""
        binding = Binding(
            token=token,
            factory=lambda _: instance,
            lifetime=Lifetime.SINGLETON,
            instance=instance,
            produced=True,
        )
        self._add(binding)
        return BindingHandle(binding)

    def _add(self, binding: Binding) -> None:
        with self._lock:
            if binding.token in self._bindings:
                raise TokenCollisionError(binding.token)
            self._bindings[binding.token] = binding
        logger.debug("Registered %s", token_name(binding.token))

    @overload
    def resolve(self, token: type[T]) -> T: ...

    @overload
    def resolve(self, token: TokenLike) -> Any: ...

    def resolve(self, token: TokenLike) -> Any:
        """Resolve the token to an instance.

        Each call starts a fresh resolution path. A token requested again while
        it is still on that path resolves to a ``ForwardRef``.
        """
        return self._resolve(token, ResolutionContext())

    def _resolve(self, token: Any, context: ResolutionContext) -> Any:
        with self._lock:
            binding = self._bindings.get(token)
            if binding is None:
                raise TokenNotFoundError(token, context.path, self._bindings)

            if binding.lifetime is Lifetime.SINGLETON and binding.produced:
                return binding.instance

            if binding.lifetime is Lifetime.SCOPED and token in self._scoped:
                return self._scoped[token]

            if token in context.path:
                logger.debug(
                    "Circular reference to %s, path: %s",
                    token_name(token),
                    " -> ".join(token_name(t) for t in context.path),
                )
                return context.forward_ref(token)

            context.path.append(token)
            try:
                instance = binding.factory(_ContextResolver(self, context))
            finally:
                context.path.pop()

            binding.produced = True
            if binding.lifetime is Lifetime.SINGLETON:
                binding.instance = instance
            elif binding.lifetime is Lifetime.SCOPED:
                self._scoped[token] = instance

            context.settle(token, instance)
            return instance

    def build_deps(self, tokens: Any) -> Any:
        """Resolve a sequence or mapping of tokens through one shared resolution path."""
        return _ContextResolver(self, ResolutionContext()).build_deps(tokens)

    def has(self, token: Any) -> bool:
        return token in self._bindings

    def get_binding(self, token: Any) -> Binding | None:
        return self._bindings.get(token)

    def tokens(self) -> list[Any]:
        return list(self._bindings)

    def clear(self) -> None:
        with self._lock:
            self._bindings.clear()
            self._scoped.clear()

    def create_scope(self) -> Scope:
        """Create a child scope sharing this container's bindings with its own scoped cache."""
        return Scope(self, _from_parent=True)

    def validate_scopes(self) -> None:
        """Raise ``ScopeValidationError`` if any singleton can reach a scoped binding."""
        ScopeValidator(self, self.tokens()).validate()


class Scope(Container):
    """A child container: shared bindings, private scoped instances.

    Useful for per-request/per-test lifetimes. Singletons stay shared with the
    root; scoped bindings get one instance per ``Scope``.
    """

    def __init__(self, parent: Container, *, _from_parent: bool = False) -> None:
        if not _from_parent:
            msg = "Scope instances must be created via Container.create_scope()"
            raise RuntimeError(msg)
        super().__init__()
        self._parent = parent
        self._bindings = parent._bindings  # noqa: SLF001
        self._lock = parent._lock  # noqa: SLF001

    @property
    def is_root(self) -> bool:
        return False

    @property
    def parent(self) -> Container:
        return self._parent

    def _add(self, binding: Binding) -> None:
        msg = (
            f"Cannot register '{token_name(binding.token)}' in a child scope. "
            "Register providers in the root container only."
        )
        raise ChildScopeError(msg)

    def clear(self) -> None:
        with self._lock:
            self._scoped.clear()

    def validate_scopes(self) -> None:
        msg = "validate_scopes() must be called on the root container"
        raise ChildScopeError(msg)


def class_provider(cls: Any) -> Callable[[Resolver], Any]:
    """Build a factory constructing ``cls`` from its ``inject`` list or ``__init__`` type hints."""
    if not inspect.isclass(cls):
        msg = f"A factory is required for non-class token {token_name(cls)!r}"
        raise ValueError(msg)

    def factory(resolver: Resolver) -> Any:
        return Constructor(resolver).construct(cls)

    return factory


class Constructor:
    def __init__(self, resolver: Resolver) -> None:
        self._resolver = resolver

    def construct(self, cls: type[T]) -> T:
        inject = getattr(cls, "inject", None)
        if inject is not None and not callable(inject):
            deps = self._resolver.build_deps(inject)
            if isinstance(deps, dict):
                return cls(**deps)
            return cls(*deps)

        if cls.__init__ is object.__init__:
            return cls()

        sig = inspect.signature(cls)
        hints = _get_init_type_hints(cls)
        args: list[Any] = []
        kwargs: dict[str, Any] = {}
        positional_gap = False

        for name, p in sig.parameters.items():
            if p.kind in (p.VAR_POSITIONAL, p.VAR_KEYWORD):
                continue

            value = self._resolve_param(cls, name, p, hints.get(name))
            if value is inspect.Parameter.empty:
                positional_gap = positional_gap or p.kind is p.POSITIONAL_ONLY
                continue

            if p.kind is p.POSITIONAL_ONLY:
                if positional_gap:
                    msg = f"Cannot skip defaulted positional-only parameter before '{name}' of {cls.__name__}"
                    raise ResolutionError(msg)
                args.append(value)
            else:
                kwargs[name] = value

        return cls(*args, **kwargs)

    def _resolve_param(self, cls: type, name: str, p: inspect.Parameter, ann: Any) -> Any:
        """Resolving param.

        Resolution precedence:
        1. annotation visible to the resolver
        2. default
        3. annotation resolved anyway, so the resolver reports why it is missing
        4. error.
        """
        if ann is not None and self._resolver.has(ann):
            return self._resolver.resolve(ann)

        if p.default is not inspect.Parameter.empty:
            return inspect.Parameter.empty

        if ann is not None:
            return self._resolver.resolve(ann)

        msg = (
            f"Cannot satisfy constructor parameter '{name}' for {cls.__name__}. "
            "Annotate it, give it a default, or declare an `inject` list."
        )
        raise ResolutionError(msg)


def _get_init_type_hints(cls: type) -> dict[str, Any]:
    try:
        init = inspect.getattr_static(cls, "__init__")
        hints = get_type_hints(init)
    except TypeError:
        hints = {}
    except NameError as exc:
        logger.warning("'%s' name error retrieving %s (%s) type hints", exc.name, cls.__name__, cls.__qualname__)
        hints = {}

    hints.pop("return", None)
    return hints
