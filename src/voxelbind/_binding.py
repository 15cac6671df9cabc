from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol

from ._errors import BindingLockedError


if TYPE_CHECKING:
    from collections.abc import Callable


class Lifetime(Enum):
    TRANSIENT = "transient"
    SINGLETON = "singleton"
    SCOPED = "scoped"


class Resolver(Protocol):
    """What a factory receives: resolution bound to the caller's in-flight context."""

    def resolve(self, token: Any) -> Any: ...

    def build_deps(self, tokens: Any) -> Any: ...

    def has(self, token: Any) -> bool: ...

    def get_binding(self, token: Any) -> Binding | None: ...


@dataclass
class Binding:
    token: Any
    factory: Callable[[Resolver], object]
    lifetime: Lifetime = Lifetime.TRANSIENT
    instance: object | None = None  # cached singleton
    produced: bool = False


class BindingHandle:
    """Returned by ``register``; sets the lifetime before the first resolution.

    Example:
      container.register("db", lambda r: Database()).as_singleton()

    """

    def __init__(self, binding: Binding) -> None:
        self._binding = binding

    @property
    def binding(self) -> Binding:
        return self._binding

    def as_singleton(self) -> BindingHandle:
        return self.set_lifetime(Lifetime.SINGLETON)

    def as_transient(self) -> BindingHandle:
        return self.set_lifetime(Lifetime.TRANSIENT)

    def as_scoped(self) -> BindingHandle:
        return self.set_lifetime(Lifetime.SCOPED)

    def set_lifetime(self, lifetime: Lifetime) -> BindingHandle:
        if self._binding.produced:
            raise BindingLockedError(self._binding.token)
        self._binding.lifetime = lifetime
        return self


def map_deps(tokens: Any, resolve: Callable[[Any], object]) -> Any:
    """Resolve every token in ``tokens``, keeping the container shape.

    A mapping yields a dict with the same keys, a tuple yields a tuple, any
    other sequence yields a list.
    """
    if isinstance(tokens, Mapping):
        return {name: resolve(token) for name, token in tokens.items()}

    if isinstance(tokens, str):
        msg = f"Expected a sequence or mapping of tokens, got the string {tokens!r}"
        raise TypeError(msg)

    resolved = [resolve(token) for token in tokens]
    if isinstance(tokens, tuple):
        return tuple(resolved)
    return resolved
