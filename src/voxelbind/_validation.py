from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from ._binding import Lifetime, map_deps
from ._errors import ResolutionError, ScopeValidationError
from ._tokens import token_name


logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from ._binding import Binding, Resolver


class Stub:
    """Inert value handed to a factory in place of a real dependency."""

    def __getattr__(self, name: str) -> Stub:
        if name.startswith("__"):
            raise AttributeError(name)
        return self

    def __call__(self, *args: Any, **kwargs: Any) -> Stub:
        return self

    def __getitem__(self, key: object) -> Stub:
        return self

    def __iter__(self):
        return iter(())

    def __repr__(self) -> str:
        return "<stub>"


class RecordingResolver:
    """Resolver that records requested tokens instead of building them.

    ``has`` and ``get_binding`` answer from the wrapped resolver, so factories
    that branch on the presence of a dependency follow the same branch they
    would at runtime. Branches taken on a dependency's value cannot be
    followed.
    """

    def __init__(self, resolver: Resolver) -> None:
        self._resolver = resolver
        self.requested: list[Any] = []

    def resolve(self, token: Any) -> Stub:
        self.requested.append(token)
        return Stub()

    def build_deps(self, tokens: Any) -> Any:
        return map_deps(tokens, self.resolve)

    def has(self, token: Any) -> bool:
        return self._resolver.has(token)

    def get_binding(self, token: Any) -> Binding | None:
        return self._resolver.get_binding(token)


def probe_dependencies(binding: Binding, resolver: Resolver) -> list[Any]:
    """Run the binding's factory against a recorder and return the tokens it asked for.

    Stubs do not support arithmetic or comparisons, so a factory that computes
    with a dependency may fail part way. Whatever it requested up to that point
    is kept. Resolution errors, such as an encapsulation denial, propagate.
    """
    recorder = RecordingResolver(resolver)
    try:
        binding.factory(recorder)
    except ResolutionError:
        raise
    except Exception as exc:  # noqa: BLE001
        logger.debug("Probing %s stopped at %r", token_name(binding.token), exc)
    return recorder.requested


class ScopeValidator:
    """Proves no singleton can reach a scoped binding.

    A singleton is built once for the lifetime of the root container, so a
    scoped value captured during that build would be shared by every scope.
    """

    def __init__(self, resolver: Resolver, tokens: list[Any]) -> None:
        self._resolver = resolver
        self._tokens = tokens

    def validate(self) -> None:
        for token in self._tokens:
            binding = self._resolver.get_binding(token)
            if binding is not None and binding.lifetime is Lifetime.SINGLETON:
                self._walk(token, binding, [token], {token})

    def _walk(self, singleton: Any, binding: Binding, path: list[Any], visited: set[Any]) -> None:
        for dep in probe_dependencies(binding, self._resolver):
            dep_binding = self._resolver.get_binding(dep)
            if dep_binding is None:
                # missing tokens are reported by resolve(), not here
                continue

            if dep_binding.lifetime is Lifetime.SCOPED:
                raise ScopeValidationError(singleton, dep, [*path, dep])

            if dep in visited:
                continue
            visited.add(dep)

            logger.debug("Scope check %s reaches %s", token_name(singleton), token_name(dep))
            self._walk(singleton, dep_binding, [*path, dep], visited)
