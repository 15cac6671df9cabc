from __future__ import annotations

from typing import TYPE_CHECKING

from ._tokens import token_name


if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence


class ResolutionError(RuntimeError):
    """Base class for wiring errors raised by the container."""


class TokenNotFoundError(ResolutionError):
    def __init__(self, token: object, path: Sequence[object], available: Iterable[object]) -> None:
        self.token = token
        self.path = [*path, token]
        self.available_tokens = list(available)

        name = token_name(token)
        lines = [f"Token '{name}' not found"]
        if len(self.path) > 1:
            lines.append("  Resolution path: " + " -> ".join(token_name(t) for t in self.path))
        if self.available_tokens:
            lines.append("  Available tokens: " + ", ".join(token_name(t) for t in self.available_tokens))
        else:
            lines.append("  Available tokens: (none registered)")
        lines.append(f"  Suggestion: Did you mean to import a module that provides '{name}'?")
        super().__init__("\n".join(lines))


class TokenCollisionError(ResolutionError):
    def __init__(self, token: object) -> None:
        self.token = token
        msg = (
            f"Token '{token_name(token)}' is already registered. "
            "Each token can only be registered once per container."
        )
        super().__init__(msg)


class ScopeValidationError(ResolutionError):
    def __init__(self, singleton: object, scoped: object, path: Sequence[object] = ()) -> None:
        self.singleton_token = singleton
        self.scoped_token = scoped
        self.path = list(path) or [singleton, scoped]

        parent, child = token_name(singleton), token_name(scoped)
        msg = (
            f"Scope validation failed: singleton '{parent}' depends on scoped '{child}' "
            f"(via {' -> '.join(token_name(t) for t in self.path)}). "
            f"Make '{parent}' scoped, or '{child}' singleton/transient."
        )
        super().__init__(msg)


class NonExportedTokenError(ResolutionError):
    NOT_EXPORTED = "not-exported"
    NOT_IMPORTED = "not-imported"

    def __init__(
        self,
        token: object,
        requesting_module: str,
        owner_module: str,
        reason: str,
        accessible_tokens: Iterable[object],
    ) -> None:
        self.token = token
        self.requesting_module = requesting_module
        self.owner_module = owner_module
        self.reason = reason
        self.accessible_tokens = list(accessible_tokens)

        name = token_name(token)
        accessible = ", ".join(token_name(t) for t in self.accessible_tokens) or "none"
        if reason == self.NOT_EXPORTED:
            hint = f"Token '{name}' is not exported from module '{owner_module}'."
        else:
            hint = (
                f"Token '{name}' is exported from module '{owner_module}', "
                f"but '{requesting_module}' does not import it."
            )
        msg = f"{hint} Module '{requesting_module}' can access: [{accessible}]."
        super().__init__(msg)


class BindingLockedError(ResolutionError):
    def __init__(self, token: object) -> None:
        self.token = token
        msg = f"Cannot change the scope of '{token_name(token)}' after it has produced an instance."
        super().__init__(msg)


class ChildScopeError(ResolutionError):
    pass
