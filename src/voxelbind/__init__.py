"""Module-aware dependency injection container.

This package resolves tokens to fully wired instances from a registry of
factories, with transient/singleton/scoped lifetimes, child scopes, cycle-safe
forwarding references, and modules that only expose what they export.

Exports:
- `Container`: Root container; register factories, resolve tokens, create scopes.
- `Scope`: Child container sharing the root's bindings with its own scoped cache.
- `Lifetime`: Enum of binding lifetimes (transient, singleton, scoped).
- `Token`: Process-unique marker usable as a token.
- `Module`, `ModuleMetadata`, `Provider`, `ModuleRegistry`: Declarative modules
  loaded in import order with lifecycle hooks and encapsulation.
- `Controller`, `Route`, `collect_routes`: Route metadata read by HTTP adapters.
- `voxelbind.testing`: Disposable test containers built from modules.
"""

from ._binding import Binding, BindingHandle, Lifetime, Resolver
from ._container import Container, ForwardRef, ResolutionContext, Scope, unwrap
from ._controllers import Controller, Route, RouteInfo, collect_routes, join_path
from ._errors import (
    BindingLockedError,
    ChildScopeError,
    NonExportedTokenError,
    ResolutionError,
    ScopeValidationError,
    TokenCollisionError,
    TokenNotFoundError,
)
from ._modules import Module, ModuleContainer, ModuleMetadata, ModuleRegistry, Provider
from ._tokens import Token, token_name
from ._validation import RecordingResolver


__all__ = [
    "Binding",
    "BindingHandle",
    "BindingLockedError",
    "ChildScopeError",
    "Container",
    "Controller",
    "ForwardRef",
    "Lifetime",
    "Module",
    "ModuleContainer",
    "ModuleMetadata",
    "ModuleRegistry",
    "NonExportedTokenError",
    "Provider",
    "RecordingResolver",
    "ResolutionContext",
    "ResolutionError",
    "Resolver",
    "Route",
    "RouteInfo",
    "Scope",
    "ScopeValidationError",
    "Token",
    "TokenCollisionError",
    "TokenNotFoundError",
    "collect_routes",
    "join_path",
    "token_name",
    "unwrap",
]
