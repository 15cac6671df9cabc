from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, ClassVar, NamedTuple


if TYPE_CHECKING:
    from collections.abc import Sequence


@dataclass(frozen=True)
class Route:
    method: str
    path: str
    handler: str


class RouteInfo(NamedTuple):
    method: str
    path: str  # base path included
    handler: str
    controller: type


class Controller:
    """Base class for controllers consumed by HTTP adapters.

    Example:
      class UserController(Controller):
          inject = [UserService]
          base_path = "/users"
          routes = [
              Route("GET", "/", "list"),
              Route("GET", "/:id", "get"),
          ]

          def __init__(self, users: UserService):
              self.users = users

    Adapters register the class as a binding, resolve it once, and call the
    named handler for each request.
    """

    base_path: ClassVar[str] = ""
    routes: ClassVar[Sequence[Any]] = ()


def join_path(base_path: str, route_path: str) -> str:
    if base_path == "":
        return route_path
    if route_path in ("", "/"):
        return base_path
    base = base_path[:-1] if base_path.endswith("/") else base_path
    route = route_path if route_path.startswith("/") else "/" + route_path
    return base + route


def collect_routes(controller: type) -> list[RouteInfo]:
    """Flatten a controller's route table into full-path ``RouteInfo`` entries."""
    base_path = getattr(controller, "base_path", "")
    routes: list[RouteInfo] = []
    for entry in getattr(controller, "routes", ()):
        route = entry if isinstance(entry, Route) else Route(*entry)
        if not callable(getattr(controller, route.handler, None)):
            msg = f"Route {route.method} {route.path} names missing handler '{route.handler}' on {controller.__name__}"
            raise ValueError(msg)
        routes.append(RouteInfo(route.method.upper(), join_path(base_path, route.path), route.handler, controller))
    return routes
