import asyncio
import unittest

import pytest

from voxelbind import (
    Container,
    Module,
    ModuleMetadata,
    ModuleRegistry,
    NonExportedTokenError,
    Provider,
    TokenNotFoundError,
)


def load(*modules, container=None):
    container = container or Container()
    registry = ModuleRegistry()
    for module in modules:
        registry.register(module)
    asyncio.run(registry.load_modules(container))
    return container


class TestExportVisibility(unittest.TestCase):
    def setUp(self):
        views = self.views = {}

        class DbModule(Module):
            metadata = ModuleMetadata(
                providers=[Provider("X", lambda r: "x"), Provider("Y", lambda r: "y")],
                exports=["X"],
            )

        class OtherModule(Module):
            metadata = ModuleMetadata(providers=[Provider("Z", lambda r: "z")], exports=["Z"])

        class AppModule(Module):
            metadata = ModuleMetadata(imports=[DbModule], providers=[Provider("own", lambda r: "own")])

            def register(self, container):
                super().register(container)
                views["app"] = container

        self.container = load(OtherModule, AppModule)

    def test_exported_token_from_import_is_visible(self):
        assert self.views["app"].has("X")
        assert self.views["app"].resolve("X") == "x"
        assert self.views["app"].get_binding("X").token == "X"

    def test_own_tokens_are_visible_without_export(self):
        assert self.views["app"].has("own")
        assert self.views["app"].resolve("own") == "own"

    def test_unexported_token_is_hidden(self):
        assert not self.views["app"].has("Y")

        with pytest.raises(NonExportedTokenError) as ctx:
            self.views["app"].resolve("Y")

        err = ctx.value
        assert err.token == "Y"
        assert err.owner_module == "DbModule"
        assert err.requesting_module == "AppModule"
        assert err.reason == NonExportedTokenError.NOT_EXPORTED
        assert err.accessible_tokens == ["X", "own"]

    def test_exported_token_from_unimported_module_is_hidden(self):
        assert not self.views["app"].has("Z")

        with pytest.raises(NonExportedTokenError) as ctx:
            self.views["app"].get_binding("Z")

        assert ctx.value.reason == NonExportedTokenError.NOT_IMPORTED
        assert "does not import it" in str(ctx.value)

    def test_root_container_sees_everything(self):
        assert self.container.resolve("Y") == "y"
        assert self.container.resolve("Z") == "z"

    def test_unknown_token_reports_not_found(self):
        assert not self.views["app"].has("nothing")
        with pytest.raises(TokenNotFoundError):
            self.views["app"].resolve("nothing")


def test_exports_are_not_transitive():
    views = {}

    class C(Module):
        metadata = ModuleMetadata(providers=[Provider("c", lambda r: "c")], exports=["c"])

    class B(Module):
        metadata = ModuleMetadata(imports=[C], providers=[Provider("b", lambda r: "b")], exports=["b"])

        def register(self, container):
            super().register(container)
            views["B"] = container

    class A(Module):
        metadata = ModuleMetadata(imports=[B])

        def register(self, container):
            views["A"] = container

    load(A)

    assert views["B"].resolve("c") == "c"
    assert views["A"].resolve("b") == "b"
    assert not views["A"].has("c")
    with pytest.raises(NonExportedTokenError) as ctx:
        views["A"].resolve("c")
    assert ctx.value.reason == NonExportedTokenError.NOT_IMPORTED


def test_factory_using_hidden_token_fails_at_load_time():
    class DbModule(Module):
        metadata = ModuleMetadata(providers=[Provider("secret", lambda r: "s")])

    class AppModule(Module):
        metadata = ModuleMetadata(
            imports=[DbModule],
            providers=[Provider("service", lambda r: r.resolve("secret"))],
        )

    with pytest.raises(NonExportedTokenError) as ctx:
        load(AppModule)
    assert ctx.value.token == "secret"


def test_class_provider_with_hidden_dependency_fails_at_load_time():
    class Database: ...

    class Repo:
        def __init__(self, db: Database):
            self.db = db

    class DbModule(Module):
        metadata = ModuleMetadata(providers=[Database])

    class RepoModule(Module):
        metadata = ModuleMetadata(imports=[DbModule], providers=[Repo])

    with pytest.raises(NonExportedTokenError) as ctx:
        load(RepoModule)
    assert ctx.value.token is Database


def test_factories_resolve_through_module_view():
    class Database:
        def query(self):
            return "rows"

    class Repo:
        inject = [Database]

        def __init__(self, db):
            self.db = db

    class DbModule(Module):
        metadata = ModuleMetadata(providers=[Database], exports=[Database])

    class RepoModule(Module):
        metadata = ModuleMetadata(imports=[DbModule], providers=[Repo], exports=[Repo])

    container = load(RepoModule)

    assert container.resolve(Repo).db.query() == "rows"


def test_tokens_bound_outside_modules_are_visible():
    container = Container()
    container.register("config", lambda r: {"debug": True})

    class AppModule(Module):
        metadata = ModuleMetadata(providers=[Provider("app", lambda r: r.resolve("config")["debug"])])

    load(AppModule, container=container)

    assert container.resolve("app") is True


def test_denial_lists_tokens_bound_outside_modules_as_accessible():
    container = Container()
    container.register("config", lambda r: {})

    class DbModule(Module):
        metadata = ModuleMetadata(providers=[Provider("secret", lambda r: "s")])

    class AppModule(Module):
        metadata = ModuleMetadata(
            imports=[DbModule],
            providers=[Provider("service", lambda r: r.resolve("secret"))],
        )

    with pytest.raises(NonExportedTokenError) as ctx:
        load(AppModule, container=container)

    assert ctx.value.accessible_tokens == ["config", "service"]
    assert "can access: [config, service]" in str(ctx.value)


def test_preregistered_token_wins_over_module_provider():
    container = Container()
    container.register("X", lambda r: "override")

    class DbModule(Module):
        metadata = ModuleMetadata(providers=[Provider("X", lambda r: "x")], exports=["X"])

    class AppModule(Module):
        metadata = ModuleMetadata(imports=[DbModule], providers=[Provider("uses", lambda r: r.resolve("X"))])

    load(AppModule, container=container)

    assert container.resolve("uses") == "override"


def test_cycle_across_modules_resolves():
    class Ping:
        def __init__(self, pong):
            self.pong = pong

        def name(self):
            return "ping"

    class Pong:
        def __init__(self, ping):
            self.ping = ping

        def name(self):
            return "pong"

    class PongModule(Module):
        metadata = ModuleMetadata(providers=[Provider("pong", lambda r: Pong(r.resolve("ping")))], exports=["pong"])

    class PingModule(Module):
        metadata = ModuleMetadata(
            imports=[PongModule],
            providers=[Provider("ping", lambda r: Ping(r.resolve("pong")))],
            exports=["ping"],
        )

    PongModule.metadata = ModuleMetadata(
        imports=[PingModule],
        providers=PongModule.metadata.providers,
        exports=["pong"],
    )

    container = load(PingModule)
    ping = container.resolve("ping")

    assert ping.pong.name() == "pong"
    assert ping.pong.ping.name() == "ping"
