"""
Unit tests for execution-context shadows.

Tests:
- ExecutionContextProxy attribute routing
- Special methods forwarded through proxies
- Shadow injectors sharing singleton instances
- Concurrent operations seeing their own context
"""

import pytest

from modinject.di import (
    ExecutionContextAware,
    ExecutionContextProxy,
    InjectionToken,
    ReflectiveInjector,
    ValueProvider,
    execution_context,
    injectable,
    unwrap,
)
from modinject.exceptions import ExecutionContextError

SETTINGS = InjectionToken("settings")


@injectable
class Auth(ExecutionContextAware):
    def __init__(self):
        self.calls = 0

    def user(self):
        self.calls += 1
        return self.current_context()["user"]

    @property
    def is_admin(self):
        return self.context.get("admin", False)


@execution_context("tenant")
@injectable
class TenantStore:
    tenant = None

    def __init__(self):
        self.rows = []

    def describe(self):
        return f"{self.tenant}:{len(self.rows)}"


@injectable
class Plain:
    pass


@injectable
class UsesAuth:
    def __init__(self, auth: Auth):
        self.auth = auth


@injectable
class Counter(ExecutionContextAware):
    def __init__(self):
        self.items = ["a", "b"]
        self.entered = 0

    def __call__(self, suffix):
        return f"{self.current_context()['user']}:{suffix}"

    def __len__(self):
        return len(self.items)

    def __iter__(self):
        return iter(self.items)

    def __contains__(self, item):
        return item in self.items

    def __getitem__(self, index):
        return self.items[index]

    def __str__(self):
        return f"counter of {len(self)} for {self.current_context()['user']}"

    def __enter__(self):
        self.entered += 1
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.entered -= 1

    async def __aenter__(self):
        return self.current_context()["user"]

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return None


@injectable
class EmptyBag(ExecutionContextAware):
    def __len__(self):
        return 0


class TestExecutionContextProxy:
    """Tests for ExecutionContextProxy."""

    def test_bound_attribute_reads_getter(self):
        auth = Auth()
        proxy = ExecutionContextProxy(auth, ["context"], lambda: {"user": "alice"})

        assert proxy.context == {"user": "alice"}
        assert proxy.user() == "alice"

    def test_methods_and_state_reach_target(self):
        auth = Auth()
        proxy = ExecutionContextProxy(auth, ["context"], lambda: {"user": "alice"})

        proxy.user()
        proxy.user()
        assert auth.calls == 2
        assert proxy.calls == 2

    def test_property_sees_context(self):
        proxy = ExecutionContextProxy(Auth(), ["context"], lambda: {"admin": True})
        assert proxy.is_admin is True

    def test_setattr_forwards(self):
        auth = Auth()
        proxy = ExecutionContextProxy(auth, ["context"], dict)

        proxy.calls = 10
        assert auth.calls == 10

    def test_bound_attribute_is_read_only(self):
        proxy = ExecutionContextProxy(Auth(), ["context"], dict)
        with pytest.raises(AttributeError, match="bound to the execution context"):
            proxy.context = {}

    def test_isinstance_and_unwrap(self):
        auth = Auth()
        proxy = ExecutionContextProxy(auth, ["context"], dict)

        assert isinstance(proxy, Auth)
        assert unwrap(proxy) is auth
        assert unwrap(auth) is auth
        assert proxy == auth
        assert hash(proxy) == hash(auth)

    def test_target_outside_operation(self):
        with pytest.raises(ExecutionContextError, match="outside of an operation"):
            Auth().user()


class TestSpecialMethodForwarding:
    """Tests for special methods of the target seen through a proxy."""

    def _proxy(self, target=None):
        target = Counter() if target is None else target
        return ExecutionContextProxy(target, ["context"], lambda: {"user": "alice"})

    def test_callable(self):
        proxy = self._proxy()
        assert callable(proxy)
        assert proxy("posts") == "alice:posts"

    def test_container_protocol(self):
        proxy = self._proxy()
        assert len(proxy) == 2
        assert list(proxy) == ["a", "b"]
        assert "a" in proxy
        assert proxy[1] == "b"

    def test_str_uses_context(self):
        assert str(self._proxy()) == "counter of 2 for alice"
        assert f"{self._proxy()}" == "counter of 2 for alice"

    def test_str_without_override_matches_target(self):
        auth = Auth()
        assert str(ExecutionContextProxy(auth, ["context"], dict)) == str(auth)

    def test_bool_follows_len(self):
        assert not self._proxy(EmptyBag())
        assert self._proxy()

    def test_context_manager(self):
        counter = Counter()
        proxy = self._proxy(counter)

        with proxy as entered:
            assert counter.entered == 1
            assert entered("x") == "alice:x"
        assert counter.entered == 0

    @pytest.mark.asyncio
    async def test_async_context_manager(self):
        async with self._proxy() as user:
            assert user == "alice"

    def test_only_defined_methods_forwarded(self):
        proxy = ExecutionContextProxy(Auth(), ["context"], dict)
        assert not callable(proxy)
        with pytest.raises(TypeError):
            len(proxy)

    def test_proxy_class_shared_per_target_class(self):
        assert type(self._proxy()) is type(self._proxy())
        assert type(self._proxy()) is not type(ExecutionContextProxy(Auth(), ["context"], dict))
        assert isinstance(self._proxy(), ExecutionContextProxy)

    def test_through_shadow(self):
        injector = ReflectiveInjector.create("app", [Counter])
        injector.instantiate_all()
        shadow = ReflectiveInjector.create_with_execution_context(
            injector, lambda: {"user": "bob"}
        )

        counter = shadow.get(Counter)
        assert counter("x") == "bob:x"
        assert len(counter) == 2
        assert str(counter) == "counter of 2 for bob"
        assert counter == injector.get(Counter)
        assert counter is not injector.get(Counter)
        assert unwrap(counter) is injector.get(Counter)


class TestCreateWithExecutionContext:
    """Tests for ReflectiveInjector.create_with_execution_context."""

    def _injector(self):
        injector = ReflectiveInjector.create(
            "app",
            [Auth, Plain, UsesAuth, ValueProvider(provide=SETTINGS, use_value={"debug": True})],
        )
        injector.instantiate_all()
        return injector

    def test_two_shadows_see_their_own_context(self):
        injector = self._injector()
        first = ReflectiveInjector.create_with_execution_context(
            injector, lambda: {"user": "alice"}
        )
        second = ReflectiveInjector.create_with_execution_context(
            injector, lambda: {"user": "bob"}
        )

        assert first.get(Auth).user() == "alice"
        assert second.get(Auth).user() == "bob"
        assert unwrap(first.get(Auth)) is injector.get(Auth)
        assert unwrap(second.get(Auth)) is injector.get(Auth)

    def test_objects_without_bound_attributes_are_shared(self):
        injector = self._injector()
        shadow = ReflectiveInjector.create_with_execution_context(injector, dict)

        assert shadow.get(Plain) is injector.get(Plain)
        assert shadow.get(SETTINGS) is injector.get(SETTINGS)
        assert shadow.get(UsesAuth) is injector.get(UsesAuth)

    def test_shadow_keeps_parent_and_fallback(self):
        parent = ReflectiveInjector([Plain])
        fallback = ReflectiveInjector([])
        injector = ReflectiveInjector.create("module", [Auth], parent=parent, fallback=fallback)
        injector.instantiate_all()

        shadow = ReflectiveInjector.create_with_execution_context(injector, dict)

        assert shadow.parent is parent
        assert shadow.fallback is fallback
        assert shadow.display_name == "module [execution context]"
        assert shadow.get(Plain) is parent.get(Plain)

    def test_parent_override(self):
        injector = self._injector()
        other_parent = ReflectiveInjector([])
        shadow = ReflectiveInjector.create_with_execution_context(
            injector, dict, parent=other_parent
        )
        assert shadow.parent is other_parent

    def test_not_instantiated_is_an_error(self):
        injector = ReflectiveInjector.create("app", [Auth])

        with pytest.raises(ExecutionContextError, match="must be instantiated"):
            ReflectiveInjector.create_with_execution_context(injector, dict)

    def test_lazy_slots_delegate_to_original(self):
        injector = ReflectiveInjector.create("app", [Auth, Plain])
        injector.get(Auth)

        shadow = ReflectiveInjector.create_with_execution_context(injector, dict)
        plain = shadow.get(Plain)

        assert plain is injector.get(Plain)
        assert injector.is_instantiated(Plain)

    def test_custom_bound_name(self):
        injector = ReflectiveInjector.create("app", [TenantStore])
        injector.instantiate_all()
        store = injector.get(TenantStore)
        store.rows.append("row")

        shadow = ReflectiveInjector.create_with_execution_context(injector, lambda: "acme")

        assert shadow.get(TenantStore).describe() == "acme:1"
        assert store.describe() == "None:1"
