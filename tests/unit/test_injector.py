"""
Unit tests for ReflectiveInjector.

Tests:
- Lazy, memoized instantiation
- Parent and fallback lookup order
- Not-found handling and default values
- Cycle detection and error paths
- Instantiation errors
"""

from typing import Optional
from unittest.mock import MagicMock

import pytest

from modinject.di import (
    ClassProvider,
    FactoryProvider,
    InjectionToken,
    Injector,
    ProviderScope,
    ReflectiveInjector,
    ValueProvider,
    forward_ref,
    injectable,
    register_injectable,
)
from modinject.exceptions import (
    CyclicDependencyError,
    InstantiationError,
    NoProviderError,
)

GREETING = InjectionToken("greeting")
FLAG = InjectionToken("flag")


@injectable
class Config:
    def __init__(self):
        self.settings = {"level": "info"}


@injectable
class Logger:
    def __init__(self, config: Config):
        self.config = config


@injectable
class Service:
    def __init__(self, logger: Logger, config: Config):
        self.logger = logger
        self.config = config


@injectable
class Auditor:
    def __init__(self, logger: Optional[Logger]):
        self.logger = logger


@injectable(inject={0: forward_ref(lambda: CycleB)})
class CycleA:
    def __init__(self, b):
        self.b = b


@injectable
class CycleB:
    def __init__(self, a: CycleA):
        self.a = a


@injectable
class Broken:
    def __init__(self, config: Config):
        raise ValueError("boom")


@injectable
class NeedsBroken:
    def __init__(self, broken: Broken):
        self.broken = broken


@injectable
class ConsoleLogger:
    def __init__(self, config: Config):
        self.config = config


class TestInstantiation:
    """Tests for lazy, memoized instantiation."""

    def test_get_returns_same_instance(self):
        injector = ReflectiveInjector([Config, Logger])
        assert injector.get(Logger) is injector.get(Logger)

    def test_dependencies_injected(self):
        injector = ReflectiveInjector.create("app", [Config, Logger, Service])
        service = injector.get(Service)

        assert service.logger is injector.get(Logger)
        assert service.config is injector.get(Config)
        assert service.logger.config is service.config

    def test_lazy(self):
        factory = MagicMock(return_value="value")
        injector = ReflectiveInjector([FactoryProvider(provide=GREETING, use_factory=factory)])

        factory.assert_not_called()
        assert not injector.is_instantiated(GREETING)

        assert injector.get(GREETING) == "value"
        assert injector.get(GREETING) == "value"
        factory.assert_called_once_with()
        assert injector.is_instantiated(GREETING)

    def test_instantiate_all_runs_each_factory_once(self):
        calls = []

        def make_greeting():
            calls.append("greeting")
            return "hello"

        injector = ReflectiveInjector(
            [FactoryProvider(provide=GREETING, use_factory=make_greeting), Config]
        )
        injector.instantiate_all()
        injector.instantiate_all()
        injector.get(GREETING)

        assert calls == ["greeting"]
        assert injector.is_instantiated(Config)

    def test_operation_logger_with_value_config(self):
        env = {"env": "test"}
        injector = ReflectiveInjector(
            [
                ClassProvider(
                    provide=Logger, use_class=ConsoleLogger, scope=ProviderScope.OPERATION
                ),
                ValueProvider(provide=Config, use_value=env),
            ]
        )

        assert injector.get(Config) is env
        logger = injector.get(Logger)
        assert isinstance(logger, ConsoleLogger)
        assert injector.get(Logger) is logger
        assert logger.config is env

    @pytest.mark.parametrize("position", ["first", "last"])
    def test_instantiate_all_independent_of_order(self, position):
        calls = []

        def make_greeting(service: Service) -> str:
            calls.append("greeting")
            return "hello"

        greeting = FactoryProvider(provide=GREETING, use_factory=make_greeting)
        others = [Config, Logger, Service]
        providers = [greeting, *others] if position == "first" else [*others, greeting]

        injector = ReflectiveInjector(providers)
        injector.instantiate_all()

        assert calls == ["greeting"]
        assert injector.get(GREETING) == "hello"
        assert calls == ["greeting"]
        assert all(injector.is_instantiated(token) for token in others)

    def test_factory_receives_dependencies(self):
        def make_greeting(config: Config) -> str:
            return f"hello at {config.settings['level']}"

        injector = ReflectiveInjector(
            [Config, FactoryProvider(provide=GREETING, use_factory=make_greeting)]
        )
        assert injector.get(GREETING) == "hello at info"

    def test_injector_token_resolves_to_self(self):
        injector = ReflectiveInjector([Config])
        assert injector.get(Injector) is injector

    def test_falsy_values_are_values(self):
        injector = ReflectiveInjector(
            [
                ValueProvider(provide=FLAG, use_value=False),
                ValueProvider(provide=GREETING, use_value=None),
            ]
        )
        assert injector.get(FLAG) is False
        assert injector.get(GREETING) is None

    def test_later_provider_overrides(self):
        injector = ReflectiveInjector(
            [
                ValueProvider(provide=GREETING, use_value="first"),
                ValueProvider(provide=GREETING, use_value="second"),
            ]
        )
        assert injector.get(GREETING) == "second"
        assert len(injector.providers) == 1


class TestHierarchy:
    """Tests for parent and fallback lookup."""

    def test_child_uses_parent_instance(self):
        parent = ReflectiveInjector.create("app", [Config, Logger])
        child = ReflectiveInjector.create("child", [Service], parent=parent)

        service = child.get(Service)
        assert service.logger is parent.get(Logger)
        assert not child.has_provider(Logger)
        assert parent.is_instantiated(Logger)

    def test_child_shadows_parent(self):
        parent = ReflectiveInjector([ValueProvider(provide=GREETING, use_value="parent")])
        child = ReflectiveInjector(
            [ValueProvider(provide=GREETING, use_value="child")], parent=parent
        )

        assert child.get(GREETING) == "child"
        assert parent.get(GREETING) == "parent"

    def test_parent_instance_not_recreated_by_child(self):
        factory = MagicMock(side_effect=lambda: object())
        parent = ReflectiveInjector([FactoryProvider(provide=GREETING, use_factory=factory)])
        children = [ReflectiveInjector([], parent=parent) for _ in range(3)]

        results = {id(child.get(GREETING)) for child in children}
        assert len(results) == 1
        factory.assert_called_once()

    def test_parent_chain_before_fallback(self):
        parent = ReflectiveInjector([ValueProvider(provide=GREETING, use_value="parent")])
        fallback = ReflectiveInjector([ValueProvider(provide=GREETING, use_value="fallback")])
        injector = ReflectiveInjector([], parent=parent, fallback=fallback)

        assert injector.get(GREETING) == "parent"

    def test_fallback_used_when_parents_miss(self):
        parent = ReflectiveInjector([Config])
        fallback = ReflectiveInjector([ValueProvider(provide=GREETING, use_value="fallback")])
        injector = ReflectiveInjector([], parent=parent, fallback=fallback)

        assert injector.get(GREETING) == "fallback"

    def test_external_injector_probed_before_fallback(self):
        class External(Injector):
            def get(self, token, not_found_value=Injector.THROW_IF_NOT_FOUND):
                if token is GREETING:
                    return "external"
                return not_found_value

        fallback = ReflectiveInjector([ValueProvider(provide=GREETING, use_value="fallback")])
        injector = ReflectiveInjector([], parent=External(), fallback=fallback)
        assert injector.get(GREETING) == "external"

    def test_external_injector_miss_goes_to_fallback(self):
        external = MagicMock(spec=Injector)
        external.get.side_effect = lambda token, not_found_value: not_found_value

        fallback = ReflectiveInjector([ValueProvider(provide=GREETING, use_value="fallback")])
        injector = ReflectiveInjector([], parent=external, fallback=fallback)

        assert injector.get(GREETING) == "fallback"
        external.get.assert_called_once()

    def test_dependency_from_fallback(self):
        fallback = ReflectiveInjector([Config])
        injector = ReflectiveInjector([Logger], fallback=fallback)

        assert injector.get(Logger).config is fallback.get(Config)


class TestNotFound:
    """Tests for tokens nobody provides."""

    def test_raises_no_provider(self):
        injector = ReflectiveInjector.create("app", [Config])

        with pytest.raises(NoProviderError) as exc_info:
            injector.get(GREETING)

        assert exc_info.value.token is GREETING
        assert str(exc_info.value) == "No provider for InjectionToken greeting! - in app"

    def test_default_value(self):
        injector = ReflectiveInjector([])
        sentinel = object()

        assert injector.get(GREETING, sentinel) is sentinel
        assert injector.get(GREETING, None) is None

    def test_default_value_through_fallback(self):
        injector = ReflectiveInjector(
            [], parent=ReflectiveInjector([]), fallback=ReflectiveInjector([])
        )
        assert injector.get(GREETING, "default") == "default"

    def test_missing_dependency_path(self):
        injector = ReflectiveInjector.create("app", [Logger, Service])

        with pytest.raises(NoProviderError) as exc_info:
            injector.get(Service)

        error = exc_info.value
        assert error.token is Config
        assert str(error) == "No provider for Config! (Service -> Logger -> Config) - in app"

    def test_optional_dependency_resolves_to_none(self):
        injector = ReflectiveInjector([Auditor])
        assert injector.get(Auditor).logger is None

    def test_optional_dependency_provided(self):
        injector = ReflectiveInjector([Config, Logger, Auditor])
        assert injector.get(Auditor).logger is injector.get(Logger)


class TestCycles:
    """Tests for cyclic dependency detection."""

    def test_cycle_raises(self):
        injector = ReflectiveInjector.create("app", [CycleA, CycleB])

        with pytest.raises(CyclicDependencyError) as exc_info:
            injector.get(CycleA)

        assert str(exc_info.value) == (
            "Cannot instantiate cyclic dependency! (CycleA -> CycleB -> CycleA) - in app"
        )

    def test_injector_usable_after_cycle(self):
        injector = ReflectiveInjector([CycleA, CycleB, Config])

        with pytest.raises(CyclicDependencyError):
            injector.get(CycleB)

        assert isinstance(injector.get(Config), Config)

    def test_deep_chain_is_not_a_cycle(self):
        tokens = [InjectionToken(f"step-{i}") for i in range(5)]
        providers = [ValueProvider(provide=tokens[0], use_value=0)]
        for previous, token in zip(tokens, tokens[1:]):
            providers.append(
                FactoryProvider(provide=token, use_factory=_increment_factory(previous))
            )

        injector = ReflectiveInjector(providers)
        assert injector.get(tokens[-1]) == 4


class TestInstantiationErrors:
    """Tests for factories that raise."""

    def test_wraps_original_error(self):
        injector = ReflectiveInjector.create("app", [Config, Broken])

        with pytest.raises(InstantiationError) as exc_info:
            injector.get(Broken)

        error = exc_info.value
        assert isinstance(error.original_error, ValueError)
        assert error.__cause__ is error.original_error
        assert str(error) == "boom: Error during instantiation of Broken!. - in app"

    def test_path_of_nested_failure(self):
        injector = ReflectiveInjector.create("app", [Config, Broken, NeedsBroken])

        with pytest.raises(InstantiationError) as exc_info:
            injector.get(NeedsBroken)

        assert "(NeedsBroken -> Broken)" in str(exc_info.value)
        assert exc_info.value.token is Broken

    def test_failed_instance_not_cached(self):
        attempts = []

        def flaky():
            attempts.append(1)
            if len(attempts) == 1:
                raise RuntimeError("first call fails")
            return "ok"

        injector = ReflectiveInjector([FactoryProvider(provide=GREETING, use_factory=flaky)])

        with pytest.raises(InstantiationError):
            injector.get(GREETING)
        assert injector.get(GREETING) == "ok"


class TestDisplayName:
    """Tests for injector display names."""

    def test_named(self):
        assert ReflectiveInjector.create("posts", []).display_name == "posts"

    def test_default_lists_providers(self):
        injector = ReflectiveInjector([Config, Logger])
        assert injector.display_name == "ReflectiveInjector(providers: [Config, Logger])"
        assert repr(injector) == "<ReflectiveInjector(providers: [Config, Logger])>"


def _increment_factory(previous):
    def factory(value):
        return value + 1

    register_injectable(factory, inject={0: previous})
    return factory
