"""Tests for decisions, the limiter registry and the limiter gateway."""

import asyncio

import pytest

from httpx_throttle.errors import InvalidDecision, InvalidLimiterType
from httpx_throttle.limiter import (
    Allow,
    Deny,
    LimiterGateway,
    LimiterRegistry,
    coerce_decision,
    default_registry,
)

from conftest import ScriptedLimiter


class ModuleStyleLimiter:
    """Limiter exposed as a class with a static hit(), never instantiated."""

    hits: list[str] = []

    @staticmethod
    def hit(key: str) -> Allow:
        ModuleStyleLimiter.hits.append(key)
        return Allow(count=len(ModuleStyleLimiter.hits))


class TestDecisions:
    """Tests for Allow/Deny and coerce_decision."""

    def test_allow_default_count(self) -> None:
        assert Allow().count == 0

    def test_deny_rejects_negative_delay(self) -> None:
        with pytest.raises(InvalidDecision, match="non-negative"):
            Deny(retry_after_ms=-1)

    def test_deny_rejects_non_numeric_delay(self) -> None:
        with pytest.raises(InvalidDecision, match="must be a number"):
            Deny(retry_after_ms="soon")  # type: ignore[arg-type]

    @pytest.mark.parametrize("delay", [float("nan"), float("inf"), float("-inf")])
    def test_deny_rejects_non_finite_delay(self, delay: float) -> None:
        """Test delays that cannot be slept on are rejected."""
        with pytest.raises(InvalidDecision, match="finite"):
            Deny(retry_after_ms=delay)

    def test_coerce_rejects_infinite_tuple_delay(self) -> None:
        with pytest.raises(InvalidDecision):
            coerce_decision(("deny", float("inf")))

    def test_deny_zero_delay(self) -> None:
        assert Deny(retry_after_ms=0).retry_after_ms == 0

    def test_decisions_are_immutable(self) -> None:
        decision = Deny(retry_after_ms=10)
        with pytest.raises(AttributeError):
            decision.retry_after_ms = 20  # type: ignore[misc]

    def test_coerce_passthrough(self) -> None:
        decision = Allow(count=3)
        assert coerce_decision(decision) is decision

    def test_coerce_tuples(self) -> None:
        """Test the tuple spellings are normalized."""
        assert coerce_decision(("allow", 7)) == Allow(count=7)
        assert coerce_decision(("deny", 120)) == Deny(retry_after_ms=120)
        assert coerce_decision(("DENY", 5)) == Deny(retry_after_ms=5)

    @pytest.mark.parametrize(
        "value",
        [None, True, "allow", ("maybe", 1), ("deny",), ("deny", -5), {"allowed": True}],
    )
    def test_coerce_rejects_unknown(self, value: object) -> None:
        with pytest.raises(InvalidDecision):
            coerce_decision(value)


class TestLimiterRegistry:
    """Tests for LimiterRegistry."""

    def test_register_and_get(self, registry: LimiterRegistry) -> None:
        limiter = ScriptedLimiter()
        registry.register("api", limiter)

        assert registry.get("api") is limiter
        assert "api" in registry
        assert len(registry) == 1

    def test_get_missing(self, registry: LimiterRegistry) -> None:
        assert registry.get("missing") is None
        assert "missing" not in registry

    def test_unregister(self, registry: LimiterRegistry) -> None:
        registry.register("api", ScriptedLimiter())

        assert registry.unregister("api") is True
        assert registry.unregister("api") is False
        assert len(registry) == 0

    def test_clear(self, registry: LimiterRegistry) -> None:
        registry.register("a", ScriptedLimiter())
        registry.register("b", ScriptedLimiter())
        registry.clear()

        assert len(registry) == 0


class TestLimiterGateway:
    """Tests for LimiterGateway."""

    def test_handle_object(self) -> None:
        """Test an object with hit() is called with the key."""
        limiter = ScriptedLimiter([Deny(retry_after_ms=30)])
        gateway = LimiterGateway(limiter)

        assert gateway.evaluate("example.com") == Deny(retry_after_ms=30)
        assert gateway.evaluate("example.com") == Allow(count=1)
        assert limiter.keys == ["example.com", "example.com"]

    def test_class_with_static_hit(self) -> None:
        ModuleStyleLimiter.hits.clear()
        gateway = LimiterGateway(ModuleStyleLimiter)

        assert gateway.evaluate("k") == Allow(count=1)
        assert ModuleStyleLimiter.hits == ["k"]

    def test_plain_function(self) -> None:
        seen: list[str] = []

        def limiter(key: str) -> tuple[str, int]:
            seen.append(key)
            return ("allow", 1)

        gateway = LimiterGateway(limiter)

        assert gateway.evaluate("example.com") == Allow(count=1)
        assert seen == ["example.com"]

    def test_named_limiter_resolved_at_call_time(self, registry: LimiterRegistry) -> None:
        """Test a name is looked up on every evaluation, not at construction."""
        gateway = LimiterGateway("api", registry=registry)

        first = ScriptedLimiter(default=Deny(retry_after_ms=5))
        registry.register("api", first)
        assert gateway.evaluate("k") == Deny(retry_after_ms=5)

        second = ScriptedLimiter()
        registry.register("api", second)
        assert gateway.evaluate("k") == Allow(count=1)
        assert first.calls == 1
        assert second.calls == 1

    def test_named_limiter_missing(self, registry: LimiterRegistry) -> None:
        gateway = LimiterGateway("unregistered", registry=registry)

        with pytest.raises(InvalidLimiterType):
            gateway.evaluate("k")

    def test_named_limiter_default_registry(self) -> None:
        limiter = ScriptedLimiter()
        default_registry.register("gateway-test", limiter)
        try:
            assert LimiterGateway("gateway-test").evaluate("k") == Allow(count=1)
        finally:
            default_registry.unregister("gateway-test")

    @pytest.mark.parametrize("limiter", [42, ["hit"], {"hit": None}, object()])
    def test_invalid_type_is_lazy(self, limiter: object) -> None:
        """Test an unusable limiter only fails once evaluated."""
        gateway = LimiterGateway(limiter)

        with pytest.raises(InvalidLimiterType, match="rate_limiter must be"):
            gateway.evaluate("k")

    def test_limiter_class_with_instance_hit(self) -> None:
        """Test a class whose hit() needs an instance is an invalid limiter."""
        gateway = LimiterGateway(ScriptedLimiter)

        with pytest.raises(InvalidLimiterType, match="rate_limiter must be"):
            gateway.evaluate("k")

    def test_hit_without_key_parameter(self) -> None:
        class NoKeyLimiter:
            def hit(self) -> Allow:
                return Allow()

        with pytest.raises(InvalidLimiterType):
            LimiterGateway(NoKeyLimiter()).evaluate("k")

    def test_registered_class_with_instance_hit(self, registry: LimiterRegistry) -> None:
        registry.register("api", ScriptedLimiter)

        with pytest.raises(InvalidLimiterType):
            LimiterGateway("api", registry=registry).evaluate("k")

    def test_function_with_wrong_arity(self) -> None:
        gateway = LimiterGateway(lambda key, other: Allow())

        with pytest.raises(InvalidLimiterType):
            gateway.evaluate("k")

    def test_limiter_errors_propagate(self) -> None:
        """Test errors from the limiter are not wrapped."""

        def failing(key: str) -> Allow:
            raise ConnectionError("limiter backend down")

        with pytest.raises(ConnectionError, match="backend down"):
            LimiterGateway(failing).evaluate("k")

    def test_invalid_decision(self) -> None:
        with pytest.raises(InvalidDecision):
            LimiterGateway(lambda key: "yes").evaluate("k")

    def test_sync_evaluate_rejects_async_limiter(self) -> None:
        async def limiter(key: str) -> Allow:
            return Allow()

        with pytest.raises(InvalidDecision, match="async client"):
            LimiterGateway(limiter).evaluate("k")

    @pytest.mark.asyncio
    async def test_aevaluate_awaits_async_limiter(self) -> None:
        async def limiter(key: str) -> Deny:
            await asyncio.sleep(0)
            return Deny(retry_after_ms=15)

        assert await LimiterGateway(limiter).aevaluate("k") == Deny(retry_after_ms=15)

    @pytest.mark.asyncio
    async def test_aevaluate_sync_limiter(self) -> None:
        limiter = ScriptedLimiter()
        assert await LimiterGateway(limiter).aevaluate("k") == Allow(count=1)
        assert limiter.calls == 1
