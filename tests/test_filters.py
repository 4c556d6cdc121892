"""Tests for per-beacon EMA smoothing."""

from __future__ import annotations

import pytest

from ble_proximity.filters import ExponentialMovingAverage, SmoothingRegistry


class TestExponentialMovingAverage:
    def test_first_measurement_is_returned_unchanged(self):
        ema = ExponentialMovingAverage(0.2)
        assert ema.average is None
        assert ema.filter(3.7) == 3.7
        assert ema.average == 3.7

    def test_blend(self):
        ema = ExponentialMovingAverage(0.2)
        ema.filter(1.0)
        assert ema.filter(2.0) == pytest.approx(1.2)

    def test_result_stays_between_previous_and_new(self):
        ema = ExponentialMovingAverage(0.3)
        prev = ema.filter(10.0)
        for raw in [2.0, 8.0, 0.5, 20.0]:
            new = ema.filter(raw)
            assert min(prev, raw) <= new <= max(prev, raw)
            prev = new

    @pytest.mark.parametrize("alpha", [0.0, -0.1, 1.5])
    def test_invalid_alpha(self, alpha):
        with pytest.raises(ValueError):
            ExponentialMovingAverage(alpha)


class TestSmoothingRegistry:
    def test_lazy_creation(self):
        registry = SmoothingRegistry(0.2)
        assert "a" not in registry
        assert registry.get("a") is None
        assert registry.apply("a", 4.0) == 4.0
        assert "a" in registry
        assert len(registry) == 1

    def test_sequence(self):
        registry = SmoothingRegistry(0.2)
        outputs = [registry.apply("a", v) for v in (4.0, 2.0, 3.0)]
        assert outputs == pytest.approx([4.0, 3.6, 3.48])

    def test_state_isolation(self):
        registry = SmoothingRegistry(0.2)
        registry.apply("a", 1.0)
        registry.apply("b", 100.0)
        registry.apply("b", 50.0)
        assert registry.apply("a", 2.0) == pytest.approx(1.2)
        assert registry.snapshot() == pytest.approx({"a": 1.2, "b": 90.0})

    def test_get_or_create_returns_same_filter(self):
        registry = SmoothingRegistry()
        assert registry.get_or_create("x") is registry.get_or_create("x")
        assert list(registry) == ["x"]
        # 已创建但尚无测量值的滤波器不出现在快照中
        assert registry.snapshot() == {}
