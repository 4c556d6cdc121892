"""Tests for RSSI distance estimation."""

from __future__ import annotations

import math

import pytest

from ble_proximity.calculator import (
    MIN_PATH_LOSS_EXPONENT,
    DistanceCalculator,
    calculate_distance,
    resolve_tx_power,
)
from ble_proximity.config_manager import ConfigManager


def test_distance_at_reference_power_is_one_metre():
    assert calculate_distance(-65, -65, 2.0) == pytest.approx(1.0)


def test_distance_path_loss_model():
    assert calculate_distance(-85, -65) == pytest.approx(10.0)
    assert calculate_distance(-105, -65) == pytest.approx(100.0)
    assert calculate_distance(-75, -65, 1.0) == pytest.approx(10.0)
    assert calculate_distance(-45, -65) == pytest.approx(0.1)


def test_sentinel_tx_power_uses_default():
    assert resolve_tx_power(127) == -65
    assert resolve_tx_power(None) == -65
    assert resolve_tx_power(-59) == -59
    calc = DistanceCalculator()
    assert calc.rssi_to_distance(-72, 127) == pytest.approx(calc.rssi_to_distance(-72, -65))


def test_zero_exponent_is_clamped():
    d = calculate_distance(-65, -65, 0.0)
    assert d == pytest.approx(1.0)
    d = calculate_distance(-66, -65, 0.0)
    assert d == pytest.approx(10 ** (1 / (10 * MIN_PATH_LOSS_EXPONENT)))
    assert math.isfinite(d)


def test_overflow_returns_infinity():
    assert calculate_distance(-10000, -65, 2.0) == math.inf


def test_calculator_reads_config(tmp_path):
    config = ConfigManager(str(tmp_path / "config.yaml"))
    config.set_rssi_model_config(-59, 3.0)
    calc = DistanceCalculator(config)
    assert calc.default_tx_power == -59
    assert calc.path_loss_exponent == 3.0
    assert calc.rssi_to_distance(-89) == pytest.approx(10.0)


def test_update_rssi_model_params_persists(tmp_path):
    path = tmp_path / "config.yaml"
    calc = DistanceCalculator(ConfigManager(str(path)))
    calc.update_rssi_model_params(-70, 2.5)
    reloaded = ConfigManager(str(path))
    assert reloaded.get_rssi_model_config() == {"default_tx_power": -70, "path_loss_exponent": 2.5}
