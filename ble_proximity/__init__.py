"""BLE beacon proximity package.

This package provides:
- ConfigManager: YAML-based configuration management
- decode_frame: service-data frame validation and beacon ID extraction
- DistanceCalculator: RSSI-to-distance path-loss model
- SmoothingRegistry: per-beacon EMA smoothing
- ScanSession: rate-limited scan session controller
- BleScanSource / MQTTScanProcessor: local bleak scanning and MQTT gateway bridge
"""

from .config_manager import ConfigManager
from .decoder import decode_frame
from .calculator import DistanceCalculator, calculate_distance
from .filters import ExponentialMovingAverage, SmoothingRegistry
from .models import DecodeResult, DecodeStatus, DistanceResult, ScanEvent
from .session import ScanSession

__all__ = [
    "ConfigManager",
    "decode_frame",
    "DistanceCalculator",
    "calculate_distance",
    "ExponentialMovingAverage",
    "SmoothingRegistry",
    "DecodeResult",
    "DecodeStatus",
    "DistanceResult",
    "ScanEvent",
    "ScanSession",
]
