from __future__ import annotations

import logging
import math
import threading
import time
from typing import Callable, Iterable, List, Optional, Tuple

from .calculator import DistanceCalculator
from .config_manager import ConfigManager
from .decoder import decode_frame
from .filters import SmoothingRegistry
from .models import DecodeStatus, DistanceResult, ScanEvent

logger = logging.getLogger(__name__)

DEFAULT_SERVICE_UUID = "0000fe9a-0000-1000-8000-00805f9b34fb"
DEFAULT_COLLECTION_INTERVAL_MS = 2000
DEFAULT_SMOOTHING_ALPHA = 0.2


def _monotonic_ms() -> float:
    return time.monotonic() * 1000.0


class ScanSession:
    """
    扫描会话控制器：限流 -> 解码 -> 测距 -> 平滑。

    状态机：Idle --start()--> Scanning --stop()--> Idle。
    每次 start() 开启新一代会话，清空滤波器和已发现设备；
    stop() 之后仍在处理中的事件结果会因代号不匹配而被丢弃。
    """

    def __init__(
        self,
        config_manager: Optional[ConfigManager] = None,
        calculator: Optional[DistanceCalculator] = None,
        *,
        service_uuid: Optional[str] = None,
        collection_interval_ms: Optional[float] = None,
        smoothing_alpha: Optional[float] = None,
        clock: Callable[[], float] = _monotonic_ms,
        on_result: Optional[Callable[[DistanceResult], None]] = None,
        on_scanning_changed: Optional[Callable[[bool], None]] = None,
        on_devices_changed: Optional[Callable[[Tuple[str, ...]], None]] = None,
    ):
        scanner_config = config_manager.get_scanner_config() if config_manager else {}
        if service_uuid is None:
            service_uuid = config_manager.get_service_uuid() if config_manager else DEFAULT_SERVICE_UUID
        self.service_uuid = service_uuid.lower()
        self.collection_interval_ms = float(
            collection_interval_ms
            if collection_interval_ms is not None
            else scanner_config.get("collection_interval_ms", DEFAULT_COLLECTION_INTERVAL_MS)
        )
        if self.collection_interval_ms <= 0:
            raise ValueError(f"collection_interval_ms 必须为正数: {self.collection_interval_ms}")
        self.smoothing_alpha = float(
            smoothing_alpha
            if smoothing_alpha is not None
            else scanner_config.get("smoothing_alpha", DEFAULT_SMOOTHING_ALPHA)
        )

        self.calculator = calculator or DistanceCalculator(config_manager)
        self.clock = clock
        self.on_result = on_result
        self.on_scanning_changed = on_scanning_changed
        self.on_devices_changed = on_devices_changed

        self.lock = threading.Lock()
        self._scanning = False
        self._generation = 0
        self._last_collection_time: Optional[float] = None
        self._registry = SmoothingRegistry(self.smoothing_alpha)
        self._found_devices: List[str] = []

    # ---------- Observable state ----------
    @property
    def is_scanning(self) -> bool:
        return self._scanning

    @property
    def found_devices(self) -> Tuple[str, ...]:
        with self.lock:
            return tuple(self._found_devices)

    @property
    def registry(self) -> SmoothingRegistry:
        return self._registry

    @property
    def generation(self) -> int:
        return self._generation

    # ---------- Lifecycle ----------
    def start(self) -> bool:
        with self.lock:
            if self._scanning:
                return False
            self._generation += 1
            self._registry = SmoothingRegistry(self.smoothing_alpha)
            self._found_devices = []
            self._last_collection_time = None
            self._scanning = True
        logger.info("Started scanning (session %s)", self._generation)
        self._notify_scanning(True)
        return True

    def stop(self) -> bool:
        with self.lock:
            if not self._scanning:
                return False
            self._scanning = False
        logger.info("Stopped scanning.")
        self._notify_scanning(False)
        return True

    def on_scan_failed(self, error_code: int) -> None:
        """扫描子系统报错：强制置为非扫描状态，调用方可重新 start()"""
        logger.error("Scan failed with error code: %s", error_code)
        with self.lock:
            was_scanning = self._scanning
            self._scanning = False
        if was_scanning:
            self._notify_scanning(False)

    # ---------- Event processing ----------
    def admit(self) -> Optional[int]:
        """限流：距上次处理不足间隔的事件直接丢弃；返回本次接纳时的会话代号"""
        with self.lock:
            if not self._scanning:
                return None
            now = self.clock()
            if (
                self._last_collection_time is not None
                and now - self._last_collection_time < self.collection_interval_ms
            ):
                return None
            self._last_collection_time = now
            return self._generation

    def handle(self, event: ScanEvent) -> Optional[DistanceResult]:
        generation = self.admit()
        if generation is None:
            return None
        return self.process(event, generation)

    def handle_batch(self, events: Iterable[ScanEvent]) -> List[DistanceResult]:
        results: List[DistanceResult] = []
        for event in events:
            r = self.handle(event)
            if r is not None:
                results.append(r)
        return results

    def process(self, event: ScanEvent, generation: int) -> Optional[DistanceResult]:
        """处理一条已被接纳的事件；generation 与当前会话不一致时丢弃结果"""
        decoded = decode_frame(event.get_service_data(self.service_uuid))
        if decoded.status is DecodeStatus.NO_SERVICE_DATA:
            logger.debug("Service data not found or empty: %s", event.device)
            return None
        if decoded.status is DecodeStatus.UNSUPPORTED_FRAME:
            logger.debug(
                "Unsupported or malformed frame (type 0x%x) from %s",
                decoded.frame_type,
                event.device,
            )
            return None

        tx_power = self.calculator.resolve_tx_power(event.tx_power)
        distance = self.calculator.rssi_to_distance(event.rssi, event.tx_power)
        if not math.isfinite(distance):
            logger.warning(
                "丢弃非有限距离: beacon=%s rssi=%s tx_power=%s", decoded.beacon_id, event.rssi, tx_power
            )
            return None

        devices_changed = False
        with self.lock:
            if generation != self._generation or not self._scanning:
                logger.debug("丢弃过期会话 %s 的结果", generation)
                return None
            smoothed = self._registry.apply(decoded.beacon_id, distance)
            if event.device not in self._found_devices:
                self._found_devices.append(event.device)
                devices_changed = True
            devices = tuple(self._found_devices)

        result = DistanceResult(
            beacon_id=decoded.beacon_id,
            device=event.device,
            rssi=event.rssi,
            tx_power=tx_power,
            raw_distance=distance,
            smoothed_distance=smoothed,
        )
        logger.info("Beacon %s smoothed distance: %.2f m", result.beacon_id, smoothed)
        if devices_changed and self.on_devices_changed is not None:
            self.on_devices_changed(devices)
        if self.on_result is not None:
            self.on_result(result)
        return result

    def _notify_scanning(self, scanning: bool) -> None:
        if self.on_scanning_changed is not None:
            self.on_scanning_changed(scanning)
