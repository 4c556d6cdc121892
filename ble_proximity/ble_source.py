from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

from bleak import BleakScanner
from bleak.backends.device import BLEDevice
from bleak.backends.scanner import AdvertisementData
from bleak.exc import BleakError

from .models import TX_POWER_UNKNOWN, ScanEvent
from .session import ScanSession

logger = logging.getLogger(__name__)

SCAN_FAILED_UNKNOWN = -1


def scan_event_from_advertisement(device: BLEDevice, advertisement_data: AdvertisementData) -> ScanEvent:
    """bleak 广播数据 -> ScanEvent；缺失发射功率时使用 127 占位"""
    tx_power = advertisement_data.tx_power
    return ScanEvent(
        device=device.address,
        rssi=advertisement_data.rssi,
        tx_power=TX_POWER_UNKNOWN if tx_power is None else tx_power,
        service_data={k.lower(): bytes(v) for k, v in advertisement_data.service_data.items()},
    )


class BleScanSource:
    """本机蓝牙扫描，按服务 UUID 过滤后将广播送入 ScanSession"""

    def __init__(self, session: ScanSession, adapter: Optional[str] = None):
        self.session = session
        self.adapter = adapter
        self.scanner: Optional[BleakScanner] = None

    def detection_callback(self, device: BLEDevice, advertisement_data: AdvertisementData) -> None:
        try:
            self.session.handle(scan_event_from_advertisement(device, advertisement_data))
        except Exception as e:
            logger.exception("处理广播时出错: %s", e)

    def _create_scanner(self) -> BleakScanner:
        kwargs: Dict[str, Any] = {}
        if self.adapter:
            kwargs["adapter"] = self.adapter
        return BleakScanner(
            detection_callback=self.detection_callback,
            service_uuids=[self.session.service_uuid],
            **kwargs,
        )

    async def start(self) -> bool:
        if not self.session.start():
            return False
        self.scanner = self._create_scanner()
        try:
            await self.scanner.start()
        except (BleakError, OSError) as e:
            logger.error("启动蓝牙扫描失败: %s", e)
            self.scanner = None
            self.session.on_scan_failed(getattr(e, "errno", None) or SCAN_FAILED_UNKNOWN)
            return False
        return True

    async def stop(self) -> None:
        self.session.stop()
        if self.scanner is not None:
            try:
                await self.scanner.stop()
            except (BleakError, OSError) as e:
                logger.error("停止蓝牙扫描时出错: %s", e)
            self.scanner = None

    async def run(self, duration: Optional[float] = None) -> None:
        """扫描 duration 秒；为 None 时一直运行直到被取消"""
        if not await self.start():
            return
        try:
            if duration is None:
                while self.session.is_scanning:
                    await asyncio.sleep(1.0)
            else:
                await asyncio.sleep(duration)
        finally:
            await self.stop()
