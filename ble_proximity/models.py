from __future__ import annotations

import json
from dataclasses import dataclass, asdict, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Mapping, Optional

# 平台上报 "未知发射功率" 时使用的保留值
TX_POWER_UNKNOWN = 127


def _to_int(value: Any) -> int:
    """整数或整数字符串；布尔值与带小数的数值视为非法"""
    if isinstance(value, bool):
        raise TypeError(f"不接受布尔值: {value!r}")
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError(f"不是整数: {value!r}")
        return int(value)
    if isinstance(value, (int, str)):
        return int(value)
    raise TypeError(f"不支持的类型: {type(value).__name__}")


@dataclass(frozen=True)
class ScanEvent:
    """
    一次扫描事件（一条广播记录）
    """

    device: str
    rssi: int
    tx_power: int = TX_POWER_UNKNOWN
    service_data: Mapping[str, bytes] = field(default_factory=dict)

    def get_service_data(self, service_uuid: str) -> Optional[bytes]:
        return self.service_data.get(service_uuid.lower())

    @classmethod
    def parse(cls, data_str: str) -> Optional["ScanEvent"]:
        """
        解析网关上报的 JSON 扫描事件：
        {"device": "AA:BB:..", "rssi": -60, "tx_power": 127, "service_data": {"<uuid>": "<hex>"}}
        解析失败返回 None
        """
        try:
            obj = json.loads(data_str)
        except ValueError:
            return None
        if not isinstance(obj, dict):
            return None

        device = obj.get("device")
        if not isinstance(device, str) or not device:
            return None
        try:
            rssi = _to_int(obj["rssi"])
            tx_power = obj.get("tx_power")
            tx_power = TX_POWER_UNKNOWN if tx_power is None else _to_int(tx_power)
        except (KeyError, TypeError, ValueError, OverflowError):
            return None

        raw_service_data = obj.get("service_data") or {}
        if not isinstance(raw_service_data, dict):
            return None
        service_data: Dict[str, bytes] = {}
        for uuid, hex_str in raw_service_data.items():
            try:
                service_data[str(uuid).lower()] = bytes.fromhex(str(hex_str))
            except ValueError:
                continue
        return cls(device=device, rssi=rssi, tx_power=tx_power, service_data=service_data)


class DecodeStatus(Enum):
    OK = "ok"
    NO_SERVICE_DATA = "no_service_data"
    UNSUPPORTED_FRAME = "unsupported_frame"


@dataclass(frozen=True)
class DecodeResult:
    status: DecodeStatus
    beacon_id: Optional[str] = None
    frame_type: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.status is DecodeStatus.OK


@dataclass(frozen=True)
class DistanceResult:
    """
    单个信标的平滑距离输出
    """

    beacon_id: str
    device: str
    rssi: int
    tx_power: int
    raw_distance: float
    smoothed_distance: float
    timestamp: str = field(default_factory=lambda: datetime.now().strftime("%Y-%m-%d %H:%M:%S"))

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)
