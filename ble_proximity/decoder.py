from __future__ import annotations

from typing import Optional

from .models import DecodeResult, DecodeStatus

# 支持的帧类型（首字节低 4 位）
SUPPORTED_FRAME_TYPES = frozenset({0x00, 0x01})
FRAME_TYPE_MASK = 0x0F
BEACON_ID_LENGTH = 16
# 1 字节帧头 + 16 字节信标 ID
MIN_FRAME_LENGTH = 1 + BEACON_ID_LENGTH


def decode_frame(payload: Optional[bytes]) -> DecodeResult:
    """
    校验服务数据并提取信标 ID：
    - 无数据/空数据：NO_SERVICE_DATA
    - 帧类型不支持或长度不足 17 字节：UNSUPPORTED_FRAME
    - 否则返回第 1~16 字节的小写十六进制字符串
    """
    if not payload:
        return DecodeResult(status=DecodeStatus.NO_SERVICE_DATA)

    frame_type = payload[0] & FRAME_TYPE_MASK
    if frame_type not in SUPPORTED_FRAME_TYPES or len(payload) < MIN_FRAME_LENGTH:
        return DecodeResult(status=DecodeStatus.UNSUPPORTED_FRAME, frame_type=frame_type)

    beacon_id = bytes(payload[1:MIN_FRAME_LENGTH]).hex()
    return DecodeResult(status=DecodeStatus.OK, beacon_id=beacon_id, frame_type=frame_type)
