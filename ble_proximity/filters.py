from __future__ import annotations

from typing import Dict, Iterator, Optional


class ExponentialMovingAverage:
    """指数移动平均滤波，首个测量值直接作为初始均值"""

    def __init__(self, alpha: float = 0.2):
        if not 0.0 < alpha <= 1.0:
            raise ValueError(f"alpha 必须在 (0, 1] 区间内: {alpha}")
        self.alpha = alpha
        self.average: Optional[float] = None

    def filter(self, measurement: float) -> float:
        if self.average is None:
            self.average = measurement
        else:
            self.average = self.alpha * measurement + (1 - self.alpha) * self.average
        return self.average


class SmoothingRegistry:
    """
    每个信标 ID 对应一个 EMA 滤波器。

    滤波器在某个 ID 第一次有效测量时创建，之后只会被更新，不提供删除；
    一次扫描会话对应一个 registry，会话结束即整体丢弃。
    """

    def __init__(self, alpha: float = 0.2):
        if not 0.0 < alpha <= 1.0:
            raise ValueError(f"alpha 必须在 (0, 1] 区间内: {alpha}")
        self.alpha = alpha
        self._filters: Dict[str, ExponentialMovingAverage] = {}

    def get_or_create(self, beacon_id: str) -> ExponentialMovingAverage:
        ema = self._filters.get(beacon_id)
        if ema is None:
            ema = ExponentialMovingAverage(self.alpha)
            self._filters[beacon_id] = ema
        return ema

    def apply(self, beacon_id: str, raw_value: float) -> float:
        """将原始距离送入该信标的滤波器，返回平滑后的值（调用后必定有值）"""
        return self.get_or_create(beacon_id).filter(raw_value)

    def get(self, beacon_id: str) -> Optional[float]:
        ema = self._filters.get(beacon_id)
        return ema.average if ema else None

    def snapshot(self) -> Dict[str, float]:
        return {k: v.average for k, v in self._filters.items() if v.average is not None}

    def __contains__(self, beacon_id: object) -> bool:
        return beacon_id in self._filters

    def __len__(self) -> int:
        return len(self._filters)

    def __iter__(self) -> Iterator[str]:
        return iter(self._filters)
