from __future__ import annotations

import logging
import math
from typing import Optional

from .config_manager import ConfigManager
from .models import TX_POWER_UNKNOWN

logger = logging.getLogger(__name__)

DEFAULT_TX_POWER = -65
DEFAULT_PATH_LOSS_EXPONENT = 2.0
# 路径损耗指数下限，避免除零
MIN_PATH_LOSS_EXPONENT = 0.1


def resolve_tx_power(tx_power: Optional[int], default_tx_power: int = DEFAULT_TX_POWER) -> int:
    """平台上报 127（未知）或缺失时使用默认 1 米参考功率"""
    if tx_power is None or tx_power == TX_POWER_UNKNOWN:
        return default_tx_power
    return tx_power


def clamp_path_loss_exponent(path_loss_exponent: float) -> float:
    if path_loss_exponent < MIN_PATH_LOSS_EXPONENT:
        logger.warning(
            "路径损耗指数 %s 过小，已限制为 %s", path_loss_exponent, MIN_PATH_LOSS_EXPONENT
        )
        return MIN_PATH_LOSS_EXPONENT
    return path_loss_exponent


def calculate_distance(
    rssi: int, tx_power: int, path_loss_exponent: float = DEFAULT_PATH_LOSS_EXPONENT
) -> float:
    """
    对数距离路径损耗模型 (单位: 米)
    distance = 10 ^ ((tx_power - rssi) / (10 * n))
    """
    n = clamp_path_loss_exponent(path_loss_exponent)
    exponent = (tx_power - rssi) / (10.0 * n)
    try:
        return math.pow(10, exponent)
    except OverflowError:
        return math.inf


class DistanceCalculator:
    """基于RSSI的距离估算"""

    def __init__(self, config_manager: Optional[ConfigManager] = None):
        self.config_manager = config_manager
        rssi_config = config_manager.get_rssi_model_config() if config_manager else {}

        # 广播未携带发射功率时使用的1米处RSSI值 (dBm)
        self.default_tx_power = int(rssi_config.get("default_tx_power", DEFAULT_TX_POWER))

        # 路径损耗指数
        self.path_loss_exponent = clamp_path_loss_exponent(
            float(rssi_config.get("path_loss_exponent", DEFAULT_PATH_LOSS_EXPONENT))
        )

    def update_rssi_model_params(self, default_tx_power: int, path_loss_exponent: float):
        """更新RSSI模型参数并保存到配置。"""
        self.default_tx_power = int(default_tx_power)
        self.path_loss_exponent = clamp_path_loss_exponent(float(path_loss_exponent))
        if self.config_manager is not None:
            self.config_manager.set_rssi_model_config(
                self.default_tx_power, self.path_loss_exponent
            )

    def resolve_tx_power(self, tx_power: Optional[int]) -> int:
        return resolve_tx_power(tx_power, self.default_tx_power)

    def rssi_to_distance(self, rssi: int, tx_power: Optional[int] = TX_POWER_UNKNOWN) -> float:
        return calculate_distance(rssi, self.resolve_tx_power(tx_power), self.path_loss_exponent)
