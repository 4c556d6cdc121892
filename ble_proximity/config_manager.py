from __future__ import annotations

import copy
import logging
import os
import yaml

from typing import Callable, Any

logger = logging.getLogger(__name__)


def _env_or_default(env_key: str, default: Any, cast: Callable[[str], Any] = str) -> Any:
    v = os.environ.get(env_key)
    if v is not None:
        try:
            return cast(v)
        except ValueError:
            logger.warning("环境变量 %s=%r 无法转换，已忽略", env_key, v)
    return default


DEFAULT_CONFIG_PATH = _env_or_default(
    "BLE_PROXIMITY_CONFIG",
    os.path.join(".", "config", "config.yaml"),
)


class ConfigManager:
    """配置管理类，负责读写YAML配置文件"""

    def __init__(self, config_file: str | None = None):
        self.config_file = config_file or DEFAULT_CONFIG_PATH
        self.default_config = {
            "scanner": {
                "service_uuid": _env_or_default(
                    "BLE_SCANNER_SERVICE_UUID", "0000fe9a-0000-1000-8000-00805f9b34fb"
                ),
                "collection_interval_ms": _env_or_default("BLE_SCANNER_INTERVAL_MS", 2000, int),
                "smoothing_alpha": _env_or_default("BLE_SCANNER_ALPHA", 0.2, float),
                "adapter": _env_or_default("BLE_SCANNER_ADAPTER", None),
            },
            "rssi_model": {
                "default_tx_power": _env_or_default("BLE_RSSI_DEFAULT_TX_POWER", -65, int),
                "path_loss_exponent": _env_or_default("BLE_RSSI_PATH_LOSS", 2.0, float),
            },
            "mqtt": {
                "ip": _env_or_default("BLE_MQTT_IP", "localhost"),
                "port": _env_or_default("BLE_MQTT_PORT", 1883, int),
                "uplink_topic": _env_or_default("BLE_MQTT_UPLINK_TOPIC", "/beacon/distance/{beaconId}"),
                "downlink_topic": _env_or_default("BLE_MQTT_DOWNLINK_TOPIC", "/beacon/scan/+"),
            },
        }
        self.load_config()

    def load_config(self) -> None:
        """加载配置文件，如果不存在则创建默认配置"""
        try:
            if os.path.exists(self.config_file):
                with open(self.config_file, "r", encoding="utf-8") as f:
                    loaded = yaml.safe_load(f) or {}
                if not isinstance(loaded, dict):
                    logger.warning("配置文件内容不是映射，使用默认配置: %s", self.config_file)
                    loaded = {}
                self.config = loaded
                self._merge_default_config()
            else:
                self.config = copy.deepcopy(self.default_config)
                self.save_config()
        except (OSError, yaml.YAMLError) as e:
            # 发生异常时回退到默认配置
            logger.warning("加载配置文件失败，使用默认配置: %s", e)
            self.config = copy.deepcopy(self.default_config)
            self.save_config()

    def _merge_default_config(self) -> None:
        def merge_dict(default, current):
            for key, value in default.items():
                if key not in current:
                    current[key] = copy.deepcopy(value)
                elif isinstance(value, dict):
                    if isinstance(current[key], dict):
                        merge_dict(value, current[key])
                    else:
                        # 段落类型错误（如 null）时整段回退为默认值
                        logger.warning("配置项 %s 不是映射，使用默认值", key)
                        current[key] = copy.deepcopy(value)

        merge_dict(self.default_config, self.config)

    def save_config(self) -> None:
        try:
            os.makedirs(os.path.dirname(self.config_file) or ".", exist_ok=True)
            with open(self.config_file, "w", encoding="utf-8") as f:
                yaml.dump(
                    self.config,
                    f,
                    default_flow_style=False,
                    allow_unicode=True,
                    indent=2,
                )
        except OSError as e:
            logger.warning("保存配置文件失败: %s", e)

    # ---------- Accessors ----------
    def get_scanner_config(self):
        return self.config["scanner"]

    def get_service_uuid(self) -> str:
        return str(self.get_scanner_config()["service_uuid"]).lower()

    def get_rssi_model_config(self):
        return self.config["rssi_model"]

    def get_mqtt_config(self):
        return self.config["mqtt"]

    def set_rssi_model_config(self, default_tx_power: int, path_loss_exponent: float):
        self.config["rssi_model"]["default_tx_power"] = default_tx_power
        self.config["rssi_model"]["path_loss_exponent"] = path_loss_exponent
        self.save_config()

    def set_mqtt_config(self, ip, port, uplink_topic=None, downlink_topic=None):
        self.config["mqtt"]["ip"] = ip
        self.config["mqtt"]["port"] = port
        if uplink_topic is not None:
            self.config["mqtt"]["uplink_topic"] = uplink_topic
        if downlink_topic is not None:
            self.config["mqtt"]["downlink_topic"] = downlink_topic
        self.save_config()
