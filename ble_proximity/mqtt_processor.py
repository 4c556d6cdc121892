from __future__ import annotations

import logging
import threading
from typing import Optional

import paho.mqtt.client as mqtt
from paho.mqtt.client import MQTTMessage

from .config_manager import ConfigManager
from .models import DistanceResult, ScanEvent
from .session import ScanSession


logger = logging.getLogger(__name__)


class MQTTScanProcessor:
    """网关通过 MQTT 上报扫描事件，平滑距离结果再发布回 MQTT"""

    def __init__(self, config_manager: ConfigManager, session: Optional[ScanSession] = None):
        self.lock = threading.Lock()
        self.config_manager = config_manager
        self.session = session or ScanSession(config_manager)
        self.client: Optional[mqtt.Client] = None

    # ---------- Core processing ----------
    def process_payload(self, payload: str) -> Optional[DistanceResult]:
        event = ScanEvent.parse(payload)
        if event is None:
            logger.warning("消息解析无有效扫描事件: %s", payload)
            return None
        return self.session.handle(event)

    def publish_result(self, result: DistanceResult) -> None:
        if self.client is None:
            return
        mqtt_config = self.config_manager.get_mqtt_config()
        topic = mqtt_config.get("uplink_topic", "/beacon/distance/{beaconId}")
        self.client.publish(topic.format(beaconId=result.beacon_id), result.to_json())

    # ---------- MQTT ----------
    def _create_client(self) -> mqtt.Client:
        return mqtt.Client(mqtt.CallbackAPIVersion.VERSION2)

    def start_mqtt_client(self):
        self.client = self._create_client()
        self.client.on_connect = self.on_connect
        self.client.on_message = self.on_message
        self.session.start()
        try:
            mqtt_config = self.config_manager.get_mqtt_config()
            self.client.connect(mqtt_config["ip"], mqtt_config["port"], 60)
            logger.info("连接到MQTT服务器 %s:%s", mqtt_config["ip"], mqtt_config["port"])
            self.client.loop_forever()
        except OSError as e:
            logger.error("MQTT连接错误: %s", e)
            self.session.on_scan_failed(e.errno or -1)

    def stop_mqtt_client(self):
        self.session.stop()
        if self.client is not None:
            try:
                self.client.disconnect()
                self.client.loop_stop()
                logger.info("MQTT连接已断开")
            except Exception as e:
                logger.error("断开MQTT连接时出错: %s", e)

    # ---------- MQTT handlers ----------
    def on_connect(self, client, userdata, flags, reason_code, properties=None):
        if not reason_code.is_failure:
            logger.info("成功连接到MQTT服务器")
            mqtt_config = self.config_manager.get_mqtt_config()
            topic = mqtt_config.get("downlink_topic", "/beacon/scan/+")
            client.subscribe(topic)
            logger.info("已订阅主题: %s", topic)
        else:
            logger.error("连接失败，返回码: %s", reason_code)

    def on_message(self, client, userdata, msg: MQTTMessage):
        try:
            payload = msg.payload.decode("utf-8")
            with self.lock:
                result = self.process_payload(payload)
                if result is not None:
                    self.publish_result(result)
        except Exception as e:
            logger.exception("处理消息时出错: %s", e)
