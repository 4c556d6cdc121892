from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
import threading

from .ble_source import BleScanSource
from .config_manager import ConfigManager
from .mqtt_processor import MQTTScanProcessor
from .session import ScanSession

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)


def run_scan(args):
    config = ConfigManager(args.config)
    session = ScanSession(config)
    source = BleScanSource(session, adapter=config.get_scanner_config().get("adapter"))
    try:
        asyncio.run(source.run(args.duration))
    except KeyboardInterrupt:
        pass


def run_mqtt(args):
    config = ConfigManager(args.config)
    processor = MQTTScanProcessor(config)

    t = threading.Thread(target=processor.start_mqtt_client, daemon=True)
    t.start()

    # graceful shutdown
    def handle_sigint(sig, frame):
        processor.stop_mqtt_client()
        sys.exit(0)

    signal.signal(signal.SIGINT, handle_sigint)
    signal.signal(signal.SIGTERM, handle_sigint)

    t.join()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ble-proximity", description="BLE beacon proximity CLI")
    parser.add_argument("--config", default=None, help="配置文件路径，默认读取 ./config/config.yaml 或环境变量 BLE_PROXIMITY_CONFIG")
    parser.add_argument("--log-level", default="INFO", help="日志级别 (DEBUG/INFO/WARNING/ERROR)")
    sub = parser.add_subparsers(dest="cmd")

    p_scan = sub.add_parser("scan", help="使用本机蓝牙扫描信标并输出平滑距离")
    p_scan.add_argument("--duration", type=float, default=None, help="扫描秒数，默认一直运行")
    p_scan.set_defaults(func=run_scan)

    p_mqtt = sub.add_parser("mqtt", help="订阅网关扫描事件并发布平滑距离")
    p_mqtt.set_defaults(func=run_mqtt)
    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.log_level)
    # 无子命令时默认本机扫描
    if not hasattr(args, "func"):
        args.duration = None
        return run_scan(args)
    return args.func(args)


if __name__ == "__main__":
    main()
