"""
入口转发

  - 包名: ble_proximity
  - CLI: ble-proximity

此文件仅用于兼容 `python main.py` 的运行方式，会转发到 `ble_proximity.cli:main`。
"""

from ble_proximity.cli import main as _cli_main


def main():
    # 日志由 cli.main 按 --log-level 统一配置
    _cli_main()


if __name__ == "__main__":  # pragma: no cover
    main()
