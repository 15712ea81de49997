"""CLI 入口模块 -- python -m octochat.client <userId>

学号登录并持续输出收到的 Store 变更，Ctrl+C 退出。
"""

import asyncio
import sys

from .main import run


def main() -> None:
    """CLI 主入口"""
    if len(sys.argv) < 2:
        print("用法: python -m octochat.client <userId>")
        sys.exit(1)

    try:
        asyncio.run(run(sys.argv[1]))
    except KeyboardInterrupt:
        print("已退出")


if __name__ == "__main__":
    main()
