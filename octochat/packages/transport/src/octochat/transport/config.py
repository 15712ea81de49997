"""TransportConfig -- 服务端连接配置加载

从环境变量加载配置，不硬编码服务端地址。
"""

import os

import structlog
from pydantic import BaseModel, Field

log = structlog.get_logger()


class TransportConfig(BaseModel):
    """传输层配置 -- 从环境变量加载

    环境变量:
        OCTOCHAT_SERVER_URL: 服务端地址（HTTP 接口与 Socket.IO 共用）
        OCTOCHAT_HTTP_TIMEOUT_S: HTTP 请求超时（秒，默认 10）
        OCTOCHAT_SOCKETIO_PATH: Socket.IO 路径（默认 socket.io）
    """

    server_url: str = Field(
        default="http://localhost:3000",
        description="服务端基础 URL",
    )
    http_timeout_s: int = Field(
        default=10,
        ge=1,
        description="HTTP 请求超时（秒）",
    )
    socketio_path: str = Field(
        default="socket.io",
        description="Socket.IO 端点路径",
    )


def load_transport_config() -> TransportConfig:
    """从环境变量加载传输层配置

    环境变量映射:
        OCTOCHAT_SERVER_URL -> server_url (默认 "http://localhost:3000")
        OCTOCHAT_HTTP_TIMEOUT_S -> http_timeout_s (默认 10)
        OCTOCHAT_SOCKETIO_PATH -> socketio_path (默认 "socket.io")

    Returns:
        TransportConfig 实例
    """
    kwargs: dict = {}

    if val := os.environ.get("OCTOCHAT_SERVER_URL"):
        kwargs["server_url"] = val.rstrip("/")

    if val := os.environ.get("OCTOCHAT_SOCKETIO_PATH"):
        kwargs["socketio_path"] = val

    if val := os.environ.get("OCTOCHAT_HTTP_TIMEOUT_S"):
        try:
            kwargs["http_timeout_s"] = int(val)
        except ValueError:
            log.warning(
                "invalid_timeout_config",
                env_var="OCTOCHAT_HTTP_TIMEOUT_S",
                value=val,
                fallback=10,
            )
            # 使用默认值，不阻塞启动

    return TransportConfig(**kwargs)
