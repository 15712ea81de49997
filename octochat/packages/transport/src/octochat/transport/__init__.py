"""OctoChat Transport -- 服务端协作方适配层

packages/transport 的公开接口导出。
"""

# HTTP 接口
from .api_client import ChatApiClient

# 配置
from .config import TransportConfig, load_transport_config

# 异常
from .exceptions import AuthenticationError, EndpointError, TransportError

# 事件传输
from .socketio_transport import InboundHandler, SocketIOTransport

__all__ = [
    "ChatApiClient",
    "SocketIOTransport",
    "InboundHandler",
    "TransportConfig",
    "load_transport_config",
    "TransportError",
    "EndpointError",
    "AuthenticationError",
]
