"""SocketIOTransport -- 基于 python-socketio 的事件传输

入站：为 InboundEventType 中的每种事件注册一个处理器，payload 解析为
类型化事件后交给 InboundHandler.dispatch；格式错误的 payload 记录后丢弃。
出站：emit(event) 以 event.event_type 为事件名、wire_payload() 为数据发送。
重连由 socketio.AsyncClient 自行负责，连接建立时回调 on_connect。
"""

from typing import Any, Protocol

import socketio
import structlog
from octochat.core.models.enums import InboundEventType
from octochat.core.models.events import InboundEvent, OutboundEvent, parse_inbound_event
from socketio.exceptions import ConnectionError as SocketConnectionError
from socketio.exceptions import SocketIOError

from .exceptions import TransportError

log = structlog.get_logger()


class InboundHandler(Protocol):
    """入站事件的消费方（SyncEngine）"""

    async def dispatch(self, event: InboundEvent) -> None: ...

    async def on_connect(self) -> None: ...

    async def on_disconnect(self) -> None: ...


class SocketIOTransport:
    """Socket.IO 客户端封装"""

    def __init__(
        self,
        server_url: str = "http://localhost:3000",
        socketio_path: str = "socket.io",
        client: socketio.AsyncClient | None = None,
    ) -> None:
        """
        Args:
            server_url: Socket.IO 服务端地址
            socketio_path: Socket.IO 端点路径
            client: 外部注入的 AsyncClient（测试用）
        """
        self._server_url = server_url
        self._socketio_path = socketio_path
        self._sio = client or socketio.AsyncClient(reconnection=True)
        self._handler: InboundHandler | None = None

    @property
    def connected(self) -> bool:
        return bool(self._sio.connected)

    def attach(self, handler: InboundHandler) -> None:
        """绑定入站事件消费方并注册全部事件处理器"""
        self._handler = handler
        self._sio.on("connect", handler=self._on_connect)
        self._sio.on("disconnect", handler=self._on_disconnect)
        for kind in InboundEventType:
            self._sio.on(kind.value, handler=self._make_event_handler(kind))

    async def connect(self) -> None:
        try:
            await self._sio.connect(
                self._server_url,
                socketio_path=self._socketio_path,
            )
        except SocketConnectionError as e:
            log.error("socket_connect_failed", url=self._server_url, error=str(e))
            raise TransportError(f"Cannot connect to {self._server_url}", original_error=e) from e

    async def disconnect(self) -> None:
        await self._sio.disconnect()

    async def wait(self) -> None:
        """阻塞直到连接最终关闭"""
        await self._sio.wait()

    async def emit(self, event: OutboundEvent) -> None:
        """发送出站事件

        Raises:
            TransportError: 未连接或发送失败
        """
        name = event.event_type.value
        try:
            await self._sio.emit(name, event.wire_payload())
        except SocketIOError as e:
            log.warning("socket_emit_failed", event_type=name, error=str(e))
            raise TransportError("Connection lost. Please try again.", original_error=e) from e
        log.debug("socket_event_emitted", event_type=name)

    async def _on_connect(self) -> None:
        log.info("socket_connected", url=self._server_url)
        if self._handler is not None:
            await self._handler.on_connect()

    async def _on_disconnect(self, *args: Any) -> None:
        log.info("socket_disconnected", url=self._server_url)
        if self._handler is not None:
            await self._handler.on_disconnect()

    def _make_event_handler(self, kind: InboundEventType):
        async def _handle(data: Any = None) -> None:
            try:
                event = parse_inbound_event(kind, data)
            except ValueError as e:
                log.warning("malformed_inbound_event", event_type=kind.value, error=str(e))
                return
            if self._handler is not None:
                await self._handler.dispatch(event)

        return _handle
