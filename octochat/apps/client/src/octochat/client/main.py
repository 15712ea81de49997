"""客户端装配 -- 创建 HTTP 接口、事件传输与 SyncEngine

client_lifespan 管理连接与 HTTP 客户端的打开/关闭。
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from dataclasses import dataclass

import structlog
from octochat.core.config import CoreTimings, load_core_timings
from octochat.transport import (
    ChatApiClient,
    SocketIOTransport,
    TransportConfig,
    load_transport_config,
)

from .logging_config import LoggingConfig, load_logging_config, setup_logging
from .sync_engine import SyncEngine

log = structlog.get_logger()


@dataclass
class ChatClient:
    """装配好的客户端组件"""

    api: ChatApiClient
    transport: SocketIOTransport
    engine: SyncEngine


def create_client(
    transport_config: TransportConfig | None = None,
    timings: CoreTimings | None = None,
) -> ChatClient:
    """创建客户端组件（不建立连接）"""
    transport_config = transport_config or load_transport_config()
    timings = timings or load_core_timings()

    api = ChatApiClient(
        base_url=transport_config.server_url,
        timeout_s=transport_config.http_timeout_s,
    )
    transport = SocketIOTransport(
        server_url=transport_config.server_url,
        socketio_path=transport_config.socketio_path,
    )
    engine = SyncEngine(transport=transport, api=api, timings=timings)
    transport.attach(engine)

    log.info(
        "chat_client_created",
        server_url=transport_config.server_url,
        typing_timeout_s=timings.typing_timeout_s,
        undo_window_s=timings.undo_window_s,
    )
    return ChatClient(api=api, transport=transport, engine=engine)


@asynccontextmanager
async def client_lifespan(
    transport_config: TransportConfig | None = None,
    timings: CoreTimings | None = None,
) -> AsyncGenerator[ChatClient, None]:
    """客户端生命周期：连接事件传输，退出时断开并关闭 HTTP 客户端"""
    client = create_client(transport_config, timings)
    await client.transport.connect()
    try:
        yield client
    finally:
        if client.transport.connected:
            await client.transport.disconnect()
        await client.api.aclose()


async def run(user_id: str, logging_config: LoggingConfig | None = None) -> None:
    """无界面运行：学号登录后持续输出 Store 变更"""
    transport_config = load_transport_config()
    setup_logging(
        logging_config or load_logging_config(),
        server_url=transport_config.server_url,
    )
    async with client_lifespan(transport_config) as client:
        engine = client.engine
        changes = await engine.hub.subscribe_all()
        user = await engine.login_with_user_id(user_id)
        if user is None:
            notice = engine.notices.latest
            log.error("login_failed", reason=notice.text if notice else "")
            return

        try:
            while True:
                change = await changes.get()
                log.info(
                    "store_changed",
                    topic=change.topic.value,
                    conversation_id=change.conversation_id,
                    **change.detail,
                )
        finally:
            await engine.hub.unsubscribe_all(changes)
            await engine.logout()
