"""集成测试共享 fixture -- 内存中继服务端

RelayServer 同时扮演 HTTP 接口与事件服务端：出站事件按线上格式（事件名 + dict）
路由，再经 parse_inbound_event 解析后交给对端 SyncEngine，覆盖完整的序列化路径。
"""

from collections.abc import AsyncGenerator
from datetime import UTC, datetime
from typing import Any

import pytest
import pytest_asyncio
from octochat.client.sync_engine import SyncEngine
from octochat.core.config import CoreTimings
from octochat.core.models import (
    ConversationSummary,
    DeliveryStatus,
    Message,
    OutboundEvent,
    OutboundEventType,
    UserIdentity,
    UserSummary,
    conversation_id,
    parse_inbound_event,
)
from octochat.transport.exceptions import AuthenticationError, TransportError


class RelayServer:
    """最小可用的聊天服务端"""

    def __init__(self) -> None:
        self.users: dict[str, UserIdentity] = {}
        self.conversations: dict[str, list[Message]] = {}
        self.engines: dict[str, SyncEngine] = {}
        self.online: set[str] = set()
        self.received: list[tuple[str, str, dict[str, Any]]] = []

    def add_user(self, username: str) -> None:
        self.users[f"{username}-id"] = UserIdentity(username=username, user_id=f"{username}-id")

    # -------- HTTP 接口 --------

    async def register(self, username: str, email: str, password: str):
        self.add_user(username)
        return self.users[f"{username}-id"], "Registration successful"

    async def login(self, user_id=None, email=None, password=None):
        if user_id not in self.users:
            raise AuthenticationError("Invalid credentials", status_code=401)
        return self.users[user_id], "Login successful"

    async def fetch_history(self, conv: str) -> list[Message]:
        return list(self.conversations.setdefault(conv, []))

    async def search_users(self, query: str, current_user: str) -> list[UserSummary]:
        return [
            UserSummary(username=u.username, user_id=u.user_id)
            for u in self.users.values()
            if query in u.username and u.username != current_user
        ]

    async def fetch_roster(self, username: str) -> list[ConversationSummary]:
        entries = []
        for conv, messages in self.conversations.items():
            names = conv.split("_")
            if username not in names or not messages:
                continue
            partner = names[0] if names[1] == username else names[1]
            last = messages[-1]
            entries.append(
                ConversationSummary(
                    partner=partner,
                    last_message=last.display_text,
                    last_message_time=last.timestamp,
                    unread_count=sum(
                        1 for m in messages
                        if m.recipient == username and m.status != DeliveryStatus.READ
                    ),
                    online=partner in self.online,
                )
            )
        return entries

    # -------- 事件路由 --------

    async def push(self, username: str, name: str, payload: dict[str, Any] | None) -> None:
        """按线上格式向某用户推送事件"""
        if username not in self.online:
            return
        engine = self.engines[username]
        await engine.dispatch(parse_inbound_event(name, payload))

    async def push_status(self, message_id: str, status: DeliveryStatus) -> None:
        """更新消息状态并通知双方"""
        for conv, messages in self.conversations.items():
            for i, message in enumerate(messages):
                if message.message_id == message_id:
                    messages[i] = message.model_copy(update={"status": status})
                    payload = {"messageId": message_id, "status": status.value}
                    for user in (message.sender, message.recipient):
                        await self.push(user, "message-status-update", payload)
                    return

    async def handle(self, username: str | None, name: str, payload: dict[str, Any]) -> None:
        self.received.append((username or "", name, payload))
        match OutboundEventType(name):
            case OutboundEventType.USER_ONLINE:
                self.online.add(payload["username"])
            case OutboundEventType.SEND_MESSAGE:
                message = Message(
                    message_id=payload["messageId"],
                    sender=payload["from"],
                    recipient=payload["to"],
                    text=payload["text"],
                    timestamp=datetime.now(UTC),
                )
                self.conversations.setdefault(message.conversation_id, []).append(message)
                await self.push(message.sender, "message-sent", message.to_wire())
                await self.push(message.recipient, "new-message", message.to_wire())
            case OutboundEventType.UNSEND_MESSAGE:
                conv = conversation_id(payload["from"], payload["to"])
                for i, message in enumerate(self.conversations.get(conv, [])):
                    if message.message_id == payload["messageId"]:
                        self.conversations[conv][i] = message.model_copy(update={"unsent": True})
                for user in (payload["from"], payload["to"]):
                    await self.push(user, "message-unsent", {"messageId": payload["messageId"]})
            case OutboundEventType.CLEAR_CHAT:
                conv = conversation_id(payload["username"], payload["chatUser"])
                cleared = self.conversations.pop(conv, [])
                await self.push(
                    payload["username"],
                    "chat-cleared",
                    {
                        "chatUser": payload["chatUser"],
                        "clearedMessages": [m.to_wire() for m in cleared],
                        "timestamp": datetime.now(UTC).isoformat(),
                    },
                )
            case OutboundEventType.RESTORE_CHAT:
                conv = conversation_id(payload["username"], payload["chatUser"])
                restored = [Message.model_validate(m) for m in payload["clearedMessages"]]
                self.conversations[conv] = restored + self.conversations.get(conv, [])
                await self.push(payload["username"], "chat-restored", {"chatUser": payload["chatUser"]})
            case OutboundEventType.TYPING_START | OutboundEventType.TYPING_STOP:
                await self.push(payload["to"], name, {"from": payload["from"]})


class RelayTransport:
    """某个客户端到 RelayServer 的连接"""

    def __init__(self, server: RelayServer) -> None:
        self._server = server
        self.username: str | None = None
        self.connected = True

    async def emit(self, event: OutboundEvent) -> None:
        if not self.connected:
            raise TransportError("Connection lost. Please try again.")
        payload = event.wire_payload()
        if event.event_type == OutboundEventType.USER_ONLINE:
            self.username = payload["username"]
        await self._server.handle(self.username, event.event_type.value, payload)

    async def drop(self) -> None:
        """模拟断线：服务端把该用户标记为离线"""
        self.connected = False
        self._server.online.discard(self.username)
        await self._server.engines[self.username].on_disconnect()

    async def reconnect(self) -> None:
        self.connected = True
        await self._server.engines[self.username].on_connect()


@pytest.fixture
def relay() -> RelayServer:
    server = RelayServer()
    for name in ("alice", "bob"):
        server.add_user(name)
    return server


@pytest.fixture
def integration_timings() -> CoreTimings:
    return CoreTimings(
        typing_timeout_s=0.05,
        remote_typing_expiry_s=0.2,
        undo_window_s=0.2,
        notice_ttl_s=5.0,
    )


async def _connect(relay: RelayServer, username: str, timings: CoreTimings):
    transport = RelayTransport(relay)
    engine = SyncEngine(transport=transport, api=relay, timings=timings)
    relay.engines[username] = engine
    await engine.login_with_user_id(f"{username}-id")
    return engine, transport


@pytest_asyncio.fixture
async def pair(relay, integration_timings) -> AsyncGenerator[dict, None]:
    """alice 与 bob 均已登录并互相打开会话"""
    alice, alice_link = await _connect(relay, "alice", integration_timings)
    bob, bob_link = await _connect(relay, "bob", integration_timings)
    await alice.select_conversation("bob")
    await bob.select_conversation("alice")
    yield {"alice": alice, "bob": bob, "alice_link": alice_link, "bob_link": bob_link}
    for engine in (alice, bob):
        engine.timers.cancel_all()
