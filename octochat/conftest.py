"""全局 pytest 配置 -- 录制型事件传输、内存 HTTP 接口与缩短的时间参数"""

import asyncio
from collections.abc import AsyncGenerator
from datetime import UTC, datetime, timedelta

import pytest
import pytest_asyncio
from octochat.core.config import CoreTimings
from octochat.core.exceptions import ChatClientError
from octochat.core.models import (
    ConversationSummary,
    DeliveryStatus,
    Message,
    OutboundEvent,
    OutboundEventType,
    UserIdentity,
    UserSummary,
)
from octochat.transport.exceptions import AuthenticationError, TransportError

BASE_TS = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)


def make_message(
    message_id: str,
    sender: str = "alice",
    recipient: str = "bob",
    text: str | None = None,
    status: DeliveryStatus = DeliveryStatus.SENT,
    offset_s: int = 0,
) -> Message:
    """构造测试用 Message"""
    return Message(
        message_id=message_id,
        sender=sender,
        recipient=recipient,
        text=text if text is not None else f"text of {message_id}",
        timestamp=BASE_TS + timedelta(seconds=offset_s),
        status=status,
    )


class RecordingTransport:
    """记录所有出站事件的传输；fail=True 时模拟断线"""

    def __init__(self) -> None:
        self.emitted: list[OutboundEvent] = []
        self.fail = False

    async def emit(self, event: OutboundEvent) -> None:
        if self.fail:
            raise TransportError("Connection lost. Please try again.")
        self.emitted.append(event)

    def of_type(self, event_type: OutboundEventType) -> list[OutboundEvent]:
        return [e for e in self.emitted if e.event_type == event_type]

    def types(self) -> list[OutboundEventType]:
        return [e.event_type for e in self.emitted]


class FakeChatApi:
    """内存中的 HTTP 接口"""

    def __init__(self) -> None:
        self.users: dict[str, UserIdentity] = {}
        self.passwords: dict[str, str] = {}
        self.histories: dict[str, list[Message]] = {}
        self.rosters: dict[str, list[ConversationSummary]] = {}
        self.directory: list[UserSummary] = []
        self.fail_with: ChatClientError | None = None
        self.calls: list[tuple[str, tuple]] = []
        # 设置后 fetch_history 取得结果后等待放行，模拟慢请求
        self.history_gate: asyncio.Event | None = None
        self.history_requested = asyncio.Event()

    def add_user(self, username: str, user_id: str, email: str = "", password: str = "") -> None:
        self.users[user_id] = UserIdentity(username=username, user_id=user_id)
        if email:
            self.users[email] = self.users[user_id]
            self.passwords[email] = password
        self.directory.append(UserSummary(username=username, user_id=user_id))

    def _record(self, name: str, *args) -> None:
        self.calls.append((name, args))
        if self.fail_with is not None:
            raise self.fail_with

    def call_count(self, name: str) -> int:
        return sum(1 for call, _ in self.calls if call == name)

    async def register(self, username: str, email: str, password: str):
        self._record("register", username, email)
        user_id = f"id-{username}"
        self.add_user(username, user_id, email=email, password=password)
        return self.users[user_id], "Registration successful"

    async def login(self, user_id=None, email=None, password=None):
        self._record("login", user_id, email)
        if user_id and user_id in self.users:
            return self.users[user_id], "Login successful"
        if email and email in self.users and self.passwords.get(email) == password:
            return self.users[email], "Login successful"
        raise AuthenticationError("Invalid credentials", status_code=401)

    async def fetch_history(self, conversation_id: str) -> list[Message]:
        self._record("fetch_history", conversation_id)
        result = list(self.histories.get(conversation_id, []))
        self.history_requested.set()
        if self.history_gate is not None:
            await self.history_gate.wait()
        return result

    async def search_users(self, query: str, current_user: str) -> list[UserSummary]:
        self._record("search_users", query, current_user)
        return [
            u for u in self.directory
            if query.lower() in u.username.lower() and u.username != current_user
        ]

    async def fetch_roster(self, username: str) -> list[ConversationSummary]:
        self._record("fetch_roster", username)
        return list(self.rosters.get(username, []))


@pytest.fixture
def timings() -> CoreTimings:
    """缩短后的时间参数，保持 typing < undo < remote expiry 的相对关系"""
    return CoreTimings(
        typing_timeout_s=0.05,
        remote_typing_expiry_s=0.15,
        undo_window_s=0.1,
        notice_ttl_s=5.0,
    )


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def api() -> FakeChatApi:
    fake = FakeChatApi()
    fake.add_user("alice", "alice-id", email="alice@example.com", password="secret")
    fake.add_user("bob", "bob-id")
    fake.add_user("carol", "carol-id")
    return fake


@pytest_asyncio.fixture
async def engine(transport, api, timings) -> AsyncGenerator:
    """未登录的 SyncEngine"""
    from octochat.client.sync_engine import SyncEngine

    sync_engine = SyncEngine(transport=transport, api=api, timings=timings)
    yield sync_engine
    sync_engine.timers.cancel_all()


@pytest_asyncio.fixture
async def chatting_engine(engine, transport) -> AsyncGenerator:
    """alice 已登录并打开与 bob 的会话，出站记录已清空"""
    await engine.login_with_user_id("alice-id")
    await engine.select_conversation("bob")
    transport.emitted.clear()
    yield engine


@pytest.fixture
def make_msg():
    """Message 工厂"""
    return make_message
