"""SyncEngine -- 本地意图与服务端确认的唯一合并点

用户操作（发送、撤回、清空、恢复、输入）在这里发出出站事件；
服务端推送的入站事件在这里与本地 Store 合并，然后通过 ChangeHub 通知渲染层。

合并规则：
1. 发送不做乐观渲染，等待服务端回显（message-sent / new-message）再入库
2. 撤回、清空、恢复只在收到服务端确认后修改本地状态
3. 入站事件对重放幂等：重复消息、未知 ID、状态回退都静默吸收
4. 异步响应（历史、会话列表）按请求序号丢弃过期结果
"""

import functools
from collections.abc import Awaitable, Callable
from typing import Concatenate, ParamSpec, TypeVar, assert_never

import structlog
from octochat.core.clear_undo import ClearUndoCoordinator
from octochat.core.config import CoreTimings
from octochat.core.exceptions import (
    ChatClientError,
    InputValidationError,
    NoActiveSessionError,
    NothingToUnsendError,
)
from octochat.core.models.enums import ChangeTopic, DeliveryStatus, NoticeLevel
from octochat.core.models.events import (
    ChatClearedEvent,
    ChatRestoredEvent,
    ClearChat,
    InboundEvent,
    MessageSentEvent,
    MessageStatusUpdateEvent,
    MessageUnsentEvent,
    NewMessageEvent,
    RemoteTypingStartEvent,
    RemoteTypingStopEvent,
    RestoreChat,
    SendMessage,
    UnsendMessage,
    UserOnline,
    UserStatusChangeEvent,
)
from octochat.core.models.message import Message, generate_message_id
from octochat.core.models.roster import UserIdentity, UserSummary
from octochat.core.models.snapshot import ClearSnapshot, TypingState
from octochat.core.scheduler import TimerRegistry
from octochat.core.session import SessionState
from octochat.core.store import StoreGroup, create_store_group
from octochat.core.store.protocols import ChatApi, EventTransport
from octochat.core.typing_coordinator import TypingCoordinator
from octochat.transport.exceptions import TransportError
from pydantic import BaseModel

from .change_hub import ChangeHub, StoreChange
from .notices import NoticeBoard

log = structlog.get_logger()

P = ParamSpec("P")
T = TypeVar("T")


class MessageView(BaseModel):
    """渲染用的消息视图"""

    message_id: str
    text: str
    own: bool
    status: DeliveryStatus
    unsent: bool


def user_action(
    name: str,
) -> Callable[
    [Callable[Concatenate["SyncEngine", P], Awaitable[T]]],
    Callable[Concatenate["SyncEngine", P], Awaitable[T | None]],
]:
    """用户操作装饰器：ChatClientError 转为错误提示，返回 None，不修改本地状态"""

    def decorator(
        func: Callable[Concatenate["SyncEngine", P], Awaitable[T]],
    ) -> Callable[Concatenate["SyncEngine", P], Awaitable[T | None]]:
        @functools.wraps(func)
        async def wrapper(self: "SyncEngine", *args: P.args, **kwargs: P.kwargs) -> T | None:
            try:
                return await func(self, *args, **kwargs)
            except ChatClientError as e:
                log.info(
                    "user_action_rejected",
                    action=name,
                    error_type=type(e).__name__,
                    error=e.message,
                )
                await self.notices.post(e.message, NoticeLevel.ERROR)
                return None

        return wrapper

    return decorator


class SyncEngine:
    """同步引擎：持有会话上下文与全部客户端状态"""

    def __init__(
        self,
        transport: EventTransport,
        api: ChatApi,
        timings: CoreTimings | None = None,
        hub: ChangeHub | None = None,
        notices: NoticeBoard | None = None,
        stores: StoreGroup | None = None,
    ) -> None:
        """
        Args:
            transport: 事件传输
            api: HTTP 接口
            timings: 时间参数，None 时使用默认值
            hub: 变更广播器
            notices: 提示栏
            stores: Store 实例组
        """
        self._transport = transport
        self._api = api
        self._timings = timings or CoreTimings()
        self.hub = hub or ChangeHub()
        self.notices = notices or NoticeBoard(self.hub, ttl_s=self._timings.notice_ttl_s)
        self._stores = stores or create_store_group()
        self._timers = TimerRegistry()
        self._typing = TypingCoordinator(
            transport,
            self._timers,
            self._timings,
            on_remote_change=self._on_remote_typing_change,
        )
        self._undo = ClearUndoCoordinator(
            self._timers,
            self._timings,
            on_expire=self._on_undo_expired,
        )
        self._session: SessionState | None = None

    # ============================================================
    # 状态查询
    # ============================================================

    @property
    def session(self) -> SessionState | None:
        return self._session

    @property
    def current_user(self) -> UserIdentity | None:
        return self._session.user if self._session else None

    @property
    def current_partner(self) -> str | None:
        return self._session.partner if self._session else None

    @property
    def stores(self) -> StoreGroup:
        return self._stores

    @property
    def timers(self) -> TimerRegistry:
        return self._timers

    @property
    def typing(self) -> TypingCoordinator:
        return self._typing

    @property
    def undo(self) -> ClearUndoCoordinator:
        return self._undo

    @property
    def pending_snapshot(self) -> ClearSnapshot | None:
        return self._undo.snapshot

    @property
    def undo_remaining(self) -> float:
        """撤销倒计时剩余秒数（用于显示）"""
        return self._undo.remaining()

    @property
    def can_unsend(self) -> bool:
        return bool(self._session and self._session.last_sent_message_id)

    @property
    def is_partner_typing(self) -> bool:
        """当前聊天对象是否正在输入"""
        partner = self.current_partner
        return bool(partner and self._typing.is_partner_typing(partner))

    def display_messages(self, conversation_id: str | None = None) -> list[MessageView]:
        """渲染当前（或指定）会话的消息，撤回的消息显示占位文本"""
        session = self._session
        if session is None:
            return []
        conv = conversation_id or session.active_conversation_id
        if conv is None:
            return []
        return [
            MessageView(
                message_id=m.message_id,
                text=m.display_text,
                own=m.sender == session.username,
                status=m.status,
                unsent=m.unsent,
            )
            for m in self._stores.message_store.messages(conv)
        ]

    # ============================================================
    # 认证与会话生命周期
    # ============================================================

    @user_action("register")
    async def register(self, username: str, email: str, password: str) -> UserIdentity | None:
        username, email = username.strip(), email.strip()
        if not username or not email or not password:
            raise InputValidationError("Please fill in all fields")
        user, message = await self._api.register(username, email, password)
        await self._start_session(user, message or "Registration successful")
        return user

    @user_action("login")
    async def login_with_user_id(self, user_id: str) -> UserIdentity | None:
        user_id = user_id.strip()
        if not user_id:
            raise InputValidationError("Please enter your Student ID")
        user, message = await self._api.login(user_id=user_id)
        await self._start_session(user, message or "Login successful")
        return user

    @user_action("login")
    async def login_with_email(self, email: str, password: str) -> UserIdentity | None:
        email = email.strip()
        if not email or not password:
            raise InputValidationError("Please fill in all fields")
        user, message = await self._api.login(email=email, password=password)
        await self._start_session(user, message or "Login successful")
        return user

    @user_action("logout")
    async def logout(self) -> bool:
        session = self._require_session()
        if session.partner:
            await self._stop_local_typing(session.partner)
        await self._teardown()
        await self.notices.post("Logged out successfully", NoticeLevel.SUCCESS)
        return True

    async def _start_session(self, user: UserIdentity, message: str) -> None:
        if self._session is not None:
            await self._teardown()

        self._session = SessionState(user)
        structlog.contextvars.bind_contextvars(username=user.username)
        log.info("session_started", user_id=user.user_id)

        await self.hub.broadcast(
            StoreChange(topic=ChangeTopic.SESSION, detail={"username": user.username})
        )
        await self._announce_presence()
        await self.notices.post(message, NoticeLevel.SUCCESS)
        await self.refresh_roster()

    async def _teardown(self) -> None:
        self._typing.reset()
        self._undo.reset()
        self._timers.cancel_all()
        self._stores.reset()
        self._session = None
        structlog.contextvars.unbind_contextvars("username")
        log.info("session_closed")
        await self.hub.broadcast(StoreChange(topic=ChangeTopic.SESSION, detail={"username": None}))

    def _require_session(self) -> SessionState:
        if self._session is None:
            raise NoActiveSessionError()
        return self._session

    @user_action("select_conversation")
    async def select_conversation(self, partner: str) -> bool:
        """切换聊天对象并加载历史"""
        session = self._require_session()
        partner = partner.strip()
        if not partner:
            raise InputValidationError("Please select a user to chat with")

        previous = session.partner
        if previous and previous != partner:
            await self._stop_local_typing(previous)

        session.select(partner)
        self._stores.roster.set_active(partner)
        log.info("conversation_selected", partner=partner, previous=previous)
        await self.hub.broadcast(
            StoreChange(
                topic=ChangeTopic.SESSION,
                conversation_id=session.conversation_with(partner),
                detail={"partner": partner},
            )
        )

        await self.reload_history(partner)
        await self.refresh_roster()
        await self.notices.post(f"Started chat with {partner}", NoticeLevel.SUCCESS)
        return True

    @user_action("search_users")
    async def search_users(self, query: str) -> list[UserSummary] | None:
        query = query.strip()
        if not query:
            raise InputValidationError("Please enter a search term")
        session = self._require_session()
        return await self._api.search_users(query, session.username)

    # ============================================================
    # 拉取式刷新
    # ============================================================

    async def reload_history(self, partner: str) -> bool:
        """从历史接口整体替换会话消息

        Returns:
            False 如果响应已过期被丢弃

        Raises:
            EndpointError: 接口失败
        """
        session = self._require_session()
        conv = session.conversation_with(partner)
        seq = self._stores.sequencer.issue(conv)
        since = self._stores.message_store.arrival_mark()

        messages = await self._api.fetch_history(conv)

        if self._session is not session or not self._stores.sequencer.accept(conv, seq):
            log.debug("stale_history_response_discarded", conversation_id=conv, seq=seq)
            return False

        self._stores.message_store.replace_all(conv, messages, since=since)
        await self._broadcast_messages(conv, reloaded=True)
        return True

    async def refresh_roster(self) -> bool:
        """刷新会话列表；失败只记录日志，保留旧数据"""
        session = self._session
        if session is None:
            return False

        roster = self._stores.roster
        seq = roster.begin_refresh()
        try:
            entries = await self._api.fetch_roster(session.username)
        except ChatClientError as e:
            log.warning("roster_refresh_failed", error=e.message)
            return False

        if self._session is not session or not roster.apply(seq, entries):
            return False

        await self.hub.broadcast(
            StoreChange(topic=ChangeTopic.ROSTER, detail={"count": len(entries)})
        )
        return True

    # ============================================================
    # 出站操作
    # ============================================================

    @user_action("send_message")
    async def send_message(self, text: str) -> str | None:
        """发送消息，返回生成的 message_id

        本地不做乐观渲染，消息在服务端回显后才入库。
        """
        session = self._require_session()
        text = text.strip()
        if not text or not session.partner:
            raise InputValidationError("Please enter a message and select a recipient")

        partner = session.partner
        message_id = generate_message_id()
        await self._transport.emit(
            SendMessage(
                sender=session.username,
                recipient=partner,
                text=text,
                message_id=message_id,
            )
        )
        session.last_sent_message_id = message_id
        log.info("message_send_requested", message_id=message_id, partner=partner)

        await self._stop_local_typing(partner)
        return message_id

    @user_action("unsend_message")
    async def unsend_last_message(self) -> str | None:
        """撤回本会话最近发送的一条消息，等待服务端确认后才修改本地状态"""
        session = self._require_session()
        partner = session.require_partner()
        message_id = session.last_sent_message_id
        if not message_id:
            raise NothingToUnsendError()

        await self._transport.emit(
            UnsendMessage(message_id=message_id, sender=session.username, recipient=partner)
        )
        log.info("message_unsend_requested", message_id=message_id)
        return message_id

    @user_action("clear_chat")
    async def clear_chat(self) -> bool:
        """请求清空当前会话，等待 chat-cleared 确认"""
        session = self._require_session()
        partner = session.require_partner()
        await self._transport.emit(ClearChat(username=session.username, chat_user=partner))
        log.info("chat_clear_requested", partner=partner)
        return True

    @user_action("restore_chat")
    async def restore_chat(self) -> bool:
        """撤销窗口内请求恢复快照中的消息"""
        session = self._require_session()
        snapshot = self._undo.require_snapshot()
        await self._transport.emit(
            RestoreChat(
                username=session.username,
                chat_user=snapshot.partner,
                cleared_messages=snapshot.messages,
            )
        )
        log.info(
            "chat_restore_requested",
            conversation_id=snapshot.conversation_id,
            message_count=len(snapshot.messages),
        )
        return True

    async def notify_typing(self) -> None:
        """本地按键（发送键除外）"""
        session = self._session
        if session is None or not session.partner:
            return
        try:
            await self._typing.keystroke(session.username, session.partner)
        except TransportError as e:
            log.debug("typing_signal_failed", error=e.message)

    async def _stop_local_typing(self, partner: str) -> None:
        try:
            await self._typing.stop(partner)
        except TransportError as e:
            log.debug("typing_stop_failed", partner=partner, error=e.message)

    # ============================================================
    # 连接生命周期
    # ============================================================

    async def on_connect(self) -> None:
        """(重新)连接后重新宣告在线，避免服务端在线表过期"""
        if self._session is not None:
            await self._announce_presence()

    async def on_disconnect(self) -> None:
        """断线不清理本地状态，等待重连"""
        log.info("transport_disconnected", session_active=self._session is not None)

    async def _announce_presence(self) -> None:
        session = self._session
        if session is None:
            return
        try:
            await self._transport.emit(UserOnline(username=session.username))
        except TransportError as e:
            # 重连后 on_connect 会再次宣告
            log.warning("presence_announce_failed", error=e.message)

    # ============================================================
    # 入站事件
    # ============================================================

    async def dispatch(self, event: InboundEvent) -> None:
        """合并一个入站事件"""
        session = self._session
        if session is None:
            log.debug("inbound_event_without_session", event_type=event.event_type.value)
            return

        match event:
            case NewMessageEvent(message=message) | MessageSentEvent(message=message):
                await self._on_message(session, message)
            case MessageStatusUpdateEvent():
                await self._on_status_update(event)
            case MessageUnsentEvent():
                await self._on_unsent(session, event)
            case ChatClearedEvent():
                await self._on_chat_cleared(session, event)
            case ChatRestoredEvent():
                await self._on_chat_restored(session, event)
            case RemoteTypingStartEvent():
                state = await self._typing.remote_start(event.sender)
                await self._on_remote_typing_change(state)
            case RemoteTypingStopEvent():
                state = await self._typing.remote_stop(event.sender)
                await self._on_remote_typing_change(state)
            case UserStatusChangeEvent():
                await self.refresh_roster()
            case _:
                assert_never(event)

    async def _on_message(self, session: SessionState, message: Message) -> None:
        if session.username not in (message.sender, message.recipient):
            log.debug("foreign_message_ignored", message_id=message.message_id)
            return

        conv = message.conversation_id
        if not self._stores.message_store.append(conv, message):
            return
        await self._broadcast_messages(conv, message_id=message.message_id)
        await self.refresh_roster()

    async def _on_status_update(self, event: MessageStatusUpdateEvent) -> None:
        store = self._stores.message_store
        conv = store.locate(event.message_id)
        if conv is None:
            log.debug("status_update_unknown_message", message_id=event.message_id)
            return
        if store.update_status(conv, event.message_id, event.status):
            await self._broadcast_messages(
                conv, message_id=event.message_id, status=event.status.value
            )

    async def _on_unsent(self, session: SessionState, event: MessageUnsentEvent) -> None:
        store = self._stores.message_store
        message_id = event.message_id
        if session.last_sent_message_id == message_id:
            session.last_sent_message_id = None

        conv = store.locate(message_id)
        if conv is None:
            # 撤回先于消息到达
            store.remember_unsent(message_id)
            return
        if not store.mark_unsent(conv, message_id):
            return

        await self._broadcast_messages(conv, message_id=message_id, unsent=True)
        messages = store.messages(conv)
        if messages and messages[-1].message_id == message_id:
            await self.refresh_roster()

    async def _on_chat_cleared(self, session: SessionState, event: ChatClearedEvent) -> None:
        partner = event.chat_user
        conv = session.conversation_with(partner)
        # 清空前发出的历史请求不能再写回
        self._stores.sequencer.invalidate(conv)
        removed = self._stores.message_store.clear(conv)
        snapshot = self._undo.begin(
            conv,
            partner,
            event.cleared_messages or removed,
            cleared_at=event.timestamp,
        )
        await self._broadcast_messages(conv, cleared=True)
        if snapshot is not None:
            await self.hub.broadcast(
                StoreChange(
                    topic=ChangeTopic.UNDO,
                    conversation_id=conv,
                    detail={"pending": True, "window_s": self._timings.undo_window_s},
                )
            )
        await self.refresh_roster()

    async def _on_chat_restored(self, session: SessionState, event: ChatRestoredEvent) -> None:
        partner = event.chat_user
        conv = session.conversation_with(partner)
        snapshot = self._undo.complete_restore(partner)
        if snapshot is not None:
            self._stores.message_store.restore(conv, snapshot.messages)
            await self._broadcast_messages(conv, restored=True)
            await self.hub.broadcast(
                StoreChange(
                    topic=ChangeTopic.UNDO,
                    conversation_id=conv,
                    detail={"pending": False, "restored": True},
                )
            )

        if session.partner == partner:
            try:
                await self.reload_history(partner)
            except ChatClientError as e:
                log.warning("history_reload_failed", conversation_id=conv, error=e.message)
        await self.refresh_roster()

    async def _on_undo_expired(self, snapshot: ClearSnapshot) -> None:
        await self.hub.broadcast(
            StoreChange(
                topic=ChangeTopic.UNDO,
                conversation_id=snapshot.conversation_id,
                detail={"pending": False, "expired": True},
            )
        )

    async def _on_remote_typing_change(self, state: TypingState) -> None:
        session = self._session
        await self.hub.broadcast(
            StoreChange(
                topic=ChangeTopic.TYPING,
                conversation_id=session.conversation_with(state.partner) if session else None,
                detail={"partner": state.partner, "is_typing": state.is_typing},
            )
        )

    async def _broadcast_messages(self, conversation_id: str, **detail) -> None:
        await self.hub.broadcast(
            StoreChange(
                topic=ChangeTopic.MESSAGES,
                conversation_id=conversation_id,
                detail=detail,
            )
        )
