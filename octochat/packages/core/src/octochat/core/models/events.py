"""协议事件模型 -- 入站/出站事件的封闭枚举

每种事件类型对应一个带类型 payload 的模型，
SyncEngine 通过 match 对模型类型做穷尽分派，不按字符串查表。
"""

from datetime import datetime
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field

from .enums import DeliveryStatus, InboundEventType, OutboundEventType
from .message import Message

# ============================================================
# 出站事件
# ============================================================


class OutboundEvent(BaseModel):
    """出站事件基类"""

    model_config = ConfigDict(populate_by_name=True)

    event_type: ClassVar[OutboundEventType]

    def wire_payload(self) -> dict[str, Any]:
        """序列化为协议 payload（字段使用线上别名）"""
        return self.model_dump(by_alias=True, mode="json")


class UserOnline(OutboundEvent):
    """user-online：登录或重连后宣告在线"""

    event_type: ClassVar[OutboundEventType] = OutboundEventType.USER_ONLINE

    username: str


class SendMessage(OutboundEvent):
    """send-message"""

    event_type: ClassVar[OutboundEventType] = OutboundEventType.SEND_MESSAGE

    sender: str = Field(alias="from")
    recipient: str = Field(alias="to")
    text: str
    message_id: str = Field(alias="messageId")


class UnsendMessage(OutboundEvent):
    """unsend-message"""

    event_type: ClassVar[OutboundEventType] = OutboundEventType.UNSEND_MESSAGE

    message_id: str = Field(alias="messageId")
    sender: str = Field(alias="from")
    recipient: str = Field(alias="to")


class TypingStart(OutboundEvent):
    """typing-start（本地发出）"""

    event_type: ClassVar[OutboundEventType] = OutboundEventType.TYPING_START

    sender: str = Field(alias="from")
    recipient: str = Field(alias="to")


class TypingStop(OutboundEvent):
    """typing-stop（本地发出）"""

    event_type: ClassVar[OutboundEventType] = OutboundEventType.TYPING_STOP

    sender: str = Field(alias="from")
    recipient: str = Field(alias="to")


class ClearChat(OutboundEvent):
    """clear-chat"""

    event_type: ClassVar[OutboundEventType] = OutboundEventType.CLEAR_CHAT

    username: str
    chat_user: str = Field(alias="chatUser")


class RestoreChat(OutboundEvent):
    """restore-chat：携带快照中的消息"""

    event_type: ClassVar[OutboundEventType] = OutboundEventType.RESTORE_CHAT

    username: str
    chat_user: str = Field(alias="chatUser")
    cleared_messages: list[Message] = Field(
        default_factory=list,
        alias="clearedMessages",
    )


# ============================================================
# 入站事件
# ============================================================


class InboundEventBase(BaseModel):
    """入站事件基类"""

    model_config = ConfigDict(populate_by_name=True)

    event_type: ClassVar[InboundEventType]


class NewMessageEvent(InboundEventBase):
    """new-message：对方发来的消息"""

    event_type: ClassVar[InboundEventType] = InboundEventType.NEW_MESSAGE

    message: Message


class MessageSentEvent(InboundEventBase):
    """message-sent：服务端回显自己发送的消息"""

    event_type: ClassVar[InboundEventType] = InboundEventType.MESSAGE_SENT

    message: Message


class MessageStatusUpdateEvent(InboundEventBase):
    """message-status-update"""

    event_type: ClassVar[InboundEventType] = InboundEventType.MESSAGE_STATUS_UPDATE

    message_id: str = Field(alias="messageId")
    status: DeliveryStatus


class MessageUnsentEvent(InboundEventBase):
    """message-unsent"""

    event_type: ClassVar[InboundEventType] = InboundEventType.MESSAGE_UNSENT

    message_id: str = Field(alias="messageId")


class ChatClearedEvent(InboundEventBase):
    """chat-cleared：服务端确认清空，附带被清空的消息"""

    event_type: ClassVar[InboundEventType] = InboundEventType.CHAT_CLEARED

    chat_user: str = Field(alias="chatUser")
    cleared_messages: list[Message] = Field(
        default_factory=list,
        alias="clearedMessages",
    )
    timestamp: datetime | None = None


class ChatRestoredEvent(InboundEventBase):
    """chat-restored"""

    event_type: ClassVar[InboundEventType] = InboundEventType.CHAT_RESTORED

    chat_user: str = Field(alias="chatUser")


class RemoteTypingStartEvent(InboundEventBase):
    """typing-start（对端发出）"""

    event_type: ClassVar[InboundEventType] = InboundEventType.TYPING_START

    sender: str = Field(alias="from")


class RemoteTypingStopEvent(InboundEventBase):
    """typing-stop（对端发出）"""

    event_type: ClassVar[InboundEventType] = InboundEventType.TYPING_STOP

    sender: str = Field(alias="from")


class UserStatusChangeEvent(InboundEventBase):
    """user-status-change：仅触发会话列表刷新，不携带消息数据"""

    event_type: ClassVar[InboundEventType] = InboundEventType.USER_STATUS_CHANGE

    username: str | None = None
    status: str | None = None


InboundEvent = (
    NewMessageEvent
    | MessageSentEvent
    | MessageStatusUpdateEvent
    | MessageUnsentEvent
    | ChatClearedEvent
    | ChatRestoredEvent
    | RemoteTypingStartEvent
    | RemoteTypingStopEvent
    | UserStatusChangeEvent
)

INBOUND_EVENT_MODELS: dict[InboundEventType, type[InboundEventBase]] = {
    model.event_type: model
    for model in (
        NewMessageEvent,
        MessageSentEvent,
        MessageStatusUpdateEvent,
        MessageUnsentEvent,
        ChatClearedEvent,
        ChatRestoredEvent,
        RemoteTypingStartEvent,
        RemoteTypingStopEvent,
        UserStatusChangeEvent,
    )
}

# payload 本身就是一条消息的事件
_MESSAGE_PAYLOAD_EVENTS = {InboundEventType.NEW_MESSAGE, InboundEventType.MESSAGE_SENT}


def parse_inbound_event(event_type: InboundEventType | str, data: Any) -> InboundEvent:
    """将入站事件名与原始 payload 解析为类型化事件

    Args:
        event_type: 事件名
        data: 原始 payload（dict 或 None）

    Returns:
        对应的入站事件模型

    Raises:
        ValueError: 未知事件名或 payload 校验失败（pydantic.ValidationError 是其子类）
    """
    kind = InboundEventType(event_type)
    model = INBOUND_EVENT_MODELS[kind]
    payload = data if data is not None else {}
    if not isinstance(payload, dict):
        raise ValueError(f"{kind} payload 必须是对象，实际为 {type(payload).__name__}")

    if kind in _MESSAGE_PAYLOAD_EVENTS:
        return model(message=Message.model_validate(payload))
    return model.model_validate(payload)
