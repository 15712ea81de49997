"""OctoChat Core Domain Models -- 公共类型导出

所有公共模型类型从此入口导入。
"""

from .enums import (
    STATUS_RANK,
    ChangeTopic,
    DeliveryStatus,
    InboundEventType,
    NoticeLevel,
    OutboundEventType,
    TimerPurpose,
    can_advance,
)
from .events import (
    INBOUND_EVENT_MODELS,
    ChatClearedEvent,
    ChatRestoredEvent,
    ClearChat,
    InboundEvent,
    MessageSentEvent,
    MessageStatusUpdateEvent,
    MessageUnsentEvent,
    NewMessageEvent,
    OutboundEvent,
    RemoteTypingStartEvent,
    RemoteTypingStopEvent,
    RestoreChat,
    SendMessage,
    TypingStart,
    TypingStop,
    UnsendMessage,
    UserOnline,
    UserStatusChangeEvent,
    parse_inbound_event,
)
from .message import (
    UNSENT_PLACEHOLDER,
    Message,
    conversation_id,
    generate_message_id,
)
from .roster import ConversationSummary, UserIdentity, UserSummary
from .snapshot import ClearSnapshot, TypingState

__all__ = [
    # 枚举
    "DeliveryStatus",
    "InboundEventType",
    "OutboundEventType",
    "ChangeTopic",
    "NoticeLevel",
    "TimerPurpose",
    # 状态顺序
    "STATUS_RANK",
    "can_advance",
    # Message
    "Message",
    "UNSENT_PLACEHOLDER",
    "conversation_id",
    "generate_message_id",
    # Roster
    "ConversationSummary",
    "UserIdentity",
    "UserSummary",
    # Snapshot
    "ClearSnapshot",
    "TypingState",
    # 出站事件
    "OutboundEvent",
    "UserOnline",
    "SendMessage",
    "UnsendMessage",
    "TypingStart",
    "TypingStop",
    "ClearChat",
    "RestoreChat",
    # 入站事件
    "InboundEvent",
    "INBOUND_EVENT_MODELS",
    "NewMessageEvent",
    "MessageSentEvent",
    "MessageStatusUpdateEvent",
    "MessageUnsentEvent",
    "ChatClearedEvent",
    "ChatRestoredEvent",
    "RemoteTypingStartEvent",
    "RemoteTypingStopEvent",
    "UserStatusChangeEvent",
    "parse_inbound_event",
]
