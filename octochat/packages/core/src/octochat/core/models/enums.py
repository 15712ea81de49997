"""枚举定义

包含消息投递状态（单调状态机）、入站/出站协议事件类型、
变更通知主题、提示级别和定时器用途。
"""

from enum import StrEnum


class DeliveryStatus(StrEnum):
    """消息投递状态 -- sent → delivered → read，只允许前进"""

    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"


# 投递状态顺序，数值越大越靠后
STATUS_RANK: dict[DeliveryStatus, int] = {
    DeliveryStatus.SENT: 0,
    DeliveryStatus.DELIVERED: 1,
    DeliveryStatus.READ: 2,
}


def can_advance(current: DeliveryStatus, target: DeliveryStatus) -> bool:
    """判断状态更新是否为前进

    Args:
        current: 当前状态
        target: 目标状态

    Returns:
        True 如果 target 严格晚于 current；相同或回退均返回 False
    """
    return STATUS_RANK[target] > STATUS_RANK[current]


class InboundEventType(StrEnum):
    """服务端推送的事件类型"""

    NEW_MESSAGE = "new-message"
    MESSAGE_SENT = "message-sent"
    MESSAGE_STATUS_UPDATE = "message-status-update"
    MESSAGE_UNSENT = "message-unsent"
    CHAT_CLEARED = "chat-cleared"
    CHAT_RESTORED = "chat-restored"
    TYPING_START = "typing-start"
    TYPING_STOP = "typing-stop"
    USER_STATUS_CHANGE = "user-status-change"


class OutboundEventType(StrEnum):
    """客户端发出的事件类型"""

    USER_ONLINE = "user-online"
    SEND_MESSAGE = "send-message"
    UNSEND_MESSAGE = "unsend-message"
    TYPING_START = "typing-start"
    TYPING_STOP = "typing-stop"
    CLEAR_CHAT = "clear-chat"
    RESTORE_CHAT = "restore-chat"


class ChangeTopic(StrEnum):
    """Store 变更通知主题"""

    MESSAGES = "messages"
    ROSTER = "roster"
    TYPING = "typing"
    UNDO = "undo"
    SESSION = "session"
    NOTICE = "notice"


class NoticeLevel(StrEnum):
    """提示级别"""

    INFO = "info"
    SUCCESS = "success"
    ERROR = "error"


class TimerPurpose(StrEnum):
    """定时器用途，与对端 ID 组成定时器槽位"""

    LOCAL_TYPING = "local-typing"
    REMOTE_TYPING = "remote-typing"
    UNDO_COUNTDOWN = "undo-countdown"
