"""OctoChat Core Store -- 客户端内存状态

提供工厂函数创建共享 RequestSequencer 的 Store 实例组。
"""

from .message_store import MessageStore
from .protocols import ChatApi, EventTransport
from .roster import ChatRoster
from .sequencer import RequestSequencer


class StoreGroup:
    """Store 实例组 -- 消息存储、会话列表与请求序号共用一个生命周期"""

    def __init__(self) -> None:
        self.sequencer = RequestSequencer()
        self.message_store = MessageStore()
        self.roster = ChatRoster(self.sequencer)

    def reset(self) -> None:
        """登出时整体清空

        请求序号跨会话保持单调，登出前发出的请求晚到也会被丢弃。
        """
        self.message_store.reset()
        self.roster.reset()


def create_store_group() -> StoreGroup:
    """创建 Store 实例组"""
    return StoreGroup()


__all__ = [
    "StoreGroup",
    "create_store_group",
    "MessageStore",
    "ChatRoster",
    "RequestSequencer",
    "ChatApi",
    "EventTransport",
]
