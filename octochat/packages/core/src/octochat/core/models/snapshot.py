"""清空快照与输入状态模型"""

from datetime import datetime

from pydantic import BaseModel, Field

from .message import Message


class ClearSnapshot(BaseModel):
    """清空快照 -- 撤销窗口内保留被清空的消息

    deadline 使用事件循环时钟（loop.time()），仅用于本地倒计时。
    """

    conversation_id: str = Field(description="被清空的会话 ID")
    partner: str = Field(description="会话对方用户名")
    messages: list[Message] = Field(default_factory=list, description="被清空的消息")
    deadline: float = Field(description="倒计时截止时间（loop.time()）")
    cleared_at: datetime | None = Field(default=None, description="服务端清空时间")

    @property
    def message_ids(self) -> list[str]:
        return [m.message_id for m in self.messages]


class TypingState(BaseModel):
    """对端输入状态"""

    partner: str
    is_typing: bool = False
    last_signal: float = Field(default=0.0, description="最近一次信号时间（loop.time()）")
