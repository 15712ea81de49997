"""Message Domain Model

消息 ID 由发送方生成，会话 ID 由双方用户名规范化得到。
unsent 标记单调：一旦为 True 永不回退。
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from ulid import ULID

from .enums import DeliveryStatus

# 会话 ID 分隔符
CONVERSATION_ID_SEPARATOR = "_"

# 撤回后替代原文的占位文本
UNSENT_PLACEHOLDER = "This message was unsent"


def conversation_id(a: str, b: str) -> str:
    """由两个参与者 ID 生成与顺序无关的会话 ID

    conversation_id(a, b) == conversation_id(b, a)
    """
    return CONVERSATION_ID_SEPARATOR.join(sorted((a, b)))


def generate_message_id() -> str:
    """生成消息 ID：msg_<ULID>

    ULID 由毫秒时间戳与 80 位随机数组成，同一客户端并发发送也不会冲突；
    跨进程唯一性是概率保证。
    """
    return f"msg_{ULID()}"


class Message(BaseModel):
    """消息数据模型，字段别名对齐线上协议（messageId/from/to）"""

    model_config = ConfigDict(populate_by_name=True)

    message_id: str = Field(alias="messageId", description="消息 ID，会话内唯一")
    sender: str = Field(alias="from", description="发送者用户名")
    recipient: str = Field(alias="to", description="接收者用户名")
    text: str = Field(default="", description="消息原文")
    timestamp: datetime | None = Field(
        default=None,
        description="服务端分配的创建时间",
    )
    status: DeliveryStatus = Field(
        default=DeliveryStatus.SENT,
        description="投递状态",
    )
    unsent: bool = Field(default=False, description="是否已撤回")

    @property
    def conversation_id(self) -> str:
        return conversation_id(self.sender, self.recipient)

    @property
    def display_text(self) -> str:
        """渲染文本：撤回后始终为占位文本"""
        return UNSENT_PLACEHOLDER if self.unsent else self.text

    def to_wire(self) -> dict:
        """序列化为协议格式"""
        return self.model_dump(by_alias=True, mode="json")
