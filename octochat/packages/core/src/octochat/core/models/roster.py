"""会话列表与用户身份模型

ConversationSummary 是服务端聚合接口返回数据的展示缓存，
不会被本地独立修改（活跃会话未读数清零除外）。
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from ..config import MESSAGE_PREVIEW_LENGTH


class UserIdentity(BaseModel):
    """登录成功后服务端返回的身份"""

    model_config = ConfigDict(populate_by_name=True)

    username: str = Field(description="用户名，协议中的 from/to 均使用它")
    user_id: str = Field(default="", alias="userId", description="学号等外部 ID")


class UserSummary(BaseModel):
    """用户搜索结果"""

    model_config = ConfigDict(populate_by_name=True)

    username: str
    user_id: str = Field(default="", alias="userId")


class ConversationSummary(BaseModel):
    """会话列表条目"""

    model_config = ConfigDict(populate_by_name=True)

    partner: str = Field(alias="username", description="对方用户名")
    last_message: str = Field(
        default="",
        alias="lastMessage",
        description="最后一条消息文本",
    )
    last_message_time: datetime | None = Field(
        default=None,
        alias="lastMessageTime",
        description="最后一条消息时间",
    )
    unread_count: int = Field(
        default=0,
        ge=0,
        alias="unreadCount",
        description="未读数",
    )
    online: bool = Field(default=False, alias="isOnline", description="对方是否在线")

    @property
    def preview(self) -> str:
        """截断后的最后消息预览"""
        if len(self.last_message) <= MESSAGE_PREVIEW_LENGTH:
            return self.last_message
        return self.last_message[:MESSAGE_PREVIEW_LENGTH] + "..."
