"""协作方 Protocol 接口定义

定义事件传输与 HTTP 接口的抽象，使用 Python Protocol 实现结构化子类型。
核心状态机只依赖这些接口，具体实现在 octochat.transport。
"""

from typing import Protocol

from ..models.events import OutboundEvent
from ..models.message import Message
from ..models.roster import ConversationSummary, UserIdentity, UserSummary


class EventTransport(Protocol):
    """双向事件传输（至少一次投递，自动重连）"""

    async def emit(self, event: OutboundEvent) -> None:
        """发送出站事件"""
        ...


class ChatApi(Protocol):
    """HTTP 接口"""

    async def register(self, username: str, email: str, password: str) -> tuple[UserIdentity, str]:
        """注册，返回 (身份, 服务端提示)"""
        ...

    async def login(
        self,
        user_id: str | None = None,
        email: str | None = None,
        password: str | None = None,
    ) -> tuple[UserIdentity, str]:
        """登录（学号或邮箱+密码），返回 (身份, 服务端提示)"""
        ...

    async def fetch_history(self, conversation_id: str) -> list[Message]:
        """获取会话历史（不存在时服务端会创建会话）"""
        ...

    async def search_users(self, query: str, current_user: str) -> list[UserSummary]:
        """搜索用户，排除当前用户"""
        ...

    async def fetch_roster(self, username: str) -> list[ConversationSummary]:
        """获取聚合会话列表"""
        ...
