"""SessionState -- 登录用户与当前聊天对象

由 SyncEngine 持有：认证成功时创建，登出时销毁。
所有会话级操作通过 require_* 检查前置条件，不在过期标识上操作。
"""

from .exceptions import NoActiveConversationError
from .models.message import conversation_id
from .models.roster import UserIdentity


class SessionState:
    """单个已认证用户的会话上下文"""

    def __init__(self, user: UserIdentity) -> None:
        self.user = user
        self.partner: str | None = None
        # 本次会话中最近一次发送的消息 ID（单槽位，切换会话时清空）
        self.last_sent_message_id: str | None = None

    @property
    def username(self) -> str:
        return self.user.username

    def select(self, partner: str) -> str | None:
        """切换聊天对象

        Returns:
            之前的聊天对象
        """
        previous = self.partner
        self.partner = partner
        self.last_sent_message_id = None
        return previous

    def require_partner(self) -> str:
        if not self.partner:
            raise NoActiveConversationError()
        return self.partner

    def conversation_with(self, partner: str) -> str:
        return conversation_id(self.username, partner)

    @property
    def active_conversation_id(self) -> str | None:
        if not self.partner:
            return None
        return self.conversation_with(self.partner)
