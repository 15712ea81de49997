"""客户端异常体系

所有异常均为可恢复的本地拒绝：由 SyncEngine 捕获并转为短暂提示，
不会中断进程。协议层不一致（重复事件、未知消息 ID、状态回退）不抛异常。
"""


class ChatClientError(Exception):
    """客户端基础异常"""

    def __init__(self, message: str, recoverable: bool = True) -> None:
        """
        Args:
            message: 面向用户的错误描述
            recoverable: 是否可由用户重试恢复
        """
        super().__init__(message)
        self.message = message
        self.recoverable = recoverable


class InputValidationError(ChatClientError):
    """本地输入校验失败（空消息、空搜索词、空凭证等），不会发起网络请求"""


class NoActiveSessionError(ChatClientError):
    """未登录时执行了需要会话的操作"""

    def __init__(self, message: str = "You must log in first") -> None:
        super().__init__(message)


class NoActiveConversationError(ChatClientError):
    """未选择聊天对象时执行了会话级操作"""

    def __init__(self, message: str = "Please select a conversation first") -> None:
        super().__init__(message)


class NothingToUnsendError(ChatClientError):
    """当前会话中没有可撤回的最近发送消息"""

    def __init__(self, message: str = "No recent message to unsend") -> None:
        super().__init__(message)


class NoPendingSnapshotError(ChatClientError):
    """没有处于撤销窗口内的清空快照"""

    def __init__(self, message: str = "Nothing to restore") -> None:
        super().__init__(message)
