"""传输层异常体系

均继承 ChatClientError，由 SyncEngine 统一转为用户可见的短暂提示。
"""

from octochat.core.exceptions import ChatClientError


class TransportError(ChatClientError):
    """事件发送失败（未连接、连接中断等）"""

    def __init__(self, message: str, original_error: Exception | None = None) -> None:
        """
        Args:
            message: 错误描述
            original_error: 原始异常
        """
        super().__init__(message, recoverable=True)
        self.original_error = original_error


class EndpointError(TransportError):
    """HTTP 接口失败：网络错误或非成功响应"""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        original_error: Exception | None = None,
    ) -> None:
        """
        Args:
            message: 错误描述
            status_code: HTTP 状态码，网络错误时为 None
            original_error: 原始异常
        """
        super().__init__(message, original_error=original_error)
        self.status_code = status_code


class AuthenticationError(EndpointError):
    """注册/登录被服务端拒绝（success=false）"""
