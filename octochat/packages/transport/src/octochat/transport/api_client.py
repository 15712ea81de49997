"""ChatApiClient -- HTTP 接口封装

通过 httpx.AsyncClient 调用注册/登录、历史消息、用户搜索与会话列表接口。
网络错误与非成功响应统一包装为 EndpointError，不自动重试。
"""

from typing import Any, TypeVar

import httpx
import structlog
from octochat.core.models.message import Message
from octochat.core.models.roster import ConversationSummary, UserIdentity, UserSummary
from pydantic import BaseModel

from .exceptions import AuthenticationError, EndpointError

log = structlog.get_logger()

ModelT = TypeVar("ModelT", bound=BaseModel)


def _parse_items(data: Any, key: str, model: type[ModelT]) -> list[ModelT]:
    """解析列表响应，接口既可能返回 {key: [...]} 也可能直接返回列表"""
    if isinstance(data, dict):
        data = data.get(key, [])
    if not isinstance(data, list):
        raise EndpointError(f"响应格式错误：期望列表，实际为 {type(data).__name__}")
    try:
        return [model.model_validate(item) for item in data]
    except ValueError as e:
        raise EndpointError(f"响应格式错误：{key}", original_error=e) from e


class ChatApiClient:
    """聊天服务端 HTTP 客户端"""

    def __init__(
        self,
        base_url: str = "http://localhost:3000",
        timeout_s: int = 10,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """初始化 HTTP 客户端

        Args:
            base_url: 服务端基础 URL
            timeout_s: 请求超时（秒）
            http_client: 外部注入的 httpx 客户端（测试用 MockTransport）
        """
        self._base_url = base_url.rstrip("/")
        self._client = http_client or httpx.AsyncClient(
            base_url=self._base_url,
            timeout=timeout_s,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "ChatApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # ============================================================
    # 认证
    # ============================================================

    async def register(
        self,
        username: str,
        email: str,
        password: str,
    ) -> tuple[UserIdentity, str]:
        """注册新用户

        Returns:
            (身份, 服务端提示)

        Raises:
            AuthenticationError: 服务端拒绝注册
            EndpointError: 网络错误或响应格式错误
        """
        return await self._authenticate(
            "/api/register",
            {"username": username, "email": email, "password": password},
            fallback_error="Registration failed",
        )

    async def login(
        self,
        user_id: str | None = None,
        email: str | None = None,
        password: str | None = None,
    ) -> tuple[UserIdentity, str]:
        """学号登录或邮箱+密码登录"""
        if user_id:
            body = {"userId": user_id}
        else:
            body = {"email": email, "password": password}
        return await self._authenticate("/api/login", body, fallback_error="Login failed")

    async def _authenticate(
        self,
        path: str,
        body: dict[str, Any],
        fallback_error: str,
    ) -> tuple[UserIdentity, str]:
        response = await self._send("POST", path, json=body)
        data = self._decode(response, path)
        if not isinstance(data, dict):
            raise EndpointError(f"{fallback_error}: unexpected response", response.status_code)

        if not data.get("success"):
            raise AuthenticationError(
                data.get("error") or fallback_error,
                status_code=response.status_code,
            )

        try:
            user = UserIdentity.model_validate(data.get("user") or {})
        except ValueError as e:
            raise EndpointError(
                f"{fallback_error}: invalid user payload",
                status_code=response.status_code,
                original_error=e,
            ) from e
        return user, data.get("message", "")

    # ============================================================
    # 数据接口
    # ============================================================

    async def fetch_history(self, conversation_id: str) -> list[Message]:
        """获取会话历史（服务端不存在时会创建会话）"""
        path = f"/api/messages/{conversation_id}"
        data = await self._get_json(path)
        return _parse_items(data, "messages", Message)

    async def search_users(self, query: str, current_user: str) -> list[UserSummary]:
        """按关键词搜索用户，服务端排除 current_user"""
        data = await self._get_json(
            "/api/users/search",
            params={"query": query, "currentUser": current_user},
        )
        return _parse_items(data, "users", UserSummary)

    async def fetch_roster(self, username: str) -> list[ConversationSummary]:
        """获取聚合会话列表"""
        data = await self._get_json(f"/api/chatlist/{username}")
        return _parse_items(data, "chats", ConversationSummary)

    # ============================================================
    # 内部
    # ============================================================

    async def _get_json(self, path: str, **kwargs) -> Any:
        response = await self._send("GET", path, **kwargs)
        if not response.is_success:
            log.warning(
                "endpoint_non_success",
                path=path,
                status_code=response.status_code,
            )
            raise EndpointError(
                f"Request failed with status {response.status_code}",
                status_code=response.status_code,
            )
        return self._decode(response, path)

    async def _send(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            return await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            log.warning(
                "endpoint_request_failed",
                method=method,
                path=path,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise EndpointError(
                f"Network error: {e}",
                original_error=e,
            ) from e

    @staticmethod
    def _decode(response: httpx.Response, path: str) -> Any:
        try:
            return response.json()
        except ValueError as e:
            log.warning("endpoint_invalid_json", path=path, status_code=response.status_code)
            raise EndpointError(
                "Invalid response from server",
                status_code=response.status_code,
                original_error=e,
            ) from e
