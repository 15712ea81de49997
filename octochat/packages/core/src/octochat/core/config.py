"""配置常量模块 -- 可通过环境变量覆盖

包含输入状态超时、撤销窗口、提示存活时间等时间参数，
以及会话列表预览截断长度。
"""

import os

import structlog
from pydantic import BaseModel, Field

log = structlog.get_logger()

# 本地输入状态静默超时（秒）
DEFAULT_TYPING_TIMEOUT_S: float = 3.0

# 远端输入状态本地兜底过期（三个输入间隔）
DEFAULT_REMOTE_TYPING_EXPIRY_S: float = 9.0

# 清空聊天后的撤销窗口（秒）
DEFAULT_UNDO_WINDOW_S: float = 5.0

# 提示消息存活时间（秒）
DEFAULT_NOTICE_TTL_S: float = 5.0

# 会话列表预览截断长度
MESSAGE_PREVIEW_LENGTH: int = 40


class CoreTimings(BaseModel):
    """客户端时间参数 -- 从环境变量加载

    环境变量:
        OCTOCHAT_TYPING_TIMEOUT_S: 本地输入静默超时（默认 3）
        OCTOCHAT_REMOTE_TYPING_EXPIRY_S: 远端输入状态兜底过期（默认 9）
        OCTOCHAT_UNDO_WINDOW_S: 撤销窗口（默认 5）
        OCTOCHAT_NOTICE_TTL_S: 提示存活时间（默认 5）
    """

    typing_timeout_s: float = Field(
        default=DEFAULT_TYPING_TIMEOUT_S,
        gt=0,
        description="本地输入静默超时（秒）",
    )
    remote_typing_expiry_s: float = Field(
        default=DEFAULT_REMOTE_TYPING_EXPIRY_S,
        gt=0,
        description="远端输入状态兜底过期（秒）",
    )
    undo_window_s: float = Field(
        default=DEFAULT_UNDO_WINDOW_S,
        gt=0,
        description="清空后可撤销的倒计时（秒）",
    )
    notice_ttl_s: float = Field(
        default=DEFAULT_NOTICE_TTL_S,
        gt=0,
        description="提示消息存活时间（秒）",
    )


_ENV_FIELDS = {
    "OCTOCHAT_TYPING_TIMEOUT_S": "typing_timeout_s",
    "OCTOCHAT_REMOTE_TYPING_EXPIRY_S": "remote_typing_expiry_s",
    "OCTOCHAT_UNDO_WINDOW_S": "undo_window_s",
    "OCTOCHAT_NOTICE_TTL_S": "notice_ttl_s",
}


def load_core_timings() -> CoreTimings:
    """从环境变量加载时间参数

    无效值（非数字或非正数）记录 warning 并使用默认值，不阻塞启动。

    Returns:
        CoreTimings 实例
    """
    defaults = CoreTimings()
    kwargs: dict = {}

    for env_var, field_name in _ENV_FIELDS.items():
        val = os.environ.get(env_var)
        if not val:
            continue
        try:
            parsed = float(val)
        except ValueError:
            parsed = None
        if parsed is None or parsed <= 0:
            log.warning(
                "invalid_timing_config",
                env_var=env_var,
                value=val,
                fallback=getattr(defaults, field_name),
            )
            continue
        kwargs[field_name] = parsed

    return CoreTimings(**kwargs)
