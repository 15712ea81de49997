"""客户端日志配置

structlog 负责渲染；python-socketio、engineio、httpx 的标准库日志
经 ProcessorFormatter 走同一条处理器链，输出到 stderr。
客户端上下文（服务端地址、登录用户）通过 contextvars 附加到每条日志。
"""

import logging
import os
import sys
from enum import StrEnum
from typing import Any

import structlog
from pydantic import BaseModel, Field, PrivateAttr

# 依赖库 logger，非 DEBUG 时只输出 WARNING 以上
NOISY_LOGGERS = ("socketio", "engineio", "httpx", "httpcore")

_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


class LogFormat(StrEnum):
    DEV = "dev"
    JSON = "json"


class LoggingConfig(BaseModel):
    """日志配置

    环境变量:
        OCTOCHAT_LOG_LEVEL: 日志级别（默认 INFO）
        OCTOCHAT_LOG_FORMAT: dev（默认，终端可读）或 json
    """

    level: str = Field(default="INFO", description="根 logger 级别")
    format: LogFormat = Field(default=LogFormat.DEV, description="渲染模式")

    # (环境变量, 值)：加载时被忽略的非法配置，日志就绪后输出
    _rejected: list[tuple[str, str]] = PrivateAttr(default_factory=list)


def load_logging_config() -> LoggingConfig:
    """从环境变量加载日志配置，非法值回退默认值"""
    kwargs: dict = {}
    invalid: list[tuple[str, str]] = []

    if val := os.environ.get("OCTOCHAT_LOG_LEVEL"):
        if val.upper() in _LEVELS:
            kwargs["level"] = val.upper()
        else:
            invalid.append(("OCTOCHAT_LOG_LEVEL", val))

    if val := os.environ.get("OCTOCHAT_LOG_FORMAT"):
        try:
            kwargs["format"] = LogFormat(val.lower())
        except ValueError:
            invalid.append(("OCTOCHAT_LOG_FORMAT", val))

    config = LoggingConfig(**kwargs)
    config._rejected.extend(invalid)
    return config


def _renderer(log_format: LogFormat) -> structlog.types.Processor:
    if log_format == LogFormat.JSON:
        return structlog.processors.JSONRenderer(ensure_ascii=False)
    return structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())


def setup_logging(config: LoggingConfig | None = None, **context: Any) -> None:
    """初始化 structlog 与标准库 logging

    Args:
        config: 日志配置，缺省时从环境变量加载
        **context: 绑定到 contextvars 的客户端上下文，例如 server_url
    """
    config = config or load_logging_config()

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=_renderer(config.format),
            foreign_pre_chain=shared_processors,
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(config.level)

    noisy_level = logging.DEBUG if config.level == "DEBUG" else logging.WARNING
    for name in NOISY_LOGGERS:
        noisy = logging.getLogger(name)
        noisy.handlers.clear()
        noisy.propagate = True
        noisy.setLevel(noisy_level)

    structlog.contextvars.clear_contextvars()
    if context:
        structlog.contextvars.bind_contextvars(**context)

    log = structlog.get_logger()
    for env_var, value in config._rejected:
        log.warning("invalid_logging_config", env_var=env_var, value=value)
