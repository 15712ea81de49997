"""packages/core 测试配置 -- 核心层 fixture"""

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from octochat.core.scheduler import TimerRegistry
from octochat.core.store.message_store import MessageStore


@pytest.fixture
def store() -> MessageStore:
    return MessageStore()


@pytest_asyncio.fixture
async def timers() -> AsyncGenerator[TimerRegistry, None]:
    """测试结束时取消遗留定时器"""
    registry = TimerRegistry()
    yield registry
    registry.cancel_all()
