"""ChangeHub -- 内存中的 Store 变更广播器

渲染层按主题订阅，每个订阅者持有一个 asyncio.Queue，支持 subscribe/unsubscribe/broadcast。
队列满的订阅者视为失效并被移除。
"""

import asyncio
from collections import defaultdict
from typing import Any

from octochat.core.models.enums import ChangeTopic
from pydantic import BaseModel, Field


class StoreChange(BaseModel):
    """Store 变更通知"""

    topic: ChangeTopic = Field(description="变更主题")
    conversation_id: str | None = Field(default=None, description="关联的会话 ID")
    detail: dict[str, Any] = Field(default_factory=dict, description="变更详情")


class ChangeHub:
    """变更广播器 -- 基于 asyncio.Queue 的发布/订阅模式"""

    def __init__(self, queue_maxsize: int = 100) -> None:
        # topic -> set of asyncio.Queue
        self._subscribers: dict[ChangeTopic, set[asyncio.Queue]] = defaultdict(set)
        self._queue_maxsize = queue_maxsize

    async def subscribe(self, topic: ChangeTopic) -> asyncio.Queue:
        """订阅指定主题的变更

        Args:
            topic: 变更主题

        Returns:
            asyncio.Queue 实例，新变更会被推送到此队列
        """
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._queue_maxsize)
        self._subscribers[topic].add(queue)
        return queue

    async def subscribe_all(self) -> asyncio.Queue:
        """用同一个队列订阅全部主题"""
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._queue_maxsize)
        for topic in ChangeTopic:
            self._subscribers[topic].add(queue)
        return queue

    async def unsubscribe(self, topic: ChangeTopic, queue: asyncio.Queue) -> None:
        """取消订阅

        Args:
            topic: 变更主题
            queue: 之前订阅时返回的队列
        """
        self._subscribers[topic].discard(queue)
        if not self._subscribers[topic]:
            del self._subscribers[topic]

    async def unsubscribe_all(self, queue: asyncio.Queue) -> None:
        """从全部主题移除队列"""
        for topic in list(self._subscribers):
            await self.unsubscribe(topic, queue)

    def subscriber_count(self, topic: ChangeTopic) -> int:
        return len(self._subscribers.get(topic, set()))

    async def broadcast(self, change: StoreChange) -> None:
        """向该主题的所有订阅者广播变更

        Args:
            change: 变更通知
        """
        topic = change.topic
        dead_queues = []
        for queue in self._subscribers.get(topic, set()):
            try:
                queue.put_nowait(change)
            except asyncio.QueueFull:
                dead_queues.append(queue)

        # 清理已满的队列
        for q in dead_queues:
            self._subscribers[topic].discard(q)
        if topic in self._subscribers and not self._subscribers[topic]:
            del self._subscribers[topic]
