"""NoticeBoard -- 短暂的用户可见提示

输入校验失败、前置条件不满足、网络失败等都以定时消失的提示呈现，
不阻塞任何操作。过期按单调时钟判断，不占用定时器。
"""

import time
from collections.abc import Callable

from octochat.core.models.enums import ChangeTopic, NoticeLevel
from pydantic import BaseModel, Field

from .change_hub import ChangeHub, StoreChange


class Notice(BaseModel):
    """单条提示"""

    text: str
    level: NoticeLevel = NoticeLevel.INFO
    expires_at: float = Field(description="过期时间（单调时钟）")


class NoticeBoard:
    """提示栏"""

    def __init__(
        self,
        hub: ChangeHub,
        ttl_s: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._hub = hub
        self._ttl_s = ttl_s
        self._clock = clock
        self._notices: list[Notice] = []

    async def post(self, text: str, level: NoticeLevel = NoticeLevel.INFO) -> Notice:
        notice = Notice(text=text, level=level, expires_at=self._clock() + self._ttl_s)
        self._notices.append(notice)
        self._prune()
        await self._hub.broadcast(
            StoreChange(
                topic=ChangeTopic.NOTICE,
                detail={"text": text, "level": level.value},
            )
        )
        return notice

    def active(self) -> list[Notice]:
        """未过期的提示，按发布顺序"""
        self._prune()
        return list(self._notices)

    @property
    def latest(self) -> Notice | None:
        notices = self.active()
        return notices[-1] if notices else None

    def _prune(self) -> None:
        now = self._clock()
        self._notices = [n for n in self._notices if n.expires_at > now]
