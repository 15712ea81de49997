"""TimerRegistry -- 可取消、可重置的定时任务

定时器按 (用途, 对端 ID) 占用槽位，同一槽位同时最多一个：
重新 arm 会取消并替换旧定时器。到期回调在独立 asyncio.Task 中执行，
执行前先移出注册表，因此回调内可以安全地重新 arm 同一槽位。
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import structlog

from .models.enums import TimerPurpose

log = structlog.get_logger()

TimerCallback = Callable[[], Awaitable[None]]
TimerSlot = tuple[TimerPurpose, str]


@dataclass
class _Timer:
    task: asyncio.Task
    deadline: float


class TimerRegistry:
    """按槽位管理的定时器集合"""

    def __init__(self) -> None:
        self._timers: dict[TimerSlot, _Timer] = {}

    def arm(
        self,
        purpose: TimerPurpose,
        key: str,
        delay: float,
        callback: TimerCallback,
    ) -> float:
        """设置（或重置）定时器

        Args:
            purpose: 定时器用途
            key: 对端 ID
            delay: 延迟秒数
            callback: 到期时执行的协程函数

        Returns:
            截止时间（loop.time()）
        """
        slot = (purpose, key)
        self.cancel(purpose, key)

        loop = asyncio.get_running_loop()
        deadline = loop.time() + delay
        task = loop.create_task(self._run(slot, delay, callback))
        self._timers[slot] = _Timer(task=task, deadline=deadline)
        return deadline

    def cancel(self, purpose: TimerPurpose, key: str) -> bool:
        """取消定时器，槽位为空时返回 False"""
        timer = self._timers.pop((purpose, key), None)
        if timer is None:
            return False
        timer.task.cancel()
        return True

    def cancel_purpose(self, purpose: TimerPurpose) -> int:
        """取消某一用途的全部定时器"""
        slots = [slot for slot in self._timers if slot[0] == purpose]
        for slot in slots:
            self.cancel(*slot)
        return len(slots)

    def cancel_all(self) -> None:
        for slot in list(self._timers):
            self.cancel(*slot)

    def is_armed(self, purpose: TimerPurpose, key: str) -> bool:
        return (purpose, key) in self._timers

    def deadline(self, purpose: TimerPurpose, key: str) -> float | None:
        timer = self._timers.get((purpose, key))
        return timer.deadline if timer else None

    def __len__(self) -> int:
        return len(self._timers)

    async def _run(self, slot: TimerSlot, delay: float, callback: TimerCallback) -> None:
        await asyncio.sleep(delay)

        current = self._timers.get(slot)
        if current is None or current.task is not asyncio.current_task():
            return
        del self._timers[slot]

        try:
            await callback()
        except Exception as e:
            log.error(
                "timer_callback_failed",
                purpose=slot[0].value,
                key=slot[1],
                error=str(e),
                error_type=type(e).__name__,
            )
