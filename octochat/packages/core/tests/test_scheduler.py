"""TimerRegistry 单元测试

测试内容：
1. 到期执行回调并释放槽位
2. 重新 arm 替换旧定时器
3. 取消（单个/按用途/全部）
4. 回调异常不会逃逸
"""

import asyncio

from octochat.core.models.enums import TimerPurpose


class TestTimerRegistry:
    """定时器槽位"""

    async def test_fires_after_delay(self, timers):
        fired: list[str] = []

        async def cb() -> None:
            fired.append("x")

        timers.arm(TimerPurpose.LOCAL_TYPING, "bob", 0.01, cb)
        assert timers.is_armed(TimerPurpose.LOCAL_TYPING, "bob")
        await asyncio.sleep(0.05)
        assert fired == ["x"]
        assert not timers.is_armed(TimerPurpose.LOCAL_TYPING, "bob")
        assert len(timers) == 0

    async def test_rearm_replaces_previous(self, timers):
        """同一槽位重新 arm：旧回调不会执行"""
        fired: list[str] = []

        async def first() -> None:
            fired.append("first")

        async def second() -> None:
            fired.append("second")

        timers.arm(TimerPurpose.LOCAL_TYPING, "bob", 0.02, first)
        timers.arm(TimerPurpose.LOCAL_TYPING, "bob", 0.03, second)
        assert len(timers) == 1
        await asyncio.sleep(0.08)
        assert fired == ["second"]

    async def test_slots_are_independent(self, timers):
        fired: list[str] = []

        def make(tag: str):
            async def cb() -> None:
                fired.append(tag)

            return cb

        timers.arm(TimerPurpose.LOCAL_TYPING, "bob", 0.01, make("local-bob"))
        timers.arm(TimerPurpose.REMOTE_TYPING, "bob", 0.01, make("remote-bob"))
        timers.arm(TimerPurpose.LOCAL_TYPING, "carol", 0.01, make("local-carol"))
        await asyncio.sleep(0.05)
        assert sorted(fired) == ["local-bob", "local-carol", "remote-bob"]

    async def test_cancel(self, timers):
        fired: list[str] = []

        async def cb() -> None:
            fired.append("x")

        timers.arm(TimerPurpose.UNDO_COUNTDOWN, "bob", 0.01, cb)
        assert timers.cancel(TimerPurpose.UNDO_COUNTDOWN, "bob") is True
        assert timers.cancel(TimerPurpose.UNDO_COUNTDOWN, "bob") is False
        await asyncio.sleep(0.03)
        assert fired == []

    async def test_cancel_purpose(self, timers):
        async def cb() -> None:
            return None

        timers.arm(TimerPurpose.REMOTE_TYPING, "bob", 1, cb)
        timers.arm(TimerPurpose.REMOTE_TYPING, "carol", 1, cb)
        timers.arm(TimerPurpose.UNDO_COUNTDOWN, "bob", 1, cb)
        assert timers.cancel_purpose(TimerPurpose.REMOTE_TYPING) == 2
        assert len(timers) == 1
        timers.cancel_all()
        assert len(timers) == 0

    async def test_deadline_uses_loop_clock(self, timers):
        async def cb() -> None:
            return None

        now = asyncio.get_running_loop().time()
        deadline = timers.arm(TimerPurpose.UNDO_COUNTDOWN, "bob", 5, cb)
        assert deadline >= now + 5
        assert timers.deadline(TimerPurpose.UNDO_COUNTDOWN, "bob") == deadline
        assert timers.deadline(TimerPurpose.UNDO_COUNTDOWN, "carol") is None

    async def test_callback_may_rearm_own_slot(self, timers):
        """回调执行前槽位已释放，可以在回调内重新 arm"""
        fired: list[int] = []

        async def cb() -> None:
            fired.append(len(fired))
            if len(fired) < 2:
                timers.arm(TimerPurpose.LOCAL_TYPING, "bob", 0.01, cb)

        timers.arm(TimerPurpose.LOCAL_TYPING, "bob", 0.01, cb)
        await asyncio.sleep(0.08)
        assert fired == [0, 1]

    async def test_callback_error_is_contained(self, timers):
        """回调异常只记录日志，不影响后续定时器"""
        fired: list[str] = []

        async def boom() -> None:
            raise RuntimeError("boom")

        async def ok() -> None:
            fired.append("ok")

        timers.arm(TimerPurpose.LOCAL_TYPING, "bob", 0.01, boom)
        timers.arm(TimerPurpose.LOCAL_TYPING, "carol", 0.02, ok)
        await asyncio.sleep(0.06)
        assert fired == ["ok"]
        assert len(timers) == 0
