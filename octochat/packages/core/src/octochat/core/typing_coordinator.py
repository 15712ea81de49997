"""TypingCoordinator -- 输入状态协议

本地方向（idle → typing → idle）：
- 每次按键（发送键除外）重置静默定时器；只有 idle → typing 时发出一次 typing-start
- 定时器到期、发送消息、切换会话或登出时发出一次 typing-stop

远端方向：
- typing-start 置为输入中，typing-stop 置为空闲
- 对端的 typing-stop 可能因重连丢失，本地额外设置兜底过期
"""

import asyncio
from collections.abc import Awaitable, Callable

import structlog

from .config import CoreTimings
from .models.enums import TimerPurpose
from .models.events import TypingStart, TypingStop
from .models.snapshot import TypingState
from .scheduler import TimerRegistry
from .store.protocols import EventTransport

log = structlog.get_logger()

TypingChangeCallback = Callable[[TypingState], Awaitable[None]]


class TypingCoordinator:
    """本地/远端输入状态协调器"""

    def __init__(
        self,
        transport: EventTransport,
        timers: TimerRegistry,
        timings: CoreTimings,
        on_remote_change: TypingChangeCallback | None = None,
    ) -> None:
        self._transport = transport
        self._timers = timers
        self._timings = timings
        self._on_remote_change = on_remote_change
        # recipient -> sender，本地正在向谁输入
        self._local_typing: dict[str, str] = {}
        self._remote: dict[str, TypingState] = {}

    # ============================================================
    # 本地方向
    # ============================================================

    def is_local_typing(self, recipient: str) -> bool:
        return recipient in self._local_typing

    async def keystroke(self, sender: str, recipient: str) -> None:
        """处理一次按键：必要时发出 typing-start，并重置静默定时器"""
        if recipient not in self._local_typing:
            await self._transport.emit(TypingStart(sender=sender, recipient=recipient))
            self._local_typing[recipient] = sender

        async def _quiesce() -> None:
            await self._emit_stop(recipient)

        self._timers.arm(
            TimerPurpose.LOCAL_TYPING,
            recipient,
            self._timings.typing_timeout_s,
            _quiesce,
        )

    async def stop(self, recipient: str) -> bool:
        """立即结束本地输入状态（发送消息、切换会话、登出）

        Returns:
            True 如果发出了 typing-stop
        """
        self._timers.cancel(TimerPurpose.LOCAL_TYPING, recipient)
        return await self._emit_stop(recipient)

    async def _emit_stop(self, recipient: str) -> bool:
        sender = self._local_typing.pop(recipient, None)
        if sender is None:
            return False
        await self._transport.emit(TypingStop(sender=sender, recipient=recipient))
        return True

    # ============================================================
    # 远端方向
    # ============================================================

    def remote_state(self, partner: str) -> TypingState | None:
        return self._remote.get(partner)

    def is_partner_typing(self, partner: str) -> bool:
        state = self._remote.get(partner)
        return bool(state and state.is_typing)

    async def remote_start(self, partner: str) -> TypingState:
        """对端开始输入，重置兜底过期定时器"""
        state = TypingState(
            partner=partner,
            is_typing=True,
            last_signal=asyncio.get_running_loop().time(),
        )
        self._remote[partner] = state

        async def _expire() -> None:
            log.debug("remote_typing_expired", partner=partner)
            await self._set_remote_idle(partner)

        self._timers.arm(
            TimerPurpose.REMOTE_TYPING,
            partner,
            self._timings.remote_typing_expiry_s,
            _expire,
        )
        return state

    async def remote_stop(self, partner: str) -> TypingState:
        self._timers.cancel(TimerPurpose.REMOTE_TYPING, partner)
        return await self._set_remote_idle(partner, notify=False)

    async def _set_remote_idle(self, partner: str, notify: bool = True) -> TypingState:
        previous = self._remote.get(partner)
        state = TypingState(
            partner=partner,
            is_typing=False,
            last_signal=previous.last_signal if previous else 0.0,
        )
        self._remote[partner] = state
        if notify and self._on_remote_change is not None:
            await self._on_remote_change(state)
        return state

    def reset(self) -> None:
        """登出时清理全部状态与定时器（不发出事件）"""
        self._timers.cancel_purpose(TimerPurpose.LOCAL_TYPING)
        self._timers.cancel_purpose(TimerPurpose.REMOTE_TYPING)
        self._local_typing.clear()
        self._remote.clear()
