"""ClearUndoCoordinator -- 清空聊天的撤销窗口

状态机: none → pending_undo(deadline) → none
- 只由服务端确认的 chat-cleared 进入，从不本地直接进入
- 收到 chat-restored 或倒计时到期后退出；到期仅丢弃本地快照，
  服务端的永久删除不在本组件职责内

单槽位：同一时间只跟踪一个快照，另一会话的 chat-cleared 会覆盖当前快照
并重新开始倒计时。
"""

import asyncio
from collections.abc import Awaitable, Callable
from datetime import datetime

import structlog

from .config import CoreTimings
from .exceptions import NoPendingSnapshotError
from .models.enums import TimerPurpose
from .models.message import Message
from .models.snapshot import ClearSnapshot
from .scheduler import TimerRegistry

log = structlog.get_logger()

SnapshotCallback = Callable[[ClearSnapshot], Awaitable[None]]


class ClearUndoCoordinator:
    """单槽位清空快照管理"""

    def __init__(
        self,
        timers: TimerRegistry,
        timings: CoreTimings,
        on_expire: SnapshotCallback | None = None,
    ) -> None:
        self._timers = timers
        self._timings = timings
        self._on_expire = on_expire
        self._snapshot: ClearSnapshot | None = None

    @property
    def snapshot(self) -> ClearSnapshot | None:
        return self._snapshot

    def require_snapshot(self) -> ClearSnapshot:
        if self._snapshot is None:
            raise NoPendingSnapshotError()
        return self._snapshot

    def remaining(self) -> float:
        """撤销窗口剩余秒数"""
        if self._snapshot is None:
            return 0.0
        return max(0.0, self._snapshot.deadline - asyncio.get_running_loop().time())

    def begin(
        self,
        conversation_id: str,
        partner: str,
        messages: list[Message],
        cleared_at: datetime | None = None,
    ) -> ClearSnapshot | None:
        """进入 pending_undo 并开始倒计时

        Returns:
            新快照；同一快照的重复确认返回 None（不重置倒计时）。
            同一会话再次确认但没有可清空的消息（本地已清空且未携带
            clearedMessages）也视为重复，保留原快照。
        """
        current = self._snapshot
        if (
            current is not None
            and current.conversation_id == conversation_id
            and (not messages or current.message_ids == [m.message_id for m in messages])
        ):
            log.debug("duplicate_chat_cleared_ignored", conversation_id=conversation_id)
            return None

        if current is not None:
            log.info(
                "undo_snapshot_replaced",
                previous=current.conversation_id,
                conversation_id=conversation_id,
            )
        self._timers.cancel_purpose(TimerPurpose.UNDO_COUNTDOWN)

        async def _expire() -> None:
            await self._expire(conversation_id)

        deadline = self._timers.arm(
            TimerPurpose.UNDO_COUNTDOWN,
            partner,
            self._timings.undo_window_s,
            _expire,
        )
        self._snapshot = ClearSnapshot(
            conversation_id=conversation_id,
            partner=partner,
            messages=list(messages),
            deadline=deadline,
            cleared_at=cleared_at,
        )
        log.info(
            "undo_window_started",
            conversation_id=conversation_id,
            message_count=len(messages),
            window_s=self._timings.undo_window_s,
        )
        return self._snapshot

    def complete_restore(self, partner: str) -> ClearSnapshot | None:
        """服务端确认恢复后销毁快照

        Returns:
            被销毁的快照；快照不属于该会话时返回 None
        """
        snapshot = self._snapshot
        if snapshot is None or snapshot.partner != partner:
            return None
        self._timers.cancel(TimerPurpose.UNDO_COUNTDOWN, partner)
        self._snapshot = None
        log.info("undo_snapshot_restored", conversation_id=snapshot.conversation_id)
        return snapshot

    def reset(self) -> None:
        self._timers.cancel_purpose(TimerPurpose.UNDO_COUNTDOWN)
        self._snapshot = None

    async def _expire(self, conversation_id: str) -> None:
        snapshot = self._snapshot
        if snapshot is None or snapshot.conversation_id != conversation_id:
            return
        self._snapshot = None
        log.info(
            "undo_window_expired",
            conversation_id=conversation_id,
            message_count=len(snapshot.messages),
        )
        if self._on_expire is not None:
            await self._on_expire(snapshot)
