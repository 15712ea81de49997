"""ChatRoster -- 会话列表展示缓存

未读数与预览以服务端聚合接口为准，本组件只做拉取式刷新：
refresh 由调用方发起，响应通过 RequestSequencer 丢弃过期结果。
排序：按最后消息时间降序，时间相同保持接口返回顺序（sorted 稳定）。
"""

from datetime import UTC, datetime

import structlog

from ..models.roster import ConversationSummary
from .sequencer import RequestSequencer

log = structlog.get_logger()

_ROSTER_KEY = "roster"

# 无时间戳的条目排在最后
_EPOCH = datetime.min.replace(tzinfo=UTC)


def _sort_key(entry: ConversationSummary) -> datetime:
    ts = entry.last_message_time
    if ts is None:
        return _EPOCH
    if ts.tzinfo is None:
        return ts.replace(tzinfo=UTC)
    return ts


class ChatRoster:
    """会话列表缓存"""

    def __init__(self, sequencer: RequestSequencer | None = None) -> None:
        self._sequencer = sequencer or RequestSequencer()
        self._entries: list[ConversationSummary] = []
        self._active_partner: str | None = None

    @property
    def entries(self) -> list[ConversationSummary]:
        return list(self._entries)

    def get(self, partner: str) -> ConversationSummary | None:
        for entry in self._entries:
            if entry.partner == partner:
                return entry
        return None

    def begin_refresh(self) -> int:
        """发起一次刷新，返回请求序号"""
        return self._sequencer.issue(_ROSTER_KEY)

    def apply(self, seq: int, entries: list[ConversationSummary]) -> bool:
        """应用刷新结果

        Args:
            seq: begin_refresh 返回的序号
            entries: 服务端返回的会话条目

        Returns:
            False 如果响应已过期被丢弃
        """
        if not self._sequencer.accept(_ROSTER_KEY, seq):
            log.debug("stale_roster_response_discarded", seq=seq)
            return False

        normalized = [self._zero_if_active(entry) for entry in entries]
        self._entries = sorted(normalized, key=_sort_key, reverse=True)
        return True

    def set_active(self, partner: str | None) -> None:
        """切换活跃会话，活跃会话的未读数清零"""
        self._active_partner = partner
        self._entries = [self._zero_if_active(entry) for entry in self._entries]

    def reset(self) -> None:
        self._entries = []
        self._active_partner = None

    def _zero_if_active(self, entry: ConversationSummary) -> ConversationSummary:
        if entry.partner == self._active_partner and entry.unread_count:
            return entry.model_copy(update={"unread_count": 0})
        return entry
