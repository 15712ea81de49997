"""MessageStore 内存实现

按会话 ID 分片的有序、去重消息集合。
- append 幂等：同一 message_id 重复到达是 no-op（传输层至少一次投递）
- 投递状态只前进不回退
- unsent 标记不可逆；对未知消息的撤回会留下墓碑，迟到的消息按已撤回入库

所有变更方法返回 bool 表示是否真正修改了状态，协议不一致一律静默吸收。
"""

import structlog

from ..models.enums import DeliveryStatus, can_advance
from ..models.message import Message

log = structlog.get_logger()


class MessageStore:
    """按会话分片的消息存储"""

    def __init__(self) -> None:
        # conversation_id -> (message_id -> Message)，dict 保持插入顺序
        self._conversations: dict[str, dict[str, Message]] = {}
        # 已撤回但尚未到达的消息 ID，消息入库后移除
        self._unsent_tombstones: set[str] = set()
        # conversation_id -> (message_id -> 到达序号)，只记录 append 入库的消息
        self._arrivals: dict[str, dict[str, int]] = {}
        self._arrival_seq = 0

    def messages(self, conversation_id: str) -> list[Message]:
        """按到达顺序返回会话消息"""
        return list(self._conversations.get(conversation_id, {}).values())

    def get(self, conversation_id: str, message_id: str) -> Message | None:
        return self._conversations.get(conversation_id, {}).get(message_id)

    def locate(self, message_id: str) -> str | None:
        """查找消息所在的会话 ID（status/unsent 事件只携带 message_id）"""
        for conv_id, messages in self._conversations.items():
            if message_id in messages:
                return conv_id
        return None

    def conversation_ids(self) -> list[str]:
        return list(self._conversations)

    def append(self, conversation_id: str, message: Message) -> bool:
        """按到达顺序追加消息

        Returns:
            False 如果该 message_id 已存在（幂等 no-op）
        """
        messages = self._conversations.setdefault(conversation_id, {})
        if message.message_id in messages:
            log.debug(
                "duplicate_message_ignored",
                conversation_id=conversation_id,
                message_id=message.message_id,
            )
            return False

        message = self._apply_tombstone(message)
        messages[message.message_id] = message
        self._arrival_seq += 1
        arrivals = self._arrivals.setdefault(conversation_id, {})
        arrivals[message.message_id] = self._arrival_seq
        return True

    def arrival_mark(self) -> int:
        """当前到达序号，作为 replace_all 的 since 参数"""
        return self._arrival_seq

    def update_status(
        self,
        conversation_id: str,
        message_id: str,
        status: DeliveryStatus,
    ) -> bool:
        """单调推进投递状态，回退或未知消息静默拒绝"""
        message = self.get(conversation_id, message_id)
        if message is None:
            log.debug(
                "status_update_unknown_message",
                conversation_id=conversation_id,
                message_id=message_id,
            )
            return False
        if not can_advance(message.status, status):
            log.debug(
                "status_regression_ignored",
                message_id=message_id,
                current=message.status.value,
                requested=status.value,
            )
            return False

        self._conversations[conversation_id][message_id] = message.model_copy(
            update={"status": status}
        )
        return True

    def mark_unsent(self, conversation_id: str, message_id: str) -> bool:
        """设置撤回标记（不可逆）"""
        message = self.get(conversation_id, message_id)
        if message is None or message.unsent:
            return False
        self._conversations[conversation_id][message_id] = message.model_copy(
            update={"unsent": True}
        )
        return True

    def remember_unsent(self, message_id: str) -> None:
        """记录尚未到达的已撤回消息"""
        self._unsent_tombstones.add(message_id)

    def replace_all(
        self,
        conversation_id: str,
        messages: list[Message],
        since: int | None = None,
    ) -> None:
        """用历史记录整体替换会话内容（切换会话或重新加载时使用）

        重复 ID 只保留首条；本地已撤回的消息保持撤回。

        Args:
            conversation_id: 会话 ID
            messages: 历史接口返回的消息
            since: 发起请求时的 arrival_mark()；此后 append 入库但不在历史中的消息
                保留并排在历史之后
        """
        current = self._conversations.get(conversation_id, {})
        fresh: dict[str, Message] = {}
        for message in messages:
            if message.message_id in fresh:
                continue
            local = current.get(message.message_id)
            if local is not None and local.unsent and not message.unsent:
                message = message.model_copy(update={"unsent": True})
            fresh[message.message_id] = self._apply_tombstone(message)

        arrivals = self._arrivals.get(conversation_id, {})
        kept: dict[str, int] = {}
        if since is not None:
            for message_id, seq in arrivals.items():
                if seq <= since or message_id not in current:
                    continue
                kept[message_id] = seq
                if message_id not in fresh:
                    log.debug(
                        "live_message_kept_over_history",
                        conversation_id=conversation_id,
                        message_id=message_id,
                    )
                    fresh[message_id] = current[message_id]
        self._conversations[conversation_id] = fresh
        self._arrivals[conversation_id] = kept

    def clear(self, conversation_id: str) -> list[Message]:
        """清空会话并返回被移除的消息（用于构建清空快照）"""
        removed = self._conversations.get(conversation_id, {})
        self._conversations[conversation_id] = {}
        self._arrivals.pop(conversation_id, None)
        return list(removed.values())

    def restore(self, conversation_id: str, messages: list[Message]) -> None:
        """恢复被清空的消息

        恢复的消息保持原顺序和 ID，排在清空后新到达的消息之前；
        已存在的 ID 保留当前版本。
        """
        current = self._conversations.get(conversation_id, {})
        restored: dict[str, Message] = {}
        for message in messages:
            if message.message_id in current or message.message_id in restored:
                continue
            restored[message.message_id] = message
        restored.update(current)
        self._conversations[conversation_id] = restored

    def reset(self) -> None:
        """登出时清空全部会话"""
        self._conversations.clear()
        self._unsent_tombstones.clear()
        self._arrivals.clear()

    def _apply_tombstone(self, message: Message) -> Message:
        """消费墓碑：已撤回消息迟到时入库即为撤回"""
        if message.message_id not in self._unsent_tombstones:
            return message
        self._unsent_tombstones.discard(message.message_id)
        if message.unsent:
            return message
        return message.model_copy(update={"unsent": True})
