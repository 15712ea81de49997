"""RequestSequencer -- 按 key 丢弃过期的异步响应

每次发起请求取一个单调递增序号；响应到达时只有序号大于
该 key 已应用序号的才会被接受，晚到的旧响应不会覆盖新数据。
"""

from collections import defaultdict


class RequestSequencer:
    """按 key 的单调请求计数器"""

    def __init__(self) -> None:
        self._issued: dict[str, int] = defaultdict(int)
        self._applied: dict[str, int] = defaultdict(int)

    def issue(self, key: str) -> int:
        """为新请求分配序号"""
        self._issued[key] += 1
        return self._issued[key]

    def accept(self, key: str, seq: int) -> bool:
        """判断响应是否仍然有效，有效时记为已应用"""
        if seq <= self._applied[key]:
            return False
        self._applied[key] = seq
        return True

    def latest(self, key: str) -> int:
        return self._issued[key]

    def invalidate(self, key: str) -> None:
        """作废该 key 所有在途请求（本地状态已被其他来源改写）"""
        self.accept(key, self.issue(key))
