"""SyncEngine 输入状态测试"""

import asyncio

from octochat.core.models import OutboundEventType, RemoteTypingStartEvent, RemoteTypingStopEvent
from octochat.core.models.enums import ChangeTopic


class TestLocalTyping:
    """本地输入"""

    async def test_burst_produces_one_pair(self, chatting_engine, transport, timings):
        engine = chatting_engine
        for _ in range(10):
            await engine.notify_typing()
        await asyncio.sleep(timings.typing_timeout_s * 3)
        assert transport.types() == [OutboundEventType.TYPING_START, OutboundEventType.TYPING_STOP]

    async def test_typing_failure_is_silent(self, chatting_engine, transport):
        """输入信号发送失败不产生提示"""
        engine = chatting_engine
        notice = engine.notices.latest
        transport.fail = True
        await engine.notify_typing()
        assert engine.notices.latest == notice


class TestRemoteTyping:
    """对端输入"""

    async def test_indicator_follows_partner(self, chatting_engine):
        engine = chatting_engine
        queue = await engine.hub.subscribe(ChangeTopic.TYPING)

        await engine.dispatch(RemoteTypingStartEvent(sender="bob"))
        assert engine.is_partner_typing
        await engine.dispatch(RemoteTypingStopEvent(sender="bob"))
        assert not engine.is_partner_typing

        details = [queue.get_nowait().detail for _ in range(2)]
        assert details == [
            {"partner": "bob", "is_typing": True},
            {"partner": "bob", "is_typing": False},
        ]

    async def test_other_partner_typing_not_shown(self, chatting_engine):
        engine = chatting_engine
        await engine.dispatch(RemoteTypingStartEvent(sender="carol"))
        assert not engine.is_partner_typing
        assert engine.typing.is_partner_typing("carol")

    async def test_lost_stop_expires(self, chatting_engine, timings):
        """对端 typing-stop 丢失时兜底过期"""
        engine = chatting_engine
        queue = await engine.hub.subscribe(ChangeTopic.TYPING)
        await engine.dispatch(RemoteTypingStartEvent(sender="bob"))
        await asyncio.sleep(timings.remote_typing_expiry_s * 2)
        assert not engine.is_partner_typing
        assert queue.qsize() == 2
