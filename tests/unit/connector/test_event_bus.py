"""Tests for the event bus and dispatch lanes."""

import asyncio
from datetime import UTC, datetime
from decimal import Decimal
from unittest.mock import Mock

import pytest

from src.connector.enums import TradeSide
from src.connector.model import Trade
from src.connector.service.event_bus import EventBus
from src.connector.service.lanes import ChannelLanes


def make_trade(trade_id: str = "1", side: TradeSide = TradeSide.BUY) -> Trade:
    return Trade(
        trade_id=trade_id,
        pair="BTCUSD",
        price=Decimal("50000"),
        amount=Decimal("0.5"),
        side=side,
        timestamp=datetime(2024, 1, 1, tzinfo=UTC),
    )


class TestEventBus:
    """Test multicast delivery."""

    def test_handlers_run_in_registration_order(self):
        """Every handler sees the event, first registered first."""
        bus = EventBus()
        calls: list[str] = []
        bus.on_trade(lambda t: calls.append("first"))
        bus.on_trade(lambda t: calls.append("second"))

        delivered = bus.publish_trade(make_trade())

        assert calls == ["first", "second"]
        assert delivered == 2

    def test_failing_handler_does_not_block_others(self):
        """A raising subscriber is logged and skipped."""
        bus = EventBus()
        after = Mock()
        bus.on_trade(Mock(side_effect=RuntimeError("boom")))
        bus.on_trade(after)

        delivered = bus.publish_trade(make_trade())

        after.assert_called_once()
        assert delivered == 1

    def test_remove_handler(self):
        """A removed handler no longer receives events."""
        bus = EventBus()
        handler = Mock()
        handle = bus.on_trade(handler)

        assert bus.remove(handle) is True
        assert bus.remove(handle) is False

        bus.publish_trade(make_trade())
        handler.assert_not_called()

    def test_topics_are_independent(self):
        """Trade handlers never see candles and vice versa."""
        bus = EventBus()
        candle_handler = Mock()
        bus.on_candle(candle_handler)

        bus.publish_trade(make_trade())

        candle_handler.assert_not_called()
        assert len(bus.trades) == 0
        assert len(bus.candles) == 1

    def test_handler_may_unsubscribe_while_publishing(self):
        """Publishing iterates over a snapshot of the handler list."""
        bus = EventBus()
        calls: list[str] = []
        handles = []

        def once(trade: Trade) -> None:
            calls.append(trade.trade_id)
            bus.remove(handles[0])

        handles.append(bus.on_trade(once))
        bus.publish_trade(make_trade("1"))
        bus.publish_trade(make_trade("2"))

        assert calls == ["1"]


class TestChannelLanes:
    """Test per-channel sequential dispatch."""

    @pytest.mark.asyncio
    async def test_items_of_one_channel_keep_order(self):
        """A lane processes its items strictly in submission order."""
        lanes = ChannelLanes()
        seen: list[int] = []

        for i in range(5):
            lanes.submit(1, seen.append, i)
        await lanes.drain()

        assert seen == [0, 1, 2, 3, 4]
        await lanes.close()

    @pytest.mark.asyncio
    async def test_one_worker_per_channel(self):
        """Lanes are created lazily, one per key."""
        lanes = ChannelLanes()

        lanes.submit(1, Mock(), "a")
        lanes.submit(2, Mock(), "b")
        lanes.submit(1, Mock(), "c")

        assert len(lanes) == 2
        await lanes.close()
        assert len(lanes) == 0

    @pytest.mark.asyncio
    async def test_failure_does_not_stop_lane(self):
        """An item that raises is logged and the lane carries on."""
        lanes = ChannelLanes()
        seen: list[str] = []

        def handle(item: str) -> None:
            if item == "bad":
                raise ValueError(item)
            seen.append(item)

        for item in ("ok-1", "bad", "ok-2"):
            lanes.submit(7, handle, item)
        await lanes.drain()

        assert seen == ["ok-1", "ok-2"]
        await lanes.close()

    @pytest.mark.asyncio
    async def test_close_cancels_pending_items(self):
        """Closing drops whatever has not been processed yet."""
        lanes = ChannelLanes()
        handler = Mock()

        lanes.submit(1, handler, "never")
        await lanes.close()
        await asyncio.sleep(0)

        handler.assert_not_called()

    @pytest.mark.asyncio
    async def test_release_stops_one_lane(self):
        """Releasing a key drops its lane and leaves the others running."""
        lanes = ChannelLanes()
        released, kept = Mock(), Mock()

        lanes.submit(1, released, "dropped")
        lanes.submit(2, kept, "kept")

        assert lanes.release(1)
        assert not lanes.release(1)
        assert len(lanes) == 1
        await lanes.drain()

        released.assert_not_called()
        kept.assert_called_once_with("kept")
        await lanes.close()

    @pytest.mark.asyncio
    async def test_released_key_gets_a_fresh_lane(self):
        lanes = ChannelLanes()
        seen: list[str] = []
        lanes.submit(1, seen.append, "old")
        lanes.release(1)

        lanes.submit(1, seen.append, "new")
        await lanes.drain()

        assert seen == ["new"]
        await lanes.close()
