"""Tests for clock-driven countdowns."""

import asyncio

import pytest

from portal_auth.services.countdown import Countdown
from tests.fakes import FakeClock


class TestRemaining:
    """Polling the countdown."""

    def test_rounds_up_to_whole_seconds(self):
        clock = FakeClock()
        countdown = Countdown(3, clock=clock)

        assert countdown.remaining == 3
        clock.advance(1.2)
        assert countdown.remaining == 2
        assert countdown.expired is False

    def test_never_negative(self):
        clock = FakeClock()
        countdown = Countdown(3, clock=clock)

        clock.advance(10)

        assert countdown.remaining == 0
        assert countdown.expired is True

    def test_zero_seconds_is_expired(self):
        assert Countdown(0, clock=FakeClock()).expired is True


class TestTicker:
    """Driving the countdown on the event loop."""

    @pytest.mark.asyncio
    async def test_ticks_each_second_then_expires(self):
        clock = FakeClock()
        countdown = Countdown(3, clock=clock)
        ticks, expired = [], []

        async def fake_sleep(seconds):
            clock.advance(seconds)

        task = countdown.start(on_tick=ticks.append, on_expire=lambda: expired.append(True), sleep=fake_sleep)
        await task

        assert ticks == [2, 1, 0]
        assert expired == [True]
        assert countdown.running is False

    @pytest.mark.asyncio
    async def test_cancel_stops_ticking(self):
        countdown = Countdown(60)
        ticks = []

        task = countdown.start(on_tick=ticks.append)
        countdown.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert ticks == []
        assert countdown.running is False
