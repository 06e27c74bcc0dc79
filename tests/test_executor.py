"""Tests for the schedule-driven execution loops."""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import patch
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import pytest

from pykron.cron.errors import EmptyCandidateSetError
from pykron.cron.executor import do_forever, do_once, do_while, ticks
from pykron.cron.schedule import KronScheduler, build_schedule


class SoonScheduler(KronScheduler):
    """Scheduler whose next instant is a fixed delay after each query."""

    def __init__(self, delay: float) -> None:
        super().__init__(timezone.utc)
        self._delay = timedelta(seconds=delay)

    def next(self, relatively: datetime | None = None) -> datetime | None:
        return self.localize(relatively) + self._delay


class TestDoOnce:
    """Tests for do_once."""

    @pytest.mark.asyncio
    async def test_returns_block_result(self) -> None:
        """An unconstrained schedule runs the block right away."""
        result = await do_once("* * * * *", lambda moment: 42)
        assert result == 42

    @pytest.mark.asyncio
    async def test_async_block(self) -> None:
        async def block(moment: datetime) -> str:
            return moment.isoformat()

        result = await do_once(build_schedule("* * * * *", tz="UTC"), block)
        assert result.endswith("+00:00")

    @pytest.mark.asyncio
    async def test_waits_until_next_instant(self) -> None:
        received: list[datetime] = []

        await do_once(SoonScheduler(0.05), received.append)

        assert len(received) == 1
        # Event loop timers run on the monotonic clock, allow a little skew
        assert datetime.now(timezone.utc) >= received[0] - timedelta(milliseconds=10)

    @pytest.mark.asyncio
    async def test_no_next_occurrence(self) -> None:
        """A schedule that never matches raises instead of calling the block."""
        calls: list[datetime] = []

        with pytest.raises(EmptyCandidateSetError):
            await do_once("0 0 0 30 2", calls.append)

        assert calls == []

    @pytest.mark.asyncio
    async def test_cancel_while_waiting(self) -> None:
        """Cancelling during the wait never runs the block."""
        calls: list[datetime] = []
        task = asyncio.create_task(do_once(SoonScheduler(3600), calls.append))

        await asyncio.sleep(0.01)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert calls == []


class TestDoWhile:
    """Tests for do_while."""

    @pytest.mark.asyncio
    async def test_stops_when_block_returns_false(self) -> None:
        calls: list[datetime] = []

        def block(moment: datetime) -> bool:
            calls.append(moment)
            return len(calls) < 3

        await do_while("* * * * *", block)

        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_instants_are_non_decreasing(self) -> None:
        calls: list[datetime] = []

        async def block(moment: datetime) -> bool:
            calls.append(moment)
            return len(calls) < 5

        await do_while(SoonScheduler(0.001), block)

        assert calls == sorted(calls)

    @pytest.mark.asyncio
    async def test_ends_when_schedule_never_matches(self) -> None:
        calls: list[datetime] = []

        await asyncio.wait_for(do_while("0 0 0 31 4", calls.append), timeout=1)

        assert calls == []


class TestDoForever:
    """Tests for do_forever."""

    @pytest.mark.asyncio
    async def test_runs_until_cancelled(self) -> None:
        calls: list[datetime] = []

        async def block(moment: datetime) -> None:
            calls.append(moment)

        task = asyncio.create_task(do_forever("* * * * *", block))
        while len(calls) < 3:
            await asyncio.sleep(0.001)

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        count = len(calls)
        await asyncio.sleep(0.02)
        assert len(calls) == count

    @pytest.mark.asyncio
    async def test_ignores_falsy_results(self) -> None:
        calls: list[datetime] = []

        def block(moment: datetime) -> None:
            calls.append(moment)
            if len(calls) == 4:
                raise RuntimeError("enough")

        with pytest.raises(RuntimeError, match="enough"):
            await do_forever("* * * * *", block)

        assert len(calls) == 4


class TestTicks:
    """Tests for the async iterator form."""

    @pytest.mark.asyncio
    async def test_yields_instants(self) -> None:
        moments = []
        async for moment in ticks("* * * * *"):
            moments.append(moment)
            if len(moments) == 3:
                break

        assert len(moments) == 3
        assert moments == sorted(moments)

    @pytest.mark.asyncio
    async def test_stops_when_schedule_never_matches(self) -> None:
        moments = [moment async for moment in ticks("0 0 0 30 2")]
        assert moments == []


class FakeClock:
    """Clock that only moves when the executor sleeps."""

    def __init__(self, start: datetime) -> None:
        self.current = start
        self.delays: list[float] = []

    async def sleep(self, delay: float) -> None:
        self.delays.append(delay)
        self.current += timedelta(seconds=delay)

    def attach(self, scheduler: KronScheduler, monkeypatch) -> None:
        monkeypatch.setattr(scheduler, "now", lambda: self.current.astimezone(scheduler.timezone))


class TestDaylightSavingWaits:
    """Sleep lengths across the 2021 Europe/Berlin clock changes."""

    @pytest.fixture
    def berlin(self) -> ZoneInfo:
        try:
            return ZoneInfo("Europe/Berlin")
        except ZoneInfoNotFoundError:
            pytest.skip("tz database not available")

    @pytest.mark.asyncio
    async def test_do_once_sleeps_real_hours_across_fall_back(self, berlin, monkeypatch) -> None:
        """01:00 CEST to 04:00 CET on Oct 31 is a four hour sleep."""
        scheduler = build_schedule("0 0 4 * *", tz=berlin)
        clock = FakeClock(datetime(2021, 10, 30, 23, tzinfo=timezone.utc))
        clock.attach(scheduler, monkeypatch)

        with patch("pykron.cron.executor.asyncio.sleep", new=clock.sleep):
            moment = await do_once(scheduler, lambda moment: moment)

        assert clock.delays == [14400.0]
        assert moment == datetime(2021, 10, 31, 3, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_do_once_sleeps_real_hours_across_spring_forward(
        self, berlin, monkeypatch
    ) -> None:
        """00:00 CET to 04:00 CEST on Mar 28 is a three hour sleep."""
        scheduler = build_schedule("0 0 4 * *", tz=berlin)
        clock = FakeClock(datetime(2021, 3, 27, 23, tzinfo=timezone.utc))
        clock.attach(scheduler, monkeypatch)

        with patch("pykron.cron.executor.asyncio.sleep", new=clock.sleep):
            moment = await do_once(scheduler, lambda moment: moment)

        assert clock.delays == [10800.0]
        assert moment == datetime(2021, 3, 28, 2, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_do_while_fires_each_moment_once(self, berlin, monkeypatch) -> None:
        """The loop wakes exactly at each 04:00 and never repeats one."""
        scheduler = build_schedule("0 0 4 * *", tz=berlin)
        clock = FakeClock(datetime(2021, 10, 30, 23, tzinfo=timezone.utc))
        clock.attach(scheduler, monkeypatch)
        fired: list[datetime] = []

        def block(moment: datetime) -> bool:
            # The block runs at the instant it was scheduled for
            assert clock.current == moment
            fired.append(moment)
            return len(fired) < 3

        with patch("pykron.cron.executor.asyncio.sleep", new=clock.sleep):
            await do_while(scheduler, block)

        assert fired == [
            datetime(2021, 10, 31, 4, tzinfo=berlin),
            datetime(2021, 11, 1, 4, tzinfo=berlin),
            datetime(2021, 11, 2, 4, tzinfo=berlin),
        ]
        assert len(set(fired)) == 3
        long_waits = [delay for delay in clock.delays if delay > 1]
        assert long_waits == pytest.approx([14399.999, 86399.999, 86399.999])
