import asyncio
from datetime import datetime, timedelta, timezone

from core.warmlink.clock_sync import ClockSyncCoordinator
from core.warmlink.exceptions import DeviceConnectionError

FIXED_NOW = datetime(2024, 3, 10, 7, 30, tzinfo=timezone(timedelta(hours=2)))


def test_current_clock_reports_epoch_and_east_positive_offset(fake_client):
    sync = ClockSyncCoordinator(fake_client, now=lambda: FIXED_NOW)
    epoch, offset = sync.current_clock()
    assert epoch == int(FIXED_NOW.timestamp())
    assert offset == 120


def test_west_of_utc_offset_is_negative(fake_client):
    now = datetime(2024, 1, 1, 12, 0, tzinfo=timezone(timedelta(hours=-5)))
    sync = ClockSyncCoordinator(fake_client, now=lambda: now)
    assert sync.current_clock()[1] == -300


def test_sync_time_posts_clock_and_accepts_redirect(make_client):
    client = make_client(sync_time=302)
    sync = ClockSyncCoordinator(client, now=lambda: FIXED_NOW)
    assert asyncio.run(sync.sync_time()) is True
    assert client.calls_to("sync_time") == [(int(FIXED_NOW.timestamp()), 120)]


def test_sync_time_failure_is_not_raised(make_client):
    client = make_client(sync_time=DeviceConnectionError("down"))
    sync = ClockSyncCoordinator(client, now=lambda: FIXED_NOW)
    assert asyncio.run(sync.sync_time()) is False
    assert sync.attempts == 1


def test_error_status_counts_as_failure(make_client):
    sync = ClockSyncCoordinator(make_client(sync_time=500), now=lambda: FIXED_NOW)
    assert asyncio.run(sync.sync_time()) is False


def test_only_explicit_false_triggers_sync(fake_client):
    sync = ClockSyncCoordinator(fake_client, now=lambda: FIXED_NOW)

    async def main():
        assert await sync.observe(True) is False
        assert await sync.observe(None) is False
        assert await sync.observe(False) is True

    asyncio.run(main())
    assert len(fake_client.calls_to("sync_time")) == 1


def test_refresh_runs_after_sync_and_nested_observation_is_skipped(fake_client):
    sync = ClockSyncCoordinator(fake_client, now=lambda: FIXED_NOW)
    order = []

    async def refresh():
        order.append(("refresh", len(fake_client.calls_to("sync_time"))))
        # Device still reports unsynced: must not start a second cycle
        assert await sync.observe(False, refresh) is False

    asyncio.run(sync.observe(False, refresh))
    assert order == [("refresh", 1)]
    assert sync.attempts == 1
    assert sync.in_flight is False
