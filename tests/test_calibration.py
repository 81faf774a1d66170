import asyncio
from datetime import timedelta, timezone

from core.warmlink.calibration import (
    CalibrationSessionController,
    calibration_controls,
    describe_record,
    present_calibration,
)
from core.warmlink.clock_sync import ClockSyncCoordinator
from core.warmlink.exceptions import DeviceCommandError, DeviceConnectionError
from core.warmlink.formatting import PLACEHOLDER
from core.warmlink.messages import CalibrationUpdate
from core.warmlink.models import CalibrationRecord, CalibrationSession, CalibrationState

CET = timezone(timedelta(hours=1))

SNAPSHOT = {
    "state": "running",
    "current_k": 1.1,
    "target_temp_c": 25.0,
    "elapsed_seconds": 90,
    "time_synced": True,
    "auto_enabled": True,
    "auto_start_min": 120,
    "auto_end_min": 360,
    "records": [
        {"epoch_utc": 1700000000, "k": 1.234, "ambient_c": 15.0, "target_c": 25.0, "warmup_seconds": 3725},
    ],
}


def test_controls_follow_state_sync_and_in_flight():
    idle = CalibrationSession(state=CalibrationState.IDLE, time_synced=True)
    running = CalibrationSession(state=CalibrationState.RUNNING, time_synced=True)

    assert calibration_controls(idle).start_enabled is True
    assert calibration_controls(idle).cancel_enabled is False
    assert calibration_controls(running).start_enabled is False
    assert calibration_controls(running).cancel_enabled is True
    assert calibration_controls(CalibrationSession(time_synced=False)).start_enabled is False
    assert calibration_controls(running, in_flight=True).cancel_enabled is False


def test_present_calibration_formats_records():
    session = CalibrationSession().merge(CalibrationUpdate.from_payload(SNAPSHOT))
    view = present_calibration(session, tz=CET)
    assert view.state == "running"
    assert view.current_k == "1.10"
    assert view.elapsed == "1m 30s"
    assert view.auto_start == "02:00"
    assert view.auto_end == "06:00"
    assert view.cancel_enabled is True
    record = view.records[0]
    assert record.k == "1.23"
    assert record.warmup == "1h 2m"
    assert record.when == "2023-11-14 23:13"


def test_pull_then_push_merge(make_client):
    controller = CalibrationSessionController(make_client(get_calibration=SNAPSHOT), tz=CET)

    async def main():
        await controller.refresh_from_pull()
        await controller.apply_push_update({"type": "calibration_update", "elapsed_seconds": 120, "state": 7})

    asyncio.run(main())
    assert controller.session.state is CalibrationState.RUNNING
    assert controller.session.elapsed_seconds == 120
    assert len(controller.session.records) == 1


def test_start_now_sends_zero_start_and_refreshes(fake_client):
    controller = CalibrationSessionController(fake_client)
    result = asyncio.run(controller.start(24.0))
    assert result.ok
    assert fake_client.calls_to("calibration_start") == [(24.0, 0)]
    assert len(fake_client.calls_to("get_calibration")) == 1
    assert controller.in_flight is False


def test_start_validation(fake_client):
    controller = CalibrationSessionController(fake_client)

    async def main():
        return await controller.start(None), await controller.start(float("nan")), await controller.start(24, -1)

    no_target, nan_target, bad_start = asyncio.run(main())
    assert no_target.error == "Please enter a target temperature"
    assert nan_target.error == "Please enter a target temperature"
    assert bad_start.error == "Invalid start time"
    assert fake_client.calls_to("calibration_start") == []


def test_device_error_is_surfaced_verbatim(make_client):
    client = make_client(calibration_start=DeviceCommandError("Calibration already running", 409))
    controller = CalibrationSessionController(client)
    result = asyncio.run(controller.start(24.0, 1700000000))
    assert result.error == "Calibration already running"
    assert controller.in_flight is False
    assert client.calls_to("get_calibration") == []


def test_transport_error_has_generic_message(make_client):
    controller = CalibrationSessionController(make_client(calibration_cancel=DeviceConnectionError("down")))
    result = asyncio.run(controller.cancel())
    assert result.error == "Error talking to device"


def test_delete_with_missing_id_sends_nothing(fake_client):
    controller = CalibrationSessionController(fake_client)

    async def main():
        return await controller.delete_record(None), await controller.delete_record("")

    for result in asyncio.run(main()):
        assert result.error == "Missing record identifier"
    assert fake_client.calls == []


def test_delete_asks_for_confirmation(make_client):
    client = make_client(get_calibration=SNAPSHOT)
    controller = CalibrationSessionController(client, tz=CET)
    prompts = []

    def decline(text):
        prompts.append(text)
        return False

    async def main():
        await controller.refresh_from_pull()
        declined = await controller.delete_record(1700000000, confirm=decline)
        accepted = await controller.delete_record("1700000000", confirm=lambda text: True)
        return declined, accepted

    declined, accepted = asyncio.run(main())
    assert declined.error == "Cancelled"
    assert "2023-11-14 23:13" in prompts[0]
    assert "k=1.23" in prompts[0]
    assert accepted.ok
    assert client.calls_to("calibration_delete") == [(1700000000,)]


def test_save_automation_settings_partial(fake_client):
    controller = CalibrationSessionController(fake_client)

    async def main():
        return (
            await controller.save_automation_settings(False),
            await controller.save_automation_settings(True, start="01:30", target_cap_c=26.0),
            await controller.save_automation_settings(True, end="99:00"),
        )

    disabled, enabled, invalid = asyncio.run(main())
    assert disabled.ok and enabled.ok
    assert not invalid.ok
    assert fake_client.calls_to("calibration_settings") == [
        ({"auto_enabled": "0"},),
        ({"auto_enabled": "1", "auto_start_min": "90", "auto_target_cap_c": "26.0"},),
    ]


def test_unsynced_snapshot_triggers_one_sync(make_client):
    client = make_client(get_calibration={"state": "idle", "time_synced": False})
    controller = CalibrationSessionController(client, ClockSyncCoordinator(client))
    asyncio.run(controller.refresh_from_pull())
    assert len(client.calls_to("sync_time")) == 1
    assert len(client.calls_to("get_calibration")) == 2


def test_successful_pull_clears_previous_error(make_client):
    client = make_client(get_calibration=[DeviceConnectionError("down"), SNAPSHOT])
    controller = CalibrationSessionController(client)

    async def main():
        assert await controller.refresh_from_pull() is False
        assert controller.last_error
        assert await controller.refresh_from_pull() is True

    asyncio.run(main())
    assert controller.last_error is None


def test_out_of_range_record_epoch_shows_placeholder():
    record = CalibrationRecord(2**64 - 1, 1.0, 15.0, 25.0, 600.0)
    view = present_calibration(CalibrationSession(records=(record,)), tz=CET)
    assert view.records[0].when == PLACEHOLDER
    assert describe_record(record, CET).startswith(f"Delete calibration from {PLACEHOLDER}?")
