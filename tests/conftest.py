import pytest


class FakeDeviceClient:
    """Stands in for DeviceClient: records every call, answers from ``responses``.

    A response that is an exception instance is raised instead of returned.
    """

    def __init__(self, **responses):
        self.calls = []
        self.responses = {
            "get_status": {"temp": 20.0, "is_on": False, "time_synced": True},
            "get_calibration": {"state": "idle", "time_synced": True, "records": []},
            "get_ready_by": {"scheduled": False, "time_synced": True},
            "get_logs": {"logs": "", "time_synced": True},
            "get_kfactor_status": {"current_k": 1.0, "ideal_seconds_per_deg": 60.0},
            "sync_time": 200,
            "legacy_toggle": 200,
            "set_config": 200,
            "clear_logs": 200,
            "reboot": None,
            "calibration_start": {"ok": True},
            "calibration_cancel": {"ok": True},
            "calibration_delete": {"ok": True},
            "calibration_settings": {"ok": True},
            "kfactor_suggest": {"ok": True, "suggested_k": 1.25, "warmup_seconds": 900, "delta_t_c": 10.0},
            "kfactor_apply": {"ok": True},
            "ready_by_schedule": {"ok": True, "scheduled": True},
            "ready_by_clear": {"ok": True},
            "close": None,
        }
        self.responses.update(responses)

    def calls_to(self, name):
        return [args for called, args in self.calls if called == name]

    def __getattr__(self, name):
        if name not in self.responses:
            raise AttributeError(name)

        def method(*args):
            self.calls.append((name, args))
            response = self.responses[name]
            if isinstance(response, list):
                response = response.pop(0) if len(response) > 1 else response[0]
            if isinstance(response, Exception):
                raise response
            return response

        return method


class FakeConnection:
    """ConnectionManager double with a switchable open flag."""

    def __init__(self, open_=False, send_ok=True):
        self.open = open_
        self.send_ok = send_ok
        self.sent = []

    def is_open(self):
        return self.open

    async def send(self, command):
        if not self.open:
            return False
        self.sent.append(command)
        return self.send_ok


@pytest.fixture
def fake_client():
    return FakeDeviceClient()


@pytest.fixture
def make_client():
    return FakeDeviceClient


@pytest.fixture
def make_connection():
    return FakeConnection
