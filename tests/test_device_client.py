import pytest
import requests

from core.warmlink.device_client import DeviceClient
from core.warmlink.exceptions import DeviceCommandError, DeviceConnectionError, DeviceResponseError


class DummyResponse:
    def __init__(self, status_code=200, body=None, text=""):
        self.status_code = status_code
        self.ok = status_code < 400
        self._body = body
        self.text = text

    def json(self):
        if self._body is None:
            raise ValueError("no json")
        return self._body

    def raise_for_status(self):
        if not self.ok:
            raise requests.exceptions.HTTPError(f"{self.status_code} error")


class DummySession:
    def __init__(self, response=None, error=None):
        self.response = response or DummyResponse()
        self.error = error
        self.calls = []

    def get(self, url, **kwargs):
        return self._request("GET", url, **kwargs)

    def post(self, url, **kwargs):
        return self._request("POST", url, **kwargs)

    def _request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        if self.error:
            raise self.error
        return self.response

    def close(self):
        pass


def make_client(monkeypatch, **kwargs):
    session = DummySession(**kwargs)
    monkeypatch.setattr(requests, "Session", lambda: session)
    return DeviceClient("http://heater.local/", timeout=5), session


def test_get_status(monkeypatch):
    client, session = make_client(monkeypatch, response=DummyResponse(body={"temp": 20.5}))
    assert client.get_status() == {"temp": 20.5}
    assert session.calls == [("GET", "http://heater.local/api/status", {"timeout": 5})]


def test_get_rejects_non_object_json(monkeypatch):
    client, _ = make_client(monkeypatch, response=DummyResponse(body=[1, 2]))
    with pytest.raises(DeviceResponseError):
        client.get_calibration()


def test_network_error_is_wrapped(monkeypatch):
    client, _ = make_client(monkeypatch, error=requests.exceptions.ConnectionError("refused"))
    with pytest.raises(DeviceConnectionError):
        client.get_ready_by()


def test_command_ok_false_carries_device_error(monkeypatch):
    client, _ = make_client(monkeypatch, response=DummyResponse(body={"ok": False, "error": "Time not synced"}))
    with pytest.raises(DeviceCommandError) as exc:
        client.calibration_start(24.0)
    assert exc.value.message == "Time not synced"


def test_command_error_status_without_body(monkeypatch):
    client, _ = make_client(monkeypatch, response=DummyResponse(status_code=500))
    with pytest.raises(DeviceCommandError) as exc:
        client.ready_by_clear()
    assert exc.value.message == "HTTP 500"
    assert exc.value.status_code == 500


def test_command_form_encoding(monkeypatch):
    client, session = make_client(monkeypatch, response=DummyResponse(body={"ok": True}))
    client.ready_by_schedule(1710052200, 22.0)
    method, url, kwargs = session.calls[0]
    assert url == "http://heater.local/api/ready-by"
    assert kwargs["data"] == {"target_epoch_utc": "1710052200", "target_temp_c": "22.0"}
    assert kwargs["headers"]["Content-Type"] == "application/x-www-form-urlencoded"


def test_sync_time_does_not_follow_redirect(monkeypatch):
    client, session = make_client(monkeypatch, response=DummyResponse(status_code=302))
    assert client.sync_time(1710052200, -300) == 302
    _, url, kwargs = session.calls[0]
    assert url == "http://heater.local/sync-time"
    assert kwargs["data"] == {"epoch": "1710052200", "tz": "-300"}
    assert kwargs["allow_redirects"] is False


def test_legacy_toggle_error_status(monkeypatch):
    client, _ = make_client(monkeypatch, response=DummyResponse(status_code=404))
    with pytest.raises(DeviceConnectionError):
        client.legacy_toggle("/toggle")
