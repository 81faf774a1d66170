import json

import pytest

import core.warmlink.settings as settings_module
from core.warmlink.exceptions import ConfigurationError
from core.warmlink.settings import DeviceSettings, load_settings


@pytest.fixture
def no_config_files(monkeypatch, tmp_path):
    monkeypatch.setattr(settings_module, "OPTIONS_PATH", str(tmp_path / "options.json"))
    monkeypatch.setattr(settings_module, "CONFIG_YAML_PATH", str(tmp_path / "config.yaml"))
    monkeypatch.setattr(settings_module, "load_dotenv", lambda: None)
    for name in ("WARMLINK_DEVICE_URL", "WARMLINK_TIMEZONE", "WARMLINK_RECONNECT_DELAY_S"):
        monkeypatch.delenv(name, raising=False)
    return tmp_path


def test_defaults_and_ws_url():
    settings = DeviceSettings("http://192.168.4.1/")
    assert settings.base_url == "http://192.168.4.1"
    assert settings.ws_url == "ws://192.168.4.1/ws"
    assert settings.reconnect_delay_s == 3.0
    assert settings.request_timeout is None
    assert settings.tzinfo() is None
    assert DeviceSettings("https://heater.example").ws_url == "wss://heater.example/ws"


@pytest.mark.parametrize("url", ["", "heater.local", "ftp://heater.local"])
def test_rejects_non_http_origin(url):
    with pytest.raises(ConfigurationError):
        DeviceSettings(url)


def test_rejects_bad_values():
    with pytest.raises(ConfigurationError):
        DeviceSettings("http://heater.local", reconnect_delay_s=0)
    with pytest.raises(ConfigurationError):
        DeviceSettings("http://heater.local", timezone="Mars/Olympus_Mons")


def test_from_dict_converts_camel_case():
    settings = DeviceSettings.from_dict({"url": "http://heater.local", "reconnectDelayS": 5, "syncTimeOnStart": False})
    assert settings.base_url == "http://heater.local"
    assert settings.reconnect_delay_s == 5
    assert settings.sync_time_on_start is False


def test_from_dict_rejects_unknown_and_missing_keys():
    with pytest.raises(ConfigurationError):
        DeviceSettings.from_dict({"baseUrl": "http://heater.local", "colour": "red"})
    with pytest.raises(ConfigurationError):
        DeviceSettings.from_dict({"timezone": "Europe/Stockholm"})


def test_load_from_options_json(no_config_files):
    (no_config_files / "options.json").write_text(json.dumps({"device": {"baseUrl": "http://10.0.0.5"}}))
    assert load_settings().base_url == "http://10.0.0.5"


def test_load_from_config_yaml(no_config_files):
    (no_config_files / "config.yaml").write_text("options:\n  device:\n    url: http://10.0.0.6\n")
    assert load_settings().base_url == "http://10.0.0.6"


def test_load_from_environment(no_config_files, monkeypatch):
    monkeypatch.setenv("WARMLINK_DEVICE_URL", "http://10.0.0.7")
    monkeypatch.setenv("WARMLINK_RECONNECT_DELAY_S", "1.5")
    settings = load_settings()
    assert settings.base_url == "http://10.0.0.7"
    assert settings.reconnect_delay_s == 1.5


def test_load_without_any_source_fails(no_config_files):
    with pytest.raises(ConfigurationError):
        load_settings()
