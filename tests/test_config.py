"""Tests for advisor settings loading."""

import pytest

from dispatch_advisor import config
from dispatch_advisor.config import DEFAULT_SETTINGS, AdvisorSettings, load_settings, settings_from_dict
from dispatch_advisor.errors import ConfigError


def test_defaults():
    assert DEFAULT_SETTINGS.round_trip_efficiency == 0.85
    assert DEFAULT_SETTINGS.battery_charge_target_soc == 90
    assert DEFAULT_SETTINGS.specialized_tariff_marker == "Israeli"


def test_settings_from_dict_overrides():
    settings = settings_from_dict({"daily_consumption_kwh": "18", "preheating_minutes": 45})

    assert settings.daily_consumption_kwh == 18.0
    assert settings.preheating_minutes == 45
    assert settings.ev_full_power_kw == DEFAULT_SETTINGS.ev_full_power_kw


def test_empty_settings_are_defaults():
    assert settings_from_dict(None) is DEFAULT_SETTINGS
    assert settings_from_dict({}) is DEFAULT_SETTINGS


def test_unknown_setting_rejected():
    with pytest.raises(ConfigError, match="battery_size"):
        settings_from_dict({"battery_size": 10})


def test_invalid_value_rejected():
    with pytest.raises(ConfigError, match="grid_voltage"):
        settings_from_dict({"grid_voltage": "mains"})


def test_load_settings_from_file(tmp_path):
    path = tmp_path / "advisor.yaml"
    path.write_text("settings:\n  ev_full_power_kw: 7.4\n")

    assert load_settings(path) == AdvisorSettings(ev_full_power_kw=7.4)


def test_load_settings_without_file(monkeypatch):
    monkeypatch.setattr(config, "get_config_path", lambda: None)
    assert load_settings() is DEFAULT_SETTINGS


def test_load_settings_bad_yaml(tmp_path):
    path = tmp_path / "advisor.yaml"
    path.write_text("settings: [unclosed\n")

    with pytest.raises(ConfigError, match="Could not read"):
        load_settings(path)


def test_load_settings_requires_mapping(tmp_path):
    path = tmp_path / "advisor.yaml"
    path.write_text("- just\n- a list\n")

    with pytest.raises(ConfigError, match="mapping"):
        load_settings(path)


def test_dashboard_environment(monkeypatch):
    monkeypatch.delenv("DASHBOARD_URL", raising=False)
    monkeypatch.delenv("DASHBOARD_TOKEN", raising=False)
    assert config.get_dashboard_url() == "http://localhost:5000"
    assert config.get_dashboard_token() is None

    monkeypatch.setenv("DASHBOARD_URL", "https://energy.example")
    monkeypatch.setenv("DASHBOARD_TOKEN", "abc")
    assert config.get_dashboard_url() == "https://energy.example"
    assert config.get_dashboard_token() == "abc"
