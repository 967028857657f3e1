"""Advisor settings loading.

All tunable constants used by the dispatch rules live in AdvisorSettings.
They can be overridden from config/advisor.yaml:

    settings:
      daily_consumption_kwh: 18
      ev_full_power_kw: 7.4
"""

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path

import yaml
from dotenv import load_dotenv

from .errors import ConfigError

# Load environment variables from .env file
load_dotenv()

DEFAULT_DASHBOARD_URL = "http://localhost:5000"


@dataclass(frozen=True)
class AdvisorSettings:
    """Constants for the tariff dispatch rules."""

    usable_capacity_fraction: float = 0.8
    round_trip_efficiency: float = 0.85
    ev_full_power_kw: float = 11.0
    ev_reduced_power_kw: float = 7.4
    ev_deferred_current_a: float = 16.0
    grid_voltage: float = 230.0
    daily_consumption_kwh: float = 15.0
    confidence_score: float = 0.8
    default_battery_soc: float = 50.0
    battery_charge_target_soc: float = 90.0
    battery_reserve_threshold_soc: float = 20.0
    battery_reserve_target_soc: float = 30.0
    battery_discharge_min_soc: float = 30.0
    battery_discharge_target_soc: float = 20.0
    preheating_minutes: int = 60
    specialized_tariff_marker: str = "Israeli"
    large_differential_threshold: float = 0.3


DEFAULT_SETTINGS = AdvisorSettings()


def get_config_path() -> Path | None:
    """Find the advisor.yaml config file, if there is one."""
    candidates = [
        Path.cwd() / "config" / "advisor.yaml",
        Path(__file__).parent.parent.parent / "config" / "advisor.yaml",
        Path.home() / ".config" / "dispatch-advisor" / "advisor.yaml",
    ]
    for path in candidates:
        if path.exists():
            return path
    return None


def settings_from_dict(data: dict | None) -> AdvisorSettings:
    """Build settings from a mapping, starting from the defaults."""
    if not data:
        return DEFAULT_SETTINGS

    known = {f.name for f in fields(AdvisorSettings)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(f"Unknown advisor setting(s): {', '.join(unknown)}")

    overrides = {}
    for name, value in data.items():
        default = getattr(DEFAULT_SETTINGS, name)
        try:
            overrides[name] = type(default)(value)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid value for {name}: {value!r}") from e
    return replace(DEFAULT_SETTINGS, **overrides)


def load_settings(config_path: Path | None = None) -> AdvisorSettings:
    """Load advisor settings from YAML, falling back to defaults."""
    path = config_path or get_config_path()
    if path is None:
        return DEFAULT_SETTINGS

    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Could not read {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping")
    return settings_from_dict(data.get("settings"))


def get_dashboard_url() -> str:
    """Get the dashboard base URL from environment."""
    return os.environ.get("DASHBOARD_URL", DEFAULT_DASHBOARD_URL)


def get_dashboard_token() -> str | None:
    """Get the dashboard API token from environment, if set."""
    return os.environ.get("DASHBOARD_TOKEN")
