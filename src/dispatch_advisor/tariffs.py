"""Tariff loading and time-of-use classification."""

import json
import logging
import sqlite3
from datetime import datetime, timedelta
from pathlib import Path

import yaml

from .config import DEFAULT_SETTINGS, AdvisorSettings
from .db import ensure_site, get_connection
from .models import (
    STANDARD_RATE_LABEL,
    PricingPeriod,
    Season,
    Tariff,
    TariffInfo,
    parse_schedule,
    schedule_to_dict,
)

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent.parent / "config" / "tariffs.yaml"

PEAK_START_HOUR = 17
PEAK_END_HOUR = 22
SHOULDER_LATE_END_HOUR = 23
OFF_PEAK_START_HOUR = 23
OFF_PEAK_END_HOUR = 7

ISRAEL_ELECTRIC = "Israel Electric Corporation"

# Israel Electric Corporation tariffs, April 2025 rates (ILS/kWh)
ISRAELI_PRESETS = {
    "tou": {
        "name": "Israeli Electricity Tariff (TOU)",
        "import_rate": 0.58,
        "export_rate": 0.24,
        "is_time_of_use": True,
        "schedule": {
            "summer": {"peak": 0.92, "shoulder": 0.58, "offPeak": 0.32},
            "winter": {"peak": 0.68, "shoulder": 0.49, "offPeak": 0.29},
            "spring": {"peak": 0.59, "shoulder": 0.46, "offPeak": 0.27},
            "autumn": {"peak": 0.59, "shoulder": 0.46, "offPeak": 0.27},
        },
    },
    "lv": {
        "name": "Israeli LV Tariff",
        "import_rate": 0.48,
        "export_rate": 0.23,
        "is_time_of_use": False,
        "schedule": None,
    },
    "hv": {
        "name": "Israeli HV Tariff",
        "import_rate": 0.43,
        "export_rate": 0.23,
        "is_time_of_use": False,
        "schedule": None,
    },
}


def season_for_month(month: int) -> Season:
    """Map a calendar month (1-12) to a tariff season."""
    if 6 <= month <= 9:
        return Season.SUMMER
    if 10 <= month <= 11:
        return Season.AUTUMN
    if 3 <= month <= 5:
        return Season.SPRING
    return Season.WINTER


def pricing_period_for_hour(hour: int) -> PricingPeriod:
    """Map a local hour of day (0-23) to its pricing period."""
    if PEAK_START_HOUR <= hour < PEAK_END_HOUR:
        return PricingPeriod.PEAK
    if OFF_PEAK_END_HOUR <= hour < PEAK_START_HOUR or PEAK_END_HOUR <= hour < SHOULDER_LATE_END_HOUR:
        return PricingPeriod.SHOULDER
    return PricingPeriod.OFF_PEAK


def is_peak_pricing_period(now: datetime) -> bool:
    """Check if ``now`` falls in the 17:00-22:00 peak window (hour only)."""
    return PEAK_START_HOUR <= now.hour < PEAK_END_HOUR


def is_off_peak_pricing_period(now: datetime) -> bool:
    """Check if ``now`` falls in the 23:00-07:00 off-peak window (hour only)."""
    return now.hour >= OFF_PEAK_START_HOUR or now.hour < OFF_PEAK_END_HOUR


def get_next_cheap_rate_period_start(now: datetime) -> datetime:
    """Start of the next off-peak period, or ``now`` if already late evening."""
    if now.hour < OFF_PEAK_START_HOUR:
        return now.replace(hour=OFF_PEAK_START_HOUR, minute=0, second=0, microsecond=0)
    return now


def get_next_expensive_rate_period_start(now: datetime) -> datetime:
    """Start of the next peak period, or ``now`` if inside one."""
    start = now.replace(hour=PEAK_START_HOUR, minute=0, second=0, microsecond=0)
    if now.hour < PEAK_START_HOUR:
        return start
    if now.hour >= PEAK_END_HOUR:
        return start + timedelta(days=1)
    return now


def classify(
    tariff: Tariff, now: datetime
) -> tuple[float, str, PricingPeriod | None, Season | None]:
    """Determine the current rate and period for a tariff.

    Returns (current_rate, current_period_label, period, season). Flat-rate
    tariffs, and time-of-use tariffs without rates for the current season,
    fall back to the import rate with period None.
    """
    season = season_for_month(now.month)
    if not tariff.is_time_of_use or not tariff.schedule:
        return tariff.import_rate, STANDARD_RATE_LABEL, None, None

    season_rates = tariff.schedule.get(season)
    if season_rates is None:
        return tariff.import_rate, STANDARD_RATE_LABEL, None, season

    period = pricing_period_for_hour(now.hour)
    return season_rates.rate_for(period), period.label, period, season


def is_israeli(name: str | None, settings: AdvisorSettings = DEFAULT_SETTINGS) -> bool:
    return bool(name) and settings.specialized_tariff_marker in name


def build_tariff_info(
    tariff: Tariff, now: datetime, settings: AdvisorSettings = DEFAULT_SETTINGS
) -> TariffInfo:
    """Classify a stored tariff against ``now``."""
    current_rate, current_period, period, season = classify(tariff, now)
    return TariffInfo(
        id=tariff.id,
        name=tariff.name or "Unnamed Tariff",
        provider=tariff.provider or "Unknown Provider",
        import_rate=tariff.import_rate,
        export_rate=tariff.export_rate,
        is_time_of_use=tariff.is_time_of_use,
        schedule=tariff.schedule,
        currency=tariff.currency or "ILS",
        current_rate=current_rate,
        current_period=current_period,
        period=period,
        season=season,
        is_israeli_tariff=is_israeli(tariff.name, settings),
    )


def tariff_from_record(record: dict, site_id: int | None = None) -> Tariff:
    """Build a Tariff from a YAML entry or a dashboard JSON record.

    Accepts both snake_case keys and the dashboard's camelCase keys.
    """

    def pick(*keys, default=None):
        for key in keys:
            if record.get(key) is not None:
                return record[key]
        return default

    resolved_site = site_id if site_id is not None else pick("site_id", "siteId")
    if resolved_site is None:
        raise ValueError(f"Tariff {record.get('name')!r} has no site id")

    return Tariff(
        id=pick("id"),
        site_id=int(resolved_site),
        name=pick("name", default="Unnamed Tariff"),
        provider=pick("provider"),
        import_rate=float(pick("import_rate", "importRate", default=0)),
        export_rate=float(pick("export_rate", "exportRate", default=0)),
        is_time_of_use=bool(pick("is_time_of_use", "isTimeOfUse", default=False)),
        schedule=parse_schedule(pick("schedule", "schedule_data", "scheduleData")),
        currency=pick("currency", default="USD"),
        data_interval_seconds=int(pick("data_interval_seconds", "dataIntervalSeconds", default=60)),
    )


def load_tariffs_from_yaml(config_path: Path | None = None) -> list[Tariff]:
    """Load tariff definitions from YAML config file."""
    path = config_path or DEFAULT_CONFIG_PATH
    with open(path) as f:
        data = yaml.safe_load(f) or {}

    return [tariff_from_record(t) for t in data.get("tariffs", [])]


def save_tariff(tariff: Tariff, db_path: Path | None = None) -> int:
    """Insert or update one tariff. Returns its id."""
    with get_connection(db_path) as conn:
        ensure_site(conn, tariff.site_id)
        schedule = schedule_to_dict(tariff.schedule)
        values = (
            tariff.site_id,
            tariff.name,
            tariff.provider,
            tariff.import_rate,
            tariff.export_rate,
            int(tariff.is_time_of_use),
            json.dumps(schedule) if schedule else None,
            tariff.data_interval_seconds,
            tariff.currency,
        )
        if tariff.id is None:
            cursor = conn.execute(
                """INSERT INTO tariffs
                   (site_id, name, provider, import_rate, export_rate, is_time_of_use,
                    schedule_data, data_interval_seconds, currency)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                values,
            )
            tariff_id = cursor.lastrowid
        else:
            conn.execute(
                """INSERT OR REPLACE INTO tariffs
                   (site_id, name, provider, import_rate, export_rate, is_time_of_use,
                    schedule_data, data_interval_seconds, currency, id)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                values + (tariff.id,),
            )
            tariff_id = tariff.id
        conn.commit()
    return tariff_id


def save_tariffs_to_db(
    tariffs: list[Tariff], db_path: Path | None = None, replace: bool = False
) -> int:
    """Save tariffs to the database. Returns number of tariffs saved.

    With ``replace``, each listed site's existing tariffs are removed first,
    so a reloaded config takes effect.
    """
    if replace:
        for site_id in dict.fromkeys(t.site_id for t in tariffs):
            removed = delete_tariffs_for_site(site_id, db_path)
            logger.debug("Replacing %d stored tariff(s) for site %s", removed, site_id)

    for tariff in tariffs:
        tariff.id = save_tariff(tariff, db_path)
    return len(tariffs)


def _row_to_tariff(row: sqlite3.Row) -> Tariff:
    schedule_data = json.loads(row["schedule_data"]) if row["schedule_data"] else None
    return Tariff(
        id=row["id"],
        site_id=row["site_id"],
        name=row["name"],
        provider=row["provider"],
        import_rate=float(row["import_rate"] or 0),
        export_rate=float(row["export_rate"] or 0),
        is_time_of_use=bool(row["is_time_of_use"]),
        schedule=parse_schedule(schedule_data),
        currency=row["currency"],
        data_interval_seconds=row["data_interval_seconds"],
    )


def get_tariffs_for_site(site_id: int, db_path: Path | None = None) -> list[Tariff]:
    """Get all tariffs stored for a site, oldest first."""
    with get_connection(db_path) as conn:
        rows = conn.execute(
            "SELECT * FROM tariffs WHERE site_id = ? ORDER BY id", (site_id,)
        ).fetchall()
    return [_row_to_tariff(row) for row in rows]


def get_tariff_for_site(site_id: int, db_path: Path | None = None) -> Tariff | None:
    """Get the tariff in effect for a site (the first one stored)."""
    tariffs = get_tariffs_for_site(site_id, db_path)
    return tariffs[0] if tariffs else None


def get_tariff_info_for_site(
    site_id: int,
    now: datetime,
    settings: AdvisorSettings = DEFAULT_SETTINGS,
    db_path: Path | None = None,
) -> TariffInfo | None:
    """Look up and classify a site's tariff.

    Lookup failures are logged and reported as None, the same as a site
    with no tariff.
    """
    try:
        tariff = get_tariff_for_site(site_id, db_path)
    except (sqlite3.Error, ValueError) as e:
        logger.error("Error fetching tariff info for site %s: %s", site_id, e)
        return None

    if tariff is None:
        return None
    return build_tariff_info(tariff, now, settings)


def israeli_tariff_preset(site_id: int, kind: str = "tou") -> Tariff:
    """Build one of the Israel Electric Corporation tariffs for a site."""
    try:
        preset = ISRAELI_PRESETS[kind.lower()]
    except KeyError:
        raise ValueError(f"Unknown Israeli tariff type: {kind}") from None

    return Tariff(
        site_id=site_id,
        name=preset["name"],
        provider=ISRAEL_ELECTRIC,
        import_rate=preset["import_rate"],
        export_rate=preset["export_rate"],
        is_time_of_use=preset["is_time_of_use"],
        schedule=parse_schedule(preset["schedule"]),
        currency="ILS",
    )


def create_preset_tariff(site_id: int, kind: str = "tou", db_path: Path | None = None) -> Tariff:
    """Store a preset tariff for a site unless an identical one exists.

    Returns the stored tariff (existing or newly created).
    """
    tariff = israeli_tariff_preset(site_id, kind)
    for existing in get_tariffs_for_site(site_id, db_path):
        if existing.name == tariff.name and existing.provider == tariff.provider:
            return existing

    tariff.id = save_tariff(tariff, db_path)
    logger.info("Created %s for site %s", tariff.name, site_id)
    return tariff


def delete_tariffs_for_site(site_id: int, db_path: Path | None = None) -> int:
    """Remove all tariffs stored for a site. Returns number removed."""
    with get_connection(db_path) as conn:
        cursor = conn.execute("DELETE FROM tariffs WHERE site_id = ?", (site_id,))
        conn.commit()
    return cursor.rowcount
