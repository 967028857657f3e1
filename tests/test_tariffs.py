"""Tests for tariff classification and the local tariff store."""

import sqlite3
from datetime import datetime
from unittest.mock import patch

import pytest

from dispatch_advisor import tariffs
from dispatch_advisor.models import STANDARD_RATE_LABEL, PricingPeriod, Season, Tariff, parse_schedule
from dispatch_advisor.tariffs import (
    build_tariff_info,
    classify,
    create_preset_tariff,
    get_next_cheap_rate_period_start,
    get_next_expensive_rate_period_start,
    get_tariff_for_site,
    get_tariff_info_for_site,
    is_off_peak_pricing_period,
    is_peak_pricing_period,
    load_tariffs_from_yaml,
    pricing_period_for_hour,
    save_tariffs_to_db,
    season_for_month,
)

SHOULDER_HOURS = set(range(7, 17)) | {22}


@pytest.mark.parametrize(
    "month, season",
    [
        (1, Season.WINTER),
        (2, Season.WINTER),
        (3, Season.SPRING),
        (5, Season.SPRING),
        (6, Season.SUMMER),
        (9, Season.SUMMER),
        (10, Season.AUTUMN),
        (11, Season.AUTUMN),
        (12, Season.WINTER),
    ],
)
def test_season_for_month(month, season):
    assert season_for_month(month) is season


def test_peak_and_off_peak_helpers_cover_every_hour():
    """Peak and off-peak never overlap and leave exactly the shoulder hours."""
    for hour in range(24):
        now = datetime(2025, 1, 1, hour, 30)
        peak = is_peak_pricing_period(now)
        off_peak = is_off_peak_pricing_period(now)

        assert peak == (17 <= hour < 22)
        assert off_peak == (hour >= 23 or hour < 7)
        assert not (peak and off_peak)
        assert (not peak and not off_peak) == (hour in SHOULDER_HOURS)


def test_pricing_period_for_hour_matches_helpers():
    for hour in range(24):
        now = datetime(2025, 1, 1, hour)
        period = pricing_period_for_hour(hour)
        assert (period is PricingPeriod.PEAK) == is_peak_pricing_period(now)
        assert (period is PricingPeriod.OFF_PEAK) == is_off_peak_pricing_period(now)


def test_classify_summer_peak(israeli_tariff):
    rate, label, period, season = classify(israeli_tariff, datetime(2025, 7, 10, 18))

    assert rate == 0.53
    assert "Peak" in label
    assert period is PricingPeriod.PEAK
    assert season is Season.SUMMER


def test_classify_shoulder_and_off_peak(israeli_tariff):
    assert classify(israeli_tariff, datetime(2025, 1, 10, 22, 15))[:2] == (
        0.43,
        "Shoulder (7:00-17:00, 22:00-23:00)",
    )
    assert classify(israeli_tariff, datetime(2025, 4, 10, 23, 5))[:2] == (
        0.21,
        "Off-Peak (23:00-7:00)",
    )


def test_classify_is_deterministic(israeli_tariff):
    now = datetime(2025, 8, 1, 19, 45)
    assert classify(israeli_tariff, now) == classify(israeli_tariff, now)
    assert build_tariff_info(israeli_tariff, now) == build_tariff_info(israeli_tariff, now)


def test_flat_tariff_uses_standard_rate(flat_tariff):
    info = build_tariff_info(flat_tariff, datetime(2025, 7, 10, 18))

    assert info.current_rate == 0.30
    assert info.current_period == STANDARD_RATE_LABEL
    assert info.period is None
    assert info.is_israeli_tariff is False


def test_time_of_use_without_schedule_falls_back(israeli_tariff):
    israeli_tariff.schedule = None
    info = build_tariff_info(israeli_tariff, datetime(2025, 7, 10, 18))

    assert info.current_rate == 0.48
    assert info.current_period == STANDARD_RATE_LABEL


def test_time_of_use_missing_season_falls_back(israeli_tariff):
    israeli_tariff.schedule = parse_schedule({"summer": {"peak": 1, "shoulder": 0.5, "offPeak": 0.2}})
    info = build_tariff_info(israeli_tariff, datetime(2025, 1, 10, 18))

    assert info.current_rate == 0.48
    assert info.period is None
    assert info.season is Season.WINTER


def test_israeli_flag_from_name(israeli_tariff):
    info = build_tariff_info(israeli_tariff, datetime(2025, 7, 10, 12))
    assert info.is_israeli_tariff is True


def test_next_cheap_rate_period_start():
    assert get_next_cheap_rate_period_start(datetime(2025, 3, 1, 14, 20)) == datetime(2025, 3, 1, 23)
    late = datetime(2025, 3, 1, 23, 40)
    assert get_next_cheap_rate_period_start(late) == late


def test_next_expensive_rate_period_start():
    assert get_next_expensive_rate_period_start(datetime(2025, 3, 1, 9)) == datetime(2025, 3, 1, 17)
    assert get_next_expensive_rate_period_start(datetime(2025, 3, 31, 22, 30)) == datetime(2025, 4, 1, 17)
    during = datetime(2025, 3, 1, 18, 10)
    assert get_next_expensive_rate_period_start(during) == during


def test_store_round_trip(db_path, israeli_tariff, flat_tariff):
    assert save_tariffs_to_db([israeli_tariff, flat_tariff], db_path) == 2

    stored = get_tariff_for_site(1, db_path)
    assert stored.name == "Israeli Time-of-Use Tariff"
    assert stored.is_time_of_use is True
    assert stored.schedule[Season.SUMMER].off_peak == 0.25

    assert get_tariff_for_site(99, db_path) is None


def test_first_stored_tariff_wins(db_path, israeli_tariff):
    other = Tariff(site_id=1, name="Later Tariff", import_rate=0.9)
    save_tariffs_to_db([israeli_tariff, other], db_path)

    info = get_tariff_info_for_site(1, datetime(2025, 7, 1, 18), db_path=db_path)
    assert info.name == "Israeli Time-of-Use Tariff"
    assert info.current_rate == 0.53


def test_reloaded_tariffs_replace_stored_ones(db_path, tmp_path):
    config = tmp_path / "tariffs.yaml"
    config.write_text("tariffs:\n  - {site_id: 1, name: Flat, import_rate: 0.30}\n")
    save_tariffs_to_db(load_tariffs_from_yaml(config), db_path, replace=True)

    config.write_text("tariffs:\n  - {site_id: 1, name: Flat, import_rate: 0.40}\n")
    save_tariffs_to_db(load_tariffs_from_yaml(config), db_path, replace=True)

    info = get_tariff_info_for_site(1, datetime(2025, 7, 1, 18), db_path=db_path)
    assert info.current_rate == 0.40
    assert len(tariffs.get_tariffs_for_site(1, db_path)) == 1


def test_replace_leaves_other_sites_alone(db_path, israeli_tariff, flat_tariff):
    save_tariffs_to_db([israeli_tariff, flat_tariff], db_path)

    update = Tariff(site_id=2, name="Standard Flat Rate", import_rate=0.35)
    save_tariffs_to_db([update], db_path, replace=True)

    assert get_tariff_for_site(1, db_path).name == "Israeli Time-of-Use Tariff"
    assert get_tariff_for_site(2, db_path).import_rate == 0.35


def test_tariff_info_missing_site_is_none(db_path):
    assert get_tariff_info_for_site(5, datetime(2025, 7, 1, 18), db_path=db_path) is None


def test_tariff_info_lookup_failure_is_none(db_path):
    with patch.object(tariffs, "get_tariff_for_site", side_effect=sqlite3.OperationalError("locked")):
        assert get_tariff_info_for_site(1, datetime(2025, 7, 1, 18), db_path=db_path) is None


def test_load_tariffs_from_yaml(tmp_path):
    config = tmp_path / "tariffs.yaml"
    config.write_text(
        """
tariffs:
  - site_id: 3
    name: Israeli TOU
    import_rate: 0.5
    is_time_of_use: true
    currency: ILS
    schedule:
      summer: {peak: 0.9, shoulder: 0.6, offPeak: 0.3}
  - siteId: 4
    name: Flat
    importRate: 0.2
"""
    )

    loaded = load_tariffs_from_yaml(config)

    assert [t.site_id for t in loaded] == [3, 4]
    assert loaded[0].schedule[Season.SUMMER].peak == 0.9
    assert loaded[1].import_rate == 0.2
    assert loaded[1].is_time_of_use is False


def test_load_tariffs_requires_site(tmp_path):
    config = tmp_path / "tariffs.yaml"
    config.write_text("tariffs:\n  - name: Orphan\n    import_rate: 0.2\n")

    with pytest.raises(ValueError, match="no site id"):
        load_tariffs_from_yaml(config)


def test_create_preset_tariff_is_idempotent(db_path):
    first = create_preset_tariff(7, "tou", db_path)
    second = create_preset_tariff(7, "tou", db_path)

    assert first.id == second.id
    assert first.name == "Israeli Electricity Tariff (TOU)"
    assert first.schedule[Season.SUMMER].peak == 0.92
    assert len(tariffs.get_tariffs_for_site(7, db_path)) == 1


def test_create_preset_tariff_flat_kinds(db_path):
    lv = create_preset_tariff(8, "lv", db_path)
    assert lv.is_time_of_use is False
    assert lv.import_rate == 0.48

    with pytest.raises(ValueError, match="Unknown Israeli tariff type"):
        create_preset_tariff(8, "mv", db_path)
