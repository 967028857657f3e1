from datetime import datetime

import pytest

from dispatch_advisor.db import init_db
from dispatch_advisor.models import Tariff, parse_schedule
from dispatch_advisor.tariffs import build_tariff_info

ISRAELI_SCHEDULE = {
    "summer": {"peak": 0.53, "shoulder": 0.45, "offPeak": 0.25},
    "winter": {"peak": 0.51, "shoulder": 0.43, "offPeak": 0.22},
    "spring": {"peak": 0.49, "shoulder": 0.41, "offPeak": 0.21},
    "autumn": {"peak": 0.49, "shoulder": 0.41, "offPeak": 0.21},
}


@pytest.fixture
def db_path(tmp_path):
    path = tmp_path / "advisor.db"
    init_db(path)
    return path


@pytest.fixture
def israeli_tariff():
    return Tariff(
        site_id=1,
        name="Israeli Time-of-Use Tariff",
        provider="Israel Electric Corporation",
        import_rate=0.48,
        export_rate=0.23,
        is_time_of_use=True,
        schedule=parse_schedule(ISRAELI_SCHEDULE),
        currency="ILS",
    )


@pytest.fixture
def flat_tariff():
    return Tariff(
        site_id=2,
        name="Standard Flat Rate",
        provider="Example Energy",
        import_rate=0.30,
        export_rate=0.08,
        currency="USD",
    )


@pytest.fixture
def israeli_info_at(israeli_tariff):
    """Build a classified Israeli tariff snapshot for a given July hour."""

    def build(hour, month=7):
        return build_tariff_info(israeli_tariff, datetime(2025, month, 15, hour))

    return build
