"""Tests for the dashboard REST collector."""

import json
from unittest.mock import patch

import httpx
import pytest
from dispatch_advisor.collectors import dashboard
from dispatch_advisor.db import get_devices_for_site
from dispatch_advisor.errors import DashboardError
from dispatch_advisor.models import BatteryDevice, EVChargerDevice, OtherDevice, Season
from dispatch_advisor.tariffs import get_tariffs_for_site, save_tariff

TARIFF_PAYLOAD = {
    "id": 12,
    "siteId": 1,
    "name": "Israeli Time-of-Use Tariff",
    "provider": "Israel Electric Corporation",
    "importRate": 0.48,
    "exportRate": 0.23,
    "isTimeOfUse": True,
    "currency": "ILS",
    "scheduleData": {"summer": {"peak": 0.53, "shoulder": 0.45, "offPeak": 0.25}},
}

DEVICES_PAYLOAD = [
    {"id": 101, "type": "battery_storage", "name": "Home Battery", "readings": {"soc": 64}, "capacity": 13.5},
    {"id": 102, "type": "ev_charger", "name": "Garage"},
    {"type": "heat_pump", "name": "No id"},
    {"id": 104, "type": "solar_pv", "name": "Roof"},
]


def make_handler(routes, seen=None):
    def handler(request):
        if seen is not None:
            seen.append(request)
        if request.url.path not in routes:
            return httpx.Response(404)
        status, body = routes[request.url.path]
        return httpx.Response(status, content=body if isinstance(body, bytes) else json.dumps(body))

    return handler


@pytest.fixture
def mock_dashboard():
    """Route collector requests to an in-memory transport."""

    def install(routes, seen=None):
        transport = httpx.MockTransport(make_handler(routes, seen))

        def client(base_url, token):
            return httpx.Client(
                transport=transport,
                base_url=base_url or "http://dashboard.test",
                headers=dashboard._headers(token),
            )

        return patch.object(dashboard, "_client", side_effect=client)

    return install


def test_fetch_site_tariff(mock_dashboard):
    seen = []
    with mock_dashboard({"/api/sites/1/tariff": (200, TARIFF_PAYLOAD)}, seen):
        tariff = dashboard.fetch_site_tariff(1, token="secret")

    assert tariff.name == "Israeli Time-of-Use Tariff"
    assert tariff.site_id == 1
    assert tariff.is_time_of_use is True
    assert tariff.schedule[Season.SUMMER].peak == 0.53
    assert seen[0].headers["Authorization"] == "Bearer secret"


def test_fetch_site_tariff_missing(mock_dashboard):
    with mock_dashboard({}):
        assert dashboard.fetch_site_tariff(1) is None


def test_fetch_site_tariff_server_error(mock_dashboard):
    with mock_dashboard({"/api/sites/1/tariff": (500, {"error": "boom"})}):
        with pytest.raises(DashboardError, match="HTTP 500"):
            dashboard.fetch_site_tariff(1)


def test_fetch_site_tariff_invalid_json(mock_dashboard):
    with mock_dashboard({"/api/sites/1/tariff": (200, b"<html>")}):
        with pytest.raises(DashboardError, match="Invalid JSON"):
            dashboard.fetch_site_tariff(1)


def test_fetch_site_devices_skips_malformed(mock_dashboard):
    with mock_dashboard({"/api/sites/1/devices": (200, DEVICES_PAYLOAD)}):
        devices = dashboard.fetch_site_devices(1)

    assert [d.id for d in devices] == [101, 102, 104]
    battery = devices[0]
    assert isinstance(battery, BatteryDevice)
    assert battery.soc == 64
    assert battery.capacity_kwh == 13.5
    assert isinstance(devices[1], EVChargerDevice)
    assert isinstance(devices[2], OtherDevice)


def test_fetch_site_devices_requires_list(mock_dashboard):
    with mock_dashboard({"/api/sites/1/devices": (200, {"devices": []})}):
        with pytest.raises(DashboardError, match="device list"):
            dashboard.fetch_site_devices(1)


def test_connection_failure_becomes_dashboard_error():
    def refuse(request):
        raise httpx.ConnectError("refused", request=request)

    transport = httpx.MockTransport(refuse)
    client = httpx.Client(transport=transport, base_url="http://dashboard.test")
    with patch.object(dashboard, "_client", return_value=client):
        with pytest.raises(DashboardError, match="failed"):
            dashboard.fetch_site_devices(1)


def test_import_site_replaces_local_tariff(mock_dashboard, db_path, flat_tariff):
    flat_tariff.site_id = 1
    save_tariff(flat_tariff, db_path)

    routes = {
        "/api/sites/1/tariff": (200, TARIFF_PAYLOAD),
        "/api/sites/1/devices": (200, DEVICES_PAYLOAD),
    }
    with mock_dashboard(routes):
        result = dashboard.import_site(1, db_path=db_path)

    assert result == {"tariff": "Israeli Time-of-Use Tariff", "devices": 3}
    stored = get_tariffs_for_site(1, db_path)
    assert [t.name for t in stored] == ["Israeli Time-of-Use Tariff"]

    devices = get_devices_for_site(1, db_path)
    assert [d.id for d in devices] == [101, 102, 104]
    assert devices[0].soc == 64


def test_import_site_without_tariff(mock_dashboard, db_path):
    with mock_dashboard({"/api/sites/3/devices": (200, [])}):
        result = dashboard.import_site(3, db_path=db_path)

    assert result == {"tariff": None, "devices": 0}
    assert get_tariffs_for_site(3, db_path) == []
