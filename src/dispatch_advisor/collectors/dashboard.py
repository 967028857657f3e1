"""Energy dashboard REST API collector.

Fetches a site's tariff and device list from the dashboard server and
stores them in the local tariff store for the advisor to use.
"""

import logging
from pathlib import Path
from typing import Any

import httpx

from ..config import get_dashboard_token, get_dashboard_url
from ..db import save_devices
from ..errors import DashboardError
from ..models import Device, Tariff, device_from_record
from ..tariffs import delete_tariffs_for_site, save_tariff, tariff_from_record

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 30.0


def _headers(token: str | None) -> dict[str, str]:
    headers = {"Accept": "application/json"}
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return headers


def _get_json(client: httpx.Client, path: str) -> Any:
    try:
        response = client.get(path)
    except httpx.HTTPError as e:
        raise DashboardError(f"Request to {path} failed: {e}") from e

    if response.status_code == 404:
        return None
    if response.status_code >= 400:
        raise DashboardError(f"Dashboard returned HTTP {response.status_code} for {path}")
    try:
        return response.json()
    except ValueError as e:
        raise DashboardError(f"Invalid JSON from {path}") from e


def _client(base_url: str | None, token: str | None) -> httpx.Client:
    base_url = (base_url or get_dashboard_url()).rstrip("/")
    if token is None:
        token = get_dashboard_token()
    return httpx.Client(base_url=base_url, headers=_headers(token), timeout=REQUEST_TIMEOUT)


def fetch_site_tariff(
    site_id: int, base_url: str | None = None, token: str | None = None
) -> Tariff | None:
    """Fetch the tariff in effect for a site. Returns None if the site has none."""
    with _client(base_url, token) as client:
        data = _get_json(client, f"/api/sites/{site_id}/tariff")

    if data is None:
        return None
    try:
        return tariff_from_record(data, site_id=site_id)
    except (KeyError, TypeError, ValueError) as e:
        raise DashboardError(f"Unexpected tariff payload for site {site_id}: {e}") from e


def fetch_site_devices(
    site_id: int, base_url: str | None = None, token: str | None = None
) -> list[Device]:
    """Fetch all devices registered to a site."""
    with _client(base_url, token) as client:
        data = _get_json(client, f"/api/sites/{site_id}/devices")

    if data is None:
        return []
    if not isinstance(data, list):
        raise DashboardError(f"Expected a device list for site {site_id}")

    devices = []
    for record in data:
        try:
            devices.append(device_from_record(record))
        except (KeyError, TypeError, ValueError):
            # Skip malformed device records
            logger.warning("Skipping malformed device record for site %s: %r", site_id, record)
    return devices


def import_site(
    site_id: int,
    base_url: str | None = None,
    token: str | None = None,
    db_path: Path | None = None,
) -> dict:
    """Fetch a site's tariff and devices and save them locally.

    Returns dict with 'tariff' (name or None) and 'devices' count.
    """
    tariff = fetch_site_tariff(site_id, base_url, token)
    devices = fetch_site_devices(site_id, base_url, token)

    if tariff is not None:
        # The dashboard tariff replaces whatever the site had locally
        tariff.id = None
        delete_tariffs_for_site(site_id, db_path)
        save_tariff(tariff, db_path)

    count = save_devices(site_id, devices, db_path)
    logger.info("Imported site %s: tariff=%s, %d device(s)", site_id, tariff and tariff.name, count)
    return {"tariff": tariff.name if tariff else None, "devices": count}
