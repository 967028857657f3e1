"""Device list loading from YAML.

Expected layout:

    sites:
      - id: 1
        devices:
          - {id: 10, type: battery_storage, name: Powerwall, readings: {soc: 64}}
          - {id: 11, type: ev_charger, name: Garage}
"""

from pathlib import Path

import yaml

from .models import Device, device_from_record


def load_devices_from_yaml(path: Path) -> dict[int, list[Device]]:
    """Load per-site device lists from a YAML file."""
    with open(path) as f:
        data = yaml.safe_load(f) or {}

    sites = {}
    for site in data.get("sites", []):
        if "id" not in site:
            raise ValueError(f"Site entry without id in {path}")
        sites[int(site["id"])] = [device_from_record(d) for d in site.get("devices", [])]
    return sites
