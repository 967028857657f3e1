"""Database connection and schema management for the local tariff store."""

import os
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from .models import BatteryDevice, Device, device_from_record, device_type

DEFAULT_DB_PATH = Path.home() / ".local" / "share" / "dispatch-advisor" / "advisor.db"

SCHEMA = """
-- Sites known to the advisor
CREATE TABLE IF NOT EXISTS sites (
    id INTEGER PRIMARY KEY,
    name TEXT
);

-- Tariff definitions (one site may carry several; the first is used)
CREATE TABLE IF NOT EXISTS tariffs (
    id INTEGER PRIMARY KEY,
    site_id INTEGER NOT NULL,
    name TEXT NOT NULL,
    provider TEXT,
    import_rate REAL,
    export_rate REAL,
    is_time_of_use INTEGER DEFAULT 0,
    schedule_data TEXT,
    data_interval_seconds INTEGER DEFAULT 60,
    currency TEXT DEFAULT 'USD',
    FOREIGN KEY (site_id) REFERENCES sites(id)
);

-- Devices as last seen on the dashboard
CREATE TABLE IF NOT EXISTS devices (
    id TEXT NOT NULL,
    site_id INTEGER NOT NULL,
    type TEXT NOT NULL,
    name TEXT,
    soc REAL,
    capacity_kwh REAL,
    PRIMARY KEY (site_id, id),
    FOREIGN KEY (site_id) REFERENCES sites(id)
);

CREATE INDEX IF NOT EXISTS idx_tariffs_site ON tariffs(site_id, id);
CREATE INDEX IF NOT EXISTS idx_devices_site ON devices(site_id);
"""


def get_db_path() -> Path:
    """Get the database path, creating parent directories if needed."""
    db_path = Path(os.environ.get("DISPATCH_ADVISOR_DB", DEFAULT_DB_PATH))
    db_path.parent.mkdir(parents=True, exist_ok=True)
    return db_path


@contextmanager
def get_connection(db_path: Path | None = None) -> Iterator[sqlite3.Connection]:
    """Get a database connection with row factory enabled."""
    path = db_path or get_db_path()
    conn = sqlite3.connect(path)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    finally:
        conn.close()


def init_db(db_path: Path | None = None) -> None:
    """Initialize the database schema."""
    with get_connection(db_path) as conn:
        conn.executescript(SCHEMA)
        conn.commit()


def ensure_site(conn: sqlite3.Connection, site_id: int, name: str | None = None) -> None:
    conn.execute("INSERT OR IGNORE INTO sites (id, name) VALUES (?, ?)", (site_id, name))


def save_devices(site_id: int, devices: list[Device], db_path: Path | None = None) -> int:
    """Replace the stored device list for a site. Returns number of devices saved."""
    with get_connection(db_path) as conn:
        ensure_site(conn, site_id)
        conn.execute("DELETE FROM devices WHERE site_id = ?", (site_id,))
        for device in devices:
            soc = capacity = None
            if isinstance(device, BatteryDevice):
                soc, capacity = device.soc, device.capacity_kwh
            conn.execute(
                """INSERT INTO devices (id, site_id, type, name, soc, capacity_kwh)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (str(device.id), site_id, device_type(device), device.name, soc, capacity),
            )
        conn.commit()
    return len(devices)


def get_devices_for_site(site_id: int, db_path: Path | None = None) -> list[Device]:
    """Load the stored device list for a site."""
    with get_connection(db_path) as conn:
        rows = conn.execute(
            "SELECT id, type, name, soc, capacity_kwh FROM devices WHERE site_id = ? ORDER BY rowid",
            (site_id,),
        ).fetchall()

    devices = []
    for row in rows:
        device_id = int(row["id"]) if row["id"].isdigit() else row["id"]
        devices.append(
            device_from_record(
                {
                    "id": device_id,
                    "type": row["type"],
                    "name": row["name"],
                    "soc": row["soc"],
                    "capacity_kwh": row["capacity_kwh"],
                }
            )
        )
    return devices


def get_stats(db_path: Path | None = None) -> dict:
    """Get database statistics."""
    with get_connection(db_path) as conn:
        stats = {}

        row = conn.execute("SELECT COUNT(*) as count FROM sites").fetchone()
        stats["sites"] = {"count": row["count"]}

        row = conn.execute(
            "SELECT COUNT(*) as count, SUM(is_time_of_use) as tou FROM tariffs"
        ).fetchone()
        stats["tariffs"] = {"count": row["count"], "time_of_use": row["tou"] or 0}

        row = conn.execute("SELECT COUNT(*) as count FROM devices").fetchone()
        stats["devices"] = {"count": row["count"]}

        # By type
        rows = conn.execute(
            "SELECT type, COUNT(*) as count FROM devices GROUP BY type ORDER BY type"
        ).fetchall()
        stats["devices_by_type"] = {row["type"]: row["count"] for row in rows}

        return stats
