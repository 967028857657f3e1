"""Data models for tariffs, devices and dispatch recommendations."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class Season(str, Enum):
    """Tariff season, selected by calendar month."""

    SUMMER = "summer"
    AUTUMN = "autumn"
    SPRING = "spring"
    WINTER = "winter"


class PricingPeriod(str, Enum):
    """Named time-of-use pricing period, highest to lowest rate."""

    PEAK = "peak"
    SHOULDER = "shoulder"
    OFF_PEAK = "off_peak"

    @property
    def label(self) -> str:
        return PERIOD_LABELS[self]


PERIOD_LABELS = {
    PricingPeriod.PEAK: "Peak (17:00-22:00)",
    PricingPeriod.SHOULDER: "Shoulder (7:00-17:00, 22:00-23:00)",
    PricingPeriod.OFF_PEAK: "Off-Peak (23:00-7:00)",
}
STANDARD_RATE_LABEL = "Standard Rate"


@dataclass(frozen=True)
class SeasonRates:
    """Peak, shoulder and off-peak rates for one season (currency/kWh)."""

    peak: float
    shoulder: float
    off_peak: float

    def rate_for(self, period: PricingPeriod) -> float:
        if period is PricingPeriod.PEAK:
            return self.peak
        if period is PricingPeriod.SHOULDER:
            return self.shoulder
        return self.off_peak

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SeasonRates":
        off_peak = data.get("offPeak", data.get("off_peak"))
        if off_peak is None or "peak" not in data or "shoulder" not in data:
            raise ValueError(f"Incomplete season rates: {data}")
        return cls(
            peak=float(data["peak"]),
            shoulder=float(data["shoulder"]),
            off_peak=float(off_peak),
        )

    def to_dict(self) -> dict[str, float]:
        return {"peak": self.peak, "shoulder": self.shoulder, "offPeak": self.off_peak}


TariffSchedule = dict[Season, SeasonRates]


def parse_schedule(data: dict[str, Any] | None) -> TariffSchedule | None:
    """Parse a JSON-shaped schedule mapping season name -> rates.

    Unknown season names are ignored; an empty result is returned as None.
    """
    if not data:
        return None
    schedule: TariffSchedule = {}
    for name, rates in data.items():
        try:
            season = Season(name)
        except ValueError:
            continue
        schedule[season] = SeasonRates.from_dict(rates)
    return schedule or None


def schedule_to_dict(schedule: TariffSchedule | None) -> dict[str, dict[str, float]] | None:
    if schedule is None:
        return None
    return {season.value: rates.to_dict() for season, rates in schedule.items()}


@dataclass
class Tariff:
    """A tariff row as held by the tariff store."""

    site_id: int
    name: str
    import_rate: float
    export_rate: float = 0.0
    provider: str | None = None
    is_time_of_use: bool = False
    schedule: TariffSchedule | None = None
    currency: str = "USD"
    data_interval_seconds: int = 60
    id: int | None = None


@dataclass(frozen=True)
class TariffInfo:
    """Read-only snapshot of a tariff classified against a point in time."""

    id: int | None
    name: str
    provider: str
    import_rate: float
    export_rate: float
    is_time_of_use: bool
    schedule: TariffSchedule | None
    currency: str
    current_rate: float
    current_period: str
    period: PricingPeriod | None
    season: Season | None
    is_israeli_tariff: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "provider": self.provider,
            "importRate": self.import_rate,
            "exportRate": self.export_rate,
            "isTimeOfUse": self.is_time_of_use,
            "scheduleData": schedule_to_dict(self.schedule),
            "currency": self.currency,
            "currentRate": self.current_rate,
            "currentPeriod": self.current_period,
            "isIsraeliTariff": self.is_israeli_tariff,
        }


# Devices are a closed set of kinds; the rules match on the class.


@dataclass(frozen=True)
class BatteryDevice:
    id: int | str
    name: str
    soc: float | None = None
    capacity_kwh: float | None = None


@dataclass(frozen=True)
class EVChargerDevice:
    id: int | str
    name: str


@dataclass(frozen=True)
class HeatPumpDevice:
    id: int | str
    name: str


@dataclass(frozen=True)
class OtherDevice:
    """Any device kind the dispatch rules do not act on (solar, gateway, ...)."""

    id: int | str
    name: str
    type: str


Device = BatteryDevice | EVChargerDevice | HeatPumpDevice | OtherDevice

BATTERY_TYPES = ("battery_storage", "battery")
EV_CHARGER_TYPE = "ev_charger"
HEAT_PUMP_TYPE = "heat_pump"


def device_type(device: Device) -> str:
    """Return the external type string for a device."""
    if isinstance(device, BatteryDevice):
        return "battery_storage"
    if isinstance(device, EVChargerDevice):
        return EV_CHARGER_TYPE
    if isinstance(device, HeatPumpDevice):
        return HEAT_PUMP_TYPE
    return device.type


def _read_soc(record: dict[str, Any]) -> float | None:
    readings = record.get("readings") or {}
    for value in (readings.get("soc"), record.get("soc"), record.get("stateOfCharge")):
        if value is not None:
            return float(value)
    return None


def device_from_record(record: dict[str, Any]) -> Device:
    """Build a device from a dashboard-shaped record (``id``, ``type``, ``name``)."""
    kind = record.get("type", "")
    device_id = record["id"]
    name = record.get("name") or str(device_id)

    if kind in BATTERY_TYPES:
        capacity = record.get("capacity_kwh", record.get("capacity"))
        return BatteryDevice(
            id=device_id,
            name=name,
            soc=_read_soc(record),
            capacity_kwh=float(capacity) if capacity is not None else None,
        )
    if kind == EV_CHARGER_TYPE:
        return EVChargerDevice(id=device_id, name=name)
    if kind == HEAT_PUMP_TYPE:
        return HeatPumpDevice(id=device_id, name=name)
    return OtherDevice(id=device_id, name=name, type=kind)


@dataclass(frozen=True)
class Recommendation:
    """A single timestamped device command for the dispatch layer."""

    device_id: int | str
    command: str
    params: dict[str, Any]
    priority: int
    scheduled_time: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "deviceId": self.device_id,
            "command": self.command,
            "params": dict(self.params),
            "priority": self.priority,
            "scheduledTime": self.scheduled_time.isoformat(),
        }


class ReasonCode(str, Enum):
    """Why a rule (or the aggregator) produced what it produced."""

    NO_TARIFF = "no_tariff"
    TARIFF_CONTEXT = "tariff_context"
    SPECIALIZED_STRATEGY = "specialized_strategy"
    NO_ACTION = "no_action"
    OFF_PEAK_CHARGE = "off_peak_charge"
    RESERVE_CHARGE = "reserve_charge"
    PEAK_DISCHARGE = "peak_discharge"
    EV_OFF_PEAK_CHARGE = "ev_off_peak_charge"
    EV_SHOULDER_CHARGE = "ev_shoulder_charge"
    EV_PEAK_DEFER = "ev_peak_defer"
    FLAT_RATE_CHARGE = "flat_rate_charge"
    HEAT_PUMP_BOOST = "heat_pump_boost"
    HEAT_PUMP_NORMAL = "heat_pump_normal"
    HEAT_PUMP_ECONOMY = "heat_pump_economy"
    HEAT_PUMP_FLAT_RATE = "heat_pump_flat_rate"
    NO_DEVICE_ACTIONS = "no_device_actions"
    PERIOD_MISMATCH = "period_mismatch"
    SAVINGS_ESTIMATE = "savings_estimate"


@dataclass(frozen=True)
class ReasonNote:
    """A structured reasoning entry; rendered to text by the narrative layer.

    ``device_label`` is e.g. "Battery" and ``device_name`` the device's name;
    both are None for site-wide notes. ``values`` carries numbers the text needs.
    """

    code: ReasonCode
    specialized: bool = False
    device_label: str | None = None
    device_name: str | None = None
    values: dict[str, Any] = field(default_factory=dict)


@dataclass
class AdvisorResult:
    """Outcome of one advisory run for a site."""

    recommendations: list[Recommendation]
    notes: list[ReasonNote]
    generated_at: datetime
    predicted_savings: float = 0.0
    confidence_score: float | None = None
    tariff: TariffInfo | None = None

    @property
    def reasoning(self) -> str:
        from .reports.narrative import render_reasoning

        return render_reasoning(self.notes)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "recommendations": [r.to_dict() for r in self.recommendations],
            "reasoning": self.reasoning,
        }
        if self.tariff is not None:
            data["predictedSavings"] = self.predicted_savings
            data["confidenceScore"] = self.confidence_score
        return data
