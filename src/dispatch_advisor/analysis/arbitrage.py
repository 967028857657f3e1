"""Battery arbitrage profitability and optimization-potential estimates."""

from dataclasses import dataclass
from datetime import datetime, timedelta

from ..config import DEFAULT_SETTINGS, AdvisorSettings
from ..models import BatteryDevice, Device, EVChargerDevice, HeatPumpDevice, OtherDevice, TariffInfo
from ..tariffs import (
    OFF_PEAK_END_HOUR,
    OFF_PEAK_START_HOUR,
    PEAK_END_HOUR,
    PEAK_START_HOUR,
    season_for_month,
)

# Monthly estimate assumptions
ARBITRAGE_BATTERY_KWH = 10
DAYS_PER_MONTH = 30
EV_BATTERY_KWH = 50
EV_CHARGES_PER_WEEK = 3
WEEKS_PER_MONTH = 4.3
HEAT_PUMP_DAILY_KWH = 15
HEAT_PUMP_SHIFTABLE_FRACTION = 0.6

ISRAELI_BATTERY_FACTOR = 1.2
ISRAELI_EV_FACTOR = 1.1
ISRAELI_HEAT_PUMP_FACTOR = 1.15


@dataclass(frozen=True)
class TimeWindow:
    start_time: datetime
    end_time: datetime


@dataclass
class OptimizationSummary:
    """What tariff-driven optimization could achieve for a site."""

    site_id: int
    tariff_name: str
    is_israeli_tariff: bool
    is_time_of_use: bool
    current_rate: float
    current_period: str
    currency: str
    has_battery: bool = False
    has_ev_charger: bool = False
    has_heat_pump: bool = False
    has_solar: bool = False
    battery_arbitrage: bool = False
    ev_smart_charging: bool = False
    heat_pump_optimization: bool = False
    estimated_monthly_savings: float = 0.0
    rate_differential: float | None = None

    def to_dict(self) -> dict:
        return {
            "siteId": self.site_id,
            "tariffName": self.tariff_name,
            "isIsraeliTariff": self.is_israeli_tariff,
            "isTimeOfUse": self.is_time_of_use,
            "currentRate": self.current_rate,
            "currentPeriod": self.current_period,
            "currency": self.currency,
            "optimizationPotential": {
                "batteryArbitrage": self.battery_arbitrage,
                "evSmartCharging": self.ev_smart_charging,
                "heatPumpOptimization": self.heat_pump_optimization,
                "estimatedMonthlySavings": round(self.estimated_monthly_savings, 2),
            },
            "devices": {
                "hasBattery": self.has_battery,
                "hasEVCharger": self.has_ev_charger,
                "hasHeatPump": self.has_heat_pump,
                "hasSolar": self.has_solar,
            },
        }


def calculate_arbitrage_savings(
    battery_capacity_kwh: float,
    battery_efficiency: float,
    current_rate_per_kwh: float,
    next_cheap_rate_per_kwh: float,
    settings: AdvisorSettings = DEFAULT_SETTINGS,
) -> float:
    """Potential savings from one charge/discharge cycle.

    Charging at ``next_cheap_rate_per_kwh`` costs more per delivered kWh
    because of round-trip losses. The result may be negative.
    """
    usable_capacity = battery_capacity_kwh * settings.usable_capacity_fraction
    savings_per_kwh = current_rate_per_kwh - (next_cheap_rate_per_kwh / battery_efficiency)
    return usable_capacity * savings_per_kwh


def is_arbitrage_profitable(
    tariff_info: TariffInfo, now: datetime, settings: AdvisorSettings = DEFAULT_SETTINGS
) -> bool:
    """Check whether the seasonal peak/off-peak spread beats battery losses."""
    if not tariff_info.is_time_of_use or not tariff_info.is_israeli_tariff:
        return False
    if not tariff_info.schedule:
        return False

    season_rates = tariff_info.schedule.get(season_for_month(now.month))
    if season_rates is None:
        return False

    return season_rates.peak > season_rates.off_peak / settings.round_trip_efficiency


def get_optimal_charge_timing(now: datetime) -> TimeWindow:
    """Off-peak charging window: now if already off-peak, else tonight at 23:00."""
    if OFF_PEAK_END_HOUR <= now.hour < OFF_PEAK_START_HOUR:
        start = now.replace(hour=OFF_PEAK_START_HOUR, minute=0, second=0, microsecond=0)
    else:
        start = now

    end = start.replace(hour=OFF_PEAK_END_HOUR, minute=0, second=0, microsecond=0)
    if start.hour >= OFF_PEAK_START_HOUR:
        end += timedelta(days=1)
    return TimeWindow(start, end)


def get_optimal_discharge_timing(now: datetime) -> TimeWindow:
    """Peak discharge window, rolling to tomorrow once today's has passed."""
    if now.hour < PEAK_START_HOUR:
        start = now.replace(hour=PEAK_START_HOUR, minute=0, second=0, microsecond=0)
    elif now.hour >= PEAK_END_HOUR:
        start = (now + timedelta(days=1)).replace(
            hour=PEAK_START_HOUR, minute=0, second=0, microsecond=0
        )
    else:
        start = now

    end = start.replace(hour=PEAK_END_HOUR, minute=0, second=0, microsecond=0)
    return TimeWindow(start, end)


def estimate_battery_arbitrage_savings(
    peak_rate: float,
    off_peak_rate: float,
    is_israeli_tariff: bool,
    settings: AdvisorSettings = DEFAULT_SETTINGS,
) -> float:
    """Monthly savings from one 10 kWh arbitrage cycle a day."""
    per_cycle = ARBITRAGE_BATTERY_KWH * (peak_rate - off_peak_rate / settings.round_trip_efficiency)
    monthly = per_cycle * DAYS_PER_MONTH
    return monthly * ISRAELI_BATTERY_FACTOR if is_israeli_tariff else monthly


def estimate_ev_charging_savings(peak_rate: float, off_peak_rate: float, is_israeli_tariff: bool) -> float:
    """Monthly savings from moving three 50 kWh charges a week off-peak."""
    per_charge = EV_BATTERY_KWH * (peak_rate - off_peak_rate)
    monthly = per_charge * EV_CHARGES_PER_WEEK * WEEKS_PER_MONTH
    return monthly * ISRAELI_EV_FACTOR if is_israeli_tariff else monthly


def estimate_heat_pump_savings(peak_rate: float, off_peak_rate: float, is_israeli_tariff: bool) -> float:
    """Monthly savings from shifting part of the daily heat-pump load."""
    shiftable = HEAT_PUMP_DAILY_KWH * HEAT_PUMP_SHIFTABLE_FRACTION
    monthly = shiftable * (peak_rate - off_peak_rate) * DAYS_PER_MONTH
    return monthly * ISRAELI_HEAT_PUMP_FACTOR if is_israeli_tariff else monthly


def summarize_optimization_potential(
    site_id: int,
    tariff_info: TariffInfo,
    devices: list[Device],
    now: datetime,
    settings: AdvisorSettings = DEFAULT_SETTINGS,
) -> OptimizationSummary:
    """Assess which device kinds are worth optimizing against the tariff."""
    summary = OptimizationSummary(
        site_id=site_id,
        tariff_name=tariff_info.name,
        is_israeli_tariff=tariff_info.is_israeli_tariff,
        is_time_of_use=tariff_info.is_time_of_use,
        current_rate=tariff_info.current_rate,
        current_period=tariff_info.current_period,
        currency=tariff_info.currency,
    )

    for device in devices:
        if isinstance(device, BatteryDevice):
            summary.has_battery = True
        elif isinstance(device, EVChargerDevice):
            summary.has_ev_charger = True
        elif isinstance(device, HeatPumpDevice):
            summary.has_heat_pump = True
        elif isinstance(device, OtherDevice) and device.type == "solar_pv":
            summary.has_solar = True

    if not tariff_info.is_time_of_use or not tariff_info.schedule:
        return summary

    season_rates = tariff_info.schedule.get(season_for_month(now.month))
    if season_rates is None:
        return summary

    peak, off_peak = season_rates.peak, season_rates.off_peak
    summary.rate_differential = peak - off_peak
    if summary.rate_differential <= settings.large_differential_threshold:
        return summary

    israeli = tariff_info.is_israeli_tariff
    if summary.has_battery:
        summary.battery_arbitrage = True
        summary.estimated_monthly_savings += estimate_battery_arbitrage_savings(
            peak, off_peak, israeli, settings
        )
    if summary.has_ev_charger:
        summary.ev_smart_charging = True
        summary.estimated_monthly_savings += estimate_ev_charging_savings(peak, off_peak, israeli)
    if summary.has_heat_pump:
        summary.heat_pump_optimization = True
        summary.estimated_monthly_savings += estimate_heat_pump_savings(peak, off_peak, israeli)

    return summary
