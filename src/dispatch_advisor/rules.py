"""Per-device dispatch rules driven by the tariff pricing period.

Each rule is a pure function of the tariff snapshot, the device state and
``now``. Rules return a decision plus a ReasonCode; turning that into text
is left to reports.narrative.

Battery rules use the hour-only period helpers, while the tariff snapshot
is classified season-aware. advisor.advise reports when the two disagree.
"""

from dataclasses import dataclass
from datetime import datetime

from .config import DEFAULT_SETTINGS, AdvisorSettings
from .models import PricingPeriod, ReasonCode, TariffInfo
from .tariffs import (
    get_next_cheap_rate_period_start,
    is_off_peak_pricing_period,
    is_peak_pricing_period,
    pricing_period_for_hour,
)


@dataclass(frozen=True)
class BatteryChargeDecision:
    should_charge: bool
    target_soc: float
    reason: ReasonCode
    specialized: bool = False


@dataclass(frozen=True)
class BatteryDischargeDecision:
    should_discharge: bool
    target_soc: float
    reason: ReasonCode
    specialized: bool = False


@dataclass(frozen=True)
class EVChargingDecision:
    should_charge: bool
    recommended_start_time: datetime | None
    charge_power_kw: float
    reason: ReasonCode
    specialized: bool = False


@dataclass(frozen=True)
class HeatPumpDecision:
    should_run: bool
    mode: str  # normal | economy | boost
    preheating_recommended: bool
    reason: ReasonCode
    specialized: bool = False


def uses_specialized_tou(tariff_info: TariffInfo) -> bool:
    """Time-of-use rules only vary over the day for the specialized tariff class."""
    return tariff_info.is_israeli_tariff and tariff_info.is_time_of_use


def battery_charge_recommendation(
    tariff_info: TariffInfo,
    soc: float,
    now: datetime,
    settings: AdvisorSettings = DEFAULT_SETTINGS,
) -> BatteryChargeDecision:
    """Charge off-peak up to the target, or top up a low battery to the reserve."""
    off_peak = is_off_peak_pricing_period(now)

    if off_peak and soc < settings.battery_charge_target_soc:
        return BatteryChargeDecision(
            should_charge=True,
            target_soc=settings.battery_charge_target_soc,
            reason=ReasonCode.OFF_PEAK_CHARGE,
            specialized=tariff_info.is_israeli_tariff,
        )

    if not off_peak and soc < settings.battery_reserve_threshold_soc:
        return BatteryChargeDecision(
            should_charge=True,
            target_soc=settings.battery_reserve_target_soc,
            reason=ReasonCode.RESERVE_CHARGE,
        )

    return BatteryChargeDecision(should_charge=False, target_soc=soc, reason=ReasonCode.NO_ACTION)


def battery_discharge_recommendation(
    tariff_info: TariffInfo,
    soc: float,
    now: datetime,
    settings: AdvisorSettings = DEFAULT_SETTINGS,
) -> BatteryDischargeDecision:
    """Discharge during peak while the battery holds more than the minimum."""
    if is_peak_pricing_period(now) and soc > settings.battery_discharge_min_soc:
        return BatteryDischargeDecision(
            should_discharge=True,
            target_soc=settings.battery_discharge_target_soc,
            reason=ReasonCode.PEAK_DISCHARGE,
            specialized=tariff_info.is_israeli_tariff,
        )

    return BatteryDischargeDecision(should_discharge=False, target_soc=soc, reason=ReasonCode.NO_ACTION)


def ev_charging_recommendation(
    tariff_info: TariffInfo,
    now: datetime,
    settings: AdvisorSettings = DEFAULT_SETTINGS,
) -> EVChargingDecision:
    if not uses_specialized_tou(tariff_info):
        return EVChargingDecision(
            should_charge=True,
            recommended_start_time=now,
            charge_power_kw=settings.ev_full_power_kw,
            reason=ReasonCode.FLAT_RATE_CHARGE,
        )

    period = pricing_period_for_hour(now.hour)
    if period is PricingPeriod.OFF_PEAK:
        return EVChargingDecision(
            should_charge=True,
            recommended_start_time=now,
            charge_power_kw=settings.ev_full_power_kw,
            reason=ReasonCode.EV_OFF_PEAK_CHARGE,
            specialized=True,
        )
    if period is PricingPeriod.SHOULDER:
        return EVChargingDecision(
            should_charge=True,
            recommended_start_time=now,
            charge_power_kw=settings.ev_reduced_power_kw,
            reason=ReasonCode.EV_SHOULDER_CHARGE,
            specialized=True,
        )

    # Peak ends before the off-peak start, so this is always 23:00 today
    return EVChargingDecision(
        should_charge=False,
        recommended_start_time=get_next_cheap_rate_period_start(now),
        charge_power_kw=settings.ev_full_power_kw,
        reason=ReasonCode.EV_PEAK_DEFER,
        specialized=True,
    )


def heat_pump_recommendation(tariff_info: TariffInfo, now: datetime) -> HeatPumpDecision:
    """Pick a heat-pump mode for the current period. The heat pump always runs."""
    if not uses_specialized_tou(tariff_info):
        return HeatPumpDecision(
            should_run=True,
            mode="normal",
            preheating_recommended=False,
            reason=ReasonCode.HEAT_PUMP_FLAT_RATE,
        )

    period = pricing_period_for_hour(now.hour)
    if period is PricingPeriod.OFF_PEAK:
        return HeatPumpDecision(True, "boost", True, ReasonCode.HEAT_PUMP_BOOST, specialized=True)
    if period is PricingPeriod.SHOULDER:
        return HeatPumpDecision(True, "normal", False, ReasonCode.HEAT_PUMP_NORMAL, specialized=True)
    return HeatPumpDecision(True, "economy", False, ReasonCode.HEAT_PUMP_ECONOMY, specialized=True)
