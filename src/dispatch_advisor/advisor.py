"""Tariff-based recommendation aggregator.

Turns a tariff snapshot and a site's device list into a flat list of
timestamped device commands, a rough daily savings estimate and the
notes explaining them.
"""

import logging
from datetime import datetime
from pathlib import Path

from .config import DEFAULT_SETTINGS, AdvisorSettings
from .errors import StrategyError
from .models import (
    AdvisorResult,
    BatteryDevice,
    Device,
    EVChargerDevice,
    HeatPumpDevice,
    ReasonCode,
    ReasonNote,
    Recommendation,
    TariffInfo,
)
from .rules import (
    battery_charge_recommendation,
    battery_discharge_recommendation,
    ev_charging_recommendation,
    heat_pump_recommendation,
    uses_specialized_tou,
)
from .tariffs import (
    get_tariff_info_for_site,
    is_off_peak_pricing_period,
    is_peak_pricing_period,
    pricing_period_for_hour,
)

logger = logging.getLogger(__name__)

BATTERY_PRIORITY = 1
EV_PRIORITY = 2
HEAT_PUMP_PRIORITY = 3

STRATEGY_DEVICE_KINDS = {
    "battery-arbitrage": BatteryDevice,
    "ev-smart-charging": EVChargerDevice,
    "heat-pump-optimization": HeatPumpDevice,
}
ISRAELI_TOU_STRATEGY = "israeli-tou"
STRATEGIES = (*STRATEGY_DEVICE_KINDS, ISRAELI_TOU_STRATEGY)


def _battery_actions(
    device: BatteryDevice,
    tariff_info: TariffInfo,
    soc: float,
    now: datetime,
    settings: AdvisorSettings,
) -> tuple[list[Recommendation], ReasonNote | None]:
    if is_peak_pricing_period(now):
        discharge = battery_discharge_recommendation(tariff_info, soc, now, settings)
        if discharge.should_discharge:
            command = Recommendation(
                device_id=device.id,
                command="setDischargeMode",
                params={"mode": "grid", "target": discharge.target_soc},
                priority=BATTERY_PRIORITY,
                scheduled_time=now,
            )
            return [command], ReasonNote(
                discharge.reason, discharge.specialized, "Battery", device.name
            )
        return [], None

    # Batteries are left alone during shoulder hours
    if not is_off_peak_pricing_period(now):
        return [], None

    charge = battery_charge_recommendation(tariff_info, soc, now, settings)
    if not charge.should_charge:
        return [], None

    command = Recommendation(
        device_id=device.id,
        command="setChargeMode",
        params={"mode": "grid", "target": charge.target_soc},
        priority=BATTERY_PRIORITY,
        scheduled_time=now,
    )
    return [command], ReasonNote(charge.reason, charge.specialized, "Battery", device.name)


def _ev_actions(
    device: EVChargerDevice, tariff_info: TariffInfo, now: datetime, settings: AdvisorSettings
) -> tuple[list[Recommendation], ReasonNote]:
    decision = ev_charging_recommendation(tariff_info, now, settings)
    note = ReasonNote(decision.reason, decision.specialized, "EV Charger", device.name)

    if decision.should_charge:
        # Chargers take amps: kW * 1000 / V, not kW / V
        current = round(decision.charge_power_kw * 1000 / settings.grid_voltage, 1)
        return [
            Recommendation(device.id, "setChargingCurrent", {"current": current}, EV_PRIORITY, now)
        ], note

    if decision.recommended_start_time is None:
        return [], note

    return [
        Recommendation(device.id, "setChargingCurrent", {"current": 0}, EV_PRIORITY, now),
        Recommendation(
            device.id,
            "setChargingCurrent",
            {"current": settings.ev_deferred_current_a},
            EV_PRIORITY,
            decision.recommended_start_time,
        ),
    ], note


def _heat_pump_actions(
    device: HeatPumpDevice, tariff_info: TariffInfo, now: datetime, settings: AdvisorSettings
) -> tuple[list[Recommendation], ReasonNote]:
    decision = heat_pump_recommendation(tariff_info, now)
    note = ReasonNote(decision.reason, decision.specialized, "Heat Pump", device.name)
    if not decision.should_run:
        return [], note

    actions = [
        Recommendation(
            device.id, "setOperationMode", {"mode": decision.mode}, HEAT_PUMP_PRIORITY, now
        )
    ]
    if decision.preheating_recommended:
        actions.append(
            Recommendation(
                device.id,
                "activatePreheating",
                {"duration": settings.preheating_minutes},
                HEAT_PUMP_PRIORITY,
                now,
            )
        )
    return actions, note


def advise(
    tariff_info: TariffInfo,
    devices: list[Device],
    now: datetime,
    battery_soc: float | None = None,
    settings: AdvisorSettings = DEFAULT_SETTINGS,
) -> AdvisorResult:
    """Build recommendations for every device against a classified tariff.

    ``battery_soc`` overrides the state of charge reported by battery devices.
    Device kinds without dispatch rules are skipped.
    """
    recommendations: list[Recommendation] = []
    notes = [
        ReasonNote(
            ReasonCode.TARIFF_CONTEXT,
            values={
                "name": tariff_info.name,
                "rate": tariff_info.current_rate,
                "currency": tariff_info.currency,
                "period": tariff_info.current_period,
            },
        )
    ]
    if tariff_info.is_israeli_tariff:
        notes.append(ReasonNote(ReasonCode.SPECIALIZED_STRATEGY))

    battery_acted = False
    for device in devices:
        if isinstance(device, BatteryDevice):
            if battery_soc is not None:
                soc = battery_soc
            elif device.soc is not None:
                soc = device.soc
            else:
                soc = settings.default_battery_soc
            actions, note = _battery_actions(device, tariff_info, soc, now, settings)
            battery_acted = battery_acted or bool(actions)
        elif isinstance(device, EVChargerDevice):
            actions, note = _ev_actions(device, tariff_info, now, settings)
        elif isinstance(device, HeatPumpDevice):
            actions, note = _heat_pump_actions(device, tariff_info, now, settings)
        else:
            logger.debug("No dispatch rules for %s device %s", device.type, device.id)
            continue

        recommendations.extend(actions)
        if note is not None:
            notes.append(note)

    if not recommendations:
        notes.append(ReasonNote(ReasonCode.NO_DEVICE_ACTIONS))

    clock_period = pricing_period_for_hour(now.hour)
    if battery_acted and tariff_info.is_time_of_use and tariff_info.period != clock_period:
        logger.warning(
            "Battery dispatched on %s clock period while tariff %r bills %s",
            clock_period.value,
            tariff_info.name,
            tariff_info.current_period,
        )
        notes.append(
            ReasonNote(
                ReasonCode.PERIOD_MISMATCH,
                values={
                    "clock_period": clock_period.label,
                    "billed_period": tariff_info.current_period,
                },
            )
        )

    predicted_savings = 0.0
    if tariff_info.is_time_of_use:
        if tariff_info.current_rate < tariff_info.import_rate:
            predicted_savings = (
                tariff_info.import_rate - tariff_info.current_rate
            ) * settings.daily_consumption_kwh
        notes.append(
            ReasonNote(
                ReasonCode.SAVINGS_ESTIMATE,
                values={"savings": predicted_savings, "currency": tariff_info.currency},
            )
        )

    return AdvisorResult(
        recommendations=recommendations,
        notes=notes,
        generated_at=now,
        predicted_savings=predicted_savings,
        confidence_score=settings.confidence_score,
        tariff=tariff_info,
    )


def no_tariff_result(now: datetime) -> AdvisorResult:
    return AdvisorResult(
        recommendations=[], notes=[ReasonNote(ReasonCode.NO_TARIFF)], generated_at=now
    )


def generate_tariff_based_recommendations(
    site_id: int,
    devices: list[Device],
    battery_soc: float | None = None,
    now: datetime | None = None,
    settings: AdvisorSettings = DEFAULT_SETTINGS,
    db_path: Path | None = None,
) -> AdvisorResult:
    """Look up a site's tariff and advise on its devices.

    A site without a tariff yields an empty recommendation list and an
    explanatory note rather than an error.
    """
    if now is None:
        now = datetime.now()

    tariff_info = get_tariff_info_for_site(site_id, now, settings, db_path)
    if tariff_info is None:
        logger.info("No tariff for site %s, nothing to recommend", site_id)
        return no_tariff_result(now)

    result = advise(tariff_info, devices, now, battery_soc, settings)
    logger.info(
        "Site %s: %d recommendation(s) during %s",
        site_id,
        len(result.recommendations),
        tariff_info.current_period,
    )
    return result


def apply_strategy(
    strategy: str,
    site_id: int,
    devices: list[Device],
    battery_soc: float | None = None,
    now: datetime | None = None,
    settings: AdvisorSettings = DEFAULT_SETTINGS,
    db_path: Path | None = None,
) -> AdvisorResult:
    """Advise for a named strategy.

    Device strategies restrict the run to one device kind; the Israeli
    time-of-use strategy requires a matching tariff on the site.
    """
    if now is None:
        now = datetime.now()

    if strategy in STRATEGY_DEVICE_KINDS:
        kind = STRATEGY_DEVICE_KINDS[strategy]
        selected = [d for d in devices if isinstance(d, kind)]
        return generate_tariff_based_recommendations(
            site_id, selected, battery_soc, now, settings, db_path
        )

    if strategy == ISRAELI_TOU_STRATEGY:
        tariff_info = get_tariff_info_for_site(site_id, now, settings, db_path)
        if tariff_info is None or not uses_specialized_tou(tariff_info):
            raise StrategyError("Israeli Time-of-Use tariff not configured for this site")
        return advise(tariff_info, devices, now, battery_soc, settings)

    raise StrategyError(f"Unknown tariff strategy: {strategy}")
