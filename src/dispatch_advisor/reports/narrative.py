"""Render structured reason notes as human-readable reasoning text."""

from ..models import ReasonCode, ReasonNote

ISRAELI_VARIATION = " Israeli electricity tariffs have significant price variation between periods."

MESSAGES = {
    ReasonCode.NO_TARIFF: "No tariff information available for this site.",
    ReasonCode.TARIFF_CONTEXT: (
        "Current tariff: {name}, Current rate: {rate} {currency}/kWh ({period})."
    ),
    ReasonCode.SPECIALIZED_STRATEGY: (
        "Using specialized Israeli tariff optimization strategies based on the significant "
        "price differentials between peak and off-peak periods."
    ),
    ReasonCode.NO_ACTION: "No specific recommendation based on current conditions.",
    ReasonCode.OFF_PEAK_CHARGE: (
        "Currently in off-peak period with lower electricity rates. "
        "Optimal time to charge battery."
    ),
    ReasonCode.RESERVE_CHARGE: (
        "Battery state of charge is low. "
        "Charging to minimum level to ensure reserve capacity."
    ),
    ReasonCode.PEAK_DISCHARGE: (
        "Currently in peak period with higher electricity rates. "
        "Optimal time to use battery power."
    ),
    ReasonCode.EV_OFF_PEAK_CHARGE: (
        "Currently in off-peak period with lowest electricity rates. "
        "Optimal time to charge EV at full power."
    ),
    ReasonCode.EV_SHOULDER_CHARGE: (
        "Currently in shoulder period with medium electricity rates. "
        "Acceptable time to charge EV at reduced power."
    ),
    ReasonCode.EV_PEAK_DEFER: (
        "Currently in peak period with highest electricity rates. "
        "Recommend delaying charging until off-peak period."
    ),
    ReasonCode.FLAT_RATE_CHARGE: (
        "Fixed-rate tariff without time variations. Charging can occur at any time."
    ),
    ReasonCode.HEAT_PUMP_BOOST: (
        "Currently in off-peak period. "
        "Recommend running heat pump in boost mode and pre-heating/cooling."
    ),
    ReasonCode.HEAT_PUMP_NORMAL: (
        "Currently in shoulder period. Recommend running heat pump in normal mode."
    ),
    ReasonCode.HEAT_PUMP_ECONOMY: (
        "Currently in peak period. "
        "Recommend running heat pump in economy mode to reduce energy consumption."
    ),
    ReasonCode.HEAT_PUMP_FLAT_RATE: (
        "Fixed-rate tariff without time variations. Normal operation recommended."
    ),
    ReasonCode.NO_DEVICE_ACTIONS: (
        "No specific device control recommendations based on current tariff conditions."
    ),
    ReasonCode.PERIOD_MISMATCH: (
        "Note: device rules acted on the {clock_period} clock period, "
        "but the tariff is billed at {billed_period}."
    ),
    ReasonCode.SAVINGS_ESTIMATE: (
        "Estimated daily savings: {savings:.2f} {currency} based on typical "
        "consumption patterns and current rates."
    ),
}

# Extra sentence appended for the specialized tariff class
SPECIALIZED_SUFFIX = {
    ReasonCode.OFF_PEAK_CHARGE: (
        " Israeli tariff has significant price differential between peak and off-peak "
        "periods, making this especially advantageous."
    ),
    ReasonCode.PEAK_DISCHARGE: (
        " Israeli peak tariff rates are significantly higher, "
        "making battery discharge highly economical."
    ),
    ReasonCode.EV_OFF_PEAK_CHARGE: ISRAELI_VARIATION,
    ReasonCode.EV_SHOULDER_CHARGE: ISRAELI_VARIATION,
    ReasonCode.EV_PEAK_DEFER: ISRAELI_VARIATION,
    ReasonCode.HEAT_PUMP_BOOST: ISRAELI_VARIATION,
    ReasonCode.HEAT_PUMP_NORMAL: ISRAELI_VARIATION,
    ReasonCode.HEAT_PUMP_ECONOMY: ISRAELI_VARIATION,
}


def render_note(note: ReasonNote) -> str:
    """Render a single note as one line of text."""
    text = MESSAGES[note.code].format(**note.values)
    if note.specialized:
        text += SPECIALIZED_SUFFIX.get(note.code, "")
    if note.device_label:
        text = f"{note.device_label} {note.device_name}: {text}"
    return text


def render_reasoning(notes: list[ReasonNote]) -> str:
    """Render all notes, one per line."""
    return "".join(f"{render_note(note)}\n" for note in notes)
