"""Command-line interface for the tariff dispatch advisor."""

import json
import logging
from datetime import datetime
from pathlib import Path

import click
import httpx
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from . import db
from .advisor import STRATEGIES, apply_strategy, generate_tariff_based_recommendations
from .analysis.arbitrage import (
    get_optimal_charge_timing,
    get_optimal_discharge_timing,
    is_arbitrage_profitable,
    summarize_optimization_potential,
)
from .collectors import dashboard
from .config import load_settings
from .devices import load_devices_from_yaml
from .errors import AdvisorError
from .models import BatteryDevice, device_type
from .tariffs import (
    create_preset_tariff,
    get_tariff_info_for_site,
    load_tariffs_from_yaml,
    save_tariffs_to_db,
)

console = Console()


def parse_at(at: str | None) -> datetime:
    """Parse an --at timestamp, defaulting to the current local time."""
    if not at:
        return datetime.now()
    try:
        return datetime.fromisoformat(at)
    except ValueError as e:
        raise click.BadParameter(f"not an ISO timestamp: {at}", param_hint="--at") from e


@click.group()
@click.option("--db-path", type=click.Path(), help="Path to SQLite database")
@click.option("--config", "config_path", type=click.Path(exists=True), help="Path to advisor.yaml")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx, db_path, config_path, verbose):
    """Tariff dispatch advisor - device recommendations from time-of-use pricing."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )
    ctx.ensure_object(dict)
    ctx.obj["db_path"] = Path(db_path) if db_path else None
    db.init_db(ctx.obj["db_path"])
    try:
        ctx.obj["settings"] = load_settings(Path(config_path) if config_path else None)
    except AdvisorError as e:
        raise click.ClickException(str(e)) from e


# Database commands
@cli.group()
def database():
    """Database management commands."""
    pass


@database.command("init")
@click.pass_context
def db_init(ctx):
    """Initialize the database schema."""
    db.init_db(ctx.obj["db_path"])
    console.print("[green]Database initialized successfully[/green]")


@database.command("stats")
@click.pass_context
def db_stats(ctx):
    """Show database statistics."""
    stats = db.get_stats(ctx.obj["db_path"])

    table = Table(title="Database Statistics")
    table.add_column("Category", style="cyan")
    table.add_column("Count", justify="right")

    table.add_row("Sites", str(stats["sites"]["count"]))
    table.add_row("Tariffs", str(stats["tariffs"]["count"]))
    table.add_row("  └ time-of-use", str(stats["tariffs"]["time_of_use"]))
    table.add_row("Devices", str(stats["devices"]["count"]))
    for kind, count in stats["devices_by_type"].items():
        table.add_row(f"  └ {kind}", str(count))

    console.print(table)


# Tariff commands
@cli.group()
def tariff():
    """Tariff management commands."""
    pass


@tariff.command("load")
@click.option("--file", "file_path", type=click.Path(exists=True), help="Path to tariffs.yaml")
@click.pass_context
def tariff_load(ctx, file_path):
    """Load tariffs from YAML config."""
    try:
        tariffs = load_tariffs_from_yaml(Path(file_path) if file_path else None)
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        return
    count = save_tariffs_to_db(tariffs, ctx.obj["db_path"], replace=True)
    console.print(f"[green]Loaded {count} tariff(s)[/green]")


@tariff.command("preset")
@click.argument("site_id", type=int)
@click.option(
    "--type", "kind", type=click.Choice(["tou", "lv", "hv"]), default="tou", help="Preset type"
)
@click.pass_context
def tariff_preset(ctx, site_id, kind):
    """Add an Israel Electric Corporation tariff to a site."""
    created = create_preset_tariff(site_id, kind, ctx.obj["db_path"])
    console.print(f"[green]Site {site_id} has tariff '{created.name}' (id {created.id})[/green]")


@tariff.command("show")
@click.argument("site_id", type=int)
@click.option("--at", help="Classify at this time (ISO format), defaults to now")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def tariff_show(ctx, site_id, at, as_json):
    """Show a site's tariff and its current pricing period."""
    now = parse_at(at)
    settings = ctx.obj["settings"]
    info = get_tariff_info_for_site(site_id, now, settings, ctx.obj["db_path"])
    if info is None:
        console.print(f"[yellow]No tariff found for site {site_id}[/yellow]")
        return

    if as_json:
        click.echo(json.dumps(info.to_dict(), indent=2))
        return

    table = Table(title=f"{info.name} ({info.provider})")
    table.add_column("Property", style="cyan")
    table.add_column("Value")
    table.add_row("Import rate", f"{info.import_rate} {info.currency}/kWh")
    table.add_row("Export rate", f"{info.export_rate} {info.currency}/kWh")
    table.add_row("Time of use", "yes" if info.is_time_of_use else "no")
    table.add_row("Current rate", f"{info.current_rate} {info.currency}/kWh")
    table.add_row("Current period", info.current_period)
    if info.season:
        table.add_row("Season", info.season.value)
    table.add_row("Arbitrage profitable", "yes" if is_arbitrage_profitable(info, now, settings) else "no")

    charge = get_optimal_charge_timing(now)
    discharge = get_optimal_discharge_timing(now)
    table.add_row("Charge window", f"{charge.start_time:%Y-%m-%d %H:%M} → {charge.end_time:%Y-%m-%d %H:%M}")
    table.add_row(
        "Discharge window", f"{discharge.start_time:%Y-%m-%d %H:%M} → {discharge.end_time:%Y-%m-%d %H:%M}"
    )
    console.print(table)


@tariff.command("rate")
@click.argument("site_id", type=int)
@click.option("--at", help="Rate at this time (ISO format), defaults to now")
@click.pass_context
def tariff_rate(ctx, site_id, at):
    """Print the current rate and period for a site."""
    now = parse_at(at)
    info = get_tariff_info_for_site(site_id, now, ctx.obj["settings"], ctx.obj["db_path"])
    if info is None:
        console.print(f"[yellow]No tariff found for site {site_id}[/yellow]")
        return
    console.print(f"{info.current_rate} {info.currency}/kWh ({info.current_period})")


# Device commands
@cli.group()
def devices():
    """Device list commands."""
    pass


@devices.command("load")
@click.argument("file_path", type=click.Path(exists=True))
@click.pass_context
def devices_load(ctx, file_path):
    """Load per-site device lists from YAML."""
    sites = load_devices_from_yaml(Path(file_path))
    for site_id, site_devices in sites.items():
        count = db.save_devices(site_id, site_devices, ctx.obj["db_path"])
        console.print(f"[green]Site {site_id}: saved {count} device(s)[/green]")


@devices.command("list")
@click.argument("site_id", type=int)
@click.pass_context
def devices_list(ctx, site_id):
    """List the devices stored for a site."""
    site_devices = db.get_devices_for_site(site_id, ctx.obj["db_path"])
    if not site_devices:
        console.print("[yellow]No devices found[/yellow]")
        return

    table = Table(title=f"Devices for site {site_id}")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Type")
    table.add_column("SoC", justify="right")

    for device in site_devices:
        soc = ""
        if isinstance(device, BatteryDevice) and device.soc is not None:
            soc = f"{device.soc:.0f}%"
        table.add_row(str(device.id), device.name, device_type(device), soc)

    console.print(table)


# Import commands
@cli.group("import")
def import_cmd():
    """Import data from the energy dashboard."""
    pass


@import_cmd.command("dashboard")
@click.argument("site_id", type=int)
@click.option("--url", help="Dashboard base URL (or set DASHBOARD_URL)")
@click.pass_context
def import_dashboard(ctx, site_id, url):
    """Import a site's tariff and devices from the dashboard API.

    Optionally reads a bearer token from DASHBOARD_TOKEN.
    """
    try:
        result = dashboard.import_site(site_id, base_url=url, db_path=ctx.obj["db_path"])
        if result["tariff"]:
            console.print(f"[green]Imported tariff '{result['tariff']}'[/green]")
        else:
            console.print(f"[yellow]Site {site_id} has no tariff on the dashboard[/yellow]")
        console.print(f"[green]Imported {result['devices']} device(s)[/green]")

    except httpx.ConnectError:
        console.print("[red]Could not connect to the dashboard - check DASHBOARD_URL[/red]")
    except AdvisorError as e:
        console.print(f"[red]Error: {e}[/red]")
    except Exception as e:
        console.print(f"[red]Failed to import site {site_id}: {e}[/red]")
        raise


# Advisory commands
@cli.command()
@click.argument("site_id", type=int)
@click.option("--soc", type=float, help="Battery state of charge override (%)")
@click.option("--at", help="Advise as of this time (ISO format), defaults to now")
@click.option("--strategy", type=click.Choice(STRATEGIES), help="Restrict to a tariff strategy")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def advise(ctx, site_id, soc, at, strategy, as_json):
    """Recommend device actions for a site's current tariff period."""
    now = parse_at(at)
    settings = ctx.obj["settings"]
    site_devices = db.get_devices_for_site(site_id, ctx.obj["db_path"])

    try:
        if strategy:
            result = apply_strategy(
                strategy, site_id, site_devices, soc, now, settings, ctx.obj["db_path"]
            )
        else:
            result = generate_tariff_based_recommendations(
                site_id, site_devices, soc, now, settings, ctx.obj["db_path"]
            )
    except AdvisorError as e:
        console.print(f"[red]Error: {e}[/red]")
        return

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    if result.recommendations:
        table = Table(title=f"Recommendations for site {site_id}")
        table.add_column("Device", style="cyan")
        table.add_column("Command")
        table.add_column("Params")
        table.add_column("Priority", justify="right")
        table.add_column("When")

        for rec in result.recommendations:
            params = ", ".join(f"{k}={v}" for k, v in rec.params.items())
            table.add_row(
                str(rec.device_id),
                rec.command,
                params,
                str(rec.priority),
                rec.scheduled_time.strftime("%Y-%m-%d %H:%M"),
            )
        console.print(table)

    console.print(result.reasoning.rstrip())
    if result.tariff is not None:
        console.print(
            f"[cyan]Predicted savings: {result.predicted_savings:.2f} {result.tariff.currency}"
            f" (confidence {result.confidence_score:.0%})[/cyan]"
        )


@cli.command()
@click.argument("site_id", type=int)
@click.option("--at", help="Evaluate as of this time (ISO format), defaults to now")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def summary(ctx, site_id, at, as_json):
    """Summarize tariff optimization potential for a site."""
    now = parse_at(at)
    settings = ctx.obj["settings"]
    info = get_tariff_info_for_site(site_id, now, settings, ctx.obj["db_path"])
    if info is None:
        console.print(f"[yellow]No tariff found for site {site_id}[/yellow]")
        return

    site_devices = db.get_devices_for_site(site_id, ctx.obj["db_path"])
    if not site_devices:
        console.print(f"[yellow]No devices found for site {site_id}[/yellow]")
        return

    data = summarize_optimization_potential(site_id, info, site_devices, now, settings)

    if as_json:
        click.echo(json.dumps(data.to_dict(), indent=2))
        return

    table = Table(title=f"Optimization potential: {data.tariff_name}")
    table.add_column("Strategy", style="cyan")
    table.add_column("Device present", justify="center")
    table.add_column("Worthwhile", justify="center")

    def mark(flag: bool) -> str:
        return "[green]✓[/green]" if flag else "[dim]-[/dim]"

    table.add_row("Battery arbitrage", mark(data.has_battery), mark(data.battery_arbitrage))
    table.add_row("EV smart charging", mark(data.has_ev_charger), mark(data.ev_smart_charging))
    table.add_row("Heat pump optimization", mark(data.has_heat_pump), mark(data.heat_pump_optimization))
    console.print(table)

    if data.rate_differential is not None:
        console.print(f"Peak/off-peak spread: {data.rate_differential:.2f} {data.currency}/kWh")
    console.print(
        f"[green]Estimated monthly savings: {data.estimated_monthly_savings:.2f} {data.currency}[/green]"
    )


if __name__ == "__main__":
    cli()
