"""Command-line interface for PyKonnected."""

import asyncio
import json
import logging
import sys
from pathlib import Path

try:
    import click
    from rich.console import Console
    from rich.table import Table
except ImportError:
    print("CLI dependencies not installed. Install with: pip install pykonnected[cli]")
    sys.exit(1)

from . import __version__
from .compiler import compile_panel
from .config import ConfigStore
from .const.protocol import DEFAULT_DISCOVERY_TIMEOUT, SSDP_URN_PREFIX
from .const.states import PanelGeneration
from .const.zones import BASIC_ZONES, PRO_ZONES, ZONES_TO_PINS
from .connection import PanelClient
from .discovery import SSDPResponse, decide_provisioning, extract_uuid, ssdp_search, status_url
from .exceptions import KonnectedConfigError, KonnectedConnectionError
from .models import Panel, PlatformConfig, ZoneRuntime
from .platform import KonnectedPlatform, default_listener_ip

console = Console()


def load_config(store: ConfigStore) -> PlatformConfig:
    """Load settings or exit with a readable error."""
    try:
        return store.load()
    except KonnectedConfigError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--config",
    "-c",
    type=click.Path(dir_okay=False, path_type=Path),
    default="config.yaml",
    help="Configuration file path",
)
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, config: Path, debug: bool) -> None:
    """PyKonnected - Discover, provision and monitor Konnected alarm panels."""
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    ctx.ensure_object(dict)
    ctx.obj["store"] = ConfigStore(config)
    ctx.obj["debug"] = debug


@cli.command()
@click.option("--duration", default=0, type=int, help="Seconds to run (0=until Ctrl+C)")
@click.pass_context
def run(ctx: click.Context, duration: int) -> None:
    """Run the callback server, discover and provision panels."""
    store: ConfigStore = ctx.obj["store"]
    config = load_config(store) if store.path.exists() else PlatformConfig()

    async def main_loop():
        platform = KonnectedPlatform(config, store=store)

        def on_triggered(zone: ZoneRuntime | None) -> None:
            source = f" by {zone.display_name} ({zone.serial_number})" if zone else ""
            console.print(f"[bold red]ALARM TRIGGERED{source}[/bold red]")

        platform.security.add_trigger_hook(on_triggered)
        await platform.start()
        console.print(f"[green]Listening for panels at {platform.callback_endpoint}[/green]")
        try:
            if duration > 0:
                await asyncio.sleep(duration)
            else:
                while True:
                    await asyncio.sleep(3600)
        finally:
            await platform.stop()

    try:
        asyncio.run(main_loop())
    except KeyboardInterrupt:
        pass


@cli.command()
@click.option(
    "--timeout",
    default=DEFAULT_DISCOVERY_TIMEOUT,
    show_default=True,
    type=float,
    help="Seconds to listen for responses",
)
@click.option("--json", "as_json", is_flag=True, help="Output panels as JSON")
@click.pass_context
def discover(ctx: click.Context, timeout: float, as_json: bool) -> None:
    """Search the network for panels (no provisioning)."""
    store: ConfigStore = ctx.obj["store"]
    config = load_config(store) if store.path.exists() else PlatformConfig()
    listener_host = config.advanced.listener_ip or default_listener_ip()
    listener_port = config.advanced.listener_port

    async def run():
        found: dict[str, SSDPResponse] = {}

        def on_response(response: SSDPResponse) -> None:
            if SSDP_URN_PREFIX in response.search_target:
                found.setdefault(extract_uuid(response.usn) or response.usn, response)

        await ssdp_search(timeout, on_response)

        panels = []
        async with PanelClient() as client:
            for uuid, response in found.items():
                row = {"uuid": uuid, "location": response.location, "model": None, "decision": None}
                try:
                    status = await client.get_json(status_url(response.location))
                except KonnectedConnectionError as e:
                    row["error"] = str(e)
                else:
                    row["model"] = Panel.from_status(uuid, status).model_label
                    row["decision"] = decide_provisioning(status, listener_host, listener_port).value
                panels.append(row)
        return panels

    if not as_json:
        console.print(f"[cyan]Searching for {timeout:g}s...[/cyan]")
    try:
        panels = asyncio.run(run())
    except OSError as e:
        if as_json:
            click.echo(json.dumps({"ok": False, "error": str(e)}))
        else:
            console.print(f"[red]Error: {e}[/red]")
        raise SystemExit(1)

    if as_json:
        click.echo(json.dumps({"ok": True, "panels": panels}))
        return

    if not panels:
        console.print("[yellow]No panels found[/yellow]")
        return

    table = Table(title="Panels")
    table.add_column("UUID", style="cyan")
    table.add_column("Location", style="magenta")
    table.add_column("Model", style="yellow")
    table.add_column("Provisioning", style="green")
    for row in panels:
        decision = row["decision"] or f"[red]{row.get('error', 'unknown')}[/red]"
        table.add_row(row["uuid"], row["location"], row["model"] or "", decision)
    console.print(table)


@cli.command("compile")
@click.argument("panel_uuid")
@click.option(
    "--generation",
    type=click.Choice([g.value for g in PanelGeneration]),
    default=PanelGeneration.BASIC.value,
    show_default=True,
    help="Panel generation to compile for",
)
@click.option("--json", "as_json", is_flag=True, help="Output the provisioning arrays as JSON")
@click.pass_context
def compile_cmd(ctx: click.Context, panel_uuid: str, generation: str, as_json: bool) -> None:
    """Show the zone payload a configured panel would be provisioned with."""
    config = load_config(ctx.obj["store"])
    panel_config = config.panel(panel_uuid)
    if panel_config is None:
        if as_json:
            click.echo(json.dumps({"ok": False, "error": f"Panel {panel_uuid} not in config"}))
        else:
            console.print(f"[red]Panel {panel_uuid} not in config[/red]")
        raise SystemExit(1)

    panel = Panel(uuid=panel_uuid, host="", port=0, generation=PanelGeneration(generation))
    compiled = compile_panel(panel, panel_config.zones)

    if as_json:
        click.echo(
            json.dumps(
                {
                    "ok": True,
                    "payload": compiled.payload,
                    "rejected": compiled.rejected,
                    "duplicates": compiled.duplicates,
                }
            )
        )
        return

    table = Table(title=f"Zones for {panel_config.name or panel_uuid}")
    table.add_column("Zone", style="cyan")
    table.add_column("Name", style="magenta")
    table.add_column("Type", style="yellow")
    table.add_column("Trigger", style="green")
    for runtime in compiled.runtimes:
        trigger = ("high" if runtime.trigger else "low") if runtime.is_actuator else ""
        table.add_row(runtime.zone, runtime.display_name, runtime.zone_type.value, trigger)
    console.print(table)

    for zone in compiled.rejected:
        console.print(f"[red]Rejected zone {zone}[/red]")
    for zone in compiled.duplicates:
        console.print(f"[yellow]Duplicate zone {zone} dropped[/yellow]")


@cli.command()
@click.option(
    "--generation",
    type=click.Choice([g.value for g in PanelGeneration]),
    default=PanelGeneration.BASIC.value,
    show_default=True,
    help="Panel generation to list",
)
@click.option("--json", "as_json", is_flag=True, help="Output JSON instead of text")
def zones(generation: str, as_json: bool) -> None:
    """List the zones a panel generation supports."""
    is_pro = generation == PanelGeneration.PRO.value
    zone_map = PRO_ZONES if is_pro else BASIC_ZONES

    if as_json:
        rows = [
            {
                "zone": zone,
                "pin": None if is_pro else ZONES_TO_PINS.get(zone),
                "capabilities": sorted(c.value for c in capabilities),
            }
            for zone, capabilities in zone_map.items()
        ]
        click.echo(json.dumps({"ok": True, "generation": generation, "zones": rows}))
        return

    table = Table(title="Pro Zones" if is_pro else "V1/V2 Zones")
    table.add_column("Zone", style="cyan")
    if not is_pro:
        table.add_column("Pin", style="magenta")
    table.add_column("Capabilities", style="yellow")
    for zone, capabilities in zone_map.items():
        caps = ", ".join(sorted(c.value for c in capabilities))
        if is_pro:
            table.add_row(zone, caps)
        else:
            table.add_row(zone, str(ZONES_TO_PINS.get(zone, "")), caps)
    console.print(table)


def main() -> None:
    """CLI entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
