"""
Command-line interface for the demo station.

Provides the ``serve`` command that runs the web server and ``info`` to
inspect the effective configuration, using the Click framework.
"""

import logging
import socket
from pathlib import Path
from typing import List

import click
import psutil
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from station.config import VERSION, load_config

console = Console()

_VIRTUAL_INTERFACE_PREFIXES = ("docker", "br-", "veth", "lo")


def setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(name)s: %(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )
    logging.getLogger("watchdog").setLevel(logging.WARNING)


def get_active_endpoints() -> List[str]:
    """IPv4 addresses of the interfaces that are up, for the startup banner."""
    stats = psutil.net_if_stats()
    found = []
    for name, addrs in sorted(psutil.net_if_addrs().items()):
        if name.lower().startswith(_VIRTUAL_INTERFACE_PREFIXES):
            continue
        if name in stats and not stats[name].isup:
            continue
        found.extend(a.address for a in addrs
                     if a.family == socket.AF_INET and not a.address.startswith("127."))
    return list(dict.fromkeys(found))


def _print_access_summary(host: str, port: int, music_dir: Path) -> None:
    lines = [f"[bold]Music:[/bold]  {music_dir}", f"[bold]Local:[/bold]  http://localhost:{port}/"]
    if host in ("0.0.0.0", "::", ""):
        for ip in get_active_endpoints():
            lines.append(f"[bold]Remote:[/bold] http://{ip}:{port}/")
    else:
        lines.append(f"[bold]Bound:[/bold]  http://{host}:{port}/")
    console.print(Panel.fit("\n".join(lines), title="[bold cyan]Demo station online[/bold cyan]",
                            border_style="cyan"))


@click.group()
@click.version_option(version=VERSION)
def cli():
    """
    Demo station: browse, play and manage folders of .wav demos
    from any device on your local network.
    """
    pass


@cli.command()
@click.option("--host", default=None, help="Address to bind (env HOST)")
@click.option("--port", type=int, default=None, help="Port to listen on (env PORT)")
@click.option("--music-dir", type=click.Path(file_okay=False, path_type=Path), default=None,
              help="Root folder holding one directory per project (env MUSIC_DIR)")
@click.option("--data-dir", type=click.Path(file_okay=False, path_type=Path), default=None,
              help="Where the password hash is stored (env DEMOHUB_DATA_DIR)")
@click.option("--trust-proxy/--no-trust-proxy", default=None,
              help="Honor X-Forwarded-For when classifying local clients (env TRUST_PROXY)")
@click.option("--no-watch", is_flag=True, help="Disable live reload on filesystem changes")
@click.option("--log-level", default="INFO", show_default=True,
              type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False))
def serve(host, port, music_dir, data_dir, trust_proxy, no_watch, log_level):
    """Run the web server."""
    from station.api import StationServices, create_app

    setup_logging(log_level)
    config = load_config().with_overrides(
        host=host,
        port=port,
        music_dir=music_dir,
        data_dir=data_dir,
        trust_proxy=trust_proxy,
        watch=False if no_watch else None,
    )

    services = StationServices(config)
    app = create_app(services=services)
    services.start()
    _print_access_summary(config.host, config.port, config.music_dir)
    if config.trust_proxy:
        console.print("[yellow]Trusting X-Forwarded-For for local network checks.[/yellow]")

    try:
        app.run(host=config.host, port=config.port, threaded=True, use_reloader=False)
    finally:
        services.shutdown()


@cli.command()
def info():
    """Show the effective configuration and library status."""
    from shared.crypto import CredentialStore
    from station.registry import ProjectRegistry

    config = load_config()
    credentials = CredentialStore(config.data_dir)

    table = Table(title="Demo station", show_header=False)
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    table.add_row("Music folder", str(config.music_dir))
    table.add_row("Data folder", str(config.data_dir))
    table.add_row("Listen", f"{config.host}:{config.port}")
    table.add_row("Trust proxy", "yes" if config.trust_proxy else "no")
    table.add_row("Password set", "yes" if credentials.is_configured() else "[yellow]no[/yellow]")

    if config.music_dir.is_dir():
        projects = ProjectRegistry(config.music_dir).list_projects()
        with_demos = sum(1 for p in projects if p.has_demos)
        table.add_row("Projects", f"{len(projects)} ({with_demos} with demos)")
    else:
        table.add_row("Projects", "[yellow]music folder missing[/yellow]")

    console.print(table)
