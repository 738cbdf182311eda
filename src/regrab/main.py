"""Main entry point for regrab."""

import asyncio
from pathlib import Path
from typing import Optional

import structlog
import typer
from pydantic import ValidationError
from rich.console import Console

from regrab import __version__
from regrab.core.config import Settings
from regrab.core.exceptions import ConfigError, UpstreamError
from regrab.core.logging import configure_logging
from regrab.services.qbittorrent_client import QBittorrentClient
from regrab.services.reconciler import Reconciler
from regrab.services.skip_set import SkipSet
from regrab.services.sonarr_client import SonarrClient

app = typer.Typer(
    name="regrab",
    help="regrab - submit Sonarr's grabbed releases to qBittorrent",
)
console = Console()
logger = structlog.get_logger()

DEFAULT_CONFIG_PATHS = [
    Path("config/config.yaml"),
    Path("config.yaml"),
    Path.home() / ".regrab" / "config.yaml",
]


def find_config(config_path: Optional[Path]) -> Optional[Path]:
    """Return the config file to load, or None to use defaults.

    Raises:
        ConfigError: An explicit path does not exist
    """
    if config_path is not None:
        if not config_path.exists():
            raise ConfigError(f"config file not found: {config_path}")
        return config_path

    for path in DEFAULT_CONFIG_PATHS:
        if path.exists():
            return path
    return None


def load_settings(config_path: Optional[Path]) -> Settings:
    """Load settings from file or defaults.

    Nothing is logged here since logging is configured from the result.

    Raises:
        ConfigError: The file is unreadable or the settings are invalid
    """
    path = find_config(config_path)
    if path is not None:
        return Settings.from_yaml(path)

    try:
        return Settings()
    except ValidationError as e:
        raise ConfigError(str(e)) from e


def build_reconciler(settings: Settings) -> Reconciler:
    """Wire the clients and loop state from settings."""
    skip_window = settings.reconcile.skip_window
    return Reconciler(
        config=settings.reconcile,
        sonarr=SonarrClient(settings.sonarr),
        qbittorrent=QBittorrentClient(settings.qbittorrent),
        category=settings.qbittorrent.category,
        skip_set=SkipSet(skip_window) if skip_window else None,
    )


async def run_reconciler(settings: Settings, once: bool = False) -> None:
    """Run the reconcile loop until the process is killed."""
    reconciler = build_reconciler(settings)
    try:
        if once:
            await reconciler.tick()
        else:
            await reconciler.run_forever()
    finally:
        await reconciler.sonarr.close()
        await reconciler.qbittorrent.close()


def _startup_settings(config: Optional[Path]) -> Settings:
    try:
        settings = load_settings(config)
        settings.validate_required()
    except ConfigError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(code=1)
    return settings


@app.command()
def run(
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to configuration file",
    ),
    once: bool = typer.Option(
        False,
        "--once",
        help="Run a single reconcile pass and exit",
    ),
) -> None:
    """Run the reconcile loop."""
    settings = _startup_settings(config)
    configure_logging(settings.logging)
    config_path = find_config(config)
    logger.info(
        "regrab_starting",
        version=__version__,
        config=str(config_path) if config_path else "defaults",
        sonarr=settings.sonarr.url,
    )

    try:
        asyncio.run(run_reconciler(settings, once=once))
    except KeyboardInterrupt:
        logger.info("regrab_stopped")


async def _check_connections(settings: Settings) -> tuple[Optional[str], Optional[str]]:
    """Return (sonarr error, qbittorrent error); None means reachable."""
    sonarr = SonarrClient(settings.sonarr)
    qbittorrent = QBittorrentClient(settings.qbittorrent)
    sonarr_error = qb_error = None

    try:
        await sonarr.system_status()
    except UpstreamError as e:
        sonarr_error = str(e)
    finally:
        await sonarr.close()

    try:
        await qbittorrent.app_version()
    except UpstreamError as e:
        qb_error = str(e)
    finally:
        await qbittorrent.close()

    return sonarr_error, qb_error


@app.command()
def check(
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to configuration file",
    ),
) -> None:
    """Check configuration and connectivity to Sonarr and qBittorrent."""
    console.print("[bold]regrab - System Check[/bold]\n")

    settings = _startup_settings(config)
    reconcile = settings.reconcile
    console.print("[green][OK][/green] Configuration loaded")
    console.print(f"  check interval: {reconcile.check_interval}")
    console.print(f"  max release age: {reconcile.max_age}")
    console.print(f"  skip window: {reconcile.skip_window or 'disabled'}")
    console.print(f"  category: {settings.qbittorrent.category}")

    sonarr_error, qb_error = asyncio.run(_check_connections(settings))

    if sonarr_error is None:
        console.print(f"[green][OK][/green] Sonarr reachable: {settings.sonarr.url}")
    else:
        console.print(f"[red][X][/red] Sonarr unreachable: {settings.sonarr.url}")
        console.print(f"  ({sonarr_error})")

    if qb_error is None:
        console.print(f"[green][OK][/green] qBittorrent reachable: {settings.qbittorrent.url}")
    else:
        console.print(f"[red][X][/red] qBittorrent unreachable: {settings.qbittorrent.url}")
        console.print(f"  ({qb_error})")

    if sonarr_error or qb_error:
        raise typer.Exit(code=1)


@app.command()
def version() -> None:
    """Show version information."""
    console.print(f"regrab v{__version__}")


if __name__ == "__main__":
    app()
