"""CLI commands for skycast."""

import asyncio
import sys

import typer
from loguru import logger
from rich.console import Console
from rich.table import Table

from skycast import __logo__, __version__

app = typer.Typer(
    name="skycast",
    help=f"{__logo__} skycast - camera snapshots to a weather report",
    no_args_is_help=True,
)

console = Console()


def version_callback(value: bool):
    if value:
        console.print(f"{__logo__} skycast v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-v", callback=version_callback, is_eager=True
    ),
):
    """skycast - camera snapshots to a weather report."""
    pass


def _ok(flag: bool) -> str:
    return "[green]✓[/green]" if flag else "[red]✗[/red]"


# ============================================================================
# Onboard / Status
# ============================================================================


@app.command()
def onboard():
    """Write a default configuration and secrets file."""
    from skycast.config.loader import get_config_path, get_env_path, save_config
    from skycast.config.schema import Config

    config_path = get_config_path()

    if config_path.exists():
        console.print(f"[yellow]Config already exists at {config_path}[/yellow]")
        if not typer.confirm("Overwrite?"):
            raise typer.Exit()

    config = Config()
    save_config(config)
    console.print(f"[green]✓[/green] Created config at {config_path}")
    console.print(f"[green]✓[/green] Created secrets file at {get_env_path()} (mode 600)")

    console.print(f"\n{__logo__} skycast is ready!")
    console.print("\nNext steps:")
    console.print("  1. Add cameras under [cyan]capture.cameras[/cyan] in config.json")
    console.print("  2. Add your keys to [cyan]~/.skycast/.env[/cyan]")
    console.print("     SKYCAST_PROVIDER__API_KEY=sk-or-v1-xxx")
    console.print("     SKYCAST_TELEGRAM__TOKEN=123456:ABC...")
    console.print("  3. Set [cyan]telegram.chatId[/cyan], then run: [cyan]skycast run[/cyan]")


@app.command()
def status():
    """Show skycast configuration status."""
    from skycast.config.loader import config_has_secrets, get_config_path, get_env_path, load_config

    config_path = get_config_path()
    env_path = get_env_path()
    config = load_config()

    console.print(f"{__logo__} skycast Status\n")

    console.print(f"Config: {config_path} {_ok(config_path.exists())}")
    console.print(f"Secrets: {env_path} {'[green]✓[/green]' if env_path.exists() else '[yellow]missing[/yellow]'}")
    if config_has_secrets():
        console.print("  [yellow]⚠  config.json has plaintext keys; re-run [cyan]skycast onboard[/cyan][/yellow]")
    console.print(f"Data: {config.data_path}")
    console.print(f"Cameras: {len(config.capture.cameras)} (target {config.capture.target_count})")
    console.print(f"Model: {config.provider.model}")
    console.print(f"API key: {'[green]✓[/green]' if config.provider.api_key else '[dim]not set[/dim]'}")
    console.print(f"Telegram token: {'[green]✓[/green]' if config.telegram.token else '[dim]not set[/dim]'}")
    console.print(f"Telegram chat: {config.telegram.chat_id or '[dim]not set[/dim]'}")
    console.print(f"Typed error classification: {'on' if config.retry.typed_errors else 'off'}")


# ============================================================================
# Run
# ============================================================================


def _setup_logging(verbose: bool, logs_path) -> None:
    from skycast.logging.error_store import init_error_store

    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "INFO")
    init_error_store(logs_path / "errors.jsonl")


@app.command()
def run(
    verbose: bool = typer.Option(False, "--verbose", help="Debug logging"),
):
    """Capture, analyze and deliver one weather report."""
    from skycast.config.loader import load_config
    from skycast.pipeline.factory import build_pipeline

    config = load_config()
    _setup_logging(verbose, config.logs_path)

    try:
        pipeline = build_pipeline(config)
    except ValueError as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        raise typer.Exit(2)

    async def _run():
        async with pipeline.delivery:
            return await pipeline.run()

    try:
        result = asyncio.run(_run())
    except Exception as e:
        logger.exception(f"Run aborted: {e}")
        console.print(f"[red]Run aborted: {type(e).__name__}: {e}[/red]")
        raise typer.Exit(2)

    table = Table(title="Run summary")
    table.add_column("Stage", style="cyan")
    table.add_column("Result")
    table.add_row("Capture", f"{_ok(result.status.acquisition_ok)} {len(result.items)} item(s)")
    analysis = _ok(result.status.transformation_ok)
    if result.status.used_fallback_text:
        analysis += " [yellow](fallback text)[/yellow]"
    table.add_row("Analysis", analysis)
    delivery = _ok(result.status.delivery_ok)
    if result.lost_batches:
        delivery += f" [yellow]({len(result.lost_batches)} media batch(es) lost)[/yellow]"
    table.add_row("Delivery", delivery)
    console.print(table)

    if result.fallback_path is not None:
        console.print(f"Report saved locally: [cyan]{result.fallback_path}[/cyan]")
    if result.fallback_error is not None:
        console.print(f"[red]Could not save report locally: {result.fallback_error}[/red]")
    if result.error is not None:
        console.print(f"[red]Error: {type(result.error).__name__}: {result.error}[/red]")

    raise typer.Exit(result.exit_code)


# ============================================================================
# Saved reports
# ============================================================================

reports_app = typer.Typer(help="Manage reports that could not be delivered")
app.add_typer(reports_app, name="reports")


def _store():
    from skycast.config.loader import load_config
    from skycast.storage.fallback import FallbackStore

    return FallbackStore(load_config().reports_path)


@reports_app.command("list")
def reports_list():
    """List saved reports, most recent first."""
    store = _store()
    ids = store.list_reports()

    if not ids:
        console.print("No saved reports.")
        return

    table = Table(title="Saved Reports")
    table.add_column("ID", style="cyan")
    table.add_column("Items")
    table.add_column("Error")

    for report_id in ids:
        report = store.load(report_id)
        if report is None:
            table.add_row(report_id, "", "[dim]incomplete[/dim]")
            continue
        reason = next(
            (line[len("Error: "):] for line in report.error.splitlines() if line.startswith("Error: ")),
            "",
        )
        table.add_row(report_id, str(report.item_count), reason[:80])

    console.print(table)


@reports_app.command("show")
def reports_show(report_id: str = typer.Argument(..., help="Report ID")):
    """Print a saved report."""
    try:
        report = _store().load(report_id)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    if report is None:
        console.print(f"[red]Report {report_id} not found[/red]")
        raise typer.Exit(1)

    console.print(f"[bold]Report {report.report_id}[/bold] ({report.item_count} item(s))")
    console.print(f"Path: {report.path}\n")
    console.print(report.text, markup=False)
    console.print("\n[bold]Error[/bold]")
    console.print(report.error, markup=False)


@reports_app.command("delete")
def reports_delete(
    report_id: str = typer.Argument(..., help="Report ID"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
):
    """Delete a saved report."""
    if not yes and not typer.confirm(f"Delete report {report_id}?"):
        raise typer.Exit()
    try:
        removed = _store().delete(report_id)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    if removed:
        console.print(f"[green]✓[/green] Deleted report {report_id}")
    else:
        console.print(f"[red]Report {report_id} not found[/red]")
        raise typer.Exit(1)


# ============================================================================
# Errors
# ============================================================================


@app.command()
def errors(
    limit: int = typer.Option(20, "--limit", "-n", help="Number of records to show"),
    clear: bool = typer.Option(False, "--clear", help="Delete all recorded errors"),
):
    """Show errors recorded by previous runs."""
    from skycast.config.loader import load_config
    from skycast.logging.error_store import ErrorStore

    store = ErrorStore(load_config().logs_path / "errors.jsonl")

    if clear:
        store.clear()
        console.print("[green]✓[/green] Cleared error log")
        return

    records = store.get(limit=limit)
    if not records:
        console.print("No errors recorded.")
        return

    table = Table(title="Recent Errors")
    table.add_column("Time", style="cyan")
    table.add_column("Where")
    table.add_column("Message")
    for rec in records:
        table.add_row(str(rec.get("ts", ""))[:19], str(rec.get("where", "")), str(rec.get("message", "")))
    console.print(table)
