"""
Command Line Interface for Enclave Control Tower.
"""

import asyncio
import json
from datetime import datetime, timedelta, timezone
from typing import Optional

import typer
import uvicorn
from rich import print as rprint
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..attestation.measurements import MeasurementExtractor
from ..aws import logs_client
from ..config import configure_logging, get_settings
from ..db.base import Base, get_engine, get_session_local
from ..db.services import EnclaveService
from ..dependencies import build_fetchers, build_trigger
from ..enclaves.lifecycle import LifecycleController
from ..errors import EnclaveError
from ..logs.aggregator import LogAggregator
from ..providers.registry import build_default_registry

app = typer.Typer(help="Enclave Control Tower - lifecycle control and log aggregation for secure enclaves")
console = Console()

SOURCE_STYLES = {
    "ecs": "blue",
    "stepfunctions": "magenta",
    "lambda": "yellow",
    "application": "green",
    "status": "red",
}


def _session():
    Base.metadata.create_all(bind=get_engine())
    return get_session_local()()


def _format_ts(timestamp: Optional[int]) -> str:
    if timestamp is None:
        return "-"
    return datetime.fromtimestamp(timestamp / 1000, tz=timezone.utc).strftime(
        "%Y-%m-%d %H:%M:%S"
    )


@app.callback()
def main() -> None:
    """Configure logging before any command runs."""
    configure_logging(get_settings())


@app.command()
def serve(
    port: Optional[int] = typer.Option(None, help="Port to run the API server on"),
    host: Optional[str] = typer.Option(None, help="Host to bind the server to"),
    reload: bool = typer.Option(False, help="Reload on code changes"),
):
    """Start the HTTP API."""
    settings = get_settings()
    rprint(Panel.fit("🛡️ Starting Enclave Control Tower", style="bold blue"))
    uvicorn.run(
        "enclave_control_tower.api:app",
        host=host or settings.api_host,
        port=port or settings.api_port,
        reload=reload,
        workers=1 if reload else settings.api_workers,
    )


@app.command()
def logs(
    enclave_id: str = typer.Argument(..., help="Enclave ID"),
    log_type: str = typer.Option("all", "--type", help="all, ecs, stepfunctions, lambda, application or errors"),
    limit: Optional[int] = typer.Option(None, help="Maximum records per view"),
    as_json: bool = typer.Option(False, "--json", help="Print raw JSON"),
):
    """Show merged logs for an enclave."""
    settings = get_settings()
    db = _session()
    try:
        aggregator = LogAggregator(
            EnclaveService(db),
            build_fetchers(settings),
            max_limit=settings.max_log_limit,
            default_limit=settings.default_log_limit,
        )
        result = asyncio.run(aggregator.fetch_logs(enclave_id, log_type, limit))
    except EnclaveError as e:
        console.print(f"❌ {e.message}")
        raise typer.Exit(code=1)
    finally:
        db.close()

    if as_json:
        console.print_json(json.dumps(result))
        return

    console.print(
        f"[bold]{result['enclave_name']}[/bold] ({result['enclave_id']}) "
        f"status: [cyan]{result['enclave_status']}[/cyan]"
    )
    for key, records in result["logs"].items():
        table = Table(title=f"{key} ({len(records)})", show_header=True, header_style="bold magenta")
        table.add_column("Time", style="cyan", no_wrap=True)
        table.add_column("Source")
        table.add_column("Message")
        for record in records:
            style = SOURCE_STYLES.get(record["source"], "white")
            table.add_row(
                _format_ts(record.get("timestamp")),
                f"[{style}]{record['source']}[/{style}]",
                record["message"],
            )
        console.print(table)


@app.command()
def pcrs(enclave_id: str = typer.Argument(..., help="Enclave ID")):
    """Show measurement registers found in an enclave's logs."""
    result = MeasurementExtractor(logs_client(get_settings())).extract(enclave_id)

    if not result.pcrs:
        console.print(f"⚠️ {result.message}")
        return

    table = Table(title=f"PCRs for {enclave_id}", show_header=True, header_style="bold cyan")
    table.add_column("Register", style="yellow")
    table.add_column("Value")
    for index, value in sorted(result.pcrs.items()):
        table.add_row(f"PCR{index}", value)
    console.print(table)


@app.command()
def reconcile(
    older_than: Optional[int] = typer.Option(
        None, help="Minutes an enclave may sit in PENDING_DESTROY before re-triggering"
    ),
):
    """Re-send destroy triggers for enclaves stuck in PENDING_DESTROY."""
    settings = get_settings()
    minutes = older_than if older_than is not None else settings.reconcile_after_minutes

    db = _session()
    try:
        controller = LifecycleController(db, trigger=build_trigger(settings))
        retriggered = controller.reconcile_pending_destroys(timedelta(minutes=minutes))
    finally:
        db.close()

    if not retriggered:
        console.print("✅ No stuck enclaves")
        return
    for enclave_id in retriggered:
        console.print(f"🔁 Re-triggered destroy for {enclave_id}")


@app.command()
def providers():
    """List compute providers and their regions."""
    registry = build_default_registry()

    table = Table(title="Compute Providers", show_header=True, header_style="bold cyan")
    table.add_column("ID", style="yellow")
    table.add_column("Name", style="green")
    table.add_column("Regions")
    for provider in registry.all():
        regions = ", ".join(
            f"{region} ({provider.display_name(region)})" for region in provider.regions
        )
        table.add_row(provider.id, provider.name, regions)
    console.print(table)


@app.command()
def version():
    """Show version information."""
    from .. import __version__

    rprint(Panel.fit(f"Enclave Control Tower v{__version__}", style="bold green"))


if __name__ == "__main__":
    app()
