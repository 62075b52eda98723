"""
Command-line front end for the machine monitor client.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from machine_monitor.api.client import ApiClient
from machine_monitor.auth.client import AuthClient
from machine_monitor.config import Settings
from machine_monitor.detail import MachineDetailController
from machine_monitor.errors import Result
from machine_monitor.presenter import ErrorPresenter, Operation
from machine_monitor.roster import MachineRosterController
from machine_monitor.schema import SENSOR_CHANNELS, Machine, MachineStatus, Prediction
from machine_monitor.session import MemorySessionStore, Session, SessionStore

app = typer.Typer(
    name="machine-monitor",
    help="Machine Monitor - monitor your machines anytime, anywhere",
)
console = Console()
presenter = ErrorPresenter()

STATUS_STYLES = {
    MachineStatus.ACTIVE: "green",
    MachineStatus.INACTIVE: "red",
    MachineStatus.MAINTENANCE: "yellow",
}

_options: dict = {"config": None, "persist": True}


@app.callback()
def main(
    config: Path = typer.Option(None, "--config", "-c", help="YAML config file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log requests"),
    no_persist: bool = typer.Option(False, "--no-persist", help="Keep the session in memory only"),
):
    """Machine Monitor command-line client."""
    _options["config"] = config
    _options["persist"] = not no_persist
    settings = Settings.load(config)
    logging.basicConfig(
        level=logging.DEBUG if verbose else settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@asynccontextmanager
async def _connect() -> AsyncIterator[ApiClient]:
    settings = Settings.load(_options["config"])
    store = SessionStore(settings.token_file) if _options["persist"] else MemorySessionStore()
    session = Session(store)
    await session.restore()
    async with ApiClient(session, settings) as api:
        yield api


def _report(operation: Operation, result: Result) -> None:
    """Print the outcome; exit non-zero on failure."""
    for warning in presenter.warnings(result):
        console.print(f"[yellow]{warning.title}: {warning.text}[/yellow]")
    if not result.ok:
        message = presenter.failure(operation, result)
        console.print(f"[red][bold]{message.title}[/bold]: {message.text}[/red]")
        if result.error is not None and getattr(result.error, "fields", None):
            for name, text in result.error.fields.items():
                console.print(f"  [red]{name}: {text}[/red]")
        raise typer.Exit(code=1)
    success = presenter.success(operation)
    if success:
        console.print(f"[green]{success.text}[/green]")


def _require_login(api: ApiClient) -> None:
    if not api.session.is_authenticated:
        console.print("[yellow]Not logged in. Run: machine-monitor login EMAIL[/yellow]")
        raise typer.Exit(code=1)


async def _checkout(api: ApiClient, machine_id: str) -> Machine:
    roster = MachineRosterController(api)
    _report(Operation.FETCH_MACHINES, await roster.fetch_all())
    machine = roster.get(machine_id)
    if machine is None:
        console.print(f"[red]No machine with id {machine_id}[/red]")
        raise typer.Exit(code=1)
    return machine


def _print_prediction(prediction: Prediction | None) -> None:
    if prediction is None:
        console.print("[dim]No prediction available[/dim]")
        return
    lines = [
        f"[bold]Risk Level:[/bold] {prediction.risk_level}",
        f"[bold]Risk Probability:[/bold] {prediction.risk_probability:.1f}%",
        f"[bold]Critical Parameters:[/bold] {prediction.critical_summary}",
    ]
    if prediction.recommendations:
        lines.append("[bold]Recommendations:[/bold]")
        lines.extend(f"  • {rec}" for rec in prediction.recommendations)
    console.print(Panel("\n".join(lines), title="Prediction"))


@app.command()
def login(
    email: str = typer.Argument(..., help="Account email"),
    password: str = typer.Option(..., prompt=True, hide_input=True),
):
    """Log in and store the session token."""

    async def _login():
        async with _connect() as api:
            _report(Operation.LOGIN, await AuthClient(api).login(email, password))

    asyncio.run(_login())


@app.command()
def logout():
    """Forget the stored session token."""

    async def _logout():
        async with _connect() as api:
            _report(Operation.LOGOUT, await AuthClient(api).logout())

    asyncio.run(_logout())


@app.command()
def register(
    name: str = typer.Option(..., prompt="Full name"),
    email: str = typer.Option(..., prompt="Email address"),
    company: str = typer.Option("", prompt="Company (optional)"),
    password: str = typer.Option(..., prompt=True, hide_input=True),
    confirm_password: str = typer.Option(..., prompt="Confirm password", hide_input=True),
):
    """Create an account (log in afterwards)."""

    async def _register():
        async with _connect() as api:
            result = await AuthClient(api).register(
                name, email, password, company=company, confirm_password=confirm_password
            )
            _report(Operation.REGISTER, result)

    asyncio.run(_register())


@app.command("forgot-password")
def forgot_password(email: str = typer.Argument(..., help="Account email")):
    """Request a password reset link."""

    async def _forgot():
        async with _connect() as api:
            _report(Operation.RESET_PASSWORD, await AuthClient(api).request_password_reset(email))

    asyncio.run(_forgot())


@app.command()
def machines():
    """List machines with status counts."""

    async def _machines():
        async with _connect() as api:
            _require_login(api)
            roster = MachineRosterController(api)
            _report(Operation.FETCH_MACHINES, await roster.fetch_all())

            if not roster.machines:
                console.print("\n[yellow]No machines found. Add your first machine.[/yellow]")
                return

            table = Table(show_header=True, header_style="bold cyan")
            table.add_column("ID")
            table.add_column("Name")
            table.add_column("Status")
            table.add_column("Added")
            for machine in roster.machines:
                style = STATUS_STYLES.get(machine.status, "white")
                added = machine.created_at.strftime("%Y-%m-%d") if machine.created_at else "-"
                table.add_row(machine.id, machine.name, f"[{style}]{machine.status.value}[/{style}]", added)

            console.print(table)
            console.print(
                f"\n[bold]Total:[/bold] {roster.total_count}  "
                f"[bold]Active:[/bold] {roster.active_count}  "
                f"[bold]Inactive:[/bold] {roster.inactive_count}"
            )

    asyncio.run(_machines())


@app.command()
def add(name: str = typer.Argument(..., help="Machine name")):
    """Add a machine to the roster."""

    async def _add():
        async with _connect() as api:
            _require_login(api)
            result = await MachineRosterController(api).add(name)
            _report(Operation.ADD_MACHINE, result)
            console.print(f"[dim]id: {result.value.id}[/dim]")

    asyncio.run(_add())


@app.command()
def remove(
    machine_id: str = typer.Argument(..., help="Machine id"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """Delete a machine after confirmation."""

    async def _remove():
        async with _connect() as api:
            _require_login(api)
            roster = MachineRosterController(api)
            _report(Operation.FETCH_MACHINES, await roster.fetch_all())

            pending = roster.remove(machine_id)
            if yes or typer.confirm(pending.prompt):
                _report(Operation.DELETE_MACHINE, await pending.confirm())
            else:
                pending.cancel()
                console.print("[dim]Cancelled[/dim]")

    asyncio.run(_remove())


@app.command()
def show(machine_id: str = typer.Argument(..., help="Machine id")):
    """Show sensor data and the current risk prediction."""

    async def _show():
        async with _connect() as api:
            _require_login(api)
            machine = await _checkout(api, machine_id)
            detail = MachineDetailController(api, machine)
            _report(Operation.FETCH_PREDICTION, await detail.open())

            console.print(f"\n[bold]{machine.name}[/bold] [dim]({machine.status.value})[/dim]\n")
            table = Table(show_header=True, header_style="bold magenta")
            table.add_column("Sensor")
            table.add_column("Value")
            for key, label in SENSOR_CHANNELS.items():
                table.add_row(label, detail.fields[key] or "-")
            console.print(table)
            _print_prediction(detail.prediction)

    asyncio.run(_show())


@app.command()
def update(
    machine_id: str = typer.Argument(..., help="Machine id"),
    spindle: str = typer.Option(None, "--spindle", help="Spindle speed (RPM)"),
    vibration: str = typer.Option(None, "--vibration", help="Vibration level (mm/s)"),
    tool_wear: str = typer.Option(None, "--tool-wear", help="Tool wear (mm)"),
    temperature: str = typer.Option(None, "--temperature", help="Temperature (°C)"),
    energy: str = typer.Option(None, "--energy", help="Energy consumption (kWh)"),
):
    """Update sensor readings and refresh the prediction."""

    async def _update():
        async with _connect() as api:
            _require_login(api)
            machine = await _checkout(api, machine_id)
            detail = MachineDetailController(api, machine)

            given = dict(zip(SENSOR_CHANNELS, (spindle, vibration, tool_wear, temperature, energy)))
            raw = {key: value for key, value in given.items() if value is not None}
            _report(Operation.UPDATE_SENSORS, await detail.submit_sensor_data(raw))
            _print_prediction(detail.prediction)

    asyncio.run(_update())


if __name__ == "__main__":
    app()
