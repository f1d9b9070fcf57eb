"""CLI commands for disco."""

import asyncio
from datetime import datetime, timedelta
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from disco import __logo__, __version__

app = typer.Typer(
    name="disco",
    help=f"{__logo__} disco - Disconnect timer that nags you while you're away",
    no_args_is_help=True,
)

console = Console()


def version_callback(value: bool):
    if value:
        console.print(f"{__logo__} disco v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-v", callback=version_callback, is_eager=True
    ),
):
    """disco - Disconnect timer."""
    pass


def _load_copy_engine(config):
    from disco.copy.engine import CopyEngine
    from disco.errors import CopyConfigError

    try:
        return CopyEngine.from_path(Path(config.copy_path) if config.copy_path else None)
    except CopyConfigError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)


def _open_log_store(config):
    from disco.notifications.log_store import NotificationLogStore
    from disco.notifications.storage import JsonLogStorageBackend

    return NotificationLogStore(JsonLogStorageBackend(config.log_path))


# ============================================================================
# Onboard / Setup
# ============================================================================


@app.command()
def onboard():
    """Initialize disco configuration."""
    from disco.config.loader import get_config_path, save_config
    from disco.config.schema import Config

    config_path = get_config_path()

    if config_path.exists():
        console.print(f"[yellow]Config already exists at {config_path}[/yellow]")
        if not typer.confirm("Overwrite?"):
            raise typer.Exit()

    save_config(Config(), config_path)
    console.print(f"[green]✓[/green] Created config at {config_path}")
    console.print(f"\n{__logo__} disco is ready! Start a session: [cyan]disco run[/cyan]")


# ============================================================================
# Copy preview / batch plan
# ============================================================================


@app.command()
def preview(
    elapsed: int = typer.Option(0, "--elapsed", "-e", help="Elapsed seconds to preview"),
    count: int = typer.Option(3, "--count", "-n", help="Number of samples"),
):
    """Show the copy stage, intervals and messages for an elapsed time."""
    from disco.config.loader import load_config
    from disco.utils.helpers import format_duration

    config = load_config()
    engine = _load_copy_engine(config)
    stage = engine.select_stage(elapsed)

    console.print(
        f"{__logo__} At [bold]{format_duration(elapsed)}[/bold]: stage "
        f"[cyan]{stage.id or '-'}[/cyan] (from {stage.start_after_seconds}s, "
        f"every {stage.interval_seconds.low}-{stage.interval_seconds.high}s)"
    )

    table = Table(title="Samples")
    table.add_column("Next in", style="cyan")
    table.add_column("Copy ID", style="dim")
    table.add_column("Title")
    table.add_column("Body")

    for _ in range(max(0, count)):
        msg = engine.make_message(elapsed)
        table.add_row(f"{engine.next_interval(elapsed)}s", msg.copy_id, msg.title, msg.body)

    console.print(table)


@app.command()
def plan(
    elapsed: int = typer.Option(0, "--elapsed", "-e", help="Session already running for N seconds"),
):
    """Dry-run a notification batch and show when each would fire."""
    from disco.config.loader import load_config
    from disco.notifications.delivery import RecordingDeliveryService
    from disco.notifications.scheduler import BatchScheduler
    from disco.utils.helpers import format_duration

    config = load_config()
    engine = _load_copy_engine(config)
    log_store = _open_log_store(config)

    delivery = RecordingDeliveryService()
    scheduler = BatchScheduler(engine, delivery, config=config.scheduler)
    started_at = datetime.now() - timedelta(seconds=max(0, elapsed))

    batch = asyncio.run(scheduler.start(started_at, log_store.unread_count()))

    table = Table(title=f"Batch of {len(batch)} (unread now: {log_store.unread_count()})")
    table.add_column("#", style="dim")
    table.add_column("Fires in", style="cyan")
    table.add_column("At elapsed", style="cyan")
    table.add_column("Badge", justify="right")
    table.add_column("Title")
    table.add_column("Body")

    for i, n in enumerate(batch, 1):
        table.add_row(
            str(i),
            format_duration(n.fire_after_seconds),
            format_duration(max(0, elapsed) + n.fire_after_seconds),
            str(n.badge),
            n.title,
            n.body,
        )

    console.print(table)


# ============================================================================
# Live session
# ============================================================================


@app.command()
def run(
    duration: int = typer.Option(
        0, "--duration", "-d", help="End the session after N seconds (0 = until Ctrl+C)"
    ),
):
    """Run a disconnect session in this terminal."""
    from disco.config.loader import load_config

    config = load_config()
    _load_copy_engine(config)  # fail fast on bad copy

    console.print(f"{__logo__} Disconnecting... (Ctrl+C to end)\n")
    try:
        asyncio.run(_run_session(config, duration))
    except KeyboardInterrupt:
        pass


async def _run_session(config, duration: int) -> None:
    from disco.core.controller import build_controller
    from disco.notifications.delivery import LocalDeliveryService
    from disco.session.state import Disconnecting
    from disco.utils.helpers import format_duration

    delivery = LocalDeliveryService()
    controller = build_controller(config, delivery, badge=delivery)

    def on_deliver(n):
        controller.on_notification_presented(n)
        console.print(f"🔔 [bold]{n.title}[/bold] {n.body} [dim](badge {n.badge})[/dim]")

    delivery.on_deliver = on_deliver

    with console.status("Disconnecting 0:00") as status:

        def on_state(state):
            if isinstance(state.phase, Disconnecting):
                status.update(
                    f"Disconnecting {format_duration(state.phase.session.elapsed_seconds)}"
                    f"  [dim]unread {state.unread_count}[/dim]"
                )

        controller.subscribe(on_state)

        try:
            await controller.start_disconnect()
            if duration > 0:
                await asyncio.sleep(duration)
            else:
                await asyncio.Event().wait()
        except asyncio.CancelledError:
            # Ctrl+C ends the session; wind down normally below
            asyncio.current_task().uncancel()
        finally:
            summary = await controller.stop_disconnect()
            await controller.sync_delivered_notifications()
            await controller.close()
            delivery.close()

            if summary is not None:
                console.print(
                    f'\n[bold]"Great job."[/bold] Total: {format_duration(summary.total_seconds)}'
                )
            console.print(f"Unread notifications: {controller.log_store.unread_count()}")
            controller.finish_aftermath()


# ============================================================================
# Notification log
# ============================================================================


@app.command()
def log(
    unread: bool = typer.Option(False, "--unread", "-u", help="Only unread notifications"),
):
    """Show the notification log, newest first."""
    from disco.config.loader import load_config

    store = _open_log_store(load_config())
    entries = [e for e in store.entries if not (unread and e.is_read)]

    if not entries:
        console.print("No notifications yet.")
        return

    table = Table(title=f"Notifications ({store.unread_count()} unread)")
    table.add_column("ID", style="dim")
    table.add_column("When", style="cyan")
    table.add_column("Status")
    table.add_column("Title")
    table.add_column("Body")
    table.add_column("Read")

    for e in entries:
        table.add_row(
            e.id,
            e.created_at.strftime("%Y-%m-%d %H:%M"),
            e.status,
            e.title,
            e.body,
            "[green]✓[/green]" if e.is_read else "[yellow]●[/yellow]",
        )

    console.print(table)


@app.command()
def read(
    notification_id: str = typer.Argument(..., help="Notification ID to mark read"),
):
    """Mark a notification as read."""
    from disco.config.loader import load_config

    store = _open_log_store(load_config())
    if store.mark_read(notification_id):
        console.print(f"[green]✓[/green] Marked {notification_id} read ({store.unread_count()} unread)")
    else:
        console.print(f"[red]Notification {notification_id} not found[/red]")
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
