"""Console progress listener: prints one line per deploy step."""

from __future__ import annotations

from rich.console import Console

from vpsctl.events.emitter import DeployEvent

STEP_LABELS: dict[str, str] = {
    "maintenance_on": "Enabling maintenance mode",
    "database": "Migrating database",
    "pull": "Pulling latest changes",
    "reset": "Reverting to previous commit",
    "install": "Installing dependencies",
    "restart": "Restarting service",
    "health": "Waiting for service to be healthy",
    "maintenance_off": "Disabling maintenance mode",
}


class ConsoleProgress:
    """Renders deploy events with rich. Implements EventListener protocol."""

    def __init__(self, console: Console) -> None:
        self._console = console

    async def on_event(self, event: DeployEvent) -> None:
        data = event.data
        if event.event_type == "deploy.started":
            verb = "Rolling back" if data.get("action") == "rollback" else "Deploying"
            self._console.print(f"\n[bold]{verb} {event.service}...[/bold]\n")
        elif event.event_type == "step.started":
            label = STEP_LABELS.get(data.get("step", ""), data.get("step", ""))
            self._console.print(f"  [dim]→[/dim] {label}...")
        elif event.event_type == "step.completed":
            step = data.get("step", "")
            if data.get("skipped"):
                self._console.print(f"    [dim]⊘ skipped: {data.get('message', '')}[/dim]")
            elif not data.get("success"):
                self._console.print(f"    [red]✗ {data.get('error')}[/red]")
            for warning in data.get("warnings", []):
                self._console.print(f"    [yellow]! {warning}[/yellow]")
            if data.get("success") and data.get("message"):
                self._console.print(f"    [green]✓[/green] {data['message']}")
            elif data.get("success") and not data.get("skipped"):
                self._console.print(f"    [green]✓[/green] {STEP_LABELS.get(step, step)} done")
        elif event.event_type == "deploy.message":
            self._console.print(f"  {data.get('message', '')}")
