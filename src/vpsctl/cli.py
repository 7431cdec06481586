"""vpsctl CLI entry point."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from vpsctl.config.models import ToolkitConfig
from vpsctl.errors import ServiceNotFound, VpsctlError
from vpsctl.host import CommandRunner, Host, SubprocessRunner
from vpsctl.proxy.caddy import CaddyGenerator, GenerateResult
from vpsctl.registry.registry import ServiceRegistry

app = typer.Typer(
    name="vpsctl",
    help="vpsctl: reverse proxy, maintenance mode and deployments for a single VPS",
    no_args_is_help=True,
)
proxy_app = typer.Typer(name="proxy", help="Caddy config generation and maintenance mode")
config_app = typer.Typer(name="config", help="Configuration commands")
app.add_typer(proxy_app)
app.add_typer(config_app)

console = Console()
err_console = Console(stderr=True)

DryRun = typer.Option(False, "--dry-run", help="Print the result without writing files or reloading")


@dataclass
class Toolkit:
    config: ToolkitConfig
    host: Host
    registry: ServiceRegistry
    generator: CaddyGenerator


def _make_runner() -> CommandRunner:
    return SubprocessRunner()


def _toolkit(ctx: typer.Context) -> Toolkit:
    from vpsctl.config.loader import load_config

    path = (ctx.obj or {}).get("config_path")
    try:
        config = load_config(path)
    except (FileNotFoundError, ValueError) as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1)

    host = Host(
        _make_runner(),
        use_sudo=config.host.use_sudo,
        scratch_dir=config.host.scratch_dir,
        in_place=config.host.in_place_writes,
    )
    return Toolkit(
        config=config,
        host=host,
        registry=ServiceRegistry(config.registry, host),
        generator=CaddyGenerator(config.proxy, host),
    )


def _fail(exc: Exception) -> typer.Exit:
    console.print(f"[red]✗ {exc}[/red]")
    return typer.Exit(1)


def _report_generate(result: GenerateResult, dry_run: bool) -> None:
    if dry_run:
        typer.echo(result.content, nl=False)
        console.print("\n[dim]Dry run: nothing written, proxy not reloaded.[/dim]")
        return
    console.print("[green]✓[/green] Caddyfile written")
    if result.reload_error:
        console.print(f"[red]✗ Proxy reload failed: {result.reload_error}[/red]")
        raise typer.Exit(1)
    console.print("[green]✓[/green] Proxy reloaded")


@app.callback()
def main_callback(
    ctx: typer.Context,
    config_path: Path | None = typer.Option(None, "--config", "-c", help="Path to .vpsctl.yaml"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
) -> None:
    """Configure logging and remember the config path for subcommands."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )
    ctx.obj = {"config_path": config_path}


# ─── proxy ───


@proxy_app.callback(invoke_without_command=True)
def proxy_generate(ctx: typer.Context, dry_run: bool = DryRun) -> None:
    """Regenerate the Caddyfile from the registry and reload Caddy."""
    if ctx.invoked_subcommand is not None:
        return
    kit = _toolkit(ctx)
    try:
        result = asyncio.run(kit.generator.apply(kit.registry.load(), dry_run=dry_run))
    except VpsctlError as exc:
        raise _fail(exc)
    _report_generate(result, dry_run)


@proxy_app.command("list")
def proxy_list(ctx: typer.Context) -> None:
    """List registered services and their routing."""
    kit = _toolkit(ctx)
    try:
        services = kit.registry.load()
    except VpsctlError as exc:
        raise _fail(exc)

    table = Table(title="Services")
    table.add_column("Service", style="bold")
    table.add_column("Port", justify="right")
    table.add_column("Path")
    table.add_column("Mode")
    table.add_column("Description")
    for name in sorted(services):
        svc = services[name]
        mode = "[green]live[/green]" if svc.live else "[yellow]maintenance[/yellow]"
        path = f"/{name}/* → /" if svc.strip_path else f"/{name}/* → /{name}/"
        table.add_row(name, str(svc.port), path, mode, svc.description or "")
    console.print(table)


@proxy_app.command("add")
def proxy_add(
    ctx: typer.Context,
    name: str = typer.Argument(help="Service name, used as the path segment"),
    port: int = typer.Argument(help="Local port the service listens on"),
    strip_path: bool = typer.Option(True, "--strip-path/--no-strip-path", help="Strip /NAME before proxying"),
    description: str | None = typer.Option(None, "--description", "-d", help="Free-text description"),
    dry_run: bool = DryRun,
) -> None:
    """Register a new service and regenerate the proxy config."""
    kit = _toolkit(ctx)
    name = name.lstrip("/")
    try:
        if dry_run:
            preview = kit.registry.preview_add(name, port, strip_path=strip_path, description=description)
            result = asyncio.run(kit.generator.apply(preview, dry_run=True))
        else:
            asyncio.run(kit.registry.add(name, port, strip_path=strip_path, description=description))
            console.print(f"[green]✓[/green] Added {name} on port {port}")
            result = asyncio.run(kit.generator.apply(kit.registry.load()))
    except VpsctlError as exc:
        raise _fail(exc)
    _report_generate(result, dry_run)
    if not dry_run:
        console.print(f"[dim]Commit and push {kit.registry.structure_path.name} to keep it in version control.[/dim]")


@proxy_app.command("remove")
def proxy_remove(
    ctx: typer.Context,
    name: str = typer.Argument(help="Service to remove"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
    dry_run: bool = DryRun,
) -> None:
    """Remove a service (and its maintenance state) and regenerate the proxy config."""
    kit = _toolkit(ctx)
    name = name.lstrip("/")
    try:
        services = kit.registry.load()
        if name not in services:
            raise ServiceNotFound(name)
        if dry_run:
            remaining = {k: v for k, v in services.items() if k != name}
            result = asyncio.run(kit.generator.apply(remaining, dry_run=True))
        else:
            if not yes and not typer.confirm(f"Remove {name} from Caddy?"):
                console.print("Cancelled.")
                return
            asyncio.run(kit.registry.remove(name))
            console.print(f"[green]✓[/green] Removed {name}")
            result = asyncio.run(kit.generator.apply(kit.registry.load()))
    except VpsctlError as exc:
        raise _fail(exc)
    _report_generate(result, dry_run)


@proxy_app.command("maint")
def proxy_maint(
    ctx: typer.Context,
    name: str = typer.Argument(help="Service to toggle"),
    dry_run: bool = DryRun,
) -> None:
    """Toggle maintenance mode for a service."""
    from vpsctl.proxy.maintenance import toggle_maintenance

    kit = _toolkit(ctx)
    name = name.lstrip("/")
    try:
        live, result = asyncio.run(toggle_maintenance(kit.registry, kit.generator, name, dry_run=dry_run))
    except VpsctlError as exc:
        raise _fail(exc)
    state = "[green]live[/green]" if live else "[yellow]maintenance[/yellow]"
    prefix = "Would set" if dry_run else "Set"
    console.print(f"{prefix} {name} to {state}")
    _report_generate(result, dry_run)


# ─── deploy ───


@app.command()
def deploy(
    ctx: typer.Context,
    name: str = typer.Argument(help="Service to deploy"),
    status: bool = typer.Option(False, "--status", help="Show deploy status instead of deploying"),
    rollback: bool = typer.Option(False, "--rollback", help="Reset to the previous commit and restart"),
    health_check: str | None = typer.Option(None, "--health-check", help="Shell command that exits 0 when healthy"),
) -> None:
    """Deploy a service: maintenance on, pull, install, restart, health check, maintenance off."""
    from vpsctl.deploy.pipeline import DeployRunner
    from vpsctl.events.console import ConsoleProgress
    from vpsctl.events.emitter import EventEmitter

    if status and rollback:
        console.print("[red]--status and --rollback are mutually exclusive[/red]")
        raise typer.Exit(1)

    kit = _toolkit(ctx)
    emitter = EventEmitter()
    emitter.add_listener(ConsoleProgress(console))
    runner = DeployRunner(kit.config, kit.registry, kit.generator, kit.host, emitter=emitter)

    try:
        if status:
            summary = asyncio.run(runner.summary(name))
        elif rollback:
            result = asyncio.run(runner.rollback(name, health_check))
        else:
            result = asyncio.run(runner.deploy(name, health_check))
    except ServiceNotFound as exc:
        console.print(f"[red]✗ {exc}[/red]")
        console.print(f"  Run: vpsctl proxy add {name} <port>")
        raise typer.Exit(1)
    except VpsctlError as exc:
        raise _fail(exc)

    if status:
        console.print(f"\n[bold]Service:[/bold] {summary.name}")
        console.print("─" * 40)
        console.print(f"Port:        {summary.port}")
        console.print(f"Caddy:       {'🟢 live' if summary.live else '🚧 maintenance'}")
        console.print(f"Systemd:     {'🟢 active' if summary.unit_active else '🔴 inactive'}")
        console.print(f"Last commit: {summary.last_commit or 'unknown'}\n")
        return

    action = "Rollback" if rollback else "Deployment"
    if result.success:
        console.print(f"\n[green bold]{action} successful![/green bold]")
        return

    failed = result.failed_step
    console.print(f"\n[red bold]{action} failed:[/red bold] [red]{failed.error if failed else 'unknown error'}[/red]")
    if not result.live:
        console.print("[yellow]Service is still in maintenance mode![/yellow]")
    if result.remediation:
        console.print("Next steps:")
        for cmd in result.remediation:
            console.print(f"  {cmd}")
    raise typer.Exit(1)


# ─── status ───


def _status_table(statuses: list[Any]) -> Table:
    table = Table(title="Service Status")
    table.add_column("", width=2)
    table.add_column("Service", style="bold")
    table.add_column("Config")
    table.add_column("Systemd")
    table.add_column("Port")
    table.add_column("HTTP")
    icons = {"healthy": "🟢", "maintenance": "🚧", "issue": "🔴"}
    for s in statuses:
        http = ("✓" if s.http_ok else "✗") + (f" ({s.http_status})" if s.http_status else "")
        table.add_row(
            icons[s.health_label],
            s.name,
            "LIVE" if s.live else "MAINT",
            s.unit_state.upper(),
            "✓" if s.port_open else "✗",
            http,
        )
    return table


def _print_detail(s: Any) -> None:
    console.print(f"\n[bold]Service:[/bold] {s.name}")
    console.print("─" * 60)
    console.print(f"URL:        {s.url}")
    console.print(f"Port:       {s.port}")
    console.print(f"Config:     {'🟢 Live' if s.live else '🚧 Maintenance'}")
    console.print(f"Systemd:    {'🟢' if s.unit_state == 'active' else '🔴'} {s.unit_state} ({s.unit})")
    console.print(f"Port Open:  {'🟢 Yes' if s.port_open else '🔴 No'} (localhost:{s.port})")
    http_code = f" ({s.http_status})" if s.http_status else ""
    console.print(f"HTTP OK:    {'🟢 Yes' if s.http_ok else '🔴 No'}{http_code}")
    if s.suggested_commands:
        console.print("\nCommands:")
        for cmd in s.suggested_commands:
            console.print(f"  {cmd}")
    console.print()


@app.command()
def status(
    ctx: typer.Context,
    name: str | None = typer.Argument(None, help="Show a single service in detail"),
    as_json: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Probe systemd, the local port and the public URL of every service."""
    from vpsctl.status.health import StatusProber

    kit = _toolkit(ctx)
    prober = StatusProber(kit.config.status, kit.host, kit.config.proxy.domain)
    try:
        services = kit.registry.load()
        if name is not None:
            if name not in services:
                raise ServiceNotFound(name)
            statuses = [asyncio.run(prober.probe(services[name]))]
        else:
            statuses = asyncio.run(prober.probe_all(services))
    except VpsctlError as exc:
        raise _fail(exc)

    if as_json:
        payload: Any = statuses[0].to_dict() if name else [s.to_dict() for s in statuses]
        typer.echo(json.dumps(payload, indent=2))
        return
    if name is not None:
        _print_detail(statuses[0])
        return

    console.print(_status_table(statuses))
    healthy = sum(1 for s in statuses if s.health_label == "healthy")
    maintenance = sum(1 for s in statuses if s.health_label == "maintenance")
    issues = [s for s in statuses if s.health_label == "issue"]
    console.print(f"\nSummary: {healthy} healthy, {maintenance} maintenance, {len(issues)} issues\n")
    if issues:
        console.print("Services with issues:")
        for s in issues:
            console.print(f"  - {s.name}: {', '.join(s.problems)}")
            console.print(f"    URL: {s.url}")
            console.print(f"    Logs: sudo journalctl -u {s.unit} -n 20")
        console.print()


# ─── config ───


@config_app.command("show")
def config_show(ctx: typer.Context) -> None:
    """Print the resolved configuration."""
    kit = _toolkit(ctx)
    cfg = kit.config
    console.print("[bold]Registry:[/bold]")
    console.print(f"  Structure: {cfg.registry.structure_file}")
    console.print(f"  State:     {cfg.registry.state_file}\n")
    console.print("[bold]Proxy:[/bold]")
    console.print(f"  Caddyfile: {cfg.proxy.config_file}")
    console.print(f"  Domain:    {cfg.proxy.domain}")
    console.print(f"  Reload:    {' '.join(cfg.proxy.reload_command)}\n")
    console.print("[bold]Host:[/bold]")
    console.print(f"  Services root: {cfg.host.services_root}")
    console.print(f"  sudo:          {'yes' if cfg.host.use_sudo else 'no'}")
    console.print(f"  In-place:      {'yes' if cfg.host.in_place_writes else 'no'}\n")
    console.print("[bold]Deploy:[/bold]")
    console.print(f"  Install timeout: {cfg.deploy.install_timeout}s")
    console.print(
        f"  Health check:    {cfg.deploy.health_attempts} attempts, {cfg.deploy.health_interval}s apart"
    )
    lockfiles = ", ".join(f"{r.file} → {r.command}" for r in cfg.deploy.lockfiles)
    console.print(f"  Lockfiles:       {lockfiles}")


@config_app.command("validate")
def config_validate(ctx: typer.Context) -> None:
    """Validate the configuration and the registry documents."""
    kit = _toolkit(ctx)
    console.print("[green]✓[/green] Configuration parses correctly")
    try:
        services = kit.registry.load()
        problems = kit.registry.validate()
    except VpsctlError as exc:
        raise _fail(exc)
    console.print(f"[green]✓[/green] {len(services)} service(s) in {kit.registry.structure_path.name}")

    if problems:
        for problem in problems:
            console.print(f"[red]✗ {problem}[/red]")
        console.print(f"\n[red bold]{len(problems)} validation error(s) found.[/red bold]")
        raise typer.Exit(1)
    console.print("\n[green bold]Registry is valid.[/green bold]")


@config_app.command("status")
def config_status(ctx: typer.Context) -> None:
    """Show the last commit of the services config and any uncommitted changes."""
    kit = _toolkit(ctx)

    async def _gather() -> tuple[str | None, list[str]]:
        return await kit.registry.structure_commit(), await kit.registry.structure_changes()

    commit, changes = asyncio.run(_gather())
    name = kit.registry.structure_path.name
    console.print(f"[bold]Structure:[/bold] {kit.registry.structure_path}")
    console.print(f"Last commit: {commit or 'unknown'}")
    if not changes:
        console.print(f"[green]✓[/green] {name} has no uncommitted changes")
        return
    console.print(f"[yellow]Uncommitted changes to {name}:[/yellow]")
    for line in changes:
        console.print(f"  {line}")
    console.print(f"[dim]Commit and push {name} to keep it in version control.[/dim]")


def main() -> None:
    app()
