"""cmdsync CLI — install and keep command files in sync with upstream."""

from __future__ import annotations

import asyncio
from pathlib import Path

import click
from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from cmdsync import __version__
from cmdsync.config import load_config
from cmdsync.errors import SyncError, ValidationFailedError
from cmdsync.log import setup_logging
from cmdsync.models import InstallLocation
from cmdsync.sync.differ import build_diffs, partition_by_user_modification, summarize_diff
from cmdsync.sync.service import SyncService

console = Console()


def _run(ctx: click.Context, operation):
    """Build the service, run *operation* on it, and map sync errors to exit 1."""

    async def runner():
        service = ctx.obj["service_factory"](ctx.obj["config"], ctx.obj["workspaces"])
        try:
            return await operation(service)
        finally:
            await service.aclose()

    try:
        return asyncio.run(runner())
    except ValidationFailedError as e:
        console.print(f"[red]{e}[/]")
        if e.result is not None:
            for issue in e.result.errors:
                console.print(f"  [red]x[/] {issue}")
        console.print("Use [bold]--force[/] to install anyway.")
        ctx.exit(1)
    except SyncError as e:
        console.print(f"[red]Error:[/] {e}")
        ctx.exit(1)


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.option("--config", "config_path", default=None, type=click.Path(dir_okay=False),
              help="Path to config.yaml")
@click.option("--workspace", "-w", "workspaces", multiple=True, type=click.Path(file_okay=False),
              help="Workspace root (repeatable, defaults to the current directory)")
@click.option("--location", type=click.Choice(["workspace", "user"]), default=None,
              help="Install location, overriding the config")
@click.pass_context
def main(ctx: click.Context, verbose: bool, config_path: str | None,
         workspaces: tuple, location: str | None):
    """cmdsync — sync versioned command files from an upstream repository.

    Commands are installed into each workspace (or your home directory),
    recorded in a lockfile, and updated without overwriting your edits.
    """
    setup_logging(verbose=verbose)
    ctx.ensure_object(dict)
    try:
        config = load_config(config_path)
    except SyncError as e:
        console.print(f"[red]Error:[/] {e}")
        ctx.exit(1)
    if location:
        config.install_location = InstallLocation(location)

    ctx.obj["config"] = config
    ctx.obj["workspaces"] = [Path(w) for w in workspaces] or [Path.cwd()]
    ctx.obj.setdefault("service_factory", SyncService.from_config)


# ── Versions ─────────────────────────────────────────────────────────


@main.command()
@click.option("--refresh", is_flag=True, help="Bypass the cache")
@click.pass_context
def versions(ctx: click.Context, refresh: bool):
    """List upstream versions."""

    async def op(service: SyncService):
        return await service.list_versions(force_refresh=refresh)

    found = _run(ctx, op)
    if not found:
        console.print("[yellow]No versions found.[/]")
        return

    table = Table(title=f"Versions ({len(found)})")
    table.add_column("Version", style="cyan")
    table.add_column("Commit", style="dim")
    for meta in found:
        table.add_row(meta.name, meta.commit_sha[:7])
    console.print(table)


@main.command(name="list")
@click.argument("version", required=False)
@click.pass_context
def list_items(ctx: click.Context, version: str | None):
    """List the commands of VERSION (latest by default)."""

    async def op(service: SyncService):
        tag = version or await service.latest_version()
        return tag, await service.item_listing(tag)

    tag, listing = _run(ctx, op)
    if not listing:
        console.print(f"[yellow]No commands found in {tag}.[/]")
        return

    table = Table(title=f"Commands in {tag} ({len(listing)})")
    table.add_column("Name", style="cyan")
    table.add_column("Path", style="dim")
    table.add_column("Installed")
    table.add_column("State")
    for info in listing:
        state = ""
        if info.installed:
            state = "[yellow]modified[/]" if info.modified else ("enabled" if info.enabled else "disabled")
            if info.has_update:
                state += " [green](update)[/]"
        table.add_row(info.identity, info.path, "yes" if info.installed else "", state)
    console.print(table)


# ── Install / Update ─────────────────────────────────────────────────


@main.command()
@click.argument("version", required=False)
@click.option("--profile", default=None, help="Install profile recorded in the lockfile")
@click.option("--force", is_flag=True, help="Install even if validation finds errors")
@click.pass_context
def install(ctx: click.Context, version: str | None, profile: str | None, force: bool):
    """Install VERSION (latest by default) into the configured location."""

    async def op(service: SyncService):
        return await service.install(version, profile, force=force)

    report = _run(ctx, op)
    for warning in report.validation.warnings:
        console.print(f"  [yellow]![/] {warning}")

    for root, result in report.results.items():
        if result.success:
            console.print(f"  [green]v[/] {root}: installed {result.installed_count} commands")
        else:
            console.print(
                f"  [yellow]![/] {root}: installed {result.installed_count}, "
                f"skipped {result.skipped_count}"
            )
            for error in result.errors:
                console.print(f"      [red]{error}[/]")

    if report.success:
        console.print(f"\n[green]Installed {report.item_count} commands ({report.version})[/]")
    else:
        console.print(f"\n[red]Install finished with errors ({report.version})[/]")
        ctx.exit(1)


@main.command()
@click.option("--force", is_flag=True, help="Update even if validation finds errors")
@click.pass_context
def update(ctx: click.Context, force: bool):
    """Update every installed target to the latest version."""

    async def op(service: SyncService):
        return await service.update(force=force)

    failed = False
    for outcome in _run(ctx, op):
        if outcome.result is not None and not outcome.result.success:
            failed = True
            console.print(f"  [yellow]![/] {outcome.summary()}")
        else:
            console.print(f"  [green]v[/] {outcome.summary()}")
    if failed:
        ctx.exit(1)


@main.command()
@click.pass_context
def check(ctx: click.Context):
    """Check installed targets for a newer upstream version."""
    config = ctx.obj["config"]

    async def op(service: SyncService):
        infos = await service.check()
        outcomes = []
        if config.auto_update and any(i.has_update for i in infos.values()):
            outcomes = await service.update()
        return infos, outcomes

    infos, outcomes = _run(ctx, op)
    if not infos:
        console.print("[yellow]Nothing installed (or upstream unreachable).[/]")
        return

    for root, info in infos.items():
        marker = "[green]UPDATE[/]" if info.has_update else "[dim]OK[/]"
        console.print(f"  {marker} {root}: {info.summary()}")
    for outcome in outcomes:
        console.print(f"  [green]v[/] {outcome.summary()}")


@main.command()
@click.argument("version", required=False)
@click.pass_context
def diff(ctx: click.Context, version: str | None):
    """Show what installing VERSION (latest by default) would change."""

    async def op(service: SyncService):
        resolved = service.resolve_installed()
        tag = version or await service.latest_version()
        items = await service.fetch_items(tag)
        if resolved is None:
            return tag, build_diffs({}, items), []
        local = service.installer.read_installed_content(resolved.root)
        return tag, build_diffs(local, items), service.lockfile.modified_identities(resolved.root)

    tag, diffs, modified = _run(ctx, op)
    if not diffs:
        console.print(f"[green]Installed commands match {tag}.[/]")
        return

    table = Table(title=f"Changes for {tag} ({len(diffs)})")
    table.add_column("Name", style="cyan")
    table.add_column("Change")
    table.add_column("Detail", style="dim")
    partition = partition_by_user_modification(diffs, modified)
    for d in partition.to_apply:
        table.add_row(d.identity, d.kind.value, summarize_diff(d))
    for d in partition.skipped:
        table.add_row(d.identity, f"[yellow]{d.kind.value}[/]", "Kept: modified locally")
    console.print(table)


# ── Installed state ──────────────────────────────────────────────────


@main.command()
@click.pass_context
def status(ctx: click.Context):
    """Show the installed version and per-command state."""

    async def op(service: SyncService):
        return service.resolve_installed()

    resolved = _run(ctx, op)
    if resolved is None:
        console.print("[yellow]No commands installed.[/]")
        return

    record = resolved.record
    console.print(Panel(
        f"Version: [cyan]{record.version}[/]\n"
        f"Profile: {record.profile}\n"
        f"Location: {resolved.location.value} ({resolved.root})\n"
        f"Installed: {record.written_at}",
        title="Installed Commands",
    ))

    table = Table()
    table.add_column("Name", style="cyan")
    table.add_column("Hash", style="dim")
    table.add_column("State")
    for item in record.items:
        state = "disabled" if item.disabled else "enabled"
        if item.user_modified:
            state += " [yellow](modified)[/]"
        table.add_row(item.identity, item.content_hash, state)
    console.print(table)


@main.command()
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def uninstall(ctx: click.Context, yes: bool):
    """Remove installed commands and their lockfile."""
    if not yes:
        click.confirm("Remove all installed commands?", abort=True)

    async def op(service: SyncService):
        return service.uninstall()

    resolved = _run(ctx, op)
    console.print(f"[green]Commands removed from {resolved.root}[/]")


def _toggle(ctx: click.Context, name: str, enabled: bool):
    async def op(service: SyncService):
        return service.toggle(name, enabled)

    changed = _run(ctx, op)
    verb = "enabled" if enabled else "disabled"
    if changed:
        console.print(f"[green]{name} {verb}[/]")
    else:
        console.print(f"[dim]{name} is already {verb}[/]")


@main.command()
@click.argument("name")
@click.pass_context
def enable(ctx: click.Context, name: str):
    """Enable an installed command."""
    _toggle(ctx, name, True)


@main.command()
@click.argument("name")
@click.pass_context
def disable(ctx: click.Context, name: str):
    """Disable an installed command without removing it."""
    _toggle(ctx, name, False)


@main.command()
@click.argument("name")
@click.pass_context
def show(ctx: click.Context, name: str):
    """Print the installed content of a command."""

    async def op(service: SyncService):
        return service.preview(name)

    content = _run(ctx, op)
    console.print(Panel(Syntax(content, "markdown", word_wrap=True), title=name))


@main.command()
@click.option("--no-mark", is_flag=True, help="Report only, do not flag drifted commands")
@click.pass_context
def drift(ctx: click.Context, no_mark: bool):
    """Find installed commands edited since they were installed."""

    async def op(service: SyncService):
        return service.scan_drift(mark=not no_mark)

    reports = _run(ctx, op)
    if not reports:
        console.print("[yellow]No commands installed.[/]")
        return

    for report in reports:
        if report.has_drift:
            console.print(f"  [red]DRIFT[/] {report.summary()}")
            for name in report.drifted:
                console.print(f"    - modified: {name}")
            for name in report.missing:
                console.print(f"    - missing: {name}")
        else:
            console.print(f"  [green]OK[/] {report.summary()}")


# ── Cache ────────────────────────────────────────────────────────────


@main.group()
def cache():
    """Manage the local content cache."""


@cache.command()
@click.pass_context
def clear(ctx: click.Context):
    """Delete every cached version list and command bundle."""

    async def op(service: SyncService):
        service.clear_cache()

    _run(ctx, op)
    console.print("[green]Cache cleared[/]")


@cache.command()
@click.pass_context
def purge(ctx: click.Context):
    """Delete cache entries far past their expiry."""

    async def op(service: SyncService):
        return service.purge_cache()

    purged = _run(ctx, op)
    if purged:
        console.print(f"[green]Purged {len(purged)} stale entries:[/] {', '.join(purged)}")
    else:
        console.print("[dim]Nothing to purge[/]")


@cache.command()
@click.pass_context
def size(ctx: click.Context):
    """Report the number of cached files and their total size."""

    async def op(service: SyncService):
        return service.cache.size_report(), service.cache.read_metadata()

    report, metadata = _run(ctx, op)
    console.print(f"{report.file_count} files, {report.byte_size / 1024:.1f} KiB")
    if metadata.get("lastCleanup"):
        console.print(f"[dim]Last cleanup: {metadata['lastCleanup']}[/]")
