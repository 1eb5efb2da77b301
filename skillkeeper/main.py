"""Command line entry point for skillkeeper."""

from pathlib import Path
from typing import NoReturn

import typer
from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape
from rich.table import Table

from skillkeeper.config import Config, set_config
from skillkeeper.exceptions import SkillKeeperError
from skillkeeper.logging import bind_command, configure_logging, log
from skillkeeper.manager import SkillManager
from skillkeeper.status import BatchResult, ExitCode, ItemOutcome

app = typer.Typer(
    help="skillkeeper - install, update, and remove skills from a shared catalog",
    no_args_is_help=True,
)
console = Console()
err_console = Console(stderr=True)

_STATUS_STYLES = {
    "installed": "green",
    "removed": "green",
    "updated": "green",
    "unchanged": "dim",
    "present": "dim",
    "skipped": "yellow",
    "ambiguous": "yellow",
    "failed": "red",
}


def _load_config(config: str) -> Config:
    if not config:
        return Config.load()
    try:
        return Config.from_yaml(Path(config))
    except Exception as e:
        err_console.print(f"[red]Failed to load config {config}: {e}[/red]")
        raise typer.Exit(code=1) from e


def _manager(ctx: typer.Context) -> SkillManager:
    manager = ctx.obj
    if not isinstance(manager, SkillManager):
        manager = SkillManager()
        ctx.obj = manager
    return manager


def _print_outcome(outcome: ItemOutcome) -> None:
    style = _STATUS_STYLES.get(outcome.status, "red" if outcome.code else "green")
    label = outcome.status or ("ok" if outcome.ok else "failed")
    line = f"[{style}]{label:>10}[/{style}]  {escape(outcome.name)}"
    if outcome.message:
        line += f"  [dim]{escape(outcome.message)}[/dim]"
    console.print(line, highlight=False)
    for candidate in outcome.candidates:
        console.print(f"{'':>12}- {escape(candidate)}", highlight=False)


def _finish(result: BatchResult) -> NoReturn:
    for outcome in result.outcomes:
        _print_outcome(outcome)
    code = result.exit_code
    if code != ExitCode.SUCCESS:
        err_console.print(f"[dim]{result.operation}: exit code {int(code)} ({code.name})[/dim]")
    raise typer.Exit(code=int(code))


def _fail(exc: SkillKeeperError) -> NoReturn:
    err_console.print(f"[red]{escape(str(exc))}[/red]")
    raise typer.Exit(code=int(exc.code))


@app.callback()
def main(
    ctx: typer.Context,
    config: str = typer.Option("", "-c", "--config", help="Path to config file"),
    skills_dir: str = typer.Option("", "-d", "--skills-dir", help="Override skills directory"),
    manifest_url: str = typer.Option("", "-u", "--manifest-url", help="Override catalog URL"),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Debug logging"),
) -> None:
    """Manage skill checkouts from a shared catalog."""
    cfg = _load_config(config)
    if verbose:
        cfg.logging.level = "DEBUG"

    if skills_dir:
        cfg.skills.directory = skills_dir
    if manifest_url:
        cfg.skills.manifest_url = manifest_url

    set_config(cfg)
    configure_logging(cfg.logging)
    bind_command(ctx.invoked_subcommand)
    log.debug("Configuration loaded", skills_dir=str(cfg.resolved_skills_dir()), manifest=cfg.skills.manifest_url)
    ctx.obj = SkillManager(cfg)


@app.command()
def install(
    ctx: typer.Context,
    queries: list[str] = typer.Argument(..., help="Skill names, search terms, or repository URLs"),
) -> None:
    """Install skills by name, fuzzy query, or repository URL."""
    _finish(_manager(ctx).install(queries))


@app.command()
def remove(
    ctx: typer.Context,
    queries: list[str] = typer.Argument(..., help="Installed skill names or search terms"),
) -> None:
    """Remove installed skills."""
    _finish(_manager(ctx).remove(queries))


@app.command("list")
def list_command(ctx: typer.Context) -> None:
    """List catalog skills and mark the installed ones."""
    try:
        listings = _manager(ctx).list_skills()
    except SkillKeeperError as exc:
        _fail(exc)

    table = Table(title="Skills")
    table.add_column("Name", style="cyan")
    table.add_column("Installed")
    table.add_column("Source", style="dim")
    for listing in listings:
        installed = "[green]yes[/green]" if listing.installed else ""
        source = listing.url or "-"
        if not listing.in_catalog:
            source = f"{source} (not in catalog)"
        table.add_row(listing.name, installed, source)
    console.print(table)


@app.command()
def update(ctx: typer.Context) -> None:
    """Fast-forward every clean skill checkout on the mainline branch."""
    _finish(_manager(ctx).update())


@app.command()
def default(ctx: typer.Context) -> None:
    """Install missing default skills and update all checkouts."""
    _finish(_manager(ctx).install_defaults())


@app.command()
def search(
    ctx: typer.Context,
    query: list[str] = typer.Argument(..., help="Search terms"),
    limit: int = typer.Option(0, "-n", "--limit", help="Maximum results (0 = all)"),
) -> None:
    """Search the catalog."""
    text = " ".join(query)
    try:
        results = _manager(ctx).search(text, limit=limit)
    except SkillKeeperError as exc:
        _fail(exc)

    if not results:
        err_console.print(f"[yellow]No skills match '{text}'[/yellow]")
        raise typer.Exit(code=int(ExitCode.SKILL_NOT_FOUND))

    table = Table(title=f"Skills matching '{text}'")
    table.add_column("Name", style="cyan")
    table.add_column("URL", style="dim")
    for entry in results:
        table.add_row(entry.name, entry.url)
    console.print(table)


@app.command()
def info(
    ctx: typer.Context,
    query: str = typer.Argument(..., help="Skill name, search term, or repository URL"),
) -> None:
    """Show details and README for a skill."""
    try:
        details = _manager(ctx).info(query)
    except SkillKeeperError as exc:
        if exc.code == ExitCode.AMBIGUOUS_MATCH:
            for candidate in getattr(exc, "candidates", []):
                err_console.print(f"  - {candidate}")
        _fail(exc)

    console.print(f"[bold cyan]{details.entry.name}[/bold cyan]  [dim]{details.entry.url}[/dim]")
    console.print(f"Installed: {'yes' if details.installed else 'no'}")
    console.print(f"[dim]{details.readme_url}[/dim]")
    console.print(Markdown(details.readme))


@app.command()
def version() -> None:
    """Show version information."""
    from skillkeeper import __version__

    console.print(f"skillkeeper v{__version__}")


if __name__ == "__main__":
    app()
