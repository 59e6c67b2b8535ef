"""
Command-line interface for the branch pinning tool.
"""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
import sys
from pathlib import Path
from typing import NoReturn, Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .fallback import fallback_chain, fallback_refs, fallback_remotes, last_fallback_ref
from .models import (
    BuildTarget,
    DEFAULT_FETCH_ATTEMPTS,
    DEFAULT_FETCH_DELAY,
    DEFAULT_GIT_HOST,
    DEFAULT_URL_TEMPLATE,
    PinError,
    PinSettings,
)
from .orchestrator import BuildOrchestrator
from .release import command_formatter
from . import __version__ as PACKAGE_VERSION


# Diagnostics go to stderr; resolution output goes to stdout through click.echo
console = Console(stderr=True)
out_console = Console()
logger = logging.getLogger(__name__)


def _print_version(ctx, param, value):
    """Eager option callback to print version and exit."""
    if not value or ctx.resilient_parsing:
        return
    click.echo(f"branchpin {PACKAGE_VERSION}")
    ctx.exit()


def setup_logging(
    verbose: bool = False, console_level: Optional[str] = None, log_file: Optional[Path] = None
) -> None:
    """Setup logging: a rich console handler on stderr plus an optional rotating log file.

    The console level defaults to INFO; --verbose selects DEBUG and --log-level
    overrides both.
    """
    root = logging.getLogger()
    # Clear existing handlers to avoid duplication in tests / repeated invocations
    root.handlers.clear()
    root.setLevel(logging.DEBUG)
    # GitPython logs every command at debug level
    logging.getLogger("git").setLevel(logging.WARNING)

    level_map = {
        "debug": logging.DEBUG,
        "info": logging.INFO,
        "warning": logging.WARNING,
        "error": logging.ERROR,
    }
    default_level = "debug" if verbose else "info"
    ch_level = level_map.get((console_level or default_level).lower(), logging.INFO)
    console_handler = RichHandler(console=console, show_path=False, rich_tracebacks=True)
    console_handler.setLevel(ch_level)
    console_handler.setFormatter(logging.Formatter("%(message)s"))
    root.addHandler(console_handler)

    if log_file:
        path = Path(log_file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            str(path), maxBytes=1_000_000, backupCount=3, encoding="utf-8"
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            logging.Formatter(
                fmt="%(asctime)s %(levelname)s [%(name)s] %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        root.addHandler(file_handler)


def _fail(message: str, code: int = 1) -> NoReturn:
    console.print(f"❌ {message}", style="bold red", markup=False, soft_wrap=True)
    sys.exit(code)


def _orchestrator(ctx: click.Context) -> BuildOrchestrator:
    return BuildOrchestrator(ctx.obj.get("repo_path"), ctx.obj.get("settings"))


def _target(owner: str, branch: str, fallback: Optional[str]) -> BuildTarget:
    return BuildTarget(owner, branch, fallback)


def _handle_error(ctx: click.Context, what: str, error: Exception) -> NoReturn:
    if isinstance(error, PinError):
        # Debug stack trace to file logs for diagnostics
        logger.debug(f"{what} aborted", exc_info=True)
        _fail(str(error))
    logger.debug(f"Unexpected error in {what}", exc_info=True)
    if ctx.obj.get("verbose"):
        console.print_exception()
    _fail(f"Unexpected error in {what}: {error}")


@click.group()
@click.option(
    "--version",
    "-V",
    is_flag=True,
    callback=_print_version,
    expose_value=False,
    is_eager=True,
    help="Show version and exit.",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug console logging")
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warning", "error"], case_sensitive=False),
    default=None,
    help="Console log level (default: info).",
)
@click.option(
    "--log-file",
    type=click.Path(path_type=Path),
    envvar="BRANCHPIN_LOG",
    default=None,
    help="Also write debug logs to this rotating file.",
)
@click.option(
    "--repo-path",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Path to repository (defaults to current directory)",
)
@click.option(
    "--host",
    envvar="BRANCHPIN_GIT_HOST",
    default=DEFAULT_GIT_HOST,
    show_default=True,
    help="Host part of remote URLs.",
)
@click.option(
    "--url-template",
    envvar="BRANCHPIN_URL_TEMPLATE",
    default=DEFAULT_URL_TEMPLATE,
    show_default=True,
    help="Remote URL template with {host}, {owner} and {repo} fields.",
)
@click.option(
    "--fetch-attempts",
    type=click.IntRange(min=1),
    envvar="BRANCHPIN_FETCH_ATTEMPTS",
    default=DEFAULT_FETCH_ATTEMPTS,
    show_default=True,
    help="Attempts per fetch before giving up on transient errors.",
)
@click.option(
    "--fetch-delay",
    type=click.FloatRange(min=0),
    envvar="BRANCHPIN_FETCH_DELAY",
    default=DEFAULT_FETCH_DELAY,
    show_default=True,
    help="Seconds to wait between fetch attempts.",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    log_level: Optional[str],
    log_file: Optional[Path],
    repo_path: Optional[Path],
    host: str,
    url_template: str,
    fetch_attempts: int,
    fetch_delay: float,
) -> None:
    """Branch Pin - resolve, pin and release branches across a repository and its submodules."""
    setup_logging(verbose, console_level=log_level, log_file=log_file)

    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["repo_path"] = repo_path.resolve() if isinstance(repo_path, Path) else None
    ctx.obj["settings"] = PinSettings(
        host=host,
        url_template=url_template,
        fetch_attempts=fetch_attempts,
        fetch_delay=fetch_delay,
    )
    logger.debug(f"CLI init: cwd={Path.cwd()} repo_path={ctx.obj['repo_path']}")


@cli.command()
@click.argument("owner")
@click.argument("branch")
@click.argument("fallback", required=False)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["pairs", "remotes", "refs", "last"]),
    default="pairs",
    show_default=True,
    help="pairs: 'remote branch' lines; remotes: distinct remotes; refs: remote/branch; last: last ref only.",
)
@click.pass_context
def fallback(
    ctx: click.Context, owner: str, branch: str, fallback: Optional[str], output_format: str
) -> None:
    """Print the fallback chain for OWNER BRANCH [FALLBACK]."""
    try:
        if output_format == "pairs":
            lines = [f"{c.remote} {c.branch}" for c in fallback_chain(owner, branch, fallback)]
        elif output_format == "remotes":
            lines = fallback_remotes(owner, branch, fallback)
        elif output_format == "refs":
            lines = fallback_refs(owner, branch, fallback)
        else:
            lines = [last_fallback_ref(owner, branch, fallback)]
    except Exception as e:
        _handle_error(ctx, "fallback", e)
    for line in lines:
        click.echo(line)


@cli.command("select-branch")
@click.argument("owner")
@click.argument("branch")
@click.argument("fallback", required=False)
@click.pass_context
def select_branch_command(
    ctx: click.Context, owner: str, branch: str, fallback: Optional[str]
) -> None:
    """Print the first existing remote branch of the fallback chain."""
    try:
        candidate = _orchestrator(ctx).select_branch(_target(owner, branch, fallback))
    except Exception as e:
        _handle_error(ctx, "select-branch", e)
    click.echo(candidate.ref)


@cli.command("select-version")
@click.argument("owner")
@click.argument("branch")
@click.argument("fallback", required=False)
@click.pass_context
def select_version_command(
    ctx: click.Context, owner: str, branch: str, fallback: Optional[str]
) -> None:
    """Print the <major>.<minor> version of a build."""
    try:
        version = _orchestrator(ctx).select_version(_target(owner, branch, fallback))
    except Exception as e:
        _handle_error(ctx, "select-version", e)
    click.echo(str(version))


@cli.command("init-parent")
@click.argument("owner")
@click.argument("branch")
@click.argument("fallback", required=False)
@click.pass_context
def init_parent(ctx: click.Context, owner: str, branch: str, fallback: Optional[str]) -> None:
    """Reset the repository and fetch all fallback remotes, submodules included."""
    try:
        root_info = _orchestrator(ctx).init_parent(_target(owner, branch, fallback))
    except Exception as e:
        _handle_error(ctx, "init-parent", e)
    console.print(
        f"✅ Remotes ready for {root_info.name} and {len(root_info.submodules)} submodule(s)",
        style="bold green",
    )


@cli.command("update-submodules")
@click.argument("owner")
@click.argument("branch")
@click.argument("fallback", required=False)
@click.pass_context
def update_submodules(ctx: click.Context, owner: str, branch: str, fallback: Optional[str]) -> None:
    """Pin every submodule to the branch its fallback chain resolves to."""
    try:
        record = _orchestrator(ctx).update_submodules(_target(owner, branch, fallback))
    except Exception as e:
        _handle_error(ctx, "update-submodules", e)
    for name, pin in record.pins.items():
        click.echo(f"{name} {pin.ref} {pin.commit}")


@cli.command("commit-log")
@click.argument("from_base")
@click.argument("to_base")
@click.argument("owner")
@click.argument("branch")
@click.argument("version")
@click.argument("formatter")
@click.pass_context
def commit_log(
    ctx: click.Context,
    from_base: str,
    to_base: str,
    owner: str,
    branch: str,
    version: str,
    formatter: str,
) -> None:
    """Record a changelog commit between FROM_BASE and TO_BASE.

    FORMATTER is a command run as '<FORMATTER> <OWNER> <VERSION>' with the raw
    changelog on stdin.
    """
    try:
        result = _orchestrator(ctx).commit_log(
            from_base, to_base, owner, branch, version, command_formatter(formatter)
        )
    except Exception as e:
        _handle_error(ctx, "commit-log", e)
    for warning in result.warnings:
        console.print(f"⚠️  {warning}", style="bold yellow", markup=False, soft_wrap=True)
    click.echo(result.commit)


@cli.command()
@click.argument("owner")
@click.argument("branch")
@click.argument("version")
@click.pass_context
def push(ctx: click.Context, owner: str, branch: str, version: str) -> None:
    """Merge OWNER/BRANCH if needed, then push submodule tags and HEAD."""
    try:
        _orchestrator(ctx).push_everything(owner, branch, version)
    except Exception as e:
        _handle_error(ctx, "push", e)
    console.print(f"🚀 Pushed v{version} and {branch} to {owner}", style="bold green")


@cli.command("release-diff")
@click.argument("from_version")
@click.argument("to_version")
@click.pass_context
def release_diff_command(ctx: click.Context, from_version: str, to_version: str) -> None:
    """Show the submodule log between the 'Build <version>' commits of two releases."""
    try:
        text = _orchestrator(ctx).release_diff(from_version, to_version)
    except Exception as e:
        _handle_error(ctx, "release-diff", e)
    click.echo(text)


@cli.command()
@click.option("--clear", is_flag=True, help="Delete the recorded pins")
@click.pass_context
def pins(ctx: click.Context, clear: bool) -> None:
    """Show the pins recorded by the last update-submodules run."""
    try:
        orchestrator = _orchestrator(ctx)
        if clear:
            removed = orchestrator.clear_pins()
            console.print("🧹 Cleared pin record" if removed else "No pin record found.")
            return
        record = orchestrator.current_pins()
    except Exception as e:
        _handle_error(ctx, "pins", e)

    if record is None:
        console.print("No pin record found.")
        return

    table = Table(
        title=f"{record.owner}/{record.branch} (fallback {record.fallback})",
        show_header=True,
        header_style="bold magenta",
    )
    table.add_column("Submodule", style="cyan")
    table.add_column("Branch", style="green")
    table.add_column("Commit", style="yellow")
    for name, pin in record.pins.items():
        table.add_row(name, pin.ref, pin.commit[:12])
    out_console.print(table)


def main() -> None:
    """Main entry point for the CLI."""
    try:
        cli.main(standalone_mode=False)
    except click.ClickException as e:
        # Usage errors exit with status 1 like every other fatal condition
        e.show()
        sys.exit(1)
    except (click.Abort, KeyboardInterrupt):
        console.print("\n\n🚫 Operation cancelled by user", style="bold yellow")
        logger.debug("Top-level cancellation", exc_info=True)
        sys.exit(130)
    except Exception as e:
        console.print(f"\n💥 Unexpected error: {e}", style="bold red", markup=False)
        logger.debug("Unexpected error in main()", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
