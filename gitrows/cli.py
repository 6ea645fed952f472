"""gitrows CLI — read and write a git-backed key-value store."""

import logging
import sys
from typing import NoReturn

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from gitrows import __version__
from gitrows.config import GitRowsConfig, config_from_env, load_config
from gitrows.errors import GitRowsError

console = Console()
err_console = Console(stderr=True)


def _build_config(ctx: click.Context) -> GitRowsConfig:
    opts = ctx.obj
    base = load_config(opts["config_path"]) if opts["config_path"] else GitRowsConfig()
    config = config_from_env(base=base)
    overrides = {
        "remote_url": opts["remote"],
        "branch": opts["branch"],
        "volume": opts["volume"],
        "history_depth": opts["depth"],
    }
    for name, value in overrides.items():
        if value is not None:
            setattr(config, name, value)
    return config


def _open_db(ctx: click.Context):
    from gitrows.db import GitRows

    return GitRows(_build_config(ctx))


def _fail(exc: GitRowsError) -> NoReturn:
    err_console.print(f"[red]Error:[/] {exc}")
    sys.exit(1)


@click.group()
@click.version_option(version=__version__)
@click.option("--config", "-c", "config_path", default=None, type=click.Path(dir_okay=False),
              help="YAML config file")
@click.option("--remote", "-r", default=None, help="Remote address (overrides config)")
@click.option("--branch", "-b", default=None, help="Branch holding the data")
@click.option("--volume", default=None, help="Directory for local mirrors")
@click.option("--depth", default=None, type=int, help="Commits of history to retain")
@click.option("--verbose", "-v", is_flag=True, help="Log git activity")
@click.pass_context
def main(ctx, config_path, remote, branch, volume, depth, verbose):
    """gitrows — a key-value store on top of a git branch.

    Keys are file paths inside the repository; every write becomes a commit
    pushed to the remote.
    """
    ctx.ensure_object(dict)
    ctx.obj.update(
        config_path=config_path, remote=remote, branch=branch, volume=volume, depth=depth
    )
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=err_console, show_path=False)],
        )


# ── Sync ─────────────────────────────────────────────────────────────


@main.command()
@click.pass_context
def sync(ctx):
    """Bring the local mirror up to date with the remote."""
    try:
        result = _open_db(ctx).sync()
    except GitRowsError as e:
        _fail(e)
    console.print(f"[green]Synchronized[/] {result.tip or '(no commits yet)'}")


# ── Read ─────────────────────────────────────────────────────────────


@main.command()
@click.argument("key")
@click.pass_context
def get(ctx, key: str):
    """Print the value stored at KEY."""
    try:
        data = _open_db(ctx).get(key)
    except GitRowsError as e:
        _fail(e)
    click.echo(data, nl=False)


@main.command(name="ls")
@click.option("--prefix", "-p", default=None, help="Only keys directly inside this directory")
@click.pass_context
def list_keys(ctx, prefix: str | None):
    """List keys with their size and last commit."""
    try:
        entries = _open_db(ctx).list(prefix=prefix)
    except GitRowsError as e:
        _fail(e)

    if not entries:
        console.print("[yellow]No keys found.[/]")
        return

    table = Table(title=f"Keys ({len(entries)})")
    table.add_column("Key", style="cyan")
    table.add_column("Size", justify="right")
    table.add_column("Last commit", style="dim")
    for entry in entries:
        table.add_row(entry.key, str(entry.size), entry.last_commit[:12])
    console.print(table)


# ── Write ────────────────────────────────────────────────────────────


@main.command()
@click.argument("key")
@click.argument("source", type=click.File("rb"), default="-")
@click.option("--message", "-m", default=None, help="Commit message")
@click.pass_context
def create(ctx, key: str, source, message: str | None):
    """Store SOURCE (default: stdin) at a new KEY."""
    try:
        sha = _open_db(ctx).create(key, source.read(), message=message)
    except GitRowsError as e:
        _fail(e)
    console.print(f"[green]Created[/] {key} in {sha}")


@main.command()
@click.argument("key")
@click.argument("source", type=click.File("rb"), default="-")
@click.option("--message", "-m", default=None, help="Commit message")
@click.option("--allow-empty", is_flag=True, help="Commit even when nothing changed")
@click.pass_context
def put(ctx, key: str, source, message: str | None, allow_empty: bool):
    """Create or overwrite KEY with SOURCE (default: stdin)."""
    try:
        sha, changed = _open_db(ctx).upsert(
            key, source.read(), message=message, allow_empty_commit=allow_empty
        )
    except GitRowsError as e:
        _fail(e)
    if changed:
        console.print(f"[green]Updated[/] {key} in {sha}")
    else:
        console.print(f"[yellow]Unchanged[/] {key} at {sha}")


@main.command()
@click.argument("key")
@click.option("--message", "-m", default=None, help="Commit message")
@click.pass_context
def delete(ctx, key: str, message: str | None):
    """Remove KEY."""
    try:
        sha = _open_db(ctx).delete(key, message=message)
    except GitRowsError as e:
        _fail(e)
    console.print(f"[green]Deleted[/] {key} in {sha}")


if __name__ == "__main__":
    main()
