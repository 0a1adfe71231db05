"""Typer CLI application for nbssh.

Prints the ssh argv for a host profile or an ad-hoc ``user@host:port``
target. The command is only printed, never run.
"""

from __future__ import annotations

import dataclasses
import json
import os
from typing import Annotated, Optional

import typer
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from nbssh import __version__
from nbssh.address import resolve
from nbssh.config import (
    ENV_CONFIG_VAR,
    HostsConfig,
    get_config_path,
    load_config,
    validate_config_file,
)
from nbssh.errors import ConfigError, InvalidOption, NbsshError
from nbssh.ssh import SshParams, Toggle, command
from nbssh.utils import (
    console,
    format_command,
    print_error,
    print_info,
    print_success,
    print_warning,
)

# ---------------------------------------------------------------------------
# App setup
# ---------------------------------------------------------------------------

app = typer.Typer(
    name="nbssh",
    help="Build ssh command lines from host profiles or user@host:port targets.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _load_config_or_exit() -> HostsConfig:
    """Load config, printing a helpful error and exiting on failure."""
    try:
        return load_config()
    except ConfigError as exc:
        print_error(str(exc))
        raise typer.Exit(1)


def _looks_like_address(target: str) -> bool:
    """True for targets that cannot be mistaken for a bare profile name."""
    return any(ch in target for ch in "@:.[")


def _base_params(target: str) -> SshParams:
    """Profile params when *target* names a profile, else a parsed address.

    A broken profile file only blocks targets that could be profile names;
    explicit addresses such as ``alice@host`` still build, with a warning.
    """
    if get_config_path().exists():
        try:
            config = load_config()
        except ConfigError as exc:
            if not _looks_like_address(target):
                print_error(str(exc))
                raise typer.Exit(1)
            print_warning(f"Ignoring host profiles: {exc}")
        else:
            if config.has_host(target):
                return config.resolve_host(target).params
    return SshParams(address=resolve(target))


def _parse_option_flags(raw: list[str]) -> list[tuple[str, str]]:
    pairs: list[tuple[str, str]] = []
    for item in raw:
        name, sep, value = item.partition("=")
        if not sep:
            raise InvalidOption(
                f"Option '{item}' must be written as NAME=VALUE.", field="option"
            )
        pairs.append((name, value))
    return pairs


# ---------------------------------------------------------------------------
# Default callback
# ---------------------------------------------------------------------------


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"nbssh {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
):
    """nbssh: build ssh argv without running it."""


# ---------------------------------------------------------------------------
# nbssh build
# ---------------------------------------------------------------------------


@app.command("build", context_settings={"allow_interspersed_args": False})
def cmd_build(
    target: Annotated[str, typer.Argument(help="Profile name or [user@]host[:port].")],
    remote: Annotated[
        Optional[list[str]],
        typer.Argument(help="Remote command tokens; omit for an interactive session."),
    ] = None,
    identity: Annotated[
        Optional[str], typer.Option("--identity", "-i", help="Identity file path.")
    ] = None,
    ssh_config: Annotated[
        Optional[str], typer.Option("--ssh-config", "-F", help="ssh_config file path.")
    ] = None,
    port: Annotated[
        Optional[int], typer.Option("--port", "-p", help="Port, overrides the target's.")
    ] = None,
    option: Annotated[
        Optional[list[str]],
        typer.Option("--option", "-o", help="Extra ssh option NAME=VALUE (repeatable)."),
    ] = None,
    strict: Annotated[
        Optional[bool],
        typer.Option("--strict/--no-strict", help="StrictHostKeyChecking."),
    ] = None,
    forward_agent: Annotated[
        Optional[bool],
        typer.Option("--forward-agent/--no-forward-agent", help="ForwardAgent."),
    ] = None,
    batch: Annotated[
        Optional[bool], typer.Option("--batch/--no-batch", help="BatchMode.")
    ] = None,
    connect_timeout: Annotated[
        Optional[int], typer.Option("--connect-timeout", help="ConnectTimeout in seconds.")
    ] = None,
    as_json: Annotated[
        bool, typer.Option("--json", help="Print a JSON array instead of a shell line.")
    ] = False,
):
    """Print the ssh command for TARGET. Options must precede TARGET.

    TARGET is looked up as a host profile first. Targets containing @, :, . or [
    are still built as plain addresses when the profile file is invalid.
    """
    try:
        params = _base_params(target)
        overrides: dict[str, object] = {}
        if identity is not None:
            overrides["identity_file"] = identity
        if ssh_config is not None:
            overrides["config_file"] = ssh_config
        if port is not None:
            overrides["port"] = port
        if strict is not None:
            overrides["strict_host_key_checking"] = Toggle.from_bool(strict)
        if forward_agent is not None:
            overrides["forward_agent"] = Toggle.from_bool(forward_agent)
        if batch is not None:
            overrides["batch_mode"] = Toggle.from_bool(batch)
        if connect_timeout is not None:
            overrides["connect_timeout"] = connect_timeout
        if option:
            overrides["extra_options"] = (
                *params.extra_options,
                *_parse_option_flags(option),
            )
        params = dataclasses.replace(params, **overrides)
        argv = command(params, remote or [])
    except NbsshError as exc:
        print_error(str(exc))
        raise typer.Exit(1)

    typer.echo(json.dumps(argv) if as_json else format_command(argv))


# ---------------------------------------------------------------------------
# nbssh ls
# ---------------------------------------------------------------------------


@app.command("ls")
def cmd_ls(
    search: Annotated[
        Optional[str], typer.Argument(help="Optional search filter.")
    ] = None,
):
    """List host profiles in a table."""
    config = _load_config_or_exit()
    hosts = config.search_hosts(search) if search else config.hosts
    if not hosts:
        print_info(f"No hosts matching '{search}'." if search else "No hosts configured.")
        raise typer.Exit()

    table = Table(title="Hosts", header_style="bold cyan")
    table.add_column("Name", style="bold")
    table.add_column("Address")
    table.add_column("Identity", style="dim")
    table.add_column("Tags", style="magenta")
    table.add_column("Description")
    for host in hosts:
        table.add_row(
            escape(host.name),
            escape(str(host.address)),
            escape(host.params.identity_file or "-"),
            escape(", ".join(host.tags)),
            escape(host.description),
        )
    console.print(table)


# ---------------------------------------------------------------------------
# nbssh config
# ---------------------------------------------------------------------------


@app.command("config")
def cmd_config():
    """Show active config path and validate it."""
    path = get_config_path()
    env_line = (
        f"{ENV_CONFIG_VAR}={escape(str(path))}" if ENV_CONFIG_VAR in os.environ else "[dim]not set[/dim]"
    )
    console.print(Panel(
        f"[bold]Config path:[/bold] {escape(str(path))}\n"
        f"[bold]Env var:[/bold]    {env_line}",
        title="[bold]nbssh config[/bold]",
        border_style="blue",
    ))

    ok, msg = validate_config_file()
    if ok:
        print_success(msg)
    else:
        print_error(msg)
        raise typer.Exit(1)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def app_entry() -> None:
    """Console script entry point for ``nbssh``."""
    app()
