"""mailpulse command-line interface."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated, NoReturn

import typer

from . import __version__
from .config import Config, ConfigError, load_config
from .logging import configure_logging
from .profiles import profiles_ini_path, resolve_default_profile
from .runtime import WatchRuntime
from .session import WatchSession, list_mail_roots
from .types import ActivityEvent, ErrorKind, WatchNotice

app = typer.Typer(help="Watch a mail client's local mail storage for activity.")
LOGGER = logging.getLogger(__name__)


@dataclass
class CLIState:
    """Stores shared CLI options."""

    config_path: Path | None


@app.callback()
def _mailpulse(
    ctx: typer.Context,
    config: Annotated[
        Path | None,
        typer.Option(
            "-c",
            "--config",
            help="Path to mailpulse config (env MAILPULSE_CONFIG or ~/.config/mailpulse/config.yaml).",
        ),
    ] = None,
) -> None:
    """Capture global CLI options."""

    resolved = config.expanduser() if config else None
    ctx.obj = CLIState(config_path=resolved)


@app.command()
def version() -> None:
    """Print the installed version."""

    typer.echo(__version__)


@app.command()
def profile(ctx: typer.Context) -> None:
    """Show where profiles.ini is expected and which profile is active."""

    config = _load_environment(_state(ctx))
    ini_path = config.profiles_ini or profiles_ini_path()
    typer.echo(f"profiles.ini: {ini_path}")
    resolved = resolve_default_profile(ini_path)
    if resolved is None:
        typer.secho("No profile configured.", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)
    typer.echo(f"Profile section: [{resolved.record.section}]")
    typer.echo(f"Profile dir: {resolved.path}")


@app.command()
def roots(
    ctx: typer.Context,
    as_json: Annotated[bool, typer.Option("--json", help="Emit the listing as JSON.")] = False,
) -> None:
    """List the mail directories that can be watched."""

    config = _load_environment(_state(ctx))
    listing = list_mail_roots(config.profiles_ini)
    if as_json:
        typer.echo(json.dumps(listing.to_dict(), indent=2))
        if not listing.ok:
            raise typer.Exit(1)
        return
    if not listing.ok:
        _boundary_failure(listing.message, listing.error_kind)
    typer.echo(f"Profile dir: {listing.profile_dir}")
    for info in listing.roots:
        marker = "account" if info.is_account_directory else "storage"
        typer.echo(f"  - {info.display_name} [{marker}] {info.relative_path}")


@app.command()
def watch(
    ctx: typer.Context,
    selected: Annotated[
        list[Path] | None,
        typer.Argument(help="Directories to watch (defaults to config roots, then discovery)."),
    ] = None,
    as_json: Annotated[
        bool,
        typer.Option("--json", help="Print one JSON object per activity or notice."),
    ] = False,
    mail_only: Annotated[
        bool,
        typer.Option("--mail-only", help="Hide activity on files that are not mail storage."),
    ] = False,
) -> None:
    """Watch mail directories and print activity until interrupted."""

    config = _load_environment(_state(ctx))
    session = WatchSession(profiles_ini=config.profiles_ini, info_delay=config.info_delay)
    session.on_activity(_activity_printer(as_json=as_json, mail_only=mail_only))
    session.on_error(_notice_printer(as_json=as_json))

    runtime = WatchRuntime(session, selected or config.roots)
    result = runtime.run()
    if not result.ok:
        _boundary_failure(result.message, result.error_kind)


def _activity_printer(*, as_json: bool, mail_only: bool):
    def _print(event: ActivityEvent) -> None:
        if mail_only and not event.is_mail_related and event.message is None:
            return
        if as_json:
            typer.echo(json.dumps({"type": "activity", **event.to_dict()}))
            return
        if event.message is not None:
            typer.secho(event.message, fg=typer.colors.CYAN)
            return
        marker = "*" if event.is_mail_related else " "
        typer.echo(f"{marker} {event.event_kind:<9} {event.file_path}")

    return _print


def _notice_printer(*, as_json: bool):
    def _print(notice: WatchNotice) -> None:
        if as_json:
            typer.echo(json.dumps({"type": "error", **notice.to_dict()}))
            return
        typer.secho(notice.message, fg=typer.colors.YELLOW, err=True)

    return _print


def _state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise RuntimeError("CLI state missing from context.")
    return state


def _load_environment(state: CLIState) -> Config:
    try:
        config = load_config(state.config_path)
        configure_logging(config.logging, config.root_dir)
    except ConfigError as exc:
        _config_failure(exc)
    return config


def _config_failure(exc: ConfigError) -> NoReturn:
    typer.secho(f"Configuration error: {exc}", fg=typer.colors.RED, err=True)
    raise typer.Exit(2) from exc


def _boundary_failure(message: str | None, kind: ErrorKind | None) -> NoReturn:
    label = kind.value if kind is not None else "Error"
    typer.secho(f"{label}: {message}", fg=typer.colors.RED, err=True)
    raise typer.Exit(1)


def main() -> None:  # pragma: no cover - delegated to Typer
    app()


__all__ = ["app", "main"]
