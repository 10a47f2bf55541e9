"""CLI entry point for the profile engine."""

from __future__ import annotations

import asyncio
from enum import StrEnum
from pathlib import Path

import typer
from rich.console import Console

from profile_engine.config import Settings, get_settings
from profile_engine.export import ReportFormat

app = typer.Typer(
    name="profile-engine",
    help="Provision, backfill and verify identity profiles.",
    no_args_is_help=True,
)
console = Console()


class HookAction(StrEnum):
    STATUS = "status"
    INSTALL = "install"
    ENABLE = "enable"
    DISABLE = "disable"
    REMOVE = "remove"


def _ensure_db_dir(db_path: Path) -> None:
    db_path.parent.mkdir(parents=True, exist_ok=True)


def _settings(db: Path | None) -> Settings:
    settings = get_settings()
    if db is not None:
        settings = settings.model_copy(update={"db_path": db})
    _ensure_db_dir(settings.db_path)
    return settings


@app.callback()
def main(
    log_level: str | None = typer.Option(None, help="Log level (defaults to settings)"),
) -> None:
    from profile_engine.log import configure_logging

    configure_logging(log_level or get_settings().log_level)


@app.command()
def init(
    hook: bool = typer.Option(True, help="Install the provisioning hook"),
    db: Path | None = typer.Option(None, help="Path to SQLite database"),
) -> None:
    """Create the tables and install the provisioning hook."""
    from profile_engine.pipeline import open_engine

    settings = _settings(db)

    async def _init() -> None:
        async with open_engine(settings, install_hook=hook):
            pass

    asyncio.run(_init())
    console.print(f"[green]Initialized profile engine at {settings.db_path}[/green]")


@app.command()
def register(
    email: str = typer.Option("", help="Email of the new identity (may be empty)"),
    name: str | None = typer.Option(None, help="Full name stored in identity metadata"),
    role: str | None = typer.Option(None, help="Requested role stored in identity metadata"),
    identity_id: str | None = typer.Option(None, help="Explicit identity id"),
    hook: bool = typer.Option(True, help="Attach the provisioning hook, installing it if missing"),
    db: Path | None = typer.Option(None, help="Path to SQLite database"),
) -> None:
    """Register an identity, as the authentication provider would."""
    from profile_engine.errors import ProfileNotFoundError
    from profile_engine.models.identity import Actor
    from profile_engine.pipeline import open_engine

    settings = _settings(db)
    metadata: dict[str, str] = {}
    if name is not None:
        metadata["full_name"] = name
    if role is not None:
        metadata["role"] = role

    async def _register() -> None:
        async with open_engine(settings, install_hook=hook) as engine:
            identity = await engine.identities.create(
                email=email or None, metadata=metadata, identity_id=identity_id
            )
            await engine.identities.drain()
            console.print(f"[green]Identity {identity.id} registered[/green]")
            try:
                profile = await engine.service.get_profile(Actor(id=identity.id), identity.id)
            except ProfileNotFoundError:
                console.print("[yellow]No profile yet. Run backfill once it has an email.[/yellow]")
                return
            console.print(f"  profile: {profile.display_name} ({profile.role})")

    asyncio.run(_register())


@app.command()
def backfill(
    limit: int | None = typer.Option(None, help="Process at most this many identities"),
    db: Path | None = typer.Option(None, help="Path to SQLite database"),
) -> None:
    """Create profiles for identities that are missing one."""
    from profile_engine.errors import StoreUnavailableError
    from profile_engine.pipeline import open_engine

    settings = _settings(db)

    async def _backfill() -> None:
        async with open_engine(settings, install_hook=False) as engine:
            result = await engine.reconciler.backfill_missing_profiles(limit=limit)
        console.print(f"[green]{result.summary()}[/green]")
        if result.skipped or result.duplicates:
            console.print(
                f"[dim]Skipped without email: {result.skipped}, "
                f"already provisioned: {result.duplicates}[/dim]"
            )
        if result.errors:
            raise typer.Exit(1)

    try:
        asyncio.run(_backfill())
    except StoreUnavailableError as exc:
        console.print(f"[red]Store unavailable: {exc}[/red]")
        raise typer.Exit(2) from exc


@app.command()
def verify(
    fmt: ReportFormat = typer.Option(ReportFormat.TABLE, "--format", help="Output format"),
    output: Path | None = typer.Option(None, help="Write the report to this file"),
    db: Path | None = typer.Option(None, help="Path to SQLite database"),
) -> None:
    """Report the health of the provisioning path."""
    from profile_engine.errors import StoreUnavailableError
    from profile_engine.export import export_report, render_report, report_table
    from profile_engine.models.report import HealthReport
    from profile_engine.pipeline import open_engine

    settings = _settings(db)

    async def _verify() -> HealthReport:
        async with open_engine(settings, install_hook=False) as engine:
            return await engine.verifier.report()

    try:
        report = asyncio.run(_verify())
    except StoreUnavailableError as exc:
        console.print(f"[red]Store unavailable: {exc}[/red]")
        raise typer.Exit(2) from exc

    if output is not None:
        export_report(report, output, fmt)
        console.print(f"[green]Report written to {output}[/green]")
    elif fmt == ReportFormat.TABLE:
        console.print(report_table(report))
    elif fmt == ReportFormat.JSON:
        console.print_json(render_report(report, fmt))
    else:
        console.print(render_report(report, fmt), markup=False, highlight=False)

    if not report.healthy:
        raise typer.Exit(1)


@app.command()
def hook(
    action: HookAction = typer.Argument(HookAction.STATUS, help="What to do with the hook"),
    db: Path | None = typer.Option(None, help="Path to SQLite database"),
) -> None:
    """Show, install, enable, disable or remove the provisioning hook."""
    from profile_engine.pipeline import open_engine
    from profile_engine.provisioning.provisioner import HOOK_NAME

    settings = _settings(db)

    async def _hook() -> dict[str, bool]:
        async with open_engine(settings, install_hook=action == HookAction.INSTALL) as engine:
            if action == HookAction.ENABLE:
                await engine.identities.enable_hook(HOOK_NAME)
            elif action == HookAction.DISABLE:
                await engine.identities.disable_hook(HOOK_NAME)
            elif action == HookAction.REMOVE:
                await engine.identities.remove_hook(HOOK_NAME)
            return await engine.identities.hooks()

    try:
        catalogue = asyncio.run(_hook())
    except KeyError as exc:
        console.print(f"[red]Hook {HOOK_NAME} is not installed[/red]")
        raise typer.Exit(1) from exc

    enabled = catalogue.get(HOOK_NAME)
    if enabled is None:
        console.print(f"Hook {HOOK_NAME}: [yellow]not installed[/yellow]")
    elif enabled:
        console.print(f"Hook {HOOK_NAME}: [green]enabled[/green]")
    else:
        console.print(f"Hook {HOOK_NAME}: [yellow]disabled[/yellow]")
@app.command()
def show(
    profile_id: str = typer.Argument(help="Profile (identity) id to read"),
    actor: str = typer.Option(..., "--as", help="Identity id of the requester"),
    db: Path | None = typer.Option(None, help="Path to SQLite database"),
) -> None:
    """Read a profile as a given identity, subject to the access policy."""
    from profile_engine.errors import AccessDeniedError, ProfileNotFoundError
    from profile_engine.models.identity import Actor
    from profile_engine.pipeline import open_engine

    settings = _settings(db)

    async def _show() -> None:
        async with open_engine(settings, install_hook=False) as engine:
            profile = await engine.service.get_profile(Actor(id=actor), profile_id)
        console.print_json(profile.model_dump_json())

    try:
        asyncio.run(_show())
    except (AccessDeniedError, ProfileNotFoundError) as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1) from exc


@app.command()
def update(
    profile_id: str = typer.Argument(help="Profile (identity) id to update"),
    actor: str = typer.Option(..., "--as", help="Identity id of the requester"),
    name: str | None = typer.Option(None, help="New display name"),
    role: str | None = typer.Option(None, help="New role (unknown roles become the default)"),
    active: bool | None = typer.Option(None, "--active/--inactive", help="Activate or deactivate"),
    db: Path | None = typer.Option(None, help="Path to SQLite database"),
) -> None:
    """Update a profile as a given identity, subject to the access policy."""
    from pydantic import ValidationError

    from profile_engine.errors import AccessDeniedError, ProfileNotFoundError
    from profile_engine.models.identity import Actor
    from profile_engine.models.profile import ProfileUpdate
    from profile_engine.pipeline import open_engine

    settings = _settings(db)

    try:
        changes = ProfileUpdate(display_name=name, role=role, is_active=active)
    except ValidationError as exc:
        console.print(f"[red]Invalid update: {exc.errors()[0]['msg']}[/red]")
        raise typer.Exit(1) from exc

    async def _update() -> None:
        async with open_engine(settings, install_hook=False) as engine:
            profile = await engine.service.update_profile(Actor(id=actor), profile_id, changes)
        console.print_json(profile.model_dump_json())

    try:
        asyncio.run(_update())
    except (AccessDeniedError, ProfileNotFoundError) as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1) from exc


if __name__ == "__main__":
    app()
