import asyncio

import typer
from rich.console import Console
from rich.table import Table

from friendpush.config import settings
from friendpush.core.exceptions import FanoutError, SigningError
from friendpush.services.apns.config import ApnsConfig
from friendpush.services.apns.signer import sign_provider_token

console = Console()
cli_app = typer.Typer(name="friendpush-admin", help="friendpush administrative CLI")


def _run_async(coro):
    """Run async code from sync CLI context."""
    return asyncio.run(coro)


@cli_app.command("check-config")
def check_config():
    """Show which APNs and storage settings are present (values are never printed)."""
    config = ApnsConfig.from_settings(settings)
    storage_ok = bool(settings.fanout_db_url)

    table = Table(title="friendpush configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Status")

    for name, value in (
        ("APNS_KEY_ID", config.key_id),
        ("APNS_TEAM_ID", config.team_id),
        ("APNS_BUNDLE_ID", config.bundle_id),
        ("APNS_KEY_CONTENT", config.key_content),
        ("FANOUT_DB_URL", settings.fanout_db_url),
    ):
        present = bool(value and value.strip())
        table.add_row(name, "[green]set[/green]" if present else "[red]missing[/red]")
    table.add_row("APNs environment", config.environment)
    table.add_row("Token cache", "enabled" if settings.apns_token_cache_enabled else "disabled")
    table.add_row("Max concurrency", str(settings.fanout_max_concurrency or "unbounded"))

    console.print(table)

    if not (config.is_complete and storage_ok):
        console.print("[yellow]Configuration incomplete; pushes will be skipped.[/yellow]")
        raise typer.Exit(code=1)


@cli_app.command("sign-token")
def sign_token():
    """Sign an APNs provider token with the configured key (for manual curl tests)."""
    try:
        credential = sign_provider_token(
            settings.apns_key_id,
            settings.apns_team_id,
            settings.apns_key_content,
            ttl_seconds=settings.apns_token_ttl_seconds,
        )
    except SigningError as e:
        console.print(f"[bold red]Signing failed:[/bold red] {e}")
        raise typer.Exit(code=1)

    console.print(f"\n  Key ID:  {credential.key_id}")
    console.print(f"  Issuer:  {credential.issuer}")
    console.print(f"  Expires: {credential.expires_at.isoformat()}")
    console.print(f"\n  [bold yellow]{credential.token}[/bold yellow]\n")


@cli_app.command("notify-visit")
def notify_visit(
    author_id: str = typer.Option(..., "--author-id", help="User who posted the visit"),
    visit_id: str = typer.Option(..., "--visit-id", help="The new visit"),
    visibility: str = typer.Option("everyone", "--visibility", help="private, friends or everyone"),
):
    """Run the friend fan-out once against the configured database and gateway."""
    async def _notify():
        import friendpush.core.database as db_module
        from friendpush.schemas.visits import ActivityEvent
        from friendpush.services.factory import build_apns_client, build_fanout_service, build_http_client

        gateway = build_apns_client(settings, build_http_client(settings))
        service = build_fanout_service(settings, gateway, db_module.async_session)
        try:
            event = ActivityEvent(id=visit_id, actor_id=author_id, visibility=visibility)
            return await service.notify_friends(event)
        finally:
            await gateway.close()
            await db_module.close_db()

    try:
        result = _run_async(_notify())
    except FanoutError as e:
        console.print(f"[bold red]Fan-out failed:[/bold red] {e.message}")
        raise typer.Exit(code=1)

    table = Table(title=f"Visit {visit_id}")
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    for field, value in result.model_dump(exclude_none=True).items():
        table.add_row(field, str(value))
    console.print(table)


def main():
    cli_app()


if __name__ == "__main__":
    main()
