"""Command-line interface for the Kleinanzeigen session manager."""

from __future__ import annotations

import asyncio

import typer
from rich.console import Console
from rich.table import Table

from kleinanzeigen_session import __version__
from kleinanzeigen_session.utils.config import get_settings
from kleinanzeigen_session.utils.logging import mask_email, setup_logging


app = typer.Typer(
    name="kleinanzeigen-session",
    help="Cookie and login lifecycle manager for Kleinanzeigen accounts",
    add_completion=False,
    no_args_is_help=True,
)
console = Console()


# =============================================================================
# Helper Functions
# =============================================================================


def run_async(coro):
    """Run async coroutine in sync context."""
    return asyncio.run(coro)


def get_service():
    """Build a session service from the current settings."""
    from kleinanzeigen_session.services.session_service import SessionService

    return SessionService.from_settings(get_settings())


def display_statuses(results: list) -> None:
    """Display validation results in a table."""
    table = Table(title=f"Stored Accounts: {len(results)}")
    table.add_column("Account", style="cyan")
    table.add_column("Valid", style="white")
    table.add_column("Cookies", style="yellow")
    table.add_column("Next Expiry", style="magenta")
    table.add_column("Validity", style="green")

    for result in results:
        table.add_row(
            result.account or "-",
            "[green]yes[/green]" if result.is_valid else "[red]no[/red]",
            str(result.cookie_count),
            result.next_expiry.strftime("%Y-%m-%d %H:%M") if result.next_expiry else "-",
            result.validity_duration if result.is_valid else (result.error or "-"),
        )

    console.print(table)


# =============================================================================
# Commands
# =============================================================================


@app.command()
def version() -> None:
    """Show version information."""
    console.print(f"[bold blue]kleinanzeigen-session[/bold blue] v{__version__}")


@app.command()
def login(
    email: str = typer.Option(..., "--email", "-e", help="Account e-mail"),
    password: str = typer.Option(
        None,
        "--password",
        "-p",
        help="Account password (falls back to configured credentials)",
        hide_input=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
) -> None:
    """Log in, reusing stored cookies when they still work."""

    async def _login():
        setup_logging(level="DEBUG" if verbose else "INFO")
        console.print(f"[bold]Logging in as:[/bold] {mask_email(email)}\n")

        outcome = await get_service().login(email, password)
        if outcome.logged_in:
            console.print(f"[green]✓ {outcome.message}[/green] ({outcome.path.value})")
        elif outcome.requires_email_verification:
            console.print(
                "[yellow]⚠ E-mail verification required[/yellow] "
                f"({outcome.verification_reason})"
            )
        elif outcome.succeeded:
            console.print(f"[yellow]⚠ {outcome.message}[/yellow] (not verified)")
        else:
            reason = outcome.failure_reason.value if outcome.failure_reason else "-"
            console.print(f"[red]✗ {outcome.message}[/red] [dim]{reason}[/dim]")
            raise typer.Exit(code=1)
        if outcome.cookie_set_ref:
            console.print(f"[dim]Cookies: {outcome.cookie_set_ref}[/dim]")

    run_async(_login())


@app.command()
def status(
    email: str = typer.Argument(None, help="Show one account (default: all)"),
) -> None:
    """Show offline cookie status of stored accounts."""

    async def _status():
        setup_logging(level="WARNING")
        service = get_service()
        if email:
            display_statuses([await service.account_status(email)])
        else:
            display_statuses(await service.all_statuses())
            stats = await service.stats()
            console.print(
                f"[dim]{stats['valid_files']} valid, {stats['expired_files']} "
                f"expired, next expiry in {stats['validity_duration']}[/dim]"
            )

    run_async(_status())


@app.command()
def check(
    email: str = typer.Argument(..., help="Account e-mail"),
) -> None:
    """Check in the browser whether the stored session is still logged in."""

    async def _check():
        setup_logging(level="INFO")
        result = await get_service().check_login(email)
        if result.is_valid:
            console.print(f"[green]✓ Logged in[/green] as {mask_email(email)}")
        else:
            console.print(f"[red]✗ Not logged in[/red] [dim]{result.error}[/dim]")
            raise typer.Exit(code=1)

    run_async(_check())


@app.command()
def tokens(
    email: str = typer.Argument(..., help="Account e-mail"),
) -> None:
    """Show access and refresh token expiry."""

    async def _tokens():
        setup_logging(level="WARNING")
        summary = await get_service().analyze_tokens(email)
        if summary is None:
            console.print(f"[red]No cookies stored for {email}[/red]")
            raise typer.Exit(code=1)

        table = Table(title=f"Tokens: {email}")
        table.add_column("Kind", style="cyan")
        table.add_column("Cookie", style="white")
        table.add_column("Source", style="dim")
        table.add_column("Expires (local)", style="magenta")
        table.add_column("Remaining", style="green")
        for claim in summary["tokens"]:
            table.add_row(
                claim["kind"],
                claim["name"],
                claim["source"],
                claim["local_time"],
                claim["remaining_time"],
            )
        console.print(table)

    run_async(_tokens())


@app.command()
def refresh(
    email: str = typer.Argument(None, help="Refresh one account"),
    all_accounts: bool = typer.Option(
        False, "--all", "-a", help="Refresh every stored account"
    ),
) -> None:
    """Refresh cookies of accounts that are expired or expiring soon."""

    async def _refresh():
        setup_logging(level="INFO")
        service = get_service()
        if email:
            result = await service.refresh(email)
            style = "green" if result.success else "red"
            console.print(f"[{style}]{result.message}[/{style}]")
            return

        report = await service.scheduler.sweep(force=all_accounts)
        console.print(
            f"[bold]Checked:[/bold] {report.checked}  "
            f"[bold]Selected:[/bold] {len(report.selected)}  "
            f"[bold]Refreshed:[/bold] {report.refreshed}"
        )
        for account, error in report.errors.items():
            console.print(f"[red]✗ {mask_email(account)}: {error}[/red]")

    run_async(_refresh())


@app.command()
def cleanup() -> None:
    """Delete cookie files whose cookies have all expired."""

    async def _cleanup():
        setup_logging(level="WARNING")
        counts = await get_service().cleanup()
        console.print(
            f"[green]✓ Deleted {counts['deleted']}[/green], kept {counts['kept']}"
        )

    run_async(_cleanup())


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", "--host", help="Bind address"),
    port: int = typer.Option(8000, "--port", "-p", help="Port"),
    reload: bool = typer.Option(False, "--reload", help="Auto-reload on changes"),
) -> None:
    """Run the HTTP API."""
    import uvicorn

    settings = get_settings()
    setup_logging(level=settings.log_level, json_format=settings.log_json)
    uvicorn.run(
        "kleinanzeigen_session.api.main:app",
        host=host,
        port=port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    app()
