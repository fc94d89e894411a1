import asyncio
import json
from pathlib import Path
import subprocess
from typing import Annotated

from pydantic import validate_email
from rich import print
from rich.table import Table
from rich.console import Console
import typer

from app.core.config import settings

app = typer.Typer()
console = Console()


def email_validator(email: str) -> str:
    _, email = validate_email(email)
    return email


async def initdb_task() -> None:
    """Create every table registered on the declarative base."""
    from app.core.db import dispose_db, init_db

    print("[yellow]Creating database tables[/yellow]")
    try:
        await init_db()
        print("[green]Database tables created successfully[/green]")
    finally:
        await dispose_db()


async def purge_task(kind: str, days: int | None = None) -> dict[str, int]:
    from app.core.db import dispose_db
    from app.infrastructure.scheduler.jobs import (
        purge_expired_tokens as purge_expired,
        purge_old_tokens as purge_old,
    )

    try:
        if kind == "expired":
            return await purge_expired()
        return await purge_old(days_threshold=days)
    finally:
        await dispose_db()


async def token_stats_task() -> dict[str, int]:
    from app.core.db import dispose_db
    from app.infrastructure.scheduler.jobs import log_token_stats

    try:
        return await log_token_stats()
    finally:
        await dispose_db()


async def send_test_email_task(to: str, template: str) -> None:
    from app.core.services import ServiceContainer

    services = ServiceContainer.build(settings)
    subject = f"{settings.APP_NAME} test email"
    result = await services.email_manager.send_email(
        to=to,
        subject=subject,
        text=f"This is a test email from {settings.APP_NAME}.",
        template=template,
        data={
            "title": subject,
            "message": "If you can read this, email delivery is configured correctly.",
            "action_url": settings.APP_WEB_URL,
            "action_label": f"Open {settings.APP_NAME}",
        },
    )
    if result.simulated:
        print("[cyan]SMTP is not configured; delivery was simulated[/cyan]")
    else:
        print(
            f"[green]Email sent to {to}[/green] "
            f"(attempts: {result.attempts}, message id: {result.message_id})"
        )


@app.command()
def initdb():
    """
    Creates all database tables for the registered models.
    """
    asyncio.run(initdb_task())


@app.command()
def purge_expired_tokens():
    """
    Permanently deletes every expired refresh token (same as the daily job).
    """
    result = asyncio.run(purge_task("expired"))
    if result["errors"]:
        print("[red]Purge failed; see logs/scheduler.log[/red]")
        raise typer.Exit(1)
    print(f"[green]Deleted {result['deleted']} expired token(s)[/green]")


@app.command()
def purge_old_tokens(
    days: Annotated[
        int | None,
        typer.Option(help="Age limit in days (defaults to TOKEN_RETENTION_DAYS)"),
    ] = None,
):
    """
    Permanently deletes refresh tokens older than the retention period (same as the weekly job).
    """
    result = asyncio.run(purge_task("old", days))
    if result["errors"]:
        print("[red]Purge failed; see logs/scheduler.log[/red]")
        raise typer.Exit(1)
    print(f"[green]Deleted {result['deleted']} old token(s)[/green]")


@app.command()
def token_stats():
    """
    Prints refresh token counts by state.
    """
    stats = asyncio.run(token_stats_task())
    table = Table(title="Refresh tokens")
    table.add_column("State")
    table.add_column("Count", justify="right")
    for state, count in stats.items():
        table.add_row(state, str(count))
    console.print(table)


@app.command()
def send_test_email(
    to: Annotated[str, typer.Argument(callback=email_validator)],
    template: Annotated[str, typer.Option(help="Content template name")] = "notification",
):
    """
    Sends a test email to check the SMTP configuration.
    """
    try:
        asyncio.run(send_test_email_task(to, template))
    except Exception as e:
        print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)


@app.command()
def runserver():
    try:
        server_command = (
            "uvicorn app.main:app --host 127.0.0.1 --port 8000 --reload"
            if settings.DEBUG
            else "uvicorn app.main:app --host 0.0.0.0 --port 8000"
        )
        print(f"Running FastAPI server: {server_command}")
        subprocess.run(server_command, shell=True, check=True)
    except subprocess.CalledProcessError as e:
        print(f"[red]Error:[/red] {e}")
        raise


@app.command()
def runscheduler():
    """
    Run the cleanup scheduler as a standalone process.
    """
    from app.infrastructure.scheduler.main import main as scheduler_main

    asyncio.run(scheduler_main())


@app.command()
def generateopenapi():
    """
    Generates the OpenAPI schema for the FastAPI application and saves it to a JSON file.
    """
    from app.main import app as fastapi_app

    openapi_path = Path("openapi.json")
    with openapi_path.open("w", encoding="utf-8") as f:
        json.dump(fastapi_app.openapi(), f, ensure_ascii=False, indent=2)
    print(f"[green]OpenAPI schema generated at {openapi_path.name}[/green]")


@app.callback()
def main(ctx: typer.Context):
    print(f"Executing the command: {ctx.invoked_subcommand}")


if __name__ == "__main__":
    app()
