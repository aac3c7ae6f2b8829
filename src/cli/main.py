"""chatbridge CLI: server and store administration.

Usage:
    chatbridge serve                     Start the API server
    chatbridge db init                   Create database tables
    chatbridge guest purge-expired       Delete expired guest sessions
    chatbridge history list --user EMAIL List a user's conversations
    chatbridge users grant-admin EMAIL   Grant the admin role
"""

import logging
from typing import Optional

import typer
from rich.console import Console

from src.cli.output import format_conversation_table
from src.config import load_config

_log = logging.getLogger(__name__)

app = typer.Typer(
    name="chatbridge",
    help="Conversational assistant backend admin CLI",
    no_args_is_help=True,
)
db_app = typer.Typer(help="Database management")
guest_app = typer.Typer(help="Guest session maintenance")
history_app = typer.Typer(help="Inspect stored conversations")
users_app = typer.Typer(help="Manage user roles")

app.add_typer(db_app, name="db")
app.add_typer(guest_app, name="guest")
app.add_typer(history_app, name="history")
app.add_typer(users_app, name="users")

console = Console()

# --- Global state ---
_config_path: str | None = None


@app.callback()
def main(
    config: Optional[str] = typer.Option(
        None, "--config", help="Path to chatbridge.yaml config file"
    ),
):
    """chatbridge CLI: server and store administration."""
    global _config_path
    _config_path = config


# --- Version ---


@app.command()
def version():
    """Show chatbridge version."""
    from importlib.metadata import PackageNotFoundError
    from importlib.metadata import version as pkg_version

    try:
        v = pkg_version("chatbridge")
    except PackageNotFoundError:
        v = "unknown"
    console.print(f"[bold]chatbridge[/bold] v{v}")


# --- Server ---


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address"),
    port: Optional[int] = typer.Option(None, "--port", help="Bind port"),
):
    """Start the API server (single worker)."""
    import os

    import uvicorn

    cfg = load_config(config_path=_config_path)
    final_host = host or cfg.server.host
    final_port = port or cfg.server.port

    # Propagate config path so the app's get_config() loads the same file.
    if _config_path:
        os.environ["CHATBRIDGE_CONFIG_PATH"] = str(_config_path)

    console.print(f"[bold]Starting chatbridge on {final_host}:{final_port}[/bold]")
    uvicorn.run(
        "src.api.main:app",
        host=final_host,
        port=final_port,
        workers=1,
        log_level=cfg.server.log_level,
        lifespan="on",
    )


# --- Database ---


@db_app.command("init")
def db_init():
    """Create all tables (safe to re-run)."""
    from src.db.connection import DATABASE_URL, init_db

    init_db()
    console.print(f"[green]Database ready:[/green] {DATABASE_URL}")


# --- Guest sessions ---


@guest_app.command("purge-expired")
def guest_purge_expired():
    """Delete guest session rows past their expiry."""
    from src.db.connection import get_db_context
    from src.services.guest_session_service import GuestSessionService

    with get_db_context() as db:
        count = GuestSessionService(db).purge_expired()
    console.print(f"Purged [bold]{count}[/bold] expired guest session(s).")


# --- History ---


@history_app.command("list")
def history_list(
    user: Optional[str] = typer.Option(None, "--user", help="User email"),
    guest: Optional[str] = typer.Option(None, "--guest", help="Guest session id"),
    as_json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """List live conversations for a user or guest session."""
    from src.db.connection import get_db_context
    from src.services.conversation_service import ConversationService
    from src.services.identity import Owner, OwnerKind, normalize_email

    if bool(user) == bool(guest):
        console.print("[red]Error:[/red] pass exactly one of --user or --guest")
        raise typer.Exit(2)

    owner = (
        Owner(OwnerKind.user, normalize_email(user))
        if user
        else Owner(OwnerKind.guest, guest)
    )
    with get_db_context() as db:
        conversations = ConversationService(db).list_for_owner(owner)
    output = format_conversation_table(conversations, as_json=as_json)
    console.print(output, markup=False, highlight=False, soft_wrap=True)


# --- Users ---


def _set_role(email: str, role_name: str) -> None:
    from src.db.connection import get_db_context
    from src.db.models import UserRole
    from src.services.identity import set_role

    try:
        with get_db_context() as db:
            account = set_role(db, email, UserRole(role_name))
            stored_email = account.email
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    console.print(f"[green]{stored_email}[/green] now has role [bold]{role_name}[/bold]")


@users_app.command("grant-admin")
def users_grant_admin(email: str = typer.Argument(..., help="User email")):
    """Grant the admin role to a user."""
    _set_role(email, "admin")


@users_app.command("revoke-admin")
def users_revoke_admin(email: str = typer.Argument(..., help="User email")):
    """Return a user to the plain user role."""
    _set_role(email, "user")


if __name__ == "__main__":
    app()
