"""CRM access CLI tool (crmctl)."""

import typer

app = typer.Typer(name="crmctl", help="CRM access boundary CLI")
db_app = typer.Typer(help="Database management commands")
app.add_typer(db_app, name="db")


@db_app.command("init")
def db_init():
    """Create all tables for accounts, branches, overrides, reset tokens and audit."""
    from crm_access.db.session import init_db

    init_db()
    typer.echo("Tables created (or already present)")


@db_app.command("seed-admin")
def db_seed_admin(
    email: str = typer.Option(None, help="Admin email (defaults to ADMIN_EMAIL)"),
    password: str = typer.Option(None, help="Admin password (defaults to ADMIN_PASSWORD)"),
    name: str = typer.Option(None, help="Display name (defaults to ADMIN_NAME)"),
):
    """Create the bootstrap admin, or reset its password if it already exists."""
    from crm_access.core.config import settings
    from crm_access.db.session import SessionLocal
    from crm_access.services.auth_service import auth_service

    db = SessionLocal()
    try:
        user = auth_service.ensure_admin(
            db,
            email=email or settings.ADMIN_EMAIL,
            password=password or settings.ADMIN_PASSWORD,
            name=name or settings.ADMIN_NAME,
        )
        typer.echo(f"Admin ready: {user.email} (id={user.id})")
    finally:
        db.close()


@app.command("serve")
def serve(
    host: str = typer.Option("0.0.0.0", help="Bind host"),
    port: int = typer.Option(8000, help="Bind port"),
    reload: bool = typer.Option(False, help="Auto-reload on code changes"),
):
    """Start the API server."""
    import uvicorn

    uvicorn.run("crm_access.main:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    app()
