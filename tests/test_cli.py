"""Tests for the crmctl command line."""

from typer.testing import CliRunner

from crm_access.cli import app
from crm_access.models.user import User

runner = CliRunner()


def test_seed_admin_uses_options(db, session_factory, monkeypatch):
    monkeypatch.setattr("crm_access.db.session.SessionLocal", session_factory)
    result = runner.invoke(
        app, ["db", "seed-admin", "--email", "boss@example.com", "--password", "boss-pass"]
    )
    assert result.exit_code == 0, result.output
    assert "boss@example.com" in result.output

    admin = db.query(User).filter(User.email == "boss@example.com").one()
    assert admin.role == "admin"
    assert admin.name == "System Administrator"
