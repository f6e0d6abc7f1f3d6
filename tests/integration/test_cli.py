import asyncio
from unittest.mock import patch

from click.testing import CliRunner

from rotauth.cli import cli
from rotauth.core.config import Settings
from rotauth.infrastructure.persistence.database import DatabaseManager


def test_serve_invalid_workers_sqlite():
    """Verify CLI fails when --workers > 1 is used with SQLite."""
    runner = CliRunner()
    settings = Settings(database_url="sqlite+aiosqlite:///./rt_data/rotauth.db")

    with patch("rotauth.cli.get_settings", return_value=settings), \
         patch("uvicorn.run") as mock_run:
        result = runner.invoke(cli, ["serve", "--workers", "2"])

    assert result.exit_code == 1
    assert "SQLite does not support multiple worker processes" in result.output
    mock_run.assert_not_called()


def test_serve_starts_uvicorn():
    runner = CliRunner()
    settings = Settings(database_url="sqlite+aiosqlite:///./rt_data/rotauth.db")

    with patch("rotauth.cli.get_settings", return_value=settings), \
         patch("rotauth.cli.configure_logging"), \
         patch("uvicorn.run") as mock_run:
        result = runner.invoke(cli, ["serve", "--port", "9100"])

    assert result.exit_code == 0
    mock_run.assert_called_once()
    assert mock_run.call_args.args[0] == "rotauth.infrastructure.api.app:app"
    assert mock_run.call_args.kwargs["port"] == 9100
    assert mock_run.call_args.kwargs["workers"] == 1


def test_info_shows_rotation_settings():
    runner = CliRunner()
    settings = Settings(scope_policy="downgrade", reuse_grace_seconds=3)

    with patch("rotauth.cli.get_settings", return_value=settings):
        result = runner.invoke(cli, ["info"])

    assert result.exit_code == 0
    assert "Scope Policy: downgrade" in result.output
    assert "Reuse Grace:  3 seconds" in result.output


def test_init_db_and_purge(tmp_path):
    runner = CliRunner()
    database_url = f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}"
    settings = Settings(database_url=database_url, audit_sinks="memory")
    db = DatabaseManager(database_url=database_url)

    with patch("rotauth.cli.get_settings", return_value=settings), \
         patch("rotauth.cli.configure_logging"), \
         patch("rotauth.infrastructure.persistence.database.get_db_manager", return_value=db):
        init = runner.invoke(cli, ["init-db", "--force"])
        purge = runner.invoke(cli, ["purge", "--days", "0"])

    assert init.exit_code == 0
    assert "Database initialized successfully." in init.output
    assert purge.exit_code == 0
    assert "Purged 0 token families older than 0 days." in purge.output
    assert (tmp_path / "cli.db").exists()


def test_revoke_family_unknown(tmp_path):
    runner = CliRunner()
    database_url = f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}"
    settings = Settings(database_url=database_url, audit_sinks="memory")
    db = DatabaseManager(database_url=database_url)

    async def prepare() -> None:
        await db.create_tables()
        await db.disconnect()

    asyncio.run(prepare())

    with patch("rotauth.cli.get_settings", return_value=settings), \
         patch("rotauth.cli.configure_logging"), \
         patch("rotauth.infrastructure.persistence.database.get_db_manager", return_value=db):
        result = runner.invoke(cli, ["revoke-family", "fam_missing"])

    assert result.exit_code == 1
    assert "not found or already revoked" in result.output
