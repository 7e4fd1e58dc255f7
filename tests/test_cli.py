from __future__ import annotations

import json
from datetime import timedelta

from typer.testing import CliRunner

from rsvpdesk import cli
from rsvpdesk.backends.sql import SqlAuthBackend
from rsvpdesk.config import settings

from conftest import ORGANIZER_EMAIL, ORGANIZER_PASSWORD

runner = CliRunner()


def test_no_arguments_prints_help():
    result = runner.invoke(cli.app, [])

    assert result.exit_code == 0
    assert "upgrade-db" in result.output


def test_show_config_masks_the_key():
    result = runner.invoke(cli.app, ["show-config", "--json"])

    assert result.exit_code == 0
    shown = json.loads(result.output)
    assert shown["backend"] == "sql"
    assert shown["repository_key"] != settings.repository_key


def test_create_organizer_command(monkeypatch):
    monkeypatch.setattr(cli, "upgrade_database", lambda make_backup: [])

    result = runner.invoke(
        cli.app, ["create-organizer", ORGANIZER_EMAIL, "--password", ORGANIZER_PASSWORD]
    )

    assert result.exit_code == 0
    assert f"Organizer ready: {ORGANIZER_EMAIL}" in result.output


def test_create_organizer_rejects_short_passwords(monkeypatch):
    monkeypatch.setattr(cli, "upgrade_database", lambda make_backup: [])

    result = runner.invoke(
        cli.app, ["create-organizer", ORGANIZER_EMAIL, "--password", "short"]
    )

    assert result.exit_code == 1


def test_purge_sessions_command(organizer):
    expired = SqlAuthBackend(settings.repository_key, ttl=timedelta(seconds=-1))
    expired.password_grant(ORGANIZER_EMAIL, ORGANIZER_PASSWORD)

    result = runner.invoke(cli.app, ["purge-sessions"])

    assert result.exit_code == 0
    assert "Removed 1 expired session(s)." in result.output


def test_seed_data_command(monkeypatch):
    monkeypatch.setattr(cli, "upgrade_database", lambda make_backup: [])

    result = runner.invoke(cli.app, ["seed-data", "--events", "2", "--seed", "3"])

    assert result.exit_code == 0
    assert "Seed complete: 2 events" in result.output
