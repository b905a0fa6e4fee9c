"""Tests for the click CLI, with the engine wired to in-memory fakes."""
from __future__ import annotations

import json

import pytest
import redis
from click.testing import CliRunner

from conftest import FakeHostingClient
from repodoctor import cli
from repodoctor.alerts.targets import TransportConfig
from repodoctor.config import Settings


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture()
def wire(monkeypatch, make_engine, make_commit, make_pull):
    """Patch the CLI engine builder; returns the engine used."""

    def _wire(client: FakeHostingClient | None = None, config: TransportConfig | None = None):
        client = client or FakeHostingClient(commits=[make_commit(30)], pulls=[make_pull(1, 10)])
        engine = make_engine(client, config=config)
        monkeypatch.setattr(cli, "_build_engine", lambda: engine)
        return engine

    return _wire


class TestEvaluateCommand:
    def test_json_output(self, runner, wire) -> None:
        wire()
        result = runner.invoke(cli.main, ["evaluate", "octo/repo", "--json"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["repo"] == "octo/repo"
        assert data["webhookConfigured"] is True
        assert [a["id"] for a in data["evaluation"]["activeAlerts"]] == ["NO_COMMITS", "PR_STUCK"]

    def test_table_output(self, runner, wire) -> None:
        wire()
        result = runner.invoke(cli.main, ["evaluate", "octo/repo"])
        assert result.exit_code == 0, result.output
        assert "NO_COMMITS" in result.stdout

    def test_missing_repo_is_usage_error(self, runner, wire, monkeypatch) -> None:
        wire()
        monkeypatch.setattr(cli, "app_settings", Settings(default_repo=""))
        result = runner.invoke(cli.main, ["evaluate"])
        assert result.exit_code == 2

    def test_default_repo_from_config(self, runner, wire, monkeypatch) -> None:
        wire()
        monkeypatch.setattr(cli, "app_settings", Settings(default_repo="octo/default"))
        result = runner.invoke(cli.main, ["evaluate", "--json"])
        assert json.loads(result.stdout)["repo"] == "octo/default"

    def test_hosting_failure_exits_1(self, runner, wire) -> None:
        wire(client=FakeHostingClient(fail_repos={"octo/repo"}))
        result = runner.invoke(cli.main, ["evaluate", "octo/repo"])
        assert result.exit_code == 1


class TestStorageOutage:
    @pytest.mark.parametrize("args", [
        ["evaluate", "octo/repo"],
        ["dispatch", "octo/repo"],
        ["settings", "show", "octo/repo"],
        ["run"],
    ])
    def test_redis_error_exits_1(self, runner, wire, settings_store, monkeypatch, args) -> None:
        def _down(*_args, **_kwargs):
            raise redis.ConnectionError("Connection refused")

        wire()
        monkeypatch.setattr(settings_store, "get", _down)
        monkeypatch.setattr(settings_store, "list_enabled", _down)
        result = runner.invoke(cli.main, args)
        assert result.exit_code == 1
        assert not isinstance(result.exception, redis.RedisError)


class TestDispatchCommand:
    def test_sends_then_cooldown(self, runner, wire, transport) -> None:
        wire()
        first = runner.invoke(cli.main, ["dispatch", "octo/repo", "--json"])
        second = runner.invoke(cli.main, ["dispatch", "octo/repo", "--json"])
        assert json.loads(first.stdout)["sent"] is True
        data = json.loads(second.stdout)
        assert data["sent"] is False
        assert data["suppressedRuleIds"] == ["NO_COMMITS", "PR_STUCK"]
        assert len(transport.sent) == 1

    def test_force(self, runner, wire, transport) -> None:
        wire()
        runner.invoke(cli.main, ["dispatch", "octo/repo"])
        result = runner.invoke(cli.main, ["dispatch", "octo/repo", "--force", "--json"])
        assert json.loads(result.stdout)["sent"] is True
        assert len(transport.sent) == 2

    def test_unconfigured_channel_exits_1(self, runner, wire) -> None:
        wire(config=TransportConfig(webhook_url="https://hooks.example.com"))
        result = runner.invoke(cli.main, ["dispatch", "octo/repo", "--channel", "discord"])
        assert result.exit_code == 1

    def test_invalid_channel_rejected(self, runner, wire) -> None:
        wire()
        result = runner.invoke(cli.main, ["dispatch", "octo/repo", "--channel", "email"])
        assert result.exit_code == 2


class TestRunCommand:
    def test_batch_json(self, runner, wire) -> None:
        wire()
        result = runner.invoke(cli.main, ["run", "--repo", "octo/repo", "--json"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["processed"] == 1
        assert data["sent"] == 1

    def test_failures_exit_1(self, runner, wire) -> None:
        wire()
        result = runner.invoke(cli.main, ["run", "--repo", "octo/repo", "--repo", "bogus", "--json"])
        assert result.exit_code == 1
        data = json.loads(result.stdout)
        assert data["failed"] == 1
        assert data["sent"] == 1

    def test_no_enabled_repositories(self, runner, wire) -> None:
        wire()
        result = runner.invoke(cli.main, ["run"])
        assert result.exit_code == 0
        assert "0 processed" in result.stdout


class TestSettingsCommands:
    def test_set_then_show(self, runner, wire) -> None:
        wire()
        saved = runner.invoke(
            cli.main,
            ["settings", "set", "octo/repo", "--cooldown-hours", "500", "--pr-stuck-days", "2.6", "--disabled", "--json"],
        )
        assert saved.exit_code == 0, saved.output
        data = json.loads(saved.stdout)
        assert data["enabled"] is False
        assert data["cooldownHours"] == 168
        assert data["rules"]["prStuckDays"] == 3

        shown = json.loads(runner.invoke(cli.main, ["settings", "show", "octo/repo", "--json"]).stdout)
        assert shown == data


class TestStatusCommand:
    def test_reports_auto_choice(self, runner, monkeypatch) -> None:
        monkeypatch.setattr(
            cli, "app_settings",
            Settings(alert_webhook_url="", alert_slack_webhook_url="", alert_discord_webhook_url="https://d"),
        )
        result = runner.invoke(cli.main, ["status"])
        assert result.exit_code == 0
        assert "auto → discord" in result.stdout
        assert "discord  configured" in result.stdout
        assert "webhook  not set" in result.stdout

    def test_nothing_configured(self, runner, monkeypatch) -> None:
        monkeypatch.setattr(
            cli, "app_settings",
            Settings(alert_webhook_url="", alert_slack_webhook_url="", alert_discord_webhook_url=""),
        )
        result = runner.invoke(cli.main, ["status"])
        assert "No webhook configured" in result.stdout
