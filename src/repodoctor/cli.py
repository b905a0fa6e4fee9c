"""repodoctor CLI — entry point.

Commands:
    repodoctor evaluate [REPO]              Show alert states and metrics
    repodoctor dispatch [REPO]              Send active alerts (respects cooldown)
    repodoctor run [--repo R ...]           Scheduled run over enabled repositories
    repodoctor settings show [REPO]         Show stored alert settings
    repodoctor settings set [REPO] ...      Update alert settings
    repodoctor status                       Show which delivery channels are configured
"""
from __future__ import annotations

import json
import logging
import sys
from typing import Any

import click
import redis
from rich.console import Console
from rich.logging import RichHandler

from .alerts.collector import ActivityCollector
from .alerts.engine import AlertEngine
from .alerts.targets import AUTO_PRIORITY, CHANNELS, TransportConfig, resolve_target
from .alerts.webhook import WebhookTransport
from .config import settings as app_settings
from .errors import RepoDoctorError
from .github.client import GitHubClient
from .store.redis_store import RedisDeliveryHistory, RedisSettingsStore
from .visualization.tables import (
    print_batch_result,
    print_dispatch_result,
    print_evaluation,
    print_settings,
)

console = Console()
err_console = Console(stderr=True)


# ── Helpers ─────────────────────────────────────────────────────────────────


def _build_engine() -> AlertEngine:
    """Wire the engine from process configuration."""
    client = GitHubClient(
        token=app_settings.github_token,
        base_url=app_settings.github_api_url,
        timeout=app_settings.http_timeout,
    )
    return AlertEngine(
        collector=ActivityCollector(client, stale_label=app_settings.stale_label),
        settings_store=RedisSettingsStore(url=app_settings.redis_url),
        history=RedisDeliveryHistory(url=app_settings.redis_url),
        transport=WebhookTransport(timeout=app_settings.transport_timeout),
        transport_config=TransportConfig.from_settings(app_settings),
    )


def _repo_or_default(repo: str | None) -> str:
    value = (repo or app_settings.default_repo or "").strip()
    if not value:
        raise click.UsageError("No repository given. Pass owner/name or set REPODOCTOR_DEFAULT_REPO.")
    return value


def _fail(exc: Exception) -> None:
    err_console.print(f"[red]Error:[/red] {exc}")
    sys.exit(1)


def _echo_json(data: dict[str, Any]) -> None:
    click.echo(json.dumps(data, default=str, ensure_ascii=False, indent=2))


# ── CLI root ─────────────────────────────────────────────────────────────────


@click.group()
@click.version_option(version="1.0.0", prog_name="repodoctor")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def main(verbose: bool) -> None:
    """repodoctor — repository health alerts for GitHub."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=err_console, show_path=False)],
        )


# ── evaluate ─────────────────────────────────────────────────────────────────


@main.command()
@click.argument("repo", required=False)
@click.option("--json", "as_json", is_flag=True, help="Print the evaluation as JSON.")
def evaluate(repo: str | None, as_json: bool) -> None:
    """Evaluate alert rules for a repository without sending anything.

    \b
    Examples:
      repodoctor evaluate octo/hello-world
      repodoctor evaluate octo/hello-world --json
    """
    repo = _repo_or_default(repo)
    engine = _build_engine()
    try:
        current = engine.get_settings(repo)
        evaluation = engine.evaluate(repo, current)
    except (RepoDoctorError, redis.RedisError) as exc:
        _fail(exc)
        return

    if as_json:
        _echo_json({
            "repo": evaluation.repo,
            "webhookConfigured": engine.webhook_configured,
            "settings": current.to_dict(),
            "evaluation": evaluation.to_dict(),
        })
        return
    print_evaluation(evaluation)


# ── dispatch ─────────────────────────────────────────────────────────────────


@main.command()
@click.argument("repo", required=False)
@click.option(
    "--channel", "-c", default="auto",
    type=click.Choice(list(CHANNELS), case_sensitive=False),
    help="Delivery channel.",
    show_default=True,
)
@click.option("--force", is_flag=True, help="Ignore cooldown and the enabled flag.")
@click.option("--json", "as_json", is_flag=True, help="Print the dispatch result as JSON.")
def dispatch(repo: str | None, channel: str, force: bool, as_json: bool) -> None:
    """Evaluate a repository and notify the configured channel.

    \b
    Examples:
      repodoctor dispatch octo/hello-world
      repodoctor dispatch octo/hello-world --channel discord --force
    """
    repo = _repo_or_default(repo)
    engine = _build_engine()
    try:
        result = engine.dispatch(repo, engine.get_settings(repo), channel=channel.lower(), force=force)
    except (RepoDoctorError, redis.RedisError) as exc:
        _fail(exc)
        return

    if as_json:
        _echo_json({**result.to_dict(), "repo": repo, "webhookConfigured": engine.webhook_configured})
        return
    print_dispatch_result(repo, result)


# ── run ──────────────────────────────────────────────────────────────────────


@main.command()
@click.option("--repo", "-r", "repos", multiple=True, help="Repository to process (repeatable).")
@click.option("--limit", default=None, type=int, help="Max enabled repositories to process.")
@click.option("--json", "as_json", is_flag=True, help="Print the batch result as JSON.")
def run(repos: tuple[str, ...], limit: int | None, as_json: bool) -> None:
    """Scheduled run: dispatch alerts for every enabled repository.

    Exits with status 1 when any repository failed.

    \b
    Examples:
      repodoctor run
      repodoctor run --repo octo/a --repo octo/b
    """
    engine = _build_engine()
    try:
        result = engine.run_batch(
            list(repos) if repos else None,
            limit=limit if limit is not None else app_settings.batch_limit,
        )
    except (RepoDoctorError, redis.RedisError) as exc:
        _fail(exc)
        return

    if as_json:
        _echo_json({"success": True, **result.to_dict()})
    else:
        print_batch_result(result)
    if result.failed:
        sys.exit(1)


# ── settings ─────────────────────────────────────────────────────────────────


@main.group("settings")
def settings_group() -> None:
    """Show or change per-repository alert settings."""


@settings_group.command("show")
@click.argument("repo", required=False)
@click.option("--json", "as_json", is_flag=True, help="Print settings as JSON.")
def settings_show(repo: str | None, as_json: bool) -> None:
    """Show the effective alert settings for a repository."""
    repo = _repo_or_default(repo)
    try:
        current = _build_engine().get_settings(repo)
    except (RepoDoctorError, redis.RedisError) as exc:
        _fail(exc)
        return
    if as_json:
        _echo_json(current.to_dict())
        return
    print_settings(repo, current)


@settings_group.command("set")
@click.argument("repo", required=False)
@click.option("--enabled/--disabled", default=None, help="Turn alerts on or off.")
@click.option("--cooldown-hours", type=float, default=None, help="Hours before a rule may notify again (1-168).")
@click.option("--no-commit-days", type=float, default=None, help="Days without commits before alerting (1-180).")
@click.option("--pr-stuck-days", type=float, default=None, help="Idle days before a PR counts as stuck (1-90).")
@click.option("--stale-spike-count", type=float, default=None, help="Stale updates that count as a spike (1-200).")
@click.option("--stale-window-days", type=float, default=None, help="Length of the stale window in days (1-30).")
@click.option("--json", "as_json", is_flag=True, help="Print the saved settings as JSON.")
def settings_set(
    repo: str | None,
    enabled: bool | None,
    cooldown_hours: float | None,
    no_commit_days: float | None,
    pr_stuck_days: float | None,
    stale_spike_count: float | None,
    stale_window_days: float | None,
    as_json: bool,
) -> None:
    """Update alert settings. Out-of-range values are clamped.

    \b
    Examples:
      repodoctor settings set octo/hello-world --cooldown-hours 12
      repodoctor settings set octo/hello-world --disabled
    """
    repo = _repo_or_default(repo)
    patch: dict[str, Any] = {}
    if enabled is not None:
        patch["enabled"] = enabled
    if cooldown_hours is not None:
        patch["cooldownHours"] = cooldown_hours
    rules = {
        key: value
        for key, value in (
            ("noCommitDays", no_commit_days),
            ("prStuckDays", pr_stuck_days),
            ("staleSpikeCount", stale_spike_count),
            ("staleWindowDays", stale_window_days),
        )
        if value is not None
    }
    if rules:
        patch["rules"] = rules

    try:
        saved = _build_engine().save_settings(repo, patch)
    except (RepoDoctorError, redis.RedisError) as exc:
        _fail(exc)
        return
    if as_json:
        _echo_json(saved.to_dict())
        return
    print_settings(repo, saved)


# ── status ───────────────────────────────────────────────────────────────────


@main.command()
def status() -> None:
    """Show which delivery channels are configured and what ``auto`` picks."""
    config = TransportConfig.from_settings(app_settings)
    auto = resolve_target("auto", config)
    configured = config.configured()
    for kind in AUTO_PRIORITY:
        mark = "[green]configured[/green]" if kind in configured else "[dim]not set[/dim]"
        console.print(f"{kind:8} {mark}")
    if auto is None:
        console.print("[yellow]No webhook configured; dispatch will fail.[/yellow]")
    else:
        console.print(f"auto → [bold]{auto.kind}[/bold]")


if __name__ == "__main__":
    main()
