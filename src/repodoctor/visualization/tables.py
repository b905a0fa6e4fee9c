"""Rich-powered tables for evaluations, dispatch results and batch runs."""
from __future__ import annotations

from rich import box
from rich.console import Console
from rich.table import Table

from ..alerts.models import BatchResult, DispatchResult, Evaluation, Severity
from ..alerts.settings import AlertSettings

_console = Console()

_SEVERITY_STYLE = {
    Severity.HIGH: "bold red",
    Severity.MEDIUM: "yellow",
    Severity.LOW: "green",
}


def _na(value: object) -> str:
    return "N/A" if value is None else str(value)


def print_evaluation(evaluation: Evaluation) -> None:
    """Render alert states, metrics and the stuck-PR sample list."""
    alerts = Table(title=f"Alerts — {evaluation.repo}", box=box.ROUNDED)
    alerts.add_column("Rule", style="bold")
    alerts.add_column("Severity")
    alerts.add_column("Active", justify="center")
    alerts.add_column("Value", justify="right", style="cyan")
    alerts.add_column("Threshold", justify="right")
    alerts.add_column("Message", overflow="fold", max_width=70)

    for alert in evaluation.alerts:
        style = _SEVERITY_STYLE[alert.severity]
        alerts.add_row(
            alert.id.value,
            f"[{style}]{alert.severity.value}[/{style}]",
            "[red]●[/red]" if alert.active else "[dim]○[/dim]",
            _na(alert.value),
            str(alert.threshold),
            alert.message,
        )
    _console.print(alerts)

    m = evaluation.metrics
    metrics = Table(title="Metrics", box=box.MINIMAL_DOUBLE_HEAD)
    metrics.add_column("Metric", style="bold")
    metrics.add_column("Value", justify="right", style="cyan")
    for label, value in [
        ("Last commit at", m.last_commit_at),
        ("Days since last commit", m.days_since_last_commit),
        ("Open PRs", m.total_open_prs),
        ("Stuck PRs", m.stuck_prs),
        ("Stale (current window)", m.stale_current_window),
        ("Stale (previous window)", m.stale_previous_window),
        ("Open stale now", m.stale_open_now),
    ]:
        metrics.add_row(label, _na(value))
    _console.print(metrics)

    if evaluation.stuck_pull_requests:
        stuck = Table(title="Most idle pull requests", box=box.SIMPLE_HEAVY)
        stuck.add_column("#", style="dim")
        stuck.add_column("Title", overflow="fold", max_width=60)
        stuck.add_column("Idle days", justify="right", style="cyan")
        for pr in evaluation.stuck_pull_requests:
            stuck.add_row(str(pr.number), pr.title, str(pr.days_since_update))
        _console.print(stuck)

    _console.print(f"[dim]Generated at {evaluation.generated_at}[/dim]")


def print_settings(repo: str, settings: AlertSettings) -> None:
    table = Table(title=f"Alert settings — {repo}", box=box.SIMPLE_HEAVY)
    table.add_column("Setting", style="bold")
    table.add_column("Value", justify="right", style="cyan")
    table.add_row("enabled", str(settings.enabled))
    table.add_row("cooldownHours", str(settings.cooldown_hours))
    for key, value in settings.rules.to_dict().items():
        table.add_row(key, str(value))
    _console.print(table)


def print_dispatch_result(repo: str, result: DispatchResult) -> None:
    if result.sent:
        sent = ", ".join(r.value for r in result.sent_rule_ids)
        _console.print(f"[green]Sent[/green] {sent} for [bold]{repo}[/bold] via {result.channel_used}")
    else:
        _console.print(f"[yellow]Not sent[/yellow] for [bold]{repo}[/bold]: {result.reason}")
    if result.suppressed_rule_ids:
        suppressed = ", ".join(r.value for r in result.suppressed_rule_ids)
        _console.print(f"[dim]In cooldown: {suppressed}[/dim]")


def print_batch_result(result: BatchResult) -> None:
    table = Table(title="Scheduled alert run", box=box.ROUNDED)
    table.add_column("Repository", style="bold")
    table.add_column("OK", justify="center")
    table.add_column("Sent", justify="center")
    table.add_column("Details", overflow="fold", max_width=70)

    for outcome in result.outcomes:
        if not outcome.ok:
            details = f"[red]{outcome.error}[/red]"
        elif outcome.sent:
            details = ", ".join(r.value for r in outcome.sent_rule_ids)
        else:
            details = outcome.reason
        table.add_row(
            outcome.repo,
            "[green]✓[/green]" if outcome.ok else "[red]✗[/red]",
            "yes" if outcome.sent else "no",
            details,
        )
    _console.print(table)
    _console.print(
        f"[dim]{result.processed} processed, {result.sent} sent, {result.failed} failed[/dim]"
    )
