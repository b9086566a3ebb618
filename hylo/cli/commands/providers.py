"""Provider management CLI commands.

Provides commands for viewing provider status and metrics:
- hylo providers status - Show provider health and metrics
- hylo providers list - Show configured provider profiles
"""

import asyncio

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from hylo.core.errors import HyloError

console = Console()

STATUS_COLORS = {"active": "green", "degraded": "yellow", "unavailable": "red"}


@click.group()
def providers():
    """Provider management and monitoring."""
    pass


@providers.command()
@click.option("--all", "show_all", is_flag=True, help="Include disabled providers")
def status(show_all: bool):
    """Show provider health status and metrics."""
    from hylo.services.routing_service import build_service

    try:
        service = build_service()
    except HyloError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise click.Abort()

    registry = service.registry
    health_cache = service.engine.evaluator.health_cache
    snapshots = asyncio.run(health_cache.snapshot_many(registry.all().items()))

    enabled = [n for n in snapshots if registry.get_profile(n).is_enabled]
    available = [n for n in enabled if snapshots[n].available]
    color = "green" if len(available) == len(enabled) else "yellow" if available else "red"
    console.print(
        Panel(
            f"[bold]Provider Health Summary[/bold]\n\n"
            f"Enabled: {len(enabled)} of {len(snapshots)}\n"
            f"Available: [{color}]{len(available)}[/{color}]",
            title="Provider Status",
        )
    )

    table = Table(title="Provider Metrics")
    table.add_column("Provider", style="cyan")
    table.add_column("Model")
    table.add_column("Status", justify="center")
    table.add_column("Prefers", justify="center")
    table.add_column("Success Rate", justify="right")
    table.add_column("Avg Latency", justify="right")
    table.add_column("Requests", justify="right")
    table.add_column("Utilization", justify="right")

    for name, snapshot in snapshots.items():
        profile = registry.get_profile(name)
        if not show_all and not profile.is_enabled:
            continue
        state = snapshot.status.value if profile.is_enabled else "disabled"
        state_color = STATUS_COLORS.get(state, "dim")
        metrics = registry.get(name).get_metrics()
        table.add_row(
            name.value,
            profile.model,
            f"[{state_color}]{state}[/{state_color}]",
            profile.preferred_complexity.value,
            f"{metrics.success_rate * 100:.1f}%",
            f"{metrics.average_latency_ms:.0f}ms",
            str(metrics.request_count),
            f"{metrics.capacity_utilization * 100:.0f}%",
        )

    console.print(table)


@providers.command(name="list")
def list_providers():
    """Show configured provider profiles."""
    from hylo.config import AppConfig
    from hylo.providers import cerebras_provider, gemini_provider, groq_provider

    config = AppConfig.from_env()
    table = Table(title="Provider Profiles")
    table.add_column("Provider", style="cyan")
    table.add_column("Enabled", justify="center")
    table.add_column("API Key", justify="center")
    table.add_column("Prefers", justify="center")
    table.add_column("Timeout", justify="right")
    table.add_column("Max Concurrent", justify="right")
    table.add_column("Retries", justify="right")

    for default in (groq_provider.DEFAULT_PROFILE, gemini_provider.DEFAULT_PROFILE,
                    cerebras_provider.DEFAULT_PROFILE):
        provider_config = config.provider(default.name)
        table.add_row(
            default.name.value,
            "[green]yes[/green]" if provider_config.enabled else "[dim]no[/dim]",
            "[green]set[/green]" if provider_config.api_key else "[red]missing[/red]",
            default.preferred_complexity.value,
            f"{provider_config.timeout_ms or default.timeout_ms}ms",
            str(provider_config.max_concurrent_requests or default.max_concurrent_requests),
            str(default.retry_attempts),
        )
    console.print(table)
