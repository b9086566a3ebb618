"""Routing command: show the decision, optionally execute it."""

import asyncio
import json

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from hylo.core.errors import HyloError

console = Console()


def _print_decision(decision, complexity):
    console.print(
        Panel(
            f"[bold]Provider:[/bold] [cyan]{decision.selected_provider}[/cyan]\n"
            f"[bold]Complexity:[/bold] {complexity.level.value} ({complexity.score:.3f})\n"
            f"[bold]Fallbacks:[/bold] {' -> '.join(decision.fallback_chain) or 'none'}\n\n"
            f"{decision.reasoning}",
            title="Routing Decision",
        )
    )

    table = Table(title="Candidates")
    table.add_column("Provider", style="cyan")
    table.add_column("Score", justify="right")
    table.add_column("Available", justify="center")
    table.add_column("Capacity", justify="center")
    table.add_column("Est. Latency", justify="right")
    table.add_column("Est. Cost", justify="right")
    for c in decision.candidate_providers:
        table.add_row(
            c.name,
            f"{c.score:.3f}",
            "[green]●[/green]" if c.available else "[red]●[/red]",
            "[green]●[/green]" if c.has_capacity else "[yellow]●[/yellow]",
            f"{c.estimated_latency_ms:.0f}ms",
            f"${c.estimated_cost_usd:.6f}",
        )
    console.print(table)


def _print_result(result):
    if result.success:
        console.print(Panel(result.response.content, title=f"Response from {result.final_provider}"))
    elif result.cancelled:
        console.print("[yellow]Request cancelled[/yellow]")
    else:
        console.print(Panel(result.degraded_message, title="[red]Degraded response[/red]"))

    for attempt in result.attempts:
        icon = "[green]✓[/green]" if attempt.success else "[red]✗[/red]"
        line = f"{icon} {attempt.provider} {attempt.status.value} in {attempt.latency_ms:.0f}ms"
        if attempt.error:
            line += f" [dim]({attempt.error.code.value}: {attempt.error.message})[/dim]"
        console.print(line)


async def _stream(service, request):
    complexity = service.engine.analyze_complexity(request)
    decision = await service.engine.route(request, complexity)
    final = None
    async for chunk in service.executor.execute_stream_with_fallback(
        request, decision.selected_provider, decision.fallback_chain
    ):
        if chunk.content:
            click.echo(chunk.content, nl=False)
        if chunk.is_complete:
            final = chunk
    click.echo()
    return final


@click.command()
@click.argument("query")
@click.option("--execute", is_flag=True, help="Call the provider chain after routing")
@click.option("--stream", is_flag=True, help="Stream the response with fallback")
@click.option("--max-tokens", type=int, default=None, help="Maximum output tokens")
@click.option("--temperature", type=float, default=None, help="Sampling temperature")
@click.option("--prefer", type=click.Choice(["groq", "gemini", "cerebras"]), default=None,
              help="Provider preference recorded with the request")
@click.option("--json", "as_json", is_flag=True, help="Print results as JSON")
def route(query, execute, stream, max_tokens, temperature, prefer, as_json):
    """
    Route QUERY to a provider.

    Without --execute or --stream only the routing decision is shown.

    Examples:
        hylo route "Best time to visit Kyoto?"
        hylo route "Plan 2 weeks across Vietnam" --execute
    """
    from hylo.core.validation import parse_request
    from hylo.services.routing_service import build_service

    options = {}
    if max_tokens is not None:
        options["maxTokens"] = max_tokens
    if temperature is not None:
        options["temperature"] = temperature
    metadata = {"userPreference": prefer} if prefer else {}

    try:
        request = parse_request({"query": query, "options": options, "metadata": metadata})
        service = build_service()

        if stream:
            final = asyncio.run(_stream(service, request))
            if as_json and final is not None:
                click.echo(json.dumps(final.metadata, indent=2, default=str))
            elif final is not None:
                meta = final.metadata or {}
                console.print(
                    f"[dim]provider={meta.get('final_provider')} "
                    f"fallbacks={meta.get('fallbacks_used', 0)}[/dim]"
                )
            return

        if execute:
            complexity, decision, result = asyncio.run(service.process(request))
        else:
            complexity = service.engine.analyze_complexity(request)
            decision = asyncio.run(service.engine.route(request, complexity))
            result = None
    except HyloError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise click.Abort()

    if as_json:
        body = {"complexity": complexity.to_dict(), "decision": decision.to_dict()}
        if result is not None:
            body["result"] = result.to_dict()
        click.echo(json.dumps(body, indent=2, default=str))
        return

    _print_decision(decision, complexity)
    if result is not None:
        _print_result(result)
