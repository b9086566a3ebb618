"""Complexity analysis command."""

import json

import click
from rich.console import Console
from rich.table import Table

from hylo.core.errors import HyloError

console = Console()


@click.command()
@click.argument("query")
@click.option("--session-id", default=None, help="Session id recorded with the request")
@click.option("--max-tokens", type=int, default=None, help="Maximum output tokens")
@click.option("--temperature", type=float, default=None, help="Sampling temperature to analyze with")
@click.option("--json", "as_json", is_flag=True, help="Print the analysis as JSON")
def analyze(query: str, session_id, max_tokens, temperature, as_json: bool):
    """
    Score the complexity of QUERY without calling any provider.

    Example:
        hylo analyze "What's the weather in Paris?"
    """
    from hylo.config import AppConfig
    from hylo.core.validation import parse_request
    from hylo.routing.complexity import ComplexityAnalyzer

    try:
        options = {}
        if max_tokens is not None:
            options["maxTokens"] = max_tokens
        if temperature is not None:
            options["temperature"] = temperature
        metadata = {"sessionId": session_id} if session_id else {}
        request = parse_request({"query": query, "options": options, "metadata": metadata})
        analyzer = ComplexityAnalyzer.from_config(AppConfig.from_env().routing)
        analysis = analyzer.analyze(request)
    except HyloError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise click.Abort()

    if as_json:
        click.echo(json.dumps(analysis.to_dict(), indent=2))
        return

    color = {"low": "green", "medium": "yellow", "high": "red"}[analysis.level.value]
    console.print(
        f"Complexity: [{color}]{analysis.level.value}[/{color}] "
        f"(score {analysis.score:.3f}, ~{analysis.token_estimate} tokens)"
    )

    table = Table(title="Factors")
    table.add_column("Factor", style="cyan")
    table.add_column("Value", justify="right")
    table.add_column("Weight", justify="right")
    table.add_column("Description")
    for factor in analysis.factors:
        table.add_row(factor.type.value, f"{factor.value:.2f}", f"{factor.weight:.2f}", factor.description)
    console.print(table)

    if analysis.detected_patterns:
        console.print(f"Patterns: {', '.join(analysis.detected_patterns)}")
    console.print(f"[dim]{analysis.reasoning}[/dim]")
