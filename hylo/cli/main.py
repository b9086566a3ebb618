"""
Hylo CLI - inspect and exercise provider routing from the terminal.

Examples:
    hylo analyze "Plan a weekend in Porto"
    hylo route "Compare rail passes for Japan" --execute
    hylo route "Draft a 10-day Peru itinerary" --stream
    hylo providers status
    hylo serve --port 5000
"""

import logging

import click

from hylo import __version__
from hylo.core import constants


@click.group()
@click.version_option(version=__version__, prog_name="Hylo")
@click.option("--verbose", "-v", is_flag=True, help="Log at DEBUG level")
def cli(verbose: bool):
    """
    Hylo - provider routing and fallback for travel queries.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, constants.LOG_LEVEL.upper(), logging.INFO),
        format=constants.LOG_FORMAT,
    )


from hylo.cli.commands import analyze, providers, route, serve  # noqa: E402

cli.add_command(analyze.analyze)
cli.add_command(route.route)
cli.add_command(providers.providers)
cli.add_command(serve.serve)


def main():
    """Entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
