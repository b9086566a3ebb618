"""Run the HTTP API."""

import click

from hylo.core.errors import HyloError


@click.command()
@click.option("--host", default=None, help="Bind address (default from HYLO_HOST)")
@click.option("--port", type=int, default=None, help="Bind port (default from HYLO_PORT)")
@click.option("--debug", is_flag=True, help="Enable Flask debug mode")
def serve(host, port, debug):
    """
    Start the routing API server.

    Example:
        hylo serve --port 5000
    """
    from hylo.api.app import create_app
    from hylo.config import AppConfig

    try:
        config = AppConfig.from_env()
        app = create_app(config=config)
    except HyloError as e:
        click.echo(f"Error: {e.message}", err=True)
        raise click.Abort()

    host = host or config.server.host
    port = port or config.server.port
    click.echo(f"Serving on http://{host}:{port}")
    app.run(host=host, port=port, debug=debug or config.server.debug, threaded=True)
