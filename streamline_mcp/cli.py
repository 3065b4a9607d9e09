"""
Command line interface for the Streamline MCP server.

    streamline-mcp serve                      # stdio, for MCP clients
    streamline-mcp serve --transport http     # FastAPI app on STREAMLINE_HOST:STREAMLINE_PORT
    streamline-mcp preview '{"frequency": "weekly", "weekdays": [2, 4]}' --from 2025-02-03
"""
import json
import logging
import os
import sys

import click
import uvicorn

from streamline_mcp import __version__
from streamline_mcp.app.factory import create_app, setup_logging, enable_tracing
from streamline_mcp.dependencies.services import ServiceContainer, set_services, get_services, STORE_REST, STORE_MEMORY
from streamline_mcp.exceptions import ServiceError
from streamline_mcp.models.recurrence_models import RecurrenceRule
from streamline_mcp.services.recurrence_engine import upcoming_dates, human_readable_summary
from streamline_mcp.services.series_service import seed_rule_from_due_date
from streamline_mcp.transports import stdio
from streamline_mcp.utils.dates import parse_date, format_date

logger = logging.getLogger(__name__)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8004


@click.group()
@click.version_option(__version__, prog_name="streamline-mcp")
@click.option("--log-level", default=None, help="Log level (default: LOG_LEVEL or INFO)")
def cli(log_level):
    """Streamline MCP server."""
    setup_logging(log_level)


@cli.command()
@click.option("--transport", type=click.Choice(["stdio", "http"]), default="stdio", show_default=True)
@click.option("--store", "store_kind", type=click.Choice([STORE_REST, STORE_MEMORY]), default=STORE_REST, show_default=True)
@click.option("--host", default=lambda: os.getenv("STREAMLINE_HOST", DEFAULT_HOST), help="HTTP bind address")
@click.option("--port", type=int, default=lambda: int(os.getenv("STREAMLINE_PORT", str(DEFAULT_PORT))), help="HTTP port")
def serve(transport, store_kind, host, port):
    """Run the MCP server."""
    try:
        set_services(ServiceContainer(store_kind=store_kind))
    except ServiceError as e:
        click.echo(f"Error: {e.message}", err=True)
        sys.exit(1)

    if transport == "stdio":
        enable_tracing()
        try:
            stdio.serve()
        finally:
            get_services().close()
        return

    app = create_app(configure_logging=False)
    config = uvicorn.Config(
        app,
        host=host,
        port=port,
        log_level=os.getenv("LOG_LEVEL", "INFO").lower(),
        access_log=True,
        timeout_graceful_shutdown=30,
    )
    server = uvicorn.Server(config)
    try:
        server.run()
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt, shutting down...")


@cli.command()
@click.argument("rule_json")
@click.option("--from", "start", default="today", show_default=True, help="First due date")
@click.option("--count", type=click.IntRange(1, 100), default=5, show_default=True)
@click.option("--json", "as_json", is_flag=True, help="Print JSON instead of text")
def preview(rule_json, start, count, as_json):
    """Print the summary and upcoming dates of a recurrence rule."""
    first = parse_date(start)
    if first is None:
        raise click.BadParameter(f"Cannot parse date '{start}'", param_hint="--from")
    try:
        rule = RecurrenceRule.from_blob(rule_json)
    except ServiceError as e:
        raise click.BadParameter(e.message, param_hint="RULE_JSON") from e

    rule = seed_rule_from_due_date(rule, first).with_generated(1)
    dates = [first] + list(upcoming_dates(rule, first, count - 1))
    summary = human_readable_summary(rule)

    if as_json:
        click.echo(json.dumps({
            "summary": summary,
            "rule": rule.to_blob(),
            "dates": [d.date().isoformat() for d in dates],
        }, indent=2))
        return

    click.echo(summary)
    for d in dates:
        click.echo(f"  {format_date(d)}")


def main():
    cli()


if __name__ == "__main__":
    main()
